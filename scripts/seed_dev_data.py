"""Dev data seeder for the Taskboard API.

Usage:
    python scripts/seed_dev_data.py          # Create demo data
    python scripts/seed_dev_data.py --clean  # Remove seeded demo data

Run from the repository root so ``taskboard`` imports resolve. Saves created
IDs to .dev_seed_ids.json for cleanup.

Creates a handful of users, two projects with members, tasks in several
states, and a comment thread, enough to click through every endpoint.
All seeded users share the password "changeme".
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

# Bootstrap: put the repository root on sys.path so `taskboard.*` imports work
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sqlmodel import select  # noqa: E402
from sqlmodel.ext.asyncio.session import AsyncSession  # noqa: E402

from taskboard.core.config import settings  # noqa: E402
from taskboard.core.security import get_password_hash  # noqa: E402
from taskboard.db.session import AsyncSessionLocal  # noqa: E402
from taskboard.models.comment import Comment  # noqa: E402
from taskboard.models.project import Project, ProjectMember  # noqa: E402
from taskboard.models.task import Task  # noqa: E402
from taskboard.models.user import User, UserRole  # noqa: E402

STATE_FILE = ROOT_DIR / ".dev_seed_ids.json"

SEED_PASSWORD = "changeme"

USERS = [
    {"email": "maya@example.com", "name": "Maya Chen"},
    {"email": "omar@example.com", "name": "Omar Haddad"},
    {"email": "lena@example.com", "name": "Lena Novak"},
    {"email": "sam@example.com", "name": "Sam Okafor"},
]

PROJECTS = [
    {
        "name": "Website Redesign",
        "description": "New marketing site and docs portal",
        "owner": "Maya Chen",
        "members": [("Omar Haddad", "developer"), ("Lena Novak", "designer")],
        "tasks": [
            {"title": "Audit current pages", "status": "done", "priority": "low", "assignee": "Lena Novak"},
            {"title": "Design hero section", "status": "in_progress", "priority": "high", "assignee": "Lena Novak"},
            {"title": "Set up static site build", "status": "in_progress", "priority": "medium", "assignee": "Omar Haddad"},
            {"title": "Write launch announcement", "status": "todo", "priority": "medium", "assignee": None},
        ],
    },
    {
        "name": "Mobile App",
        "description": "First release of the companion app",
        "owner": "Omar Haddad",
        "members": [("Sam Okafor", "qa")],
        "tasks": [
            {"title": "Login screen", "status": "todo", "priority": "high", "assignee": "Omar Haddad"},
            {"title": "Smoke test plan", "status": "todo", "priority": "medium", "assignee": "Sam Okafor"},
        ],
    },
]

COMMENTS = [
    ("Design hero section", "Lena Novak", "First draft is in the shared folder."),
    ("Design hero section", "Maya Chen", "Looks great, can we try a darker background?"),
    ("Design hero section", "Lena Novak", "Updated, take another look."),
    ("Login screen", "Sam Okafor", "Please include the password reset link."),
]


def _save_state(state: dict) -> None:
    STATE_FILE.write_text(json.dumps(state, indent=2))
    print(f"  State saved to {STATE_FILE}")


def _load_state() -> dict | None:
    if not STATE_FILE.exists():
        return None
    return json.loads(STATE_FILE.read_text())


class IDTracker:
    def __init__(self) -> None:
        self.data: dict[str, list] = {
            "users": [],
            "projects": [],
            "project_members": [],
            "tasks": [],
            "comments": [],
        }

    def add(self, key: str, value) -> None:
        self.data[key].append(value)


async def _ensure_users(session: AsyncSession, ids: IDTracker) -> dict[str, User]:
    """Create the demo users; existing emails are reused and never cleaned."""
    users: dict[str, User] = {}
    password_hash = get_password_hash(SEED_PASSWORD)
    for ud in USERS:
        result = await session.exec(select(User).where(User.email == ud["email"]))
        user = result.one_or_none()
        if user is None:
            user = User(email=ud["email"], name=ud["name"], hashed_password=password_hash, role=UserRole.member)
            session.add(user)
            await session.flush()
            ids.add("users", user.id)
        users[ud["name"]] = user
    return users


async def seed() -> None:
    if _load_state() is not None:
        print(f"Seed data already exists ({STATE_FILE.name} found).")
        print("  Run with --clean first to remove existing data.")
        return

    print("Seeding dev data...")
    ids = IDTracker()
    tasks_by_title: dict[str, Task] = {}

    async with AsyncSessionLocal() as session:
        async with session.begin():
            print("  Creating users...")
            users = await _ensure_users(session, ids)

            print("  Creating projects, members and tasks...")
            for pd in PROJECTS:
                project = Project(
                    name=pd["name"],
                    description=pd["description"],
                    owner_id=users[pd["owner"]].id,
                )
                session.add(project)
                await session.flush()
                ids.add("projects", project.id)

                for member_name, role in pd["members"]:
                    user = users[member_name]
                    session.add(ProjectMember(project_id=project.id, user_id=user.id, role=role))
                    ids.add("project_members", {"project_id": project.id, "user_id": user.id})

                for td in pd["tasks"]:
                    assignee = users[td["assignee"]] if td["assignee"] else None
                    task = Task(
                        project_id=project.id,
                        title=td["title"],
                        status=td["status"],
                        priority=td["priority"],
                        assigned_to_id=assignee.id if assignee else None,
                        created_by_id=project.owner_id,
                    )
                    session.add(task)
                    await session.flush()
                    ids.add("tasks", task.id)
                    tasks_by_title[task.title] = task

            print("  Creating comments...")
            for task_title, author_name, content in COMMENTS:
                comment = Comment(
                    task_id=tasks_by_title[task_title].id,
                    author_id=users[author_name].id,
                    content=content,
                )
                session.add(comment)
                await session.flush()
                ids.add("comments", comment.id)

    _save_state(ids.data)
    print("Done!")
    print(f"  API: {settings.API_V1_STR}; log in as any of {', '.join(u['email'] for u in USERS)}")
    print(f"  Password for all seeded users: {SEED_PASSWORD}")


async def clean() -> None:
    state = _load_state()
    if state is None:
        print("No seed state file found. Nothing to clean.")
        return

    print("Cleaning up seeded dev data...")

    async with AsyncSessionLocal() as session:
        async with session.begin():
            # Delete in reverse dependency order; flush between groups so
            # FK constraints are satisfied.
            for cid in state.get("comments", []):
                obj = await session.get(Comment, cid)
                if obj:
                    await session.delete(obj)
            await session.flush()
            print("  Removed comments")

            for tid in state.get("tasks", []):
                obj = await session.get(Task, tid)
                if obj:
                    await session.delete(obj)
            await session.flush()
            print("  Removed tasks")

            for pm in state.get("project_members", []):
                obj = await session.get(ProjectMember, (pm["project_id"], pm["user_id"]))
                if obj:
                    await session.delete(obj)
            await session.flush()
            print("  Removed project members")

            for pid in state.get("projects", []):
                obj = await session.get(Project, pid)
                if obj:
                    await session.delete(obj)
            await session.flush()
            print("  Removed projects")

            for uid in state.get("users", []):
                obj = await session.get(User, uid)
                if obj:
                    await session.delete(obj)
            await session.flush()
            print("  Removed users")

    STATE_FILE.unlink(missing_ok=True)
    print("Done! All seeded data removed.")


if __name__ == "__main__":
    if "--clean" in sys.argv:
        asyncio.run(clean())
    else:
        asyncio.run(seed())
