"""Alembic environment for the taskboard schema."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from logging.config import fileConfig
from pathlib import Path
import re
import sys

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config
from sqlmodel import SQLModel

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from taskboard.core.config import settings  # noqa: E402
from taskboard.db import base  # noqa: F401,E402  # registers every table on SQLModel.metadata

config = context.config

if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name)

# taskboard.db.session.run_migrations() passes the URL itself.
if not config.attributes.get("url_configured"):
    config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

target_metadata = SQLModel.metadata

_REVISION_FILE = re.compile(r"^\d{8}_(\d{4})_")


def _next_revision_id(context, revision, directives) -> None:
    """Name new revisions YYYYMMDD_NNNN with a sequence shared across dates."""
    if not directives:
        return
    versions_dir = Path(__file__).parent / "versions"
    sequences = [
        int(match.group(1))
        for match in (_REVISION_FILE.match(path.stem) for path in versions_dir.glob("*.py"))
        if match
    ]
    next_seq = max(sequences, default=0) + 1
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    directives[0].rev_id = f"{stamp}_{next_seq:04d}"


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=True,
        process_revision_directives=_next_revision_id,
        **kwargs,
    )


def run_migrations_offline() -> None:
    _configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section) or {},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
