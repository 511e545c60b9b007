import asyncio
import logging

from sqlmodel import select

from taskboard.core.config import settings
from taskboard.core.security import get_password_hash
from taskboard.db.session import AsyncSessionLocal, run_migrations
from taskboard.models.user import User, UserRole

logger = logging.getLogger(__name__)


async def init_first_owner() -> None:
    """Create the configured global owner if it does not exist yet."""
    if not (settings.FIRST_OWNER_EMAIL and settings.FIRST_OWNER_PASSWORD):
        return

    email = settings.FIRST_OWNER_EMAIL.strip().lower()
    async with AsyncSessionLocal() as session:
        result = await session.exec(select(User).where(User.email == email))
        if result.one_or_none():
            return

        session.add(
            User(
                email=email,
                name=settings.FIRST_OWNER_NAME,
                hashed_password=get_password_hash(settings.FIRST_OWNER_PASSWORD),
                role=UserRole.owner,
            )
        )
        await session.commit()
        logger.info("Created global owner %s", email)


async def init() -> None:
    await run_migrations()
    await init_first_owner()


if __name__ == "__main__":  # pragma: no cover
    asyncio.run(init())
