import asyncio
from pathlib import Path

from alembic import command
from alembic.config import Config as AlembicConfig
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.core.config import settings
from taskboard.db import base  # noqa: F401  # ensure models are imported for metadata


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine; SQLite gets FK enforcement so cascades behave."""
    engine = create_async_engine(url, echo=False, future=True, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def build_sessionmaker(bind: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        bind=bind,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        class_=AsyncSession,
    )


engine = build_engine(settings.DATABASE_URL)

AsyncSessionLocal = build_sessionmaker(engine)


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


def _get_alembic_config() -> AlembicConfig:
    root = Path(__file__).resolve().parents[2]
    config = AlembicConfig(str(root / "alembic.ini"))
    config.set_main_option("script_location", str(root / "alembic"))
    config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
    config.attributes["url_configured"] = True
    config.attributes["configure_logger"] = False
    return config


async def run_migrations() -> None:
    """Upgrade the configured database to the latest revision.

    Alembic's env drives its own event loop, so the upgrade runs in a worker
    thread.
    """
    await asyncio.to_thread(command.upgrade, _get_alembic_config(), "head")
