"""Idempotency-key bookkeeping for POST requests.

A request carrying an idempotency key is identified by a fingerprint over
``METHOD:path:user_id:key``.  The first request to insert a row under that
fingerprint owns it: the row starts ``pending``, the handler runs, and a 201
promotes it to ``completed`` with the response body.  Anything else removes
the row so a corrected retry can succeed.  Later requests with the same
fingerprint wait for the owner and replay its body with status 200.

Storage faults never fail the request.  They are logged and the request runs
as if no key had been sent.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

from fastapi import Response
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlmodel import delete, update
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.core.config import settings
from taskboard.core.errors import IdempotencyKeyInUseError, InvalidIdempotencyKeyError
from taskboard.core.principal import RequestContext
from taskboard.models.idempotency import IdempotencyRecord, IdempotencyState

logger = logging.getLogger(__name__)

REPLAY_STATUS_CODE = 200
CACHEABLE_STATUS_CODE = 201


def normalize_key(raw: str) -> str:
    key = raw.strip()
    if not key:
        raise InvalidIdempotencyKeyError()
    return key


def fingerprint(method: str, path: str, user_id: int, key: str) -> str:
    material = f"{method.upper()}:{path}:{user_id}:{key}"
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


async def lookup(session: AsyncSession, fp: str) -> Optional[IdempotencyRecord]:
    """Return the live record for *fp*; expired records are purged and ignored.

    The purge re-checks expiry in SQL, so a fresh claim inserted by another
    request after *record* was read survives.
    """
    record = await session.get(IdempotencyRecord, fp)
    if record is None:
        return None
    now = datetime.now(timezone.utc)
    if record.is_expired(now):
        logger.debug("Purging expired idempotency record %s", fp)
        await session.exec(
            delete(IdempotencyRecord)
            .where(
                IdempotencyRecord.fingerprint == fp,
                IdempotencyRecord.expires_at < now,
            )
            .execution_options(synchronize_session=False)
        )
        session.expunge(record)
        await session.commit()
        return None
    return record


async def claim(
    session: AsyncSession,
    *,
    fp: str,
    context: RequestContext,
    key: str,
) -> Optional[datetime]:
    """Insert a pending marker.

    Returns the marker's ``created_at``, which identifies this claim to
    :func:`complete` and :func:`release`, or ``None`` when another request
    holds *fp*.
    """
    now = datetime.now(timezone.utc)
    session.add(
        IdempotencyRecord(
            fingerprint=fp,
            method=context.method,
            path=context.path,
            user_id=context.user_id,
            idempotency_key=key,
            state=IdempotencyState.pending,
            created_at=now,
            expires_at=now + timedelta(seconds=settings.IDEMPOTENCY_PENDING_TTL_SECONDS),
        )
    )
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        return None
    return now


async def complete(
    session: AsyncSession,
    fp: str,
    *,
    claimed_at: datetime,
    status_code: int,
    body: Any,
) -> bool:
    """Promote this request's pending marker; ``False`` if the claim lapsed."""
    now = datetime.now(timezone.utc)
    stmt = (
        update(IdempotencyRecord)
        .where(
            IdempotencyRecord.fingerprint == fp,
            IdempotencyRecord.state == IdempotencyState.pending,
            IdempotencyRecord.created_at == claimed_at,
        )
        .values(
            state=IdempotencyState.completed,
            status_code=status_code,
            response_body=body,
            expires_at=now + timedelta(hours=settings.IDEMPOTENCY_TTL_HOURS),
        )
    )
    result = await session.exec(stmt)
    await session.commit()
    return result.rowcount > 0


async def release(session: AsyncSession, fp: str, *, claimed_at: datetime) -> None:
    await session.exec(
        delete(IdempotencyRecord).where(
            IdempotencyRecord.fingerprint == fp,
            IdempotencyRecord.state == IdempotencyState.pending,
            IdempotencyRecord.created_at == claimed_at,
        )
    )
    await session.commit()


async def purge_expired(session: AsyncSession) -> int:
    now = datetime.now(timezone.utc)
    result = await session.exec(delete(IdempotencyRecord).where(IdempotencyRecord.expires_at < now))
    await session.commit()
    return result.rowcount


def replay(record: IdempotencyRecord) -> Response:
    return JSONResponse(content=record.response_body, status_code=REPLAY_STATUS_CODE)


Handler = Callable[[], Awaitable[Response]]


@dataclass
class IdempotencyCoordinator:
    """Runs a handler at most once per fingerprint."""

    session_factory: sessionmaker
    wait_timeout: float = settings.IDEMPOTENCY_WAIT_TIMEOUT_SECONDS
    poll_interval: float = settings.IDEMPOTENCY_POLL_INTERVAL_SECONDS

    async def execute(self, context: RequestContext, key: str, handler: Handler) -> Response:
        fp = fingerprint(context.method, context.path, context.user_id, key)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.wait_timeout

        while True:
            try:
                async with self.session_factory() as session:
                    record = await lookup(session, fp)
                    if record is not None and record.state == IdempotencyState.completed:
                        logger.info("Replaying idempotent response for %s %s", context.method, context.path)
                        return replay(record)
                    if record is None:
                        claimed_at = await claim(session, fp=fp, context=context, key=key)
                        if claimed_at is not None:
                            break
            except SQLAlchemyError:
                logger.exception("Idempotency lookup failed; processing request without a key")
                return await handler()

            # Another request holds the fingerprint; wait for its outcome.
            if loop.time() >= deadline:
                raise IdempotencyKeyInUseError()
            await asyncio.sleep(self.poll_interval)

        try:
            response = await handler()
        except Exception:
            await self._release(fp, claimed_at)
            raise

        if response.status_code == CACHEABLE_STATUS_CODE:
            await self._store(fp, claimed_at, response)
        else:
            await self._release(fp, claimed_at)
        return response

    async def _store(self, fp: str, claimed_at: datetime, response: Response) -> None:
        try:
            body = json.loads(response.body)
        except ValueError:
            logger.exception("Response body is not JSON; not caching %s", fp)
            await self._release(fp, claimed_at)
            return
        try:
            async with self.session_factory() as session:
                stored = await complete(
                    session,
                    fp,
                    claimed_at=claimed_at,
                    status_code=response.status_code,
                    body=body,
                )
        except SQLAlchemyError:
            logger.exception("Failed to store idempotent response for %s", fp)
            await self._release(fp, claimed_at)
            return
        if not stored:
            logger.info("Idempotency claim for %s lapsed before completion; response not cached", fp)

    async def _release(self, fp: str, claimed_at: datetime) -> None:
        try:
            async with self.session_factory() as session:
                await release(session, fp, claimed_at=claimed_at)
        except SQLAlchemyError:
            logger.exception("Failed to release idempotency claim %s", fp)
