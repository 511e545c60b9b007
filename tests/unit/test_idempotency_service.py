"""
Unit tests for taskboard.services.idempotency.

Tests the fingerprinting helpers and the coordinator directly, without
going through HTTP:
- Handler runs once per fingerprint
- Only 201 responses are stored
- Exceptions release the claim
- Storage faults fail open
- Expired and lapsed claims never disturb a newer claim
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.responses import JSONResponse
from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.core.errors import InvalidIdempotencyKeyError
from taskboard.core.principal import RequestContext, Scoped
from taskboard.models.idempotency import IdempotencyRecord, IdempotencyState
from taskboard.services import idempotency
from taskboard.services.idempotency import IdempotencyCoordinator, fingerprint, normalize_key


class CountingHandler:
    def __init__(self, status_code: int = 201, body: dict | None = None):
        self.calls = 0
        self.status_code = status_code
        self.body = body if body is not None else {"thing": {"id": 1}}

    async def __call__(self):
        self.calls += 1
        return JSONResponse(content=self.body, status_code=self.status_code)


class BrokenSessionFactory:
    """Every session fails to open, as if the database were unreachable."""

    def __call__(self):
        return self

    async def __aenter__(self):
        raise OperationalError("SELECT 1", {}, Exception("database is down"))

    async def __aexit__(self, *exc_info):
        return False


def _context(user_id: int = 1, path: str = "/api/v1/projects") -> RequestContext:
    return RequestContext(principal=Scoped(user_id), method="POST", path=path)


@pytest.mark.unit
def test_normalize_key_trims():
    assert normalize_key("  abc\t") == "abc"


@pytest.mark.unit
@pytest.mark.parametrize("raw", ["", "   ", "\n"])
def test_normalize_key_rejects_blank(raw: str):
    with pytest.raises(InvalidIdempotencyKeyError):
        normalize_key(raw)


@pytest.mark.unit
def test_fingerprint_covers_every_component():
    base = fingerprint("POST", "/api/v1/projects", 1, "k")

    assert len(base) == 64
    assert base == fingerprint("post", "/api/v1/projects", 1, "k")
    assert base != fingerprint("PUT", "/api/v1/projects", 1, "k")
    assert base != fingerprint("POST", "/api/v1/projects/2/tasks", 1, "k")
    assert base != fingerprint("POST", "/api/v1/projects", 2, "k")
    assert base != fingerprint("POST", "/api/v1/projects", 1, "other")


@pytest.mark.unit
@pytest.mark.service
async def test_second_execution_replays(session: AsyncSession, session_factory):
    coordinator = IdempotencyCoordinator(session_factory=session_factory)
    handler = CountingHandler()

    first = await coordinator.execute(_context(), "k", handler)
    second = await coordinator.execute(_context(), "k", handler)

    assert handler.calls == 1
    assert first.status_code == 201
    assert second.status_code == 200
    assert second.body == first.body
    record = await session.get(IdempotencyRecord, fingerprint("POST", "/api/v1/projects", 1, "k"))
    assert record.state == IdempotencyState.completed
    assert record.response_body == {"thing": {"id": 1}}


@pytest.mark.unit
@pytest.mark.service
@pytest.mark.parametrize("status_code", [200, 204, 400, 403, 500])
async def test_non_created_responses_are_not_stored(session: AsyncSession, session_factory, status_code: int):
    coordinator = IdempotencyCoordinator(session_factory=session_factory)
    handler = CountingHandler(status_code=status_code)

    await coordinator.execute(_context(), "k", handler)
    await coordinator.execute(_context(), "k", handler)

    assert handler.calls == 2
    assert await session.get(IdempotencyRecord, fingerprint("POST", "/api/v1/projects", 1, "k")) is None


@pytest.mark.unit
@pytest.mark.service
async def test_exception_releases_claim(session: AsyncSession, session_factory):
    coordinator = IdempotencyCoordinator(session_factory=session_factory)

    async def explode():
        raise RuntimeError("handler blew up")

    with pytest.raises(RuntimeError):
        await coordinator.execute(_context(), "k", explode)

    assert await session.get(IdempotencyRecord, fingerprint("POST", "/api/v1/projects", 1, "k")) is None
    retry = await coordinator.execute(_context(), "k", CountingHandler())
    assert retry.status_code == 201


@pytest.mark.unit
@pytest.mark.service
async def test_storage_fault_fails_open(caplog):
    coordinator = IdempotencyCoordinator(session_factory=BrokenSessionFactory())
    handler = CountingHandler()

    first = await coordinator.execute(_context(), "k", handler)
    second = await coordinator.execute(_context(), "k", handler)

    assert first.status_code == 201
    assert second.status_code == 201
    assert handler.calls == 2
    assert "processing request without a key" in caplog.text


@pytest.mark.unit
@pytest.mark.service
async def test_claim_is_exclusive(session_factory):
    context = _context()
    fp = fingerprint(context.method, context.path, context.user_id, "k")

    async with session_factory() as first, session_factory() as second:
        assert await idempotency.claim(first, fp=fp, context=context, key="k") is not None
        assert await idempotency.claim(second, fp=fp, context=context, key="k") is None


@pytest.mark.unit
@pytest.mark.service
async def test_purge_expired(session: AsyncSession, session_factory):
    now = datetime.now(timezone.utc)
    for key, expires_at in (("old", now - timedelta(minutes=1)), ("new", now + timedelta(hours=1))):
        session.add(
            IdempotencyRecord(
                fingerprint=fingerprint("POST", "/p", 1, key),
                method="POST",
                path="/p",
                user_id=1,
                idempotency_key=key,
                state=IdempotencyState.completed,
                status_code=201,
                response_body={},
                expires_at=expires_at,
            )
        )
    await session.commit()

    async with session_factory() as purge_session:
        assert await idempotency.purge_expired(purge_session) == 1


def _expired_record(fp: str) -> IdempotencyRecord:
    return IdempotencyRecord(
        fingerprint=fp,
        method="POST",
        path="/api/v1/projects",
        user_id=1,
        idempotency_key="k",
        state=IdempotencyState.completed,
        status_code=201,
        response_body={"thing": {"id": 1}},
        expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
    )


@pytest.mark.unit
@pytest.mark.service
async def test_stale_expired_read_keeps_newer_claim(session: AsyncSession, session_factory):
    context = _context()
    fp = fingerprint(context.method, context.path, context.user_id, "k")
    session.add(_expired_record(fp))
    await session.commit()

    async with session_factory() as first, session_factory() as second:
        stale = await first.get(IdempotencyRecord, fp)
        assert stale.is_expired()

        assert await idempotency.lookup(second, fp) is None
        assert await idempotency.claim(second, fp=fp, context=context, key="k") is not None

        # first still holds the expired row it read before second claimed
        assert await idempotency.lookup(first, fp) is None
        assert await idempotency.claim(first, fp=fp, context=context, key="k") is None

    record = await session.get(IdempotencyRecord, fp, populate_existing=True)
    assert record.state == IdempotencyState.pending


@pytest.mark.unit
@pytest.mark.service
async def test_lapsed_claim_cannot_touch_successor(session: AsyncSession, session_factory):
    context = _context()
    fp = fingerprint(context.method, context.path, context.user_id, "k")

    async with session_factory() as s:
        lapsed = await idempotency.claim(s, fp=fp, context=context, key="k")
    async with session_factory() as s:
        await s.exec(
            update(IdempotencyRecord)
            .where(IdempotencyRecord.fingerprint == fp)
            .values(expires_at=datetime.now(timezone.utc) - timedelta(seconds=1))
        )
        await s.commit()
    async with session_factory() as s:
        assert await idempotency.lookup(s, fp) is None
        current = await idempotency.claim(s, fp=fp, context=context, key="k")
    assert current is not None
    assert current != lapsed

    async with session_factory() as s:
        stored = await idempotency.complete(s, fp, claimed_at=lapsed, status_code=201, body={"thing": {"id": 2}})
        assert not stored
        await idempotency.release(s, fp, claimed_at=lapsed)

    record = await session.get(IdempotencyRecord, fp, populate_existing=True)
    assert record.state == IdempotencyState.pending
    assert record.response_body is None

    async with session_factory() as s:
        assert await idempotency.complete(s, fp, claimed_at=current, status_code=201, body={"thing": {"id": 3}})
    record = await session.get(IdempotencyRecord, fp, populate_existing=True)
    assert record.state == IdempotencyState.completed
    assert record.response_body == {"thing": {"id": 3}}
