"""ArtifactStore and IdempotencyCache tests with in-memory repositories.

Mock strategy:
  - MockArtifactRow / MockIdempotencyRow are plain dataclasses with the
    same attributes as the ORM rows the stores read.
  - MockArtifactRepository / MockIdempotencyRepository implement every
    async method the stores call, with the same side effects as the real
    repositories (claim only replaces an expired key).
  - FakeClock is a mutable clock so tests can step past TTLs.

The other test modules import these rather than redefining them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest

from relocation_flows.errors import ArtifactNotFound
from relocation_flows.models.artifact import ContentSection, GeneratedContent
from relocation_flows.models.flow import FlowType
from relocation_flows.store import ArtifactStore, IdempotencyCache, preview_ttl


# =====================================================================
# Mock infrastructure
# =====================================================================


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class MockArtifactRow:
    """In-memory stand-in for the GeneratedArtifact ORM row."""

    handle: str
    subject_id: str
    flow_type: str
    title: str
    content: dict = field(default_factory=dict)
    ai_generated: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class MockIdempotencyRow:
    key: str
    value: str
    created_at: datetime
    expires_at: datetime


class MockArtifactRepository:
    """In-memory ArtifactRepository replacement keyed by handle."""

    def __init__(self):
        self._rows: dict[str, MockArtifactRow] = {}

    async def create(self, db, *, handle, subject_id, flow_type, title, content,
                     ai_generated, created_at, expires_at):
        row = MockArtifactRow(
            handle=handle, subject_id=subject_id, flow_type=flow_type,
            title=title, content=content, ai_generated=ai_generated,
            created_at=created_at, expires_at=expires_at,
        )
        self._rows[handle] = row
        return row

    async def get_by_handle(self, db, handle):
        return self._rows.get(handle)

    async def delete(self, db, handle):
        return self._rows.pop(handle, None) is not None

    async def delete_for_subject(self, db, subject_id):
        doomed = [h for h, r in self._rows.items() if r.subject_id == subject_id]
        for h in doomed:
            del self._rows[h]
        return len(doomed)

    async def purge_expired(self, db, *, now):
        doomed = [h for h, r in self._rows.items() if r.expires_at <= now]
        for h in doomed:
            del self._rows[h]
        return len(doomed)


class MockIdempotencyRepository:
    """In-memory IdempotencyRepository replacement."""

    def __init__(self):
        self._rows: dict[str, MockIdempotencyRow] = {}

    async def get(self, db, key):
        return self._rows.get(key)

    async def claim(self, db, *, key, value, created_at, expires_at):
        existing = self._rows.get(key)
        # Mirrors ON CONFLICT DO UPDATE ... WHERE expires_at <= created_at
        if existing is None or existing.expires_at <= created_at:
            self._rows[key] = MockIdempotencyRow(key, value, created_at, expires_at)
        return self._rows[key].value

    async def delete(self, db, key):
        self._rows.pop(key, None)

    async def purge_expired(self, db, *, now):
        doomed = [k for k, r in self._rows.items() if r.expires_at <= now]
        for k in doomed:
            del self._rows[k]
        return len(doomed)


def make_stores(clock):
    """ArtifactStore + IdempotencyCache sharing *clock*, with mock repos."""
    artifacts = ArtifactStore(clock=clock)
    artifacts._repo = MockArtifactRepository()
    idempotency = IdempotencyCache(clock=clock)
    idempotency._repo = MockIdempotencyRepository()
    return artifacts, idempotency


def sample_content(title="Apostille Guide"):
    return GeneratedContent(
        title=title,
        subtitle="Customized for Jane",
        sections=[ContentSection(heading="Intro", body="Hello", items=["a", "b"])],
    )


# =====================================================================
# Fixtures
# =====================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stores(clock):
    return make_stores(clock)


# =====================================================================
# ArtifactStore
# =====================================================================


class TestArtifactStore:

    @pytest.mark.asyncio
    async def test_create_then_get(self, stores, mock_db):
        artifacts, _ = stores
        created = await artifacts.create(
            mock_db, subject_id="42", flow_type=FlowType.APOSTILLE,
            content=sample_content(), answers={"urgency": "asap"},
        )
        fetched = await artifacts.get(mock_db, created.handle, "42")
        assert fetched.title == "Apostille Guide"
        assert fetched.subtitle == "Customized for Jane"
        assert fetched.sections[0].items == ["a", "b"]
        assert fetched.answers == {"urgency": "asap"}
        assert fetched.ttl_seconds == preview_ttl(FlowType.APOSTILLE)

    @pytest.mark.asyncio
    async def test_handle_prefix_by_category(self, stores, mock_db):
        artifacts, _ = stores
        guide = await artifacts.create(
            mock_db, subject_id="42", flow_type=FlowType.BANK_RATINGS,
            content=sample_content(), answers={},
        )
        doc = await artifacts.create(
            mock_db, subject_id="42", flow_type=FlowType.ATTESTATION,
            content=sample_content(), answers={},
        )
        assert guide.handle.startswith("guide_")
        assert doc.handle.startswith("gendoc_")
        assert guide.handle != doc.handle

    def test_documents_live_longer_than_guides(self):
        assert preview_ttl(FlowType.COVER_LETTER) > preview_ttl(FlowType.APOSTILLE)

    @pytest.mark.asyncio
    async def test_lazy_expiry(self, stores, clock, mock_db):
        """Expired artifacts read as missing even before a sweep runs."""
        artifacts, _ = stores
        created = await artifacts.create(
            mock_db, subject_id="42", flow_type=FlowType.APOSTILLE,
            content=sample_content(), answers={}, ttl_seconds=60,
        )
        clock.advance(seconds=59)
        await artifacts.get(mock_db, created.handle)

        clock.advance(seconds=1)
        with pytest.raises(ArtifactNotFound):
            await artifacts.get(mock_db, created.handle)
        # Row is still there until purge_expired runs
        assert created.handle in artifacts._repo._rows

    @pytest.mark.asyncio
    async def test_foreign_handle_is_not_found(self, stores, mock_db):
        artifacts, _ = stores
        created = await artifacts.create(
            mock_db, subject_id="42", flow_type=FlowType.APOSTILLE,
            content=sample_content(), answers={},
        )
        with pytest.raises(ArtifactNotFound):
            await artifacts.get(mock_db, created.handle, "someone-else")

    @pytest.mark.asyncio
    async def test_unknown_and_empty_handle(self, stores, mock_db):
        artifacts, _ = stores
        with pytest.raises(ArtifactNotFound):
            await artifacts.get(mock_db, "guide_0_nope")
        with pytest.raises(ArtifactNotFound):
            await artifacts.get(mock_db, "")

    @pytest.mark.asyncio
    async def test_purge_expired(self, stores, clock, mock_db):
        artifacts, _ = stores
        short = await artifacts.create(
            mock_db, subject_id="42", flow_type=FlowType.APOSTILLE,
            content=sample_content(), answers={}, ttl_seconds=10,
        )
        long = await artifacts.create(
            mock_db, subject_id="42", flow_type=FlowType.APOSTILLE,
            content=sample_content(), answers={}, ttl_seconds=1000,
        )
        clock.advance(seconds=10)
        assert await artifacts.purge_expired(mock_db) == 1
        assert short.handle not in artifacts._repo._rows
        assert (await artifacts.get(mock_db, long.handle)).handle == long.handle

    @pytest.mark.asyncio
    async def test_delete_for_subject(self, stores, mock_db):
        artifacts, _ = stores
        for subject in ("42", "42", "7"):
            await artifacts.create(
                mock_db, subject_id=subject, flow_type=FlowType.APOSTILLE,
                content=sample_content(), answers={},
            )
        assert await artifacts.delete_for_subject(mock_db, "42") == 2
        assert len(artifacts._repo._rows) == 1


# =====================================================================
# IdempotencyCache
# =====================================================================


class TestIdempotencyCache:

    @pytest.mark.asyncio
    async def test_remember_then_recall(self, stores, mock_db):
        _, cache = stores
        assert await cache.recall(mock_db, "k") is None
        assert await cache.remember(mock_db, "k", "v1") == "v1"
        assert await cache.recall(mock_db, "k") == "v1"

    @pytest.mark.asyncio
    async def test_first_value_wins_inside_window(self, stores, mock_db):
        _, cache = stores
        await cache.remember(mock_db, "k", "v1")
        assert await cache.remember(mock_db, "k", "v2") == "v1"
        assert await cache.recall(mock_db, "k") == "v1"

    @pytest.mark.asyncio
    async def test_expired_key_reads_absent_and_is_replaced(self, stores, clock, mock_db):
        _, cache = stores
        await cache.remember(mock_db, "k", "v1")
        clock.advance(hours=24)
        assert await cache.recall(mock_db, "k") is None
        assert await cache.remember(mock_db, "k", "v2") == "v2"

    @pytest.mark.asyncio
    async def test_custom_ttl(self, stores, clock, mock_db):
        _, cache = stores
        await cache.remember(mock_db, "k", "v1", ttl_seconds=5)
        clock.advance(seconds=5)
        assert await cache.recall(mock_db, "k") is None

    @pytest.mark.asyncio
    async def test_forget_and_purge(self, stores, clock, mock_db):
        _, cache = stores
        await cache.remember(mock_db, "a", "1")
        await cache.remember(mock_db, "b", "2", ttl_seconds=1)
        await cache.forget(mock_db, "a")
        assert await cache.recall(mock_db, "a") is None
        clock.advance(seconds=1)
        assert await cache.purge_expired(mock_db) == 1
        assert cache._repo._rows == {}
