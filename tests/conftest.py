"""Shared fixtures: an in-process store and controllable provider fakes."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from coach_memory.core.config import RetrievalConfig, SummaryMaintenanceConfig
from coach_memory.core.errors import ProviderUnavailableError, SessionExpiredError, StoreError
from coach_memory.domain.models import EmbeddingType, MemoryRecord, UserProfile
from coach_memory.infrastructure.repositories import InMemoryMemoryStore
from coach_memory.services.memory_service import MemoryService
from coach_memory.services.quota import MemoryQuotaGuard
from coach_memory.services.retrieval import RelevanceRetriever
from coach_memory.services.summary_maintenance import SummaryMaintenanceWorker

VOCABULARY = ["sleep", "running", "work", "family", "anxiety", "travel"]
BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)


def topic_vector(text: str) -> list[float]:
    """One dimension per vocabulary word; unrelated text gets its own axis."""
    lowered = text.lower()
    vector = [1.0 if word in lowered else 0.0 for word in VOCABULARY]
    vector.append(0.0 if any(vector) else 1.0)
    return vector


class FakeEmbeddings:
    def __init__(self) -> None:
        self.calls: list[tuple[str, EmbeddingType]] = []
        self.fail = False
        self.error: Exception | None = None
        self.empty = False
        self.delay = 0.0

    async def embed_text(self, text: str, embedding_type: EmbeddingType = EmbeddingType.DOCUMENT) -> list[float]:
        self.calls.append((text, embedding_type))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ProviderUnavailableError("embedding provider down")
        if self.error is not None:
            raise self.error
        if self.empty:
            return []
        return topic_vector(text)


class FakeSummarizer:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str | None]] = []
        self.failing_content: set[str] = set()
        self.empty_content: set[str] = set()
        self.in_flight = 0
        self.max_in_flight = 0

    async def summarize(self, text: str, user_name: str | None = None) -> str:
        self.calls.append((text, user_name))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if text in self.failing_content:
                raise ProviderUnavailableError("summarizer down")
            if text in self.empty_content:
                return "   "
            subject = user_name or "The author"
            return f"{subject} wrote about {text[:30]}"
        finally:
            self.in_flight -= 1


class FakeProfiles:
    def __init__(self) -> None:
        self.profiles: dict[str, UserProfile] = {}
        self.expired: set[str] = set()

    def add(self, owner_id: str, full_name: str | None = None, email: str | None = None) -> None:
        self.profiles[owner_id] = UserProfile(owner_id=owner_id, full_name=full_name, email=email)

    async def get_profile(self, owner_id: str) -> UserProfile | None:
        if owner_id in self.expired:
            raise SessionExpiredError()
        return self.profiles.get(owner_id)


class FlakyMemoryStore(InMemoryMemoryStore):
    """In-memory store whose individual operations can be made to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.failing: set[str] = set()
        self.fail_updates_for: set[str] = set()
        self.update_error: Exception | None = None
        self.find_calls = 0

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.failing:
            raise StoreError(f"{operation} failed")

    async def find(self, owner_id, spec=None, order_by=(), limit=None):
        self.find_calls += 1
        self._maybe_fail("find")
        if "find_pinned" in self.failing and "type='pinned'" in repr(spec):
            raise StoreError("pinned lookup failed")
        if "find_keyword" in self.failing and "type='keyword'" in repr(spec):
            raise StoreError("keyword lookup failed")
        return await super().find(owner_id, spec, order_by, limit)

    async def count(self, owner_id, spec=None):
        self._maybe_fail("count")
        return await super().count(owner_id, spec)

    async def nearest(self, owner_id, embedding, threshold, limit):
        self._maybe_fail("nearest")
        return await super().nearest(owner_id, embedding, threshold, limit)

    async def update(self, owner_id, memory_id, fields):
        self._maybe_fail("update")
        if memory_id in self.fail_updates_for:
            raise self.update_error or StoreError("update failed")
        return await super().update(owner_id, memory_id, fields)


async def seed(
    store: InMemoryMemoryStore,
    owner_id: str,
    content: str,
    minutes_ago: int = 0,
    embed: bool = False,
    **fields,
) -> MemoryRecord:
    """Insert a record directly, bypassing the quota guard."""
    created_at = BASE_TIME - timedelta(minutes=minutes_ago)
    record = MemoryRecord(
        owner_id=owner_id,
        content=content,
        created_at=created_at,
        updated_at=created_at,
        embedding=topic_vector(fields.get("summary") or content) if embed else None,
        **fields,
    )
    return await store.insert(record)


@pytest.fixture
def store() -> FlakyMemoryStore:
    return FlakyMemoryStore()


@pytest.fixture
def embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture
def summarizer() -> FakeSummarizer:
    return FakeSummarizer()


@pytest.fixture
def profiles() -> FakeProfiles:
    return FakeProfiles()


@pytest.fixture
def retrieval_config() -> RetrievalConfig:
    return RetrievalConfig(memory_quota=5, similarity_threshold=0.75, provider_timeout_seconds=1.0)


@pytest.fixture
def quota_guard(store, embeddings, retrieval_config) -> MemoryQuotaGuard:
    return MemoryQuotaGuard(
        store,
        quota=retrieval_config.memory_quota,
        embeddings=embeddings,
        embedding_timeout_seconds=retrieval_config.provider_timeout_seconds,
    )


@pytest.fixture
def retriever(store, embeddings, retrieval_config) -> RelevanceRetriever:
    return RelevanceRetriever.from_config(store, embeddings, retrieval_config)


@pytest.fixture
def memory_service(store, quota_guard, retriever) -> MemoryService:
    return MemoryService(store, quota_guard, retriever)


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def worker(store, summarizer, profiles, sleeps) -> SummaryMaintenanceWorker:
    async def record_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return SummaryMaintenanceWorker(
        store,
        summarizer,
        profiles,
        SummaryMaintenanceConfig(batch_size=5, batch_delay_seconds=1.0, provider_timeout_seconds=1.0),
        sleep=record_sleep,
    )


@pytest.fixture
def embedding_worker(store, summarizer, profiles, embeddings, sleeps) -> SummaryMaintenanceWorker:
    async def record_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return SummaryMaintenanceWorker(
        store,
        summarizer,
        profiles,
        SummaryMaintenanceConfig(
            batch_size=5,
            batch_delay_seconds=0.5,
            provider_timeout_seconds=1.0,
            embedding_timeout_seconds=1.0,
        ),
        sleep=record_sleep,
        embeddings=embeddings,
    )
