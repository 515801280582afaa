"""Wire the memory engine from settings."""

import logging
from collections.abc import AsyncGenerator
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass

from coach_memory.core.config import Settings, settings as default_settings
from coach_memory.core.logging import get_logger, setup_logging
from coach_memory.infrastructure.embeddings import VoyageEmbeddingService
from coach_memory.infrastructure.neo4j import create_neo4j_driver, ensure_schema
from coach_memory.infrastructure.repositories import (
    InMemoryMemoryStore,
    Neo4jMemoryStore,
    Neo4jProfileDirectory,
)
from coach_memory.infrastructure.summarization import OpenAISummarizationService
from coach_memory.services import EmbeddingService, MemoryStore, ProfileDirectory, SummarizationService
from coach_memory.services.maintenance_jobs import MaintenanceScheduler
from coach_memory.services.memory_service import MemoryService
from coach_memory.services.quota import MemoryQuotaGuard
from coach_memory.services.retrieval import RelevanceRetriever
from coach_memory.services.summary_maintenance import SummaryMaintenanceWorker

logger = get_logger(__name__)


@dataclass
class MemoryEngine:
    """Everything the host application needs, built once per process."""

    store: MemoryStore
    memory_service: MemoryService
    worker: SummaryMaintenanceWorker | None
    scheduler: MaintenanceScheduler | None
    embeddings: EmbeddingService | None


def build_services(
    store: MemoryStore,
    settings: Settings,
    embeddings: EmbeddingService | None = None,
    summarizer: SummarizationService | None = None,
    profiles: ProfileDirectory | None = None,
) -> MemoryEngine:
    retrieval = settings.retrieval
    quota_guard = MemoryQuotaGuard(
        store,
        quota=retrieval.memory_quota,
        embeddings=embeddings,
        embedding_timeout_seconds=retrieval.provider_timeout_seconds,
    )
    retriever = RelevanceRetriever.from_config(store, embeddings, retrieval)
    memory_service = MemoryService(store, quota_guard, retriever)

    worker = None
    scheduler = None
    if summarizer is not None and profiles is not None:
        worker = SummaryMaintenanceWorker(
            store, summarizer, profiles, settings.summary_maintenance, embeddings=embeddings
        )
        scheduler = MaintenanceScheduler(worker, interval_minutes=settings.maintenance_interval_minutes)
    else:
        logger.warning("Summarization not configured, summary maintenance disabled")

    return MemoryEngine(
        store=store,
        memory_service=memory_service,
        worker=worker,
        scheduler=scheduler,
        embeddings=embeddings,
    )


def _embeddings_from(settings: Settings) -> VoyageEmbeddingService | None:
    if not settings.voyage_api_key:
        logger.warning("Voyage API key not set, retrieval will use keyword and recency tiers only")
        return None
    return VoyageEmbeddingService(
        api_key=settings.voyage_api_key,
        model=settings.voyage_model,
        timeout_seconds=settings.provider_timeout_seconds,
    )


def _summarizer_from(settings: Settings) -> OpenAISummarizationService | None:
    if not settings.openai_api_key:
        return None
    return OpenAISummarizationService(
        api_key=settings.openai_api_key,
        model=settings.summary_model,
        base_url=settings.openai_base_url,
        max_tokens=settings.summary_max_tokens,
        temperature=settings.summary_temperature,
        timeout_seconds=settings.summary_timeout_seconds,
    )


@asynccontextmanager
async def build_memory_engine(settings: Settings | None = None) -> AsyncGenerator[MemoryEngine]:
    """Connect to Neo4j, prepare the schema and yield a wired engine.

    The maintenance scheduler is started on entry and shut down, together
    with the provider clients and the driver, on exit.
    """
    settings = settings or default_settings
    setup_logging(logging.DEBUG if settings.debug else logging.INFO, json=settings.log_json)
    async with AsyncExitStack() as stack:
        driver = await stack.enter_async_context(create_neo4j_driver(settings))
        await ensure_schema(driver, database=settings.neo4j_database)

        store = Neo4jMemoryStore(driver, database=settings.neo4j_database)
        summarizer = _summarizer_from(settings)
        if summarizer is not None:
            stack.push_async_callback(summarizer.close)

        engine = build_services(
            store,
            settings,
            embeddings=_embeddings_from(settings),
            summarizer=summarizer,
            profiles=Neo4jProfileDirectory(driver, database=settings.neo4j_database),
        )
        if engine.scheduler is not None:
            await engine.scheduler.start()
            stack.push_async_callback(engine.scheduler.shutdown)

        logger.info("Memory engine ready", service=settings.service_name, quota=settings.memory_quota)
        yield engine


def build_in_memory_engine(
    settings: Settings | None = None,
    embeddings: EmbeddingService | None = None,
    summarizer: SummarizationService | None = None,
    profiles: ProfileDirectory | None = None,
) -> MemoryEngine:
    """Engine over a process-local store, for local runs and tests."""
    return build_services(InMemoryMemoryStore(), settings or default_settings, embeddings, summarizer, profiles)
