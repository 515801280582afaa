"""Background summary maintenance.

Three passes per owner: fill summaries that were never generated, rewrite
summaries that do not yet use the owner's first name, then embed active
records stored without a vector. All run in small concurrent batches with
a pause between batches to stay under the providers' rate limits.
"""

import asyncio
from collections.abc import Awaitable, Callable
from functools import partial

from structlog.contextvars import bound_contextvars

from coach_memory.core.config import SummaryMaintenanceConfig
from coach_memory.core.errors import PersonalizationUnavailableError, SessionExpiredError, StoreError
from coach_memory.core.logging import get_logger
from coach_memory.domain.models import (
    RECENCY_ORDER,
    MaintenanceFailureReason,
    MaintenancePass,
    MaintenanceReport,
    MemoryRecord,
    SummaryMaintenanceResult,
)
from coach_memory.domain.models.memory import utcnow
from coach_memory.domain.specifications import (
    ActiveMemorySpecification,
    BaseSpecification,
    HasSummarySpecification,
    MissingEmbeddingSpecification,
    MissingSummarySpecification,
)
from coach_memory.services import EmbeddingService, MemoryStore, ProfileDirectory, SummarizationService
from coach_memory.services.embedding import RecordEmbedder

logger = get_logger(__name__)


def needs_personalization(record: MemoryRecord, first_name: str) -> bool:
    return record.summary is not None and first_name.lower() not in record.summary.lower()


class SummaryMaintenanceWorker:
    """Generates and personalizes memory summaries for one owner at a time.

    No pass raises for provider or per-record failures; those records are
    skipped and picked up again on the next run. Every summary written is
    re-embedded when an embedding provider is configured.
    """

    def __init__(
        self,
        store: MemoryStore,
        summarizer: SummarizationService,
        profiles: ProfileDirectory,
        config: SummaryMaintenanceConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        embeddings: EmbeddingService | None = None,
    ):
        self.store = store
        self.summarizer = summarizer
        self.profiles = profiles
        self.config = config or SummaryMaintenanceConfig()
        self.embedder = RecordEmbedder(embeddings, self.config.embedding_timeout_seconds)
        self._sleep = sleep

    async def resolve_first_name(self, owner_id: str) -> str:
        """First name from the stored profile, falling back to the email local part.

        Raises:
            PersonalizationUnavailableError: No name can be resolved
            SessionExpiredError: The owner's session is gone
        """
        profile = await self.profiles.get_profile(owner_id)
        first_name = profile.first_name if profile else None
        if not first_name:
            raise PersonalizationUnavailableError(owner_id)
        return first_name

    async def _write(self, record: MemoryRecord, fields: dict) -> bool:
        try:
            updated = await self.store.update(record.owner_id, record.id, fields)
        except Exception as e:
            logger.warning(
                f"Update failed for memory {record.id}: {e!s}",
                fields=sorted(fields),
                error_type=type(e).__name__,
            )
            return False
        return updated is not None

    async def _summarize_one(self, record: MemoryRecord, first_name: str | None) -> bool:
        try:
            summary = await asyncio.wait_for(
                self.summarizer.summarize(record.content, first_name),
                timeout=self.config.provider_timeout_seconds,
            )
        except Exception as e:
            logger.warning(f"Summary generation failed for memory {record.id}: {e!s}", error_type=type(e).__name__)
            return False

        summary = (summary or "").strip()
        if not summary:
            logger.warning(f"Empty summary for memory {record.id}, keeping the current one")
            return False

        fields: dict = {"summary": summary}
        if self.embedder.enabled:
            # A failed embedding is stored as null and retried by the backfill pass
            fields["embedding"] = await self.embedder.embed(summary, record.owner_id)
        return await self._write(record, fields)

    async def _embed_one(self, record: MemoryRecord) -> bool:
        embedding = await self.embedder.embed_record(record)
        if embedding is None:
            return False
        return await self._write(record, {"embedding": embedding})

    async def _process_in_batches(
        self,
        records: list[MemoryRecord],
        handler: Callable[[MemoryRecord], Awaitable[bool]],
    ) -> int:
        batch_size = self.config.batch_size
        updated = 0
        for start in range(0, len(records), batch_size):
            if start:
                await self._sleep(self.config.batch_delay_seconds)
            batch = records[start : start + batch_size]
            outcomes = await asyncio.gather(*(handler(record) for record in batch))
            updated += sum(outcomes)
            logger.debug(f"Batch {start // batch_size + 1}: {sum(outcomes)}/{len(batch)} records written")
        return updated

    def _missing_summary_spec(self) -> BaseSpecification:
        spec: BaseSpecification = MissingSummarySpecification()
        if not self.config.summarize_archived:
            spec = ActiveMemorySpecification().and_(spec)
        return spec

    async def fill_missing_summaries(self, owner_id: str) -> SummaryMaintenanceResult:
        """Generate summaries for records that have none."""
        maintenance_pass = MaintenancePass.FILL_MISSING
        with bound_contextvars(owner_id=owner_id, maintenance_pass=maintenance_pass.value):
            try:
                first_name: str | None = await self.resolve_first_name(owner_id)
            except PersonalizationUnavailableError:
                logger.info("No first name available, generating generic summaries")
                first_name = None
            except SessionExpiredError as e:
                logger.warning(f"Summary fill aborted: {e.message}")
                return SummaryMaintenanceResult.failed(
                    owner_id, maintenance_pass, MaintenanceFailureReason.SESSION_EXPIRED, e.message
                )
            except StoreError as e:
                logger.error(f"Profile lookup failed: {e.message}")
                return SummaryMaintenanceResult.failed(
                    owner_id, maintenance_pass, MaintenanceFailureReason.STORE_ERROR, e.message
                )

            try:
                candidates = await self.store.find(owner_id, self._missing_summary_spec(), RECENCY_ORDER)
            except StoreError as e:
                logger.error(f"Could not load memories missing summaries: {e.message}")
                return SummaryMaintenanceResult.failed(
                    owner_id, maintenance_pass, MaintenanceFailureReason.STORE_ERROR, e.message
                )

            if not candidates:
                logger.info("No memories missing summaries")
                return SummaryMaintenanceResult(owner_id=owner_id, maintenance_pass=maintenance_pass)

            logger.info(f"Generating summaries for {len(candidates)} memories", personalized=first_name is not None)
            updated = await self._process_in_batches(candidates, partial(self._summarize_one, first_name=first_name))
            logger.info(f"Filled {updated} of {len(candidates)} missing summaries")
            return SummaryMaintenanceResult(
                owner_id=owner_id,
                maintenance_pass=maintenance_pass,
                candidate_count=len(candidates),
                updated_count=updated,
            )

    async def personalize_summaries(self, owner_id: str) -> SummaryMaintenanceResult:
        """Rewrite summaries that do not mention the owner's first name."""
        maintenance_pass = MaintenancePass.PERSONALIZE
        with bound_contextvars(owner_id=owner_id, maintenance_pass=maintenance_pass.value):
            try:
                first_name = await self.resolve_first_name(owner_id)
            except PersonalizationUnavailableError as e:
                logger.info("Skipping personalization: no user name available")
                return SummaryMaintenanceResult.failed(
                    owner_id, maintenance_pass, MaintenanceFailureReason.NO_USER_NAME, e.message
                )
            except SessionExpiredError as e:
                logger.warning(f"Personalization aborted: {e.message}")
                return SummaryMaintenanceResult.failed(
                    owner_id, maintenance_pass, MaintenanceFailureReason.SESSION_EXPIRED, e.message
                )
            except StoreError as e:
                logger.error(f"Profile lookup failed: {e.message}")
                return SummaryMaintenanceResult.failed(
                    owner_id, maintenance_pass, MaintenanceFailureReason.STORE_ERROR, e.message
                )

            try:
                summarized = await self.store.find(owner_id, HasSummarySpecification(), RECENCY_ORDER)
            except StoreError as e:
                logger.error(f"Could not load summarized memories: {e.message}")
                return SummaryMaintenanceResult.failed(
                    owner_id, maintenance_pass, MaintenanceFailureReason.STORE_ERROR, e.message
                )

            candidates = [record for record in summarized if needs_personalization(record, first_name)]
            if not candidates:
                logger.info("All summaries already personalized")
                return SummaryMaintenanceResult(owner_id=owner_id, maintenance_pass=maintenance_pass)

            logger.info(f"Personalizing {len(candidates)} summaries")
            updated = await self._process_in_batches(candidates, partial(self._summarize_one, first_name=first_name))
            logger.info(f"Personalized {updated} of {len(candidates)} summaries")
            return SummaryMaintenanceResult(
                owner_id=owner_id,
                maintenance_pass=maintenance_pass,
                candidate_count=len(candidates),
                updated_count=updated,
            )

    async def fill_missing_embeddings(self, owner_id: str) -> SummaryMaintenanceResult:
        """Embed active records stored without a vector.

        Admission and updates store a record without an embedding when the
        provider fails; until this pass fills it the record is only reachable
        through the keyword and recency tiers.
        """
        maintenance_pass = MaintenancePass.FILL_EMBEDDINGS
        with bound_contextvars(owner_id=owner_id, maintenance_pass=maintenance_pass.value):
            if not self.embedder.enabled:
                logger.debug("No embedding provider configured, skipping embedding backfill")
                return SummaryMaintenanceResult(owner_id=owner_id, maintenance_pass=maintenance_pass)

            spec = ActiveMemorySpecification().and_(MissingEmbeddingSpecification())
            try:
                candidates = await self.store.find(owner_id, spec, RECENCY_ORDER)
            except StoreError as e:
                logger.error(f"Could not load memories missing embeddings: {e.message}")
                return SummaryMaintenanceResult.failed(
                    owner_id, maintenance_pass, MaintenanceFailureReason.STORE_ERROR, e.message
                )

            if not candidates:
                logger.info("No memories missing embeddings")
                return SummaryMaintenanceResult(owner_id=owner_id, maintenance_pass=maintenance_pass)

            logger.info(f"Embedding {len(candidates)} memories")
            updated = await self._process_in_batches(candidates, self._embed_one)
            logger.info(f"Embedded {updated} of {len(candidates)} memories")
            return SummaryMaintenanceResult(
                owner_id=owner_id,
                maintenance_pass=maintenance_pass,
                candidate_count=len(candidates),
                updated_count=updated,
            )

    async def run(self, owner_id: str) -> MaintenanceReport:
        """Fill missing summaries, personalize the rest, then backfill embeddings."""
        started_at = utcnow()
        fill_missing = await self.fill_missing_summaries(owner_id)
        personalize = await self.personalize_summaries(owner_id)
        fill_embeddings = await self.fill_missing_embeddings(owner_id)
        report = MaintenanceReport(
            owner_id=owner_id,
            fill_missing=fill_missing,
            personalize=personalize,
            fill_embeddings=fill_embeddings,
            started_at=started_at,
            finished_at=utcnow(),
        )
        logger.info(
            f"Summary maintenance finished for owner {owner_id}",
            updated=report.updated_count,
            success=report.success,
        )
        return report
