"""Result models for the summary maintenance passes."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .memory import utcnow


class MaintenancePass(str, Enum):
    FILL_MISSING = "fill_missing"
    PERSONALIZE = "personalize"
    FILL_EMBEDDINGS = "fill_embeddings"


class MaintenanceFailureReason(str, Enum):
    """Why a pass reported success=False."""

    NO_USER_NAME = "no_user_name"
    SESSION_EXPIRED = "session_expired"
    STORE_ERROR = "store_error"


class SummaryMaintenanceResult(BaseModel):
    """Outcome of one pass over one owner's memories.

    ``success`` is False only for structural failures; records skipped
    because a single summarization failed are counted in ``skipped_count``.
    """

    owner_id: str
    maintenance_pass: MaintenancePass
    success: bool = True
    candidate_count: int = 0
    updated_count: int = 0
    error: str | None = None
    reason: MaintenanceFailureReason | None = None

    @property
    def skipped_count(self) -> int:
        return self.candidate_count - self.updated_count

    @classmethod
    def failed(
        cls,
        owner_id: str,
        maintenance_pass: MaintenancePass,
        reason: MaintenanceFailureReason,
        error: str,
    ) -> "SummaryMaintenanceResult":
        return cls(
            owner_id=owner_id,
            maintenance_pass=maintenance_pass,
            success=False,
            error=error,
            reason=reason,
        )


class MaintenanceReport(BaseModel):
    """All passes of one maintenance run."""

    owner_id: str
    fill_missing: SummaryMaintenanceResult
    personalize: SummaryMaintenanceResult
    fill_embeddings: SummaryMaintenanceResult | None = None
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: datetime = Field(default_factory=utcnow)

    @property
    def updated_count(self) -> int:
        passes = (self.fill_missing, self.personalize, self.fill_embeddings)
        return sum(result.updated_count for result in passes if result is not None)

    @property
    def success(self) -> bool:
        # A missing name only disables personalization; it does not fail the run
        personalize_ok = (
            self.personalize.success or self.personalize.reason == MaintenanceFailureReason.NO_USER_NAME
        )
        embeddings_ok = self.fill_embeddings is None or self.fill_embeddings.success
        return self.fill_missing.success and personalize_ok and embeddings_ok
