from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class ReviewStepStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SKIPPED = "skipped"


class ReviewSessionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewStep(BaseModel):
    id: str
    name: str = ""
    description: str = ""
    status: ReviewStepStatus = ReviewStepStatus.PENDING
    rejection_reason: str | None = None


class ReviewSession(BaseModel):
    submission_id: str
    steps: list[ReviewStep]
    current_step_index: int = 0
    status: ReviewSessionStatus = ReviewSessionStatus.IN_PROGRESS
    version: int = 0
    lease_holder: str | None = None
    lease_expires_at: datetime | None = None
    started_at: datetime | None = None
    updated_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status != ReviewSessionStatus.IN_PROGRESS


class StepOutcome(BaseModel):
    """What a single executor transition did."""

    step_id: str
    status: ReviewStepStatus
    session_status: ReviewSessionStatus
    current_step_index: int
    finalized: bool = False
    new_balance: float | None = None
