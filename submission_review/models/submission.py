from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SubmissionType(str, Enum):
    WORKFLOW_SUBMISSION = "workflow_submission"
    TASK_SUBMISSION = "task_submission"


class Submission(BaseModel):
    id: str = Field(pattern=r"^[\w-]+$")
    user_id: str
    task_id: str
    workflow_id: str | None = None
    title: str = ""
    description: str = ""
    submission_type: SubmissionType = SubmissionType.WORKFLOW_SUBMISSION
    reward_amount: float = Field(default=0.0, ge=0)
    api_code: str | None = None  # invocation snippet exercised by the external test step
    status: SubmissionStatus = SubmissionStatus.PENDING
    reviewer_comment: str | None = None
    created_at: datetime | None = None
    reviewed_at: datetime | None = None

    @property
    def work_item_id(self) -> str:
        """The item published on approval; falls back to the submission id."""
        return self.workflow_id or self.id
