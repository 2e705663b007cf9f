from datetime import datetime

from pydantic import BaseModel, Field


class FinalizationRequest(BaseModel):
    submission_id: str
    work_item_id: str
    user_id: str
    reward_amount: float = Field(default=0.0, ge=0)
    comment: str = ""


class FinalizationResult(BaseModel):
    success: bool
    new_balance: float | None = None
    message: str | None = None
    transaction_id: str | None = None


class RejectionRecord(BaseModel):
    submission_id: str
    step_id: str
    reasons: list[str]
    comment: str = ""
    rejected_by: str | None = None
    created_at: datetime | None = None
