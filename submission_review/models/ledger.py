from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class WorkItemStatus(str, Enum):
    DRAFT = "draft"
    OFFLINE = "offline"
    ONLINE = "online"


class WorkItem(BaseModel):
    id: str
    title: str = ""
    status: WorkItemStatus = WorkItemStatus.DRAFT
    updated_at: datetime | None = None


class Account(BaseModel):
    user_id: str
    balance: float = 0.0
    total_earnings: float = 0.0


class Transaction(BaseModel):
    id: str
    user_id: str
    type: str = "commission"
    amount: float
    status: str = "completed"
    description: str = ""
    submission_id: str | None = None
    created_at: datetime | None = None
