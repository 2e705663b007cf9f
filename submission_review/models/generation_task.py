from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel


class GenerationTaskStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"


class GenerationTask(BaseModel):
    id: str
    execute_id: str
    workflow_id: str
    token: str
    user_id: str
    notification_email: str | None = None
    title: str | None = None
    work_item_id: str | None = None
    debug_url: str | None = None
    status: GenerationTaskStatus = GenerationTaskStatus.RUNNING
    result_data: dict[str, Any] | None = None
    error_message: str | None = None
    output_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None
