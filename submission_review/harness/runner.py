"""Manual test runs for the external API test step.

Results are shown to the reviewer as-is; nothing here approves a step.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

import requests
from pydantic import BaseModel

from submission_review.config.settings import HarnessConfig
from submission_review.harness.code_parser import (
    extract_auth_token,
    extract_parameters,
    extract_workflow_id,
)
from submission_review.models.generation_task import GenerationTask
from submission_review.models.submission import Submission
from submission_review.storage.json_store import JsonStore
from submission_review.utils.exceptions import HarnessError

logger = logging.getLogger(__name__)


class ExternalTestResult(BaseModel):
    ok: bool
    status_code: int
    execute_id: str | None = None
    debug_url: str | None = None
    raw_response: Any = None
    generation_task_id: str | None = None


def run_external_test(
    workflow_id: str,
    parameters: dict[str, Any],
    auth_token: str,
    config: HarnessConfig | None = None,
) -> ExternalTestResult:
    config = config or HarnessConfig()
    body = {"workflow_id": workflow_id, "parameters": parameters, "is_async": True}
    headers = {
        "Authorization": f"Bearer {auth_token}",
        "Content-Type": "application/json",
    }

    try:
        resp = requests.post(
            config.run_url, json=body, headers=headers, timeout=config.timeout_seconds
        )
    except requests.RequestException as e:
        raise HarnessError(f"Test request failed: {e}")

    try:
        data: Any = resp.json()
    except ValueError:
        data = resp.text

    ok = resp.status_code < 400
    execute_id = debug_url = None
    if ok and isinstance(data, dict):
        execute_id = data.get("execute_id")
        debug_url = data.get("debug_url")

    logger.info(
        "External test of workflow %s returned HTTP %s (execute_id=%s)",
        workflow_id, resp.status_code, execute_id,
    )
    return ExternalTestResult(
        ok=ok,
        status_code=resp.status_code,
        execute_id=str(execute_id) if execute_id is not None else None,
        debug_url=debug_url,
        raw_response=data,
    )


def run_submission_test(
    submission: Submission,
    test_inputs: dict[str, str],
    store: JsonStore | None = None,
    config: HarnessConfig | None = None,
    notification_email: str | None = None,
) -> ExternalTestResult:
    """Run a submission's API snippet with reviewer-supplied inputs.

    Blank inputs are dropped. When the call comes back with an async
    execution handle and a store is given, a generation task is registered so
    the monitor can follow it.
    """
    if not submission.api_code:
        raise HarnessError(f"Submission {submission.id} has no API code to test")

    auth_token = extract_auth_token(submission.api_code)
    workflow_id = extract_workflow_id(submission.api_code)

    parameters: dict[str, Any] = {}
    for key, value in test_inputs.items():
        if value is not None and str(value).strip():
            parameters[key] = str(value).strip()

    result = run_external_test(workflow_id, parameters, auth_token, config)

    if result.ok and result.execute_id and store is not None:
        now = datetime.now(timezone.utc)
        task = GenerationTask(
            id=str(uuid.uuid4()),
            execute_id=result.execute_id,
            workflow_id=workflow_id,
            token=auth_token,
            user_id=submission.user_id,
            notification_email=notification_email,
            title=submission.title or "生成任务",
            work_item_id=submission.work_item_id,
            debug_url=result.debug_url,
            created_at=now,
            updated_at=now,
        )
        store.save_generation_task(task)
        result.generation_task_id = task.id
        logger.info("Registered generation task %s for execute_id %s", task.id, task.execute_id)

    return result


def default_test_inputs(submission: Submission) -> dict[str, str]:
    """Prefill values for the test form, taken from the snippet itself."""
    if not submission.api_code:
        return {}
    return extract_parameters(submission.api_code)
