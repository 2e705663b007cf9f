"""Poll running generation tasks until the remote run finishes."""

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any

import requests

from submission_review.config.settings import HarnessConfig, MonitorConfig
from submission_review.models.generation_task import GenerationTask, GenerationTaskStatus
from submission_review.storage.json_store import JsonStore

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "success": GenerationTaskStatus.COMPLETED,
    "fail": GenerationTaskStatus.FAILED,
    "failed": GenerationTaskStatus.FAILED,
    "timeout": GenerationTaskStatus.TIMEOUT,
}


def parse_output_url(raw_output: str | None) -> str | None:
    """Unwrap ``output -> Output -> output`` (each a JSON string) to a URL."""
    if not raw_output:
        return None
    try:
        outer = json.loads(raw_output)
        inner = json.loads(outer["Output"])
        url = inner["output"]
    except (ValueError, KeyError, TypeError):
        return None
    if not isinstance(url, str):
        return None
    return url.replace("`", "").strip() or None


class GenerationTaskMonitor:
    def __init__(
        self,
        store: JsonStore,
        harness: HarnessConfig | None = None,
        config: MonitorConfig | None = None,
    ) -> None:
        self._store = store
        self._harness = harness or HarnessConfig()
        self._config = config or MonitorConfig()
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()
        self._last_check: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            logger.info("Generation task monitor already running")
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True)
        self._thread.start()
        logger.info("Generation task monitor started, interval %ss", self._config.interval_seconds)

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._thread = None
        logger.info("Generation task monitor stopped")

    def status(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "interval_seconds": self._config.interval_seconds,
            "last_check": self._last_check.isoformat() if self._last_check else None,
        }

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.check_pending_tasks()
            except Exception:
                logger.exception("Generation task check failed")
            self._stop.wait(self._config.interval_seconds)

    def check_pending_tasks(self) -> list[GenerationTask]:
        """Check the oldest running tasks once; returns the ones that changed."""
        self._last_check = datetime.now(timezone.utc)
        tasks = self._store.list_generation_tasks(GenerationTaskStatus.RUNNING)
        tasks.sort(key=lambda t: t.created_at or datetime.min.replace(tzinfo=timezone.utc))
        tasks = tasks[: self._config.batch_size]
        if not tasks:
            logger.debug("No running generation tasks")
            return []

        logger.info("Checking %d running generation task(s)", len(tasks))
        changed = []
        for task in tasks:
            try:
                if self.check_single_task(task):
                    changed.append(task)
            except Exception:
                logger.exception("Checking generation task %s failed", task.id)
        return changed

    def check_single_task(self, task: GenerationTask) -> bool:
        """Query the run history for a task; returns True when it finished."""
        url = (
            f"{self._harness.history_url.rstrip('/')}/{task.workflow_id}"
            f"/run_histories/{task.execute_id}"
        )
        try:
            resp = requests.get(
                url,
                headers={
                    "Authorization": f"Bearer {task.token}",
                    "Content-Type": "application/json",
                },
                timeout=self._harness.timeout_seconds,
            )
        except requests.RequestException as e:
            logger.warning("Generation task %s: history request failed: %s", task.id, e)
            return False

        if resp.status_code >= 400:
            logger.warning("Generation task %s: HTTP %s", task.id, resp.status_code)
            return False

        try:
            result = resp.json()
        except ValueError:
            logger.warning("Generation task %s: non-JSON history response", task.id)
            return False

        entries = result.get("data") if isinstance(result, dict) else None
        if not entries or result.get("code", 0) != 0:
            logger.warning("Generation task %s: unexpected history response: %s", task.id, result)
            return False

        entry = entries[0]
        new_status = _STATUS_MAP.get(str(entry.get("execute_status", "")).lower())
        if new_status is None:
            logger.info("Generation task %s still %s", task.id, entry.get("execute_status"))
            return False

        now = datetime.now(timezone.utc)
        task.status = new_status
        task.result_data = entry
        task.updated_at = now
        task.completed_at = now
        if new_status == GenerationTaskStatus.COMPLETED:
            task.output_url = parse_output_url(entry.get("output"))
        elif new_status == GenerationTaskStatus.FAILED:
            task.error_message = entry.get("error_message") or "任务执行失败"
        else:
            task.error_message = "执行超时"
        self._store.save_generation_task(task)

        if task.notification_email:
            logger.info(
                "Generation task %s %s; notify %s (output=%s)",
                task.id, new_status.value, task.notification_email, task.output_url,
            )
        else:
            logger.info("Generation task %s %s", task.id, new_status.value)
        return True
