"""Publish a work item, pay its submitter and record the payout."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Protocol

import requests

from submission_review.models.finalization import FinalizationRequest, FinalizationResult
from submission_review.models.ledger import Transaction, WorkItem, WorkItemStatus
from submission_review.models.submission import SubmissionStatus
from submission_review.storage.json_store import JsonStore
from submission_review.utils.exceptions import FinalizationError

logger = logging.getLogger(__name__)

APPROVE_WITH_REWARDS_PATH = "/api/admin/submissions/approve-with-rewards"


class Finalizer(Protocol):
    def finalize(self, request: FinalizationRequest) -> FinalizationResult: ...


class StoreFinalizer:
    """Applies finalization against the local store under a single lock.

    All checks run before the first write, so a failed result leaves the
    store untouched.
    """

    def __init__(self, store: JsonStore, reward_pool: float | None = None) -> None:
        self._store = store
        self._reward_pool = reward_pool

    def finalize(self, request: FinalizationRequest) -> FinalizationResult:
        with self._store.transaction() as store:
            try:
                submission = store.load_submission(request.submission_id)
            except FileNotFoundError:
                return FinalizationResult(success=False, message="submission not found")

            if submission.status != SubmissionStatus.PENDING:
                return FinalizationResult(
                    success=False,
                    message=f"submission already {submission.status.value}",
                )

            if self._reward_pool is not None and request.reward_amount > 0:
                paid = sum(t.amount for t in store.list_transactions() if t.type == "commission")
                if paid + request.reward_amount > self._reward_pool:
                    return FinalizationResult(success=False, message="insufficient balance pool")

            now = datetime.now(timezone.utc)

            # 1. Publish the work item
            if store.has_work_item(request.work_item_id):
                item = store.load_work_item(request.work_item_id)
            else:
                item = WorkItem(id=request.work_item_id, title=submission.title)
            item.status = WorkItemStatus.ONLINE
            item.updated_at = now
            store.save_work_item(item)

            # 2. Credit the submitter and record the transaction
            account = store.load_account(request.user_id)
            transaction_id = None
            if request.reward_amount > 0:
                account.balance += request.reward_amount
                account.total_earnings += request.reward_amount
                store.save_account(account)

                transaction_id = str(uuid.uuid4())
                store.save_transaction(
                    Transaction(
                        id=transaction_id,
                        user_id=request.user_id,
                        amount=request.reward_amount,
                        description=request.comment or "任务审核通过，佣金奖励",
                        submission_id=request.submission_id,
                        created_at=now,
                    )
                )

            # 3. Close out the submission
            submission.status = SubmissionStatus.APPROVED
            submission.reviewed_at = now
            if request.comment:
                submission.reviewer_comment = request.comment
            store.save_submission(submission)

        logger.info(
            "Finalized submission %s: work item %s online, credited %s to %s",
            request.submission_id, request.work_item_id, request.reward_amount, request.user_id,
        )
        return FinalizationResult(
            success=True,
            new_balance=account.balance,
            message="审核通过，奖励已发放",
            transaction_id=transaction_id,
        )


class HttpFinalizer:
    """Delegates finalization to a remote backend over HTTP."""

    def __init__(self, base_url: str, token: str = "", timeout: float = 30.0) -> None:
        self._url = base_url.rstrip("/") + APPROVE_WITH_REWARDS_PATH
        self._token = token
        self._timeout = timeout

    def finalize(self, request: FinalizationRequest) -> FinalizationResult:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            resp = requests.post(
                self._url,
                json=request.model_dump(mode="json"),
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise FinalizationError(f"Finalization request failed: {e}")

        if resp.status_code >= 400:
            raise FinalizationError(f"HTTP {resp.status_code}: {resp.text}")

        try:
            data = resp.json()
        except ValueError:
            raise FinalizationError(f"Finalization returned non-JSON body: {resp.text}")

        # The backend wraps payloads as {"success": ..., "data": {...}}
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            data = data["data"]
        return FinalizationResult.model_validate(data)
