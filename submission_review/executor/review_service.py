import logging
from datetime import datetime, timedelta, timezone

from submission_review.executor.step_executor import REASON_SEPARATOR, ReviewExecutor
from submission_review.finalization.finalizer import Finalizer
from submission_review.models.finalization import FinalizationRequest, FinalizationResult, RejectionRecord
from submission_review.models.review import ReviewSession, ReviewStep, StepOutcome
from submission_review.models.submission import Submission, SubmissionStatus
from submission_review.registry.step_registry import StepRegistry
from submission_review.storage.json_store import JsonStore
from submission_review.utils.exceptions import (
    ReviewConflictError,
    ReviewLockedError,
    ReviewStateError,
    ReviewValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_FINALIZE_COMMENT = "所有审核步骤均已通过，工作流已设置为在线状态，任务佣金已发放"


class ReviewService:
    """Persistent, lease-guarded review sessions on top of ReviewExecutor.

    Every mutation runs inside a store transaction: load the session, check the
    caller's lease and expected version, apply the transition, bump the version
    and save.
    """

    def __init__(
        self,
        store: JsonStore,
        registry: StepRegistry,
        finalizer: Finalizer,
        lease_seconds: int = 900,
    ) -> None:
        self._store = store
        self._registry = registry
        self._finalizer = finalizer
        self._lease = timedelta(seconds=lease_seconds)

    @property
    def registry(self) -> StepRegistry:
        return self._registry

    def open_review(self, submission_id: str, admin_id: str) -> ReviewSession:
        with self._store.transaction() as store:
            submission = store.load_submission(submission_id)

            if store.has_session(submission_id):
                session = store.load_session(submission_id)
            else:
                if submission.status != SubmissionStatus.PENDING:
                    raise ReviewStateError(
                        f"Submission {submission_id} is already {submission.status.value}"
                    )
                now = datetime.now(timezone.utc)
                session = ReviewSession(
                    submission_id=submission_id,
                    steps=self._registry.get_default_steps(),
                    started_at=now,
                    updated_at=now,
                )
                logger.info("Started review of submission %s by %s", submission_id, admin_id)

            if not session.is_terminal:
                self._acquire_lease(session, admin_id)
                store.save_session(session)
            return session

    def get_session(self, submission_id: str) -> ReviewSession:
        try:
            return self._store.load_session(submission_id)
        except FileNotFoundError:
            raise ReviewStateError(f"Review of submission {submission_id} has not been opened")

    def approve(
        self,
        submission_id: str,
        admin_id: str,
        expected_version: int | None = None,
        comment: str | None = None,
    ) -> tuple[ReviewSession, StepOutcome]:
        with self._store.transaction() as store:
            submission = store.load_submission(submission_id)
            session = self._checked_session(submission_id, admin_id, expected_version)

            def finalize() -> FinalizationResult:
                return self._finalizer.finalize(
                    FinalizationRequest(
                        submission_id=submission.id,
                        work_item_id=submission.work_item_id,
                        user_id=submission.user_id,
                        reward_amount=submission.reward_amount,
                        comment=comment or DEFAULT_FINALIZE_COMMENT,
                    )
                )

            outcome = ReviewExecutor(session, finalize).approve_current()
            if outcome.finalized:
                self._mark_approved(submission_id, comment or DEFAULT_FINALIZE_COMMENT)
            self._commit(session)
            return session, outcome

    def reject(
        self,
        submission_id: str,
        admin_id: str,
        reasons: list[str],
        expected_version: int | None = None,
        comment: str | None = None,
    ) -> tuple[ReviewSession, StepOutcome]:
        with self._store.transaction() as store:
            submission = store.load_submission(submission_id)
            session = self._checked_session(submission_id, admin_id, expected_version)
            executor = ReviewExecutor(session, _no_finalize)
            step = executor.current_step
            cleaned = self._registry.validate_reasons(step.id, reasons)

            outcome = executor.reject_current(cleaned)
            self.persist_rejection(submission, step, cleaned, admin_id, comment)
            self._commit(session)
            return session, outcome

    def go_to_previous(
        self,
        submission_id: str,
        admin_id: str,
        expected_version: int | None = None,
    ) -> tuple[ReviewSession, StepOutcome]:
        with self._store.transaction():
            session = self._checked_session(submission_id, admin_id, expected_version)
            outcome = ReviewExecutor(session, _no_finalize).go_to_previous()
            self._commit(session)
            return session, outcome

    def release(self, submission_id: str, admin_id: str) -> ReviewSession:
        with self._store.transaction() as store:
            session = self.get_session(submission_id)
            if session.lease_holder == admin_id:
                session.lease_holder = None
                session.lease_expires_at = None
                store.save_session(session)
            return session

    def review_submission(
        self,
        submission_id: str,
        admin_id: str,
        status: SubmissionStatus,
        comment: str = "",
    ) -> ReviewSession:
        """Single-shot approve/reject, routed through the step sequence."""
        if status == SubmissionStatus.PENDING:
            raise ReviewValidationError("Review status must be approved or rejected")
        if status == SubmissionStatus.REJECTED and not comment.strip():
            raise ReviewValidationError("A review comment is required when rejecting")

        with self._store.transaction():
            session = self.open_review(submission_id, admin_id)
            if session.is_terminal:
                raise ReviewStateError(
                    f"Review of submission {submission_id} is already {session.status.value}"
                )

            if status == SubmissionStatus.REJECTED:
                session, _ = self.reject(
                    submission_id, admin_id, [comment.strip()], session.version, comment.strip()
                )
                return session

            while not session.is_terminal:
                session, _ = self.approve(
                    submission_id, admin_id, session.version, comment or None
                )
            return session

    def persist_rejection(
        self,
        submission: Submission,
        step: ReviewStep,
        reasons: list[str],
        admin_id: str | None = None,
        comment: str | None = None,
    ) -> RejectionRecord:
        now = datetime.now(timezone.utc)
        joined = REASON_SEPARATOR.join(reasons)
        record = RejectionRecord(
            submission_id=submission.id,
            step_id=step.id,
            reasons=reasons,
            comment=comment or f'在"{step.name or step.id}"步骤被拒绝：{joined}',
            rejected_by=admin_id,
            created_at=now,
        )
        with self._store.transaction() as store:
            store.save_rejection(record)
            submission.status = SubmissionStatus.REJECTED
            submission.reviewer_comment = record.comment
            submission.reviewed_at = now
            store.save_submission(submission)
        return record

    def _mark_approved(self, submission_id: str, comment: str) -> None:
        # Remote finalizers do not write to this store
        submission = self._store.load_submission(submission_id)
        if submission.status == SubmissionStatus.APPROVED:
            return
        submission.status = SubmissionStatus.APPROVED
        submission.reviewer_comment = comment
        submission.reviewed_at = datetime.now(timezone.utc)
        self._store.save_submission(submission)

    def _checked_session(
        self,
        submission_id: str,
        admin_id: str,
        expected_version: int | None,
    ) -> ReviewSession:
        session = self.get_session(submission_id)
        if expected_version is not None and expected_version != session.version:
            raise ReviewConflictError(
                f"Review of submission {submission_id} changed "
                f"(expected version {expected_version}, found {session.version})"
            )
        if not session.is_terminal:
            self._acquire_lease(session, admin_id)
        return session

    def _acquire_lease(self, session: ReviewSession, admin_id: str) -> None:
        now = datetime.now(timezone.utc)
        if (
            session.lease_holder
            and session.lease_holder != admin_id
            and session.lease_expires_at is not None
            and session.lease_expires_at > now
        ):
            raise ReviewLockedError(
                f"Submission {session.submission_id} is being reviewed by {session.lease_holder}"
            )
        session.lease_holder = admin_id
        session.lease_expires_at = now + self._lease

    def _commit(self, session: ReviewSession) -> None:
        session.version += 1
        session.updated_at = datetime.now(timezone.utc)
        if session.is_terminal:
            session.lease_holder = None
            session.lease_expires_at = None
        self._store.save_session(session)


def _no_finalize() -> FinalizationResult:
    raise ReviewStateError("Finalization is only reachable through approval")
