import logging
from collections.abc import Callable
from datetime import datetime, timezone

from submission_review.models.finalization import FinalizationResult
from submission_review.models.review import (
    ReviewSession,
    ReviewSessionStatus,
    ReviewStep,
    ReviewStepStatus,
    StepOutcome,
)
from submission_review.utils.exceptions import (
    FinalizationError,
    ReviewStateError,
    ReviewValidationError,
)

logger = logging.getLogger(__name__)

REASON_SEPARATOR = "；"


class ReviewExecutor:
    """Linear review state machine over a session's steps.

    The executor does no I/O of its own. Finalization is injected as a
    zero-argument callable and is invoked only when the last step is approved.
    The last step is marked approved after finalization reports success, so a
    failed finalization leaves the session retryable.
    """

    def __init__(
        self,
        session: ReviewSession,
        finalize: Callable[[], FinalizationResult],
    ) -> None:
        if not session.steps:
            raise ReviewStateError("Review session has no steps")
        self.session = session
        self._finalize = finalize

    @property
    def current_step(self) -> ReviewStep:
        return self.session.steps[self.session.current_step_index]

    @property
    def is_last_step(self) -> bool:
        return self.session.current_step_index == len(self.session.steps) - 1

    @property
    def is_terminal(self) -> bool:
        return self.session.is_terminal

    def approve_current(self) -> StepOutcome:
        self._ensure_open()
        step = self.current_step

        if not self.is_last_step:
            if step.status == ReviewStepStatus.PENDING:
                step.status = ReviewStepStatus.APPROVED
                step.rejection_reason = None
            self.session.current_step_index += 1
            logger.info(
                "Submission %s: step '%s' approved, advancing to '%s'",
                self.session.submission_id, step.id, self.current_step.id,
            )
            return self._outcome(step)

        result = self._finalize()
        if not result.success:
            logger.warning(
                "Submission %s: finalization failed at step '%s': %s",
                self.session.submission_id, step.id, result.message,
            )
            raise FinalizationError(result.message or "Finalization failed")

        step.status = ReviewStepStatus.APPROVED
        step.rejection_reason = None
        self.session.status = ReviewSessionStatus.APPROVED
        self.session.finished_at = datetime.now(timezone.utc)
        logger.info(
            "Submission %s: all steps approved, new balance %s",
            self.session.submission_id, result.new_balance,
        )
        return self._outcome(step, finalized=True, new_balance=result.new_balance)

    def reject_current(self, reasons: list[str]) -> StepOutcome:
        self._ensure_open()
        cleaned = [r.strip() for r in reasons or [] if r and r.strip()]
        if not cleaned:
            raise ReviewValidationError("At least one rejection reason is required")

        step = self.current_step
        step.status = ReviewStepStatus.REJECTED
        step.rejection_reason = REASON_SEPARATOR.join(cleaned)
        self.session.status = ReviewSessionStatus.REJECTED
        self.session.finished_at = datetime.now(timezone.utc)
        logger.info(
            "Submission %s: rejected at step '%s' (%s)",
            self.session.submission_id, step.id, step.rejection_reason,
        )
        return self._outcome(step)

    def go_to_previous(self) -> StepOutcome:
        self._ensure_open()
        if self.session.current_step_index <= 0:
            raise ReviewStateError("Already at the first review step")
        self.session.current_step_index -= 1
        return self._outcome(self.current_step)

    def _ensure_open(self) -> None:
        if self.is_terminal:
            raise ReviewStateError(
                f"Review of submission {self.session.submission_id} is already "
                f"{self.session.status.value}"
            )

    def _outcome(
        self,
        step: ReviewStep,
        finalized: bool = False,
        new_balance: float | None = None,
    ) -> StepOutcome:
        return StepOutcome(
            step_id=step.id,
            status=step.status,
            session_status=self.session.status,
            current_step_index=self.session.current_step_index,
            finalized=finalized,
            new_balance=new_balance,
        )
