from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from submission_review.executor.review_service import ReviewService
from submission_review.finalization.finalizer import StoreFinalizer
from submission_review.models.finalization import FinalizationResult
from submission_review.models.review import ReviewSessionStatus, ReviewStepStatus
from submission_review.models.submission import Submission, SubmissionStatus
from submission_review.registry.step_registry import StepRegistry
from submission_review.storage.json_store import JsonStore
from submission_review.utils.exceptions import (
    FinalizationError,
    ReviewConflictError,
    ReviewLockedError,
    ReviewStateError,
    ReviewValidationError,
)


@pytest.fixture
def store(tmp_path):
    s = JsonStore(tmp_path)
    s.save_submission(Submission(
        id="sub1", user_id="u1", task_id="t1", workflow_id="wf1",
        title="Video workflow", reward_amount=12.5,
    ))
    return s


@pytest.fixture
def service(store):
    return ReviewService(store, StepRegistry(), StoreFinalizer(store))


def _approve_all(service, admin="admin1"):
    session = service.open_review("sub1", admin)
    while not session.is_terminal:
        session, _ = service.approve("sub1", admin, session.version)
    return session


def test_open_review_initializes_and_persists(service, store):
    session = service.open_review("sub1", "admin1")
    assert session.current_step_index == 0
    assert session.version == 0
    assert session.lease_holder == "admin1"
    assert len(session.steps) == 4
    assert store.has_session("sub1")


def test_progress_survives_reopen(service):
    session = service.open_review("sub1", "admin1")
    service.approve("sub1", "admin1", session.version)

    reopened = service.open_review("sub1", "admin1")
    assert reopened.current_step_index == 1
    assert reopened.steps[0].status == ReviewStepStatus.APPROVED
    assert reopened.version == 1


def test_full_approval_pays_reward(service, store):
    session = _approve_all(service)
    assert session.status == ReviewSessionStatus.APPROVED
    assert session.lease_holder is None

    submission = store.load_submission("sub1")
    assert submission.status == SubmissionStatus.APPROVED
    assert store.load_account("u1").balance == 12.5
    assert store.load_work_item("wf1").status.value == "online"
    transactions = store.list_transactions("u1")
    assert len(transactions) == 1
    assert transactions[0].amount == 12.5


def test_finalize_called_once_with_original_reward(store):
    finalizer = MagicMock()
    finalizer.finalize.return_value = FinalizationResult(success=True, new_balance=12.5)
    service = ReviewService(store, StepRegistry(), finalizer)

    session = _approve_all(service)
    finalizer.finalize.assert_called_once()
    request = finalizer.finalize.call_args.args[0]
    assert request.reward_amount == 12.5
    assert request.work_item_id == "wf1"
    assert request.user_id == "u1"

    with pytest.raises(ReviewStateError):
        service.approve("sub1", "admin1", session.version)
    assert finalizer.finalize.call_count == 1


def test_remote_finalization_marks_submission_approved(store):
    finalizer = MagicMock()
    finalizer.finalize.return_value = FinalizationResult(success=True, new_balance=12.5)
    service = ReviewService(store, StepRegistry(), finalizer)

    session = _approve_all(service)
    assert session.status == ReviewSessionStatus.APPROVED
    submission = store.load_submission("sub1")
    assert submission.status == SubmissionStatus.APPROVED
    assert submission.reviewed_at is not None
    assert submission.reviewer_comment


def test_failed_finalization_is_retryable(store):
    finalizer = MagicMock()
    finalizer.finalize.return_value = FinalizationResult(
        success=False, message="insufficient balance pool"
    )
    service = ReviewService(store, StepRegistry(), finalizer)
    session = service.open_review("sub1", "admin1")
    for _ in range(3):
        session, _ = service.approve("sub1", "admin1", session.version)

    with pytest.raises(FinalizationError, match="insufficient balance pool"):
        service.approve("sub1", "admin1", session.version)

    stored = service.get_session("sub1")
    assert stored.status == ReviewSessionStatus.IN_PROGRESS
    assert stored.steps[3].status == ReviewStepStatus.PENDING
    assert stored.version == session.version

    finalizer.finalize.return_value = FinalizationResult(success=True, new_balance=1.0)
    stored, outcome = service.approve("sub1", "admin1", stored.version)
    assert outcome.finalized


def test_reject_persists_rejection(service, store):
    session = service.open_review("sub1", "admin1")
    session, _ = service.approve("sub1", "admin1", session.version)
    session, outcome = service.reject("sub1", "admin1", ["测试参数不完整"], session.version)

    assert outcome.step_id == "workflow_file_check"
    assert session.steps[1].rejection_reason == "测试参数不完整"
    assert session.steps[2].status == ReviewStepStatus.PENDING

    submission = store.load_submission("sub1")
    assert submission.status == SubmissionStatus.REJECTED
    assert "工作流文件审核" in submission.reviewer_comment
    record = store.load_rejection("sub1")
    assert record.step_id == "workflow_file_check"
    assert record.reasons == ["测试参数不完整"]
    assert record.rejected_by == "admin1"
    assert store.load_account("u1").balance == 0


def test_reject_without_reasons_keeps_state(service):
    session = service.open_review("sub1", "admin1")
    with pytest.raises(ReviewValidationError):
        service.reject("sub1", "admin1", [], session.version)
    stored = service.get_session("sub1")
    assert stored.status == ReviewSessionStatus.IN_PROGRESS
    assert stored.version == session.version


def test_stale_version_conflicts(service):
    session = service.open_review("sub1", "admin1")
    service.approve("sub1", "admin1", session.version)
    with pytest.raises(ReviewConflictError):
        service.approve("sub1", "admin1", session.version)


def test_other_admin_is_locked_out(service):
    service.open_review("sub1", "admin1")
    with pytest.raises(ReviewLockedError):
        service.open_review("sub1", "admin2")


def test_expired_lease_can_be_taken_over(service, store):
    session = service.open_review("sub1", "admin1")
    session.lease_expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
    store.save_session(session)

    taken = service.open_review("sub1", "admin2")
    assert taken.lease_holder == "admin2"


def test_release_frees_lease(service):
    service.open_review("sub1", "admin1")
    service.release("sub1", "admin1")
    assert service.open_review("sub1", "admin2").lease_holder == "admin2"


def test_go_to_previous_persists_pointer(service):
    session = service.open_review("sub1", "admin1")
    session, _ = service.approve("sub1", "admin1", session.version)
    session, _ = service.go_to_previous("sub1", "admin1", session.version)
    assert session.current_step_index == 0
    assert session.steps[0].status == ReviewStepStatus.APPROVED
    assert service.get_session("sub1").current_step_index == 0


def test_operations_require_open_review(service):
    with pytest.raises(ReviewStateError, match="not been opened"):
        service.approve("sub1", "admin1", 0)


def test_open_review_of_decided_submission(service, store):
    submission = store.load_submission("sub1")
    submission.status = SubmissionStatus.REJECTED
    store.save_submission(submission)
    with pytest.raises(ReviewStateError):
        service.open_review("sub1", "admin1")


def test_flat_approve_runs_all_steps(service, store):
    session = service.review_submission("sub1", "admin1", SubmissionStatus.APPROVED)
    assert session.status == ReviewSessionStatus.APPROVED
    assert all(s.status == ReviewStepStatus.APPROVED for s in session.steps)
    assert store.load_account("u1").balance == 12.5


def test_flat_reject_requires_comment(service):
    with pytest.raises(ReviewValidationError):
        service.review_submission("sub1", "admin1", SubmissionStatus.REJECTED, "  ")


def test_flat_reject_uses_comment(service, store):
    session = service.review_submission("sub1", "admin1", SubmissionStatus.REJECTED, "质量太差")
    assert session.status == ReviewSessionStatus.REJECTED
    assert session.steps[0].rejection_reason == "质量太差"
    assert store.load_submission("sub1").reviewer_comment == "质量太差"


def test_flat_review_of_finished_session(service):
    _approve_all(service)
    with pytest.raises(ReviewStateError):
        service.review_submission("sub1", "admin1", SubmissionStatus.APPROVED)
