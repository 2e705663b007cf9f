from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from submission_review.api.auth import require_admin
from submission_review.harness import runner
from submission_review.models.generation_task import GenerationTaskStatus
from submission_review.models.review import ReviewSession, StepOutcome
from submission_review.models.submission import Submission, SubmissionStatus
from submission_review.utils.exceptions import (
    FinalizationError,
    HarnessError,
    ReviewConflictError,
    ReviewLockedError,
    ReviewStateError,
    ReviewValidationError,
    SubmissionReviewError,
)

router = APIRouter(prefix="/api")
admin_router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])

_ERROR_STATUS: list[tuple[type[SubmissionReviewError], int]] = [
    (ReviewValidationError, 422),
    (ReviewStateError, 409),
    (ReviewConflictError, 409),
    (ReviewLockedError, 423),
    (FinalizationError, 502),
    (HarnessError, 400),
]


def _http_error(e: SubmissionReviewError) -> HTTPException:
    for exc_type, status in _ERROR_STATUS:
        if isinstance(e, exc_type):
            return HTTPException(status, str(e))
    return HTTPException(500, str(e))


class AdminRequest(BaseModel):
    admin_id: str


class VersionedRequest(AdminRequest):
    expected_version: int


class ApproveRequest(VersionedRequest):
    comment: str | None = None


class RejectRequest(VersionedRequest):
    reasons: list[str] = []
    comment: str | None = None


class FlatReviewRequest(AdminRequest):
    status: SubmissionStatus
    comment: str = ""


class ExternalTestRequest(BaseModel):
    test_inputs: dict[str, str] = {}
    notification_email: str | None = None


def _transition(session: ReviewSession, outcome: StepOutcome) -> dict:
    return {
        "session": session.model_dump(mode="json"),
        "outcome": outcome.model_dump(mode="json"),
    }


def _load_submission(request: Request, submission_id: str) -> Submission:
    try:
        return request.app.state.store.load_submission(submission_id)
    except FileNotFoundError:
        raise HTTPException(404, f"Submission '{submission_id}' not found")


# --- Review policy ---

@router.get("/review-policy")
def get_review_policy(request: Request):
    registry = request.app.state.reviews.registry
    return registry.policy.model_dump(mode="json")


# --- Submissions ---

@admin_router.post("/submissions")
def create_submission(submission: Submission, request: Request):
    try:
        created = request.app.state.store.create_submission(submission)
    except FileExistsError as e:
        raise HTTPException(409, str(e))
    return {"id": created.id}


@admin_router.get("/submissions")
def list_submissions(request: Request, status: SubmissionStatus | None = None):
    store = request.app.state.store
    return [s.model_dump(mode="json") for s in store.list_submissions(status)]


@admin_router.get("/submissions/{submission_id}")
def get_submission(submission_id: str, request: Request):
    return _load_submission(request, submission_id).model_dump(mode="json")


# --- Step review ---

@admin_router.get("/submissions/{submission_id}/review")
def get_review(submission_id: str, request: Request):
    try:
        return request.app.state.reviews.get_session(submission_id).model_dump(mode="json")
    except ReviewStateError:
        raise HTTPException(404, f"Review of '{submission_id}' not found")


@admin_router.post("/submissions/{submission_id}/review/open")
def open_review(submission_id: str, body: AdminRequest, request: Request):
    _load_submission(request, submission_id)
    try:
        session = request.app.state.reviews.open_review(submission_id, body.admin_id)
    except SubmissionReviewError as e:
        raise _http_error(e)
    return session.model_dump(mode="json")


@admin_router.post("/submissions/{submission_id}/review/approve")
def approve_step(submission_id: str, body: ApproveRequest, request: Request):
    _load_submission(request, submission_id)
    try:
        session, outcome = request.app.state.reviews.approve(
            submission_id, body.admin_id, body.expected_version, body.comment
        )
    except SubmissionReviewError as e:
        raise _http_error(e)
    return _transition(session, outcome)


@admin_router.post("/submissions/{submission_id}/review/reject")
def reject_step(submission_id: str, body: RejectRequest, request: Request):
    _load_submission(request, submission_id)
    try:
        session, outcome = request.app.state.reviews.reject(
            submission_id, body.admin_id, body.reasons, body.expected_version, body.comment
        )
    except SubmissionReviewError as e:
        raise _http_error(e)
    return _transition(session, outcome)


@admin_router.post("/submissions/{submission_id}/review/previous")
def previous_step(submission_id: str, body: VersionedRequest, request: Request):
    try:
        session, outcome = request.app.state.reviews.go_to_previous(
            submission_id, body.admin_id, body.expected_version
        )
    except SubmissionReviewError as e:
        raise _http_error(e)
    return _transition(session, outcome)


@admin_router.post("/submissions/{submission_id}/review/release")
def release_review(submission_id: str, body: AdminRequest, request: Request):
    try:
        session = request.app.state.reviews.release(submission_id, body.admin_id)
    except SubmissionReviewError as e:
        raise _http_error(e)
    return session.model_dump(mode="json")


@admin_router.put("/submissions/{submission_id}/review")
def flat_review(submission_id: str, body: FlatReviewRequest, request: Request):
    _load_submission(request, submission_id)
    try:
        session = request.app.state.reviews.review_submission(
            submission_id, body.admin_id, body.status, body.comment
        )
    except SubmissionReviewError as e:
        raise _http_error(e)
    return session.model_dump(mode="json")


# --- External API test ---

@admin_router.get("/submissions/{submission_id}/external-test")
def get_test_inputs(submission_id: str, request: Request):
    submission = _load_submission(request, submission_id)
    return {"test_inputs": runner.default_test_inputs(submission)}


@admin_router.post("/submissions/{submission_id}/external-test")
def run_external_test(submission_id: str, body: ExternalTestRequest, request: Request):
    submission = _load_submission(request, submission_id)
    settings = request.app.state.settings
    try:
        result = runner.run_submission_test(
            submission,
            body.test_inputs,
            store=request.app.state.store,
            config=settings.harness,
            notification_email=body.notification_email,
        )
    except SubmissionReviewError as e:
        raise _http_error(e)
    return result.model_dump(mode="json")


# --- Generation tasks ---

@admin_router.get("/generation-tasks")
def list_generation_tasks(request: Request, status: GenerationTaskStatus | None = None):
    store = request.app.state.store
    return [t.model_dump(mode="json") for t in store.list_generation_tasks(status)]


@admin_router.post("/generation-tasks/{task_id}/check")
def check_generation_task(task_id: str, request: Request):
    store = request.app.state.store
    try:
        task = store.load_generation_task(task_id)
    except FileNotFoundError:
        raise HTTPException(404, f"Generation task '{task_id}' not found")
    if task.status == GenerationTaskStatus.RUNNING:
        request.app.state.monitor.check_single_task(task)
    return task.model_dump(mode="json")


@admin_router.post("/generation-monitor/start")
def start_monitor(request: Request):
    monitor = request.app.state.monitor
    monitor.start()
    return monitor.status()


@admin_router.post("/generation-monitor/stop")
def stop_monitor(request: Request):
    monitor = request.app.state.monitor
    monitor.stop()
    return monitor.status()


@admin_router.get("/generation-monitor/status")
def monitor_status(request: Request):
    return request.app.state.monitor.status()
