import threading

import pytest
from pydantic import ValidationError

from submission_review.models.generation_task import GenerationTask, GenerationTaskStatus
from submission_review.models.review import ReviewSession, ReviewStep
from submission_review.models.submission import Submission, SubmissionStatus
from submission_review.storage.json_store import JsonStore


@pytest.fixture
def store(tmp_path):
    return JsonStore(tmp_path)


def test_save_load_submission(store):
    store.save_submission(Submission(id="s1", user_id="u1", task_id="t1", title="标题"))
    loaded = store.load_submission("s1")
    assert loaded.title == "标题"
    assert loaded.status == SubmissionStatus.PENDING


def test_list_submissions_filter(store):
    store.save_submission(Submission(id="s1", user_id="u1", task_id="t1"))
    store.save_submission(
        Submission(id="s2", user_id="u1", task_id="t1", status=SubmissionStatus.APPROVED)
    )
    assert len(store.list_submissions()) == 2
    assert [s.id for s in store.list_submissions(SubmissionStatus.PENDING)] == ["s1"]


def test_load_missing_submission(store):
    with pytest.raises(FileNotFoundError):
        store.load_submission("nonexistent")


def test_create_submission_refuses_existing_id(store):
    store.create_submission(Submission(id="s1", user_id="u1", task_id="t1", reward_amount=10))
    with pytest.raises(FileExistsError):
        store.create_submission(Submission(id="s1", user_id="u1", task_id="t1", reward_amount=1000))
    assert store.load_submission("s1").reward_amount == 10


def test_create_submission_starts_pending(store):
    created = store.create_submission(Submission(
        id="s1", user_id="u1", task_id="t1",
        status=SubmissionStatus.APPROVED, reviewer_comment="ok",
    ))
    assert created.status == SubmissionStatus.PENDING
    assert store.load_submission("s1").reviewer_comment is None


def test_keys_cannot_leave_data_dir(store, tmp_path):
    submission = Submission.model_construct(id="../../escaped", user_id="u1", task_id="t1")
    with pytest.raises(ValueError):
        store.save_submission(submission)
    assert not list(tmp_path.parent.glob("escaped.json"))
    with pytest.raises(FileNotFoundError):
        store.load_submission("../../escaped")
    assert not store.has_session("../sub1")


def test_submission_id_pattern():
    with pytest.raises(ValidationError):
        Submission(id="../../escaped", user_id="u1", task_id="t1")


def test_session_roundtrip(store):
    session = ReviewSession(submission_id="s1", steps=[ReviewStep(id="a")], version=3)
    assert not store.has_session("s1")
    store.save_session(session)
    assert store.has_session("s1")
    assert store.load_session("s1").version == 3


def test_account_defaults_to_zero(store):
    account = store.load_account("nobody")
    assert account.balance == 0
    assert account.total_earnings == 0


def test_generation_task_filter(store):
    store.save_generation_task(GenerationTask(id="g1", execute_id="e1", workflow_id="w", token="t", user_id="u"))
    store.save_generation_task(GenerationTask(
        id="g2", execute_id="e2", workflow_id="w", token="t", user_id="u",
        status=GenerationTaskStatus.COMPLETED,
    ))
    running = store.list_generation_tasks(GenerationTaskStatus.RUNNING)
    assert [t.id for t in running] == ["g1"]


def test_transaction_is_reentrant(store):
    with store.transaction():
        with store.transaction():
            store.save_submission(Submission(id="s1", user_id="u1", task_id="t1"))
    assert store.load_submission("s1").id == "s1"


def test_concurrent_writes(store):
    """Multiple threads writing submissions don't corrupt data."""
    errors = []

    def write(i):
        try:
            store.save_submission(Submission(id=f"s_{i}", user_id="u", task_id="t"))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=write, args=(i,)) for i in range(20)]
    for t in threads: t.start()
    for t in threads: t.join()

    assert not errors
    assert len(store.list_submissions()) == 20
