import json
import os
import re
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel

from submission_review.models.finalization import RejectionRecord
from submission_review.models.generation_task import GenerationTask, GenerationTaskStatus
from submission_review.models.ledger import Account, Transaction, WorkItem
from submission_review.models.review import ReviewSession
from submission_review.models.submission import Submission, SubmissionStatus

M = TypeVar("M", bound=BaseModel)

# Keys become file names; no separators or dots allowed
_KEY_RE = re.compile(r"[\w-]+")

_COLLECTIONS = (
    "submissions",
    "sessions",
    "work_items",
    "accounts",
    "transactions",
    "rejections",
    "generation_tasks",
)


class JsonStore:
    def __init__(self, base_dir: str | Path | None = None):
        if base_dir is None:
            base_dir = os.environ.get("SRV_DATA_DIR", "data")
        self._base = Path(base_dir)
        self._dirs: dict[str, Path] = {}
        for name in _COLLECTIONS:
            path = self._base / name
            path.mkdir(parents=True, exist_ok=True)
            self._dirs[name] = path
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator["JsonStore"]:
        """Hold the store lock across several reads and writes."""
        with self._lock:
            yield self

    def _atomic_write(self, path: Path, data: dict) -> None:
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2, default=str, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, path)

    def _path(self, collection: str, key: str) -> Path:
        if not isinstance(key, str) or not _KEY_RE.fullmatch(key):
            raise ValueError(f"Invalid {collection} key: {key!r}")
        return self._dirs[collection] / f"{key}.json"

    def _save(self, collection: str, key: str, model: BaseModel) -> None:
        path = self._path(collection, key)
        with self._lock:
            self._atomic_write(path, model.model_dump(mode="json"))

    def _load(self, collection: str, key: str, model_cls: type[M], label: str) -> M:
        if not _KEY_RE.fullmatch(key):
            raise FileNotFoundError(f"{label} '{key}' not found")
        path = self._path(collection, key)
        with self._lock:
            if not path.exists():
                raise FileNotFoundError(f"{label} '{key}' not found")
            data = json.loads(path.read_text(encoding="utf-8"))
        return model_cls.model_validate(data)

    def _list(self, collection: str, model_cls: type[M]) -> list[M]:
        results = []
        with self._lock:
            for p in sorted(self._dirs[collection].glob("*.json")):
                data = json.loads(p.read_text(encoding="utf-8"))
                results.append(model_cls.model_validate(data))
        return results

    def _exists(self, collection: str, key: str) -> bool:
        return bool(_KEY_RE.fullmatch(key)) and self._path(collection, key).exists()

    # Submissions

    def save_submission(self, submission: Submission) -> None:
        self._save("submissions", submission.id, submission)

    def create_submission(self, submission: Submission) -> Submission:
        """Store a new submission as pending; existing ids are never overwritten."""
        with self._lock:
            if self._exists("submissions", submission.id):
                raise FileExistsError(f"Submission '{submission.id}' already exists")
            created = submission.model_copy(
                update={
                    "status": SubmissionStatus.PENDING,
                    "reviewer_comment": None,
                    "reviewed_at": None,
                }
            )
            self._save("submissions", created.id, created)
        return created

    def load_submission(self, submission_id: str) -> Submission:
        return self._load("submissions", submission_id, Submission, "Submission")

    def list_submissions(self, status: SubmissionStatus | None = None) -> list[Submission]:
        items = self._list("submissions", Submission)
        if status is None:
            return items
        return [s for s in items if s.status == status]

    # Review sessions

    def save_session(self, session: ReviewSession) -> None:
        self._save("sessions", session.submission_id, session)

    def load_session(self, submission_id: str) -> ReviewSession:
        return self._load("sessions", submission_id, ReviewSession, "Review session")

    def has_session(self, submission_id: str) -> bool:
        return self._exists("sessions", submission_id)

    # Work items

    def save_work_item(self, item: WorkItem) -> None:
        self._save("work_items", item.id, item)

    def load_work_item(self, item_id: str) -> WorkItem:
        return self._load("work_items", item_id, WorkItem, "Work item")

    def has_work_item(self, item_id: str) -> bool:
        return self._exists("work_items", item_id)

    # Accounts

    def save_account(self, account: Account) -> None:
        self._save("accounts", account.user_id, account)

    def load_account(self, user_id: str) -> Account:
        """Accounts are created lazily with a zero balance."""
        if not self._exists("accounts", user_id):
            return Account(user_id=user_id)
        return self._load("accounts", user_id, Account, "Account")

    # Transactions

    def save_transaction(self, transaction: Transaction) -> None:
        self._save("transactions", transaction.id, transaction)

    def list_transactions(self, user_id: str | None = None) -> list[Transaction]:
        items = self._list("transactions", Transaction)
        if user_id is None:
            return items
        return [t for t in items if t.user_id == user_id]

    # Rejections

    def save_rejection(self, record: RejectionRecord) -> None:
        self._save("rejections", record.submission_id, record)

    def load_rejection(self, submission_id: str) -> RejectionRecord:
        return self._load("rejections", submission_id, RejectionRecord, "Rejection")

    # Generation tasks

    def save_generation_task(self, task: GenerationTask) -> None:
        self._save("generation_tasks", task.id, task)

    def load_generation_task(self, task_id: str) -> GenerationTask:
        return self._load("generation_tasks", task_id, GenerationTask, "Generation task")

    def list_generation_tasks(
        self, status: GenerationTaskStatus | None = None
    ) -> list[GenerationTask]:
        items = self._list("generation_tasks", GenerationTask)
        if status is None:
            return items
        return [t for t in items if t.status == status]
