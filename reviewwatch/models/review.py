"""In-memory state of one review cycle for a pull request."""

import threading
from datetime import datetime
from enum import Enum
from typing import List

from pydantic import BaseModel, Field, PrivateAttr

from reviewwatch.models.ci import CIFailure, CIStatus
from reviewwatch.models.comment import Comment
from reviewwatch.models.pr import PullRequest
from reviewwatch.models.thought import Thought


class ReviewStatus(str, Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    REVIEWING = "reviewing"
    COMPLETED = "completed"
    SATISFIED = "satisfied"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({ReviewStatus.COMPLETED, ReviewStatus.SATISFIED, ReviewStatus.FAILED})

# pending -> fetching -> reviewing -> {completed | satisfied | failed}
REVIEW_TRANSITIONS: dict[ReviewStatus, frozenset[ReviewStatus]] = {
    ReviewStatus.PENDING: frozenset({ReviewStatus.FETCHING, ReviewStatus.FAILED}),
    ReviewStatus.FETCHING: frozenset({ReviewStatus.REVIEWING, ReviewStatus.SATISFIED, ReviewStatus.FAILED}),
    ReviewStatus.REVIEWING: frozenset({ReviewStatus.COMPLETED, ReviewStatus.SATISFIED, ReviewStatus.FAILED}),
    ReviewStatus.COMPLETED: frozenset(),
    ReviewStatus.SATISFIED: frozenset(),
    ReviewStatus.FAILED: frozenset(),
}


class IllegalTransitionError(ValueError):
    """Raised by strict state machines on a transition outside the table."""


def can_transition(current: ReviewStatus, target: ReviewStatus) -> bool:
    return target in REVIEW_TRANSITIONS[current]


class ReviewSession(BaseModel):
    """One review run: what was found, what the agent said, how it ended."""

    pr_number: int
    repository: str
    status: ReviewStatus = ReviewStatus.PENDING
    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: datetime | None = None

    branch: str = ""
    base_branch: str = ""
    head_commit: str = ""
    base_commit: str = ""
    title: str = ""
    author: str = ""

    comments: List[Comment] = Field(default_factory=list)
    ci_failures: List[CIFailure] = Field(default_factory=list)
    ci_pending_count: int = 0
    ci_pending_names: List[str] = Field(default_factory=list)
    ci_all_complete: bool = True
    reviewer_found: bool = False
    reviewer_completed: bool = False
    thoughts: List[Thought] = Field(default_factory=list)

    total_found_count: int = 0
    new_comments_count: int = 0
    already_addressed: int = 0
    changed_since_seen: int = 0
    processed_count: int = 0
    remaining_count: int = 0
    current_file: str = ""
    satisfied: bool = False
    error: str = ""

    _done: threading.Event = PrivateAttr(default_factory=threading.Event)
    _lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    @property
    def key(self) -> str:
        """State key, e.g. owner/repo#123."""
        return f"{self.repository}#{self.pr_number}"

    @property
    def is_done(self) -> bool:
        return self._done.is_set()

    def advance(self, status: ReviewStatus, strict: bool = False) -> None:
        """Move to status; strict mode rejects transitions outside the table."""
        with self._lock:
            if status == self.status:
                return
            if strict and not can_transition(self.status, status):
                raise IllegalTransitionError(f"review {self.status.value} -> {status.value}")
            self.status = status
            if status in TERMINAL_STATUSES:
                self.completed_at = datetime.now()
                self._done.set()

    def apply_pull_request(self, pr: PullRequest) -> None:
        self.branch = pr.branch
        self.base_branch = pr.base_branch
        self.head_commit = pr.head_commit
        self.base_commit = pr.base_commit
        self.title = pr.title
        self.author = pr.author

    def apply_ci_status(self, ci: CIStatus) -> None:
        self.ci_failures = list(ci.failures)
        self.ci_pending_count = ci.pending_count
        self.ci_pending_names = list(ci.pending_names)
        self.ci_all_complete = ci.all_complete
        self.reviewer_found = ci.reviewer_found
        self.reviewer_completed = ci.reviewer_completed

    def add_thought(self, thought: Thought) -> None:
        with self._lock:
            self.thoughts.append(thought)
            self.processed_count += 1
            if thought.file:
                self.current_file = thought.file

    def mark_completed(self) -> None:
        self.advance(ReviewStatus.COMPLETED)

    def mark_satisfied(self) -> None:
        self.satisfied = True
        self.advance(ReviewStatus.SATISFIED)

    def mark_failed(self, error: str = "") -> None:
        if error:
            self.error = error
        self.advance(ReviewStatus.FAILED)

    def wait_done(self, timeout: float | None = None) -> bool:
        """Block until the session reaches a terminal status."""
        return self._done.wait(timeout)
