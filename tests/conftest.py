"""Shared fakes: in-memory conversation source and CI provider."""

from pathlib import Path
from typing import List, Tuple

import pytest

from reviewwatch.adapters.base import CIProvider, ConversationSource
from reviewwatch.agents.stub_agent import StubAgent
from reviewwatch.errors import NoCommentsError
from reviewwatch.models import CIStatus, Comment, PullRequest, StreamEvent
from reviewwatch.services.review_service import ReviewService
from reviewwatch.store import CommentStore


class FakeSource(ConversationSource):
    """Serves a fixed PR and a mutable list of comments."""

    def __init__(self, comments: List[Comment] | None = None, head: str = "abc123") -> None:
        self.comments = list(comments or [])
        self.head = head
        self.resolved: List[int] = []
        self.resolve_error: Exception | None = None
        self.pr_error: Exception | None = None
        self.list_calls = 0

    def get_repo_info(self) -> Tuple[str, str]:
        return "owner", "repo"

    def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        if self.pr_error is not None:
            raise self.pr_error
        return PullRequest(number=number, title="Add feature", branch="feat", head_commit=self.head, author="dev")

    def list_comments(self, owner: str, repo: str, number: int) -> List[Comment]:
        self.list_calls += 1
        if not self.comments:
            raise NoCommentsError()
        return list(self.comments)

    def get_latest_commit(self, owner: str, repo: str, number: int) -> str:
        return self.head

    def resolve_comment(self, owner: str, repo: str, number: int, comment_id: int) -> None:
        if self.resolve_error is not None:
            raise self.resolve_error
        self.resolved.append(comment_id)

    def detect_current_pr(self) -> int:
        return 7


class FakeCI(CIProvider):
    def __init__(self, status: CIStatus | None = None) -> None:
        self.status = status or CIStatus()
        self.error: Exception | None = None

    def get_ci_status(self, owner: str, repo: str, commit_sha: str) -> CIStatus:
        if self.error is not None:
            raise self.error
        return self.status


def assistant(text: str) -> StreamEvent:
    return StreamEvent.model_validate({"type": "assistant", "message": {"content": [{"type": "text", "text": text}]}})


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def ci() -> FakeCI:
    return FakeCI()


@pytest.fixture
def agent() -> StubAgent:
    return StubAgent(
        events=[
            assistant("Reviewing the comments.\nI updated handler.py:12 as suggested.\n"),
            StreamEvent(type="result", subtype="success", result="All comments addressed. DONE"),
        ]
    )


@pytest.fixture
def store(tmp_path: Path) -> CommentStore:
    return CommentStore(tmp_path / "state")


@pytest.fixture
def service(source: FakeSource, ci: FakeCI, agent: StubAgent, store: CommentStore) -> ReviewService:
    return ReviewService(source, ci, agent, store)
