"""Abstract interfaces for the conversation source and the CI provider."""

from abc import ABC, abstractmethod
from typing import List, Tuple

from reviewwatch.models import CIStatus, Comment, PullRequest


class ConversationSource(ABC):
    """Where the pull request and the reviewer's comments live."""

    @abstractmethod
    def get_repo_info(self) -> Tuple[str, str]:
        """Return (owner, repo) of the monitored repository."""
        ...

    @abstractmethod
    def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        """Fetch PR metadata (branch, base, head/base commit, title, author)."""
        ...

    @abstractmethod
    def list_comments(self, owner: str, repo: str, number: int) -> List[Comment]:
        """All reviewer comments on the PR.

        Raises NoCommentsError when there are none.
        """
        ...

    @abstractmethod
    def get_latest_commit(self, owner: str, repo: str, number: int) -> str:
        """HEAD commit SHA of the PR."""
        ...

    @abstractmethod
    def resolve_comment(self, owner: str, repo: str, number: int, comment_id: int) -> None:
        """Mark the review thread holding comment_id as resolved."""
        ...

    def detect_current_pr(self) -> int:
        """PR number for the current branch. Override if supported."""
        raise NotImplementedError("detect_current_pr")

    def reply_to_comment(self, owner: str, repo: str, number: int, comment_id: int, body: str) -> None:
        """Reply in a review comment thread. Override if supported."""
        raise NotImplementedError("reply_to_comment")


class CIProvider(ABC):
    """Check-run status for a commit."""

    @abstractmethod
    def get_ci_status(self, owner: str, repo: str, commit_sha: str) -> CIStatus:
        """Failures, pending and passed counts for commit_sha."""
        ...
