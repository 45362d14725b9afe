"""Error taxonomy for review cycles.

Every error raised by adapters, the agent runner and the comment store is a
ReviewError carrying a stable code. Rate limits and agent timeouts are
retryable; "no comments" is not a real failure and callers map it to an
empty list.
"""

from enum import Enum


class ErrorCode(str, Enum):
    GITHUB_API = "github_api_error"
    GITHUB_RATE_LIMIT = "github_rate_limit"
    GITHUB_AUTH = "github_auth_error"
    PR_NOT_FOUND = "pr_not_found"
    JSON_PARSE = "json_parse_error"
    NO_COMMENTS = "no_comments"
    AGENT_NOT_FOUND = "agent_not_found"
    AGENT_ERROR = "agent_error"
    AGENT_TIMEOUT = "agent_timeout"
    STATE_CORRUPT = "state_corrupt"
    INVALID_CONFIG = "invalid_config"


class ReviewError(Exception):
    """Base error with a code and retryable flag."""

    code: ErrorCode = ErrorCode.GITHUB_API
    retryable: bool = False

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"[{self.code.value}] {self.message}: {self.cause}"
        return f"[{self.code.value}] {self.message}"


class GitHubAPIError(ReviewError):
    """Raised when a GitHub API call fails."""

    code = ErrorCode.GITHUB_API


class RateLimitError(GitHubAPIError):
    code = ErrorCode.GITHUB_RATE_LIMIT
    retryable = True


class AuthError(GitHubAPIError):
    code = ErrorCode.GITHUB_AUTH


class NotFoundError(GitHubAPIError):
    code = ErrorCode.PR_NOT_FOUND


class ParseError(ReviewError):
    """Remote response could not be decoded."""

    code = ErrorCode.JSON_PARSE


class NoCommentsError(ReviewError):
    """The reviewer has left no comments; not a failure."""

    code = ErrorCode.NO_COMMENTS

    def __init__(self, message: str = "No reviewer comments found") -> None:
        super().__init__(message)


class AgentUnavailableError(ReviewError):
    code = ErrorCode.AGENT_NOT_FOUND

    def __init__(self, command: str) -> None:
        super().__init__(f"Agent CLI {command!r} not found in PATH")


class AgentError(ReviewError):
    code = ErrorCode.AGENT_ERROR


class AgentTimeoutError(AgentError):
    code = ErrorCode.AGENT_TIMEOUT
    retryable = True


class StoreError(ReviewError):
    """State file unreadable, corrupt or not writable."""

    code = ErrorCode.STATE_CORRUPT


class InvalidConfigError(ReviewError):
    code = ErrorCode.INVALID_CONFIG
