"""Pull request metadata."""

from pydantic import BaseModel


class PullRequest(BaseModel):
    """Pull request identity and commit pointers."""

    number: int
    title: str = ""
    body: str = ""
    branch: str = ""
    base_branch: str = ""
    head_commit: str = ""
    base_commit: str = ""
    author: str = ""
    state: str = "open"
    url: str | None = None
