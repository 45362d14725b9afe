"""Reviewer comment on a pull request (inline, general or parsed from a review body)."""

from datetime import datetime

from pydantic import BaseModel

GENERAL = "GENERAL"


class Comment(BaseModel):
    """One remark from the automated reviewer.

    IDs <= 0 are synthetic (nitpicks and outside-diff items parsed from a
    review body have no native ID). An empty path means a general comment.
    """

    id: int
    body: str
    path: str = ""
    line: int = 0
    end_line: int = 0
    ai_prompt: str = ""
    thread_id: str = ""
    author: str = ""
    url: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    is_resolved: bool = False
    is_nit: bool = False
    is_outdated: bool = False
    is_outside_diff: bool = False

    @property
    def is_synthetic(self) -> bool:
        return self.id <= 0

    @property
    def effective_body(self) -> str:
        """AI-agent excerpt when the reviewer supplied one, else the full body."""
        return self.ai_prompt or self.body

    @property
    def location(self) -> str:
        if not self.path:
            return GENERAL
        if not self.line:
            return self.path
        return f"{self.path}:{self.line}"
