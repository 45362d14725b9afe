"""CI check results for the head commit of a pull request."""

from typing import List

from pydantic import BaseModel, Field


class CIAnnotation(BaseModel):
    """Failure location reported by a check run."""

    path: str = ""
    start_line: int = 0
    end_line: int = 0
    title: str = ""
    message: str = ""
    raw_details: str = ""

    @property
    def line_range(self) -> str:
        if self.start_line != self.end_line:
            return f"L{self.start_line}-{self.end_line}"
        return f"L{self.start_line}"


class CIFailure(BaseModel):
    """A completed check run that concluded with failure."""

    check_name: str
    app_name: str = ""
    summary: str = ""
    log_url: str = ""
    error_message: str = Field(default="", description="Raw output, truncated; only set without annotations")
    annotations: List[CIAnnotation] = Field(default_factory=list)


class CIStatus(BaseModel):
    """Aggregated check-run state for one commit."""

    failures: List[CIFailure] = Field(default_factory=list)
    pending_count: int = 0
    pending_names: List[str] = Field(default_factory=list)
    passed_count: int = 0
    total_count: int = 0
    reviewer_found: bool = False
    reviewer_completed: bool = False

    @property
    def all_complete(self) -> bool:
        return self.pending_count == 0

    @property
    def all_passed(self) -> bool:
        return self.all_complete and not self.failures
