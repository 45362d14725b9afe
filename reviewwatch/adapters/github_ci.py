"""GitHub check runs as a CI provider."""

import logging
from typing import Any, Dict, List

from reviewwatch.adapters.base import CIProvider
from reviewwatch.adapters.github import GitHubClient
from reviewwatch.errors import ReviewError
from reviewwatch.models import CIAnnotation, CIFailure, CIStatus

LOG = logging.getLogger("reviewwatch.adapters.github_ci")

MAX_OUTPUT_CHARS = 5000
TRUNCATION_MARKER = "\n... [truncated]"

_FAILURE_LEVELS = frozenset({"failure", "warning"})


def truncate_output(text: str, limit: int = MAX_OUTPUT_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


class GitHubCIAdapter(GitHubClient, CIProvider):
    """Aggregates check runs of a commit into a CIStatus."""

    def __init__(
        self,
        token: str | None,
        api_url: str = "https://api.github.com",
        reviewer_login: str = "coderabbit",
        timeout: int = 30,
    ) -> None:
        super().__init__(token, api_url=api_url, timeout=timeout)
        self._reviewer = reviewer_login.lower()

    def is_reviewer_check(self, run: Dict[str, Any]) -> bool:
        """True if the check run belongs to the automated reviewer."""
        app = run.get("app") or {}
        names = (run.get("name") or "", app.get("name") or "", app.get("slug") or "")
        return any(self._reviewer in n.lower() for n in names)

    def get_ci_status(self, owner: str, repo: str, commit_sha: str) -> CIStatus:
        runs = self._get_all(f"/repos/{owner}/{repo}/commits/{commit_sha}/check-runs", key="check_runs")
        status = CIStatus(total_count=len(runs))

        for run in runs:
            name = run.get("name") or ""
            state = run.get("status") or ""
            conclusion = run.get("conclusion") or ""

            if self.is_reviewer_check(run):
                status.reviewer_found = True
                if state == "completed":
                    status.reviewer_completed = True

            if state == "completed":
                if conclusion == "failure":
                    status.failures.append(self._failure(owner, repo, run))
                elif conclusion == "success":
                    status.passed_count += 1
            elif state in ("queued", "in_progress"):
                status.pending_count += 1
                status.pending_names.append(name)

        LOG.debug(
            "%s/%s@%s: %d checks, %d failed, %d pending, %d passed",
            owner,
            repo,
            commit_sha[:7],
            status.total_count,
            len(status.failures),
            status.pending_count,
            status.passed_count,
        )
        return status

    def _failure(self, owner: str, repo: str, run: Dict[str, Any]) -> CIFailure:
        output = run.get("output") or {}
        failure = CIFailure(
            check_name=run.get("name") or "",
            app_name=(run.get("app") or {}).get("name") or "",
            summary=output.get("summary") or "",
            log_url=run.get("html_url") or run.get("details_url") or "",
        )
        if (output.get("annotations_count") or 0) > 0 and run.get("id"):
            try:
                failure.annotations = self._annotations(owner, repo, run["id"])
            except ReviewError as e:
                LOG.warning("Annotations of check %r unavailable, using its output: %s", failure.check_name, e)
        if not failure.annotations and output.get("text"):
            failure.error_message = truncate_output(output["text"])
        return failure

    def _annotations(self, owner: str, repo: str, run_id: int) -> List[CIAnnotation]:
        annotations = []
        for a in self._get_all(f"/repos/{owner}/{repo}/check-runs/{run_id}/annotations"):
            if a.get("annotation_level") not in _FAILURE_LEVELS:
                continue
            annotations.append(
                CIAnnotation(
                    path=a.get("path") or "",
                    start_line=a.get("start_line") or 0,
                    end_line=a.get("end_line") or 0,
                    title=a.get("title") or "",
                    message=a.get("message") or "",
                    raw_details=a.get("raw_details") or "",
                )
            )
        return annotations
