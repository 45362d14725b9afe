"""GitHub API adapter (REST + GraphQL) for PR metadata and reviewer comments."""

import logging
import re
import subprocess
from datetime import datetime
from typing import Any, Dict, List, Tuple

import requests

from reviewwatch.adapters.base import ConversationSource
from reviewwatch.adapters.review_body import (
    extract_ai_prompt,
    is_auto_generated,
    is_nit,
    parse_nitpicks,
    parse_outside_diff,
)
from reviewwatch.errors import (
    AuthError,
    GitHubAPIError,
    NoCommentsError,
    NotFoundError,
    ParseError,
    RateLimitError,
)
from reviewwatch.models import Comment, PullRequest

LOG = logging.getLogger("reviewwatch.adapters.github")

_REMOTE_URL = re.compile(r"github\.com[:/]([^/]+)/([^/]+?)(?:\.git)?/?$")

PER_PAGE = 100

REVIEW_THREADS_QUERY = """
query($owner: String!, $name: String!, $number: Int!, $cursor: String) {
  repository(owner: $owner, name: $name) {
    pullRequest(number: $number) {
      reviewThreads(first: 100, after: $cursor) {
        pageInfo { hasNextPage endCursor }
        nodes {
          id
          isResolved
          isOutdated
          comments(first: 100) {
            nodes {
              databaseId
              body
              path
              line: originalLine
              createdAt
              updatedAt
              url
              author { login }
            }
          }
        }
      }
    }
  }
}
"""

RESOLVE_THREAD_MUTATION = """
mutation($threadId: ID!) {
  resolveReviewThread(input: {threadId: $threadId}) {
    thread { isResolved }
  }
}
"""


def _parse_iso(s: str | None) -> datetime | None:
    if not s:
        return None
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_remote_url(url: str) -> Tuple[str, str] | None:
    """(owner, repo) from an HTTPS or SSH GitHub remote URL."""
    match = _REMOTE_URL.search(url.strip())
    if not match:
        return None
    return match.group(1), match.group(2)


def _pr_from_api(data: Dict[str, Any]) -> PullRequest:
    head = data.get("head") or {}
    base = data.get("base") or {}
    user = data.get("user") or {}
    return PullRequest(
        number=data["number"],
        title=data.get("title") or "",
        body=data.get("body") or "",
        branch=head.get("ref", ""),
        base_branch=base.get("ref", ""),
        head_commit=head.get("sha", ""),
        base_commit=base.get("sha", ""),
        author=user.get("login", ""),
        state=data.get("state", "open"),
        url=data.get("html_url"),
    )


def _thread_comment_from_api(data: Dict[str, Any], thread: Dict[str, Any]) -> Comment:
    body = data.get("body") or ""
    return Comment(
        id=data.get("databaseId") or 0,
        path=data.get("path") or "",
        line=data.get("line") or 0,
        body=body,
        ai_prompt=extract_ai_prompt(body),
        thread_id=thread.get("id", ""),
        author=(data.get("author") or {}).get("login", ""),
        url=data.get("url") or "",
        created_at=_parse_iso(data.get("createdAt")),
        updated_at=_parse_iso(data.get("updatedAt")),
        is_resolved=bool(thread.get("isResolved")),
        is_outdated=bool(thread.get("isOutdated")),
        is_nit=is_nit(body),
    )


def _issue_comment_from_api(data: Dict[str, Any]) -> Comment:
    body = data.get("body") or ""
    return Comment(
        id=data["id"],
        body=body,
        ai_prompt=extract_ai_prompt(body),
        author=(data.get("user") or {}).get("login", ""),
        url=data.get("html_url") or "",
        created_at=_parse_iso(data.get("created_at")),
        updated_at=_parse_iso(data.get("updated_at")),
        is_nit=is_nit(body),
    )


class GitHubClient:
    """Authenticated session with status-code to error mapping."""

    def __init__(self, token: str | None, api_url: str = "https://api.github.com", timeout: int = 30) -> None:
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._session = requests.Session()
        if token:
            self._session.headers["Authorization"] = f"token {token}"
        self._session.headers["Accept"] = "application/vnd.github.v3+json"

    def _request(
        self,
        method: str,
        path: str,
        params: Dict[str, Any] | None = None,
        json: Dict[str, Any] | None = None,
    ) -> requests.Response:
        if path.startswith(("http://", "https://")):
            url = path
        elif path.startswith("/"):
            url = f"{self._api_url}{path}"
        else:
            url = f"{self._api_url}/{path}"
        try:
            resp = self._session.request(method, url, params=params, json=json, timeout=self._timeout)
        except requests.RequestException as e:
            raise GitHubAPIError(f"{method} {path} failed", e) from e
        if resp.status_code >= 400:
            self._raise_for_status(resp)
        return resp

    @staticmethod
    def _raise_for_status(resp: requests.Response) -> None:
        msg = resp.text or resp.reason or str(resp.status_code)
        try:
            msg = resp.json().get("message", msg)
        except (ValueError, AttributeError):
            pass
        text = f"{resp.status_code}: {msg}"
        if resp.status_code == 401:
            raise AuthError(text)
        if resp.status_code == 429 or (resp.status_code == 403 and "rate limit" in str(msg).lower()):
            raise RateLimitError(text)
        if resp.status_code == 404:
            raise NotFoundError(text)
        raise GitHubAPIError(text)

    @staticmethod
    def _json(resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise ParseError("invalid JSON in GitHub response", e) from e

    def _get_all(self, path: str, params: Dict[str, Any] | None = None, key: str | None = None) -> List[Any]:
        """Items of every page of a REST listing, following Link: rel="next".

        ``key`` names the list inside an object response (e.g. check_runs).
        """
        items: List[Any] = []
        url: str | None = path
        query: Dict[str, Any] | None = {"per_page": PER_PAGE, **(params or {})}
        while url:
            resp = self._request("GET", url, params=query)
            data = self._json(resp) or ([] if key is None else {})
            items.extend((data.get(key) if key else data) or [])
            url = (resp.links.get("next") or {}).get("url")
            # The next link already carries the query string
            query = None
        return items

    def _graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        resp = self._request("POST", "/graphql", json={"query": query, "variables": variables})
        payload = self._json(resp)
        if not isinstance(payload, dict):
            raise ParseError("unexpected GraphQL response")
        if payload.get("errors"):
            messages = "; ".join(str(e.get("message", e)) for e in payload["errors"])
            raise GitHubAPIError(f"GraphQL: {messages}")
        return payload.get("data") or {}


class GitHubAdapter(GitHubClient, ConversationSource):
    """Pull request, reviewer comments and thread resolution on GitHub."""

    def __init__(
        self,
        token: str | None,
        api_url: str = "https://api.github.com",
        repository: str = "",
        reviewer_login: str = "coderabbit",
        timeout: int = 30,
    ) -> None:
        super().__init__(token, api_url=api_url, timeout=timeout)
        self._repository = repository
        self._reviewer = reviewer_login.lower()

    def _is_reviewer(self, login: str) -> bool:
        return self._reviewer in (login or "").lower()

    def get_repo_info(self) -> Tuple[str, str]:
        if self._repository:
            owner, _, repo = self._repository.partition("/")
            if owner and repo:
                return owner, repo
        url = self._git("config", "--get", "remote.origin.url")
        parsed = parse_remote_url(url)
        if parsed is None:
            raise GitHubAPIError(f"could not parse GitHub URL from remote: {url!r}")
        return parsed

    def get_current_branch(self) -> str:
        return self._git("branch", "--show-current")

    @staticmethod
    def _git(*args: str) -> str:
        try:
            result = subprocess.run(["git", *args], check=True, capture_output=True, text=True, timeout=30)
        except subprocess.CalledProcessError as e:
            raise GitHubAPIError(f"git {' '.join(args)}: {(e.stderr or '').strip()}", e) from e
        except (OSError, subprocess.TimeoutExpired) as e:
            raise GitHubAPIError(f"git {' '.join(args)} failed", e) from e
        return result.stdout.strip()

    def detect_current_pr(self) -> int:
        owner, repo = self.get_repo_info()
        branch = self.get_current_branch()
        resp = self._request(
            "GET",
            f"/repos/{owner}/{repo}/pulls",
            params={"head": f"{owner}:{branch}", "state": "open"},
        )
        data = self._json(resp) or []
        if not data:
            raise NotFoundError(f"no open PR for branch {branch!r}")
        return int(data[0]["number"])

    def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        try:
            resp = self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}")
        except NotFoundError as e:
            raise NotFoundError(f"PR #{number} not found", e) from e
        return _pr_from_api(self._json(resp))

    def get_latest_commit(self, owner: str, repo: str, number: int) -> str:
        return self.get_pull_request(owner, repo, number).head_commit

    def list_comments(self, owner: str, repo: str, number: int) -> List[Comment]:
        comments = self._list_thread_comments(owner, repo, number)

        try:
            comments.extend(self._list_issue_comments(owner, repo, number))
        except GitHubAPIError as e:
            LOG.warning("PR #%s: failed to list general comments: %s", number, e)

        try:
            comments.extend(self._list_review_body_comments(owner, repo, number))
        except GitHubAPIError as e:
            LOG.warning("PR #%s: failed to list reviews: %s", number, e)

        if not comments:
            raise NoCommentsError()
        return comments

    def _review_threads(self, owner: str, repo: str, number: int) -> List[Dict[str, Any]]:
        """Every review thread of the PR, one GraphQL page at a time."""
        threads: List[Dict[str, Any]] = []
        cursor = None
        while True:
            variables = {"owner": owner, "name": repo, "number": number, "cursor": cursor}
            data = self._graphql(REVIEW_THREADS_QUERY, variables)
            pr = (data.get("repository") or {}).get("pullRequest") or {}
            page = pr.get("reviewThreads") or {}
            threads.extend(page.get("nodes") or [])
            info = page.get("pageInfo") or {}
            if not info.get("hasNextPage") or not info.get("endCursor"):
                return threads
            cursor = info["endCursor"]

    def _list_thread_comments(self, owner: str, repo: str, number: int) -> List[Comment]:
        comments = []
        for thread in self._review_threads(owner, repo, number):
            for node in (thread.get("comments") or {}).get("nodes") or []:
                if not self._is_reviewer((node.get("author") or {}).get("login", "")):
                    continue
                comments.append(_thread_comment_from_api(node, thread))
        return comments

    def _list_issue_comments(self, owner: str, repo: str, number: int) -> List[Comment]:
        comments = []
        for d in self._get_all(f"/repos/{owner}/{repo}/issues/{number}/comments"):
            if not self._is_reviewer((d.get("user") or {}).get("login", "")):
                continue
            if is_auto_generated(d.get("body") or ""):
                continue
            comments.append(_issue_comment_from_api(d))
        return comments

    def _list_review_body_comments(self, owner: str, repo: str, number: int) -> List[Comment]:
        comments: List[Comment] = []
        listing = self._get_all(f"/repos/{owner}/{repo}/pulls/{number}/reviews")
        reviews = [r for r in listing if self._is_reviewer((r.get("user") or {}).get("login", ""))]
        for index, review in enumerate(reviews):
            body = review.get("body") or ""
            submitted = _parse_iso(review.get("submitted_at"))
            for item in parse_nitpicks(body, index) + parse_outside_diff(body, index):
                item.author = (review.get("user") or {}).get("login", "")
                item.url = review.get("html_url") or ""
                item.created_at = submitted
                comments.append(item)
        return comments

    def resolve_comment(self, owner: str, repo: str, number: int, comment_id: int) -> None:
        thread_id = ""
        for thread in self._review_threads(owner, repo, number):
            if thread.get("isResolved"):
                continue
            ids = [n.get("databaseId") for n in (thread.get("comments") or {}).get("nodes") or []]
            if comment_id in ids:
                thread_id = thread.get("id", "")
                break
        if not thread_id:
            # Not a thread comment, or already resolved
            return
        self._graphql(RESOLVE_THREAD_MUTATION, {"threadId": thread_id})
        LOG.debug("PR #%s: resolved thread %s (comment %s)", number, thread_id, comment_id)

    def reply_to_comment(self, owner: str, repo: str, number: int, comment_id: int, body: str) -> None:
        self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls/{number}/comments/{comment_id}/replies",
            json={"body": body},
        )
