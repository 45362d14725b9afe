"""Review cycle: gather comments and CI failures, run the agent, record progress.

One cycle fetches the PR, keeps the reviewer comments that are neither
resolved, excluded by config nor already processed, adds failed CI checks,
and hands everything to the agent in a single prompt. Comments are recorded
as processed only after the agent's stream has closed, so an interrupted
cycle leaves no partial progress behind.
"""

import logging
import threading
from typing import Callable, List, Sequence, Tuple

from reviewwatch.adapters.base import CIProvider, ConversationSource
from reviewwatch.agents.base import AgentRunner
from reviewwatch.channel import DEFAULT_CAPACITY, Channel
from reviewwatch.config import ReviewConfig
from reviewwatch.errors import NoCommentsError, ReviewError, StoreError
from reviewwatch.models import CIStatus, Comment, ReviewSession, ReviewStatus, Thought
from reviewwatch.services.prompt import build_review_prompt
from reviewwatch.services.satisfaction import SatisfactionDetector, SatisfactionVerdict
from reviewwatch.services.thought_filter import ThoughtFilter
from reviewwatch.store import CommentStore, ConversationState, state_key


def filter_comments(comments: Sequence[Comment], config: ReviewConfig) -> List[Comment]:
    """Drop nits and outdated comments unless included; always drop resolved."""
    kept = []
    for c in comments:
        if c.is_nit and not config.include_nits:
            continue
        if c.is_outdated and not config.include_outdated:
            continue
        if c.is_resolved:
            continue
        kept.append(c)
    return kept


def has_nothing_to_do(session: ReviewSession) -> bool:
    return not session.comments and not session.ci_failures and session.ci_all_complete


def _split_repository(repository: str) -> Tuple[str, str]:
    owner, _, repo = repository.partition("/")
    return owner, repo


class ReviewService:
    """Runs review cycles for one repository."""

    def __init__(
        self,
        source: ConversationSource,
        ci: CIProvider,
        agent: AgentRunner,
        store: CommentStore,
        thought_filter_factory: Callable[[], ThoughtFilter] = ThoughtFilter,
        detector: SatisfactionDetector | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self._source = source
        self._ci = ci
        self._agent = agent
        self._store = store
        self._thought_filter_factory = thought_filter_factory
        self._detector = detector or SatisfactionDetector()
        self._log = log or logging.getLogger("reviewwatch.services.review_service")

    @property
    def agent(self) -> AgentRunner:
        return self._agent

    def get_repo_info(self) -> Tuple[str, str]:
        return self._source.get_repo_info()

    def detect_current_pr(self) -> int:
        return self._source.detect_current_pr()

    def _load_state(self, key: str) -> ConversationState:
        try:
            return self._store.load(key)
        except StoreError as e:
            self._log.warning("Using empty state for %s: %s", key, e)
            return ConversationState(key=key)

    def _prepare(self, config: ReviewConfig) -> Tuple[ReviewSession, str]:
        owner, repo = self._source.get_repo_info()
        repository = f"{owner}/{repo}"
        key = state_key(repository, config.pr_number)

        if config.reset_state:
            try:
                self._store.reset(key)
            except StoreError as e:
                self._log.warning("Could not reset state for %s: %s", key, e)
        state = self._load_state(key)

        session = ReviewSession(pr_number=config.pr_number, repository=repository)
        session.advance(ReviewStatus.FETCHING)
        session.apply_pull_request(self._source.get_pull_request(owner, repo, config.pr_number))

        try:
            comments = self._source.list_comments(owner, repo, config.pr_number)
        except NoCommentsError:
            comments = []

        filtered = filter_comments(comments, config)
        unprocessed = self._store.filter_unprocessed(state, filtered)
        session.comments = unprocessed
        session.total_found_count = len(filtered)
        session.new_comments_count = len(unprocessed)
        session.remaining_count = len(unprocessed)
        session.already_addressed = session.total_found_count - session.new_comments_count
        session.changed_since_seen = sum(1 for c in filtered if self._store.has_changed(state, c))

        try:
            ci = self._ci.get_ci_status(owner, repo, session.head_commit)
        except ReviewError as e:
            self._log.warning("PR #%s: CI status unavailable: %s", config.pr_number, e)
            ci = CIStatus()
        session.apply_ci_status(ci)

        self._log.debug(
            "PR #%s: %d found, %d new, %d already addressed, %d CI failures, %d pending",
            config.pr_number,
            session.total_found_count,
            session.new_comments_count,
            session.already_addressed,
            len(session.ci_failures),
            session.ci_pending_count,
        )
        return session, key

    def fetch_snapshot(self, config: ReviewConfig) -> ReviewSession:
        """Current comments and CI state without running the agent."""
        session, _ = self._prepare(config)
        if has_nothing_to_do(session):
            session.mark_satisfied()
        return session

    def run_review_cycle(
        self,
        config: ReviewConfig,
        cancel: threading.Event | None = None,
    ) -> Tuple[ReviewSession, Channel[Thought] | None]:
        """Run one cycle. Returns the session and its thought stream.

        The stream is None when there is nothing to address; the session is
        then already satisfied and the agent is not started. Otherwise the
        caller must drain the stream; the session completes when it closes.
        """
        session, key = self._prepare(config)
        if has_nothing_to_do(session):
            session.mark_satisfied()
            self._log.info("PR #%s: nothing to address", config.pr_number)
            return session, None

        cancel = cancel or threading.Event()
        prompt = build_review_prompt(session)
        self._log.info(
            "PR #%s: starting agent for %d comments and %d CI failures",
            config.pr_number,
            len(session.comments),
            len(session.ci_failures),
        )
        try:
            events = self._agent.stream_run(prompt, cancel)
        except ReviewError:
            session.mark_failed()
            raise
        session.advance(ReviewStatus.REVIEWING)

        thought_filter = self._thought_filter_factory()
        thoughts = thought_filter.filter(events, cancel)
        out: Channel[Thought] = Channel(DEFAULT_CAPACITY, cancel)
        handled = list(session.comments)

        def relay() -> None:
            try:
                for thought in thoughts:
                    session.add_thought(thought)
                    if not out.put(thought):
                        break
                if cancel.is_set():
                    self._log.info("PR #%s: review cancelled, nothing recorded", config.pr_number)
                    session.mark_failed("cancelled")
                    return
                if thought_filter.errors:
                    error = thought_filter.errors[-1]
                    self._log.error("PR #%s: agent run failed, nothing recorded: %s", config.pr_number, error.message)
                    session.mark_failed(f"{error.type}: {error.message}")
                    return
                self._record(key, session, handled, config)
                session.mark_completed()
            except Exception:
                self._log.exception("PR #%s: review relay failed", config.pr_number)
                session.mark_failed()
            finally:
                out.close()

        threading.Thread(target=relay, name=f"review-{config.pr_number}", daemon=True).start()
        return session, out

    def _record(self, key: str, session: ReviewSession, handled: List[Comment], config: ReviewConfig) -> None:
        try:
            self._store.mark_processed(key, handled)
        except StoreError as e:
            self._log.warning("PR #%s: could not save processed comments: %s", config.pr_number, e)
        session.remaining_count = 0

        if not config.mark_addressed:
            return
        owner, repo = _split_repository(session.repository)
        for comment in handled:
            if comment.is_synthetic:
                continue
            try:
                self._source.resolve_comment(owner, repo, config.pr_number, comment.id)
            except ReviewError as e:
                self._log.warning("PR #%s: could not resolve comment %s: %s", config.pr_number, comment.id, e)

    def check_satisfaction(self, session: ReviewSession, include_thoughts: bool = True) -> SatisfactionVerdict:
        """Combine the agent's last thoughts with the remote thread state.

        Only review-thread comments carry a resolved flag, so they alone are
        judged on the remote side. If the listing fails the thought verdict
        stands alone.
        """
        thought_verdict = self._detector.analyze_thoughts(session.thoughts) if include_thoughts else None
        owner, repo = _split_repository(session.repository)
        try:
            comments = self._source.list_comments(owner, repo, session.pr_number)
        except NoCommentsError:
            comments = []
        except ReviewError as e:
            if thought_verdict is None:
                raise
            self._log.warning("PR #%s: using agent output only: %s", session.pr_number, e)
            return thought_verdict
        remote = self._detector.analyze_comments([c for c in comments if c.thread_id])
        if thought_verdict is None:
            return remote
        return self._detector.combine(thought_verdict, remote)
