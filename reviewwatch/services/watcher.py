"""Watch a pull request and run review cycles as comments or CI failures appear.

A background thread ticks every poll interval. Each tick fetches a snapshot;
new or outstanding work starts a cycle after an optional batch window, and
a finished cycle is followed by a cooldown so the reviewer can react to the
pushed changes. Errors are reported as events and never stop the loop.
"""

import logging
import threading
import time
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from reviewwatch.channel import Channel
from reviewwatch.config import ReviewConfig, WatchOptions
from reviewwatch.errors import ReviewError
from reviewwatch.models import ReviewSession, ReviewStatus
from reviewwatch.models.review import IllegalTransitionError
from reviewwatch.services.review_service import ReviewService
from reviewwatch.services.satisfaction import SatisfactionVerdict

LOG = logging.getLogger("reviewwatch.services.watcher")

WATCH_EVENT_CAPACITY = 10

_COMPLETION_POLL_SECONDS = 0.1


class WatchState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    BATCH_WAIT = "batch_wait"
    PROCESSING = "processing"
    COOLDOWN = "cooldown"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SATISFIED = "satisfied"
    ERROR = "error"


WATCH_TRANSITIONS: dict[WatchState, frozenset[WatchState]] = {
    WatchState.IDLE: frozenset({WatchState.POLLING}),
    WatchState.POLLING: frozenset(
        {
            WatchState.BATCH_WAIT,
            WatchState.PROCESSING,
            WatchState.AWAITING_CONFIRMATION,
            WatchState.SATISFIED,
            WatchState.ERROR,
        }
    ),
    WatchState.BATCH_WAIT: frozenset({WatchState.PROCESSING, WatchState.POLLING, WatchState.ERROR}),
    WatchState.PROCESSING: frozenset({WatchState.COOLDOWN, WatchState.ERROR}),
    WatchState.COOLDOWN: frozenset({WatchState.POLLING}),
    WatchState.AWAITING_CONFIRMATION: frozenset({WatchState.SATISFIED, WatchState.POLLING}),
    WatchState.SATISFIED: frozenset({WatchState.POLLING}),
    WatchState.ERROR: frozenset({WatchState.POLLING}),
}


class WatchEventType(str, Enum):
    POLLING = "polling"
    BATCH_WAIT = "batch_wait"
    PROCESSING = "processing"
    REVIEW_COMPLETE = "review_complete"
    COOLDOWN = "cooldown"
    NEW_COMMENTS = "new_comments"
    NEW_CI_FAILURES = "new_ci_failures"
    SATISFIED = "satisfied"
    MANUAL_CONFIRM_REQUIRED = "manual_confirm_required"
    ERROR = "error"
    CANCELLED = "cancelled"


class WatchEvent(BaseModel):
    """What the watch loop reports to its presentation layer."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    type: WatchEventType
    timestamp: datetime = Field(default_factory=datetime.now)
    message: str = ""
    session: ReviewSession | None = None
    thoughts: Any = Field(default=None, description="Channel[Thought] of the running cycle")
    verdict: SatisfactionVerdict | None = None
    error: str | None = None


class Watcher:
    """State machine over repeated review cycles for one PR."""

    def __init__(
        self,
        service: ReviewService,
        options: WatchOptions,
        clock: Callable[[], float] = time.monotonic,
        strict: bool = False,
    ) -> None:
        self._service = service
        self._options = options
        self._clock = clock
        self._strict = strict
        self._lock = threading.Lock()
        self._state = WatchState.IDLE
        self._cooldown_until = 0.0
        self._batch_wait_until = 0.0
        self._last_commit = ""
        self._last_comment_count = 0
        self._last_ci_failure_count = 0
        self._processed_ci_once = False
        self._last_session: ReviewSession | None = None
        self._last_error: str | None = None

    def _transition(self, target: WatchState, force: bool = False) -> None:
        with self._lock:
            current = self._state
            if current == target:
                return
            # Any state may fail
            allowed = target == WatchState.ERROR or target in WATCH_TRANSITIONS[current]
            if not force and not allowed:
                if self._strict:
                    raise IllegalTransitionError(f"watch {current.value} -> {target.value}")
                LOG.warning("Unexpected watch transition %s -> %s", current.value, target.value)
            self._state = target
        LOG.debug("Watch state %s -> %s", current.value, target.value)

    def get_state(self) -> WatchState:
        with self._lock:
            return self._state

    @property
    def last_error(self) -> str | None:
        with self._lock:
            return self._last_error

    def get_cooldown_remaining(self) -> float:
        """Seconds left in cooldown, 0 outside cooldown."""
        with self._lock:
            if self._state != WatchState.COOLDOWN:
                return 0.0
            return max(0.0, self._cooldown_until - self._clock())

    def get_batch_wait_remaining(self) -> float:
        with self._lock:
            if self._state != WatchState.BATCH_WAIT:
                return 0.0
            return max(0.0, self._batch_wait_until - self._clock())

    def confirm_satisfied(self) -> None:
        self._transition(WatchState.SATISFIED, force=True)

    def reject_satisfied(self) -> None:
        self._transition(WatchState.POLLING, force=True)

    def dismiss_error(self) -> None:
        """Clear the last error; counters and timers are kept."""
        with self._lock:
            self._last_error = None
        if self.get_state() == WatchState.ERROR:
            self._transition(WatchState.POLLING)

    def _review_config(self, pr_number: int) -> ReviewConfig:
        return ReviewConfig(
            pr_number=pr_number,
            include_nits=self._options.include_nits,
            include_outdated=self._options.include_outdated,
            mark_addressed=self._options.mark_addressed,
        )

    def _fail(self, events: Channel["WatchEvent"], error: Exception, message: str) -> None:
        LOG.warning("%s: %s", message, error)
        with self._lock:
            self._last_error = str(error)
        self._transition(WatchState.ERROR)
        events.put(WatchEvent(type=WatchEventType.ERROR, message=message, error=str(error)))

    def start(self, pr_number: int, cancel: threading.Event | None = None) -> Channel[WatchEvent]:
        """Run the loop on a background thread; returns its events.

        The channel closes after a final cancelled event once cancel is set.
        """
        cancel = cancel or threading.Event()
        events: Channel[WatchEvent] = Channel(WATCH_EVENT_CAPACITY)
        self._transition(WatchState.POLLING)

        def loop() -> None:
            try:
                while True:
                    try:
                        self.check_for_changes(pr_number, events, cancel)
                    except Exception as e:
                        LOG.exception("Watch tick error: %s", e)
                        self._fail(events, e, "Watch tick failed")
                    if cancel.wait(self._options.poll_interval):
                        break
                events.put(WatchEvent(type=WatchEventType.CANCELLED, message="Watch stopped"))
            finally:
                events.close()

        threading.Thread(target=loop, name=f"watch-{pr_number}", daemon=True).start()
        return events

    def check_for_changes(self, pr_number: int, events: Channel[WatchEvent], cancel: threading.Event) -> None:
        """One tick of the loop."""
        with self._lock:
            state = self._state
            cooldown_until = self._cooldown_until

        if state == WatchState.PROCESSING:
            events.put(WatchEvent(type=WatchEventType.POLLING, message="Review in progress, waiting..."))
            return
        if state == WatchState.AWAITING_CONFIRMATION:
            events.put(WatchEvent(type=WatchEventType.POLLING, message="Awaiting confirmation"))
            return
        if state == WatchState.SATISFIED:
            return
        if state == WatchState.COOLDOWN:
            if self._clock() < cooldown_until:
                events.put(WatchEvent(type=WatchEventType.COOLDOWN, message="In cooldown period"))
                return
            self._transition(WatchState.POLLING)
        elif state in (WatchState.ERROR, WatchState.IDLE):
            self._transition(WatchState.POLLING)

        events.put(WatchEvent(type=WatchEventType.POLLING, message="Checking for new comments..."))
        config = self._review_config(pr_number)
        try:
            snapshot = self._service.fetch_snapshot(config)
        except ReviewError as e:
            self._fail(events, e, "Failed to fetch review data")
            return

        if self._reviewer_is_done(snapshot):
            if self._handle_possible_satisfaction(snapshot, events):
                return

        work = self._detect_work(snapshot)
        if work is None:
            events.put(WatchEvent(type=WatchEventType.POLLING, session=snapshot, message="Checking for updates..."))
            return
        events.put(WatchEvent(type=work, session=snapshot, message=self._describe(snapshot)))

        if self._options.batch_wait > 0:
            with self._lock:
                self._batch_wait_until = self._clock() + self._options.batch_wait
            self._transition(WatchState.BATCH_WAIT)
            events.put(WatchEvent(type=WatchEventType.BATCH_WAIT, message="Waiting for more comments to arrive..."))
            if cancel.wait(self._options.batch_wait):
                self._transition(WatchState.POLLING)
                return
            try:
                snapshot = self._service.fetch_snapshot(config)
            except ReviewError as e:
                self._fail(events, e, "Failed to fetch review data after batch wait")
                return
            with self._lock:
                self._last_comment_count = len(snapshot.comments)

        self._transition(WatchState.PROCESSING)
        try:
            session, thoughts = self._service.run_review_cycle(config, cancel)
        except ReviewError as e:
            self._fail(events, e, "Failed to start review")
            return

        events.put(
            WatchEvent(
                type=WatchEventType.PROCESSING,
                session=session,
                thoughts=thoughts,
                message="Processing new items...",
            )
        )
        threading.Thread(
            target=self._await_completion,
            args=(session, events, cancel),
            name=f"watch-cycle-{pr_number}",
            daemon=True,
        ).start()

    @staticmethod
    def _reviewer_is_done(snapshot: ReviewSession) -> bool:
        return (
            not snapshot.comments
            and not snapshot.ci_failures
            and snapshot.ci_all_complete
            and snapshot.reviewer_found
            and snapshot.reviewer_completed
        )

    def _handle_possible_satisfaction(self, snapshot: ReviewSession, events: Channel[WatchEvent]) -> bool:
        """Emit satisfied / confirmation events; True if the tick is done."""
        with self._lock:
            last = self._last_session
        try:
            if last is not None:
                verdict = self._service.check_satisfaction(last)
            else:
                verdict = self._service.check_satisfaction(snapshot, include_thoughts=False)
        except ReviewError as e:
            self._fail(events, e, "Failed to check satisfaction")
            return True
        if not verdict.is_satisfied:
            LOG.debug("Not satisfied yet: %s", "; ".join(verdict.action_required))
            return False

        if self._options.require_manual_confirm:
            self._transition(WatchState.AWAITING_CONFIRMATION)
            events.put(
                WatchEvent(
                    type=WatchEventType.MANUAL_CONFIRM_REQUIRED,
                    session=snapshot,
                    verdict=verdict,
                    message="Review appears satisfied. Confirm to exit watch mode.",
                )
            )
        else:
            self._transition(WatchState.SATISFIED)
            events.put(
                WatchEvent(
                    type=WatchEventType.SATISFIED,
                    session=snapshot,
                    verdict=verdict,
                    message="Reviewer is satisfied",
                )
            )
        return True

    def _detect_work(self, snapshot: ReviewSession) -> WatchEventType | None:
        """Event type for the work in snapshot, or None if there is none.

        CI failures alone run once per commit unless more failures appear.
        """
        with self._lock:
            new_comments = len(snapshot.comments) > self._last_comment_count
            new_ci_failures = len(snapshot.ci_failures) > self._last_ci_failure_count
            if snapshot.head_commit != self._last_commit:
                self._processed_ci_once = False
            self._last_commit = snapshot.head_commit
            self._last_comment_count = len(snapshot.comments)
            self._last_ci_failure_count = len(snapshot.ci_failures)

            if new_comments or snapshot.comments:
                return WatchEventType.NEW_COMMENTS
            if snapshot.ci_failures and (not self._processed_ci_once or new_ci_failures):
                self._processed_ci_once = True
                return WatchEventType.NEW_CI_FAILURES
        return None

    @staticmethod
    def _describe(snapshot: ReviewSession) -> str:
        parts = []
        if snapshot.comments:
            parts.append(f"{len(snapshot.comments)} comments to address")
        if snapshot.ci_failures:
            parts.append(f"{len(snapshot.ci_failures)} CI failures")
        return ", ".join(parts) or "New items"

    def _await_completion(self, session: ReviewSession, events: Channel[WatchEvent], cancel: threading.Event) -> None:
        while not session.wait_done(_COMPLETION_POLL_SECONDS):
            if cancel.is_set():
                return
        if session.status == ReviewStatus.FAILED:
            if not cancel.is_set():
                self._fail(events, RuntimeError(session.error or "agent run did not complete"), "Review failed")
            return

        if session.status == ReviewStatus.COMPLETED:
            with self._lock:
                self._last_session = session
        events.put(WatchEvent(type=WatchEventType.REVIEW_COMPLETE, session=session, message="Review iteration complete"))
        with self._lock:
            self._cooldown_until = self._clock() + self._options.cooldown
        self._transition(WatchState.COOLDOWN)
        events.put(WatchEvent(type=WatchEventType.COOLDOWN, message="Entering cooldown period"))
