"""Tests for data models (comments, CI status, stream events, sessions)."""

import pytest

from reviewwatch.models import (
    CIAnnotation,
    CIFailure,
    CIStatus,
    Comment,
    PullRequest,
    ReviewSession,
    ReviewStatus,
    StreamEvent,
    Thought,
)
from reviewwatch.models.review import IllegalTransitionError, can_transition


class TestComment:
    def test_effective_body_prefers_ai_prompt(self) -> None:
        assert Comment(id=1, body="long body", ai_prompt="short").effective_body == "short"
        assert Comment(id=1, body="long body").effective_body == "long body"

    def test_location(self) -> None:
        assert Comment(id=1, body="b").location == "GENERAL"
        assert Comment(id=1, body="b", path="a.py").location == "a.py"
        assert Comment(id=1, body="b", path="a.py", line=4).location == "a.py:4"

    def test_synthetic_ids(self) -> None:
        assert Comment(id=-1000, body="b").is_synthetic
        assert not Comment(id=12, body="b").is_synthetic


class TestCI:
    def test_line_range(self) -> None:
        assert CIAnnotation(start_line=3, end_line=3).line_range == "L3"
        assert CIAnnotation(start_line=3, end_line=9).line_range == "L3-9"

    def test_status_completion(self) -> None:
        assert CIStatus().all_passed
        assert not CIStatus(pending_count=1).all_complete
        status = CIStatus(failures=[CIFailure(check_name="tests")])
        assert status.all_complete and not status.all_passed


class TestStreamEvent:
    def test_assistant_text_and_thinking(self) -> None:
        event = StreamEvent.model_validate_json(
            '{"type":"assistant","message":{"id":"m1","content":['
            '{"type":"thinking","thinking":"Hmm. "},'
            '{"type":"tool_use","id":"t1","name":"Edit"},'
            '{"type":"text","text":"Fixing it."}]},"session_id":"s"}'
        )
        assert event.text == "Hmm. Fixing it."
        assert not event.is_complete

    def test_result_event(self) -> None:
        event = StreamEvent.model_validate_json('{"type":"result","subtype":"success","result":"All done"}')
        assert event.is_complete
        assert event.text == "All done"

    def test_failure_factory(self) -> None:
        event = StreamEvent.failure("agent_timeout", "too slow")
        assert event.is_stream_error
        assert event.error is not None and event.error.type == "agent_timeout"
        assert event.text == ""


@pytest.mark.parametrize(
    ("event", "fatal"),
    [
        (StreamEvent.failure("agent_error", "exit 1"), "agent_error"),
        (StreamEvent.failure("agent_timeout", "too slow"), "agent_timeout"),
        (StreamEvent.failure("json_parse_error", "bad line"), None),
        (StreamEvent(type="result", subtype="error_max_turns", is_error=True), "agent_error"),
        (StreamEvent(type="result", result="Done"), None),
    ],
)
def test_fatal_error(event: StreamEvent, fatal: str | None) -> None:
    """Only crashes, timeouts and error results end the run."""
    error = event.fatal_error
    assert (error.type if error is not None else None) == fatal


class TestReviewSession:
    def test_key(self) -> None:
        assert ReviewSession(pr_number=3, repository="o/r").key == "o/r#3"

    def test_terminal_status_sets_done(self) -> None:
        session = ReviewSession(pr_number=3, repository="o/r")
        assert not session.wait_done(0)
        session.advance(ReviewStatus.FETCHING, strict=True)
        session.advance(ReviewStatus.REVIEWING, strict=True)
        session.mark_completed()
        assert session.is_done
        assert session.completed_at is not None
        assert session.wait_done(0)

    def test_strict_rejects_illegal_transition(self) -> None:
        session = ReviewSession(pr_number=3, repository="o/r")
        with pytest.raises(IllegalTransitionError):
            session.advance(ReviewStatus.COMPLETED, strict=True)
        assert session.status == ReviewStatus.PENDING

    def test_terminal_states_are_final(self) -> None:
        for terminal in (ReviewStatus.COMPLETED, ReviewStatus.SATISFIED, ReviewStatus.FAILED):
            for target in ReviewStatus:
                assert not can_transition(terminal, target)

    def test_add_thought_tracks_counters(self) -> None:
        session = ReviewSession(pr_number=3, repository="o/r")
        session.add_thought(Thought(content="a", file="x.py"))
        session.add_thought(Thought(content="b"))
        assert session.processed_count == 2
        assert session.current_file == "x.py"

    def test_apply_pull_request_and_ci(self) -> None:
        session = ReviewSession(pr_number=3, repository="o/r")
        session.apply_pull_request(PullRequest(number=3, title="T", branch="feat", head_commit="abc", author="me"))
        session.apply_ci_status(CIStatus(pending_count=2, pending_names=["a", "b"], reviewer_found=True))
        assert session.branch == "feat"
        assert session.head_commit == "abc"
        assert session.ci_pending_names == ["a", "b"]
        assert not session.ci_all_complete
        assert session.reviewer_found and not session.reviewer_completed
