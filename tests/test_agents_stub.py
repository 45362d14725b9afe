"""Tests for StubAgent (scripted replay, prompt recording)."""

import threading

from reviewwatch.agents.stub_agent import StubAgent, default_script
from reviewwatch.models import StreamEvent


def test_default_script_replayed() -> None:
    agent = StubAgent()
    events = list(agent.stream_run("prompt"))
    assert [e.type for e in events] == [e.type for e in default_script()]
    assert events[-1].is_complete
    assert agent.prompts == ["prompt"]
    assert agent.calls == 1


def test_custom_events() -> None:
    agent = StubAgent(events=[StreamEvent(type="result", result="ok")])
    assert [e.result for e in agent.stream_run("a")] == ["ok"]
    assert [e.result for e in agent.stream_run("b")] == ["ok"]
    assert agent.calls == 2


def test_empty_script_closes_stream() -> None:
    assert list(StubAgent(events=[]).stream_run("x")) == []


def test_availability_flag() -> None:
    assert StubAgent().is_available()
    assert not StubAgent(available=False).is_available()


def test_cancel_stops_replay() -> None:
    cancel = threading.Event()
    cancel.set()
    agent = StubAgent(events=[StreamEvent(type="result")] * 500)
    assert len(list(agent.stream_run("x", cancel))) < 500
