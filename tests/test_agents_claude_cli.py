"""Tests for ClaudeCLIAgent (stream-json parsing, exit codes, cancel, timeout)."""

import io
import json
import threading
from unittest.mock import MagicMock

import pytest

from reviewwatch.agents import ClaudeCLIAgent, StubAgent, make_agent
from reviewwatch.config import DEFAULT_AGENT_ARGS, AgentConfig
from reviewwatch.errors import AgentError, AgentUnavailableError, InvalidConfigError


def _line(event: dict) -> str:
    return json.dumps(event) + "\n"


ASSISTANT = _line({"type": "assistant", "message": {"content": [{"type": "text", "text": "Fixing it.\n"}]}})
RESULT = _line({"type": "result", "subtype": "success", "result": "Done.", "session_id": "s1"})


class _BlockingStdout:
    """stdout that yields nothing until released (process killed)."""

    def __init__(self) -> None:
        self.released = threading.Event()

    def __iter__(self):
        self.released.wait(5)
        return iter(())


def _proc(stdout, returncode: int = 0, stderr: str = "") -> MagicMock:
    proc = MagicMock()
    proc.stdout = stdout
    proc.stderr = io.StringIO(stderr)
    proc.wait.return_value = returncode
    return proc


def test_build_command_puts_prompt_last() -> None:
    agent = ClaudeCLIAgent(command="claude", args=["-p", "--output-format", "stream-json"])
    assert agent.build_command("--fix everything") == [
        "claude",
        "-p",
        "--output-format",
        "stream-json",
        "--",
        "--fix everything",
    ]
    assert ClaudeCLIAgent().args == list(DEFAULT_AGENT_ARGS)


def test_is_available(mocker: MagicMock) -> None:
    mocker.patch("reviewwatch.agents.claude_cli_agent.shutil.which", return_value=None)
    assert not ClaudeCLIAgent(command="missing").is_available()


def test_streams_events(tmp_path, mocker: MagicMock) -> None:
    popen = mocker.patch("reviewwatch.agents.claude_cli_agent.subprocess.Popen")
    popen.return_value = _proc(io.StringIO(ASSISTANT + "\n" + RESULT), stderr="warming up\n")
    agent = ClaudeCLIAgent(command="claude", working_directory=str(tmp_path))

    events = list(agent.stream_run("do it"))

    assert [e.type for e in events] == ["assistant", "result"]
    assert events[0].text == "Fixing it.\n"
    assert events[1].is_complete
    assert popen.call_args[0][0][-2:] == ["--", "do it"]
    assert popen.call_args[1]["cwd"] == str(tmp_path)


def test_invalid_line_becomes_error_event(mocker: MagicMock) -> None:
    mocker.patch("reviewwatch.agents.claude_cli_agent.subprocess.Popen").return_value = _proc(
        io.StringIO("not json\n" + RESULT)
    )
    events = list(ClaudeCLIAgent().stream_run("x"))
    assert events[0].is_stream_error
    assert events[0].error.type == "json_parse_error"
    assert events[1].type == "result"


def test_nonzero_exit_appends_error(mocker: MagicMock) -> None:
    mocker.patch("reviewwatch.agents.claude_cli_agent.subprocess.Popen").return_value = _proc(
        io.StringIO(ASSISTANT), returncode=2
    )
    events = list(ClaudeCLIAgent().stream_run("x"))
    assert events[-1].error is not None
    assert events[-1].error.type == "agent_error"
    assert "code 2" in events[-1].error.message


def test_missing_binary(mocker: MagicMock) -> None:
    mocker.patch("reviewwatch.agents.claude_cli_agent.subprocess.Popen", side_effect=FileNotFoundError("claude"))
    with pytest.raises(AgentUnavailableError):
        ClaudeCLIAgent().stream_run("x")


def test_start_failure(mocker: MagicMock) -> None:
    mocker.patch("reviewwatch.agents.claude_cli_agent.subprocess.Popen", side_effect=PermissionError("denied"))
    with pytest.raises(AgentError):
        ClaudeCLIAgent().stream_run("x")


def test_cancel_terminates_process(mocker: MagicMock) -> None:
    stdout = _BlockingStdout()
    proc = _proc(stdout, returncode=-15)
    proc.terminate.side_effect = stdout.released.set
    mocker.patch("reviewwatch.agents.claude_cli_agent.subprocess.Popen").return_value = proc
    cancel = threading.Event()

    events = ClaudeCLIAgent().stream_run("x", cancel)
    cancel.set()

    assert list(events) == []
    assert stdout.released.wait(2)
    proc.terminate.assert_called_once()


def test_timeout_terminates_and_reports(mocker: MagicMock) -> None:
    stdout = _BlockingStdout()
    proc = _proc(stdout, returncode=-15)
    proc.terminate.side_effect = stdout.released.set
    mocker.patch("reviewwatch.agents.claude_cli_agent.subprocess.Popen").return_value = proc

    events = list(ClaudeCLIAgent(timeout=0.2).stream_run("x"))

    proc.terminate.assert_called_once()
    assert len(events) == 1
    assert events[0].error.type == "agent_timeout"


def test_make_agent() -> None:
    agent = make_agent(AgentConfig(command="my-claude", args=["-p"], timeout=60))
    assert isinstance(agent, ClaudeCLIAgent)
    assert agent.command == "my-claude"
    assert agent.timeout == 60
    assert isinstance(make_agent(AgentConfig(kind="stub")), StubAgent)
    with pytest.raises(InvalidConfigError):
        make_agent(AgentConfig(kind="gpt"))
