"""
Claude Code CLI agent: headless mode with stream-json output.

The prompt is passed after ``--`` so it is never parsed as a flag. Each
stdout line is one JSON event; stderr is drained separately and logged at
DEBUG so a chatty CLI cannot block on a full pipe.
"""

import logging
import shutil
import subprocess
import threading
import time
from typing import List

from pydantic import ValidationError

from reviewwatch.agents.base import AgentRunner
from reviewwatch.channel import DEFAULT_CAPACITY, Channel
from reviewwatch.config import DEFAULT_AGENT_ARGS, AgentConfig
from reviewwatch.errors import AgentError, AgentUnavailableError, ErrorCode, InvalidConfigError
from reviewwatch.models import StreamEvent

_TERMINATE_GRACE_SECONDS = 5
_SUPERVISE_POLL_SECONDS = 0.1


class ClaudeCLIAgent(AgentRunner):
    """Run ``claude -p`` and stream its events."""

    def __init__(
        self,
        command: str = "claude",
        args: List[str] | None = None,
        timeout: int = 1800,
        working_directory: str = ".",
        log: logging.Logger | None = None,
    ) -> None:
        self.command = command
        self.args = list(DEFAULT_AGENT_ARGS if args is None else args)
        self.timeout = timeout
        self.working_directory = working_directory
        self._log = log or logging.getLogger("reviewwatch.agents.claude_cli")

    def is_available(self) -> bool:
        return shutil.which(self.command) is not None

    def build_command(self, prompt: str) -> List[str]:
        return [self.command, *self.args, "--", prompt]

    def stream_run(self, prompt: str, cancel: threading.Event | None = None) -> Channel[StreamEvent]:
        cancel = cancel or threading.Event()
        cmd = self.build_command(prompt)
        self._log.info("Running agent CLI: %s (timeout=%ss)", self.command, self.timeout)
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=self.working_directory,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1,
            )
        except FileNotFoundError as e:
            raise AgentUnavailableError(self.command) from e
        except OSError as e:
            raise AgentError(f"failed to start {self.command}", e) from e

        events: Channel[StreamEvent] = Channel(DEFAULT_CAPACITY, cancel)
        run = _Run(proc, events, cancel, self.timeout, self._log)
        run.start()
        return events


class _Run:
    """Threads of one agent process: stdout reader, stderr drain, supervisor."""

    def __init__(
        self,
        proc: subprocess.Popen,
        events: Channel[StreamEvent],
        cancel: threading.Event,
        timeout: float,
        log: logging.Logger,
    ) -> None:
        self._proc = proc
        self._events = events
        self._cancel = cancel
        self._timeout = timeout
        self._log = log
        self._exited = threading.Event()
        self._timed_out = False

    def start(self) -> None:
        self._stderr_thread = threading.Thread(target=self._drain_stderr, name="agent-stderr", daemon=True)
        self._stderr_thread.start()
        threading.Thread(target=self._read_stdout, name="agent-stdout", daemon=True).start()
        threading.Thread(target=self._supervise, name="agent-supervisor", daemon=True).start()

    def _drain_stderr(self) -> None:
        if self._proc.stderr is None:
            return
        for line in self._proc.stderr:
            line = line.rstrip()
            if line:
                self._log.debug("agent stderr: %s", line)

    def _read_stdout(self) -> None:
        try:
            for line in self._proc.stdout or ():
                line = line.strip()
                if not line:
                    continue
                try:
                    event = StreamEvent.model_validate_json(line)
                except ValidationError as e:
                    event = StreamEvent.failure(ErrorCode.JSON_PARSE.value, f"invalid event: {e.errors()[0]['msg']}")
                if not self._events.put(event):
                    break
            self._stderr_thread.join()
            code = self._proc.wait()
            if self._timed_out:
                self._events.put(
                    StreamEvent.failure(ErrorCode.AGENT_TIMEOUT.value, f"agent timed out after {self._timeout}s")
                )
            elif code != 0 and not self._cancel.is_set():
                self._log.warning("Agent CLI exited with code %s", code)
                self._events.put(StreamEvent.failure(ErrorCode.AGENT_ERROR.value, f"agent exited with code {code}"))
        finally:
            self._exited.set()
            self._events.close()

    def _supervise(self) -> None:
        deadline = time.monotonic() + self._timeout
        while not self._exited.wait(_SUPERVISE_POLL_SECONDS):
            if self._cancel.is_set():
                self._log.info("Agent run cancelled")
                self._terminate()
                return
            if time.monotonic() >= deadline:
                self._log.warning("Agent CLI timed out after %s seconds", self._timeout)
                self._timed_out = True
                self._terminate()
                return

    def _terminate(self) -> None:
        self._proc.terminate()
        try:
            self._proc.wait(timeout=_TERMINATE_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            self._proc.kill()


def make_agent(config: AgentConfig) -> AgentRunner:
    """Build the agent runner named by config.kind."""
    if config.kind == "claude_cli":
        return ClaudeCLIAgent(
            command=config.command,
            args=config.args,
            timeout=config.timeout,
            working_directory=config.working_directory,
        )
    if config.kind == "stub":
        from reviewwatch.agents.stub_agent import StubAgent

        return StubAgent()
    raise InvalidConfigError(f"unknown agent kind {config.kind!r}")
