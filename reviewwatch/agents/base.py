"""Abstract interface for the AI agent that addresses review comments."""

import threading
from abc import ABC, abstractmethod

from reviewwatch.channel import Channel
from reviewwatch.models import StreamEvent


class AgentRunner(ABC):
    """Runs the agent on a prompt and streams its structured output."""

    @abstractmethod
    def is_available(self) -> bool:
        """True if the agent can be started (e.g. CLI binary on PATH)."""
        ...

    @abstractmethod
    def stream_run(self, prompt: str, cancel: threading.Event | None = None) -> Channel[StreamEvent]:
        """Start the agent and return its events.

        The channel is closed when the agent exits. Setting cancel stops
        the agent. Raises AgentUnavailableError if it cannot be started.
        """
        ...
