"""
Stub agent: replays a fixed list of events, makes no changes.

Use for development and tests, or to dry-run the review loop without a
real agent CLI.
"""

import logging
import threading
from typing import List

from reviewwatch.agents.base import AgentRunner
from reviewwatch.channel import DEFAULT_CAPACITY, Channel
from reviewwatch.models import StreamEvent


def default_script() -> List[StreamEvent]:
    return [
        StreamEvent.model_validate(
            {
                "type": "assistant",
                "message": {"content": [{"type": "text", "text": "Reviewing comments (stub agent, no changes).\n"}]},
            }
        ),
        StreamEvent(type="result", subtype="success", result="Done."),
    ]


class StubAgent(AgentRunner):
    """Agent that streams scripted events and records the prompts it got."""

    def __init__(self, events: List[StreamEvent] | None = None, available: bool = True) -> None:
        self.events = default_script() if events is None else list(events)
        self.available = available
        self.prompts: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def is_available(self) -> bool:
        return self.available

    def stream_run(self, prompt: str, cancel: threading.Event | None = None) -> Channel[StreamEvent]:
        self.prompts.append(prompt)
        logging.getLogger("reviewwatch.agents.stub").info("Agent run (stub): %d events", len(self.events))
        out: Channel[StreamEvent] = Channel(DEFAULT_CAPACITY, cancel)

        def replay() -> None:
            try:
                for event in self.events:
                    if not out.put(event):
                        break
            finally:
                out.close()

        threading.Thread(target=replay, name="stub-agent", daemon=True).start()
        return out
