"""Turn raw agent events into classified prose, dropping code.

The agent interleaves explanation with file dumps and edits. Only the
explanation is shown; each line is tagged with the file currently being
discussed, which sticks until another file is mentioned.
"""

import logging
import threading
from datetime import datetime
from typing import Iterable, List

from reviewwatch.channel import DEFAULT_CAPACITY, Channel
from reviewwatch.models import StreamError, StreamEvent, Thought, ThoughtType
from reviewwatch.services import rules

LOG = logging.getLogger("reviewwatch.services.thought_filter")


class ThoughtFilter:
    """Line splitter, code detector and classifier over a stream of events."""

    def __init__(
        self,
        code_rules: List[rules.Rule] | None = None,
        thought_rules: List[rules.Rule] | None = None,
        file_rules: List[rules.Rule] | None = None,
        max_line_length: int = rules.MAX_PROSE_LINE,
    ) -> None:
        self.code_rules = rules.CODE_RULES if code_rules is None else code_rules
        self.thought_rules = rules.THOUGHT_RULES if thought_rules is None else thought_rules
        self.file_rules = rules.FILE_REFERENCE_RULES if file_rules is None else file_rules
        self.max_line_length = max_line_length
        self.current_file = ""
        self._buffer = ""
        self.errors: List[StreamError] = []

    def reset(self) -> None:
        self.current_file = ""
        self._buffer = ""
        self.errors = []

    def is_code(self, line: str) -> bool:
        if len(line) > self.max_line_length:
            return True
        return rules.first_match(self.code_rules, line) is not None

    def classify(self, line: str) -> ThoughtType:
        label = rules.first_match(self.thought_rules, line)
        return ThoughtType(label) if label else ThoughtType.THINKING

    def extract_file_reference(self, line: str) -> str:
        return rules.first_capture(self.file_rules, line)

    def process_line(self, line: str) -> Thought | None:
        """Thought for one line of text, or None if it is blank or code."""
        line = line.strip()
        if not line or self.is_code(line):
            return None
        ref = self.extract_file_reference(line)
        if ref:
            self.current_file = ref
        return Thought(
            content=line,
            type=self.classify(line),
            file=self.current_file,
            timestamp=datetime.now(),
        )

    def feed(self, text: str) -> List[Thought]:
        """Buffer text and return thoughts for every completed line."""
        self._buffer += text
        *lines, self._buffer = self._buffer.split("\n")
        return [t for t in map(self.process_line, lines) if t is not None]

    def flush(self) -> List[Thought]:
        """Thought for the trailing partial line, if any."""
        rest, self._buffer = self._buffer, ""
        thought = self.process_line(rest)
        return [thought] if thought is not None else []

    def thoughts_for(self, event: StreamEvent) -> List[Thought]:
        if event.is_stream_error or event.type == "system":
            return []
        thoughts = self.feed(event.text) if event.text else []
        if event.is_complete:
            thoughts.extend(self.flush())
        return thoughts

    def filter(self, events: Iterable[StreamEvent], cancel: threading.Event | None = None) -> Channel[Thought]:
        """Consume events on a background thread, streaming thoughts out.

        Errors that end the agent run are collected in ``errors`` before the
        returned channel closes.
        """
        self.reset()
        out: Channel[Thought] = Channel(DEFAULT_CAPACITY, cancel)

        def run() -> None:
            try:
                for event in events:
                    if event.is_stream_error and event.error is not None:
                        LOG.warning("Agent stream error (%s): %s", event.error.type, event.error.message)
                    fatal = event.fatal_error
                    if fatal is not None:
                        self.errors.append(fatal)
                    for thought in self.thoughts_for(event):
                        if not out.put(thought):
                            return
                for thought in self.flush():
                    out.put(thought)
            finally:
                out.close()

        threading.Thread(target=run, name="thought-filter", daemon=True).start()
        return out
