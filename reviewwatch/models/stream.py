"""Raw events emitted by the agent CLI in stream-json mode.

One JSON object per line: ``{"type": "system" | "assistant" | "user" |
"result", ...}``. Unknown fields are ignored so newer CLI versions still
parse.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field

from reviewwatch.errors import ErrorCode

# Error kinds after which the agent run is not finished
FATAL_ERROR_TYPES = frozenset({ErrorCode.AGENT_ERROR.value, ErrorCode.AGENT_TIMEOUT.value})


class ContentBlock(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    text: str = ""
    thinking: str = ""


class AssistantMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    role: str = "assistant"
    content: List[ContentBlock] = Field(default_factory=list)


class StreamError(BaseModel):
    type: str
    message: str


class StreamEvent(BaseModel):
    """One line of agent output."""

    model_config = ConfigDict(extra="ignore")

    type: str
    subtype: str = ""
    message: AssistantMessage | None = None
    result: str = ""
    is_error: bool = False
    error: StreamError | None = None

    @classmethod
    def failure(cls, kind: str, message: str) -> "StreamEvent":
        """Transport-level error event (parse failure, timeout, crash)."""
        return cls(type="error", error=StreamError(type=kind, message=message))

    @property
    def text(self) -> str:
        """Concatenated text and thinking blocks, or the final result."""
        if self.type == "assistant" and self.message is not None:
            parts = []
            for block in self.message.content:
                if block.type == "text" and block.text:
                    parts.append(block.text)
                elif block.type == "thinking" and block.thinking:
                    parts.append(block.thinking)
            return "".join(parts)
        if self.type == "result":
            return self.result
        return ""

    @property
    def is_complete(self) -> bool:
        return self.type == "result"

    @property
    def is_stream_error(self) -> bool:
        return self.is_error or self.error is not None

    @property
    def fatal_error(self) -> StreamError | None:
        """The error if this event means the agent did not finish its run."""
        if self.error is not None:
            return self.error if self.error.type in FATAL_ERROR_TYPES else None
        if self.is_complete and self.is_error:
            return StreamError(type=ErrorCode.AGENT_ERROR.value, message=self.result or self.subtype or "agent run failed")
        return None
