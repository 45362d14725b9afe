"""Filtered, classified unit of the agent's natural-language output."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ThoughtType(str, Enum):
    THINKING = "thinking"
    SUGGESTION = "suggestion"
    ANALYSIS = "analysis"
    PROGRESS = "progress"


class Thought(BaseModel):
    content: str
    type: ThoughtType = ThoughtType.THINKING
    file: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)
