"""Data models for comments, CI status, thoughts and review sessions (Pydantic)."""

from reviewwatch.models.ci import CIAnnotation, CIFailure, CIStatus
from reviewwatch.models.comment import GENERAL, Comment
from reviewwatch.models.pr import PullRequest
from reviewwatch.models.review import ReviewSession, ReviewStatus
from reviewwatch.models.stream import ContentBlock, StreamError, StreamEvent
from reviewwatch.models.thought import Thought, ThoughtType

__all__ = [
    "GENERAL",
    "CIAnnotation",
    "CIFailure",
    "CIStatus",
    "Comment",
    "ContentBlock",
    "PullRequest",
    "ReviewSession",
    "ReviewStatus",
    "StreamError",
    "StreamEvent",
    "Thought",
    "ThoughtType",
]
