"""Processed-comment record as stored in {state_dir}/{key}.json."""

from typing import Dict, List

from pydantic import BaseModel, Field


class SeenInfo(BaseModel):
    """Last known update time and fingerprint of a comment."""

    updated_at: str = Field(default="", description="ISO timestamp of the comment's last update")
    fingerprint: str = Field(default="", description="sha1 of path|line|body")

    model_config = {"extra": "ignore"}


class ConversationState(BaseModel):
    """Dedup state for one pull request."""

    key: str = Field(default="", description="owner/repo#number")
    processed_comment_ids: List[int] = Field(default_factory=list)
    processed_fingerprints: List[str] = Field(default_factory=list)
    seen_comments: Dict[int, SeenInfo] = Field(default_factory=dict)
    last_review_timestamp: str | None = Field(default=None, description="Last fully handled review cycle")

    model_config = {"extra": "ignore"}
