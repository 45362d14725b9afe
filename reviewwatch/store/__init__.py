"""Processed-comment tracking per pull request ({state_dir}/*.json)."""

from reviewwatch.store.comment_store import CommentStore, fingerprint, state_key
from reviewwatch.store.schemas import ConversationState, SeenInfo

__all__ = [
    "CommentStore",
    "ConversationState",
    "SeenInfo",
    "fingerprint",
    "state_key",
]
