"""Processed-comment storage: one JSON document per pull request.

A comment counts as processed when either its ID or its content
fingerprint has been recorded. Matching by fingerprint keeps a comment
processed when the reviewer re-posts identical content under a new
(often synthetic) ID. The files are human-readable and safe to delete to
force full reprocessing.
"""

import hashlib
import logging
import os
import re
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterable, List

from pydantic import ValidationError

from reviewwatch.errors import StoreError
from reviewwatch.models.comment import GENERAL, Comment
from reviewwatch.store.schemas import ConversationState, SeenInfo

LOG = logging.getLogger("reviewwatch.store.comment_store")


def fingerprint(path: str, line: int, body: str) -> str:
    """sha1 hex of ``path|line|body``; empty path becomes GENERAL."""
    data = f"{path or GENERAL}|{line}|{body}"
    return hashlib.sha1(data.encode("utf-8")).hexdigest()


def comment_fingerprint(comment: Comment) -> str:
    return fingerprint(comment.path, comment.line, comment.body)


def state_key(repository: str, pr_number: int) -> str:
    """Key for a PR in the state store, e.g. owner/repo#123."""
    return f"{repository}#{pr_number}"


def _timestamp(value: datetime | None) -> str:
    return value.isoformat() if value is not None else ""


class CommentStore:
    """Per-PR dedup state under a directory, guarded by one lock.

    Load/save calls are rare (about one per poll interval), so a single
    coarse lock around every read-modify-write is enough.
    """

    def __init__(self, directory: Path | str) -> None:
        self._dir = Path(directory).expanduser()
        self._lock = threading.RLock()

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, key: str) -> Path:
        name = re.sub(r"[^A-Za-z0-9_.-]+", "_", key).strip("_") or "default"
        return self._dir / f"{name}.json"

    def load(self, key: str) -> ConversationState:
        """Stored state for key, or an empty state if there is none.

        Raises StoreError if the file exists but cannot be read or parsed.
        """
        path = self.path_for(key)
        with self._lock:
            if not path.is_file():
                return ConversationState(key=key)
            try:
                raw = path.read_text(encoding="utf-8")
            except OSError as e:
                raise StoreError(f"failed to read state file {path}", e) from e
            if not raw.strip():
                return ConversationState(key=key)
            try:
                state = ConversationState.model_validate_json(raw)
            except ValidationError as e:
                raise StoreError(f"failed to parse state file {path}", e) from e
        if not state.key:
            state.key = key
        return state

    def save(self, key: str, state: ConversationState) -> Path:
        """Write state for key. Creates the directory if needed."""
        path = self.path_for(key)
        state.key = key
        payload = state.model_dump_json(indent=2, exclude_none=True)
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp = path.with_suffix(".json.tmp")
                tmp.write_text(payload + "\n", encoding="utf-8")
                os.replace(tmp, path)
            except OSError as e:
                raise StoreError(f"failed to write state file {path}", e) from e
        LOG.debug("Saved state for %s to %s", key, path)
        return path

    def reset(self, key: str) -> None:
        """Forget everything recorded for key."""
        path = self.path_for(key)
        with self._lock:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise StoreError(f"failed to delete state file {path}", e) from e
        LOG.info("Reset state for %s", key)

    @staticmethod
    def is_processed(state: ConversationState, comment: Comment) -> bool:
        if comment.id in state.processed_comment_ids:
            return True
        return comment_fingerprint(comment) in state.processed_fingerprints

    @staticmethod
    def has_changed(state: ConversationState, comment: Comment) -> bool:
        """True if never seen, or its update time or fingerprint moved.

        Informational only; a changed comment that is already processed is
        not reprocessed (the reviewer bumps timestamps on every re-review).
        """
        seen = state.seen_comments.get(comment.id)
        if seen is None:
            return True
        if comment.updated_at is not None and seen.updated_at != _timestamp(comment.updated_at):
            return True
        return seen.fingerprint != comment_fingerprint(comment)

    def filter_unprocessed(self, state: ConversationState, comments: Iterable[Comment]) -> List[Comment]:
        """Comments not yet processed, in their original order."""
        return [c for c in comments if not self.is_processed(state, c)]

    def mark_processed(
        self,
        key: str,
        comments: Iterable[Comment],
        review_timestamp: str | None = None,
    ) -> ConversationState:
        """Record comments as processed and persist. Safe to repeat."""
        with self._lock:
            state = self.load(key)
            ids = set(state.processed_comment_ids)
            hashes = set(state.processed_fingerprints)
            for comment in comments:
                digest = comment_fingerprint(comment)
                if comment.id not in ids:
                    ids.add(comment.id)
                    state.processed_comment_ids.append(comment.id)
                if digest not in hashes:
                    hashes.add(digest)
                    state.processed_fingerprints.append(digest)
                state.seen_comments[comment.id] = SeenInfo(
                    updated_at=_timestamp(comment.updated_at),
                    fingerprint=digest,
                )
            if review_timestamp:
                state.last_review_timestamp = review_timestamp
            self.save(key, state)
        return state
