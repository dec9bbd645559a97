from __future__ import annotations

import logging
from typing import Any

from .models import Comment, ConflictGroup

logger = logging.getLogger("tweaqengine.comments")


class CommentLog:
    """Live comment set fed by the collaboration stream's add/remove events."""

    def __init__(self) -> None:
        self._comments: dict[str, Comment] = {}
        self._handles: dict[str, Any] = {}
        self._last_sequence = 0

    def __len__(self) -> int:
        return len(self._comments)

    def __contains__(self, comment_id: object) -> bool:
        return comment_id in self._comments

    def add(self, comment: Comment, handle: Any | None = None) -> Comment:
        if comment.sequence <= 0:
            comment.sequence = self._last_sequence + 1
        self._last_sequence = max(self._last_sequence, comment.sequence)
        self._comments[comment.id] = comment
        if handle is not None:
            self._handles[comment.id] = handle
        else:
            self._handles.pop(comment.id, None)
        return comment

    def remove(self, comment_id: str) -> Comment | None:
        self._handles.pop(comment_id, None)
        removed = self._comments.pop(comment_id, None)
        if removed is None:
            logger.debug("Ignoring removal of unknown comment %s", comment_id)
        return removed

    def get(self, comment_id: str) -> Comment | None:
        return self._comments.get(comment_id)

    def handle_for(self, comment_id: str) -> Any | None:
        return self._handles.get(comment_id)

    def ordered(self) -> list[Comment]:
        return sorted(self._comments.values(), key=lambda item: (item.sequence, item.id))

    def fingerprint(self) -> frozenset[tuple[str, str]]:
        return frozenset((comment.id, comment.text) for comment in self._comments.values())

    def still_matches(self, group: ConflictGroup) -> bool:
        """True while every proposal of the group still comes from an unchanged live comment."""
        return group.fingerprint() <= self.fingerprint()
