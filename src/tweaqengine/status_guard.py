from __future__ import annotations

from dataclasses import dataclass, field

from .errors import EditBusy


@dataclass(slots=True)
class StatusGuard:
    """Edits handed to a publisher; they stay frozen until they reach a terminal status."""

    busy: set[str] = field(default_factory=set)

    def begin(self, edit_id: str) -> bool:
        if edit_id in self.busy:
            return False
        self.busy.add(edit_id)
        return True

    def is_busy(self, edit_id: str) -> bool:
        return edit_id in self.busy

    def ensure_idle(self, edit_id: str) -> None:
        if edit_id in self.busy:
            raise EditBusy(edit_id)

    def finish(self, edit_id: str) -> None:
        self.busy.discard(edit_id)
