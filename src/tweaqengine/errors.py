from __future__ import annotations


class EngineError(Exception):
    """Raised only for host programming errors; runtime failures are data."""


class UnknownEdit(EngineError, KeyError):
    def __init__(self, edit_id: str) -> None:
        super().__init__(f"Unknown edit: {edit_id}")
        self.edit_id = edit_id


class UnknownConflict(EngineError, KeyError):
    def __init__(self, conflict_id: str) -> None:
        super().__init__(f"No conflict recorded for: {conflict_id}")
        self.conflict_id = conflict_id


class InvalidTransition(EngineError):
    def __init__(self, edit_id: str, current: str, requested: str) -> None:
        super().__init__(f"Edit {edit_id} cannot move from {current} to {requested}.")
        self.edit_id = edit_id
        self.current = current
        self.requested = requested


class EditBusy(EngineError):
    def __init__(self, edit_id: str) -> None:
        super().__init__(f"Edit {edit_id} is being processed and cannot change until publishing finishes.")
        self.edit_id = edit_id


class OracleUnavailable(RuntimeError):
    """Raised by oracle implementations when no decision can be produced."""
