from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Mapping

from .applicator import ChangeApplicator
from .errors import InvalidTransition, UnknownEdit
from .models import (
    ConflictInfo,
    Edit,
    EditOrigin,
    EditStatus,
    ElementDescriptor,
    EngineIssue,
    PropertyChange,
    edit_from_payload,
    edit_to_payload,
)
from .page_provider import PageProvider, is_gone
from .resolver import ElementResolver
from .selector_rules import normalize_property_name
from .status_guard import StatusGuard

logger = logging.getLogger("tweaqengine.ledger")

FORWARD_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"processing"}),
    "processing": frozenset({"completed", "failed"}),
    "completed": frozenset(),
    "failed": frozenset(),
}


@dataclass(slots=True)
class EditFilter:
    status: EditStatus | None = None
    visible: bool | None = None
    origin: EditOrigin | None = None
    has_conflict: bool | None = None

    def matches(self, edit: Edit) -> bool:
        if self.status is not None and edit.status != self.status:
            return False
        if self.visible is not None and edit.visible != self.visible:
            return False
        if self.origin is not None and edit.origin != self.origin:
            return False
        if self.has_conflict is not None and (edit.conflict is not None) != self.has_conflict:
            return False
        return True


def new_edit_id() -> str:
    return f"edit-{uuid.uuid4().hex[:12]}"


class EditLedger:
    """Insertion-ordered edits; every page write goes through the applicator from here."""

    def __init__(
        self,
        page: PageProvider,
        resolver: ElementResolver,
        applicator: ChangeApplicator | None = None,
        *,
        guard: StatusGuard | None = None,
    ) -> None:
        self.page = page
        self.resolver = resolver
        self.applicator = applicator or ChangeApplicator(page)
        self.guard = guard or StatusGuard()
        self._edits: dict[str, Edit] = {}
        self._handles: dict[str, Any] = {}
        self._element_keys: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._edits)

    def __iter__(self) -> Iterator[Edit]:
        return iter(list(self._edits.values()))

    def __contains__(self, edit_id: object) -> bool:
        return edit_id in self._edits

    def get(self, edit_id: str) -> Edit:
        edit = self._edits.get(edit_id)
        if edit is None:
            raise UnknownEdit(edit_id)
        return edit

    def list(self, edit_filter: EditFilter | None = None) -> list[Edit]:
        if edit_filter is None:
            return list(self._edits.values())
        return [edit for edit in self._edits.values() if edit_filter.matches(edit)]

    def element_key_for(self, edit_id: str) -> str | None:
        self.get(edit_id)
        return self._element_keys.get(edit_id)

    def handle_for(self, edit: Edit) -> Any | None:
        cached = self._handles.get(edit.id)
        if cached is not None and self.page.is_attached(cached):
            return cached
        handle = self.resolver.best_handle(edit.descriptor)
        if handle is None:
            self._handles.pop(edit.id, None)
            return None
        self._remember(edit.id, handle)
        return handle

    def _remember(self, edit_id: str, handle: Any) -> None:
        self._handles[edit_id] = handle
        key = self.page.node_key(handle)
        if not is_gone(key):
            self._element_keys[edit_id] = key

    # recording ------------------------------------------------------------------

    def record(
        self,
        descriptor: ElementDescriptor,
        changes: list[PropertyChange],
        origin: EditOrigin = "manual",
        *,
        handle: Any | None = None,
        instruction: str | None = None,
        conflict: ConflictInfo | None = None,
    ) -> Edit | None:
        if not changes:
            return None

        if handle is not None and not self.page.is_attached(handle):
            handle = None
        if handle is None:
            handle = self.resolver.best_handle(descriptor)

        edit = Edit(
            id=new_edit_id(),
            descriptor=descriptor,
            changes=[self._normalized(change) for change in changes],
            origin=origin,
            conflict=conflict,
            instruction=instruction,
        )

        if handle is None:
            edit.visible = False
            edit.add_issue(
                EngineIssue(
                    kind="unresolved_target",
                    message=f"No element matches {descriptor.selector!r}; the edit was recorded but not applied.",
                )
            )
            self._edits[edit.id] = edit
            logger.info("Recorded edit %s without a live element (%s)", edit.id, descriptor.selector)
            return edit

        self._remember(edit.id, handle)
        element_key = self._element_keys.get(edit.id)
        for change in edit.changes:
            captured = self._captured_before(element_key, change.property)
            if captured is not None:
                change.before = captured
                continue
            live = self.applicator.read(handle, change.property)
            if not is_gone(live):
                change.before = live

        self._edits[edit.id] = edit
        for issue in self.applicator.apply(handle, edit.changes):
            edit.add_issue(issue)
        logger.info(
            "Recorded edit %s on %s: %s",
            edit.id,
            descriptor.selector,
            ", ".join(f"{change.property}={change.after!r}" for change in edit.changes),
        )
        return edit

    def _normalized(self, change: PropertyChange) -> PropertyChange:
        return PropertyChange(
            property=normalize_property_name(change.property),
            before=change.before,
            after=change.after,
            source_refs=list(change.source_refs),
        )

    def _captured_before(self, element_key: str | None, property_name: str) -> Any | None:
        if element_key is None:
            return None
        for edit in self._edits.values():
            if not edit.visible:
                continue
            if self._element_keys.get(edit.id) != element_key:
                continue
            change = edit.change_for(property_name)
            if change is not None and change.before is not None:
                return change.before
        return None

    # visibility -----------------------------------------------------------------

    def set_visible(self, edit_id: str, visible: bool) -> Edit:
        edit = self.get(edit_id)
        self.guard.ensure_idle(edit_id)
        if edit.visible == visible:
            return edit

        handle = self.handle_for(edit)
        if handle is None:
            edit.add_issue(
                EngineIssue(
                    kind="unresolved_target",
                    message=f"Cannot {'show' if visible else 'hide'} edit: {edit.descriptor.selector!r} is not on the page.",
                )
            )
            logger.warning("Visibility change for %s skipped: element not found", edit.id)
            return edit

        edit.clear_issues("unresolved_target")
        if visible:
            issues = self.applicator.apply(handle, edit.changes)
        else:
            issues = self.applicator.revert(handle, edit.changes)
        edit.visible = visible
        for issue in issues:
            edit.add_issue(issue)
        self._reconcile(handle, edit_id, [change.property for change in edit.changes])
        return edit

    def toggle(self, edit_id: str) -> Edit:
        edit = self.get(edit_id)
        return self.set_visible(edit_id, not edit.visible)

    def toggle_element(self, element_key: str) -> list[Edit]:
        edits = [edit for edit in self._edits.values() if self._element_keys.get(edit.id) == element_key]
        if not edits:
            return []
        for edit in edits:
            self.guard.ensure_idle(edit.id)
        show = not any(edit.visible for edit in edits)
        # hide newest first so every revert lands on the value underneath it
        ordered = edits if show else list(reversed(edits))
        for edit in ordered:
            self.set_visible(edit.id, show)
        return edits

    def _reconcile(self, handle: Any, changed_edit_id: str, properties: list[str]) -> None:
        """Re-apply the latest visible edit per property so overlapping edits stay consistent."""
        element_key = self._element_keys.get(changed_edit_id)
        if element_key is None:
            return
        for property_name in properties:
            latest: PropertyChange | None = None
            for edit in self._edits.values():
                if not edit.visible or self._element_keys.get(edit.id) != element_key:
                    continue
                change = edit.change_for(property_name)
                if change is not None:
                    latest = change
            if latest is not None:
                self.applicator.write(handle, latest.property, latest.after)

    # removal / amendment --------------------------------------------------------

    def delete(self, edit_id: str) -> Edit:
        edit = self.get(edit_id)
        self.guard.ensure_idle(edit_id)
        handle = self.handle_for(edit) if edit.visible else None
        if edit.visible and handle is None:
            logger.info("Deleting %s without revert: element no longer resolves", edit_id)
        elif handle is not None:
            self.applicator.revert(handle, edit.changes)

        del self._edits[edit_id]
        if handle is not None:
            # the deleted edit's key is still cached so reconcile can find siblings
            self._reconcile(handle, edit_id, [change.property for change in edit.changes])
        self._handles.pop(edit_id, None)
        self._element_keys.pop(edit_id, None)
        logger.info("Deleted edit %s", edit_id)
        return edit

    def amend(self, edit_id: str, property_name: str, after: Any, *, source_ref: str | None = None) -> Edit:
        edit = self.get(edit_id)
        self.guard.ensure_idle(edit_id)
        name = normalize_property_name(property_name)
        change = edit.change_for(name)
        handle = self.handle_for(edit)
        if change is None:
            before = self.applicator.read(handle, name) if handle is not None else None
            change = PropertyChange(property=name, before=None if is_gone(before) else before, after=after)
            edit.changes.append(change)
        change.after = after
        if source_ref and source_ref not in change.source_refs:
            change.source_refs.append(source_ref)

        if edit.visible:
            if handle is None:
                edit.add_issue(
                    EngineIssue(
                        kind="stale_handle",
                        message=f"Element left the page before {name} could be written.",
                        property=name,
                    )
                )
            else:
                if not self.applicator.write(handle, name, after):
                    edit.add_issue(
                        EngineIssue(kind="stale_handle", message=f"Could not write {name}.", property=name)
                    )
                self._reconcile(handle, edit_id, [name])
        return edit

    # status ---------------------------------------------------------------------

    def transition(
        self,
        edit_id: str,
        new_status: EditStatus,
        *,
        result_ref: str | None = None,
        error: str | None = None,
    ) -> Edit:
        edit = self.get(edit_id)
        self._check_transition(edit, new_status)
        if new_status == "processing":
            self.guard.begin(edit_id)

        edit.status = new_status
        if new_status == "completed":
            edit.result_ref = result_ref
            edit.error = None
        elif new_status == "failed":
            edit.error = error or "Processing failed."
        if edit.is_terminal:
            self.guard.finish(edit_id)
        logger.info("Edit %s -> %s", edit_id, new_status)
        return edit

    def _check_transition(self, edit: Edit, new_status: EditStatus) -> None:
        if new_status not in FORWARD_TRANSITIONS[edit.status]:
            raise InvalidTransition(edit.id, edit.status, new_status)
        if new_status == "processing":
            self.guard.ensure_idle(edit.id)

    def begin_processing(self, edit_ids: Iterable[str]) -> list[Edit]:
        """Move a batch to processing; nothing moves unless every edit can."""
        edits = [self.get(edit_id) for edit_id in dict.fromkeys(edit_ids)]
        for edit in edits:
            self._check_transition(edit, "processing")
        for edit in edits:
            self.transition(edit.id, "processing")
        return edits

    def retry(self, edit_id: str) -> Edit:
        failed = self.get(edit_id)
        if failed.status != "failed" or not failed.changes:
            raise InvalidTransition(edit_id, failed.status, "pending")

        handle = self.handle_for(failed)
        if failed.visible:
            self.set_visible(edit_id, False)
        changes = [
            PropertyChange(
                property=change.property,
                before=change.before,
                after=change.after,
                source_refs=list(change.source_refs),
            )
            for change in failed.changes
        ]
        retried = self.record(
            failed.descriptor,
            changes,
            failed.origin,
            handle=handle,
            instruction=failed.instruction,
            conflict=copy.deepcopy(failed.conflict),
        )
        logger.info("Retried failed edit %s as %s", edit_id, retried.id)
        return retried

    # snapshots ------------------------------------------------------------------

    def snapshot(self) -> list[dict[str, Any]]:
        return [edit_to_payload(edit) for edit in self._edits.values()]

    def restore(self, payloads: list[Mapping[str, Any]]) -> list[Edit]:
        """Replace ledger contents with a snapshot; visible edits are re-applied to the page."""
        self._edits.clear()
        self._handles.clear()
        self._element_keys.clear()
        restored: list[Edit] = []
        for payload in payloads:
            edit = edit_from_payload(payload)
            if not edit.id:
                edit.id = new_edit_id()
            self._edits[edit.id] = edit
            restored.append(edit)
            handle = self.handle_for(edit)
            if not edit.visible:
                continue
            if handle is None:
                edit.visible = False
                edit.add_issue(
                    EngineIssue(
                        kind="unresolved_target",
                        message=f"No element matches {edit.descriptor.selector!r} after reload.",
                    )
                )
                continue
            for issue in self.applicator.apply(handle, edit.changes):
                edit.add_issue(issue)
        logger.info("Restored %d edit(s) from snapshot", len(restored))
        return restored
