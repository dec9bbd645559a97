from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Mapping, Protocol, Union

from .applicator import ChangeApplicator
from .comments import CommentLog
from .config import EngineConfig
from .conflict_detector import ConflictDetector, DetectionResult, proposal_order
from .conflict_resolver import FALLBACK_REASON, ConflictResolver, ResolutionOracle, SupersededResolution
from .edit_store import EditStore
from .errors import EngineError, UnknownConflict
from .instructions import Interpretation, extract_proposals, interpret_instruction
from .ledger import EditFilter, EditLedger
from .models import (
    Comment,
    ConflictGroup,
    ConflictInfo,
    Edit,
    ElementDescriptor,
    EngineIssue,
    PropertyChange,
    Proposal,
)
from .page_provider import PageProvider, is_gone
from .resolver import ElementResolver, ResolutionOutcome
from .stabilizer import build_descriptor
from .target_text import is_button_like, parse_target_phrase

PublishStatus = Literal["completed", "failed"]


@dataclass(slots=True)
class PublishReport:
    status: PublishStatus
    reference: str | None = None
    message: str | None = None


class Publisher(Protocol):
    async def publish(self, edits: list[Edit]) -> PublishReport: ...


@dataclass(slots=True)
class InstructionResult:
    outcome: ResolutionOutcome
    edits: list[Edit] = field(default_factory=list)
    interpretations: list[Interpretation] = field(default_factory=list)
    issues: list[EngineIssue] = field(default_factory=list)


@dataclass(slots=True)
class ConversionReport:
    edits: list[Edit] = field(default_factory=list)
    conflicts: list[ConflictInfo] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    ambiguous: list[str] = field(default_factory=list)
    uninterpreted: list[str] = field(default_factory=list)
    superseded: list[str] = field(default_factory=list)
    issues: list[EngineIssue] = field(default_factory=list)


ChangesInput = Union[list[PropertyChange], Mapping[str, Any]]


def as_changes(changes: ChangesInput) -> list[PropertyChange]:
    if isinstance(changes, Mapping):
        return [PropertyChange(property=str(name), before=None, after=value) for name, value in changes.items()]
    return list(changes)


class TweaqEngine:
    def __init__(
        self,
        page: PageProvider,
        oracle: ResolutionOracle | None = None,
        publisher: Publisher | None = None,
        *,
        config: EngineConfig | None = None,
        store: EditStore | None = None,
        page_url: str = "",
        logger: logging.Logger | None = None,
    ) -> None:
        self.page = page
        self.publisher = publisher
        self.config = config or EngineConfig()
        self.store = store
        self.page_url = page_url
        self.logger = logger or logging.getLogger("tweaqengine.engine")

        self.resolver = ElementResolver(
            page,
            confidence_floor=self.config.confidence_floor,
            singular_top_k=self.config.singular_top_k,
            plural_top_k=self.config.plural_top_k,
        )
        self.applicator = ChangeApplicator(page)
        self.ledger = EditLedger(page, self.resolver, self.applicator)
        self.detector = ConflictDetector(page, self.resolver)
        self.conflicts = ConflictResolver(
            oracle,
            self.ledger,
            alternatives_cap=self.config.alternatives_cap,
            timeout_sec=self.config.oracle_timeout_sec,
        )
        self.comments = CommentLog()
        self.last_conversion: ConversionReport | None = None

    # targeting --------------------------------------------------------------------

    def resolve_target(self, target: ElementDescriptor | str) -> ResolutionOutcome:
        return self.resolver.resolve_outcome(target)

    # recording --------------------------------------------------------------------

    def record_manual_edit(
        self,
        descriptor: ElementDescriptor,
        changes: ChangesInput,
        *,
        handle: Any | None = None,
    ) -> Edit | None:
        return self.ledger.record(descriptor, as_changes(changes), "manual", handle=handle)

    def record_from_instruction(self, target: str, specifics: str | ChangesInput) -> InstructionResult:
        outcome = self.resolver.resolve_outcome(target)
        result = InstructionResult(outcome=outcome)
        if outcome.status != "resolved":
            if outcome.issue is not None:
                result.issues.append(outcome.issue)
            self.logger.info("Instruction target %r is %s", target, outcome.status)
            return result

        section = parse_target_phrase(target).section
        for candidate in outcome.candidates:
            if candidate.confidence < self.resolver.confidence_floor:
                continue
            handle = candidate.handle
            descriptor = build_descriptor(self.page, handle, section_hint=section)
            if descriptor is None:
                result.issues.append(
                    EngineIssue(kind="stale_handle", message=f"Target for {target!r} left the page during resolution.")
                )
                continue

            if isinstance(specifics, str):
                info = self.page.describe(handle)
                interpretations = interpret_instruction(
                    specifics,
                    target_is_button=not is_gone(info) and is_button_like(info),
                    read_current=lambda name, handle=handle: self.applicator.read(handle, name),
                )
                result.interpretations.extend(interpretations)
                changes = [PropertyChange(property=item.property, before=None, after=item.value) for item in interpretations]
                instruction = f"{target}: {specifics}"
            else:
                changes = as_changes(specifics)
                instruction = target

            edit = self.ledger.record(descriptor, changes, "instruction", handle=handle, instruction=instruction)
            if edit is not None:
                result.edits.append(edit)
        if not result.edits:
            self.logger.info("Instruction %r on %r produced no changes", specifics, target)
        return result

    # comments ---------------------------------------------------------------------

    def add_comment(self, comment: Comment, handle: Any | None = None) -> Comment:
        return self.comments.add(comment, handle)

    def remove_comment(self, comment_id: str) -> Comment | None:
        return self.comments.remove(comment_id)

    async def convert_comments(self, comments: Iterable[Comment] | None = None) -> list[Edit]:
        """Run detection and resolution over a comment batch and record the resulting edits."""
        if comments is None:
            batch = self.comments.ordered()
        else:
            batch = sorted(comments, key=lambda item: (item.sequence, item.id))
            for comment in batch:
                if comment.id not in self.comments:
                    self.comments.add(comment)
        report = ConversionReport()

        proposals: list[Proposal] = []
        handles: dict[str, Any] = {}
        for comment in batch:
            handle = self._comment_target(comment, report)
            if handle is None:
                continue
            info = self.page.describe(handle)
            found = extract_proposals(
                comment,
                target_is_button=not is_gone(info) and is_button_like(info),
                read_current=lambda name, handle=handle: self.applicator.read(handle, name),
            )
            if not found:
                report.uninterpreted.append(comment.id)
                continue
            handles[comment.id] = handle
            proposals.extend(found)

        detection = self.detector.partition(proposals, handles)
        for kind, groups in self._conversion_units(detection):
            if kind == "conflict":
                await self._convert_conflict(groups[0], detection, report)
            else:
                self._convert_singles(groups, detection, report)

        self.last_conversion = report
        self.logger.info(
            "Converted %d comment(s) into %d edit(s), %d conflict(s)",
            len(batch),
            len(report.edits),
            len(report.conflicts),
        )
        return report.edits

    def _comment_target(self, comment: Comment, report: ConversionReport) -> Any | None:
        handle = self.comments.handle_for(comment.id)
        if handle is not None and self.page.is_attached(handle):
            return handle

        outcome = self.resolver.resolve_outcome(ElementDescriptor(selector=comment.element_selector))
        if outcome.status == "resolved" and outcome.best is not None:
            return outcome.best.handle
        if outcome.status == "ambiguous":
            report.ambiguous.append(comment.id)
        else:
            report.unresolved.append(comment.id)
        if outcome.issue is not None:
            report.issues.append(outcome.issue)
        return None

    def _conversion_units(self, detection: DetectionResult) -> list[tuple[str, list[ConflictGroup]]]:
        units: list[tuple[int, str, str, list[ConflictGroup]]] = []
        for group in detection.groups:
            first = min(proposal_order(proposal) for proposal in group.proposals)
            units.append((first[0], first[1], "conflict", [group]))

        by_element: dict[str, list[ConflictGroup]] = {}
        for group in detection.singles:
            by_element.setdefault(group.element_key, []).append(group)
        for groups in by_element.values():
            first = min(proposal_order(group.proposals[0]) for group in groups)
            units.append((first[0], first[1], "singles", groups))

        units.sort(key=lambda unit: (unit[0], unit[1], unit[2]))
        return [(kind, groups) for _sequence, _ref, kind, groups in units]

    async def _convert_conflict(
        self,
        group: ConflictGroup,
        detection: DetectionResult,
        report: ConversionReport,
    ) -> None:
        handle = detection.handles.get(group.element_key)
        current = self.applicator.read(handle, group.property) if handle is not None else None
        outcome = await self.conflicts.resolve(
            group,
            current_value=None if is_gone(current) else current,
            still_current=self.comments.still_matches,
        )
        if isinstance(outcome, SupersededResolution):
            report.superseded.append(outcome.conflict_id)
            return

        refs = [proposal.source_ref for proposal in outcome.proposals]
        edit = self.ledger.record(
            group.descriptor or ElementDescriptor(selector=group.proposals[0].element_selector),
            [PropertyChange(property=group.property, before=None, after=outcome.chosen_value, source_refs=refs)],
            "comments",
            handle=handle,
            instruction=" | ".join(proposal.text for proposal in outcome.proposals),
            conflict=outcome,
        )
        if edit is None:
            return
        if outcome.resolution_reason == FALLBACK_REASON:
            edit.add_issue(
                EngineIssue(
                    kind="oracle_unavailable",
                    message="Conflict resolved by the first proposal; review before publishing.",
                    property=group.property,
                )
            )
        report.conflicts.append(outcome)
        report.edits.append(edit)

    def _convert_singles(
        self,
        groups: list[ConflictGroup],
        detection: DetectionResult,
        report: ConversionReport,
    ) -> None:
        first = groups[0]
        changes = [
            PropertyChange(
                property=group.property,
                before=None,
                after=group.proposals[0].suggested_value,
                source_refs=[group.proposals[0].source_ref],
            )
            for group in groups
        ]
        texts: list[str] = []
        for group in groups:
            if group.proposals[0].text not in texts:
                texts.append(group.proposals[0].text)
        edit = self.ledger.record(
            first.descriptor or ElementDescriptor(selector=first.proposals[0].element_selector),
            changes,
            "comments",
            handle=detection.handles.get(first.element_key),
            instruction=" | ".join(texts),
        )
        if edit is not None:
            report.edits.append(edit)

    # edits ------------------------------------------------------------------------

    def delete_edit(self, edit_id: str) -> Edit:
        return self.ledger.delete(edit_id)

    def toggle_visibility(self, edit_id: str) -> Edit:
        return self.ledger.toggle(edit_id)

    def toggle_element(self, edit_id: str) -> list[Edit]:
        """Show or hide every edit on the element that `edit_id` targets."""
        element_key = self.ledger.element_key_for(edit_id)
        if element_key is None:
            return [self.ledger.toggle(edit_id)]
        return self.ledger.toggle_element(element_key)

    def list_edits(self, edit_filter: EditFilter | None = None) -> list[Edit]:
        return self.ledger.list(edit_filter)

    def retry_edit(self, edit_id: str) -> Edit:
        return self.ledger.retry(edit_id)

    # conflicts --------------------------------------------------------------------

    def _conflict_id(self, edit_or_conflict_id: str) -> str:
        if edit_or_conflict_id in self.ledger:
            edit = self.ledger.get(edit_or_conflict_id)
            if edit.conflict is None:
                raise UnknownConflict(edit_or_conflict_id)
            return edit.conflict.id
        return edit_or_conflict_id

    def review_conflict(self, edit_or_conflict_id: str) -> ConflictInfo:
        _edit, conflict = self.conflicts.find(self._conflict_id(edit_or_conflict_id))
        return conflict

    def override_conflict(self, edit_or_conflict_id: str, value: Any, source: str = "user") -> ConflictInfo:
        return self.conflicts.apply_override(self._conflict_id(edit_or_conflict_id), value, source)

    # publishing -------------------------------------------------------------------

    async def publish(self, edit_ids: Iterable[str] | None = None) -> PublishReport:
        if self.publisher is None:
            raise EngineError("No publisher configured.")
        if edit_ids is None:
            edit_ids = [edit.id for edit in self.ledger.list(EditFilter(status="pending"))]
        edits = self.ledger.begin_processing(edit_ids)
        if not edits:
            return PublishReport(status="completed", message="No pending edits.")

        try:
            report = await asyncio.wait_for(
                self.publisher.publish(list(edits)),
                timeout=self.config.publish_timeout_sec,
            )
        except asyncio.CancelledError:
            for edit in edits:
                self.ledger.transition(edit.id, "failed", error="Publishing was cancelled.")
            raise
        except Exception as exc:
            self.logger.exception("Publisher raised for %d edit(s)", len(edits))
            report = PublishReport(status="failed", message=str(exc) or type(exc).__name__)

        for edit in edits:
            if report.status == "completed":
                self.ledger.transition(edit.id, "completed", result_ref=report.reference)
                edit.clear_issues("publish_failure")
            else:
                self.ledger.transition(edit.id, "failed", error=report.message)
                edit.add_issue(EngineIssue(kind="publish_failure", message=report.message or "Publishing failed."))
        self.logger.info("Published %d edit(s): %s", len(edits), report.status)
        return report

    # persistence ------------------------------------------------------------------

    def _store(self) -> EditStore:
        if self.store is None:
            self.store = EditStore(self.config.resolved_store_dir())
        return self.store

    def _url(self, page_url: str | None) -> str:
        url = page_url or self.page_url
        if not url:
            raise EngineError("A page URL is required to save or load edits.")
        return url

    def save(self, page_url: str | None = None) -> int:
        snapshot = self.ledger.snapshot()
        self._store().save_snapshot(self._url(page_url), snapshot)
        return len(snapshot)

    def load(self, page_url: str | None = None) -> list[Edit]:
        return self.ledger.restore(self._store().load_snapshot(self._url(page_url)))
