from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Mapping

EditStatus = Literal["pending", "processing", "completed", "failed"]
EditOrigin = Literal["manual", "instruction", "comments"]
FallbackStrategy = Literal["by-id", "by-class-path", "by-text-match", "by-position"]
ConflictState = Literal["detected", "oracle-resolved", "user-overridden"]
ResolutionStatus = Literal["resolved", "unresolved", "ambiguous"]
IssueKind = Literal[
    "unresolved_target",
    "ambiguous_target",
    "oracle_unavailable",
    "stale_handle",
    "publish_failure",
]

DEFAULT_FALLBACKS: tuple[FallbackStrategy, ...] = (
    "by-id",
    "by-class-path",
    "by-text-match",
    "by-position",
)

TEXT_PROPERTY = "textContent"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class BoundingBox:
    left: float
    top: float
    width: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    @property
    def center(self) -> tuple[float, float]:
        return (self.left + self.width / 2.0, self.top + self.height / 2.0)


@dataclass(frozen=True, slots=True)
class NodeInfo:
    tag: str
    element_id: str | None = None
    classes: tuple[str, ...] = ()
    text: str = ""
    role: str | None = None
    attributes: Mapping[str, str] = field(default_factory=dict)

    def tokens(self) -> list[str]:
        pieces = [self.element_id or ""]
        pieces.extend(self.classes)
        return [piece.lower() for piece in pieces if piece]


@dataclass(frozen=True, slots=True)
class ChildNode:
    kind: Literal["text", "element"]
    text: str
    tag: str = ""


@dataclass(slots=True)
class ElementDescriptor:
    selector: str
    fallbacks: list[str] = field(default_factory=lambda: list(DEFAULT_FALLBACKS))
    element_id: str | None = None
    tag: str | None = None
    classes: list[str] = field(default_factory=list)
    text: str | None = None
    position: tuple[float, float] | None = None
    section_hint: str | None = None
    role_hint: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["position"] = list(self.position) if self.position else None
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ElementDescriptor:
        raw_position = payload.get("position")
        position: tuple[float, float] | None = None
        if isinstance(raw_position, (list, tuple)) and len(raw_position) == 2:
            position = (float(raw_position[0]), float(raw_position[1]))
        fallbacks = payload.get("fallbacks")
        return cls(
            selector=str(payload.get("selector", "") or ""),
            fallbacks=[str(item) for item in fallbacks] if isinstance(fallbacks, list) else list(DEFAULT_FALLBACKS),
            element_id=payload.get("element_id") or None,
            tag=payload.get("tag") or None,
            classes=[str(item) for item in payload.get("classes", []) or []],
            text=payload.get("text") or None,
            position=position,
            section_hint=payload.get("section_hint") or None,
            role_hint=payload.get("role_hint") or None,
        )


@dataclass(slots=True)
class PropertyChange:
    property: str
    before: Any
    after: Any
    source_refs: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Proposal:
    source_ref: str
    suggested_value: Any
    rationale: str = ""
    property: str = ""
    element_selector: str = ""
    sequence: int = 0
    text: str = ""


@dataclass(slots=True)
class Alternative:
    value: Any
    source_ref: str | None = None
    rationale: str = ""


@dataclass(slots=True)
class ConflictInfo:
    id: str
    conflict_type: str
    property: str
    proposals: list[Proposal]
    chosen_value: Any = None
    resolution_reason: str = ""
    alternatives: list[Alternative] = field(default_factory=list)
    user_reviewed: bool = False
    final_value: Any = None
    state: ConflictState = "detected"
    override_source: str | None = None

    def source_refs(self) -> list[str]:
        return [proposal.source_ref for proposal in self.proposals]


@dataclass(slots=True)
class EngineIssue:
    kind: IssueKind
    message: str
    property: str | None = None


@dataclass(slots=True)
class Edit:
    id: str
    descriptor: ElementDescriptor
    changes: list[PropertyChange]
    created_at: str = field(default_factory=utc_now_iso)
    status: EditStatus = "pending"
    visible: bool = True
    conflict: ConflictInfo | None = None
    origin: EditOrigin = "manual"
    result_ref: str | None = None
    error: str | None = None
    issues: list[EngineIssue] = field(default_factory=list)
    instruction: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")

    def change_for(self, property_name: str) -> PropertyChange | None:
        for change in self.changes:
            if change.property == property_name:
                return change
        return None

    def add_issue(self, issue: EngineIssue) -> None:
        for existing in self.issues:
            if existing.kind == issue.kind and existing.property == issue.property:
                existing.message = issue.message
                return
        self.issues.append(issue)

    def clear_issues(self, kind: IssueKind) -> None:
        self.issues = [issue for issue in self.issues if issue.kind != kind]


@dataclass(slots=True)
class Comment:
    id: str
    element_selector: str
    text: str
    position: tuple[float, float] | None = None
    timestamp: float = 0.0
    author_id: str = ""
    sequence: int = 0


@dataclass(slots=True)
class ConflictGroup:
    element_key: str
    property: str
    proposals: list[Proposal]
    descriptor: ElementDescriptor | None = None

    def source_refs(self) -> frozenset[str]:
        return frozenset(proposal.source_ref for proposal in self.proposals)

    def fingerprint(self) -> frozenset[tuple[str, str]]:
        return frozenset((proposal.source_ref, proposal.text) for proposal in self.proposals)


@dataclass(slots=True)
class ScoreBreakdown:
    base: float
    visibility: float
    area: float
    styling: float
    intent: float
    position_penalty: float
    total: float


@dataclass(slots=True)
class RankedCandidate:
    handle: Any
    confidence: float
    score: float
    rule: str
    document_index: int = 0
    breakdown: ScoreBreakdown | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def edit_to_payload(edit: Edit) -> dict[str, Any]:
    payload = asdict(edit)
    payload["descriptor"] = edit.descriptor.to_dict()
    return payload


def edit_from_payload(payload: Mapping[str, Any]) -> Edit:
    conflict_payload = payload.get("conflict")
    conflict: ConflictInfo | None = None
    if isinstance(conflict_payload, Mapping):
        conflict = ConflictInfo(
            id=str(conflict_payload.get("id", "")),
            conflict_type=str(conflict_payload.get("conflict_type", "")),
            property=str(conflict_payload.get("property", "")),
            proposals=[Proposal(**dict(item)) for item in conflict_payload.get("proposals", [])],
            chosen_value=conflict_payload.get("chosen_value"),
            resolution_reason=str(conflict_payload.get("resolution_reason", "") or ""),
            alternatives=[Alternative(**dict(item)) for item in conflict_payload.get("alternatives", [])],
            user_reviewed=bool(conflict_payload.get("user_reviewed", False)),
            final_value=conflict_payload.get("final_value"),
            state=conflict_payload.get("state", "detected"),
            override_source=conflict_payload.get("override_source"),
        )

    return Edit(
        id=str(payload.get("id", "")),
        descriptor=ElementDescriptor.from_dict(payload.get("descriptor") or {}),
        changes=[
            PropertyChange(
                property=str(item.get("property", "")),
                before=item.get("before"),
                after=item.get("after"),
                source_refs=[str(ref) for ref in item.get("source_refs", []) or []],
            )
            for item in payload.get("changes", [])
            if isinstance(item, Mapping)
        ],
        created_at=str(payload.get("created_at", "") or utc_now_iso()),
        status=payload.get("status", "pending"),
        visible=bool(payload.get("visible", True)),
        conflict=conflict,
        origin=payload.get("origin", "manual"),
        result_ref=payload.get("result_ref"),
        error=payload.get("error"),
        issues=[EngineIssue(**dict(item)) for item in payload.get("issues", []) if isinstance(item, Mapping)],
        instruction=payload.get("instruction"),
    )
