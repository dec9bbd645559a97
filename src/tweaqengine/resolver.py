from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any

from .models import ElementDescriptor, EngineIssue, RankedCandidate, ResolutionStatus
from .page_provider import PageProvider, is_gone
from .scoring import CandidateSignals, score_candidates
from .selector_rules import build_id_selector, normalize_space
from .stabilizer import class_path_selector, simplify_selector
from .target_text import (
    SECTION_HINT_TOKENS,
    TargetPhrase,
    has_styling_hint,
    parse_target_phrase,
    text_matches_intent,
)

logger = logging.getLogger("tweaqengine.resolver")

TIER_CONFIDENCE: dict[str, float] = {
    "selector": 1.0,
    "stabilized": 0.8,
    "by-id": 0.9,
    "by-class-path": 0.7,
    "by-text-match": 0.6,
    "by-position": 0.35,
}
POSITION_TOLERANCE = 64.0

_SECTION_TAGS = {"header": "header", "footer": "footer", "nav": "nav"}
_SECTION_ROLES = {"banner": "header", "contentinfo": "footer", "navigation": "nav"}
_NON_MAJOR_TAGS = {"script", "style", "noscript", "template", "link", "meta", "header", "nav", "footer", "aside"}
_DOCUMENT_ROOTS = {"body", "main"}


def _token_parts(token: str) -> list[str]:
    # "site-header__inner" -> site-header__inner, site, header, inner, site-header
    pieces = [piece for piece in re.split(r"[-_]+", token) if piece]
    combined = ["-".join(pieces[index : index + 2]) for index in range(len(pieces) - 1)]
    return [token, *pieces, *combined]


@dataclass(slots=True)
class ResolutionOutcome:
    status: ResolutionStatus
    candidates: list[RankedCandidate] = field(default_factory=list)
    issue: EngineIssue | None = None

    @property
    def best(self) -> RankedCandidate | None:
        return self.candidates[0] if self.candidates else None


class ElementResolver:
    def __init__(
        self,
        page: PageProvider,
        *,
        confidence_floor: float = 0.5,
        singular_top_k: int = 1,
        plural_top_k: int = 2,
    ) -> None:
        self.page = page
        self.confidence_floor = confidence_floor
        self.singular_top_k = max(1, singular_top_k)
        self.plural_top_k = max(1, plural_top_k)

    def resolve(self, target: ElementDescriptor | str) -> list[RankedCandidate]:
        try:
            if isinstance(target, ElementDescriptor):
                return self.resolve_descriptor(target)
            return self.resolve_text(target)
        except Exception:
            logger.exception("Target resolution failed for %r", target)
            return []

    def resolve_outcome(self, target: ElementDescriptor | str) -> ResolutionOutcome:
        candidates = self.resolve(target)
        label = target.selector if isinstance(target, ElementDescriptor) else target
        if not candidates:
            return ResolutionOutcome(
                status="unresolved",
                issue=EngineIssue(kind="unresolved_target", message=f"No element matches {label!r}."),
            )
        if candidates[0].confidence < self.confidence_floor:
            return ResolutionOutcome(
                status="ambiguous",
                candidates=candidates,
                issue=EngineIssue(
                    kind="ambiguous_target",
                    message=(
                        f"Best match for {label!r} has confidence {candidates[0].confidence:.2f}, "
                        f"below {self.confidence_floor:.2f}."
                    ),
                ),
            )
        return ResolutionOutcome(status="resolved", candidates=candidates)

    def best_handle(self, target: ElementDescriptor | str) -> Any | None:
        candidates = self.resolve(target)
        return candidates[0].handle if candidates else None

    # free text ------------------------------------------------------------------

    def resolve_text(self, raw_phrase: str) -> list[RankedCandidate]:
        phrase = parse_target_phrase(raw_phrase)
        pool = self._gather_pool(phrase)
        if not pool:
            logger.info("No candidates for phrase %r (pattern %s)", phrase.text, phrase.pattern)
            return []

        ranked = score_candidates(pool, phrase, self.page.viewport())
        limit = self.plural_top_k if phrase.plural else self.singular_top_k
        return ranked[:limit]

    def _gather_pool(self, phrase: TargetPhrase) -> list[CandidateSignals]:
        handles = self._unique(self.page.query_candidates(phrase.pattern))

        if phrase.section:
            if phrase.wants_section_root:
                handles = [handle for handle in handles if self._own_section(handle) == phrase.section]
            else:
                handles = [handle for handle in handles if phrase.section in self.sections_of(handle)]

        signals: list[CandidateSignals] = []
        for handle in handles:
            info = self.page.describe(handle)
            box = self.page.get_bounding_box(handle)
            index = self.page.document_index(handle)
            if is_gone(info) or is_gone(box) or is_gone(index):
                continue
            background = self.page.get_computed_property(handle, "backgroundColor")
            signals.append(
                CandidateSignals(
                    handle=handle,
                    info=info,
                    box=box,
                    document_index=index,
                    background="" if is_gone(background) else str(background),
                )
            )

        if phrase.has_intent and not phrase.wants_section_root:
            matching = [item for item in signals if self._matches_intent(item, phrase)]
            if matching:
                signals = matching
        return signals

    def _matches_intent(self, signals: CandidateSignals, phrase: TargetPhrase) -> bool:
        label = " ".join([signals.info.text, signals.info.attributes.get("aria-label", "")])
        return text_matches_intent(label, phrase) or has_styling_hint(signals.info.tokens())

    def _unique(self, handles: list[Any]) -> list[Any]:
        seen: set[str] = set()
        result: list[Any] = []
        for handle in handles:
            key = self.page.node_key(handle)
            if is_gone(key) or key in seen:
                continue
            seen.add(key)
            result.append(handle)
        return result

    # sections -------------------------------------------------------------------

    def sections_of(self, handle: Any) -> list[str]:
        sections: list[str] = []
        current: Any = handle
        while current is not None:
            section = self._own_section(current)
            if section and section not in sections:
                sections.append(section)
            parent = self.page.parent(current)
            if is_gone(parent):
                break
            current = parent
        return sections

    def _own_section(self, handle: Any) -> str | None:
        info = self.page.describe(handle)
        if is_gone(info):
            return None
        parts = {part for token in info.tokens() for part in _token_parts(token)}
        for section, hints in SECTION_HINT_TOKENS.items():
            if parts.intersection(hints):
                return section
        if info.tag in _SECTION_TAGS:
            return _SECTION_TAGS[info.tag]
        if info.role in _SECTION_ROLES:
            return _SECTION_ROLES[info.role]
        if self._is_first_major_child(handle):
            return "hero"
        return None

    def _is_first_major_child(self, handle: Any) -> bool:
        parent = self.page.parent(handle)
        if parent is None or is_gone(parent):
            return False
        parent_info = self.page.describe(parent)
        if is_gone(parent_info) or parent_info.tag not in _DOCUMENT_ROOTS:
            return False
        children = self.page.element_children(parent)
        if is_gone(children):
            return False
        majors: list[Any] = []
        for child in children:
            info = self.page.describe(child)
            if is_gone(info) or info.tag in _NON_MAJOR_TAGS or info.tag == "main":
                continue
            majors.append(child)
        # a lone wrapper (<div id="root">) carries the whole page, not a hero
        if len(majors) < 2:
            return False
        return self.page.node_key(majors[0]) == self.page.node_key(handle)

    # descriptors ----------------------------------------------------------------

    def resolve_descriptor(self, descriptor: ElementDescriptor) -> list[RankedCandidate]:
        primary = self._unique(self.page.query_candidates(descriptor.selector)) if descriptor.selector else []
        if primary:
            return self._rank_tier("selector", primary, descriptor)

        stabilized = simplify_selector(descriptor.selector)
        if stabilized and stabilized != descriptor.selector:
            matches = self._unique(self.page.query_candidates(stabilized))
            if matches:
                logger.info("Descriptor %r resolved by stabilized selector %s", descriptor.selector, stabilized)
                return self._rank_tier("stabilized", matches, descriptor)

        for strategy in descriptor.fallbacks:
            matches = self._run_fallback(strategy, descriptor)
            if matches:
                logger.info("Descriptor %r resolved by %s (%d match)", descriptor.selector, strategy, len(matches))
                return self._rank_tier(strategy, matches, descriptor)
        return []

    def _run_fallback(self, strategy: str, descriptor: ElementDescriptor) -> list[Any]:
        if strategy == "by-id":
            id_selector = build_id_selector(descriptor.element_id)
            if not id_selector:
                simplified = simplify_selector(descriptor.selector)
                id_selector = simplified if simplified and simplified.startswith("#") else None
            return self._unique(self.page.query_candidates(id_selector)) if id_selector else []

        if strategy == "by-class-path":
            selector = class_path_selector(descriptor.tag, descriptor.classes) or simplify_selector(descriptor.selector)
            if not selector or selector == descriptor.selector:
                return []
            return self._unique(self.page.query_candidates(selector))

        if strategy == "by-text-match":
            expected = normalize_space(descriptor.text).lower()
            if not expected:
                return []
            pool = self._unique(self.page.query_candidates(descriptor.tag or "*"))
            exact: list[Any] = []
            partial: list[Any] = []
            for handle in pool:
                info = self.page.describe(handle)
                if is_gone(info):
                    continue
                text = info.text.lower()
                if text == expected:
                    exact.append(handle)
                elif descriptor.tag and expected in text:
                    partial.append(handle)
            return exact or partial

        if strategy == "by-position":
            if not descriptor.position:
                return []
            pool = self._unique(self.page.query_candidates(descriptor.tag or "*"))
            near = [
                (distance, handle)
                for handle in pool
                if (distance := self._distance(handle, descriptor.position)) is not None
                and distance <= POSITION_TOLERANCE
            ]
            near.sort(key=lambda item: item[0])
            return [handle for _distance, handle in near[:1]]

        logger.warning("Unknown fallback strategy %r ignored", strategy)
        return []

    def _distance(self, handle: Any, position: tuple[float, float]) -> float | None:
        box = self.page.get_bounding_box(handle)
        if is_gone(box) or box.area <= 0:
            return None
        center_x, center_y = box.center
        return math.hypot(center_x - position[0], center_y - position[1])

    def _rank_tier(self, rule: str, handles: list[Any], descriptor: ElementDescriptor) -> list[RankedCandidate]:
        expected_text = normalize_space(descriptor.text).lower()
        rows: list[tuple[int, float, int, Any]] = []
        for handle in handles:
            index = self.page.document_index(handle)
            if is_gone(index):
                continue
            text_rank = 1
            if expected_text:
                info = self.page.describe(handle)
                text_rank = 0 if not is_gone(info) and info.text.lower() == expected_text else 1
            distance = self._distance(handle, descriptor.position) if descriptor.position else None
            rows.append((text_rank, distance if distance is not None else math.inf, index, handle))

        rows.sort(key=lambda row: (row[0], row[1], row[2]))
        base = TIER_CONFIDENCE.get(rule, 0.5)
        exact_text = [row for row in rows if row[0] == 0]
        share = len(exact_text) if len(rows) > 1 and exact_text else len(rows)
        candidates: list[RankedCandidate] = []
        for position, (text_rank, _distance, index, handle) in enumerate(rows):
            leading = position < share and (text_rank == 0 or not exact_text)
            confidence = base / max(share, 1) if leading else base / max(len(rows), 1) / 2.0
            candidates.append(
                RankedCandidate(
                    handle=handle,
                    confidence=round(confidence, 4),
                    score=round(confidence * 100.0, 2),
                    rule=rule,
                    document_index=index,
                )
            )
        return candidates
