from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from .display import categorize_change
from .models import ConflictGroup, ElementDescriptor, Proposal
from .page_provider import PageProvider, is_gone
from .resolver import ElementResolver
from .stabilizer import build_descriptor, simplify_selector

logger = logging.getLogger("tweaqengine.conflicts")


@dataclass(slots=True)
class ElementIdentity:
    key: str
    handle: Any | None
    descriptor: ElementDescriptor


class ElementIdentityCache:
    """Resolves each distinct selector once per batch."""

    def __init__(self, page: PageProvider, resolver: ElementResolver) -> None:
        self.page = page
        self.resolver = resolver
        self._by_selector: dict[str, ElementIdentity] = {}

    def identify(self, selector: str, handle: Any | None = None) -> ElementIdentity:
        if handle is not None and self.page.is_attached(handle):
            key = self.page.node_key(handle)
            if not is_gone(key):
                descriptor = build_descriptor(self.page, handle, selector=selector) or ElementDescriptor(selector=selector)
                identity = ElementIdentity(key=f"node:{key}", handle=handle, descriptor=descriptor)
                self._by_selector.setdefault(selector, identity)
                return identity

        cached = self._by_selector.get(selector)
        if cached is not None:
            return cached

        resolved = self.resolver.best_handle(ElementDescriptor(selector=selector))
        key = self.page.node_key(resolved) if resolved is not None else None
        if resolved is not None and key is not None and not is_gone(key):
            descriptor = build_descriptor(self.page, resolved, selector=selector) or ElementDescriptor(selector=selector)
            identity = ElementIdentity(key=f"node:{key}", handle=resolved, descriptor=descriptor)
        else:
            stable = simplify_selector(selector) or selector.strip()
            identity = ElementIdentity(key=f"selector:{stable}", handle=None, descriptor=ElementDescriptor(selector=selector))
        self._by_selector[selector] = identity
        return identity


@dataclass(slots=True)
class DetectionResult:
    groups: list[ConflictGroup] = field(default_factory=list)
    singles: list[ConflictGroup] = field(default_factory=list)
    handles: dict[str, Any] = field(default_factory=dict)


def proposal_order(proposal: Proposal) -> tuple[int, str]:
    return (proposal.sequence, proposal.source_ref)


def conflict_type_for(property_name: str) -> str:
    return f"{categorize_change(property_name)}_conflict"


class ConflictDetector:
    def __init__(self, page: PageProvider, resolver: ElementResolver) -> None:
        self.page = page
        self.resolver = resolver

    def partition(
        self,
        proposals: Iterable[Proposal],
        handles: Mapping[str, Any] | None = None,
    ) -> DetectionResult:
        """Group proposals by (element, property); handles maps source_ref to a known element."""
        identities = ElementIdentityCache(self.page, self.resolver)
        ordered = sorted(proposals, key=proposal_order)
        buckets: dict[tuple[str, str], ConflictGroup] = {}
        result = DetectionResult()

        for proposal in ordered:
            hint = (handles or {}).get(proposal.source_ref)
            identity = identities.identify(proposal.element_selector, hint)
            bucket_key = (identity.key, proposal.property)
            group = buckets.get(bucket_key)
            if group is None:
                group = ConflictGroup(
                    element_key=identity.key,
                    property=proposal.property,
                    proposals=[],
                    descriptor=identity.descriptor,
                )
                buckets[bucket_key] = group
                if identity.handle is not None:
                    result.handles[identity.key] = identity.handle
            group.proposals.append(proposal)

        # dict order follows the first proposal of each group in stream order
        for group in buckets.values():
            if len(group.proposals) >= 2:
                result.groups.append(group)
            else:
                result.singles.append(group)
        logger.info(
            "Detected %d conflict group(s) and %d single proposal(s)",
            len(result.groups),
            len(result.singles),
        )
        return result

    def detect(self, proposals: Iterable[Proposal], handles: Mapping[str, Any] | None = None) -> list[ConflictGroup]:
        return self.partition(proposals, handles).groups
