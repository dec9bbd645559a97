from __future__ import annotations

from typing import Any, Iterable

from .models import Alternative, Proposal
from .selector_rules import normalize_space

DEFAULT_ALTERNATIVES_CAP = 5


def alternative_key(value: Any) -> str:
    return normalize_space(value, limit=500).lower()


def alternatives_from_proposals(proposals: Iterable[Proposal]) -> list[Alternative]:
    return [
        Alternative(value=proposal.suggested_value, source_ref=proposal.source_ref, rationale=proposal.rationale)
        for proposal in proposals
    ]


def cap_alternatives(alternatives: Iterable[Alternative], limit: int = DEFAULT_ALTERNATIVES_CAP) -> list[Alternative]:
    if limit <= 0:
        return []

    merged: list[Alternative] = []
    seen: set[str] = set()
    for alternative in alternatives:
        if alternative.value is None:
            continue
        key = alternative_key(alternative.value)
        if key in seen:
            continue
        merged.append(alternative)
        seen.add(key)
    return merged[:limit]


def inject_alternative(
    alternatives: list[Alternative],
    alternative: Alternative,
    limit: int = DEFAULT_ALTERNATIVES_CAP,
) -> list[Alternative]:
    """Put `alternative` first, dropping any later entry with the same value."""
    return cap_alternatives([alternative, *alternatives], limit)
