from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from .models import BoundingBox, NodeInfo, RankedCandidate, ScoreBreakdown
from .target_text import TargetPhrase, has_styling_hint, text_matches_intent

POOL_BASE_SCORE = 30.0
UNIQUE_POOL_BONUS = 20.0
VISIBLE_BONUS = 30.0
HIDDEN_PENALTY = 60.0
AREA_BONUS_CAP = 20.0
AREA_AT_CAP = 12000.0
STYLING_CLASS_BONUS = 12.0
FILLED_BACKGROUND_BONUS = 8.0
INTENT_TEXT_BONUS = 25.0
QUOTED_TEXT_BONUS = 40.0
POSITION_PENALTY_PER_VIEWPORT = 12.0
POSITION_PENALTY_CAP = 40.0

_TRANSPARENT_VALUES = {"", "transparent", "rgba(0, 0, 0, 0)", "rgba(0,0,0,0)", "initial", "inherit", "none"}


@dataclass(slots=True)
class CandidateSignals:
    handle: Any
    info: NodeInfo
    box: BoundingBox
    document_index: int
    background: str = ""


def is_in_viewport(box: BoundingBox, viewport: tuple[int, int]) -> bool:
    width, height = viewport
    if box.width <= 0 or box.height <= 0:
        return False
    return box.top < height and box.bottom > 0 and box.left < width and box.right > 0


def has_filled_background(value: str) -> bool:
    return value.strip().lower() not in _TRANSPARENT_VALUES


def score_candidate(
    signals: CandidateSignals,
    phrase: TargetPhrase,
    viewport: tuple[int, int],
    *,
    pool_size: int,
) -> RankedCandidate:
    base = POOL_BASE_SCORE + (UNIQUE_POOL_BONUS if pool_size == 1 else 0.0)
    visible = is_in_viewport(signals.box, viewport)
    visibility = VISIBLE_BONUS if visible else (-HIDDEN_PENALTY if signals.box.area <= 0 else 0.0)
    area = min(AREA_BONUS_CAP, AREA_BONUS_CAP * signals.box.area / AREA_AT_CAP)

    styling = 0.0
    if has_styling_hint(signals.info.tokens()):
        styling += STYLING_CLASS_BONUS
    if has_filled_background(signals.background):
        styling += FILLED_BACKGROUND_BONUS

    intent = 0.0
    label = " ".join(
        item
        for item in (
            signals.info.text,
            signals.info.attributes.get("aria-label", ""),
            signals.info.attributes.get("value", ""),
        )
        if item
    )
    if phrase.quoted_text and phrase.quoted_text.lower() in label.lower():
        intent += QUOTED_TEXT_BONUS
    elif text_matches_intent(label, phrase):
        intent += INTENT_TEXT_BONUS

    _viewport_width, viewport_height = viewport
    offset = max(0.0, signals.box.top) / max(viewport_height, 1)
    position_penalty = min(POSITION_PENALTY_CAP, offset * POSITION_PENALTY_PER_VIEWPORT)

    total = base + visibility + area + styling + intent - position_penalty
    breakdown = ScoreBreakdown(
        base=round(base, 2),
        visibility=round(visibility, 2),
        area=round(area, 2),
        styling=round(styling, 2),
        intent=round(intent, 2),
        position_penalty=round(position_penalty, 2),
        total=round(total, 2),
    )
    return RankedCandidate(
        handle=signals.handle,
        confidence=confidence_from_score(total),
        score=breakdown.total,
        rule="free-text",
        document_index=signals.document_index,
        breakdown=breakdown,
        metadata={"visible": visible, "tag": signals.info.tag},
    )


def score_candidates(
    pool: Iterable[CandidateSignals],
    phrase: TargetPhrase,
    viewport: tuple[int, int],
) -> list[RankedCandidate]:
    items = list(pool)
    scored = [score_candidate(item, phrase, viewport, pool_size=len(items)) for item in items]
    scored.sort(key=lambda item: (-float(item.score), item.document_index))
    return scored


def confidence_from_score(score: float) -> float:
    return round(max(0.0, min(1.0, score / 100.0)), 4)
