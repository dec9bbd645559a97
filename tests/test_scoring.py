from tweaqengine.models import BoundingBox, NodeInfo
from tweaqengine.scoring import (
    CandidateSignals,
    confidence_from_score,
    has_filled_background,
    is_in_viewport,
    score_candidates,
)
from tweaqengine.target_text import parse_target_phrase

VIEWPORT = (1280, 720)


def _signals(name: str, box: tuple[float, float, float, float], index: int, **info) -> CandidateSignals:
    return CandidateSignals(
        handle=name,
        info=NodeInfo(tag="a", **info),
        box=BoundingBox(*box),
        document_index=index,
    )


def test_visible_styled_cta_outranks_plain_link() -> None:
    phrase = parse_target_phrase("the main button")
    candidates = [
        _signals("plain", (40, 300, 80, 20), 1, text="Read the docs"),
        _signals("cta", (500, 300, 200, 56), 2, text="Get started", classes=("btn", "btn-primary")),
    ]

    ranked = score_candidates(candidates, phrase, VIEWPORT)
    assert [item.handle for item in ranked] == ["cta", "plain"]
    assert ranked[0].breakdown is not None
    assert ranked[0].breakdown.styling > ranked[1].breakdown.styling


def test_offscreen_candidates_are_penalised() -> None:
    phrase = parse_target_phrase("the button")
    ranked = score_candidates(
        [
            _signals("below", (100, 2000, 200, 50), 1, text="Buy"),
            _signals("above", (100, 100, 200, 50), 2, text="Buy"),
        ],
        phrase,
        VIEWPORT,
    )
    assert ranked[0].handle == "above"
    assert ranked[0].metadata["visible"] is True
    assert ranked[1].breakdown.position_penalty > 0


def test_quoted_text_match_dominates() -> None:
    phrase = parse_target_phrase('the "Contact sales" button')
    ranked = score_candidates(
        [
            _signals("styled", (100, 100, 220, 60), 1, text="Start", classes=("btn-primary",)),
            _signals("quoted", (100, 400, 120, 40), 2, text="Contact sales"),
        ],
        phrase,
        VIEWPORT,
    )
    assert ranked[0].handle == "quoted"


def test_ties_break_by_document_order() -> None:
    phrase = parse_target_phrase("the button")
    ranked = score_candidates(
        [
            _signals("second", (0, 0, 100, 40), 5, text="Go"),
            _signals("first", (0, 0, 100, 40), 3, text="Go"),
        ],
        phrase,
        VIEWPORT,
    )
    assert [item.handle for item in ranked] == ["first", "second"]


def test_helpers() -> None:
    assert is_in_viewport(BoundingBox(0, 700, 10, 10), VIEWPORT)
    assert not is_in_viewport(BoundingBox(0, 720, 10, 10), VIEWPORT)
    assert not is_in_viewport(BoundingBox(10, 10, 0, 0), VIEWPORT)
    assert has_filled_background("rgb(59, 130, 246)")
    assert not has_filled_background("rgba(0, 0, 0, 0)")
    assert not has_filled_background("transparent")
    assert confidence_from_score(150) == 1.0
    assert confidence_from_score(-5) == 0.0
    assert confidence_from_score(42) == 0.42
