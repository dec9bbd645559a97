from tweaqengine.instructions import (
    extract_proposals,
    format_px,
    interpret_instruction,
    parse_px,
)
from tweaqengine.models import Comment


def _as_dict(text: str, **kwargs) -> dict[str, object]:
    return {item.property: item.value for item in interpret_instruction(text, **kwargs)}


def test_colour_goes_to_background_on_buttons_and_text_elsewhere() -> None:
    assert _as_dict("make button red", target_is_button=True) == {"backgroundColor": "#ef4444"}
    assert _as_dict("make it red") == {"color": "#ef4444"}
    assert _as_dict("make the text red", target_is_button=True) == {"color": "#ef4444"}
    assert _as_dict("red background please") == {"backgroundColor": "#ef4444"}
    assert _as_dict("use #1E40AF") == {"color": "#1e40af"}


def test_size_words_scale_the_live_font_size() -> None:
    assert _as_dict("make the CTA larger") == {"fontSize": "19.2px"}
    assert _as_dict("make it smaller") == {"fontSize": "13.6px"}
    assert _as_dict("make it bigger", read_current=lambda name: "20px") == {"fontSize": "24px"}
    assert _as_dict("make it twice as big") == {"fontSize": "32px"}
    assert _as_dict("half the size") == {"fontSize": "8px"}
    assert _as_dict("50% bigger") == {"fontSize": "24px"}
    assert _as_dict("make it 2x larger") == {"fontSize": "32px"}


def test_spacing_words_adjust_padding() -> None:
    assert _as_dict("more padding", read_current=lambda name: "12px") == {"padding": "18px"}
    assert _as_dict("add some breathing room") == {"padding": "12px"}
    assert _as_dict("less padding", read_current=lambda name: "20px") == {"padding": "10px"}


def test_style_keywords() -> None:
    assert _as_dict("make it bold") == {"fontWeight": "700"}
    assert _as_dict("make it italic") == {"fontStyle": "italic"}
    assert _as_dict("all caps") == {"textTransform": "uppercase"}
    assert _as_dict("pill shaped") == {"borderRadius": "9999px"}
    assert _as_dict("rounded corners") == {"borderRadius": "8px"}
    assert _as_dict("square corners") == {"borderRadius": "0px"}
    assert _as_dict("center it") == {"textAlign": "center"}
    assert _as_dict("hide this") == {"display": "none"}


def test_explicit_pairs_accept_known_properties_only() -> None:
    assert _as_dict("padding: 24px; color: #111") == {"padding": "24px", "color": "#111"}
    assert _as_dict("background-color: rgb(1, 2, 3)") == {"backgroundColor": "rgb(1, 2, 3)"}
    assert _as_dict("note: looks off") == {}


def test_quoted_text_becomes_text_content() -> None:
    assert _as_dict("change text to 'Get started'") == {"textContent": "Get started"}
    assert _as_dict('say "Start free trial" and make it bold') == {
        "textContent": "Start free trial",
        "fontWeight": "700",
    }
    assert _as_dict("don't touch it") == {}


def test_compound_instruction_later_clause_wins() -> None:
    result = interpret_instruction("make it blue, bold and 20% bigger")
    assert [(item.property, item.value) for item in result] == [
        ("color", "#3b82f6"),
        ("fontWeight", "700"),
        ("fontSize", "19.2px"),
    ]
    assert _as_dict("make it red then make it blue") == {"color": "#3b82f6"}


def test_nothing_actionable() -> None:
    assert interpret_instruction("nice work") == []
    assert interpret_instruction("   ") == []


def test_extract_proposals_carry_comment_identity() -> None:
    comment = Comment(id="c-1", element_selector="#cta", text="make it green and bold", sequence=3)

    proposals = extract_proposals(comment, target_is_button=True)

    assert [(item.property, item.suggested_value) for item in proposals] == [
        ("backgroundColor", "#22c55e"),
        ("fontWeight", "700"),
    ]
    assert {item.source_ref for item in proposals} == {"c-1"}
    assert {item.sequence for item in proposals} == {3}
    assert proposals[0].element_selector == "#cta"
    assert proposals[0].text == "make it green and bold"


def test_px_helpers() -> None:
    assert parse_px("18.5px") == 18.5
    assert parse_px(12) == 12.0
    assert parse_px("auto") is None
    assert parse_px(True) is None
    assert format_px(19.2) == "19.2px"
    assert format_px(16.0) == "16px"
