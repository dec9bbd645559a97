from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable

from .models import TEXT_PROPERTY, Comment, Proposal
from .selector_rules import normalize_property_name, normalize_space

COLOR_NAMES: dict[str, str] = {
    "red": "#ef4444",
    "blue": "#3b82f6",
    "green": "#22c55e",
    "purple": "#a855f7",
    "orange": "#f97316",
    "yellow": "#eab308",
    "pink": "#ec4899",
    "gray": "#6b7280",
    "grey": "#6b7280",
    "black": "#000000",
    "white": "#ffffff",
}

KNOWN_PROPERTIES = frozenset(
    {
        "color",
        "backgroundColor",
        "borderColor",
        "fontSize",
        "fontWeight",
        "fontStyle",
        "fontFamily",
        "lineHeight",
        "letterSpacing",
        "textAlign",
        "textTransform",
        "textDecoration",
        "width",
        "height",
        "padding",
        "paddingTop",
        "paddingRight",
        "paddingBottom",
        "paddingLeft",
        "margin",
        "marginTop",
        "marginRight",
        "marginBottom",
        "marginLeft",
        "gap",
        "borderRadius",
        "borderWidth",
        "opacity",
        "display",
        "visibility",
        TEXT_PROPERTY,
    }
)

GROW_FACTOR = 1.2
SHRINK_FACTOR = 0.85
DEFAULT_FONT_SIZE = 16.0
DEFAULT_PADDING = 8.0
ROUNDED_RADIUS = "8px"
PILL_RADIUS = "9999px"

_CLAUSE_SPLIT = re.compile(r"\s*(?:;|,(?![^()]*\))|\band\b|\bthen\b)\s*")
_QUOTED = re.compile(r"[\"“]([^\"”]+)[\"”]|(?:^|(?<=\s))'([^']{2,})'(?=\s|$|[.,!?])")
_EXPLICIT_PAIR = re.compile(r"\b([a-zA-Z][a-zA-Z-]+)\s*[:=]\s*((?:[^;,(]|\([^)]*\))+)")
_HEX_COLOR = re.compile(r"#(?:[0-9a-fA-F]{8}|[0-9a-fA-F]{6}|[0-9a-fA-F]{3,4})\b")
_FUNCTION_COLOR = re.compile(r"\b(?:rgba?|hsla?)\([^)]*\)", re.IGNORECASE)
_PERCENT = re.compile(r"(\d+(?:\.\d+)?)\s*%\s*(bigger|larger|smaller)?")
_MULTIPLIER = re.compile(r"(\d+(?:\.\d+)?)\s*(?:x|times)\b")
_PX_VALUE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)")

_GROW_WORDS = ("larger", "bigger", "increase", "enlarge", "grow")
_SHRINK_WORDS = ("smaller", "decrease", "shrink", "reduce")
_SPACING_WORDS = ("padding", "spacing", "space", "breathing room")
_BACKGROUND_WORDS = ("background", "bg ", "bg-", "fill")
_TEXT_COLOR_WORDS = ("text color", "text colour", "font color", "font colour", " text ")


@dataclass(slots=True)
class Interpretation:
    property: str
    value: Any
    rationale: str


ReadCurrent = Callable[[str], Any]


def parse_px(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _PX_VALUE.match(str(value or ""))
    return float(match.group(1)) if match else None


def format_px(value: float) -> str:
    return f"{round(value, 2):g}px"


def _scale_factor(clause: str) -> float | None:
    grow = any(word in clause for word in _GROW_WORDS) or "twice" in clause
    shrink = any(word in clause for word in _SHRINK_WORDS) or "half" in clause
    if not grow and not shrink:
        return None

    multiplier = _MULTIPLIER.search(clause)
    if multiplier:
        amount = float(multiplier.group(1))
        return amount if grow else (1.0 / amount if amount else SHRINK_FACTOR)
    if "twice" in clause:
        return 2.0
    if "half" in clause:
        return 0.5

    percent = _PERCENT.search(clause)
    if percent:
        amount = float(percent.group(1)) / 100.0
        return 1.0 + amount if grow else max(0.05, 1.0 - amount)
    return GROW_FACTOR if grow else SHRINK_FACTOR


def _color_in(clause: str, raw_clause: str) -> str | None:
    hex_match = _HEX_COLOR.search(raw_clause)
    if hex_match:
        return hex_match.group(0).lower()
    function_match = _FUNCTION_COLOR.search(raw_clause)
    if function_match:
        return function_match.group(0)
    for word in re.findall(r"[a-z]+", clause):
        if word in COLOR_NAMES:
            return COLOR_NAMES[word]
    return None


def _color_property(clause: str, target_is_button: bool) -> str:
    if any(word in clause for word in _BACKGROUND_WORDS):
        return "backgroundColor"
    if any(word in clause for word in _TEXT_COLOR_WORDS):
        return "color"
    return "backgroundColor" if target_is_button else "color"


def _current_px(read_current: ReadCurrent | None, property_name: str, default: float) -> float:
    if read_current is None:
        return default
    value = parse_px(read_current(property_name))
    return value if value else default


def _interpret_clause(
    raw_clause: str,
    *,
    target_is_button: bool,
    read_current: ReadCurrent | None,
) -> list[Interpretation]:
    clause = f" {raw_clause.lower()} "
    found: list[Interpretation] = []

    for name, value in _EXPLICIT_PAIR.findall(raw_clause):
        property_name = normalize_property_name(name)
        if property_name in KNOWN_PROPERTIES:
            found.append(Interpretation(property_name, value.strip(), f"explicit {name}"))
    if found:
        return found

    color = _color_in(clause, raw_clause)
    if color:
        property_name = _color_property(clause, target_is_button)
        found.append(Interpretation(property_name, color, f"color requested in {raw_clause!r}"))

    factor = _scale_factor(clause)
    wants_spacing = any(word in clause for word in _SPACING_WORDS)
    if wants_spacing:
        if " more " in clause or " add " in clause or (factor is not None and factor > 1):
            current = _current_px(read_current, "padding", DEFAULT_PADDING)
            found.append(Interpretation("padding", format_px(max(current, DEFAULT_PADDING) * 1.5), "more spacing"))
        elif " less " in clause or " tighter " in clause or (factor is not None and factor < 1):
            current = _current_px(read_current, "padding", DEFAULT_PADDING)
            found.append(Interpretation("padding", format_px(current * 0.5), "less spacing"))
    elif factor is not None:
        current = _current_px(read_current, "fontSize", DEFAULT_FONT_SIZE)
        found.append(Interpretation("fontSize", format_px(current * factor), f"scaled font size x{factor:g}"))

    if " bold" in clause or "bolder" in clause:
        found.append(Interpretation("fontWeight", "700", "bold requested"))
    if " italic" in clause:
        found.append(Interpretation("fontStyle", "italic", "italic requested"))
    if "uppercase" in clause or "all caps" in clause:
        found.append(Interpretation("textTransform", "uppercase", "uppercase requested"))
    if " pill" in clause:
        found.append(Interpretation("borderRadius", PILL_RADIUS, "pill shape requested"))
    elif "rounded" in clause or "round corners" in clause or "round the corners" in clause:
        found.append(Interpretation("borderRadius", ROUNDED_RADIUS, "rounded corners requested"))
    elif "square corners" in clause or "sharp corners" in clause:
        found.append(Interpretation("borderRadius", "0px", "square corners requested"))
    if " center" in clause or " centre" in clause:
        found.append(Interpretation("textAlign", "center", "centered alignment requested"))
    if " hide " in clause:
        found.append(Interpretation("display", "none", "hide requested"))
    return found


def interpret_instruction(
    text: str,
    *,
    target_is_button: bool = False,
    read_current: ReadCurrent | None = None,
) -> list[Interpretation]:
    """Turn an informal instruction ("make it red and bigger") into property values.

    Later clauses win when two clauses set the same property.
    """
    cleaned = normalize_space(text, limit=1000)
    if not cleaned:
        return []

    by_property: dict[str, Interpretation] = {}
    quoted = _QUOTED.search(cleaned)
    remainder = cleaned
    if quoted:
        new_text = quoted.group(1) if quoted.group(1) is not None else quoted.group(2)
        by_property[TEXT_PROPERTY] = Interpretation(TEXT_PROPERTY, new_text, "replacement copy quoted")
        remainder = cleaned[: quoted.start()] + " " + cleaned[quoted.end() :]

    for clause in _CLAUSE_SPLIT.split(remainder):
        if not clause.strip():
            continue
        for item in _interpret_clause(clause, target_is_button=target_is_button, read_current=read_current):
            by_property[item.property] = item
    return list(by_property.values())


def extract_proposals(
    comment: Comment,
    *,
    target_is_button: bool = False,
    read_current: ReadCurrent | None = None,
) -> list[Proposal]:
    return [
        Proposal(
            source_ref=comment.id,
            suggested_value=item.value,
            rationale=item.rationale,
            property=item.property,
            element_selector=comment.element_selector,
            sequence=comment.sequence,
            text=comment.text,
        )
        for item in interpret_instruction(
            comment.text,
            target_is_button=target_is_button,
            read_current=read_current,
        )
    ]
