from __future__ import annotations

from typing import Literal

from .models import TEXT_PROPERTY, Edit, PropertyChange
from .stabilizer import format_selector_for_display

ChangeCategory = Literal["copy", "color", "size", "spacing", "style"]

_CATEGORY_BY_PROPERTY: dict[str, ChangeCategory] = {
    TEXT_PROPERTY: "copy",
    "color": "color",
    "backgroundColor": "color",
    "borderColor": "color",
    "fontSize": "size",
    "width": "size",
    "height": "size",
    "fontWeight": "style",
    "textAlign": "style",
    "opacity": "style",
    "borderRadius": "style",
}
_CATEGORY_LABELS: dict[ChangeCategory, str] = {
    "copy": "Copy Change",
    "color": "Color Change",
    "size": "Size Change",
    "spacing": "Spacing Change",
    "style": "Style Change",
}
FONT_WEIGHT_NAMES = {
    "100": "Thin",
    "200": "Extra Light",
    "300": "Light",
    "400": "Regular",
    "500": "Medium",
    "600": "Semi Bold",
    "700": "Bold",
    "800": "Extra Bold",
    "900": "Black",
}


def categorize_change(property_name: str) -> ChangeCategory:
    if property_name in _CATEGORY_BY_PROPERTY:
        return _CATEGORY_BY_PROPERTY[property_name]
    if property_name.startswith(("padding", "margin")) or property_name == "gap":
        return "spacing"
    return "style"


def category_label(category: ChangeCategory) -> str:
    return _CATEGORY_LABELS[category]


def _truncate(value: object, limit: int = 30) -> str:
    text = "" if value is None else str(value)
    return text[:limit] + ("..." if len(text) > limit else "")


def describe_change(change: PropertyChange) -> str:
    name = change.property
    if name == TEXT_PROPERTY:
        return f'Change text to "{_truncate(change.after)}"'
    if name in {"color", "backgroundColor"}:
        return f"Change {'text' if name == 'color' else 'background'} color to {change.after}"
    if name == "fontSize":
        return f"Change font size from {change.before} to {change.after}"
    if name == "fontWeight":
        return f"Change font weight to {FONT_WEIGHT_NAMES.get(str(change.after), change.after)}"
    if name.startswith("padding") or name.startswith("margin"):
        return f"Adjust {'padding' if name.startswith('padding') else 'margin'} to {change.after}"
    return f"Update {name} to {change.after}"


def summarize_changes(changes: list[PropertyChange]) -> str:
    if not changes:
        return "No changes"
    if len(changes) == 1:
        return describe_change(changes[0])
    categories = {categorize_change(change.property) for change in changes}
    if len(categories) == 1:
        return f"{len(changes)} {category_label(categories.pop()).lower()} updates"
    return f"{len(changes)} property changes"


def summarize_edit(edit: Edit) -> str:
    label = format_selector_for_display(edit.descriptor.selector)
    return f"{label}: {summarize_changes(edit.changes)}"
