from __future__ import annotations

import logging
import re
from typing import Any

from .models import TEXT_PROPERTY, ChildNode, EngineIssue, PropertyChange
from .page_provider import PageProvider, is_gone
from .selector_rules import normalize_property_name

DIMENSIONAL_PROPERTIES = frozenset(
    {
        "fontSize",
        "width",
        "height",
        "minWidth",
        "minHeight",
        "maxWidth",
        "maxHeight",
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
        "borderRadius",
        "borderWidth",
        "letterSpacing",
        "gap",
        "top",
        "left",
        "right",
        "bottom",
    }
)
TEXT_WRAPPER_TAGS = frozenset({"br", "span", "strong", "em", "b", "i"})

_BARE_NUMBER = re.compile(r"^-?\d+(?:\.\d+)?$")


def to_css_value(property_name: str, value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        text = f"{value:g}"
    else:
        text = str(value).strip()
    if property_name in DIMENSIONAL_PROPERTIES and _BARE_NUMBER.match(text):
        return f"{text}px"
    return text


class ChangeApplicator:
    def __init__(self, page: PageProvider, logger: logging.Logger | None = None) -> None:
        self.page = page
        self.logger = logger or logging.getLogger("tweaqengine.applicator")

    def read(self, handle: Any, property_name: str) -> Any:
        name = normalize_property_name(property_name)
        if name == TEXT_PROPERTY:
            return self._read_text(handle)
        return self.page.get_computed_property(handle, name)

    def write(self, handle: Any, property_name: str, value: Any) -> bool:
        """Write one property; False when the element has left the page."""
        name = normalize_property_name(property_name)
        if name == TEXT_PROPERTY:
            return self._write_text(handle, "" if value is None else str(value))
        result = self.page.set_property(handle, name, to_css_value(name, value))
        return not is_gone(result)

    def apply(self, handle: Any, changes: list[PropertyChange]) -> list[EngineIssue]:
        return self._write_all(handle, [(change.property, change.after) for change in changes])

    def revert(self, handle: Any, changes: list[PropertyChange]) -> list[EngineIssue]:
        return self._write_all(handle, [(change.property, change.before) for change in changes])

    def _write_all(self, handle: Any, pairs: list[tuple[str, Any]]) -> list[EngineIssue]:
        issues: list[EngineIssue] = []
        for property_name, value in pairs:
            if not self.write(handle, property_name, value):
                self.logger.warning("Skipped %s: element is no longer attached", property_name)
                issues.append(
                    EngineIssue(
                        kind="stale_handle",
                        message=f"Element left the page before {property_name} could be written.",
                        property=property_name,
                    )
                )
        return issues

    def _read_text(self, handle: Any) -> Any:
        nodes = self.page.child_nodes(handle)
        if is_gone(nodes):
            return nodes
        slot = text_slot(nodes)
        if slot is None:
            return self.page.get_text(handle)
        return nodes[slot].text

    def _write_text(self, handle: Any, value: str) -> bool:
        nodes = self.page.child_nodes(handle)
        if is_gone(nodes):
            return False
        slot = text_slot(nodes)
        if slot is None:
            result = self.page.set_text(handle, value)
        else:
            result = self.page.set_text_node(handle, slot, value)
        return not is_gone(result)


def text_slot(nodes: list[ChildNode]) -> int | None:
    """Index of the text node a copy edit owns, or None when it replaces the whole content."""
    text_indexes = [index for index, node in enumerate(nodes) if node.kind == "text"]
    if len(nodes) == 1 and text_indexes:
        return text_indexes[0]
    if not nodes or all(node.kind == "element" and node.tag in TEXT_WRAPPER_TAGS for node in nodes):
        return None
    if text_indexes:
        # mixed content: only the leading text run is edited, nested markup stays
        return text_indexes[0]
    return None
