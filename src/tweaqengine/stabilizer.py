from __future__ import annotations

import logging
import re
from typing import Any

from .models import ElementDescriptor, NodeInfo
from .page_provider import PageProvider, is_gone
from .selector_rules import build_id_selector, is_usable_id, meaningful_classes, normalize_space

logger = logging.getLogger("tweaqengine.stabilizer")

_ATTRIBUTE_SELECTOR = re.compile(r"\[(?:[^\]\"']|\"[^\"]*\"|'[^']*')*\]")
_PAREN_ARGUMENT = re.compile(r"\([^()]*\)")
_PSEUDO_SELECTOR = re.compile(r"::?[A-Za-z-]+")
_COMBINATOR_SPLIT = re.compile(r"\s*[>+~]\s*|\s+")
_TAG = re.compile(r"^([A-Za-z][A-Za-z0-9-]*)")
_ID = re.compile(r"#(-?[A-Za-z_][\w-]*)")
_CLASS = re.compile(r"\.(-?[A-Za-z_][\w-]*)")

MAX_PATH_DEPTH = 4


def strip_state_selectors(raw: str) -> str:
    text = _ATTRIBUTE_SELECTOR.sub("", raw)
    previous = None
    while previous != text:
        previous = text
        text = _PAREN_ARGUMENT.sub("", text)
    return _PSEUDO_SELECTOR.sub("", text)


def _parse_compound(compound: str) -> tuple[str | None, str | None, list[str]]:
    tag_match = _TAG.match(compound)
    id_match = _ID.search(compound)
    return (
        tag_match.group(1).lower() if tag_match else None,
        id_match.group(1) if id_match else None,
        _CLASS.findall(compound),
    )


def simplify_selector(raw_selector: str | None) -> str | None:
    text = normalize_space(raw_selector, limit=1000)
    if not text:
        return None
    # Selector lists: the first alternative names the recorded target.
    stripped = strip_state_selectors(text).split(",", 1)[0]
    compounds = [item for item in _COMBINATOR_SPLIT.split(stripped.strip()) if item and item != "*"]
    if not compounds:
        return None

    tag, element_id, classes = _parse_compound(compounds[-1])
    if element_id:
        return f"#{element_id}"

    picks = meaningful_classes(classes, limit=2)
    if tag:
        return tag + "".join(f".{item}" for item in picks)

    for compound in reversed(compounds[:-1]):
        ancestor_tag, _ancestor_id, _ancestor_classes = _parse_compound(compound)
        if not ancestor_tag:
            continue
        if picks:
            return f"{ancestor_tag} " + "".join(f".{item}" for item in picks)
        return ancestor_tag

    logger.debug("Selector has no extractable tag: %s", raw_selector)
    return None


def compound_for(info: NodeInfo) -> str:
    id_selector = build_id_selector(info.element_id) if is_usable_id(info.element_id) else None
    if id_selector:
        return id_selector
    tag = (info.tag or "*").lower()
    return tag + "".join(f".{item}" for item in meaningful_classes(info.classes, limit=2))


def class_path_selector(tag: str | None, classes: list[str]) -> str | None:
    picks = meaningful_classes(classes, limit=2)
    if not picks:
        return None
    return (tag or "").lower() + "".join(f".{item}" for item in picks)


def selector_for_handle(page: PageProvider, handle: Any) -> str | None:
    path: list[str] = []
    current: Any = handle
    while current is not None and len(path) < MAX_PATH_DEPTH:
        info = page.describe(current)
        if is_gone(info):
            return None
        if info.tag in {"html", "body"}:
            break
        compound = compound_for(info)
        path.insert(0, compound)
        if compound.startswith("#") or compound.startswith("[id="):
            break
        parent = page.parent(current)
        if is_gone(parent):
            return None
        current = parent
    return " > ".join(path) if path else None


def build_descriptor(
    page: PageProvider,
    handle: Any,
    *,
    selector: str | None = None,
    section_hint: str | None = None,
    role_hint: str | None = None,
) -> ElementDescriptor | None:
    info = page.describe(handle)
    if is_gone(info):
        return None
    box = page.get_bounding_box(handle)
    resolved_selector = selector or selector_for_handle(page, handle) or info.tag
    return ElementDescriptor(
        selector=resolved_selector,
        element_id=info.element_id if is_usable_id(info.element_id) else None,
        tag=info.tag,
        classes=list(info.classes),
        text=normalize_space(info.text, limit=120) or None,
        position=None if is_gone(box) else box.center,
        section_hint=section_hint,
        role_hint=role_hint or info.role,
    )


def format_selector_for_display(selector: str | None) -> str:
    if not selector:
        return "Element"

    id_match = _ID.search(selector)
    if id_match:
        return f"#{id_match.group(1)}"

    class_match = _CLASS.search(selector)
    tag_match = _TAG.match(selector.strip())
    if class_match and tag_match:
        return f"{tag_match.group(1)}.{class_match.group(1)}"
    if class_match:
        return f".{class_match.group(1)}"
    if tag_match:
        return tag_match.group(1)
    return selector[:30] + ("..." if len(selector) > 30 else "")
