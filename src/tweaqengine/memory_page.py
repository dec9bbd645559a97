from __future__ import annotations

import logging
from typing import Any, Iterator, Mapping, Union

from bs4 import BeautifulSoup, NavigableString, Tag
from soupsieve import SelectorSyntaxError

from .models import BoundingBox, ChildNode, NodeInfo
from .page_provider import GONE, Maybe, normalize_viewport_size
from .selector_rules import normalize_classes, normalize_space

logger = logging.getLogger("tweaqengine.memory_page")

DEFAULT_COMPUTED: dict[str, str] = {
    "fontSize": "16px",
    "fontWeight": "400",
    "fontStyle": "normal",
    "color": "rgb(0, 0, 0)",
    "backgroundColor": "rgba(0, 0, 0, 0)",
    "borderRadius": "0px",
    "padding": "0px",
    "margin": "0px",
    "gap": "normal",
    "opacity": "1",
    "textAlign": "start",
    "textTransform": "none",
    "visibility": "visible",
}

_INLINE_TAGS = {"a", "span", "strong", "em", "b", "i", "label", "img", "input", "button", "select", "textarea"}


class MemoryTag(Tag):
    """A soup tag carrying the rendering state a browser would compute for it."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.inline_style: dict[str, str] = {}
        self.computed_style: dict[str, str] = {}
        self.layout_box: BoundingBox | None = None


def _new_soup() -> BeautifulSoup:
    return BeautifulSoup("", "html.parser", element_classes={Tag: MemoryTag})


_FACTORY = _new_soup()


def el(
    tag: str,
    *children: Union[Tag, str],
    element_id: str | None = None,
    classes: str = "",
    attrs: Mapping[str, str] | None = None,
    style: Mapping[str, str] | None = None,
    computed: Mapping[str, str] | None = None,
    box: tuple[float, float, float, float] | BoundingBox | None = None,
) -> MemoryTag:
    attributes = {str(key): str(value) for key, value in dict(attrs or {}).items()}
    if element_id:
        attributes["id"] = element_id
    if classes:
        attributes["class"] = classes
    node = _FACTORY.new_tag(tag.lower(), attrs=attributes)
    node.inline_style = dict(style or {})
    node.computed_style = dict(computed or {})
    if isinstance(box, tuple):
        box = BoundingBox(*(float(item) for item in box))
    node.layout_box = box
    for child in children:
        node.append(child)
    return node


def _attribute_text(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return " ".join(str(item) for item in value)
    return str(value)


def _is_text(node: Any) -> bool:
    return type(node) is NavigableString


class InMemoryPage:
    """Page provider over a BeautifulSoup tree; the substitute page for tests and previews."""

    def __init__(self, root: Tag, viewport: tuple[int, int] = (1280, 720)) -> None:
        self.document = _new_soup()
        self.document.append(root)
        self.root = root
        self._viewport = normalize_viewport_size(*viewport)
        self._keys: dict[int, str] = {}

    @classmethod
    def from_body(
        cls,
        *children: Union[Tag, str],
        viewport: tuple[int, int] = (1280, 720),
    ) -> InMemoryPage:
        body = el("body", *children, box=(0, 0, viewport[0], viewport[1]))
        return cls(el("html", body), viewport=viewport)

    # tree helpers -----------------------------------------------------------------

    def iter_elements(self) -> Iterator[Tag]:
        yield self.root
        yield from self.root.find_all(True)

    def find(self, selector: str) -> Tag | None:
        matches = self.query_candidates(selector)
        return matches[0] if matches else None

    def remove(self, node: Tag) -> None:
        node.extract()

    def _attached(self, handle: Any) -> bool:
        if not isinstance(handle, Tag):
            return False
        current: Any = handle
        while current is not None:
            if current is self.document:
                return True
            current = current.parent
        return False

    # provider surface -------------------------------------------------------------

    def query_candidates(self, pattern: str) -> list[Any]:
        if not pattern or not pattern.strip():
            return []
        try:
            return list(self.document.select(pattern))
        except SelectorSyntaxError as exc:
            logger.info("Query %r failed: %s", pattern, exc)
            return []

    def is_attached(self, handle: Any) -> bool:
        return self._attached(handle)

    def describe(self, handle: Any) -> Maybe[NodeInfo]:
        if not self._attached(handle):
            return GONE
        attributes = {str(key): _attribute_text(value) for key, value in handle.attrs.items()}
        return NodeInfo(
            tag=handle.name,
            element_id=attributes.get("id") or None,
            classes=tuple(normalize_classes(attributes.get("class", ""))),
            text=normalize_space(handle.get_text(), limit=200),
            role=_role_for(handle.name, attributes),
            attributes=attributes,
        )

    def parent(self, handle: Any) -> Maybe[Any | None]:
        if not self._attached(handle):
            return GONE
        parent = handle.parent
        return None if parent is self.document else parent

    def element_children(self, handle: Any) -> Maybe[list[Any]]:
        if not self._attached(handle):
            return GONE
        return handle.find_all(True, recursive=False)

    def child_nodes(self, handle: Any) -> Maybe[list[ChildNode]]:
        if not self._attached(handle):
            return GONE
        nodes: list[ChildNode] = []
        for child in handle.contents:
            if _is_text(child):
                nodes.append(ChildNode(kind="text", text=str(child)))
            elif isinstance(child, Tag):
                nodes.append(ChildNode(kind="element", text=child.get_text(), tag=child.name))
            else:
                nodes.append(ChildNode(kind="element", text="", tag=f"#{type(child).__name__.lower()}"))
        return nodes

    def get_computed_property(self, handle: Any, name: str) -> Maybe[str]:
        if not self._attached(handle):
            return GONE
        if name in handle.inline_style:
            return handle.inline_style[name]
        if name in handle.computed_style:
            return handle.computed_style[name]
        if name == "display":
            return "inline" if handle.name in _INLINE_TAGS else "block"
        return DEFAULT_COMPUTED.get(name, "")

    def set_property(self, handle: Any, name: str, value: str) -> Maybe[None]:
        if not self._attached(handle):
            return GONE
        if value in ("", None):
            handle.inline_style.pop(name, None)
        else:
            handle.inline_style[name] = str(value)
        return None

    def get_text(self, handle: Any) -> Maybe[str]:
        if not self._attached(handle):
            return GONE
        return handle.get_text()

    def set_text(self, handle: Any, value: str) -> Maybe[None]:
        if not self._attached(handle):
            return GONE
        handle.clear()
        handle.append(str(value))
        return None

    def set_text_node(self, handle: Any, index: int, value: str) -> Maybe[None]:
        if not self._attached(handle):
            return GONE
        if 0 <= index < len(handle.contents) and _is_text(handle.contents[index]):
            handle.contents[index].replace_with(str(value))
        return None

    def get_bounding_box(self, handle: Any) -> Maybe[BoundingBox]:
        if not self._attached(handle):
            return GONE
        return handle.layout_box or BoundingBox(0.0, 0.0, 0.0, 0.0)

    def node_key(self, handle: Any) -> Maybe[str]:
        if not self._attached(handle):
            return GONE
        key = self._keys.get(id(handle))
        if key is None:
            key = f"node-{len(self._keys) + 1}"
            self._keys[id(handle)] = key
        return key

    def document_index(self, handle: Any) -> Maybe[int]:
        for index, node in enumerate(self.iter_elements()):
            if node is handle:
                return index
        return GONE

    def viewport(self) -> tuple[int, int]:
        return self._viewport


def _role_for(tag: str, attributes: Mapping[str, str]) -> str | None:
    explicit = attributes.get("role")
    if explicit:
        return explicit
    if tag == "button":
        return "button"
    if tag == "a" and attributes.get("href"):
        return "link"
    if tag == "input" and attributes.get("type", "text").lower() in {"button", "submit", "reset"}:
        return "button"
    return None
