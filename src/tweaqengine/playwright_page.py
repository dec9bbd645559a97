from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from playwright.sync_api import ElementHandle
from playwright.sync_api import Error as PlaywrightError

from .models import BoundingBox, ChildNode, NodeInfo
from .page_provider import GONE, Maybe, normalize_viewport_size
from .selector_rules import normalize_classes, normalize_space

if TYPE_CHECKING:
    from playwright.sync_api import Page

logger = logging.getLogger("tweaqengine.playwright")

_DESCRIBE_SCRIPT = """
(el) => {
  const attrs = {};
  for (const attr of el.attributes) {
    attrs[attr.name] = attr.value;
  }
  const tag = el.tagName.toLowerCase();
  const explicitRole = el.getAttribute('role');
  let inferredRole = null;
  if (!explicitRole) {
    if (tag === 'button') inferredRole = 'button';
    if (tag === 'a' && el.getAttribute('href')) inferredRole = 'link';
    if (tag === 'header') inferredRole = 'banner';
    if (tag === 'footer') inferredRole = 'contentinfo';
    if (tag === 'nav') inferredRole = 'navigation';
    if (tag === 'input') {
      const inputType = (el.getAttribute('type') || 'text').toLowerCase();
      if (['button', 'submit', 'reset'].includes(inputType)) inferredRole = 'button';
    }
  }
  return {
    tag,
    id: el.id || null,
    classes: Array.from(el.classList || []),
    text: (el.innerText || el.textContent || '').trim().replace(/\\s+/g, ' ').slice(0, 200),
    role: explicitRole || inferredRole,
    attributes: attrs,
  };
}
"""

_NODE_KEY_SCRIPT = """
(el) => {
  const registry = window.__tweaqNodeKeys || (window.__tweaqNodeKeys = new WeakMap());
  if (!registry.has(el)) {
    window.__tweaqNodeSeq = (window.__tweaqNodeSeq || 0) + 1;
    registry.set(el, 'node-' + window.__tweaqNodeSeq);
  }
  return registry.get(el);
}
"""

_CHILD_NODES_SCRIPT = """
(el) => Array.from(el.childNodes).map((node) => {
  if (node.nodeType === Node.TEXT_NODE) {
    return { kind: 'text', text: node.nodeValue || '', tag: '' };
  }
  if (node.nodeType === Node.ELEMENT_NODE) {
    return { kind: 'element', text: node.textContent || '', tag: node.tagName.toLowerCase() };
  }
  return { kind: 'element', text: '', tag: '#' + node.nodeName.toLowerCase().replace('#', '') };
})
"""

_SET_TEXT_NODE_SCRIPT = """
(el, args) => {
  const node = el.childNodes[args[0]];
  if (node && node.nodeType === Node.TEXT_NODE) {
    node.nodeValue = args[1];
  }
}
"""


class PlaywrightPageProvider:
    """Page provider over a live Playwright (sync API) page."""

    def __init__(self, page: Page) -> None:
        self.page = page

    def query_candidates(self, pattern: str) -> list[Any]:
        try:
            return list(self.page.query_selector_all(pattern))
        except PlaywrightError as exc:
            logger.info("Query %r failed: %s", pattern, exc)
            return []

    def _evaluate(self, handle: ElementHandle, script: str, arg: Any = None) -> Any:
        try:
            if not handle.evaluate("(el) => el.isConnected"):
                return GONE
            if arg is None:
                return handle.evaluate(script)
            return handle.evaluate(script, arg)
        except PlaywrightError:
            return GONE

    def is_attached(self, handle: Any) -> bool:
        try:
            return bool(handle.evaluate("(el) => el.isConnected"))
        except PlaywrightError:
            return False

    def describe(self, handle: Any) -> Maybe[NodeInfo]:
        payload = self._evaluate(handle, _DESCRIBE_SCRIPT)
        if payload is GONE:
            return GONE
        return NodeInfo(
            tag=str(payload.get("tag", "") or ""),
            element_id=payload.get("id") or None,
            classes=tuple(normalize_classes(payload.get("classes", []))),
            text=normalize_space(payload.get("text", "")),
            role=payload.get("role") or None,
            attributes={str(k): str(v) for k, v in dict(payload.get("attributes", {})).items()},
        )

    def parent(self, handle: Any) -> Maybe[Any | None]:
        if not self.is_attached(handle):
            return GONE
        try:
            return handle.evaluate_handle("(el) => el.parentElement").as_element()
        except PlaywrightError:
            return GONE

    def element_children(self, handle: Any) -> Maybe[list[Any]]:
        if not self.is_attached(handle):
            return GONE
        try:
            return list(handle.query_selector_all(":scope > *"))
        except PlaywrightError:
            return GONE

    def child_nodes(self, handle: Any) -> Maybe[list[ChildNode]]:
        payload = self._evaluate(handle, _CHILD_NODES_SCRIPT)
        if payload is GONE:
            return GONE
        return [
            ChildNode(kind=item.get("kind", "element"), text=str(item.get("text", "")), tag=str(item.get("tag", "")))
            for item in payload
        ]

    def get_computed_property(self, handle: Any, name: str) -> Maybe[str]:
        value = self._evaluate(handle, "(el, name) => getComputedStyle(el)[name]", name)
        if value is GONE:
            return GONE
        return "" if value is None else str(value)

    def set_property(self, handle: Any, name: str, value: str) -> Maybe[None]:
        result = self._evaluate(handle, "(el, args) => { el.style[args[0]] = args[1]; }", [name, value or ""])
        return GONE if result is GONE else None

    def get_text(self, handle: Any) -> Maybe[str]:
        value = self._evaluate(handle, "(el) => el.textContent || ''")
        return GONE if value is GONE else str(value)

    def set_text(self, handle: Any, value: str) -> Maybe[None]:
        result = self._evaluate(handle, "(el, value) => { el.textContent = value; }", value)
        return GONE if result is GONE else None

    def set_text_node(self, handle: Any, index: int, value: str) -> Maybe[None]:
        result = self._evaluate(handle, _SET_TEXT_NODE_SCRIPT, [index, value])
        return GONE if result is GONE else None

    def get_bounding_box(self, handle: Any) -> Maybe[BoundingBox]:
        if not self.is_attached(handle):
            return GONE
        try:
            box = handle.bounding_box()
        except PlaywrightError:
            return GONE
        if not box:
            return BoundingBox(0.0, 0.0, 0.0, 0.0)
        return BoundingBox(float(box["x"]), float(box["y"]), float(box["width"]), float(box["height"]))

    def node_key(self, handle: Any) -> Maybe[str]:
        value = self._evaluate(handle, _NODE_KEY_SCRIPT)
        return GONE if value is GONE else str(value)

    def document_index(self, handle: Any) -> Maybe[int]:
        value = self._evaluate(handle, "(el) => Array.prototype.indexOf.call(document.querySelectorAll('*'), el)")
        if value is GONE or value is None or int(value) < 0:
            return GONE
        return int(value)

    def viewport(self) -> tuple[int, int]:
        size = self.page.viewport_size or {}
        return normalize_viewport_size(size.get("width"), size.get("height"))
