from __future__ import annotations

from typing import Any, Protocol, TypeVar, Union

from .models import BoundingBox, ChildNode, NodeInfo

T = TypeVar("T")


class _Gone:
    __slots__ = ()

    def __repr__(self) -> str:
        return "GONE"

    def __bool__(self) -> bool:
        return False


GONE = _Gone()
"""Returned by providers for handles whose element has left the page."""

Maybe = Union[T, _Gone]


def is_gone(value: object) -> bool:
    return value is GONE


class PageProvider(Protocol):
    def query_candidates(self, pattern: str) -> list[Any]: ...

    def is_attached(self, handle: Any) -> bool: ...

    def describe(self, handle: Any) -> Maybe[NodeInfo]: ...

    def parent(self, handle: Any) -> Maybe[Any | None]: ...

    def element_children(self, handle: Any) -> Maybe[list[Any]]: ...

    def child_nodes(self, handle: Any) -> Maybe[list[ChildNode]]: ...

    def get_computed_property(self, handle: Any, name: str) -> Maybe[str]: ...

    def set_property(self, handle: Any, name: str, value: str) -> Maybe[None]: ...

    def get_text(self, handle: Any) -> Maybe[str]: ...

    def set_text(self, handle: Any, value: str) -> Maybe[None]: ...

    def set_text_node(self, handle: Any, index: int, value: str) -> Maybe[None]: ...

    def get_bounding_box(self, handle: Any) -> Maybe[BoundingBox]: ...

    def node_key(self, handle: Any) -> Maybe[str]: ...

    def document_index(self, handle: Any) -> Maybe[int]: ...

    def viewport(self) -> tuple[int, int]: ...


def normalize_viewport_size(
    width: int | float | None,
    height: int | float | None,
    *,
    default_width: int = 1280,
    default_height: int = 720,
) -> tuple[int, int]:
    try:
        resolved_width = int(width) if width is not None else default_width
    except (TypeError, ValueError):
        resolved_width = default_width
    try:
        resolved_height = int(height) if height is not None else default_height
    except (TypeError, ValueError):
        resolved_height = default_height

    return max(320, resolved_width), max(240, resolved_height)
