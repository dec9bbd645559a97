from __future__ import annotations

import re
from typing import Any, Iterable

ROOT_ID_BLOCKLIST = {"__next", "root", "app", "__nuxt", "gatsby-focus-wrapper"}
ROOT_ID_BLOCKLIST_LOWER = {item.lower() for item in ROOT_ID_BLOCKLIST}

_DYNAMIC_CLASS_PATTERNS = (
    re.compile(r"^css-[a-z0-9_-]{4,}$", re.IGNORECASE),
    re.compile(r"^jss\d+$", re.IGNORECASE),
    re.compile(r"^sc-[a-z0-9]+$", re.IGNORECASE),
    re.compile(r"^[a-f0-9]{8,}$", re.IGNORECASE),
    re.compile(r"^[a-z]+__[a-z]+___[a-z0-9]{5,}$", re.IGNORECASE),
)

# Tailwind / Bootstrap style atoms: spacing, layout, colour, typography.
_UTILITY_CLASS_PATTERNS = (
    re.compile(r"^[a-z0-9-]+:[A-Za-z0-9_.:/\[\]#%-]+$"),
    re.compile(r"^-?(m|p)[trblxyse]?-(\d+(\.\d+)?|px|auto|\[[^\]]+\])$"),
    re.compile(r"^(w|h|min-w|min-h|max-w|max-h|size)-(\d+(\.\d+)?|\d+/\d+|px|auto|full|screen|min|max|fit|xs|sm|md|lg|xl|\dxl|prose|\[[^\]]+\])$"),
    re.compile(r"^(gap|gap-x|gap-y|space-x|space-y)-(\d+(\.\d+)?|px|\[[^\]]+\])$"),
    re.compile(r"^(items|justify|content|self|place-items|place-content)-(start|end|center|between|around|evenly|stretch|baseline|normal)$"),
    re.compile(r"^(flex|grid-cols|grid-rows|col-span|row-span|order|basis|grow|shrink)-(\d+|auto|full|none|row|col|wrap|nowrap|first|last|\d+/\d+)$"),
    re.compile(r"^(text|bg|border|ring|fill|stroke|from|via|to|divide|accent|caret|decoration|outline|shadow)-(inherit|current|transparent|black|white|[a-z]+-\d{2,3}(/\d+)?|\[[^\]]+\])$"),
    re.compile(r"^text-(xs|sm|base|lg|xl|\dxl|left|right|center|justify)$"),
    re.compile(r"^font-(thin|extralight|light|normal|medium|semibold|bold|extrabold|black|sans|serif|mono)$"),
    re.compile(r"^rounded(-[trbl]{1,2})?(-(none|sm|md|lg|xl|\dxl|full))?$"),
    re.compile(r"^(shadow|border|ring)(-(\d|sm|md|lg|xl|\dxl|none|[trblxy]))?$"),
    re.compile(r"^(leading|tracking|opacity|z|top|right|bottom|left|inset|inset-x|inset-y|duration|delay|scale)-(\d+|px|auto|full|none|tight|snug|normal|relaxed|loose|wide|wider|widest|tighter)$"),
    re.compile(r"^(overflow|overflow-x|overflow-y|cursor|ease|transition)-(auto|hidden|scroll|visible|pointer|default|linear|in|out|in-out|all|colors|opacity|none)$"),
    re.compile(r"^(d|mt|mb|ms|me|mx|my|pt|pb|ps|pe|px|py|p|m|g|fs|fw|lh)-(\d+|auto|none|bold|normal|block|flex|inline|inline-block|grid)$"),
    re.compile(r"^col(-[a-z]{2})?-\d{1,2}$"),
)

_UTILITY_CLASS_WORDS = {
    "flex",
    "grid",
    "block",
    "inline",
    "inline-block",
    "inline-flex",
    "inline-grid",
    "hidden",
    "contents",
    "table",
    "relative",
    "absolute",
    "fixed",
    "sticky",
    "static",
    "container",
    "mx-auto",
    "truncate",
    "underline",
    "uppercase",
    "lowercase",
    "capitalize",
    "italic",
    "antialiased",
    "sr-only",
    "visible",
    "invisible",
    "rounded",
    "shadow",
    "border",
    "transition",
    "transform",
    "clearfix",
    "row",
}

_CSS_SAFE_ID_PATTERN = re.compile(r"^-?[A-Za-z_][A-Za-z0-9_-]*$")
_CSS_SAFE_CLASS_PATTERN = re.compile(r"^-?[A-Za-z_][A-Za-z0-9_-]*$")
_KEBAB_PROPERTY_PATTERN = re.compile(r"-([a-z])")


def normalize_space(value: Any, limit: int = 200) -> str:
    if value is None:
        return ""
    compact = re.sub(r"\s+", " ", str(value)).strip()
    return compact[:limit] if compact else ""


def normalize_classes(raw: Iterable[str] | str | None) -> list[str]:
    if raw is None:
        return []
    items = raw.split() if isinstance(raw, str) else list(raw)
    result: list[str] = []
    seen: set[str] = set()
    for item in items:
        token = str(item).strip()
        if not token or token in seen:
            continue
        seen.add(token)
        result.append(token)
    return result


def is_dynamic_class_token(token: str) -> bool:
    value = token.strip()
    if not value:
        return True
    if any(pattern.match(value) for pattern in _DYNAMIC_CLASS_PATTERNS):
        return True
    if len(value) > 18 and re.search(r"\d", value):
        return True
    if value.count("-") >= 3 and re.search(r"\d", value):
        return True
    return False


def is_utility_class(token: str) -> bool:
    value = token.strip()
    if not value:
        return False
    if value.lower() in _UTILITY_CLASS_WORDS:
        return True
    return any(pattern.match(value) for pattern in _UTILITY_CLASS_PATTERNS)


def meaningful_classes(classes: Iterable[str], limit: int = 2) -> list[str]:
    picks: list[str] = []
    for token in normalize_classes(list(classes)):
        if is_utility_class(token) or is_dynamic_class_token(token):
            continue
        if not _CSS_SAFE_CLASS_PATTERN.fullmatch(token):
            continue
        picks.append(token)
        if len(picks) >= limit:
            break
    return picks


def is_blocked_root_id(id_value: str) -> bool:
    return id_value.strip().lower() in ROOT_ID_BLOCKLIST_LOWER


def is_css_safe_id(value: str) -> bool:
    return bool(_CSS_SAFE_ID_PATTERN.fullmatch(value.strip()))


def escape_css_attribute_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def build_id_selector(raw_id: Any) -> str | None:
    if raw_id is None:
        return None
    id_value = str(raw_id).strip()
    if not id_value:
        return None
    if is_css_safe_id(id_value):
        return f"#{id_value}"
    return f'[id="{escape_css_attribute_value(id_value)}"]'


def is_usable_id(id_value: str | None) -> bool:
    value = (id_value or "").strip()
    if not value or is_blocked_root_id(value):
        return False
    if re.fullmatch(r"\d+", value) or re.search(r"\d{4,}", value):
        return False
    return not is_dynamic_class_token(value)


def normalize_property_name(name: str) -> str:
    text = name.strip()
    if "-" not in text:
        return text
    return _KEBAB_PROPERTY_PATTERN.sub(lambda match: match.group(1).upper(), text.lower())
