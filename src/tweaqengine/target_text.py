from __future__ import annotations

import re
from dataclasses import dataclass, field

from .models import NodeInfo
from .selector_rules import normalize_space

INTERACTIVE_PATTERN = (
    'button, a[href], [role="button"], input[type="submit"], input[type="button"], '
    ".btn, .button, .cta"
)
SECTION_ROOT_PATTERN = "header, footer, nav, section, main > div, body > div, [role=\"banner\"]"

# noun -> (pool pattern, plural forms)
NOUN_PATTERNS: dict[str, tuple[str, tuple[str, ...]]] = {
    "button": (INTERACTIVE_PATTERN, ("buttons",)),
    "cta": (INTERACTIVE_PATTERN, ("ctas",)),
    "link": ("a[href]", ("links",)),
    "heading": ("h1, h2, h3", ("headings",)),
    "headline": ("h1, h2, h3", ("headlines",)),
    "title": ("h1, h2, h3", ("titles",)),
    "subtitle": ("h2, h3, h4, p", ("subtitles",)),
    "paragraph": ("p", ("paragraphs",)),
    "text": ("p, span, h1, h2, h3", ("texts",)),
    "copy": ("p, span", ()),
    "image": ("img, picture, svg", ("images",)),
    "logo": ("img, svg, [class*=\"logo\"]", ("logos",)),
    "icon": ("svg, i, [class*=\"icon\"]", ("icons",)),
    "input": ("input, textarea, select", ("inputs",)),
    "field": ("input, textarea, select", ("fields",)),
    "card": (".card, [class*=\"card\"], article", ("cards",)),
}

SECTION_WORDS: dict[str, str] = {
    "hero": "hero",
    "banner": "hero",
    "masthead": "hero",
    "jumbotron": "hero",
    "header": "header",
    "topbar": "header",
    "footer": "footer",
    "nav": "nav",
    "navbar": "nav",
    "navigation": "nav",
    "menu": "nav",
}

SECTION_HINT_TOKENS: dict[str, tuple[str, ...]] = {
    "hero": ("hero", "banner", "masthead", "jumbotron", "splash", "intro"),
    "header": ("header", "topbar", "top-bar", "site-header"),
    "footer": ("footer", "site-footer"),
    "nav": ("nav", "navbar", "navigation", "menu"),
}

INTENT_PHRASES = (
    "call to action",
    "get started",
    "sign up",
    "signup",
    "start free",
    "try free",
    "try it",
    "buy now",
    "subscribe",
    "register",
    "join",
    "book a demo",
    "contact us",
    "download",
)
INTENT_WORDS = ("cta", "primary", "main")
STYLING_HINT_TOKENS = ("primary", "cta", "btn-primary", "button-primary", "call-to-action", "btn-main")
# nouns that name the copy of an element rather than the element itself
CONTENT_NOUNS = ("text", "copy")
PLURAL_MARKERS = ("all", "every", "each", "both", "them", "these", "those")

_QUOTED = re.compile(r"[\"“']([^\"”']{2,80})[\"”']")
_WORD = re.compile(r"[a-z0-9-]+")


@dataclass(slots=True)
class TargetPhrase:
    text: str
    noun: str | None
    pattern: str
    section: str | None
    intents: list[str] = field(default_factory=list)
    quoted_text: str | None = None
    plural: bool = False
    wants_section_root: bool = False

    @property
    def top_k(self) -> int:
        return 2 if self.plural else 1

    @property
    def has_intent(self) -> bool:
        return bool(self.intents)


def parse_target_phrase(raw: str) -> TargetPhrase:
    text = normalize_space(raw, limit=300)
    lowered = text.lower()
    quoted = _QUOTED.search(text)
    words = _WORD.findall(lowered)

    noun: str | None = None
    pattern: str | None = None
    plural = False
    for word in words:
        for candidate, (noun_pattern, plural_forms) in NOUN_PATTERNS.items():
            if word == candidate or word in plural_forms:
                if candidate in CONTENT_NOUNS and noun is not None:
                    # "the hero button text" still targets the button
                    break
                # otherwise the last noun in the phrase is the head
                noun = candidate
                pattern = noun_pattern
                plural = word in plural_forms
    if noun == "cta":
        noun = "button"

    section: str | None = None
    for word in words:
        if word in SECTION_WORDS:
            section = SECTION_WORDS[word]
            break

    intents = [phrase for phrase in INTENT_PHRASES if phrase in lowered]
    intents.extend(word for word in INTENT_WORDS if word in words)

    if any(marker in words for marker in PLURAL_MARKERS):
        plural = True

    wants_section_root = noun is None and section is not None and "section" in words or (
        noun is None and section is not None and not intents
    )
    if wants_section_root:
        pattern = SECTION_ROOT_PATTERN
    elif pattern is None:
        pattern = INTERACTIVE_PATTERN

    return TargetPhrase(
        text=text,
        noun=noun,
        pattern=pattern,
        section=section,
        intents=intents,
        quoted_text=normalize_space(quoted.group(1)) if quoted else None,
        plural=plural,
        wants_section_root=wants_section_root,
    )


def text_matches_intent(text: str, phrase: TargetPhrase) -> bool:
    lowered = normalize_space(text).lower()
    if not lowered:
        return False
    if phrase.quoted_text and phrase.quoted_text.lower() in lowered:
        return True
    return any(intent in lowered for intent in phrase.intents if intent not in INTENT_WORDS)


def has_styling_hint(tokens: list[str]) -> bool:
    return any(hint in token for token in tokens for hint in STYLING_HINT_TOKENS)


_BUTTON_CLASS_PARTS = ("btn", "button", "cta")


def is_button_like(info: NodeInfo) -> bool:
    if info.tag == "button" or info.role == "button":
        return True
    if info.tag == "input" and info.attributes.get("type", "").lower() in {"submit", "button", "reset"}:
        return True
    return any(part in token for token in info.tokens() for part in _BUTTON_CLASS_PARTS)
