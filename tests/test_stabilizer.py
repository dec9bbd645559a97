import pytest

from tweaqengine.memory_page import InMemoryPage, el
from tweaqengine.stabilizer import (
    build_descriptor,
    format_selector_for_display,
    selector_for_handle,
    simplify_selector,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("div.hero > a.btn.btn-primary:hover", "a.btn.btn-primary"),
        ("#signup-cta:focus", "#signup-cta"),
        ("button[data-state='open'].cta", "button.cta"),
        ("div.p-4.mt-2.card", "div.card"),
        ("a:not(.disabled)", "a"),
        ("li:nth-child(2) > a", "a"),
        ('input[type="submit"]', "input"),
        ("a.btn, button.cta", "a.btn"),
        ("section .title", "section .title"),
        ("p::before", "p"),
    ],
)
def test_simplify_selector_keeps_stable_parts(raw: str, expected: str) -> None:
    assert simplify_selector(raw) == expected


def test_simplify_selector_returns_none_without_tag() -> None:
    assert simplify_selector("") is None
    assert simplify_selector(None) is None
    assert simplify_selector(".card > .title") is None


def test_simplified_selectors_have_no_state_or_attribute_parts() -> None:
    raw_selectors = [
        "nav ul > li:nth-child(3) > a[href='/pricing']:hover",
        "button.btn:focus-visible::after",
        "form input[name=email]:disabled",
        "main div.card:first-child h2[data-x]",
    ]
    for raw in raw_selectors:
        simplified = simplify_selector(raw)
        assert simplified
        assert ":" not in simplified
        assert "[" not in simplified


def test_selector_for_handle_stops_at_stable_id() -> None:
    link = el("a", "Choose plan", classes="btn p-4", attrs={"href": "/buy"})
    page = InMemoryPage.from_body(el("section", el("div", link, classes="card"), element_id="pricing"))

    assert selector_for_handle(page, link) == "#pricing > div.card > a.btn"
    assert page.find(selector_for_handle(page, link)) is link


def test_selector_for_handle_is_none_for_detached_element() -> None:
    link = el("a", "Gone", attrs={"href": "/"})
    page = InMemoryPage.from_body(el("div", link))
    page.remove(link)
    assert selector_for_handle(page, link) is None


def test_build_descriptor_captures_identity_and_position() -> None:
    button = el("button", "Get started", element_id="signup", classes="btn btn-primary", box=(100, 200, 120, 40))
    page = InMemoryPage.from_body(el("section", button, classes="hero"))

    descriptor = build_descriptor(page, button, section_hint="hero")
    assert descriptor is not None
    assert descriptor.selector == "#signup"
    assert descriptor.element_id == "signup"
    assert descriptor.tag == "button"
    assert descriptor.classes == ["btn", "btn-primary"]
    assert descriptor.text == "Get started"
    assert descriptor.position == (160.0, 220.0)
    assert descriptor.section_hint == "hero"
    assert descriptor.role_hint == "button"


def test_format_selector_for_display() -> None:
    assert format_selector_for_display("#main .title") == "#main"
    assert format_selector_for_display("button.cta") == "button.cta"
    assert format_selector_for_display(".card") == ".card"
    assert format_selector_for_display("section") == "section"
    assert format_selector_for_display(None) == "Element"
