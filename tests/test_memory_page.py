from tweaqengine.memory_page import InMemoryPage, el
from tweaqengine.page_provider import GONE, is_gone, normalize_viewport_size


def _page():
    first = el("li", el("a", "Home", attrs={"href": "/"}), classes="item")
    second = el("li", el("a", "Pricing", attrs={"href": "/pricing"}), classes="item active")
    nav = el("nav", el("ul", first, second), classes="site-nav")
    hero = el(
        "section",
        el("h1", "Ship faster"),
        el("button", "Get started", classes="btn btn-primary", attrs={"type": "submit"}),
        element_id="hero",
    )
    return InMemoryPage.from_body(nav, hero)


def test_query_supports_combinators_and_attributes() -> None:
    page = _page()

    assert [node.get_text() for node in page.query_candidates("nav a")] == ["Home", "Pricing"]
    assert [node.get_text() for node in page.query_candidates("ul > li.active > a")] == ["Pricing"]
    assert [node.get_text() for node in page.query_candidates('a[href="/pricing"]')] == ["Pricing"]
    assert [node.get_text() for node in page.query_candidates("a[href^='/p']")] == ["Pricing"]
    assert [node.name for node in page.query_candidates("h1 + button")] == ["button"]
    assert [node.name for node in page.query_candidates("#hero > *")] == ["h1", "button"]
    assert len(page.query_candidates("li:nth-child(2)")) == 1
    assert len(page.query_candidates("li:not(.active)")) == 1
    assert len(page.query_candidates("h1, button")) == 2


def test_state_pseudos_never_match_and_bad_syntax_is_empty() -> None:
    page = _page()
    assert page.query_candidates("button:hover") == []
    assert page.query_candidates("a:hover > span") == []
    assert page.query_candidates("div >") == []
    assert page.query_candidates("li:nth-child(") == []
    assert page.query_candidates("") == []


def test_structural_and_functional_pseudos_follow_css() -> None:
    items = [el("li", label) for label in ("One", "Two", "Three", "Four")]
    page = InMemoryPage.from_body(el("ul", *items), el("button", "Go"))

    assert [node.get_text() for node in page.query_candidates("li:nth-child(odd)")] == ["One", "Three"]
    last = page.query_candidates("li:last-of-type")
    assert len(last) == 1 and last[0] is items[-1]
    assert len(page.query_candidates(":is(button, li)")) == 5
    assert len(page.query_candidates("ul:has(li)")) == 1


def test_computed_properties_layer_inline_style_over_defaults() -> None:
    button = el("button", "Go", computed={"color": "rgb(255, 255, 255)"})
    page = InMemoryPage.from_body(button)

    assert page.get_computed_property(button, "fontSize") == "16px"
    assert page.get_computed_property(button, "color") == "rgb(255, 255, 255)"
    assert page.get_computed_property(button, "display") == "inline"

    page.set_property(button, "color", "#ef4444")
    assert page.get_computed_property(button, "color") == "#ef4444"
    page.set_property(button, "color", "")
    assert page.get_computed_property(button, "color") == "rgb(255, 255, 255)"


def test_detached_handles_yield_gone() -> None:
    page = _page()
    button = page.find("button")
    page.remove(button)

    assert not page.is_attached(button)
    assert page.describe(button) is GONE
    assert is_gone(page.get_computed_property(button, "color"))
    assert is_gone(page.set_property(button, "color", "red"))
    assert is_gone(page.get_bounding_box(button))
    assert is_gone(page.node_key(button))
    assert not GONE


def test_describe_infers_roles_and_node_keys_are_stable() -> None:
    page = _page()
    button = page.find("button")
    link = page.find("a")

    assert page.describe(button).role == "button"
    assert page.describe(link).role == "link"
    assert page.node_key(button) == page.node_key(button)
    assert page.node_key(button) != page.node_key(link)
    assert page.document_index(link) < page.document_index(button)


def test_normalize_viewport_size_clamps_and_defaults() -> None:
    assert normalize_viewport_size(None, None) == (1280, 720)
    assert normalize_viewport_size("abc", 100) == (1280, 240)
    assert normalize_viewport_size(200, 900) == (320, 900)
