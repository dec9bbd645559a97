from tweaqengine.selector_rules import (
    build_id_selector,
    is_dynamic_class_token,
    is_usable_id,
    is_utility_class,
    meaningful_classes,
    normalize_classes,
    normalize_property_name,
)


def test_normalize_classes_deduplicates_and_trims() -> None:
    assert normalize_classes([" btn ", "btn", "btn-primary", "", "  "]) == ["btn", "btn-primary"]
    assert normalize_classes("btn btn  btn-primary") == ["btn", "btn-primary"]
    assert normalize_classes(None) == []


def test_dynamic_class_detection() -> None:
    assert is_dynamic_class_token("css-12ab9c")
    assert is_dynamic_class_token("jss123")
    assert is_dynamic_class_token("sc-aBc123")
    assert is_dynamic_class_token("a1b2c3d4e5f6")

    assert not is_dynamic_class_token("btn-primary")
    assert not is_dynamic_class_token("card")


def test_utility_classes_are_recognised() -> None:
    for token in ("p-4", "mt-2", "bg-blue-500", "md:flex", "hover:bg-red-600", "flex", "text-lg", "rounded-lg"):
        assert is_utility_class(token), token
    for token in ("btn", "hero", "card", "cta-button"):
        assert not is_utility_class(token), token


def test_meaningful_classes_skip_utility_and_generated_tokens() -> None:
    classes = ["p-4", "mt-2", "css-1x2y3z", "card", "btn", "extra"]
    assert meaningful_classes(classes) == ["card", "btn"]
    assert meaningful_classes(classes, limit=3) == ["card", "btn", "extra"]


def test_usable_ids_exclude_roots_and_generated_values() -> None:
    assert is_usable_id("signup-cta")
    assert not is_usable_id("root")
    assert not is_usable_id("__next")
    assert not is_usable_id("12345")
    assert not is_usable_id("ember1234")
    assert not is_usable_id("")
    assert not is_usable_id(None)


def test_build_id_selector_escapes_unsafe_ids() -> None:
    assert build_id_selector("pricing") == "#pricing"
    assert build_id_selector("plan a") == '[id="plan a"]'
    assert build_id_selector("  ") is None


def test_property_names_normalised_to_camel_case() -> None:
    assert normalize_property_name("background-color") == "backgroundColor"
    assert normalize_property_name("font-size") == "fontSize"
    assert normalize_property_name("fontSize") == "fontSize"
    assert normalize_property_name(" color ") == "color"
