from tweaqengine.display import categorize_change, describe_change, summarize_changes, summarize_edit
from tweaqengine.models import Edit, ElementDescriptor, PropertyChange


def _change(name: str, after: object, before: object = None) -> PropertyChange:
    return PropertyChange(property=name, before=before, after=after)


def test_categories() -> None:
    assert categorize_change("textContent") == "copy"
    assert categorize_change("backgroundColor") == "color"
    assert categorize_change("fontSize") == "size"
    assert categorize_change("marginLeft") == "spacing"
    assert categorize_change("gap") == "spacing"
    assert categorize_change("letterSpacing") == "style"


def test_describe_change_wording() -> None:
    assert describe_change(_change("textContent", "Start your free trial today, no card")) == (
        'Change text to "Start your free trial today, n..."'
    )
    assert describe_change(_change("backgroundColor", "#ef4444")) == "Change background color to #ef4444"
    assert describe_change(_change("color", "#111")) == "Change text color to #111"
    assert describe_change(_change("fontSize", "20px", "16px")) == "Change font size from 16px to 20px"
    assert describe_change(_change("fontWeight", "700")) == "Change font weight to Bold"
    assert describe_change(_change("paddingTop", "12px")) == "Adjust padding to 12px"
    assert describe_change(_change("opacity", "0.5")) == "Update opacity to 0.5"


def test_summaries() -> None:
    assert summarize_changes([]) == "No changes"
    assert summarize_changes([_change("color", "red"), _change("backgroundColor", "blue")]) == "2 color change updates"
    assert summarize_changes([_change("color", "red"), _change("fontSize", "20px")]) == "2 property changes"

    edit = Edit(
        id="edit-1",
        descriptor=ElementDescriptor(selector="section.hero > a.btn"),
        changes=[_change("fontWeight", "700")],
    )
    assert summarize_edit(edit) == "section.hero: Change font weight to Bold"
