import asyncio
from pathlib import Path

import pytest

from tweaqengine.config import EngineConfig
from tweaqengine.conflict_resolver import FALLBACK_REASON, OracleDecision, StaticOracle
from tweaqengine.edit_store import EditStore
from tweaqengine.engine import PublishReport, TweaqEngine
from tweaqengine.errors import EditBusy, EngineError, InvalidTransition
from tweaqengine.ledger import EditFilter
from tweaqengine.memory_page import InMemoryPage, el
from tweaqengine.models import Comment, ElementDescriptor


def _landing_page() -> InMemoryPage:
    hero = el(
        "section",
        el("h1", "Build faster", box=(100, 150, 600, 60)),
        el(
            "a",
            "Get started",
            element_id="signup-cta",
            classes="btn btn-primary",
            attrs={"href": "/signup"},
            box=(500, 400, 200, 56),
        ),
        el("a", "Learn more", classes="btn", attrs={"href": "/tour"}, box=(720, 400, 160, 56)),
        classes="hero",
        box=(0, 0, 1280, 640),
    )
    footer = el(
        "footer",
        el("a", "Privacy", attrs={"href": "/privacy"}, box=(100, 1650, 60, 20)),
        el("a", "Terms", attrs={"href": "/terms"}, box=(200, 1650, 60, 20)),
        box=(0, 1600, 1280, 200),
    )
    return InMemoryPage.from_body(hero, footer)


def _button_page() -> InMemoryPage:
    return InMemoryPage.from_body(el("button", "Sign up", element_id="cta", classes="btn cta", box=(100, 100, 140, 48)))


def _three_comments() -> list[Comment]:
    return [
        Comment(id="c1", element_selector="#cta", text="make it red", sequence=1),
        Comment(id="c2", element_selector="button.cta", text="make it blue", sequence=2),
        Comment(id="c3", element_selector="#cta", text="make it bigger", sequence=3),
    ]


class RecordingPublisher:
    def __init__(self, report: PublishReport | None = None, error: Exception | None = None) -> None:
        self.report = report or PublishReport(status="completed", reference="pr-1")
        self.error = error
        self.batches: list[list[str]] = []

    async def publish(self, edits) -> PublishReport:
        self.batches.append([edit.id for edit in edits])
        if self.error is not None:
            raise self.error
        return self.report


def test_record_manual_edit_accepts_property_mapping() -> None:
    page = _landing_page()
    engine = TweaqEngine(page)

    edit = engine.record_manual_edit(ElementDescriptor(selector="#signup-cta"), {"padding": 24})

    assert edit.origin == "manual"
    assert page.get_computed_property(page.find("#signup-cta"), "padding") == "24px"
    assert engine.list_edits() == [edit]


def test_instruction_on_hero_cta_applies_interpreted_changes() -> None:
    page = _landing_page()
    engine = TweaqEngine(page)
    cta = page.find("#signup-cta")

    result = engine.record_from_instruction("the hero CTA", "make it red and bigger")

    assert result.outcome.status == "resolved"
    assert len(result.edits) == 1
    edit = result.edits[0]
    assert edit.origin == "instruction"
    assert edit.descriptor.selector == "#signup-cta"
    assert edit.descriptor.section_hint == "hero"
    assert edit.instruction == "the hero CTA: make it red and bigger"
    assert [(change.property, change.after) for change in edit.changes] == [
        ("backgroundColor", "#ef4444"),
        ("fontSize", "19.2px"),
    ]
    assert page.get_computed_property(cta, "backgroundColor") == "#ef4444"
    assert page.get_computed_property(cta, "fontSize") == "19.2px"


def test_instruction_with_explicit_changes() -> None:
    page = _landing_page()
    engine = TweaqEngine(page)

    result = engine.record_from_instruction("the hero CTA", {"textContent": "Start free"})

    assert result.edits[0].changes[0].before == "Get started"
    assert page.get_text(page.find("#signup-cta")) == "Start free"


def test_instruction_on_unclear_targets_records_nothing() -> None:
    engine = TweaqEngine(_landing_page())

    ambiguous = engine.record_from_instruction("the footer link", "make it bold")
    assert ambiguous.edits == []
    assert ambiguous.issues[0].kind == "ambiguous_target"

    missing = engine.record_from_instruction("the footer image", "make it bold")
    assert missing.edits == []
    assert missing.issues[0].kind == "unresolved_target"
    assert engine.list_edits() == []


def test_comments_with_conflict_fall_back_without_oracle() -> None:
    page = _button_page()
    engine = TweaqEngine(page)
    button = page.find("#cta")

    edits = asyncio.run(engine.convert_comments(_three_comments()))

    assert len(edits) == 2
    conflict_edit, size_edit = edits
    assert conflict_edit.conflict is not None
    assert conflict_edit.conflict.chosen_value == "#ef4444"
    assert conflict_edit.conflict.resolution_reason == FALLBACK_REASON
    assert [issue.kind for issue in conflict_edit.issues] == ["oracle_unavailable"]
    assert conflict_edit.changes[0].source_refs == ["c1", "c2"]
    assert size_edit.conflict is None
    assert [(change.property, change.after) for change in size_edit.changes] == [("fontSize", "19.2px")]
    assert page.get_computed_property(button, "backgroundColor") == "#ef4444"
    assert page.get_computed_property(button, "fontSize") == "19.2px"
    assert engine.last_conversion.conflicts == [conflict_edit.conflict]


def test_comments_with_oracle_use_its_choice() -> None:
    page = _button_page()
    oracle = StaticOracle(lambda context: OracleDecision(context.proposals[-1].suggested_value, "latest comment wins"))
    engine = TweaqEngine(page, oracle)

    edits = asyncio.run(engine.convert_comments(_three_comments()))

    assert edits[0].conflict.chosen_value == "#3b82f6"
    assert edits[0].conflict.resolution_reason == "latest comment wins"
    assert edits[0].issues == []
    assert oracle.calls[0].current_value == "rgba(0, 0, 0, 0)"
    assert page.get_computed_property(page.find("#cta"), "backgroundColor") == "#3b82f6"


def test_unresolved_and_uninterpreted_comments_are_reported() -> None:
    engine = TweaqEngine(_button_page())
    comments = [
        Comment(id="c1", element_selector="#nope", text="make it red", sequence=1),
        Comment(id="c2", element_selector="#cta", text="nice work", sequence=2),
        Comment(id="c3", element_selector="#cta", text="make it bold", sequence=3),
    ]

    edits = asyncio.run(engine.convert_comments(comments))

    assert len(edits) == 1
    assert engine.last_conversion.unresolved == ["c1"]
    assert engine.last_conversion.uninterpreted == ["c2"]
    assert engine.last_conversion.issues[0].kind == "unresolved_target"


def test_comment_removed_during_resolution_supersedes_conflict() -> None:
    page = _button_page()

    class RemovingOracle:
        def __init__(self) -> None:
            self.engine: TweaqEngine | None = None

        async def resolve_conflict(self, context) -> OracleDecision:
            self.engine.remove_comment("c2")
            return OracleDecision(chosen_value="#3b82f6")

    oracle = RemovingOracle()
    engine = TweaqEngine(page, oracle)
    oracle.engine = engine

    edits = asyncio.run(engine.convert_comments(_three_comments()))

    assert [edit.conflict for edit in edits] == [None]
    assert len(engine.last_conversion.superseded) == 1
    assert page.get_computed_property(page.find("#cta"), "backgroundColor") == "rgba(0, 0, 0, 0)"


def test_comment_handles_are_reused_before_selectors() -> None:
    page = _button_page()
    engine = TweaqEngine(page)
    engine.add_comment(Comment(id="c1", element_selector=".renamed", text="make it bold"), page.find("#cta"))

    edits = asyncio.run(engine.convert_comments())

    assert len(edits) == 1
    assert page.get_computed_property(page.find("#cta"), "fontWeight") == "700"


def test_review_and_override_conflict_by_edit_id() -> None:
    page = _button_page()
    engine = TweaqEngine(page)
    conflict_edit = asyncio.run(engine.convert_comments(_three_comments()))[0]

    assert engine.review_conflict(conflict_edit.id) is conflict_edit.conflict

    conflict = engine.override_conflict(conflict_edit.id, "#22c55e")

    assert conflict.final_value == "#22c55e"
    assert conflict.chosen_value == "#ef4444"
    assert engine.review_conflict(conflict.id).state == "user-overridden"
    assert page.get_computed_property(page.find("#cta"), "backgroundColor") == "#22c55e"


def test_toggle_element_hides_all_edits_on_target() -> None:
    page = _button_page()
    engine = TweaqEngine(page)
    button = page.find("#cta")
    edits = asyncio.run(engine.convert_comments(_three_comments()))

    engine.toggle_element(edits[0].id)

    assert engine.list_edits(EditFilter(visible=True)) == []
    assert page.get_computed_property(button, "backgroundColor") == "rgba(0, 0, 0, 0)"
    assert page.get_computed_property(button, "fontSize") == "16px"


def test_publish_marks_pending_edits_completed() -> None:
    publisher = RecordingPublisher()
    engine = TweaqEngine(_landing_page(), publisher=publisher)
    edit = engine.record_manual_edit(ElementDescriptor(selector="#signup-cta"), {"color": "#fff"})

    report = asyncio.run(engine.publish())

    assert report.status == "completed"
    assert publisher.batches == [[edit.id]]
    assert edit.status == "completed"
    assert edit.result_ref == "pr-1"
    assert asyncio.run(engine.publish()).message == "No pending edits."


def test_publish_failure_keeps_edit_for_retry() -> None:
    publisher = RecordingPublisher(error=RuntimeError("network down"))
    engine = TweaqEngine(_landing_page(), publisher=publisher)
    edit = engine.record_manual_edit(ElementDescriptor(selector="#signup-cta"), {"color": "#fff"})

    report = asyncio.run(engine.publish())

    assert report.status == "failed"
    assert edit.status == "failed"
    assert edit.error == "network down"
    assert [issue.kind for issue in edit.issues] == ["publish_failure"]

    retried = engine.retry_edit(edit.id)
    assert retried.status == "pending"
    assert engine.list_edits(EditFilter(status="pending")) == [retried]


def test_publish_requires_publisher() -> None:
    with pytest.raises(EngineError):
        asyncio.run(TweaqEngine(_landing_page()).publish())


def test_publish_timeout_is_reported_as_failure() -> None:
    class SlowPublisher:
        async def publish(self, edits) -> PublishReport:
            await asyncio.sleep(0.5)
            return PublishReport(status="completed")

    engine = TweaqEngine(_landing_page(), publisher=SlowPublisher(), config=EngineConfig(publish_timeout_sec=0.01))
    edit = engine.record_manual_edit(ElementDescriptor(selector="#signup-cta"), {"color": "#fff"})

    report = asyncio.run(engine.publish())

    assert report.status == "failed"
    assert report.message == "TimeoutError"
    assert edit.status == "failed"
    assert [issue.kind for issue in edit.issues] == ["publish_failure"]
    assert not engine.ledger.guard.is_busy(edit.id)


def test_publisher_reported_failure_marks_edits_failed() -> None:
    publisher = RecordingPublisher(report=PublishReport(status="failed", message="merge conflict"))
    engine = TweaqEngine(_landing_page(), publisher=publisher)
    edit = engine.record_manual_edit(ElementDescriptor(selector="#signup-cta"), {"color": "#fff"})

    asyncio.run(engine.publish())

    assert edit.status == "failed"
    assert edit.error == "merge conflict"
    assert edit.issues[0].message == "merge conflict"


def test_publish_with_non_pending_edit_leaves_batch_untouched() -> None:
    publisher = RecordingPublisher()
    engine = TweaqEngine(_landing_page(), publisher=publisher)
    first = engine.record_manual_edit(ElementDescriptor(selector="#signup-cta"), {"color": "#fff"})
    done = engine.record_manual_edit(ElementDescriptor(selector="#signup-cta"), {"padding": 12})
    asyncio.run(engine.publish([done.id]))

    with pytest.raises(InvalidTransition):
        asyncio.run(engine.publish([first.id, done.id]))

    assert first.status == "pending"
    assert not engine.ledger.guard.is_busy(first.id)
    assert publisher.batches == [[done.id]]
    asyncio.run(engine.publish())
    assert first.status == "completed"


def test_override_on_processing_edit_is_rejected() -> None:
    page = _button_page()
    engine = TweaqEngine(page)
    conflict_edit = asyncio.run(engine.convert_comments(_three_comments()))[0]
    engine.ledger.transition(conflict_edit.id, "processing")

    with pytest.raises(EditBusy):
        engine.override_conflict(conflict_edit.id, "#22c55e")

    assert conflict_edit.conflict.state != "user-overridden"
    assert conflict_edit.conflict.final_value == "#ef4444"
    assert page.get_computed_property(page.find("#cta"), "backgroundColor") == "#ef4444"


def test_manual_text_edit_on_mixed_content_toggles_and_deletes_cleanly() -> None:
    page = InMemoryPage.from_body(el("p", "Hello ", el("strong", "world"), "!", element_id="intro"))
    engine = TweaqEngine(page)
    intro = page.find("#intro")

    edit = engine.record_manual_edit(ElementDescriptor(selector="#intro"), {"textContent": "Goodbye "})
    assert page.get_text(intro) == "Goodbye world!"

    engine.toggle_visibility(edit.id)
    assert page.get_text(intro) == "Hello world!"
    engine.toggle_visibility(edit.id)
    engine.delete_edit(edit.id)
    assert page.get_text(intro) == "Hello world!"


def test_save_and_load_snapshot(tmp_path: Path) -> None:
    store = EditStore(base_dir=tmp_path)
    engine = TweaqEngine(_landing_page(), store=store, page_url="https://example.com/")
    engine.record_manual_edit(ElementDescriptor(selector="#signup-cta"), {"backgroundColor": "#22c55e"})
    assert engine.save() == 1

    fresh = _landing_page()
    reloaded = TweaqEngine(fresh, store=store, page_url="https://example.com/")
    edits = reloaded.load()

    assert len(edits) == 1
    assert fresh.get_computed_property(fresh.find("#signup-cta"), "backgroundColor") == "#22c55e"

    with pytest.raises(EngineError):
        TweaqEngine(_landing_page(), store=store).save()
