from tweaqengine.comments import CommentLog
from tweaqengine.models import Comment, ConflictGroup, Proposal


def test_comments_are_ordered_by_stream_sequence() -> None:
    log = CommentLog()
    log.add(Comment(id="b", element_selector="#x", text="bold", sequence=2))
    log.add(Comment(id="a", element_selector="#x", text="red", sequence=1))
    late = log.add(Comment(id="c", element_selector="#x", text="bigger"))

    assert late.sequence == 3
    assert [comment.id for comment in log.ordered()] == ["a", "b", "c"]


def test_removal_and_group_matching() -> None:
    log = CommentLog()
    log.add(Comment(id="c1", element_selector="#x", text="make it red", sequence=1), handle="h1")
    log.add(Comment(id="c2", element_selector="#x", text="make it blue", sequence=2))
    group = ConflictGroup(
        element_key="node:node-1",
        property="color",
        proposals=[
            Proposal(source_ref="c1", suggested_value="#ef4444", text="make it red"),
            Proposal(source_ref="c2", suggested_value="#3b82f6", text="make it blue"),
        ],
    )

    assert log.handle_for("c1") == "h1"
    assert log.still_matches(group)

    log.add(Comment(id="c2", element_selector="#x", text="make it green", sequence=2))
    assert not log.still_matches(group)

    assert log.remove("c1") is not None
    assert log.handle_for("c1") is None
    assert log.remove("missing") is None
    assert len(log) == 1
