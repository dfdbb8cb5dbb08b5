"""Tests for the conversation graph."""

from datetime import datetime, timedelta, timezone

import pytest

from tileverse.conversation import ConversationDAG, ParentNotFoundError


def reply(node_id, content="ok", agent_id=None, **extra):
    return {"id": node_id, "content": content, "agent_id": agent_id or node_id, "agent_name": node_id.upper(), **extra}


def ids(nodes):
    return [node.id for node in nodes]


def test_root_and_responses_form_a_tree():
    dag = ConversationDAG()
    dag.add_root("m1", "hello")

    dag.add_responses("m1", [reply("r1"), reply("r2")])

    assert ids(dag.thread_path("r1")) == ["m1", "r1"]
    assert ids(dag.responses_of("m1")) == ["r1", "r2"]
    assert dag.stats().max_depth == 1
    assert "m1" not in ids(dag.leaves)
    assert {"r1", "r2"} <= set(ids(dag.leaves))
    assert dag.get_node("r2").parent_ids == ["m1"]
    assert dag.get_node("r2").sender == "agent"


def test_unknown_parent_raises_and_changes_nothing():
    dag = ConversationDAG()
    dag.add_root("m1", "hello")
    before = dag.tree()

    with pytest.raises(ParentNotFoundError) as excinfo:
        dag.add_responses("doesNotExist", [reply("r1")])

    assert excinfo.value.parent_id == "doesNotExist"
    assert isinstance(excinfo.value, KeyError)
    assert dag.tree() == before
    assert ids(dag.leaves) == ["m1"]


def test_duplicate_ids_are_rejected():
    dag = ConversationDAG()
    dag.add_root("m1", "hello")
    dag.add_responses("m1", [reply("r1")])

    with pytest.raises(ValueError):
        dag.add_root("m1", "again")
    with pytest.raises(ValueError):
        dag.add_responses("m1", [reply("r2"), reply("r1")])

    assert ids(dag.responses_of("m1")) == ["r1"]
    assert dag.get_node("r2") is None


def test_nested_replies_and_stats():
    dag = ConversationDAG()
    dag.add_root("m1", "hello")
    dag.add_root("m2", "anyone?")
    dag.add_responses("m1", [reply("r1")])
    dag.add_responses("r1", [reply("r1a")])

    assert ids(dag.thread_path("r1a")) == ["m1", "r1", "r1a"]
    assert dag.thread_path("missing") == []
    assert dag.responses_of("missing") == []
    assert ids(dag.roots) == ["m1", "m2"]

    stats = dag.stats()
    assert stats.total_messages == 4
    assert stats.player_messages == 2
    assert stats.agent_messages == 2
    assert stats.root_count == 2
    assert stats.max_depth == 2


def test_display_positions_center_children_on_parent():
    dag = ConversationDAG()
    dag.add_root("m1", "first")
    dag.add_root("m2", "second")

    dag.add_responses("m2", [reply("a"), reply("b"), reply("c")])

    assert dag.get_node("m1").display_position == (0.0, 0.0)
    assert dag.get_node("m2").display_position == (0.0, 1.0)
    assert [dag.get_node(node_id).display_position for node_id in ("a", "b", "c")] == [
        (1.0, 0.0),
        (1.0, 1.0),
        (1.0, 2.0),
    ]


def test_chronological_order_uses_timestamps():
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    dag = ConversationDAG()
    dag.add_root("m1", "hello", timestamp=base)
    dag.add_responses(
        "m1",
        [
            reply("late", timestamp=base + timedelta(seconds=5)),
            reply("early", timestamp=base + timedelta(seconds=1)),
        ],
    )

    assert ids(dag.all_nodes_chronological()) == ["m1", "early", "late"]
    assert ids(dag.responses_of("m1")) == ["late", "early"]


def test_naive_timestamps_are_read_as_utc():
    dag = ConversationDAG()
    dag.add_root("old", "hi", timestamp=datetime(2024, 1, 1))
    dag.add_root("now", "hi")
    dag.add_responses("old", [reply("r1", timestamp=datetime(2024, 1, 1, 0, 0, 5))])

    assert ids(dag.all_nodes_chronological()) == ["old", "r1", "now"]
    assert dag.get_node("old").timestamp == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert len(dag.tree()["nodes"]) == 3


def test_tree_snapshot_and_clear():
    dag = ConversationDAG()
    dag.add_root("m1", "hello")
    dag.add_responses("m1", [reply("r1")])

    tree = dag.tree()
    assert [node["id"] for node in tree["nodes"]] == ["m1", "r1"]
    assert tree["edges"] == [{"from": "m1", "to": "r1"}]

    copy = dag.snapshot()
    dag.add_responses("r1", [reply("r2")])
    assert "r2" not in copy
    assert ids(copy.responses_of("r1")) == []

    dag.clear()
    assert len(dag) == 0
    assert dag.roots == []
    assert len(copy) == 2
