import datetime as dt

import pytest

from timeline_rollup.hierarchy import (
    HierarchyCycleError,
    build_hierarchy,
    compute_rollup,
    rollup_forest,
    rollup_nodes,
    walk_tree,
)
from timeline_rollup.project_models import TreeNode, WorkItem


def _item(item_id, **kwargs):
    return WorkItem(id=item_id, title=item_id.upper(), **kwargs)


def test_rollup_counts_done_parent_and_open_child():
    a = _item("a", estimated_hours=10, status="done")
    b = _item("b", estimated_hours=5, parent_id="a")

    (root,) = build_hierarchy([a, b])
    stats = compute_rollup(root)

    assert stats.total_effort == 15
    assert stats.completed_effort == 10
    assert stats.completion_percent == 67
    assert root.rollup == stats


def test_unknown_parent_falls_back_to_root():
    orphan = _item("orphan", parent_id="missing")
    other = _item("other")

    roots = build_hierarchy([orphan, other])

    assert [node.id for node in roots] == ["orphan", "other"]


def test_roots_and_children_sorted_by_end_date_with_undated_last():
    items = [
        _item("undated-1"),
        _item("late", end_date=dt.date(2024, 3, 1)),
        _item("undated-2"),
        _item("early", end_date=dt.date(2024, 1, 1)),
        _item("child-undated", parent_id="early"),
        _item("child-late", parent_id="early", end_date=dt.date(2024, 2, 1)),
        _item("child-early", parent_id="early", end_date=dt.date(2024, 1, 15)),
    ]

    roots = build_hierarchy(items)

    assert [node.id for node in roots] == ["early", "late", "undated-1", "undated-2"]
    assert [node.id for node in roots[0].children] == ["child-early", "child-late", "child-undated"]


def test_grandchildren_are_sorted_too():
    items = [
        _item("root"),
        _item("mid", parent_id="root"),
        _item("leaf-b", parent_id="mid", end_date=dt.date(2024, 5, 2)),
        _item("leaf-a", parent_id="mid", end_date=dt.date(2024, 5, 1)),
    ]

    (root,) = build_hierarchy(items)

    assert [node.id for node in root.children[0].children] == ["leaf-a", "leaf-b"]


def test_rollup_total_is_sum_of_every_estimate_regardless_of_shape():
    estimates = {"a": 3, "b": 4.5, "c": 0, "d": 8, "e": 1.5}
    items = [
        _item("a", estimated_hours=estimates["a"]),
        _item("b", estimated_hours=estimates["b"], parent_id="a"),
        _item("c", estimated_hours=estimates["c"], parent_id="b"),
        _item("d", estimated_hours=estimates["d"], parent_id="b", status="done"),
        _item("e", estimated_hours=estimates["e"], parent_id="a"),
        _item("f", parent_id="e"),
    ]

    (root,) = build_hierarchy(items)

    assert compute_rollup(root).total_effort == pytest.approx(sum(estimates.values()))


def test_completion_percent_stays_within_bounds():
    items = [
        _item("p", estimated_hours=0, status="done"),
        _item("c1", estimated_hours=2, parent_id="p", status="done"),
        _item("c2", estimated_hours=0, parent_id="p", status="done"),
        _item("q"),
        _item("r", estimated_hours=7, status="blocked"),
    ]

    stats = rollup_forest(build_hierarchy(items))

    assert stats["p"].completion_percent == 100
    assert stats["q"].completion_percent == 0
    assert stats["r"].completion_percent == 0
    assert all(0 <= value.completion_percent <= 100 for value in stats.values())


def test_internal_node_estimate_counts_only_when_node_is_done():
    items = [
        _item("parent", estimated_hours=4, status="in_progress"),
        _item("child", estimated_hours=4, parent_id="parent", status="done"),
    ]

    stats = rollup_forest(build_hierarchy(items))

    assert stats["parent"].total_effort == 8
    assert stats["parent"].completed_effort == 4
    assert stats["parent"].completion_percent == 50
    assert stats["child"].completion_percent == 100


def test_rollup_does_not_mutate_items():
    item = _item("a", estimated_hours=2)
    (root,) = build_hierarchy([item])

    compute_rollup(root)

    assert item.estimated_hours == 2
    assert root.item is item


def test_parent_cycle_is_detected():
    items = [_item("a", parent_id="b"), _item("b", parent_id="a"), _item("c")]

    with pytest.raises(HierarchyCycleError) as excinfo:
        build_hierarchy(items)

    assert excinfo.value.cycle.path[0] == excinfo.value.cycle.path[-1]


def test_self_parent_is_a_cycle():
    with pytest.raises(HierarchyCycleError):
        build_hierarchy([_item("a", parent_id="a")])


def test_hand_built_cycle_fails_fast_in_walkers():
    node = TreeNode(item=_item("a", estimated_hours=1))
    node.children.append(node)

    with pytest.raises(HierarchyCycleError):
        compute_rollup(node)
    with pytest.raises(HierarchyCycleError):
        list(walk_tree([node]))


def test_duplicate_ids_keep_every_item():
    first = _item("dup", end_date=dt.date(2024, 1, 1))
    second = _item("dup", end_date=dt.date(2024, 1, 2))
    child = _item("child", parent_id="dup")

    roots = build_hierarchy([first, second, child])

    assert [node.item for node in roots] == [first, second]
    assert [node.id for node in roots[0].children] == ["child"]


def test_walk_tree_is_preorder_with_depth():
    items = [
        _item("a", end_date=dt.date(2024, 1, 1)),
        _item("b", parent_id="a"),
        _item("c", parent_id="b"),
        _item("d", end_date=dt.date(2024, 1, 2)),
    ]

    walked = [(depth, node.id) for depth, node in walk_tree(build_hierarchy(items))]

    assert walked == [(0, "a"), (1, "b"), (2, "c"), (0, "d")]


def test_rollup_forest_keeps_first_of_duplicate_ids():
    first = _item("dup", estimated_hours=1, end_date=dt.date(2024, 1, 1))
    second = _item("dup", estimated_hours=9, status="done", end_date=dt.date(2024, 1, 2))

    roots = build_hierarchy([first, second])
    by_node = rollup_nodes(roots)

    assert rollup_forest(roots)["dup"].total_effort == 1
    assert by_node[id(roots[1])].total_effort == 9
