import datetime as dt

import pytest

from timeline_rollup.hierarchy import HierarchyCycleError, build_hierarchy
from timeline_rollup.project_models import Milestone, TreeNode, WorkItem
from timeline_rollup.wbs import assign_wbs, member_codes, number_tree, wbs_coverage


def _item(item_id, **kwargs):
    return WorkItem(id=item_id, title=item_id, **kwargs)


def _milestones():
    return [
        Milestone(id="m1", name="Design", target_date=dt.date(2024, 2, 1)),
        Milestone(id="m2", name="Build", target_date=dt.date(2024, 4, 1), description="First release"),
        Milestone(id="m3", name="Launch", target_date=dt.date(2024, 6, 1)),
    ]


def test_by_deliverable_keeps_empty_milestones_and_appends_unassigned_last():
    items = [
        _item("a", milestone_id="m2", estimated_hours=8, status="done"),
        _item("b", milestone_id="m2", estimated_hours=4),
        _item("c", milestone_id="m1"),
        _item("loose", estimated_hours=2.5, status="done"),
    ]

    groups = assign_wbs(items, _milestones(), "by_deliverable")

    assert [group.code for group in groups] == ["1.0", "2.0", "3.0", "4.0"]
    assert [group.key for group in groups] == ["m1", "m2", "m3", "unassigned"]
    assert groups[2].members == []
    build = groups[1]
    assert build.name == "Build"
    assert build.description == "First release"
    assert build.stats.total_packages == 2
    assert build.stats.completed_packages == 1
    assert build.stats.total_hours == 12
    assert build.stats.completed_hours == 8
    assert build.stats.completion_percent == 50
    assert groups[3].stats.completed_hours == 2.5


def test_by_deliverable_without_unassigned_items_has_no_trailing_group():
    groups = assign_wbs([_item("a", milestone_id="m1")], _milestones(), "by_deliverable")

    assert [group.key for group in groups] == ["m1", "m2", "m3"]


def test_unassigned_group_alone_is_numbered_one():
    groups = assign_wbs([_item("a")], [], "by_deliverable")

    assert [(group.code, group.key) for group in groups] == [("1.0", "unassigned")]


def test_by_phase_omits_empty_phases_and_keeps_phase_codes():
    items = [
        _item("todo", status="not_started", estimated_hours=1),
        _item("shipped", status="done", estimated_hours=3),
        _item("stuck", status="blocked"),
    ]

    groups = assign_wbs(items, _milestones(), "by_phase")

    assert [(group.code, group.key) for group in groups] == [("1.0", "planning"), ("4.0", "closure")]
    assert groups[1].stats.completed_packages == 1
    assert groups[1].stats.completed_hours == 3
    assert all(group.kind == "phase" for group in groups)


def test_unknown_grouping_is_rejected():
    with pytest.raises(ValueError):
        assign_wbs([], [], "by_owner")


def test_member_codes_are_positional_within_group():
    items = [_item("a", milestone_id="m2"), _item("b", milestone_id="m2")]
    groups = assign_wbs(items, _milestones(), "by_deliverable")

    assert [(code, item.id) for code, item in member_codes(groups[1])] == [("2.1", "a"), ("2.2", "b")]


def test_number_tree_under_group_prefix():
    items = [
        _item("root", end_date=dt.date(2024, 1, 1)),
        _item("child-1", parent_id="root", end_date=dt.date(2024, 1, 1)),
        _item("grandchild", parent_id="child-1"),
        _item("child-2", parent_id="root", end_date=dt.date(2024, 1, 2)),
        _item("second-root", end_date=dt.date(2024, 1, 3)),
    ]

    numbered = number_tree(build_hierarchy(items), prefix="1")

    assert [(code, node.id) for code, node in numbered] == [
        ("1.1", "root"),
        ("1.1.1", "child-1"),
        ("1.1.1.1", "grandchild"),
        ("1.1.2", "child-2"),
        ("1.2", "second-root"),
    ]


def test_number_tree_rejects_cycles():
    node = TreeNode(item=_item("a"))
    node.children.append(TreeNode(item=_item("b"), children=[node]))

    with pytest.raises(HierarchyCycleError):
        number_tree([node])


def test_coverage_reports_items_outside_every_group():
    items = [
        _item("a", milestone_id="m1", estimated_hours=2),
        _item("dangling", milestone_id="deleted", estimated_hours=5),
        _item("loose", estimated_hours=1),
    ]

    groups = assign_wbs(items, _milestones(), "by_deliverable")
    coverage = wbs_coverage(groups, items)

    assert coverage.group_count == 4
    assert coverage.captured_packages == 2
    assert coverage.captured_hours == 3
    assert [item.id for item in coverage.uncaptured] == ["dangling"]
    assert coverage.coverage_percent == 67


def test_coverage_of_empty_project_is_zero():
    assert wbs_coverage([], []).coverage_percent == 0


def test_negative_estimates_count_as_zero_hours_like_the_rollup():
    item = _item("odd", estimated_hours=-5, status="done")

    (group,) = assign_wbs([item], [], "by_deliverable")
    (root,) = build_hierarchy([item])

    assert group.stats.total_hours == 0
    assert group.stats.completed_hours == 0
    assert group.stats.total_hours == root.rollup.total_effort
