from __future__ import annotations

from typing import Iterable

from .hierarchy import own_effort, walk_tree
from .project_models import (
    GROUPING_MODES,
    GroupingMode,
    Milestone,
    TreeNode,
    WbsCoverage,
    WbsGroup,
    WbsStats,
    WorkItem,
)

UNASSIGNED_KEY = "unassigned"
UNASSIGNED_NAME = "Work not assigned to a deliverable"
UNASSIGNED_DESCRIPTION = "Work items that still need to be attached to a deliverable"

# (key, name, status) in display order; the position fixes the group number.
PHASES: tuple[tuple[str, str, str], ...] = (
    ("planning", "Planning", "not_started"),
    ("execution", "Execution", "in_progress"),
    ("control", "Control", "in_review"),
    ("closure", "Closure", "done"),
)


def assign_wbs(
    items: Iterable[WorkItem],
    milestones: Iterable[Milestone],
    grouping: GroupingMode,
) -> list[WbsGroup]:
    """
    Group work items into top-level WBS elements and number them.

    by_deliverable: one group per milestone in milestone order (kept even when
    empty), then a trailing 'unassigned' group for items without a milestone
    when there are any.

    by_phase: planning, execution, control and closure groups matched on
    status. Empty phases are left out but keep their number, so a phase
    always carries the same code.
    """

    item_list = list(items)
    if grouping == "by_deliverable":
        return _by_deliverable(item_list, list(milestones))
    if grouping == "by_phase":
        return _by_phase(item_list)
    raise ValueError(f"unknown grouping mode '{grouping}', expected one of {', '.join(GROUPING_MODES)}")


def _by_deliverable(items: list[WorkItem], milestones: list[Milestone]) -> list[WbsGroup]:
    groups: list[WbsGroup] = []
    for number, milestone in enumerate(milestones, start=1):
        members = [item for item in items if item.milestone_id == milestone.id]
        groups.append(
            WbsGroup(
                code=f"{number}.0",
                number=number,
                kind="deliverable",
                key=milestone.id,
                name=milestone.name,
                description=milestone.description,
                members=members,
                stats=group_stats(members),
                milestone=milestone,
            )
        )

    unassigned = [item for item in items if not item.milestone_id]
    if unassigned:
        number = len(groups) + 1
        groups.append(
            WbsGroup(
                code=f"{number}.0",
                number=number,
                kind="deliverable",
                key=UNASSIGNED_KEY,
                name=UNASSIGNED_NAME,
                description=UNASSIGNED_DESCRIPTION,
                members=unassigned,
                stats=group_stats(unassigned),
            )
        )
    return groups


def _by_phase(items: list[WorkItem]) -> list[WbsGroup]:
    groups: list[WbsGroup] = []
    for number, (key, name, status) in enumerate(PHASES, start=1):
        members = [item for item in items if item.status == status]
        if not members:
            continue
        groups.append(
            WbsGroup(
                code=f"{number}.0",
                number=number,
                kind="phase",
                key=key,
                name=name,
                members=members,
                stats=group_stats(members),
            )
        )
    return groups


def group_stats(members: Iterable[WorkItem]) -> WbsStats:
    total_packages = 0
    completed_packages = 0
    total_hours = 0.0
    completed_hours = 0.0
    for item in members:
        hours = own_effort(item)
        total_packages += 1
        total_hours += hours
        if item.is_done:
            completed_packages += 1
            completed_hours += hours
    return WbsStats(
        total_packages=total_packages,
        total_hours=total_hours,
        completed_packages=completed_packages,
        completed_hours=completed_hours,
    )


def member_codes(group: WbsGroup) -> list[tuple[str, WorkItem]]:
    """Positional codes '<group>.<n>' for the members of a group."""
    return [(f"{group.number}.{index}", item) for index, item in enumerate(group.members, start=1)]


def number_tree(roots: Iterable[TreeNode], prefix: str | None = None) -> list[tuple[str, TreeNode]]:
    """
    Number a forest in pre-order: '1', '1.1', '1.1.1', ... or under `prefix`.

    Raises HierarchyCycleError if a node is reached again while still open.
    """

    numbered: list[tuple[str, TreeNode]] = []
    path: list[int] = []
    for depth, node in walk_tree(roots):
        del path[depth + 1 :]
        if len(path) > depth:
            path[depth] += 1
        else:
            path.append(1)
        code = ".".join(str(part) for part in path)
        numbered.append((f"{prefix}.{code}" if prefix else code, node))
    return numbered


def wbs_coverage(groups: Iterable[WbsGroup], items: Iterable[WorkItem]) -> WbsCoverage:
    """
    Summarize how much of the project scope the groups capture.

    Items that belong to no group (blocked items in the phase view, items
    pointing at an unknown milestone in the deliverable view) are reported
    as uncaptured.
    """

    group_list = list(groups)
    item_list = list(items)
    captured_ids = {id(member) for group in group_list for member in group.members}
    return WbsCoverage(
        group_count=len(group_list),
        total_items=len(item_list),
        captured_packages=sum(group.stats.total_packages for group in group_list),
        captured_hours=sum(group.stats.total_hours for group in group_list),
        uncaptured=[item for item in item_list if id(item) not in captured_ids],
    )
