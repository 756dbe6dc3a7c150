from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Literal

from .hierarchy import rollup_nodes, walk_tree
from .project_models import (
    BarGeometry,
    Milestone,
    RollupStats,
    TimelineBounds,
    TimelineEntry,
    TreeNode,
    WbsGroup,
)
from .timeline import bar_geometry, marker_geometry
from .wbs import member_codes, number_tree


@dataclass
class TreeRow:
    """One line of the hierarchical task list, with its subtree rollup."""

    order: int
    indent: int
    wbs: str
    node_id: str
    title: str
    status: str
    start_date: date | None
    end_date: date | None
    rollup: RollupStats
    child_count: int = 0


@dataclass
class TimelineRow:
    """One line of the timeline: a bar for a work item or a marker for a milestone."""

    order: int
    node_type: Literal["bar", "marker"]
    node_id: str
    label: str
    status: str
    start_date: date | None
    finish_date: date | None
    left_percent: float
    width_percent: float | None = None


@dataclass
class WbsRow:
    """A group heading (indent 0) or one of its work packages (indent 1)."""

    order: int
    indent: int
    wbs: str
    node_id: str
    name: str
    status: str | None = None
    estimated_hours: float | None = None
    tags: list[str] = field(default_factory=list)


def to_tree_rows(roots: list[TreeNode]) -> list[TreeRow]:
    """
    Flatten the forest into indented rows in pre-order.

    Parents precede their children; nested items increase indent by 1. Each
    row carries the positional WBS code and the rollup of its subtree.
    """

    stats = rollup_nodes(roots)
    codes = {id(node): code for code, node in number_tree(roots)}

    rows: list[TreeRow] = []
    for order, (depth, node) in enumerate(walk_tree(roots)):
        rows.append(
            TreeRow(
                order=order,
                indent=depth,
                wbs=codes[id(node)],
                node_id=node.id,
                title=node.item.title,
                status=node.item.status,
                start_date=node.item.start_date,
                end_date=node.item.end_date,
                rollup=stats[id(node)],
                child_count=len(node.children),
            )
        )
    return rows


def to_timeline_rows(entries: list[TimelineEntry], bounds: TimelineBounds) -> list[TimelineRow]:
    """Attach geometry to a merged chronological sequence."""

    rows: list[TimelineRow] = []
    for order, entry in enumerate(entries):
        payload = entry.payload
        if isinstance(payload, Milestone):
            marker = marker_geometry(bounds, payload.target_date)
            rows.append(
                TimelineRow(
                    order=order,
                    node_type="marker",
                    node_id=payload.id,
                    label=payload.name,
                    status=payload.status,
                    start_date=payload.target_date,
                    finish_date=payload.target_date,
                    left_percent=marker.left_percent,
                )
            )
            continue

        # Merged work item entries always carry both dates.
        bar: BarGeometry = bar_geometry(bounds, payload.start_date, payload.end_date)
        rows.append(
            TimelineRow(
                order=order,
                node_type="bar",
                node_id=payload.id,
                label=payload.title,
                status=payload.status,
                start_date=payload.start_date,
                finish_date=payload.end_date,
                left_percent=bar.left_percent,
                width_percent=bar.width_percent,
            )
        )
    return rows


def to_wbs_rows(groups: list[WbsGroup]) -> list[WbsRow]:
    """Group headings followed by their work packages, numbered '<group>.<n>'."""

    rows: list[WbsRow] = []
    order = 0
    for group in groups:
        rows.append(
            WbsRow(
                order=order,
                indent=0,
                wbs=group.code,
                node_id=group.key,
                name=group.name,
                status=group.milestone.status if group.milestone else None,
                estimated_hours=group.stats.total_hours,
            )
        )
        order += 1
        for code, item in member_codes(group):
            rows.append(
                WbsRow(
                    order=order,
                    indent=1,
                    wbs=code,
                    node_id=item.id,
                    name=item.title,
                    status=item.status,
                    estimated_hours=item.estimated_hours,
                    tags=list(item.tags),
                )
            )
            order += 1
    return rows
