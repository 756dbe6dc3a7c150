from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Literal


WorkItemStatus = Literal["not_started", "in_progress", "in_review", "done", "blocked"]
"""Closed set of work item statuses."""

MilestoneStatus = Literal["pending", "achieved", "missed"]
"""Closed set of milestone statuses."""

ZoomMode = Literal["day", "week", "month"]
"""Timeline granularity."""

GroupingMode = Literal["by_deliverable", "by_phase"]
"""How the WBS view groups work items."""

EntryKind = Literal["work_item", "milestone"]

WORK_ITEM_STATUSES: tuple[str, ...] = ("not_started", "in_progress", "in_review", "done", "blocked")
MILESTONE_STATUSES: tuple[str, ...] = ("pending", "achieved", "missed")
ZOOM_MODES: tuple[str, ...] = ("day", "week", "month")
GROUPING_MODES: tuple[str, ...] = ("by_deliverable", "by_phase")


@dataclass(frozen=True)
class RawTags:
    """Tag field as it arrived from storage: one undecoded string."""

    text: str


@dataclass(frozen=True)
class TagList:
    """Tag field that already arrived as a list of strings."""

    items: tuple[str, ...] = ()


TagField = RawTags | TagList
"""Decoded shape of the loosely-typed tag column."""


@dataclass(frozen=True)
class WorkItem:
    """Task-like unit of work; may nest under another item via parent_id."""

    id: str
    title: str
    parent_id: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    estimated_hours: float | None = None
    actual_hours: float | None = None
    status: WorkItemStatus = "not_started"
    milestone_id: str | None = None
    tags: list[str] = field(default_factory=list)
    assignee: str | None = None
    description: str | None = None

    @property
    def is_dated(self) -> bool:
        """True when both start and end dates are known."""
        return self.start_date is not None and self.end_date is not None

    @property
    def is_done(self) -> bool:
        return self.status == "done"


@dataclass(frozen=True)
class Milestone:
    """Dated deliverable target; optionally groups work items."""

    id: str
    name: str
    target_date: date
    status: MilestoneStatus = "pending"
    description: str | None = None


@dataclass(frozen=True)
class Resource:
    """Person or team that can be assigned to work items."""

    id: str
    name: str
    role: str | None = None
    availability: float = 100.0


@dataclass(frozen=True)
class TaskAssignment:
    """Link between a work item and a resource."""

    work_item_id: str
    resource_id: str
    allocation_percent: float = 100.0


@dataclass
class ProjectSnapshot:
    """Everything the engine consumes for one project, as decoded from storage."""

    work_items: list[WorkItem] = field(default_factory=list)
    milestones: list[Milestone] = field(default_factory=list)
    resources: list[Resource] = field(default_factory=list)
    assignments: list[TaskAssignment] = field(default_factory=list)
    name: str | None = None


@dataclass(frozen=True)
class RollupStats:
    """Effort aggregated over a subtree."""

    total_effort: float = 0.0
    completed_effort: float = 0.0
    completion_percent: int = 0


@dataclass
class TreeNode:
    """A work item placed in the hierarchy, with its ordered children."""

    item: WorkItem
    children: list["TreeNode"] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def end_date(self) -> date | None:
        return self.item.end_date

    @property
    def rollup(self) -> RollupStats:
        """Stats for this subtree, computed on access from the live children."""
        from .hierarchy import compute_rollup

        return compute_rollup(self)


@dataclass(frozen=True)
class TimelineBounds:
    """Visible window of the timeline; total_days is never below 1."""

    start: date
    end: date
    total_days: int


@dataclass(frozen=True)
class TimelinePeriod:
    """One header bucket of the timeline (a day, a week or a month)."""

    anchor_date: date
    label: str
    span_days: int


@dataclass(frozen=True)
class TimelineEntry:
    """A work item or milestone positioned in chronological order."""

    kind: EntryKind
    payload: WorkItem | Milestone
    sort_date: date


@dataclass(frozen=True)
class BarGeometry:
    """Horizontal placement of a work item bar, in percent of the window."""

    left_percent: float
    width_percent: float


@dataclass(frozen=True)
class MarkerGeometry:
    """Horizontal placement of a milestone marker, in percent of the window."""

    left_percent: float


@dataclass(frozen=True)
class WbsStats:
    total_packages: int = 0
    total_hours: float = 0.0
    completed_packages: int = 0
    completed_hours: float = 0.0

    @property
    def completion_percent(self) -> int:
        """Share of completed packages, rounded to a whole percent."""
        if self.total_packages <= 0:
            return 0
        return int(100 * self.completed_packages / self.total_packages + 0.5)


@dataclass
class WbsGroup:
    """
    One top-level element of the work breakdown structure.

    `code` is positional ("<number>.0") and recomputed on every call; it is
    a display artifact and not an identifier. Use `key` to match groups
    across calls.
    """

    code: str
    number: int
    kind: Literal["deliverable", "phase"]
    key: str
    name: str
    description: str | None = None
    members: list[WorkItem] = field(default_factory=list)
    stats: WbsStats = field(default_factory=WbsStats)
    milestone: Milestone | None = None


@dataclass(frozen=True)
class WbsCoverage:
    """100%-rule summary: how much of the project scope the groups capture."""

    group_count: int
    total_items: int
    captured_packages: int
    captured_hours: float
    uncaptured: list[WorkItem] = field(default_factory=list)

    @property
    def coverage_percent(self) -> int:
        if self.total_items <= 0:
            return 0
        return int(100 * self.captured_packages / self.total_items + 0.5)
