from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable

from .hierarchy import round_half_up
from .project_models import WORK_ITEM_STATUSES, Milestone, Resource, TaskAssignment, WorkItem

STANDARD_WEEK_HOURS = 40
UPCOMING_WINDOW_DAYS = 30


@dataclass
class ProjectSummary:
    """Headline counts for a project snapshot."""

    total_items: int
    status_counts: dict[str, int]
    completion_rate: int
    total_milestones: int
    achieved_milestones: int
    milestones_rate: int
    upcoming_milestones: list[Milestone] = field(default_factory=list)
    overdue_milestones: list[Milestone] = field(default_factory=list)


@dataclass
class ResourceWorkload:
    """Hours a resource is committed to, against its weekly availability."""

    resource: Resource
    items: list[WorkItem]
    assignments: list[TaskAssignment]
    total_estimated_hours: float
    total_actual_hours: float
    utilization_percent: int

    @property
    def available_hours(self) -> float:
        return available_hours(self.resource)

    @property
    def overloaded(self) -> bool:
        return self.utilization_percent > 100


def project_summary(
    items: Iterable[WorkItem],
    milestones: Iterable[Milestone],
    today: date | None = None,
) -> ProjectSummary:
    """
    Count items per status and classify pending milestones.

    Upcoming milestones are pending ones due between today and
    UPCOMING_WINDOW_DAYS from now (inclusive); overdue ones are pending and
    already past.
    """

    today = today or date.today()
    item_list = list(items)
    milestone_list = list(milestones)

    status_counts = {status: 0 for status in WORK_ITEM_STATUSES}
    for item in item_list:
        status_counts[item.status] = status_counts.get(item.status, 0) + 1

    achieved = sum(1 for milestone in milestone_list if milestone.status == "achieved")
    horizon = today + timedelta(days=UPCOMING_WINDOW_DAYS)
    pending = [milestone for milestone in milestone_list if milestone.status == "pending"]

    return ProjectSummary(
        total_items=len(item_list),
        status_counts=status_counts,
        completion_rate=_rate(status_counts["done"], len(item_list)),
        total_milestones=len(milestone_list),
        achieved_milestones=achieved,
        milestones_rate=_rate(achieved, len(milestone_list)),
        upcoming_milestones=[m for m in pending if today <= m.target_date <= horizon],
        overdue_milestones=[m for m in pending if m.target_date < today],
    )


def resource_workload(
    resources: Iterable[Resource],
    assignments: Iterable[TaskAssignment],
    items: Iterable[WorkItem],
) -> list[ResourceWorkload]:
    """
    Sum the estimated and actual hours of the items assigned to each resource.

    Utilization compares estimated hours with the resource's share of a
    standard week; a resource with no availability reports 0. Assignments to
    unknown items are kept in `assignments` but contribute no hours.
    """

    item_lookup = {item.id: item for item in items}
    assignment_list = list(assignments)

    workloads: list[ResourceWorkload] = []
    for resource in resources:
        own = [a for a in assignment_list if a.resource_id == resource.id]
        assigned_ids: list[str] = []
        for assignment in own:
            if assignment.work_item_id in item_lookup and assignment.work_item_id not in assigned_ids:
                assigned_ids.append(assignment.work_item_id)
        assigned = [item_lookup[item_id] for item_id in assigned_ids]

        estimated = sum(item.estimated_hours or 0.0 for item in assigned)
        actual = sum(item.actual_hours or 0.0 for item in assigned)
        available = available_hours(resource)
        utilization = round_half_up(100 * estimated / available) if available > 0 else 0

        workloads.append(
            ResourceWorkload(
                resource=resource,
                items=assigned,
                assignments=own,
                total_estimated_hours=estimated,
                total_actual_hours=actual,
                utilization_percent=utilization,
            )
        )
    return workloads


def available_hours(resource: Resource) -> float:
    """The resource's share of a standard working week, in hours."""
    return resource.availability / 100 * STANDARD_WEEK_HOURS


def _rate(part: int, whole: int) -> int:
    return round_half_up(100 * part / whole) if whole > 0 else 0
