from __future__ import annotations

import calendar
import logging
import math
from datetime import date, timedelta
from typing import Iterable

from .project_models import (
    ZOOM_MODES,
    BarGeometry,
    MarkerGeometry,
    Milestone,
    TimelineBounds,
    TimelineEntry,
    TimelinePeriod,
    WorkItem,
    ZoomMode,
)

logger = logging.getLogger(__name__)

# Window sizes per zoom mode.
DAY_VIEW_DAYS = 30
WEEK_VIEW_WEEKS = 12
MONTH_VIEW_MONTHS = 12

# Locale-independent month abbreviations.
MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def compute_timeline_range(
    items: Iterable[WorkItem],
    milestones: Iterable[Milestone],
    zoom: ZoomMode,
    today: date | None = None,
) -> tuple[TimelineBounds, list[TimelinePeriod]]:
    """
    Compute the visible window and its header buckets for a zoom mode.

    The window is anchored on the earliest date among dated work items
    (start and end) and milestone targets, or on `today` when there is
    none. Items missing either date are ignored.
    """

    if zoom not in ZOOM_MODES:
        raise ValueError(f"unknown zoom mode '{zoom}', expected one of {', '.join(ZOOM_MODES)}")

    earliest = _earliest_date(items, milestones)
    if earliest is None:
        earliest = today or date.today()
        logger.debug("No dated items or milestones; anchoring timeline on %s", earliest)

    if zoom == "day":
        start = earliest
        end = start + timedelta(days=DAY_VIEW_DAYS)
        periods = _day_periods(start)
    elif zoom == "week":
        start = earliest - timedelta(days=earliest.weekday())
        end = start + timedelta(days=WEEK_VIEW_WEEKS * 7)
        periods = _week_periods(start)
    else:
        start = earliest.replace(day=1)
        end = add_months(start, MONTH_VIEW_MONTHS) - timedelta(days=1)
        periods = _month_periods(start)

    bounds = TimelineBounds(start=start, end=end, total_days=max((end - start).days, 1))
    return bounds, periods


def _earliest_date(items: Iterable[WorkItem], milestones: Iterable[Milestone]) -> date | None:
    candidates: list[date] = []
    for item in items:
        if item.start_date is not None and item.end_date is not None:
            candidates.extend((item.start_date, item.end_date))
    candidates.extend(milestone.target_date for milestone in milestones)
    return min(candidates) if candidates else None


def _day_periods(start: date) -> list[TimelinePeriod]:
    periods = []
    for offset in range(DAY_VIEW_DAYS):
        current = start + timedelta(days=offset)
        periods.append(TimelinePeriod(anchor_date=current, label=day_label(current), span_days=1))
    return periods


def _week_periods(start: date) -> list[TimelinePeriod]:
    periods = []
    for offset in range(WEEK_VIEW_WEEKS):
        current = start + timedelta(days=7 * offset)
        periods.append(TimelinePeriod(anchor_date=current, label=week_label(current), span_days=7))
    return periods


def _month_periods(start: date) -> list[TimelinePeriod]:
    periods = []
    for offset in range(MONTH_VIEW_MONTHS):
        current = add_months(start, offset)
        span = calendar.monthrange(current.year, current.month)[1]
        periods.append(TimelinePeriod(anchor_date=current, label=month_label(current), span_days=span))
    return periods


def day_label(value: date) -> str:
    return f"{value.day} {MONTH_ABBR[value.month - 1]}"


def week_label(value: date) -> str:
    """Week number counted in 7-day blocks from January 1st, e.g. 'S10'."""
    day_of_year = value.timetuple().tm_yday
    return f"S{math.ceil(day_of_year / 7)}"


def month_label(value: date) -> str:
    return f"{MONTH_ABBR[value.month - 1]} {value.year}"


def add_months(value: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""

    index = value.month - 1 + months
    year = value.year + index // 12
    month = index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def bar_geometry(bounds: TimelineBounds, start: date, end: date) -> BarGeometry:
    """
    Place a work item bar inside the window.

    Duration counts both endpoints; inverted dates still draw a one-day bar.
    Results are clamped so the bar never leaves the [0, 100] band.
    """

    total = bounds.total_days or 1
    days_from_start = (start - bounds.start).days
    duration = max((end - start).days + 1, 1)

    left = _clamp(100 * days_from_start / total, 0.0, 100.0)
    width = _clamp(100 * duration / total, 0.0, 100.0 - left)
    return BarGeometry(left_percent=left, width_percent=width)


def marker_geometry(bounds: TimelineBounds, on: date) -> MarkerGeometry:
    total = bounds.total_days or 1
    left = _clamp(100 * (on - bounds.start).days / total, 0.0, 100.0)
    return MarkerGeometry(left_percent=left)


def item_geometry(bounds: TimelineBounds, item: WorkItem | Milestone) -> BarGeometry | MarkerGeometry | None:
    """Geometry for either kind of record; None for work items missing a date."""

    if isinstance(item, Milestone):
        return marker_geometry(bounds, item.target_date)
    if item.start_date is None or item.end_date is None:
        return None
    return bar_geometry(bounds, item.start_date, item.end_date)


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def merge_chronological(items: Iterable[WorkItem], milestones: Iterable[Milestone]) -> list[TimelineEntry]:
    """
    Interleave dated work items and milestones by date.

    Work items sort on their end date, milestones on their target date. On
    the same date milestones come first; otherwise input order is kept.
    """

    entries = [
        TimelineEntry(kind="work_item", payload=item, sort_date=item.end_date)
        for item in items
        if item.start_date is not None and item.end_date is not None
    ]
    entries.extend(
        TimelineEntry(kind="milestone", payload=milestone, sort_date=milestone.target_date)
        for milestone in milestones
    )
    # sorted() is stable, so same-kind ties keep input order.
    return sorted(entries, key=lambda entry: (entry.sort_date, 0 if entry.kind == "milestone" else 1))
