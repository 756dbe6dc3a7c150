from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from typing import Any

import yaml

from .project_models import (
    MILESTONE_STATUSES,
    WORK_ITEM_STATUSES,
    Milestone,
    ProjectSnapshot,
    Resource,
    TaskAssignment,
    WorkItem,
)
from .tags import decode_tag_field, normalize_tags


class SnapshotValidationError(Exception):
    """Raised when a snapshot record does not have the expected shape."""


# Older exports used the short status names.
LEGACY_STATUSES = {"todo": "not_started", "review": "in_review"}


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable paths like work_items[0].start_date."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


def load_snapshot(path: str) -> ProjectSnapshot:
    """Load a ProjectSnapshot from a YAML (or JSON) file at the given path."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_snapshot(raw)


def parse_snapshot(data: Any) -> ProjectSnapshot:
    """Decode plain records (as returned by the storage layer) into dataclasses."""

    path = _Path()
    if data is None:
        return ProjectSnapshot()
    if not isinstance(data, dict):
        raise SnapshotValidationError(f"{path}: expected mapping at top level")

    name = data.get("name")
    if name is not None and not isinstance(name, str):
        raise SnapshotValidationError(f"{path.child('name')}: expected string")

    return ProjectSnapshot(
        work_items=_parse_list(data, "work_items", _parse_work_item, path),
        milestones=_parse_list(data, "milestones", _parse_milestone, path),
        resources=_parse_list(data, "resources", _parse_resource, path),
        assignments=_parse_list(data, "assignments", _parse_assignment, path),
        name=name,
    )


def _parse_list(data: dict[str, Any], key: str, parse_one, path: _Path) -> list:
    raw = data.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise SnapshotValidationError(f"{path.child(key)}: expected list")
    return [parse_one(entry, path.child(f"{key}[{idx}]")) for idx, entry in enumerate(raw)]


def _parse_work_item(data: Any, path: _Path) -> WorkItem:
    if not isinstance(data, dict):
        raise SnapshotValidationError(f"{path}: expected mapping for work item")

    status = data.get("status", "not_started")
    if isinstance(status, str):
        status = LEGACY_STATUSES.get(status, status)
    if status not in WORK_ITEM_STATUSES:
        raise SnapshotValidationError(f"{path.child('status')}: unknown status '{status}'")

    return WorkItem(
        id=_require_id(data, "id", path),
        title=_require_str(data, "title", path),
        parent_id=_optional_id(data, "parent_id", path),
        start_date=_optional_date(data, "start_date", path),
        end_date=_optional_date(data, "end_date", path),
        estimated_hours=_optional_hours(data, "estimated_hours", path),
        actual_hours=_optional_hours(data, "actual_hours", path),
        status=status,
        milestone_id=_optional_id(data, "milestone_id", path),
        tags=normalize_tags(decode_tag_field(data.get("tags"))),
        assignee=_optional_str(data, "assignee", path),
        description=_optional_str(data, "description", path),
    )


def _parse_milestone(data: Any, path: _Path) -> Milestone:
    if not isinstance(data, dict):
        raise SnapshotValidationError(f"{path}: expected mapping for milestone")

    status = data.get("status", "pending")
    if status not in MILESTONE_STATUSES:
        raise SnapshotValidationError(f"{path.child('status')}: unknown status '{status}'")

    target_date = _optional_date(data, "target_date", path)
    if target_date is None:
        raise SnapshotValidationError(f"{path}: missing required field 'target_date'")

    return Milestone(
        id=_require_id(data, "id", path),
        name=_require_str(data, "name", path),
        target_date=target_date,
        status=status,
        description=_optional_str(data, "description", path),
    )


def _parse_resource(data: Any, path: _Path) -> Resource:
    if not isinstance(data, dict):
        raise SnapshotValidationError(f"{path}: expected mapping for resource")

    availability = data.get("availability", 100)
    if not _is_number(availability) or not 0 <= availability <= 100:
        raise SnapshotValidationError(f"{path.child('availability')}: expected number between 0 and 100")

    return Resource(
        id=_require_id(data, "id", path),
        name=_require_str(data, "name", path),
        role=_optional_str(data, "role", path),
        availability=float(availability),
    )


def _parse_assignment(data: Any, path: _Path) -> TaskAssignment:
    if not isinstance(data, dict):
        raise SnapshotValidationError(f"{path}: expected mapping for assignment")

    allocation = data.get("allocation_percent", 100)
    if not _is_number(allocation) or not 0 <= allocation <= 100:
        raise SnapshotValidationError(f"{path.child('allocation_percent')}: expected number between 0 and 100")

    return TaskAssignment(
        work_item_id=_require_id(data, "work_item_id", path),
        resource_id=_require_id(data, "resource_id", path),
        allocation_percent=float(allocation),
    )


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise SnapshotValidationError(f"{path}: missing required field '{key}'")
    return data[key]


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise SnapshotValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _require_id(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    # Storage hands out integer row ids as often as string ids.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if not isinstance(value, str) or not value.strip():
        raise SnapshotValidationError(f"{path.child(key)}: expected non-empty string or integer id")
    return value


def _optional_id(data: dict[str, Any], key: str, path: _Path) -> str | None:
    if data.get(key) in (None, ""):
        return None
    return _require_id(data, key, path)


def _optional_str(data: dict[str, Any], key: str, path: _Path) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise SnapshotValidationError(f"{path.child(key)}: expected string")
    return value


def _optional_hours(data: dict[str, Any], key: str, path: _Path) -> float | None:
    value = data.get(key)
    if value is None:
        return None
    if not _is_number(value) or value < 0:
        raise SnapshotValidationError(f"{path.child(key)}: expected non-negative number of hours")
    return float(value)


def _optional_date(data: dict[str, Any], key: str, path: _Path) -> _dt.date | None:
    value = data.get(key)
    if value in (None, ""):
        return None
    # yaml.safe_load already turns unquoted YYYY-MM-DD into dates.
    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value
    if not isinstance(value, str):
        raise SnapshotValidationError(f"{path.child(key)}: expected YYYY-MM-DD string")
    try:
        return _dt.date.fromisoformat(value[:10])
    except ValueError as exc:
        raise SnapshotValidationError(f"{path.child(key)}: expected YYYY-MM-DD string") from exc


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
