from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any

import yaml

from .hierarchy import HierarchyCycleError, build_hierarchy
from .parse_snapshot import SnapshotValidationError, load_snapshot
from .project_models import GROUPING_MODES, ZOOM_MODES, ProjectSnapshot
from .render_rows import to_timeline_rows, to_tree_rows, to_wbs_rows
from .tags import collect_tags, filter_by_tags
from .timeline import compute_timeline_range, merge_chronological
from .wbs import assign_wbs, wbs_coverage
from .workload import project_summary, resource_workload

logger = logging.getLogger(__name__)


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _parse_tags(value: str) -> list[str]:
    return [tag.strip() for tag in value.split(",") if tag.strip()]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="timeline-rollup",
        description="Compute hierarchy rollups, timeline geometry and WBS groups for a project snapshot",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("snapshot", help="Path to a YAML or JSON project snapshot")
    parser.add_argument("--zoom", choices=ZOOM_MODES, default="month", help="Timeline granularity")
    parser.add_argument("--group", choices=GROUPING_MODES, default="by_deliverable", help="WBS grouping")
    parser.add_argument("--today", type=_parse_date, help="Reference date (YYYY-MM-DD); defaults to the current date")
    parser.add_argument("--tags", type=_parse_tags, default=[], help="Only keep work items with one of these comma separated tags")
    parser.add_argument("--out", help="Write the YAML report here instead of stdout")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug details to stderr")
    return parser


def build_report(
    snapshot: ProjectSnapshot,
    zoom: str = "month",
    grouping: str = "by_deliverable",
    today: dt.date | None = None,
    tags: list[str] | None = None,
) -> dict[str, Any]:
    """Run every stage over a snapshot and collect plain, YAML-friendly results."""

    today = today or dt.date.today()
    items = filter_by_tags(snapshot.work_items, tags or [])
    milestones = snapshot.milestones

    roots = build_hierarchy(items)
    bounds, periods = compute_timeline_range(items, milestones, zoom, today=today)
    entries = merge_chronological(items, milestones)
    groups = assign_wbs(items, milestones, grouping)
    coverage = wbs_coverage(groups, items)
    summary = project_summary(items, milestones, today=today)

    return {
        "project": snapshot.name,
        "generated_for": today,
        "tags": collect_tags(snapshot.work_items),
        "summary": {
            "total_items": summary.total_items,
            "status_counts": summary.status_counts,
            "completion_rate": summary.completion_rate,
            "total_milestones": summary.total_milestones,
            "achieved_milestones": summary.achieved_milestones,
            "milestones_rate": summary.milestones_rate,
            "upcoming_milestones": [m.id for m in summary.upcoming_milestones],
            "overdue_milestones": [m.id for m in summary.overdue_milestones],
        },
        "tree": [_plain(asdict(row)) for row in to_tree_rows(roots)],
        "timeline": {
            "zoom": zoom,
            "start": bounds.start,
            "end": bounds.end,
            "total_days": bounds.total_days,
            "periods": [_plain(asdict(period)) for period in periods],
            "rows": [_plain(asdict(row)) for row in to_timeline_rows(entries, bounds)],
        },
        "wbs": {
            "grouping": grouping,
            "rows": [_plain(asdict(row)) for row in to_wbs_rows(groups)],
            "coverage": {
                "groups": coverage.group_count,
                "captured_packages": coverage.captured_packages,
                "captured_hours": coverage.captured_hours,
                "uncaptured": [item.id for item in coverage.uncaptured],
                "coverage_percent": coverage.coverage_percent,
            },
        },
        "workload": [
            {
                "resource": load.resource.id,
                "name": load.resource.name,
                "items": [item.id for item in load.items],
                "estimated_hours": load.total_estimated_hours,
                "actual_hours": load.total_actual_hours,
                "utilization_percent": load.utilization_percent,
            }
            for load in resource_workload(snapshot.resources, snapshot.assignments, items)
        ],
    }


def _plain(value: Any) -> Any:
    """Round floats for display; recurse into the dicts produced by asdict."""
    if isinstance(value, float):
        return round(value, 2)
    if isinstance(value, dict):
        return {key: _plain(inner) for key, inner in value.items()}
    if isinstance(value, list):
        return [_plain(inner) for inner in value]
    return value


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    snapshot_path = Path(args.snapshot)

    try:
        snapshot = load_snapshot(str(snapshot_path))
    except (yaml.YAMLError, SnapshotValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Error: snapshot file not found: {snapshot_path}", file=sys.stderr)
        return 1
    except Exception as exc:  # Unexpected
        print(f"Unexpected error while loading snapshot: {exc}", file=sys.stderr)
        return 1

    try:
        report = build_report(snapshot, zoom=args.zoom, grouping=args.group, today=args.today, tags=args.tags)
    except HierarchyCycleError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except Exception as exc:
        logger.debug("Report failed", exc_info=True)
        print(f"Unexpected error while computing report: {exc}", file=sys.stderr)
        return 1

    text = yaml.safe_dump(report, sort_keys=False, allow_unicode=True)
    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
