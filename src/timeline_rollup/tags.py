from __future__ import annotations

import logging
from typing import Any, Iterable

import yaml

from .project_models import RawTags, TagField, TagList, WorkItem

logger = logging.getLogger(__name__)


def decode_tag_field(value: Any) -> TagField:
    """
    Decode the loosely-typed tag column once, at the boundary.

    Storage hands back either nothing, one string (comma separated or an
    encoded list such as '["a", "b"]') or a ready-made list.
    """

    if value is None:
        return TagList()
    if isinstance(value, (RawTags, TagList)):
        return value
    if isinstance(value, str):
        return RawTags(value)
    if isinstance(value, (list, tuple)):
        return TagList(tuple(str(tag) for tag in value if tag is not None))
    logger.warning("Ignoring tag field of unsupported type %s", type(value).__name__)
    return TagList()


def normalize_tags(field: TagField | str | list[str] | None) -> list[str]:
    """Return the ordered, trimmed, non-empty tags carried by a tag field."""

    decoded = decode_tag_field(field)
    if isinstance(decoded, TagList):
        candidates: Iterable[str] = decoded.items
    else:
        candidates = _split_raw(decoded.text)
    return [tag.strip() for tag in candidates if tag.strip()]


def _split_raw(text: str) -> list[str]:
    stripped = text.strip()
    if not stripped:
        return []
    if not (stripped.startswith("[") and stripped.endswith("]")):
        return stripped.split(",")

    # Encoded list; YAML flow sequences are a superset of JSON arrays.
    try:
        parsed = yaml.safe_load(stripped)
    except yaml.YAMLError as exc:
        logger.warning("Dropping unparsable tag field %r: %s", text, exc)
        return []
    if not isinstance(parsed, list):
        logger.warning("Dropping tag field %r: expected a list", text)
        return []
    return [str(tag) for tag in parsed if tag is not None]


def collect_tags(items: Iterable[WorkItem]) -> list[str]:
    """Sorted set of every tag used across the given items."""

    seen: set[str] = set()
    for item in items:
        seen.update(item.tags)
    return sorted(seen)


def filter_by_tags(items: Iterable[WorkItem], selected: Iterable[str]) -> list[WorkItem]:
    """
    Keep items carrying at least one of the selected tags.

    An empty selection keeps every item.
    """

    wanted = {tag for tag in selected if tag}
    items = list(items)
    if not wanted:
        return items
    return [item for item in items if wanted.intersection(item.tags)]
