from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Iterable

from .project_models import RollupStats, TreeNode, WorkItem

logger = logging.getLogger(__name__)


class HierarchyCycleError(Exception):
    """Raised when parent links loop back on themselves."""

    def __init__(self, cycle: "Cycle") -> None:
        super().__init__(f"Parent cycle detected: {cycle}")
        self.cycle = cycle


@dataclass(frozen=True)
class Cycle:
    """Represents a detected cycle path for error reporting."""

    path: list[str]

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return " -> ".join(self.path)


def build_hierarchy(items: Iterable[WorkItem]) -> list[TreeNode]:
    """
    Assemble a flat list of work items into an ordered forest.

    - Items without a parent, or whose parent id is not in `items`, become roots.
    - Roots and every child list are ordered by end date, undated items last;
      ties keep input order.
    - Raises HierarchyCycleError when parent links form a loop, since the
      looping items could never be reached from a root.
    """

    item_list = list(items)
    nodes: dict[str, TreeNode] = {}
    placed: list[TreeNode] = []

    for item in item_list:
        node = TreeNode(item=item)
        placed.append(node)
        if item.id in nodes:
            logger.warning("Duplicate work item id '%s'; only the first can act as a parent", item.id)
            continue
        nodes[item.id] = node

    _assert_no_cycles(item_list, nodes)

    roots: list[TreeNode] = []
    for node in placed:
        parent_id = node.item.parent_id
        parent = nodes.get(parent_id) if parent_id else None
        if parent is None:
            if parent_id:
                logger.debug("Work item '%s' references unknown parent '%s'; treating as root", node.id, parent_id)
            roots.append(node)
        else:
            parent.children.append(node)

    roots.sort(key=_end_date_key)
    for node in placed:
        node.children.sort(key=_end_date_key)
    return roots


def _end_date_key(node: TreeNode) -> tuple[bool, date]:
    end = node.end_date
    return (end is None, end or date.min)


def _assert_no_cycles(items: list[WorkItem], nodes: dict[str, TreeNode]) -> None:
    order = [item.id for item in items]
    parents: dict[str, list[str]] = {}
    for item_id, node in nodes.items():
        parent_id = node.item.parent_id
        parents[item_id] = [parent_id] if parent_id and parent_id in nodes else []
    cycle = find_cycle(order, parents)
    if cycle:
        raise HierarchyCycleError(cycle)


def find_cycle(order: list[str], edges: dict[str, list[str]]) -> Cycle | None:
    """
    Depth-first search for the first cycle reachable from `order`, if any.

    `edges` maps each work item id to a list holding its parent id, so a
    cycle here is a loop of parent links.
    """

    state: dict[str, str] = {}
    stack: list[str] = []
    positions: dict[str, int] = {}

    def dfs(node_id: str) -> Cycle | None:
        state[node_id] = "visiting"
        positions[node_id] = len(stack)
        stack.append(node_id)

        for next_id in edges.get(node_id, []):
            next_state = state.get(next_id)
            if next_state == "visiting":
                return Cycle(stack[positions[next_id] :] + [next_id])
            if next_state is None:
                found = dfs(next_id)
                if found:
                    return found

        stack.pop()
        positions.pop(node_id, None)
        state[node_id] = "done"
        return None

    for node_id in order:
        if state.get(node_id) is None:
            found = dfs(node_id)
            if found:
                return found
    return None


def compute_rollup(node: TreeNode) -> RollupStats:
    """
    Aggregate effort over the subtree rooted at `node`.

    A node's own estimate always counts toward the total, but toward the
    completed effort only when the node itself is done. Children contribute
    their own subtree sums regardless of the parent's status.
    """

    total, completed = _sum_effort(node, visiting=set())
    return _stats(total, completed)


def rollup_nodes(roots: Iterable[TreeNode]) -> dict[int, RollupStats]:
    """Stats for every node of the forest in one pass, keyed by `id(node)`."""

    results: dict[int, RollupStats] = {}

    def visit(node: TreeNode, visiting: set[int]) -> tuple[float, float]:
        _enter(node, visiting)
        total = own_effort(node.item)
        completed = total if node.item.is_done else 0.0
        for child in node.children:
            child_total, child_completed = visit(child, visiting)
            total += child_total
            completed += child_completed
        visiting.discard(id(node))
        results[id(node)] = _stats(total, completed)
        return total, completed

    for root in roots:
        visit(root, set())
    return results


def rollup_forest(roots: Iterable[TreeNode]) -> dict[str, RollupStats]:
    """
    Stats for every node of the forest, keyed by work item id.

    With duplicate ids the first node in pre-order wins; use rollup_nodes
    when every node needs its own entry.
    """

    root_list = list(roots)
    by_node = rollup_nodes(root_list)
    results: dict[str, RollupStats] = {}
    for _, node in walk_tree(root_list):
        results.setdefault(node.id, by_node[id(node)])
    return results


def _sum_effort(node: TreeNode, visiting: set[int]) -> tuple[float, float]:
    _enter(node, visiting)
    total = own_effort(node.item)
    completed = total if node.item.is_done else 0.0
    for child in node.children:
        child_total, child_completed = _sum_effort(child, visiting)
        total += child_total
        completed += child_completed
    visiting.discard(id(node))
    return total, completed


def _enter(node: TreeNode, visiting: set[int]) -> None:
    if id(node) in visiting:
        raise HierarchyCycleError(Cycle([node.id, node.id]))
    visiting.add(id(node))


def own_effort(item: WorkItem) -> float:
    """Estimated hours of one item; missing or negative estimates count as 0."""
    hours = item.estimated_hours
    if hours is None or hours < 0:
        return 0.0
    return float(hours)


def _stats(total: float, completed: float) -> RollupStats:
    percent = round_half_up(100 * completed / total) if total > 0 else 0
    return RollupStats(total_effort=total, completed_effort=completed, completion_percent=min(max(percent, 0), 100))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def walk_tree(roots: Iterable[TreeNode]) -> Iterable[tuple[int, TreeNode]]:
    """Yield (depth, node) in pre-order; raises HierarchyCycleError on loops."""

    def visit(node: TreeNode, depth: int, visiting: set[int]) -> Iterable[tuple[int, TreeNode]]:
        _enter(node, visiting)
        yield depth, node
        for child in node.children:
            yield from visit(child, depth + 1, visiting)
        visiting.discard(id(node))

    for root in roots:
        yield from visit(root, 0, set())
