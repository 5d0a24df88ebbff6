"""
finance_engines.dependency_graph -- Single-predecessor milestone forest.

Responsibility:
    Materialize the dependency forest implied by each milestone's
    ``predecessor_id``: one node per milestone holding its parent, its
    children (successors, in input order) and its level (depth from root).

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Level computation is iterative and tracks the nodes on the current
      walk; a predecessor chain that loops back raises CycleDetectedError
      carrying the loop, never recursion without bound.
    - A predecessor id that is not part of the snapshot is treated as
      absent: the node becomes a root.
    - The forest is read-only (frozen nodes, tuple children).

Failure modes:
    - CycleDetectedError on any predecessor loop (including self-links).
    - ValueError on duplicate milestone ids in the input.
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping, Sequence
from dataclasses import dataclass

from finance_engines.schedule_types import ScheduledMilestone
from finance_engines.tracer import traced_engine
from finance_kernel.exceptions import CycleDetectedError
from finance_kernel.logging_config import get_logger

logger = get_logger("engines.dependency_graph")


@dataclass(frozen=True)
class ForestNode:
    """One milestone in the dependency forest."""

    id: Hashable
    parent_id: Hashable | None
    children: tuple[Hashable, ...]
    level: int

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def is_leaf(self) -> bool:
        return not self.children


Forest = Mapping[Hashable, ForestNode]


def _parent_map(milestones: Sequence[ScheduledMilestone]) -> dict[Hashable, Hashable | None]:
    parents: dict[Hashable, Hashable | None] = {}
    for m in milestones:
        if m.id in parents:
            raise ValueError(f"Duplicate milestone id in snapshot: {m.id}")
        parents[m.id] = m.predecessor_id
    # Dangling predecessor references become roots
    return {
        mid: (pid if pid is not None and pid in parents else None)
        for mid, pid in parents.items()
    }


def _compute_levels(parents: Mapping[Hashable, Hashable | None]) -> dict[Hashable, int]:
    levels: dict[Hashable, int] = {}
    for start in parents:
        if start in levels:
            continue
        chain: list[Hashable] = []
        on_chain: set[Hashable] = set()
        current: Hashable | None = start
        base = -1
        while current is not None:
            if current in levels:
                base = levels[current]
                break
            if current in on_chain:
                loop = chain[chain.index(current):] + [current]
                logger.warning(
                    "milestone_cycle_detected",
                    extra={"path": [str(p) for p in loop]},
                )
                raise CycleDetectedError(loop)
            on_chain.add(current)
            chain.append(current)
            current = parents[current]
        # chain runs child -> ancestor; assign from the ancestor end
        for offset, node_id in enumerate(reversed(chain), start=1):
            levels[node_id] = base + offset
    return levels


@traced_engine("dependency_graph", "1.0", fingerprint_fields=("milestones",))
def build_forest(milestones: Sequence[ScheduledMilestone]) -> dict[Hashable, ForestNode]:
    """
    Build the dependency forest for a milestone snapshot.

    Returns:
        Insertion-ordered dict of id -> ForestNode (input order).

    Raises:
        CycleDetectedError: if any predecessor chain loops.
    """
    parents = _parent_map(milestones)

    children: dict[Hashable, list[Hashable]] = {mid: [] for mid in parents}
    for m in milestones:
        parent = parents[m.id]
        if parent is not None:
            children[parent].append(m.id)

    levels = _compute_levels(parents)

    return {
        mid: ForestNode(
            id=mid,
            parent_id=parents[mid],
            children=tuple(children[mid]),
            level=levels[mid],
        )
        for mid in parents
    }


def roots(forest: Forest) -> list[Hashable]:
    """Root ids in forest (input) order."""
    return [node.id for node in forest.values() if node.is_root]


def path_to_root(forest: Forest, node_id: Hashable) -> list[Hashable]:
    """Ids from ``node_id`` up to its root, inclusive."""
    path: list[Hashable] = []
    current: Hashable | None = node_id
    while current is not None:
        path.append(current)
        current = forest[current].parent_id
    return path


def would_create_cycle(
    milestones: Sequence[ScheduledMilestone],
    milestone_id: Hashable,
    predecessor_id: Hashable,
) -> list[Hashable] | None:
    """
    Check whether linking ``milestone_id`` after ``predecessor_id`` loops.

    Returns:
        The loop path (starting and ending at ``milestone_id``) or None.
    """
    if milestone_id == predecessor_id:
        return [milestone_id, milestone_id]
    parents = {m.id: m.predecessor_id for m in milestones}
    path: list[Hashable] = [milestone_id]
    visited: set[Hashable] = {milestone_id}
    current: Hashable | None = predecessor_id
    while current is not None:
        path.append(current)
        if current == milestone_id:
            return path
        if current in visited:
            # Existing loop not involving milestone_id
            return None
        visited.add(current)
        current = parents.get(current)
    return None
