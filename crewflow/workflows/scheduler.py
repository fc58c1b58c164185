"""
Dependency scheduling for a selected set of agents.

Only edges whose target is also selected are considered. Selecting a
subset of the team must stay schedulable, so edges to unselected roles
are dropped without complaint.
"""

import logging
from typing import Dict, List, Sequence, Set

from ..agents.registry import AgentSpec
from ..exceptions import CircularDependencyError

logger = logging.getLogger(__name__)


def relevant_dependencies(spec: AgentSpec, selected: Set[str]) -> List[str]:
    return [dep for dep in spec.dependencies if dep in selected]


def topological_order(specs: Sequence[AgentSpec]) -> List[AgentSpec]:
    """
    Order agents so every agent follows its in-set dependencies.

    Depth-first; a node met again while still being visited means a cycle.

    Raises:
        CircularDependencyError: If the selected agents contain a cycle
    """
    by_role: Dict[str, AgentSpec] = {spec.role: spec for spec in specs}
    ordered: List[AgentSpec] = []
    visited: Set[str] = set()
    visiting: List[str] = []

    def visit(spec: AgentSpec) -> None:
        if spec.role in visiting:
            cycle = visiting[visiting.index(spec.role):] + [spec.role]
            raise CircularDependencyError(cycle)
        if spec.role in visited:
            return

        visiting.append(spec.role)
        for dep in spec.dependencies:
            dep_spec = by_role.get(dep)
            if dep_spec is not None:
                visit(dep_spec)
        visiting.pop()

        visited.add(spec.role)
        ordered.append(spec)

    for spec in specs:
        if spec.role not in visited:
            visit(spec)

    return ordered


def level_partition(specs: Sequence[AgentSpec]) -> List[List[AgentSpec]]:
    """
    Group agents into levels that can run concurrently.

    A level holds every unplaced agent whose in-set dependencies were all
    placed in earlier levels, so no two agents of one level depend on each
    other.

    Raises:
        CircularDependencyError: If an iteration cannot place any agent
    """
    selected = {spec.role for spec in specs}
    placed: Set[str] = set()
    remaining = list(specs)
    levels: List[List[AgentSpec]] = []

    while remaining:
        level = [
            spec for spec in remaining
            if all(dep in placed for dep in relevant_dependencies(spec, selected))
        ]
        if not level:
            raise CircularDependencyError(spec.role for spec in remaining)

        levels.append(level)
        placed.update(spec.role for spec in level)
        remaining = [spec for spec in remaining if spec.role not in placed]

    logger.debug(f"Partitioned {len(specs)} agents into {len(levels)} levels")
    return levels
