"""Topological ordering of build requirements."""
from __future__ import annotations

import heapq
import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .building_catalog import BuildingCatalog
from .building_models import BuildRequirement
from .diagnostics import Notifier, emit


logger = logging.getLogger(__name__)

NodeKey = Tuple[str, int]
SortKey = Tuple[int, int, int, str]


def _tie_break(requirement: BuildRequirement, target_id: Optional[str]) -> SortKey:
    # Lower level, then fewer direct requirements, then prerequisites of
    # other buildings before the target's own chain, then id.
    own_chain = 1 if target_id is not None and requirement.id == target_id else 0
    return (requirement.level, requirement.requirement_count, own_chain, requirement.id)


def _prerequisite_keys(requirement: BuildRequirement, catalog: BuildingCatalog) -> List[NodeKey]:
    keys: List[NodeKey] = []
    level_def = catalog.find_level(requirement.id, requirement.level)
    if level_def is not None:
        keys.extend((req_id, int(req_level)) for req_id, req_level in level_def.requirements.items())
    if requirement.level > 1:
        keys.append((requirement.id, requirement.level - 1))
    return keys


def number_steps(requirements: Iterable[BuildRequirement]) -> Tuple[BuildRequirement, ...]:
    """Return copies of ``requirements`` with contiguous steps from 1."""

    return tuple(replace(requirement, step=index) for index, requirement in enumerate(requirements, start=1))


def order_requirements(
    requirements: Iterable[BuildRequirement],
    catalog: BuildingCatalog,
    notifier: Notifier = None,
    *,
    target_id: Optional[str] = None,
) -> Tuple[BuildRequirement, ...]:
    """Order ``requirements`` so every prerequisite precedes its dependents.

    Kahn's algorithm over the supplied nodes only; edges pointing outside the
    set are ignored. Ready nodes are released by :func:`_tie_break`, making the
    output a pure function of the input. If a cycle keeps nodes from being
    released, the input order is numbered instead.
    """

    nodes: Dict[NodeKey, BuildRequirement] = {}
    for requirement in requirements:
        nodes.setdefault(requirement.key, requirement)

    dependents: Dict[NodeKey, List[NodeKey]] = {key: [] for key in nodes}
    in_degree: Dict[NodeKey, int] = {key: 0 for key in nodes}
    for key, requirement in nodes.items():
        for prerequisite in set(_prerequisite_keys(requirement, catalog)):
            if prerequisite in nodes and prerequisite != key:
                dependents[prerequisite].append(key)
                in_degree[key] += 1

    ready: List[Tuple[SortKey, NodeKey]] = [
        (_tie_break(nodes[key], target_id), key) for key, degree in in_degree.items() if degree == 0
    ]
    heapq.heapify(ready)

    ordered: List[BuildRequirement] = []
    while ready:
        _, key = heapq.heappop(ready)
        ordered.append(nodes[key])
        for dependent in dependents[key]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                heapq.heappush(ready, (_tie_break(nodes[dependent], target_id), dependent))

    if len(ordered) != len(nodes):
        emit(
            logger,
            notifier,
            "topological_fallback",
            "Topological sort incomplete: %d/%d nodes processed. Possible cycle detected.",
            len(ordered),
            len(nodes),
            ordered=len(ordered),
            total=len(nodes),
        )
        return number_steps(nodes.values())

    return number_steps(ordered)


def validate_build_order(
    sequence: Sequence[BuildRequirement],
    catalog: BuildingCatalog,
    notifier: Notifier = None,
) -> int:
    """Report requirements whose prerequisites appear later in ``sequence``.

    Returns the number of violations; nothing is raised.
    """

    position: Dict[NodeKey, int] = {requirement.key: index for index, requirement in enumerate(sequence)}
    violations = 0
    for index, requirement in enumerate(sequence):
        for prerequisite in _prerequisite_keys(requirement, catalog):
            required_index = position.get(prerequisite)
            if required_index is None or required_index < index:
                continue
            violations += 1
            emit(
                logger,
                notifier,
                "order_violation",
                "Dependency violation: %s L%d (step %d) requires %s L%d (step %d)",
                requirement.id,
                requirement.level,
                requirement.step,
                prerequisite[0],
                prerequisite[1],
                sequence[required_index].step,
                building_id=requirement.id,
                level=requirement.level,
                requires=f"{prerequisite[0]}-{prerequisite[1]}",
            )

    if violations:
        logger.error("Build order validation failed: %d dependency violations found", violations)
    elif len(sequence) > 50:
        logger.info("Build order validation passed for %d dependencies", len(sequence))
    return violations
