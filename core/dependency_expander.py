"""Expansion of a build target into the flat set of levels still missing."""
from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Mapping, Optional, Set, Tuple

from .building_catalog import BuildingCatalog
from .building_models import BuildRequirement, Level
from .diagnostics import Notifier, emit


logger = logging.getLogger(__name__)

NodeKey = Tuple[str, int]
_Frame = Tuple[NodeKey, Level, Iterator[NodeKey]]


def expand_dependencies(
    target_id: str,
    target_level: int,
    effective_state: Mapping[str, int],
    catalog: BuildingCatalog,
    notifier: Notifier = None,
) -> Dict[NodeKey, BuildRequirement]:
    """Return every unbuilt ``(building, level)`` needed to reach the target.

    Entries are keyed by ``(building, level)`` and inserted in post-order, so
    each requirement follows the ones it was expanded from. Missing catalogue
    data and prerequisite cycles only prune the affected branch.

    The walk keeps an explicit stack; chain depth is not tied to the
    interpreter's recursion limit.
    """

    found: Dict[NodeKey, BuildRequirement] = {}
    active: Set[NodeKey] = set()
    stack: List[_Frame] = []

    for key in _missing_levels(target_id, int(target_level), effective_state):
        frame = _enter(key, effective_state, catalog, found, active, notifier)
        if frame is not None:
            stack.append(frame)
        while stack:
            node, level_def, pending = stack[-1]
            child = next(pending, None)
            if child is not None:
                frame = _enter(child, effective_state, catalog, found, active, notifier)
                if frame is not None:
                    stack.append(frame)
                continue
            stack.pop()
            active.discard(node)
            building_id, level = node
            found[node] = BuildRequirement(
                id=building_id,
                level=level,
                is_built=int(effective_state.get(building_id, 0) or 0) >= level,
                depth_cache=catalog.dependency_depth(building_id, level),
                requirement_count=level_def.requirement_count,
            )
    return found


def _missing_levels(building_id: str, level: int, state: Mapping[str, int]) -> Iterator[NodeKey]:
    current = int(state.get(building_id, 0) or 0)
    # Walk the level chain so every intermediate level gets its own entry.
    for needed in range(current + 1, level + 1):
        yield (building_id, needed)


def _children(level_def: Level, state: Mapping[str, int]) -> Iterator[NodeKey]:
    for req_id, req_level in level_def.requirements.items():
        yield from _missing_levels(req_id, int(req_level), state)


def _enter(
    key: NodeKey,
    state: Mapping[str, int],
    catalog: BuildingCatalog,
    found: Dict[NodeKey, BuildRequirement],
    active: Set[NodeKey],
    notifier: Notifier,
) -> Optional[_Frame]:
    """Open a frame for ``key``, or return ``None`` when it needs no expansion."""

    building_id, level = key
    if key in active:
        emit(
            logger,
            notifier,
            "dependency_cycle",
            "Circular dependency detected at %s L%d",
            building_id,
            level,
            building_id=building_id,
            level=level,
            path=sorted(f"{node_id}-{node_level}" for node_id, node_level in active),
        )
        return None
    if key in found:
        return None

    building = catalog.find_building(building_id)
    if building is None:
        emit(
            logger,
            notifier,
            "building_not_found",
            "Building not found: %s",
            building_id,
            severity=logging.ERROR,
            building_id=building_id,
        )
        return None
    level_def = building.get_level(level)
    if level_def is None:
        emit(
            logger,
            notifier,
            "level_not_found",
            "Level %d not found for building %s",
            level,
            building_id,
            severity=logging.ERROR,
            building_id=building_id,
            level=level,
        )
        return None

    active.add(key)
    return (key, level_def, _children(level_def, state))
