"""Player build state owned by the planner front end."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Tuple

from . import config
from .building_catalog import BuildingCatalog, load_default_catalog
from .building_models import BuildRequirement, BuildStateValidation
from .dependency_calculator import (
    UnknownBuildingError,
    compute_build_plan,
    summarize_progress,
    validate_build_state,
)


logger = logging.getLogger(__name__)


def base_build_state() -> Dict[str, int]:
    return {building_id: int(level) for building_id, level in config.BASE_BUILDINGS}


class BuildStateStore:
    """Mutable build state, target selection and the last calculated queue."""

    _instance: Optional["BuildStateStore"] = None

    def __init__(self, catalog: Optional[BuildingCatalog] = None) -> None:
        self._lock = threading.RLock()
        self._catalog = catalog
        self._state_version = 0
        self.reset()

    # ------------------------------------------------------------------
    @classmethod
    def get_instance(cls) -> "BuildStateStore":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @property
    def catalog(self) -> BuildingCatalog:
        return load_default_catalog() if self._catalog is None else self._catalog

    @property
    def version(self) -> int:
        return self._state_version

    def reset(self) -> None:
        """Return to the starting colony: base buildings only, no target."""

        with self._lock:
            self.build_state: Dict[str, int] = base_build_state()
            self.target: Optional[Tuple[str, int]] = None
            self.queue: Optional[Tuple[BuildRequirement, ...]] = None
            self.queue_calculated_at: Optional[str] = None
            self.queue_truncated = False
            self._state_version += 1

    # ------------------------------------------------------------------
    def _canonical_id(self, building_id: str) -> str:
        key = config.normalise_building_key(building_id)
        if key not in self.catalog:
            raise UnknownBuildingError(building_id)
        return key

    def get_building_level(self, building_id: str) -> int:
        with self._lock:
            return int(self.build_state.get(building_id, 0))

    def is_building_built(self, building_id: str, level: int) -> bool:
        return self.get_building_level(building_id) >= int(level)

    def set_building_level(self, building_id: str, level: int) -> int:
        """Set ``building_id`` to ``level``; zero or less removes it."""

        key = self._canonical_id(building_id)
        level = config.parse_level(level)
        max_level = self.catalog.find_building(key).max_level
        if level > max_level:
            raise ValueError(f"Building {key} cannot exceed level {max_level}")
        with self._lock:
            if level <= 0:
                self.build_state.pop(key, None)
            else:
                self.build_state[key] = level
            self._state_version += 1
            return max(level, 0)

    def build_building(self, building_id: str, target_level: int = 1) -> int:
        """Raise ``building_id`` to at least ``target_level``."""

        key = self._canonical_id(building_id)
        with self._lock:
            level = max(self.get_building_level(key), config.parse_level(target_level))
            return self.set_building_level(key, level)

    def unbuild_building(self, building_id: str, target_level: int = 0) -> int:
        return self.set_building_level(building_id, target_level)

    def load_state(self, state: Mapping[str, int]) -> BuildStateValidation:
        """Replace the build state, keeping base buildings as minimum levels.

        An invalid state is rejected and the base state is used instead.
        """

        merged: Dict[str, int] = dict(state)
        for building_id, level in config.BASE_BUILDINGS:
            current = merged.get(building_id, 0)
            merged[building_id] = max(int(level), current if isinstance(current, int) else 0)
        validation = validate_build_state(merged, catalog=self.catalog)
        with self._lock:
            if validation.is_valid:
                self.build_state = {key: value for key, value in merged.items() if value > 0}
            else:
                logger.warning("Invalid build state rejected: %s", "; ".join(validation.errors))
                self.build_state = base_build_state()
            self._state_version += 1
        return validation

    # ------------------------------------------------------------------
    def set_target(self, building_id: Optional[str], level: Optional[int] = None) -> None:
        with self._lock:
            if building_id is None:
                self.target = None
            else:
                self.target = (self._canonical_id(building_id), config.parse_level(level or 1))
            self._state_version += 1

    def calculate_and_store_queue(self, building_id: str, level: int) -> Tuple[BuildRequirement, ...]:
        """Plan ``building_id`` at ``level`` from the current state and keep it."""

        with self._lock:
            plan = compute_build_plan(building_id, level, self.build_state, catalog=self.catalog)
            self.queue = plan.requirements
            self.queue_truncated = plan.truncated
            self.queue_calculated_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
            self.target = (plan.target_id, plan.target_level)
            self._state_version += 1
            return plan.requirements

    def restore_queue(
        self,
        target: Tuple[str, int],
        items: List[Tuple[str, int, int]],
        calculated_at: Optional[str] = None,
    ) -> None:
        """Reinstate a stored queue of ``(id, level, step)`` items."""

        with self._lock:
            self.target = target
            self.queue = tuple(
                BuildRequirement(id=building_id, level=int(item_level), step=int(step))
                for building_id, item_level, step in items
            )
            self.queue_calculated_at = calculated_at
            self.queue_truncated = False
            self._state_version += 1

    def clear_queue(self) -> None:
        with self._lock:
            self.queue = None
            self.queue_calculated_at = None
            self.queue_truncated = False
            self._state_version += 1

    def current_queue(self) -> Optional[Tuple[BuildRequirement, ...]]:
        """Return the stored queue with ``is_built`` refreshed from the state."""

        with self._lock:
            if self.queue is None:
                return None
            return tuple(
                replace(item, is_built=self.get_building_level(item.id) >= item.level)
                for item in self.queue
            )

    # ------------------------------------------------------------------
    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            queue = self.current_queue()
            payload: Dict[str, object] = {
                "build_state": dict(sorted(self.build_state.items())),
                "target": None if self.target is None else {"id": self.target[0], "level": self.target[1]},
                "queue": None if queue is None else [item.to_dict() for item in queue],
                "queue_calculated_at": self.queue_calculated_at,
                "queue_truncated": self.queue_truncated,
                "version": self._state_version,
            }
            if queue is not None:
                payload["progress"] = summarize_progress(queue)
            return payload


def get_build_state_store() -> BuildStateStore:
    return BuildStateStore.get_instance()
