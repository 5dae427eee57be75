"""Catalogue helpers for the colony building data."""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

from . import config
from .building_models import Building, Level


logger = logging.getLogger(__name__)


DEFAULT_BUILDING_DATA = {
    "buildings": [
        {
            "id": "queen",
            "name": "Queen",
            "levels": [
                {"level": 1, "requirements": {}},
                {"level": 2, "requirements": {"worker_ant_nest": 1}},
                {"level": 3, "requirements": {"worker_ant_nest": 2, "fungus_depot": 2}},
                {"level": 4, "requirements": {"feeding_ground": 1, "plant_depot": 3}},
                {"level": 5, "requirements": {"feeding_ground": 3, "wet_soil_depot": 4}},
                {"level": 6, "requirements": {"evolution_fungi": 1, "sand_depot": 5}},
                {"level": 7, "requirements": {"meat_depot": 6, "alliance_center": 1}},
            ],
        },
        {
            "id": "worker_ant_nest",
            "name": "Worker Ant Nest",
            "levels": [
                {"level": 1, "requirements": {}},
                {"level": 2, "requirements": {"queen": 1}},
                {"level": 3, "requirements": {"queen": 3}},
                {"level": 4, "requirements": {"queen": 4}},
            ],
        },
        {
            "id": "plant_flora",
            "name": "Plant Flora",
            "levels": [
                {"level": 1, "requirements": {}},
                {"level": 2, "requirements": {"queen": 2}},
                {"level": 3, "requirements": {"queen": 3}},
            ],
        },
        {
            "id": "wet_soil_pile",
            "name": "Wet Soil Pile",
            "levels": [
                {"level": 1, "requirements": {}},
                {"level": 2, "requirements": {"queen": 2}},
                {"level": 3, "requirements": {"queen": 4}},
            ],
        },
        {
            "id": "leafcutter",
            "name": "Leafcutter",
            "levels": [
                {"level": 1, "requirements": {}},
                {"level": 2, "requirements": {"queen": 2}},
            ],
        },
        {
            "id": "sand_pile",
            "name": "Sand Pile",
            "levels": [
                {"level": 1, "requirements": {}},
                {"level": 2, "requirements": {"queen": 3}},
            ],
        },
        {
            "id": "woodlouse_colony",
            "name": "Woodlouse Colony",
            "levels": [
                {"level": 1, "requirements": {}},
                {"level": 2, "requirements": {"queen": 3}},
            ],
        },
        {
            "id": "plant_depot",
            "name": "Plant Depot",
            "depotType": "plant",
            "levels": [
                {"level": 1, "requirements": {"plant_flora": 1}, "cost": {"plant": 100}},
                {"level": 2, "requirements": {"queen": 2}, "cost": {"plant": 400}},
                {"level": 3, "requirements": {"queen": 3, "plant_flora": 2}, "cost": {"plant": 1200}},
                {"level": 4, "requirements": {"queen": 4}, "cost": {"plant": 3000}},
                {"level": 5, "requirements": {"queen": 5}, "cost": {"plant": 8000}},
            ],
        },
        {
            "id": "wet_soil_depot",
            "name": "Wet Soil Depot",
            "depotType": "wet_soil",
            "levels": [
                {"level": 1, "requirements": {"wet_soil_pile": 1}},
                {"level": 2, "requirements": {"queen": 2}},
                {"level": 3, "requirements": {"queen": 3}},
                {"level": 4, "requirements": {"queen": 3, "wet_soil_pile": 2}},
                {"level": 5, "requirements": {"queen": 5}},
            ],
        },
        {
            "id": "fungus_depot",
            "name": "Fungus Depot",
            "depotType": "fungus",
            "levels": [
                {"level": 1, "requirements": {"leafcutter": 1}},
                {"level": 2, "requirements": {"queen": 2}},
                {"level": 3, "requirements": {"queen": 3}},
                {"level": 4, "requirements": {"queen": 4}},
                {"level": 5, "requirements": {"queen": 5}},
            ],
        },
        {
            "id": "sand_depot",
            "name": "Sand Depot",
            "depotType": "sand",
            "levels": [
                {"level": 1, "requirements": {"sand_pile": 1}},
                {"level": 2, "requirements": {"queen": 2}},
                {"level": 3, "requirements": {"queen": 3}},
                {"level": 4, "requirements": {"queen": 4}},
                {"level": 5, "requirements": {"queen": 5, "sand_pile": 2}},
            ],
        },
        {
            "id": "meat_depot",
            "name": "Meat Depot",
            "depotType": "meat",
            "levels": [
                {"level": 1, "requirements": {"woodlouse_colony": 1}},
                {"level": 2, "requirements": {"queen": 2}},
                {"level": 3, "requirements": {"queen": 3}},
                {"level": 4, "requirements": {"queen": 4}},
                {"level": 5, "requirements": {"queen": 5}},
                {"level": 6, "requirements": {"queen": 6, "woodlouse_colony": 2}},
            ],
        },
        {
            "id": "feeding_ground",
            "name": "Feeding Ground",
            "levels": [
                {"level": 1, "requirements": {"queen": 3}},
                {"level": 2, "requirements": {"queen": 4, "fungus_depot": 3}},
                {"level": 3, "requirements": {"queen": 4}},
                {"level": 4, "requirements": {"queen": 5}},
            ],
        },
        {
            "id": "evolution_fungi",
            "name": "Evolution Fungi",
            "levels": [
                {"level": 1, "requirements": {"queen": 5, "feeding_ground": 4}},
                {"level": 2, "requirements": {"queen": 6}},
            ],
        },
        {
            "id": "spring",
            "name": "Spring",
            "levels": [
                {"level": 1, "requirements": {"queen": 4}},
                {"level": 2, "requirements": {"queen": 5}},
            ],
        },
        {
            "id": "reservoir",
            "name": "Reservoir",
            "depotType": "water",
            "levels": [
                {"level": 1, "requirements": {"spring": 1}},
                {"level": 2, "requirements": {"queen": 5, "spring": 2}},
            ],
        },
        {
            "id": "alliance_center",
            "name": "Alliance Center",
            "levels": [
                {"level": 1, "requirements": {"queen": 6}},
                {"level": 2, "requirements": {"queen": 7}},
            ],
        },
        {
            "id": "construction_center",
            "name": "Construction Center",
            "warns": ["Only useful while the colony belongs to an alliance"],
            "levels": [
                {"level": 1, "requirements": {"queen": 7, "alliance_center": 1}},
            ],
        },
    ]
}


class CatalogError(ValueError):
    """Raised when catalogue data cannot be parsed."""


class BuildingCatalog:
    """Read-only, ordered collection of building definitions."""

    def __init__(self, buildings: Iterable[Building]) -> None:
        self._buildings: Dict[str, Building] = {}
        for building in buildings:
            self._buildings[building.id] = building
        self._depth_cache: Dict[Tuple[str, int], int] = {}

    # ------------------------------------------------------------------
    def __iter__(self) -> Iterator[Building]:
        return iter(self._buildings.values())

    def __len__(self) -> int:
        return len(self._buildings)

    def __contains__(self, building_id: object) -> bool:
        return building_id in self._buildings

    def ids(self) -> List[str]:
        return list(self._buildings)

    def find_building(self, building_id: str) -> Optional[Building]:
        return self._buildings.get(building_id)

    def find_level(self, building_id: str, level: int) -> Optional[Level]:
        building = self.find_building(building_id)
        if building is None:
            return None
        return building.get_level(level)

    def building_info(self, building_id: str) -> Optional[Dict[str, object]]:
        building = self.find_building(building_id)
        if building is None:
            return None
        return {
            "id": building.id,
            "name": building.display_name,
            "max_level": building.max_level,
            "depot_type": building.depot_type,
            "warns": list(building.warns),
        }

    # ------------------------------------------------------------------
    def dependency_depth(self, building_id: str, level: int) -> int:
        """Return the longest prerequisite chain below ``(building_id, level)``.

        The value only depends on the catalogue, so it is memoised for the
        lifetime of the instance. Nodes revisited on the active path count as
        depth 0 instead of recursing forever.
        """

        root = (building_id, int(level))
        active: Set[Tuple[str, int]] = set()
        known = self._known_depth(root, active)
        if known is not None:
            return known

        # Frames are [node, pending requirement keys, deepest child so far].
        active.add(root)
        stack: List[list] = [[root, self._requirement_keys(root), 0]]
        depth = 0
        while stack:
            frame = stack[-1]
            child = next(frame[1], None)
            if child is None:
                stack.pop()
                active.discard(frame[0])
                depth = frame[2] + 1
                self._depth_cache[frame[0]] = depth
                if stack:
                    stack[-1][2] = max(stack[-1][2], depth)
                continue
            known = self._known_depth(child, active)
            if known is not None:
                frame[2] = max(frame[2], known)
                continue
            active.add(child)
            stack.append([child, self._requirement_keys(child), 0])
        return depth

    def _known_depth(self, key: Tuple[str, int], active: Set[Tuple[str, int]]) -> Optional[int]:
        cached = self._depth_cache.get(key)
        if cached is not None:
            return cached
        if key in active:
            return 0
        level_def = self.find_level(*key)
        if level_def is None or not level_def.requirements:
            self._depth_cache[key] = 0
            return 0
        return None

    def _requirement_keys(self, key: Tuple[str, int]) -> Iterator[Tuple[str, int]]:
        level_def = self.find_level(*key)
        for req_id, req_level in level_def.requirements.items():
            yield (req_id, int(req_level))


# ---------------------------------------------------------------------------
# Loading


def _parse_level(raw: Mapping[str, object], building_id: str) -> Level:
    try:
        level_number = int(raw["level"])
    except (KeyError, TypeError, ValueError) as exc:
        raise CatalogError(f"Building {building_id} has a level without a valid number") from exc
    if level_number < 1:
        raise CatalogError(f"Building {building_id} declares non-positive level {level_number}")

    requirements = {
        str(req_id).strip(): int(req_level)
        for req_id, req_level in (raw.get("requirements") or {}).items()
    }
    cost = {str(k): float(v) for k, v in (raw.get("cost") or {}).items()}
    build_time = raw.get("buildTime", raw.get("build_time"))
    return Level(
        level=level_number,
        requirements=requirements,
        cost=cost,
        build_time=None if build_time is None else float(build_time),
    )


def building_from_dict(entry: Mapping[str, object]) -> Building:
    """Create a :class:`Building` from a catalogue record."""

    raw_id = entry.get("id")
    if not raw_id:
        raise CatalogError("Building record is missing its id")
    building_id = str(raw_id).strip()

    levels_by_number: Dict[int, Level] = {}
    for raw_level in entry.get("levels") or []:
        level = _parse_level(raw_level, building_id)
        levels_by_number[level.level] = level

    warns = entry.get("warns") or ()
    if isinstance(warns, str):
        warns = (warns,)

    return Building(
        id=building_id,
        levels=tuple(levels_by_number[number] for number in sorted(levels_by_number)),
        name=entry.get("name") or None,
        depot_type=entry.get("depotType", entry.get("depot_type")) or None,
        warns=tuple(str(item) for item in warns),
    )


def catalog_from_data(data: object) -> BuildingCatalog:
    """Build a catalogue from a list of records or ``{"buildings": [...]}``."""

    if isinstance(data, Mapping):
        records = data.get("buildings")
    else:
        records = data
    if not isinstance(records, list):
        raise CatalogError("Catalogue data must be a list of building records")
    return BuildingCatalog(building_from_dict(entry) for entry in records)


def load_catalog_from_path(path: str | Path) -> BuildingCatalog:
    """Load a catalogue from a JSON file or a directory of JSON files."""

    source = Path(path)
    if source.is_dir():
        records = []
        for item in sorted(source.glob("*.json")):
            with open(item, "r", encoding="utf-8") as fh:
                records.append(json.load(fh))
        catalog = catalog_from_data(records)
    else:
        with open(source, "r", encoding="utf-8") as fh:
            catalog = catalog_from_data(json.load(fh))
    logger.info("Loaded %d buildings from %s", len(catalog), source)
    return catalog


@lru_cache(maxsize=1)
def load_default_catalog() -> BuildingCatalog:
    """Return the process-wide catalogue.

    Uses ``ANTS_PLANNER_CATALOG`` when set, otherwise the bundled data.
    """

    if config.CATALOG_PATH is not None:
        return load_catalog_from_path(config.CATALOG_PATH)
    return catalog_from_data(DEFAULT_BUILDING_DATA)
