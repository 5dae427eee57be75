"""Centralised configuration for the colony build planner."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Tuple

# ---------------------------------------------------------------------------
# Building identifiers and normalisation helpers

QUEEN = "queen"
PLANT_DEPOT = "plant_depot"
WET_SOIL_DEPOT = "wet_soil_depot"
FUNGUS_DEPOT = "fungus_depot"
SAND_DEPOT = "sand_depot"
MEAT_DEPOT = "meat_depot"
PLANT_FLORA = "plant_flora"
WET_SOIL_PILE = "wet_soil_pile"
LEAFCUTTER = "leafcutter"
SAND_PILE = "sand_pile"
WOODLOUSE_COLONY = "woodlouse_colony"


def normalise_building_key(value: str) -> str:
    if not isinstance(value, str):
        raise ValueError("Building identifier must be a string")
    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    if not key:
        raise ValueError("Building identifier is empty")
    return key


def parse_level(value: object) -> int:
    """Return ``value`` as a whole level number.

    Accepts ints, integral floats and numeric strings. Booleans and fractional
    values raise ``ValueError``.
    """

    if isinstance(value, bool):
        raise ValueError(f"Level must be a whole number, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"Level must be a whole number, got {value!r}")
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value.strip())
    raise TypeError(f"Level must be a number, got {type(value).__name__}")


# ---------------------------------------------------------------------------
# Starter buildings

# Buildings every colony owns at game start. Their transitive prerequisites
# are resolved once and treated as already built.
BASE_BUILDINGS: Tuple[Tuple[str, int], ...] = (
    (QUEEN, 1),
    (PLANT_DEPOT, 1),
    (WET_SOIL_DEPOT, 1),
    (FUNGUS_DEPOT, 1),
    (SAND_DEPOT, 1),
    (MEAT_DEPOT, 1),
    # Resource production buildings needed for depots
    (PLANT_FLORA, 1),
    (WET_SOIL_PILE, 1),
    (LEAFCUTTER, 1),
    (SAND_PILE, 1),
    (WOODLOUSE_COLONY, 1),
)

# ---------------------------------------------------------------------------
# Calculation limits

MAX_DEPENDENCIES: int = 500
CALCULATION_TIMEOUT_SEC: float = 5.0
SLOW_CALCULATION_MS: float = 100.0

# Result cache sizing
CACHE_MAX_SIZE: int = 100
CACHE_CLEANUP_THRESHOLD: int = 120
CACHE_EVICTION_RATIO: float = 0.2

# Persistence
BUILD_STATE_VERSION = 1
QUEUE_VERSION = "1.0"

# ---------------------------------------------------------------------------
# Environment overrides


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes")


def _env_path(name: str) -> Optional[Path]:
    raw = os.environ.get(name, "").strip()
    return Path(raw) if raw else None


CATALOG_PATH: Optional[Path] = _env_path("ANTS_PLANNER_CATALOG")

# Development-time build order verification.
VALIDATE_BUILD_ORDER: bool = _env_flag("ANTS_PLANNER_VALIDATE_ORDER")
