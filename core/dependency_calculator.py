"""Public entry points of the build dependency planner.

Every function works over an injected :class:`BuildingCatalog` and
:class:`DependencyCache`; the process-wide defaults are used when none are
passed.
"""
from __future__ import annotations

import logging
import threading
import time
import weakref
from collections import Counter
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from . import config
from .base_state import get_prebuilt_state, merge_build_state
from .build_order import order_requirements, validate_build_order
from .building_catalog import BuildingCatalog, load_default_catalog
from .building_models import BuildPlan, BuildRequirement, BuildStateValidation
from .dependency_cache import DependencyCache
from .dependency_expander import expand_dependencies
from .diagnostics import Notifier, emit


logger = logging.getLogger(__name__)


class BuildPlanError(ValueError):
    """Raised when a plan request cannot be answered at all."""

    code = "invalid_request"


class UnknownBuildingError(BuildPlanError):
    """Raised when the target building is not in the catalogue."""

    code = "building_not_found"

    def __init__(self, building_id: str):
        self.building_id = building_id
        super().__init__(f"Unknown building: {building_id}")


class InvalidTargetLevelError(BuildPlanError):
    """Raised when the target level is outside the building's range."""

    code = "invalid_level"

    def __init__(self, building_id: str, level: object, max_level: int):
        self.building_id = building_id
        self.level = level
        self.max_level = max_level
        super().__init__(f"Level {level} is not valid for {building_id} (1..{max_level})")


# One default cache per catalogue so keys from different catalogues never mix.
_CACHES: "weakref.WeakKeyDictionary[BuildingCatalog, DependencyCache[BuildPlan]]" = weakref.WeakKeyDictionary()
_lock = threading.RLock()


def _catalog(catalog: Optional[BuildingCatalog]) -> BuildingCatalog:
    return load_default_catalog() if catalog is None else catalog


def get_default_cache(catalog: Optional[BuildingCatalog] = None) -> DependencyCache[BuildPlan]:
    catalog = _catalog(catalog)
    with _lock:
        cache = _CACHES.get(catalog)
        if cache is None:
            cache = DependencyCache()
            _CACHES[catalog] = cache
        return cache


def _resolve_target(catalog: BuildingCatalog, target_id: str, target_level: object) -> Tuple[str, int]:
    building = catalog.find_building(target_id)
    if building is None:
        raise UnknownBuildingError(target_id)
    try:
        level = config.parse_level(target_level)
    except (TypeError, ValueError) as exc:
        raise InvalidTargetLevelError(target_id, target_level, building.max_level) from exc
    if level < 1 or level > building.max_level:
        raise InvalidTargetLevelError(target_id, level, building.max_level)
    return building.id, level


def effective_build_state(
    user_state: Optional[Mapping[str, int]] = None,
    *,
    catalog: Optional[BuildingCatalog] = None,
    starters: Optional[Iterable[Tuple[str, int]]] = None,
) -> Dict[str, int]:
    """Return ``user_state`` merged with the prebuilt overlay."""

    catalog = _catalog(catalog)
    starter_list = tuple(config.BASE_BUILDINGS if starters is None else starters)
    prebuilt = get_prebuilt_state(catalog, starter_list)
    return merge_build_state(prebuilt, user_state, starter_list)


def compute_build_plan(
    target_id: str,
    target_level: int,
    user_state: Optional[Mapping[str, int]] = None,
    *,
    catalog: Optional[BuildingCatalog] = None,
    cache: Optional[DependencyCache[BuildPlan]] = None,
    starters: Optional[Iterable[Tuple[str, int]]] = None,
    notifier: Notifier = None,
) -> BuildPlan:
    """Compute (or fetch) the ordered build plan for ``target_id``.

    Raises :class:`BuildPlanError` for an unknown target or level. Catalogue
    faults and oversized results only produce diagnostics; oversized results
    are cut to ``config.MAX_DEPENDENCIES`` entries.
    """

    catalog = _catalog(catalog)
    cache = get_default_cache(catalog) if cache is None else cache
    target_id, target_level = _resolve_target(catalog, target_id, target_level)

    started = time.perf_counter()
    state = effective_build_state(user_state, catalog=catalog, starters=starters)

    with _lock:
        cache_key = cache.make_key(target_id, target_level, state)
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        found = expand_dependencies(target_id, target_level, state, catalog, notifier)
        sort_started = time.perf_counter()
        ordered = order_requirements(found.values(), catalog, notifier, target_id=target_id)
        sort_ms = (time.perf_counter() - sort_started) * 1000.0

        if config.VALIDATE_BUILD_ORDER:
            validate_build_order(ordered, catalog, notifier)

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        _report_performance(target_id, target_level, ordered, elapsed_ms, sort_ms, notifier)

        truncated = False
        if elapsed_ms > config.CALCULATION_TIMEOUT_SEC * 1000.0:
            emit(
                logger,
                notifier,
                "calculation_timeout",
                "Calculation timeout: %.1fms exceeded %.0fms limit for %s L%d",
                elapsed_ms,
                config.CALCULATION_TIMEOUT_SEC * 1000.0,
                target_id,
                target_level,
                severity=logging.ERROR,
                elapsed_ms=elapsed_ms,
            )
            truncated = len(ordered) > config.MAX_DEPENDENCIES
        elif len(ordered) > config.MAX_DEPENDENCIES:
            emit(
                logger,
                notifier,
                "result_truncated",
                "Large dependency set (%d). Limiting to %d for performance.",
                len(ordered),
                config.MAX_DEPENDENCIES,
                total=len(ordered),
                limit=config.MAX_DEPENDENCIES,
            )
            truncated = True
        if truncated:
            ordered = ordered[: config.MAX_DEPENDENCIES]

        plan = BuildPlan(
            target_id=target_id,
            target_level=target_level,
            requirements=ordered,
            truncated=truncated,
            elapsed_ms=elapsed_ms,
            cache_key=cache_key,
        )
        cache.put(cache_key, plan)
        return plan


def calculate_build_dependencies(
    target_id: str,
    target_level: int,
    user_state: Optional[Mapping[str, int]] = None,
    *,
    catalog: Optional[BuildingCatalog] = None,
    cache: Optional[DependencyCache[BuildPlan]] = None,
    starters: Optional[Iterable[Tuple[str, int]]] = None,
    notifier: Notifier = None,
) -> Tuple[BuildRequirement, ...]:
    """Return the ordered requirements needed to reach ``target_level``."""

    plan = compute_build_plan(
        target_id,
        target_level,
        user_state,
        catalog=catalog,
        cache=cache,
        starters=starters,
        notifier=notifier,
    )
    return plan.requirements


def _report_performance(
    target_id: str,
    target_level: int,
    ordered: Sequence[BuildRequirement],
    elapsed_ms: float,
    sort_ms: float,
    notifier: Notifier,
) -> None:
    total = len(ordered)
    if elapsed_ms > config.SLOW_CALCULATION_MS:
        emit(
            logger,
            notifier,
            "slow_calculation",
            "Slow dependency calculation: %.1fms for %s L%d (%d deps)",
            elapsed_ms,
            target_id,
            target_level,
            total,
            elapsed_ms=elapsed_ms,
            sort_ms=sort_ms,
        )
    elif total > 50:
        logger.debug(
            "Performance: %s L%d - %.1fms total (%.1fms sort) - %d deps",
            target_id,
            target_level,
            elapsed_ms,
            sort_ms,
            total,
        )

    if total > 100:
        distribution = Counter(requirement.depth_cache for requirement in ordered)
        logger.debug(
            "Depth analysis: max depth %d, distribution: %s",
            max(distribution),
            ", ".join(f"D{depth}:{count}" for depth, count in sorted(distribution.items())),
        )


# ---------------------------------------------------------------------------
# Build state helpers


def validate_build_state(
    state: Mapping[str, object],
    *,
    catalog: Optional[BuildingCatalog] = None,
) -> BuildStateValidation:
    """Check ``state`` against the catalogue without modifying anything."""

    catalog = _catalog(catalog)
    errors: List[str] = []
    for building_id, level in state.items():
        building = catalog.find_building(building_id)
        if building is None:
            errors.append(f"Invalid building ID: {building_id}")
            continue
        if isinstance(level, bool) or not isinstance(level, int):
            errors.append(f"Building {building_id} has a non-integer level: {level!r}")
            continue
        if level > building.max_level:
            errors.append(f"Building {building_id} cannot exceed level {building.max_level} (current: {level})")
        if level < 0:
            errors.append(f"Building {building_id} cannot have negative level")
    return BuildStateValidation(is_valid=not errors, errors=errors)


def get_prebuilt_dependencies(*, catalog: Optional[BuildingCatalog] = None) -> Dict[str, int]:
    """Return a copy of the state implied by the starter buildings."""

    catalog = _catalog(catalog)
    return dict(get_prebuilt_state(catalog))


def get_base_buildings_list() -> List[Tuple[str, int]]:
    return list(config.BASE_BUILDINGS)


def get_building_info(building_id: str, *, catalog: Optional[BuildingCatalog] = None) -> Optional[Dict[str, object]]:
    catalog = _catalog(catalog)
    return catalog.building_info(building_id)


def summarize_progress(requirements: Sequence[BuildRequirement]) -> Dict[str, int]:
    """Count built and remaining entries of a plan."""

    total = len(requirements)
    built = sum(1 for requirement in requirements if requirement.is_built)
    percent = round(built / total * 100) if total else 0
    return {"total": total, "built": built, "remaining": total - built, "percent": percent}


# ---------------------------------------------------------------------------
# Cache management


def clear_dependency_cache(*, cache: Optional[DependencyCache[BuildPlan]] = None) -> None:
    """Reset ``cache``, or every default cache when none is given."""

    with _lock:
        if cache is not None:
            cache.clear()
            return
        for default_cache in list(_CACHES.values()):
            default_cache.clear()


def get_cache_metrics(
    *,
    cache: Optional[DependencyCache[BuildPlan]] = None,
    catalog: Optional[BuildingCatalog] = None,
) -> Dict[str, float]:
    return (get_default_cache(catalog) if cache is None else cache).metrics()


def log_performance_report(
    *,
    cache: Optional[DependencyCache[BuildPlan]] = None,
    catalog: Optional[BuildingCatalog] = None,
) -> None:
    metrics = get_cache_metrics(cache=cache, catalog=catalog)
    logger.info(
        "Dependency calculator performance: hit rate %.1f%%, size %d entries, "
        "key generation %.2fms, avg key size %.0f chars, %d cache operations",
        metrics["hit_rate"] * 100,
        metrics["cache_size"],
        metrics["key_generation_ms"],
        metrics["average_key_size"],
        metrics["cache_hits"] + metrics["cache_misses"],
    )
