"""Resolution of the buildings every colony starts with."""
from __future__ import annotations

import logging
import weakref
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from . import config
from .building_catalog import BuildingCatalog


logger = logging.getLogger(__name__)

StarterList = Tuple[Tuple[str, int], ...]

_PREBUILT_CACHE: "weakref.WeakKeyDictionary[BuildingCatalog, Dict[StarterList, Dict[str, int]]]" = (
    weakref.WeakKeyDictionary()
)


def resolve_prebuilt_state(
    starters: Iterable[Tuple[str, int]],
    catalog: BuildingCatalog,
) -> Dict[str, int]:
    """Return the smallest build state satisfying ``starters`` transitively.

    Starter chains are assumed acyclic; the visited set only avoids walking
    the same ``(building, level)`` twice.
    """

    prebuilt: Dict[str, int] = {}
    processed: Set[Tuple[str, int]] = set()

    pending: List[Tuple[str, int]] = [(building_id, int(level)) for building_id, level in starters]
    pending.reverse()
    while pending:
        key = pending.pop()
        if key in processed:
            continue
        processed.add(key)

        building_id, level = key
        prebuilt[building_id] = max(prebuilt.get(building_id, 0), level)

        level_def = catalog.find_level(building_id, level)
        if level_def is None:
            continue
        pending.extend((req_id, int(req_level)) for req_id, req_level in level_def.requirements.items())
    return prebuilt


def get_prebuilt_state(
    catalog: BuildingCatalog,
    starters: Optional[Iterable[Tuple[str, int]]] = None,
) -> Dict[str, int]:
    """Memoised :func:`resolve_prebuilt_state` for ``catalog``.

    The returned mapping is shared; callers must copy before mutating.
    """

    starter_key: StarterList = tuple(
        (building_id, int(level))
        for building_id, level in (config.BASE_BUILDINGS if starters is None else starters)
    )
    per_catalog = _PREBUILT_CACHE.setdefault(catalog, {})
    cached = per_catalog.get(starter_key)
    if cached is None:
        cached = resolve_prebuilt_state(starter_key, catalog)
        per_catalog[starter_key] = cached
        starter_ids = {building_id for building_id, _ in starter_key}
        extra = sorted(
            f"{building_id} L{level}"
            for building_id, level in cached.items()
            if building_id not in starter_ids
        )
        logger.info(
            "Prebuilt buildings initialised: %d buildings (%d starters, extra: %s)",
            len(cached),
            len(starter_key),
            ", ".join(extra) or "none",
        )
    return cached


def merge_build_state(
    prebuilt: Mapping[str, int],
    user_state: Optional[Mapping[str, int]],
    starters: Iterable[Tuple[str, int]] = (),
) -> Dict[str, int]:
    """Combine the prebuilt overlay with a caller supplied state.

    Each building reads as the higher of both levels and starter levels act
    as floors. Non-positive caller entries are treated as not built.
    """

    effective: Dict[str, int] = dict(prebuilt)
    for building_id, level in (user_state or {}).items():
        level = int(level)
        if level <= 0:
            continue
        effective[building_id] = max(effective.get(building_id, 0), level)
    for building_id, level in starters:
        effective[building_id] = max(effective.get(building_id, 0), int(level))
    return effective
