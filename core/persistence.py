"""Persistence helpers to save and load the player build state."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from . import config
from .build_state import BuildStateStore, get_build_state_store
from .building_models import BuildStateValidation


logger = logging.getLogger(__name__)


def _compress_queue(store: BuildStateStore) -> Optional[Dict[str, Any]]:
    if store.queue is None or store.target is None:
        return None
    return {
        "target": {"id": store.target[0], "level": store.target[1]},
        "queue": [{"id": item.id, "level": item.level, "step": item.step} for item in store.queue],
        "calculated_at": store.queue_calculated_at or datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "version": config.QUEUE_VERSION,
    }


def save_build_state(path: str, store: Optional[BuildStateStore] = None) -> None:
    """Serialise the build state, target and queue to ``path`` as JSON."""

    store = store or get_build_state_store()
    data: Dict[str, Any] = {
        "version": config.BUILD_STATE_VERSION,
        "build_state": dict(store.build_state),
        "target": None if store.target is None else {"id": store.target[0], "level": store.target[1]},
        "queue": _compress_queue(store),
    }
    with open(Path(path), "w", encoding="utf-8") as fh:
        json.dump(data, fh, ensure_ascii=False, indent=2)


def _parse_target(raw: object) -> Optional[Tuple[str, int]]:
    if not isinstance(raw, dict):
        return None
    try:
        return str(raw["id"]), int(raw["level"])
    except (KeyError, TypeError, ValueError):
        return None


def _parse_queue_items(raw: object) -> Optional[List[Tuple[str, int, int]]]:
    if not isinstance(raw, list):
        return None
    items: List[Tuple[str, int, int]] = []
    for entry in raw:
        try:
            items.append((str(entry["id"]), int(entry["level"]), int(entry["step"])))
        except (KeyError, TypeError, ValueError):
            return None
    return items


def load_build_state(path: str, store: Optional[BuildStateStore] = None) -> BuildStateValidation:
    """Restore previously saved state from ``path``.

    The stored queue is only kept when it was calculated for the stored
    target; otherwise it is dropped.
    """

    with open(Path(path), "r", encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError("Saved build state must be a JSON object")
    if data.get("version") != config.BUILD_STATE_VERSION:
        raise ValueError("Incompatible build state version")
    raw_state = data.get("build_state") or {}
    if not isinstance(raw_state, dict):
        raise ValueError("Saved build state must be a mapping")

    store = store or get_build_state_store()
    store.reset()
    validation = store.load_state(raw_state)

    target = _parse_target(data.get("target"))
    if target is not None:
        try:
            store.set_target(*target)
        except ValueError:
            logger.warning("Dropping saved target for unknown building %s", target[0])
            target = None

    queue_data = data.get("queue")
    if not isinstance(queue_data, dict):
        return validation

    queue_target = _parse_target(queue_data.get("target"))
    items = _parse_queue_items(queue_data.get("queue"))
    if queue_target is None or items is None or not queue_data.get("version"):
        logger.warning("Invalid queue data structure, clearing stored queue")
        return validation
    if queue_target != target:
        logger.info("Stored queue target %s does not match %s, clearing it", queue_target, target)
        return validation

    store.restore_queue(queue_target, items, queue_data.get("calculated_at"))
    return validation
