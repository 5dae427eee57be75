"""Public API between the UI layer and the planner backend."""
from __future__ import annotations

from typing import Dict, Mapping, Optional

from core import config
from core.build_state import get_build_state_store
from core.dependency_calculator import (
    BuildPlanError,
    UnknownBuildingError,
    clear_dependency_cache,
    compute_build_plan,
    get_base_buildings_list,
    get_building_info,
    get_cache_metrics,
    get_prebuilt_dependencies,
    summarize_progress,
    validate_build_state,
)
from core.building_catalog import load_default_catalog
from core.persistence import load_build_state, save_build_state
from core.diagnostics import DiagnosticCollector


def _success_response(**payload: object) -> Dict[str, object]:
    response: Dict[str, object] = {"ok": True}
    response.update(payload)
    return response


def _error_response(
    code: str, message: str, *, http_status: int | None = None
) -> Dict[str, object]:
    payload: Dict[str, object] = {
        "ok": False,
        "error_code": code,
        "error_message": message,
        "error": message,
    }
    if http_status is not None:
        payload["http_status"] = int(http_status)
    return payload


def _plan_error_response(exc: BuildPlanError) -> Dict[str, object]:
    status = 404 if exc.code == "building_not_found" else 400
    error = _error_response(exc.code, str(exc), http_status=status)
    error["requirements"] = []
    return error


def _normalise_key(value: object) -> Optional[str]:
    try:
        return config.normalise_building_key(str(value)) if value is not None else None
    except ValueError:
        return None


def _coerce_state(raw: object) -> Optional[Dict[str, int]]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        return None
    state: Dict[str, int] = {}
    for key, value in raw.items():
        try:
            state[str(key)] = config.parse_level(value)
        except (TypeError, ValueError):
            return None
    return state


# ---------------------------------------------------------------------------
# Catalogue


def list_buildings() -> Dict[str, object]:
    catalog = load_default_catalog()
    return _success_response(buildings=[catalog.building_info(building_id) for building_id in catalog.ids()])


def get_building(building_id: str) -> Dict[str, object]:
    key = _normalise_key(building_id)
    info = get_building_info(key) if key else None
    if info is None:
        return _error_response("building_not_found", f"Unknown building: {building_id}", http_status=404)
    return _success_response(building=info)


def get_prebuilt() -> Dict[str, object]:
    return _success_response(
        prebuilt=get_prebuilt_dependencies(),
        base_buildings=[{"id": building_id, "level": level} for building_id, level in get_base_buildings_list()],
    )


# ---------------------------------------------------------------------------
# Planning


def plan_build(target: object, level: object, state: object = None) -> Dict[str, object]:
    """Return the ordered build plan for ``target`` at ``level``."""

    user_state = _coerce_state(state)
    if user_state is None:
        error = _error_response("invalid_state", "Build state must map building ids to integer levels", http_status=400)
        error["requirements"] = []
        return error

    key = _normalise_key(target)
    if key is None:
        error = _error_response("building_not_found", f"Unknown building: {target}", http_status=404)
        error["requirements"] = []
        return error

    collector = DiagnosticCollector()
    try:
        plan = compute_build_plan(key, level, user_state, notifier=collector)
    except BuildPlanError as exc:
        return _plan_error_response(exc)

    return _success_response(
        target={"id": plan.target_id, "level": plan.target_level},
        requirements=[requirement.to_dict() for requirement in plan.requirements],
        progress=summarize_progress(plan.requirements),
        truncated=plan.truncated,
        elapsed_ms=round(plan.elapsed_ms, 3),
        diagnostics=collector.snapshot(),
    )


def validate_state(state: object) -> Dict[str, object]:
    if not isinstance(state, Mapping):
        return _error_response("invalid_state", "Build state must be an object", http_status=400)
    validation = validate_build_state(state)
    return _success_response(**validation.to_dict())


def cache_metrics() -> Dict[str, object]:
    return _success_response(metrics=get_cache_metrics())


def clear_cache() -> Dict[str, object]:
    clear_dependency_cache()
    return _success_response(metrics=get_cache_metrics())


# ---------------------------------------------------------------------------
# Stored build state


def get_state() -> Dict[str, object]:
    return _success_response(**get_build_state_store().snapshot())


def set_building_level(building_id: str, level: object) -> Dict[str, object]:
    store = get_build_state_store()
    try:
        store.set_building_level(building_id, config.parse_level(level))
    except UnknownBuildingError as exc:
        return _error_response(exc.code, str(exc), http_status=404)
    except (TypeError, ValueError) as exc:
        return _error_response("invalid_building_level", str(exc), http_status=400)
    return _success_response(**store.snapshot())


def reset_state() -> Dict[str, object]:
    store = get_build_state_store()
    store.reset()
    return _success_response(**store.snapshot())


def calculate_queue(target: object, level: object) -> Dict[str, object]:
    store = get_build_state_store()
    key = _normalise_key(target)
    if key is None:
        error = _error_response("building_not_found", f"Unknown building: {target}", http_status=404)
        error["requirements"] = []
        return error
    try:
        store.calculate_and_store_queue(key, level)
    except BuildPlanError as exc:
        return _plan_error_response(exc)
    return _success_response(**store.snapshot())


def clear_queue() -> Dict[str, object]:
    store = get_build_state_store()
    store.clear_queue()
    return _success_response(**store.snapshot())


# ---------------------------------------------------------------------------
# Persistence wrappers


def save_state(path: str) -> Dict[str, object]:
    try:
        save_build_state(path)
    except OSError as exc:
        return _error_response("save_failed", str(exc), http_status=500)
    return _success_response(path=str(path))


def load_state(path: str) -> Dict[str, object]:
    """Restore the stored build state; invalid levels fall back to the base state."""

    try:
        validation = load_build_state(path)
    except OSError as exc:
        return _error_response("load_failed", str(exc), http_status=404)
    except ValueError as exc:
        return _error_response("invalid_save", str(exc), http_status=400)
    payload = get_build_state_store().snapshot()
    payload.update(validation.to_dict())
    return _success_response(**payload)
