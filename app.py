import logging
import time
import uuid
from datetime import datetime, timezone

from flask import Flask, jsonify, request

from api import ui_bridge

app = Flask(__name__)

logger = logging.getLogger(__name__)


def _generate_request_metadata() -> tuple[str, str]:
    request_id = str(uuid.uuid4())
    server_time = datetime.now(timezone.utc).isoformat()
    return request_id, server_time


def _enrich_payload(payload: dict, request_id: str, server_time: str) -> dict:
    body = dict(payload or {})
    body.pop("http_status", None)
    body["request_id"] = request_id
    body["server_time"] = server_time
    return body


def _json_response(payload: dict, status: int | None = None):
    request_id, server_time = _generate_request_metadata()
    if status is None:
        status = int(payload.get("http_status") or (200 if payload.get("ok", False) else 400))
    body = _enrich_payload(payload, request_id, server_time)
    response = jsonify(body)
    response.status_code = status
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"
    return response


@app.get("/api/buildings")
def api_buildings():
    """List every building in the catalogue."""

    return _json_response(ui_bridge.list_buildings())


@app.get("/api/buildings/<building_id>")
def api_building(building_id: str):
    """Return catalogue details for one building."""

    return _json_response(ui_bridge.get_building(building_id))


@app.post("/api/plan")
def api_plan():
    """Calculate the ordered build plan for a target building level."""

    payload = request.get_json(silent=True) or {}
    target = payload.get("target") or payload.get("id")
    level = payload.get("level", 1)
    start = time.perf_counter()
    response = ui_bridge.plan_build(target, level, payload.get("state"))
    logger.info(
        "Plan handler target=%s level=%s ok=%s steps=%s duration_ms=%.2f",
        target,
        level,
        response.get("ok"),
        len(response.get("requirements", [])),
        (time.perf_counter() - start) * 1000.0,
    )
    return _json_response(response)


@app.post("/api/build-state/validate")
def api_validate_state():
    """Check a build state against the catalogue."""

    payload = request.get_json(silent=True) or {}
    return _json_response(ui_bridge.validate_state(payload.get("state", payload)))


@app.get("/api/prebuilt")
def api_prebuilt():
    """Expose the buildings every colony starts with."""

    return _json_response(ui_bridge.get_prebuilt())


@app.get("/api/cache")
def api_cache_metrics():
    return _json_response(ui_bridge.cache_metrics())


@app.post("/api/cache/clear")
def api_cache_clear():
    return _json_response(ui_bridge.clear_cache())


@app.get("/api/state")
def api_state():
    """Return the stored build state, target and queue."""

    return _json_response(ui_bridge.get_state())


@app.post("/api/state/buildings/<building_id>")
def api_set_building_level(building_id: str):
    payload = request.get_json(silent=True) or {}
    return _json_response(ui_bridge.set_building_level(building_id, payload.get("level")))


@app.post("/api/state/reset")
def api_reset_state():
    return _json_response(ui_bridge.reset_state())


@app.post("/api/queue")
def api_calculate_queue():
    """Calculate a queue from the stored build state and keep it."""

    payload = request.get_json(silent=True) or {}
    target = payload.get("target") or payload.get("id")
    return _json_response(ui_bridge.calculate_queue(target, payload.get("level", 1)))


@app.delete("/api/queue")
def api_clear_queue():
    return _json_response(ui_bridge.clear_queue())


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.run(debug=True)
