from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from ..core.config import settings
from ..core.timeutil import now_utc
from ..domain.errors import StorageError, ValidationError
from ..domain.models import OptimalPolicy, policy_to_dict, reading_to_dict
from ..domain.policy import CheckStatus
from ..services.mqtt_listener import MqttListener
from ..services.simulator import Simulator
from ..services.state_store import StateStore
from .schemas import PolicyIn, ReadingIn, SimulateRequest

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Dependency getters ---
# main.py points these at the process-wide singletons via app.dependency_overrides.
def get_store() -> StateStore:  # overridden in main
    raise RuntimeError("State store dependency not configured")

def get_simulator() -> Simulator:  # overridden in main
    raise RuntimeError("Simulator dependency not configured")

def get_listener() -> Optional[MqttListener]:  # overridden in main
    return None


def _latest_payload(store: StateStore) -> dict:
    r = store.latest().reading
    return {
        "humedad": r.humidity,
        "temperatura": r.temperature,
        "timestamp": r.observed_at.isoformat(),
    }


@router.get("/datos_actuales")
async def datos_actuales(store: StateStore = Depends(get_store)):
    return _latest_payload(store)


@router.post("/readings", status_code=201)
async def insert_reading(payload: Any = Body(default=None), store: StateStore = Depends(get_store)):
    req = ReadingIn.model_validate(payload if isinstance(payload, dict) else {})
    try:
        result = await store.insert(req.temperature, req.humidity)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e), "field": e.field})

    body = {"reading": reading_to_dict(result.reading)}
    if not result.durable:
        body["storage"] = "memory"
    return body


@router.get("/check")
async def check(store: StateStore = Depends(get_store)):
    result = await store.check()
    if result.status is CheckStatus.NO_DATA:
        return {"status": result.status.value, "message": "No readings recorded yet"}
    return {
        "status": result.status.value,
        "issues": [i.value for i in result.issues],
        "reading": reading_to_dict(result.reading),
        "optimal": policy_to_dict(result.policy),
    }


@router.get("/readings/recent")
async def recent_readings(limit: Optional[str] = None, store: StateStore = Depends(get_store)):
    page = await store.recent_history(limit)
    body = {"readings": [reading_to_dict(r) for r in page.readings]}
    if page.degraded:
        body["storage"] = "memory"
    return body


# --- Simulation endpoints ---
@router.post("/simulate")
async def simulate(req: SimulateRequest, sim: Simulator = Depends(get_simulator)):
    if req.enable:
        cfg = await sim.start(req.pattern, req.interval)
        return {"ok": True, "msg": "Simulation started", "config": cfg.to_dict()}
    cfg = await sim.stop()
    return {"ok": True, "msg": "Simulation stopped", "config": cfg.to_dict()}


@router.get("/simulate/status")
async def simulate_status(
    sim: Simulator = Depends(get_simulator),
    store: StateStore = Depends(get_store),
):
    latest = _latest_payload(store)
    latest["source"] = store.latest().reading.source.value
    return {"enabled": sim.config.enabled, "config": sim.config.to_dict(), "latest_data": latest}


# --- Optimal range ---
@router.get("/optimal")
async def get_optimal(store: StateStore = Depends(get_store)):
    policy, stored = await store.resolve_policy()
    return {"optimal": policy_to_dict(policy), "source": "stored" if stored else "default"}


@router.put("/optimal")
async def put_optimal(req: PolicyIn, store: StateStore = Depends(get_store)):
    policy = OptimalPolicy(**req.model_dump())
    try:
        await store.replace_policy(policy)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e), "field": e.field})
    except StorageError as e:
        return JSONResponse(status_code=503, content={"error": str(e), "field": None})
    return {"ok": True, "optimal": policy_to_dict(policy)}


@router.get("/health")
async def health(
    store: StateStore = Depends(get_store),
    sim: Simulator = Depends(get_simulator),
    listener: Optional[MqttListener] = Depends(get_listener),
):
    latest = store.latest()
    return {
        "app": settings.app_name,
        "now_utc": now_utc().isoformat(),
        "mqtt": listener.status() if listener else {"enabled": False},
        "storage": store.status(),
        "simulator": sim.config.to_dict(),
        "latest_received_at": latest.received_at.isoformat(),
    }
