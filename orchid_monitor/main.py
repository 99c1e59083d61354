from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .core.config import settings
from .core.log import configure_logging

from .api.routes import router as api_router
import orchid_monitor.api.routes as routes_module

from .services.mqtt_listener import MqttListener
from .services.simulator import Simulator
from .services.state_store import StateStore
from .storage.sqlite_repo import SQLiteRepository


logger = logging.getLogger(__name__)


# --- Singletons ---
repo = SQLiteRepository(settings.sqlite_path)
store = StateStore(repo)
simulator = Simulator(store, seed=settings.sim_seed)
listener: MqttListener | None = None


def get_store() -> StateStore:
    return store


def get_simulator() -> Simulator:
    return simulator


def get_listener() -> MqttListener | None:
    return listener


def _loop_exception_handler(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    # Faults in background tasks/callbacks are logged; the service keeps running
    exc = context.get("exception")
    logger.error("Unhandled error in event loop: %s", context.get("message"), exc_info=exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("Starting %s (db=%s)", settings.app_name, settings.sqlite_path)

    loop = asyncio.get_running_loop()
    loop.set_exception_handler(_loop_exception_handler)

    try:
        await repo.init()
    except Exception as e:
        logger.error("SQLite init failed, readings will be kept in memory until it recovers: %s", e)

    global listener
    if settings.mqtt_enabled:
        listener = MqttListener(store, settings)
        listener.start(loop)
    else:
        logger.info("MQTT disabled by configuration")

    if settings.sim_autostart:
        await simulator.start(settings.sim_pattern, settings.sim_interval_ms)

    try:
        yield
    finally:
        await simulator.stop()
        await store.flush()

        if listener is not None:
            listener.stop()
            listener = None

        logger.info("Shutdown complete")


app = FastAPI(title=settings.app_name, lifespan=lifespan)


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Make the dependency functions in routes resolve to the real ones
app.dependency_overrides[routes_module.get_store] = get_store
app.dependency_overrides[routes_module.get_simulator] = get_simulator
app.dependency_overrides[routes_module.get_listener] = get_listener

app.include_router(api_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=3000)
