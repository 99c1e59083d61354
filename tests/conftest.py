"""Shared fixtures for the orchid monitor test suite.

Provides SQLite repositories (a working one in a temp dir and one pointing at
a path that cannot be opened), state stores built on them, a seeded
simulator and an HTTP client wired the same way ``main.py`` wires the app.
"""

from __future__ import annotations

import asyncio
import sqlite3
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import orchid_monitor.api.routes as routes_module
from orchid_monitor.domain.models import Reading, ReadingSource
from orchid_monitor.services.simulator import Simulator
from orchid_monitor.services.state_store import StateStore
from orchid_monitor.storage.sqlite_repo import SQLiteRepository


# ---------------------------------------------------------------------------
# Storage fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "orchid.db"


@pytest.fixture()
def repo(db_path: Path) -> SQLiteRepository:
    """Working repository; the schema is created lazily on first use."""
    return SQLiteRepository(str(db_path))


@pytest.fixture()
def unreachable_repo(tmp_path: Path) -> SQLiteRepository:
    """Repository whose parent directory does not exist, so every call fails."""
    return SQLiteRepository(str(tmp_path / "missing-volume" / "orchid.db"))


class GatedRepository:
    """In-memory repository whose writes block until ``gate`` is set."""

    def __init__(self) -> None:
        self.gate = asyncio.Event()
        self.fail = False
        self.rows: list[Reading] = []

    async def insert_reading(self, r: Reading) -> Reading:
        await self.gate.wait()
        if self.fail:
            raise sqlite3.OperationalError("disk I/O error")
        stored = replace(r, id=len(self.rows) + 1)
        self.rows.append(stored)
        return stored

    async def recent_readings(self, limit: int) -> list[Reading]:
        return list(reversed(self.rows))[:limit]

    async def get_policy(self):
        return None


@pytest.fixture()
def gated_repo() -> GatedRepository:
    return GatedRepository()


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store(repo: SQLiteRepository) -> StateStore:
    return StateStore(repo, fallback_capacity=50)


@pytest.fixture()
def degraded_store(unreachable_repo: SQLiteRepository) -> StateStore:
    return StateStore(unreachable_repo, fallback_capacity=5)


@pytest.fixture()
def simulator(store: StateStore) -> Simulator:
    return Simulator(store, seed=1234)


@pytest.fixture()
def make_reading():
    """Factory for readings with increasing timestamps."""
    base = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)

    def _make(
        temperature: float = 21.0,
        humidity: float = 80.0,
        minutes: int = 0,
        source: ReadingSource = ReadingSource.SENSOR,
    ) -> Reading:
        return Reading(
            temperature=temperature,
            humidity=humidity,
            observed_at=base + timedelta(minutes=minutes),
            source=source,
        )

    return _make


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


def _build_app(store: StateStore, simulator: Simulator) -> FastAPI:
    app = FastAPI()
    app.dependency_overrides[routes_module.get_store] = lambda: store
    app.dependency_overrides[routes_module.get_simulator] = lambda: simulator
    app.include_router(routes_module.router, prefix="/api")
    return app


@pytest.fixture()
def client(store: StateStore, simulator: Simulator):
    with TestClient(_build_app(store, simulator)) as c:
        yield c


@pytest.fixture()
def degraded_client(degraded_store: StateStore):
    sim = Simulator(degraded_store, seed=1234)
    with TestClient(_build_app(degraded_store, sim)) as c:
        yield c
