from __future__ import annotations
import asyncio
import logging
from collections import deque
from threading import Lock
from typing import Any, Optional

from ..core.config import settings
from ..core.timeutil import now_utc
from ..domain.errors import StorageError
from ..domain.interfaces import Repository
from ..domain.models import (
    HistoryPage,
    InsertResult,
    LatestState,
    OptimalPolicy,
    Reading,
    ReadingSource,
    parse_measurement,
)
from ..domain.policy import CheckResult, CheckStatus, default_policy, evaluate


logger = logging.getLogger(__name__)


def placeholder_reading() -> Reading:
    """Shown until the first real reading arrives so the dashboard never renders empty."""
    return Reading(temperature=22.0, humidity=81.5, observed_at=now_utc(), source=ReadingSource.SIMULATOR)


def clamp_limit(raw: Any) -> int:
    """Normalise a requested history length: default when missing/non-numeric, clamped to [1, max]."""
    try:
        n = int(raw)
    except (TypeError, ValueError):
        return settings.history_default_limit
    return max(1, min(n, settings.history_max_limit))


class StateStore:
    """Owns the latest reading, durable history and the degraded-mode ring buffer.

    In-memory state is swapped under a lock *before* the durable write is
    awaited, so readers never wait on SQLite and never see half an update.
    Every repository call is allowed to fail; writes then land in the ring
    buffer and reads fall back to it.
    """

    def __init__(self, repo: Repository, fallback_capacity: Optional[int] = None) -> None:
        self._repo = repo
        self._lock = Lock()
        self._latest = LatestState(reading=placeholder_reading(), received_at=now_utc())
        self._fallback: deque[Reading] = deque(maxlen=fallback_capacity or settings.fallback_capacity)
        self._durable_ok = True
        self._pending: set[asyncio.Future] = set()

    # --- writes ---

    async def record_reading(self, reading: Reading) -> Optional[Reading]:
        """Publish ``reading`` as latest and persist it; returns the stored row or None if memory-only.

        The durable write runs as its own task. Cancelling the caller (e.g. the
        simulator being stopped mid-tick) does not cancel the write, so the
        reading still ends up in SQLite or in the fallback buffer.
        """
        with self._lock:
            self._latest = LatestState(reading=reading, received_at=now_utc())

        task = asyncio.ensure_future(self._persist(reading))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return await asyncio.shield(task)

    async def flush(self) -> None:
        """Wait for durable writes whose callers were cancelled."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    async def insert(self, temperature: Any, humidity: Any) -> InsertResult:
        t = parse_measurement(temperature, "temperature")
        h = parse_measurement(humidity, "humidity")
        reading = Reading(temperature=t, humidity=h, observed_at=now_utc(), source=ReadingSource.API)

        stored = await self.record_reading(reading)
        if stored is None:
            return InsertResult(reading=reading, durable=False)
        return InsertResult(reading=stored, durable=True)

    # --- reads ---

    def latest(self) -> LatestState:
        with self._lock:
            return self._latest

    async def recent_history(self, limit: Any = None) -> HistoryPage:
        n = clamp_limit(limit)
        try:
            rows = await self._repo.recent_readings(n)
        except Exception as e:
            self._mark_durable(False, e)
            return HistoryPage(readings=self._fallback_newest(n), degraded=True)

        self._mark_durable(True)
        return HistoryPage(readings=rows, degraded=False)

    async def newest_recorded(self) -> Optional[Reading]:
        """Most recent reading that made it into history (durable first, then fallback)."""
        try:
            rows = await self._repo.recent_readings(1)
        except Exception as e:
            self._mark_durable(False, e)
            rows = []
        if rows:
            return rows[0]
        fallback = self._fallback_newest(1)
        return fallback[0] if fallback else None

    async def resolve_policy(self) -> tuple[OptimalPolicy, bool]:
        """Active policy and whether it came from the store (False means default)."""
        try:
            stored = await self._repo.get_policy()
        except Exception as e:
            self._mark_durable(False, e)
            stored = None
        if stored is None:
            return default_policy(), False
        return stored, True

    async def replace_policy(self, policy: OptimalPolicy) -> OptimalPolicy:
        policy.validate()
        try:
            await self._repo.set_policy(policy)
        except Exception as e:
            self._mark_durable(False, e)
            raise StorageError("Could not persist optimal values") from e
        logger.info("Optimal policy replaced: %s", policy)
        return policy

    async def check(self) -> CheckResult:
        reading = await self.newest_recorded()
        if reading is None:
            return CheckResult(status=CheckStatus.NO_DATA)

        policy, _ = await self.resolve_policy()
        ev = evaluate(reading, policy)
        return CheckResult(status=ev.status, issues=ev.issues, reading=reading, policy=policy)

    def status(self) -> dict:
        with self._lock:
            size = len(self._fallback)
        return {
            "durable_ok": self._durable_ok,
            "fallback_size": size,
            "fallback_capacity": self._fallback.maxlen,
        }

    # --- internals ---

    async def _persist(self, reading: Reading) -> Optional[Reading]:
        try:
            stored = await self._repo.insert_reading(reading)
        except Exception as e:
            with self._lock:
                self._fallback.append(reading)
            self._mark_durable(False, e)
            return None

        self._mark_durable(True)
        return stored

    def _fallback_newest(self, n: int) -> list[Reading]:
        with self._lock:
            snapshot = list(self._fallback)
        snapshot.reverse()
        # Concurrent failed writes can land out of order
        snapshot.sort(key=lambda r: r.observed_at, reverse=True)
        return snapshot[:n]

    def _mark_durable(self, ok: bool, error: Optional[BaseException] = None) -> None:
        # Log transitions only; a dead store would otherwise log every tick
        if ok and not self._durable_ok:
            logger.info("Durable store reachable again; fallback buffer holds %d readings", len(self._fallback))
        elif not ok and self._durable_ok:
            logger.warning("Durable store unavailable, degrading to in-memory buffer: %s", error)
        elif not ok:
            logger.debug("Durable store still unavailable: %s", error)
        self._durable_ok = ok
