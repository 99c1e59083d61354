from __future__ import annotations
import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..core.timeutil import now_utc
from ..domain.models import Reading, ReadingSource
from .state_store import StateStore


logger = logging.getLogger(__name__)

MIN_INTERVAL_MS = 100
DEFAULT_INTERVAL_MS = 5000


class ReadingMode(str, Enum):
    OPTIMAL = "optimal"
    BELOW_RANGE = "below_range"
    ABOVE_RANGE = "above_range"
    MIXED_RANDOM = "mixed_random"


class SimulationPattern(str, Enum):
    ALTERNATE = "alternate"
    RANDOM = "random"
    ALWAYS_OPTIMAL = "always_optimal"
    ALWAYS_ALERT = "always_alert"

    @classmethod
    def parse(cls, value: Any) -> "SimulationPattern":
        if isinstance(value, cls):
            return value
        if value is None or value == "":  # omitted, not unknown
            return cls.ALTERNATE
        try:
            return cls(str(value))
        except ValueError:
            # Unknown names run as "random" rather than being rejected
            logger.warning("Unknown simulation pattern %r, using 'random'", value)
            return cls.RANDOM


# (humidity band, temperature band)
BANDS: dict[ReadingMode, tuple[tuple[float, float], tuple[float, float]]] = {
    ReadingMode.OPTIMAL: ((77.0, 83.0), (19.0, 23.0)),
    ReadingMode.BELOW_RANGE: ((30.0, 60.0), (10.0, 17.0)),
    ReadingMode.ABOVE_RANGE: ((86.0, 98.0), (25.0, 35.0)),
}


def generate_values(mode: ReadingMode, rng: random.Random) -> tuple[float, float]:
    """Return (temperature, humidity) drawn uniformly from the band of ``mode``."""
    if mode is ReadingMode.MIXED_RANDOM:
        if rng.random() < 0.5:
            mode = ReadingMode.OPTIMAL
        else:
            mode = out_of_range_mode(rng)

    (h_lo, h_hi), (t_lo, t_hi) = BANDS[mode]
    humidity = round(rng.uniform(h_lo, h_hi), 1)
    temperature = round(rng.uniform(t_lo, t_hi), 1)
    return temperature, humidity


def out_of_range_mode(rng: random.Random) -> ReadingMode:
    return ReadingMode.BELOW_RANGE if rng.random() < 0.5 else ReadingMode.ABOVE_RANGE


@dataclass(frozen=True)
class SimulationConfig:
    enabled: bool = False
    pattern: SimulationPattern = SimulationPattern.ALTERNATE
    interval_ms: int = DEFAULT_INTERVAL_MS

    def to_dict(self) -> dict:
        return {"enabled": self.enabled, "pattern": self.pattern.value, "interval": self.interval_ms}


class Simulator:
    """Feeds synthetic readings into the store on a timer.

    At most one loop task exists. ``start`` cancels and awaits the previous
    task before launching a new one, and every tick checks its generation so a
    superseded loop can never record.
    """

    def __init__(self, store: StateStore, seed: Optional[int] = None) -> None:
        self._store = store
        self._rng = random.Random(seed)
        self._task: Optional[asyncio.Task] = None
        self._control = asyncio.Lock()
        self._generation = 0
        self._toggle = True
        self.config = SimulationConfig()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, pattern: Any = SimulationPattern.ALTERNATE, interval_ms: Any = DEFAULT_INTERVAL_MS) -> SimulationConfig:
        pat = SimulationPattern.parse(pattern)
        interval = _coerce_interval(interval_ms)

        async with self._control:
            await self._cancel_task()
            self._generation += 1
            self._toggle = True
            self.config = SimulationConfig(enabled=True, pattern=pat, interval_ms=interval)
            self._task = asyncio.create_task(self._run(self._generation), name="simulator_loop")

        logger.info("Simulation started (pattern=%s interval_ms=%s)", pat.value, interval)
        return self.config

    async def stop(self) -> SimulationConfig:
        async with self._control:
            await self._cancel_task()
            self._generation += 1
            self.config = SimulationConfig()

        logger.info("Simulation stopped")
        return self.config

    def next_mode(self) -> ReadingMode:
        pattern = self.config.pattern
        if pattern is SimulationPattern.ALTERNATE:
            mode = ReadingMode.OPTIMAL if self._toggle else out_of_range_mode(self._rng)
            self._toggle = not self._toggle
            return mode
        if pattern is SimulationPattern.RANDOM:
            return ReadingMode.MIXED_RANDOM
        if pattern is SimulationPattern.ALWAYS_OPTIMAL:
            return ReadingMode.OPTIMAL
        if pattern is SimulationPattern.ALWAYS_ALERT:
            return out_of_range_mode(self._rng)
        raise AssertionError(f"unhandled pattern {pattern!r}")

    def generate(self, mode: ReadingMode) -> Reading:
        temperature, humidity = generate_values(mode, self._rng)
        return Reading(
            temperature=temperature,
            humidity=humidity,
            observed_at=now_utc(),
            source=ReadingSource.SIMULATOR,
        )

    async def tick(self) -> Reading:
        """Generate one reading per the active pattern and record it."""
        mode = self.next_mode()
        reading = self.generate(mode)
        logger.info(
            "Simulation (%s/%s): H=%.1f T=%.1f",
            self.config.pattern.value, mode.value, reading.humidity, reading.temperature,
        )
        await self._store.record_reading(reading)
        return reading

    async def _run(self, generation: int) -> None:
        while generation == self._generation:
            await asyncio.sleep(self.config.interval_ms / 1000.0)
            if generation != self._generation:
                break
            try:
                await self.tick()
            except Exception as e:
                logger.exception("Simulation tick failed: %s", e)

    async def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


def _coerce_interval(raw: Any) -> int:
    try:
        interval = int(raw)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_INTERVAL_MS
    return max(MIN_INTERVAL_MS, interval)
