from __future__ import annotations
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from .errors import ValidationError


class ReadingSource(str, Enum):
    SENSOR = "sensor"
    SIMULATOR = "simulator"
    API = "api"


@dataclass(frozen=True)
class Reading:
    temperature: float
    humidity: float
    observed_at: datetime
    source: ReadingSource
    id: Optional[int] = None  # assigned by the durable store


@dataclass(frozen=True)
class OptimalPolicy:
    min_temp: Optional[float] = None
    max_temp: Optional[float] = None
    min_humidity: Optional[float] = None
    max_humidity: Optional[float] = None

    def validate(self) -> None:
        """Reject inverted ranges; a missing bound is always fine."""
        if self.min_temp is not None and self.max_temp is not None and self.min_temp > self.max_temp:
            raise ValidationError("min_temp must not exceed max_temp", field="min_temp")
        if (
            self.min_humidity is not None
            and self.max_humidity is not None
            and self.min_humidity > self.max_humidity
        ):
            raise ValidationError("min_humidity must not exceed max_humidity", field="min_humidity")


@dataclass(frozen=True)
class LatestState:
    reading: Reading
    received_at: datetime


@dataclass(frozen=True)
class HistoryPage:
    readings: list[Reading] = field(default_factory=list)
    degraded: bool = False


@dataclass(frozen=True)
class InsertResult:
    reading: Reading
    durable: bool


def parse_measurement(value: Any, name: str) -> float:
    """Coerce a temperature/humidity value to float.

    Accepts ints, floats and numeric strings. ``None``, booleans, empty
    strings, NaN and infinities raise :class:`ValidationError`.
    """
    if value is None:
        raise ValidationError(f"{name} is required", field=name)
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be numeric", field=name)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError(f"{name} is required", field=name)
    try:
        out = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be numeric, got {value!r}", field=name)
    if not math.isfinite(out):
        raise ValidationError(f"{name} must be a finite number", field=name)
    return out


def reading_to_dict(r: Reading) -> dict:
    return {
        "id": r.id,
        "temperature": r.temperature,
        "humidity": r.humidity,
        "created_at": r.observed_at.isoformat(),
        "source": r.source.value,
    }


def policy_to_dict(p: OptimalPolicy) -> dict:
    return {
        "min_temp": p.min_temp,
        "max_temp": p.max_temp,
        "min_humidity": p.min_humidity,
        "max_humidity": p.max_humidity,
    }
