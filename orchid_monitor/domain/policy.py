from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .models import OptimalPolicy, Reading
from ..core.config import settings


class Issue(str, Enum):
    TEMPERATURE_LOW = "temperature_low"
    TEMPERATURE_HIGH = "temperature_high"
    HUMIDITY_LOW = "humidity_low"
    HUMIDITY_HIGH = "humidity_high"


class CheckStatus(str, Enum):
    OK = "ok"
    ALERT = "alert"
    NO_DATA = "no-data"


@dataclass(frozen=True)
class Evaluation:
    status: CheckStatus
    issues: tuple[Issue, ...] = ()


@dataclass(frozen=True)
class CheckResult:
    status: CheckStatus
    issues: tuple[Issue, ...] = ()
    reading: Optional[Reading] = None
    policy: Optional[OptimalPolicy] = None


def default_policy() -> OptimalPolicy:
    """Range used when no policy row is stored (orchids: 18-24 C, 75-85 %)."""
    return OptimalPolicy(
        min_temp=settings.default_min_temp,
        max_temp=settings.default_max_temp,
        min_humidity=settings.default_min_humidity,
        max_humidity=settings.default_max_humidity,
    )


def evaluate(reading: Reading, policy: OptimalPolicy) -> Evaluation:
    # Order matters: the dashboard renders issues as returned
    issues: list[Issue] = []
    t = reading.temperature
    h = reading.humidity

    if policy.min_temp is not None and t < policy.min_temp:
        issues.append(Issue.TEMPERATURE_LOW)
    if policy.max_temp is not None and t > policy.max_temp:
        issues.append(Issue.TEMPERATURE_HIGH)
    if policy.min_humidity is not None and h < policy.min_humidity:
        issues.append(Issue.HUMIDITY_LOW)
    if policy.max_humidity is not None and h > policy.max_humidity:
        issues.append(Issue.HUMIDITY_HIGH)

    status = CheckStatus.ALERT if issues else CheckStatus.OK
    return Evaluation(status=status, issues=tuple(issues))
