"""Unit tests for the optimal-range policy.

``evaluate`` is pure, so these tests build readings and policies directly
and never touch storage or the network.
"""

from __future__ import annotations

import itertools
import random

import pytest

from orchid_monitor.domain.errors import ValidationError
from orchid_monitor.domain.models import OptimalPolicy
from orchid_monitor.domain.policy import CheckStatus, Issue, default_policy, evaluate

ISSUE_ORDER = [
    Issue.TEMPERATURE_LOW,
    Issue.TEMPERATURE_HIGH,
    Issue.HUMIDITY_LOW,
    Issue.HUMIDITY_HIGH,
]


class TestEvaluate:
    """Tests for ``evaluate``."""

    def test_unbounded_policy_is_always_ok(self, make_reading) -> None:
        """A policy with no bounds never raises an issue, whatever the values."""
        policy = OptimalPolicy()
        for t, h in [(-40.0, 0.0), (0.0, 100.0), (85.0, 3.5), (1e6, -1e6)]:
            ev = evaluate(make_reading(t, h), policy)
            assert ev.status is CheckStatus.OK
            assert ev.issues == ()

    def test_within_range(self, make_reading) -> None:
        ev = evaluate(make_reading(21.0, 80.0), default_policy())
        assert ev.status is CheckStatus.OK
        assert ev.issues == ()

    def test_bounds_are_inclusive(self, make_reading) -> None:
        """Values equal to a bound are in range."""
        policy = OptimalPolicy(min_temp=18, max_temp=24, min_humidity=75, max_humidity=85)
        assert evaluate(make_reading(18.0, 75.0), policy).status is CheckStatus.OK
        assert evaluate(make_reading(24.0, 85.0), policy).status is CheckStatus.OK

    def test_low_temperature_and_low_humidity(self, make_reading) -> None:
        policy = OptimalPolicy(min_temp=18, max_temp=24, min_humidity=75, max_humidity=85)
        ev = evaluate(make_reading(12.0, 40.0), policy)
        assert ev.status is CheckStatus.ALERT
        assert ev.issues == (Issue.TEMPERATURE_LOW, Issue.HUMIDITY_LOW)

    def test_high_temperature_only(self, make_reading) -> None:
        policy = OptimalPolicy(min_temp=18, max_temp=24, min_humidity=75, max_humidity=85)
        ev = evaluate(make_reading(30.0, 80.0), policy)
        assert ev.issues == (Issue.TEMPERATURE_HIGH,)

    def test_missing_bound_never_triggers(self, make_reading) -> None:
        """Only the configured direction is checked."""
        policy = OptimalPolicy(max_temp=24)
        ev = evaluate(make_reading(-10.0, 5.0), policy)
        assert ev.status is CheckStatus.OK

    def test_issue_order_is_fixed(self, make_reading) -> None:
        """Issues are always a subsequence of the canonical order."""
        rng = random.Random(7)
        temp_bounds = [None, 10.0, 20.0, 30.0]
        hum_bounds = [None, 30.0, 60.0, 90.0]
        for _ in range(300):
            policy = OptimalPolicy(
                min_temp=rng.choice(temp_bounds),
                max_temp=rng.choice(temp_bounds),
                min_humidity=rng.choice(hum_bounds),
                max_humidity=rng.choice(hum_bounds),
            )
            reading = make_reading(rng.uniform(0, 40), rng.uniform(0, 100))
            issues = list(evaluate(reading, policy).issues)
            positions = [ISSUE_ORDER.index(i) for i in issues]
            assert positions == sorted(positions)
            assert len(set(issues)) == len(issues)

    def test_inverted_policy_can_report_both_directions(self, make_reading) -> None:
        """An inverted range (min > max) is not rejected by evaluate itself."""
        policy = OptimalPolicy(min_temp=30, max_temp=10)
        ev = evaluate(make_reading(20.0, 80.0), policy)
        assert ev.issues == (Issue.TEMPERATURE_LOW, Issue.TEMPERATURE_HIGH)

    @pytest.mark.parametrize("t,h", list(itertools.product([17.9, 24.1], [74.9, 85.1])))
    def test_alert_iff_issues(self, make_reading, t: float, h: float) -> None:
        ev = evaluate(make_reading(t, h), default_policy())
        assert ev.status is CheckStatus.ALERT
        assert len(ev.issues) == 2


class TestOptimalPolicy:
    """Tests for the policy value object."""

    def test_default_policy_values(self) -> None:
        p = default_policy()
        assert (p.min_temp, p.max_temp) == (18.0, 24.0)
        assert (p.min_humidity, p.max_humidity) == (75.0, 85.0)

    def test_policy_is_frozen(self) -> None:
        p = OptimalPolicy(min_temp=1.0)
        with pytest.raises(AttributeError):
            p.min_temp = 2.0  # type: ignore[misc]

    def test_validate_rejects_inverted_temperature(self) -> None:
        with pytest.raises(ValidationError):
            OptimalPolicy(min_temp=25, max_temp=20).validate()

    def test_validate_rejects_inverted_humidity(self) -> None:
        with pytest.raises(ValidationError):
            OptimalPolicy(min_humidity=90, max_humidity=80).validate()

    def test_validate_accepts_partial_policy(self) -> None:
        OptimalPolicy(min_temp=25).validate()
