"""Tests for plan version comparison and the refresh cooldown policy."""

from datetime import datetime, timedelta, timezone

import pytest

from trainerly.core.models import TrainingPlan
from trainerly.core.versioning import compare_versions, filter_newer_plans, latest_plan, should_refresh


class TestCompareVersions:
    @pytest.mark.parametrize(
        "a, b, expected",
        [
            ("3.6", "3.7", -1),
            ("3.10", "3.9", 1),
            ("3.6", "3.6", 0),
            ("3", "3.0", 0),
            ("1.0.1", "1", 1),
            ("2", "10", -1),
        ],
    )
    def test_numeric_component_order(self, a, b, expected):
        assert compare_versions(a, b) == expected

    def test_antisymmetric(self):
        assert compare_versions("3.7", "3.6") == -compare_versions("3.6", "3.7")

    def test_non_numeric_rejected(self):
        with pytest.raises(ValueError):
            compare_versions("3.x", "3.1")


def _plan(plan_id: str, version: str | None) -> TrainingPlan:
    return TrainingPlan(plan_id=plan_id, name=plan_id, version=version)


class TestPlanFiltering:
    def test_filter_newer_keeps_order(self):
        plans = [_plan("a", "3.10"), _plan("b", "3.6"), _plan("c", "3.9"), _plan("d", None)]
        assert [p.plan_id for p in filter_newer_plans(plans, "3.6")] == ["a", "c"]

    def test_no_current_version_returns_all(self):
        plans = [_plan("a", "1"), _plan("b", None)]
        assert filter_newer_plans(plans, None) == plans

    def test_latest_plan(self):
        plans = [_plan("a", "3.9"), _plan("b", "3.10"), _plan("c", None)]
        assert latest_plan(plans).plan_id == "b"

    def test_latest_plan_empty(self):
        assert latest_plan([]) is None

    def test_latest_plan_all_unversioned_returns_first(self):
        assert latest_plan([_plan("a", None), _plan("b", None)]).plan_id == "a"


class TestShouldRefresh:
    NOW = datetime(2026, 2, 18, 12, 0, tzinfo=timezone.utc)

    def test_never_refreshed(self):
        assert should_refresh(None, self.NOW) is True

    def test_within_cooldown(self):
        assert should_refresh(self.NOW - timedelta(hours=23, minutes=59), self.NOW) is False

    def test_cooldown_boundary_is_inclusive(self):
        assert should_refresh(self.NOW - timedelta(days=1), self.NOW) is True

    def test_custom_cooldown(self):
        last = self.NOW - timedelta(minutes=10)
        assert should_refresh(last, self.NOW, cooldown=timedelta(minutes=5)) is True
        assert should_refresh(last, self.NOW, cooldown=timedelta(hours=1)) is False
