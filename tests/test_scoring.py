"""
Formula-focused unit tests for Adjusted Volume scoring.

Values are hand-computed from the formulas so the tests document them:

    AV = VL × RE × CF × POB
"""

import pytest

from trainerly.core.config import BODYWEIGHT_REP_LOAD, OVERLOAD_BONUS_CAP
from trainerly.core.models import SetData, WorkoutEntry
from trainerly.core.scoring import (
    compute_history,
    compute_sample,
    consistency_factor,
    explain_formula,
    progressive_overload_bonus,
    rest_efficiency,
    round_half_up,
    volume_load,
)

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _sets(*pairs: tuple[float | None, int | None]) -> list[SetData]:
    return [SetData(weight=w, repeats=r) for w, r in pairs]


def _entry(
    date: str = "2026-02-18T10:00:00.000Z",
    sets: list[SetData] | None = None,
    rest: int = 180,
    completed: int = 3,
    total: int = 3,
) -> WorkoutEntry:
    return WorkoutEntry(
        date=date,
        rest_time_seconds=rest,
        completed_sets=completed,
        total_sets=total,
        sets_data=sets,
    )


# ===========================================================================
# round_half_up
# ===========================================================================


class TestRoundHalfUp:
    def test_halves_round_up_not_to_even(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1

    def test_negative_halves_round_toward_positive_infinity(self):
        assert round_half_up(-2.5) == -2

    def test_two_digits(self):
        assert round_half_up(0.666666, 2) == pytest.approx(0.67)


# ===========================================================================
# Volume Load
# ===========================================================================


class TestVolumeLoad:
    """VL = Σ(weight × reps), bodyweight sets = reps × 2"""

    def test_weighted_set(self):
        assert volume_load(_sets((20, 10))) == 200

    def test_bodyweight_set_counts_two_per_rep(self):
        assert volume_load(_sets((0, 10))) == 10 * BODYWEIGHT_REP_LOAD == 20

    def test_missing_weight_is_bodyweight(self):
        assert volume_load(_sets((None, 12))) == 24

    def test_zero_reps_contributes_nothing(self):
        assert volume_load(_sets((None, 0))) == 0
        assert volume_load(_sets((20, None))) == 0

    def test_mixed_sets_sum(self):
        # 20×10 + 0×8→16 + 22.5×6
        assert volume_load(_sets((20, 10), (0, 8), (22.5, 6))) == pytest.approx(200 + 16 + 135)

    def test_empty(self):
        assert volume_load([]) == 0


# ===========================================================================
# Rest Efficiency
# ===========================================================================


class TestRestEfficiency:
    """RE = clip(1 + (180 - rest) / 300, 0.5, 1.5)"""

    @pytest.mark.parametrize(
        "rest, expected",
        [(60, 1.4), (120, 1.2), (180, 1.0), (300, 0.6)],
    )
    def test_reference_points(self, rest, expected):
        assert rest_efficiency(rest) == pytest.approx(expected)

    def test_very_short_rest_clamps_to_ceiling(self):
        # 1 + 1180/300 ≈ 4.93 → 1.5
        assert rest_efficiency(-1000) == pytest.approx(1.5)

    def test_very_long_rest_clamps_to_floor(self):
        # 1 - 9820/300 < 0 → 0.5
        assert rest_efficiency(10000) == pytest.approx(0.5)

    def test_clamp_edges(self):
        # RE reaches 1.5 at 30 s and 0.5 at 330 s
        assert rest_efficiency(30) == pytest.approx(1.5)
        assert rest_efficiency(330) == pytest.approx(0.5)
        assert rest_efficiency(29) == pytest.approx(1.5)
        assert rest_efficiency(331) == pytest.approx(0.5)

    def test_zero_rest_hits_ceiling_region(self):
        # 1 + 180/300 = 1.6 → 1.5
        assert rest_efficiency(0) == pytest.approx(1.5)


# ===========================================================================
# Consistency Factor
# ===========================================================================


class TestConsistencyFactor:
    def test_all_sets_completed(self):
        assert consistency_factor(3, 3) == 1.0

    def test_partial(self):
        assert consistency_factor(3, 4) == pytest.approx(0.75)

    def test_zero_total_propagates(self):
        with pytest.raises(ZeroDivisionError):
            consistency_factor(0, 0)


# ===========================================================================
# Progressive Overload Bonus
# ===========================================================================


class TestProgressiveOverloadBonus:
    """POB = 1 + clip(mean((load_i - load_1) / load_1), 0, 0.5)"""

    def test_single_set_is_neutral(self):
        assert progressive_overload_bonus(_sets((20, 10))) == 1.0

    def test_no_sets_is_neutral(self):
        assert progressive_overload_bonus([]) == 1.0

    def test_declining_load_floors_at_one(self):
        # 200 → 160, 120: improvements -0.2, -0.4
        assert progressive_overload_bonus(_sets((20, 10), (20, 8), (20, 6))) == 1.0

    def test_large_improvement_capped(self):
        # 100 → 200: +100% → capped at +50%
        assert progressive_overload_bonus(_sets((10, 10), (20, 10))) == 1 + OVERLOAD_BONUS_CAP

    def test_moderate_improvement(self):
        # 200 → 220 (+0.1), 240 (+0.2): mean 0.15
        assert progressive_overload_bonus(_sets((20, 10), (20, 11), (20, 12))) == pytest.approx(1.15)

    def test_zero_load_later_sets_skipped(self):
        # the bodyweight set has raw load 0 and is ignored; 220 vs 200 → +0.1
        assert progressive_overload_bonus(_sets((20, 10), (0, 10), (22, 10))) == pytest.approx(1.1)

    def test_bodyweight_first_set_gives_no_bonus(self):
        # First set raw load is 0: no baseline, even though VL counts it
        assert progressive_overload_bonus(_sets((0, 10), (0, 12))) == 1.0

    def test_equal_loads_neutral(self):
        assert progressive_overload_bonus(_sets((20, 10), (20, 10), (20, 10))) == 1.0


# ===========================================================================
# compute_sample / compute_history
# ===========================================================================


class TestComputeSample:
    def test_three_equal_sets_at_reference_rest(self):
        entry = _entry(sets=_sets((20, 10), (20, 10), (20, 10)))
        s = compute_sample(entry)

        assert s.volume_load == 600
        assert s.rest_efficiency == 1.0
        assert s.consistency_factor == 1.0
        assert s.progressive_overload_bonus == 1.0
        assert s.adjusted_volume == 600
        assert s.date == entry.date
        assert (s.completed_sets, s.total_sets) == (3, 3)

    def test_partial_workout_short_rest(self):
        # VL 600, RE 1.2, CF 0.75, POB 1.0 (+0.2 and -0.2 cancel) → 540
        entry = _entry(sets=_sets((20, 10), (20, 12), (20, 8)), rest=120, total=4)
        s = compute_sample(entry)

        assert s.volume_load == 600
        assert s.rest_efficiency == pytest.approx(1.2)
        assert s.consistency_factor == pytest.approx(0.75)
        assert s.progressive_overload_bonus == 1.0
        assert s.adjusted_volume == 540

    def test_factors_rounded_to_two_decimals(self):
        entry = _entry(sets=_sets((20, 10), (20, 10)), completed=2, total=3)
        s = compute_sample(entry)

        assert s.consistency_factor == pytest.approx(0.67)
        # 400 × 2/3 = 266.67 uses the unrounded CF
        assert s.adjusted_volume == 267

    def test_bodyweight_workout(self):
        # VL = (10 + 10) × 2 = 40, RE at 60 s = 1.4 → 56
        entry = _entry(sets=_sets((0, 10), (0, 10)), rest=60, completed=2, total=2)
        s = compute_sample(entry)

        assert s.volume_load == 40
        assert s.adjusted_volume == 56

    def test_zero_total_sets_raises(self):
        entry = _entry(sets=_sets((20, 10)), completed=0, total=0)
        with pytest.raises(ZeroDivisionError):
            compute_sample(entry)

    def test_malformed_date_rejected(self):
        with pytest.raises(ValueError):
            _entry(date="yesterday", sets=_sets((20, 10)))


class TestComputeHistory:
    def test_sorted_oldest_first_and_skips_entries_without_sets(self):
        newest_first = [
            _entry(date="2026-02-20T10:00:00.000Z", sets=_sets((25, 10), (25, 10), (25, 10))),
            _entry(date="2026-02-19T10:00:00.000Z", sets=None),
            _entry(date="2026-02-18T10:00:00.000Z", sets=_sets((20, 10), (20, 10), (20, 10))),
            _entry(date="2026-02-17T10:00:00.000Z", sets=[]),
        ]
        samples = compute_history(newest_first)

        assert [s.date for s in samples] == [
            "2026-02-18T10:00:00.000Z",
            "2026-02-20T10:00:00.000Z",
        ]
        assert [s.adjusted_volume for s in samples] == [600, 750]

    def test_mixed_timezone_offsets_sorted_by_instant(self):
        samples = compute_history([
            _entry(date="2026-02-18T09:30:00+00:00", sets=_sets((20, 10))),
            _entry(date="2026-02-18T10:00:00+02:00", sets=_sets((20, 10))),  # 08:00 UTC
        ])
        assert samples[0].date == "2026-02-18T10:00:00+02:00"

    def test_empty(self):
        assert compute_history([]) == []


def test_explain_formula_mentions_every_factor():
    text = explain_formula()
    for part in ("Volume Load", "Rest Efficiency", "Consistency", "Overload Bonus"):
        assert part in text
