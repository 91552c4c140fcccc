"""
Adjusted Volume scoring.

All functions are pure and typed for testability.  Nothing here catches
exceptions: malformed dates raise ValueError and a zero total_sets raises
ZeroDivisionError straight to the caller.

    AV = VL × RE × CF × POB

    VL  = Volume Load              = Σ(weight × reps), bodyweight sets = reps × 2
    RE  = Rest Efficiency          = clip(1 + (180 - rest) / 300, 0.5, 1.5)
    CF  = Consistency Factor       = completed_sets / total_sets
    POB = Progressive Overload Bonus = 1 + clip(avg improvement over set 1, 0, 0.5)
"""

import math
from typing import Iterable, Sequence

from .config import (
    BODYWEIGHT_REP_LOAD,
    OVERLOAD_BONUS_CAP,
    REST_EFFICIENCY_MAX,
    REST_EFFICIENCY_MIN,
    REST_REF_SECONDS,
    REST_SCALE_SECONDS,
)
from .models import AdjustedVolumeSample, SetData, WorkoutEntry, parse_timestamp


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round halves toward positive infinity, like JavaScript's Math.round.

    Python's round() rounds halves to even (2.5 → 2).
    """
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _set_load(s: SetData) -> float:
    """Raw weight × reps of a set, missing values counted as 0."""
    return (s.weight or 0) * (s.repeats or 0)


def volume_load(sets_data: Sequence[SetData]) -> float:
    """
    Calculate Volume Load VL = Σ(weight × reps).

    A set with no weight but positive reps is a bodyweight set and
    contributes reps × 2 instead of 0.

    Args:
        sets_data: Performed sets in order

    Returns:
        Total volume load
    """
    total = 0.0
    for s in sets_data:
        weight = s.weight or 0
        reps = s.repeats or 0
        if weight == 0 and reps > 0:
            total += reps * BODYWEIGHT_REP_LOAD
        else:
            total += weight * reps
    return total


def rest_efficiency(rest_time_seconds: float) -> float:
    """
    Calculate Rest Efficiency RE = clip(1 + (180 - r) / 300, 0.5, 1.5).

    60 s → 1.4, 120 s → 1.2, 180 s → 1.0, 300 s → 0.6.

    Args:
        rest_time_seconds: Configured rest between sets

    Returns:
        Rest efficiency factor (0.5 to 1.5)
    """
    efficiency = 1 + (REST_REF_SECONDS - rest_time_seconds) / REST_SCALE_SECONDS
    return max(REST_EFFICIENCY_MIN, min(REST_EFFICIENCY_MAX, efficiency))


def consistency_factor(completed_sets: int, total_sets: int) -> float:
    """Fraction of planned sets completed.  total_sets must be positive."""
    return completed_sets / total_sets


def progressive_overload_bonus(sets_data: Sequence[SetData]) -> float:
    """
    Calculate the Progressive Overload Bonus.

    Later sets are compared with the first set's raw weight × reps (no
    bodyweight substitution).  Sets with zero load are skipped.  Only
    improvement is rewarded, capped at +50%.

    Args:
        sets_data: Performed sets in order

    Returns:
        Bonus factor (1.0 to 1.5)
    """
    if len(sets_data) < 2:
        return 1.0

    first_load = _set_load(sets_data[0])
    if first_load == 0:
        return 1.0

    total_improvement = 0.0
    valid_sets = 0
    for s in sets_data[1:]:
        load = _set_load(s)
        if load > 0:
            total_improvement += (load - first_load) / first_load
            valid_sets += 1

    if valid_sets == 0:
        return 1.0

    average = total_improvement / valid_sets
    return 1 + max(0.0, min(OVERLOAD_BONUS_CAP, average))


def compute_sample(entry: WorkoutEntry) -> AdjustedVolumeSample:
    """
    Calculate Adjusted Volume for a single workout entry.

    Factors are reported rounded: VL and AV to integers, RE, CF and POB
    to two decimals.  The product uses the unrounded factors.
    """
    sets_data = entry.sets_data or []

    vl = volume_load(sets_data)
    re_ = rest_efficiency(entry.rest_time_seconds)
    cf = consistency_factor(entry.completed_sets, entry.total_sets)
    pob = progressive_overload_bonus(sets_data)

    return AdjustedVolumeSample(
        date=entry.date,
        adjusted_volume=int(round_half_up(vl * re_ * cf * pob)),
        volume_load=int(round_half_up(vl)),
        rest_efficiency=round_half_up(re_, 2),
        consistency_factor=round_half_up(cf, 2),
        progressive_overload_bonus=round_half_up(pob, 2),
        completed_sets=entry.completed_sets,
        total_sets=entry.total_sets,
    )


def compute_history(entries: Iterable[WorkoutEntry]) -> list[AdjustedVolumeSample]:
    """
    Calculate the Adjusted Volume series for one exercise.

    Entries without per-set data are skipped.  The result is sorted
    oldest first, ready for charting.

    Args:
        entries: History entries in any order (stored order is newest first)

    Returns:
        One sample per entry with sets data, ascending by date
    """
    samples = [compute_sample(e) for e in entries if e.sets_data]
    samples.sort(key=lambda s: parse_timestamp(s.date))
    return samples


def explain_formula() -> str:
    """Human-readable description of the Adjusted Volume formula."""
    return "\n".join([
        "Adjusted Volume = Volume Load × Rest Efficiency × Consistency × Overload Bonus",
        "",
        "Volume Load: total weight × reps over all sets",
        f"  (bodyweight sets count {BODYWEIGHT_REP_LOAD} per rep)",
        f"Rest Efficiency ({REST_EFFICIENCY_MIN}x - {REST_EFFICIENCY_MAX}x):",
        "  60 s rest = 1.4x, 120 s = 1.2x, 180 s = 1.0x, 300 s = 0.6x",
        "Consistency: completed sets ÷ planned sets",
        f"Overload Bonus (1.0x - {1 + OVERLOAD_BONUS_CAP}x):",
        "  average improvement of later sets over the first set",
    ])
