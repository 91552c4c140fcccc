"""
Plan version comparison and refresh policy.

Plan versions are dot-separated numbers ("3.6", "3.10") compared
numerically per component, never lexicographically.
"""

from datetime import datetime, timedelta
from typing import Sequence

from .config import PLAN_REFRESH_COOLDOWN_SECONDS
from .models import TrainingPlan


def _version_parts(version: str) -> list[int]:
    """Split a version string into integer components."""
    parts = []
    for piece in version.strip().split("."):
        try:
            parts.append(int(piece))
        except ValueError:
            raise ValueError(f"Invalid version component {piece!r} in {version!r}") from None
    return parts


def compare_versions(a: str, b: str) -> int:
    """
    Compare two dot-separated numeric version strings.

    Missing components count as 0, so "3" == "3.0".

    Returns:
        -1 if a < b, 0 if equal, 1 if a > b
    """
    a_parts = _version_parts(a)
    b_parts = _version_parts(b)
    length = max(len(a_parts), len(b_parts))

    for i in range(length):
        a_part = a_parts[i] if i < len(a_parts) else 0
        b_part = b_parts[i] if i < len(b_parts) else 0
        if a_part < b_part:
            return -1
        if a_part > b_part:
            return 1

    return 0


def filter_newer_plans(
    plans: Sequence[TrainingPlan],
    current_version: str | None,
) -> list[TrainingPlan]:
    """
    Plans strictly newer than current_version, in their original order.

    Plans without a version are never considered newer.  With no current
    version every plan is returned.
    """
    if current_version is None:
        return list(plans)
    return [
        p for p in plans
        if p.version is not None and compare_versions(p.version, current_version) > 0
    ]


def latest_plan(plans: Sequence[TrainingPlan]) -> TrainingPlan | None:
    """Highest-versioned plan; unversioned plans only win when nothing is versioned."""
    if not plans:
        return None
    best: TrainingPlan | None = None
    for plan in plans:
        if best is None:
            best = plan
        elif plan.version is not None and (
            best.version is None or compare_versions(plan.version, best.version) > 0
        ):
            best = plan
    return best


def should_refresh(
    last_refresh: datetime | None,
    now: datetime,
    cooldown: timedelta = timedelta(seconds=PLAN_REFRESH_COOLDOWN_SECONDS),
) -> bool:
    """
    Decide whether a periodic fetch is due.

    Args:
        last_refresh: Time of the last successful fetch, None if never
        now: Current time (same timezone awareness as last_refresh)
        cooldown: Minimum interval between fetches

    Returns:
        True if never fetched or the cooldown has fully elapsed
    """
    if last_refresh is None:
        return True
    return now - last_refresh >= cooldown
