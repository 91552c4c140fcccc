"""Next-training recommendation from the completion log."""

from typing import Mapping, Sequence

from .models import TrainingCompletion


def recommend_next_training(
    completions: Mapping[str, Sequence[TrainingCompletion]],
    available: Sequence[str],
) -> str | None:
    """
    Pick the training the user should do next.

    The training with the fewest completions wins, first in ``available``
    order on ties.  When every training has the same non-zero count, the
    one whose most recent completion is oldest wins instead.

    Args:
        completions: Completion log, newest first per training type
        available: Training types offered by the current plan

    Returns:
        Recommended training type, or None if nothing is available
    """
    if not available:
        return None
    if len(available) == 1:
        return available[0]

    counts = {t: len(completions.get(t, ())) for t in available}
    min_count = min(counts.values())
    recommended = next(t for t in available if counts[t] == min_count)

    all_same = all(c == min_count for c in counts.values())
    if not all_same or min_count == 0:
        return recommended

    oldest_training = available[0]
    oldest_date: str | None = None
    for training in available:
        last = completions[training][0]
        if oldest_date is None or last.date < oldest_date:
            oldest_date = last.date
            oldest_training = training
    return oldest_training
