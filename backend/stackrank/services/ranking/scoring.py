"""
Shared scoring primitives for signal aggregation and stack ranking.
Implements time-decay weighting and the aggregate score to level mapping.
"""
from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional, Sequence, Tuple

from stackrank.models.schemas import PriorityLevel


# Coarse per-level contribution used when averaging signals. Separate from
# the classifier score bands.
LEVEL_SCORES: Dict[PriorityLevel, int] = {
    PriorityLevel.P0: 95,
    PriorityLevel.P1: 75,
    PriorityLevel.P2: 50,
    PriorityLevel.P3: 25,
}

# (min score, level), highest first. Anything below the last entry is P3.
AGGREGATE_LEVEL_THRESHOLDS: Tuple[Tuple[int, PriorityLevel], ...] = (
    (90, PriorityLevel.P0),
    (70, PriorityLevel.P1),
    (40, PriorityLevel.P2),
)

NEUTRAL_SCORE = 50
DECAY_WINDOW_HOURS = 72.0
MIN_DECAY_WEIGHT = 0.1


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up (not banker's rounding)."""
    return int(math.floor(value + 0.5))


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def hours_since(ts: datetime, now: Optional[datetime] = None) -> float:
    """Hours elapsed since timestamp, never negative."""
    now = _as_utc(now or datetime.now(timezone.utc))
    return max(0.0, (now - _as_utc(ts)).total_seconds() / 3600)


def days_since(ts: datetime, now: Optional[datetime] = None) -> float:
    return hours_since(ts, now) / 24


def decay_weight(
    age_hours: float,
    confidence: float,
    window_hours: float = DECAY_WINDOW_HOURS,
    floor: float = MIN_DECAY_WEIGHT,
) -> float:
    """
    Weight of one signal in the aggregate.

    Linear decay over the window, floored so old signals never drop to zero,
    then scaled by the signal's confidence.
    """
    return max(floor, 1.0 - max(0.0, age_hours) / window_hours) * confidence


def priority_from_score(
    score: float,
    thresholds: Sequence[Tuple[int, PriorityLevel]] = AGGREGATE_LEVEL_THRESHOLDS,
) -> PriorityLevel:
    """Map an aggregate score to a level."""
    for minimum, level in thresholds:
        if score >= minimum:
            return level
    return PriorityLevel.P3


def level_score(
    level: Optional[PriorityLevel],
    table: Mapping[PriorityLevel, int] = LEVEL_SCORES,
) -> int:
    if level is None:
        return NEUTRAL_SCORE
    return table.get(PriorityLevel(level), NEUTRAL_SCORE)
