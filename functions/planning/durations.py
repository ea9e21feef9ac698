"""
Step durations, optionally prorated to the project's floor area.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Mapping, Optional

from planning.business_days import sub_business_days
from planning.catalog import (
    DEFAULT_DURATIONS,
    DEFAULT_STEP_DURATION,
    PREPARATION_STEP_IDS,
    steps_from_stage,
)
from planning.schedule import ReferenceDuration

REFERENCE_SQUARE_FOOTAGE = 2000


@dataclass(frozen=True)
class DurationSummary:
    preparation_days: int
    construction_days: int
    total_days: int
    square_footage: Optional[float] = None
    is_prorated: bool = False


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def default_duration(step_id: str) -> int:
    return DEFAULT_DURATIONS.get(step_id, DEFAULT_STEP_DURATION)


def adjusted_duration(
    step_id: str,
    square_footage: Optional[float],
    references: Mapping[str, ReferenceDuration],
) -> int:
    """
    Scale a step's reference duration to the project's floor area.

    duration = base * (1 + (area / base_area - 1) * scaling_factor),
    clamped to the reference's min/max (max defaults to 3x the base).
    """
    ref = references.get(step_id)
    if ref is None or not square_footage:
        return default_duration(step_id)

    base_area = ref.base_square_footage or REFERENCE_SQUARE_FOOTAGE
    base = ref.base_duration_days
    scaling = float(ref.scaling_factor) if ref.scaling_factor else 1.0
    minimum = ref.min_duration_days or 1
    maximum = ref.max_duration_days or base * 3

    ratio = square_footage / base_area
    adjusted = _round_half_up(base * (1 + (ratio - 1) * scaling))
    return max(minimum, min(maximum, adjusted))


def total_duration(
    current_stage: Optional[str] = None,
    square_footage: Optional[float] = None,
    references: Optional[Mapping[str, ReferenceDuration]] = None,
) -> DurationSummary:
    references = references or {}
    preparation_days = 0
    construction_days = 0
    for step in steps_from_stage(current_stage):
        days = adjusted_duration(step.id, square_footage, references)
        if step.id in PREPARATION_STEP_IDS:
            preparation_days += days
        else:
            construction_days += days
    return DurationSummary(
        preparation_days=preparation_days,
        construction_days=construction_days,
        total_days=preparation_days + construction_days,
        square_footage=square_footage,
        is_prorated=bool(square_footage) and bool(references),
    )


def preparation_start_date(target_construction_date: date, current_stage: Optional[str] = None) -> date:
    """Latest day preparation can start to hit the target, using default durations."""
    summary = total_duration(current_stage)
    return sub_business_days(target_construction_date, summary.preparation_days)
