"""
Build a project's full schedule from the step catalog.

Preparation steps (planning, permits, quotes, financing) start today. The
target date is day one of the construction work; when preparation cannot
finish in time the construction start is pushed back and a warning is
returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Mapping, Optional

from planning.business_days import add_business_days, end_date_for, roll_forward
from planning.catalog import (
    DEFAULT_FABRICATION_LEAD_DAYS,
    DEFAULT_SUPPLIER_LEAD_DAYS,
    FABRICATION_LEAD_DAYS,
    MEASUREMENTS,
    MINIMUM_DELAYS,
    PREPARATION_STEP_IDS,
    SUPPLIER_LEAD_DAYS,
    ConstructionStep,
    step_trade,
    steps_from_stage,
    trade_color,
)
from planning.durations import adjusted_duration
from planning.schedule import ReferenceDuration, ScheduleItem, ScheduleStatus

logger = logging.getLogger(__name__)


@dataclass
class GeneratedSchedule:
    items: list[ScheduleItem]
    construction_start: date
    warning: Optional[str] = None


def new_schedule_item(
    project_id: str,
    step: ConstructionStep,
    duration: int,
    start: Optional[date] = None,
    status: ScheduleStatus = ScheduleStatus.SCHEDULED,
) -> ScheduleItem:
    trade = step_trade(step.id)
    measurement = MEASUREMENTS.get(step.id)
    return ScheduleItem(
        project_id=project_id,
        step_id=step.id,
        step_name=step.title,
        trade_type=trade,
        trade_color=trade_color(trade),
        estimated_days=duration,
        start_date=start,
        end_date=end_date_for(start, duration) if start else None,
        supplier_schedule_lead_days=SUPPLIER_LEAD_DAYS.get(step.id, DEFAULT_SUPPLIER_LEAD_DAYS),
        fabrication_lead_days=FABRICATION_LEAD_DAYS.get(step.id, DEFAULT_FABRICATION_LEAD_DAYS),
        measurement_required=measurement is not None,
        measurement_after_step_id=measurement.after_step if measurement else None,
        measurement_notes=measurement.notes if measurement else None,
        status=status.value,
    )


def generate_schedule(
    project_id: str,
    target_start_date: date,
    today: date,
    current_stage: Optional[str] = None,
    square_footage: Optional[float] = None,
    references: Optional[Mapping[str, ReferenceDuration]] = None,
) -> GeneratedSchedule:
    references = references or {}
    steps = steps_from_stage(current_stage)
    preparation = [s for s in steps if s.id in PREPARATION_STEP_IDS]
    construction = [s for s in steps if s.id not in PREPARATION_STEP_IDS]

    if square_footage and references:
        logger.info(
            "Prorating durations for project %s: %s sq ft", project_id, square_footage
        )

    items: list[ScheduleItem] = []
    cursor = roll_forward(today)
    for step in preparation:
        duration = adjusted_duration(step.id, square_footage, references)
        status = ScheduleStatus.IN_PROGRESS if cursor == today else ScheduleStatus.SCHEDULED
        item = new_schedule_item(project_id, step, duration, cursor, status)
        items.append(item)
        cursor = add_business_days(item.end_date, 1)

    earliest_start = cursor
    construction_start = roll_forward(target_start_date)
    warning = None
    if earliest_start > construction_start:
        delay = (earliest_start - target_start_date).days
        warning = (
            f"La date visée du {target_start_date.isoformat()} est impossible: la "
            f"préparation nécessite plus de temps. Nouvelle date de début des "
            f"travaux: {earliest_start.isoformat()} (+{delay} jours)"
        )
        construction_start = earliest_start

    cursor = construction_start
    end_dates: dict[str, date] = {}
    for step in construction:
        duration = adjusted_duration(step.id, square_footage, references)
        delay_rule = MINIMUM_DELAYS.get(step.id)
        if delay_rule and delay_rule.after_step in end_dates:
            required = roll_forward(
                end_dates[delay_rule.after_step] + timedelta(days=delay_rule.days)
            )
            cursor = max(cursor, required)
        item = new_schedule_item(project_id, step, duration, cursor, ScheduleStatus.SCHEDULED)
        items.append(item)
        end_dates[step.id] = item.end_date
        cursor = add_business_days(item.end_date, 1)

    return GeneratedSchedule(
        items=items, construction_start=construction_start, warning=warning
    )
