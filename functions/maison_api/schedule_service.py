"""
Schedule operations: pure planning functions applied to stored records.

Every change that can move dates goes through `planning.recalc.regenerate`;
the resulting patches are persisted, reminder alerts of the moved steps are
rebuilt and locked steps get a subcontractor contact alert.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Mapping, Optional

from maison_api.db import DbClient, NotFoundError, ProjectRecord
from planning import recalc
from planning.alerts import SubcontractorContact, alerts_for_item, contact_alert
from planning.business_days import end_date_for
from planning.catalog import (
    CONSTRUCTION_STEPS,
    get_step,
    sort_by_execution_order,
    step_execution_order,
)
from planning.conflicts import TradeConflict, find_trade_conflicts
from planning.durations import DurationSummary, default_duration, total_duration
from planning.generator import generate_schedule, new_schedule_item
from planning.schedule import (
    EDITABLE_FIELDS,
    AlertType,
    ScheduleAlert,
    ScheduleError,
    ScheduleItem,
)
from planning.tasks import span_updates, step_span

logger = logging.getLogger(__name__)

# Alerts rebuilt from an item's dates; contact alerts are kept until dismissed.
DERIVED_ALERT_TYPES = (
    AlertType.SUPPLIER_CALL.value,
    AlertType.FABRICATION_START.value,
    AlertType.MEASUREMENT.value,
)


@dataclass
class ScheduleUpdate:
    items: list[ScheduleItem]
    warnings: list[str] = field(default_factory=list)
    contact_alerts: list[ScheduleAlert] = field(default_factory=list)


@dataclass
class GenerationOutcome:
    items: list[ScheduleItem]
    construction_start: date
    warning: Optional[str] = None
    alerts_created: int = 0


def get_item(db: DbClient, schedule_id: str) -> ScheduleItem:
    item = db.get_schedule(schedule_id)
    if item is None:
        raise NotFoundError(f"Schedule item {schedule_id} not found")
    return item


def list_schedule(db: DbClient, project_id: str, today: date) -> list[ScheduleItem]:
    """Return the project's schedule in execution order, repairing broken completed steps."""
    items = db.list_schedules(project_id)
    if recalc.needs_repair(items):
        logger.info("Repairing completed step dates for project %s", project_id)
        return _recalculate(db, project_id, today).items
    return sort_by_execution_order(items)


def refresh_alerts(
    db: DbClient, item: ScheduleItem, items: Iterable[ScheduleItem], today: date
) -> list[ScheduleAlert]:
    """Replace the item's reminder alerts with ones computed from its current dates."""
    db.delete_alerts_for_schedule(item.id, DERIVED_ALERT_TYPES)
    if item.is_completed:
        return []
    return [
        db.create_alert(alert)
        for alert in alerts_for_item(item, list(items), not_before=today)
    ]


def _notify_contacts(
    db: DbClient, contacts: Iterable[SubcontractorContact], today: date
) -> list[ScheduleAlert]:
    created = []
    for contact in contacts:
        if db.has_open_alert(contact.schedule.id, AlertType.CONTACT_SUBCONTRACTOR.value):
            continue
        created.append(db.create_alert(contact_alert(contact, today)))
    return created


def _recalculate(
    db: DbClient,
    project_id: str,
    today: date,
    focus_id: Optional[str] = None,
    focus_updates: Optional[Mapping[str, Any]] = None,
) -> ScheduleUpdate:
    items = db.list_schedules(project_id)
    result = recalc.regenerate(items, today, focus_id=focus_id, focus_updates=focus_updates)

    for schedule_id, patch in result.patches.items():
        db.update_schedule(schedule_id, patch)
    updated = sort_by_execution_order(db.list_schedules(project_id))

    moved_steps = {item.step_id for item in updated if item.id in result.patches}
    for item in updated:
        if item.id in result.patches or item.measurement_after_step_id in moved_steps:
            refresh_alerts(db, item, updated, today)

    contact_alerts = _notify_contacts(db, result.contacts, today)
    logger.info(
        "Recalculated project %s: %d steps moved, %d warnings",
        project_id,
        len(result.patches),
        len(result.warnings),
    )
    return ScheduleUpdate(
        items=updated, warnings=result.warnings, contact_alerts=contact_alerts
    )


def generate_project_schedule(
    db: DbClient,
    project: ProjectRecord,
    today: date,
    target_start_date: Optional[date] = None,
) -> GenerationOutcome:
    """
    Build the whole schedule from the catalog and store it. Steps already
    completed keep their stored dates.
    """
    target = target_start_date or project.target_start_date
    if target is None:
        raise ScheduleError("Une date de début des travaux est requise")

    generated = generate_schedule(
        project.id,
        target,
        today,
        current_stage=project.current_stage,
        square_footage=project.square_footage,
        references=db.list_reference_durations(),
    )

    saved = []
    for item in generated.items:
        existing = db.get_schedule_by_step(project.id, item.step_id)
        if existing and existing.is_completed:
            saved.append(existing)
            continue
        saved.append(db.upsert_schedule(item))

    alerts_created = sum(len(refresh_alerts(db, item, saved, today)) for item in saved)
    logger.info(
        "Generated %d steps for project %s starting %s",
        len(saved),
        project.id,
        generated.construction_start,
    )
    return GenerationOutcome(
        items=sort_by_execution_order(db.list_schedules(project.id)),
        construction_start=generated.construction_start,
        warning=generated.warning,
        alerts_created=alerts_created,
    )


def duration_summary(db: DbClient, project: ProjectRecord) -> DurationSummary:
    return total_duration(
        project.current_stage, project.square_footage, db.list_reference_durations()
    )


def create_item(
    db: DbClient, project_id: str, step_id: str, fields: Mapping[str, Any], today: date
) -> ScheduleItem:
    step = get_step(step_id)
    if step is None:
        raise ScheduleError(f"Étape inconnue: {step_id}")
    if db.get_schedule_by_step(project_id, step_id) is not None:
        raise ScheduleError(f"L'étape {step.title} existe déjà dans l'échéancier")

    item = new_schedule_item(
        project_id, step, fields.get("estimated_days") or default_duration(step_id)
    )
    overrides = {
        key: value
        for key, value in fields.items()
        if key in EDITABLE_FIELDS and value is not None
    }
    item = item.with_patch(overrides)
    if item.start_date and not item.end_date:
        item = item.with_patch({"end_date": end_date_for(item.start_date, item.duration)})

    saved = db.upsert_schedule(item)
    refresh_alerts(db, saved, db.list_schedules(project_id), today)
    return saved


def update_item(
    db: DbClient, schedule_id: str, updates: Mapping[str, Any], today: date
) -> ScheduleUpdate:
    item = get_item(db, schedule_id)
    clean = recalc.prepare_edit(item, updates, today)
    return _recalculate(db, item.project_id, today, focus_id=item.id, focus_updates=clean)


def delete_item(db: DbClient, schedule_id: str) -> None:
    db.delete_schedule(schedule_id)


def complete_step(
    db: DbClient, schedule_id: str, today: date, actual_days: Optional[int] = None
) -> ScheduleUpdate:
    item = get_item(db, schedule_id)
    if item.is_completed:
        raise ScheduleError(f"L'étape {item.step_name} est déjà terminée")
    return _recalculate(
        db,
        item.project_id,
        today,
        focus_id=item.id,
        focus_updates=recalc.completion_updates(today, actual_days),
    )


def uncomplete_step(db: DbClient, schedule_id: str, today: date) -> ScheduleUpdate:
    item = get_item(db, schedule_id)
    if not item.is_completed:
        raise ScheduleError(f"L'étape {item.step_name} n'est pas terminée")
    return _recalculate(
        db,
        item.project_id,
        today,
        focus_id=item.id,
        focus_updates=recalc.uncompletion_updates(),
    )


def complete_step_by_step_id(
    db: DbClient,
    project_id: str,
    step_id: str,
    today: date,
    actual_days: Optional[int] = None,
) -> ScheduleUpdate:
    """
    Complete a catalog step, creating it when the project has no item for it
    yet. Missing steps after it are created too so that they get dated.
    """
    step = get_step(step_id)
    if step is None:
        raise ScheduleError(f"Étape inconnue: {step_id}")

    order = step_execution_order(step_id)
    for later in CONSTRUCTION_STEPS:
        if step_execution_order(later.id) < order:
            continue
        if db.get_schedule_by_step(project_id, later.id) is None:
            db.upsert_schedule(
                new_schedule_item(project_id, later, default_duration(later.id))
            )

    item = db.get_schedule_by_step(project_id, step_id)
    return complete_step(db, item.id, today, actual_days)


def regenerate_project(db: DbClient, project_id: str, today: date) -> ScheduleUpdate:
    return _recalculate(db, project_id, today)


def find_conflicts(db: DbClient, project_id: str) -> list[TradeConflict]:
    return find_trade_conflicts(db.list_schedules(project_id))


def regenerate_item_alerts(db: DbClient, schedule_id: str, today: date) -> list[ScheduleAlert]:
    item = get_item(db, schedule_id)
    return refresh_alerts(db, item, db.list_schedules(item.project_id), today)


def sync_step_with_tasks(
    db: DbClient, project_id: str, step_id: str, today: date
) -> Optional[ScheduleUpdate]:
    """
    Give a step the span of its task dates and re-date the steps after it.
    Nothing moves while the step is unscheduled or its tasks lack a start or an end.
    """
    item = db.get_schedule_by_step(project_id, step_id)
    span = step_span(db.list_task_dates(project_id, step_id))
    if item is None or span is None:
        return None
    logger.info("Syncing step %s of project %s with its task dates", step_id, project_id)
    return _recalculate(
        db, project_id, today, focus_id=item.id, focus_updates=span_updates(span)
    )
