"""
HTTP routes for a project's construction schedule.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException

from maison_api import schedule_service
from maison_api.db import DbClient, ProjectRecord
from maison_api.dependencies import (
    get_current_user,
    get_db_client,
    get_owned_project,
    get_today,
)
from maison_api.routes import alert_model
from maison_api.schedule_service import ScheduleUpdate
from maison_api.schemas import (
    CompleteByStepRequest,
    CompleteStepRequest,
    ConflictModel,
    ConflictsResponse,
    DurationSummaryResponse,
    GenerateScheduleRequest,
    GenerateScheduleResponse,
    ListAlertsResponse,
    ScheduleItemCreate,
    ScheduleItemModel,
    ScheduleItemUpdate,
    ScheduleResponse,
    ScheduleUpdateResponse,
)
from planning.schedule import ScheduleItem

router = APIRouter()


def schedule_model(item: ScheduleItem) -> ScheduleItemModel:
    data = item.as_dict()
    data.pop("created_at", None)
    data.pop("updated_at", None)
    return ScheduleItemModel(**data)


def update_response(update: ScheduleUpdate) -> ScheduleUpdateResponse:
    return ScheduleUpdateResponse(
        items=[schedule_model(item) for item in update.items],
        warnings=update.warnings,
        contact_alerts=[alert_model(alert) for alert in update.contact_alerts],
    )


def _owned_item(
    schedule_id: str,
    user_id: str = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
) -> ScheduleItem:
    item = db.get_schedule(schedule_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Schedule item not found")
    project = db.get_project(item.project_id)
    if project is None or project.user_id != user_id:
        raise HTTPException(status_code=404, detail="Schedule item not found")
    return item


@router.get("/projects/{project_id}/schedule", response_model=ScheduleResponse)
def list_schedule(
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
    today: date = Depends(get_today),
):
    items = schedule_service.list_schedule(db, project.id, today)
    return ScheduleResponse(items=[schedule_model(item) for item in items])


@router.post(
    "/projects/{project_id}/schedule/generate", response_model=GenerateScheduleResponse
)
def generate_schedule(
    payload: GenerateScheduleRequest,
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
    today: date = Depends(get_today),
):
    outcome = schedule_service.generate_project_schedule(
        db, project, today, target_start_date=payload.target_start_date
    )
    return GenerateScheduleResponse(
        items=[schedule_model(item) for item in outcome.items],
        construction_start=outcome.construction_start,
        warning=outcome.warning,
        alerts_created=outcome.alerts_created,
    )


@router.get(
    "/projects/{project_id}/schedule/duration", response_model=DurationSummaryResponse
)
def duration_summary(
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
):
    summary = schedule_service.duration_summary(db, project)
    return DurationSummaryResponse(
        preparation_days=summary.preparation_days,
        construction_days=summary.construction_days,
        total_days=summary.total_days,
        square_footage=summary.square_footage,
        is_prorated=summary.is_prorated,
    )


@router.post(
    "/projects/{project_id}/schedule",
    response_model=ScheduleItemModel,
    status_code=201,
)
def create_schedule_item(
    payload: ScheduleItemCreate,
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
    today: date = Depends(get_today),
):
    fields = payload.model_dump(exclude={"step_id"}, exclude_none=True)
    item = schedule_service.create_item(db, project.id, payload.step_id, fields, today)
    return schedule_model(item)


@router.post(
    "/projects/{project_id}/schedule/regenerate", response_model=ScheduleUpdateResponse
)
def regenerate_schedule(
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
    today: date = Depends(get_today),
):
    return update_response(schedule_service.regenerate_project(db, project.id, today))


@router.post(
    "/projects/{project_id}/schedule/complete-step",
    response_model=ScheduleUpdateResponse,
)
def complete_step_by_step_id(
    payload: CompleteByStepRequest,
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
    today: date = Depends(get_today),
):
    update = schedule_service.complete_step_by_step_id(
        db, project.id, payload.step_id, today, payload.actual_days
    )
    return update_response(update)


@router.get(
    "/projects/{project_id}/schedule/conflicts", response_model=ConflictsResponse
)
def schedule_conflicts(
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
):
    conflicts = schedule_service.find_conflicts(db, project.id)
    return ConflictsResponse(
        conflicts=[ConflictModel(day=c.date, trades=list(c.trades)) for c in conflicts]
    )


@router.patch("/schedules/{schedule_id}", response_model=ScheduleUpdateResponse)
def update_schedule_item(
    payload: ScheduleItemUpdate,
    item: ScheduleItem = Depends(_owned_item),
    db: DbClient = Depends(get_db_client),
    today: date = Depends(get_today),
):
    """
    Apply the edit and re-date the steps after it. Sending `start_date: null`
    re-dates the step itself from the steps before it.
    """
    updates = payload.model_dump(exclude_unset=True)
    return update_response(schedule_service.update_item(db, item.id, updates, today))


@router.delete("/schedules/{schedule_id}", status_code=204)
def delete_schedule_item(
    item: ScheduleItem = Depends(_owned_item),
    db: DbClient = Depends(get_db_client),
):
    schedule_service.delete_item(db, item.id)


@router.post("/schedules/{schedule_id}/complete", response_model=ScheduleUpdateResponse)
def complete_step(
    payload: CompleteStepRequest,
    item: ScheduleItem = Depends(_owned_item),
    db: DbClient = Depends(get_db_client),
    today: date = Depends(get_today),
):
    update = schedule_service.complete_step(db, item.id, today, payload.actual_days)
    return update_response(update)


@router.post(
    "/schedules/{schedule_id}/uncomplete", response_model=ScheduleUpdateResponse
)
def uncomplete_step(
    item: ScheduleItem = Depends(_owned_item),
    db: DbClient = Depends(get_db_client),
    today: date = Depends(get_today),
):
    return update_response(schedule_service.uncomplete_step(db, item.id, today))


@router.post("/schedules/{schedule_id}/alerts", response_model=ListAlertsResponse)
def regenerate_item_alerts(
    item: ScheduleItem = Depends(_owned_item),
    db: DbClient = Depends(get_db_client),
    today: date = Depends(get_today),
):
    alerts = schedule_service.regenerate_item_alerts(db, item.id, today)
    return ListAlertsResponse(alerts=[alert_model(alert) for alert in alerts])
