"""
HTTP routes for the per-step task checklist and task dates.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from maison_api import schedule_service
from maison_api.db import DbClient, ProjectRecord
from maison_api.dependencies import get_db_client, get_owned_project, get_today
from maison_api.schedule_routes import update_response
from maison_api.schemas import (
    CompletedTaskModel,
    ListCompletedTasksResponse,
    ListTaskDatesResponse,
    TaskDateModel,
    TaskDateUpdate,
    TaskDateUpdateResponse,
    TaskToggleResponse,
)
from planning.catalog import get_step
from planning.tasks import TaskDate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects/{project_id}")


def _known_step(step_id: str) -> str:
    if get_step(step_id) is None:
        raise HTTPException(status_code=400, detail=f"Unknown step: {step_id}")
    return step_id


def task_date_model(task_date: TaskDate) -> TaskDateModel:
    return TaskDateModel(
        step_id=task_date.step_id,
        task_id=task_date.task_id,
        start_date=task_date.start_date,
        end_date=task_date.end_date,
        notes=task_date.notes,
        updated_at=task_date.updated_at,
    )


@router.get("/tasks", response_model=ListCompletedTasksResponse)
def list_completed_tasks(
    step_id: Optional[str] = Query(None),
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
):
    tasks = db.list_completed_tasks(project.id, step_id=step_id)
    return ListCompletedTasksResponse(
        tasks=[
            CompletedTaskModel(
                step_id=t.step_id, task_id=t.task_id, completed_at=t.completed_at
            )
            for t in tasks
        ]
    )


@router.post("/tasks/{step_id}/{task_id}/toggle", response_model=TaskToggleResponse)
def toggle_task(
    step_id: str,
    task_id: str,
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
):
    record = db.toggle_task(project.id, _known_step(step_id), task_id)
    return TaskToggleResponse(
        step_id=step_id,
        task_id=task_id,
        completed=record is not None,
        completed_at=record.completed_at if record else None,
    )


@router.get("/task-dates", response_model=ListTaskDatesResponse)
def list_task_dates(
    step_id: Optional[str] = Query(None),
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
):
    dates = db.list_task_dates(project.id, step_id=step_id)
    return ListTaskDatesResponse(task_dates=[task_date_model(t) for t in dates])


@router.put("/task-dates/{step_id}/{task_id}", response_model=TaskDateUpdateResponse)
def upsert_task_date(
    step_id: str,
    task_id: str,
    payload: TaskDateUpdate,
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
    today: date = Depends(get_today),
):
    """
    Store the fields sent for one task, then move the step to the span of its
    task dates. Fields left out of the body keep their stored value.
    """
    _known_step(step_id)
    changes = payload.model_dump(exclude_unset=True)
    stored = db.list_task_dates(project.id, step_id)
    current = next(
        (t for t in stored if t.task_id == task_id), TaskDate(project.id, step_id, task_id)
    )
    merged = current.with_changes(changes)
    if merged.start_date and merged.end_date and merged.end_date < merged.start_date:
        raise HTTPException(status_code=400, detail="end_date is before start_date")

    saved = db.upsert_task_date(project.id, step_id, task_id, changes)
    update = schedule_service.sync_step_with_tasks(db, project.id, step_id, today)
    return TaskDateUpdateResponse(
        task_date=task_date_model(saved),
        schedule=update_response(update) if update else None,
    )


@router.delete("/task-dates/{step_id}/{task_id}", status_code=204)
def delete_task_date(
    step_id: str,
    task_id: str,
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
    today: date = Depends(get_today),
):
    db.delete_task_date(project.id, step_id, task_id)
    schedule_service.sync_step_with_tasks(db, project.id, step_id, today)
