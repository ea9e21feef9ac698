"""
HTTP routes for projects, budgets, alerts, reference durations and photos.
"""

from __future__ import annotations

import dataclasses
import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from maison_api.config import get_settings
from maison_api.db import DbClient, PhotoRecord, ProjectRecord
from maison_api.dependencies import (
    get_current_user,
    get_db_client,
    get_owned_project,
    get_storage_client,
)
from maison_api.images import InvalidUploadError, prepare_upload
from maison_api.schemas import (
    AlertModel,
    BudgetCategoryModel,
    BudgetImportRequest,
    BudgetImportResponse,
    BudgetReplaceRequest,
    BudgetResponse,
    ListAlertsResponse,
    ListPhotosResponse,
    ListProjectsResponse,
    ListReferenceDurationsResponse,
    PhotoResponse,
    ProjectCreate,
    ProjectResponse,
    ProjectUpdate,
    ReferenceDurationModel,
    SignUrlResponse,
)
from maison_api.storage import StorageClient
from planning.budget import (
    BudgetCategory,
    BudgetItem,
    default_categories,
    map_analysis_to_categories,
)
from planning.catalog import get_step
from planning.schedule import ReferenceDuration, ScheduleAlert

logger = logging.getLogger(__name__)

router = APIRouter()


def project_response(project: ProjectRecord) -> ProjectResponse:
    return ProjectResponse(**project.as_dict())


def alert_model(alert: ScheduleAlert) -> AlertModel:
    return AlertModel(
        id=alert.id,
        project_id=alert.project_id,
        schedule_id=alert.schedule_id,
        alert_type=alert.alert_type,
        alert_date=alert.alert_date,
        message=alert.message,
        is_dismissed=alert.is_dismissed,
    )


def _budget_response(categories: list[BudgetCategory]) -> BudgetResponse:
    return BudgetResponse(
        categories=[BudgetCategoryModel(**c.as_dict()) for c in categories],
        total_budget=sum(c.budget for c in categories),
        total_spent=sum(c.spent for c in categories),
    )


def _to_category(model: BudgetCategoryModel) -> BudgetCategory:
    return BudgetCategory(
        name=model.name,
        budget=model.budget,
        spent=model.spent,
        color=model.color,
        description=model.description,
        items=[BudgetItem(**item.model_dump()) for item in model.items],
    )


# Projects


@router.post("/projects", response_model=ProjectResponse, status_code=201)
def create_project(
    payload: ProjectCreate,
    user_id: str = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    fields = payload.model_dump(exclude={"name"})
    project = db.create_project(user_id, payload.name, **fields)
    logger.info("Created project %s for user %s", project.id, user_id)
    return project_response(project)


@router.get("/projects", response_model=ListProjectsResponse)
def list_projects(
    user_id: str = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return ListProjectsResponse(
        projects=[project_response(p) for p in db.list_projects(user_id)]
    )


@router.get("/projects/{project_id}", response_model=ProjectResponse)
def get_project(project: ProjectRecord = Depends(get_owned_project)):
    return project_response(project)


@router.patch("/projects/{project_id}", response_model=ProjectResponse)
def update_project(
    payload: ProjectUpdate,
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
):
    updated = db.update_project(project.id, payload.model_dump(exclude_unset=True))
    return project_response(updated)


@router.delete("/projects/{project_id}", status_code=204)
def delete_project(
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    for photo in db.list_photos(project.id):
        storage.delete(photo.file_path)
    db.delete_project(project.id)
    logger.info("Deleted project %s", project.id)


# Budget


@router.get("/budget/defaults", response_model=BudgetResponse)
def budget_defaults(user_id: str = Depends(get_current_user)):
    return _budget_response(default_categories())


@router.get("/projects/{project_id}/budget", response_model=BudgetResponse)
def get_budget(
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
):
    return _budget_response(db.get_budget(project.id))


@router.put("/projects/{project_id}/budget", response_model=BudgetResponse)
def replace_budget(
    payload: BudgetReplaceRequest,
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
):
    categories = [_to_category(c) for c in payload.categories]
    return _budget_response(db.replace_budget(project.id, categories))


@router.post("/projects/{project_id}/budget/import", response_model=BudgetImportResponse)
def import_budget_analysis(
    payload: BudgetImportRequest,
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
):
    """
    Spread an AI budget analysis over the step categories and store it.
    """
    mapped = map_analysis_to_categories(payload.analysis)
    saved = db.replace_budget(project.id, mapped.categories)
    return BudgetImportResponse(
        categories=[BudgetCategoryModel(**c.as_dict()) for c in saved],
        contingency=mapped.contingency,
        taxes=mapped.taxes,
        sub_total=mapped.sub_total,
    )


# Alerts


@router.get("/projects/{project_id}/alerts", response_model=ListAlertsResponse)
def list_alerts(
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
):
    return ListAlertsResponse(
        alerts=[alert_model(a) for a in db.list_alerts(project.id)]
    )


@router.post(
    "/projects/{project_id}/alerts/{alert_id}/dismiss", response_model=AlertModel
)
def dismiss_alert(
    alert_id: str,
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
):
    known = {a.id for a in db.list_alerts(project.id, include_dismissed=True)}
    if alert_id not in known:
        raise HTTPException(status_code=404, detail="Alert not found")
    return alert_model(db.dismiss_alert(alert_id))


# Reference durations


@router.get("/reference-durations", response_model=ListReferenceDurationsResponse)
def list_reference_durations(
    user_id: str = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    refs = db.list_reference_durations().values()
    return ListReferenceDurationsResponse(
        durations=[
            ReferenceDurationModel(**dataclasses.asdict(ref))
            for ref in sorted(refs, key=lambda r: r.step_id)
        ]
    )


@router.put("/reference-durations/{step_id}", response_model=ReferenceDurationModel)
def upsert_reference_duration(
    step_id: str,
    payload: ReferenceDurationModel,
    user_id: str = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    if get_step(step_id) is None:
        raise HTTPException(status_code=400, detail=f"Unknown step: {step_id}")
    if payload.step_id != step_id:
        raise HTTPException(status_code=400, detail="step_id mismatch")
    db.upsert_reference_duration(ReferenceDuration(**payload.model_dump()))
    return payload


# Photos and documents


def _photo_response(photo: PhotoRecord, storage: StorageClient) -> PhotoResponse:
    return PhotoResponse(
        id=photo.id,
        project_id=photo.project_id,
        step_id=photo.step_id,
        file_name=photo.file_name,
        file_path=photo.file_path,
        file_size=photo.file_size,
        content_type=photo.content_type,
        category=photo.category,
        created_at=photo.created_at,
        url=storage.presign_get(photo.file_path),
    )


@router.post(
    "/projects/{project_id}/photos", response_model=PhotoResponse, status_code=201
)
async def upload_photo(
    file: UploadFile = File(...),
    step_id: str = Form(...),
    category: str = Form("photo"),
    user_id: str = Depends(get_current_user),
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    if category not in ("photo", "document"):
        raise HTTPException(status_code=400, detail="category must be photo or document")
    if get_step(step_id) is None:
        raise HTTPException(status_code=400, detail=f"Unknown step: {step_id}")
    data = await file.read()
    try:
        prepared = prepare_upload(
            file.filename or "upload",
            data,
            file.content_type or "application/octet-stream",
            max_bytes=get_settings().max_image_bytes,
        )
    except InvalidUploadError as e:
        raise HTTPException(status_code=400, detail=str(e))

    photo_id = uuid4().hex
    path = f"projects/{project.id}/{step_id}/{photo_id}-{prepared.file_name}"
    storage.upload_bytes(path, prepared.data, prepared.content_type)
    photo = db.create_photo(
        PhotoRecord(
            id=photo_id,
            project_id=project.id,
            user_id=user_id,
            step_id=step_id,
            file_name=prepared.file_name,
            file_path=path,
            file_size=len(prepared.data),
            content_type=prepared.content_type,
            category=category,
        )
    )
    return _photo_response(photo, storage)


@router.get("/projects/{project_id}/photos", response_model=ListPhotosResponse)
def list_photos(
    step_id: str | None = Query(None),
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    photos = db.list_photos(project.id, step_id=step_id)
    return ListPhotosResponse(photos=[_photo_response(p, storage) for p in photos])


@router.delete("/projects/{project_id}/photos/{photo_id}", status_code=204)
def delete_photo(
    photo_id: str,
    project: ProjectRecord = Depends(get_owned_project),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    photo = db.get_photo(photo_id)
    if photo is None or photo.project_id != project.id:
        raise HTTPException(status_code=404, detail="Photo not found")
    storage.delete(photo.file_path)
    db.delete_photo(photo_id)


@router.get("/projects/{project_id}/sign-url", response_model=SignUrlResponse)
def sign_url(
    path: str = Query(..., description="Object path in storage"),
    op: str = Query("get", pattern="^(get|put)$"),
    expires_in: int = Query(3600, ge=60, le=86400),
    project: ProjectRecord = Depends(get_owned_project),
    storage: StorageClient = Depends(get_storage_client),
):
    if not path.startswith(f"projects/{project.id}/") or ".." in path:
        raise HTTPException(status_code=403, detail="Path outside of project storage")
    if op == "get":
        url = storage.presign_get(path, expires_in=expires_in)
    else:
        url = storage.presign_put(path, expires_in=expires_in)
    return SignUrlResponse(url=url)
