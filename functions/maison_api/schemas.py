"""
Pydantic schemas for the project-planning API.
"""

from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    project_type: Optional[str] = None
    square_footage: Optional[float] = Field(None, gt=0)
    current_stage: Optional[str] = None
    target_start_date: Optional[date] = None
    address: Optional[str] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    project_type: Optional[str] = None
    square_footage: Optional[float] = Field(None, gt=0)
    current_stage: Optional[str] = None
    target_start_date: Optional[date] = None
    address: Optional[str] = None


class ProjectResponse(BaseModel):
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    project_type: Optional[str] = None
    square_footage: Optional[float] = None
    current_stage: Optional[str] = None
    target_start_date: Optional[date] = None
    address: Optional[str] = None
    created_at: float
    updated_at: float


class ListProjectsResponse(BaseModel):
    projects: list[ProjectResponse]


class BudgetItemModel(BaseModel):
    name: str
    cost: float = 0
    quantity: str = ""
    unit: str = ""


class BudgetCategoryModel(BaseModel):
    name: str
    budget: float = 0
    spent: float = 0
    color: str = "#3B82F6"
    description: str = ""
    items: list[BudgetItemModel] = Field(default_factory=list)


class BudgetResponse(BaseModel):
    categories: list[BudgetCategoryModel]
    total_budget: float
    total_spent: float


class BudgetReplaceRequest(BaseModel):
    categories: list[BudgetCategoryModel]


class BudgetImportRequest(BaseModel):
    analysis: list[dict]


class BudgetImportResponse(BaseModel):
    categories: list[BudgetCategoryModel]
    contingency: float
    taxes: float
    sub_total: float


class ScheduleItemModel(BaseModel):
    id: str
    project_id: str
    step_id: str
    step_name: str
    trade_type: str
    trade_color: str
    estimated_days: int
    actual_days: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    supplier_name: Optional[str] = None
    supplier_phone: Optional[str] = None
    supplier_schedule_lead_days: int
    fabrication_lead_days: int
    fabrication_start_date: Optional[date] = None
    measurement_required: bool
    measurement_after_step_id: Optional[str] = None
    measurement_notes: Optional[str] = None
    status: str
    notes: Optional[str] = None
    is_manual_date: bool


class ScheduleItemCreate(BaseModel):
    step_id: str
    estimated_days: Optional[int] = Field(None, ge=1)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    supplier_name: Optional[str] = None
    supplier_phone: Optional[str] = None
    supplier_schedule_lead_days: Optional[int] = Field(None, ge=0)
    fabrication_lead_days: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    is_manual_date: Optional[bool] = None


class ScheduleItemUpdate(BaseModel):
    """Only the fields present in the request body are applied."""

    step_name: Optional[str] = None
    trade_type: Optional[str] = None
    trade_color: Optional[str] = None
    estimated_days: Optional[int] = Field(None, ge=1)
    actual_days: Optional[int] = Field(None, ge=1)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_manual_date: Optional[bool] = None
    supplier_name: Optional[str] = None
    supplier_phone: Optional[str] = None
    supplier_schedule_lead_days: Optional[int] = Field(None, ge=0)
    fabrication_lead_days: Optional[int] = Field(None, ge=0)
    fabrication_start_date: Optional[date] = None
    measurement_required: Optional[bool] = None
    measurement_after_step_id: Optional[str] = None
    measurement_notes: Optional[str] = None
    status: Optional[Literal["pending", "scheduled", "in_progress", "completed"]] = None
    notes: Optional[str] = None


class AlertModel(BaseModel):
    id: str
    project_id: str
    schedule_id: str
    alert_type: str
    alert_date: date
    message: str
    is_dismissed: bool


class ListAlertsResponse(BaseModel):
    alerts: list[AlertModel]


class ScheduleResponse(BaseModel):
    items: list[ScheduleItemModel]


class ScheduleUpdateResponse(BaseModel):
    items: list[ScheduleItemModel]
    warnings: list[str]
    contact_alerts: list[AlertModel]


class GenerateScheduleRequest(BaseModel):
    target_start_date: Optional[date] = None


class GenerateScheduleResponse(BaseModel):
    items: list[ScheduleItemModel]
    construction_start: date
    warning: Optional[str] = None
    alerts_created: int


class DurationSummaryResponse(BaseModel):
    preparation_days: int
    construction_days: int
    total_days: int
    square_footage: Optional[float] = None
    is_prorated: bool


class CompleteStepRequest(BaseModel):
    actual_days: Optional[int] = Field(None, ge=1)


class CompleteByStepRequest(BaseModel):
    step_id: str
    actual_days: Optional[int] = Field(None, ge=1)


class ConflictModel(BaseModel):
    day: date
    trades: list[str]


class ConflictsResponse(BaseModel):
    conflicts: list[ConflictModel]


class CompletedTaskModel(BaseModel):
    step_id: str
    task_id: str
    completed_at: float


class ListCompletedTasksResponse(BaseModel):
    tasks: list[CompletedTaskModel]


class TaskToggleResponse(BaseModel):
    step_id: str
    task_id: str
    completed: bool
    completed_at: Optional[float] = None


class TaskDateModel(BaseModel):
    step_id: str
    task_id: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None
    updated_at: float


class ListTaskDatesResponse(BaseModel):
    task_dates: list[TaskDateModel]


class TaskDateUpdate(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None


class TaskDateUpdateResponse(BaseModel):
    task_date: TaskDateModel
    schedule: Optional[ScheduleUpdateResponse] = None


class ReferenceDurationModel(BaseModel):
    step_id: str
    step_name: str
    base_duration_days: int = Field(..., ge=1)
    base_square_footage: int = Field(2000, gt=0)
    min_duration_days: Optional[int] = Field(None, ge=1)
    max_duration_days: Optional[int] = Field(None, ge=1)
    scaling_factor: float = 1.0
    notes: Optional[str] = None


class ListReferenceDurationsResponse(BaseModel):
    durations: list[ReferenceDurationModel]


class PhotoResponse(BaseModel):
    id: str
    project_id: str
    step_id: str
    file_name: str
    file_path: str
    file_size: int
    content_type: str
    category: str
    created_at: float
    url: str


class ListPhotosResponse(BaseModel):
    photos: list[PhotoResponse]


class SignUrlResponse(BaseModel):
    url: str


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., max_length=8000)


class BuildingCodeRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=4000)
    history: list[ChatMessage] = Field(default_factory=list)
    project_id: Optional[str] = None


class BuildingCodeResponse(BaseModel):
    type: Literal["clarification", "answer"]
    message: str
    result: Optional[dict] = None
    disclaimer: Optional[str] = None


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(..., min_length=1)


class QuoteAnalysisRequest(BaseModel):
    project_id: str
    trade_name: str = Field(..., min_length=1)
    trade_description: str = ""
    document_ids: list[str] = Field(..., min_length=1)
    planned_budget: Optional[float] = Field(None, ge=0)


class PlanAnalysisRequest(BaseModel):
    project_id: str
    mode: Literal["plan", "manual"] = "plan"
    document_ids: list[str] = Field(default_factory=list)
    finish_quality: Literal["economique", "standard", "haut-de-gamme"] = "standard"
    project_type: Optional[str] = None
    square_footage: Optional[float] = Field(None, gt=0)
    number_of_floors: Optional[int] = Field(None, ge=1)
    has_garage: bool = False
    additional_notes: Optional[str] = Field(None, max_length=4000)
    apply_to_budget: bool = False


class AnalysisJobResponse(BaseModel):
    job_id: str
    status: str


class JobStatusResponse(BaseModel):
    job_id: str
    project_id: Optional[str] = None
    kind: str
    trade_name: str
    status: str
    result: Optional[str] = None
    error: Optional[str] = None


class AiUsageResponse(BaseModel):
    count: int
