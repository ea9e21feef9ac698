"""
Schedule records shared by the planning functions and the API layer.
"""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Optional

from planning.catalog import DEFAULT_FABRICATION_LEAD_DAYS, DEFAULT_SUPPLIER_LEAD_DAYS


class ScheduleStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class AlertType(str, Enum):
    SUPPLIER_CALL = "supplier_call"
    FABRICATION_START = "fabrication_start"
    MEASUREMENT = "measurement"
    CONTACT_SUBCONTRACTOR = "contact_subcontractor"


class ScheduleError(Exception):
    """Raised when a schedule operation cannot be applied."""


@dataclass
class ScheduleItem:
    project_id: str
    step_id: str
    step_name: str
    trade_type: str
    trade_color: str
    estimated_days: int
    id: str = ""
    actual_days: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    supplier_name: Optional[str] = None
    supplier_phone: Optional[str] = None
    supplier_schedule_lead_days: int = DEFAULT_SUPPLIER_LEAD_DAYS
    fabrication_lead_days: int = DEFAULT_FABRICATION_LEAD_DAYS
    fabrication_start_date: Optional[date] = None
    measurement_required: bool = False
    measurement_after_step_id: Optional[str] = None
    measurement_notes: Optional[str] = None
    status: str = ScheduleStatus.SCHEDULED.value
    notes: Optional[str] = None
    is_manual_date: bool = False
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    @property
    def duration(self) -> int:
        days = self.actual_days if self.actual_days is not None else self.estimated_days
        return days or 1

    @property
    def is_completed(self) -> bool:
        return self.status == ScheduleStatus.COMPLETED

    def with_patch(self, patch: dict[str, Any]) -> "ScheduleItem":
        return dataclasses.replace(self, **patch)

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass
class ScheduleAlert:
    project_id: str
    schedule_id: str
    alert_type: str
    alert_date: date
    message: str
    id: str = ""
    is_dismissed: bool = False
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class ReferenceDuration:
    """Measured duration of a step for a house of `base_square_footage`."""

    step_id: str
    step_name: str
    base_duration_days: int
    base_square_footage: int = 2000
    min_duration_days: Optional[int] = None
    max_duration_days: Optional[int] = None
    scaling_factor: float = 1.0
    notes: Optional[str] = None


# Fields a client may change on an existing schedule item.
EDITABLE_FIELDS = (
    "step_name",
    "trade_type",
    "trade_color",
    "estimated_days",
    "actual_days",
    "start_date",
    "end_date",
    "is_manual_date",
    "supplier_name",
    "supplier_phone",
    "supplier_schedule_lead_days",
    "fabrication_lead_days",
    "fabrication_start_date",
    "measurement_required",
    "measurement_after_step_id",
    "measurement_notes",
    "status",
    "notes",
)
