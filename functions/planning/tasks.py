"""
Per-step task checklist: completed tasks and planned task dates.

A step's tasks are identified by free-form ids chosen by the client; the
checklist only ties them to a catalog step. Task dates roll up into the
step's own dates through `step_span`.
"""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Mapping, Optional

from planning.business_days import difference_in_business_days

TASK_DATE_FIELDS = ("start_date", "end_date", "notes")


@dataclass
class CompletedTask:
    project_id: str
    step_id: str
    task_id: str
    id: Optional[str] = None
    completed_at: float = field(default_factory=lambda: time.time())


@dataclass
class TaskDate:
    project_id: str
    step_id: str
    task_id: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None
    id: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def with_changes(self, changes: Mapping[str, Any]) -> "TaskDate":
        """Copy with only the known fields present in `changes` replaced."""
        values = {k: v for k, v in changes.items() if k in TASK_DATE_FIELDS}
        return dataclasses.replace(self, **values, updated_at=time.time())


def step_span(task_dates: Iterable[TaskDate]) -> Optional[tuple[date, date]]:
    """
    Earliest task start and latest task end of a step, or None when no task
    has a start or no task has an end.
    """
    dated = list(task_dates)
    starts = [t.start_date for t in dated if t.start_date]
    ends = [t.end_date for t in dated if t.end_date]
    if not starts or not ends:
        return None
    return min(starts), max(ends)


def span_updates(span: tuple[date, date]) -> dict:
    """Schedule edit that gives a step the dates of its tasks."""
    start, end = span
    return {
        "start_date": start,
        "end_date": end,
        "actual_days": max(1, difference_in_business_days(end, start) + 1),
    }
