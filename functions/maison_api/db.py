"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import dataclasses
import time
import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    Float,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    func,
    select,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from planning.budget import BudgetCategory, BudgetItem
from planning.schedule import ReferenceDuration, ScheduleAlert, ScheduleItem
from planning.tasks import CompletedTask, TaskDate


class NotFoundError(Exception):
    """Raised when a record does not exist."""


class JobStatus(str, Enum):
    WAITING = "waiting"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class JobKind(str, Enum):
    QUOTES = "quotes"
    PLAN = "plan"


@dataclass
class ProjectRecord:
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    project_type: Optional[str] = None
    square_footage: Optional[float] = None
    current_stage: Optional[str] = None
    target_start_date: Optional[date] = None
    address: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass
class PhotoRecord:
    id: str
    project_id: str
    user_id: str
    step_id: str
    file_name: str
    file_path: str
    file_size: int
    content_type: str
    category: str = "photo"
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass
class AnalysisJobRecord:
    job_id: str
    user_id: str
    project_id: Optional[str]
    trade_name: str
    trade_description: str
    document_paths: list[str]
    planned_budget: Optional[float] = None
    kind: JobKind = JobKind.QUOTES
    options: dict = field(default_factory=dict)
    status: JobStatus = JobStatus.WAITING
    result: Optional[str] = None
    error: Optional[str] = None
    locked_at: Optional[float] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "project_id": self.project_id,
            "kind": self.kind.value,
            "trade_name": self.trade_name,
            "status": self.status.value,
            "result": self.result,
            "error": self.error,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


PROJECT_FIELDS = (
    "name",
    "description",
    "project_type",
    "square_footage",
    "current_stage",
    "target_start_date",
    "address",
)


class DbClient(Protocol):
    """Interface for database access."""

    # Projects
    def create_project(self, user_id: str, name: str, **fields: Any) -> ProjectRecord:
        ...

    def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        ...

    def list_projects(self, user_id: str) -> list[ProjectRecord]:
        ...

    def update_project(self, project_id: str, patch: dict) -> ProjectRecord:
        ...

    def delete_project(self, project_id: str) -> None:
        ...

    # Budget
    def get_budget(self, project_id: str) -> list[BudgetCategory]:
        ...

    def replace_budget(
        self, project_id: str, categories: list[BudgetCategory]
    ) -> list[BudgetCategory]:
        ...

    # Schedule
    def list_schedules(self, project_id: str) -> list[ScheduleItem]:
        ...

    def get_schedule(self, schedule_id: str) -> Optional[ScheduleItem]:
        ...

    def get_schedule_by_step(
        self, project_id: str, step_id: str
    ) -> Optional[ScheduleItem]:
        ...

    def upsert_schedule(self, item: ScheduleItem) -> ScheduleItem:
        ...

    def update_schedule(self, schedule_id: str, patch: dict) -> ScheduleItem:
        ...

    def delete_schedule(self, schedule_id: str) -> None:
        ...

    # Alerts
    def list_alerts(
        self, project_id: str, include_dismissed: bool = False
    ) -> list[ScheduleAlert]:
        ...

    def create_alert(self, alert: ScheduleAlert) -> ScheduleAlert:
        ...

    def delete_alerts_for_schedule(
        self, schedule_id: str, alert_types: Optional[tuple[str, ...]] = None
    ) -> int:
        ...

    def has_open_alert(self, schedule_id: str, alert_type: str) -> bool:
        ...

    def dismiss_alert(self, alert_id: str) -> ScheduleAlert:
        ...

    # Reference durations
    def list_reference_durations(self) -> dict[str, ReferenceDuration]:
        ...

    def upsert_reference_duration(self, ref: ReferenceDuration) -> None:
        ...

    # Photos / documents
    def create_photo(self, photo: PhotoRecord) -> PhotoRecord:
        ...

    def list_photos(
        self, project_id: str, step_id: Optional[str] = None
    ) -> list[PhotoRecord]:
        ...

    def get_photo(self, photo_id: str) -> Optional[PhotoRecord]:
        ...

    def delete_photo(self, photo_id: str) -> None:
        ...

    # Task checklist
    def list_completed_tasks(
        self, project_id: str, step_id: Optional[str] = None
    ) -> list[CompletedTask]:
        ...

    def toggle_task(
        self, project_id: str, step_id: str, task_id: str
    ) -> Optional[CompletedTask]:
        """Mark the task done, or undo it. Returns the new record, None once undone."""
        ...

    def list_task_dates(
        self, project_id: str, step_id: Optional[str] = None
    ) -> list[TaskDate]:
        ...

    def upsert_task_date(
        self, project_id: str, step_id: str, task_id: str, changes: dict
    ) -> TaskDate:
        ...

    def delete_task_date(self, project_id: str, step_id: str, task_id: str) -> None:
        ...

    # Analysis jobs
    def create_analysis_job(
        self,
        user_id: str,
        project_id: Optional[str],
        trade_name: str,
        trade_description: str,
        document_paths: list[str],
        planned_budget: Optional[float] = None,
        kind: JobKind = JobKind.QUOTES,
        options: Optional[dict] = None,
    ) -> AnalysisJobRecord:
        ...

    def get_job(self, job_id: str) -> Optional[AnalysisJobRecord]:
        ...

    def claim_job(self, job_id: str) -> Optional[AnalysisJobRecord]:
        ...

    def claim_next_waiting_job(self) -> Optional[AnalysisJobRecord]:
        ...

    def finish_job(
        self,
        job_id: str,
        status: JobStatus,
        result: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        ...

    def requeue_stale_locks(self, lock_timeout_seconds: float = 600) -> int:
        ...

    # AI usage
    def record_ai_usage(
        self, user_id: str, analysis_type: str, project_id: Optional[str] = None
    ) -> None:
        ...

    def count_ai_usage(self, user_id: str) -> int:
        ...


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.projects: Dict[str, ProjectRecord] = {}
        self.budgets: Dict[str, list[BudgetCategory]] = {}
        self.schedules: Dict[str, ScheduleItem] = {}
        self.alerts: Dict[str, ScheduleAlert] = {}
        self.references: Dict[str, ReferenceDuration] = {}
        self.photos: Dict[str, PhotoRecord] = {}
        self.completed_tasks: Dict[str, CompletedTask] = {}
        self.task_dates: Dict[str, TaskDate] = {}
        self.jobs: Dict[str, AnalysisJobRecord] = {}
        self.ai_usage: list[tuple[str, str, Optional[str], float]] = []

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.projects.clear()
        self.budgets.clear()
        self.schedules.clear()
        self.alerts.clear()
        self.references.clear()
        self.photos.clear()
        self.completed_tasks.clear()
        self.task_dates.clear()
        self.jobs.clear()
        self.ai_usage.clear()

    def create_project(self, user_id: str, name: str, **fields: Any) -> ProjectRecord:
        record = ProjectRecord(id=_new_id(), user_id=user_id, name=name, **fields)
        self.projects[record.id] = record
        return dataclasses.replace(record)

    def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        record = self.projects.get(project_id)
        return dataclasses.replace(record) if record else None

    def list_projects(self, user_id: str) -> list[ProjectRecord]:
        records = [p for p in self.projects.values() if p.user_id == user_id]
        return sorted(records, key=lambda p: p.created_at, reverse=True)

    def update_project(self, project_id: str, patch: dict) -> ProjectRecord:
        record = self.projects.get(project_id)
        if record is None:
            raise NotFoundError(project_id)
        changes = {k: v for k, v in patch.items() if k in PROJECT_FIELDS}
        record = dataclasses.replace(record, updated_at=time.time(), **changes)
        self.projects[project_id] = record
        return dataclasses.replace(record)

    def delete_project(self, project_id: str) -> None:
        if self.projects.pop(project_id, None) is None:
            raise NotFoundError(project_id)
        self.budgets.pop(project_id, None)
        for store in (
            self.schedules,
            self.alerts,
            self.photos,
            self.completed_tasks,
            self.task_dates,
        ):
            for key in [k for k, v in store.items() if v.project_id == project_id]:
                del store[key]

    def get_budget(self, project_id: str) -> list[BudgetCategory]:
        return [dataclasses.replace(c) for c in self.budgets.get(project_id, [])]

    def replace_budget(
        self, project_id: str, categories: list[BudgetCategory]
    ) -> list[BudgetCategory]:
        self.budgets[project_id] = [dataclasses.replace(c) for c in categories]
        return self.get_budget(project_id)

    def list_schedules(self, project_id: str) -> list[ScheduleItem]:
        return [
            dataclasses.replace(s)
            for s in self.schedules.values()
            if s.project_id == project_id
        ]

    def get_schedule(self, schedule_id: str) -> Optional[ScheduleItem]:
        item = self.schedules.get(schedule_id)
        return dataclasses.replace(item) if item else None

    def get_schedule_by_step(
        self, project_id: str, step_id: str
    ) -> Optional[ScheduleItem]:
        for item in self.schedules.values():
            if item.project_id == project_id and item.step_id == step_id:
                return dataclasses.replace(item)
        return None

    def upsert_schedule(self, item: ScheduleItem) -> ScheduleItem:
        existing = self.get_schedule_by_step(item.project_id, item.step_id)
        now = time.time()
        if existing:
            stored = dataclasses.replace(
                item, id=existing.id, created_at=existing.created_at, updated_at=now
            )
        else:
            stored = dataclasses.replace(item, id=item.id or _new_id(), updated_at=now)
        self.schedules[stored.id] = stored
        return dataclasses.replace(stored)

    def update_schedule(self, schedule_id: str, patch: dict) -> ScheduleItem:
        item = self.schedules.get(schedule_id)
        if item is None:
            raise NotFoundError(schedule_id)
        item = item.with_patch({**patch, "updated_at": time.time()})
        self.schedules[schedule_id] = item
        return dataclasses.replace(item)

    def delete_schedule(self, schedule_id: str) -> None:
        if self.schedules.pop(schedule_id, None) is None:
            raise NotFoundError(schedule_id)
        self.delete_alerts_for_schedule(schedule_id)

    def list_alerts(
        self, project_id: str, include_dismissed: bool = False
    ) -> list[ScheduleAlert]:
        alerts = [
            dataclasses.replace(a)
            for a in self.alerts.values()
            if a.project_id == project_id and (include_dismissed or not a.is_dismissed)
        ]
        return sorted(alerts, key=lambda a: a.alert_date)

    def create_alert(self, alert: ScheduleAlert) -> ScheduleAlert:
        stored = dataclasses.replace(alert, id=alert.id or _new_id())
        self.alerts[stored.id] = stored
        return dataclasses.replace(stored)

    def delete_alerts_for_schedule(
        self, schedule_id: str, alert_types: Optional[tuple[str, ...]] = None
    ) -> int:
        doomed = [
            key
            for key, alert in self.alerts.items()
            if alert.schedule_id == schedule_id
            and (alert_types is None or alert.alert_type in alert_types)
        ]
        for key in doomed:
            del self.alerts[key]
        return len(doomed)

    def has_open_alert(self, schedule_id: str, alert_type: str) -> bool:
        return any(
            a.schedule_id == schedule_id
            and a.alert_type == alert_type
            and not a.is_dismissed
            for a in self.alerts.values()
        )

    def dismiss_alert(self, alert_id: str) -> ScheduleAlert:
        alert = self.alerts.get(alert_id)
        if alert is None:
            raise NotFoundError(alert_id)
        alert.is_dismissed = True
        return dataclasses.replace(alert)

    def list_reference_durations(self) -> dict[str, ReferenceDuration]:
        return dict(self.references)

    def upsert_reference_duration(self, ref: ReferenceDuration) -> None:
        self.references[ref.step_id] = ref

    def create_photo(self, photo: PhotoRecord) -> PhotoRecord:
        self.photos[photo.id] = photo
        return photo

    def list_photos(
        self, project_id: str, step_id: Optional[str] = None
    ) -> list[PhotoRecord]:
        photos = [
            p
            for p in self.photos.values()
            if p.project_id == project_id and (step_id is None or p.step_id == step_id)
        ]
        return sorted(photos, key=lambda p: p.created_at, reverse=True)

    def get_photo(self, photo_id: str) -> Optional[PhotoRecord]:
        return self.photos.get(photo_id)

    def delete_photo(self, photo_id: str) -> None:
        if self.photos.pop(photo_id, None) is None:
            raise NotFoundError(photo_id)

    def _find_task(self, store: dict, project_id: str, step_id: str, task_id: str):
        for key, record in store.items():
            if (record.project_id, record.step_id, record.task_id) == (
                project_id,
                step_id,
                task_id,
            ):
                return key
        return None

    def list_completed_tasks(
        self, project_id: str, step_id: Optional[str] = None
    ) -> list[CompletedTask]:
        tasks = [
            dataclasses.replace(t)
            for t in self.completed_tasks.values()
            if t.project_id == project_id and (step_id is None or t.step_id == step_id)
        ]
        return sorted(tasks, key=lambda t: t.completed_at)

    def toggle_task(
        self, project_id: str, step_id: str, task_id: str
    ) -> Optional[CompletedTask]:
        key = self._find_task(self.completed_tasks, project_id, step_id, task_id)
        if key is not None:
            del self.completed_tasks[key]
            return None
        record = CompletedTask(project_id, step_id, task_id, id=_new_id())
        self.completed_tasks[record.id] = record
        return dataclasses.replace(record)

    def list_task_dates(
        self, project_id: str, step_id: Optional[str] = None
    ) -> list[TaskDate]:
        dates = [
            dataclasses.replace(t)
            for t in self.task_dates.values()
            if t.project_id == project_id and (step_id is None or t.step_id == step_id)
        ]
        return sorted(dates, key=lambda t: (t.step_id, t.task_id))

    def upsert_task_date(
        self, project_id: str, step_id: str, task_id: str, changes: dict
    ) -> TaskDate:
        key = self._find_task(self.task_dates, project_id, step_id, task_id)
        if key is None:
            record = TaskDate(project_id, step_id, task_id, id=_new_id())
        else:
            record = self.task_dates[key]
        record = record.with_changes(changes)
        self.task_dates[record.id] = record
        return dataclasses.replace(record)

    def delete_task_date(self, project_id: str, step_id: str, task_id: str) -> None:
        key = self._find_task(self.task_dates, project_id, step_id, task_id)
        if key is None:
            raise NotFoundError(f"{step_id}/{task_id}")
        del self.task_dates[key]

    def create_analysis_job(
        self,
        user_id: str,
        project_id: Optional[str],
        trade_name: str,
        trade_description: str,
        document_paths: list[str],
        planned_budget: Optional[float] = None,
        kind: JobKind = JobKind.QUOTES,
        options: Optional[dict] = None,
    ) -> AnalysisJobRecord:
        record = AnalysisJobRecord(
            job_id=_new_id(),
            user_id=user_id,
            project_id=project_id,
            trade_name=trade_name,
            trade_description=trade_description,
            document_paths=list(document_paths),
            planned_budget=planned_budget,
            kind=kind,
            options=dict(options or {}),
        )
        self.jobs[record.job_id] = record
        return record

    def get_job(self, job_id: str) -> Optional[AnalysisJobRecord]:
        return self.jobs.get(job_id)

    def claim_job(self, job_id: str) -> Optional[AnalysisJobRecord]:
        job = self.jobs.get(job_id)
        if job is None or job.status != JobStatus.WAITING:
            return None
        job.status = JobStatus.RUNNING
        job.locked_at = time.time()
        job.updated_at = job.locked_at
        return job

    def claim_next_waiting_job(self) -> Optional[AnalysisJobRecord]:
        for job in sorted(self.jobs.values(), key=lambda j: j.created_at):
            if job.status == JobStatus.WAITING:
                return self.claim_job(job.job_id)
        return None

    def finish_job(
        self,
        job_id: str,
        status: JobStatus,
        result: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        job = self.jobs.get(job_id)
        if not job:
            return
        job.status = status
        job.result = result
        job.error = error
        job.locked_at = None
        job.updated_at = time.time()

    def requeue_stale_locks(self, lock_timeout_seconds: float = 600) -> int:
        now = time.time()
        requeued = 0
        for job in self.jobs.values():
            if (
                job.status == JobStatus.RUNNING
                and job.locked_at
                and now - job.locked_at > lock_timeout_seconds
            ):
                job.status = JobStatus.WAITING
                job.locked_at = None
                job.updated_at = now
                requeued += 1
        return requeued

    def record_ai_usage(
        self, user_id: str, analysis_type: str, project_id: Optional[str] = None
    ) -> None:
        self.ai_usage.append((user_id, analysis_type, project_id, time.time()))

    def count_ai_usage(self, user_id: str) -> int:
        return sum(1 for entry in self.ai_usage if entry[0] == user_id)


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    # Projects

    def _to_project(self, row: "ProjectRow") -> ProjectRecord:
        return ProjectRecord(
            id=row.id,
            user_id=row.user_id,
            name=row.name,
            description=row.description,
            project_type=row.project_type,
            square_footage=row.square_footage,
            current_stage=row.current_stage,
            target_start_date=row.target_start_date,
            address=row.address,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def create_project(self, user_id: str, name: str, **fields: Any) -> ProjectRecord:
        now = time.time()
        with self.Session() as session:
            row = ProjectRow(
                id=_new_id(),
                user_id=user_id,
                name=name,
                created_at=now,
                updated_at=now,
                **{k: v for k, v in fields.items() if k in PROJECT_FIELDS},
            )
            session.add(row)
            session.commit()
            return self._to_project(row)

    def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        with self.Session() as session:
            row = session.get(ProjectRow, project_id)
            return self._to_project(row) if row else None

    def list_projects(self, user_id: str) -> list[ProjectRecord]:
        with self.Session() as session:
            stmt = (
                select(ProjectRow)
                .where(ProjectRow.user_id == user_id)
                .order_by(ProjectRow.created_at.desc())
            )
            return [self._to_project(row) for row in session.execute(stmt).scalars()]

    def update_project(self, project_id: str, patch: dict) -> ProjectRecord:
        with self.Session() as session:
            row = session.get(ProjectRow, project_id)
            if not row:
                raise NotFoundError(project_id)
            for key, value in patch.items():
                if key in PROJECT_FIELDS:
                    setattr(row, key, value)
            row.updated_at = time.time()
            session.commit()
            return self._to_project(row)

    def delete_project(self, project_id: str) -> None:
        with self.Session() as session:
            row = session.get(ProjectRow, project_id)
            if not row:
                raise NotFoundError(project_id)
            for model in (
                BudgetRow,
                ScheduleRow,
                AlertRow,
                PhotoRow,
                CompletedTaskRow,
                TaskDateRow,
            ):
                session.query(model).filter(model.project_id == project_id).delete(
                    synchronize_session=False
                )
            session.delete(row)
            session.commit()

    # Budget

    def get_budget(self, project_id: str) -> list[BudgetCategory]:
        with self.Session() as session:
            stmt = (
                select(BudgetRow)
                .where(BudgetRow.project_id == project_id)
                .order_by(BudgetRow.position.asc())
            )
            return [
                BudgetCategory(
                    name=row.category_name,
                    budget=row.budget,
                    spent=row.spent,
                    color=row.color,
                    description=row.description or "",
                    items=[BudgetItem(**item) for item in row.items or []],
                )
                for row in session.execute(stmt).scalars()
            ]

    def replace_budget(
        self, project_id: str, categories: list[BudgetCategory]
    ) -> list[BudgetCategory]:
        with self.Session() as session:
            session.query(BudgetRow).filter(BudgetRow.project_id == project_id).delete(
                synchronize_session=False
            )
            for position, category in enumerate(categories):
                session.add(
                    BudgetRow(
                        id=_new_id(),
                        project_id=project_id,
                        position=position,
                        category_name=category.name,
                        budget=category.budget,
                        spent=category.spent,
                        color=category.color,
                        description=category.description,
                        items=[dataclasses.asdict(item) for item in category.items],
                    )
                )
            session.commit()
        return self.get_budget(project_id)

    # Schedule

    def _to_schedule(self, row: "ScheduleRow") -> ScheduleItem:
        return ScheduleItem(
            **{f.name: getattr(row, f.name) for f in dataclasses.fields(ScheduleItem)}
        )

    def list_schedules(self, project_id: str) -> list[ScheduleItem]:
        with self.Session() as session:
            stmt = select(ScheduleRow).where(ScheduleRow.project_id == project_id)
            return [self._to_schedule(row) for row in session.execute(stmt).scalars()]

    def get_schedule(self, schedule_id: str) -> Optional[ScheduleItem]:
        with self.Session() as session:
            row = session.get(ScheduleRow, schedule_id)
            return self._to_schedule(row) if row else None

    def get_schedule_by_step(
        self, project_id: str, step_id: str
    ) -> Optional[ScheduleItem]:
        with self.Session() as session:
            stmt = select(ScheduleRow).where(
                ScheduleRow.project_id == project_id, ScheduleRow.step_id == step_id
            )
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_schedule(row) if row else None

    def upsert_schedule(self, item: ScheduleItem) -> ScheduleItem:
        values = dataclasses.asdict(item)
        now = time.time()
        with self.Session() as session:
            stmt = select(ScheduleRow).where(
                ScheduleRow.project_id == item.project_id,
                ScheduleRow.step_id == item.step_id,
            )
            row = session.execute(stmt).scalar_one_or_none()
            if row:
                for key, value in values.items():
                    if key not in ("id", "created_at"):
                        setattr(row, key, value)
                row.updated_at = now
            else:
                values["id"] = item.id or _new_id()
                values["updated_at"] = now
                row = ScheduleRow(**values)
                session.add(row)
            session.commit()
            return self._to_schedule(row)

    def update_schedule(self, schedule_id: str, patch: dict) -> ScheduleItem:
        with self.Session() as session:
            row = session.get(ScheduleRow, schedule_id)
            if not row:
                raise NotFoundError(schedule_id)
            for key, value in patch.items():
                setattr(row, key, value)
            row.updated_at = time.time()
            session.commit()
            return self._to_schedule(row)

    def delete_schedule(self, schedule_id: str) -> None:
        with self.Session() as session:
            row = session.get(ScheduleRow, schedule_id)
            if not row:
                raise NotFoundError(schedule_id)
            session.query(AlertRow).filter(AlertRow.schedule_id == schedule_id).delete(
                synchronize_session=False
            )
            session.delete(row)
            session.commit()

    # Alerts

    def _to_alert(self, row: "AlertRow") -> ScheduleAlert:
        return ScheduleAlert(
            id=row.id,
            project_id=row.project_id,
            schedule_id=row.schedule_id,
            alert_type=row.alert_type,
            alert_date=row.alert_date,
            message=row.message,
            is_dismissed=row.is_dismissed,
            created_at=row.created_at,
        )

    def list_alerts(
        self, project_id: str, include_dismissed: bool = False
    ) -> list[ScheduleAlert]:
        with self.Session() as session:
            stmt = select(AlertRow).where(AlertRow.project_id == project_id)
            if not include_dismissed:
                stmt = stmt.where(AlertRow.is_dismissed.is_(False))
            stmt = stmt.order_by(AlertRow.alert_date.asc())
            return [self._to_alert(row) for row in session.execute(stmt).scalars()]

    def create_alert(self, alert: ScheduleAlert) -> ScheduleAlert:
        with self.Session() as session:
            values = dataclasses.asdict(alert)
            values["id"] = alert.id or _new_id()
            row = AlertRow(**values)
            session.add(row)
            session.commit()
            return self._to_alert(row)

    def delete_alerts_for_schedule(
        self, schedule_id: str, alert_types: Optional[tuple[str, ...]] = None
    ) -> int:
        with self.Session() as session:
            query = session.query(AlertRow).filter(AlertRow.schedule_id == schedule_id)
            if alert_types is not None:
                query = query.filter(AlertRow.alert_type.in_(alert_types))
            deleted = query.delete(synchronize_session=False)
            session.commit()
            return deleted or 0

    def has_open_alert(self, schedule_id: str, alert_type: str) -> bool:
        with self.Session() as session:
            stmt = (
                select(AlertRow.id)
                .where(
                    AlertRow.schedule_id == schedule_id,
                    AlertRow.alert_type == alert_type,
                    AlertRow.is_dismissed.is_(False),
                )
                .limit(1)
            )
            return session.execute(stmt).first() is not None

    def dismiss_alert(self, alert_id: str) -> ScheduleAlert:
        with self.Session() as session:
            row = session.get(AlertRow, alert_id)
            if not row:
                raise NotFoundError(alert_id)
            row.is_dismissed = True
            session.commit()
            return self._to_alert(row)

    # Reference durations

    def list_reference_durations(self) -> dict[str, ReferenceDuration]:
        with self.Session() as session:
            rows = session.execute(select(ReferenceDurationRow)).scalars()
            return {
                row.step_id: ReferenceDuration(
                    step_id=row.step_id,
                    step_name=row.step_name,
                    base_duration_days=row.base_duration_days,
                    base_square_footage=row.base_square_footage,
                    min_duration_days=row.min_duration_days,
                    max_duration_days=row.max_duration_days,
                    scaling_factor=row.scaling_factor,
                    notes=row.notes,
                )
                for row in rows
            }

    def upsert_reference_duration(self, ref: ReferenceDuration) -> None:
        with self.Session() as session:
            row = session.get(ReferenceDurationRow, ref.step_id)
            values = dataclasses.asdict(ref)
            if row:
                for key, value in values.items():
                    setattr(row, key, value)
            else:
                session.add(ReferenceDurationRow(**values))
            session.commit()

    # Photos / documents

    def _to_photo(self, row: "PhotoRow") -> PhotoRecord:
        return PhotoRecord(
            **{f.name: getattr(row, f.name) for f in dataclasses.fields(PhotoRecord)}
        )

    def create_photo(self, photo: PhotoRecord) -> PhotoRecord:
        with self.Session() as session:
            row = PhotoRow(**dataclasses.asdict(photo))
            session.add(row)
            session.commit()
            return self._to_photo(row)

    def list_photos(
        self, project_id: str, step_id: Optional[str] = None
    ) -> list[PhotoRecord]:
        with self.Session() as session:
            stmt = select(PhotoRow).where(PhotoRow.project_id == project_id)
            if step_id is not None:
                stmt = stmt.where(PhotoRow.step_id == step_id)
            stmt = stmt.order_by(PhotoRow.created_at.desc())
            return [self._to_photo(row) for row in session.execute(stmt).scalars()]

    def get_photo(self, photo_id: str) -> Optional[PhotoRecord]:
        with self.Session() as session:
            row = session.get(PhotoRow, photo_id)
            return self._to_photo(row) if row else None

    def delete_photo(self, photo_id: str) -> None:
        with self.Session() as session:
            row = session.get(PhotoRow, photo_id)
            if not row:
                raise NotFoundError(photo_id)
            session.delete(row)
            session.commit()

    # Task checklist

    def _task_query(self, model, project_id: str, step_id: str, task_id: str):
        return select(model).where(
            model.project_id == project_id,
            model.step_id == step_id,
            model.task_id == task_id,
        )

    def _to_completed_task(self, row: "CompletedTaskRow") -> CompletedTask:
        return CompletedTask(
            **{f.name: getattr(row, f.name) for f in dataclasses.fields(CompletedTask)}
        )

    def _to_task_date(self, row: "TaskDateRow") -> TaskDate:
        return TaskDate(
            **{f.name: getattr(row, f.name) for f in dataclasses.fields(TaskDate)}
        )

    def list_completed_tasks(
        self, project_id: str, step_id: Optional[str] = None
    ) -> list[CompletedTask]:
        with self.Session() as session:
            stmt = select(CompletedTaskRow).where(CompletedTaskRow.project_id == project_id)
            if step_id is not None:
                stmt = stmt.where(CompletedTaskRow.step_id == step_id)
            stmt = stmt.order_by(CompletedTaskRow.completed_at.asc())
            return [self._to_completed_task(row) for row in session.execute(stmt).scalars()]

    def toggle_task(
        self, project_id: str, step_id: str, task_id: str
    ) -> Optional[CompletedTask]:
        with self.Session() as session:
            stmt = self._task_query(CompletedTaskRow, project_id, step_id, task_id)
            row = session.execute(stmt).scalar_one_or_none()
            if row:
                session.delete(row)
                session.commit()
                return None
            row = CompletedTaskRow(
                **dataclasses.asdict(
                    CompletedTask(project_id, step_id, task_id, id=_new_id())
                )
            )
            session.add(row)
            session.commit()
            return self._to_completed_task(row)

    def list_task_dates(
        self, project_id: str, step_id: Optional[str] = None
    ) -> list[TaskDate]:
        with self.Session() as session:
            stmt = select(TaskDateRow).where(TaskDateRow.project_id == project_id)
            if step_id is not None:
                stmt = stmt.where(TaskDateRow.step_id == step_id)
            stmt = stmt.order_by(TaskDateRow.step_id.asc(), TaskDateRow.task_id.asc())
            return [self._to_task_date(row) for row in session.execute(stmt).scalars()]

    def upsert_task_date(
        self, project_id: str, step_id: str, task_id: str, changes: dict
    ) -> TaskDate:
        with self.Session() as session:
            stmt = self._task_query(TaskDateRow, project_id, step_id, task_id)
            row = session.execute(stmt).scalar_one_or_none()
            current = (
                self._to_task_date(row)
                if row
                else TaskDate(project_id, step_id, task_id, id=_new_id())
            )
            values = dataclasses.asdict(current.with_changes(changes))
            if row:
                for key, value in values.items():
                    setattr(row, key, value)
            else:
                row = TaskDateRow(**values)
                session.add(row)
            session.commit()
            return self._to_task_date(row)

    def delete_task_date(self, project_id: str, step_id: str, task_id: str) -> None:
        with self.Session() as session:
            stmt = self._task_query(TaskDateRow, project_id, step_id, task_id)
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                raise NotFoundError(f"{step_id}/{task_id}")
            session.delete(row)
            session.commit()

    # Analysis jobs

    def _to_job(self, row: "AnalysisJobRow") -> AnalysisJobRecord:
        return AnalysisJobRecord(
            job_id=row.job_id,
            user_id=row.user_id,
            project_id=row.project_id,
            trade_name=row.trade_name,
            trade_description=row.trade_description,
            document_paths=list(row.document_paths or []),
            planned_budget=row.planned_budget,
            kind=JobKind(row.kind),
            options=dict(row.options or {}),
            status=JobStatus(row.status),
            result=row.result,
            error=row.error,
            locked_at=row.locked_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def create_analysis_job(
        self,
        user_id: str,
        project_id: Optional[str],
        trade_name: str,
        trade_description: str,
        document_paths: list[str],
        planned_budget: Optional[float] = None,
        kind: JobKind = JobKind.QUOTES,
        options: Optional[dict] = None,
    ) -> AnalysisJobRecord:
        now = time.time()
        with self.Session() as session:
            row = AnalysisJobRow(
                job_id=_new_id(),
                user_id=user_id,
                project_id=project_id,
                trade_name=trade_name,
                trade_description=trade_description,
                document_paths=list(document_paths),
                planned_budget=planned_budget,
                kind=kind.value,
                options=dict(options or {}),
                status=JobStatus.WAITING.value,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            return self._to_job(row)

    def get_job(self, job_id: str) -> Optional[AnalysisJobRecord]:
        with self.Session() as session:
            row = session.get(AnalysisJobRow, job_id)
            return self._to_job(row) if row else None

    def claim_job(self, job_id: str) -> Optional[AnalysisJobRecord]:
        now = time.time()
        with self.Session() as session:
            stmt = (
                select(AnalysisJobRow)
                .where(
                    AnalysisJobRow.job_id == job_id,
                    AnalysisJobRow.status == JobStatus.WAITING.value,
                )
                .with_for_update(skip_locked=True)
            )
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return None
            row.status = JobStatus.RUNNING.value
            row.locked_at = now
            row.updated_at = now
            session.commit()
            return self._to_job(row)

    def claim_next_waiting_job(self) -> Optional[AnalysisJobRecord]:
        now = time.time()
        with self.Session() as session:
            stmt = (
                select(AnalysisJobRow)
                .where(AnalysisJobRow.status == JobStatus.WAITING.value)
                .order_by(AnalysisJobRow.created_at.asc())
                .limit(1)
                .with_for_update(skip_locked=True)
            )
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return None
            row.status = JobStatus.RUNNING.value
            row.locked_at = now
            row.updated_at = now
            session.commit()
            return self._to_job(row)

    def finish_job(
        self,
        job_id: str,
        status: JobStatus,
        result: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        with self.Session() as session:
            row = session.get(AnalysisJobRow, job_id)
            if not row:
                return
            row.status = status.value
            row.result = result
            row.error = error
            row.locked_at = None
            row.updated_at = time.time()
            session.commit()

    def requeue_stale_locks(self, lock_timeout_seconds: float = 600) -> int:
        cutoff = time.time() - lock_timeout_seconds
        with self.Session() as session:
            updated = (
                session.query(AnalysisJobRow)
                .filter(
                    AnalysisJobRow.status == JobStatus.RUNNING.value,
                    AnalysisJobRow.locked_at.isnot(None),
                    AnalysisJobRow.locked_at < cutoff,
                )
                .update(
                    {
                        AnalysisJobRow.status: JobStatus.WAITING.value,
                        AnalysisJobRow.locked_at: None,
                        AnalysisJobRow.updated_at: time.time(),
                    },
                    synchronize_session=False,
                )
            )
            session.commit()
            return updated or 0

    # AI usage

    def record_ai_usage(
        self, user_id: str, analysis_type: str, project_id: Optional[str] = None
    ) -> None:
        with self.Session() as session:
            session.add(
                AiUsageRow(
                    id=_new_id(),
                    user_id=user_id,
                    analysis_type=analysis_type,
                    project_id=project_id,
                    created_at=time.time(),
                )
            )
            session.commit()

    def count_ai_usage(self, user_id: str) -> int:
        with self.Session() as session:
            stmt = select(func.count(AiUsageRow.id)).where(AiUsageRow.user_id == user_id)
            return session.execute(stmt).scalar_one()


Base = declarative_base()


class ProjectRow(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    project_type = Column(String, nullable=True)
    square_footage = Column(Float, nullable=True)
    current_stage = Column(String, nullable=True)
    target_start_date = Column(Date, nullable=True)
    address = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class BudgetRow(Base):
    __tablename__ = "project_budgets"

    id = Column(String, primary_key=True)
    project_id = Column(String, nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    category_name = Column(String, nullable=False)
    budget = Column(Float, nullable=False, default=0.0)
    spent = Column(Float, nullable=False, default=0.0)
    color = Column(String, nullable=False)
    description = Column(String, nullable=True)
    items = Column(JSON, nullable=False, default=list)


class ScheduleRow(Base):
    __tablename__ = "project_schedules"
    __table_args__ = (UniqueConstraint("project_id", "step_id"),)

    id = Column(String, primary_key=True)
    project_id = Column(String, nullable=False, index=True)
    step_id = Column(String, nullable=False)
    step_name = Column(String, nullable=False)
    trade_type = Column(String, nullable=False)
    trade_color = Column(String, nullable=False)
    estimated_days = Column(Integer, nullable=False)
    actual_days = Column(Integer, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    supplier_name = Column(String, nullable=True)
    supplier_phone = Column(String, nullable=True)
    supplier_schedule_lead_days = Column(Integer, nullable=False, default=21)
    fabrication_lead_days = Column(Integer, nullable=False, default=0)
    fabrication_start_date = Column(Date, nullable=True)
    measurement_required = Column(Boolean, nullable=False, default=False)
    measurement_after_step_id = Column(String, nullable=True)
    measurement_notes = Column(String, nullable=True)
    status = Column(String, nullable=False, default="scheduled")
    notes = Column(String, nullable=True)
    is_manual_date = Column(Boolean, nullable=False, default=False)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class AlertRow(Base):
    __tablename__ = "schedule_alerts"

    id = Column(String, primary_key=True)
    project_id = Column(String, nullable=False, index=True)
    schedule_id = Column(String, nullable=False, index=True)
    alert_type = Column(String, nullable=False)
    alert_date = Column(Date, nullable=False)
    message = Column(String, nullable=False)
    is_dismissed = Column(Boolean, nullable=False, default=False)
    created_at = Column(Float, nullable=False)


class ReferenceDurationRow(Base):
    __tablename__ = "schedule_reference_durations"

    step_id = Column(String, primary_key=True)
    step_name = Column(String, nullable=False)
    base_duration_days = Column(Integer, nullable=False)
    base_square_footage = Column(Integer, nullable=False, default=2000)
    min_duration_days = Column(Integer, nullable=True)
    max_duration_days = Column(Integer, nullable=True)
    scaling_factor = Column(Float, nullable=False, default=1.0)
    notes = Column(String, nullable=True)


class PhotoRow(Base):
    __tablename__ = "project_photos"

    id = Column(String, primary_key=True)
    project_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False)
    step_id = Column(String, nullable=False)
    file_name = Column(String, nullable=False)
    file_path = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    content_type = Column(String, nullable=False)
    category = Column(String, nullable=False, default="photo")
    created_at = Column(Float, nullable=False)


class CompletedTaskRow(Base):
    __tablename__ = "completed_tasks"
    __table_args__ = (UniqueConstraint("project_id", "step_id", "task_id"),)

    id = Column(String, primary_key=True)
    project_id = Column(String, nullable=False, index=True)
    step_id = Column(String, nullable=False)
    task_id = Column(String, nullable=False)
    completed_at = Column(Float, nullable=False)


class TaskDateRow(Base):
    __tablename__ = "task_dates"
    __table_args__ = (UniqueConstraint("project_id", "step_id", "task_id"),)

    id = Column(String, primary_key=True)
    project_id = Column(String, nullable=False, index=True)
    step_id = Column(String, nullable=False)
    task_id = Column(String, nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    notes = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class AnalysisJobRow(Base):
    __tablename__ = "analysis_jobs"

    job_id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    project_id = Column(String, nullable=True)
    trade_name = Column(String, nullable=False)
    trade_description = Column(String, nullable=False, default="")
    document_paths = Column(JSON, nullable=False)
    planned_budget = Column(Float, nullable=True)
    kind = Column(String, nullable=False, default=JobKind.QUOTES.value)
    options = Column(JSON, nullable=False, default=dict)
    status = Column(String, nullable=False, index=True)
    result = Column(String, nullable=True)
    error = Column(String, nullable=True)
    locked_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class AiUsageRow(Base):
    __tablename__ = "ai_usage"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    analysis_type = Column(String, nullable=False)
    project_id = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
