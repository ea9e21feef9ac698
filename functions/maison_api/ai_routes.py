"""
HTTP routes proxying the AI features: building-code Q&A, the assistant chat,
quote analysis jobs and plan estimate jobs.
"""

from __future__ import annotations

import json
import logging
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from maison_api.ai import AiClient
from maison_api.db import DbClient, JobKind, ProjectRecord
from maison_api.dependencies import (
    get_ai_client,
    get_current_user,
    get_db_client,
    get_queue_client,
)
from maison_api.queue import JobQueue
from maison_api.schemas import (
    AiUsageResponse,
    AnalysisJobResponse,
    BuildingCodeRequest,
    BuildingCodeResponse,
    ChatRequest,
    JobStatusResponse,
    PlanAnalysisRequest,
    QuoteAnalysisRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai")

BUILDING_CODE = "building_code"
CHAT = "chat"
QUOTE_ANALYSIS = "quote_analysis"
PLAN_ANALYSIS = "plan_analysis"


def sse_pack(event: dict, ev_type: Optional[str] = None) -> str:
    typ = ev_type or event.get("type") or "message"
    data = json.dumps(event, ensure_ascii=False)
    return f"event: {typ}\ndata: {data}\n\n"


def _chat_events(first: str, rest: Iterator[str]) -> Iterator[str]:
    yield sse_pack({"type": "delta", "text": first})
    try:
        for chunk in rest:
            yield sse_pack({"type": "delta", "text": chunk})
    except Exception as e:
        # Headers are already sent; report the failure inside the stream.
        logger.exception("Chat stream interrupted")
        yield sse_pack({"type": "error", "message": str(e)})
        return
    yield sse_pack({"type": "done"})


@router.post("/building-code", response_model=BuildingCodeResponse)
def building_code(
    payload: BuildingCodeRequest,
    user_id: str = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    ai: AiClient = Depends(get_ai_client),
):
    history = [message.model_dump() for message in payload.history]
    answer = ai.building_code(payload.question, history)
    db.record_ai_usage(user_id, BUILDING_CODE, payload.project_id)
    return BuildingCodeResponse(**answer)


@router.post("/chat")
def chat(
    payload: ChatRequest,
    user_id: str = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    ai: AiClient = Depends(get_ai_client),
):
    """
    Stream the assistant's answer as server-sent events. The first chunk is
    read before the response starts so upstream errors keep their status code.
    """
    if payload.messages[-1].role != "user":
        raise HTTPException(status_code=400, detail="Last message must come from the user")
    chunks = iter(ai.chat_stream([m.model_dump() for m in payload.messages]))
    first = next(chunks, "")
    db.record_ai_usage(user_id, CHAT)
    return StreamingResponse(_chat_events(first, chunks), media_type="text/event-stream")


def _owned_document_paths(db: DbClient, project_id: str, document_ids: list[str]) -> list[str]:
    paths = []
    for document_id in document_ids:
        document = db.get_photo(document_id)
        if document is None or document.project_id != project_id:
            raise HTTPException(status_code=404, detail=f"Document {document_id} not found")
        paths.append(document.file_path)
    return paths


def _owned_project(db: DbClient, project_id: str, user_id: str) -> ProjectRecord:
    project = db.get_project(project_id)
    if project is None or project.user_id != user_id:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def _job_status(db: DbClient, job_id: str, user_id: str, kind: JobKind) -> JobStatusResponse:
    job = db.get_job(job_id)
    if not job or job.user_id != user_id or job.kind != kind:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusResponse(
        job_id=job.job_id,
        project_id=job.project_id,
        kind=job.kind.value,
        trade_name=job.trade_name,
        status=job.status.value,
        result=job.result,
        error=job.error,
    )


@router.post("/quote-analyses", response_model=AnalysisJobResponse, status_code=202)
def request_quote_analysis(
    payload: QuoteAnalysisRequest,
    user_id: str = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    queue: JobQueue = Depends(get_queue_client),
):
    """
    Enqueue a quote analysis. The worker sends the documents to the model.
    """
    project = _owned_project(db, payload.project_id, user_id)
    paths = _owned_document_paths(db, project.id, payload.document_ids)

    job = db.create_analysis_job(
        user_id,
        project.id,
        payload.trade_name,
        payload.trade_description,
        paths,
        planned_budget=payload.planned_budget,
    )
    queue.enqueue(job)
    logger.info("Queued quote analysis %s (%d documents)", job.job_id, len(paths))
    return AnalysisJobResponse(job_id=job.job_id, status=job.status.value)


@router.get("/quote-analyses/{job_id}", response_model=JobStatusResponse)
def quote_analysis_status(
    job_id: str,
    user_id: str = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return _job_status(db, job_id, user_id, JobKind.QUOTES)


@router.post("/plan-analyses", response_model=AnalysisJobResponse, status_code=202)
def request_plan_analysis(
    payload: PlanAnalysisRequest,
    user_id: str = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    queue: JobQueue = Depends(get_queue_client),
):
    """
    Enqueue a budget estimate from uploaded plans ("plan" mode) or from the
    project description alone ("manual" mode). Missing details fall back to
    the project's own fields.
    """
    project = _owned_project(db, payload.project_id, user_id)
    if payload.mode == "plan" and not payload.document_ids:
        raise HTTPException(status_code=400, detail="Plan mode needs at least one document")
    paths = _owned_document_paths(db, project.id, payload.document_ids)

    options = {
        "finish_quality": payload.finish_quality,
        "project_type": payload.project_type or project.project_type,
        "square_footage": payload.square_footage or project.square_footage,
        "number_of_floors": payload.number_of_floors,
        "has_garage": payload.has_garage,
        "additional_notes": payload.additional_notes,
        "apply_to_budget": payload.apply_to_budget,
    }
    job = db.create_analysis_job(
        user_id,
        project.id,
        trade_name="",
        trade_description="",
        document_paths=paths,
        kind=JobKind.PLAN,
        options=options,
    )
    queue.enqueue(job)
    logger.info(
        "Queued %s plan analysis %s (%d documents)", payload.mode, job.job_id, len(paths)
    )
    return AnalysisJobResponse(job_id=job.job_id, status=job.status.value)


@router.get("/plan-analyses/{job_id}", response_model=JobStatusResponse)
def plan_analysis_status(
    job_id: str,
    user_id: str = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return _job_status(db, job_id, user_id, JobKind.PLAN)


@router.get("/usage", response_model=AiUsageResponse)
def ai_usage(
    user_id: str = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return AiUsageResponse(count=db.count_ai_usage(user_id))
