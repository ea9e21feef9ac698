"""
Worker loop processing queued analyses. The job's documents are read from
storage and sent to the model. Quote analyses store the markdown report on the
job; plan estimates store the estimate and its budget mapping as JSON.
"""

from __future__ import annotations

import json
import logging
import mimetypes
import os
import time
from typing import Optional

from maison_api.ai import AiClient
from maison_api.ai_routes import PLAN_ANALYSIS, QUOTE_ANALYSIS
from maison_api.db import AnalysisJobRecord, DbClient, JobKind, JobStatus
from maison_api.dependencies import (
    get_ai_client,
    get_db_client,
    get_queue_client,
    get_storage_client,
)
from maison_api.queue import JobQueue
from maison_api.storage import StorageClient
from planning.budget import map_analysis_to_categories
from planning.estimate import estimate_from_extraction

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

LOCK_TIMEOUT_SECONDS = 900


def _document_name(path: str) -> str:
    # Stored as "<photo id>-<original name>".
    name = os.path.basename(path)
    _, _, original = name.partition("-")
    return original or name


def load_documents(
    job: AnalysisJobRecord, storage: StorageClient
) -> list[tuple[str, bytes, str]]:
    documents = []
    for path in job.document_paths:
        mime_type, _ = mimetypes.guess_type(path)
        data = storage.get_bytes(path)
        documents.append(
            (_document_name(path), data, mime_type or "application/octet-stream")
        )
    return documents


def _analyze_quotes(job: AnalysisJobRecord, db: DbClient, documents, ai: AiClient) -> str:
    return ai.analyze_quotes(
        job.trade_name,
        job.trade_description,
        documents,
        planned_budget=job.planned_budget,
    )


def _estimate_plan(job: AnalysisJobRecord, db: DbClient, documents, ai: AiClient) -> str:
    """
    Ask the model for an estimate and spread it over the step categories.
    The budget is replaced only when the job asked for it.
    """
    options = dict(job.options)
    apply_to_budget = options.pop("apply_to_budget", False)
    estimate = estimate_from_extraction(ai.analyze_plan(documents, options))
    mapped = map_analysis_to_categories(estimate.rows)
    if apply_to_budget and job.project_id:
        db.replace_budget(job.project_id, mapped.categories)
        logger.info("[%s] Budget of project %s replaced", job.job_id, job.project_id)
    return json.dumps(
        {
            "project_type": estimate.project_type,
            "summary": estimate.summary,
            "estimated_total": estimate.estimated_total,
            "warnings": estimate.warnings,
            "recommendations": estimate.recommendations,
            "analysis": estimate.rows,
            "budget": {
                "categories": [c.as_dict() for c in mapped.categories],
                "contingency": mapped.contingency,
                "taxes": mapped.taxes,
                "sub_total": mapped.sub_total,
            },
            "applied": bool(apply_to_budget and job.project_id),
        },
        ensure_ascii=False,
    )


HANDLERS = {
    JobKind.QUOTES: (_analyze_quotes, QUOTE_ANALYSIS),
    JobKind.PLAN: (_estimate_plan, PLAN_ANALYSIS),
}


def process_job(
    job: AnalysisJobRecord,
    db: DbClient,
    storage: Optional[StorageClient] = None,
    ai: Optional[AiClient] = None,
) -> None:
    storage = storage or get_storage_client()
    ai = ai or get_ai_client()
    handler, usage_type = HANDLERS[job.kind]
    logger.info(
        "[%s] Running %s analysis on %d documents",
        job.job_id,
        job.kind.value,
        len(job.document_paths),
    )
    try:
        documents = load_documents(job, storage)
        result = handler(job, db, documents, ai)
    except Exception as e:
        logger.exception("[%s] %s analysis failed", job.job_id, job.kind.value)
        db.finish_job(job.job_id, JobStatus.ERROR, error=str(e) or type(e).__name__)
        raise

    db.finish_job(job.job_id, JobStatus.SUCCESS, result=result)
    db.record_ai_usage(job.user_id, usage_type, job.project_id)
    logger.info("[%s] %s analysis stored", job.job_id, job.kind.value)


def process_next(
    *,
    db: Optional[DbClient] = None,
    queue: Optional[JobQueue] = None,
    storage: Optional[StorageClient] = None,
    ai: Optional[AiClient] = None,
    block: bool = True,
    timeout: Optional[int] = None,
) -> bool:
    """
    Fetch and process one job from the queue (or DB fallback). Returns True if processed.
    """
    db = db or get_db_client()
    queue = queue or get_queue_client()

    job_id = queue.dequeue(block=block, timeout=timeout)
    if job_id:
        job = db.claim_job(job_id)
        if not job:
            logger.warning("Job %s from queue is missing or already claimed", job_id)
            return False
    else:
        # Jobs requeued after a stale lock are not pushed to the queue again.
        job = db.claim_next_waiting_job()
        if not job:
            return False

    process_job(job, db, storage=storage, ai=ai)
    return True


def run_loop(poll_interval_seconds: float = 2.0) -> None:
    """
    Polling loop that blocks on the queue. Intended to be run under systemd/supervisor.
    """
    db = get_db_client()
    queue = get_queue_client()
    while True:
        try:
            db.requeue_stale_locks(lock_timeout_seconds=LOCK_TIMEOUT_SECONDS)
        except Exception:
            logger.exception("Failed to requeue stale locks")
        try:
            processed = process_next(
                db=db, queue=queue, block=True, timeout=int(poll_interval_seconds)
            )
        except Exception:
            logger.exception("Worker iteration failed")
            processed = True
        if not processed:
            time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    run_loop()
