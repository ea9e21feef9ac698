"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from maison_api.ai import AiClient, GeminiAiClient, StubAiClient
from maison_api.auth import AuthError, decode_user_id
from maison_api.config import get_settings
from maison_api.db import DbClient, InMemoryDbClient, PostgresDbClient, ProjectRecord
from maison_api.queue import InMemoryJobQueue, JobQueue, RedisJobQueue
from maison_api.storage import InMemoryStorageClient, S3StorageClient, StorageClient

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_queue_client: JobQueue | None = None
_ai_client: AiClient | None = None

_bearer = HTTPBearer(auto_error=False)


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    return _storage_client


def get_queue_client() -> JobQueue:
    """
    Return a singleton queue client for dispatching jobs to workers.
    """
    global _queue_client
    if _queue_client:
        return _queue_client

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _queue_client = RedisJobQueue(
            url=settings.redis_url,
            key_prefix=settings.redis_queue_prefix,
        )
    else:
        _queue_client = InMemoryJobQueue()
    return _queue_client


def get_ai_client() -> AiClient:
    global _ai_client
    if _ai_client:
        return _ai_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.gemini_api_key:
        _ai_client = StubAiClient()
    else:
        _ai_client = GeminiAiClient(
            api_key=settings.gemini_api_key, model=settings.gemini_model
        )
    return _ai_client


def get_today() -> date:
    return date.today()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> str:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    try:
        return decode_user_id(credentials.credentials, get_settings())
    except AuthError:
        raise HTTPException(status_code=401, detail="Invalid token")


def get_owned_project(
    project_id: str,
    user_id: str = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
) -> ProjectRecord:
    """Projects of other users are reported as missing."""
    project = db.get_project(project_id)
    if project is None or project.user_id != user_id:
        raise HTTPException(status_code=404, detail="Project not found")
    return project
