"""
FastAPI application entry point.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from llm.gemini import GeminiInvalidResponseException, GeminiRateLimitException
from maison_api.ai_routes import router as ai_router
from maison_api.config import get_settings
from maison_api.db import NotFoundError
from maison_api.routes import router
from maison_api.schedule_routes import router as schedule_router
from maison_api.task_routes import router as task_router
from planning.schedule import ScheduleError

logger = logging.getLogger(__name__)


def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc) or "Not found"})


def _schedule_error(request: Request, exc: ScheduleError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def _rate_limited(request: Request, exc: GeminiRateLimitException) -> JSONResponse:
    logger.warning("AI provider rate limit hit on %s", request.url.path)
    return JSONResponse(
        status_code=429,
        content={"detail": "Limite de requêtes atteinte, veuillez réessayer plus tard."},
    )


def _invalid_ai_response(
    request: Request, exc: GeminiInvalidResponseException
) -> JSONResponse:
    logger.error("AI provider returned an empty answer on %s", request.url.path)
    return JSONResponse(status_code=502, content={"detail": "Réponse invalide du service IA"})


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Mon projet maison API", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(schedule_router, prefix=settings.api_prefix)
    app.include_router(task_router, prefix=settings.api_prefix)
    app.include_router(ai_router, prefix=settings.api_prefix)
    app.add_exception_handler(NotFoundError, _not_found)
    app.add_exception_handler(ScheduleError, _schedule_error)
    app.add_exception_handler(GeminiRateLimitException, _rate_limited)
    app.add_exception_handler(GeminiInvalidResponseException, _invalid_ai_response)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
