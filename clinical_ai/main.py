"""
FastAPI application exposing the AI clinical note endpoints.

The routes are thin: each builds a :class:`NoteGenerationService` from the
injected data store and configuration and translates the service's errors
into ``{"error": message}`` JSON bodies.  Run with::

    uvicorn clinical_ai.main:app
"""

from __future__ import annotations

import logging
import os
import time
import uuid
from contextlib import asynccontextmanager, contextmanager
from typing import Any, Dict, Iterator

import structlog
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    REGISTRY,
    generate_latest,
)
from structlog.contextvars import bind_contextvars, unbind_contextvars

from clinical_ai import __version__
from clinical_ai.audit import summarize_ai_requests
from clinical_ai.config import APP_NAME, AppConfig, get_app_config
from clinical_ai.db import get_session_factory, initialise_schema
from clinical_ai.exceptions import ClinicalAIError, CompletionProviderError, ConfigurationError
from clinical_ai.models import GenerationRequest, SectionRequest, SuggestionRequest
from clinical_ai.notes_service import (
    AI_DISABLED_MESSAGE,
    CLINICAL_NOTE_REQUEST,
    SECTION_REQUEST,
    SUGGESTION_REQUEST,
    NoteGenerationService,
)
from clinical_ai.store import ClinicalDataStore

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO), format="%(message)s")

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

SECTION_PROVIDER_ERROR = "AI service error"
SECTION_GENERIC_ERROR = "Section generation failed"


def _get_or_create_metric(metric_cls, name: str, documentation: str, labelnames):
    existing = REGISTRY._names_to_collectors.get(name)
    if existing is not None:
        return existing
    return metric_cls(name, documentation, labelnames=labelnames)


GENERATION_COUNTER = _get_or_create_metric(
    Counter,
    "ai_generation_requests_total",
    "AI generation requests by type and outcome",
    ["request_type", "outcome"],
)
GENERATION_LATENCY = _get_or_create_metric(
    Histogram,
    "ai_generation_latency_seconds",
    "Latency of AI generation requests",
    ["request_type"],
)


@contextmanager
def _observe(request_type: str) -> Iterator[None]:
    start = time.perf_counter()
    outcome = "error"
    try:
        yield
        outcome = "success"
    finally:
        GENERATION_COUNTER.labels(request_type, outcome).inc()
        GENERATION_LATENCY.labels(request_type).observe(time.perf_counter() - start)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    initialise_schema()
    logger.info("startup", app=APP_NAME, version=__version__)
    yield


app = FastAPI(title=f"{APP_NAME} API", version=__version__, lifespan=lifespan)


class SimpleCORSMiddleware(CORSMiddleware):
    """CORS headers for simple requests; preflights reach the OPTIONS routes."""

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] == "http" and scope["method"] == "OPTIONS":
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


app.add_middleware(
    SimpleCORSMiddleware,
    allow_origins=list(get_app_config().allowed_origins),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def bind_request_id(request: Request, call_next):
    """Bind a request identifier to every log line emitted for the request."""

    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    bind_contextvars(request_id=request_id, path=request.url.path)
    try:
        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response
    finally:
        unbind_contextvars("request_id", "path")


def _error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=CORS_HEADERS)


@app.exception_handler(ClinicalAIError)
async def clinical_ai_error_handler(request: Request, exc: ClinicalAIError) -> JSONResponse:
    logger.warning(
        "request_error",
        error_type=exc.__class__.__name__,
        status=exc.status_code,
        error=exc.message,
    )
    return _error_response(exc.message, exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    return _error_response(message, 400)


def get_store() -> ClinicalDataStore:
    return ClinicalDataStore(get_session_factory())


def get_config() -> AppConfig:
    return get_app_config()


def get_service(
    store: ClinicalDataStore = Depends(get_store),
    config: AppConfig = Depends(get_config),
) -> NoteGenerationService:
    return NoteGenerationService(store, config)


def _preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


@app.options("/generate-clinical-note", include_in_schema=False)
@app.options("/generate-section-content", include_in_schema=False)
@app.options("/suggest-clinical-content", include_in_schema=False)
def preflight() -> Response:
    return _preflight()


@app.post("/generate-clinical-note")
def generate_clinical_note(
    payload: GenerationRequest,
    service: NoteGenerationService = Depends(get_service),
) -> Dict[str, Any]:
    """Draft a clinical note and attach risk flags and review metadata."""

    try:
        with _observe(CLINICAL_NOTE_REQUEST):
            return service.generate_clinical_note(payload)
    except ClinicalAIError:
        raise
    except Exception as exc:
        logger.exception("clinical_note_failed")
        raise ClinicalAIError(str(exc) or "Unknown error") from exc


@app.post("/generate-section-content")
def generate_section_content(
    payload: SectionRequest,
    service: NoteGenerationService = Depends(get_service),
):
    """Draft one intake section.

    Errors collapse to three fixed messages so provider details never reach
    the intake form.
    """

    try:
        with _observe(SECTION_REQUEST):
            return service.generate_section_content(payload)
    except ConfigurationError:
        return _error_response(AI_DISABLED_MESSAGE, 400)
    except CompletionProviderError:
        return _error_response(SECTION_PROVIDER_ERROR, 500)
    except Exception:
        logger.exception("section_generation_failed", section_type=payload.section_type)
        return _error_response(SECTION_GENERIC_ERROR, 500)


@app.post("/suggest-clinical-content")
def suggest_clinical_content(
    payload: SuggestionRequest,
    service: NoteGenerationService = Depends(get_service),
):
    try:
        with _observe(SUGGESTION_REQUEST):
            return service.suggest_clinical_content(payload)
    except CompletionProviderError:
        return _error_response(SECTION_PROVIDER_ERROR, 500)
    except ClinicalAIError:
        raise
    except Exception as exc:
        logger.exception("suggestion_generation_failed")
        raise ClinicalAIError(str(exc) or "Unknown error") from exc


@app.get("/ai-quality-metrics")
def ai_quality_metrics(store: ClinicalDataStore = Depends(get_store)) -> Dict[str, Any]:
    """Aggregate success rate, latency and confidence over the audit log."""

    return summarize_ai_requests(store)


@app.get("/health", tags=["system"])
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


__all__ = ["app", "get_store", "get_config", "get_service"]
