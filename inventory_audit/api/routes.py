"""FastAPI routes for Inventory Audit API."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import AnyHttpUrl, BaseModel, Field, TypeAdapter, ValidationError, field_validator

from inventory_audit.api.deps import get_history, get_runner, get_settings_dep
from inventory_audit.config import Settings
from inventory_audit.models.job import JobStatus
from inventory_audit.models.report import Report
from inventory_audit.services.broadcaster import QueueSink
from inventory_audit.services.history import HistoryStore
from inventory_audit.services.runner import JobRunner
from inventory_audit.utils.errors import (
    InvalidTransitionError,
    InventoryAuditError,
    JobNotFoundError,
    UpstreamAPIError,
)

logger = logging.getLogger(__name__)

# Create router
router = APIRouter()

_http_url = TypeAdapter(AnyHttpUrl)


# ==================== Error Response Model ====================


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
    error_type: str
    errors: Optional[List[Dict[str, Any]]] = None


# ==================== Exception Handlers ====================


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors."""
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "error_type": "ValidationError",
            "errors": [
                {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
                for e in exc.errors()
            ],
        },
    )


async def inventory_audit_exception_handler(
    request: Request, exc: InventoryAuditError
) -> JSONResponse:
    """Handle application-specific errors."""
    # Determine appropriate status code based on error type
    status_code = 500

    if isinstance(exc, JobNotFoundError):
        status_code = 404
    elif isinstance(exc, InvalidTransitionError):
        status_code = 409  # Conflict: transition not valid from current state
    elif isinstance(exc, UpstreamAPIError):
        status_code = 502

    return JSONResponse(
        status_code=status_code,
        content={
            "detail": str(exc),
            "error_type": type(exc).__name__,
        },
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "error_type": "HTTPException",
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_type": "InternalError",
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers above on an application."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(InventoryAuditError, inventory_audit_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)


# ==================== Request/Response Models ====================


class ProcessRequest(BaseModel):
    """Request model for batch submission."""

    steam_ids: List[str] = Field(description="Identifiers, as a list or one whitespace-separated string")
    webhook_url: Optional[str] = Field(
        default=None, description="http(s) webhook notified at each lifecycle transition"
    )

    @field_validator("steam_ids", mode="before")
    @classmethod
    def split_string(cls, v: Any) -> Any:
        """Accept the raw textarea value as well as a list."""
        if isinstance(v, str):
            return v.split()
        return v

    @field_validator("steam_ids")
    @classmethod
    def at_least_one(cls, v: List[str]) -> List[str]:
        """Require at least one non-blank identifier."""
        cleaned = [item.strip() for item in v if item.strip()]
        if not cleaned:
            raise ValueError("provide at least one identifier")
        return cleaned

    @field_validator("webhook_url", mode="before")
    @classmethod
    def blank_is_none(cls, v: Any) -> Any:
        """Treat an empty webhook field as not provided."""
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
        return v

    @field_validator("webhook_url")
    @classmethod
    def must_be_http_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate as an http(s) URL but keep the submitted text as the target."""
        if v is None:
            return v
        try:
            _http_url.validate_python(v)
        except ValidationError:
            raise ValueError("webhook_url must be an http(s) URL")
        return v


class ProcessResponse(BaseModel):
    """Response model for batch submission."""

    job_id: str
    status: str
    total: int
    duplicates_ignored: int
    message: str


class ControlResponse(BaseModel):
    """Acknowledgement of a pause / resume / stop signal."""

    ok: bool = True
    job_id: str
    status: str


class HistoryResponse(BaseModel):
    """Recent history entries."""

    window_hours: int
    items: List[Dict[str, Any]]


# ==================== Endpoints ====================


@router.get("/health")
async def health_check(runner: JobRunner = Depends(get_runner)) -> Dict[str, Any]:
    """Service health and number of jobs held in memory."""
    return {"status": "healthy", "jobs": len(runner.store)}


@router.post("/process", response_model=ProcessResponse)
async def create_job(
    request: ProcessRequest,
    runner: JobRunner = Depends(get_runner),
) -> ProcessResponse:
    """
    Submit a batch of identifiers.

    The job starts immediately in the background. Follow it through
    ``/process/{job_id}/stream`` or poll ``/process/{job_id}/result``.
    """
    notify_target = request.webhook_url
    job = runner.submit(request.steam_ids, notify_target=notify_target)

    return ProcessResponse(
        job_id=job.id,
        status=job.status.value,
        total=job.total,
        duplicates_ignored=job.duplicates_ignored,
        message=f"Processing {job.total} identifier(s).",
    )


@router.get("/process/{job_id}/stream")
async def stream_job(
    job_id: str,
    runner: JobRunner = Depends(get_runner),
    settings: Settings = Depends(get_settings_dep),
) -> StreamingResponse:
    """
    Live event feed (Server-Sent Events).

    Replays the job's log history first; finished jobs then replay their
    terminal event and close the stream.
    """
    broadcaster = runner.broadcaster
    sink = QueueSink(max_backlog=settings.sink_queue_size)
    broadcaster.attach(job_id, sink)

    async def event_stream():
        try:
            async for event in sink.events():
                yield event.to_sse()
        finally:
            sink.close()
            broadcaster.detach(job_id, sink)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.post("/process/{job_id}/pause", response_model=ControlResponse)
async def pause_job(job_id: str, runner: JobRunner = Depends(get_runner)) -> ControlResponse:
    """Pause after the item currently in flight."""
    job = runner.pause(job_id)
    return ControlResponse(job_id=job.id, status=job.status.value)


@router.post("/process/{job_id}/resume", response_model=ControlResponse)
async def resume_job(job_id: str, runner: JobRunner = Depends(get_runner)) -> ControlResponse:
    """Resume a paused job from where it stopped."""
    job = runner.resume(job_id)
    return ControlResponse(job_id=job.id, status=job.status.value)


@router.post("/process/{job_id}/stop", response_model=ControlResponse)
async def stop_job(job_id: str, runner: JobRunner = Depends(get_runner)) -> ControlResponse:
    """Stop early and complete with the results gathered so far."""
    job = runner.stop(job_id)
    return ControlResponse(job_id=job.id, status=job.status.value)


@router.get("/process/{job_id}/partial-report", response_model=Report)
async def partial_report(job_id: str, runner: JobRunner = Depends(get_runner)) -> Report:
    """Snapshot report; never interferes with the running job."""
    return runner.partial_report(job_id)


@router.get("/process/{job_id}/result")
async def job_result(job_id: str, runner: JobRunner = Depends(get_runner)) -> JSONResponse:
    """
    Final result of a job.

    200 with the final report once complete, 500 with the partial report and
    logs if the job failed, 202 while it is still running.
    """
    job = runner.store.require(job_id)

    if job.status == JobStatus.COMPLETE and job.report is not None:
        return JSONResponse(status_code=200, content=job.report.model_dump(mode="json"))

    if job.status == JobStatus.ERROR:
        return JSONResponse(
            status_code=500,
            content={
                "error": job.error,
                "report": job.report.model_dump(mode="json") if job.report else None,
                "logs": [entry.model_dump(mode="json") for entry in job.logs],
            },
        )

    return JSONResponse(status_code=202, content={"status": job.status.value})


@router.get("/history/recent", response_model=HistoryResponse)
async def recent_history(
    history: HistoryStore = Depends(get_history),
    settings: Settings = Depends(get_settings_dep),
) -> HistoryResponse:
    """Valued or flagged identifiers recorded within the history window."""
    items = await history.recent_entries(settings.history_window_hours)
    if not items:
        raise HTTPException(status_code=404, detail="No eligible history entries in the window")
    return HistoryResponse(window_hours=settings.history_window_hours, items=items)
