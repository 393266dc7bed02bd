"""
Review router: control and inspection of the review pipeline.

Endpoints:
    GET  /review/status                 Loop states and intervals
    GET  /review/health                 Health (503 when unhealthy)
    POST /review/start                  Start both polling loops
    POST /review/stop                   Stop both loops (in-flight cycles finish)
    POST /review/restart                Stop then start
    POST /review/trigger/intake         Run one intake cycle now
    POST /review/trigger/routing        Run one router cycle now
    POST /review/archive                Archive a sprint (409 if one is running)
    GET  /review/rows/intake            Intake table rows
    GET  /review/rows/secondary-review  SecondaryReview table rows
    GET  /review/files/intake           Files waiting in the intake folder
    GET  /review/logs/processing        Processing log, newest first
    GET  /review/logs/errors            Error log, newest first
    GET  /review/stats                  Counts per (action, status)

Tags:
    review-spine, api, control-plane
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from review_spine.api.deps import Manager
from review_spine.api.schemas import (
    ArchiveRequest,
    DriveItemSchema,
    ErrorLogSchema,
    ProcessingLogSchema,
    ProcessingStatSchema,
    ReviewRowSchema,
    SuccessResponse,
)
from review_spine.review.models import ReviewRow

router = APIRouter(prefix="/review")


def _rows(rows: list[ReviewRow]) -> list[ReviewRowSchema]:
    return [ReviewRowSchema(index=row.index, fields=row.fields) for row in rows]


# ── Lifecycle ────────────────────────────────────────────────────────


@router.get("/status", response_model=SuccessResponse[dict[str, Any]])
def service_status(manager: Manager):
    return SuccessResponse(data=manager.status())


@router.get("/health", response_model=SuccessResponse[dict[str, Any]])
def service_health(manager: Manager):
    """Health of both loops.

    Returns 503 when a running loop's last cycle failed.
    """
    health = manager.health()
    body = SuccessResponse(data=health.to_dict())
    if not health.healthy:
        return JSONResponse(status_code=503, content=body.model_dump(mode="json"))
    return body


@router.post("/start", response_model=SuccessResponse[dict[str, Any]])
def start_service(manager: Manager):
    return SuccessResponse(data=manager.start())


@router.post("/stop", response_model=SuccessResponse[dict[str, Any]])
def stop_service(manager: Manager):
    return SuccessResponse(data=manager.stop())


@router.post("/restart", response_model=SuccessResponse[dict[str, Any]])
def restart_service(manager: Manager):
    return SuccessResponse(data=manager.restart())


# ── Manual runs ──────────────────────────────────────────────────────


@router.post("/trigger/intake", response_model=SuccessResponse[dict[str, Any]])
def trigger_intake(manager: Manager):
    return SuccessResponse(data=manager.trigger_intake().to_dict())


@router.post("/trigger/routing", response_model=SuccessResponse[dict[str, Any]])
def trigger_routing(manager: Manager):
    return SuccessResponse(data=manager.trigger_routing().to_dict())


@router.post("/archive", response_model=SuccessResponse[dict[str, Any]])
def run_archive(request: ArchiveRequest, manager: Manager):
    """Archive closed rows and files for a sprint.

    Example:
        POST /api/v1/review/archive
        {"sprint_name": "2025-09"}

        Response:
        {"data": {"sprint_name": "2025-09", "total_archived": 12, "summary": "...", ...}}
    """
    batch = manager.run_archive(request.sprint_name)
    return SuccessResponse(data=batch.to_dict())


# ── Data ─────────────────────────────────────────────────────────────


@router.get("/rows/intake", response_model=SuccessResponse[list[ReviewRowSchema]])
def intake_rows(manager: Manager):
    return SuccessResponse(data=_rows(manager.intake_rows()))


@router.get("/rows/secondary-review", response_model=SuccessResponse[list[ReviewRowSchema]])
def secondary_review_rows(manager: Manager):
    return SuccessResponse(data=_rows(manager.secondary_review_rows()))


@router.get("/files/intake", response_model=SuccessResponse[list[DriveItemSchema]])
def intake_files(manager: Manager):
    files = [
        DriveItemSchema(
            id=item.id,
            name=item.name,
            url=item.url,
            created_at=item.created_at,
            uploader=item.uploader,
            size=item.size,
        )
        for item in manager.intake_files()
    ]
    return SuccessResponse(data=files)


@router.get("/logs/processing", response_model=SuccessResponse[list[ProcessingLogSchema]])
def processing_logs(manager: Manager, limit: int = Query(100, ge=1, le=1000)):
    entries = manager.processing_logs(limit=limit)
    return SuccessResponse(data=[ProcessingLogSchema(**e.to_dict()) for e in entries])


@router.get("/logs/errors", response_model=SuccessResponse[list[ErrorLogSchema]])
def error_logs(manager: Manager, limit: int = Query(50, ge=1, le=1000)):
    entries = manager.error_logs(limit=limit)
    return SuccessResponse(data=[ErrorLogSchema(**e.to_dict()) for e in entries])


@router.get("/stats", response_model=SuccessResponse[list[ProcessingStatSchema]])
def processing_stats(manager: Manager):
    return SuccessResponse(data=[ProcessingStatSchema(**s) for s in manager.processing_stats()])
