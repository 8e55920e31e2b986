"""
Activity log viewer endpoints.
Reads and clears the in-memory view only; persisted entries are never touched.
With an X-Merchant-Id header, only that merchant's entries are shown or cleared.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from fastapi.responses import PlainTextResponse

from app.dependencies import get_activity_logger
from app.models.database import LogLevel
from app.services.activity_logger import ActivityLogger

logger = structlog.get_logger()

router = APIRouter(prefix="/api/logs", tags=["logs"])


@router.get("")
async def list_logs(
    level: Optional[str] = Query(None, description="Filter by level (INFO, SUCCESS, WARNING, ERROR, DEBUG)"),
    source: Optional[str] = Query(None, description="Filter by component (e.g. PROBER)"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    x_merchant_id: Optional[str] = Header(None),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Recent activity entries, newest first."""
    log_level = None
    if level:
        try:
            log_level = LogLevel(level.upper())
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown log level: {level}",
            )

    entries = activity.recent(level=log_level, source=source, limit=limit, merchant_id=x_merchant_id)
    return {
        "success": True,
        "logs": [entry.model_dump(mode="json") for entry in entries],
        "count": len(entries),
    }


@router.get("/export", response_class=PlainTextResponse)
async def export_logs(
    x_merchant_id: Optional[str] = Header(None),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Plain-text export of the in-memory view."""
    return PlainTextResponse(
        activity.export_text(merchant_id=x_merchant_id),
        headers={"Content-Disposition": 'attachment; filename="integration-logs.txt"'},
    )


@router.delete("")
async def clear_logs(
    x_merchant_id: Optional[str] = Header(None),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Clear the in-memory view."""
    activity.clear_view(merchant_id=x_merchant_id)
    logger.info("Activity log view cleared", merchant_id=x_merchant_id)
    return {"success": True}
