"""
Integration action endpoint.
One POST route per platform, dispatched by the `action` field of the JSON body.
"""

import json
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse

from app.config import settings
from app.dependencies import get_broker
from app.integrations.errors import ErrorKind
from app.models.broker import Platform
from app.services.broker import IntegrationBroker

logger = structlog.get_logger()

router = APIRouter(prefix="/api/integrations", tags=["integrations"])

STATUS_BY_KIND = {
    ErrorKind.INVALID_INPUT.value: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_CREDENTIALS.value: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INSUFFICIENT_PERMISSIONS.value: status.HTTP_403_FORBIDDEN,
    ErrorKind.API_NOT_FOUND.value: status.HTTP_404_NOT_FOUND,
    ErrorKind.REMOTE_PLATFORM_ERROR.value: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.TRANSIENT_NETWORK_ERROR.value: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorKind.DECRYPTION_ERROR.value: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.PERSISTENCE_ERROR.value: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(body: dict) -> int:
    """HTTP status for a broker response body."""
    if body.get("success"):
        return status.HTTP_200_OK
    return STATUS_BY_KIND.get(body.get("errorKind"), status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.post("/{platform}")
async def integration_action(
    platform: str,
    request: Request,
    x_merchant_id: Optional[str] = Header(None),
    broker: IntegrationBroker = Depends(get_broker),
):
    """
    Run an integration action for the current merchant.

    Body: `{"action": "test" | "save" | "list" | "fetch_products" | "import_product" | "import_products", ...}`
    """
    try:
        target = Platform(platform.lower())
    except ValueError:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"success": False, "error": "Unsupported platform"},
        )

    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = None
    if not isinstance(payload, dict):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "error": "Request body must be a JSON object",
                "errorKind": ErrorKind.INVALID_INPUT.value,
            },
        )

    merchant_id = x_merchant_id or settings.default_merchant_id
    logger.info(
        "Integration action received",
        platform=target.value,
        action=payload.get("action"),
        merchant_id=merchant_id,
    )

    body = await broker.dispatch(merchant_id, target, payload)
    return JSONResponse(status_code=status_for(body), content=body)
