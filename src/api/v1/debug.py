"""
Manual checks against the booking backend.

GET /debug/services lists the site's services. It is the quickest way to see
whether the Wix credentials work and carry the bookings scope; failures
return the upstream status and body verbatim.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from src.config import Settings, get_settings
from src.core.relay import BookingRelay, get_relay

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/debug", tags=["debug"])


def require_debug_endpoints(settings: Settings = Depends(get_settings)) -> None:
    if not settings.debug_endpoints_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")


@router.get("/services", dependencies=[Depends(require_debug_endpoints)])
async def list_services(relay: BookingRelay = Depends(get_relay)):
    result = await relay.gateway.backend.execute("query_services", {})
    if not result.get("success"):
        logger.warning("Debug services query failed: %s %s", result.get("status"), result.get("error"))
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={
                "ok": False,
                "status": result.get("status"),
                "error": result.get("error"),
                "body": result.get("body") or "",
            },
        )

    services = result.get("services") or []
    return {"ok": True, "count": len(services), "items": services}
