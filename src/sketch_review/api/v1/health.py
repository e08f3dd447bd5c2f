"""Health check endpoint.

Liveness only: the handlers are stateless and hold no connections, so there
is nothing to probe for readiness. The response reports which integrations
are configured, never their values.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.sketch_review.config import Settings, get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings)):
    """Basic liveness check."""
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT.value,
        "integrations": {
            "hubspot": bool(settings.HUBSPOT_TOKEN),
            "po_links": bool(settings.PO_QUOTE_SECRET),
            "error_alerts": bool(settings.ERROR_ALERT_WEBHOOK_URL),
            "po_notifications": bool(settings.PO_NOTIFICATION_WEBHOOK_URL),
        },
    }
