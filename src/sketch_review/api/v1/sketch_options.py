"""Sketch option reset endpoint.

POST /api/clear-options blanks the deal's ``sketch_options`` and
``selected_sketch_option`` properties so the review page starts over.
"""

from __future__ import annotations

import httpx
import structlog
from fastapi import APIRouter, Depends

from src.sketch_review.api.deps import build_hubspot_client, get_crm_transport
from src.sketch_review.api.middleware.logging import bind_deal_context
from src.sketch_review.config import Settings, get_settings
from src.sketch_review.core.errors import BadRequestError, UpstreamError
from src.sketch_review.deals.field_mapping import SKETCH_OPTION_PROPERTIES
from src.sketch_review.deals.schemas import ClearOptionsRequest
from src.sketch_review.services.hubspot import HubSpotAPIError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["sketch-options"])


@router.post("/clear-options")
async def clear_options(
    body: ClearOptionsRequest,
    settings: Settings = Depends(get_settings),
    transport: httpx.AsyncBaseTransport | None = Depends(get_crm_transport),
) -> dict:
    # Configuration is checked before the body here.
    client = build_hubspot_client(settings, transport)

    deal_id = str(body.deal_id) if body.deal_id not in (None, "") else ""
    if not deal_id:
        raise BadRequestError("dealId is required")
    bind_deal_context(deal_id)

    try:
        await client.update_deal(deal_id, {name: "" for name in SKETCH_OPTION_PROPERTIES})
    except HubSpotAPIError as exc:
        logger.warning("sketch_options.clear_rejected", deal_id=deal_id, status_code=exc.status_code)
        raise UpstreamError(
            "HubSpot update failed", details=exc.body, status_code=exc.status_code
        ) from exc
    except Exception as exc:
        logger.error("sketch_options.clear_failed", deal_id=deal_id, error=str(exc))
        raise UpstreamError("Failed to clear options", details=str(exc)) from exc

    logger.info("sketch_options.cleared", deal_id=deal_id)
    return {"success": True}
