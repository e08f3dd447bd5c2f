"""Deal summary endpoint used by the sketch review page.

GET /api/deal?dealId=... returns the deal name, amount, and line items.
``dealId`` may be a HubSpot record id or a deal name: when the direct
lookup fails, the deal is searched by name and the match's id is used for
every later call.
"""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends, Query

from src.sketch_review.api.deps import (
    build_hubspot_client,
    get_crm_transport,
    get_error_reporter,
    reported_upstream_failures,
)
from src.sketch_review.config import Settings, get_settings
from src.sketch_review.core.errors import BadRequestError
from src.sketch_review.deals.assembler import assemble_deal_view
from src.sketch_review.deals.field_mapping import DEAL_SUMMARY_PROPERTIES
from src.sketch_review.deals.resolver import RelationalResolver
from src.sketch_review.deals.schemas import DealView
from src.sketch_review.services.webhooks import ErrorReporter

router = APIRouter(prefix="/api", tags=["deals"])


@router.get("/deal", response_model=DealView)
async def get_deal(
    deal_id: str | None = Query(default=None, alias="dealId"),
    settings: Settings = Depends(get_settings),
    transport: httpx.AsyncBaseTransport | None = Depends(get_crm_transport),
    reporter: ErrorReporter = Depends(get_error_reporter),
) -> DealView:
    """Deal summary with described line items and the computed total."""
    if not deal_id:
        raise BadRequestError("dealId is required")

    resolver = RelationalResolver(build_hubspot_client(settings, transport))

    async with reported_upstream_failures(reporter, "/api/deal", "Failed to fetch deal data", deal_id):
        effective_id, deal = await resolver.fetch_primary_deal(
            deal_id, DEAL_SUMMARY_PROPERTIES, search_fallback=True
        )
        line_items = await resolver.line_items(effective_id, with_description=True)

    return assemble_deal_view(deal, line_items)
