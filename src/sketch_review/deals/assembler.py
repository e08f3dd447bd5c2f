"""View assembler -- flattens a deal and its resolved records into view models.

Applies numeric coercion defaults, the per-item total rule, the deal-level
amount fallback, the proposed expiration window, and defensive parsing of
the JSON verbiage field.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone
from typing import Any

import structlog

from src.sketch_review.deals.field_mapping import is_flag_set, text_or, to_float, to_int
from src.sketch_review.deals.schemas import (
    ContactRoles,
    ContactSummary,
    DealView,
    DescribedLineItem,
    LineItem,
    POFields,
    POQuoteReviewView,
    POQuoteView,
    QuoteSummary,
    ReviewPOFields,
)

logger = structlog.get_logger(__name__)

EXPIRATION_WINDOW_DAYS = 120


def line_total(item: LineItem) -> float:
    """An item's amount, or price x quantity when the amount is zero or absent."""
    return item.amount or item.price * item.quantity


def compute_total(items: Iterable[LineItem]) -> float:
    """Order-independent sum of per-item totals."""
    return sum((line_total(item) for item in items), 0)


def deal_amount(properties: dict[str, Any], total: float) -> float:
    """The deal's own amount, falling back to the computed total."""
    return to_float(properties.get("amount"), total)


def proposed_expiration(today: date | None = None) -> str:
    """Today + 120 days as YYYY-MM-DD. Computed per response, never stored."""
    start = today or datetime.now(timezone.utc).date()
    return (start + timedelta(days=EXPIRATION_WINDOW_DAYS)).isoformat()


def parse_verbiage(raw: Any) -> dict[str, Any]:
    """Parse the JSON verbiage blob; anything invalid yields ``{}``."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.info("assembler.verbiage_invalid")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _props(deal: dict[str, Any]) -> dict[str, Any]:
    return deal.get("properties") or {}


def assemble_deal_view(deal: dict[str, Any], line_items: list[DescribedLineItem]) -> DealView:
    props = _props(deal)
    total = compute_total(line_items)
    return DealView(
        deal_id=str(deal.get("id")),
        deal_name=text_or(props.get("dealname"), "Your Order"),
        amount=deal_amount(props, total),
        line_items=line_items,
        total=total,
    )


def assemble_po_quote_view(
    deal: dict[str, Any],
    line_items: list[LineItem],
    quote: QuoteSummary | None,
    primary: ContactSummary | None,
) -> POQuoteView:
    props = _props(deal)
    total = compute_total(line_items)
    return POQuoteView(
        deal_id=str(deal.get("id")),
        deal_name=text_or(props.get("dealname"), ""),
        amount=deal_amount(props, total),
        total=total,
        line_items=line_items,
        existing_quote=quote,
        primary_contact=primary,
        sketch_url=text_or(props.get("sketch_public_url"), None),
        po_fields=POFields(
            is_po_customer=is_flag_set(props.get("is_po_customer")),
            addressee=text_or(props.get("po_quote_addressee"), ""),
            title=text_or(props.get("po_quote_title"), ""),
            notes=text_or(props.get("po_quote_notes"), ""),
            team_size=to_int(props.get("po_team_size"), None),
        ),
    )


def assemble_po_review_view(
    deal: dict[str, Any],
    line_items: list[LineItem],
    contacts: ContactRoles,
    today: date | None = None,
) -> POQuoteReviewView:
    props = _props(deal)
    return POQuoteReviewView(
        deal_id=str(deal.get("id")),
        deal_name=text_or(props.get("dealname"), ""),
        total=compute_total(line_items),
        line_items=line_items,
        primary_contact=contacts.primary,
        payer_contact=contacts.payer,
        expiration_date=proposed_expiration(today),
        po_fields=ReviewPOFields(
            addressee=text_or(props.get("po_quote_addressee"), ""),
            title=text_or(props.get("po_quote_title"), ""),
            notes=text_or(props.get("po_quote_notes"), ""),
        ),
        verbiage=parse_verbiage(props.get("po_quote_verbiage")),
        po_quote_status=text_or(props.get("po_quote_status"), None),
        po_quote_link=text_or(props.get("po_quote_link"), None),
        po_document_url=text_or(props.get("po_document_url"), None),
        po_received_date=text_or(props.get("po_received_date"), None),
    )
