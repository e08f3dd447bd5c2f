"""CRM property lists, string coercion, and record-to-projection mapping.

The CRM returns every property as a string (or omits it). Defines:
- *_PROPERTIES: Property names requested for each object type and view.
- to_float() / to_int(): Leading-number parsing where a zero or unparsable
  value falls back to the field's default.
- is_flag_set(): Boolean custom field check (exact "true" / "Yes").
- edge_from_result(): Association result -> AssociationEdge with roles.
- line_item_from_record() / quote_from_record() / contact_from_record().
"""

from __future__ import annotations

import re
from typing import Any

from src.sketch_review.deals.schemas import (
    AssociationEdge,
    ContactRole,
    ContactSummary,
    DescribedLineItem,
    LineItem,
    QuoteSummary,
)

# ── Property Lists ──────────────────────────────────────────────────────────

DEAL_SUMMARY_PROPERTIES = ["dealname", "amount"]

PO_QUOTE_DEAL_PROPERTIES = [
    "dealname",
    "amount",
    "is_po_customer",
    "po_quote_addressee",
    "po_quote_title",
    "po_quote_notes",
    "po_team_size",
    "sketch_public_url",
]

PO_REVIEW_DEAL_PROPERTIES = [
    "dealname",
    "amount",
    "po_quote_addressee",
    "po_quote_title",
    "po_quote_notes",
    "po_quote_verbiage",
    "po_quote_status",
    "po_quote_link",
    "po_document_url",
    "po_received_date",
]

PO_UPLOAD_DEAL_PROPERTIES = ["dealname", "po_quote_title"]

LINE_ITEM_PROPERTIES = ["name", "price", "quantity", "amount", "description"]

QUOTE_PROPERTIES = ["hs_title", "hs_status", "hs_expiration_date", "hs_quote_link"]

CONTACT_PROPERTIES = ["firstname", "lastname", "email"]

SKETCH_OPTION_PROPERTIES = ["sketch_options", "selected_sketch_option"]

FLAG_TRUE_VALUES = frozenset({"true", "Yes"})

ROLE_LABELS: dict[str, ContactRole] = {
    ContactRole.PAYER.value: ContactRole.PAYER,
    ContactRole.PRIMARY_CONTACT.value: ContactRole.PRIMARY_CONTACT,
}


# ── Coercion ────────────────────────────────────────────────────────────────

_FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")


def _parse_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _FLOAT_PREFIX.match(str(value))
    return float(match.group(1)) if match else None


def _parse_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        return int(value)
    if isinstance(value, int):
        return value
    match = _INT_PREFIX.match(str(value))
    return int(match.group(1)) if match else None


def to_float(value: Any, default: Any = 0.0) -> Any:
    """Parse the leading number of ``value``; zero or unparsable -> ``default``.

    ``"12.5 USD"`` parses as 12.5, ``""`` / ``None`` / ``"abc"`` / ``"0"``
    return ``default``.
    """
    parsed = _parse_float(value)
    return parsed if parsed else default


def to_int(value: Any, default: Any = 1) -> Any:
    """Parse the leading integer of ``value``; zero or unparsable -> ``default``.

    ``"2.7"`` parses as 2. Quantities default to 1, team size to None.
    """
    parsed = _parse_int(value)
    return parsed if parsed else default


def is_flag_set(value: Any) -> bool:
    """Boolean custom fields are stored as strings; match them exactly."""
    return isinstance(value, str) and value in FLAG_TRUE_VALUES


def text_or(value: Any, default: Any = "") -> Any:
    """Return ``value`` unless it is empty or missing."""
    return value if value else default


# ── Record Mapping ──────────────────────────────────────────────────────────


def _props(record: dict[str, Any]) -> dict[str, Any]:
    return record.get("properties") or {}


def edge_from_result(result: dict[str, Any]) -> AssociationEdge:
    """Convert one v4 association result into an AssociationEdge.

    Roles are derived from the labels here, once, so that callers compare
    enum members instead of label strings.
    """
    labels = [
        assoc.get("label")
        for assoc in (result.get("associationTypes") or [])
        if assoc.get("label")
    ]
    roles = frozenset(ROLE_LABELS[label] for label in labels if label in ROLE_LABELS)
    return AssociationEdge(
        to_object_id=str(result.get("toObjectId")),
        labels=labels,
        roles=roles or frozenset({ContactRole.UNLABELED}),
    )


def line_item_from_record(record: dict[str, Any], *, with_description: bool = False) -> LineItem:
    props = _props(record)
    fields = {
        "id": str(record.get("id")),
        "name": text_or(props.get("name"), "Item"),
        "price": to_float(props.get("price"), 0),
        "quantity": to_int(props.get("quantity"), 1),
        "amount": to_float(props.get("amount"), 0),
    }
    if with_description:
        return DescribedLineItem(**fields, description=text_or(props.get("description"), ""))
    return LineItem(**fields)


def quote_from_record(record: dict[str, Any]) -> QuoteSummary:
    props = _props(record)
    return QuoteSummary(
        id=str(record.get("id")),
        title=props.get("hs_title"),
        status=props.get("hs_status"),
        expiration_date=props.get("hs_expiration_date"),
        quote_link=props.get("hs_quote_link"),
    )


def contact_from_record(record: dict[str, Any]) -> ContactSummary:
    props = _props(record)
    name = " ".join(part for part in (props.get("firstname"), props.get("lastname")) if part)
    return ContactSummary(
        id=str(record.get("id")),
        name=name,
        email=props.get("email"),
    )
