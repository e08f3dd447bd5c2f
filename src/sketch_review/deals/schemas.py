"""Pydantic schemas for the PO portal -- CRM projections, view models, payloads.

Defines all structured types flowing through the handlers:
- Enums: ContactRole, PipelineState, StepPolicy
- CRM projections: AssociationEdge, LineItem, DescribedLineItem, QuoteSummary,
  ContactSummary, ContactRoles
- View models: DealView, POQuoteView, POQuoteReviewView (camelCase on the wire)
- Request/response payloads: UploadPORequest, UploadPOResponse,
  ClearOptionsRequest, POReceivedNotification, ErrorAlert
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys, populated by either name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Enums ───────────────────────────────────────────────────────────────────


class ContactRole(str, Enum):
    """Role of a contact on a deal, derived once from its association labels."""

    PAYER = "Payer"
    PRIMARY_CONTACT = "Primary Contact"
    UNLABELED = "Unlabeled"


class PipelineState(str, Enum):
    """States of a PO submission."""

    VALIDATING = "validating"
    AUTHORIZING = "authorizing"
    UPLOADING = "uploading"
    ANNOTATING = "annotating"
    PATCHING = "patching"
    NOTIFYING = "notifying"
    COMPLETED = "completed"
    REJECTED = "rejected"
    FAILED = "failed"


class StepPolicy(str, Enum):
    """Whether a failed pipeline step aborts the submission."""

    FATAL = "fatal"
    NONFATAL = "nonfatal"


# ── CRM Projections ─────────────────────────────────────────────────────────


class AssociationEdge(BaseModel):
    """One Deal -> related-record edge with the roles its labels carry."""

    to_object_id: str
    labels: list[str] = Field(default_factory=list)
    roles: frozenset[ContactRole] = frozenset({ContactRole.UNLABELED})

    def has_role(self, role: ContactRole) -> bool:
        return role in self.roles


class LineItem(CamelModel):
    id: str
    name: str = "Item"
    price: float = 0
    quantity: int = 1
    amount: float = 0


class DescribedLineItem(LineItem):
    description: str = ""


class QuoteSummary(CamelModel):
    id: str
    title: str | None = None
    status: str | None = None
    expiration_date: str | None = None
    quote_link: str | None = None


class ContactSummary(CamelModel):
    id: str
    name: str = ""
    email: str | None = None


class ContactRoles(BaseModel):
    """Payer and primary contact resolved for a deal (either may be absent)."""

    payer: ContactSummary | None = None
    primary: ContactSummary | None = None


# ── View Models ─────────────────────────────────────────────────────────────


class DealView(CamelModel):
    """Response of GET /api/deal."""

    deal_id: str
    deal_name: str
    amount: float
    line_items: list[DescribedLineItem] = Field(default_factory=list)
    total: float = 0


class POFields(CamelModel):
    is_po_customer: bool = False
    addressee: str = ""
    title: str = ""
    notes: str = ""
    team_size: int | None = None


class POQuoteView(CamelModel):
    """Response of GET /api/po-quote."""

    deal_id: str
    deal_name: str = ""
    amount: float
    total: float = 0
    line_items: list[LineItem] = Field(default_factory=list)
    existing_quote: QuoteSummary | None = None
    primary_contact: ContactSummary | None = None
    sketch_url: str | None = None
    po_fields: POFields = Field(default_factory=POFields)


class ReviewPOFields(CamelModel):
    addressee: str = ""
    title: str = ""
    notes: str = ""


class POQuoteReviewView(CamelModel):
    """Response of GET /api/po-quote-review."""

    deal_id: str
    deal_name: str = ""
    total: float = 0
    line_items: list[LineItem] = Field(default_factory=list)
    primary_contact: ContactSummary | None = None
    payer_contact: ContactSummary | None = None
    expiration_date: str
    po_fields: ReviewPOFields = Field(default_factory=ReviewPOFields)
    verbiage: dict[str, Any] = Field(default_factory=dict)
    po_quote_status: str | None = None
    po_quote_link: str | None = None
    po_document_url: str | None = None
    po_received_date: str | None = None


# ── Payloads ────────────────────────────────────────────────────────────────


class UploadPORequest(CamelModel):
    """Body of POST /api/upload-po. Presence checks happen in the handler."""

    deal_id: str | int | None = None
    token: str | None = None
    file_name: str | None = None
    file_type: str | None = None
    file_data: str | None = None


class UploadPOResponse(CamelModel):
    success: bool = True
    file_url: str | None = None


class ClearOptionsRequest(CamelModel):
    deal_id: str | int | None = None


class Recipients(BaseModel):
    """Notification recipients; cc is only set under the dual strategy."""

    to: ContactSummary | None = None
    cc: ContactSummary | None = None


class POReceivedNotification(CamelModel):
    """Payload sent to the PO notification webhook."""

    deal_id: str
    deal_name: str
    file_name: str
    deal_url: str
    file_url: str | None = None
    contact_email: str = ""
    contact_name: str = ""
    quote_title: str = ""
    cc_email: str | None = None
    cc_name: str | None = None


class ErrorAlert(BaseModel):
    """Payload sent to the error alert webhook."""

    system: str
    endpoint: str
    error: str
    dealId: str
    timestamp: str
