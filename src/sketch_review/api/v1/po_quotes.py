"""PO quote endpoints: quote page data, tokenized review, and PO upload.

- GET  /api/po-quote         deal, line items, first quote, primary contact
- GET  /api/po-quote-review  token-gated; payer and primary contact, verbiage
- POST /api/upload-po        token-gated; runs the PO submission pipeline

The review and upload endpoints verify the per-deal link token before any
CRM call. A missing PO_QUOTE_SECRET rejects every token.
"""

from __future__ import annotations

import httpx
import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Query

from src.sketch_review.api.deps import (
    build_hubspot_client,
    get_crm_transport,
    get_error_reporter,
    get_po_notifier,
    get_token_authority,
    reported_upstream_failures,
)
from src.sketch_review.api.middleware.logging import bind_deal_context
from src.sketch_review.config import Settings, get_settings
from src.sketch_review.core.errors import AccessDeniedError, BadRequestError
from src.sketch_review.core.security import TokenAuthority
from src.sketch_review.deals.assembler import assemble_po_quote_view, assemble_po_review_view
from src.sketch_review.deals.field_mapping import PO_QUOTE_DEAL_PROPERTIES, PO_REVIEW_DEAL_PROPERTIES
from src.sketch_review.deals.resolver import RelationalResolver
from src.sketch_review.deals.schemas import (
    PipelineState,
    POQuoteReviewView,
    POQuoteView,
    UploadPORequest,
    UploadPOResponse,
)
from src.sketch_review.deals.submission import (
    Submission,
    SubmissionPipeline,
    rejected_at,
    validate_upload,
)
from src.sketch_review.services.webhooks import ErrorReporter, PONotifier

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["po-quotes"])


# ── Read Endpoints ───────────────────────────────────────────────────────────


@router.get("/po-quote", response_model=POQuoteView)
async def get_po_quote(
    deal_id: str | None = Query(default=None, alias="dealId"),
    settings: Settings = Depends(get_settings),
    transport: httpx.AsyncBaseTransport | None = Depends(get_crm_transport),
    reporter: ErrorReporter = Depends(get_error_reporter),
) -> POQuoteView:
    """Data for the PO quote page."""
    if not deal_id:
        raise BadRequestError("dealId is required")

    resolver = RelationalResolver(build_hubspot_client(settings, transport))

    async with reported_upstream_failures(reporter, "/api/po-quote", "Failed to fetch data", deal_id):
        _, deal = await resolver.fetch_primary_deal(deal_id, PO_QUOTE_DEAL_PROPERTIES)
        line_items = await resolver.line_items(deal_id)
        quote = await resolver.first_quote(deal_id)
        primary = await resolver.primary_contact(deal_id)

    return assemble_po_quote_view(deal, line_items, quote, primary)


@router.get("/po-quote-review", response_model=POQuoteReviewView)
async def get_po_quote_review(
    deal_id: str | None = Query(default=None, alias="dealId"),
    token: str | None = Query(default=None),
    settings: Settings = Depends(get_settings),
    authority: TokenAuthority = Depends(get_token_authority),
    transport: httpx.AsyncBaseTransport | None = Depends(get_crm_transport),
    reporter: ErrorReporter = Depends(get_error_reporter),
) -> POQuoteReviewView:
    """Customer review page data, gated by the deal's link token."""
    if not deal_id:
        raise BadRequestError("dealId is required")
    if not token:
        raise AccessDeniedError("Access denied")
    if not authority.verify(deal_id, token):
        raise AccessDeniedError("Invalid or expired link")

    resolver = RelationalResolver(build_hubspot_client(settings, transport))

    async with reported_upstream_failures(
        reporter, "/api/po-quote-review", "Failed to fetch data", deal_id
    ):
        _, deal = await resolver.fetch_primary_deal(deal_id, PO_REVIEW_DEAL_PROPERTIES)
        line_items = await resolver.line_items(deal_id)
        contacts = await resolver.contact_roles(deal_id)

    return assemble_po_review_view(deal, line_items, contacts)


# ── Upload ───────────────────────────────────────────────────────────────────


@router.post("/upload-po", response_model=UploadPOResponse)
async def upload_po(
    body: UploadPORequest,
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_settings),
    authority: TokenAuthority = Depends(get_token_authority),
    notifier: PONotifier = Depends(get_po_notifier),
    transport: httpx.AsyncBaseTransport | None = Depends(get_crm_transport),
    reporter: ErrorReporter = Depends(get_error_reporter),
) -> UploadPOResponse:
    """Store a customer PO on the deal and notify the sales workflow.

    Only the file upload is fatal. Note, property patch, and notification
    failures are logged and the request still succeeds.
    """
    deal_id = str(body.deal_id) if body.deal_id not in (None, "") else ""
    if not deal_id or not body.token:
        raise BadRequestError("dealId and token are required")
    bind_deal_context(deal_id)

    with rejected_at(PipelineState.AUTHORIZING, deal_id):
        if not authority.verify(deal_id, body.token):
            raise AccessDeniedError("Invalid or expired link")

    with rejected_at(PipelineState.VALIDATING, deal_id):
        upload = validate_upload(
            body.file_name,
            body.file_type,
            body.file_data,
            max_bytes=settings.PO_MAX_FILE_BYTES,
            support_email=settings.SUPPORT_EMAIL,
        )

    pipeline = SubmissionPipeline(
        build_hubspot_client(settings, transport),
        notifier,
        deal_url=settings.deal_record_url,
        notify_mode=settings.PO_NOTIFY_MODE,
        recipient_strategy=settings.PO_RECIPIENT_STRATEGY,
        folder_path=settings.PO_FOLDER_PATH,
        schedule=background_tasks.add_task,
    )

    submission: Submission | None = None
    failure_message = (
        f"Upload failed. Please try again or email your PO to {settings.SUPPORT_EMAIL}."
    )
    async with reported_upstream_failures(
        reporter,
        "/api/upload-po",
        failure_message,
        deal_id,
        deal_name=lambda: submission.deal_name if submission else None,
    ):
        submission = await pipeline.prepare(deal_id, upload)
        result = await pipeline.run(submission)

    logger.info(
        "po_upload.accepted",
        deal_id=deal_id,
        file_id=result.file_id,
        size=upload.size,
    )
    return UploadPOResponse(success=True, file_url=result.file_url)
