"""PO submission pipeline -- validate, upload, annotate, patch, notify.

The write path of the PO portal, expressed as a step table in which every
step carries a failure policy:

    upload    FATAL     nothing further runs; the request fails
    annotate  NONFATAL  logged; the file is already stored
    patch     NONFATAL  logged; the file is already stored
    notify    NONFATAL  best-effort; awaited or scheduled per NotifyMode

There is no compensating rollback: a stored file without its note or
property patch is logged for manual follow-up.

Exports:
    validate_upload: The Validating state (type allow-list, base64, size cap).
    rejected_at: Records a pre-upload rejection (Validating or Authorizing).
    resolve_recipients: Notification recipients per RecipientStrategy.
    SubmissionPipeline: Runs the step table for one deal.
"""

from __future__ import annotations

import base64
import binascii
import time
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, NamedTuple

import structlog
from pydantic import BaseModel, Field

from src.sketch_review.config import NotifyMode, RecipientStrategy
from src.sketch_review.core.errors import BadRequestError, SketchReviewError
from src.sketch_review.deals.field_mapping import PO_UPLOAD_DEAL_PROPERTIES, text_or
from src.sketch_review.deals.resolver import RelationalResolver
from src.sketch_review.deals.schemas import (
    PipelineState,
    POReceivedNotification,
    Recipients,
    StepPolicy,
)
from src.sketch_review.services.hubspot import HubSpotClient

if TYPE_CHECKING:
    from src.sketch_review.services.webhooks import PONotifier

logger = structlog.get_logger(__name__)

ALLOWED_FILE_TYPES = ("application/pdf", "image/png", "image/jpeg")
DEFAULT_CONTENT_TYPE = "application/pdf"
DEFAULT_MAX_FILE_BYTES = 3 * 1024 * 1024

PO_RECEIVED_PROPERTIES = {
    "po_quote_status": "PO Received",
    "po_status": "received",
}

# ── Validating ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ValidatedUpload:
    """A decoded PO file that passed validation."""

    file_name: str
    file_type: str | None
    content: bytes

    @property
    def content_type(self) -> str:
        return self.file_type or DEFAULT_CONTENT_TYPE

    @property
    def extension(self) -> str:
        return self.file_name.rsplit(".", 1)[-1] or "pdf"

    @property
    def size(self) -> int:
        return len(self.content)


def _decode_base64(data: str) -> bytes:
    """Decode standard or URL-safe base64.

    An optional data-URL prefix and whitespace are dropped, and padding is
    normalised before the strict decode.
    """
    raw = data.split(",", 1)[1] if "," in data else data
    raw = "".join(raw.split()).rstrip("=").replace("-", "+").replace("_", "/")
    raw += "=" * (-len(raw) % 4)
    return base64.b64decode(raw, validate=True)


def validate_upload(
    file_name: str | None,
    file_type: str | None,
    file_data: str | None,
    max_bytes: int = DEFAULT_MAX_FILE_BYTES,
    support_email: str = "support@showoffinc.com",
) -> ValidatedUpload:
    """Validate an inbound PO file payload.

    An absent declared type is accepted as unspecified. The size cap is
    inclusive: exactly ``max_bytes`` decoded bytes are accepted.

    Raises:
        BadRequestError: Missing fields, disallowed type, undecodable or
            oversized payload.
    """
    if not file_data or not file_name:
        raise BadRequestError("fileName and fileData are required")

    if file_type and file_type not in ALLOWED_FILE_TYPES:
        raise BadRequestError("File type not allowed. Please upload a PDF, PNG, or JPG.")

    try:
        content = _decode_base64(file_data)
    except (binascii.Error, ValueError):
        raise BadRequestError("fileData is not valid base64") from None

    if len(content) > max_bytes:
        max_mb = max_bytes // (1024 * 1024)
        raise BadRequestError(
            f"File is too large (max {max_mb}MB). Please email your PO to {support_email}."
        )

    return ValidatedUpload(file_name=file_name, file_type=file_type or None, content=content)


@contextmanager
def rejected_at(stage: PipelineState, deal_id: str) -> Iterator[None]:
    """Log a client-side rejection raised during a pre-upload stage.

    Nothing has been written to the CRM when this fires, so the submission
    ends in REJECTED rather than FAILED.
    """
    try:
        yield
    except SketchReviewError as exc:
        logger.info(
            "po_upload.rejected",
            deal_id=deal_id,
            stage=stage.value,
            state=PipelineState.REJECTED.value,
            reason=exc.message,
        )
        raise


# ── Recipients ──────────────────────────────────────────────────────────────


async def resolve_recipients(
    resolver: RelationalResolver,
    deal_id: str,
    strategy: RecipientStrategy,
) -> Recipients:
    """Resolve notification recipients.

    FIRST_CONTACT: the first associated contact, whatever its labels.
    PAYER_PRIMARY: the payer, with the primary contact as cc when it is a
    different contact; without a payer the primary contact is the sole
    recipient.
    """
    if strategy == RecipientStrategy.FIRST_CONTACT:
        return Recipients(to=await resolver.first_contact(deal_id))

    roles = await resolver.contact_roles(deal_id)
    if roles.payer is None:
        return Recipients(to=roles.primary)
    cc = roles.primary if roles.primary and roles.primary.id != roles.payer.id else None
    return Recipients(to=roles.payer, cc=cc)


# ── Pipeline ────────────────────────────────────────────────────────────────


class StepOutcome(BaseModel):
    name: str
    policy: StepPolicy
    ok: bool
    error: str | None = None


class PipelineResult(BaseModel):
    """What happened during one submission."""

    state: PipelineState = PipelineState.UPLOADING
    file_id: str | None = None
    file_url: str | None = None
    steps: list[StepOutcome] = Field(default_factory=list)

    def outcome(self, name: str) -> StepOutcome | None:
        return next((s for s in self.steps if s.name == name), None)


@dataclass
class Submission:
    """Mutable context threaded through the steps of one submission."""

    deal_id: str
    deal_name: str
    quote_title: str
    upload: ValidatedUpload
    recipients: Recipients = field(default_factory=Recipients)
    file_id: str | None = None
    file_url: str | None = None

    @property
    def stored_file_name(self) -> str:
        return f"{self.deal_name}_PO.{self.upload.extension}"


class PipelineStep(NamedTuple):
    name: str
    state: PipelineState
    policy: StepPolicy
    run: Callable[[Submission], Awaitable[None]]


Scheduler = Callable[..., Any]


class SubmissionPipeline:
    """Uploads a PO to the CRM and records it on the deal.

    Args:
        client: HubSpotClient for the upload, note, and patch calls.
        notifier: PONotifier for the PO-received webhook.
        deal_url: Builds the CRM web URL for a deal id.
        notify_mode: AWAIT sends the notification before responding;
            BACKGROUND hands it to ``schedule``.
        recipient_strategy: Who the notification is addressed to.
        folder_path: CRM file manager folder for PO documents.
        schedule: Detached-task submitter (e.g. ``BackgroundTasks.add_task``);
            required for BACKGROUND mode, otherwise the call is awaited.
    """

    def __init__(
        self,
        client: HubSpotClient,
        notifier: PONotifier,
        deal_url: Callable[[str], str],
        notify_mode: NotifyMode = NotifyMode.AWAIT,
        recipient_strategy: RecipientStrategy = RecipientStrategy.FIRST_CONTACT,
        folder_path: str = "/po-documents",
        schedule: Scheduler | None = None,
    ) -> None:
        self._client = client
        self._resolver = RelationalResolver(client)
        self._notifier = notifier
        self._deal_url = deal_url
        self._notify_mode = notify_mode
        self._recipient_strategy = recipient_strategy
        self._folder_path = folder_path
        self._schedule = schedule

    @property
    def steps(self) -> list[PipelineStep]:
        return [
            PipelineStep("upload", PipelineState.UPLOADING, StepPolicy.FATAL, self._upload),
            PipelineStep("annotate", PipelineState.ANNOTATING, StepPolicy.NONFATAL, self._annotate),
            PipelineStep("patch", PipelineState.PATCHING, StepPolicy.NONFATAL, self._patch),
            PipelineStep("notify", PipelineState.NOTIFYING, StepPolicy.NONFATAL, self._notify),
        ]

    async def prepare(self, deal_id: str, upload: ValidatedUpload) -> Submission:
        """Load the deal name, quote title, and recipients before uploading.

        Raises:
            DealNotFoundError: The deal does not exist.
        """
        _, deal = await self._resolver.fetch_primary_deal(deal_id, PO_UPLOAD_DEAL_PROPERTIES)
        props = deal.get("properties") or {}
        deal_name = text_or(props.get("dealname"), deal_id)
        submission = Submission(
            deal_id=deal_id,
            deal_name=deal_name,
            quote_title=text_or(props.get("po_quote_title"), deal_name),
            upload=upload,
        )

        try:
            submission.recipients = await resolve_recipients(
                self._resolver, deal_id, self._recipient_strategy
            )
        except Exception:
            logger.warning("po_upload.recipients_unavailable", deal_id=deal_id, exc_info=True)

        return submission

    async def run(self, submission: Submission) -> PipelineResult:
        """Execute the step table.

        Raises:
            Exception: Whatever a FATAL step raised, after recording it.
        """
        result = PipelineResult()
        log = logger.bind(deal_id=submission.deal_id)

        for step in self.steps:
            result.state = step.state
            try:
                await step.run(submission)
            except Exception as exc:
                result.steps.append(
                    StepOutcome(name=step.name, policy=step.policy, ok=False, error=str(exc))
                )
                if step.policy == StepPolicy.FATAL:
                    result.state = PipelineState.FAILED
                    log.error("po_upload.step_failed", step=step.name, error=str(exc))
                    raise
                log.warning(
                    "po_upload.step_degraded",
                    step=step.name,
                    error=str(exc)[:300],
                    exc_info=True,
                )
                continue
            result.steps.append(StepOutcome(name=step.name, policy=step.policy, ok=True))

        result.state = PipelineState.COMPLETED
        result.file_id = submission.file_id
        result.file_url = submission.file_url
        log.info(
            "po_upload.completed",
            file_id=submission.file_id,
            degraded_steps=[s.name for s in result.steps if not s.ok],
        )
        return result

    # ── Steps ────────────────────────────────────────────────────────────

    async def _upload(self, submission: Submission) -> None:
        upload = submission.upload
        data = await self._client.upload_file(
            upload.content,
            submission.stored_file_name,
            upload.content_type,
            self._folder_path,
        )
        submission.file_id = str(data.get("id"))
        submission.file_url = data.get("url")

    async def _annotate(self, submission: Submission) -> None:
        await self._client.create_note(
            submission.deal_id,
            f"Purchase Order received from customer: {submission.upload.file_name}",
            [submission.file_id],
            timestamp_ms=int(time.time() * 1000),
        )

    async def _patch(self, submission: Submission) -> None:
        today = datetime.now(timezone.utc).date().isoformat()
        await self._client.update_deal(
            submission.deal_id,
            {
                **PO_RECEIVED_PROPERTIES,
                "po_document_url": submission.file_url,
                "po_received_date": today,
                "po": str(submission.file_id),
            },
        )

    def build_notification(self, submission: Submission) -> POReceivedNotification:
        to, cc = submission.recipients.to, submission.recipients.cc
        return POReceivedNotification(
            deal_id=submission.deal_id,
            deal_name=submission.deal_name,
            file_name=submission.upload.file_name,
            deal_url=self._deal_url(submission.deal_id),
            file_url=submission.file_url,
            contact_email=(to.email or "") if to else "",
            contact_name=to.name if to else "",
            quote_title=submission.quote_title,
            cc_email=(cc.email or "") if cc else None,
            cc_name=cc.name if cc else None,
        )

    async def _notify(self, submission: Submission) -> None:
        notification = self.build_notification(submission)
        if self._notify_mode == NotifyMode.BACKGROUND and self._schedule is not None:
            self._schedule(self._notifier.notify, notification)
            logger.info("po_notification.scheduled", deal_id=submission.deal_id)
            return
        await self._notifier.notify(notification)
