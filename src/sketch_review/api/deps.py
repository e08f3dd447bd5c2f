"""FastAPI dependency injection for configuration-bound collaborators.

Settings are resolved once per request and passed explicitly into the token
authority, the HubSpot client, and the webhook sinks. Tests override
``get_settings`` and ``get_crm_transport`` / ``get_webhook_transport`` to
run the handlers against fake upstreams.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import Depends

from src.sketch_review.config import Settings, get_settings
from src.sketch_review.core.errors import ConfigurationError, SketchReviewError, UpstreamError
from src.sketch_review.core.security import TokenAuthority
from src.sketch_review.services.hubspot import HubSpotClient
from src.sketch_review.services.webhooks import ErrorReporter, PONotifier

logger = structlog.get_logger(__name__)


def get_crm_transport() -> httpx.AsyncBaseTransport | None:
    """Transport for CRM calls; None means the real network."""
    return None


def get_webhook_transport() -> httpx.AsyncBaseTransport | None:
    """Transport for webhook calls; None means the real network."""
    return None


def get_token_authority(settings: Settings = Depends(get_settings)) -> TokenAuthority:
    return TokenAuthority(settings.PO_QUOTE_SECRET)


def get_error_reporter(
    settings: Settings = Depends(get_settings),
    transport: httpx.AsyncBaseTransport | None = Depends(get_webhook_transport),
) -> ErrorReporter:
    return ErrorReporter(
        settings.ERROR_ALERT_WEBHOOK_URL,
        system=settings.ALERT_SYSTEM_NAME,
        transport=transport,
    )


def get_po_notifier(
    settings: Settings = Depends(get_settings),
    transport: httpx.AsyncBaseTransport | None = Depends(get_webhook_transport),
) -> PONotifier:
    return PONotifier(settings.PO_NOTIFICATION_WEBHOOK_URL, transport=transport)


def build_hubspot_client(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> HubSpotClient:
    """Build a HubSpotClient, failing fast when no token is configured.

    Called inside handlers (not as a dependency) so that request validation
    errors are reported before configuration errors, as the endpoints
    document.

    Raises:
        ConfigurationError: HUBSPOT_TOKEN is not set.
    """
    if not settings.HUBSPOT_TOKEN:
        raise ConfigurationError("HubSpot token not configured")
    return HubSpotClient(
        settings.HUBSPOT_TOKEN,
        base_url=settings.HUBSPOT_API_BASE,
        transport=transport,
    )


@asynccontextmanager
async def reported_upstream_failures(
    reporter: ErrorReporter,
    endpoint: str,
    message: str,
    deal_id: str | None = None,
    deal_name: Callable[[], str | None] | None = None,
) -> AsyncGenerator[None, None]:
    """Turn unexpected failures in the block into a reported UpstreamError.

    SketchReviewError subclasses (not found, bad request, ...) pass through
    untouched. Anything else is logged, sent to the alert webhook, and
    re-raised as ``UpstreamError(message, details=str(exc))``.
    """
    try:
        yield
    except SketchReviewError:
        raise
    except Exception as exc:
        logger.error("request.upstream_failed", endpoint=endpoint, deal_id=deal_id, error=str(exc))
        await reporter.report(endpoint, exc, deal_id, deal_name() if deal_name else None)
        raise UpstreamError(message, details=str(exc) or exc.__class__.__name__) from exc
