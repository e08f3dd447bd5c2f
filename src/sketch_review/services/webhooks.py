"""Outbound webhook sinks: error alerts and PO-received notifications.

Both sinks are best-effort. ErrorReporter.report() and PONotifier.notify()
never raise: delivery failures (sink unreachable, non-2xx answer) are logged
and counted, and the caller's response is unaffected. An empty webhook URL
disables the sink.

Exports:
    ErrorReporter: Posts diagnostic alerts for critical-path failures.
    PONotifier: Posts the PO-received notification to the downstream workflow.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx
import structlog

from src.sketch_review.core.monitoring import webhook_deliveries_total
from src.sketch_review.deals.schemas import ErrorAlert, POReceivedNotification

logger = structlog.get_logger(__name__)


async def _post_json(
    sink: str,
    url: str,
    payload: dict[str, Any],
    transport: httpx.AsyncBaseTransport | None,
) -> bool:
    """POST ``payload`` to ``url``; return True on a 2xx answer, never raise."""
    if not url:
        logger.debug("webhook.disabled", sink=sink)
        webhook_deliveries_total.labels(sink=sink, status="disabled").inc()
        return False
    try:
        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.post(url, json=payload)
    except Exception:
        logger.warning("webhook.delivery_failed", sink=sink, exc_info=True)
        webhook_deliveries_total.labels(sink=sink, status="error").inc()
        return False

    if not response.is_success:
        logger.warning(
            "webhook.delivery_rejected",
            sink=sink,
            status_code=response.status_code,
        )
        webhook_deliveries_total.labels(sink=sink, status="rejected").inc()
        return False

    webhook_deliveries_total.labels(sink=sink, status="delivered").inc()
    return True


class ErrorReporter:
    """Reports unexpected failures to the alerting webhook.

    Args:
        webhook_url: Alert sink URL; empty disables reporting.
        system: System name included in every alert.
        transport: Optional httpx transport (tests).
    """

    def __init__(
        self,
        webhook_url: str,
        system: str = "sketch-review",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = webhook_url
        self._system = system
        self._transport = transport

    def build_alert(
        self,
        endpoint: str,
        error: BaseException | str,
        deal_id: str | None = None,
        deal_name: str | None = None,
    ) -> ErrorAlert:
        if deal_name:
            deal_label = f"{deal_name} ({deal_id})"
        else:
            deal_label = deal_id or "unknown"
        return ErrorAlert(
            system=self._system,
            endpoint=endpoint,
            error=str(error) or error.__class__.__name__,
            dealId=deal_label,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    async def report(
        self,
        endpoint: str,
        error: BaseException | str,
        deal_id: str | None = None,
        deal_name: str | None = None,
    ) -> bool:
        """Send one alert. Returns whether the sink accepted it."""
        alert = self.build_alert(endpoint, error, deal_id, deal_name)
        return await _post_json("error_alert", self._url, alert.model_dump(), self._transport)


class PONotifier:
    """Notifies the downstream workflow that a PO was received.

    Args:
        webhook_url: Notification sink URL; empty disables notifications.
        transport: Optional httpx transport (tests).
    """

    def __init__(
        self,
        webhook_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = webhook_url
        self._transport = transport

    async def notify(self, notification: POReceivedNotification) -> bool:
        payload = notification.model_dump(by_alias=True, exclude_none=True)
        delivered = await _post_json("po_notification", self._url, payload, self._transport)
        logger.info(
            "po_notification.sent" if delivered else "po_notification.not_delivered",
            deal_id=notification.deal_id,
        )
        return delivered
