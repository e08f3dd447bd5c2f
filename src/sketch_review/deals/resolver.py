"""Relational resolver -- walks Deal association edges in the CRM.

Resolves the primary deal (fatal when absent) and its related records:
line items, the authoritative quote, and contacts by role. Every
non-primary lookup degrades: a non-2xx answer from an association or
detail call becomes an empty result and the request carries on. Transport
errors are not degraded; they propagate to the handler as upstream failures.

All calls are issued sequentially, each awaited before the next.

Exports:
    RelationalResolver: Association walker bound to one HubSpotClient.
    resolve_contact_roles: Pure Payer / Primary Contact selection.
"""

from __future__ import annotations

from typing import Any

import structlog

from src.sketch_review.core.errors import DealNotFoundError
from src.sketch_review.deals.field_mapping import (
    CONTACT_PROPERTIES,
    LINE_ITEM_PROPERTIES,
    QUOTE_PROPERTIES,
    contact_from_record,
    edge_from_result,
    line_item_from_record,
    quote_from_record,
)
from src.sketch_review.deals.schemas import (
    AssociationEdge,
    ContactRole,
    ContactRoles,
    ContactSummary,
    LineItem,
    QuoteSummary,
)
from src.sketch_review.services.hubspot import HubSpotAPIError, HubSpotClient

logger = structlog.get_logger(__name__)


def resolve_contact_roles(
    edges: list[AssociationEdge],
) -> tuple[AssociationEdge | None, AssociationEdge | None]:
    """Select the (payer, primary) edges from an ordered contact edge list.

    - Payer: first edge carrying the Payer role.
    - Primary: first edge carrying the Primary Contact role, or the first
      edge of the list (whatever its labels) when none does.

    The two may be the same edge.
    """
    payer = next((e for e in edges if e.has_role(ContactRole.PAYER)), None)
    primary = next((e for e in edges if e.has_role(ContactRole.PRIMARY_CONTACT)), None)
    if primary is None and edges:
        primary = edges[0]
    return payer, primary


class RelationalResolver:
    """Resolves a deal and its associated records through the CRM API.

    Args:
        client: HubSpotClient bound to the request's bearer token.
    """

    def __init__(self, client: HubSpotClient) -> None:
        self._client = client

    async def fetch_primary_deal(
        self,
        deal_id: str,
        properties: list[str],
        search_fallback: bool = False,
    ) -> tuple[str, dict[str, Any]]:
        """Fetch the primary deal, returning ``(effective_deal_id, record)``.

        With ``search_fallback``, a failed direct lookup is followed by a
        name search for ``deal_id`` (first match only); the match's id is the
        effective id for every later association call.

        Raises:
            DealNotFoundError: No deal found by any strategy.
        """
        deal = await self._client.get_deal(deal_id, properties)
        if deal is not None:
            return str(deal.get("id", deal_id)), deal

        if search_fallback:
            logger.info("resolver.deal_search_fallback", deal_id=deal_id)
            matches = await self._client.search_deals_by_name(deal_id, properties, limit=1)
            if matches:
                match = matches[0]
                effective_id = str(match.get("id"))
                logger.info(
                    "resolver.deal_found_by_name",
                    deal_id=deal_id,
                    effective_deal_id=effective_id,
                )
                return effective_id, match

        raise DealNotFoundError(deal_id if search_fallback else None)

    async def resolve_associations(self, deal_id: str, edge_type: str) -> list[AssociationEdge]:
        """Ordered association edges from a deal; ``[]`` on a non-2xx answer."""
        try:
            results = await self._client.get_associations("deals", deal_id, edge_type)
        except HubSpotAPIError as exc:
            logger.warning(
                "resolver.association_degraded",
                deal_id=deal_id,
                edge_type=edge_type,
                status_code=exc.status_code,
            )
            return []
        return [edge_from_result(r) for r in results]

    async def batch_fetch(
        self,
        object_type: str,
        ids: list[str],
        properties: list[str],
    ) -> dict[str, dict[str, Any]]:
        """Map id -> record for ``ids``; no call for an empty id set."""
        if not ids:
            return {}
        try:
            records = await self._client.batch_read(object_type, ids, properties)
        except HubSpotAPIError as exc:
            logger.warning(
                "resolver.batch_read_degraded",
                object_type=object_type,
                count=len(ids),
                status_code=exc.status_code,
            )
            return {}
        return {str(r.get("id")): r for r in records}

    async def line_items(self, deal_id: str, with_description: bool = False) -> list[LineItem]:
        edges = await self.resolve_associations(deal_id, "line_items")
        records = await self.batch_fetch(
            "line_items",
            [e.to_object_id for e in edges],
            LINE_ITEM_PROPERTIES,
        )
        return [
            line_item_from_record(record, with_description=with_description)
            for record in records.values()
        ]

    async def first_quote(self, deal_id: str) -> QuoteSummary | None:
        """The first associated quote in API order; the rest are ignored."""
        edges = await self.resolve_associations(deal_id, "quotes")
        if not edges:
            return None
        record = await self._client.get_object("quotes", edges[0].to_object_id, QUOTE_PROPERTIES)
        return quote_from_record(record) if record is not None else None

    async def contact(self, contact_id: str) -> ContactSummary | None:
        record = await self._client.get_object("contacts", contact_id, CONTACT_PROPERTIES)
        return contact_from_record(record) if record is not None else None

    async def contact_roles(self, deal_id: str) -> ContactRoles:
        """Resolve the payer and primary contact, fetching each independently."""
        edges = await self.resolve_associations(deal_id, "contacts")
        payer_edge, primary_edge = resolve_contact_roles(edges)

        payer = await self.contact(payer_edge.to_object_id) if payer_edge else None
        primary = await self.contact(primary_edge.to_object_id) if primary_edge else None
        return ContactRoles(payer=payer, primary=primary)

    async def primary_contact(self, deal_id: str) -> ContactSummary | None:
        edges = await self.resolve_associations(deal_id, "contacts")
        _, primary_edge = resolve_contact_roles(edges)
        return await self.contact(primary_edge.to_object_id) if primary_edge else None

    async def first_contact(self, deal_id: str) -> ContactSummary | None:
        edges = await self.resolve_associations(deal_id, "contacts")
        return await self.contact(edges[0].to_object_id) if edges else None
