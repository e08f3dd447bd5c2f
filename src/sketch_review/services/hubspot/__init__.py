"""HubSpot CRM integration -- async REST client used by the PO portal handlers."""

from src.sketch_review.services.hubspot.client import HubSpotAPIError, HubSpotClient

__all__ = ["HubSpotAPIError", "HubSpotClient"]
