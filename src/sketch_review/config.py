"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class NotifyMode(str, Enum):
    """Whether the PO notification is awaited before responding."""

    AWAIT = "await"
    BACKGROUND = "background"


class RecipientStrategy(str, Enum):
    """Who receives the PO-received notification."""

    FIRST_CONTACT = "first_contact"
    PAYER_PRIMARY = "payer_primary"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ALLOWED_ORIGINS: str = "*"

    # HubSpot CRM
    HUBSPOT_TOKEN: str = ""
    HUBSPOT_API_BASE: str = "https://api.hubapi.com"
    HUBSPOT_PORTAL_ID: str = "46092307"  # Used for the deal record URL in notifications

    # Shared secret for PO review/upload links
    PO_QUOTE_SECRET: str = ""
    PO_REVIEW_BASE_URL: str = ""  # Customer-facing review page, used by scripts/issue_po_link.py

    # Outbound webhooks (empty = disabled)
    ERROR_ALERT_WEBHOOK_URL: str = ""
    PO_NOTIFICATION_WEBHOOK_URL: str = ""
    ALERT_SYSTEM_NAME: str = "sketch-review"

    # PO upload
    PO_NOTIFY_MODE: NotifyMode = NotifyMode.AWAIT
    PO_RECIPIENT_STRATEGY: RecipientStrategy = RecipientStrategy.FIRST_CONTACT
    PO_MAX_FILE_BYTES: int = 3 * 1024 * 1024
    PO_FOLDER_PATH: str = "/po-documents"
    SUPPORT_EMAIL: str = "support@showoffinc.com"

    # Monitoring
    SENTRY_DSN: str = ""

    def deal_record_url(self, deal_id: str) -> str:
        """Return the CRM web UI URL for a deal."""
        return f"https://app.hubspot.com/contacts/{self.HUBSPOT_PORTAL_ID}/record/0-3/{deal_id}"


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
