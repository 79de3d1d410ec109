"""
Configuration management for the storefront payment service.

Loads settings from .env via pydantic-settings.

Security notes:
    - Webhooks FAIL CLOSED when MIDTRANS_SERVER_KEY is missing
    - validate_production_settings() enforces strict CORS and status-API
      verification in production
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

logger = logging.getLogger(__name__)

MIDTRANS_SANDBOX_API = "https://api.sandbox.midtrans.com"
MIDTRANS_PRODUCTION_API = "https://api.midtrans.com"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/storefront.db"

    # ── Midtrans Payment Gateway ────────────────────────────────────
    midtrans_server_key: str = ""
    midtrans_is_production: bool = False

    # When True, the gateway's status API is the source of truth for a
    # notification; payload fields are only used to locate the transaction.
    verify_with_status_api: bool = True

    # ── Timeouts (seconds) ──────────────────────────────────────────
    gateway_timeout_seconds: float = 10.0
    storage_timeout_seconds: float = 5.0
    side_effect_timeout_seconds: float = 5.0

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # the storefront .env carries many unrelated keys
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def midtrans_api_base(self) -> str:
        """Core API base URL for the configured Midtrans environment."""
        if self.midtrans_is_production:
            return MIDTRANS_PRODUCTION_API
        return MIDTRANS_SANDBOX_API

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup. Raises ValueError in production,
        logs warnings everywhere else.
        """
        if self.environment == "production":
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            if not self.midtrans_server_key:
                raise ValueError(
                    "MIDTRANS_SERVER_KEY must be set in production. "
                    "It is used to verify payment notifications."
                )
            if not self.verify_with_status_api:
                raise ValueError(
                    "VERIFY_WITH_STATUS_API must be true in production. "
                    "Payment notifications must be confirmed with the gateway."
                )
            if not self.midtrans_is_production:
                logger.warning("⚠️  Production environment is using the Midtrans sandbox")
            logger.info("✅ Production settings validated")
        else:
            warnings = []
            if not self.midtrans_server_key:
                warnings.append("MIDTRANS_SERVER_KEY not set (all notifications will be rejected)")
            if not self.verify_with_status_api:
                warnings.append("VERIFY_WITH_STATUS_API=false (notification fields trusted after signature check)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(f"⚠️  {w}")


# Global settings instance
settings = Settings()
