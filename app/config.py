# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.SUPABASE_URL)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
#
# Integrations (Google, Instagram, Stripe, OpenClaw) are optional. When their
# credentials are missing the matching endpoints answer "not configured"
# instead of the app refusing to start.
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses pydantic-settings to:
    - Automatically load from .env file
    - Validate types and constraints
    - Provide sensible defaults for development

    All settings are accessed via the global `settings` instance.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------
    # These are required - app won't start without them

    SUPABASE_URL: str = Field(
        ...,  # ... means required (no default)
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_ANON_KEY: str = Field(
        ...,
        description="Supabase anon/public API key"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        ...,
        description="Supabase service_role key (bypasses RLS)"
    )

    SUPABASE_JWT_SECRET: str = Field(
        ...,
        description="Secret used to verify HS256 access tokens issued by Supabase Auth"
    )

    STORAGE_BUCKET: str = Field(
        default="file-library",
        description="Supabase Storage bucket holding file library objects"
    )

    # -------------------------------------------------------------------------
    # Redis Configuration (for Celery and WebSocket relay)
    # -------------------------------------------------------------------------
    # Default to localhost for development

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for Celery broker and event pub/sub"
    )

    # -------------------------------------------------------------------------
    # Cache Settings
    # -------------------------------------------------------------------------
    # In-process response caches (dashboard, search)

    DASHBOARD_CACHE_TTL: int = Field(
        default=60,
        ge=1,
        description="Seconds a dashboard payload stays fresh in memory"
    )

    SEARCH_CACHE_TTL: int = Field(
        default=120,
        ge=1,
        description="Seconds a search result stays fresh in memory"
    )

    CDN_CACHE_MAX_AGE: int = Field(
        default=60,
        ge=0,
        description="max-age advertised in the dashboard Cache-Control header"
    )

    CDN_STALE_WHILE_REVALIDATE: int = Field(
        default=120,
        ge=0,
        description="stale-while-revalidate advertised in the dashboard Cache-Control header"
    )

    CACHE_GC_INTERVAL: int = Field(
        default=60,
        ge=1,
        description="Seconds between sweeps that drop expired cache entries"
    )

    # -------------------------------------------------------------------------
    # Google (Calendar + Gmail)
    # -------------------------------------------------------------------------

    GOOGLE_CLIENT_ID: str = Field(default="", description="Google OAuth client id")
    GOOGLE_CLIENT_SECRET: str = Field(default="", description="Google OAuth client secret")
    GOOGLE_REDIRECT_URI: str = Field(
        default="",
        description="OAuth redirect URI (defaults to <SITE_URL>/oauth/google/callback)"
    )

    # -------------------------------------------------------------------------
    # Instagram (via Facebook Login)
    # -------------------------------------------------------------------------

    FACEBOOK_APP_ID: str = Field(default="", description="Facebook app id")
    FACEBOOK_APP_SECRET: str = Field(default="", description="Facebook app secret")
    INSTAGRAM_REDIRECT_URI: str = Field(
        default="",
        description="OAuth redirect URI (defaults to <SITE_URL>/oauth/instagram/callback)"
    )
    GRAPH_API_VERSION: str = Field(
        default="v21.0",
        description="Facebook / Instagram Graph API version"
    )

    # -------------------------------------------------------------------------
    # Stripe
    # -------------------------------------------------------------------------

    STRIPE_SECRET_KEY: str = Field(default="", description="Stripe secret API key")
    STRIPE_WEBHOOK_SECRET: str = Field(default="", description="Stripe webhook signing secret")

    STRIPE_PRO_MONTHLY_PRICE_ID: str = Field(default="")
    STRIPE_PRO_YEARLY_PRICE_ID: str = Field(default="")
    STRIPE_TEAM_MONTHLY_PRICE_ID: str = Field(default="")
    STRIPE_TEAM_YEARLY_PRICE_ID: str = Field(default="")
    STRIPE_ENTERPRISE_MONTHLY_PRICE_ID: str = Field(default="")
    STRIPE_ENTERPRISE_YEARLY_PRICE_ID: str = Field(default="")

    # -------------------------------------------------------------------------
    # OpenClaw research agent
    # -------------------------------------------------------------------------

    OPENCLAW_AGENT_API_URL: str = Field(default="", description="Research agent base URL")
    OPENCLAW_AGENT_API_KEY: str = Field(default="", description="Research agent API key")
    OPENCLAW_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for research agent calls"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging, auto-reload)"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    SITE_URL: str = Field(
        default="http://localhost:3000",
        description="Public URL of the web app (used for redirects)"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # File Upload Settings
    # -------------------------------------------------------------------------

    MAX_UPLOAD_SIZE_MB: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Maximum file upload size in MB"
    )

    SIGNED_URL_EXPIRY_SECONDS: int = Field(
        default=3600,
        ge=60,
        description="Lifetime of signed download URLs"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        # Load from .env file in project root
        env_file=".env",
        env_file_encoding="utf-8",
        # Treat empty values as unset
        env_ignore_empty=True,
        # Case-sensitive environment variable names
        case_sensitive=True,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://myapp.com" -> ["http://localhost:3000", "https://myapp.com"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def max_upload_size_bytes(self) -> int:
        """Convert MB to bytes for file size validation."""
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    @property
    def site_base_url(self) -> str:
        """SITE_URL without a trailing slash, for building links."""
        return self.SITE_URL.rstrip("/")

    @property
    def google_redirect_uri(self) -> str:
        return self.GOOGLE_REDIRECT_URI or f"{self.site_base_url}/oauth/google/callback"

    @property
    def instagram_redirect_uri(self) -> str:
        return self.INSTAGRAM_REDIRECT_URI or f"{self.site_base_url}/oauth/instagram/callback"

    @property
    def google_configured(self) -> bool:
        return bool(self.GOOGLE_CLIENT_ID and self.GOOGLE_CLIENT_SECRET)

    @property
    def instagram_configured(self) -> bool:
        return bool(self.FACEBOOK_APP_ID and self.FACEBOOK_APP_SECRET)

    @property
    def stripe_configured(self) -> bool:
        return bool(self.STRIPE_SECRET_KEY)

    @property
    def openclaw_configured(self) -> bool:
        return bool(self.OPENCLAW_AGENT_API_URL and self.OPENCLAW_AGENT_API_KEY)

    @property
    def stripe_price_ids(self) -> dict[str, dict[str, str]]:
        """
        Price ids by plan and billing cycle.

        Example: settings.stripe_price_ids["pro"]["monthly"] -> "price_123"
        """
        return {
            "pro": {
                "monthly": self.STRIPE_PRO_MONTHLY_PRICE_ID,
                "yearly": self.STRIPE_PRO_YEARLY_PRICE_ID,
            },
            "team": {
                "monthly": self.STRIPE_TEAM_MONTHLY_PRICE_ID,
                "yearly": self.STRIPE_TEAM_YEARLY_PRICE_ID,
            },
            "enterprise": {
                "monthly": self.STRIPE_ENTERPRISE_MONTHLY_PRICE_ID,
                "yearly": self.STRIPE_ENTERPRISE_YEARLY_PRICE_ID,
            },
        }

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.

    Returns:
        Settings: The application settings instance
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
