"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Per-run business settings (ignore list, email toggles) live in the
app_settings table instead - see services/run_settings_service.py.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key (bypasses RLS for report writes)"
    )

    # ===================
    # API SECURITY
    # ===================
    api_key: Optional[str] = Field(
        None,
        description="API key for authentication"
    )

    # ===================
    # BRIGHTPEARL (SOURCE A - ERP)
    # ===================
    brightpearl_base_url: str = Field(
        default="https://use1.brightpearlconnect.com/public-api",
        description="Brightpearl public API base URL"
    )
    brightpearl_account: Optional[str] = Field(
        None,
        description="Brightpearl account code"
    )
    brightpearl_app_ref: Optional[str] = Field(
        None,
        description="Brightpearl app reference header"
    )
    brightpearl_token: Optional[str] = Field(
        None,
        description="Brightpearl staff token"
    )
    brightpearl_page_size: int = Field(
        default=500,
        ge=1,
        le=500,
        description="Products per product-search page"
    )
    brightpearl_max_pages: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Hard page cap for product search"
    )
    brightpearl_availability_batch_size: int = Field(
        default=50,
        ge=1,
        le=200,
        description="Product ids per availability request"
    )
    brightpearl_page_delay_seconds: float = Field(
        default=0.2,
        ge=0,
        le=10,
        description="Pause between product-search pages"
    )

    # ===================
    # INFOPLUS (SOURCE B - WMS)
    # ===================
    infoplus_company_id: str = Field(
        default="texon",
        description="Infoplus company subdomain"
    )
    infoplus_api_key: Optional[str] = Field(
        None,
        description="Infoplus API key"
    )
    infoplus_lob_id: int = Field(
        default=19693,
        description="Line-of-business id to keep (filtered client-side)"
    )
    infoplus_api_version: str = Field(
        default="beta",
        description="Infoplus API version path segment"
    )
    infoplus_page_size: int = Field(
        default=250,
        ge=1,
        le=250,
        description="Items per item/search page"
    )
    infoplus_max_pages: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Hard page cap for item search"
    )
    infoplus_page_delay_seconds: float = Field(
        default=0.3,
        ge=0,
        le=10,
        description="Pause between item-search pages"
    )

    # ===================
    # NETWORK
    # ===================
    api_timeout_seconds: int = Field(
        default=60,
        ge=1,
        le=600,
        description="Timeout per upstream request"
    )
    api_max_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Retries after the first attempt for transient failures"
    )
    api_retry_backoff_seconds: float = Field(
        default=2.0,
        ge=0,
        le=60,
        description="Linear backoff base (attempt * base seconds)"
    )

    # ===================
    # EMAIL (SMTP)
    # ===================
    smtp_host: Optional[str] = Field(
        None,
        description="SMTP server host"
    )
    smtp_port: int = Field(
        default=587,
        ge=1,
        le=65535,
        description="SMTP server port"
    )
    smtp_user: Optional[str] = Field(
        None,
        description="SMTP username"
    )
    smtp_password: Optional[str] = Field(
        None,
        description="SMTP password"
    )
    smtp_from: Optional[str] = Field(
        None,
        description="From address (defaults to smtp_user)"
    )
    smtp_use_tls: bool = Field(
        default=True,
        description="Use STARTTLS"
    )

    # ===================
    # TELEGRAM
    # ===================
    telegram_bot_token: Optional[str] = Field(
        None,
        description="Telegram bot token from @BotFather"
    )
    telegram_chat_id: Optional[str] = Field(
        None,
        description="Telegram chat ID for report summaries"
    )

    # ===================
    # SCHEDULING
    # ===================
    reconciliation_cron: str = Field(
        default="0 19 * * *",
        description="Default crontab for scheduled reconciliation"
    )
    reconciliation_timezone: str = Field(
        default="America/New_York",
        description="Default timezone for the schedule"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Origins allowed to call the API from a browser"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def telegram_configured(self) -> bool:
        """Check if Telegram is properly configured."""
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    @property
    def smtp_configured(self) -> bool:
        """Check if SMTP delivery is possible."""
        return bool(self.smtp_host and (self.smtp_from or self.smtp_user))

    @property
    def infoplus_base_url(self) -> str:
        return f"https://{self.infoplus_company_id}.infopluswms.com/infoplus-wms/api"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
