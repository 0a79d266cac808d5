"""
Configuration Management

This module provides application-wide configuration settings using
Pydantic Settings for the callsync disposition and webhook service.

Environment variables are loaded from .env file and can be overridden
by system environment variables.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application configuration settings.

    All settings can be overridden via environment variables.
    Settings are loaded from .env file by default.
    """

    # CRM (HubSpot) configuration
    hubspot_access_token: str | None = None
    hubspot_api_base: str = "https://api.hubapi.com"
    hubspot_timeout_seconds: float = 30.0

    # Contact owners applied per disposition (empty = leave owner untouched)
    hubspot_owner_enquiries: str = ""
    hubspot_owner_call_back: str = ""
    hubspot_owner_unable_to_service: str = ""

    # Internal sales deal defaults
    hubspot_deal_pipeline: str = "default"
    hubspot_deal_stage: str = "appointmentscheduled"

    # Telephony (RingCX) configuration
    ringcx_access_token: str | None = None
    ringcx_platform_timezone: str = "America/New_York"
    contact_id_prefix: str = "hs-"
    recording_download_timeout_seconds: float = 60.0

    # Phone normalization
    default_country_code: str = "61"

    # Agent-facing display timezone for note timestamps
    display_timezone: str = "Australia/Perth"

    # S3/Object storage configuration
    s3_bucket: str = "callsync-recordings"
    s3_endpoint: str | None = None  # Optional endpoint for MinIO/S3-compatible
    s3_access_key: str | None = None
    s3_secret_key: str | None = None
    s3_region: str = "ap-southeast-2"
    s3_key_prefix: str = "recordings"
    recording_stream_url_ttl_seconds: int = 3600

    # Public URL this service is reachable at (used for streaming links)
    public_base_url: str = "http://localhost:8000"

    # Recording backup worker
    backup_batch_size: int = 10
    backup_max_attempts: int = 3
    backup_metrics_port: int = 0  # Prometheus metrics port (if >0 then enabled)

    # Database configuration
    database_url: str | None = None

    log_level: str = "INFO"

    class Config:
        """Pydantic configuration."""
        env_file = ".env"


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return settings
