"""Configuration management using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="KYCOPS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API connection
    base_url: str = Field(
        default="https://api.sumsub.com",
        description="Base URL of the verification API",
    )
    app_token: str = Field(
        default="",
        description="App token sent in the X-App-Token header",
    )
    secret_key: str = Field(
        default="",
        description="Secret key used to sign API requests",
    )
    http_timeout: float = Field(
        default=30.0,
        description="Total timeout for API requests in seconds",
    )

    # Webhooks
    webhook_secret: str | None = Field(
        default=None,
        description="Shared secret for webhook signature verification",
    )
    webhook_signature_header: str = Field(
        default="X-Payload-Digest",
        description="Header carrying the hex-encoded webhook digest",
    )
    webhook_path: str = Field(
        default="/webhooks/kyc",
        description="Path the webhook receiver listens on",
    )
    webhook_host: str = Field(
        default="0.0.0.0",
        description="Host for the webhook receiver",
    )
    webhook_port: int = Field(
        default=8090,
        description="Port for the webhook receiver",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Log level",
    )
    log_json: bool = Field(
        default=False,
        description="Emit JSON log lines",
    )

    # Tracing
    tracing_enabled: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing",
    )
    tracing_service_name: str | None = Field(
        default=None,
        description="Service name reported in traces",
    )
    tracing_otlp_endpoint: str | None = Field(
        default=None,
        description="OTLP collector endpoint (e.g., localhost:4317)",
    )
    tracing_console: bool = Field(
        default=False,
        description="Print spans to the console",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
