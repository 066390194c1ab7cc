"""Runtime configuration for the SIP call gateway service."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings read once at process startup.

    Values are loaded from environment variables, with `.env` used for local
    development defaults.

    Attributes:
        HOST: Interface the HTTP server binds to.
        PORT: Local port where the webhook endpoint listens.
        OPENAI_API_KEY: Bearer credential for call acceptance and realtime
            sessions. Mandatory; the entry point exits when it is empty.
        OPENAI_WEBHOOK_SECRET: Shared secret used to verify webhook
            signatures. When unset, verification is bypassed.
        DEFAULT_VOICE: Voice used for synthesized model audio.
        REALTIME_MODEL: Realtime model identifier sent on call acceptance.
        OPENAI_API_BASE_URL: Base URL of the REST API used for `/accept`.
        OPENAI_REALTIME_WS_URL: Websocket endpoint for per-call sessions.
        OPENAI_REALTIME_ORIGIN: Origin header required by the session endpoint.
        ACCEPT_TIMEOUT_SECONDS: HTTP timeout for the call-accept request.
        GREETING_FALLBACK_SECONDS: Delay after websocket open before the
            greeting is sent without waiting for `session.created`.
        WEBHOOK_TIMESTAMP_TOLERANCE_SECONDS: Allowed clock skew between the
            webhook timestamp and local time.
        LOG_LEVEL: Application log verbosity.
        WEBSOCKETS_LOG_LEVEL: Log level for `websockets` library internals.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    HOST: str = "0.0.0.0"
    PORT: int = 8000
    OPENAI_API_KEY: str = ""
    OPENAI_WEBHOOK_SECRET: str | None = None
    DEFAULT_VOICE: str = "marin"
    REALTIME_MODEL: str = "gpt-realtime"
    OPENAI_API_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_REALTIME_WS_URL: str = "wss://api.openai.com/v1/realtime"
    OPENAI_REALTIME_ORIGIN: str = "https://api.openai.com"
    ACCEPT_TIMEOUT_SECONDS: float = Field(default=15.0, gt=0)
    GREETING_FALLBACK_SECONDS: float = Field(default=1.0, ge=0)
    WEBHOOK_TIMESTAMP_TOLERANCE_SECONDS: int = Field(default=300, ge=0)
    LOG_LEVEL: str = "info"
    WEBSOCKETS_LOG_LEVEL: str = "info"

    @property
    def webhook_secret(self) -> str | None:
        """Returns the webhook secret, treating an empty value as unset."""
        return self.OPENAI_WEBHOOK_SECRET or None


settings = Settings()
