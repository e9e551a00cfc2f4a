from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the assistant bridge."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")

    # Twilio
    twilio_account_sid: str | None = Field(default=None, alias="TWILIO_ACCOUNT_SID")
    twilio_auth_token: str | None = Field(default=None, alias="TWILIO_AUTH_TOKEN")
    twilio_phone_number: str | None = Field(default=None, alias="TWILIO_PHONE_NUMBER")

    # Google Custom Search (google_search tool)
    google_search_developer_key: str | None = Field(default=None, alias="GOOGLE_SEARCH_DEVELOPER_KEY")
    google_search_cx_id: str | None = Field(default=None, alias="GOOGLE_SEARCH_CX_ID")

    # Assistants used by the telephony channel and the demo tools
    sms_assistant_name: str = Field(default="Text Responder", alias="SMS_ASSISTANT_NAME")
    research_assistant_name: str = Field(
        default="Company Research Assistant", alias="RESEARCH_ASSISTANT_NAME"
    )

    thread_expiration_days: int = Field(default=60, alias="THREAD_EXPIRATION_DAYS")

    # Run polling. Attempts and timeout are unbounded unless configured.
    run_poll_interval_seconds: float = Field(default=1.0, alias="RUN_POLL_INTERVAL_SECONDS")
    run_max_poll_attempts: int | None = Field(default=None, alias="RUN_MAX_POLL_ATTEMPTS")
    run_timeout_seconds: float | None = Field(default=None, alias="RUN_TIMEOUT_SECONDS")

    # How long shutdown waits for fire-and-forget runs before cancelling them
    shutdown_grace_seconds: float = Field(default=30.0, alias="SHUTDOWN_GRACE_SECONDS")

    # Correspondent records
    record_store_backend: Literal["firestore", "memory"] = Field(
        default="firestore", alias="RECORD_STORE_BACKEND"
    )
    firestore_collection: str = Field(default="correspondents", alias="FIRESTORE_COLLECTION")
    firebase_service_account_key: str | None = Field(
        default=None, alias="FIREBASE_SERVICE_ACCOUNT_KEY"
    )
    default_phone_region: str | None = Field(default="US", alias="DEFAULT_PHONE_REGION")

    # Public app URL used to build absolute callback URLs for Twilio
    public_app_url: str | None = Field(default=None, alias="PUBLIC_APP_URL")

    # FastAPI configuration
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8080, alias="APP_PORT")
    debug: bool = Field(default=False, alias="DEBUG")


@lru_cache
def get_settings() -> Settings:
    """Return memoized settings so multiple imports share a single instance."""

    return Settings()  # type: ignore[call-arg]
