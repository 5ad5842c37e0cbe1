"""Settings for connecting to a Dynamic Solution deployment.

Values come from ``DYNAMIC_COMMAND_*`` environment variables or a ``.env``
file. The defaults describe the sample deployment and are meant to be
overridden per installation.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .const import (
    DEFAULT_CLIENT_ID,
    DEFAULT_CLIENT_SECRET,
    DEFAULT_DISPLAY_SERIALS,
    DEFAULT_FIRMWARE_POLL_INTERVAL,
    DEFAULT_LOCATION_NAME,
    DEFAULT_PASSWORD,
    DEFAULT_RETRIES,
    DEFAULT_SERVER_URL,
    DEFAULT_TIMEOUT,
    DEFAULT_USERNAME,
)


class DynamicCommandSettings(BaseSettings):
    """Connection and example settings for the Dynamic Solution API."""

    model_config = SettingsConfigDict(
        env_prefix="DYNAMIC_COMMAND_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    server_url: str = Field(
        default=DEFAULT_SERVER_URL,
        min_length=1,
        description="Base URL of the Dynamic Solution server.",
    )
    client_id: str = Field(default=DEFAULT_CLIENT_ID, description="OAuth2 client id.")
    client_secret: str = Field(
        default=DEFAULT_CLIENT_SECRET,
        description="OAuth2 client secret.",
    )
    username: str = Field(default=DEFAULT_USERNAME, description="API username.")
    password: str = Field(default=DEFAULT_PASSWORD, description="API password.")

    location_name: str = Field(
        default=DEFAULT_LOCATION_NAME,
        description="Existing location with a working communicator.",
    )
    display_serials: list[str] = Field(
        default_factory=lambda: list(DEFAULT_DISPLAY_SERIALS),
        description="Display serial numbers that may be added and removed.",
    )

    timeout_seconds: float = Field(
        default=DEFAULT_TIMEOUT,
        gt=0,
        description="Blanket timeout for API calls (seconds).",
    )
    retries: int = Field(
        default=DEFAULT_RETRIES,
        ge=0,
        description="Transport retries for connection failures (0 disables).",
    )
    firmware_poll_interval: float = Field(
        default=DEFAULT_FIRMWARE_POLL_INTERVAL,
        gt=0,
        description="Delay between firmware status checks (seconds).",
    )

    @field_validator("server_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")
