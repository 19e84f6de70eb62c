"""Downstream visit services settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class DownstreamSettings(IntegrationSettings):
    """Settings for the services that perform the post-commit operations.

    Medication sync, transcript deletion, visit analysis, push notifications
    and caregiver emails are owned by other services and reached over HTTP.

    Environment Variables:
        DOWNSTREAM_BASE_URL: Base URL of the visit services API
        DOWNSTREAM_API_TOKEN: Bearer token for the visit services API
        DOWNSTREAM_TIMEOUT_SECONDS: Per-call timeout (default: 30)
    """

    BASE_URL: str = Field(default="http://127.0.0.1:8080", alias="DOWNSTREAM_BASE_URL")
    API_TOKEN: str = Field(default="", alias="DOWNSTREAM_API_TOKEN")
    TIMEOUT_SECONDS: int = Field(default=30, alias="DOWNSTREAM_TIMEOUT_SECONDS")
