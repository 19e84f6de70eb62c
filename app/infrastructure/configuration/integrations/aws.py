"""AWS integration settings."""

from typing import Optional

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class AwsSettings(IntegrationSettings):
    """AWS configuration settings.

    Environment Variables:
        AWS_REGION: AWS region for services (default: ca-central-1)
        AWS_ENDPOINT_URL: Custom endpoint URL (LocalStack / DynamoDB Local)
        AWS_MAX_RETRIES: SDK-level retries for throttled calls (default: 3)
        AWS_CONNECT_TIMEOUT_SECONDS: botocore connect timeout (default: 5)
        AWS_READ_TIMEOUT_SECONDS: botocore read timeout (default: 10)

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        region = settings.aws.AWS_REGION
        ```
    """

    AWS_REGION: str = Field(default="ca-central-1", alias="AWS_REGION")
    ENDPOINT_URL: Optional[str] = Field(default=None, alias="AWS_ENDPOINT_URL")
    MAX_RETRIES: int = Field(default=3, alias="AWS_MAX_RETRIES")
    CONNECT_TIMEOUT_SECONDS: int = Field(
        default=5, alias="AWS_CONNECT_TIMEOUT_SECONDS"
    )
    READ_TIMEOUT_SECONDS: int = Field(default=10, alias="AWS_READ_TIMEOUT_SECONDS")
