"""Record store infrastructure settings."""

from pydantic import Field, field_validator

from infrastructure.configuration.base import InfrastructureSettings

SUPPORTED_BACKENDS = ("memory", "dynamodb")


class StoreSettings(InfrastructureSettings):
    """Visit record store configuration.

    Environment Variables:
        RECORD_STORE_BACKEND: 'memory' (development, tests) or 'dynamodb'
        VISITS_TABLE_NAME: DynamoDB table holding visit records
        USERS_TABLE_NAME: DynamoDB table holding user preferences

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        if settings.store.backend == "dynamodb":
            table = settings.store.visits_table_name
        ```
    """

    backend: str = Field(
        default="memory",
        alias="RECORD_STORE_BACKEND",
        description="Record store backend: 'memory' or 'dynamodb'",
    )
    visits_table_name: str = Field(
        default="visits",
        alias="VISITS_TABLE_NAME",
        description="DynamoDB table name for visit records",
    )
    users_table_name: str = Field(
        default="users",
        alias="USERS_TABLE_NAME",
        description="DynamoDB table name for user records",
    )

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, value: str) -> str:
        """Normalize and validate the backend name."""
        normalized = value.strip().lower()
        if normalized not in SUPPORTED_BACKENDS:
            raise ValueError(
                f"Unsupported record store backend '{value}'. "
                f"Expected one of: {', '.join(SUPPORTED_BACKENDS)}"
            )
        return normalized
