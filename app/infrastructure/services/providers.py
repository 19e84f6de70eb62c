"""
Factory functions for dependency injection.

Provides application-scoped singleton providers for core infrastructure services.
"""

from functools import lru_cache

from infrastructure.clients.aws import DynamoDBClient, SessionProvider
from infrastructure.configuration import Settings


@lru_cache
def get_settings() -> Settings:
    """
    Get application-scoped settings singleton.

    This is the single source of truth for settings across the entire application.
    The @lru_cache decorator ensures only ONE instance is created per process.

    Usage:
        from infrastructure.services import get_settings
        settings = get_settings()

    Returns:
        Settings: Cached settings instance loaded from environment.
    """
    return Settings()


@lru_cache
def get_session_provider() -> SessionProvider:
    """Provider for the shared AWS session configuration.

    Returns:
        SessionProvider: Region, endpoint and timeouts from ``settings.aws``.
    """
    settings = get_settings()
    return SessionProvider(
        region=settings.aws.AWS_REGION,
        endpoint_url=settings.aws.ENDPOINT_URL,
        connect_timeout=settings.aws.CONNECT_TIMEOUT_SECONDS,
        read_timeout=settings.aws.READ_TIMEOUT_SECONDS,
    )


@lru_cache
def get_dynamodb_client() -> DynamoDBClient:
    """Provider for the DynamoDB client used by the record store.

    Credentials are resolved per API call, so caching the client is safe.

    Returns:
        DynamoDBClient: Configured client sharing the session provider.
    """
    settings = get_settings()
    return DynamoDBClient(
        session_provider=get_session_provider(),
        max_retries=settings.aws.MAX_RETRIES,
    )
