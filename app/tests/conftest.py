import pytest

from infrastructure.services import providers


@pytest.fixture(autouse=True)
def clear_provider_caches():
    """Reset application-scoped providers so tests never share settings."""
    providers.get_settings.cache_clear()
    providers.get_session_provider.cache_clear()
    providers.get_dynamodb_client.cache_clear()
    yield
    providers.get_settings.cache_clear()
    providers.get_session_provider.cache_clear()
    providers.get_dynamodb_client.cache_clear()
