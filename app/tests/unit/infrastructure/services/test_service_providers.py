"""Unit tests for the cached service providers."""

import pytest

from infrastructure.clients.aws import DynamoDBClient
from infrastructure.configuration import Settings
from infrastructure.services import (
    get_dynamodb_client,
    get_session_provider,
    get_settings,
)


@pytest.mark.unit
class TestProviders:
    def test_get_settings_is_cached(self):
        first = get_settings()

        assert isinstance(first, Settings)
        assert get_settings() is first

    def test_cache_can_be_cleared(self):
        first = get_settings()
        get_settings.cache_clear()

        assert get_settings() is not first

    def test_session_provider_uses_aws_settings(self, monkeypatch):
        monkeypatch.setenv("AWS_REGION", "us-west-2")
        monkeypatch.setenv("AWS_ENDPOINT_URL", "http://localhost:8000")

        provider = get_session_provider()

        assert provider.region == "us-west-2"
        assert provider.endpoint_url == "http://localhost:8000"

    def test_dynamodb_client_is_shared(self):
        client = get_dynamodb_client()

        assert isinstance(client, DynamoDBClient)
        assert get_dynamodb_client() is client
