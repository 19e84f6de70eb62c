"""
Dependency injection services.

Provides provider functions for application-scoped infrastructure services.
"""

from infrastructure.services.providers import (
    get_dynamodb_client,
    get_session_provider,
    get_settings,
)

__all__ = [
    "get_dynamodb_client",
    "get_session_provider",
    "get_settings",
]
