"""Infrastructure settings __init__ - exports all infrastructure settings."""

from infrastructure.configuration.infrastructure.store import StoreSettings

__all__ = [
    "StoreSettings",
]
