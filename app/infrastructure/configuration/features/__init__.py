"""Feature settings __init__ - exports all feature settings."""

from infrastructure.configuration.features.post_commit import (
    EscalationSettings,
    RecoverySettings,
)

__all__ = [
    "EscalationSettings",
    "RecoverySettings",
]
