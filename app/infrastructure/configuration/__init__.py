"""Infrastructure configuration module - public API.

Centralized configuration management using Pydantic BaseSettings with
domain-based organization.

Exports:
    Settings: Main settings class
    RecoverySettings: Recovery sweep settings class (for testing)
    EscalationSettings: Escalation report settings class (for testing)

Example:
    ```python
    from infrastructure.services import get_settings

    settings = get_settings()

    max_attempts = settings.recovery.max_attempts
    webhook_url = settings.escalation.webhook_url
    ```
"""

from infrastructure.configuration.settings import Settings
from infrastructure.configuration.features import (
    EscalationSettings,
    RecoverySettings,
)

__all__ = ["Settings", "RecoverySettings", "EscalationSettings"]
