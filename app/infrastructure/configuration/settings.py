"""Application configuration settings - main aggregator."""

from pydantic_settings import BaseSettings, SettingsConfigDict

# Integration settings
from infrastructure.configuration.integrations import (
    AwsSettings,
    DownstreamSettings,
)

# Feature settings
from infrastructure.configuration.features import (
    EscalationSettings,
    RecoverySettings,
)

# Infrastructure settings
from infrastructure.configuration.infrastructure import StoreSettings


class Settings(BaseSettings):
    """Application configuration settings - main aggregator.

    Aggregates all domain-specific settings into a single configuration object.
    Settings are organized by concern:

    - **Integrations**: External collaborators (AWS, downstream visit services)
    - **Features**: Post-commit recovery and escalation reporting
    - **Infrastructure**: Core system configuration (record store backend)

    Environment Variables:
        PREFIX: Environment prefix for non-production deployments
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        GIT_SHA: Git commit SHA for deployment tracking

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        if settings.recovery.enabled:
            limit = settings.recovery.scan_limit

        webhook_url = settings.escalation.webhook_url
        ```
    """

    # Application-level settings
    PREFIX: str = ""
    LOG_LEVEL: str = "INFO"
    GIT_SHA: str = "Unknown"

    # Integration settings
    aws: AwsSettings
    downstream: DownstreamSettings

    # Feature settings
    recovery: RecoverySettings
    escalation: EscalationSettings

    # Infrastructure settings
    store: StoreSettings

    @property
    def is_production(self) -> bool:
        """Check if the application is running in production.

        Returns:
            True if PREFIX is empty (production), False otherwise.
        """
        return not bool(self.PREFIX)

    def __init__(self, **kwargs):
        """Initialize Settings with automatic subsettings instantiation.

        Args:
            **kwargs: Optional overrides for specific settings sections.
        """
        settings_map = {
            # Integrations
            "aws": AwsSettings,
            "downstream": DownstreamSettings,
            # Features
            "recovery": RecoverySettings,
            "escalation": EscalationSettings,
            # Infrastructure
            "store": StoreSettings,
        }

        for setting_name, setting_class in settings_map.items():
            if setting_name not in kwargs:
                kwargs[setting_name] = setting_class()

        super().__init__(**kwargs)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )
