"""Shared base classes for settings modules.

Every settings section reads from the process environment and an optional
``.env`` file, with case-sensitive variable names and unknown keys ignored.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class IntegrationSettings(BaseSettings):
    """Base class for external integration settings.

    Used for collaborators outside this process: AWS, downstream visit
    services and the incident webhook destination.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )


class FeatureSettings(BaseSettings):
    """Base class for feature module settings.

    Used by the post-commit recovery and escalation reporting features.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )


class InfrastructureSettings(BaseSettings):
    """Base class for infrastructure-level settings.

    Infrastructure settings control core system behavior such as which
    record store backend is used.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )
