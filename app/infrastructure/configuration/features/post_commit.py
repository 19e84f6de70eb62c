"""Post-commit recovery and escalation reporting feature settings."""

from typing import Optional

from pydantic import Field, model_validator

from infrastructure.configuration.base import FeatureSettings


class RecoverySettings(FeatureSettings):
    """Retry sweep configuration for failed post-commit operations.

    Environment Variables:
        RECOVERY_ENABLED: Enable the periodic recovery sweep (default: True)
        RECOVERY_MAX_ATTEMPTS: Attempt budget per operation (default: 3)
        RECOVERY_ALERT_THRESHOLD: Attempt count that escalates (default: max - 1)
        RECOVERY_BASE_DELAY_SECONDS: First backoff delay (default: 900s)
        RECOVERY_BACKOFF_MULTIPLIER: Backoff growth factor (default: 2.0)
        RECOVERY_MAX_DELAY_SECONDS: Backoff cap (default: 21600s = 6h)
        RECOVERY_SCAN_LIMIT: Records per sweep (default: 25, capped at 100)
        RECOVERY_MAX_WORKERS: Records processed concurrently (default: 4)
        RECOVERY_INTERVAL_MINUTES: Sweep cadence (default: 30)

    Exponential Backoff:
        Delay calculation: min(base_delay * multiplier ^ (attempt - 1), max_delay)

        Example with defaults (base=900s, multiplier=2, max=21600s):
            Attempt 1: 15 minutes
            Attempt 2: 30 minutes
            Attempt 3: 1 hour
            Attempt 6+: 6 hours (cap)
    """

    enabled: bool = Field(
        default=True,
        alias="RECOVERY_ENABLED",
        description="Enable the periodic post-commit recovery sweep",
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        alias="RECOVERY_MAX_ATTEMPTS",
        description="Maximum attempts per operation before it is left for operators",
    )
    alert_threshold: Optional[int] = Field(
        default=None,
        ge=1,
        alias="RECOVERY_ALERT_THRESHOLD",
        description="Attempt count at which a failure escalates (default: max_attempts - 1)",
    )
    base_delay_seconds: int = Field(
        default=900,
        ge=1,
        alias="RECOVERY_BASE_DELAY_SECONDS",
        description="Base delay for exponential backoff (seconds)",
    )
    backoff_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        alias="RECOVERY_BACKOFF_MULTIPLIER",
        description="Growth factor applied per attempt",
    )
    max_delay_seconds: int = Field(
        default=21600,
        ge=1,
        alias="RECOVERY_MAX_DELAY_SECONDS",
        description="Maximum delay for exponential backoff (seconds, 6 hours)",
    )
    scan_limit: int = Field(
        default=25,
        alias="RECOVERY_SCAN_LIMIT",
        description="Number of records scanned per sweep",
    )
    max_workers: int = Field(
        default=4,
        ge=1,
        alias="RECOVERY_MAX_WORKERS",
        description="Records processed concurrently within one sweep",
    )
    interval_minutes: int = Field(
        default=30,
        ge=1,
        alias="RECOVERY_INTERVAL_MINUTES",
        description="Minutes between recovery sweeps",
    )

    @model_validator(mode="after")
    def validate_thresholds(self) -> "RecoverySettings":
        """Ensure the backoff cap and alert threshold are coherent."""
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        if (
            self.alert_threshold is not None
            and self.alert_threshold >= self.max_attempts
        ):
            raise ValueError("alert_threshold must be lower than max_attempts")
        return self

    @property
    def effective_alert_threshold(self) -> int:
        """Alert threshold, defaulting to the last attempt before exhaustion."""
        if self.alert_threshold is not None:
            return self.alert_threshold
        return max(self.max_attempts - 1, 1)


class EscalationSettings(FeatureSettings):
    """Escalation report and incident webhook configuration.

    Environment Variables:
        ESCALATION_ENABLED: Enable the periodic escalation report (default: True)
        ESCALATION_SCAN_LIMIT: Escalated records scanned per report (default: 200)
        ESCALATION_SAMPLE_SIZE: Record ids included in the incident (default: 20)
        ESCALATION_WEBHOOK_URL: Incident destination; empty means log-only
        ESCALATION_WEBHOOK_TOKEN: Optional bearer token for the destination
        ESCALATION_WEBHOOK_TIMEOUT_SECONDS: POST timeout (default: 10, minimum 1)
        ESCALATION_INTERVAL_MINUTES: Report cadence (default: 60)
        ESCALATION_SOURCE: Value of the payload's ``source`` field
        ESCALATION_OPERATOR_ENDPOINT: Operator API path included in the payload
        ESCALATION_DASHBOARD_PATH: Operator dashboard path included in the payload
    """

    enabled: bool = Field(default=True, alias="ESCALATION_ENABLED")
    scan_limit: int = Field(default=200, alias="ESCALATION_SCAN_LIMIT")
    sample_size: int = Field(default=20, alias="ESCALATION_SAMPLE_SIZE")
    webhook_url: str = Field(default="", alias="ESCALATION_WEBHOOK_URL")
    webhook_token: str = Field(default="", alias="ESCALATION_WEBHOOK_TOKEN")
    webhook_timeout_seconds: float = Field(
        default=10.0, alias="ESCALATION_WEBHOOK_TIMEOUT_SECONDS"
    )
    interval_minutes: int = Field(default=60, ge=1, alias="ESCALATION_INTERVAL_MINUTES")
    source: str = Field(default="visit-post-commit-recovery", alias="ESCALATION_SOURCE")
    operator_endpoint: str = Field(
        default="/v1/visits/ops/post-commit-escalations",
        alias="ESCALATION_OPERATOR_ENDPOINT",
    )
    dashboard_path: str = Field(
        default="/ops/escalations", alias="ESCALATION_DASHBOARD_PATH"
    )
