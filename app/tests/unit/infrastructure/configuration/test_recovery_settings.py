"""Unit tests for the settings aggregator and its sections."""

import pytest
from pydantic import ValidationError

from infrastructure.configuration import EscalationSettings, RecoverySettings, Settings
from infrastructure.configuration.infrastructure import StoreSettings


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Run without the developer's .env file or recovery variables."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "RECOVERY_MAX_ATTEMPTS",
        "RECOVERY_ALERT_THRESHOLD",
        "RECOVERY_SCAN_LIMIT",
        "ESCALATION_WEBHOOK_URL",
        "RECORD_STORE_BACKEND",
        "PREFIX",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.mark.unit
class TestSettings:
    def test_sections_are_instantiated(self):
        settings = Settings()

        assert isinstance(settings.recovery, RecoverySettings)
        assert isinstance(settings.escalation, EscalationSettings)
        assert isinstance(settings.store, StoreSettings)
        assert settings.is_production is True

    def test_prefix_marks_non_production(self, monkeypatch):
        monkeypatch.setenv("PREFIX", "dev-")

        assert Settings().is_production is False

    def test_section_override(self):
        settings = Settings(recovery=RecoverySettings(max_attempts=5))

        assert settings.recovery.max_attempts == 5


@pytest.mark.unit
class TestRecoverySettings:
    def test_defaults(self):
        settings = RecoverySettings()

        assert settings.max_attempts == 3
        assert settings.base_delay_seconds == 900
        assert settings.max_delay_seconds == 21600
        assert settings.scan_limit == 25
        assert settings.effective_alert_threshold == 2

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("RECOVERY_MAX_ATTEMPTS", "6")
        monkeypatch.setenv("RECOVERY_ALERT_THRESHOLD", "4")

        settings = RecoverySettings()

        assert settings.max_attempts == 6
        assert settings.effective_alert_threshold == 4

    def test_single_attempt_budget_alerts_on_first_failure(self):
        assert RecoverySettings(max_attempts=1).effective_alert_threshold == 1

    def test_alert_threshold_must_be_below_max_attempts(self):
        with pytest.raises(ValidationError):
            RecoverySettings(max_attempts=3, alert_threshold=3)

    def test_max_delay_must_cover_base_delay(self):
        with pytest.raises(ValidationError):
            RecoverySettings(base_delay_seconds=600, max_delay_seconds=60)


@pytest.mark.unit
class TestEscalationSettings:
    def test_webhook_is_optional(self):
        settings = EscalationSettings()

        assert settings.webhook_url == ""
        assert settings.source == "visit-post-commit-recovery"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("ESCALATION_WEBHOOK_URL", "https://hooks.example.com/x")

        assert EscalationSettings().webhook_url == "https://hooks.example.com/x"


@pytest.mark.unit
class TestStoreSettings:
    def test_backend_is_normalized(self):
        assert StoreSettings(backend=" DynamoDB ").backend == "dynamodb"

    def test_unknown_backend_is_rejected(self):
        with pytest.raises(ValidationError):
            StoreSettings(backend="postgres")
