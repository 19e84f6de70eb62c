"""Retry backoff policy for failed post-commit operations.

Delay calculation: min(base_delay * multiplier ^ (attempt - 1), max_delay)

With the defaults (base=900s, multiplier=2, max=21600s):
    Attempt 1: 15 minutes
    Attempt 2: 30 minutes
    Attempt 3: 1 hour
    Attempt 6+: 6 hours (cap)
"""

from datetime import datetime, timedelta
from typing import Optional

from infrastructure.configuration import RecoverySettings

DEFAULT_BASE_DELAY_SECONDS = 900
DEFAULT_MULTIPLIER = 2.0
DEFAULT_MAX_DELAY_SECONDS = 21600
DEFAULT_MAX_ATTEMPTS = 3


class BackoffPolicy:
    """Pure mapping from attempt count to next retry instant and alert flag.

    Args:
        base_delay_seconds: Delay after the first recorded attempt
        multiplier: Growth factor per attempt (>= 1 keeps the curve monotonic)
        max_delay_seconds: Upper bound on any delay
        max_attempts: Default attempt budget per operation
        alert_threshold: Attempt count that escalates; defaults to
            ``max_attempts - 1`` and must stay below ``max_attempts``. With a
            single-attempt budget nothing is ever retried, so no explicit
            threshold is accepted and the default is 1.

    Raises:
        ValueError: If the parameters do not describe a monotonic, capped
            curve with an alert threshold below the attempt budget.
    """

    def __init__(
        self,
        base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS,
        multiplier: float = DEFAULT_MULTIPLIER,
        max_delay_seconds: float = DEFAULT_MAX_DELAY_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        alert_threshold: Optional[int] = None,
    ) -> None:
        if base_delay_seconds <= 0:
            raise ValueError("base_delay_seconds must be positive")
        if multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if max_delay_seconds < base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if alert_threshold is not None:
            if alert_threshold < 1:
                raise ValueError("alert_threshold must be >= 1")
            if alert_threshold >= max_attempts:
                raise ValueError("alert_threshold must be lower than max_attempts")
        else:
            alert_threshold = max(max_attempts - 1, 1)

        self.base_delay_seconds = base_delay_seconds
        self.multiplier = multiplier
        self.max_delay_seconds = max_delay_seconds
        self.max_attempts = max_attempts
        self.alert_threshold = alert_threshold

    @classmethod
    def from_settings(cls, settings: RecoverySettings) -> "BackoffPolicy":
        return cls(
            base_delay_seconds=settings.base_delay_seconds,
            multiplier=settings.backoff_multiplier,
            max_delay_seconds=settings.max_delay_seconds,
            max_attempts=settings.max_attempts,
            alert_threshold=settings.alert_threshold,
        )

    def delay_seconds(self, attempt_number: int) -> float:
        """Delay before the attempt following ``attempt_number`` may run."""
        exponent = max(attempt_number, 1) - 1
        try:
            delay = self.base_delay_seconds * (self.multiplier**exponent)
        except OverflowError:
            return float(self.max_delay_seconds)
        return float(min(delay, self.max_delay_seconds))

    def next_retry_at(self, attempt_number: int, now: datetime) -> datetime:
        return now + timedelta(seconds=self.delay_seconds(attempt_number))

    def is_alert_worthy(self, attempt_number: int) -> bool:
        return attempt_number >= self.alert_threshold
