"""Selects the page of visit records a recovery sweep works on."""

from typing import Any, List, Optional

from infrastructure.logging import get_module_logger
from modules.post_commit.models import VisitRecord
from modules.post_commit.store import VisitRecordStore

logger = get_module_logger()

DEFAULT_SCAN_LIMIT = 25
MAX_SCAN_LIMIT = 100


def normalize_limit(raw_limit: Any, default: int, maximum: int) -> int:
    """Clamp ``raw_limit`` to ``maximum``; missing or invalid values use ``default``."""
    if isinstance(raw_limit, bool):
        return default
    try:
        limit = int(raw_limit)
    except (TypeError, ValueError, OverflowError):
        return default
    if limit <= 0:
        return default
    return min(limit, maximum)


class RecoveryScanner:
    """Returns partial-failure records still eligible for retry.

    Records are ordered by ``last_attempt_at`` ascending so records that keep
    failing cannot starve older ones.
    """

    def __init__(
        self, store: VisitRecordStore, default_limit: int = DEFAULT_SCAN_LIMIT
    ) -> None:
        self._store = store
        self._default_limit = normalize_limit(
            default_limit, DEFAULT_SCAN_LIMIT, MAX_SCAN_LIMIT
        )

    def scan(self, limit: Optional[int] = None) -> List[VisitRecord]:
        effective_limit = normalize_limit(limit, self._default_limit, MAX_SCAN_LIMIT)
        records = self._store.list_recoverable(effective_limit)
        logger.debug(
            "recovery_scan_complete",
            limit=effective_limit,
            count=len(records),
        )
        return records
