"""Visit record storage.

This module provides the storage interface the recovery engine reads and
writes visit records through, plus a thread-safe in-memory implementation
for development and tests. The DynamoDB implementation lives in
``dynamodb_store``.
"""

import threading
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol

from infrastructure.logging import get_module_logger
from modules.post_commit.models import PostCommitStatus, RecordUpdate, VisitRecord

logger = get_module_logger()

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class RecordStoreError(Exception):
    """Raised when the record store cannot complete a read or write."""


class VisitRecordStore(Protocol):
    """Storage interface for visit records.

    Methods:
        get: Load one record by id
        update: Merge an update into an existing record
        list_recoverable: Records in partial failure that are retry eligible
        list_escalated: Escalated records in partial failure, newest first
    """

    def get(self, record_id: str) -> Optional[VisitRecord]:
        """Return the record or None when it does not exist.

        Raises:
            RecordStoreError: If the store cannot be read
        """
        ...

    def update(self, record_id: str, update: RecordUpdate) -> Optional[VisitRecord]:
        """Merge ``update`` into the record if it still exists.

        Returns:
            The updated record, or None when the record does not exist

        Raises:
            RecordStoreError: If the write fails
        """
        ...

    def list_recoverable(self, limit: int) -> List[VisitRecord]:
        """Return up to ``limit`` records with status partial_failure and
        retry_eligible set, least recently attempted first.
        """
        ...

    def list_escalated(
        self, limit: int, start_after: Optional[VisitRecord] = None
    ) -> List[VisitRecord]:
        """Return up to ``limit`` escalated records in partial failure,
        newest escalation first, starting after ``start_after`` when given.
        """
        ...


def _escalation_sort_key(record: VisitRecord):
    return (record.escalated_at or _OLDEST, record.id)


class InMemoryVisitRecordStore:
    """In-memory implementation of VisitRecordStore.

    Thread-safe; records are copied on the way in and out so callers never
    share state with the store. Suitable for development and tests.
    """

    def __init__(self, records: Optional[Iterable[VisitRecord]] = None) -> None:
        self._records: Dict[str, VisitRecord] = {}
        self._lock = threading.Lock()
        self.update_count = 0
        for record in records or ():
            self.put(record)

    def put(self, record: VisitRecord) -> None:
        """Insert or replace a record (used by the primary pipeline and tests)."""
        with self._lock:
            self._records[record.id] = record.copy()

    def get(self, record_id: str) -> Optional[VisitRecord]:
        with self._lock:
            record = self._records.get(record_id)
            return record.copy() if record else None

    def update(self, record_id: str, update: RecordUpdate) -> Optional[VisitRecord]:
        with self._lock:
            current = self._records.get(record_id)
            if current is None:
                logger.warning("record_update_missing", record_id=record_id)
                return None
            updated = update.apply_to(current)
            self._records[record_id] = updated
            self.update_count += 1
            logger.debug(
                "record_updated",
                record_id=record_id,
                set_fields=sorted(update.sets),
                removed_fields=sorted(update.removes),
            )
            return updated.copy()

    def list_recoverable(self, limit: int) -> List[VisitRecord]:
        with self._lock:
            candidates = [
                record
                for record in self._records.values()
                if record.post_commit_status == PostCommitStatus.PARTIAL_FAILURE
                and record.retry_eligible
            ]
            candidates.sort(key=lambda r: (r.last_attempt_at or _OLDEST, r.id))
            return [record.copy() for record in candidates[: max(limit, 0)]]

    def list_escalated(
        self, limit: int, start_after: Optional[VisitRecord] = None
    ) -> List[VisitRecord]:
        with self._lock:
            candidates = sorted(
                (
                    record
                    for record in self._records.values()
                    if record.post_commit_status == PostCommitStatus.PARTIAL_FAILURE
                    and record.escalated_at is not None
                ),
                key=_escalation_sort_key,
                reverse=True,
            )
            if start_after is not None:
                cursor_key = _escalation_sort_key(start_after)
                candidates = [
                    record
                    for record in candidates
                    if _escalation_sort_key(record) < cursor_key
                ]
            return [record.copy() for record in candidates[: max(limit, 0)]]
