"""Visit post-commit recovery data models.

Internal dataclasses describing the recovery state tracked on each visit
record and the field-level updates the engine persists.

Key distinctions:
  - VisitRecord: the recovery fields of one visit plus a snapshot of the
    committed visit fields the operations need (summary, medications, ...)
  - RecordUpdate: a merge of named fields; each field is either set to a
    value, removed, or (for completed_operations) unioned with a set
  - Snapshot keys (anything that is not a recovery field) can be set or
    removed through the same RecordUpdate
"""

import copy
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set


class PostCommitOperation(str, Enum):
    """Secondary side-effects run after the visit transaction commits."""

    SYNC_MEDICATIONS = "sync_medications"
    DELETE_TRANSCRIPT = "delete_transcript"
    VISIT_ANALYSIS = "visit_analysis"
    PUSH_NOTIFICATION = "push_notification"
    CAREGIVER_EMAILS = "caregiver_emails"

    @classmethod
    def parse(cls, value: Any) -> Optional["PostCommitOperation"]:
        """Return the operation named by ``value`` or None when unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class PostCommitStatus(str, Enum):
    """Post-commit state of a visit. Absent means nothing to recover."""

    COMPLETED = "completed"
    PARTIAL_FAILURE = "partial_failure"

    @classmethod
    def parse(cls, value: Any) -> Optional["PostCommitStatus"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes so comparisons never mix kinds."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse ISO strings, epoch seconds or datetimes; None when unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(float(value), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def parse_operations(raw: Any) -> List[PostCommitOperation]:
    """Parse stored operation names, dropping unknown names and duplicates."""
    if raw is None or isinstance(raw, (str, bytes)):
        return []
    operations: List[PostCommitOperation] = []
    for value in raw:
        operation = PostCommitOperation.parse(value)
        if operation is not None and operation not in operations:
            operations.append(operation)
    return operations


def parse_attempts(raw: Any) -> Dict[PostCommitOperation, int]:
    """Parse the per-operation attempt map, skipping invalid counts."""
    if not isinstance(raw, dict):
        return {}
    attempts: Dict[PostCommitOperation, int] = {}
    for name, value in raw.items():
        operation = PostCommitOperation.parse(name)
        if operation is None or isinstance(value, bool):
            continue
        try:
            count = int(value)
        except (TypeError, ValueError):
            continue
        if count < 0:
            continue
        attempts[operation] = count
    return attempts


def parse_next_retry(raw: Any) -> Dict[PostCommitOperation, datetime]:
    """Parse the per-operation next-retry map, skipping unparseable instants."""
    if not isinstance(raw, dict):
        return {}
    next_retry: Dict[PostCommitOperation, datetime] = {}
    for name, value in raw.items():
        operation = PostCommitOperation.parse(name)
        instant = parse_datetime(value)
        if operation is None or instant is None:
            continue
        next_retry[operation] = instant
    return next_retry


@dataclass
class VisitRecord:
    """Recovery state of one visit.

    Attributes:
        id: Visit identifier
        user_id: Owner of the visit; operations cannot run without it
        post_commit_status: COMPLETED, PARTIAL_FAILURE or None
        failed_operations: Outstanding operations, ordered and de-duplicated
        completed_operations: Operations that succeeded at least once (never shrinks)
        operation_attempts: Attempts recorded per failed operation
        operation_next_retry_at: Earliest instant each operation may run again
        last_attempt_at: Last sweep that wrote this record
        completed_at: Last transition to COMPLETED
        escalated_at: Last time an operation crossed the alert threshold
        escalation_acknowledged_at: Operator acknowledgement (None = unacknowledged)
        retry_eligible: True while some outstanding operation can still be retried
        snapshot: Committed visit fields the operations read
    """

    id: str
    user_id: Optional[str] = None
    post_commit_status: Optional[PostCommitStatus] = None
    failed_operations: List[PostCommitOperation] = field(default_factory=list)
    completed_operations: Set[PostCommitOperation] = field(default_factory=set)
    operation_attempts: Dict[PostCommitOperation, int] = field(default_factory=dict)
    operation_next_retry_at: Dict[PostCommitOperation, datetime] = field(
        default_factory=dict
    )
    last_attempt_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    escalated_at: Optional[datetime] = None
    escalation_acknowledged_at: Optional[datetime] = None
    escalation_acknowledged_by: Optional[str] = None
    escalation_note: Optional[str] = None
    escalation_resolved_at: Optional[datetime] = None
    escalation_resolved_by: Optional[str] = None
    escalation_resolution_note: Optional[str] = None
    retry_eligible: bool = False
    snapshot: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("id is required")
        self.post_commit_status = PostCommitStatus.parse(self.post_commit_status)
        self.failed_operations = parse_operations(self.failed_operations)
        self.completed_operations = set(parse_operations(self.completed_operations))
        self.operation_attempts = parse_attempts(self.operation_attempts)
        self.operation_next_retry_at = parse_next_retry(self.operation_next_retry_at)
        for name in DATETIME_FIELDS:
            setattr(self, name, parse_datetime(getattr(self, name)))

    @property
    def is_escalated(self) -> bool:
        return self.escalated_at is not None

    @property
    def is_acknowledged(self) -> bool:
        return self.escalation_acknowledged_at is not None

    def copy(self) -> "VisitRecord":
        return copy.deepcopy(self)


DATETIME_FIELDS = (
    "last_attempt_at",
    "completed_at",
    "escalated_at",
    "escalation_acknowledged_at",
    "escalation_resolved_at",
)

RECOVERY_FIELDS = frozenset(
    f.name for f in fields(VisitRecord) if f.name not in ("id", "snapshot")
)

# Fields that a removal resets to an empty container or False instead of None
_EMPTY_VALUES = {
    "failed_operations": list,
    "completed_operations": set,
    "operation_attempts": dict,
    "operation_next_retry_at": dict,
    "retry_eligible": lambda: False,
}


@dataclass
class RecordUpdate:
    """Field-level merge applied to a stored record.

    Fields not mentioned are left unchanged. A field is never both set and
    removed; the last call wins.

    Example:
        update = (
            RecordUpdate()
            .set("post_commit_status", PostCommitStatus.COMPLETED)
            .remove("operation_attempts")
            .add("completed_operations", {PostCommitOperation.PUSH_NOTIFICATION})
        )
    """

    sets: Dict[str, Any] = field(default_factory=dict)
    removes: Set[str] = field(default_factory=set)
    adds: Dict[str, Set[Any]] = field(default_factory=dict)

    def set(self, name: str, value: Any) -> "RecordUpdate":
        if value is None:
            raise ValueError(f"use remove() to clear '{name}'")
        self.removes.discard(name)
        self.sets[name] = value
        return self

    def remove(self, name: str) -> "RecordUpdate":
        self.sets.pop(name, None)
        self.removes.add(name)
        return self

    def add(self, name: str, values: Iterable[Any]) -> "RecordUpdate":
        values = set(values)
        if values:
            self.adds.setdefault(name, set()).update(values)
        return self

    @property
    def is_empty(self) -> bool:
        return not (self.sets or self.removes or self.adds)

    def apply_to(self, record: VisitRecord) -> VisitRecord:
        """Return a copy of ``record`` with this update merged in."""
        updated = record.copy()
        for name, value in self.sets.items():
            value = copy.deepcopy(value)
            if name in RECOVERY_FIELDS:
                setattr(updated, name, value)
            else:
                updated.snapshot[name] = value
        for name in self.removes:
            if name in RECOVERY_FIELDS:
                factory = _EMPTY_VALUES.get(name)
                setattr(updated, name, factory() if factory else None)
            else:
                updated.snapshot.pop(name, None)
        for name, values in self.adds.items():
            if name in RECOVERY_FIELDS:
                current = set(getattr(updated, name) or ())
                setattr(updated, name, current | values)
            else:
                current = set(updated.snapshot.get(name) or ())
                updated.snapshot[name] = current | values
        # Re-run parsing so set values are normalized like stored ones
        updated.__post_init__()
        return updated
