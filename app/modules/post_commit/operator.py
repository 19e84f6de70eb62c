"""Operator actions on escalated visit records.

Operators list escalated records, acknowledge them, mark them resolved, or
reopen them. The recovery sweep never clears ``escalated_at``; reopening is
the explicit operator action that moves it forward again.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import BaseModel, Field, field_validator

from infrastructure.logging import get_module_logger
from modules.post_commit.models import (
    PostCommitStatus,
    RecordUpdate,
    VisitRecord,
    utc_now,
)
from modules.post_commit.store import VisitRecordStore

logger = get_module_logger()

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100
MAX_NOTE_LENGTH = 1000

_CONTROL_CHARACTERS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


class RecordNotFoundError(Exception):
    """The visit record does not exist."""


class NotEscalatedError(Exception):
    """The visit record was never escalated."""


class InvalidCursorError(ValueError):
    """The pagination cursor does not name an escalated record."""


class EscalationAction(BaseModel):
    """Validated operator input for acknowledge/resolve/reopen."""

    operator_id: str = Field(min_length=1, max_length=256)
    note: Optional[str] = Field(default=None, max_length=MAX_NOTE_LENGTH)

    @field_validator("operator_id")
    @classmethod
    def strip_operator_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("operator_id is required")
        return value

    @field_validator("note")
    @classmethod
    def sanitize_note(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = _CONTROL_CHARACTERS.sub("", value).strip()
        return value or None


@dataclass
class EscalationPage:
    items: List[VisitRecord] = field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = None


class EscalationOperatorService:
    """Operator-facing escalation actions.

    Args:
        store: VisitRecordStore
        clock: Returns the current UTC instant
    """

    def __init__(
        self, store: VisitRecordStore, clock: Callable[[], datetime] = utc_now
    ) -> None:
        self.store = store
        self._clock = clock

    def list_escalations(
        self, limit: int = DEFAULT_PAGE_SIZE, cursor: Optional[str] = None
    ) -> EscalationPage:
        """Return one page of escalated records, newest escalation first.

        Raises:
            ValueError: If ``limit`` is not positive
            InvalidCursorError: If ``cursor`` is not an escalated record id
        """
        if limit is None or limit <= 0:
            raise ValueError("limit must be a positive integer")
        page_size = min(limit, MAX_PAGE_SIZE)

        start_after = None
        if cursor:
            start_after = self.store.get(cursor)
            if (
                start_after is None
                or start_after.escalated_at is None
                or start_after.post_commit_status != PostCommitStatus.PARTIAL_FAILURE
            ):
                raise InvalidCursorError(f"invalid cursor: {cursor}")

        records = self.store.list_escalated(page_size + 1, start_after=start_after)
        has_more = len(records) > page_size
        items = records[:page_size]
        return EscalationPage(
            items=items,
            has_more=has_more,
            next_cursor=items[-1].id if has_more and items else None,
        )

    def acknowledge(
        self, record_id: str, operator_id: str, note: Optional[str] = None
    ) -> VisitRecord:
        """Mark the escalation as seen by an operator."""
        action = EscalationAction(operator_id=operator_id, note=note)
        self._load_escalated(record_id)

        update = (
            RecordUpdate()
            .set("escalation_acknowledged_at", self._clock())
            .set("escalation_acknowledged_by", action.operator_id)
        )
        if action.note:
            update.set("escalation_note", action.note)
        else:
            update.remove("escalation_note")

        record = self._write(record_id, update)
        logger.info(
            "escalation_acknowledged",
            record_id=record_id,
            operator_id=action.operator_id,
        )
        return record

    def resolve(
        self, record_id: str, operator_id: str, note: Optional[str] = None
    ) -> VisitRecord:
        """Mark the escalation resolved, acknowledging it if nobody had."""
        action = EscalationAction(operator_id=operator_id, note=note)
        current = self._load_escalated(record_id)
        now = self._clock()

        update = (
            RecordUpdate()
            .set("escalation_resolved_at", now)
            .set("escalation_resolved_by", action.operator_id)
        )
        if action.note:
            update.set("escalation_resolution_note", action.note)
        else:
            update.remove("escalation_resolution_note")
        if current.escalation_acknowledged_at is None:
            update.set("escalation_acknowledged_at", now)
        if not current.escalation_acknowledged_by:
            update.set("escalation_acknowledged_by", action.operator_id)

        record = self._write(record_id, update)
        logger.info(
            "escalation_resolved",
            record_id=record_id,
            operator_id=action.operator_id,
        )
        return record

    def reopen(self, record_id: str, operator_id: str) -> VisitRecord:
        """Re-raise the escalation and clear acknowledgement and resolution."""
        action = EscalationAction(operator_id=operator_id)
        self._load_escalated(record_id)

        update = RecordUpdate().set("escalated_at", self._clock())
        for name in (
            "escalation_acknowledged_at",
            "escalation_acknowledged_by",
            "escalation_note",
            "escalation_resolved_at",
            "escalation_resolved_by",
            "escalation_resolution_note",
        ):
            update.remove(name)

        record = self._write(record_id, update)
        logger.info(
            "escalation_reopened",
            record_id=record_id,
            operator_id=action.operator_id,
        )
        return record

    def _load_escalated(self, record_id: str) -> VisitRecord:
        record = self.store.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"visit {record_id} not found")
        if not record.is_escalated:
            raise NotEscalatedError(f"visit {record_id} has no escalation")
        return record

    def _write(self, record_id: str, update: RecordUpdate) -> VisitRecord:
        record = self.store.update(record_id, update)
        if record is None:
            raise RecordNotFoundError(f"visit {record_id} not found")
        return record
