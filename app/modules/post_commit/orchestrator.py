"""Retry orchestration for failed post-commit operations.

A sweep scans a page of partial-failure records and, for each record,
re-attempts every outstanding operation that is retryable, under its attempt
budget and due. The outcome of all attempts on a record is persisted as one
merged write. Records whose state did not change are not written at all.
"""

import contextvars
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from infrastructure.logging import bind_request_context, get_module_logger
from modules.post_commit.backoff import BackoffPolicy
from modules.post_commit.executor import OperationExecutor
from modules.post_commit.models import (
    PostCommitOperation,
    PostCommitStatus,
    RecordUpdate,
    VisitRecord,
    utc_now,
)
from modules.post_commit.operations import OperationRegistry
from modules.post_commit.scanner import RecoveryScanner
from modules.post_commit.store import VisitRecordStore

logger = get_module_logger()

DEFAULT_MAX_WORKERS = 4


class RecordAction(Enum):
    """What a sweep did with one record."""

    RESOLVED = "resolved"
    STILL_FAILING = "still_failing"
    SKIPPED_UNCHANGED = "skipped_unchanged"
    MISSING = "missing"
    ERRORED = "errored"


@dataclass
class RecordOutcome:
    """Result of processing one record.

    Attributes:
        record_id: Visit id
        action: RecordAction taken
        attempts: Operations attempted
        failures: Attempts that failed
        escalated: True if a failure crossed the alert threshold
        update: The update written, None when nothing was written
    """

    record_id: str
    action: RecordAction
    attempts: int = 0
    failures: int = 0
    escalated: bool = False
    update: Optional[RecordUpdate] = None


@dataclass
class RecoveryResult:
    """Counters reported by one sweep."""

    visits_scanned: int = 0
    visits_retried: int = 0
    visits_resolved: int = 0
    visits_still_failing: int = 0
    visits_skipped_unchanged: int = 0
    visits_errored: int = 0
    operation_attempts: int = 0
    operation_failures: int = 0
    escalations: int = 0
    escalated_record_ids: List[str] = field(default_factory=list)

    def record(self, outcome: RecordOutcome) -> None:
        self.operation_attempts += outcome.attempts
        self.operation_failures += outcome.failures
        if outcome.attempts:
            self.visits_retried += 1
        if outcome.escalated:
            self.escalations += 1
            self.escalated_record_ids.append(outcome.record_id)

        if outcome.action == RecordAction.RESOLVED:
            self.visits_resolved += 1
        elif outcome.action == RecordAction.STILL_FAILING:
            self.visits_still_failing += 1
        elif outcome.action == RecordAction.SKIPPED_UNCHANGED:
            self.visits_still_failing += 1
            self.visits_skipped_unchanged += 1
        else:
            self.visits_errored += 1

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


class RetryOrchestrator:
    """Drives recovery sweeps over partial-failure visit records.

    Args:
        store: VisitRecordStore used for the single merged write per record
        scanner: RecoveryScanner selecting the page to process
        executor: OperationExecutor running individual operations
        registry: OperationRegistry with per-operation retry policies
        backoff: BackoffPolicy for next-retry instants and escalation
        max_workers: Records processed concurrently within one sweep
        clock: Returns the current UTC instant
    """

    def __init__(
        self,
        store: VisitRecordStore,
        scanner: RecoveryScanner,
        executor: OperationExecutor,
        registry: OperationRegistry,
        backoff: BackoffPolicy,
        max_workers: int = DEFAULT_MAX_WORKERS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.scanner = scanner
        self.executor = executor
        self.registry = registry
        self.backoff = backoff
        self.max_workers = max(max_workers, 1)
        self._clock = clock

    def sweep(self, limit: Optional[int] = None) -> RecoveryResult:
        """Scan one page of recoverable records and process each of them.

        An exception while processing one record is logged and counted in
        ``visits_errored``; the remaining records are still processed.
        """
        result = RecoveryResult()
        with bind_request_context(job="post_commit_recovery"):
            records = self.scanner.scan(limit)
            result.visits_scanned = len(records)
            if not records:
                logger.debug("recovery_sweep_no_records")
                return result

            logger.info("recovery_sweep_started", record_count=len(records))

            workers = min(self.max_workers, len(records))
            with ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="post-commit-recovery"
            ) as pool:
                futures = {
                    pool.submit(
                        contextvars.copy_context().run, self._process_safely, record
                    ): record
                    for record in records
                }
                for future in as_completed(futures):
                    outcome = future.result()
                    result.record(outcome)

            counters = result.to_dict()
            counters.pop("escalated_record_ids")
            logger.info("recovery_sweep_complete", **counters)
        return result

    def _process_safely(self, record: VisitRecord) -> RecordOutcome:
        try:
            return self.process_record(record, self._clock())
        except Exception as e:
            logger.error(
                "recovery_record_failed",
                record_id=record.id,
                error=str(e),
                exc_info=True,
            )
            return RecordOutcome(record_id=record.id, action=RecordAction.ERRORED)

    def process_record(self, record: VisitRecord, now: datetime) -> RecordOutcome:
        """Reconcile, retry due operations and persist the merged outcome."""
        log = logger.bind(record_id=record.id)

        completed: Set[PostCommitOperation] = set(record.completed_operations)
        attempts: Dict[PostCommitOperation, int] = dict(record.operation_attempts)
        next_retry: Dict[PostCommitOperation, datetime] = dict(
            record.operation_next_retry_at
        )

        # Operations that already succeeded once are resolved in favour of completed
        state_changed = False
        outstanding: List[PostCommitOperation] = []
        for operation in record.failed_operations:
            if operation in completed:
                attempts.pop(operation, None)
                next_retry.pop(operation, None)
                state_changed = True
                log.info("post_commit_operation_reconciled", operation=operation.value)
            else:
                outstanding.append(operation)

        if not outstanding:
            update = self._completed_update(now, set())
            return self._persist(record, RecordAction.RESOLVED, update)

        remaining = list(outstanding)
        newly_completed: Set[PostCommitOperation] = set()
        attempted = 0
        failures = 0
        escalated = False

        for operation in outstanding:
            policy = self.registry.policy_for(operation)
            if policy is None or not policy.retryable:
                continue

            prior_attempts = max(attempts.get(operation, 1), 1)
            if prior_attempts >= policy.max_attempts:
                continue

            due_at = next_retry.get(operation)
            if due_at is not None and due_at > now:
                continue

            attempted += 1
            result = self.executor.execute(operation, record)

            if result.is_success:
                remaining.remove(operation)
                newly_completed.add(operation)
                attempts.pop(operation, None)
                next_retry.pop(operation, None)
                state_changed = True
                log.info(
                    "post_commit_operation_recovered",
                    operation=operation.value,
                    attempt=prior_attempts + 1,
                )
                continue

            failures += 1
            updated_attempts = prior_attempts + 1
            attempts[operation] = updated_attempts
            if updated_attempts >= policy.max_attempts:
                next_retry.pop(operation, None)
            else:
                next_retry[operation] = self.backoff.next_retry_at(
                    updated_attempts, now
                )
            state_changed = True

            if self.backoff.is_alert_worthy(updated_attempts):
                escalated = True
                log.error(
                    "post_commit_operation_alert",
                    alert=True,
                    operation=operation.value,
                    attempt=updated_attempts,
                    max_attempts=policy.max_attempts,
                )
            log.warning(
                "post_commit_operation_retry_failed",
                operation=operation.value,
                attempt=updated_attempts,
                status=result.status.value,
                error=result.message,
            )

        if not remaining:
            update = self._completed_update(now, newly_completed)
            return self._persist(
                record,
                RecordAction.RESOLVED,
                update,
                attempts=attempted,
                failures=failures,
                escalated=escalated,
            )

        remaining_attempts = {
            operation: max(attempts.get(operation, 1), 1) for operation in remaining
        }
        still_eligible = any(
            self.registry.can_retry(operation, count)
            for operation, count in remaining_attempts.items()
        )

        if (
            not attempted
            and not state_changed
            and still_eligible == record.retry_eligible
        ):
            log.debug("recovery_record_unchanged")
            return RecordOutcome(
                record_id=record.id, action=RecordAction.SKIPPED_UNCHANGED
            )

        update = (
            RecordUpdate()
            .set("post_commit_status", PostCommitStatus.PARTIAL_FAILURE)
            .set("failed_operations", remaining)
            .set("retry_eligible", still_eligible)
            .set("last_attempt_at", now)
            .set("operation_attempts", remaining_attempts)
            .remove("completed_at")
            .add("completed_operations", newly_completed)
        )
        remaining_next_retry = {
            operation: next_retry[operation]
            for operation in remaining
            if operation in next_retry
        }
        if remaining_next_retry:
            update.set("operation_next_retry_at", remaining_next_retry)
        else:
            update.remove("operation_next_retry_at")
        if escalated and (record.escalated_at is None or record.escalated_at <= now):
            update.set("escalated_at", now)

        if not still_eligible:
            log.warning(
                "post_commit_retries_exhausted",
                failed_operations=[operation.value for operation in remaining],
            )

        return self._persist(
            record,
            RecordAction.STILL_FAILING,
            update,
            attempts=attempted,
            failures=failures,
            escalated=escalated,
        )

    @staticmethod
    def _completed_update(
        now: datetime, newly_completed: Set[PostCommitOperation]
    ) -> RecordUpdate:
        return (
            RecordUpdate()
            .set("post_commit_status", PostCommitStatus.COMPLETED)
            .set("retry_eligible", False)
            .set("last_attempt_at", now)
            .set("completed_at", now)
            .remove("failed_operations")
            .remove("operation_attempts")
            .remove("operation_next_retry_at")
            .add("completed_operations", newly_completed)
        )

    def _persist(
        self,
        record: VisitRecord,
        action: RecordAction,
        update: RecordUpdate,
        attempts: int = 0,
        failures: int = 0,
        escalated: bool = False,
    ) -> RecordOutcome:
        stored = self.store.update(record.id, update)
        if stored is None:
            return RecordOutcome(
                record_id=record.id,
                action=RecordAction.MISSING,
                attempts=attempts,
                failures=failures,
                escalated=escalated,
            )
        if action == RecordAction.RESOLVED:
            logger.info("post_commit_record_resolved", record_id=record.id)
        return RecordOutcome(
            record_id=record.id,
            action=action,
            attempts=attempts,
            failures=failures,
            escalated=escalated,
            update=update,
        )
