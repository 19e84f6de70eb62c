"""Unit tests for the retry orchestrator."""

from datetime import timedelta
from unittest.mock import MagicMock

from modules.post_commit.backoff import BackoffPolicy
from modules.post_commit.models import PostCommitOperation, PostCommitStatus
from modules.post_commit.operations import OperationPolicy, OperationRegistry
from modules.post_commit.orchestrator import RecordAction, RecoveryResult
from modules.post_commit.store import RecordStoreError

PUSH = PostCommitOperation.PUSH_NOTIFICATION
ANALYSIS = PostCommitOperation.VISIT_ANALYSIS
SYNC = PostCommitOperation.SYNC_MEDICATIONS
EMAILS = PostCommitOperation.CAREGIVER_EMAILS


class TestProcessRecord:
    def test_successful_retry_completes_record(
        self, orchestrator_factory, memory_store, visit_record_factory, now
    ):
        """Absent attempt count, due immediately, executor succeeds."""
        record = visit_record_factory(failed=[SYNC])
        memory_store.put(record)
        orchestrator = orchestrator_factory()

        outcome = orchestrator.process_record(record, now)

        stored = memory_store.get(record.id)
        assert outcome.action == RecordAction.RESOLVED
        assert outcome.attempts == 1
        assert stored.post_commit_status == PostCommitStatus.COMPLETED
        assert SYNC in stored.completed_operations
        assert stored.failed_operations == []
        assert stored.operation_attempts == {}
        assert stored.operation_next_retry_at == {}
        assert stored.completed_at == now
        assert stored.last_attempt_at == now
        assert stored.retry_eligible is False

    def test_failure_on_last_attempt_exhausts_operation(
        self, orchestrator_factory, memory_store, mock_executor, visit_record_factory, now
    ):
        record = visit_record_factory(
            failed=[ANALYSIS],
            attempts={ANALYSIS: 2},
            next_retry={ANALYSIS: now - timedelta(minutes=1)},
        )
        memory_store.put(record)
        mock_executor.fail(ANALYSIS)
        orchestrator = orchestrator_factory()

        outcome = orchestrator.process_record(record, now)

        stored = memory_store.get(record.id)
        assert outcome.action == RecordAction.STILL_FAILING
        assert outcome.failures == 1
        assert outcome.escalated is True
        assert stored.operation_attempts == {ANALYSIS: 3}
        assert stored.operation_next_retry_at == {}
        assert stored.retry_eligible is False
        assert stored.escalated_at == now
        assert stored.failed_operations == [ANALYSIS]

    def test_operation_not_yet_due_is_left_untouched(
        self, orchestrator_factory, memory_store, mock_executor, visit_record_factory, now
    ):
        record = visit_record_factory(
            failed=[PUSH],
            attempts={PUSH: 1},
            next_retry={PUSH: now + timedelta(minutes=5)},
        )
        memory_store.put(record)
        orchestrator = orchestrator_factory()

        outcome = orchestrator.process_record(record, now)

        assert outcome.action == RecordAction.SKIPPED_UNCHANGED
        assert outcome.attempts == 0
        assert mock_executor.calls == []
        assert memory_store.update_count == 0

    def test_first_failure_schedules_backoff_and_escalates(
        self, orchestrator_factory, memory_store, mock_executor, visit_record_factory, now
    ):
        record = visit_record_factory(failed=[PUSH])
        memory_store.put(record)
        mock_executor.fail(PUSH)
        orchestrator = orchestrator_factory()

        orchestrator.process_record(record, now)

        stored = memory_store.get(record.id)
        assert stored.operation_attempts == {PUSH: 2}
        assert stored.operation_next_retry_at == {PUSH: now + timedelta(minutes=30)}
        assert stored.retry_eligible is True
        # Default threshold is max_attempts - 1 = 2
        assert stored.escalated_at == now

    def test_failure_below_threshold_does_not_escalate(
        self, orchestrator_factory, memory_store, mock_executor, visit_record_factory, now
    ):
        record = visit_record_factory(failed=[PUSH])
        memory_store.put(record)
        mock_executor.fail(PUSH)
        orchestrator = orchestrator_factory(
            registry=OperationRegistry.default(max_attempts=5),
            backoff=BackoffPolicy(max_attempts=5, alert_threshold=4),
        )

        outcome = orchestrator.process_record(record, now)

        stored = memory_store.get(record.id)
        assert outcome.escalated is False
        assert stored.escalated_at is None
        assert stored.operation_attempts == {PUSH: 2}

    def test_reconciles_operations_already_completed(
        self, orchestrator_factory, memory_store, mock_executor, visit_record_factory, now
    ):
        record = visit_record_factory(
            failed=[PUSH, SYNC],
            completed=[PUSH],
            attempts={PUSH: 2, SYNC: 1},
            next_retry={SYNC: now + timedelta(minutes=10)},
        )
        memory_store.put(record)
        orchestrator = orchestrator_factory()

        outcome = orchestrator.process_record(record, now)

        stored = memory_store.get(record.id)
        assert outcome.action == RecordAction.STILL_FAILING
        assert mock_executor.calls == []
        assert stored.failed_operations == [SYNC]
        assert stored.operation_attempts == {SYNC: 1}
        assert PUSH in stored.completed_operations

    def test_reconciliation_alone_can_resolve_record(
        self, orchestrator_factory, memory_store, mock_executor, visit_record_factory, now
    ):
        record = visit_record_factory(failed=[PUSH], completed=[PUSH, SYNC])
        memory_store.put(record)
        orchestrator = orchestrator_factory()

        outcome = orchestrator.process_record(record, now)

        stored = memory_store.get(record.id)
        assert outcome.action == RecordAction.RESOLVED
        assert mock_executor.calls == []
        assert stored.post_commit_status == PostCommitStatus.COMPLETED
        assert stored.completed_operations == {PUSH, SYNC}

    def test_partial_success_isolates_sibling_failures(
        self, orchestrator_factory, memory_store, mock_executor, visit_record_factory, now
    ):
        record = visit_record_factory(
            failed=[PUSH, ANALYSIS, EMAILS],
            attempts={ANALYSIS: 3},
            completed_at=now - timedelta(days=1),
        )
        memory_store.put(record)
        mock_executor.fail(EMAILS)
        orchestrator = orchestrator_factory()

        outcome = orchestrator.process_record(record, now)

        stored = memory_store.get(record.id)
        # ANALYSIS is exhausted and never attempted
        assert [call[0] for call in mock_executor.calls] == [PUSH, EMAILS]
        assert outcome.attempts == 2
        assert outcome.failures == 1
        assert stored.failed_operations == [ANALYSIS, EMAILS]
        assert stored.completed_operations == {PUSH}
        assert stored.operation_attempts == {ANALYSIS: 3, EMAILS: 2}
        assert set(stored.operation_next_retry_at) == {EMAILS}
        assert stored.retry_eligible is True
        assert stored.completed_at is None

    def test_non_retryable_operation_is_never_attempted(
        self, orchestrator_factory, memory_store, mock_executor, visit_record_factory, now
    ):
        registry = OperationRegistry(
            {
                PUSH: OperationPolicy(retryable=True, max_attempts=3),
                EMAILS: OperationPolicy(retryable=False, max_attempts=3),
            }
        )
        record = visit_record_factory(failed=[EMAILS, PUSH])
        memory_store.put(record)
        orchestrator = orchestrator_factory(registry=registry)

        orchestrator.process_record(record, now)

        stored = memory_store.get(record.id)
        assert [call[0] for call in mock_executor.calls] == [PUSH]
        assert stored.failed_operations == [EMAILS]
        assert stored.retry_eligible is False
        assert stored.post_commit_status == PostCommitStatus.PARTIAL_FAILURE

    def test_exhausted_record_is_persisted_once_as_ineligible(
        self, orchestrator_factory, memory_store, mock_executor, visit_record_factory, now
    ):
        record = visit_record_factory(failed=[PUSH], attempts={PUSH: 3})
        memory_store.put(record)
        orchestrator = orchestrator_factory()

        outcome = orchestrator.process_record(record, now)

        assert outcome.action == RecordAction.STILL_FAILING
        assert mock_executor.calls == []
        assert memory_store.get(record.id).retry_eligible is False
        assert memory_store.update_count == 1

        again = orchestrator.process_record(memory_store.get(record.id), now)
        assert again.action == RecordAction.SKIPPED_UNCHANGED
        assert memory_store.update_count == 1

    def test_escalated_at_never_moves_backwards(
        self, orchestrator_factory, memory_store, mock_executor, visit_record_factory, now
    ):
        later = now + timedelta(hours=1)
        record = visit_record_factory(failed=[PUSH], escalated_at=later)
        memory_store.put(record)
        mock_executor.fail(PUSH)
        orchestrator = orchestrator_factory()

        orchestrator.process_record(record, now)

        assert memory_store.get(record.id).escalated_at == later

    def test_missing_record_is_reported(
        self, orchestrator_factory, mock_executor, visit_record_factory, now
    ):
        orchestrator = orchestrator_factory()

        outcome = orchestrator.process_record(visit_record_factory(), now)

        assert outcome.action == RecordAction.MISSING
        assert outcome.attempts == 1


class TestSweep:
    def test_sweep_reports_counters(
        self, orchestrator_factory, memory_store, mock_executor, visit_record_factory, now
    ):
        memory_store.put(visit_record_factory(id="visit-ok", failed=[PUSH]))
        memory_store.put(visit_record_factory(id="visit-bad", failed=[ANALYSIS]))
        memory_store.put(
            visit_record_factory(
                id="visit-later",
                failed=[SYNC],
                attempts={SYNC: 1},
                next_retry={SYNC: now + timedelta(hours=1)},
            )
        )
        memory_store.put(
            visit_record_factory(id="visit-done", status=PostCommitStatus.COMPLETED)
        )
        mock_executor.fail(ANALYSIS)
        orchestrator = orchestrator_factory()

        result = orchestrator.sweep()

        assert isinstance(result, RecoveryResult)
        assert result.visits_scanned == 3
        assert result.visits_retried == 2
        assert result.visits_resolved == 1
        assert result.visits_still_failing == 2
        assert result.visits_skipped_unchanged == 1
        assert result.operation_attempts == 2
        assert result.operation_failures == 1
        assert result.escalations == 1
        assert result.escalated_record_ids == ["visit-bad"]

    def test_sweep_twice_writes_nothing_the_second_time(
        self, orchestrator_factory, memory_store, mock_executor, visit_record_factory
    ):
        memory_store.put(visit_record_factory(id="visit-1", failed=[PUSH]))
        memory_store.put(visit_record_factory(id="visit-2", failed=[ANALYSIS]))
        mock_executor.fail(PUSH)
        mock_executor.fail(ANALYSIS)
        orchestrator = orchestrator_factory()

        orchestrator.sweep()
        writes_after_first = memory_store.update_count
        second = orchestrator.sweep()

        assert writes_after_first == 2
        assert memory_store.update_count == writes_after_first
        assert second.operation_attempts == 0
        assert second.visits_skipped_unchanged == 2

    def test_completed_operations_never_shrink(
        self, orchestrator_factory, memory_store, mock_executor, visit_record_factory, now
    ):
        record = visit_record_factory(failed=[PUSH, ANALYSIS], completed=[SYNC])
        memory_store.put(record)
        mock_executor.fail(ANALYSIS)
        orchestrator = orchestrator_factory()

        seen = set(record.completed_operations)
        for hours in range(0, 8):
            current = memory_store.get(record.id)
            orchestrator.process_record(current, now + timedelta(hours=hours))
            completed = memory_store.get(record.id).completed_operations
            assert seen <= completed
            seen = completed

        assert seen == {SYNC, PUSH}

    def test_record_exception_does_not_abort_sweep(
        self, orchestrator_factory, memory_store, visit_record_factory
    ):
        memory_store.put(visit_record_factory(id="visit-1", failed=[PUSH]))
        memory_store.put(visit_record_factory(id="visit-2", failed=[PUSH]))
        real_update = memory_store.update

        def flaky_update(record_id, update):
            if record_id == "visit-1":
                raise RecordStoreError("write failed")
            return real_update(record_id, update)

        memory_store.update = flaky_update
        orchestrator = orchestrator_factory()

        result = orchestrator.sweep()

        assert result.visits_errored == 1
        assert result.visits_resolved == 1
        assert (
            memory_store.get("visit-2").post_commit_status
            == PostCommitStatus.COMPLETED
        )

    def test_sweep_with_no_records(self, orchestrator_factory, mock_executor):
        result = orchestrator_factory().sweep()

        assert result.visits_scanned == 0
        assert mock_executor.calls == []

    def test_sweep_passes_limit_to_scanner(self, orchestrator_factory):
        orchestrator = orchestrator_factory()
        orchestrator.scanner = MagicMock()
        orchestrator.scanner.scan.return_value = []

        orchestrator.sweep(limit=10)

        orchestrator.scanner.scan.assert_called_once_with(10)
