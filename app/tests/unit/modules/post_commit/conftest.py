"""Shared fixtures for post-commit recovery tests."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from infrastructure.operations import OperationResult
from modules.post_commit.backoff import BackoffPolicy
from modules.post_commit.executor import OperationExecutor
from modules.post_commit.models import (
    PostCommitOperation,
    PostCommitStatus,
    VisitRecord,
)
from modules.post_commit.operations import OperationRegistry
from modules.post_commit.orchestrator import RetryOrchestrator
from modules.post_commit.scanner import RecoveryScanner
from modules.post_commit.store import InMemoryVisitRecordStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def visit_record_factory():
    """Factory for creating VisitRecord instances in partial failure."""

    def _factory(
        id: str = "visit-1",
        user_id: Optional[str] = "user-1",
        status: Optional[PostCommitStatus] = PostCommitStatus.PARTIAL_FAILURE,
        failed: Optional[List[PostCommitOperation]] = None,
        completed: Optional[List[PostCommitOperation]] = None,
        attempts: Optional[Dict[PostCommitOperation, int]] = None,
        next_retry: Optional[Dict[PostCommitOperation, datetime]] = None,
        retry_eligible: bool = True,
        snapshot: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> VisitRecord:
        if failed is None:
            failed = [PostCommitOperation.PUSH_NOTIFICATION]
        return VisitRecord(
            id=id,
            user_id=user_id,
            post_commit_status=status,
            failed_operations=list(failed),
            completed_operations=set(completed or []),
            operation_attempts=dict(attempts or {}),
            operation_next_retry_at=dict(next_retry or {}),
            retry_eligible=retry_eligible,
            snapshot=dict(snapshot or {}),
            **kwargs,
        )

    return _factory


@pytest.fixture
def memory_store():
    """Create a fresh InMemoryVisitRecordStore for testing."""
    return InMemoryVisitRecordStore()


@pytest.fixture
def collaborators():
    """Mock downstream collaborators that succeed by default."""
    mocks = MagicMock()
    mocks.medications.sync_medications.return_value = OperationResult.success()
    mocks.transcripts.delete_transcript.return_value = OperationResult.success()
    mocks.analysis.analyze_visit.return_value = OperationResult.success()
    mocks.notifier.notify_visit_ready.return_value = OperationResult.success()
    mocks.caregivers.share_visit_with_caregivers.return_value = (
        OperationResult.success()
    )
    mocks.preferences.get_auto_share_with_caregivers.return_value = (
        OperationResult.success(data=None)
    )
    return mocks


@pytest.fixture
def executor(collaborators, memory_store, now):
    return OperationExecutor(
        medications=collaborators.medications,
        transcripts=collaborators.transcripts,
        analysis=collaborators.analysis,
        notifier=collaborators.notifier,
        caregivers=collaborators.caregivers,
        preferences=collaborators.preferences,
        store=memory_store,
        clock=lambda: now,
    )


@pytest.fixture
def mock_executor():
    """Executor double returning a configurable result per operation."""

    class MockExecutor:
        def __init__(self):
            self.calls = []
            self.results: Dict[PostCommitOperation, OperationResult] = {}
            self.default = OperationResult.success()

        def execute(self, operation, record):
            self.calls.append((operation, record.id))
            return self.results.get(operation, self.default)

        def fail(self, operation, message="downstream unavailable"):
            self.results[operation] = OperationResult.transient_error(message)

    return MockExecutor()


@pytest.fixture
def orchestrator_factory(memory_store, mock_executor, now):
    """Factory for RetryOrchestrator instances over the in-memory store."""

    def _factory(
        store=None,
        executor=None,
        registry: Optional[OperationRegistry] = None,
        backoff: Optional[BackoffPolicy] = None,
        max_workers: int = 2,
    ) -> RetryOrchestrator:
        store = store or memory_store
        return RetryOrchestrator(
            store=store,
            scanner=RecoveryScanner(store),
            executor=executor or mock_executor,
            registry=registry or OperationRegistry.default(max_attempts=3),
            backoff=backoff or BackoffPolicy(max_attempts=3),
            max_workers=max_workers,
            clock=lambda: now,
        )

    return _factory
