"""Factory for the post-commit recovery services.

Builds the record store, collaborators, orchestrator, escalation reporter
and operator service once from settings. Callers receive a container and
pass the services down explicitly.

Usage:
    from infrastructure.services import get_settings
    from modules.post_commit.factory import build_recovery_services

    services = build_recovery_services(get_settings())
    services.orchestrator.sweep()
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from infrastructure.clients.aws import DynamoDBClient
from infrastructure.clients.http import HttpClient
from infrastructure.configuration import Settings
from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult
from modules.post_commit.backoff import BackoffPolicy
from modules.post_commit.collaborators import (
    DynamoDBUserPreferenceReader,
    HttpCaregiverShareService,
    HttpMedicationSyncService,
    HttpTranscriptService,
    HttpVisitAnalysisService,
    HttpVisitNotifier,
)
from modules.post_commit.dynamodb_store import DynamoDBVisitRecordStore
from modules.post_commit.escalation import EscalationReporter
from modules.post_commit.executor import OperationExecutor
from modules.post_commit.models import utc_now
from modules.post_commit.operations import OperationRegistry
from modules.post_commit.operator import EscalationOperatorService
from modules.post_commit.orchestrator import RetryOrchestrator
from modules.post_commit.scanner import RecoveryScanner
from modules.post_commit.store import InMemoryVisitRecordStore, VisitRecordStore

logger = get_module_logger()


@dataclass
class RecoveryServices:
    store: VisitRecordStore
    orchestrator: RetryOrchestrator
    reporter: EscalationReporter
    operator: EscalationOperatorService


def create_record_store(
    settings: Settings, dynamodb_client: Optional[DynamoDBClient] = None
) -> VisitRecordStore:
    """Create the record store selected by ``RECORD_STORE_BACKEND``.

    Args:
        settings: Application settings
        dynamodb_client: DynamoDBClient, required for the dynamodb backend

    Raises:
        ValueError: If the dynamodb backend is selected without a client
    """
    backend = settings.store.backend
    if backend == "dynamodb":
        if dynamodb_client is None:
            raise ValueError("dynamodb backend requires a DynamoDBClient")
        logger.info(
            "record_store_selected",
            backend=backend,
            table_name=settings.store.visits_table_name,
        )
        return DynamoDBVisitRecordStore(
            client=dynamodb_client, table_name=settings.store.visits_table_name
        )

    logger.warning(
        "record_store_selected",
        backend=backend,
        note="in-memory store is not shared across processes",
    )
    return InMemoryVisitRecordStore()


def build_recovery_services(
    settings: Settings,
    dynamodb_client: Optional[DynamoDBClient] = None,
    store: Optional[VisitRecordStore] = None,
    downstream_client: Optional[HttpClient] = None,
    webhook_client: Optional[HttpClient] = None,
    clock: Callable[[], datetime] = utc_now,
) -> RecoveryServices:
    """Wire every recovery service from settings.

    Optional arguments replace the default collaborators (used in tests).
    """
    if dynamodb_client is None and settings.store.backend == "dynamodb":
        from infrastructure.services import get_dynamodb_client

        dynamodb_client = get_dynamodb_client()

    record_store = store or create_record_store(settings, dynamodb_client)

    downstream = downstream_client or HttpClient(
        base_url=settings.downstream.BASE_URL,
        timeout=settings.downstream.TIMEOUT_SECONDS,
        bearer_token=settings.downstream.API_TOKEN,
    )

    preferences = (
        DynamoDBUserPreferenceReader(dynamodb_client, settings.store.users_table_name)
        if dynamodb_client is not None
        else _UnsetPreferenceReader()
    )

    executor = OperationExecutor(
        medications=HttpMedicationSyncService(downstream),
        transcripts=HttpTranscriptService(downstream),
        analysis=HttpVisitAnalysisService(downstream),
        notifier=HttpVisitNotifier(downstream),
        caregivers=HttpCaregiverShareService(downstream),
        preferences=preferences,
        store=record_store,
        clock=clock,
    )

    recovery = settings.recovery
    orchestrator = RetryOrchestrator(
        store=record_store,
        scanner=RecoveryScanner(record_store, default_limit=recovery.scan_limit),
        executor=executor,
        registry=OperationRegistry.default(max_attempts=recovery.max_attempts),
        backoff=BackoffPolicy.from_settings(recovery),
        max_workers=recovery.max_workers,
        clock=clock,
    )

    reporter = EscalationReporter(
        store=record_store,
        settings=settings.escalation,
        webhook_client=webhook_client,
        clock=clock,
    )

    logger.info(
        "recovery_services_built",
        backend=settings.store.backend,
        max_attempts=recovery.max_attempts,
        alert_threshold=recovery.effective_alert_threshold,
        webhook_configured=reporter.webhook_configured,
    )
    return RecoveryServices(
        store=record_store,
        orchestrator=orchestrator,
        reporter=reporter,
        operator=EscalationOperatorService(record_store, clock=clock),
    )


class _UnsetPreferenceReader:
    """Preference reader for the memory backend: every preference is unset."""

    def get_auto_share_with_caregivers(self, user_id: str) -> OperationResult:
        return OperationResult.success(data=None, message="no preference store")
