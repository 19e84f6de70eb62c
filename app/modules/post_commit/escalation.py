"""Escalation reporting for post-commit recovery.

Periodically summarizes escalated visit records, split into acknowledged and
unacknowledged, and dispatches an incident to the configured webhook when
unacknowledged escalations exist. Delivery problems are logged and reported
in the result; the reporter never raises because of them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from infrastructure.clients.http import HttpClient
from infrastructure.configuration import EscalationSettings
from infrastructure.logging import bind_request_context, get_module_logger
from infrastructure.operations import OperationResult
from modules.post_commit.models import utc_now
from modules.post_commit.scanner import normalize_limit
from modules.post_commit.store import VisitRecordStore

logger = get_module_logger()

DEFAULT_REPORT_SCAN_LIMIT = 200
MAX_REPORT_SCAN_LIMIT = 1000
DEFAULT_SAMPLE_SIZE = 20
MAX_SAMPLE_SIZE = 20
MIN_WEBHOOK_TIMEOUT_SECONDS = 1.0
EVENT_TYPE = "visit_post_commit_escalations"
SEVERITY = "high"

SKIPPED_WEBHOOK_NOT_CONFIGURED = "webhook_not_configured"
SKIPPED_NO_UNACKNOWLEDGED = "no_unacknowledged_escalations"
SKIPPED_DELIVERY_FAILED = "delivery_failed"


class EscalationSummary(BaseModel):
    """Counts over the scanned escalated records."""

    model_config = ConfigDict(populate_by_name=True)

    scanned: int
    total_escalated: int = Field(alias="totalEscalated")
    unacknowledged: int
    acknowledged: int
    sample_unacknowledged_visit_ids: List[str] = Field(
        default_factory=list, alias="sampleUnacknowledgedVisitIds"
    )


class IncidentPayload(BaseModel):
    """Body POSTed to the incident webhook (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)

    source: str
    event_type: str = Field(default=EVENT_TYPE, alias="eventType")
    severity: str = SEVERITY
    generated_at: datetime = Field(alias="generatedAt")
    summary: str
    report: EscalationSummary
    operator_endpoint: str = Field(alias="operatorEndpoint")
    operator_dashboard_path: str = Field(alias="operatorDashboardPath")


@dataclass
class IncidentDispatchResult:
    """Outcome of the incident dispatch.

    Attributes:
        configured: A webhook URL is configured
        delivered: The webhook accepted the incident (2xx)
        status: HTTP status of a successful delivery, None otherwise
        skipped_reason: Why nothing was delivered, None when delivered
    """

    configured: bool
    delivered: bool
    status: Optional[int] = None
    skipped_reason: Optional[str] = None


@dataclass
class EscalationReport:
    summary: EscalationSummary
    dispatch: IncidentDispatchResult
    generated_at: datetime
    sample_size: int = DEFAULT_SAMPLE_SIZE
    record_ids: List[str] = field(default_factory=list)

    @property
    def unacknowledged(self) -> int:
        return self.summary.unacknowledged

    @property
    def acknowledged(self) -> int:
        return self.summary.acknowledged


class EscalationReporter:
    """Summarizes escalated records and dispatches incidents.

    Args:
        store: VisitRecordStore to scan escalated records from
        settings: EscalationSettings (webhook, source, operator paths)
        webhook_client: HttpClient used for the incident POST; built from
            settings when omitted
        clock: Returns the current UTC instant
    """

    def __init__(
        self,
        store: VisitRecordStore,
        settings: EscalationSettings,
        webhook_client: Optional[HttpClient] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.settings = settings
        self.webhook_url = (settings.webhook_url or "").strip()
        self.timeout = max(
            float(settings.webhook_timeout_seconds), MIN_WEBHOOK_TIMEOUT_SECONDS
        )
        self._webhook_client = webhook_client
        self._clock = clock

    @property
    def webhook_configured(self) -> bool:
        return bool(self.webhook_url)

    def report(
        self,
        scan_limit: Optional[int] = None,
        sample_size: Optional[int] = None,
    ) -> EscalationReport:
        """Scan escalated records, log the summary and dispatch an incident."""
        limit = normalize_limit(
            scan_limit if scan_limit is not None else self.settings.scan_limit,
            DEFAULT_REPORT_SCAN_LIMIT,
            MAX_REPORT_SCAN_LIMIT,
        )
        sample = normalize_limit(
            sample_size if sample_size is not None else self.settings.sample_size,
            DEFAULT_SAMPLE_SIZE,
            MAX_SAMPLE_SIZE,
        )

        with bind_request_context(job="post_commit_escalation_report"):
            records = self.store.list_escalated(limit)

            acknowledged = 0
            unacknowledged_ids: List[str] = []
            unacknowledged = 0
            for record in records:
                if record.is_acknowledged:
                    acknowledged += 1
                    continue
                unacknowledged += 1
                if len(unacknowledged_ids) < sample:
                    unacknowledged_ids.append(record.id)

            summary = EscalationSummary(
                scanned=len(records),
                total_escalated=len(records),
                unacknowledged=unacknowledged,
                acknowledged=acknowledged,
                sample_unacknowledged_visit_ids=unacknowledged_ids,
            )

            if unacknowledged > 0:
                logger.error(
                    "post_commit_escalations_unacknowledged",
                    alert=True,
                    unacknowledged=unacknowledged,
                    scanned=summary.scanned,
                    sample_visit_ids=unacknowledged_ids,
                )
            else:
                logger.info(
                    "post_commit_escalations_clear",
                    scanned=summary.scanned,
                )

            generated_at = self._clock()
            dispatch = self._dispatch(summary, generated_at)
            if dispatch.delivered:
                logger.info(
                    "escalation_incident_dispatched",
                    status=dispatch.status,
                    unacknowledged=unacknowledged,
                    sample_visit_ids=unacknowledged_ids,
                )

        return EscalationReport(
            summary=summary,
            dispatch=dispatch,
            generated_at=generated_at,
            sample_size=sample,
            record_ids=[record.id for record in records],
        )

    def build_payload(
        self, summary: EscalationSummary, generated_at: datetime
    ) -> IncidentPayload:
        return IncidentPayload(
            source=self.settings.source,
            generated_at=generated_at,
            summary=(
                f"{summary.unacknowledged} unacknowledged post-commit visit "
                "escalation(s)"
            ),
            report=summary,
            operator_endpoint=self.settings.operator_endpoint,
            operator_dashboard_path=self.settings.dashboard_path,
        )

    def _dispatch(
        self, summary: EscalationSummary, generated_at: datetime
    ) -> IncidentDispatchResult:
        if not self.webhook_configured:
            return IncidentDispatchResult(
                configured=False,
                delivered=False,
                skipped_reason=SKIPPED_WEBHOOK_NOT_CONFIGURED,
            )

        if summary.unacknowledged <= 0:
            return IncidentDispatchResult(
                configured=True,
                delivered=False,
                skipped_reason=SKIPPED_NO_UNACKNOWLEDGED,
            )

        payload = self.build_payload(summary, generated_at)
        try:
            result = self._client().post(
                self.webhook_url,
                json_data=payload.model_dump(by_alias=True, mode="json"),
                timeout=self.timeout,
            )
        except Exception as e:
            result = OperationResult.from_exception(e, error_code="DISPATCH_ERROR")

        if not result.is_success:
            logger.error(
                "escalation_incident_dispatch_failed",
                status=result.status_code,
                error=result.message,
                error_code=result.error_code,
                webhook_configured=True,
            )
            return IncidentDispatchResult(
                configured=True,
                delivered=False,
                status=None,
                skipped_reason=SKIPPED_DELIVERY_FAILED,
            )

        return IncidentDispatchResult(
            configured=True,
            delivered=True,
            status=result.status_code,
        )

    def _client(self) -> HttpClient:
        if self._webhook_client is None:
            self._webhook_client = HttpClient(
                timeout=self.timeout,
                bearer_token=self.settings.webhook_token,
            )
        return self._webhook_client
