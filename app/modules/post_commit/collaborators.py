"""Downstream collaborators that perform the post-commit operations.

The operations themselves are owned by other services. This module defines
the protocols the executor depends on and the adapters used in deployment:
HTTP adapters against the visit services API and a DynamoDB reader for user
preferences. Every call returns an OperationResult.

Usage:
    from infrastructure.clients.http import HttpClient

    client = HttpClient(base_url=settings.downstream.BASE_URL, timeout=30)
    notifier = HttpVisitNotifier(client)
    result = notifier.notify_visit_ready("user-1", "visit-1")
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from boto3.dynamodb.types import TypeDeserializer  # type: ignore
from pydantic import BaseModel, Field

from infrastructure.clients.aws import DynamoDBClient
from infrastructure.clients.http import HttpClient
from infrastructure.operations import OperationResult

AUTO_SHARE_ATTRIBUTE = "auto_share_with_caregivers"


class MedicationChanges(BaseModel):
    """Normalized medication changes extracted from a visit summary."""

    started: List[Dict[str, Any]] = Field(default_factory=list)
    stopped: List[Dict[str, Any]] = Field(default_factory=list)
    changed: List[Dict[str, Any]] = Field(default_factory=list)


class VisitSummary(BaseModel):
    """Visit summary rebuilt from the committed visit for analysis."""

    summary: str = ""
    diagnoses: List[str] = Field(default_factory=list)
    diagnoses_detailed: List[Dict[str, Any]] = Field(default_factory=list)
    medications: MedicationChanges = Field(default_factory=MedicationChanges)
    imaging: List[str] = Field(default_factory=list)
    tests_ordered: List[Dict[str, Any]] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)
    follow_ups: List[Dict[str, Any]] = Field(default_factory=list)
    medication_review: Dict[str, Any] = Field(default_factory=dict)
    education: Dict[str, Any] = Field(default_factory=dict)
    extraction_version: Optional[str] = None
    prompt_meta: Optional[Dict[str, Any]] = None


class MedicationSyncService(Protocol):
    def sync_medications(
        self,
        user_id: str,
        visit_id: str,
        medications: MedicationChanges,
        processed_at: datetime,
    ) -> OperationResult: ...


class TranscriptService(Protocol):
    def delete_transcript(self, transcription_id: str) -> OperationResult: ...


class VisitAnalysisService(Protocol):
    def analyze_visit(
        self,
        user_id: str,
        visit_id: str,
        summary: VisitSummary,
        visit_date: datetime,
    ) -> OperationResult: ...


class VisitNotifier(Protocol):
    def notify_visit_ready(self, user_id: str, visit_id: str) -> OperationResult: ...


class CaregiverShareService(Protocol):
    def share_visit_with_caregivers(
        self, user_id: str, visit_id: str
    ) -> OperationResult: ...


class UserPreferenceReader(Protocol):
    def get_auto_share_with_caregivers(self, user_id: str) -> OperationResult:
        """Return the preference as ``data`` (True, False or None when unset)."""
        ...


class HttpMedicationSyncService:
    def __init__(self, client: HttpClient) -> None:
        self._client = client

    def sync_medications(
        self,
        user_id: str,
        visit_id: str,
        medications: MedicationChanges,
        processed_at: datetime,
    ) -> OperationResult:
        return self._client.post(
            "/internal/medications/sync",
            json_data={
                "user_id": user_id,
                "visit_id": visit_id,
                "medications": medications.model_dump(mode="json"),
                "processed_at": processed_at.isoformat(),
            },
        )


class HttpTranscriptService:
    def __init__(self, client: HttpClient) -> None:
        self._client = client

    def delete_transcript(self, transcription_id: str) -> OperationResult:
        return self._client.delete(f"/internal/transcripts/{transcription_id}")


class HttpVisitAnalysisService:
    def __init__(self, client: HttpClient) -> None:
        self._client = client

    def analyze_visit(
        self,
        user_id: str,
        visit_id: str,
        summary: VisitSummary,
        visit_date: datetime,
    ) -> OperationResult:
        return self._client.post(
            f"/internal/visits/{visit_id}/analysis",
            json_data={
                "user_id": user_id,
                "summary": summary.model_dump(mode="json"),
                "visit_date": visit_date.isoformat(),
            },
        )


class HttpVisitNotifier:
    def __init__(self, client: HttpClient) -> None:
        self._client = client

    def notify_visit_ready(self, user_id: str, visit_id: str) -> OperationResult:
        return self._client.post(
            "/internal/notifications/visit-ready",
            json_data={"user_id": user_id, "visit_id": visit_id},
        )


class HttpCaregiverShareService:
    def __init__(self, client: HttpClient) -> None:
        self._client = client

    def share_visit_with_caregivers(
        self, user_id: str, visit_id: str
    ) -> OperationResult:
        return self._client.post(
            "/internal/caregivers/share-visit",
            json_data={"user_id": user_id, "visit_id": visit_id},
        )


class DynamoDBUserPreferenceReader:
    """Reads caregiver sharing preferences from the users table.

    Args:
        client: DynamoDBClient
        table_name: Users table keyed by ``id``
    """

    def __init__(self, client: DynamoDBClient, table_name: str) -> None:
        self._client = client
        self._table_name = table_name
        self._deserializer = TypeDeserializer()

    def get_auto_share_with_caregivers(self, user_id: str) -> OperationResult:
        result = self._client.get_item(
            self._table_name,
            Key={"id": {"S": user_id}},
            ProjectionExpression="#pref",
            ExpressionAttributeNames={"#pref": AUTO_SHARE_ATTRIBUTE},
        )
        if not result.is_success:
            return result

        item = (result.data or {}).get("Item") or {}
        raw = item.get(AUTO_SHARE_ATTRIBUTE)
        value = self._deserializer.deserialize(raw) if raw else None
        return OperationResult.success(
            data=value if isinstance(value, bool) else None,
            message="preference loaded",
        )
