"""Unit tests for the downstream collaborator adapters."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from infrastructure.operations import OperationResult
from modules.post_commit.collaborators import (
    DynamoDBUserPreferenceReader,
    HttpCaregiverShareService,
    HttpMedicationSyncService,
    HttpTranscriptService,
    HttpVisitAnalysisService,
    HttpVisitNotifier,
    MedicationChanges,
    VisitSummary,
)

PROCESSED_AT = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def http_client():
    client = MagicMock()
    client.post.return_value = OperationResult.success(status_code=200)
    client.delete.return_value = OperationResult.success(status_code=204)
    return client


class TestHttpAdapters:
    def test_sync_medications(self, http_client):
        service = HttpMedicationSyncService(http_client)
        medications = MedicationChanges(started=[{"name": "Lisinopril"}])

        result = service.sync_medications("user-1", "visit-1", medications, PROCESSED_AT)

        assert result.is_success
        path = http_client.post.call_args.args[0]
        body = http_client.post.call_args.kwargs["json_data"]
        assert path == "/internal/medications/sync"
        assert body["visit_id"] == "visit-1"
        assert body["medications"]["started"] == [{"name": "Lisinopril"}]
        assert body["processed_at"] == "2026-03-01T09:30:00+00:00"

    def test_delete_transcript(self, http_client):
        HttpTranscriptService(http_client).delete_transcript("tx-1")

        http_client.delete.assert_called_once_with("/internal/transcripts/tx-1")

    def test_analyze_visit(self, http_client):
        summary = VisitSummary(summary="Stable", diagnoses=["Hypertension"])

        HttpVisitAnalysisService(http_client).analyze_visit(
            "user-1", "visit-1", summary, PROCESSED_AT
        )

        path = http_client.post.call_args.args[0]
        body = http_client.post.call_args.kwargs["json_data"]
        assert path == "/internal/visits/visit-1/analysis"
        assert body["summary"]["diagnoses"] == ["Hypertension"]
        assert body["visit_date"] == "2026-03-01T09:30:00+00:00"

    def test_notify_and_share(self, http_client):
        HttpVisitNotifier(http_client).notify_visit_ready("user-1", "visit-1")
        HttpCaregiverShareService(http_client).share_visit_with_caregivers(
            "user-1", "visit-1"
        )

        paths = [call.args[0] for call in http_client.post.call_args_list]
        assert paths == [
            "/internal/notifications/visit-ready",
            "/internal/caregivers/share-visit",
        ]

    def test_failures_pass_through(self, http_client):
        failure = OperationResult.transient_error("upstream 503", status_code=503)
        http_client.post.return_value = failure

        result = HttpVisitNotifier(http_client).notify_visit_ready("user-1", "visit-1")

        assert result is failure


class TestDynamoDBUserPreferenceReader:
    @pytest.fixture
    def dynamodb_client(self):
        return MagicMock()

    @pytest.mark.parametrize(
        "item, expected",
        [
            ({"auto_share_with_caregivers": {"BOOL": False}}, False),
            ({"auto_share_with_caregivers": {"BOOL": True}}, True),
            ({"auto_share_with_caregivers": {"S": "yes"}}, None),
            ({}, None),
        ],
    )
    def test_reads_preference(self, dynamodb_client, item, expected):
        dynamodb_client.get_item.return_value = OperationResult.success(
            data={"Item": item}
        )
        reader = DynamoDBUserPreferenceReader(dynamodb_client, "users")

        result = reader.get_auto_share_with_caregivers("user-1")

        assert result.is_success
        assert result.data is expected
        kwargs = dynamodb_client.get_item.call_args.kwargs
        assert kwargs["Key"] == {"id": {"S": "user-1"}}

    def test_read_failure_is_returned(self, dynamodb_client):
        failure = OperationResult.transient_error("throttled")
        dynamodb_client.get_item.return_value = failure
        reader = DynamoDBUserPreferenceReader(dynamodb_client, "users")

        assert reader.get_auto_share_with_caregivers("user-1") is failure
