"""Unit tests for the in-memory visit record store."""

from datetime import timedelta

from modules.post_commit.models import (
    PostCommitOperation,
    PostCommitStatus,
    RecordUpdate,
)
from modules.post_commit.store import InMemoryVisitRecordStore


class TestInMemoryVisitRecordStore:
    def test_get_missing_returns_none(self, memory_store):
        assert memory_store.get("visit-missing") is None

    def test_records_are_copied_in_and_out(self, memory_store, visit_record_factory):
        record = visit_record_factory(snapshot={"summary": "original"})
        memory_store.put(record)

        record.snapshot["summary"] = "mutated by caller"
        loaded = memory_store.get(record.id)
        loaded.failed_operations.clear()

        stored = memory_store.get(record.id)
        assert stored.snapshot["summary"] == "original"
        assert stored.failed_operations == [PostCommitOperation.PUSH_NOTIFICATION]

    def test_update_missing_record_returns_none(self, memory_store):
        result = memory_store.update(
            "visit-missing", RecordUpdate().set("retry_eligible", False)
        )

        assert result is None
        assert memory_store.update_count == 0

    def test_update_merges_fields(self, memory_store, visit_record_factory, now):
        memory_store.put(
            visit_record_factory(
                completed=[PostCommitOperation.SYNC_MEDICATIONS],
                snapshot={"transcription_id": "tx-1"},
            )
        )

        updated = memory_store.update(
            "visit-1",
            RecordUpdate()
            .set("last_attempt_at", now)
            .remove("transcription_id")
            .add("completed_operations", {PostCommitOperation.PUSH_NOTIFICATION}),
        )

        assert updated.last_attempt_at == now
        assert "transcription_id" not in updated.snapshot
        assert updated.completed_operations == {
            PostCommitOperation.SYNC_MEDICATIONS,
            PostCommitOperation.PUSH_NOTIFICATION,
        }
        assert memory_store.update_count == 1

    def test_list_recoverable_filters_and_orders(self, visit_record_factory, now):
        store = InMemoryVisitRecordStore(
            [
                visit_record_factory(id="b", last_attempt_at=now),
                visit_record_factory(id="a", last_attempt_at=now),
                visit_record_factory(id="old", last_attempt_at=now - timedelta(hours=1)),
                visit_record_factory(id="ineligible", retry_eligible=False),
                visit_record_factory(id="done", status=PostCommitStatus.COMPLETED),
            ]
        )

        assert [r.id for r in store.list_recoverable(10)] == ["old", "a", "b"]
        assert [r.id for r in store.list_recoverable(1)] == ["old"]
        assert store.list_recoverable(0) == []

    def test_list_escalated_newest_first_with_cursor(self, visit_record_factory, now):
        store = InMemoryVisitRecordStore(
            [
                visit_record_factory(id="first", escalated_at=now - timedelta(hours=3)),
                visit_record_factory(id="second", escalated_at=now - timedelta(hours=2)),
                visit_record_factory(id="third", escalated_at=now - timedelta(hours=1)),
                visit_record_factory(id="plain"),
                visit_record_factory(
                    id="completed",
                    status=PostCommitStatus.COMPLETED,
                    escalated_at=now,
                ),
            ]
        )

        page = store.list_escalated(2)
        rest = store.list_escalated(10, start_after=page[-1])

        assert [r.id for r in page] == ["third", "second"]
        assert [r.id for r in rest] == ["first"]

    def test_list_escalated_breaks_ties_by_id(self, visit_record_factory, now):
        store = InMemoryVisitRecordStore(
            [
                visit_record_factory(id="visit-a", escalated_at=now),
                visit_record_factory(id="visit-b", escalated_at=now),
            ]
        )

        first = store.list_escalated(1)
        second = store.list_escalated(1, start_after=first[0])

        assert [r.id for r in first] == ["visit-b"]
        assert [r.id for r in second] == ["visit-a"]
