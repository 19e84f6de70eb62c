"""DynamoDB-backed visit record store.

Table Schema:
    PK: id (String)
    Recovery attributes are prefixed with ``post_commit_``; every other
    attribute of the visit item is exposed as the record snapshot.
    GSI: post_commit_status-post_commit_last_attempt_at-index
         (post_commit_status + post_commit_last_attempt_at)
    GSI: post_commit_status-post_commit_escalated_at-index
         (post_commit_status + post_commit_escalated_at)

Instants are stored as ISO-8601 UTC strings so they sort lexically.
completed_operations is a string set updated with ADD so concurrent
successes are unioned, never overwritten.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer  # type: ignore

from infrastructure.clients.aws import DynamoDBClient
from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationStatus
from modules.post_commit.models import (
    RECOVERY_FIELDS,
    PostCommitStatus,
    RecordUpdate,
    VisitRecord,
    ensure_utc,
)
from modules.post_commit.store import RecordStoreError

logger = get_module_logger()

KEY_ATTRIBUTE = "id"
RECOVERABLE_INDEX = "post_commit_status-post_commit_last_attempt_at-index"
ESCALATED_INDEX = "post_commit_status-post_commit_escalated_at-index"


def attribute_name(field_name: str) -> str:
    """Map a record field (or snapshot key) to its table attribute."""
    if field_name not in RECOVERY_FIELDS or field_name == "user_id":
        return field_name
    if field_name.startswith("post_commit_"):
        return field_name
    return f"post_commit_{field_name}"


FIELD_ATTRIBUTES = {name: attribute_name(name) for name in RECOVERY_FIELDS}


def to_plain(value: Any) -> Any:
    """Convert record values to types TypeSerializer accepts."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat()
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {str(to_plain(k)): to_plain(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return {to_plain(v) for v in value}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


def from_plain(value: Any) -> Any:
    """Convert TypeDeserializer output (Decimals, sets) back to Python values."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: from_plain(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return {from_plain(v) for v in value}
    if isinstance(value, list):
        return [from_plain(v) for v in value]
    return value


class DynamoDBVisitRecordStore:
    """DynamoDB implementation of VisitRecordStore.

    Args:
        client: DynamoDBClient
        table_name: Visits table name
    """

    def __init__(self, client: DynamoDBClient, table_name: str) -> None:
        self._client = client
        self.table_name = table_name
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

        logger.info("dynamodb_record_store_initialized", table_name=table_name)

    def get(self, record_id: str) -> Optional[VisitRecord]:
        result = self._client.get_item(
            self.table_name,
            Key=self._key(record_id),
            ConsistentRead=True,
        )
        if not result.is_success:
            logger.error(
                "dynamodb_get_record_failed",
                record_id=record_id,
                error=result.message,
                error_code=result.error_code,
            )
            raise RecordStoreError(f"Failed to load record {record_id}: {result.message}")

        item = (result.data or {}).get("Item")
        return self._item_to_record(item) if item else None

    def update(self, record_id: str, update: RecordUpdate) -> Optional[VisitRecord]:
        if update.is_empty:
            return self.get(record_id)

        names: Dict[str, str] = {"#pk": KEY_ATTRIBUTE}
        values: Dict[str, Any] = {}
        set_clauses: List[str] = []
        remove_clauses: List[str] = []
        add_clauses: List[str] = []

        for index, (name, value) in enumerate(sorted(update.sets.items())):
            plain = to_plain(value)
            placeholder = f"#s{index}"
            names[placeholder] = attribute_name(name)
            # DynamoDB rejects empty sets; an empty set means "no members"
            if isinstance(plain, set) and not plain:
                remove_clauses.append(placeholder)
                continue
            values[f":s{index}"] = self._serializer.serialize(plain)
            set_clauses.append(f"{placeholder} = :s{index}")

        for index, name in enumerate(sorted(update.removes)):
            placeholder = f"#r{index}"
            names[placeholder] = attribute_name(name)
            remove_clauses.append(placeholder)

        for index, (name, members) in enumerate(sorted(update.adds.items())):
            placeholder = f"#a{index}"
            names[placeholder] = attribute_name(name)
            values[f":a{index}"] = self._serializer.serialize(to_plain(set(members)))
            add_clauses.append(f"{placeholder} :a{index}")

        expression_parts = []
        if set_clauses:
            expression_parts.append("SET " + ", ".join(set_clauses))
        if remove_clauses:
            expression_parts.append("REMOVE " + ", ".join(remove_clauses))
        if add_clauses:
            expression_parts.append("ADD " + ", ".join(add_clauses))

        kwargs: Dict[str, Any] = {
            "UpdateExpression": " ".join(expression_parts),
            "ConditionExpression": "attribute_exists(#pk)",
            "ExpressionAttributeNames": names,
            "ReturnValues": "ALL_NEW",
        }
        if values:
            kwargs["ExpressionAttributeValues"] = values

        result = self._client.update_item(
            self.table_name, Key=self._key(record_id), **kwargs
        )
        if result.status == OperationStatus.NOT_FOUND:
            logger.warning("record_update_missing", record_id=record_id)
            return None
        if not result.is_success:
            logger.error(
                "dynamodb_update_record_failed",
                record_id=record_id,
                error=result.message,
                error_code=result.error_code,
            )
            raise RecordStoreError(
                f"Failed to update record {record_id}: {result.message}"
            )

        attributes = (result.data or {}).get("Attributes")
        return self._item_to_record(attributes) if attributes else None

    def list_recoverable(self, limit: int) -> List[VisitRecord]:
        return self._query_records(
            limit,
            IndexName=RECOVERABLE_INDEX,
            KeyConditionExpression="#status = :status",
            FilterExpression="#eligible = :eligible",
            ExpressionAttributeNames={
                "#status": FIELD_ATTRIBUTES["post_commit_status"],
                "#eligible": FIELD_ATTRIBUTES["retry_eligible"],
            },
            ExpressionAttributeValues={
                ":status": {"S": PostCommitStatus.PARTIAL_FAILURE.value},
                ":eligible": {"BOOL": True},
            },
            ScanIndexForward=True,
        )

    def list_escalated(
        self, limit: int, start_after: Optional[VisitRecord] = None
    ) -> List[VisitRecord]:
        kwargs: Dict[str, Any] = {}
        if start_after is not None and start_after.escalated_at is not None:
            kwargs["ExclusiveStartKey"] = {
                KEY_ATTRIBUTE: {"S": start_after.id},
                FIELD_ATTRIBUTES["post_commit_status"]: {
                    "S": PostCommitStatus.PARTIAL_FAILURE.value
                },
                FIELD_ATTRIBUTES["escalated_at"]: {
                    "S": ensure_utc(start_after.escalated_at).isoformat()
                },
            }
        return self._query_records(
            limit,
            IndexName=ESCALATED_INDEX,
            KeyConditionExpression="#status = :status",
            ExpressionAttributeNames={"#status": FIELD_ATTRIBUTES["post_commit_status"]},
            ExpressionAttributeValues={
                ":status": {"S": PostCommitStatus.PARTIAL_FAILURE.value}
            },
            ScanIndexForward=False,
            **kwargs,
        )

    def _query_records(self, limit: int, **kwargs) -> List[VisitRecord]:
        """Query pages until ``limit`` records are collected or the index ends."""
        records: List[VisitRecord] = []
        if limit <= 0:
            return records

        while len(records) < limit:
            result = self._client.query(
                self.table_name,
                Limit=limit,
                **kwargs,
            )
            if not result.is_success:
                logger.error(
                    "dynamodb_query_records_failed",
                    index=kwargs.get("IndexName"),
                    error=result.message,
                    error_code=result.error_code,
                )
                raise RecordStoreError(f"Failed to query records: {result.message}")

            data = result.data or {}
            records.extend(self._item_to_record(item) for item in data.get("Items", []))

            last_key = data.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key

        logger.debug(
            "queried_records",
            index=kwargs.get("IndexName"),
            count=min(len(records), limit),
        )
        return records[:limit]

    def _key(self, record_id: str) -> Dict[str, Any]:
        return {KEY_ATTRIBUTE: {"S": record_id}}

    def _item_to_record(self, item: Dict[str, Any]) -> VisitRecord:
        data = {
            name: from_plain(self._deserializer.deserialize(value))
            for name, value in item.items()
        }
        fields = {
            name: data.pop(attribute)
            for name, attribute in FIELD_ATTRIBUTES.items()
            if attribute in data
        }
        record_id = data.pop(KEY_ATTRIBUTE)
        return VisitRecord(id=record_id, snapshot=data, **fields)
