"""DynamoDB client for AWS operations.

Provides access to the DynamoDB operations the record store needs
(get_item, update_item, query) with consistent error handling and
OperationResult return types. Items are exchanged in DynamoDB wire format
({"S": ...}, {"N": ...}); serialization lives with the callers.
"""

from typing import Any, Dict

import structlog

from infrastructure.clients.aws.client import execute_aws_api_call
from infrastructure.clients.aws.session_provider import SessionProvider
from infrastructure.operations.result import OperationResult

logger = structlog.get_logger()


class DynamoDBClient:
    """Client for DynamoDB operations.

    All methods return OperationResult for consistent error handling and
    downstream processing.

    Args:
        session_provider: SessionProvider instance for region/endpoint/timeouts
        max_retries: Retries for throttled calls
    """

    def __init__(self, session_provider: SessionProvider, max_retries: int = 3) -> None:
        self._session_provider = session_provider
        self._max_retries = max_retries
        self._logger = logger.bind(component="dynamodb_client")

    def _call(self, method: str, **kwargs) -> OperationResult:
        client_kwargs = self._session_provider.build_client_kwargs()
        return execute_aws_api_call(
            "dynamodb",
            method,
            max_retries=self._max_retries,
            **client_kwargs,
            **kwargs,
        )

    def get_item(
        self, table_name: str, Key: Dict[str, Any], **kwargs
    ) -> OperationResult:
        """Get an item from DynamoDB.

        Args:
            table_name: Name of the DynamoDB table
            Key: Primary key of the item (e.g., {"record_id": {"S": "123"}})
            **kwargs: Additional DynamoDB get_item parameters

        Returns:
            OperationResult with the raw response ("Item" absent when missing)
        """
        return self._call("get_item", TableName=table_name, Key=Key, **kwargs)

    def update_item(
        self, table_name: str, Key: Dict[str, Any], **kwargs
    ) -> OperationResult:
        """Update an item in DynamoDB.

        A failed ``ConditionExpression`` is reported with status NOT_FOUND.
        """
        return self._call("update_item", TableName=table_name, Key=Key, **kwargs)

    def query(
        self, table_name: str, KeyConditionExpression: str, **kwargs
    ) -> OperationResult:
        """Query one page of items using a key condition."""
        return self._call(
            "query",
            TableName=table_name,
            KeyConditionExpression=KeyConditionExpression,
            **kwargs,
        )

