"""Infrastructure AWS clients public API.

    from infrastructure.services import get_dynamodb_client

    dynamodb = get_dynamodb_client()
    result = dynamodb.get_item("visits", {"id": {"S": "visit-1"}})
    if result.is_success:
        item = result.data.get("Item")
"""

from infrastructure.clients.aws.client import execute_aws_api_call, get_boto3_client
from infrastructure.clients.aws.dynamodb import DynamoDBClient
from infrastructure.clients.aws.session_provider import SessionProvider

__all__ = [
    "DynamoDBClient",
    "SessionProvider",
    "execute_aws_api_call",
    "get_boto3_client",
]
