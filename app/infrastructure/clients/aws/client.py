"""Base AWS client utilities for infrastructure clients.

Provides `get_boto3_client` and `execute_aws_api_call` with the
OperationResult pattern. This module avoids reading settings at import time
and accepts configuration via parameters.
"""

import time
from typing import Any, Dict, Optional

import boto3  # type: ignore
from botocore.client import BaseClient  # type: ignore
from botocore.config import Config  # type: ignore
from botocore.exceptions import BotoCoreError, ClientError  # type: ignore
import structlog

from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

logger = structlog.get_logger()

THROTTLING_CODES = (
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "ProvisionedThroughputExceededException",
)


def get_boto3_client(
    service_name: str,
    session_config: Optional[Dict[str, Any]] = None,
    client_config: Optional[Dict[str, Any]] = None,
    botocore_config: Optional[Config] = None,
) -> BaseClient:
    """Create a boto3 client for the given service.

    Args:
        service_name: AWS service name (e.g., 'dynamodb')
        session_config: Optional boto3 session kwargs (e.g., region_name)
        client_config: Optional client kwargs (e.g., endpoint_url)
        botocore_config: Optional botocore Config (timeouts, SDK retries)

    Returns:
        botocore client instance
    """
    session = boto3.Session(**(session_config or {}))
    kwargs = dict(client_config or {})
    if botocore_config is not None:
        kwargs["config"] = botocore_config
    return session.client(service_name, **kwargs)


def _calculate_retry_delay(attempt: int, backoff_factor: float = 0.5) -> float:
    return backoff_factor * (2**attempt)


def _map_client_error(
    e: ClientError, service_name: str, method: str
) -> OperationResult:
    error_code = e.response.get("Error", {}).get("Code")
    error_message = e.response.get("Error", {}).get("Message", str(e))

    if error_code in THROTTLING_CODES:
        retry_after = None
        try:
            retry_after = int(e.response.get("RetryAfter", 0)) or None
        except (TypeError, ValueError):
            retry_after = None
        return OperationResult.transient_error(
            message=error_message, error_code=error_code, retry_after=retry_after
        )

    if error_code == "ConditionalCheckFailedException":
        # Conditional writes in this codebase only guard on record existence
        return OperationResult.error(
            OperationStatus.NOT_FOUND, message=error_message, error_code=error_code
        )

    if error_code == "ResourceNotFoundException":
        return OperationResult.error(
            OperationStatus.NOT_FOUND, message=error_message, error_code=error_code
        )

    if error_code in ("AccessDeniedException", "UnauthorizedOperation"):
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED, message=error_message, error_code=error_code
        )

    if error_code in ("InternalServerError", "ServiceUnavailable"):
        return OperationResult.transient_error(
            message=error_message, error_code=error_code
        )

    logger.debug(
        "aws_api_error_unmapped",
        service=service_name,
        method=method,
        code=error_code,
    )
    return OperationResult.permanent_error(message=error_message, error_code=error_code)


def execute_aws_api_call(
    service_name: str,
    method: str,
    session_config: Optional[Dict[str, Any]] = None,
    client_config: Optional[Dict[str, Any]] = None,
    botocore_config: Optional[Config] = None,
    max_retries: int = 3,
    backoff_factor: float = 0.5,
    **kwargs,
) -> OperationResult:
    """Execute an AWS API call with retries and standardized results.

    Throttling and transient service errors are retried up to ``max_retries``
    times with exponential backoff; every other failure returns immediately.
    Args mirror `boto3` call parameters.
    """
    last_exc: Optional[Exception] = None

    for attempt in range(max_retries + 1):
        try:
            client = get_boto3_client(
                service_name,
                session_config=session_config,
                client_config=client_config,
                botocore_config=botocore_config,
            )
            result = getattr(client, method)(**kwargs)
            return OperationResult.success(
                data=result, message=f"{service_name}.{method} succeeded"
            )

        except ClientError as e:
            last_exc = e
            mapped = _map_client_error(e, service_name, method)

            if mapped.is_transient and attempt < max_retries:
                delay = _calculate_retry_delay(attempt, backoff_factor)
                logger.warning(
                    "aws_api_retry",
                    service=service_name,
                    method=method,
                    attempt=attempt + 1,
                    error=str(e),
                    delay=delay,
                )
                time.sleep(delay)
                continue

            if mapped.status != OperationStatus.NOT_FOUND:
                logger.error(
                    "aws_api_error_final",
                    service=service_name,
                    method=method,
                    error=str(e),
                )
            return mapped

        except BotoCoreError as e:
            # Connection errors, read timeouts, endpoint resolution failures
            last_exc = e
            logger.error(
                "aws_api_connection_error",
                service=service_name,
                method=method,
                error=str(e),
            )
            return OperationResult.transient_error(
                message=str(e), error_code="CONNECTION_ERROR"
            )

    return OperationResult.transient_error(
        message=str(last_exc) if last_exc else "unknown_error"
    )
