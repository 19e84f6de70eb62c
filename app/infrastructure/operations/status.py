"""Operation status enumeration.

Status codes shared by every integration boundary (record store, downstream
services, incident webhook) so callers can decide between retrying and
giving up without inspecting provider-specific exceptions.
"""

from enum import Enum


class OperationStatus(Enum):
    """Status codes for operation results.

    Attributes:
        SUCCESS: Operation completed successfully
        TRANSIENT_ERROR: Retryable error (network, timeout, throttling, 5xx)
        PERMANENT_ERROR: Non-retryable error (validation, bad request, missing data)
        UNAUTHORIZED: Authentication or authorization failure
        NOT_FOUND: Resource not found
    """

    SUCCESS = "success"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
