"""Operation result dataclass.

Uniform result type returned from integration calls: downstream post-commit
operations, record store access and the incident webhook.
"""

from typing import Optional, Any
from dataclasses import dataclass

from infrastructure.operations.status import OperationStatus


@dataclass
class OperationResult:
    """Uniform result returned from operations.

    Attributes:
        status: OperationStatus -- high-level outcome
        message: str -- human-friendly message for logs/troubleshooting
        data: Optional[Any] -- optional payload (can be dict, list, or object)
        error_code: Optional[str] -- optional machine error code
        retry_after: Optional[int] -- seconds until retry when rate-limited
        status_code: Optional[int] -- HTTP status code for HTTP-backed calls
    """

    status: OperationStatus
    message: str
    data: Optional[Any] = None
    error_code: Optional[str] = None
    retry_after: Optional[int] = None
    status_code: Optional[int] = None

    @property
    def is_success(self) -> bool:
        """True if status is SUCCESS."""
        return self.status == OperationStatus.SUCCESS

    @property
    def is_transient(self) -> bool:
        """True if the failure may succeed on a later attempt."""
        return self.status == OperationStatus.TRANSIENT_ERROR

    @classmethod
    def success(
        cls,
        data: Optional[Any] = None,
        message: str = "ok",
        status_code: Optional[int] = None,
    ) -> "OperationResult":
        """Create a SUCCESS OperationResult with optional data."""
        return cls(
            status=OperationStatus.SUCCESS,
            message=message,
            data=data,
            status_code=status_code,
        )

    @classmethod
    def error(
        cls,
        status: OperationStatus,
        message: str,
        error_code: Optional[str] = None,
        retry_after: Optional[int] = None,
        data: Optional[Any] = None,
        status_code: Optional[int] = None,
    ) -> "OperationResult":
        """Create an error OperationResult.

        Args:
            status: OperationStatus indicating error type
            message: Human-friendly error message
            error_code: Optional machine error code
            retry_after: Optional seconds until retry (for rate limiting)
            data: Optional payload to include with the error
            status_code: Optional HTTP status code

        Returns:
            OperationResult with specified error status
        """
        return cls(
            status=status,
            message=message,
            error_code=error_code,
            retry_after=retry_after,
            data=data,
            status_code=status_code,
        )

    @classmethod
    def transient_error(
        cls,
        message: str,
        error_code: Optional[str] = None,
        retry_after: Optional[int] = None,
        status_code: Optional[int] = None,
    ) -> "OperationResult":
        """Create a transient (retryable) error result.

        Use for errors that may succeed on retry, such as network timeouts,
        throttling or a downstream service returning 5xx.
        """
        return cls.error(
            OperationStatus.TRANSIENT_ERROR,
            message,
            error_code,
            retry_after,
            status_code=status_code,
        )

    @classmethod
    def permanent_error(
        cls,
        message: str,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> "OperationResult":
        """Create a permanent (non-retryable) error result.

        Use for errors that will not succeed on retry, such as validation
        failures or a record missing the data an operation needs.
        """
        return cls.error(
            OperationStatus.PERMANENT_ERROR,
            message,
            error_code,
            status_code=status_code,
        )

    @classmethod
    def from_exception(
        cls, exc: Exception, error_code: str = "UNEXPECTED_ERROR"
    ) -> "OperationResult":
        """Wrap an unexpected exception as a transient failure."""
        return cls.transient_error(
            f"{type(exc).__name__}: {exc}",
            error_code=error_code,
        )
