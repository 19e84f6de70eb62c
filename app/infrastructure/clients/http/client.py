"""HTTP client for outbound calls to downstream services and webhooks.

Used for the downstream visit services that perform post-commit operations
and for the incident webhook. Every request is bounded by a timeout and
every outcome is returned as an OperationResult; nothing raises.

Status mapping:
    2xx: SUCCESS
    401/403: UNAUTHORIZED
    404: NOT_FOUND
    408/429: TRANSIENT_ERROR (Retry-After honoured when present)
    other 4xx: PERMANENT_ERROR
    5xx, timeouts, connection errors: TRANSIENT_ERROR

Usage:
    from infrastructure.clients.http import HttpClient

    client = HttpClient(base_url="https://visits.internal", timeout=30)
    result = client.post("/internal/notifications/visit-ready", json_data={...})
    if not result.is_success:
        ...
"""

import json
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import requests
import structlog

from infrastructure.operations import OperationResult, OperationStatus

logger = structlog.get_logger(__name__)


class HttpClient:
    """HTTP client with connection pooling and OperationResult responses.

    Attributes:
        base_url: Base URL joined with relative paths (absolute URLs are used as-is)
        timeout: Default timeout in seconds
        bearer_token: Optional token sent as ``Authorization: Bearer <token>``
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 30,
        bearer_token: Optional[str] = None,
        user_agent: str = "visit-post-commit-recovery/1.0",
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update(
            {
                "User-Agent": user_agent,
                "Accept": "application/json",
            }
        )
        token = (bearer_token or "").strip()
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"
        self._logger = logger.bind(component="http_client")

    def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> OperationResult:
        """Send GET request."""
        return self._request(
            "GET", path, params=params, headers=headers, timeout=timeout
        )

    def post(
        self,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> OperationResult:
        """Send POST request with a JSON body."""
        return self._request(
            "POST",
            path,
            json_data=json_data,
            params=params,
            headers=headers,
            timeout=timeout,
        )

    def delete(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> OperationResult:
        """Send DELETE request."""
        return self._request(
            "DELETE", path, params=params, headers=headers, timeout=timeout
        )

    def _resolve_url(self, path: str) -> str:
        if not self.base_url or path.startswith(("http://", "https://")):
            return path
        return urljoin(self.base_url.rstrip("/") + "/", path.lstrip("/"))

    def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> OperationResult:
        """Send HTTP request and classify the outcome.

        Args:
            method: HTTP method (GET, POST, DELETE)
            path: Relative path or absolute URL
            json_data: JSON request body
            params: Query parameters
            headers: Additional headers
            timeout: Request timeout (overrides default)

        Returns:
            OperationResult with response data or error
        """
        url = self._resolve_url(path)
        timeout = timeout or self.timeout

        log = self._logger.bind(method=method, url=url)
        log.debug("http_request")

        try:
            request_headers = dict(self._session.headers)
            if headers:
                request_headers.update(headers)

            response = self._session.request(
                method=method,
                url=url,
                json=json_data,
                params=params,
                headers=request_headers,
                timeout=timeout,
            )
        except requests.Timeout:
            log.warning("http_timeout", timeout=timeout)
            return OperationResult.transient_error(
                message=f"Request timeout after {timeout}s",
                error_code="TIMEOUT",
            )
        except requests.ConnectionError as e:
            log.warning("http_connection_error", error=str(e))
            return OperationResult.transient_error(
                message=f"Connection error: {str(e)}",
                error_code="CONNECTION_ERROR",
            )
        except requests.RequestException as e:
            log.error("http_request_error", error=str(e))
            return OperationResult.transient_error(
                message=f"Request error: {str(e)}",
                error_code="REQUEST_ERROR",
            )

        status_code = response.status_code
        log = log.bind(status_code=status_code)

        response_data: Optional[Any] = None
        if response.content:
            try:
                response_data = response.json()
            except (json.JSONDecodeError, ValueError):
                log.debug("non_json_response", content=response.text[:200])

        if 200 <= status_code < 300:
            log.debug("http_success")
            return OperationResult.success(
                data=response_data,
                message=f"{method} {url} succeeded",
                status_code=status_code,
            )

        error_message = self._extract_error_message(response_data, response.text)
        error_code = f"HTTP_{status_code}"

        if status_code in (401, 403):
            log.warning("http_unauthorized", error=error_message)
            return OperationResult.error(
                status=OperationStatus.UNAUTHORIZED,
                message=error_message,
                error_code=error_code,
                status_code=status_code,
            )

        if status_code == 404:
            log.warning("http_not_found", error=error_message)
            return OperationResult.error(
                status=OperationStatus.NOT_FOUND,
                message=error_message,
                error_code=error_code,
                status_code=status_code,
            )

        if status_code in (408, 429) or 500 <= status_code < 600:
            log.warning("http_transient_error", error=error_message)
            return OperationResult.transient_error(
                message=error_message,
                error_code=error_code,
                retry_after=self._parse_retry_after(response.headers.get("Retry-After")),
                status_code=status_code,
            )

        log.warning("http_client_error", error=error_message)
        return OperationResult.permanent_error(
            message=error_message,
            error_code=error_code,
            status_code=status_code,
        )

    @staticmethod
    def _parse_retry_after(value: Optional[str]) -> Optional[int]:
        if not value:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @staticmethod
    def _extract_error_message(response_data: Optional[Any], response_text: str) -> str:
        """Extract a human-readable error message from a response."""
        if isinstance(response_data, dict):
            for key in ["detail", "error", "message"]:
                if key in response_data:
                    return str(response_data[key])

        return response_text[:200] if response_text else "Unknown error"

    def close(self) -> None:
        """Close HTTP session and release connections."""
        self._session.close()
        self._logger.debug("http_client_closed")
