"""Outbound HTTP client returning OperationResult values."""

from infrastructure.clients.http.client import HttpClient

__all__ = ["HttpClient"]
