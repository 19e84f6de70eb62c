"""Infrastructure modules for the visit post-commit recovery service.

Centralized infrastructure components:
- configuration: Settings management (Settings, RecoverySettings, EscalationSettings)
- logging: Structured logging (configure_logging, get_module_logger)
- operations: Operation results (OperationResult, OperationStatus)
- clients: AWS (DynamoDB) and HTTP clients returning OperationResult
- services: Application-scoped providers (get_settings, get_dynamodb_client)
"""

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult, OperationStatus

__all__ = [
    "OperationResult",
    "OperationStatus",
    "get_module_logger",
]
