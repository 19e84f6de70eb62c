"""Visit post-commit recovery: retry, escalation and operator actions."""

from modules.post_commit.factory import RecoveryServices, build_recovery_services
from modules.post_commit.models import (
    PostCommitOperation,
    PostCommitStatus,
    RecordUpdate,
    VisitRecord,
)

__all__ = [
    "PostCommitOperation",
    "PostCommitStatus",
    "RecordUpdate",
    "RecoveryServices",
    "VisitRecord",
    "build_recovery_services",
]
