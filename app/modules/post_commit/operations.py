"""Registry of retry policies per post-commit operation."""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from modules.post_commit.models import PostCommitOperation


@dataclass(frozen=True)
class OperationPolicy:
    """Retry policy for one operation.

    Attributes:
        retryable: False means failures are recorded but never retried
        max_attempts: Attempt budget, counting the pipeline's own failed attempt
    """

    retryable: bool
    max_attempts: int

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


class OperationRegistry:
    """Maps operation names to their retry policy.

    Operations absent from the registry are treated as non-retryable.
    """

    def __init__(self, policies: Dict[PostCommitOperation, OperationPolicy]) -> None:
        self._policies = dict(policies)

    @classmethod
    def default(
        cls,
        max_attempts: int = 3,
        non_retryable: Iterable[PostCommitOperation] = (),
    ) -> "OperationRegistry":
        """All five operations, retryable unless listed in ``non_retryable``."""
        blocked = set(non_retryable)
        return cls(
            {
                operation: OperationPolicy(
                    retryable=operation not in blocked, max_attempts=max_attempts
                )
                for operation in PostCommitOperation
            }
        )

    def policy_for(self, operation: PostCommitOperation) -> Optional[OperationPolicy]:
        return self._policies.get(operation)

    def is_retryable(self, operation: PostCommitOperation) -> bool:
        policy = self.policy_for(operation)
        return policy is not None and policy.retryable

    def can_retry(self, operation: PostCommitOperation, attempts: int) -> bool:
        """True if ``operation`` is retryable and ``attempts`` is under its budget."""
        policy = self.policy_for(operation)
        return (
            policy is not None and policy.retryable and attempts < policy.max_attempts
        )

    def operations(self):
        return list(self._policies)
