"""Session provider for AWS client operations.

Centralizes region, endpoint and timeout configuration for every AWS
service client so per-service clients don't duplicate it.
"""

from typing import Any, Dict, Optional

import structlog
from botocore.config import Config  # type: ignore

logger = structlog.get_logger()


class SessionProvider:
    """Centralized provider for AWS session configuration.

    Args:
        region: AWS region for all clients (e.g., 'ca-central-1')
        endpoint_url: Custom endpoint URL (for testing/LocalStack)
        connect_timeout: botocore connect timeout in seconds
        read_timeout: botocore read timeout in seconds
    """

    def __init__(
        self,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        connect_timeout: int = 5,
        read_timeout: int = 10,
    ) -> None:
        self.region = region
        self.endpoint_url = endpoint_url
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

    def build_client_kwargs(self) -> Dict[str, Any]:
        """Build session and client configuration kwargs for boto3.

        Returns:
            Dict with session_config, client_config and botocore_config for
            passing to execute_aws_api_call
        """
        session_config = {}
        client_config = {}

        if self.region:
            session_config["region_name"] = self.region
            client_config["region_name"] = self.region

        if self.endpoint_url:
            client_config["endpoint_url"] = self.endpoint_url

        logger.debug(
            "built_client_kwargs",
            session_config=session_config,
            client_config=client_config,
        )
        return {
            "session_config": session_config or None,
            "client_config": client_config or None,
            "botocore_config": Config(
                connect_timeout=self.connect_timeout,
                read_timeout=self.read_timeout,
                retries={"max_attempts": 0},
            ),
        }
