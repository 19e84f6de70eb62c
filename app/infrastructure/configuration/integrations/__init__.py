"""Integration settings __init__ - exports all integration settings."""

from infrastructure.configuration.integrations.aws import AwsSettings
from infrastructure.configuration.integrations.downstream import DownstreamSettings

__all__ = [
    "AwsSettings",
    "DownstreamSettings",
]
