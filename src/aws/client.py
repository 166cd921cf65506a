"""boto3 client factory."""

from __future__ import annotations

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig

logger = logging.getLogger(__name__)

# Standard retry mode already backs off on throttling; keep attempts modest so
# best-effort cleanup does not stall on a single API.
DEFAULT_BOTO_CONFIG = BotoConfig(retries={"max_attempts": 5, "mode": "standard"})


def create_session(profile_name: Optional[str] = None, region_name: Optional[str] = None) -> boto3.Session:
    """Create a boto3 session, deferring to the SDK's credential chain when no profile is set."""
    kwargs: dict[str, Any] = {}
    if profile_name:
        kwargs["profile_name"] = profile_name
    if region_name:
        kwargs["region_name"] = region_name
    return boto3.Session(**kwargs)


def create_boto_client(
    service_name: str,
    region_name: Optional[str] = None,
    profile_name: Optional[str] = None,
) -> Any:
    """Create a boto3 client.

    Args:
        service_name: AWS service name (e.g. "ec2", "s3")
        region_name: AWS region (optional, SDK default if omitted)
        profile_name: AWS profile name (optional)

    Returns:
        boto3 client for the service
    """
    session = create_session(profile_name=profile_name, region_name=region_name)
    logger.debug(f"Creating {service_name} client (region={region_name}, profile={profile_name})")
    return session.client(service_name, config=DEFAULT_BOTO_CONFIG)
