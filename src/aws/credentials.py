"""AWS credential validation."""

from __future__ import annotations

import logging
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError, ProfileNotFound

from ..errors import PreconditionError
from .client import create_boto_client

logger = logging.getLogger(__name__)


class CredentialValidationError(PreconditionError):
    """AWS credentials are missing, expired, or the profile does not exist."""


def validate_credentials(aws_profile: Optional[str] = None, region: Optional[str] = None) -> dict:
    """Validate AWS credentials with STS GetCallerIdentity.

    Args:
        aws_profile: AWS profile name (optional)
        region: AWS region for the STS endpoint (optional)

    Returns:
        Dictionary with account_id, user_id and arn

    Raises:
        CredentialValidationError: If credentials cannot be used
    """
    try:
        sts = create_boto_client("sts", region_name=region, profile_name=aws_profile)
        identity = sts.get_caller_identity()
    except ProfileNotFound as e:
        raise CredentialValidationError(f"AWS profile not found: {e}") from e
    except NoCredentialsError as e:
        raise CredentialValidationError("AWS credentials not configured. Run 'aws configure' first.") from e
    except ClientError as e:
        code = e.response.get("Error", {}).get("Code", "Unknown")
        raise CredentialValidationError(f"AWS credentials rejected ({code})") from e
    except BotoCoreError as e:
        raise CredentialValidationError(f"Unable to validate AWS credentials: {e}") from e

    logger.debug(f"Authenticated as {identity.get('Arn')}")
    return {
        "account_id": identity["Account"],
        "user_id": identity.get("UserId", ""),
        "arn": identity.get("Arn", ""),
    }
