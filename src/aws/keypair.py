"""Short-lived EC2 key pairs for SSH access during a single run."""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from types import TracebackType
from typing import Optional, Type

from botocore.exceptions import ClientError

from .client import create_boto_client

logger = logging.getLogger(__name__)


class EphemeralKeyPair:
    """EC2 key pair whose private key only lives for the duration of a ``with`` block.

    On enter the key pair is created in EC2 and the private key is written to
    ``<directory>/<name>.pem`` with 0600 permissions. On exit both the remote
    key pair and the local file are removed, whether or not the block raised.

    Example:
        with EphemeralKeyPair("demo", region="eu-west-3", directory=tmp) as key:
            ssh(host, identity_file=key.path)
    """

    def __init__(
        self,
        prefix: str,
        region: Optional[str] = None,
        aws_profile: Optional[str] = None,
        directory: Optional[Path] = None,
        tags: Optional[dict[str, str]] = None,
    ) -> None:
        self.name = f"{prefix}-{uuid.uuid4().hex[:8]}"
        self.region = region
        self.aws_profile = aws_profile
        self.directory = Path(directory) if directory else Path.cwd()
        self.tags = tags or {}
        self.path: Optional[Path] = None
        self._client = None

    def __enter__(self) -> "EphemeralKeyPair":
        self._client = create_boto_client("ec2", region_name=self.region, profile_name=self.aws_profile)

        params: dict = {"KeyName": self.name, "KeyType": "rsa"}
        if self.tags:
            params["TagSpecifications"] = [
                {
                    "ResourceType": "key-pair",
                    "Tags": [{"Key": k, "Value": v} for k, v in self.tags.items()],
                }
            ]
        response = self._client.create_key_pair(**params)

        # __exit__ does not run if __enter__ raises, so remove the remote key here
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self.path = self.directory / f"{self.name}.pem"
            # Create with restrictive mode up front; ssh refuses world-readable keys
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w") as f:
                f.write(response["KeyMaterial"])
        except BaseException:
            self.close()
            raise

        logger.info(f"Created temporary key pair {self.name}")
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()

    def close(self) -> None:
        """Delete the remote key pair and the local private key file."""
        if self.path is not None and self.path.exists():
            self.path.unlink()
            logger.debug(f"Removed private key {self.path}")
        self.path = None

        if self._client is not None:
            try:
                self._client.delete_key_pair(KeyName=self.name)
                logger.info(f"Deleted temporary key pair {self.name}")
            except ClientError as e:
                code = e.response.get("Error", {}).get("Code", "Unknown")
                logger.warning(f"Could not delete key pair {self.name}: {code}")
            self._client = None
