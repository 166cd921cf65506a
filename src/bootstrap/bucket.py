"""Remote-state S3 bucket provisioning and destruction.

The bucket must exist, be versioned, block public access and carry the project
tags before ``terraform init`` can point its backend at it. Every step is
check-then-act so re-running against an existing bucket is a no-op apart from
re-applying configuration.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from botocore.exceptions import ClientError

from ..aws.client import create_boto_client
from ..errors import BucketError, RetryExhaustedError
from ..models.backend_metadata import BackendMetadata
from ..utils.retry import retry_call
from .metadata import MetadataStore

logger = logging.getLogger(__name__)

# us-east-1 rejects an explicit LocationConstraint
DEFAULT_REGION = "us-east-1"

NOT_FOUND_CODES = {"404", "NoSuchBucket", "NotFound"}

# delete_objects accepts at most 1000 keys per call
DELETE_BATCH_SIZE = 1000


@dataclass
class ProvisionResult:
    """What ``StateBucketProvisioner.provision`` did.

    Attributes:
        bucket_name: Bucket name
        created: True if the bucket was created by this run
        versioning_enabled: Versioning was confirmed enabled
        public_access_blocked: Public access block applied
        tagged: Tags applied
        metadata_path: Where the metadata file was written
    """

    bucket_name: str
    created: bool
    versioning_enabled: bool
    public_access_blocked: bool
    tagged: bool
    metadata_path: Optional[Path] = None


class StateBucketProvisioner:
    """Creates, configures and tears down the Terraform remote-state bucket.

    Attributes:
        bucket_name: Bucket name
        region: Bucket region
        aws_profile: AWS profile (optional)
        project_tag: Value of the Project tag
        environment: Value of the Environment tag
        attempts: Attempts per configuration step
        versioning_delay: Seconds between versioning attempts
        config_delay: Seconds between public-access-block and tagging attempts
        settle_seconds: Wait after creation before configuring
    """

    def __init__(
        self,
        bucket_name: str,
        region: str,
        aws_profile: Optional[str] = None,
        project_tag: str = "",
        environment: str = "shared",
        attempts: int = 3,
        versioning_delay: float = 5.0,
        config_delay: float = 3.0,
        settle_seconds: float = 10.0,
        client: Any = None,
    ) -> None:
        self.bucket_name = bucket_name
        self.region = region
        self.aws_profile = aws_profile
        self.project_tag = project_tag
        self.environment = environment
        self.attempts = attempts
        self.versioning_delay = versioning_delay
        self.config_delay = config_delay
        self.settle_seconds = settle_seconds
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = create_boto_client("s3", region_name=self.region, profile_name=self.aws_profile)
        return self._client

    def bucket_exists(self) -> bool:
        """Check whether the bucket exists and is reachable.

        Raises:
            BucketError: If the bucket exists but belongs to someone else (403)
        """
        try:
            self.client.head_bucket(Bucket=self.bucket_name)
            return True
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", "Unknown"))
            if code in NOT_FOUND_CODES:
                return False
            if code in ("403", "Forbidden", "AccessDenied"):
                raise BucketError(
                    f"Bucket '{self.bucket_name}' exists but is not accessible with these credentials"
                ) from e
            raise BucketError(f"Could not check bucket '{self.bucket_name}': {code}") from e

    def create_bucket(self) -> None:
        params: dict[str, Any] = {"Bucket": self.bucket_name}
        if self.region != DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": self.region}

        try:
            self.client.create_bucket(**params)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            if code == "BucketAlreadyOwnedByYou":
                logger.info(f"Bucket {self.bucket_name} already owned by this account")
                return
            raise BucketError(f"Failed to create bucket '{self.bucket_name}': {code}") from e

        logger.info(f"Created S3 bucket {self.bucket_name} in {self.region}")

    def enable_versioning(self) -> None:
        """Enable versioning, retrying through eventual-consistency errors.

        Raises:
            RetryExhaustedError: If versioning could not be enabled
        """
        retry_call(
            lambda: self.client.put_bucket_versioning(
                Bucket=self.bucket_name,
                VersioningConfiguration={"Status": "Enabled"},
            ),
            description="enable bucket versioning",
            attempts=self.attempts,
            delay=self.versioning_delay,
            retry_on=(ClientError,),
        )
        logger.info("Versioning enabled")

    def block_public_access(self) -> None:
        retry_call(
            lambda: self.client.put_public_access_block(
                Bucket=self.bucket_name,
                PublicAccessBlockConfiguration={
                    "BlockPublicAcls": True,
                    "IgnorePublicAcls": True,
                    "BlockPublicPolicy": True,
                    "RestrictPublicBuckets": True,
                },
            ),
            description="block public access",
            attempts=self.attempts,
            delay=self.config_delay,
            retry_on=(ClientError,),
        )
        logger.info("Public access blocked")

    def apply_tags(self) -> None:
        retry_call(
            lambda: self.client.put_bucket_tagging(
                Bucket=self.bucket_name,
                Tagging={"TagSet": [{"Key": k, "Value": v} for k, v in self.bucket_tags().items()]},
            ),
            description="tag bucket",
            attempts=self.attempts,
            delay=self.config_delay,
            retry_on=(ClientError,),
        )
        logger.info("Tags applied to bucket")

    def bucket_tags(self) -> dict[str, str]:
        return {
            "Project": self.project_tag,
            "Environment": self.environment,
            "ManagedBy": "tflm",
            "Purpose": "TerraformState",
        }

    def provision(self, metadata_store: Optional[MetadataStore] = None) -> ProvisionResult:
        """Ensure the bucket exists and is configured, then record it.

        Versioning failure is fatal because the state document must be
        recoverable. Public access block and tagging failures are logged and
        the bootstrap continues.

        Args:
            metadata_store: Where to write the backend metadata (optional)

        Returns:
            ProvisionResult describing what happened

        Raises:
            BucketError: If the bucket cannot be checked or created
            RetryExhaustedError: If versioning cannot be enabled
        """
        created = False
        if self.bucket_exists():
            logger.info(f"S3 bucket exists: {self.bucket_name}")
        else:
            logger.info(f"Creating S3 bucket {self.bucket_name}...")
            self.create_bucket()
            created = True
            if self.settle_seconds > 0:
                logger.info(f"Waiting {self.settle_seconds:g}s for bucket to become available...")
                time.sleep(self.settle_seconds)

        self.enable_versioning()

        public_access_blocked = True
        try:
            self.block_public_access()
        except RetryExhaustedError as e:
            public_access_blocked = False
            logger.warning(f"{e}, continuing")

        tagged = True
        try:
            self.apply_tags()
        except RetryExhaustedError as e:
            tagged = False
            logger.warning(f"{e}, continuing")

        metadata_path = None
        if metadata_store is not None:
            metadata_path = metadata_store.write(self.metadata())

        return ProvisionResult(
            bucket_name=self.bucket_name,
            created=created,
            versioning_enabled=True,
            public_access_blocked=public_access_blocked,
            tagged=tagged,
            metadata_path=metadata_path,
        )

    def metadata(self) -> BackendMetadata:
        return BackendMetadata(
            bucket_name=self.bucket_name,
            region=self.region,
            profile=self.aws_profile,
            project_tag=self.project_tag or None,
        )

    def describe(self) -> dict[str, Any]:
        """Collect region, object count, total size and tags of the bucket."""
        try:
            location = self.client.get_bucket_location(Bucket=self.bucket_name).get("LocationConstraint")
        except ClientError:
            location = None
        region = location or DEFAULT_REGION

        object_count = 0
        total_size = 0
        paginator = self.client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket_name):
            for obj in page.get("Contents", []):
                object_count += 1
                total_size += obj.get("Size", 0)

        try:
            tag_set = self.client.get_bucket_tagging(Bucket=self.bucket_name).get("TagSet", [])
            tags = {t["Key"]: t["Value"] for t in tag_set}
        except ClientError:
            tags = {}

        return {
            "bucket_name": self.bucket_name,
            "region": region,
            "arn": f"arn:aws:s3:::{self.bucket_name}",
            "object_count": object_count,
            "total_size": total_size,
            "tags": tags,
        }

    def backup_objects(self, destination: Path) -> int:
        """Download the current version of every object into ``destination``.

        Returns:
            Number of objects downloaded
        """
        destination.mkdir(parents=True, exist_ok=True)
        root = destination.resolve()
        count = 0
        paginator = self.client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket_name):
            for obj in page.get("Contents", []):
                key = obj["Key"]
                if key.endswith("/"):
                    continue
                target = (root / key).resolve()
                if root not in target.parents:
                    logger.warning(f"Skipping object {key}: path escapes {destination}")
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                self.client.download_file(self.bucket_name, key, str(target))
                count += 1
        logger.info(f"Backed up {count} object(s) to {destination}")
        return count

    def empty(self) -> int:
        """Delete every object version and delete marker.

        Returns:
            Number of versions and markers deleted
        """
        deleted = 0
        batch: list[dict[str, str]] = []

        paginator = self.client.get_paginator("list_object_versions")
        for page in paginator.paginate(Bucket=self.bucket_name):
            for entry in page.get("Versions", []) + page.get("DeleteMarkers", []):
                batch.append({"Key": entry["Key"], "VersionId": entry["VersionId"]})
                if len(batch) == DELETE_BATCH_SIZE:
                    deleted += self._delete_batch(batch)
                    batch = []

        if batch:
            deleted += self._delete_batch(batch)

        logger.info(f"Emptied bucket {self.bucket_name} ({deleted} version(s) removed)")
        return deleted

    def _delete_batch(self, batch: list[dict[str, str]]) -> int:
        response = self.client.delete_objects(
            Bucket=self.bucket_name,
            Delete={"Objects": batch, "Quiet": True},
        )
        errors = response.get("Errors", [])
        for error in errors:
            logger.warning(f"Could not delete {error.get('Key')} ({error.get('VersionId')}): {error.get('Code')}")
        return len(batch) - len(errors)

    def destroy(
        self,
        backup_dir: Optional[Path] = None,
        metadata_store: Optional[MetadataStore] = None,
    ) -> None:
        """Empty and delete the bucket, then remove the metadata file.

        Args:
            backup_dir: Download objects here before deleting (optional)
            metadata_store: Metadata file to remove afterwards (optional)

        Raises:
            BucketError: If the bucket does not exist or cannot be deleted
        """
        if not self.bucket_exists():
            raise BucketError(f"Bucket '{self.bucket_name}' does not exist or you don't have access to it")

        if backup_dir is not None:
            self.backup_objects(backup_dir)

        self.empty()

        try:
            self.client.delete_bucket(Bucket=self.bucket_name)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            raise BucketError(f"Failed to delete bucket '{self.bucket_name}': {code}") from e
        logger.info(f"Bucket {self.bucket_name} deleted")

        if metadata_store is not None:
            metadata_store.delete()
