"""Tests for StateBucketProvisioner.

Test coverage for the state bucket bootstrap and destruction with a mocked
S3 client.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock, call, patch

import pytest
from botocore.exceptions import ClientError

from src.bootstrap.bucket import StateBucketProvisioner
from src.bootstrap.metadata import MetadataStore
from src.errors import BucketError, RetryExhaustedError


def client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} message"}}, operation)


@pytest.fixture
def s3() -> Mock:
    return Mock()


def make_provisioner(s3: Mock, region: str = "eu-west-3", **kwargs) -> StateBucketProvisioner:
    return StateBucketProvisioner(
        bucket_name="demo-shared-tfstate",
        region=region,
        project_tag="demo",
        environment="shared",
        client=s3,
        **kwargs,
    )


# Patches time.sleep for both the post-create settle wait and retry_call
@patch("src.bootstrap.bucket.time.sleep")
class TestProvision:
    """Test suite for StateBucketProvisioner.provision."""

    def test_existing_bucket_is_not_recreated(self, mock_sleep: Mock, s3: Mock, tmp_path: Path) -> None:
        s3.head_bucket.return_value = {}
        store = MetadataStore(tmp_path / "bucket-info.txt")

        result = make_provisioner(s3).provision(metadata_store=store)

        assert result.created is False
        s3.create_bucket.assert_not_called()
        mock_sleep.assert_not_called()
        s3.put_bucket_versioning.assert_called_once_with(
            Bucket="demo-shared-tfstate",
            VersioningConfiguration={"Status": "Enabled"},
        )
        assert store.read().bucket_name == "demo-shared-tfstate"

    def test_running_twice_is_idempotent(self, mock_sleep: Mock, s3: Mock, tmp_path: Path) -> None:
        s3.head_bucket.side_effect = [client_error("404", "HeadBucket"), {}]
        store = MetadataStore(tmp_path / "bucket-info.txt")
        provisioner = make_provisioner(s3)

        first = provisioner.provision(metadata_store=store)
        content_after_first = store.path.read_text()
        second = provisioner.provision(metadata_store=store)

        assert first.created is True
        assert second.created is False
        assert s3.create_bucket.call_count == 1
        assert store.path.read_text() == content_after_first

    def test_creates_bucket_with_location_constraint(self, mock_sleep: Mock, s3: Mock) -> None:
        s3.head_bucket.side_effect = client_error("404", "HeadBucket")

        result = make_provisioner(s3, settle_seconds=10).provision()

        assert result.created is True
        s3.create_bucket.assert_called_once_with(
            Bucket="demo-shared-tfstate",
            CreateBucketConfiguration={"LocationConstraint": "eu-west-3"},
        )
        mock_sleep.assert_called_once_with(10)

    def test_us_east_1_has_no_location_constraint(self, mock_sleep: Mock, s3: Mock) -> None:
        s3.head_bucket.side_effect = client_error("NoSuchBucket", "HeadBucket")

        make_provisioner(s3, region="us-east-1").provision()

        s3.create_bucket.assert_called_once_with(Bucket="demo-shared-tfstate")

    def test_versioning_exhaustion_is_fatal(self, mock_sleep: Mock, s3: Mock, tmp_path: Path) -> None:
        s3.head_bucket.return_value = {}
        s3.put_bucket_versioning.side_effect = client_error("NoSuchBucket", "PutBucketVersioning")
        store = MetadataStore(tmp_path / "bucket-info.txt")

        with pytest.raises(RetryExhaustedError):
            make_provisioner(s3).provision(metadata_store=store)

        assert s3.put_bucket_versioning.call_count == 3
        mock_sleep.assert_has_calls([call(5.0), call(5.0)])
        assert not store.exists()

    def test_versioning_succeeds_after_transient_failures(self, mock_sleep: Mock, s3: Mock) -> None:
        s3.head_bucket.return_value = {}
        s3.put_bucket_versioning.side_effect = [
            client_error("NoSuchBucket", "PutBucketVersioning"),
            client_error("NoSuchBucket", "PutBucketVersioning"),
            {},
        ]

        result = make_provisioner(s3).provision()

        assert result.versioning_enabled is True
        assert s3.put_bucket_versioning.call_count == 3

    def test_public_access_and_tag_failures_are_not_fatal(
        self, mock_sleep: Mock, s3: Mock, tmp_path: Path
    ) -> None:
        s3.head_bucket.return_value = {}
        s3.put_public_access_block.side_effect = client_error("AccessDenied", "PutPublicAccessBlock")
        s3.put_bucket_tagging.side_effect = client_error("AccessDenied", "PutBucketTagging")
        store = MetadataStore(tmp_path / "bucket-info.txt")

        result = make_provisioner(s3).provision(metadata_store=store)

        assert result.public_access_blocked is False
        assert result.tagged is False
        assert s3.put_public_access_block.call_count == 3
        assert s3.put_bucket_tagging.call_count == 3
        mock_sleep.assert_has_calls([call(3.0)] * 4)
        assert result.metadata_path == store.path

    def test_tags_applied(self, mock_sleep: Mock, s3: Mock) -> None:
        s3.head_bucket.return_value = {}

        make_provisioner(s3).provision()

        tag_set = s3.put_bucket_tagging.call_args.kwargs["Tagging"]["TagSet"]
        assert {"Key": "Project", "Value": "demo"} in tag_set
        assert {"Key": "Environment", "Value": "shared"} in tag_set
        assert {"Key": "Purpose", "Value": "TerraformState"} in tag_set


class TestBucketExists:
    """Test suite for bucket existence checks."""

    def test_forbidden_raises(self, s3: Mock) -> None:
        s3.head_bucket.side_effect = client_error("403", "HeadBucket")

        with pytest.raises(BucketError, match="not accessible"):
            make_provisioner(s3).bucket_exists()

    def test_bucket_already_owned_is_accepted(self, s3: Mock) -> None:
        s3.create_bucket.side_effect = client_error("BucketAlreadyOwnedByYou", "CreateBucket")

        make_provisioner(s3).create_bucket()

    def test_bucket_taken_by_other_account_raises(self, s3: Mock) -> None:
        s3.create_bucket.side_effect = client_error("BucketAlreadyExists", "CreateBucket")

        with pytest.raises(BucketError, match="BucketAlreadyExists"):
            make_provisioner(s3).create_bucket()


class TestDestroy:
    """Test suite for bucket destruction."""

    def test_empty_batches_delete_requests(self, s3: Mock) -> None:
        versions = [{"Key": f"k{i}", "VersionId": f"v{i}"} for i in range(1200)]
        markers = [{"Key": "gone", "VersionId": "m1"}]
        s3.get_paginator.return_value.paginate.return_value = [{"Versions": versions, "DeleteMarkers": markers}]
        s3.delete_objects.return_value = {}

        deleted = make_provisioner(s3).empty()

        assert deleted == 1201
        assert s3.delete_objects.call_count == 2
        first_batch = s3.delete_objects.call_args_list[0].kwargs["Delete"]["Objects"]
        second_batch = s3.delete_objects.call_args_list[1].kwargs["Delete"]["Objects"]
        assert len(first_batch) == 1000
        assert len(second_batch) == 201
        s3.get_paginator.assert_called_with("list_object_versions")

    def test_empty_counts_per_object_errors(self, s3: Mock) -> None:
        s3.get_paginator.return_value.paginate.return_value = [
            {"Versions": [{"Key": "a", "VersionId": "1"}, {"Key": "b", "VersionId": "2"}]}
        ]
        s3.delete_objects.return_value = {"Errors": [{"Key": "b", "VersionId": "2", "Code": "AccessDenied"}]}

        assert make_provisioner(s3).empty() == 1

    def test_destroy_missing_bucket_raises(self, s3: Mock) -> None:
        s3.head_bucket.side_effect = client_error("404", "HeadBucket")

        with pytest.raises(BucketError, match="does not exist"):
            make_provisioner(s3).destroy()

        s3.delete_bucket.assert_not_called()

    def test_destroy_empties_deletes_and_removes_metadata(self, s3: Mock, tmp_path: Path) -> None:
        s3.head_bucket.return_value = {}
        s3.get_paginator.return_value.paginate.return_value = []
        store = MetadataStore(tmp_path / "bucket-info.txt")
        provisioner = make_provisioner(s3)
        store.write(provisioner.metadata())

        provisioner.destroy(metadata_store=store)

        s3.delete_bucket.assert_called_once_with(Bucket="demo-shared-tfstate")
        assert not store.exists()

    def test_destroy_backs_up_objects_first(self, s3: Mock, tmp_path: Path) -> None:
        s3.head_bucket.return_value = {}
        s3.get_paginator.return_value.paginate.side_effect = [
            [{"Contents": [{"Key": "terraform.tfstate", "Size": 2048}, {"Key": "folder/"}]}],
            [],
        ]
        backup_dir = tmp_path / "backup"

        make_provisioner(s3).destroy(backup_dir=backup_dir)

        s3.download_file.assert_called_once_with(
            "demo-shared-tfstate", "terraform.tfstate", str(backup_dir.resolve() / "terraform.tfstate")
        )
        s3.delete_bucket.assert_called_once()

    def test_backup_skips_keys_outside_destination(self, s3: Mock, tmp_path: Path) -> None:
        s3.get_paginator.return_value.paginate.return_value = [
            {
                "Contents": [
                    {"Key": "../escape.txt"},
                    {"Key": "env/../../../escape.txt"},
                    {"Key": "/tmp/absolute.txt"},
                    {"Key": "env/prod/terraform.tfstate"},
                ]
            }
        ]
        backup_dir = tmp_path / "backup"

        count = make_provisioner(s3).backup_objects(backup_dir)

        assert count == 1
        s3.download_file.assert_called_once_with(
            "demo-shared-tfstate",
            "env/prod/terraform.tfstate",
            str(backup_dir.resolve() / "env" / "prod" / "terraform.tfstate"),
        )
        assert not (tmp_path / "escape.txt").exists()

    def test_destroy_delete_bucket_failure_raises(self, s3: Mock, tmp_path: Path) -> None:
        s3.head_bucket.return_value = {}
        s3.get_paginator.return_value.paginate.return_value = []
        s3.delete_bucket.side_effect = client_error("BucketNotEmpty", "DeleteBucket")
        store = MetadataStore(tmp_path / "bucket-info.txt")
        store.write(make_provisioner(s3).metadata())

        with pytest.raises(BucketError, match="BucketNotEmpty"):
            make_provisioner(s3).destroy(metadata_store=store)

        assert store.exists()

    def test_describe(self, s3: Mock) -> None:
        s3.get_bucket_location.return_value = {"LocationConstraint": None}
        s3.get_paginator.return_value.paginate.return_value = [
            {"Contents": [{"Key": "a", "Size": 100}, {"Key": "b", "Size": 50}]}
        ]
        s3.get_bucket_tagging.side_effect = client_error("NoSuchTagSet", "GetBucketTagging")

        details = make_provisioner(s3).describe()

        assert details["region"] == "us-east-1"
        assert details["object_count"] == 2
        assert details["total_size"] == 150
        assert details["tags"] == {}
        assert details["arn"] == "arn:aws:s3:::demo-shared-tfstate"
