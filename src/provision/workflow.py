"""Provisioning workflow.

Bootstraps the remote-state bucket, then drives Terraform through
init, validate and apply (or plan on a dry run). Fail-fast: the first
unrecoverable step raises and whatever was already created stays in place.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..aws.credentials import validate_credentials
from ..bootstrap.bucket import ProvisionResult, StateBucketProvisioner
from ..bootstrap.metadata import MetadataStore
from ..errors import PreconditionError
from ..terraform.runner import TerraformRunner, backend_config

logger = logging.getLogger(__name__)


@dataclass
class ProvisionReport:
    """What a provisioning run did.

    Attributes:
        account_id: AWS account the stack was deployed into
        bucket: Bucket bootstrap result (None when bootstrap was skipped)
        planned_only: True for a dry run (plan instead of apply)
        applied: terraform apply succeeded
        outputs: terraform output text ("" if it failed)
        steps: Names of the steps that completed, in order
    """

    account_id: Optional[str] = None
    bucket: Optional[ProvisionResult] = None
    planned_only: bool = False
    applied: bool = False
    outputs: str = ""
    steps: list[str] = field(default_factory=list)


class ProvisionWorkflow:
    """Runs the full bring-up sequence.

    Attributes:
        runner: Terraform runner for the stack directory
        provisioner: State bucket provisioner
        metadata_store: Backend metadata file
        state_key: Object key of the state document in the bucket
        aws_profile: AWS profile (optional)
        credential_check: Callable validating credentials, returns identity dict
    """

    def __init__(
        self,
        runner: TerraformRunner,
        provisioner: StateBucketProvisioner,
        metadata_store: MetadataStore,
        state_key: str = "terraform.tfstate",
        aws_profile: Optional[str] = None,
        credential_check: Callable[..., dict[str, Any]] = validate_credentials,
    ) -> None:
        self.runner = runner
        self.provisioner = provisioner
        self.metadata_store = metadata_store
        self.state_key = state_key
        self.aws_profile = aws_profile
        self.credential_check = credential_check

    def check_preconditions(self) -> dict[str, Any]:
        """Validate credentials and the terraform toolchain.

        Raises:
            PreconditionError: If anything required is missing
        """
        identity = self.credential_check(aws_profile=self.aws_profile, region=self.provisioner.region)
        logger.info(f"Using AWS account {identity.get('account_id')}")
        self.runner.check_preconditions()
        return identity

    def run(self, dry_run: bool = False, skip_bootstrap: bool = False) -> ProvisionReport:
        """Provision the stack.

        Args:
            dry_run: Stop after terraform plan
            skip_bootstrap: Reuse the bucket recorded in the metadata file

        Returns:
            ProvisionReport

        Raises:
            PreconditionError: Credentials, terraform or metadata missing
            BucketError: Bucket could not be checked or created
            RetryExhaustedError: Versioning could not be enabled
            TerraformError: init, validate, plan or apply failed
        """
        report = ProvisionReport(planned_only=dry_run)

        identity = self.check_preconditions()
        report.account_id = identity.get("account_id")
        report.steps.append("preconditions")

        if skip_bootstrap:
            metadata = self.metadata_store.read()
            if metadata is None:
                raise PreconditionError(
                    f"Metadata file {self.metadata_store.path} not found; run bootstrap first"
                )
            bucket_name, region = metadata.bucket_name, metadata.region
        else:
            report.bucket = self.provisioner.provision(metadata_store=self.metadata_store)
            bucket_name, region = self.provisioner.bucket_name, self.provisioner.region
            report.steps.append("bootstrap")

        logger.info("Initializing Terraform...")
        self.runner.init(
            backend_config=backend_config(bucket_name, self.state_key, region, self.aws_profile),
            reconfigure=True,
        )
        report.steps.append("init")

        logger.info("Validating Terraform configuration...")
        self.runner.validate()
        report.steps.append("validate")

        if dry_run:
            logger.info("Dry run: planning only")
            self.runner.plan()
            report.steps.append("plan")
            return report

        logger.info("Applying Terraform configuration...")
        self.runner.apply()
        report.applied = True
        report.steps.append("apply")

        result = self.runner.output()
        if result.ok:
            report.outputs = result.stdout
            report.steps.append("output")
        else:
            logger.warning("terraform output failed, ignoring")

        return report
