"""AWS resource deletion strategies.

Maps resource types to their deletion handlers with proper error handling
and retry logic. Handlers perform whatever detaching a type needs before its
delete call succeeds (detach an internet gateway, empty a hosted zone, strip
policies from a role).
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from ..aws.client import create_boto_client
from ..models.tagged_resource import TaggedResource

logger = logging.getLogger(__name__)

# Error codes meaning the resource is already gone
NOT_FOUND_CODES = {
    "InvalidInstanceID.NotFound",
    "InvalidAllocationID.NotFound",
    "InvalidAssociationID.NotFound",
    "InvalidRouteTableID.NotFound",
    "InvalidInternetGatewayID.NotFound",
    "InvalidSubnetID.NotFound",
    "InvalidGroup.NotFound",
    "InvalidVpcID.NotFound",
    "InvalidKeyPair.NotFound",
    "InvalidLaunchTemplateId.NotFound",
    "NatGatewayNotFound",
    "NoSuchEntity",
    "NoSuchHostedZone",
    "LoadBalancerNotFound",
    "TargetGroupNotFound",
    "ResourceNotFoundException",
    "NotFoundException",
}

# Error codes meaning something still depends on the resource
DEPENDENCY_CODES = {
    "DependencyViolation",
    "ResourceInUse",
    "ResourceInUseException",
    "DeleteConflict",
    "HostedZoneNotEmpty",
    "ScalingActivityInProgress",
}

# Resource types that live in IAM/Route53 and ignore the region
GLOBAL_SERVICES = {"iam", "route53"}

KMS_PENDING_WINDOW_DAYS = 7

# Route53 caps a ChangeBatch at 1000 changes and 32000 characters of record values
ROUTE53_CHANGE_BATCH_SIZE = 100


def error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "Unknown")


def error_message(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Message", str(error))


class ResourceDeleter:
    """AWS resource deletion orchestrator.

    Handles deletion of the resource types tag-based discovery can return.
    Implements retry logic for dependency violations and treats already
    deleted resources as success.

    Attributes:
        aws_profile: AWS profile name (optional)
        max_retries: Attempts per resource when dependencies are still present
        wait: Wait for slow deletions (NAT gateways, instances, load balancers) to finish
    """

    # resource_type -> (service, handler method name)
    DELETION_METHODS = {
        "AWS::AutoScaling::AutoScalingGroup": ("autoscaling", "_delete_auto_scaling_group"),
        "AWS::Route53::HostedZone": ("route53", "_delete_hosted_zone"),
        "AWS::ElasticLoadBalancingV2::LoadBalancer": ("elbv2", "_delete_load_balancer"),
        "AWS::ElasticLoadBalancing::LoadBalancer": ("elb", "_delete_classic_load_balancer"),
        "AWS::ElasticLoadBalancingV2::TargetGroup": ("elbv2", "_delete_target_group"),
        "AWS::CertificateManager::Certificate": ("acm", "_delete_certificate"),
        "AWS::EC2::Instance": ("ec2", "_terminate_instance"),
        "AWS::EC2::LaunchTemplate": ("ec2", "_delete_launch_template"),
        "AWS::EC2::NatGateway": ("ec2", "_delete_nat_gateway"),
        "AWS::EC2::EIP": ("ec2", "_release_address"),
        "AWS::EC2::RouteTable": ("ec2", "_delete_route_table"),
        "AWS::EC2::InternetGateway": ("ec2", "_delete_internet_gateway"),
        "AWS::EC2::Subnet": ("ec2", "_delete_subnet"),
        "AWS::EC2::SecurityGroup": ("ec2", "_delete_security_group"),
        "AWS::EC2::VPC": ("ec2", "_delete_vpc"),
        "AWS::EC2::KeyPair": ("ec2", "_delete_key_pair"),
        "AWS::KMS::Key": ("kms", "_schedule_key_deletion"),
        "AWS::SecretsManager::Secret": ("secretsmanager", "_delete_secret"),
        "AWS::IAM::InstanceProfile": ("iam", "_delete_instance_profile"),
        "AWS::IAM::Role": ("iam", "_delete_role"),
    }

    def __init__(
        self,
        aws_profile: Optional[str] = None,
        max_retries: int = 3,
        wait: bool = True,
        client_factory: Callable[..., Any] = create_boto_client,
    ):
        """Initialize resource deleter.

        Args:
            aws_profile: AWS profile name (optional)
            max_retries: Maximum number of retry attempts (default: 3)
            wait: Block until slow deletions complete (default: True)
            client_factory: boto3 client factory (replaceable in tests)
        """
        self.aws_profile = aws_profile
        self.max_retries = max_retries
        self.wait = wait
        self._client_factory = client_factory

    def supports(self, resource_type: str) -> bool:
        return resource_type in self.DELETION_METHODS

    def delete_resource(self, resource: TaggedResource) -> tuple[bool, Optional[str]]:
        """Delete an AWS resource.

        Args:
            resource: Resource found by tag-based discovery

        Returns:
            Tuple of (success: bool, error_message: Optional[str])
        """
        if resource.resource_type not in self.DELETION_METHODS:
            error_msg = f"Unsupported resource type: {resource.resource_type}"
            logger.warning(error_msg)
            return (False, error_msg)

        service, method = self.DELETION_METHODS[resource.resource_type]

        for attempt in range(self.max_retries):
            success, error = self._attempt_deletion(service, method, resource)

            if success:
                logger.info(f"Deleted {resource.resource_type}: {resource.display_name}")
                return (True, None)

            if error and error.startswith("DependencyViolation") and attempt < self.max_retries - 1:
                wait_time = 2**attempt
                logger.debug(
                    f"Dependency violation for {resource.resource_id}, "
                    f"retrying in {wait_time}s (attempt {attempt + 1}/{self.max_retries})"
                )
                time.sleep(wait_time)
                continue

            if error and error.startswith("DependencyViolation"):
                break

            return (False, error)

        error_msg = (
            f"DependencyViolation: {resource.resource_type} {resource.resource_id} "
            f"still has dependencies after {self.max_retries} attempts"
        )
        logger.error(error_msg)
        return (False, error_msg)

    def _attempt_deletion(self, service: str, method: str, resource: TaggedResource) -> tuple[bool, Optional[str]]:
        """Attempt a single deletion.

        Returns:
            Tuple of (success: bool, error_message: Optional[str]); dependency
            failures are prefixed with "DependencyViolation"
        """
        try:
            region = None if service in GLOBAL_SERVICES else resource.region
            client = self._client_factory(
                service_name=service,
                region_name=region,
                profile_name=self.aws_profile,
            )
            getattr(self, method)(client, resource)
            return (True, None)

        except ClientError as e:
            code = error_code(e)
            message = error_message(e)

            if code in NOT_FOUND_CODES or code.endswith(".NotFound"):
                logger.info(f"Resource {resource.resource_id} already deleted")
                return (True, None)
            if code in DEPENDENCY_CODES:
                logger.debug(f"Dependency violation for {resource.resource_id}: {message}")
                return (False, f"DependencyViolation: {code}: {message}")

            logger.error(f"Failed to delete {resource.resource_id}: {code} - {message}")
            return (False, f"{code}: {message}")

        except BotoCoreError as e:
            logger.error(f"Failed to delete {resource.resource_id}: {e}")
            return (False, f"BotoCoreError: {e}")

        except Exception as e:
            logger.exception(f"Unexpected error deleting {resource.resource_type} {resource.resource_id}")
            return (False, f"UnexpectedError: {e}")

    def _wait(self, client: Any, waiter_name: str, label: str, **kwargs: Any) -> None:
        if not self.wait:
            return
        try:
            client.get_waiter(waiter_name).wait(**kwargs)
        except WaiterError as e:
            # The delete call was accepted; dependents will retry on DependencyViolation
            logger.warning(f"Timed out waiting for {label}: {e}")

    # ------------------------------------------------------------------
    # Handlers: (client, resource) -> None, raise ClientError on failure
    # ------------------------------------------------------------------

    def _delete_auto_scaling_group(self, client: Any, resource: TaggedResource) -> None:
        client.delete_auto_scaling_group(AutoScalingGroupName=resource.resource_id, ForceDelete=True)

    def _delete_hosted_zone(self, client: Any, resource: TaggedResource) -> None:
        # Every record except the zone's own NS and SOA must go first
        changes = []
        for page in client.get_paginator("list_resource_record_sets").paginate(HostedZoneId=resource.resource_id):
            for record in page.get("ResourceRecordSets", []):
                if record["Type"] in ("NS", "SOA"):
                    continue
                changes.append({"Action": "DELETE", "ResourceRecordSet": record})

        if changes:
            logger.debug(f"Deleting {len(changes)} record(s) from hosted zone {resource.resource_id}")
        for start in range(0, len(changes), ROUTE53_CHANGE_BATCH_SIZE):
            client.change_resource_record_sets(
                HostedZoneId=resource.resource_id,
                ChangeBatch={"Changes": changes[start : start + ROUTE53_CHANGE_BATCH_SIZE]},
            )
        client.delete_hosted_zone(Id=resource.resource_id)

    def _delete_load_balancer(self, client: Any, resource: TaggedResource) -> None:
        client.delete_load_balancer(LoadBalancerArn=resource.resource_id)
        self._wait(client, "load_balancers_deleted", resource.display_name, LoadBalancerArns=[resource.resource_id])

    def _delete_classic_load_balancer(self, client: Any, resource: TaggedResource) -> None:
        client.delete_load_balancer(LoadBalancerName=resource.resource_id)

    def _delete_target_group(self, client: Any, resource: TaggedResource) -> None:
        client.delete_target_group(TargetGroupArn=resource.resource_id)

    def _delete_certificate(self, client: Any, resource: TaggedResource) -> None:
        client.delete_certificate(CertificateArn=resource.resource_id)

    def _terminate_instance(self, client: Any, resource: TaggedResource) -> None:
        client.terminate_instances(InstanceIds=[resource.resource_id])
        self._wait(client, "instance_terminated", resource.display_name, InstanceIds=[resource.resource_id])

    def _delete_launch_template(self, client: Any, resource: TaggedResource) -> None:
        client.delete_launch_template(LaunchTemplateId=resource.resource_id)

    def _delete_nat_gateway(self, client: Any, resource: TaggedResource) -> None:
        client.delete_nat_gateway(NatGatewayId=resource.resource_id)
        # The Elastic IP and subnet stay in use until the gateway reaches "deleted"
        self._wait(client, "nat_gateway_deleted", resource.display_name, NatGatewayIds=[resource.resource_id])

    def _release_address(self, client: Any, resource: TaggedResource) -> None:
        association_id = resource.extra.get("association_id")
        if association_id:
            try:
                client.disassociate_address(AssociationId=association_id)
            except ClientError as e:
                if not error_code(e).endswith(".NotFound"):
                    raise
        client.release_address(AllocationId=resource.resource_id)

    def _delete_route_table(self, client: Any, resource: TaggedResource) -> None:
        for association_id in resource.extra.get("association_ids", []):
            try:
                client.disassociate_route_table(AssociationId=association_id)
            except ClientError as e:
                if not error_code(e).endswith(".NotFound"):
                    raise
        client.delete_route_table(RouteTableId=resource.resource_id)

    def _delete_internet_gateway(self, client: Any, resource: TaggedResource) -> None:
        for vpc_id in resource.extra.get("vpc_ids", []):
            try:
                client.detach_internet_gateway(InternetGatewayId=resource.resource_id, VpcId=vpc_id)
            except ClientError as e:
                if error_code(e) != "Gateway.NotAttached":
                    raise
        client.delete_internet_gateway(InternetGatewayId=resource.resource_id)

    def _delete_subnet(self, client: Any, resource: TaggedResource) -> None:
        client.delete_subnet(SubnetId=resource.resource_id)

    def _delete_security_group(self, client: Any, resource: TaggedResource) -> None:
        client.delete_security_group(GroupId=resource.resource_id)

    def _delete_vpc(self, client: Any, resource: TaggedResource) -> None:
        client.delete_vpc(VpcId=resource.resource_id)

    def _delete_key_pair(self, client: Any, resource: TaggedResource) -> None:
        client.delete_key_pair(KeyName=resource.resource_id)

    def _schedule_key_deletion(self, client: Any, resource: TaggedResource) -> None:
        try:
            client.schedule_key_deletion(KeyId=resource.resource_id, PendingWindowInDays=KMS_PENDING_WINDOW_DAYS)
        except ClientError as e:
            # Already pending deletion
            if error_code(e) != "KMSInvalidStateException":
                raise

    def _delete_secret(self, client: Any, resource: TaggedResource) -> None:
        client.delete_secret(SecretId=resource.resource_id, ForceDeleteWithoutRecovery=True)

    def _delete_instance_profile(self, client: Any, resource: TaggedResource) -> None:
        profile = client.get_instance_profile(InstanceProfileName=resource.resource_id)["InstanceProfile"]
        for role in profile.get("Roles", []):
            client.remove_role_from_instance_profile(
                InstanceProfileName=resource.resource_id,
                RoleName=role["RoleName"],
            )
        client.delete_instance_profile(InstanceProfileName=resource.resource_id)

    def _delete_role(self, client: Any, resource: TaggedResource) -> None:
        role_name = resource.resource_id

        for page in client.get_paginator("list_attached_role_policies").paginate(RoleName=role_name):
            for policy in page.get("AttachedPolicies", []):
                logger.debug(f"Detaching policy {policy['PolicyArn']} from role {role_name}")
                client.detach_role_policy(RoleName=role_name, PolicyArn=policy["PolicyArn"])

        for page in client.get_paginator("list_role_policies").paginate(RoleName=role_name):
            for policy_name in page.get("PolicyNames", []):
                logger.debug(f"Deleting inline policy {policy_name} from role {role_name}")
                client.delete_role_policy(RoleName=role_name, PolicyName=policy_name)

        for page in client.get_paginator("list_instance_profiles_for_role").paginate(RoleName=role_name):
            for profile in page.get("InstanceProfiles", []):
                client.remove_role_from_instance_profile(
                    InstanceProfileName=profile["InstanceProfileName"],
                    RoleName=role_name,
                )

        client.delete_role(RoleName=role_name)
