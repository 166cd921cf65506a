"""Tests for ResourceDeleter class.

Test coverage for AWS resource deletion with a mocked boto3 client factory.
"""

from __future__ import annotations

from unittest.mock import Mock, call, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, WaiterError

from src.models.tagged_resource import TaggedResource
from src.teardown.deleter import ROUTE53_CHANGE_BATCH_SIZE, ResourceDeleter


def client_error(code: str, message: str = "error", operation: str = "Delete") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def resource(resource_type: str, resource_id: str, region: str = "eu-west-3", **extra) -> TaggedResource:
    return TaggedResource(resource_type=resource_type, resource_id=resource_id, region=region, extra=extra)


def paginators(pages_by_operation: dict[str, list[dict]]) -> Mock:
    """Build a get_paginator side effect returning canned pages per operation."""

    def get_paginator(name: str) -> Mock:
        paginator = Mock()
        paginator.paginate.return_value = pages_by_operation.get(name, [])
        return paginator

    return Mock(side_effect=get_paginator)


@pytest.fixture
def client() -> Mock:
    return Mock()


@pytest.fixture
def factory(client: Mock) -> Mock:
    return Mock(return_value=client)


class TestResourceDeleter:
    """Test suite for ResourceDeleter class."""

    def test_init_defaults(self) -> None:
        deleter = ResourceDeleter()

        assert deleter.aws_profile is None
        assert deleter.max_retries == 3
        assert deleter.wait is True

    def test_unsupported_type(self, factory: Mock) -> None:
        deleter = ResourceDeleter(client_factory=factory)

        success, error = deleter.delete_resource(resource("AWS::Lambda::Function", "fn"))

        assert success is False
        assert error == "Unsupported resource type: AWS::Lambda::Function"
        factory.assert_not_called()

    def test_terminate_instance_waits(self, factory: Mock, client: Mock) -> None:
        deleter = ResourceDeleter(aws_profile="dev", client_factory=factory)

        success, error = deleter.delete_resource(resource("AWS::EC2::Instance", "i-123"))

        assert (success, error) == (True, None)
        factory.assert_called_once_with(service_name="ec2", region_name="eu-west-3", profile_name="dev")
        client.terminate_instances.assert_called_once_with(InstanceIds=["i-123"])
        client.get_waiter.assert_called_once_with("instance_terminated")
        client.get_waiter.return_value.wait.assert_called_once_with(InstanceIds=["i-123"])

    def test_no_wait_skips_waiters(self, factory: Mock, client: Mock) -> None:
        deleter = ResourceDeleter(wait=False, client_factory=factory)

        deleter.delete_resource(resource("AWS::EC2::NatGateway", "nat-1"))

        client.delete_nat_gateway.assert_called_once_with(NatGatewayId="nat-1")
        client.get_waiter.assert_not_called()

    def test_waiter_timeout_is_not_a_failure(self, factory: Mock, client: Mock) -> None:
        client.get_waiter.return_value.wait.side_effect = WaiterError("NatGatewayDeleted", "Max attempts exceeded", {})
        deleter = ResourceDeleter(client_factory=factory)

        success, _ = deleter.delete_resource(resource("AWS::EC2::NatGateway", "nat-1"))

        assert success is True

    def test_global_services_have_no_region(self, factory: Mock, client: Mock) -> None:
        client.get_paginator = paginators({})
        deleter = ResourceDeleter(client_factory=factory)

        deleter.delete_resource(resource("AWS::IAM::Role", "jenkins-role", region="global"))

        factory.assert_called_once_with(service_name="iam", region_name=None, profile_name=None)

    def test_not_found_counts_as_success(self, factory: Mock, client: Mock) -> None:
        client.delete_subnet.side_effect = client_error("InvalidSubnetID.NotFound")
        deleter = ResourceDeleter(client_factory=factory)

        assert deleter.delete_resource(resource("AWS::EC2::Subnet", "subnet-1")) == (True, None)

    @patch("src.teardown.deleter.time.sleep")
    def test_dependency_violation_retried_with_backoff(self, mock_sleep: Mock, factory: Mock, client: Mock) -> None:
        client.delete_vpc.side_effect = [client_error("DependencyViolation", "has dependencies"), {}]
        deleter = ResourceDeleter(client_factory=factory)

        success, error = deleter.delete_resource(resource("AWS::EC2::VPC", "vpc-1"))

        assert (success, error) == (True, None)
        assert client.delete_vpc.call_count == 2
        mock_sleep.assert_called_once_with(1)

    @patch("src.teardown.deleter.time.sleep")
    def test_dependency_violation_exhausted(self, mock_sleep: Mock, factory: Mock, client: Mock) -> None:
        client.delete_security_group.side_effect = client_error("DependencyViolation", "in use")
        deleter = ResourceDeleter(max_retries=3, client_factory=factory)

        success, error = deleter.delete_resource(resource("AWS::EC2::SecurityGroup", "sg-1"))

        assert success is False
        assert error.startswith("DependencyViolation:")
        assert "after 3 attempts" in error
        assert client.delete_security_group.call_count == 3
        assert mock_sleep.call_args_list == [call(1), call(2)]

    @patch("src.teardown.deleter.time.sleep")
    def test_other_errors_not_retried(self, mock_sleep: Mock, factory: Mock, client: Mock) -> None:
        client.delete_key_pair.side_effect = client_error("UnauthorizedOperation", "not allowed")
        deleter = ResourceDeleter(client_factory=factory)

        success, error = deleter.delete_resource(resource("AWS::EC2::KeyPair", "demo-key"))

        assert success is False
        assert error == "UnauthorizedOperation: not allowed"
        client.delete_key_pair.assert_called_once()
        mock_sleep.assert_not_called()

    def test_botocore_error_is_returned(self, factory: Mock, client: Mock) -> None:
        client.delete_subnet.side_effect = EndpointConnectionError(endpoint_url="https://ec2.example")
        deleter = ResourceDeleter(client_factory=factory)

        success, error = deleter.delete_resource(resource("AWS::EC2::Subnet", "subnet-1"))

        assert success is False
        assert error.startswith("BotoCoreError:")

    def test_unexpected_error_is_returned_not_raised(self, factory: Mock, client: Mock) -> None:
        client.terminate_instances.side_effect = ValueError("unexpected response shape")
        deleter = ResourceDeleter(client_factory=factory, wait=False)

        success, error = deleter.delete_resource(resource("AWS::EC2::Instance", "i-1"))

        assert success is False
        assert error == "UnexpectedError: unexpected response shape"


class TestDeletionHandlers:
    """Test suite for type-specific pre-steps."""

    def test_hosted_zone_records_deleted_first(self, factory: Mock, client: Mock) -> None:
        a_record = {"Name": "app.example.com.", "Type": "A", "TTL": 60, "ResourceRecords": [{"Value": "1.2.3.4"}]}
        client.get_paginator = paginators(
            {
                "list_resource_record_sets": [
                    {
                        "ResourceRecordSets": [
                            {"Name": "example.com.", "Type": "NS"},
                            {"Name": "example.com.", "Type": "SOA"},
                            a_record,
                        ]
                    }
                ]
            }
        )
        deleter = ResourceDeleter(client_factory=factory)

        success, _ = deleter.delete_resource(resource("AWS::Route53::HostedZone", "Z123", region="global"))

        assert success is True
        client.change_resource_record_sets.assert_called_once_with(
            HostedZoneId="Z123",
            ChangeBatch={"Changes": [{"Action": "DELETE", "ResourceRecordSet": a_record}]},
        )
        client.delete_hosted_zone.assert_called_once_with(Id="Z123")

    def test_hosted_zone_records_deleted_in_batches(self, factory: Mock, client: Mock) -> None:
        records = [
            {"Name": f"host{i}.example.com.", "Type": "A", "TTL": 60, "ResourceRecords": [{"Value": "10.0.0.1"}]}
            for i in range(ROUTE53_CHANGE_BATCH_SIZE * 2 + 1)
        ]
        client.get_paginator = paginators({"list_resource_record_sets": [{"ResourceRecordSets": records}]})
        deleter = ResourceDeleter(client_factory=factory)

        success, _ = deleter.delete_resource(resource("AWS::Route53::HostedZone", "Z123", region="global"))

        assert success is True
        batches = [c.kwargs["ChangeBatch"]["Changes"] for c in client.change_resource_record_sets.call_args_list]
        assert [len(b) for b in batches] == [ROUTE53_CHANGE_BATCH_SIZE, ROUTE53_CHANGE_BATCH_SIZE, 1]
        assert batches[-1][0]["ResourceRecordSet"] == records[-1]
        client.delete_hosted_zone.assert_called_once_with(Id="Z123")

    def test_internet_gateway_detached_first(self, factory: Mock, client: Mock) -> None:
        deleter = ResourceDeleter(client_factory=factory)

        deleter.delete_resource(resource("AWS::EC2::InternetGateway", "igw-1", vpc_ids=["vpc-1"]))

        client.detach_internet_gateway.assert_called_once_with(InternetGatewayId="igw-1", VpcId="vpc-1")
        client.delete_internet_gateway.assert_called_once_with(InternetGatewayId="igw-1")

    def test_internet_gateway_not_attached_is_ignored(self, factory: Mock, client: Mock) -> None:
        client.detach_internet_gateway.side_effect = client_error("Gateway.NotAttached")
        deleter = ResourceDeleter(client_factory=factory)

        success, _ = deleter.delete_resource(resource("AWS::EC2::InternetGateway", "igw-1", vpc_ids=["vpc-1"]))

        assert success is True
        client.delete_internet_gateway.assert_called_once()

    def test_route_table_disassociated_first(self, factory: Mock, client: Mock) -> None:
        deleter = ResourceDeleter(client_factory=factory)

        deleter.delete_resource(resource("AWS::EC2::RouteTable", "rtb-1", association_ids=["rtbassoc-1", "rtbassoc-2"]))

        assert client.disassociate_route_table.call_args_list == [
            call(AssociationId="rtbassoc-1"),
            call(AssociationId="rtbassoc-2"),
        ]
        client.delete_route_table.assert_called_once_with(RouteTableId="rtb-1")

    def test_elastic_ip_disassociated_then_released(self, factory: Mock, client: Mock) -> None:
        deleter = ResourceDeleter(client_factory=factory)

        deleter.delete_resource(resource("AWS::EC2::EIP", "eipalloc-1", association_id="eipassoc-1"))

        client.disassociate_address.assert_called_once_with(AssociationId="eipassoc-1")
        client.release_address.assert_called_once_with(AllocationId="eipalloc-1")

    def test_role_policies_and_profiles_removed_first(self, factory: Mock, client: Mock) -> None:
        client.get_paginator = paginators(
            {
                "list_attached_role_policies": [{"AttachedPolicies": [{"PolicyArn": "arn:aws:iam::aws:policy/ReadOnly"}]}],
                "list_role_policies": [{"PolicyNames": ["inline-vault"]}],
                "list_instance_profiles_for_role": [{"InstanceProfiles": [{"InstanceProfileName": "jenkins-profile"}]}],
            }
        )
        deleter = ResourceDeleter(client_factory=factory)

        success, _ = deleter.delete_resource(resource("AWS::IAM::Role", "jenkins-role", region="global"))

        assert success is True
        client.detach_role_policy.assert_called_once_with(
            RoleName="jenkins-role", PolicyArn="arn:aws:iam::aws:policy/ReadOnly"
        )
        client.delete_role_policy.assert_called_once_with(RoleName="jenkins-role", PolicyName="inline-vault")
        client.remove_role_from_instance_profile.assert_called_once_with(
            InstanceProfileName="jenkins-profile", RoleName="jenkins-role"
        )
        client.delete_role.assert_called_once_with(RoleName="jenkins-role")

    def test_instance_profile_roles_removed_first(self, factory: Mock, client: Mock) -> None:
        client.get_instance_profile.return_value = {"InstanceProfile": {"Roles": [{"RoleName": "vault-role"}]}}
        deleter = ResourceDeleter(client_factory=factory)

        deleter.delete_resource(resource("AWS::IAM::InstanceProfile", "vault-profile", region="global"))

        client.remove_role_from_instance_profile.assert_called_once_with(
            InstanceProfileName="vault-profile", RoleName="vault-role"
        )
        client.delete_instance_profile.assert_called_once_with(InstanceProfileName="vault-profile")

    def test_kms_key_scheduled_with_window(self, factory: Mock, client: Mock) -> None:
        deleter = ResourceDeleter(client_factory=factory)

        deleter.delete_resource(resource("AWS::KMS::Key", "key-1"))

        client.schedule_key_deletion.assert_called_once_with(KeyId="key-1", PendingWindowInDays=7)

    def test_kms_key_already_pending_is_success(self, factory: Mock, client: Mock) -> None:
        client.schedule_key_deletion.side_effect = client_error("KMSInvalidStateException")
        deleter = ResourceDeleter(client_factory=factory)

        assert deleter.delete_resource(resource("AWS::KMS::Key", "key-1")) == (True, None)

    def test_secret_force_deleted(self, factory: Mock, client: Mock) -> None:
        deleter = ResourceDeleter(client_factory=factory)

        deleter.delete_resource(resource("AWS::SecretsManager::Secret", "arn:secret"))

        client.delete_secret.assert_called_once_with(SecretId="arn:secret", ForceDeleteWithoutRecovery=True)

    def test_auto_scaling_group_force_deleted(self, factory: Mock, client: Mock) -> None:
        deleter = ResourceDeleter(client_factory=factory)

        deleter.delete_resource(resource("AWS::AutoScaling::AutoScalingGroup", "jenkins-asg"))

        client.delete_auto_scaling_group.assert_called_once_with(AutoScalingGroupName="jenkins-asg", ForceDelete=True)
