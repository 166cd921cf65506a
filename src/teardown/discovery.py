"""Tag-based resource discovery.

Finds every resource carrying ``<tag_key>=<project_tag>`` by asking the
provider directly, without consulting any Terraform state. Each resource type
has its own collector; a collector that fails is logged and skipped so one
unavailable service never hides the rest.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..aws.client import create_boto_client
from ..models.tagged_resource import TaggedResource, tags_to_dict

logger = logging.getLogger(__name__)

GLOBAL_REGION = "global"

# elbv2/elb describe_tags accept at most 20 resources per call
TAG_BATCH_SIZE = 20

LIVE_INSTANCE_STATES = ["pending", "running", "stopping", "stopped"]
LIVE_NAT_STATES = ["pending", "available"]


def _chunks(items: list, size: int) -> list[list]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class ResourceDiscovery:
    """Enumerates project resources by tag.

    Attributes:
        project_tag: Tag value identifying the project
        region: Region to search (IAM and Route53 are global)
        aws_profile: AWS profile (optional)
        tag_key: Tag key (default "Project")
    """

    def __init__(
        self,
        project_tag: str,
        region: str,
        aws_profile: Optional[str] = None,
        tag_key: str = "Project",
        client_factory: Callable[..., Any] = create_boto_client,
    ) -> None:
        self.project_tag = project_tag
        self.region = region
        self.aws_profile = aws_profile
        self.tag_key = tag_key
        self._client_factory = client_factory
        self._clients: dict[str, Any] = {}

        # (resource label, collector)
        self.collectors: list[tuple[str, Callable[[], list[TaggedResource]]]] = [
            ("Route53 hosted zones", self.find_hosted_zones),
            ("ACM certificates", self.find_certificates),
            ("Auto Scaling groups", self.find_auto_scaling_groups),
            ("load balancers", self.find_load_balancers),
            ("classic load balancers", self.find_classic_load_balancers),
            ("target groups", self.find_target_groups),
            ("launch templates", self.find_launch_templates),
            ("EC2 instances", self.find_instances),
            ("NAT gateways", self.find_nat_gateways),
            ("Elastic IPs", self.find_addresses),
            ("route tables", self.find_route_tables),
            ("internet gateways", self.find_internet_gateways),
            ("subnets", self.find_subnets),
            ("security groups", self.find_security_groups),
            ("VPCs", self.find_vpcs),
            ("key pairs", self.find_key_pairs),
            ("KMS keys", self.find_kms_keys),
            ("Secrets Manager secrets", self.find_secrets),
            ("IAM instance profiles", self.find_instance_profiles),
            ("IAM roles", self.find_roles),
        ]

    def _client(self, service: str) -> Any:
        if service not in self._clients:
            self._clients[service] = self._client_factory(
                service_name=service,
                region_name=self.region,
                profile_name=self.aws_profile,
            )
        return self._clients[service]

    def _matches(self, tags: dict[str, str]) -> bool:
        return tags.get(self.tag_key) == self.project_tag

    @property
    def _ec2_filter(self) -> list[dict]:
        return [{"Name": f"tag:{self.tag_key}", "Values": [self.project_tag]}]

    def discover(self) -> list[TaggedResource]:
        """Run every collector.

        Returns:
            All tagged resources found (unordered)
        """
        found: list[TaggedResource] = []
        for label, collector in self.collectors:
            try:
                resources = collector()
            except ClientError as e:
                code = e.response.get("Error", {}).get("Code", "Unknown")
                logger.warning(f"Skipping {label}: {code}")
                continue
            except BotoCoreError as e:
                logger.warning(f"Skipping {label}: {e}")
                continue

            if resources:
                logger.info(f"Found {len(resources)} {label}")
            found.extend(resources)

        logger.debug(f"Discovered {len(found)} resources tagged {self.tag_key}={self.project_tag}")
        return found

    # ------------------------------------------------------------------
    # Global services
    # ------------------------------------------------------------------

    def find_hosted_zones(self) -> list[TaggedResource]:
        client = self._client("route53")
        resources = []
        for page in client.get_paginator("list_hosted_zones").paginate():
            for zone in page.get("HostedZones", []):
                zone_id = zone["Id"].split("/")[-1]
                response = client.list_tags_for_resource(ResourceType="hostedzone", ResourceId=zone_id)
                tags = tags_to_dict(response.get("ResourceTagSet", {}).get("Tags"))
                if not self._matches(tags):
                    continue
                resources.append(
                    TaggedResource(
                        resource_type="AWS::Route53::HostedZone",
                        resource_id=zone_id,
                        region=GLOBAL_REGION,
                        arn=f"arn:aws:route53:::hostedzone/{zone_id}",
                        name=zone.get("Name"),
                        tags=tags,
                    )
                )
        return resources

    def find_roles(self) -> list[TaggedResource]:
        client = self._client("iam")
        resources = []
        for page in client.get_paginator("list_roles").paginate():
            for role in page.get("Roles", []):
                if role.get("Path", "").startswith("/aws-service-role/"):
                    continue
                tags = tags_to_dict(client.list_role_tags(RoleName=role["RoleName"]).get("Tags"))
                if not self._matches(tags):
                    continue
                resources.append(
                    TaggedResource(
                        resource_type="AWS::IAM::Role",
                        resource_id=role["RoleName"],
                        region=GLOBAL_REGION,
                        arn=role.get("Arn"),
                        name=role["RoleName"],
                        tags=tags,
                    )
                )
        return resources

    def find_instance_profiles(self) -> list[TaggedResource]:
        client = self._client("iam")
        resources = []
        for page in client.get_paginator("list_instance_profiles").paginate():
            for profile in page.get("InstanceProfiles", []):
                name = profile["InstanceProfileName"]
                tags = tags_to_dict(client.list_instance_profile_tags(InstanceProfileName=name).get("Tags"))
                if not self._matches(tags):
                    continue
                resources.append(
                    TaggedResource(
                        resource_type="AWS::IAM::InstanceProfile",
                        resource_id=name,
                        region=GLOBAL_REGION,
                        arn=profile.get("Arn"),
                        name=name,
                        tags=tags,
                        extra={"role_names": [r["RoleName"] for r in profile.get("Roles", [])]},
                    )
                )
        return resources

    # ------------------------------------------------------------------
    # Load balancing and certificates
    # ------------------------------------------------------------------

    def find_certificates(self) -> list[TaggedResource]:
        client = self._client("acm")
        resources = []
        for page in client.get_paginator("list_certificates").paginate():
            for cert in page.get("CertificateSummaryList", []):
                arn = cert["CertificateArn"]
                tags = tags_to_dict(client.list_tags_for_certificate(CertificateArn=arn).get("Tags"))
                if not self._matches(tags):
                    continue
                resources.append(
                    TaggedResource(
                        resource_type="AWS::CertificateManager::Certificate",
                        resource_id=arn,
                        region=self.region,
                        arn=arn,
                        name=cert.get("DomainName"),
                        tags=tags,
                    )
                )
        return resources

    def find_load_balancers(self) -> list[TaggedResource]:
        client = self._client("elbv2")
        balancers = {}
        for page in client.get_paginator("describe_load_balancers").paginate():
            for lb in page.get("LoadBalancers", []):
                balancers[lb["LoadBalancerArn"]] = lb

        resources = []
        for arn, tags in self._elbv2_tags(client, list(balancers)).items():
            lb = balancers[arn]
            resources.append(
                TaggedResource(
                    resource_type="AWS::ElasticLoadBalancingV2::LoadBalancer",
                    resource_id=arn,
                    region=self.region,
                    arn=arn,
                    name=lb.get("LoadBalancerName"),
                    tags=tags,
                    extra={
                        "vpc_id": lb.get("VpcId"),
                        "security_group_ids": lb.get("SecurityGroups", []),
                        "certificate_arns": self._listener_certificates(client, arn),
                    },
                )
            )
        return resources

    def _listener_certificates(self, client: Any, lb_arn: str) -> list[str]:
        certs = []
        for listener in client.describe_listeners(LoadBalancerArn=lb_arn).get("Listeners", []):
            for cert in listener.get("Certificates", []):
                certs.append(cert["CertificateArn"])
        return certs

    def find_target_groups(self) -> list[TaggedResource]:
        client = self._client("elbv2")
        groups = {}
        for page in client.get_paginator("describe_target_groups").paginate():
            for tg in page.get("TargetGroups", []):
                groups[tg["TargetGroupArn"]] = tg

        resources = []
        for arn, tags in self._elbv2_tags(client, list(groups)).items():
            tg = groups[arn]
            resources.append(
                TaggedResource(
                    resource_type="AWS::ElasticLoadBalancingV2::TargetGroup",
                    resource_id=arn,
                    region=self.region,
                    arn=arn,
                    name=tg.get("TargetGroupName"),
                    tags=tags,
                    extra={"vpc_id": tg.get("VpcId")},
                )
            )
        return resources

    def _elbv2_tags(self, client: Any, arns: list[str]) -> dict[str, dict[str, str]]:
        """Return arn -> tags for the ARNs carrying the project tag."""
        matched = {}
        for batch in _chunks(arns, TAG_BATCH_SIZE):
            for desc in client.describe_tags(ResourceArns=batch).get("TagDescriptions", []):
                tags = tags_to_dict(desc.get("Tags"))
                if self._matches(tags):
                    matched[desc["ResourceArn"]] = tags
        return matched

    def find_classic_load_balancers(self) -> list[TaggedResource]:
        client = self._client("elb")
        balancers = {}
        for page in client.get_paginator("describe_load_balancers").paginate():
            for lb in page.get("LoadBalancerDescriptions", []):
                balancers[lb["LoadBalancerName"]] = lb

        resources = []
        for batch in _chunks(list(balancers), TAG_BATCH_SIZE):
            for desc in client.describe_tags(LoadBalancerNames=batch).get("TagDescriptions", []):
                tags = tags_to_dict(desc.get("Tags"))
                if not self._matches(tags):
                    continue
                name = desc["LoadBalancerName"]
                resources.append(
                    TaggedResource(
                        resource_type="AWS::ElasticLoadBalancing::LoadBalancer",
                        resource_id=name,
                        region=self.region,
                        name=name,
                        tags=tags,
                        extra={"vpc_id": balancers[name].get("VPCId")},
                    )
                )
        return resources

    def find_auto_scaling_groups(self) -> list[TaggedResource]:
        client = self._client("autoscaling")
        resources = []
        paginator = client.get_paginator("describe_auto_scaling_groups")
        for page in paginator.paginate(Filters=[{"Name": f"tag:{self.tag_key}", "Values": [self.project_tag]}]):
            for group in page.get("AutoScalingGroups", []):
                name = group["AutoScalingGroupName"]
                resources.append(
                    TaggedResource(
                        resource_type="AWS::AutoScaling::AutoScalingGroup",
                        resource_id=name,
                        region=self.region,
                        arn=group.get("AutoScalingGroupARN"),
                        name=name,
                        tags=tags_to_dict(group.get("Tags")),
                    )
                )
        return resources

    # ------------------------------------------------------------------
    # EC2 and networking
    # ------------------------------------------------------------------

    def find_launch_templates(self) -> list[TaggedResource]:
        client = self._client("ec2")
        resources = []
        for page in client.get_paginator("describe_launch_templates").paginate(Filters=self._ec2_filter):
            for lt in page.get("LaunchTemplates", []):
                resources.append(
                    TaggedResource(
                        resource_type="AWS::EC2::LaunchTemplate",
                        resource_id=lt["LaunchTemplateId"],
                        region=self.region,
                        name=lt.get("LaunchTemplateName"),
                        tags=tags_to_dict(lt.get("Tags")),
                    )
                )
        return resources

    def find_instances(self) -> list[TaggedResource]:
        client = self._client("ec2")
        filters = self._ec2_filter + [{"Name": "instance-state-name", "Values": LIVE_INSTANCE_STATES}]
        resources = []
        for page in client.get_paginator("describe_instances").paginate(Filters=filters):
            for reservation in page.get("Reservations", []):
                for instance in reservation.get("Instances", []):
                    tags = tags_to_dict(instance.get("Tags"))
                    resources.append(
                        TaggedResource(
                            resource_type="AWS::EC2::Instance",
                            resource_id=instance["InstanceId"],
                            region=self.region,
                            name=tags.get("Name"),
                            tags=tags,
                            extra={
                                "vpc_id": instance.get("VpcId"),
                                "subnet_id": instance.get("SubnetId"),
                                "security_group_ids": [g["GroupId"] for g in instance.get("SecurityGroups", [])],
                            },
                        )
                    )
        return resources

    def find_nat_gateways(self) -> list[TaggedResource]:
        client = self._client("ec2")
        # describe_nat_gateways names its parameter "Filter", not "Filters"
        filters = self._ec2_filter + [{"Name": "state", "Values": LIVE_NAT_STATES}]
        resources = []
        for page in client.get_paginator("describe_nat_gateways").paginate(Filter=filters):
            for nat in page.get("NatGateways", []):
                tags = tags_to_dict(nat.get("Tags"))
                resources.append(
                    TaggedResource(
                        resource_type="AWS::EC2::NatGateway",
                        resource_id=nat["NatGatewayId"],
                        region=self.region,
                        name=tags.get("Name"),
                        tags=tags,
                        extra={
                            "vpc_id": nat.get("VpcId"),
                            "subnet_id": nat.get("SubnetId"),
                            "allocation_ids": [
                                a["AllocationId"] for a in nat.get("NatGatewayAddresses", []) if a.get("AllocationId")
                            ],
                        },
                    )
                )
        return resources

    def find_addresses(self) -> list[TaggedResource]:
        client = self._client("ec2")
        resources = []
        for address in client.describe_addresses(Filters=self._ec2_filter).get("Addresses", []):
            if "AllocationId" not in address:
                continue
            tags = tags_to_dict(address.get("Tags"))
            resources.append(
                TaggedResource(
                    resource_type="AWS::EC2::EIP",
                    resource_id=address["AllocationId"],
                    region=self.region,
                    name=tags.get("Name") or address.get("PublicIp"),
                    tags=tags,
                    extra={"association_id": address.get("AssociationId")},
                )
            )
        return resources

    def find_route_tables(self) -> list[TaggedResource]:
        client = self._client("ec2")
        resources = []
        for page in client.get_paginator("describe_route_tables").paginate(Filters=self._ec2_filter):
            for table in page.get("RouteTables", []):
                associations = table.get("Associations", [])
                # The main route table goes away with its VPC
                if any(a.get("Main") for a in associations):
                    continue
                tags = tags_to_dict(table.get("Tags"))
                resources.append(
                    TaggedResource(
                        resource_type="AWS::EC2::RouteTable",
                        resource_id=table["RouteTableId"],
                        region=self.region,
                        name=tags.get("Name"),
                        tags=tags,
                        extra={
                            "vpc_id": table.get("VpcId"),
                            "association_ids": [
                                a["RouteTableAssociationId"] for a in associations if a.get("RouteTableAssociationId")
                            ],
                        },
                    )
                )
        return resources

    def find_internet_gateways(self) -> list[TaggedResource]:
        client = self._client("ec2")
        resources = []
        for page in client.get_paginator("describe_internet_gateways").paginate(Filters=self._ec2_filter):
            for igw in page.get("InternetGateways", []):
                tags = tags_to_dict(igw.get("Tags"))
                resources.append(
                    TaggedResource(
                        resource_type="AWS::EC2::InternetGateway",
                        resource_id=igw["InternetGatewayId"],
                        region=self.region,
                        name=tags.get("Name"),
                        tags=tags,
                        extra={"vpc_ids": [a["VpcId"] for a in igw.get("Attachments", []) if a.get("VpcId")]},
                    )
                )
        return resources

    def find_subnets(self) -> list[TaggedResource]:
        client = self._client("ec2")
        resources = []
        for page in client.get_paginator("describe_subnets").paginate(Filters=self._ec2_filter):
            for subnet in page.get("Subnets", []):
                tags = tags_to_dict(subnet.get("Tags"))
                resources.append(
                    TaggedResource(
                        resource_type="AWS::EC2::Subnet",
                        resource_id=subnet["SubnetId"],
                        region=self.region,
                        arn=subnet.get("SubnetArn"),
                        name=tags.get("Name"),
                        tags=tags,
                        extra={"vpc_id": subnet.get("VpcId")},
                    )
                )
        return resources

    def find_security_groups(self) -> list[TaggedResource]:
        client = self._client("ec2")
        resources = []
        for page in client.get_paginator("describe_security_groups").paginate(Filters=self._ec2_filter):
            for group in page.get("SecurityGroups", []):
                if group.get("GroupName") == "default":
                    continue
                resources.append(
                    TaggedResource(
                        resource_type="AWS::EC2::SecurityGroup",
                        resource_id=group["GroupId"],
                        region=self.region,
                        name=group.get("GroupName"),
                        tags=tags_to_dict(group.get("Tags")),
                        extra={"vpc_id": group.get("VpcId")},
                    )
                )
        return resources

    def find_vpcs(self) -> list[TaggedResource]:
        client = self._client("ec2")
        resources = []
        for page in client.get_paginator("describe_vpcs").paginate(Filters=self._ec2_filter):
            for vpc in page.get("Vpcs", []):
                if vpc.get("IsDefault"):
                    continue
                tags = tags_to_dict(vpc.get("Tags"))
                resources.append(
                    TaggedResource(
                        resource_type="AWS::EC2::VPC",
                        resource_id=vpc["VpcId"],
                        region=self.region,
                        name=tags.get("Name"),
                        tags=tags,
                    )
                )
        return resources

    def find_key_pairs(self) -> list[TaggedResource]:
        client = self._client("ec2")
        resources = []
        for key in client.describe_key_pairs(Filters=self._ec2_filter).get("KeyPairs", []):
            resources.append(
                TaggedResource(
                    resource_type="AWS::EC2::KeyPair",
                    resource_id=key["KeyName"],
                    region=self.region,
                    name=key["KeyName"],
                    tags=tags_to_dict(key.get("Tags")),
                )
            )
        return resources

    # ------------------------------------------------------------------
    # Secrets and keys
    # ------------------------------------------------------------------

    def find_kms_keys(self) -> list[TaggedResource]:
        client = self._client("kms")
        resources = []
        for page in client.get_paginator("list_keys").paginate():
            for key in page.get("Keys", []):
                key_id = key["KeyId"]
                metadata = client.describe_key(KeyId=key_id).get("KeyMetadata", {})
                if metadata.get("KeyManager") != "CUSTOMER":
                    continue
                if metadata.get("KeyState") not in ("Enabled", "Disabled"):
                    continue
                tag_list = client.list_resource_tags(KeyId=key_id).get("Tags", [])
                tags = tags_to_dict(tag_list, key_field="TagKey", value_field="TagValue")
                if not self._matches(tags):
                    continue
                resources.append(
                    TaggedResource(
                        resource_type="AWS::KMS::Key",
                        resource_id=key_id,
                        region=self.region,
                        arn=key.get("KeyArn"),
                        name=metadata.get("Description") or key_id,
                        tags=tags,
                    )
                )
        return resources

    def find_secrets(self) -> list[TaggedResource]:
        client = self._client("secretsmanager")
        filters = [
            {"Key": "tag-key", "Values": [self.tag_key]},
            {"Key": "tag-value", "Values": [self.project_tag]},
        ]
        resources = []
        for page in client.get_paginator("list_secrets").paginate(Filters=filters):
            for secret in page.get("SecretList", []):
                tags = tags_to_dict(secret.get("Tags"))
                # tag-key and tag-value filters match independently
                if not self._matches(tags):
                    continue
                resources.append(
                    TaggedResource(
                        resource_type="AWS::SecretsManager::Secret",
                        resource_id=secret["ARN"],
                        region=self.region,
                        arn=secret["ARN"],
                        name=secret.get("Name"),
                        tags=tags,
                    )
                )
        return resources
