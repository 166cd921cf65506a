"""Tagged resource model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class TaggedResource:
    """A provisioned cloud resource found by its project tag.

    Attributes:
        resource_type: CloudFormation-style type (e.g. "AWS::EC2::Subnet")
        resource_id: Identifier the delete API expects (ID, name or ARN)
        region: AWS region ("global" for IAM and Route53)
        arn: Resource ARN when known
        name: Human-readable name (Name tag or resource name)
        tags: Resource tags
        extra: Type-specific attributes deletion needs (e.g. attached VPC of an IGW)
    """

    resource_type: str
    resource_id: str
    region: str
    arn: Optional[str] = None
    name: Optional[str] = None
    tags: dict[str, str] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        """Unique key used as the dependency graph node."""
        return f"{self.resource_type}|{self.resource_id}"

    @property
    def display_name(self) -> str:
        if self.name and self.name != self.resource_id:
            return f"{self.resource_id} ({self.name})"
        return self.resource_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "region": self.region,
            "arn": self.arn,
            "name": self.name,
            "tags": self.tags,
        }


def tags_to_dict(tag_list: Optional[list[dict]], key_field: str = "Key", value_field: str = "Value") -> dict[str, str]:
    """Convert an AWS ``[{"Key": k, "Value": v}]`` tag list to a dict."""
    tags: dict[str, str] = {}
    for tag in tag_list or []:
        if key_field in tag:
            tags[tag[key_field]] = tag.get(value_field, "")
    return tags
