"""Dependency resolution for tag-based deletion ordering.

Resources are deleted children-first: a subnet before its VPC, a NAT gateway
before its Elastic IP, a load balancer before the certificate it serves.
Ordering combines two sources:

- explicit edges between concrete resources (``add_dependency``), and
- a per-type tier used to break ties, so that types with no discovered edge
  between them still go in a safe order (load balancers and NAT gateways
  before subnets and VPCs, IAM detachment before role deletion).
"""

from __future__ import annotations

import heapq
import logging
from typing import Iterable, Optional

from ..models.tagged_resource import TaggedResource

logger = logging.getLogger(__name__)

# Lower tiers are deleted first
TYPE_TIERS: dict[str, int] = {
    "AWS::AutoScaling::AutoScalingGroup": 0,
    "AWS::Route53::HostedZone": 0,
    "AWS::ElasticLoadBalancingV2::LoadBalancer": 1,
    "AWS::ElasticLoadBalancing::LoadBalancer": 1,
    "AWS::EC2::Instance": 1,
    "AWS::ElasticLoadBalancingV2::TargetGroup": 2,
    "AWS::EC2::LaunchTemplate": 2,
    "AWS::CertificateManager::Certificate": 2,
    "AWS::EC2::NatGateway": 2,
    "AWS::EC2::EIP": 3,
    "AWS::EC2::KeyPair": 3,
    "AWS::IAM::InstanceProfile": 3,
    "AWS::SecretsManager::Secret": 3,
    "AWS::KMS::Key": 3,
    "AWS::IAM::Role": 4,
    "AWS::EC2::RouteTable": 4,
    "AWS::EC2::InternetGateway": 4,
    "AWS::EC2::Subnet": 5,
    "AWS::EC2::SecurityGroup": 6,
    "AWS::EC2::VPC": 7,
}

UNKNOWN_TIER = 5


class DependencyResolver:
    """Dependency graph with deletion ordering via Kahn's algorithm.

    ``graph`` maps a child node to the set of parents it depends on. A parent
    can only be deleted once all of its children are gone.

    Attributes:
        graph: child -> set of parents
    """

    def __init__(self) -> None:
        self.graph: dict[str, set[str]] = {}

    def add_dependency(self, parent: str, child: str) -> None:
        """Record that ``child`` must be deleted before ``parent``."""
        if parent == child:
            return
        self.graph.setdefault(child, set()).add(parent)

    def compute_deletion_order(
        self,
        resources: list[str],
        priorities: Optional[dict[str, int]] = None,
    ) -> list[str]:
        """Order nodes so every child precedes its parents.

        Edges touching nodes outside ``resources`` are ignored. When several
        nodes are ready at once, the lowest priority goes first, then input
        order. Nodes left in a cycle are appended in priority order with a
        warning rather than dropped, so cleanup still attempts them.

        Args:
            resources: Nodes to order
            priorities: Optional node -> priority (lower is deleted earlier)

        Returns:
            Nodes in deletion order
        """
        priorities = priorities or {}
        position = {node: i for i, node in enumerate(resources)}
        nodes = set(resources)

        # For each parent, how many of its children are still pending
        pending_children: dict[str, int] = {node: 0 for node in nodes}
        parents_of: dict[str, set[str]] = {}
        for child, parents in self.graph.items():
            if child not in nodes:
                continue
            relevant = {p for p in parents if p in nodes}
            parents_of[child] = relevant
            for parent in relevant:
                pending_children[parent] += 1

        def sort_key(node: str) -> tuple[int, int]:
            return (priorities.get(node, 0), position[node])

        ready = [(sort_key(n), n) for n in resources if pending_children[n] == 0]
        heapq.heapify(ready)

        order: list[str] = []
        emitted: set[str] = set()
        while ready:
            _, node = heapq.heappop(ready)
            if node in emitted:
                continue
            order.append(node)
            emitted.add(node)
            for parent in parents_of.get(node, ()):
                pending_children[parent] -= 1
                if pending_children[parent] == 0:
                    heapq.heappush(ready, (sort_key(parent), parent))

        if len(order) < len(nodes):
            remaining = sorted((n for n in nodes if n not in emitted), key=sort_key)
            logger.warning(f"Dependency cycle among {len(remaining)} resource(s); deleting them in tier order")
            order.extend(remaining)

        return order


def order_resources(resources: Iterable[TaggedResource]) -> list[TaggedResource]:
    """Compute a safe deletion order for discovered resources.

    Builds edges from the type-specific attributes discovery records
    (``vpc_id``, ``vpc_ids``, ``subnet_id``, ``allocation_ids``, ``role_names``)
    and falls back to TYPE_TIERS for everything else.

    Args:
        resources: Resources found by tag

    Returns:
        Resources in the order they should be deleted
    """
    resources = list(resources)
    by_key = {r.key: r for r in resources}
    ids_by_type: dict[str, dict[str, str]] = {}
    for r in resources:
        ids_by_type.setdefault(r.resource_type, {})[r.resource_id] = r.key

    def node(resource_type: str, resource_id: Optional[str]) -> Optional[str]:
        if not resource_id:
            return None
        return ids_by_type.get(resource_type, {}).get(resource_id)

    resolver = DependencyResolver()
    for r in resources:
        vpc_ids = list(r.extra.get("vpc_ids", []))
        if r.extra.get("vpc_id"):
            vpc_ids.append(r.extra["vpc_id"])
        for vpc_id in vpc_ids:
            parent = node("AWS::EC2::VPC", vpc_id)
            if parent:
                resolver.add_dependency(parent=parent, child=r.key)

        subnet_node = node("AWS::EC2::Subnet", r.extra.get("subnet_id"))
        if subnet_node:
            resolver.add_dependency(parent=subnet_node, child=r.key)

        # NAT gateways hold their Elastic IP until deleted
        for allocation_id in r.extra.get("allocation_ids", []):
            parent = node("AWS::EC2::EIP", allocation_id)
            if parent:
                resolver.add_dependency(parent=parent, child=r.key)

        # Profiles are emptied before the roles inside them go
        for role_name in r.extra.get("role_names", []):
            parent = node("AWS::IAM::Role", role_name)
            if parent:
                resolver.add_dependency(parent=parent, child=r.key)

        for group_id in r.extra.get("security_group_ids", []):
            parent = node("AWS::EC2::SecurityGroup", group_id)
            if parent:
                resolver.add_dependency(parent=parent, child=r.key)

        for cert_arn in r.extra.get("certificate_arns", []):
            parent = node("AWS::CertificateManager::Certificate", cert_arn)
            if parent:
                resolver.add_dependency(parent=parent, child=r.key)

    priorities = {r.key: TYPE_TIERS.get(r.resource_type, UNKNOWN_TIER) for r in resources}
    ordered_keys = resolver.compute_deletion_order([r.key for r in resources], priorities=priorities)
    return [by_key[k] for k in ordered_keys]
