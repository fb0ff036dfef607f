"""Access target model.

Canonical description of a data-tier resource a bastion can be granted
access to, regardless of the provider response it was decoded from.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional


class TargetKind(Enum):
    """Kind of access target."""

    DB_INSTANCE = "db-instance"
    DB_CLUSTER = "db-cluster"
    CACHE_REPLICATION_GROUP_ENABLED = "cache-replication-group-enabled"
    CACHE_REPLICATION_GROUP_DISABLED = "cache-replication-group-disabled"
    CACHE_NODE = "cache-node"

    @property
    def is_cache(self) -> bool:
        return self not in (TargetKind.DB_INSTANCE, TargetKind.DB_CLUSTER)


class ClusterMode(Enum):
    """ElastiCache cluster mode."""

    ENABLED = "enabled"
    DISABLED = "disabled"


@dataclass(frozen=True)
class Endpoint:
    address: str
    port: int


@dataclass(frozen=True)
class NodeGroupMember:
    """A cache cluster belonging to a replication group node group."""

    cache_cluster_id: str
    role: Optional[str] = None
    read_endpoint: Optional[Endpoint] = None


@dataclass(frozen=True)
class NodeGroup:
    """A shard (cluster mode enabled) or the single node group (cluster mode disabled)."""

    node_group_id: str
    primary_endpoint: Optional[Endpoint] = None
    members: tuple[NodeGroupMember, ...] = ()


@dataclass(frozen=True)
class AccessTarget:
    """Canonical access target.

    ``host`` and ``port`` always hold a reachable endpoint: the configuration
    endpoint for cluster-mode-enabled replication groups, the primary endpoint
    for cluster-mode-disabled groups and the node's own endpoint for cache nodes.

    Attributes:
        identifier: Provider identifier of the resource
        kind: Target kind
        host: Endpoint address
        port: Endpoint port
        cluster_mode: Cache cluster mode (None for database targets)
        vpc_id: Owning VPC when the provider exposes it directly
        security_group_ids: Security groups known from the describe response
        node_topology: Node groups and their members (empty for simple targets)
        replication_group_id: Owning replication group for cache targets
        subnet_group_name: Subnet group used to resolve the VPC
    """

    identifier: str
    kind: TargetKind
    host: str
    port: int
    cluster_mode: Optional[ClusterMode] = None
    vpc_id: Optional[str] = None
    security_group_ids: tuple[str, ...] = ()
    node_topology: tuple[NodeGroup, ...] = ()
    replication_group_id: Optional[str] = None
    subnet_group_name: Optional[str] = None

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint(address=self.host, port=self.port)

    def representative_member(self) -> Optional[str]:
        """Return the cache cluster id of the first member of the first node group."""
        for node_group in self.node_topology:
            for member in node_group.members:
                return member.cache_cluster_id
        return None

    def as_member_of(self, group: AccessTarget) -> AccessTarget:
        """Return a copy bound to the replication group that owns this node."""
        return replace(self, replication_group_id=group.identifier, cluster_mode=group.cluster_mode)


@dataclass(frozen=True)
class SubnetGroup:
    """Subnet group, used only to resolve the VPC of a target."""

    name: str
    vpc_id: str


@dataclass(frozen=True)
class SecurityGroupReference:
    """A resource found referencing one or more security groups during a cleanup scan."""

    resource_identifier: str
    resource_family: str
    security_group_ids: tuple[str, ...] = field(default=())
