"""Normalization of raw provider responses into canonical models.

Every function here is pure: it decodes an already-fetched response and either
returns a fully resolved model or raises MalformedResponseError. A target with
an unresolved host or port never leaves this module.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from ..models.bastion import Ec2Instance, SecurityGroup
from ..models.target import (
    AccessTarget,
    ClusterMode,
    Endpoint,
    NodeGroup,
    NodeGroupMember,
    SubnetGroup,
    TargetKind,
)
from .errors import MalformedResponseError


def _require(response: Mapping[str, Any], key: str, context: str) -> Any:
    if not isinstance(response, Mapping) or response.get(key) is None:
        raise MalformedResponseError(f"Invalid response from AWS: {context} is missing {key}")
    return response[key]


def _require_str(response: Mapping[str, Any], key: str, context: str) -> str:
    value = _require(response, key, context)
    if not isinstance(value, str) or not value:
        raise MalformedResponseError(f"Invalid response from AWS: {context}.{key} must be a non-empty string")
    return value


def _require_port(value: Any, context: str) -> int:
    # bool is an int subclass and never a valid port
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedResponseError(f"Invalid response from AWS: {context}.Port must be a number")
    return value


def _require_endpoint(response: Mapping[str, Any], key: str, context: str) -> Endpoint:
    endpoint = _require(response, key, context)
    address = _require_str(endpoint, "Address", f"{context}.{key}")
    port = _require_port(endpoint.get("Port"), f"{context}.{key}")
    return Endpoint(address=address, port=port)


def _optional_endpoint(response: Mapping[str, Any], key: str, context: str) -> Optional[Endpoint]:
    if response.get(key) is None:
        return None
    return _require_endpoint(response, key, context)


def _vpc_security_group_ids(response: Mapping[str, Any]) -> tuple[str, ...]:
    return tuple(
        group["VpcSecurityGroupId"] for group in response.get("VpcSecurityGroups") or [] if group.get("VpcSecurityGroupId")
    )


def _cache_security_group_ids(response: Mapping[str, Any]) -> tuple[str, ...]:
    return tuple(group["SecurityGroupId"] for group in response.get("SecurityGroups") or [] if group.get("SecurityGroupId"))


def _require_membership_list(response: Mapping[str, Any], key: str, context: str) -> None:
    if response.get(key) is not None and not isinstance(response[key], list):
        raise MalformedResponseError(f"Invalid response from AWS: {context}.{key} must be a list")


def parse_db_instance_membership(response: Mapping[str, Any]) -> tuple[str, tuple[str, ...]]:
    """Decode only the identifier and security groups of a DB instance.

    Instances still being created have no endpoint yet; cleanup does not need one.
    """
    identifier = _require_str(response, "DBInstanceIdentifier", "DBInstance")
    _require_membership_list(response, "VpcSecurityGroups", f"DBInstance {identifier}")
    return identifier, _vpc_security_group_ids(response)


def parse_db_cluster_membership(response: Mapping[str, Any]) -> tuple[str, tuple[str, ...]]:
    identifier = _require_str(response, "DBClusterIdentifier", "DBCluster")
    _require_membership_list(response, "VpcSecurityGroups", f"DBCluster {identifier}")
    return identifier, _vpc_security_group_ids(response)


def parse_replication_group_representative(response: Mapping[str, Any]) -> tuple[str, Optional[str]]:
    """Decode a replication group id and the cache cluster id of its first member.

    Endpoints are not required.
    """
    identifier = _require_str(response, "ReplicationGroupId", "ReplicationGroup")
    topology = parse_node_group_topology(response.get("NodeGroups") or [], f"ReplicationGroup {identifier}")
    member = next((m.cache_cluster_id for node_group in topology for m in node_group.members), None)
    return identifier, member


def parse_db_instance(response: Mapping[str, Any]) -> AccessTarget:
    identifier = _require_str(response, "DBInstanceIdentifier", "DBInstance")
    endpoint = _require_endpoint(response, "Endpoint", f"DBInstance {identifier}")
    subnet_group = response.get("DBSubnetGroup") or {}

    return AccessTarget(
        identifier=identifier,
        kind=TargetKind.DB_INSTANCE,
        host=endpoint.address,
        port=endpoint.port,
        vpc_id=subnet_group.get("VpcId"),
        security_group_ids=_vpc_security_group_ids(response),
        subnet_group_name=subnet_group.get("DBSubnetGroupName"),
    )


def parse_db_cluster(response: Mapping[str, Any]) -> AccessTarget:
    identifier = _require_str(response, "DBClusterIdentifier", "DBCluster")
    host = _require_str(response, "Endpoint", f"DBCluster {identifier}")
    port = _require_port(response.get("Port"), f"DBCluster {identifier}")

    return AccessTarget(
        identifier=identifier,
        kind=TargetKind.DB_CLUSTER,
        host=host,
        port=port,
        security_group_ids=_vpc_security_group_ids(response),
        subnet_group_name=response.get("DBSubnetGroup"),
    )


def parse_node_group_topology(node_groups: Any, context: str) -> tuple[NodeGroup, ...]:
    if not isinstance(node_groups, list):
        raise MalformedResponseError(f"Invalid response from AWS: {context}.NodeGroups must be a list")

    topology = []
    for node_group in node_groups:
        node_group_id = _require_str(node_group, "NodeGroupId", f"{context}.NodeGroups")
        members = tuple(
            NodeGroupMember(
                cache_cluster_id=_require_str(member, "CacheClusterId", f"{context}.NodeGroupMembers"),
                role=member.get("CurrentRole"),
                read_endpoint=_optional_endpoint(member, "ReadEndpoint", f"{context}.NodeGroupMembers"),
            )
            for member in node_group.get("NodeGroupMembers") or []
        )
        topology.append(
            NodeGroup(
                node_group_id=node_group_id,
                primary_endpoint=_optional_endpoint(node_group, "PrimaryEndpoint", f"{context}.NodeGroups"),
                members=members,
            )
        )
    return tuple(topology)


def parse_replication_group(response: Mapping[str, Any]) -> AccessTarget:
    """Normalize a replication group.

    A group is cluster-mode-enabled if and only if ``ClusterEnabled`` is true;
    only that branch reads the configuration endpoint.
    """
    if response.get("ClusterEnabled") is True:
        return parse_cluster_mode_enabled_group(response)
    return parse_cluster_mode_disabled_group(response)


def parse_cluster_mode_enabled_group(response: Mapping[str, Any]) -> AccessTarget:
    identifier = _require_str(response, "ReplicationGroupId", "ReplicationGroup")
    context = f"ReplicationGroup {identifier}"
    endpoint = _require_endpoint(response, "ConfigurationEndpoint", context)

    return AccessTarget(
        identifier=identifier,
        kind=TargetKind.CACHE_REPLICATION_GROUP_ENABLED,
        host=endpoint.address,
        port=endpoint.port,
        cluster_mode=ClusterMode.ENABLED,
        node_topology=parse_node_group_topology(response.get("NodeGroups") or [], context),
        replication_group_id=identifier,
    )


def parse_cluster_mode_disabled_group(response: Mapping[str, Any]) -> AccessTarget:
    identifier = _require_str(response, "ReplicationGroupId", "ReplicationGroup")
    context = f"ReplicationGroup {identifier}"
    node_groups = _require(response, "NodeGroups", context)
    if not isinstance(node_groups, list) or not node_groups:
        raise MalformedResponseError(f"Invalid response from AWS: {context} has no node groups")
    endpoint = _require_endpoint(node_groups[0], "PrimaryEndpoint", f"{context}.NodeGroups[0]")

    return AccessTarget(
        identifier=identifier,
        kind=TargetKind.CACHE_REPLICATION_GROUP_DISABLED,
        host=endpoint.address,
        port=endpoint.port,
        cluster_mode=ClusterMode.DISABLED,
        node_topology=parse_node_group_topology(node_groups, context),
        replication_group_id=identifier,
    )


def node_group_primary_target(group: AccessTarget, node_group: NodeGroup) -> AccessTarget:
    """Build the target for the primary endpoint of a node group."""
    if node_group.primary_endpoint is None:
        raise MalformedResponseError(
            f"Invalid response from AWS: ReplicationGroup {group.identifier} node group "
            f"{node_group.node_group_id} has no PrimaryEndpoint"
        )

    return AccessTarget(
        identifier=node_group.node_group_id,
        kind=TargetKind.CACHE_NODE,
        host=node_group.primary_endpoint.address,
        port=node_group.primary_endpoint.port,
        cluster_mode=group.cluster_mode,
        replication_group_id=group.identifier,
    )


def node_group_member_target(group: AccessTarget, member: NodeGroupMember) -> AccessTarget:
    """Build the target for the read endpoint of a node group member."""
    if member.read_endpoint is None:
        raise MalformedResponseError(
            f"Invalid response from AWS: ReplicationGroup {group.identifier} member "
            f"{member.cache_cluster_id} has no ReadEndpoint"
        )

    return AccessTarget(
        identifier=member.cache_cluster_id,
        kind=TargetKind.CACHE_NODE,
        host=member.read_endpoint.address,
        port=member.read_endpoint.port,
        cluster_mode=group.cluster_mode,
        replication_group_id=group.identifier,
    )


def parse_cache_cluster_nodes(response: Mapping[str, Any]) -> List[AccessTarget]:
    """Normalize every node of a cache cluster described with node info.

    Nodes are identified by their cache cluster id, which is what the
    replication group topology refers to.
    """
    identifier = _require_str(response, "CacheClusterId", "CacheCluster")
    context = f"CacheCluster {identifier}"
    nodes = _require(response, "CacheNodes", context)

    targets = []
    for node in nodes:
        endpoint = _require_endpoint(node, "Endpoint", f"{context}.CacheNodes")
        targets.append(
            AccessTarget(
                identifier=identifier,
                kind=TargetKind.CACHE_NODE,
                host=endpoint.address,
                port=endpoint.port,
                security_group_ids=_cache_security_group_ids(response),
                replication_group_id=response.get("ReplicationGroupId"),
                subnet_group_name=response.get("CacheSubnetGroupName"),
            )
        )
    return targets


def parse_cache_cluster_security_group_ids(response: Mapping[str, Any]) -> tuple[str, ...]:
    identifier = _require_str(response, "CacheClusterId", "CacheCluster")
    _require_membership_list(response, "SecurityGroups", f"CacheCluster {identifier}")
    return _cache_security_group_ids(response)


def parse_db_subnet_group(response: Mapping[str, Any]) -> SubnetGroup:
    return SubnetGroup(
        name=_require_str(response, "DBSubnetGroupName", "DBSubnetGroup"),
        vpc_id=_require_str(response, "VpcId", "DBSubnetGroup"),
    )


def parse_cache_subnet_group(response: Mapping[str, Any]) -> SubnetGroup:
    return SubnetGroup(
        name=_require_str(response, "CacheSubnetGroupName", "CacheSubnetGroup"),
        vpc_id=_require_str(response, "VpcId", "CacheSubnetGroup"),
    )


def parse_ec2_instance(response: Mapping[str, Any]) -> Ec2Instance:
    instance_id = _require_str(response, "InstanceId", "Instance")
    tags = {tag["Key"]: tag.get("Value", "") for tag in response.get("Tags") or [] if "Key" in tag}
    security_groups = tuple(
        SecurityGroup(
            id=_require_str(group, "GroupId", f"Instance {instance_id}.SecurityGroups"),
            name=group.get("GroupName", ""),
        )
        for group in response.get("SecurityGroups") or []
    )

    return Ec2Instance(
        instance_id=instance_id,
        vpc_id=response.get("VpcId"),
        tags=tags,
        security_groups=security_groups,
    )
