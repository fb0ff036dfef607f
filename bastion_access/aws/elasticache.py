"""ElastiCache lookups and security group mutations.

Replication groups do not expose their security groups; the complete list is
only available on the cache clusters that are members of the group.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from ..models.target import AccessTarget, ClusterMode, SubnetGroup
from .client import AwsClient, ResourceFamily
from .errors import NotFoundError
from .parse import (
    parse_cache_cluster_nodes,
    parse_cache_cluster_security_group_ids,
    parse_cache_subnet_group,
    parse_replication_group,
    parse_replication_group_representative,
)

logger = logging.getLogger(__name__)


async def get_replication_groups(client: AwsClient) -> List[AccessTarget]:
    raw_groups = await client.describe(ResourceFamily.REPLICATION_GROUPS)
    return [parse_replication_group(group) for group in raw_groups]


async def get_replication_group_representatives(client: AwsClient) -> List[Tuple[str, Optional[str]]]:
    """List (replication group id, representative cache cluster id) for every group.

    Groups still being created are included; no endpoint is required.
    """
    raw_groups = await client.describe(ResourceFamily.REPLICATION_GROUPS)
    return [parse_replication_group_representative(group) for group in raw_groups]


async def get_replication_groups_by_cluster_mode(
    client: AwsClient,
) -> tuple[List[AccessTarget], List[AccessTarget]]:
    """Get replication groups split by cluster mode.

    Returns:
        Tuple of (cluster mode enabled groups, cluster mode disabled groups)
    """
    groups = await get_replication_groups(client)
    enabled = [group for group in groups if group.cluster_mode == ClusterMode.ENABLED]
    disabled = [group for group in groups if group.cluster_mode == ClusterMode.DISABLED]
    return enabled, disabled


async def get_replication_group(client: AwsClient, identifier: str) -> Optional[AccessTarget]:
    """Get a replication group by identifier, or None if it does not exist.

    Raises:
        MalformedResponseError: If the response has no ReplicationGroups collection
    """
    try:
        raw_groups = await client.describe(ResourceFamily.REPLICATION_GROUPS, ReplicationGroupId=identifier)
    except NotFoundError:
        return None
    return next((parse_replication_group(group) for group in raw_groups), None)


async def get_cache_nodes(client: AwsClient) -> List[AccessTarget]:
    """Get every cache node, identified by the id of the cache cluster it belongs to."""
    raw_clusters = await client.describe(ResourceFamily.CACHE_CLUSTERS, ShowCacheNodeInfo=True)
    nodes: List[AccessTarget] = []
    for cluster in raw_clusters:
        nodes.extend(parse_cache_cluster_nodes(cluster))
    return nodes


async def get_cache_cluster(client: AwsClient, cache_cluster_id: str) -> Optional[dict]:
    """Get the detailed description of one cache cluster, or None if it does not exist."""
    try:
        raw_clusters = await client.describe(ResourceFamily.CACHE_CLUSTERS, CacheClusterId=cache_cluster_id)
    except NotFoundError:
        return None
    return raw_clusters[0] if raw_clusters else None


async def get_cache_cluster_security_groups(client: AwsClient) -> Dict[str, tuple[str, ...]]:
    """Map every cache cluster id to its attached security group ids."""
    raw_clusters = await client.describe(ResourceFamily.CACHE_CLUSTERS)
    security_groups: Dict[str, tuple[str, ...]] = {}
    for cluster in raw_clusters:
        group_ids = parse_cache_cluster_security_group_ids(cluster)
        security_groups[cluster["CacheClusterId"]] = group_ids
    return security_groups


async def get_cache_cluster_subnet_group(client: AwsClient, name: str) -> Optional[SubnetGroup]:
    try:
        raw_groups = await client.describe(ResourceFamily.CACHE_SUBNET_GROUPS, CacheSubnetGroupName=name)
    except NotFoundError:
        return None
    return next((parse_cache_subnet_group(group) for group in raw_groups), None)


async def modify_replication_group(client: AwsClient, identifier: str, security_group_ids: List[str]) -> None:
    await client.modify(ResourceFamily.REPLICATION_GROUPS, identifier, security_group_ids)
