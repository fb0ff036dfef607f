"""RDS lookups and security group mutations."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from ..models.target import AccessTarget, SubnetGroup
from .client import AwsClient, ResourceFamily
from .errors import NotFoundError
from .parse import (
    parse_db_cluster,
    parse_db_cluster_membership,
    parse_db_instance,
    parse_db_instance_membership,
    parse_db_subnet_group,
)

logger = logging.getLogger(__name__)


async def get_db_instances(client: AwsClient) -> List[AccessTarget]:
    raw_instances = await client.describe(ResourceFamily.DB_INSTANCES)
    return [parse_db_instance(instance) for instance in raw_instances]


async def get_db_instance(client: AwsClient, identifier: str) -> Optional[AccessTarget]:
    """Get a DB instance by identifier, or None if it does not exist."""
    try:
        raw_instances = await client.describe(ResourceFamily.DB_INSTANCES, DBInstanceIdentifier=identifier)
    except NotFoundError:
        return None
    return next((parse_db_instance(instance) for instance in raw_instances), None)


async def get_db_instance_memberships(client: AwsClient) -> List[Tuple[str, Tuple[str, ...]]]:
    """List (identifier, security group ids) for every DB instance, endpoint or not."""
    raw_instances = await client.describe(ResourceFamily.DB_INSTANCES)
    return [parse_db_instance_membership(instance) for instance in raw_instances]


async def get_db_clusters(client: AwsClient) -> List[AccessTarget]:
    raw_clusters = await client.describe(ResourceFamily.DB_CLUSTERS)
    return [parse_db_cluster(cluster) for cluster in raw_clusters]


async def get_db_cluster(client: AwsClient, identifier: str) -> Optional[AccessTarget]:
    """Get a DB cluster by identifier, or None if it does not exist."""
    try:
        raw_clusters = await client.describe(ResourceFamily.DB_CLUSTERS, DBClusterIdentifier=identifier)
    except NotFoundError:
        return None
    return next((parse_db_cluster(cluster) for cluster in raw_clusters), None)


async def get_db_cluster_memberships(client: AwsClient) -> List[Tuple[str, Tuple[str, ...]]]:
    raw_clusters = await client.describe(ResourceFamily.DB_CLUSTERS)
    return [parse_db_cluster_membership(cluster) for cluster in raw_clusters]


async def get_db_subnet_group(client: AwsClient, name: str) -> Optional[SubnetGroup]:
    try:
        raw_groups = await client.describe(ResourceFamily.DB_SUBNET_GROUPS, DBSubnetGroupName=name)
    except NotFoundError:
        return None
    return next((parse_db_subnet_group(group) for group in raw_groups), None)


async def modify_db_instance(client: AwsClient, identifier: str, security_group_ids: List[str]) -> None:
    await client.modify(ResourceFamily.DB_INSTANCES, identifier, security_group_ids)


async def modify_db_cluster(client: AwsClient, identifier: str, security_group_ids: List[str]) -> None:
    await client.modify(ResourceFamily.DB_CLUSTERS, identifier, security_group_ids)
