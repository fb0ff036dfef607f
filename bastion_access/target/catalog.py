"""Target catalog.

Lists the targets an operator can pick from for init and connect. Every
resource family is fetched independently; a family that cannot be fetched is
reported as a warning and the others are still listed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, TypeVar

from ..aws import elasticache, rds
from ..aws.client import AwsClient
from ..aws.errors import AwsError
from ..aws.parse import node_group_member_target, node_group_primary_target
from ..models.target import AccessTarget, TargetKind

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class TargetChoice:
    name: str
    target: AccessTarget
    section: str


@dataclass
class TargetCatalog:
    choices: List[TargetChoice] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


async def _fetch(
    fetch: Callable[[], Awaitable[T]],
    resource_name: str,
    default: T,
    warnings: List[str],
) -> T:
    try:
        return await fetch()
    except AwsError as e:
        logger.warning(f"Could not retrieve {resource_name}: {e}")
        warnings.append(f"{resource_name}: {e}")
        return default


async def _fetch_all(client: AwsClient, warnings: List[str], with_nodes: bool):
    empty_split: tuple[List[AccessTarget], List[AccessTarget]] = ([], [])
    fetches = [
        _fetch(lambda: rds.get_db_instances(client), "DB instances", [], warnings),
        _fetch(lambda: rds.get_db_clusters(client), "DB clusters", [], warnings),
        _fetch(
            lambda: elasticache.get_replication_groups_by_cluster_mode(client),
            "Elasticache clusters",
            empty_split,
            warnings,
        ),
    ]
    if with_nodes:
        fetches.append(_fetch(lambda: elasticache.get_cache_nodes(client), "Elasticache nodes", [], warnings))
    return await asyncio.gather(*fetches)


def _database_choices(instances: List[AccessTarget], clusters: List[AccessTarget]) -> List[TargetChoice]:
    choices = [TargetChoice(name=instance.identifier, target=instance, section="Database instances") for instance in instances]
    choices.extend(TargetChoice(name=cluster.identifier, target=cluster, section="Database clusters") for cluster in clusters)
    return choices


async def list_init_targets(client: AwsClient) -> TargetCatalog:
    """List targets access can be granted to."""
    catalog = TargetCatalog()
    instances, clusters, (enabled, disabled) = await _fetch_all(client, catalog.warnings, with_nodes=False)

    catalog.choices.extend(_database_choices(instances, clusters))
    for group in enabled + disabled:
        catalog.choices.append(TargetChoice(name=group.identifier, target=group, section="Elasticache clusters"))
    return catalog


async def list_connect_targets(client: AwsClient) -> TargetCatalog:
    """List targets that can be connected to.

    Cluster-mode-enabled groups are listed with their configuration endpoint
    followed by every member node. Cluster-mode-disabled groups are listed
    with their primary endpoint followed by every member's read endpoint.
    """
    catalog = TargetCatalog()
    instances, clusters, (enabled, disabled), nodes = await _fetch_all(client, catalog.warnings, with_nodes=True)

    catalog.choices.extend(_database_choices(instances, clusters))

    nodes_by_id = {node.identifier: node for node in nodes}
    section = "Elasticache clusters"

    for group in enabled:
        catalog.choices.append(
            TargetChoice(name=f"{group.identifier} - Configuration Endpoint", target=group, section=section)
        )
        for node_group in group.node_topology:
            for member in node_group.members:
                node = nodes_by_id.get(member.cache_cluster_id)
                if node is None:
                    logger.debug(f"Cache cluster {member.cache_cluster_id} of {group.identifier} not listed, skipping")
                    continue
                catalog.choices.append(
                    TargetChoice(name=f"   {member.cache_cluster_id}", target=node.as_member_of(group), section=section)
                )

    for group in disabled:
        if not group.node_topology:
            continue
        node_group = group.node_topology[0]
        catalog.choices.append(
            TargetChoice(
                name=f"{group.identifier} - Primary Endpoint",
                target=node_group_primary_target(group, node_group),
                section=section,
            )
        )
        for member in node_group.members:
            if member.read_endpoint is None:
                continue
            label = f"   {member.cache_cluster_id} - {member.role}" if member.role else f"   {member.cache_cluster_id}"
            catalog.choices.append(
                TargetChoice(name=label, target=node_group_member_target(group, member), section=section)
            )

    return catalog


async def lookup_target(client: AwsClient, kind: TargetKind, identifier: str) -> Optional[AccessTarget]:
    """Look up a single target by kind and identifier.

    Replication groups are returned with the kind reported by the provider,
    whichever replication group kind was asked for.

    Returns:
        The target, or None if it does not exist
    """
    if kind == TargetKind.DB_INSTANCE:
        return await rds.get_db_instance(client, identifier)
    if kind == TargetKind.DB_CLUSTER:
        return await rds.get_db_cluster(client, identifier)
    if kind in (TargetKind.CACHE_REPLICATION_GROUP_ENABLED, TargetKind.CACHE_REPLICATION_GROUP_DISABLED):
        return await elasticache.get_replication_group(client, identifier)

    nodes = await elasticache.get_cache_nodes(client)
    node = next((node for node in nodes if node.identifier == identifier), None)
    if node is None or not node.replication_group_id:
        return node
    group = await elasticache.get_replication_group(client, node.replication_group_id)
    return node.as_member_of(group) if group else node
