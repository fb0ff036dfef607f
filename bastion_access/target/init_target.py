"""Init targets: grant a bastion access to a data resource.

An init target resolves the resource's VPC and current security group
membership from a detailed describe, then appends the bastion security group.

State transitions (the state only advances):
    created -> detail_loaded -> subnet_resolved -> security_groups_resolved -> attached
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Any, Awaitable, Callable, List, Optional

from ..aws import elasticache, rds
from ..aws.client import AwsClient
from ..aws.errors import ConfigurationFaultError, NotFoundError
from ..aws.parse import parse_cache_cluster_security_group_ids
from ..models.bastion import Bastion
from ..models.target import AccessTarget, SubnetGroup, TargetKind

logger = logging.getLogger(__name__)


class InitState(IntEnum):
    CREATED = 0
    DETAIL_LOADED = 1
    SUBNET_RESOLVED = 2
    SECURITY_GROUPS_RESOLVED = 3
    ATTACHED = 4


class InitTarget(ABC):
    """Base class for init targets.

    Subclasses load the detailed description of their resource, and know how
    to read and write its security group membership.

    Attributes:
        client: AWS client
        target: Target selected by the caller
        state: Current workflow state
    """

    def __init__(self, client: AwsClient, target: AccessTarget) -> None:
        self.client = client
        self.target = target
        self.state = InitState.CREATED
        self._detail: Any = None
        self._security_group_ids: Optional[List[str]] = None

    def get_id(self) -> str:
        return self.target.identifier

    @abstractmethod
    async def _load_detail(self) -> Any:
        """Fetch the detailed description of the resource."""

    @abstractmethod
    async def get_vpc_id(self) -> str:
        """Resolve the VPC that owns the resource."""

    @abstractmethod
    def _security_group_ids_from(self, detail: Any) -> List[str]:
        pass

    @abstractmethod
    async def _apply_security_groups(self, security_group_ids: List[str]) -> None:
        """Replace the resource's security group membership."""

    async def _get_detail(self) -> Any:
        if self._detail is None:
            self._detail = await self._load_detail()
            self._advance(InitState.DETAIL_LOADED)
        return self._detail

    async def get_security_group_ids(self) -> List[str]:
        """Return the current security group membership from the detailed describe."""
        if self._security_group_ids is None:
            detail = await self._get_detail()
            self._security_group_ids = self._security_group_ids_from(detail)
            self._advance(InitState.SECURITY_GROUPS_RESOLVED)
        return list(self._security_group_ids)

    async def attach_security_group(self, security_group_id: str) -> bool:
        """Append a security group to the resource's membership.

        Does nothing if the group is already attached.

        Returns:
            True if a modification was issued, False if already attached
        """
        current = await self.get_security_group_ids()
        if security_group_id in current:
            logger.info(f"Security group {security_group_id} already attached to {self.get_id()}")
            self._advance(InitState.ATTACHED)
            return False

        updated = current + [security_group_id]
        await self._apply_security_groups(updated)
        self._security_group_ids = updated
        self._advance(InitState.ATTACHED)
        logger.info(f"Attached security group {security_group_id} to {self.get_id()}")
        return True

    async def grant_access(self, bastion: Bastion) -> bool:
        """Attach the bastion security group after checking both share a VPC.

        Raises:
            ConfigurationFaultError: If the target and the bastion are in different VPCs
        """
        vpc_id = await self.get_vpc_id()
        if bastion.vpc_id and vpc_id != bastion.vpc_id:
            raise ConfigurationFaultError(
                f"Target {self.get_id()} is in {vpc_id} but bastion {bastion.id} is in {bastion.vpc_id}"
            )
        return await self.attach_security_group(bastion.security_group_id)

    async def _resolve_subnet_group(
        self,
        name: Optional[str],
        lookup: Callable[[AwsClient, str], Awaitable[Optional[SubnetGroup]]],
    ) -> str:
        if not name:
            # The detail record always names its subnet group; a missing one
            # means the detail could not be loaded properly.
            raise ConfigurationFaultError(f"Target {self.get_id()} has no subnet group")

        subnet_group = await lookup(self.client, name)
        if subnet_group is None:
            raise NotFoundError(f'Subnet group "{name}" not found')

        self._advance(InitState.SUBNET_RESOLVED)
        return subnet_group.vpc_id

    def _advance(self, state: InitState) -> None:
        self.state = max(self.state, state)


class DbInstanceInitTarget(InitTarget):
    async def _load_detail(self) -> AccessTarget:
        detail = await rds.get_db_instance(self.client, self.get_id())
        if detail is None:
            raise NotFoundError(f"DB instance {self.get_id()} not found")
        return detail

    async def get_vpc_id(self) -> str:
        detail = await self._get_detail()
        if detail.vpc_id:
            self._advance(InitState.SUBNET_RESOLVED)
            return detail.vpc_id
        return await self._resolve_subnet_group(detail.subnet_group_name, rds.get_db_subnet_group)

    def _security_group_ids_from(self, detail: AccessTarget) -> List[str]:
        return list(detail.security_group_ids)

    async def _apply_security_groups(self, security_group_ids: List[str]) -> None:
        await rds.modify_db_instance(self.client, self.get_id(), security_group_ids)


class DbClusterInitTarget(InitTarget):
    async def _load_detail(self) -> AccessTarget:
        detail = await rds.get_db_cluster(self.client, self.get_id())
        if detail is None:
            raise NotFoundError(f"DB cluster {self.get_id()} not found")
        return detail

    async def get_vpc_id(self) -> str:
        detail = await self._get_detail()
        return await self._resolve_subnet_group(detail.subnet_group_name, rds.get_db_subnet_group)

    def _security_group_ids_from(self, detail: AccessTarget) -> List[str]:
        return list(detail.security_group_ids)

    async def _apply_security_groups(self, security_group_ids: List[str]) -> None:
        await rds.modify_db_cluster(self.client, self.get_id(), security_group_ids)


class ElasticacheInitTarget(InitTarget):
    """Init target for cache replication groups and cache nodes.

    Replication groups do not report their security groups, so the detail is
    the cache cluster of one representative member. The modification is
    addressed to the replication group recovered from that cache cluster,
    since the selected target may be a single node.
    """

    async def _representative_cache_cluster_id(self) -> str:
        if not self.target.replication_group_id:
            return self.get_id()

        group = await elasticache.get_replication_group(self.client, self.target.replication_group_id)
        if group is None:
            raise NotFoundError(f"Replication group {self.target.replication_group_id} not found")

        member = group.representative_member()
        if member is None:
            raise NotFoundError(f"Replication group {group.identifier} has no member cache clusters")
        return member

    async def _load_detail(self) -> dict:
        cache_cluster_id = await self._representative_cache_cluster_id()
        detail = await elasticache.get_cache_cluster(self.client, cache_cluster_id)
        if detail is None:
            raise NotFoundError(f"Cache cluster {cache_cluster_id} not found")
        return detail

    async def get_vpc_id(self) -> str:
        detail = await self._get_detail()
        return await self._resolve_subnet_group(
            detail.get("CacheSubnetGroupName"),
            elasticache.get_cache_cluster_subnet_group,
        )

    def _security_group_ids_from(self, detail: dict) -> List[str]:
        return list(parse_cache_cluster_security_group_ids(detail))

    async def _modification_target_id(self) -> str:
        detail = await self._get_detail()
        replication_group_id = detail.get("ReplicationGroupId")
        if not replication_group_id:
            raise ConfigurationFaultError(f"Cache cluster {detail.get('CacheClusterId')} is not part of a replication group")
        return replication_group_id

    async def _apply_security_groups(self, security_group_ids: List[str]) -> None:
        replication_group_id = await self._modification_target_id()
        await elasticache.modify_replication_group(self.client, replication_group_id, security_group_ids)


class ElasticacheClusterModeEnabledInitTarget(ElasticacheInitTarget):
    """Cluster-mode-enabled replication group; the selected target is the group itself."""

    async def _modification_target_id(self) -> str:
        return self.get_id()


INIT_TARGET_CLASSES = {
    TargetKind.DB_INSTANCE: DbInstanceInitTarget,
    TargetKind.DB_CLUSTER: DbClusterInitTarget,
    TargetKind.CACHE_REPLICATION_GROUP_ENABLED: ElasticacheClusterModeEnabledInitTarget,
    TargetKind.CACHE_REPLICATION_GROUP_DISABLED: ElasticacheInitTarget,
    TargetKind.CACHE_NODE: ElasticacheInitTarget,
}


def create_init_target(client: AwsClient, target: AccessTarget) -> InitTarget:
    return INIT_TARGET_CLASSES[target.kind](client, target)
