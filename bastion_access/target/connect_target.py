"""Connect targets: resolve where to connect and whether access was granted.

State transitions:
    created -> resolved
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import IntEnum
from typing import List

from ..aws import elasticache
from ..aws.client import AwsClient
from ..aws.parse import parse_cache_cluster_security_group_ids
from ..models.target import AccessTarget, Endpoint, TargetKind

logger = logging.getLogger(__name__)


class ConnectState(IntEnum):
    CREATED = 0
    RESOLVED = 1


class ConnectTarget(ABC):
    """Base class for connect targets.

    Attributes:
        client: AWS client
        target: Target selected by the caller
        state: Current workflow state
    """

    def __init__(self, client: AwsClient, target: AccessTarget) -> None:
        self.client = client
        self.target = target
        self.state = ConnectState.CREATED

    def get_id(self) -> str:
        return self.target.identifier

    async def get_host(self) -> str:
        return self.target.host

    async def get_port(self) -> int:
        return self.target.port

    @abstractmethod
    async def get_security_group_ids(self) -> List[str]:
        """Security groups that must contain the bastion group for a connection to work.

        An empty list means membership is irrelevant for connecting.
        """

    async def resolve(self) -> Endpoint:
        endpoint = Endpoint(address=await self.get_host(), port=await self.get_port())
        self.state = ConnectState.RESOLVED
        return endpoint

    async def has_access(self, bastion_security_group_id: str) -> bool:
        security_group_ids = await self.get_security_group_ids()
        if not security_group_ids:
            return True
        return bastion_security_group_id in security_group_ids


class DbInstanceConnectTarget(ConnectTarget):
    async def get_security_group_ids(self) -> List[str]:
        return list(self.target.security_group_ids)


class DbClusterConnectTarget(ConnectTarget):
    async def get_security_group_ids(self) -> List[str]:
        return list(self.target.security_group_ids)


class ElasticacheClusterConnectTarget(ConnectTarget):
    """Replication group endpoint; membership is read from a representative member."""

    async def get_security_group_ids(self) -> List[str]:
        member = self.target.representative_member()
        if member is None:
            logger.debug(f"Replication group {self.get_id()} has no members, skipping membership check")
            return []

        detail = await elasticache.get_cache_cluster(self.client, member)
        if detail is None:
            return []
        return list(parse_cache_cluster_security_group_ids(detail))


class ElasticacheNodeConnectTarget(ConnectTarget):
    async def get_security_group_ids(self) -> List[str]:
        return []


CONNECT_TARGET_CLASSES = {
    TargetKind.DB_INSTANCE: DbInstanceConnectTarget,
    TargetKind.DB_CLUSTER: DbClusterConnectTarget,
    TargetKind.CACHE_REPLICATION_GROUP_ENABLED: ElasticacheClusterConnectTarget,
    TargetKind.CACHE_REPLICATION_GROUP_DISABLED: ElasticacheClusterConnectTarget,
    TargetKind.CACHE_NODE: ElasticacheNodeConnectTarget,
}


def create_connect_target(client: AwsClient, target: AccessTarget) -> ConnectTarget:
    return CONNECT_TARGET_CLASSES[target.kind](client, target)
