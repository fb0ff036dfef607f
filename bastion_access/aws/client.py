"""AWS provider client.

Thin async facade over boto3. Every blocking boto3 call is executed in a
worker thread and wrapped by the error classifier.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Optional

import boto3

from .errors import MalformedResponseError, translate_errors

logger = logging.getLogger(__name__)


class ResourceFamily(Enum):
    """Resource families the client can describe or modify."""

    DB_INSTANCES = "db_instances"
    DB_CLUSTERS = "db_clusters"
    DB_SUBNET_GROUPS = "db_subnet_groups"
    REPLICATION_GROUPS = "replication_groups"
    CACHE_CLUSTERS = "cache_clusters"
    CACHE_SUBNET_GROUPS = "cache_subnet_groups"
    SECURITY_GROUPS = "security_groups"


def create_boto_client(service_name: str, region_name: Optional[str] = None, profile_name: Optional[str] = None) -> Any:
    """Create a boto3 client for a service.

    Args:
        service_name: AWS service name (e.g., "rds")
        region_name: AWS region (optional, falls back to the profile default)
        profile_name: AWS profile name (optional)

    Returns:
        boto3 client
    """
    session = boto3.Session(profile_name=profile_name, region_name=region_name)
    return session.client(service_name)


class AwsClient:
    """Async AWS client shared by every component.

    Attributes:
        profile_name: AWS profile used for all service clients
        region_name: AWS region used for all service clients
    """

    # Describe method mapping: family -> (service, method, result_key)
    DESCRIBE_METHODS = {
        ResourceFamily.DB_INSTANCES: ("rds", "describe_db_instances", "DBInstances"),
        ResourceFamily.DB_CLUSTERS: ("rds", "describe_db_clusters", "DBClusters"),
        ResourceFamily.DB_SUBNET_GROUPS: ("rds", "describe_db_subnet_groups", "DBSubnetGroups"),
        ResourceFamily.REPLICATION_GROUPS: ("elasticache", "describe_replication_groups", "ReplicationGroups"),
        ResourceFamily.CACHE_CLUSTERS: ("elasticache", "describe_cache_clusters", "CacheClusters"),
        ResourceFamily.CACHE_SUBNET_GROUPS: ("elasticache", "describe_cache_subnet_groups", "CacheSubnetGroups"),
        ResourceFamily.SECURITY_GROUPS: ("ec2", "describe_security_groups", "SecurityGroups"),
    }

    # Modify method mapping: family -> (service, method, id_field, security_groups_field)
    MODIFY_METHODS = {
        ResourceFamily.DB_INSTANCES: ("rds", "modify_db_instance", "DBInstanceIdentifier", "VpcSecurityGroupIds"),
        ResourceFamily.DB_CLUSTERS: ("rds", "modify_db_cluster", "DBClusterIdentifier", "VpcSecurityGroupIds"),
        ResourceFamily.REPLICATION_GROUPS: (
            "elasticache",
            "modify_replication_group",
            "ReplicationGroupId",
            "SecurityGroupIds",
        ),
    }

    def __init__(self, profile_name: Optional[str] = None, region_name: Optional[str] = None) -> None:
        self.profile_name = profile_name
        self.region_name = region_name
        self._clients: dict[str, Any] = {}

    def _client(self, service_name: str) -> Any:
        if service_name not in self._clients:
            self._clients[service_name] = create_boto_client(
                service_name=service_name,
                region_name=self.region_name,
                profile_name=self.profile_name,
            )
        return self._clients[service_name]

    async def describe(self, family: ResourceFamily, **filters: Any) -> list[dict]:
        """Describe all resources of a family across every result page.

        Args:
            family: Resource family to describe
            **filters: Parameters passed to the describe call

        Returns:
            List of raw resource descriptions

        Raises:
            MalformedResponseError: If a page lacks the expected collection
        """
        service, method, result_key = self.DESCRIBE_METHODS[family]
        client = self._client(service)

        def collect() -> list[dict]:
            items: list[dict] = []
            paginator = client.get_paginator(method)
            for page in paginator.paginate(**filters):
                if result_key not in page:
                    raise MalformedResponseError(f"Invalid response from AWS: {method} returned no {result_key}")
                items.extend(page[result_key] or [])
            return items

        with translate_errors():
            items = await asyncio.to_thread(collect)

        logger.debug(f"{method} returned {len(items)} item(s)")
        return items

    async def modify(self, family: ResourceFamily, identifier: str, security_group_ids: list[str]) -> None:
        """Replace the security group membership of a resource.

        Args:
            family: Resource family of the resource
            identifier: Resource identifier
            security_group_ids: Complete new membership
        """
        service, method, id_field, groups_field = self.MODIFY_METHODS[family]
        client = self._client(service)
        params = {
            id_field: identifier,
            groups_field: list(security_group_ids),
            "ApplyImmediately": True,
        }

        logger.info(f"Setting security groups of {identifier} to {sorted(security_group_ids)}")
        with translate_errors():
            await asyncio.to_thread(getattr(client, method), **params)

    async def delete_security_group(self, group_id: str) -> None:
        client = self._client("ec2")

        logger.info(f"Deleting security group {group_id}")
        with translate_errors():
            await asyncio.to_thread(client.delete_security_group, GroupId=group_id)

    async def find_instances(self, tags: dict[str, str], vpc_id: Optional[str] = None) -> list[dict]:
        """Find live EC2 instances by tag.

        Args:
            tags: Tag key -> value filters ("*" matches any value)
            vpc_id: Restrict to instances in this VPC (optional)

        Returns:
            List of raw instance descriptions
        """
        client = self._client("ec2")
        filters = [{"Name": f"tag:{key}", "Values": [value]} for key, value in tags.items()]
        filters.append({"Name": "instance-state-name", "Values": ["pending", "running"]})
        if vpc_id:
            filters.append({"Name": "vpc-id", "Values": [vpc_id]})

        def collect() -> list[dict]:
            instances: list[dict] = []
            paginator = client.get_paginator("describe_instances")
            for page in paginator.paginate(Filters=filters):
                if "Reservations" not in page:
                    raise MalformedResponseError("Invalid response from AWS: describe_instances returned no Reservations")
                for reservation in page["Reservations"]:
                    instances.extend(reservation.get("Instances", []))
            return instances

        with translate_errors():
            return await asyncio.to_thread(collect)
