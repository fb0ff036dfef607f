"""EC2 instance lookups and security group deletion."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from ..models.bastion import Ec2Instance
from .client import AwsClient, ResourceFamily
from .parse import parse_ec2_instance

logger = logging.getLogger(__name__)

# EC2 accepts at most 200 values per filter
FILTER_VALUES_LIMIT = 200


async def get_ec2_instances(client: AwsClient, tags: dict[str, str], vpc_id: Optional[str] = None) -> List[Ec2Instance]:
    raw_instances = await client.find_instances(tags, vpc_id=vpc_id)
    return [parse_ec2_instance(instance) for instance in raw_instances]


async def get_existing_security_group_ids(client: AwsClient, group_ids: Iterable[str]) -> set[str]:
    """Return the subset of group_ids that still exist.

    Uses a group-id filter rather than GroupIds so missing groups are not an
    error. Large queries are split into one describe call per filter chunk.
    """
    group_ids = sorted(set(group_ids))
    existing: set[str] = set()

    for start in range(0, len(group_ids), FILTER_VALUES_LIMIT):
        chunk = group_ids[start : start + FILTER_VALUES_LIMIT]
        raw_groups = await client.describe(
            ResourceFamily.SECURITY_GROUPS,
            Filters=[{"Name": "group-id", "Values": chunk}],
        )
        existing.update(group["GroupId"] for group in raw_groups if group.get("GroupId"))
    return existing


async def delete_security_group(client: AwsClient, group_id: str) -> None:
    await client.delete_security_group(group_id)
