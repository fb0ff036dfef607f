"""Bastion lookup.

Bastions are discovered from their host instance tags, never created here.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..aws.client import AwsClient
from ..aws.ec2 import get_ec2_instances
from ..aws.errors import ConfigurationFaultError
from ..models.bastion import (
    BASTION_INSTANCE_ID_TAG_NAME,
    BASTION_INSTANCE_SECURITY_GROUP_NAME_PREFIX,
    Bastion,
)

logger = logging.getLogger(__name__)


async def get_bastion(
    client: AwsClient,
    bastion_id: Optional[str] = None,
    vpc_id: Optional[str] = None,
) -> Optional[Bastion]:
    """Find a bastion host.

    Args:
        client: AWS client
        bastion_id: Bastion id to look for (any bastion if omitted)
        vpc_id: Restrict the search to a VPC (optional)

    Returns:
        Bastion if one is found, None otherwise

    Raises:
        ConfigurationFaultError: If the host lacks the id tag or the bastion security group
    """
    instances = await get_ec2_instances(
        client,
        tags={BASTION_INSTANCE_ID_TAG_NAME: bastion_id or "*"},
        vpc_id=vpc_id,
    )
    if not instances:
        logger.debug(f"No bastion found (id={bastion_id}, vpc={vpc_id})")
        return None

    instance = instances[0]

    found_id = instance.tags.get(BASTION_INSTANCE_ID_TAG_NAME)
    if not found_id:
        raise ConfigurationFaultError(
            f'Bastion instance {instance.instance_id} doesn\'t have the required tag "{BASTION_INSTANCE_ID_TAG_NAME}".'
        )

    security_group = next(
        (group for group in instance.security_groups if group.name.startswith(BASTION_INSTANCE_SECURITY_GROUP_NAME_PREFIX)),
        None,
    )
    if security_group is None:
        raise ConfigurationFaultError(
            f"Bastion instance {instance.instance_id} doesn't have the required security group."
        )

    return Bastion(
        id=found_id,
        instance=instance,
        security_group_id=security_group.id,
        security_group_name=security_group.name,
    )
