"""Bastion and EC2 instance models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

BASTION_INSTANCE_ID_TAG_NAME = "bastion-access:id"
BASTION_INSTANCE_SECURITY_GROUP_NAME_PREFIX = "bastion-access-instance"


@dataclass(frozen=True)
class SecurityGroup:
    id: str
    name: str


@dataclass(frozen=True)
class Ec2Instance:
    """EC2 instance with the fields needed to identify a bastion."""

    instance_id: str
    vpc_id: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)
    security_groups: tuple[SecurityGroup, ...] = ()


@dataclass(frozen=True)
class Bastion:
    """A discovered bastion host.

    The host instance always carries the ``BASTION_INSTANCE_ID_TAG_NAME`` tag and
    a security group whose name starts with
    ``BASTION_INSTANCE_SECURITY_GROUP_NAME_PREFIX``.

    Attributes:
        id: Bastion identifier (value of the id tag)
        instance: Host instance
        security_group_id: Bastion security group id
        security_group_name: Bastion security group name
    """

    id: str
    instance: Ec2Instance
    security_group_id: str
    security_group_name: str

    def __post_init__(self) -> None:
        if not self.security_group_name.startswith(BASTION_INSTANCE_SECURITY_GROUP_NAME_PREFIX):
            raise ValueError(
                f"security_group_name must start with '{BASTION_INSTANCE_SECURITY_GROUP_NAME_PREFIX}'"
            )

    @property
    def vpc_id(self) -> Optional[str]:
        return self.instance.vpc_id
