"""Tests for bastion lookup."""

from __future__ import annotations

import asyncio

import pytest

from bastion_access.aws.errors import ConfigurationFaultError
from bastion_access.bastion import get_bastion
from bastion_access.models.bastion import BASTION_INSTANCE_ID_TAG_NAME, Bastion, Ec2Instance
from tests.fixtures.aws import FakeAwsClient, create_ec2_instance


def _bastion_instance(bastion_id: str = "ops", vpc_id: str = "vpc-1", instance_id: str = "i-bastion") -> dict:
    return create_ec2_instance(
        instance_id,
        tags={BASTION_INSTANCE_ID_TAG_NAME: bastion_id, "Name": "bastion"},
        security_groups=[("sg-default", "default"), ("sg-bastion", "bastion-access-instance-ops")],
        vpc_id=vpc_id,
    )


class TestGetBastion:
    """Test suite for get_bastion()."""

    def test_finds_bastion_by_id(self) -> None:
        client = FakeAwsClient(instances=[_bastion_instance("other", instance_id="i-2"), _bastion_instance("ops")])

        bastion = asyncio.run(get_bastion(client, bastion_id="ops"))

        assert bastion.id == "ops"
        assert bastion.instance.instance_id == "i-bastion"
        assert bastion.security_group_id == "sg-bastion"
        assert bastion.security_group_name == "bastion-access-instance-ops"
        assert bastion.vpc_id == "vpc-1"

    def test_any_bastion_in_vpc(self) -> None:
        client = FakeAwsClient(instances=[_bastion_instance("a", "vpc-1", "i-1"), _bastion_instance("b", "vpc-2", "i-2")])

        bastion = asyncio.run(get_bastion(client, vpc_id="vpc-2"))

        assert bastion.id == "b"
        assert client.calls_to("find_instances")[0][2] == ({BASTION_INSTANCE_ID_TAG_NAME: "*"}, "vpc-2")

    def test_no_bastion_is_none(self) -> None:
        client = FakeAwsClient(instances=[create_ec2_instance("i-web", tags={"Name": "web"})])

        assert asyncio.run(get_bastion(client)) is None

    def test_missing_security_group_is_configuration_fault(self) -> None:
        instance = create_ec2_instance(
            "i-bastion",
            tags={BASTION_INSTANCE_ID_TAG_NAME: "ops"},
            security_groups=[("sg-default", "default")],
        )
        client = FakeAwsClient(instances=[instance])

        with pytest.raises(ConfigurationFaultError):
            asyncio.run(get_bastion(client))

    def test_empty_id_tag_is_configuration_fault(self) -> None:
        instance = _bastion_instance("")
        client = FakeAwsClient(instances=[instance])

        with pytest.raises(ConfigurationFaultError):
            asyncio.run(get_bastion(client))


def test_bastion_requires_prefixed_security_group() -> None:
    with pytest.raises(ValueError):
        Bastion(
            id="ops",
            instance=Ec2Instance(instance_id="i-1"),
            security_group_id="sg-1",
            security_group_name="default",
        )
