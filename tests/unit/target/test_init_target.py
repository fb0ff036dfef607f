"""Tests for init targets."""

from __future__ import annotations

import asyncio

import pytest

from bastion_access.aws.client import ResourceFamily
from bastion_access.aws.errors import ConfigurationFaultError, NotFoundError
from bastion_access.aws.parse import (
    parse_cache_cluster_nodes,
    parse_db_cluster,
    parse_db_instance,
    parse_replication_group,
)
from bastion_access.models.bastion import Bastion, Ec2Instance
from bastion_access.target import create_init_target
from bastion_access.target.init_target import (
    DbClusterInitTarget,
    DbInstanceInitTarget,
    ElasticacheClusterModeEnabledInitTarget,
    ElasticacheInitTarget,
    InitState,
)
from tests.fixtures.aws import (
    FakeAwsClient,
    create_cache_cluster,
    create_cache_subnet_group,
    create_db_cluster,
    create_db_instance,
    create_db_subnet_group,
    create_replication_group,
)


def _bastion(vpc_id: str = "vpc-1") -> Bastion:
    return Bastion(
        id="ops",
        instance=Ec2Instance(instance_id="i-bastion", vpc_id=vpc_id),
        security_group_id="sg-bastion",
        security_group_name="bastion-access-instance-ops",
    )


def _cache_client(cluster_enabled: bool = False) -> FakeAwsClient:
    return FakeAwsClient(
        replication_groups=[
            create_replication_group("rg-1", cluster_enabled=cluster_enabled, member_ids=["rg-1-001", "rg-1-002"])
        ],
        cache_clusters=[
            create_cache_cluster("rg-1-001", "rg-1", ["sg-a"]),
            create_cache_cluster("rg-1-002", "rg-1", ["sg-a"]),
        ],
        cache_subnet_groups=[create_cache_subnet_group("cache-subnets", "vpc-1")],
    )


class TestCreateInitTarget:
    def test_variant_is_bound_from_kind(self) -> None:
        client = FakeAwsClient()

        enabled = parse_replication_group(create_replication_group("rg-1", cluster_enabled=True))
        disabled = parse_replication_group(create_replication_group("rg-2"))
        node = parse_cache_cluster_nodes(create_cache_cluster("rg-2-001", "rg-2"))[0]

        assert type(create_init_target(client, parse_db_instance(create_db_instance()))) is DbInstanceInitTarget
        assert type(create_init_target(client, parse_db_cluster(create_db_cluster()))) is DbClusterInitTarget
        assert type(create_init_target(client, enabled)) is ElasticacheClusterModeEnabledInitTarget
        assert type(create_init_target(client, disabled)) is ElasticacheInitTarget
        assert type(create_init_target(client, node)) is ElasticacheInitTarget


class TestDbInstanceInitTarget:
    """Test suite for DB instance init targets."""

    def test_grant_access_appends_bastion_security_group(self) -> None:
        client = FakeAwsClient(db_instances=[create_db_instance("db-1", ["sg-a"])])
        target = create_init_target(client, parse_db_instance(create_db_instance("db-1", ["sg-a"])))

        attached = asyncio.run(target.grant_access(_bastion()))

        assert attached is True
        assert target.state == InitState.ATTACHED
        assert client.security_groups_of(ResourceFamily.DB_INSTANCES, "db-1") == ["sg-a", "sg-bastion"]
        assert client.calls_to("modify") == [("modify", ResourceFamily.DB_INSTANCES, ("db-1", ["sg-a", "sg-bastion"]))]

    def test_grant_access_is_idempotent(self) -> None:
        """Test granting twice issues one modification and attaches the group once."""
        client = FakeAwsClient(db_instances=[create_db_instance("db-1", ["sg-a"])])
        selected = parse_db_instance(create_db_instance("db-1", ["sg-a"]))

        asyncio.run(create_init_target(client, selected).grant_access(_bastion()))
        second = create_init_target(client, selected)
        attached = asyncio.run(second.grant_access(_bastion()))

        assert attached is False
        assert second.state == InitState.ATTACHED
        assert len(client.calls_to("modify")) == 1
        assert client.security_groups_of(ResourceFamily.DB_INSTANCES, "db-1").count("sg-bastion") == 1

    def test_membership_comes_from_detailed_describe(self) -> None:
        """Test a stale selection does not overwrite groups attached since it was listed."""
        client = FakeAwsClient(db_instances=[create_db_instance("db-1", ["sg-a", "sg-new"])])
        stale = parse_db_instance(create_db_instance("db-1", ["sg-a"]))

        asyncio.run(create_init_target(client, stale).grant_access(_bastion()))

        assert client.security_groups_of(ResourceFamily.DB_INSTANCES, "db-1") == ["sg-a", "sg-new", "sg-bastion"]

    def test_vpc_falls_back_to_subnet_group(self) -> None:
        client = FakeAwsClient(
            db_instances=[create_db_instance("db-1", vpc_id=None)],
            db_subnet_groups=[create_db_subnet_group("db-subnets", "vpc-5")],
        )
        target = create_init_target(client, parse_db_instance(create_db_instance("db-1", vpc_id=None)))

        assert asyncio.run(target.get_vpc_id()) == "vpc-5"
        assert target.state == InitState.SUBNET_RESOLVED

    def test_vpc_mismatch_is_configuration_fault(self) -> None:
        client = FakeAwsClient(db_instances=[create_db_instance("db-1", ["sg-a"], vpc_id="vpc-1")])
        target = create_init_target(client, parse_db_instance(create_db_instance("db-1")))

        with pytest.raises(ConfigurationFaultError):
            asyncio.run(target.grant_access(_bastion(vpc_id="vpc-2")))

        assert client.mutations == []

    def test_deleted_instance_is_not_found(self) -> None:
        client = FakeAwsClient()
        target = create_init_target(client, parse_db_instance(create_db_instance("db-1")))

        with pytest.raises(NotFoundError):
            asyncio.run(target.get_security_group_ids())

        assert target.state == InitState.CREATED


class TestDbClusterInitTarget:
    def test_vpc_from_subnet_group(self) -> None:
        client = FakeAwsClient(
            db_clusters=[create_db_cluster("cluster-1", ["sg-a"])],
            db_subnet_groups=[create_db_subnet_group("db-subnets", "vpc-1")],
        )
        target = create_init_target(client, parse_db_cluster(create_db_cluster("cluster-1")))

        attached = asyncio.run(target.grant_access(_bastion()))

        assert attached is True
        assert client.security_groups_of(ResourceFamily.DB_CLUSTERS, "cluster-1") == ["sg-a", "sg-bastion"]

    def test_missing_subnet_group_is_not_found(self) -> None:
        client = FakeAwsClient(db_clusters=[create_db_cluster("cluster-1")])
        target = create_init_target(client, parse_db_cluster(create_db_cluster("cluster-1")))

        with pytest.raises(NotFoundError):
            asyncio.run(target.get_vpc_id())


class TestElasticacheInitTarget:
    """Test suite for cache init targets."""

    def test_cluster_mode_enabled_group(self) -> None:
        client = _cache_client(cluster_enabled=True)
        selected = parse_replication_group(create_replication_group("rg-1", cluster_enabled=True))
        target = create_init_target(client, selected)

        assert asyncio.run(target.get_security_group_ids()) == ["sg-a"]
        attached = asyncio.run(target.grant_access(_bastion()))

        assert attached is True
        assert client.calls_to("modify") == [
            ("modify", ResourceFamily.REPLICATION_GROUPS, ("rg-1", ["sg-a", "sg-bastion"]))
        ]

    def test_cluster_mode_disabled_group(self) -> None:
        client = _cache_client()
        target = create_init_target(client, parse_replication_group(create_replication_group("rg-1")))

        asyncio.run(target.grant_access(_bastion()))

        assert client.security_groups_of(ResourceFamily.CACHE_CLUSTERS, "rg-1-002") == ["sg-a", "sg-bastion"]

    def test_node_modifies_its_replication_group(self) -> None:
        client = _cache_client()
        node = parse_cache_cluster_nodes(create_cache_cluster("rg-1-002", "rg-1", ["sg-a"]))[0]
        target = create_init_target(client, node)

        asyncio.run(target.grant_access(_bastion()))

        assert client.calls_to("modify")[0][2] == ("rg-1", ["sg-a", "sg-bastion"])

    def test_standalone_cache_cluster_is_configuration_fault(self) -> None:
        standalone = create_cache_cluster("solo", replication_group_id=None, security_group_ids=["sg-a"])
        client = FakeAwsClient(
            cache_clusters=[standalone],
            cache_subnet_groups=[create_cache_subnet_group("cache-subnets", "vpc-1")],
        )
        target = create_init_target(client, parse_cache_cluster_nodes(standalone)[0])

        with pytest.raises(ConfigurationFaultError):
            asyncio.run(target.grant_access(_bastion()))

        assert client.mutations == []

    def test_cache_cluster_without_subnet_group_is_configuration_fault(self) -> None:
        cluster = create_cache_cluster("rg-1-001", "rg-1", subnet_group_name=None)
        client = FakeAwsClient(
            replication_groups=[create_replication_group("rg-1")],
            cache_clusters=[cluster],
        )
        target = create_init_target(client, parse_replication_group(create_replication_group("rg-1")))

        with pytest.raises(ConfigurationFaultError):
            asyncio.run(target.get_vpc_id())

    def test_state_only_advances(self) -> None:
        client = _cache_client()
        target = create_init_target(client, parse_replication_group(create_replication_group("rg-1")))

        asyncio.run(target.get_security_group_ids())
        assert target.state == InitState.SECURITY_GROUPS_RESOLVED

        asyncio.run(target.get_vpc_id())
        assert target.state == InitState.SECURITY_GROUPS_RESOLVED
