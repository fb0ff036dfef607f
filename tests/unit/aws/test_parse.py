"""Tests for response normalization."""

from __future__ import annotations

import pytest

from bastion_access.aws.errors import MalformedResponseError
from bastion_access.aws.parse import (
    node_group_member_target,
    node_group_primary_target,
    parse_cache_cluster_nodes,
    parse_cache_cluster_security_group_ids,
    parse_cache_subnet_group,
    parse_db_cluster,
    parse_db_cluster_membership,
    parse_db_instance,
    parse_db_instance_membership,
    parse_db_subnet_group,
    parse_ec2_instance,
    parse_replication_group,
    parse_replication_group_representative,
)
from bastion_access.models.target import ClusterMode, TargetKind
from tests.fixtures.aws import (
    create_cache_cluster,
    create_db_cluster,
    create_db_instance,
    create_ec2_instance,
    create_replication_group,
)


class TestParseReplicationGroup:
    """Test suite for replication group normalization."""

    def test_cluster_mode_enabled_uses_configuration_endpoint(self) -> None:
        response = {
            "ReplicationGroupId": "rg-1",
            "ClusterEnabled": True,
            "ConfigurationEndpoint": {"Address": "cfg.example.com", "Port": 6379},
            "NodeGroups": [],
        }

        target = parse_replication_group(response)

        assert target.identifier == "rg-1"
        assert target.host == "cfg.example.com"
        assert target.port == 6379
        assert target.cluster_mode == ClusterMode.ENABLED
        assert target.kind == TargetKind.CACHE_REPLICATION_GROUP_ENABLED

    def test_cluster_mode_disabled_uses_primary_endpoint(self) -> None:
        response = {
            "ReplicationGroupId": "rg-1",
            "ClusterEnabled": False,
            "ConfigurationEndpoint": {"Address": "cfg.example.com", "Port": 6379},
            "NodeGroups": [
                {
                    "NodeGroupId": "0001",
                    "PrimaryEndpoint": {"Address": "primary.example.com", "Port": 6379},
                }
            ],
        }

        target = parse_replication_group(response)

        assert target.identifier == "rg-1"
        assert target.host == "primary.example.com"
        assert target.port == 6379
        assert target.cluster_mode == ClusterMode.DISABLED
        assert target.kind == TargetKind.CACHE_REPLICATION_GROUP_DISABLED

    def test_missing_cluster_enabled_flag_is_disabled(self) -> None:
        response = create_replication_group("rg-2")
        del response["ClusterEnabled"]

        assert parse_replication_group(response).cluster_mode == ClusterMode.DISABLED

    def test_topology_is_preserved_in_order(self) -> None:
        target = parse_replication_group(create_replication_group("rg-1", member_ids=["rg-1-001", "rg-1-002"]))

        assert len(target.node_topology) == 1
        members = target.node_topology[0].members
        assert [m.cache_cluster_id for m in members] == ["rg-1-001", "rg-1-002"]
        assert members[0].role == "primary"
        assert target.representative_member() == "rg-1-001"

    def test_enabled_group_without_configuration_endpoint_is_malformed(self) -> None:
        response = create_replication_group("rg-1", cluster_enabled=True)
        del response["ConfigurationEndpoint"]

        with pytest.raises(MalformedResponseError):
            parse_replication_group(response)

    def test_disabled_group_without_node_groups_is_malformed(self) -> None:
        response = {"ReplicationGroupId": "rg-1", "ClusterEnabled": False, "NodeGroups": []}

        with pytest.raises(MalformedResponseError):
            parse_replication_group(response)

    def test_non_numeric_port_is_malformed(self) -> None:
        response = create_replication_group("rg-1", cluster_enabled=True)
        response["ConfigurationEndpoint"]["Port"] = "6379"

        with pytest.raises(MalformedResponseError):
            parse_replication_group(response)

    def test_missing_identifier_is_malformed(self) -> None:
        response = create_replication_group("rg-1")
        del response["ReplicationGroupId"]

        with pytest.raises(MalformedResponseError):
            parse_replication_group(response)


class TestParseDatabase:
    """Test suite for RDS normalization."""

    def test_db_instance(self) -> None:
        target = parse_db_instance(create_db_instance("db-1", ["sg-a", "sg-b"], vpc_id="vpc-9"))

        assert target.kind == TargetKind.DB_INSTANCE
        assert target.host == "db-1.abc.us-east-1.rds.amazonaws.com"
        assert target.port == 5432
        assert target.vpc_id == "vpc-9"
        assert target.subnet_group_name == "db-subnets"
        assert target.security_group_ids == ("sg-a", "sg-b")
        assert target.cluster_mode is None
        assert target.node_topology == ()

    def test_db_instance_without_endpoint_is_malformed(self) -> None:
        """Test an instance still being created (no endpoint yet) is rejected."""
        response = create_db_instance("db-1")
        del response["Endpoint"]

        with pytest.raises(MalformedResponseError):
            parse_db_instance(response)

    def test_db_cluster(self) -> None:
        target = parse_db_cluster(create_db_cluster("cluster-1", ["sg-a"], port=3306))

        assert target.kind == TargetKind.DB_CLUSTER
        assert target.host == "cluster-1.cluster-abc.us-east-1.rds.amazonaws.com"
        assert target.port == 3306
        assert target.vpc_id is None
        assert target.subnet_group_name == "db-subnets"
        assert target.security_group_ids == ("sg-a",)

    def test_db_cluster_without_port_is_malformed(self) -> None:
        response = create_db_cluster("cluster-1")
        del response["Port"]

        with pytest.raises(MalformedResponseError):
            parse_db_cluster(response)


class TestParseMembership:
    """Test suite for the identifier-and-security-group decoders used by cleanup."""

    def test_db_instance_without_endpoint(self) -> None:
        response = create_db_instance("db-new", ["sg-a", "sg-b"])
        del response["Endpoint"]

        assert parse_db_instance_membership(response) == ("db-new", ("sg-a", "sg-b"))

    def test_db_cluster_without_endpoint(self) -> None:
        response = create_db_cluster("cluster-1", ["sg-a"])
        del response["Endpoint"]
        del response["Port"]

        assert parse_db_cluster_membership(response) == ("cluster-1", ("sg-a",))

    def test_db_instance_without_security_groups(self) -> None:
        response = create_db_instance("db-1")
        del response["VpcSecurityGroups"]

        assert parse_db_instance_membership(response) == ("db-1", ())

    def test_non_list_security_groups_are_malformed(self) -> None:
        response = create_db_instance("db-1")
        response["VpcSecurityGroups"] = "sg-a"

        with pytest.raises(MalformedResponseError, match="VpcSecurityGroups must be a list"):
            parse_db_instance_membership(response)

    def test_missing_identifier_is_malformed(self) -> None:
        with pytest.raises(MalformedResponseError, match="DBInstanceIdentifier"):
            parse_db_instance_membership({"VpcSecurityGroups": []})

    def test_representative_of_group_without_configuration_endpoint(self) -> None:
        response = create_replication_group("rg-1", cluster_enabled=True, member_ids=["rg-1-001", "rg-1-002"])
        del response["ConfigurationEndpoint"]

        assert parse_replication_group_representative(response) == ("rg-1", "rg-1-001")

    def test_representative_of_group_without_members(self) -> None:
        assert parse_replication_group_representative({"ReplicationGroupId": "rg-1"}) == ("rg-1", None)

    def test_cache_cluster_security_groups(self) -> None:
        response = create_cache_cluster("rg-1-001", security_group_ids=["sg-a"])
        del response["CacheNodes"]

        assert parse_cache_cluster_security_group_ids(response) == ("sg-a",)

class TestParseCacheNodes:
    """Test suite for cache node normalization."""

    def test_cache_cluster_nodes_use_node_endpoint(self) -> None:
        nodes = parse_cache_cluster_nodes(create_cache_cluster("rg-1-001", "rg-1", ["sg-a"]))

        assert len(nodes) == 1
        node = nodes[0]
        assert node.identifier == "rg-1-001"
        assert node.kind == TargetKind.CACHE_NODE
        assert node.host == "rg-1-001.0001.cache.amazonaws.com"
        assert node.replication_group_id == "rg-1"
        assert node.security_group_ids == ("sg-a",)
        assert node.subnet_group_name == "cache-subnets"

    def test_cache_cluster_without_nodes_is_malformed(self) -> None:
        response = create_cache_cluster("rg-1-001")
        del response["CacheNodes"]

        with pytest.raises(MalformedResponseError):
            parse_cache_cluster_nodes(response)

    def test_node_group_targets(self) -> None:
        group = parse_replication_group(create_replication_group("rg-1", member_ids=["rg-1-001", "rg-1-002"]))
        node_group = group.node_topology[0]

        primary = node_group_primary_target(group, node_group)
        replica = node_group_member_target(group, node_group.members[1])

        assert primary.identifier == "0001"
        assert primary.host == "master.rg-1.cache.amazonaws.com"
        assert primary.replication_group_id == "rg-1"
        assert replica.identifier == "rg-1-002"
        assert replica.host == "rg-1-002.cache.amazonaws.com"
        assert replica.cluster_mode == ClusterMode.DISABLED

    def test_member_without_read_endpoint_is_malformed(self) -> None:
        group = parse_replication_group(create_replication_group("rg-1", cluster_enabled=True))

        with pytest.raises(MalformedResponseError):
            node_group_member_target(group, group.node_topology[0].members[0])


class TestParseSupportingRecords:
    def test_subnet_groups(self) -> None:
        db_group = parse_db_subnet_group({"DBSubnetGroupName": "db-subnets", "VpcId": "vpc-1"})
        cache_group = parse_cache_subnet_group({"CacheSubnetGroupName": "cache-subnets", "VpcId": "vpc-2"})

        assert (db_group.name, db_group.vpc_id) == ("db-subnets", "vpc-1")
        assert (cache_group.name, cache_group.vpc_id) == ("cache-subnets", "vpc-2")

    def test_subnet_group_without_vpc_is_malformed(self) -> None:
        with pytest.raises(MalformedResponseError):
            parse_cache_subnet_group({"CacheSubnetGroupName": "cache-subnets"})

    def test_ec2_instance(self) -> None:
        instance = parse_ec2_instance(
            create_ec2_instance("i-1", tags={"Name": "bastion"}, security_groups=[("sg-1", "default")])
        )

        assert instance.instance_id == "i-1"
        assert instance.vpc_id == "vpc-1"
        assert instance.tags == {"Name": "bastion"}
        assert instance.security_groups[0].id == "sg-1"
        assert instance.security_groups[0].name == "default"
