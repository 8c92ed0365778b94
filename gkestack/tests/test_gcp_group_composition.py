"""
Test suite for group composition: template discovery, dependency ordering,
the provider registry and the Terraform JSON the groups render to.
"""

import json

import pytest

from gkestack.generation.terraform.providers.gcp import compositions
from gkestack.generation.terraform.providers.gcp.group_bank import GCPDeclarationBank, load_templates
from gkestack.generation.terraform.registry import DeclarationRegistry
from gkestack.generation.terraform.resource_templates import ResourceInstance, ResourceTemplate
from gkestack.generation.yaml_config import StackConfig
from gkestack.models import ResourceBlock


def _noop_builder(ctx):
    return ResourceInstance(resources=[])


class TestTemplateDiscovery:
    def test_all_templates_discovered(self):
        assert set(load_templates()) == {
            "vpc_network",
            "subnetwork",
            "router_nat",
            "node_service_account",
            "gke_cluster",
            "gke_node_pool",
            "artifact_repository",
        }

    def test_every_requirement_has_a_provider(self):
        templates = load_templates()
        provided = {cap for t in templates.values() for cap in t.provides}
        for template in templates.values():
            assert set(template.requires) <= provided, template.key


class TestNetworkClusterGroup:
    def test_dependency_order(self, network_group):
        order = network_group.metadata["template_keys"]

        assert order.index("vpc_network") < order.index("subnetwork")
        assert order.index("subnetwork") < order.index("router_nat")
        assert order.index("subnetwork") < order.index("gke_cluster")
        assert order.index("gke_cluster") < order.index("gke_node_pool")
        assert order.index("node_service_account") < order.index("gke_node_pool")

    def test_order_is_stable(self, stack_config, network_group):
        again = GCPDeclarationBank(compositions.NETWORK_CLUSTER).build_group(stack_config)
        assert again.metadata["template_keys"] == network_group.metadata["template_keys"]
        assert again.to_terraform_json() == network_group.to_terraform_json()

    def test_resource_addresses(self, network_group):
        addresses = {block.address for block in network_group.resources}
        assert addresses == {
            "google_compute_network.vpc",
            "google_compute_subnetwork.gke",
            "google_compute_router.nat",
            "google_compute_router_nat.nat",
            "google_service_account.gke_nodes",
            "google_project_iam_member.node_sa_monitoring_viewer",
            "google_project_iam_member.node_sa_logging_logwriter",
            "google_project_iam_member.node_sa_artifactregistry_reader",
            "google_container_cluster.primary",
            "google_container_node_pool.primary",
        }

    def test_variables(self, network_group):
        variables = {var.name: var for var in network_group.variables}
        assert set(variables) == {"project_id", "region", "authorized_cidr"}
        assert variables["project_id"].required
        assert variables["authorized_cidr"].default == "10.10.0.0/24"

    def test_terraform_json_shape(self, network_group):
        document = network_group.to_terraform_json()

        assert document["terraform"]["required_providers"]["google"] == {
            "source": "hashicorp/google",
            "version": "~> 5.0",
        }
        assert document["provider"]["google"]["project"] == "${var.project_id}"
        assert "default" not in document["variable"]["project_id"]
        cluster = document["resource"]["google_container_cluster"]["primary"]
        assert cluster["private_cluster_config"][0]["enable_private_endpoint"] is True
        pool = document["resource"]["google_container_node_pool"]["primary"]
        assert pool["depends_on"][0].startswith("google_project_iam_member.")
        assert document["output"]["cluster_endpoint"]["sensitive"] is True
        # Must serialise as plain JSON for the engine.
        json.loads(network_group.to_json())

    def test_provider_version_from_config(self):
        config = StackConfig.from_dict({"settings": {"terraform": {"google_provider_version": "~> 6.0"}}})
        group = GCPDeclarationBank(compositions.NETWORK_CLUSTER).build_group(config)
        assert group.to_terraform_json()["terraform"]["required_providers"]["google"]["version"] == "~> 6.0"


class TestArtifactRegistryGroup:
    def test_single_repository(self, registry_group):
        assert [block.address for block in registry_group.resources] == [
            "google_artifact_registry_repository.images"
        ]
        assert {var.name for var in registry_group.variables} == {"project_id", "region"}
        assert "repository_url" in registry_group.to_terraform_json()["output"]

    def test_independent_of_network_group(self, registry_group):
        types = {block.type for block in registry_group.resources}
        assert "google_compute_network" not in types


class TestCompositionErrors:
    def test_missing_capability_provider(self, stack_config):
        templates = {
            "orphan": ResourceTemplate(
                key="orphan", kind="orphan", provides=("x",), requires=("nothing",), builder=_noop_builder
            )
        }
        bank = GCPDeclarationBank(compositions.GroupDefinition("g", ("orphan",)), templates=templates)
        with pytest.raises(RuntimeError, match="No templates provide required capability 'nothing'"):
            bank.build_group(stack_config)

    def test_cycle_detected(self, stack_config):
        templates = {
            "a": ResourceTemplate(key="a", kind="a", provides=("a",), requires=("b",), builder=_noop_builder),
            "b": ResourceTemplate(key="b", kind="b", provides=("b",), requires=("a",), builder=_noop_builder),
        }
        bank = GCPDeclarationBank(compositions.GroupDefinition("g", ("a",)), templates=templates)
        with pytest.raises(RuntimeError, match="Cycle detected"):
            bank.build_group(stack_config)

    def test_unknown_template_key(self, stack_config):
        bank = GCPDeclarationBank(compositions.GroupDefinition("g", ("does_not_exist",)))
        with pytest.raises(RuntimeError, match="Unknown template key"):
            bank.build_group(stack_config)

    def test_unknown_variable(self, stack_config):
        with pytest.raises(RuntimeError, match="Unknown group variables"):
            compositions.build_variables(["project_id", "zone"], stack_config)

    def test_duplicate_resource_address(self, stack_config):
        def builder(ctx):
            return ResourceInstance(resources=[ResourceBlock(type="google_compute_network", name="vpc")])

        templates = {
            "one": ResourceTemplate(key="one", kind="one", provides=("one",), builder=builder),
            "two": ResourceTemplate(key="two", kind="two", provides=("two",), builder=builder),
        }
        group = GCPDeclarationBank(
            compositions.GroupDefinition("g", ("one", "two")), templates=templates
        ).build_group(stack_config)
        with pytest.raises(ValueError, match="Duplicate resource address"):
            group.to_terraform_json()


class TestRegistry:
    def test_groups_registered(self, stack_config):
        registry = DeclarationRegistry(stack_config)
        assert registry.get_all_providers() == ["gcp"]
        assert set(registry.get_group_names("gcp")) == {"network_cluster", "artifact_registry"}

    def test_build_group_by_name(self, stack_config):
        group = DeclarationRegistry(stack_config).build_group("gcp", "artifact_registry")
        assert group.name == "artifact_registry"

    def test_unknown_group(self, stack_config):
        with pytest.raises(KeyError, match="No group 'nope'"):
            DeclarationRegistry(stack_config).build_group("gcp", "nope")

    def test_disabled_groups_skipped(self):
        config = StackConfig.from_dict({"groups": {"network_cluster": {"enabled": False}}})
        groups = DeclarationRegistry(config).build_enabled_groups("gcp")
        assert [group.name for group in groups] == ["artifact_registry"]
