from __future__ import annotations

from gkestack.models import Invariant, Output, ResourceBlock
from gkestack.generation.terraform.providers.gcp import helpers
from gkestack.generation.terraform.resource_templates import (
    ResourceInstance,
    ResourceTemplate,
    TemplateContext,
)


def _build_cluster(ctx: TemplateContext) -> ResourceInstance:
    network = ctx.require("network", "gke cluster")
    subnetwork = ctx.require("subnetwork", "gke cluster")
    net_cfg = ctx.config.network
    cluster_cfg = ctx.config.cluster

    block = ResourceBlock(
        type="google_container_cluster",
        name="primary",
        values={
            "name": helpers.CLUSTER_NAME,
            "location": helpers.var(helpers.VAR_REGION),
            "network": network["id"],
            "subnetwork": subnetwork["id"],
            "networking_mode": "VPC_NATIVE",
            # Workers live in the dedicated node pool.
            "remove_default_node_pool": True,
            "initial_node_count": 1,
            "ip_allocation_policy": [
                {
                    "cluster_secondary_range_name": subnetwork["pods_range"],
                    "services_secondary_range_name": subnetwork["services_range"],
                }
            ],
            "private_cluster_config": [
                {
                    "enable_private_nodes": True,
                    "enable_private_endpoint": True,
                    "master_ipv4_cidr_block": net_cfg.master_cidr,
                }
            ],
            "master_authorized_networks_config": [
                {
                    "cidr_blocks": [
                        {
                            "cidr_block": helpers.var(helpers.VAR_AUTHORIZED_CIDR),
                            "display_name": net_cfg.authorized_display_name,
                        }
                    ]
                }
            ],
            "release_channel": [{"channel": cluster_cfg.release_channel}],
            "workload_identity_config": [{"workload_pool": helpers.workload_pool()}],
            "network_policy": [{"enabled": True, "provider": helpers.NETWORK_POLICY_PROVIDER}],
            "addons_config": [{"network_policy_config": [{"disabled": False}]}],
            "enable_shielded_nodes": True,
            "enable_legacy_abac": False,
            "master_auth": [{"client_certificate_config": [{"issue_client_certificate": False}]}],
        },
    )
    invariant = Invariant(
        resource_type="google_container_cluster",
        match={
            "values.name": helpers.CLUSTER_NAME,
            "values.network": network["name"],
            "values.subnetwork": subnetwork["name"],
            "values.private_cluster_config.0.enable_private_nodes": True,
            "values.private_cluster_config.0.enable_private_endpoint": True,
            "values.private_cluster_config.0.master_ipv4_cidr_block": net_cfg.master_cidr,
            "values.release_channel.0.channel": cluster_cfg.release_channel,
            "values.network_policy.0.enabled": True,
            "values.network_policy.0.provider": helpers.NETWORK_POLICY_PROVIDER,
            "values.enable_shielded_nodes": True,
            "values.enable_legacy_abac": False,
        },
    )
    return ResourceInstance(
        resources=[block],
        invariants=[invariant],
        outputs=[
            Output(name="cluster_name", value=block.ref("name"), description="Name of the GKE cluster."),
            Output(
                name="cluster_endpoint",
                value=block.ref("endpoint"),
                description="Private control plane endpoint.",
                sensitive=True,
            ),
        ],
        hints=[
            f"Private {cluster_cfg.release_channel} cluster {helpers.CLUSTER_NAME} with master range "
            f"{net_cfg.master_cidr}, Calico policy and workload identity."
        ],
        shared_values={
            "cluster": {
                "name": helpers.CLUSTER_NAME,
                "ref": block.ref("name"),
                "location": block.ref("location"),
                "address": block.address,
            }
        },
    )


def get_templates() -> list[ResourceTemplate]:
    return [
        ResourceTemplate(
            key="gke_cluster",
            kind="private gke cluster",
            provides=("cluster",),
            requires=("network", "subnetwork"),
            builder=_build_cluster,
            base_hints=(
                "Keep both the nodes and the control plane endpoint private.",
                "Legacy ABAC stays off; the dashboard add-on is not declared.",
            ),
        )
    ]
