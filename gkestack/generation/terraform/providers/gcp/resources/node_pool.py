from __future__ import annotations

from gkestack.models import Invariant, ResourceBlock
from gkestack.generation.terraform.providers.gcp import helpers
from gkestack.generation.terraform.resource_templates import (
    ResourceInstance,
    ResourceTemplate,
    TemplateContext,
)


def _build_node_pool(ctx: TemplateContext) -> ResourceInstance:
    cluster = ctx.require("cluster", "gke node pool")
    identity = ctx.require("node_identity", "gke node pool")
    cfg = ctx.config.cluster

    block = ResourceBlock(
        type="google_container_node_pool",
        name="primary",
        values={
            "name": helpers.NODE_POOL_NAME,
            "cluster": cluster["ref"],
            "location": cluster["location"],
            "node_count": int(cfg.node_count),
            "management": [{"auto_repair": True, "auto_upgrade": True}],
            "node_config": [
                {
                    "machine_type": cfg.machine_type,
                    "disk_size_gb": int(cfg.disk_size_gb),
                    "disk_type": cfg.disk_type,
                    "image_type": cfg.image_type,
                    "service_account": identity["email"],
                    "oauth_scopes": list(helpers.NODE_OAUTH_SCOPES),
                    "shielded_instance_config": [
                        {"enable_secure_boot": True, "enable_integrity_monitoring": True}
                    ],
                    "workload_metadata_config": [{"mode": "GKE_METADATA"}],
                    "metadata": {"disable-legacy-endpoints": "true"},
                }
            ],
        },
        # Bindings must exist before nodes start pulling images and shipping logs.
        depends_on=list(identity["bindings"]),
    )
    invariant = Invariant(
        resource_type="google_container_node_pool",
        match={
            "values.name": helpers.NODE_POOL_NAME,
            "values.cluster": cluster["name"],
            "values.node_count": int(cfg.node_count),
            "values.management.0.auto_repair": True,
            "values.management.0.auto_upgrade": True,
            "values.node_config.0.image_type": cfg.image_type,
            "values.node_config.0.shielded_instance_config.0.enable_secure_boot": True,
            "values.node_config.0.shielded_instance_config.0.enable_integrity_monitoring": True,
            "values.node_config.0.service_account": identity["account_id"],
        },
    )
    return ResourceInstance(
        resources=[block],
        invariants=[invariant],
        hints=[
            f"{cfg.node_count} x {cfg.machine_type} shielded {cfg.image_type} nodes running as "
            f"{identity['account_id']}."
        ],
        shared_values={"node_pool": {"name": helpers.NODE_POOL_NAME, "address": block.address}},
    )


def get_templates() -> list[ResourceTemplate]:
    return [
        ResourceTemplate(
            key="gke_node_pool",
            kind="gke node pool",
            provides=("node_pool",),
            requires=("cluster", "node_identity"),
            builder=_build_node_pool,
            base_hints=("Auto-repair and auto-upgrade stay enabled.",),
        )
    ]
