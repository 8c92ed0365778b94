from __future__ import annotations

from gkestack.models import Invariant, ResourceBlock
from gkestack.generation.terraform.providers.gcp import helpers
from gkestack.generation.terraform.resource_templates import (
    ResourceInstance,
    ResourceTemplate,
    TemplateContext,
)


def _build_subnetwork(ctx: TemplateContext) -> ResourceInstance:
    network = ctx.require("network", "subnetwork")
    cfg = ctx.config.network
    secondary_ranges = [
        {"range_name": helpers.PODS_RANGE_NAME, "ip_cidr_range": cfg.pods_cidr},
        {"range_name": helpers.SERVICES_RANGE_NAME, "ip_cidr_range": cfg.services_cidr},
    ]
    block = ResourceBlock(
        type="google_compute_subnetwork",
        name="gke",
        values={
            "name": helpers.SUBNETWORK_NAME,
            "region": helpers.var(helpers.VAR_REGION),
            "network": network["id"],
            "ip_cidr_range": cfg.subnet_cidr,
            "private_ip_google_access": True,
            "secondary_ip_range": secondary_ranges,
        },
    )
    invariant = Invariant(
        resource_type="google_compute_subnetwork",
        match={
            "values.name": helpers.SUBNETWORK_NAME,
            "values.network": network["name"],
            "values.ip_cidr_range": cfg.subnet_cidr,
            "values.secondary_ip_range": secondary_ranges,
        },
    )
    hint = (
        f"Carve {cfg.subnet_cidr} inside {network['name']} with pods range {cfg.pods_cidr} "
        f"and services range {cfg.services_cidr}."
    )
    return ResourceInstance(
        resources=[block],
        invariants=[invariant],
        hints=[hint],
        shared_values={
            "subnetwork": {
                "name": helpers.SUBNETWORK_NAME,
                "id": block.ref("id"),
                "address": block.address,
                "cidr": cfg.subnet_cidr,
                "pods_range": helpers.PODS_RANGE_NAME,
                "services_range": helpers.SERVICES_RANGE_NAME,
            }
        },
    )


def get_templates() -> list[ResourceTemplate]:
    return [
        ResourceTemplate(
            key="subnetwork",
            kind="subnetwork",
            provides=("subnetwork",),
            requires=("network",),
            builder=_build_subnetwork,
            base_hints=("Keep pod and service addresses in dedicated secondary ranges.",),
        )
    ]
