from __future__ import annotations

from gkestack.models import Invariant, ResourceBlock
from gkestack.generation.terraform.providers.gcp import helpers
from gkestack.generation.terraform.resource_templates import (
    ResourceInstance,
    ResourceTemplate,
    TemplateContext,
)


def _build_router_nat(ctx: TemplateContext) -> ResourceInstance:
    network = ctx.require("network", "router/nat")
    subnetwork = ctx.require("subnetwork", "router/nat")

    router = ResourceBlock(
        type="google_compute_router",
        name="nat",
        values={
            "name": helpers.ROUTER_NAME,
            "region": helpers.var(helpers.VAR_REGION),
            "network": network["id"],
        },
    )
    # Private nodes have no external IPs; egress goes through this NAT only.
    nat = ResourceBlock(
        type="google_compute_router_nat",
        name="nat",
        values={
            "name": helpers.NAT_NAME,
            "router": router.ref("name"),
            "region": router.ref("region"),
            "nat_ip_allocate_option": "AUTO_ONLY",
            "source_subnetwork_ip_ranges_to_nat": "LIST_OF_SUBNETWORKS",
            "subnetwork": [
                {
                    "name": subnetwork["id"],
                    "source_ip_ranges_to_nat": ["ALL_IP_RANGES"],
                }
            ],
            "log_config": [{"enable": True, "filter": helpers.NAT_LOG_FILTER}],
        },
    )
    invariants = [
        Invariant(
            resource_type="google_compute_router",
            match={"values.name": helpers.ROUTER_NAME, "values.network": network["name"]},
        ),
        Invariant(
            resource_type="google_compute_router_nat",
            match={
                "values.name": helpers.NAT_NAME,
                "values.router": helpers.ROUTER_NAME,
                "values.log_config.0.enable": True,
                "values.log_config.0.filter": helpers.NAT_LOG_FILTER,
            },
        ),
    ]
    return ResourceInstance(
        resources=[router, nat],
        invariants=invariants,
        hints=[f"Route private egress through {helpers.ROUTER_NAME}/{helpers.NAT_NAME}, logging errors only."],
        shared_values={"egress": {"router": helpers.ROUTER_NAME, "nat": helpers.NAT_NAME}},
    )


def get_templates() -> list[ResourceTemplate]:
    return [
        ResourceTemplate(
            key="router_nat",
            kind="cloud router + nat",
            provides=("egress",),
            requires=("network", "subnetwork"),
            builder=_build_router_nat,
            base_hints=("Give private nodes outbound access without public addresses.",),
        )
    ]
