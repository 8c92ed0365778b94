from __future__ import annotations

from gkestack.models import Invariant, Output, ResourceBlock
from gkestack.generation.terraform.providers.gcp import helpers
from gkestack.generation.terraform.resource_templates import (
    ResourceInstance,
    ResourceTemplate,
    TemplateContext,
)


def _build_network(ctx: TemplateContext) -> ResourceInstance:
    block = ResourceBlock(
        type="google_compute_network",
        name="vpc",
        values={
            "name": helpers.NETWORK_NAME,
            "auto_create_subnetworks": False,
            "routing_mode": "REGIONAL",
        },
    )
    invariant = Invariant(
        resource_type="google_compute_network",
        match={
            "values.name": helpers.NETWORK_NAME,
            "values.auto_create_subnetworks": False,
        },
    )
    return ResourceInstance(
        resources=[block],
        invariants=[invariant],
        outputs=[Output(name="network_id", value=block.ref("id"), description="Self link of the VPC.")],
        hints=[f"Custom VPC {helpers.NETWORK_NAME} with auto subnet creation disabled."],
        shared_values={
            "network": {
                "name": helpers.NETWORK_NAME,
                "id": block.ref("id"),
                "self_link": block.ref("self_link"),
                "address": block.address,
            }
        },
    )


def get_templates() -> list[ResourceTemplate]:
    return [
        ResourceTemplate(
            key="vpc_network",
            kind="vpc network",
            provides=("network",),
            builder=_build_network,
            base_hints=("Use a dedicated VPC instead of the default network.",),
        )
    ]
