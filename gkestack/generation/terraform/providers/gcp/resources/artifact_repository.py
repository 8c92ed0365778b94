from __future__ import annotations

from gkestack.models import Invariant, Output, ResourceBlock
from gkestack.generation.terraform.providers.gcp import helpers
from gkestack.generation.terraform.resource_templates import (
    ResourceInstance,
    ResourceTemplate,
    TemplateContext,
)


def _build_repository(ctx: TemplateContext) -> ResourceInstance:
    cfg = ctx.config.registry
    location = cfg.location or helpers.var(helpers.VAR_REGION)
    block = ResourceBlock(
        type="google_artifact_registry_repository",
        name="images",
        values={
            "repository_id": cfg.repository_id,
            "location": location,
            "format": cfg.format,
            "description": cfg.description,
        },
    )
    invariant = Invariant(
        resource_type="google_artifact_registry_repository",
        match={
            "values.repository_id": cfg.repository_id,
            "values.format": cfg.format,
        },
    )
    return ResourceInstance(
        resources=[block],
        invariants=[invariant],
        outputs=[
            Output(
                name="repository_url",
                value=helpers.repository_url(block.ref("location"), block.ref("repository_id")),
                description="Docker push/pull prefix for the repository.",
            )
        ],
        hints=[f"Artifact Registry repository {cfg.repository_id} holding {cfg.format} images."],
        shared_values={
            "artifact_repository": {"repository_id": cfg.repository_id, "address": block.address}
        },
    )


def get_templates() -> list[ResourceTemplate]:
    return [
        ResourceTemplate(
            key="artifact_repository",
            kind="artifact registry repo",
            provides=("artifact_repository",),
            builder=_build_repository,
            base_hints=("Consumers address the repository by id; keep id and format stable.",),
        )
    ]
