from __future__ import annotations

from gkestack.models import Invariant, Output, ResourceBlock
from gkestack.generation.terraform.providers.gcp import helpers
from gkestack.generation.terraform.resource_templates import (
    ResourceInstance,
    ResourceTemplate,
    TemplateContext,
)


def _build_node_service_account(ctx: TemplateContext) -> ResourceInstance:
    account = ResourceBlock(
        type="google_service_account",
        name="gke_nodes",
        values={
            "account_id": helpers.NODE_SA_ACCOUNT_ID,
            "display_name": helpers.NODE_SA_DISPLAY_NAME,
            "description": "Least-privilege identity for GKE worker nodes",
        },
    )
    email = account.ref("email")
    member = helpers.service_account_member(email)

    # One binding per role so roles can be attached and detached independently.
    bindings = [
        ResourceBlock(
            type="google_project_iam_member",
            name=helpers.role_resource_name(role),
            values={
                "project": helpers.var(helpers.VAR_PROJECT_ID),
                "role": role,
                "member": member,
            },
        )
        for role in helpers.NODE_SA_ROLES
    ]

    invariants = [
        Invariant(
            resource_type="google_service_account",
            match={"values.account_id": helpers.NODE_SA_ACCOUNT_ID},
        )
    ]
    invariants.extend(
        Invariant(
            resource_type="google_project_iam_member",
            match={
                "values.role": role,
                "values.member": f"serviceAccount:{helpers.NODE_SA_ACCOUNT_ID}",
            },
        )
        for role in helpers.NODE_SA_ROLES
    )
    return ResourceInstance(
        resources=[account, *bindings],
        invariants=invariants,
        outputs=[
            Output(
                name="node_service_account_email",
                value=email,
                description="Email of the node service account.",
            )
        ],
        hints=[f"Bind {helpers.NODE_SA_ACCOUNT_ID} to {', '.join(helpers.NODE_SA_ROLES)} only."],
        shared_values={
            "node_identity": {
                "account_id": helpers.NODE_SA_ACCOUNT_ID,
                "email": email,
                "address": account.address,
                "bindings": [binding.address for binding in bindings],
            }
        },
    )


def get_templates() -> list[ResourceTemplate]:
    return [
        ResourceTemplate(
            key="node_service_account",
            kind="node service account",
            provides=("node_identity",),
            builder=_build_node_service_account,
            base_hints=("Never run nodes as the default compute service account.",),
        )
    ]
