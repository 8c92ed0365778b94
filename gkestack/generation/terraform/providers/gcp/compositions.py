from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from gkestack.generation.terraform.providers.gcp import helpers
from gkestack.generation.yaml_config import StackConfig
from gkestack.models import Variable


@dataclass(frozen=True)
class GroupDefinition:
    """
    Simple struct describing which resource templates belong to a declaration group.

    - name: group label; also the directory the group renders into.
    - mandatory: templates that must always be present (dependencies are pulled in).
    - variables: input variable names the rendered group declares.
    """

    name: str
    mandatory: Tuple[str, ...]
    variables: Tuple[str, ...] = (helpers.VAR_PROJECT_ID, helpers.VAR_REGION)
    description: str = ""

    def pick_templates(self) -> List[str]:
        return list(self.mandatory)


def build_variables(names: Sequence[str], config: StackConfig) -> List[Variable]:
    catalog: Dict[str, Variable] = {
        helpers.VAR_PROJECT_ID: Variable(
            name=helpers.VAR_PROJECT_ID,
            description="Project that owns every resource in this group.",
        ),
        helpers.VAR_REGION: Variable(
            name=helpers.VAR_REGION,
            description="Region for regional resources.",
            default=config.project.region,
        ),
        helpers.VAR_AUTHORIZED_CIDR: Variable(
            name=helpers.VAR_AUTHORIZED_CIDR,
            description="CIDR allowed to reach the private control plane endpoint.",
            default=config.network.authorized_cidr,
        ),
    }
    missing = [name for name in names if name not in catalog]
    if missing:
        raise RuntimeError(f"Unknown group variables: {', '.join(missing)}")
    return [catalog[name] for name in names]


NETWORK_CLUSTER = GroupDefinition(
    name="network_cluster",
    mandatory=(
        "vpc_network",
        "subnetwork",
        "router_nat",
        "node_service_account",
        "gke_cluster",
        "gke_node_pool",
    ),
    variables=(helpers.VAR_PROJECT_ID, helpers.VAR_REGION, helpers.VAR_AUTHORIZED_CIDR),
    description="VPC, subnetwork, NAT egress, node identity, private cluster and node pool.",
)

ARTIFACT_REGISTRY = GroupDefinition(
    name="artifact_registry",
    mandatory=("artifact_repository",),
    description="Docker repository for cluster workloads.",
)

GROUPS: Sequence[GroupDefinition] = (NETWORK_CLUSTER, ARTIFACT_REGISTRY)
