"""
Structural policy checks over parsed Terraform records.

Each check looks only at the records a TerraformStateParser exposes, so the
same guard runs against a freshly rendered group, hand-written HCL, or the
state the engine wrote after apply. A check whose subject resources are absent
from the source is skipped (passes with a warning) so groups can be checked
one at a time.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from gkestack.evaluation.validation.models import PolicyCheckResult
from gkestack.evaluation.validation.state_parser import TerraformStateParser
from gkestack.generation.terraform.providers.gcp import helpers
from gkestack.generation.yaml_config import StackConfig, is_unrestricted

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolicyOptions:
    """Expected values the policies compare against."""

    allowed_node_roles: Tuple[str, ...] = helpers.NODE_SA_ROLES
    repository_id: str = "wiz-images"
    repository_format: str = "DOCKER"
    authorized_cidr_variable: str = helpers.VAR_AUTHORIZED_CIDR

    @classmethod
    def from_config(cls, config: StackConfig) -> PolicyOptions:
        return cls(
            repository_id=config.registry.repository_id,
            repository_format=config.registry.format,
        )


def _address(resource: Dict[str, Any]) -> str:
    return f"{resource['type']}.{resource['name']}"


def _is_true(value: Any) -> bool:
    return value is True or (isinstance(value, str) and value.lower() == "true")


def _skip(result: PolicyCheckResult, what: str) -> PolicyCheckResult:
    result.warnings.append(f"No {what} found; policy not applicable to this source.")
    return result


def check_private_cluster(parser: TerraformStateParser, options: PolicyOptions) -> PolicyCheckResult:
    """Clusters keep both private nodes and a private endpoint."""
    result = PolicyCheckResult(policy="private_cluster", passed=True)
    clusters = parser.find_resource_by_type("google_container_cluster")
    if not clusters:
        return _skip(result, "google_container_cluster")

    for cluster in clusters:
        address = _address(cluster)
        result.checked.append(address)
        private_nodes = parser.get_resource_attribute(
            cluster, "values.private_cluster_config.0.enable_private_nodes"
        )
        private_endpoint = parser.get_resource_attribute(
            cluster, "values.private_cluster_config.0.enable_private_endpoint"
        )
        if not _is_true(private_nodes):
            result.fail(f"{address}: enable_private_nodes must be true, got '{private_nodes}'")
        if not _is_true(private_endpoint):
            result.fail(f"{address}: enable_private_endpoint must be true, got '{private_endpoint}'")
    return result


def _member_matches(member: Any, email: str, account_id: Optional[str]) -> bool:
    member_str = str(member or "").lower()
    if not member_str.startswith("serviceaccount:"):
        return False
    principal = member_str.split(":", 1)[1]
    if email and principal == email.lower():
        return True
    return bool(account_id) and principal.startswith(f"{account_id.lower()}@")


def _roles_for(parser: TerraformStateParser, email: str, account_id: Optional[str]) -> List[str]:
    roles: List[str] = []
    for binding in parser.find_resource_by_type("google_project_iam_member"):
        member = parser.get_resource_attribute(binding, "values.member")
        if _member_matches(member, email, account_id):
            roles.append(str(parser.get_resource_attribute(binding, "values.role")))
    for binding in parser.find_resource_by_type("google_project_iam_binding"):
        members = parser.get_resource_attribute(binding, "values.members") or []
        if any(_member_matches(member, email, account_id) for member in members):
            roles.append(str(parser.get_resource_attribute(binding, "values.role")))
    return roles


def _resolve_account(
    parser: TerraformStateParser, service_account: str
) -> Optional[Tuple[str, Optional[str]]]:
    """Find the declared service account a node pool runs as: (email, account_id)."""
    wanted = service_account.lower()
    for account in parser.find_resource_by_type("google_service_account"):
        email = str(parser.get_resource_attribute(account, "values.email") or "")
        account_id = parser.get_resource_attribute(account, "values.account_id")
        if email and email.lower() == wanted:
            return email, account_id
        if account_id and wanted.startswith(f"{str(account_id).lower()}@"):
            return service_account, str(account_id)
    return None


def check_least_privilege_node_identity(
    parser: TerraformStateParser, options: PolicyOptions
) -> PolicyCheckResult:
    """Node pools run as a declared account bound to the allowed roles only."""
    result = PolicyCheckResult(policy="least_privilege_node_identity", passed=True)
    pools = parser.find_resource_by_type("google_container_node_pool")
    if not pools:
        return _skip(result, "google_container_node_pool")

    allowed = set(options.allowed_node_roles)
    for pool in pools:
        address = _address(pool)
        result.checked.append(address)
        service_account = parser.get_resource_attribute(pool, "values.node_config.0.service_account")
        if not service_account or str(service_account).lower() == "default":
            result.fail(f"{address}: no node service account set; nodes would run as the default compute account")
            continue

        resolved = _resolve_account(parser, str(service_account))
        if resolved is None:
            result.fail(f"{address}: service account '{service_account}' is not declared in this source")
            continue

        email, account_id = resolved
        roles = _roles_for(parser, email, account_id)
        extra = sorted(set(roles) - allowed)
        if extra:
            result.fail(f"{address}: '{email}' holds roles outside the allowed set: {', '.join(extra)}")
        if not roles:
            result.warnings.append(f"{address}: '{email}' has no project role bindings")
    return result


def _parse_cidr(value: Any) -> Optional[ipaddress.IPv4Network | ipaddress.IPv6Network]:
    try:
        return ipaddress.ip_network(str(value), strict=False)
    except ValueError:
        return None


def check_secondary_ranges_disjoint(
    parser: TerraformStateParser, options: PolicyOptions
) -> PolicyCheckResult:
    """Secondary ranges overlap neither each other nor the primary range."""
    result = PolicyCheckResult(policy="secondary_ranges_disjoint", passed=True)
    subnetworks = parser.find_resource_by_type("google_compute_subnetwork")
    if not subnetworks:
        return _skip(result, "google_compute_subnetwork")

    for subnetwork in subnetworks:
        address = _address(subnetwork)
        result.checked.append(address)
        labelled: List[Tuple[str, Any]] = [
            ("primary", parser.get_resource_attribute(subnetwork, "values.ip_cidr_range"))
        ]
        for item in parser.get_resource_attribute(subnetwork, "values.secondary_ip_range") or []:
            if isinstance(item, dict):
                labelled.append((str(item.get("range_name")), item.get("ip_cidr_range")))

        networks = []
        for label, cidr in labelled:
            network = _parse_cidr(cidr)
            if network is None:
                result.fail(f"{address}: range {label} has unusable CIDR '{cidr}'")
                continue
            networks.append((label, network))

        for i, (left_label, left) in enumerate(networks):
            for right_label, right in networks[i + 1:]:
                if left.version == right.version and left.overlaps(right):
                    result.fail(f"{address}: range {left_label} ({left}) overlaps {right_label} ({right})")
    return result


def check_authorized_cidr_restricted(
    parser: TerraformStateParser, options: PolicyOptions
) -> PolicyCheckResult:
    """Neither the variable default nor any authorized block admits every address."""
    result = PolicyCheckResult(policy="authorized_cidr_restricted", passed=True)

    variables = parser.get_variables()
    candidates = [
        name for name in variables
        if name == options.authorized_cidr_variable or "authorized" in name.lower()
    ]
    for name in candidates:
        result.checked.append(f"var.{name}")
        default = variables[name].get("default")
        defaults = default if isinstance(default, list) else [default]
        for value in defaults:
            if value is not None and is_unrestricted(value):
                result.fail(f"var.{name}: default '{value}' is unrestricted")

    for cluster in parser.find_resource_by_type("google_container_cluster"):
        address = _address(cluster)
        result.checked.append(address)
        blocks = parser.get_resource_attribute(
            cluster, "values.master_authorized_networks_config.0.cidr_blocks"
        ) or []
        for block in blocks:
            cidr = block.get("cidr_block") if isinstance(block, dict) else None
            if cidr is not None and is_unrestricted(cidr):
                result.fail(f"{address}: authorized network '{cidr}' is unrestricted")

    if not result.checked:
        return _skip(result, "authorized-network variable or cluster")
    return result


def check_registry_stable(parser: TerraformStateParser, options: PolicyOptions) -> PolicyCheckResult:
    """Repository id and format stay what consumers push to and pull from."""
    result = PolicyCheckResult(policy="registry_stable", passed=True)
    repositories = parser.find_resource_by_type("google_artifact_registry_repository")
    if not repositories:
        return _skip(result, "google_artifact_registry_repository")

    for repository in repositories:
        address = _address(repository)
        result.checked.append(address)
        repository_id = parser.get_resource_attribute(repository, "values.repository_id")
        fmt = parser.get_resource_attribute(repository, "values.format")
        if repository_id != options.repository_id:
            result.fail(f"{address}: repository_id must stay '{options.repository_id}', got '{repository_id}'")
        if str(fmt or "").upper() != options.repository_format.upper():
            result.fail(f"{address}: format must stay '{options.repository_format}', got '{fmt}'")
    return result


PolicyFunc = Callable[[TerraformStateParser, PolicyOptions], PolicyCheckResult]

POLICIES: Dict[str, PolicyFunc] = {
    "private_cluster": check_private_cluster,
    "least_privilege_node_identity": check_least_privilege_node_identity,
    "secondary_ranges_disjoint": check_secondary_ranges_disjoint,
    "authorized_cidr_restricted": check_authorized_cidr_restricted,
    "registry_stable": check_registry_stable,
}


def run_policies(
    parser: TerraformStateParser,
    names: Optional[Sequence[str]] = None,
    options: Optional[PolicyOptions] = None,
) -> List[PolicyCheckResult]:
    options = options or PolicyOptions()
    selected = list(names) if names is not None else list(POLICIES)
    unknown = [name for name in selected if name not in POLICIES]
    if unknown:
        raise KeyError(f"Unknown policies: {', '.join(unknown)}")

    results = []
    for name in selected:
        outcome = POLICIES[name](parser, options)
        if outcome.skipped:
            logger.debug(f"Policy {name} skipped for {parser.label}")
        elif outcome.passed:
            logger.debug(f"Policy {name} PASSED")
        else:
            logger.warning(f"Policy {name} FAILED - {outcome.errors}")
        results.append(outcome)
    return results
