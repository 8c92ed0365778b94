"""
Utility helpers and reusable constants for the GCP declaration groups.

Resource names are part of the external interface: downstream consumers
(kubeconfig tooling, image pushers, firewall allowlists) address these
resources by name, so they are fixed here rather than configurable.
"""

from __future__ import annotations

from typing import Tuple

NETWORK_NAME = "gke-secure-vpc"
SUBNETWORK_NAME = "gke-subnet"
PODS_RANGE_NAME = "pods-range"
SERVICES_RANGE_NAME = "services-range"
ROUTER_NAME = "gke-nat-router"
NAT_NAME = "gke-nat-gateway"
NAT_LOG_FILTER = "ERRORS_ONLY"
NODE_SA_ACCOUNT_ID = "gke-node-sa"
NODE_SA_DISPLAY_NAME = "GKE node service account"
CLUSTER_NAME = "secure-gke-cluster"
NODE_POOL_NAME = "secure-node-pool"
NETWORK_POLICY_PROVIDER = "CALICO"

# Least-privilege roles for node identities; nothing else may be bound.
NODE_SA_ROLES: Tuple[str, ...] = (
    "roles/monitoring.viewer",
    "roles/logging.logWriter",
    "roles/artifactregistry.reader",
)

NODE_OAUTH_SCOPES: Tuple[str, ...] = ("https://www.googleapis.com/auth/cloud-platform",)

# Terraform variable names shared by both groups.
VAR_PROJECT_ID = "project_id"
VAR_REGION = "region"
VAR_AUTHORIZED_CIDR = "authorized_cidr"


def var(name: str) -> str:
    """Interpolation string for an input variable."""
    return f"${{var.{name}}}"


def workload_pool() -> str:
    return f"{var(VAR_PROJECT_ID)}.svc.id.goog"


def role_resource_name(role: str) -> str:
    """Local name for a role binding, e.g. roles/logging.logWriter -> node_sa_logging_logwriter."""
    short = role.split("/", 1)[-1]
    return "node_sa_" + short.replace(".", "_").lower()


def service_account_member(email_expression: str) -> str:
    return f"serviceAccount:{email_expression}"


def repository_url(location_expression: str, repository_id_expression: str) -> str:
    return f"{location_expression}-docker.pkg.dev/{var(VAR_PROJECT_ID)}/{repository_id_expression}"


__all__ = [
    "CLUSTER_NAME",
    "NAT_LOG_FILTER",
    "NAT_NAME",
    "NETWORK_NAME",
    "NETWORK_POLICY_PROVIDER",
    "NODE_OAUTH_SCOPES",
    "NODE_POOL_NAME",
    "NODE_SA_ACCOUNT_ID",
    "NODE_SA_DISPLAY_NAME",
    "NODE_SA_ROLES",
    "PODS_RANGE_NAME",
    "ROUTER_NAME",
    "SERVICES_RANGE_NAME",
    "SUBNETWORK_NAME",
    "VAR_AUTHORIZED_CIDR",
    "VAR_PROJECT_ID",
    "VAR_REGION",
    "repository_url",
    "role_resource_name",
    "service_account_member",
    "var",
    "workload_pool",
]
