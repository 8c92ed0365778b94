"""
Shared desired-state dataclasses for gke-secure-stack.

These models intentionally remain lightweight: they describe Terraform
records and serialise them into Terraform JSON syntax, nothing more. The
external engine owns everything that happens after rendering.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

DEFAULT_GOOGLE_PROVIDER_VERSION = "~> 5.0"
DEFAULT_REQUIRED_TERRAFORM = ">= 1.5.0"


@dataclass
class Invariant:
    """
    A single check performed against parsed Terraform records.
    Example:
      resource_type = "google_container_cluster"
      match = {
        "values.name": "secure-gke-cluster",
        "values.private_cluster_config.0.enable_private_nodes": True,
      }
    """

    resource_type: str
    match: Dict[str, Any]


@dataclass
class ResourceBlock:
    """
    One desired-state record: a Terraform resource type, its local name and
    the attribute values handed to the provider.
    """

    type: str
    name: str
    values: Dict[str, Any] = field(default_factory=dict)
    depends_on: List[str] = field(default_factory=list)

    @property
    def address(self) -> str:
        return f"{self.type}.{self.name}"

    def ref(self, attribute: str) -> str:
        """Interpolation string pointing at one of this block's attributes."""
        return f"${{{self.address}.{attribute}}}"

    def to_body(self) -> Dict[str, Any]:
        body = dict(self.values)
        if self.depends_on:
            body["depends_on"] = list(self.depends_on)
        return body


@dataclass
class Variable:
    name: str
    type: str = "string"
    description: str = ""
    default: Optional[Any] = None
    sensitive: bool = False

    @property
    def required(self) -> bool:
        return self.default is None

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"type": self.type}
        if self.description:
            body["description"] = self.description
        if self.default is not None:
            body["default"] = self.default
        if self.sensitive:
            body["sensitive"] = True
        return body


@dataclass
class Output:
    name: str
    value: str
    description: str = ""
    sensitive: bool = False

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"value": self.value}
        if self.description:
            body["description"] = self.description
        if self.sensitive:
            body["sensitive"] = True
        return body


@dataclass
class DeclarationGroup:
    """
    Canonical description of one independently applied declaration group.

    The external engine only ever sees `to_terraform_json()`; invariants and
    metadata stay on the Python side for checking.
    """

    name: str
    resources: List[ResourceBlock] = field(default_factory=list)
    variables: List[Variable] = field(default_factory=list)
    outputs: List[Output] = field(default_factory=list)
    invariants: List[Invariant] = field(default_factory=list)
    provider_version: str = DEFAULT_GOOGLE_PROVIDER_VERSION
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_terraform_json(self) -> Dict[str, Any]:
        document: Dict[str, Any] = {
            "terraform": {
                "required_version": DEFAULT_REQUIRED_TERRAFORM,
                "required_providers": {
                    "google": {
                        "source": "hashicorp/google",
                        "version": self.provider_version,
                    }
                },
            },
            "provider": {
                "google": {
                    "project": "${var.project_id}",
                    "region": "${var.region}",
                }
            },
        }
        if self.variables:
            document["variable"] = {var.name: var.to_body() for var in self.variables}

        resources: Dict[str, Dict[str, Any]] = {}
        for block in self.resources:
            by_type = resources.setdefault(block.type, {})
            if block.name in by_type:
                raise ValueError(f"Duplicate resource address '{block.address}'.")
            by_type[block.name] = block.to_body()
        if resources:
            document["resource"] = resources

        if self.outputs:
            document["output"] = {out.name: out.to_body() for out in self.outputs}
        return document

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "name": self.name,
            "resources": [asdict(block) for block in self.resources],
            "variables": [asdict(var) for var in self.variables],
            "outputs": [asdict(out) for out in self.outputs],
            "invariants": [asdict(inv) for inv in self.invariants],
        }
        if self.metadata:
            payload["metadata"] = self.metadata
        return payload

    def to_json(self, **json_kwargs: Any) -> str:
        return json.dumps(self.to_terraform_json(), **json_kwargs)
