"""
Generic resource template plumbing for Terraform declaration groups.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Tuple

from gkestack.generation.yaml_config import StackConfig
from gkestack.models import Invariant, Output, ResourceBlock


@dataclass
class TemplateContext:
    """
    Shared state passed to each resource template builder.

    - config: stack configuration the group is built from.
    - shared: capability map populated by previously instantiated templates.
    """

    config: StackConfig
    shared: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def require(self, capability: str, template_kind: str) -> Dict[str, Any]:
        values = self.shared.get(capability)
        if not values:
            raise RuntimeError(f"{capability} capability missing for {template_kind} template.")
        return values


@dataclass
class ResourceInstance:
    """
    Concrete output of a resource template.

    - resources: desired-state records contributed by this template.
    - invariants: checks contributed by this template.
    - hints: short human-readable description of intent.
    - shared_values: capability payloads exposed for downstream templates.
    """

    resources: List[ResourceBlock]
    invariants: List[Invariant] = field(default_factory=list)
    outputs: List[Output] = field(default_factory=list)
    hints: List[str] = field(default_factory=list)
    shared_values: Dict[str, Dict[str, Any]] = field(default_factory=dict)


BuilderFn = Callable[[TemplateContext], ResourceInstance]


@dataclass(frozen=True)
class ResourceTemplate:
    """
    One reusable piece of a declaration group.

    `provides` names the capabilities handed to later templates (e.g. "network");
    `requires` names those that must be realised first. `kind` is the label
    shown by `gkestack list`; `base_hints` are always attached to the group
    metadata next to whatever the builder adds.
    """

    key: str
    kind: str
    provides: Tuple[str, ...]
    builder: BuilderFn
    requires: Tuple[str, ...] = ()
    base_hints: Tuple[str, ...] = ()
