from __future__ import annotations

import importlib
import logging
import pkgutil
from typing import Any, Dict, List, Optional, Set

from gkestack.models import DeclarationGroup
from gkestack.generation.yaml_config import StackConfig
from gkestack.generation.terraform.providers.gcp import compositions
from gkestack.generation.terraform.resource_templates import (
    ResourceInstance,
    ResourceTemplate,
    TemplateContext,
)

logger = logging.getLogger(__name__)

RESOURCE_PACKAGE = "gkestack.generation.terraform.providers.gcp.resources"

# Module-level cache to avoid repeated package scans
_TEMPLATE_CACHE: Optional[Dict[str, ResourceTemplate]] = None


def load_templates() -> Dict[str, ResourceTemplate]:
    """Templates keyed by template key, discovered from the resources package."""
    global _TEMPLATE_CACHE
    if _TEMPLATE_CACHE is None:
        _TEMPLATE_CACHE = _scan_templates()
    return _TEMPLATE_CACHE


def _scan_templates() -> Dict[str, ResourceTemplate]:
    templates: Dict[str, ResourceTemplate] = {}
    package = importlib.import_module(RESOURCE_PACKAGE)
    for _, name, ispkg in pkgutil.walk_packages(package.__path__, package.__name__ + "."):
        if ispkg:
            continue
        module = importlib.import_module(name)
        candidates = []
        if hasattr(module, "get_templates"):
            candidates = module.get_templates() or []
        elif hasattr(module, "get_template"):
            template = module.get_template()
            candidates = [template] if template else []
        for template in candidates:
            if template.key in templates:
                raise RuntimeError(f"Duplicate template key detected: {template.key}")
            templates[template.key] = template
    return templates


class GCPDeclarationBank:
    """
    Builds a declaration group by pulling in a group's templates plus whatever
    they require, ordering them by capability, and realising them in order.
    """

    def __init__(
        self,
        definition: compositions.GroupDefinition,
        templates: Optional[Dict[str, ResourceTemplate]] = None,
    ) -> None:
        self.definition = definition
        self._templates = templates
        self._capability_map: Optional[Dict[str, List[str]]] = None

    @property
    def templates(self) -> Dict[str, ResourceTemplate]:
        """Lazy-loaded templates with module-level caching."""
        if self._templates is None:
            self._templates = load_templates()
        return self._templates

    @property
    def capability_map(self) -> Dict[str, List[str]]:
        if self._capability_map is None:
            self._capability_map = self._build_capability_map()
        return self._capability_map

    def build_group(self, config: StackConfig) -> DeclarationGroup:
        selected: Set[str] = set()
        resolved: Dict[str, Dict[str, str]] = {}
        for key in self.definition.pick_templates():
            self._include_with_dependencies(key, selected, resolved)
        order = self._topological_order(selected, resolved)
        logger.debug(f"Group {self.definition.name}: template order {order}")

        group = DeclarationGroup(
            name=self.definition.name,
            variables=compositions.build_variables(self.definition.variables, config),
            provider_version=config.settings.terraform.google_provider_version,
        )
        hints = self._realise_templates(order, config, group)
        group.metadata = {
            "template_keys": order,
            "template_kinds": [self.templates[key].kind for key in order],
            "hints": hints,
            "description": self.definition.description,
        }
        logger.info(
            f"Group {group.name}: {len(group.resources)} resource(s), "
            f"{len(group.invariants)} invariant(s)"
        )
        return group

    # ------------------------------------------------------------------ #
    # Selection + ordering
    # ------------------------------------------------------------------ #

    def _build_capability_map(self) -> Dict[str, List[str]]:
        capability_map: Dict[str, List[str]] = {}
        for key, template in self.templates.items():
            for capability in template.provides:
                capability_map.setdefault(capability, []).append(key)
        return capability_map

    def _include_with_dependencies(
        self,
        key: str,
        selected: Set[str],
        resolved: Dict[str, Dict[str, str]],
        visiting: Optional[Set[str]] = None,
    ) -> None:
        if key in selected:
            return
        visiting = set() if visiting is None else visiting
        if key in visiting:
            raise RuntimeError(f"Cycle detected while resolving template '{key}'.")
        visiting.add(key)
        if key not in self.templates:
            raise RuntimeError(f"Unknown template key '{key}' in group '{self.definition.name}'.")
        template = self.templates[key]
        dependency_map = resolved.setdefault(key, {})
        for capability in template.requires:
            provider_key = self._select_capability_provider(capability, selected)
            dependency_map[capability] = provider_key
            if provider_key not in selected:
                self._include_with_dependencies(provider_key, selected, resolved, visiting)
        selected.add(key)

    def _select_capability_provider(self, capability: str, selected: Set[str]) -> str:
        providers = self.capability_map.get(capability, [])
        if not providers:
            raise RuntimeError(f"No templates provide required capability '{capability}'.")
        chosen = [provider for provider in providers if provider in selected]
        if chosen:
            return chosen[0]
        return sorted(providers)[0]

    def _topological_order(
        self, selected: Set[str], resolved: Dict[str, Dict[str, str]]
    ) -> List[str]:
        adjacency: Dict[str, Set[str]] = {key: set() for key in selected}
        indegree: Dict[str, int] = {key: 0 for key in selected}
        for key, dependencies in resolved.items():
            for provider in dependencies.values():
                if provider not in adjacency:
                    adjacency[provider] = set()
                    indegree[provider] = indegree.get(provider, 0)
                adjacency[provider].add(key)
                indegree[key] = indegree.get(key, 0) + 1
        # Sorted so the rendered document is stable between runs.
        ready = sorted(node for node, degree in indegree.items() if degree == 0)
        order: List[str] = []
        while ready:
            node = ready.pop(0)
            order.append(node)
            for neighbor in sorted(adjacency.get(node, set())):
                indegree[neighbor] -= 1
                if indegree[neighbor] == 0:
                    ready.append(neighbor)
        if len(order) != len(selected):
            raise RuntimeError("Cycle detected while ordering resource templates.")
        return order

    # ------------------------------------------------------------------ #
    # Instantiation
    # ------------------------------------------------------------------ #

    def _realise_templates(
        self, order: List[str], config: StackConfig, group: DeclarationGroup
    ) -> List[str]:
        shared_state: Dict[str, Dict[str, Any]] = {}
        hints: List[str] = []
        for key in order:
            template = self.templates[key]
            ctx = TemplateContext(config=config, shared=shared_state)
            instance: ResourceInstance = template.builder(ctx)
            group.resources.extend(instance.resources)
            group.invariants.extend(instance.invariants)
            group.outputs.extend(instance.outputs)
            hints.extend(template.base_hints)
            hints.extend(instance.hints)
            for capability in template.provides:
                shared_state[capability] = instance.shared_values.get(capability, {})
        return hints
