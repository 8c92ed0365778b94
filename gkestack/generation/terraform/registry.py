"""
Registry for Terraform declaration group builders.

Provider group files live under:
gkestack/generation/terraform/providers/<provider>/*.py
and expose a `build_group(config)` callable.
"""

from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

from gkestack.models import DeclarationGroup
from gkestack.generation.yaml_config import StackConfig, get_stack_config

logger = logging.getLogger(__name__)

group_builder_type = Callable[[StackConfig], DeclarationGroup]
PROVIDERS_PACKAGE = "gkestack.generation.terraform.providers"


class DeclarationRegistry:
    def __init__(self, config: Optional[StackConfig] = None) -> None:
        self.config = config or get_stack_config()
        self.providers: Dict[str, Dict[str, group_builder_type]] = {}
        self._scan_providers()

    def _scan_providers(self) -> None:
        """
        Discover provider directories by walking the providers package on disk.
        Each top-level .py file that exposes a `build_group` callable is registered
        under its GROUP_NAME (or its module name).
        """
        package = importlib.import_module(PROVIDERS_PACKAGE)

        for base in getattr(package, "__path__", []):
            base_path = Path(base)
            if not base_path.exists():
                continue
            for provider_dir in sorted(base_path.iterdir()):
                if not provider_dir.is_dir() or provider_dir.name.startswith("_"):
                    continue
                provider_name = provider_dir.name
                builders = self.providers.setdefault(provider_name, {})
                for group_file in sorted(provider_dir.glob("*.py")):
                    if group_file.stem.startswith("_"):
                        continue
                    module_name = f"{PROVIDERS_PACKAGE}.{provider_name}.{group_file.stem}"
                    module = importlib.import_module(module_name)
                    builder = getattr(module, "build_group", None)
                    if not callable(builder):
                        continue
                    group_name = getattr(module, "GROUP_NAME", group_file.stem)
                    if group_name in builders:
                        raise RuntimeError(
                            f"Duplicate group '{group_name}' for provider '{provider_name}'."
                        )
                    builders[group_name] = builder
                logger.debug(f"Provider {provider_name}: groups {sorted(builders)}")

    def get_group_builders(self, provider: str) -> Dict[str, group_builder_type]:
        return self.providers.get(provider, {})

    def get_all_providers(self) -> List[str]:
        return list(self.providers.keys())

    def get_group_names(self, provider: str = "gcp") -> List[str]:
        return list(self.get_group_builders(provider).keys())

    def build_group(self, provider: str, name: str) -> DeclarationGroup:
        builders = self.get_group_builders(provider)
        if name not in builders:
            known = ", ".join(sorted(builders)) or "none"
            raise KeyError(f"No group '{name}' registered for provider '{provider}' (known: {known}).")
        return builders[name](self.config)

    def build_enabled_groups(self, provider: str = "gcp") -> List[DeclarationGroup]:
        """Build every group the configuration leaves enabled."""
        names = self.config.get_enabled_groups(self.get_group_names(provider))
        skipped = sorted(set(self.get_group_names(provider)) - set(names))
        if skipped:
            logger.info(f"Skipping disabled groups: {', '.join(skipped)}")
        return [self.build_group(provider, name) for name in names]
