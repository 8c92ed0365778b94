"""Declaration group generation and rendering.

Importing the registry scans provider packages and reads the stack
configuration, so public symbols are exposed via lazy attribute access.
"""

from __future__ import annotations

from typing import Any

__all__ = (
    "DeclarationRegistry",
    "GroupRenderer",
    "StackConfig",
    "get_stack_config",
)


def __getattr__(name: str) -> Any:  # pragma: no cover
    if name == "DeclarationRegistry":
        from .terraform.registry import DeclarationRegistry

        return DeclarationRegistry
    if name == "GroupRenderer":
        from .renderer import GroupRenderer

        return GroupRenderer
    if name == "StackConfig":
        from .yaml_config import StackConfig

        return StackConfig
    if name == "get_stack_config":
        from .yaml_config import get_stack_config

        return get_stack_config
    raise AttributeError(name)
