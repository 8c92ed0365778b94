"""
YAML-based hierarchical stack configuration.

Every tunable of the declaration groups (project, address plan, cluster
sizing, registry identity) lives here so templates stay free of literals
that operators are expected to change.
"""

from __future__ import annotations

import ipaddress
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

CONFIG_ENV_VAR = "GKESTACK_CONFIG"
DEFAULT_CONFIG_NAME = "stack_config.yaml"


class ConfigError(ValueError):
    """Raised when the stack configuration is unusable."""


def _parse_network(value: str, field_name: str) -> ipaddress.IPv4Network | ipaddress.IPv6Network:
    try:
        return ipaddress.ip_network(str(value), strict=True)
    except ValueError as exc:
        raise ConfigError(f"{field_name}: invalid CIDR '{value}' ({exc})") from exc


def _mapping(data: Any, name: str) -> Dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{name}: expected a mapping, got {type(data).__name__}")
    return data


def _int_at_least(value: Any, name: str, minimum: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name}: expected an integer, got '{value}'") from exc
    if number < minimum:
        raise ConfigError(f"{name} must be at least {minimum}")
    return number


def _section(section_cls, data: Any, name: str):
    data = _mapping(data, name)
    try:
        return section_cls(**data)
    except TypeError as exc:
        raise ConfigError(f"{name}: {exc}") from exc


def is_unrestricted(cidr: str) -> bool:
    """True for ranges that admit every address (0.0.0.0/0, ::/0)."""
    try:
        return ipaddress.ip_network(str(cidr), strict=False).prefixlen == 0
    except ValueError:
        return False


@dataclass
class ProjectConfig:
    """Target project and default region."""
    id: str = ""
    region: str = "us-central1"


@dataclass
class NetworkConfig:
    """Address plan for the VPC and the control plane."""
    subnet_cidr: str = "10.10.0.0/24"
    pods_cidr: str = "10.20.0.0/16"
    services_cidr: str = "10.30.0.0/20"
    master_cidr: str = "172.16.0.0/28"
    # Private endpoint only: the default admits the node subnet itself.
    authorized_cidr: str = "10.10.0.0/24"
    authorized_display_name: str = "internal-admin"


@dataclass
class ClusterConfig:
    """Control plane and node pool sizing."""
    release_channel: str = "STABLE"
    node_count: int = 2
    machine_type: str = "e2-standard-2"
    disk_size_gb: int = 50
    disk_type: str = "pd-standard"
    image_type: str = "COS_CONTAINERD"


@dataclass
class RegistryConfig:
    repository_id: str = "wiz-images"
    format: str = "DOCKER"
    location: Optional[str] = None
    description: str = "Container images for the secure GKE cluster"


@dataclass
class GroupConfig:
    enabled: bool = True


@dataclass
class TerraformConfig:
    binary: str = "terraform"
    google_provider_version: str = "~> 5.0"


@dataclass
class OutputConfig:
    path: str = "build"


@dataclass
class SettingsConfig:
    """Global settings."""
    output: OutputConfig = field(default_factory=OutputConfig)
    terraform: TerraformConfig = field(default_factory=TerraformConfig)
    log_level: str = "INFO"


@dataclass
class StackConfig:
    """
    Hierarchical stack configuration loaded from YAML.

    Structure:
        project / network / cluster / registry -> template inputs
        groups -> enabled flags per declaration group
        settings -> rendering and engine options
    """
    project: ProjectConfig = field(default_factory=ProjectConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    groups: Dict[str, GroupConfig] = field(default_factory=dict)
    settings: SettingsConfig = field(default_factory=SettingsConfig)

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> StackConfig:
        """Load configuration from YAML file."""
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigError(f"Top level of {path} must be a mapping.")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> StackConfig:
        """Parse configuration dictionary and validate it."""
        settings_data = _mapping(data.get("settings"), "settings")

        groups = {}
        for group_name, group_data in _mapping(data.get("groups"), "groups").items():
            if isinstance(group_data, bool):
                groups[group_name] = GroupConfig(enabled=group_data)
            elif isinstance(group_data, dict):
                groups[group_name] = GroupConfig(enabled=group_data.get("enabled", True))

        terraform_data = _mapping(settings_data.get("terraform"), "settings.terraform")
        output_data = _mapping(settings_data.get("output"), "settings.output")
        settings = SettingsConfig(
            output=OutputConfig(path=output_data.get("path", "build")),
            terraform=TerraformConfig(
                binary=terraform_data.get("binary", "terraform"),
                google_provider_version=terraform_data.get("google_provider_version", "~> 5.0"),
            ),
            log_level=str(settings_data.get("log_level", "INFO")).upper(),
        )

        config = cls(
            project=_section(ProjectConfig, data.get("project"), "project"),
            network=_section(NetworkConfig, data.get("network"), "network"),
            cluster=_section(ClusterConfig, data.get("cluster"), "cluster"),
            registry=_section(RegistryConfig, data.get("registry"), "registry"),
            groups=groups,
            settings=settings,
        )
        config.validate()
        return config

    # =============================================================================
    # Validation
    # =============================================================================

    def validate(self) -> None:
        network = self.network
        subnet = _parse_network(network.subnet_cidr, "network.subnet_cidr")
        pods = _parse_network(network.pods_cidr, "network.pods_cidr")
        services = _parse_network(network.services_cidr, "network.services_cidr")
        _parse_network(network.master_cidr, "network.master_cidr")
        _parse_network(network.authorized_cidr, "network.authorized_cidr")

        if is_unrestricted(network.authorized_cidr):
            raise ConfigError(
                f"network.authorized_cidr must not be unrestricted, got '{network.authorized_cidr}'"
            )

        ranges = {"subnet_cidr": subnet, "pods_cidr": pods, "services_cidr": services}
        names = list(ranges)
        for i, left in enumerate(names):
            for right in names[i + 1:]:
                if ranges[left].overlaps(ranges[right]):
                    raise ConfigError(f"network.{left} overlaps network.{right}")

        self.cluster.node_count = _int_at_least(self.cluster.node_count, "cluster.node_count", 1)
        self.cluster.disk_size_gb = _int_at_least(self.cluster.disk_size_gb, "cluster.disk_size_gb", 10)

    # =============================================================================
    # Query Methods
    # =============================================================================

    def is_group_enabled(self, group: str) -> bool:
        """Groups not mentioned in the file are enabled."""
        if group not in self.groups:
            return True
        return self.groups[group].enabled

    def get_enabled_groups(self, known: List[str]) -> List[str]:
        return [name for name in known if self.is_group_enabled(name)]


# Global configuration instance
_stack_config: Optional[StackConfig] = None


def default_config_path() -> Path:
    return Path(__file__).resolve().parents[1] / DEFAULT_CONFIG_NAME


def get_stack_config(config_path: Optional[str | Path] = None) -> StackConfig:
    """
    Get the global stack configuration.

    Args:
        config_path: Path to YAML config file. If None, uses in order:
                    1. GKESTACK_CONFIG environment variable
                    2. ./stack_config.yaml (current directory)
                    3. the packaged gkestack/stack_config.yaml

    Returns:
        StackConfig instance
    """
    global _stack_config

    if _stack_config is not None and config_path is None:
        return _stack_config

    if config_path is None:
        env_path = os.getenv(CONFIG_ENV_VAR)
        if env_path:
            config_path = Path(env_path)
        else:
            candidates = [Path.cwd() / DEFAULT_CONFIG_NAME, default_config_path()]
            for candidate in candidates:
                if candidate.exists():
                    config_path = candidate
                    break

    if config_path is None:
        raise FileNotFoundError(
            f"No config file found. Create {DEFAULT_CONFIG_NAME} or set {CONFIG_ENV_VAR}."
        )

    _stack_config = StackConfig.from_yaml(config_path)
    return _stack_config


def reset_stack_config() -> None:
    """Reset the global stack configuration cache."""
    global _stack_config
    _stack_config = None


def set_stack_config(config: StackConfig) -> None:
    """Set a custom stack configuration."""
    global _stack_config
    _stack_config = config
