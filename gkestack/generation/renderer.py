"""
File-based renderer for declaration groups.

Writes each group into its own directory so the external engine can be
pointed at it directly:
- main.tf.json: the Terraform JSON configuration (what the engine reads)
- terraform.tfvars.json: variable values known at render time
- group.json: invariants and metadata (what the checker uses)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from gkestack.models import DeclarationGroup, Invariant

logger = logging.getLogger(__name__)

CONFIG_FILE = "main.tf.json"
TFVARS_FILE = "terraform.tfvars.json"
GROUP_FILE = "group.json"


def _write_json(path: Path, payload: Dict) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)
        f.write("\n")


class GroupRenderer:
    """
    Directory structure:
        <base_path>/
            network_cluster/
                main.tf.json
                terraform.tfvars.json
                group.json
            artifact_registry/
                ...
    """

    def __init__(self, base_path: str | Path = "build"):
        self.base_path = Path(base_path).resolve()

    def group_dir(self, group_name: str) -> Path:
        return self.base_path / group_name

    def render(self, group: DeclarationGroup, tfvars: Optional[Dict[str, object]] = None) -> List[Path]:
        """
        Write a group to disk, overwriting previous renders.

        Args:
            group: declaration group to render
            tfvars: variable values to pin; entries with empty values are dropped

        Returns:
            Paths of the files written
        """
        group_dir = self.group_dir(group.name)
        group_dir.mkdir(parents=True, exist_ok=True)
        written: List[Path] = []

        config_path = group_dir / CONFIG_FILE
        _write_json(config_path, group.to_terraform_json())
        written.append(config_path)

        declared = {var.name for var in group.variables}
        values = {k: v for k, v in (tfvars or {}).items() if v not in (None, "") and k in declared}
        tfvars_path = group_dir / TFVARS_FILE
        if values:
            _write_json(tfvars_path, values)
            written.append(tfvars_path)
        elif tfvars_path.exists():
            tfvars_path.unlink()

        group_path = group_dir / GROUP_FILE
        _write_json(group_path, group.to_dict())
        written.append(group_path)

        logger.info(f"Rendered group {group.name} into {group_dir}")
        return written


def load_invariants(group_dir: str | Path) -> List[Invariant]:
    """Read back the invariants stored next to a rendered group."""
    group_path = Path(group_dir) / GROUP_FILE
    if not group_path.exists():
        raise FileNotFoundError(f"No {GROUP_FILE} in {group_dir}")
    with open(group_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return [
        Invariant(resource_type=inv["resource_type"], match=inv["match"])
        for inv in data.get("invariants", [])
    ]
