"""Terraform record parser.

Normalises the three places the same desired-state records can live into a
single flat resource list:

- Terraform state v4 (`terraform.tfstate`, `terraform state pull` output)
- Terraform JSON configuration (`*.tf.json`, or a DeclarationGroup in memory)
- HCL sources (`*.tf` file or a directory of them), parsed with python-hcl2
"""
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import hcl2

from gkestack.models import DeclarationGroup

logger = logging.getLogger(__name__)

SOURCE_STATE = "state"
SOURCE_CONFIG = "config"
SOURCE_HCL = "hcl"

_RESOURCE_REF = re.compile(r"\$\{([A-Za-z][A-Za-z0-9_-]*)\.([A-Za-z0-9_-]+)\.([A-Za-z0-9_]+)\}")
_VAR_REF = re.compile(r"\$\{var\.([A-Za-z0-9_-]+)\}")
_MAX_RESOLVE_PASSES = 5

Source = Union[str, Path, Dict[str, Any], DeclarationGroup]


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return value[1:-1]
    return value


def _strip_hcl_markers(value: Any) -> Any:
    """
    Drop python-hcl2 bookkeeping keys and literal quotes.

    Newer python-hcl2 releases keep the quotes on string values and on block
    labels alike (`'"google_container_cluster"'`), so keys are unquoted too.
    """
    if isinstance(value, dict):
        return {
            _unquote(str(k)): _strip_hcl_markers(v)
            for k, v in value.items()
            if not str(k).startswith("__")
        }
    if isinstance(value, list):
        return [_strip_hcl_markers(v) for v in value]
    if isinstance(value, str):
        if value in ("true", "false"):
            # Bare literal; a quoted "true" arrives with its quotes.
            return value == "true"
        return _unquote(value)
    return value


class TerraformStateParser:
    """Parse and extract resources from Terraform state, JSON config or HCL."""

    def __init__(self, source: Source):
        """
        Initialize parser with a source.

        Args:
            source: path to a .tfstate / .tf.json / .tf file or a directory of
                    .tf files, a Terraform JSON document, or a DeclarationGroup
        """
        self.source = source
        self.source_kind: Optional[str] = None
        self._data: Optional[Dict[str, Any]] = None
        self._resources: Optional[List[Dict[str, Any]]] = None
        self._variables: Optional[Dict[str, Dict[str, Any]]] = None

    @property
    def label(self) -> str:
        if isinstance(self.source, DeclarationGroup):
            return f"<group {self.source.name}>"
        if isinstance(self.source, dict):
            return "<in-memory config>"
        return str(self.source)

    def parse(self) -> Dict[str, Any]:
        """
        Parse the source.

        Returns:
            The raw document (state, JSON config, or merged HCL) as a dictionary

        Raises:
            FileNotFoundError: If the path doesn't exist
            ValueError: If the content is not valid JSON / HCL or has no known shape
        """
        if self._data is not None:
            return self._data

        if isinstance(self.source, DeclarationGroup):
            self._data = self.source.to_terraform_json()
            self.source_kind = SOURCE_CONFIG
        elif isinstance(self.source, dict):
            self._data = self.source
            self.source_kind = SOURCE_STATE if self._looks_like_state(self.source) else SOURCE_CONFIG
        else:
            self._data = self._load_path(Path(self.source))

        logger.debug(f"Parsed {self.label} as {self.source_kind}")
        return self._data

    def _load_path(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise FileNotFoundError(f"Source not found: {path}")

        if path.is_dir():
            return self._load_directory(path)

        if path.suffix == ".tf":
            self.source_kind = SOURCE_HCL
            return self._load_hcl_files([path])

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}")
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object in {path}")
        self.source_kind = SOURCE_STATE if self._looks_like_state(data) else SOURCE_CONFIG
        return data

    def _load_directory(self, path: Path) -> Dict[str, Any]:
        hcl_files = sorted(path.glob("*.tf"))
        json_files = sorted(path.glob("*.tf.json"))
        if not hcl_files and not json_files:
            raise ValueError(f"No .tf or .tf.json files in {path}")

        merged: Dict[str, Any] = {}
        if hcl_files:
            self.source_kind = SOURCE_HCL
            merged = self._load_hcl_files(hcl_files)
        else:
            self.source_kind = SOURCE_CONFIG
        for json_file in json_files:
            with open(json_file, "r", encoding="utf-8") as f:
                try:
                    document = json.load(f)
                except json.JSONDecodeError as e:
                    raise ValueError(f"Invalid JSON in {json_file}: {e}")
            self._merge_config(merged, document)
        return merged

    def _load_hcl_files(self, files: List[Path]) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for tf_file in files:
            with open(tf_file, "r", encoding="utf-8") as f:
                try:
                    document = hcl2.load(f)
                except Exception as e:
                    raise ValueError(f"Invalid HCL in {tf_file}: {e}")
            self._merge_config(merged, self._hcl_to_config(_strip_hcl_markers(document)))
        return merged

    @staticmethod
    def _hcl_to_config(document: Dict[str, Any]) -> Dict[str, Any]:
        """
        python-hcl2 returns every block kind as a list of single-key dicts;
        fold them into the Terraform JSON shape.
        """
        config: Dict[str, Any] = {}
        for entry in document.get("resource", []) or []:
            for resource_type, named in entry.items():
                config.setdefault("resource", {}).setdefault(resource_type, {}).update(named)
        for entry in document.get("variable", []) or []:
            config.setdefault("variable", {}).update(entry)
        for entry in document.get("output", []) or []:
            config.setdefault("output", {}).update(entry)
        return config

    @staticmethod
    def _merge_config(target: Dict[str, Any], document: Dict[str, Any]) -> None:
        for resource_type, named in (document.get("resource") or {}).items():
            target.setdefault("resource", {}).setdefault(resource_type, {}).update(named)
        for section in ("variable", "output"):
            if document.get(section):
                target.setdefault(section, {}).update(document[section])

    @staticmethod
    def _looks_like_state(data: Dict[str, Any]) -> bool:
        return isinstance(data.get("resources"), list) or "terraform_version" in data

    def get_resources(self) -> List[Dict[str, Any]]:
        """
        Extract all managed resources.

        Returns:
            List of resource dictionaries with flattened structure:
            {"type", "name", "provider", "attributes", "dependencies"}

        State file structure:
        {
          "resources": [
            {
              "mode": "managed",
              "type": "google_container_cluster",
              "name": "primary",
              "instances": [{"attributes": {"name": "secure-gke-cluster", ...}}]
            }
          ]
        }
        """
        if self._resources is not None:
            return self._resources

        data = self.parse()
        if self.source_kind == SOURCE_STATE:
            self._resources = self._state_resources(data)
        else:
            self._resources = self._config_resources(data)
        return self._resources

    @staticmethod
    def _state_resources(state: Dict[str, Any]) -> List[Dict[str, Any]]:
        resources: List[Dict[str, Any]] = []
        for resource in state.get("resources", []):
            # Only managed resources (not data sources)
            if resource.get("mode", "managed") != "managed":
                continue
            for instance in resource.get("instances", []):
                resources.append(
                    {
                        "type": resource.get("type"),
                        "name": resource.get("name"),
                        "provider": resource.get("provider"),
                        "attributes": instance.get("attributes", {}),
                        "dependencies": instance.get("dependencies", []),
                    }
                )
        return resources

    def _config_resources(self, config: Dict[str, Any]) -> List[Dict[str, Any]]:
        raw: Dict[str, Dict[str, Any]] = {}
        for resource_type, named in (config.get("resource") or {}).items():
            for name, body in (named or {}).items():
                raw[f"{resource_type}.{name}"] = dict(body or {})

        resolver = _ReferenceResolver(raw, self.get_variables())
        resources: List[Dict[str, Any]] = []
        for address, body in raw.items():
            resource_type, name = address.split(".", 1)
            dependencies = body.pop("depends_on", []) or []
            resources.append(
                {
                    "type": resource_type,
                    "name": name,
                    "provider": "google",
                    "attributes": resolver.resolve(body),
                    "dependencies": [_strip_interpolation(dep) for dep in dependencies],
                }
            )
        return resources

    def get_variables(self) -> Dict[str, Dict[str, Any]]:
        """Declared input variables (configuration sources only)."""
        if self._variables is not None:
            return self._variables
        data = self.parse()
        variables: Dict[str, Dict[str, Any]] = {}
        if self.source_kind != SOURCE_STATE:
            for name, body in (data.get("variable") or {}).items():
                variables[name] = dict(body or {})
        self._variables = variables
        return self._variables

    def find_resource_by_type(self, resource_type: str) -> List[Dict[str, Any]]:
        """
        Find all resources of a specific type.

        Args:
            resource_type: The Terraform resource type (e.g., "google_container_cluster")

        Returns:
            List of matching resources
        """
        resources = self.get_resources()
        return [r for r in resources if r["type"] == resource_type]

    def get_resource_attribute(
        self, resource: Dict[str, Any], path: str
    ) -> Optional[Any]:
        """
        Extract a nested attribute from a resource using dot notation.

        Args:
            resource: Resource dictionary from get_resources()
            path: Attribute path like "values.name" or
                  "values.private_cluster_config.0.enable_private_nodes"

        Returns:
            The attribute value, or None if not found

        Examples:
            >>> parser.get_resource_attribute(resource, "values.name")
            "secure-gke-cluster"
        """
        if path.startswith("values."):
            path = path[7:]

        current = resource.get("attributes", {})
        for part in path.split("."):
            if current is None:
                return None

            # Array indices: node_config.0.service_account
            if part.isdigit():
                if isinstance(current, list):
                    try:
                        current = current[int(part)]
                    except (IndexError, ValueError):
                        return None
                else:
                    return None
            elif isinstance(current, dict):
                current = current.get(part)
            else:
                return None

        return current


def _strip_interpolation(value: Any) -> Any:
    if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
        return value[2:-1]
    return value


class _ReferenceResolver:
    """
    Replaces `${type.name.attr}` and `${var.x}` in configuration bodies with the
    literal the engine would eventually compute, where that literal is knowable
    from the configuration alone. Anything else is left untouched.
    """

    def __init__(self, raw: Dict[str, Dict[str, Any]], variables: Dict[str, Dict[str, Any]]):
        self.raw = raw
        self.variables = variables

    def resolve(self, value: Any) -> Any:
        for _ in range(_MAX_RESOLVE_PASSES):
            resolved = self._resolve_once(value)
            if resolved == value:
                return resolved
            value = resolved
        return value

    def _resolve_once(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: self._resolve_once(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._resolve_once(v) for v in value]
        if not isinstance(value, str) or "${" not in value:
            return value

        whole_var = _VAR_REF.fullmatch(value)
        if whole_var:
            default = self._variable_default(whole_var.group(1))
            return value if default is None else default

        value = _VAR_REF.sub(self._substitute_var, value)
        return _RESOURCE_REF.sub(self._substitute_resource, value)

    def _variable_default(self, name: str) -> Any:
        return (self.variables.get(name) or {}).get("default")

    def _substitute_var(self, match: "re.Match[str]") -> str:
        default = self._variable_default(match.group(1))
        if default is None or isinstance(default, (dict, list)):
            return match.group(0)
        return str(default)

    def _substitute_resource(self, match: "re.Match[str]") -> str:
        resource_type, name, attribute = match.groups()
        body = self.raw.get(f"{resource_type}.{name}")
        if body is None:
            return match.group(0)

        if resource_type == "google_service_account" and attribute == "email":
            account_id = body.get("account_id")
            project = body.get("project") or "${var.project_id}"
            if account_id:
                return f"{account_id}@{project}.iam.gserviceaccount.com"
            return match.group(0)

        literal = body.get(attribute)
        if isinstance(literal, (str, int, float)) and not isinstance(literal, bool):
            return str(literal)
        if attribute in ("id", "self_link") and isinstance(body.get("name"), str):
            return body["name"]
        return match.group(0)
