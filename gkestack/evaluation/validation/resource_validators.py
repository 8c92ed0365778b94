"""Resource-specific invariant validators for GCP resources."""
from typing import Any, Callable, Dict, Iterable, List, Tuple

from gkestack.models import Invariant
from gkestack.evaluation.validation.models import InvariantValidation
from gkestack.evaluation.validation.state_parser import TerraformStateParser

# Attribute names whose values are links to other resources.
_REFERENCE_FIELDS = ("network", "subnetwork", "router", "cluster")


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return str(value)


def _matches_ref(actual: Any, expected: Any) -> bool:
    """
    Match a Terraform reference-like attribute.

    State stores a full self_link or id while invariants store the friendly
    name (e.g. "gke-secure-vpc" vs "projects/.../global/networks/gke-secure-vpc").
    """
    actual_str = _as_str(actual)
    expected_str = _as_str(expected)
    if not actual_str or not expected_str:
        return actual == expected
    if actual_str == expected_str:
        return True
    return actual_str.endswith(f"/{expected_str}")


def _matches_service_account(actual: Any, expected: Any) -> bool:
    """Account ids in invariants expand into full emails in state."""
    actual_str = (_as_str(actual) or "").lower()
    expected_str = (_as_str(expected) or "").lower()
    if not expected_str:
        return actual == expected
    return actual_str == expected_str or actual_str.startswith(f"{expected_str}@")


def _range_pairs(value: Any) -> List[Tuple[str, str]]:
    if not isinstance(value, list):
        return []
    pairs = []
    for item in value:
        if isinstance(item, dict):
            pairs.append((str(item.get("range_name")), str(item.get("ip_cidr_range"))))
    return sorted(pairs)


def _compare(
    result: InvariantValidation,
    path: str,
    expected_value: Any,
    actual_value: Any,
) -> None:
    leaf = path.rsplit(".", 1)[-1]

    if leaf in _REFERENCE_FIELDS:
        if not _matches_ref(actual_value, expected_value):
            result.passed = False
            result.errors.append(f"{path}: expected {leaf} '{expected_value}', got '{actual_value}'")
        return

    if leaf == "service_account":
        if not _matches_service_account(actual_value, expected_value):
            result.passed = False
            result.errors.append(
                f"{path}: expected service account '{expected_value}', got '{actual_value}'"
            )
        return

    if actual_value != expected_value:
        result.passed = False
        result.errors.append(f"{path}: expected '{expected_value}', got '{actual_value}'")


def _match_fields(
    invariant: Invariant,
    resource: Dict[str, Any],
    parser: TerraformStateParser,
    special: Iterable[str] = (),
) -> Tuple[InvariantValidation, Dict[str, Tuple[Any, Any]]]:
    """
    Compare every field except `special` ones, which are handed back to the
    caller as (expected, actual) pairs.
    """
    result = InvariantValidation(
        resource_type=invariant.resource_type,
        invariant_match=invariant.match,
        passed=True,
        actual_values={},
    )
    deferred: Dict[str, Tuple[Any, Any]] = {}
    special = tuple(special)
    for path, expected_value in invariant.match.items():
        actual_value = parser.get_resource_attribute(resource, path)
        result.actual_values[path] = actual_value
        if path.rsplit(".", 1)[-1] in special:
            deferred[path] = (expected_value, actual_value)
            continue
        _compare(result, path, expected_value, actual_value)
    return result, deferred


def _default_validate(
    invariant: Invariant,
    resource: Dict[str, Any],
    parser: TerraformStateParser,
) -> InvariantValidation:
    """
    Default validation: exact matching, reference-aware for link fields.

    Args:
        invariant: The invariant to validate
        resource: Resource from the parsed source
        parser: Parser for accessing attributes

    Returns:
        InvariantValidation with pass/fail status
    """
    result, _ = _match_fields(invariant, resource, parser)
    return result


def _validate_compute_subnetwork(
    invariant: Invariant,
    resource: Dict[str, Any],
    parser: TerraformStateParser,
) -> InvariantValidation:
    """
    Secondary ranges are compared as a set of (range_name, ip_cidr_range);
    state adds extra keys and does not promise ordering.
    """
    result, deferred = _match_fields(invariant, resource, parser, special=("secondary_ip_range",))
    for path, (expected_value, actual_value) in deferred.items():
        expected_pairs = _range_pairs(expected_value)
        actual_pairs = _range_pairs(actual_value)
        if expected_pairs != actual_pairs:
            result.passed = False
            result.errors.append(f"{path}: expected ranges {expected_pairs}, got {actual_pairs}")
    return result


def _validate_iam_member_prefix(
    invariant: Invariant,
    resource: Dict[str, Any],
    parser: TerraformStateParser,
) -> InvariantValidation:
    """
    IAM member strings commonly expand into full emails.

    Example:
      expected: serviceAccount:gke-node-sa
      actual:   serviceAccount:gke-node-sa@my-project.iam.gserviceaccount.com
    """
    result, deferred = _match_fields(invariant, resource, parser, special=("member",))
    for path, (expected_value, actual_value) in deferred.items():
        actual_str = (_as_str(actual_value) or "").lower()
        expected_str = (_as_str(expected_value) or "").lower()
        if expected_str and (actual_str == expected_str or actual_str.startswith(f"{expected_str}@")):
            continue
        result.passed = False
        result.errors.append(f"{path}: expected member '{expected_value}', got '{actual_value}'")
    return result


# Validator function type
ValidatorFunc = Callable[[Invariant, Dict[str, Any], TerraformStateParser], InvariantValidation]

# Registry of resource-specific validators
_VALIDATORS: Dict[str, ValidatorFunc] = {
    "google_compute_subnetwork": _validate_compute_subnetwork,
    "google_project_iam_member": _validate_iam_member_prefix,
}


def get_validator(resource_type: str) -> ValidatorFunc:
    """
    Get validator function for a resource type.

    Args:
        resource_type: GCP resource type (e.g., 'google_container_node_pool')

    Returns:
        Validator function (defaults to reference-aware exact matching)
    """
    return _VALIDATORS.get(resource_type, _default_validate)
