"""
Declaration group validation.

This module provides the primary checking API: does a source (rendered group,
HCL tree or Terraform state) carry the invariants of a group and satisfy the
structural policies?
"""
import logging
from typing import List, Optional, Sequence

from gkestack.models import DeclarationGroup, Invariant
from gkestack.evaluation.validation.models import InvariantValidation, ValidationResult
from gkestack.evaluation.validation.policy_checks import PolicyOptions, run_policies
from gkestack.evaluation.validation.resource_validators import get_validator
from gkestack.evaluation.validation.state_parser import Source, TerraformStateParser

logger = logging.getLogger(__name__)


def validate_group_score(
    source: Source,
    invariants: Optional[List[Invariant]] = None,
    policies: Optional[Sequence[str]] = None,
    options: Optional[PolicyOptions] = None,
) -> float:
    """
    Validate a source and return the fraction of checks that pass (0.0..1.0).
    """
    try:
        result = validate_group(source, invariants, policies, options)
    except Exception as e:
        logger.error(f"Validation error: {e}")
        return 0.0
    if result.total_checks <= 0 or result.errors:
        return 0.0
    return float(result.passed_checks) / float(result.total_checks)


def validate_group(
    source: Source,
    invariants: Optional[List[Invariant]] = None,
    policies: Optional[Sequence[str]] = None,
    options: Optional[PolicyOptions] = None,
) -> ValidationResult:
    """
    Validate a source and return a structured ValidationResult.

    Args:
        source: path, Terraform JSON document or DeclarationGroup
        invariants: invariants to check; defaults to the group's own invariants
                    when `source` is a DeclarationGroup, otherwise none
        policies: policy names to run; None runs all of them, [] runs none
        options: expected values for the policies

    Parse errors are captured into `ValidationResult.errors`, never raised.
    """
    if invariants is None and isinstance(source, DeclarationGroup):
        invariants = source.invariants
    invariants = list(invariants or [])

    parser = TerraformStateParser(source)
    try:
        parser.parse()
        parser.get_resources()
    except Exception as e:
        logger.exception(f"Could not parse {parser.label}")
        return ValidationResult(
            source=parser.label,
            passed=False,
            source_kind=parser.source_kind or "",
            errors=[str(e)],
        )

    result = ValidationResult(source=parser.label, passed=False, source_kind=parser.source_kind or "")
    logger.info(f"{parser.label}: validating {len(invariants)} invariant(s)")

    for idx, invariant in enumerate(invariants, 1):
        inv_result = _validate_single_invariant(invariant, parser, idx, len(invariants))
        result.invariants.append(inv_result)

    try:
        result.policies = run_policies(parser, policies, options)
    except KeyError as e:
        result.errors.append(str(e))

    result.recount()
    if result.total_checks <= 0:
        result.errors.append("No checks applied: no invariants given and every policy was skipped.")
        result.passed = False

    logger.info(
        f"{parser.label}: validation complete - "
        f"{result.passed_checks}/{result.total_checks} passed"
    )
    return result


def _validate_single_invariant(
    invariant: Invariant,
    parser: TerraformStateParser,
    invariant_index: int = 1,
    total_invariants: int = 1,
) -> InvariantValidation:
    """
    Internal: Validate a single invariant; the first matching resource wins.
    """
    resource_type = invariant.resource_type
    match_fields = invariant.match

    logger.debug(
        f"Validating invariant {invariant_index}/{total_invariants}: "
        f"{resource_type} with {len(match_fields)} fields"
    )

    resources = parser.find_resource_by_type(resource_type)
    if not resources:
        error_msg = f"No resources of type '{resource_type}' found in {parser.label}"
        logger.warning(error_msg)
        return InvariantValidation(
            resource_type=resource_type,
            invariant_match=match_fields,
            passed=False,
            errors=[error_msg],
        )

    validator_func = get_validator(resource_type)
    all_errors = []
    for resource in resources:
        validation = validator_func(invariant, resource, parser)
        if validation.passed:
            return validation
        all_errors.extend(validation.errors)

    error_msg = (
        f"None of the {len(resources)} '{resource_type}' resource(s) "
        f"matched all {len(match_fields)} invariant field(s)"
    )
    logger.warning(error_msg)
    return InvariantValidation(
        resource_type=resource_type,
        invariant_match=match_fields,
        passed=False,
        errors=[error_msg] + all_errors[:5],
    )
