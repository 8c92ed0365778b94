"""
Validation of Terraform records against group invariants and policies.

This module provides tools to:
1. Parse Terraform state, Terraform JSON configuration and HCL sources
2. Validate invariants against the parsed records
3. Run the structural policy checks
4. Report per-check detail

Recommended API:
    from gkestack.evaluation.validation import validate_group

    result = validate_group("build/network_cluster/main.tf.json")
    print(result.summary())
"""

from gkestack.evaluation.validation.group_validator import validate_group, validate_group_score
from gkestack.evaluation.validation.policy_checks import POLICIES, PolicyOptions

__all__ = [
    "POLICIES",
    "PolicyOptions",
    "validate_group",
    "validate_group_score",
]
