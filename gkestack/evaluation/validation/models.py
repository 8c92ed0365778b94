"""Models for validation results."""
from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class InvariantValidation:
    """Result of validating a single invariant."""

    resource_type: str
    """The Terraform resource type (e.g., google_container_cluster)."""

    invariant_match: Dict[str, Any]
    """The expected match values from the invariant."""

    passed: bool
    """Whether the invariant validation passed."""

    actual_values: Dict[str, Any] = field(default_factory=dict)
    """The actual values found in the source."""

    errors: List[str] = field(default_factory=list)
    """List of validation error messages."""

    warnings: List[str] = field(default_factory=list)
    """List of validation warnings (non-fatal issues)."""


@dataclass
class PolicyCheckResult:
    """Result of one structural policy check."""

    policy: str
    passed: bool
    checked: List[str] = field(default_factory=list)
    """Addresses of the resources or variables the policy looked at."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.passed and not self.checked

    def fail(self, message: str) -> None:
        self.passed = False
        self.errors.append(message)


@dataclass
class ValidationResult:
    """Complete validation result for a source."""

    source: str
    """The source that was checked (path or in-memory label)."""

    passed: bool
    """Whether every invariant and policy passed."""

    invariants: List[InvariantValidation] = field(default_factory=list)
    policies: List[PolicyCheckResult] = field(default_factory=list)

    source_kind: str = ""
    """state, config or hcl."""

    total_checks: int = 0
    passed_checks: int = 0
    failed_checks: int = 0

    errors: List[str] = field(default_factory=list)
    """General validation errors (parsing, file not found, etc.)."""

    def __post_init__(self):
        self.recount()

    def recount(self) -> None:
        """Calculate summary statistics and overall pass/fail."""
        # Skipped policies found nothing to look at and are not counted.
        outcomes = [inv.passed for inv in self.invariants] + [
            pol.passed for pol in self.policies if not pol.skipped
        ]
        self.total_checks = len(outcomes)
        self.passed_checks = sum(1 for ok in outcomes if ok)
        self.failed_checks = self.total_checks - self.passed_checks
        self.passed = self.total_checks > 0 and self.failed_checks == 0 and not self.errors

    def summary(self) -> str:
        """Generate a human-readable summary."""
        status = "PASSED" if self.passed else "FAILED"
        lines = [
            status,
            f"Source: {self.source} ({self.source_kind or 'unknown'})",
            f"Checks: {self.passed_checks}/{self.total_checks} passed",
        ]
        for policy in self.policies:
            mark = "skip" if policy.skipped else ("ok" if policy.passed else "FAIL")
            lines.append(f"  [{mark}] policy {policy.policy}")
            lines.extend(f"      - {err}" for err in policy.errors)
        for inv in self.invariants:
            if not inv.passed:
                lines.append(f"  [FAIL] invariant {inv.resource_type}")
                lines.extend(f"      - {err}" for err in inv.errors)
        lines.extend(f"  error: {err}" for err in self.errors)
        return "\n".join(lines)
