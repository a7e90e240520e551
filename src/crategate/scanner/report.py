"""Human-readable violation reports."""

from __future__ import annotations

from collections.abc import Sequence

from crategate.scanner.types import Violation, ViolationType

MAX_EXAMPLES_PER_TYPE = 10


def group_violations(violations: Sequence[Violation]) -> dict[ViolationType, list[Violation]]:
    """Group violations by kind, keeping first-seen order of kinds and entries."""
    groups: dict[ViolationType, list[Violation]] = {}
    for violation in violations:
        groups.setdefault(violation.violation_type, []).append(violation)
    return groups


def generate_report(violations: Sequence[Violation]) -> str:
    """Render violations grouped by kind, at most ten examples per kind."""
    if not violations:
        return "All validation checks passed! Code meets the configured standards.\n"

    lines = [f"Found {len(violations)} violations of the configured standards:", ""]
    for violation_type, group in group_violations(violations).items():
        lines.append(f"{violation_type.heading} ({len(group)} violations):")
        for violation in group[:MAX_EXAMPLES_PER_TYPE]:
            lines.append(f"  {violation.file_path}:{violation.line} - {violation.message}")
        if len(group) > MAX_EXAMPLES_PER_TYPE:
            lines.append(f"  ... and {len(group) - MAX_EXAMPLES_PER_TYPE} more")
        lines.append("")
    return "\n".join(lines)
