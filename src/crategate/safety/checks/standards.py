"""In-process checks: standards scan and documentation coverage."""

from __future__ import annotations

from pathlib import Path

from crategate.safety.report import CheckResult
from crategate.safety.types import CheckType
from crategate.scanner.docs import measure_doc_coverage
from crategate.scanner.types import ScannerLimits, Severity, Violation, ViolationScanner

MAX_LISTED_VIOLATIONS = 5


def _describe(violation: Violation) -> str:
    return f"{violation.violation_type.value}: {violation.message} ({violation.file_path}:{violation.line})"


def run_standards_check(
    project_path: Path,
    scanner: ViolationScanner,
    *,
    continue_on_warning: bool = False,
) -> CheckResult:
    """Wrap scanner violations into a check result.

    With ``continue_on_warning`` warning-severity violations are reported
    as context and do not fail the check.
    """
    result = CheckResult(check_type=CheckType.STANDARDS)
    violations = scanner.scan(project_path)

    if continue_on_warning:
        warnings = [v for v in violations if v.severity is Severity.WARNING]
        violations = [v for v in violations if v.severity is not Severity.WARNING]
        for warning in warnings[:MAX_LISTED_VIOLATIONS]:
            result.add_context(f"Warning: {_describe(warning)}")
        if len(warnings) > MAX_LISTED_VIOLATIONS:
            result.add_context(f"... and {len(warnings) - MAX_LISTED_VIOLATIONS} more warnings")

    if not violations:
        result.add_context("All coding standards met")
        return result

    result.add_error(f"Found {len(violations)} standards violations")
    for violation in violations[:MAX_LISTED_VIOLATIONS]:
        result.add_error(_describe(violation))
    if len(violations) > MAX_LISTED_VIOLATIONS:
        result.add_error(f"... and {len(violations) - MAX_LISTED_VIOLATIONS} more violations")
    result.add_suggestion("Run 'crategate validate' for a detailed report")
    result.add_suggestion("Fix standards violations before proceeding")
    return result


def run_doc_coverage_check(project_path: Path, limits: ScannerLimits) -> CheckResult:
    """Fail when public-item documentation coverage is below the minimum."""
    result = CheckResult(check_type=CheckType.DOC_COVERAGE)
    coverage = measure_doc_coverage(project_path)
    percent = coverage.coverage_percent
    summary = f"Documentation coverage: {percent:.1f}% ({coverage.documented_items}/{coverage.total_items} items)"

    listed = [_describe(item) for item in coverage.missing[:MAX_LISTED_VIOLATIONS]]
    if coverage.meets_threshold(limits.min_doc_coverage):
        result.add_context(summary)
        for line in listed:
            result.add_context(line)
        return result

    result.add_error(f"{summary} is below the required {limits.min_doc_coverage:.1f}%")
    for line in listed:
        result.add_error(line)
    if len(coverage.missing) > MAX_LISTED_VIOLATIONS:
        result.add_error(f"... and {len(coverage.missing) - MAX_LISTED_VIOLATIONS} more undocumented items")
    result.add_suggestion("Add /// doc comments to public items")
    return result
