"""Unit tests for the standards and documentation coverage checks."""

from __future__ import annotations

from pathlib import Path

from crategate.safety.checks.standards import run_doc_coverage_check, run_standards_check
from crategate.safety.types import CheckType
from crategate.scanner.source import SourceScanner
from crategate.scanner.types import ScannerLimits


def _scanner(**overrides: object) -> SourceScanner:
    return SourceScanner(ScannerLimits(check_toolchain=False, **overrides))  # type: ignore[arg-type]


def test_clean_project_passes(rust_project: Path) -> None:
    result = run_standards_check(rust_project, _scanner())

    assert result.check_type is CheckType.STANDARDS
    assert result.passed
    assert result.context == ["All coding standards met"]


def test_violations_are_listed_up_to_five(rust_project: Path) -> None:
    body = "".join(f"    let v{i} = load().unwrap();\n" for i in range(7))
    (rust_project / "src" / "bad.rs").write_text("fn f() {\n" + body + "}\n", encoding="utf-8")

    result = run_standards_check(rust_project, _scanner())

    assert not result.passed
    assert result.errors[0] == "Found 7 standards violations"
    assert result.errors[1].startswith("unchecked-fallible-call: BANNED: .unwrap()")
    assert result.errors[1].endswith("(src/bad.rs:2)")
    assert len(result.errors) == 1 + 5 + 1
    assert result.errors[-1] == "... and 2 more violations"
    assert "Run 'crategate validate' for a detailed report" in result.suggestions


def test_warnings_fail_unless_continue_on_warning(rust_project: Path) -> None:
    (rust_project / "src" / "long.rs").write_text("const S: &str = \"" + "x" * 40 + "\";\n", encoding="utf-8")
    scanner = _scanner(max_line_length=50)

    strict = run_standards_check(rust_project, scanner)
    lenient = run_standards_check(rust_project, scanner, continue_on_warning=True)

    assert strict.errors[0] == "Found 1 standards violations"
    assert lenient.passed
    assert lenient.context[0].startswith("Warning: line-too-long:")
    assert lenient.context[-1] == "All coding standards met"


def test_doc_coverage_passes_above_threshold(rust_project: Path) -> None:
    result = run_doc_coverage_check(rust_project, ScannerLimits())

    assert result.passed
    assert result.context == ["Documentation coverage: 100.0% (1/1 items)"]


def test_doc_coverage_fails_below_threshold(rust_project: Path) -> None:
    (rust_project / "src" / "extra.rs").write_text("pub fn bare() {}\npub struct Plain;\n", encoding="utf-8")

    result = run_doc_coverage_check(rust_project, ScannerLimits(min_doc_coverage=80.0))

    assert not result.passed
    assert result.errors[0] == "Documentation coverage: 33.3% (1/3 items) is below the required 80.0%"
    assert result.errors[1] == "missing-docs: Missing documentation for public fn `bare` (src/extra.rs:1)"
    assert result.suggestions == ["Add /// doc comments to public items"]
