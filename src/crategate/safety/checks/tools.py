"""Checks backed by external cargo subcommands."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from crategate.safety.report import CheckResult
from crategate.safety.types import CheckType
from crategate.utils.exec import ToolNotFoundError, run_cargo

logger = logging.getLogger(__name__)

CARGO_INSTALL_HINT = "Install Rust and cargo from https://rustup.rs"


def _starts_with(*prefixes: str) -> Callable[[str], bool]:
    return lambda line: line.strip().startswith(prefixes)


def _is_failed_test(line: str) -> bool:
    stripped = line.strip()
    return stripped.startswith("test ") and stripped.endswith("FAILED")


def _is_advisory(line: str) -> bool:
    return "RUSTSEC" in line or "vulnerability" in line.lower()


@dataclass(frozen=True)
class ToolCheckSpec:
    """How one check drives cargo and reads its output."""

    check_type: CheckType
    args: tuple[str, ...]
    headline: str
    excerpt_prefix: str
    is_excerpt: Callable[[str], bool]
    max_excerpts: int
    more_message: str
    suggestions: tuple[str, ...]
    success_context: str
    probe_args: tuple[str, ...] | None = None
    missing_error: str = "cargo not found"
    missing_hint: str = CARGO_INSTALL_HINT


TOOL_CHECKS: dict[CheckType, ToolCheckSpec] = {
    CheckType.FORMAT: ToolCheckSpec(
        check_type=CheckType.FORMAT,
        args=("fmt", "--check"),
        headline="Code formatting violations found",
        excerpt_prefix="Formatting issue: ",
        is_excerpt=_starts_with("Diff in"),
        max_excerpts=5,
        more_message="... and more formatting issues (showing first 5)",
        suggestions=("Run 'cargo fmt' to fix formatting automatically",),
        success_context="All code is properly formatted",
    ),
    CheckType.LINT: ToolCheckSpec(
        check_type=CheckType.LINT,
        args=("clippy", "--all-targets", "--all-features", "--", "-D", "warnings"),
        headline="Clippy lints found",
        excerpt_prefix="Clippy: ",
        is_excerpt=_starts_with("error:", "warning:"),
        max_excerpts=5,
        more_message="... and more clippy issues (showing first 5)",
        suggestions=(
            "Fix clippy warnings before proceeding",
            "Run 'cargo clippy --fix' to auto-fix some issues",
        ),
        success_context="All clippy lints passed",
        probe_args=("clippy", "--version"),
        missing_error="clippy not available",
        missing_hint="Install clippy with: rustup component add clippy",
    ),
    CheckType.BUILD: ToolCheckSpec(
        check_type=CheckType.BUILD,
        args=("build", "--release"),
        headline="Build failed",
        excerpt_prefix="Build: ",
        is_excerpt=_starts_with("error"),
        max_excerpts=3,
        more_message="... and more build errors (showing first 3)",
        suggestions=(
            "Run 'cargo build' to see detailed error messages",
            "Check for missing dependencies or syntax errors",
        ),
        success_context="Project builds successfully in release mode",
    ),
    CheckType.TEST: ToolCheckSpec(
        check_type=CheckType.TEST,
        args=("test", "--all-targets", "--all-features"),
        headline="Tests failed",
        excerpt_prefix="Test failure: ",
        is_excerpt=_is_failed_test,
        max_excerpts=5,
        more_message="... and more test failures (showing first 5)",
        suggestions=(
            "Run 'cargo test' to see detailed test output",
            "Check test logic and fix failing assertions",
        ),
        success_context="All tests passed",
    ),
    CheckType.AUDIT: ToolCheckSpec(
        check_type=CheckType.AUDIT,
        args=("audit",),
        headline="Security vulnerabilities found",
        excerpt_prefix="Security: ",
        is_excerpt=_is_advisory,
        max_excerpts=3,
        more_message="... and more vulnerabilities (showing first 3)",
        suggestions=(
            "Update vulnerable dependencies",
            "Check https://rustsec.org for vulnerability details",
        ),
        success_context="No security vulnerabilities found",
        probe_args=("audit", "--version"),
        missing_error="cargo-audit not installed",
        missing_hint="Install with: cargo install cargo-audit",
    ),
    CheckType.DOC: ToolCheckSpec(
        check_type=CheckType.DOC,
        args=("doc", "--no-deps"),
        headline="Documentation build failed",
        excerpt_prefix="Doc: ",
        is_excerpt=_starts_with("error"),
        max_excerpts=3,
        more_message="... and more documentation errors (showing first 3)",
        suggestions=("Run 'cargo doc --no-deps' to see detailed output",),
        success_context="Documentation builds successfully",
    ),
    CheckType.PUBLISH_DRY_RUN: ToolCheckSpec(
        check_type=CheckType.PUBLISH_DRY_RUN,
        args=("publish", "--dry-run"),
        headline="Publish dry run failed",
        excerpt_prefix="Publish: ",
        is_excerpt=_starts_with("error:"),
        max_excerpts=3,
        more_message="... and more publish errors (showing first 3)",
        suggestions=(
            "Run 'cargo publish --dry-run' to see detailed output",
            "Check Cargo.toml metadata and file inclusions",
        ),
        success_context="Ready for crates.io publication",
    ),
}


def run_tool_check(spec: ToolCheckSpec, project_path: Path, timeout: float | None = None) -> CheckResult:
    """Run one cargo-backed check and normalize the outcome.

    A missing tool, a timeout or a non-zero exit each produce a failed
    result; none of them raise.
    """
    result = CheckResult(check_type=spec.check_type)
    try:
        if spec.probe_args is not None:
            probe = run_cargo(list(spec.probe_args), project_root=project_path, timeout=timeout)
            if not probe.ok:
                return CheckResult.failed(spec.check_type, spec.missing_error, spec.missing_hint)
        outcome = run_cargo(list(spec.args), project_root=project_path, timeout=timeout)
    except ToolNotFoundError as exc:
        logger.info("%s skipped: %s", spec.check_type.value, exc)
        return CheckResult.failed(spec.check_type, spec.missing_error, spec.missing_hint)

    if outcome.timed_out:
        result.add_error(f"{spec.check_type.display_name} timed out after {timeout:g}s")
        result.add_suggestion("Raise the stage timeout_seconds or run the command manually")
        return result

    output_lines = outcome.output.splitlines()
    if spec.check_type is CheckType.TEST:
        for line in output_lines:
            if line.strip().startswith("test result:"):
                result.add_context(f"Tests: {line.strip()}")

    if outcome.ok:
        result.add_context(spec.success_context)
        return result

    result.add_error(spec.headline)
    excerpts = [line.strip() for line in output_lines if spec.is_excerpt(line)]
    for line in excerpts[: spec.max_excerpts]:
        result.add_error(f"{spec.excerpt_prefix}{line}")
    if len(excerpts) > spec.max_excerpts:
        result.add_error(spec.more_message)
    for suggestion in spec.suggestions:
        result.add_suggestion(suggestion)
    return result
