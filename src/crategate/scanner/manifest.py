"""Cargo manifest loading and compliance checks."""

from __future__ import annotations

import re
import tomllib
from pathlib import Path
from typing import Any

from crategate.scanner.types import ScannerLimits, Violation, ViolationType

MANIFEST_NAME = "Cargo.toml"

MANIFEST_REASON_MISSING = "MANIFEST_MISSING"
MANIFEST_REASON_PARSE_ERROR = "MANIFEST_PARSE_ERROR"

_EDITION_LINE = re.compile(r"^\s*edition\s*[=.]")
_DOTTED_EDITION_LINE = re.compile(r"^\s*(package|workspace\.package)\.edition\s*=")


class ManifestError(RuntimeError):
    """Manifest missing or unreadable; no pipeline run can proceed without one."""

    reason_code: str

    def __init__(self, message: str, reason_code: str = MANIFEST_REASON_PARSE_ERROR) -> None:
        super().__init__(message)
        self.reason_code = reason_code


def manifest_path_for(project_root: Path) -> Path:
    """Return the root manifest path of a project."""
    return project_root / MANIFEST_NAME


def parse_manifest(path: Path, content: str) -> dict[str, Any]:
    """Parse manifest text, raising ManifestError on malformed TOML."""
    try:
        return tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        raise ManifestError(
            f"Malformed manifest at {path}: {exc}",
            MANIFEST_REASON_PARSE_ERROR,
        ) from exc


def load_manifest(project_root: Path) -> dict[str, Any]:
    """Load and parse the project's root manifest.

    Args:
        project_root: Directory expected to contain Cargo.toml

    Returns:
        Parsed manifest mapping

    Raises:
        ManifestError: If the manifest is missing, unreadable or malformed
    """
    path = manifest_path_for(project_root)
    if not path.is_file():
        raise ManifestError(
            f"No {MANIFEST_NAME} found at {project_root}",
            MANIFEST_REASON_MISSING,
        )
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestError(f"Cannot read {path}: {exc}", MANIFEST_REASON_PARSE_ERROR) from exc
    return parse_manifest(path, content)


def _table(data: dict[str, Any], *keys: str) -> dict[str, Any]:
    current: Any = data
    for key in keys:
        if not isinstance(current, dict):
            return {}
        current = current.get(key, {})
    return current if isinstance(current, dict) else {}


def _find_edition_line(content: str) -> int:
    lines = content.splitlines()
    for pattern in (_EDITION_LINE, _DOTTED_EDITION_LINE):
        for index, line in enumerate(lines, start=1):
            if pattern.search(line):
                return index
    return 0


def _resolve_edition(data: dict[str, Any]) -> tuple[bool, str | None]:
    """Return ``(declared, value)`` for the manifest edition.

    A ``{ workspace = true }`` edition is resolved against
    ``[workspace.package]`` in the same file; when that is absent the
    value lives in a parent manifest and is reported as ``None``.
    """
    package = data.get("package")
    workspace_package = _table(data, "workspace", "package")
    if isinstance(package, dict) and "edition" in package:
        edition = package["edition"]
        if isinstance(edition, dict) and edition.get("workspace") is True:
            inherited = workspace_package.get("edition")
            return True, str(inherited) if inherited is not None else None
        return True, str(edition)
    if "edition" in workspace_package:
        return True, str(workspace_package["edition"])
    return False, None


def scan_manifest(path: Path, content: str, limits: ScannerLimits | None = None) -> list[Violation]:
    """Check one manifest for edition and dependency compliance.

    A missing edition is reported at line 0, an edition outside the
    accepted set at the line declaring it. Virtual workspace manifests
    without ``[workspace.package]`` carry no edition and are not flagged.

    Raises:
        ManifestError: If the content is not valid TOML
    """
    limits = limits or ScannerLimits()
    data = parse_manifest(path, content)
    violations: list[Violation] = []
    accepted = ", ".join(limits.accepted_editions)

    declared, edition = _resolve_edition(data)
    is_virtual = "package" not in data and "workspace" in data
    if not declared and not is_virtual:
        violations.append(
            Violation(
                violation_type=ViolationType.WRONG_EDITION,
                file_path=path,
                line=0,
                message=f"Missing edition specification - must be one of: {accepted}",
            )
        )
    elif edition is not None and edition not in limits.accepted_editions:
        violations.append(
            Violation(
                violation_type=ViolationType.WRONG_EDITION,
                file_path=path,
                line=_find_edition_line(content),
                message=f"Edition {edition} is not accepted - must be one of: {accepted}",
            )
        )

    if limits.required_dependencies and not is_virtual:
        declared_deps = set(_table(data, "dependencies")) | set(_table(data, "workspace", "dependencies"))
        for name in limits.required_dependencies:
            if name not in declared_deps:
                violations.append(
                    Violation(
                        violation_type=ViolationType.MISSING_DEPENDENCY,
                        file_path=path,
                        line=0,
                        message=f"Missing required dependency '{name}'",
                    )
                )

    return violations
