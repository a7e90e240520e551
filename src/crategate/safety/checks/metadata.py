"""Publish-readiness checks on manifest metadata (license, version)."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from crategate.safety.report import CheckResult
from crategate.safety.types import CheckType
from crategate.scanner.manifest import load_manifest

APPROVED_LICENSES: tuple[str, ...] = (
    "MIT",
    "Apache-2.0",
    "MIT OR Apache-2.0",
    "Apache-2.0 OR MIT",
    "BSD-3-Clause",
    "BSD-2-Clause",
    "ISC",
    "MPL-2.0",
)
LICENSE_FILES: tuple[str, ...] = ("LICENSE", "LICENSE.txt", "LICENSE.md", "LICENSE-MIT", "LICENSE-APACHE")

# SemVer 2.0.0 grammar from semver.org.
SEMVER = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)


def _package_field(manifest: dict[str, Any], name: str) -> Any:
    """Read a ``[package]`` field, resolving ``{ workspace = true }``."""
    package = manifest.get("package")
    if not isinstance(package, dict):
        return None
    value = package.get(name)
    if isinstance(value, dict) and value.get("workspace") is True:
        workspace_package = manifest.get("workspace", {}).get("package", {})
        return workspace_package.get(name) if isinstance(workspace_package, dict) else None
    return value


def run_license_check(project_path: Path, manifest: dict[str, Any] | None = None) -> CheckResult:
    """Validate license, description and repository metadata."""
    manifest = manifest if manifest is not None else load_manifest(project_path)
    result = CheckResult(check_type=CheckType.LICENSE)

    license_value = _package_field(manifest, "license")
    license_file = _package_field(manifest, "license-file")
    if not license_value and not license_file:
        result.add_error("No license specified in Cargo.toml")
        result.add_suggestion("Add 'license = \"MIT OR Apache-2.0\"' to [package] section")
        result.add_suggestion("Or add 'license-file = \"LICENSE\"' if using custom license")
    elif license_value:
        license_text = str(license_value)
        if not any(approved in license_text for approved in APPROVED_LICENSES):
            result.add_error(f"Uncommon license detected: {license_text}")
            result.add_suggestion("Consider using a standard license like 'MIT OR Apache-2.0'")
            result.add_context("This may cause issues with some package managers")
        else:
            result.add_context(f"License: {license_text}")

        if "MIT" in license_text or "Apache" in license_text:
            if not any((project_path / name).exists() for name in LICENSE_FILES):
                result.add_error("License specified but no LICENSE file found")
                result.add_suggestion("Create a LICENSE file with the license text")
    else:
        result.add_context(f"License file: {license_file}")

    description = _package_field(manifest, "description")
    if not isinstance(description, str) or not description.strip():
        result.add_error("Missing or empty description in Cargo.toml")
        result.add_suggestion("Add a clear description of what your crate does")

    if not _package_field(manifest, "repository"):
        result.add_error("Missing repository URL in Cargo.toml")
        result.add_suggestion("Add 'repository = \"https://github.com/user/repo\"' to [package]")

    return result


def run_semver_check(project_path: Path, manifest: dict[str, Any] | None = None) -> CheckResult:
    """Validate that the crate version is publishable SemVer."""
    manifest = manifest if manifest is not None else load_manifest(project_path)
    result = CheckResult(check_type=CheckType.SEMVER)

    version = _package_field(manifest, "version")
    if version is None:
        result.add_error("No version field found in Cargo.toml")
        result.add_suggestion("Add 'version = \"0.1.0\"' to [package] section")
    else:
        match = SEMVER.match(str(version))
        if match is None:
            result.add_error(f"Invalid semantic version: {version}")
            result.add_suggestion("Use format: MAJOR.MINOR.PATCH (e.g., 1.0.0)")
            result.add_suggestion("See https://semver.org for semantic versioning rules")
        else:
            result.add_context(f"Current version: {version}")
            if match.group("pre"):
                result.add_context(f"Pre-release version: {match.group('pre')}")
                result.add_suggestion("Consider if this should be published as pre-release")
            if match.group("build"):
                result.add_context(f"Build metadata: {match.group('build')}")
            major, minor, patch = (int(match.group(part)) for part in ("major", "minor", "patch"))
            if (major, minor, patch) == (0, 0, 0):
                result.add_error("Version 0.0.0 should not be published")
                result.add_suggestion("Use a proper version like 0.1.0 for initial release")
            elif major > 10:
                result.add_context("High major version detected - ensure this is intentional")

    if (project_path / "CHANGELOG.md").exists():
        result.add_context("CHANGELOG.md found")
    else:
        result.add_context("No CHANGELOG.md found")
        result.add_suggestion("Consider adding CHANGELOG.md to track changes")

    return result
