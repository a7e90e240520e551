"""Single-pass line scanner for Rust sources."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path

from crategate.scanner.manifest import (
    MANIFEST_NAME,
    MANIFEST_REASON_MISSING,
    ManifestError,
    manifest_path_for,
    scan_manifest,
)
from crategate.scanner.patterns import (
    ATTRIBUTE_OPENERS,
    CFG_TEST_MARKER,
    EXPECT_CALL,
    FUNCTION_DEF,
    MOD_DECL,
    TEST_FUNCTION_MARKERS,
    UNDERSCORE_LET,
    UNDERSCORE_PARAM,
    UNWRAP_CALL,
    is_attribute_or_trivia,
    is_in_string_literal,
    is_test_path,
    leading_suppressions,
)
from crategate.scanner.types import SYSTEM_PATH, ScannerLimits, Severity, Violation, ViolationType
from crategate.utils.exec import ToolNotFoundError, run_command

logger = logging.getLogger(__name__)

SKIPPED_DIRS = frozenset({"target"})
_RUSTC_VERSION = re.compile(r"rustc (\d+)\.(\d+)\.(\d+)")

ToolchainProbe = Callable[[], str | None]


def split_source_lines(content: str) -> list[str]:
    """Split text on newlines, dropping ``\\r`` and the empty tail after a final newline."""
    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _parse_version(text: str) -> tuple[int, ...]:
    return tuple(int(part) for part in text.split("."))


def probe_rustc() -> str | None:
    """Return ``rustc --version`` output, or None when rustc is not installed."""
    try:
        result = run_command(["rustc", "--version"], cwd=Path.cwd(), timeout=30)
    except ToolNotFoundError:
        return None
    return result.stdout


@dataclass
class _Scope:
    """A brace-delimited scope opened at ``depth``."""

    depth: int
    opened: bool = False

    def update(self, depth: int, line: str) -> bool:
        """Track the depth after ``line``; return True once the scope has closed."""
        if "{" in line:
            self.opened = True
        return self.opened and depth <= self.depth


class SourceScanner:
    """Line/regex scanner producing violations for Rust projects.

    Holds only configuration; every call starts from fresh state, so the
    same input always yields the same ordered violation list.
    """

    def __init__(
        self,
        limits: ScannerLimits | None = None,
        *,
        toolchain_probe: ToolchainProbe | None = None,
    ) -> None:
        self.limits = limits or ScannerLimits()
        self._toolchain_probe = toolchain_probe or probe_rustc

    def scan_file(self, path: Path, content: str) -> list[Violation]:
        """Scan one source file and return its violations in line order."""
        limits = self.limits
        lines = split_source_lines(content)
        suppressed = leading_suppressions(lines)
        in_test_file = is_test_path(path.as_posix())
        violations: list[Violation] = []

        depth = 0
        test_module: _Scope | None = None
        test_function: _Scope | None = None
        pending_test_module = False
        pending_test_function = False
        in_attribute = False
        function_start: int | None = None

        for index, line in enumerate(lines):
            number = index + 1
            stripped = line.strip()
            depth_before = depth

            if CFG_TEST_MARKER in stripped:
                remainder = stripped.replace(CFG_TEST_MARKER, "", 1)
                if MOD_DECL.match(remainder):
                    if test_module is None and not remainder.rstrip().endswith(";"):
                        test_module = _Scope(depth_before)
                else:
                    pending_test_module = True
                    pending_test_function = True
            elif pending_test_module and MOD_DECL.match(line):
                if test_module is None and not stripped.endswith(";"):
                    test_module = _Scope(depth_before)
                pending_test_module = False
                pending_test_function = False

            if any(marker in stripped for marker in TEST_FUNCTION_MARKERS):
                pending_test_function = True

            if FUNCTION_DEF.match(line):
                if function_start is not None:
                    violations.extend(self._function_size(path, function_start, index - function_start, suppressed))
                function_start = index
                if test_function is not None and not test_function.opened:
                    test_function = None
                if pending_test_function and test_function is None:
                    test_function = _Scope(depth_before)
                pending_test_function = False
                pending_test_module = False
            elif in_attribute:
                in_attribute = not stripped.endswith("]")
            elif stripped.startswith(ATTRIBUTE_OPENERS) and "]" not in stripped:
                in_attribute = True
            elif not is_attribute_or_trivia(stripped):
                # Any other item consumes the attributes above it.
                pending_test_function = False
                pending_test_module = False

            in_test_scope = test_module is not None or test_function is not None
            violations.extend(
                self._line_checks(path, number, line, stripped, suppressed, in_test_scope, in_test_file)
            )

            depth = max(0, depth + line.count("{") - line.count("}"))
            if test_function is not None and test_function.update(depth, line):
                test_function = None
            if test_module is not None and test_module.update(depth, line):
                test_module = None

        if function_start is not None:
            violations.extend(self._function_size(path, function_start, len(lines) - function_start, suppressed))

        if len(lines) > limits.max_file_lines:
            violations.append(
                Violation(
                    violation_type=ViolationType.FILE_TOO_LARGE,
                    file_path=path,
                    line=len(lines),
                    message=f"File has {len(lines)} lines, maximum allowed is {limits.max_file_lines}",
                )
            )
        return violations

    def _function_size(
        self,
        path: Path,
        start: int,
        length: int,
        suppressed: frozenset[str],
    ) -> list[Violation]:
        if length <= self.limits.max_function_lines:
            return []
        if ViolationType.FUNCTION_TOO_LARGE.value in suppressed:
            return []
        return [
            Violation(
                violation_type=ViolationType.FUNCTION_TOO_LARGE,
                file_path=path,
                line=start + 1,
                message=f"Function has {length} lines, maximum allowed is {self.limits.max_function_lines}",
            )
        ]

    def _line_checks(
        self,
        path: Path,
        number: int,
        line: str,
        stripped: str,
        suppressed: frozenset[str],
        in_test_scope: bool,
        in_test_file: bool,
    ) -> list[Violation]:
        found: list[Violation] = []
        max_length = self.limits.max_line_length
        if len(line) > max_length:
            found.append(
                Violation(
                    violation_type=ViolationType.LINE_TOO_LONG,
                    file_path=path,
                    line=number,
                    message=f"Line has {len(line)} characters, maximum allowed is {max_length}",
                    severity=Severity.WARNING,
                )
            )

        if not in_test_scope:
            param = UNDERSCORE_PARAM.search(line)
            if param and not is_in_string_literal(line, param.group(0)):
                found.append(
                    Violation(
                        violation_type=ViolationType.UNDERSCORE_BANDAID,
                        file_path=path,
                        line=number,
                        message=(
                            f"BANNED: Underscore parameter ({param.group(1)}) - "
                            "fix the design instead of hiding warnings"
                        ),
                    )
                )
            discard = UNDERSCORE_LET.search(line)
            if discard and not is_in_string_literal(line, discard.group(0).strip()):
                found.append(
                    Violation(
                        violation_type=ViolationType.UNDERSCORE_BANDAID,
                        file_path=path,
                        line=number,
                        message="BANNED: Assign-and-discard (let _ = ...) - handle the result instead",
                    )
                )

        if in_test_scope or in_test_file or stripped.startswith("//"):
            return found

        if "unwrap" not in suppressed and UNWRAP_CALL.search(line) and not is_in_string_literal(line, ".unwrap()"):
            found.append(
                Violation(
                    violation_type=ViolationType.UNCHECKED_FALLIBLE_CALL,
                    file_path=path,
                    line=number,
                    message="BANNED: .unwrap() in production code - use proper error handling with ?",
                )
            )
        if "expect" not in suppressed and EXPECT_CALL.search(line) and not is_in_string_literal(line, ".expect("):
            found.append(
                Violation(
                    violation_type=ViolationType.UNCHECKED_FALLIBLE_CALL,
                    file_path=path,
                    line=number,
                    message="BANNED: .expect() in production code - use proper error handling with ?",
                )
            )
        return found

    def check_toolchain(self) -> list[Violation]:
        """Compare the installed compiler against the minimum toolchain."""
        minimum = self.limits.min_toolchain
        output = self._toolchain_probe()
        if output is None:
            message = f"Rust compiler (rustc) not found. Minimum required: {minimum}"
        else:
            match = _RUSTC_VERSION.search(output)
            if match is None:
                message = "Could not parse Rust version"
            else:
                installed = tuple(int(part) for part in match.groups())
                required = _parse_version(minimum)
                if installed >= required:
                    return []
                message = f"Rust version {'.'.join(match.groups())} is too old. Minimum required: {minimum}"
        return [
            Violation(
                violation_type=ViolationType.OUTDATED_TOOLCHAIN,
                file_path=SYSTEM_PATH,
                line=0,
                message=message,
            )
        ]

    def scan(self, project_root: Path) -> list[Violation]:
        """Scan every manifest and source file under a project root.

        Raises:
            ManifestError: If the project has no root manifest, or a
                manifest cannot be parsed
        """
        if not manifest_path_for(project_root).is_file():
            raise ManifestError(f"No {MANIFEST_NAME} found at {project_root}", MANIFEST_REASON_MISSING)

        violations: list[Violation] = []
        if self.limits.check_toolchain:
            violations.extend(self.check_toolchain())

        for path in iter_project_files(project_root):
            relative = path.relative_to(project_root)
            content = path.read_text(encoding="utf-8", errors="replace")
            if path.name == MANIFEST_NAME:
                violations.extend(scan_manifest(relative, content, self.limits))
            else:
                violations.extend(self.scan_file(relative, content))
        logger.debug("scanned %s: %d violations", project_root, len(violations))
        return violations


def iter_project_files(project_root: Path) -> Iterator[Path]:
    """Yield manifests and ``.rs`` files in sorted order, skipping build and hidden dirs."""
    for current, dirnames, filenames in os.walk(project_root):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRS and not d.startswith("."))
        for filename in sorted(filenames):
            if filename == MANIFEST_NAME or filename.endswith(".rs"):
                yield Path(current) / filename
