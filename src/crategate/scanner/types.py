"""Violation data model shared by every scanner."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

SYSTEM_PATH = Path("<system>")
_TOOLCHAIN_VERSION = re.compile(r"\d+(\.\d+)*")


class ViolationType(str, Enum):
    """Closed set of standards breaches the scanner can report."""

    UNDERSCORE_BANDAID = "underscore-bandaid"
    WRONG_EDITION = "wrong-edition"
    FILE_TOO_LARGE = "file-too-large"
    FUNCTION_TOO_LARGE = "function-too-large"
    LINE_TOO_LONG = "line-too-long"
    UNCHECKED_FALLIBLE_CALL = "unchecked-fallible-call"
    MISSING_DOCS = "missing-docs"
    MISSING_DEPENDENCY = "missing-dependency"
    OUTDATED_TOOLCHAIN = "outdated-toolchain"

    @property
    def heading(self) -> str:
        """Upper-case group heading used by the text report."""
        return self.value.replace("-", " ").upper()


class Severity(str, Enum):
    """Violation severity."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Violation:
    """A single detected standards breach.

    ``line`` is 1-based; ``0`` means the breach has no line (a missing
    manifest field or a toolchain probe).
    """

    violation_type: ViolationType
    file_path: Path
    line: int
    message: str
    severity: Severity = Severity.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "violation_type": self.violation_type.value,
            "file_path": str(self.file_path),
            "line": self.line,
            "message": self.message,
            "severity": self.severity.value,
        }


@dataclass(frozen=True)
class ScannerLimits:
    """Thresholds applied by the source and manifest scanners."""

    max_file_lines: int = 300
    max_function_lines: int = 50
    max_line_length: int = 100
    accepted_editions: tuple[str, ...] = ("2021", "2024")
    min_toolchain: str = "1.82.0"
    check_toolchain: bool = True
    required_dependencies: tuple[str, ...] = ()
    min_doc_coverage: float = 80.0

    def __post_init__(self) -> None:
        if not _TOOLCHAIN_VERSION.fullmatch(self.min_toolchain):
            raise ValueError(f"min_toolchain must be a dotted version like 1.82.0, got {self.min_toolchain!r}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScannerLimits:
        """Build limits from a config mapping, keeping defaults for absent keys."""
        defaults = cls()
        return cls(
            max_file_lines=int(data.get("max_file_lines", defaults.max_file_lines)),
            max_function_lines=int(data.get("max_function_lines", defaults.max_function_lines)),
            max_line_length=int(data.get("max_line_length", defaults.max_line_length)),
            accepted_editions=tuple(
                str(item) for item in data.get("accepted_editions", defaults.accepted_editions)
            ),
            min_toolchain=str(data.get("min_toolchain", defaults.min_toolchain)),
            check_toolchain=bool(data.get("check_toolchain", defaults.check_toolchain)),
            required_dependencies=tuple(
                str(item) for item in data.get("required_dependencies", defaults.required_dependencies)
            ),
            min_doc_coverage=float(data.get("min_doc_coverage", defaults.min_doc_coverage)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_file_lines": self.max_file_lines,
            "max_function_lines": self.max_function_lines,
            "max_line_length": self.max_line_length,
            "accepted_editions": list(self.accepted_editions),
            "min_toolchain": self.min_toolchain,
            "check_toolchain": self.check_toolchain,
            "required_dependencies": list(self.required_dependencies),
            "min_doc_coverage": self.min_doc_coverage,
        }


class ViolationScanner(Protocol):
    """Interface every project scanner implements.

    The line/regex scanner is the only implementation today; a token or
    tree based scanner can replace it behind the same two calls.
    """

    def scan_file(self, path: Path, content: str) -> list[Violation]: ...

    def scan(self, project_root: Path) -> list[Violation]: ...
