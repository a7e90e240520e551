"""Documentation coverage counting for public items."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from crategate.scanner.source import iter_project_files, split_source_lines
from crategate.scanner.types import Severity, Violation, ViolationType

PUBLIC_ITEM = re.compile(r"^\s*pub\s+(fn|struct|enum|trait|type|const|static|mod)\s+(\w+)")
MAX_LISTED_MISSING = 10


@dataclass
class DocCoverage:
    """Documented versus total public items across a project."""

    total_items: int = 0
    documented_items: int = 0
    missing: list[Violation] = field(default_factory=list)

    @property
    def coverage_percent(self) -> float:
        if self.total_items == 0:
            return 100.0
        return self.documented_items / self.total_items * 100.0

    def meets_threshold(self, min_coverage: float) -> bool:
        return self.coverage_percent >= min_coverage

    def merge(self, other: DocCoverage) -> None:
        self.total_items += other.total_items
        self.documented_items += other.documented_items
        self.missing.extend(other.missing)

    def summary(self) -> str:
        """One-paragraph coverage summary with the first missing items."""
        percent = self.coverage_percent
        if percent >= 100.0:
            lines = ["Documentation coverage: 100% - all items documented"]
        else:
            lines = [f"Documentation coverage: {percent:.1f}% ({self.documented_items}/{self.total_items})"]
        for violation in self.missing[:MAX_LISTED_MISSING]:
            lines.append(f"  {violation.file_path}:{violation.line} - {violation.message}")
        if len(self.missing) > MAX_LISTED_MISSING:
            lines.append(f"  ... and {len(self.missing) - MAX_LISTED_MISSING} more items")
        return "\n".join(lines)


def _has_doc_comment(lines: list[str], index: int) -> bool:
    """Look upwards past attributes for a ``///`` or ``//!`` line."""
    cursor = index - 1
    while cursor >= 0:
        stripped = lines[cursor].strip()
        if stripped.startswith("#["):
            cursor -= 1
            continue
        return stripped.startswith("///") or stripped.startswith("//!")
    return False


def count_doc_items(path: Path, content: str) -> DocCoverage:
    """Count public items in one file and flag the undocumented ones."""
    lines = split_source_lines(content)
    coverage = DocCoverage()
    for index, line in enumerate(lines):
        match = PUBLIC_ITEM.match(line)
        if match is None:
            continue
        coverage.total_items += 1
        if _has_doc_comment(lines, index):
            coverage.documented_items += 1
            continue
        kind, name = match.groups()
        coverage.missing.append(
            Violation(
                violation_type=ViolationType.MISSING_DOCS,
                file_path=path,
                line=index + 1,
                message=f"Missing documentation for public {kind} `{name}`",
                severity=Severity.WARNING,
            )
        )
    return coverage


def measure_doc_coverage(project_root: Path) -> DocCoverage:
    """Aggregate doc coverage over every ``.rs`` file of a project."""
    total = DocCoverage()
    for path in iter_project_files(project_root):
        if path.suffix != ".rs":
            continue
        content = path.read_text(encoding="utf-8", errors="replace")
        total.merge(count_doc_items(path.relative_to(project_root), content))
    return total
