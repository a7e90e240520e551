"""Check results and the per-run safety report."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from crategate.artifacts.canonical_json import write_json_exclusive
from crategate.safety.types import CheckType, PipelineStage
from crategate.schemas.validator import validate_data

REPORTS_DIRNAME = "safety-reports"
REPORT_SCHEMA = "safety_report"


@dataclass
class CheckResult:
    """Outcome of one check.

    ``passed`` is derived from ``errors``: once an error is recorded the
    result stays failed.
    """

    check_type: CheckType
    duration: float = 0.0
    errors: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    context: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.errors

    def add_error(self, error: str) -> None:
        self.errors.append(error)

    def add_suggestion(self, suggestion: str) -> None:
        self.suggestions.append(suggestion)

    def add_context(self, context: str) -> None:
        self.context.append(context)

    @classmethod
    def failed(cls, check_type: CheckType, error: str, suggestion: str | None = None) -> CheckResult:
        """Build a single-error result, optionally with a remediation hint."""
        result = cls(check_type=check_type)
        result.add_error(error)
        if suggestion:
            result.add_suggestion(suggestion)
        return result

    def to_dict(self) -> dict[str, Any]:
        return {
            "check_type": self.check_type.value,
            "passed": self.passed,
            "duration": round(self.duration, 6),
            "errors": list(self.errors),
            "suggestions": list(self.suggestions),
            "context": list(self.context),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CheckResult:
        return cls(
            check_type=CheckType(data["check_type"]),
            duration=float(data.get("duration", 0.0)),
            errors=[str(item) for item in data.get("errors", [])],
            suggestions=[str(item) for item in data.get("suggestions", [])],
            context=[str(item) for item in data.get("context", [])],
        )


@dataclass
class SafetyReport:
    """Aggregate result of every check run for one stage invocation."""

    stage: PipelineStage
    checks: list[CheckResult] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def passed(self) -> bool:
        """True when every check passed; an empty report passes."""
        return all(check.passed for check in self.checks)

    @property
    def total_duration(self) -> float:
        """Sum of per-check durations, not wall-clock time."""
        return sum(check.duration for check in self.checks)

    def add_check(self, result: CheckResult) -> None:
        self.checks.append(result)

    def merge(self, other: SafetyReport) -> None:
        """Fold another report's checks into this one."""
        for check in other.checks:
            self.add_check(check)

    def failed_checks(self) -> list[CheckResult]:
        return [check for check in self.checks if not check.passed]

    def all_errors(self) -> list[str]:
        return [error for check in self.checks for error in check.errors]

    def all_suggestions(self) -> list[str]:
        return [suggestion for check in self.checks for suggestion in check.suggestions]

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "passed": self.passed,
            "total_duration": round(self.total_duration, 6),
            "timestamp": self.timestamp.isoformat(),
            "checks": [check.to_dict() for check in self.checks],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SafetyReport:
        return cls(
            stage=PipelineStage(data["stage"]),
            checks=[CheckResult.from_dict(item) for item in data.get("checks", [])],
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )

    def filename(self) -> str:
        stamp = self.timestamp.astimezone(UTC).strftime("%Y%m%dT%H%M%S%fZ")
        return f"{stamp}-{self.stage.value}.json"

    def save_to_file(self, config_root: Path) -> Path:
        """Persist the report under ``<config_root>/safety-reports``.

        Never overwrites: a name collision gets a numeric suffix.

        Returns:
            Path of the file written
        """
        payload = self.to_dict()
        validate_data(payload, REPORT_SCHEMA)
        return write_json_exclusive(config_root / REPORTS_DIRNAME / self.filename(), payload)


def load_report(path: Path) -> SafetyReport:
    """Read a persisted report back."""
    data = json.loads(path.read_text(encoding="utf-8"))
    validate_data(data, REPORT_SCHEMA)
    return SafetyReport.from_dict(data)


def list_reports(config_root: Path) -> list[Path]:
    """Persisted report files, newest first."""
    reports_dir = config_root / REPORTS_DIRNAME
    if not reports_dir.is_dir():
        return []
    return sorted(reports_dir.glob("*.json"), key=lambda p: p.name, reverse=True)
