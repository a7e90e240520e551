"""Stage, check and verdict types for the safety pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PipelineStage(str, Enum):
    """Checkpoint guarding a risky operation."""

    PRE_COMMIT = "pre-commit"
    PRE_PUSH = "pre-push"
    PUBLISH = "publish"

    @property
    def display_name(self) -> str:
        return _STAGE_DISPLAY[self]

    @property
    def default_timeout_seconds(self) -> int:
        return _STAGE_TIMEOUTS[self]

    @property
    def config_key(self) -> str:
        """Key of this stage's section in the config file."""
        return self.value.replace("-", "_")

    @classmethod
    def parse(cls, raw: str) -> PipelineStage:
        """Parse a stage name, accepting the short aliases.

        Raises:
            ValueError: If the name matches no stage
        """
        key = raw.strip().lower()
        try:
            return _STAGE_ALIASES[key]
        except KeyError:
            raise ValueError(f"Unknown pipeline stage: {raw}") from None


_STAGE_DISPLAY = {
    PipelineStage.PRE_COMMIT: "Pre-Commit",
    PipelineStage.PRE_PUSH: "Pre-Push",
    PipelineStage.PUBLISH: "Publish",
}

_STAGE_TIMEOUTS = {
    PipelineStage.PRE_COMMIT: 300,
    PipelineStage.PRE_PUSH: 600,
    PipelineStage.PUBLISH: 900,
}

_STAGE_ALIASES = {
    "pre-commit": PipelineStage.PRE_COMMIT,
    "pre_commit": PipelineStage.PRE_COMMIT,
    "precommit": PipelineStage.PRE_COMMIT,
    "commit": PipelineStage.PRE_COMMIT,
    "pre-push": PipelineStage.PRE_PUSH,
    "pre_push": PipelineStage.PRE_PUSH,
    "prepush": PipelineStage.PRE_PUSH,
    "push": PipelineStage.PRE_PUSH,
    "publish": PipelineStage.PUBLISH,
    "pub": PipelineStage.PUBLISH,
}


class CheckType(str, Enum):
    """One unit of verification."""

    FORMAT = "format"
    LINT = "lint"
    BUILD = "build"
    TEST = "test"
    AUDIT = "audit"
    DOC = "doc"
    PUBLISH_DRY_RUN = "publish-dry-run"
    STANDARDS = "standards"
    DOC_COVERAGE = "doc-coverage"
    LICENSE = "license"
    SEMVER = "semver"

    @property
    def display_name(self) -> str:
        return _CHECK_INFO[self][0]

    @property
    def description(self) -> str:
        return _CHECK_INFO[self][1]

    @classmethod
    def for_stage(cls, stage: PipelineStage) -> tuple[CheckType, ...]:
        """Default ordered check list of a stage."""
        return STAGE_CHECKS[stage]


_CHECK_INFO: dict[CheckType, tuple[str, str]] = {
    CheckType.FORMAT: ("Format Check", "Validates code formatting with rustfmt"),
    CheckType.LINT: ("Clippy Check", "Runs clippy with warnings denied"),
    CheckType.BUILD: ("Build Check", "Builds the project in release mode"),
    CheckType.TEST: ("Test Check", "Runs the full test suite"),
    CheckType.AUDIT: ("Security Audit", "Scans dependencies for known vulnerabilities"),
    CheckType.DOC: ("Documentation Build", "Builds the API documentation"),
    CheckType.PUBLISH_DRY_RUN: ("Publish Dry Run", "Validates the crate can be published"),
    CheckType.STANDARDS: ("Standards Check", "Scans sources for banned idioms and size limits"),
    CheckType.DOC_COVERAGE: ("Documentation Coverage", "Measures documentation of public items"),
    CheckType.LICENSE: ("License Check", "Validates license metadata for publishing"),
    CheckType.SEMVER: ("Semver Check", "Validates the crate version is well-formed SemVer"),
}

_PRE_COMMIT_CHECKS = (CheckType.FORMAT, CheckType.LINT, CheckType.BUILD, CheckType.STANDARDS)
_PRE_PUSH_CHECKS = (*_PRE_COMMIT_CHECKS, CheckType.TEST, CheckType.AUDIT, CheckType.DOC)
_PUBLISH_CHECKS = (
    *_PRE_PUSH_CHECKS,
    CheckType.PUBLISH_DRY_RUN,
    CheckType.DOC_COVERAGE,
    CheckType.LICENSE,
    CheckType.SEMVER,
)

STAGE_CHECKS: dict[PipelineStage, tuple[CheckType, ...]] = {
    PipelineStage.PRE_COMMIT: _PRE_COMMIT_CHECKS,
    PipelineStage.PRE_PUSH: _PRE_PUSH_CHECKS,
    PipelineStage.PUBLISH: _PUBLISH_CHECKS,
}


def stage_for_check(check: CheckType) -> PipelineStage:
    """Return the earliest stage that runs ``check``."""
    for stage in PipelineStage:
        if check in STAGE_CHECKS[stage]:
            return stage
    raise ValueError(f"check {check.value} belongs to no stage")


@dataclass(frozen=True)
class Passed:
    """Every check passed."""

    def is_allowed(self) -> bool:
        return True

    def message(self) -> str:
        return "All safety checks passed! Operation allowed."


@dataclass(frozen=True)
class Blocked:
    """At least one check failed; the operation must not proceed."""

    failures: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()

    def is_allowed(self) -> bool:
        return False

    def message(self) -> str:
        lines = ["Safety checks FAILED - operation blocked!", ""]
        if self.failures:
            lines.append("Failures:")
            lines.extend(f"  • {failure}" for failure in self.failures)
        if self.suggestions:
            lines.append("")
            lines.append("Suggestions:")
            lines.extend(f"  • {suggestion}" for suggestion in self.suggestions)
        return "\n".join(lines)


@dataclass(frozen=True)
class Bypassed:
    """An active bypass skipped every check."""

    reason: str
    user: str

    def is_allowed(self) -> bool:
        return True

    def message(self) -> str:
        return f"Safety checks bypassed by {self.user} - reason: {self.reason}"


SafetyResult = Passed | Blocked | Bypassed
