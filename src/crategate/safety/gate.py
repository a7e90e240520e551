"""Single entry point deciding whether a guarded operation may proceed."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.markup import escape

from crategate.config import SafetyConfig, load_config
from crategate.safety.bypass import BypassManager
from crategate.safety.orchestrator import StageOrchestrator
from crategate.safety.report import SafetyReport
from crategate.safety.types import Blocked, Bypassed, Passed, PipelineStage, SafetyResult
from crategate.ui import console

logger = logging.getLogger(__name__)


class PipelineGate:
    """Checks for an active bypass, otherwise runs the stage and maps the verdict."""

    def __init__(
        self,
        config: SafetyConfig,
        project_path: Path,
        *,
        orchestrator: StageOrchestrator | None = None,
        bypass_manager: BypassManager | None = None,
    ) -> None:
        self.config = config
        self.project_path = project_path
        self.orchestrator = orchestrator or StageOrchestrator(config)
        self.bypass_manager = bypass_manager or BypassManager(config.bypass, config.root)
        self.last_report: SafetyReport | None = None

    def run_checks(self, stage: PipelineStage) -> SafetyReport:
        """Run the stage's checks without consulting bypasses."""
        report = self.orchestrator.run(stage, self.project_path)
        self.last_report = report
        return report

    def enforce(self, stage: PipelineStage) -> SafetyResult:
        """Return Passed, Blocked or Bypassed for ``stage``.

        An active bypass short-circuits the stage: no check runs.

        Raises:
            ManifestError: If the project manifest is missing or malformed
        """
        self.last_report = None
        bypass = self.bypass_manager.check_active_bypass(stage)
        if bypass is not None:
            logger.warning(
                "%s checks bypassed by %s (expires %s): %s",
                stage.value,
                bypass.user,
                bypass.expires_at.isoformat(),
                bypass.reason,
            )
            console.print(
                f"[bold yellow]⚠ {stage.display_name} checks BYPASSED by {escape(bypass.user)} "
                f"until {bypass.expires_at:%Y-%m-%d %H:%M} UTC[/bold yellow]"
            )
            return Bypassed(reason=bypass.reason, user=bypass.user)

        report = self.run_checks(stage)
        if report.passed:
            return Passed()
        return Blocked(
            failures=tuple(report.all_errors()),
            suggestions=tuple(report.all_suggestions()),
        )


def run_checks(stage: PipelineStage, project_path: Path, config: SafetyConfig | None = None) -> SafetyReport:
    """Run a stage's checks with the configuration from the config root."""
    gate = PipelineGate(config or load_config(), project_path)
    return gate.run_checks(stage)


def enforce_safety(stage: PipelineStage, project_path: Path, config: SafetyConfig | None = None) -> SafetyResult:
    """Enforce a stage with the configuration from the config root."""
    gate = PipelineGate(config or load_config(), project_path)
    return gate.enforce(stage)
