"""Drive the checks of one pipeline stage into a SafetyReport."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from crategate.config import SafetyConfig, StageConfig
from crategate.safety.executor import CheckExecutor
from crategate.safety.report import CheckResult, SafetyReport
from crategate.safety.types import CheckType, PipelineStage
from crategate.scanner.manifest import load_manifest
from crategate.ui import CheckSpinner, console, print_check_line, print_stage_header

logger = logging.getLogger(__name__)


class StageOrchestrator:
    """Runs a stage's declared checks and aggregates their results.

    Checks run in declared order, or fan out to a bounded thread pool
    when ``parallel_checks`` is enabled. In both modes every check runs
    (no fail-fast) and results are added to the report in declared
    order once all of them have finished.
    """

    def __init__(
        self,
        config: SafetyConfig,
        executor: CheckExecutor | None = None,
        *,
        persist: bool = True,
    ) -> None:
        self.config = config
        self.executor = executor or CheckExecutor(config)
        self.persist = persist
        self.last_report_path: Path | None = None

    def run(self, stage: PipelineStage, project_path: Path) -> SafetyReport:
        """Run every check of ``stage`` against the project.

        Raises:
            ManifestError: If the project manifest is missing or malformed
        """
        report = SafetyReport(stage=stage)
        self.last_report_path = None
        if not self.config.enabled:
            logger.warning("safety pipeline disabled; %s checks skipped", stage.value)
            console.print("[yellow]Safety pipeline is disabled - no checks run[/yellow]")
            return report
        stage_config = self.config.stage(stage)
        if not stage_config.enabled:
            logger.warning("%s stage disabled; checks skipped", stage.value)
            console.print(f"[yellow]{stage.display_name} stage is disabled - no checks run[/yellow]")
            return report

        load_manifest(project_path)
        checks = stage_config.checks
        print_stage_header(stage.display_name, len(checks))

        if self.config.parallel_checks and len(checks) > 1:
            results = self._run_parallel(checks, stage_config, project_path)
            for result in results:
                report.add_check(result)
                print_check_line(result)
        else:
            for check in checks:
                spinner = CheckSpinner(f"{check.display_name}...", enabled=self.config.show_progress)
                result = spinner.run(lambda check=check: self._run_one(check, stage_config, project_path))
                report.add_check(result)
                print_check_line(result)

        if self.persist:
            self._save(report)
        return report

    def _run_one(self, check: CheckType, stage_config: StageConfig, project_path: Path) -> CheckResult:
        return self.executor.run(
            check,
            project_path,
            timeout=stage_config.timeout_seconds,
            continue_on_warning=stage_config.continue_on_warning,
        )

    def _run_parallel(
        self,
        checks: tuple[CheckType, ...],
        stage_config: StageConfig,
        project_path: Path,
    ) -> list[CheckResult]:
        workers = min(self.config.max_parallel, len(checks))
        logger.debug("running %d checks on %d workers", len(checks), workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(self._run_one, check, stage_config, project_path) for check in checks]
            return [future.result() for future in futures]

    def _save(self, report: SafetyReport) -> None:
        try:
            self.last_report_path = report.save_to_file(self.config.root)
        except (OSError, ValueError) as exc:
            logger.warning("could not save safety report: %s", exc)
            return
        logger.info("safety report saved to %s", self.last_report_path)
