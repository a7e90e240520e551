"""Dispatch a check type to its implementation and normalize the outcome."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from crategate.config import SafetyConfig
from crategate.safety.checks.metadata import run_license_check, run_semver_check
from crategate.safety.checks.standards import run_doc_coverage_check, run_standards_check
from crategate.safety.checks.tools import TOOL_CHECKS, run_tool_check
from crategate.safety.report import CheckResult
from crategate.safety.types import CheckType
from crategate.scanner.manifest import ManifestError
from crategate.scanner.source import SourceScanner
from crategate.scanner.types import ViolationScanner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckRequest:
    """Inputs shared by every check invocation."""

    project_path: Path
    timeout: float | None = None
    continue_on_warning: bool = False


Handler = Callable[[CheckRequest], CheckResult]


class CheckExecutor:
    """Runs one check and always returns a CheckResult.

    Only a missing or malformed manifest escapes as ManifestError; any
    other failure inside a check becomes a failed result.
    """

    def __init__(self, config: SafetyConfig, scanner: ViolationScanner | None = None) -> None:
        self.config = config
        self.scanner: ViolationScanner = scanner or SourceScanner(config.limits)
        self._handlers: dict[CheckType, Handler] = {
            CheckType.FORMAT: self._tool(CheckType.FORMAT),
            CheckType.LINT: self._tool(CheckType.LINT),
            CheckType.BUILD: self._tool(CheckType.BUILD),
            CheckType.TEST: self._tool(CheckType.TEST),
            CheckType.AUDIT: self._tool(CheckType.AUDIT),
            CheckType.DOC: self._tool(CheckType.DOC),
            CheckType.PUBLISH_DRY_RUN: self._tool(CheckType.PUBLISH_DRY_RUN),
            CheckType.STANDARDS: self._standards,
            CheckType.DOC_COVERAGE: self._doc_coverage,
            CheckType.LICENSE: lambda request: run_license_check(request.project_path),
            CheckType.SEMVER: lambda request: run_semver_check(request.project_path),
        }

    @property
    def supported(self) -> frozenset[CheckType]:
        return frozenset(self._handlers)

    def run(
        self,
        check_type: CheckType,
        project_path: Path,
        *,
        timeout: float | None = None,
        continue_on_warning: bool = False,
    ) -> CheckResult:
        """Run ``check_type`` against a project and time it.

        Raises:
            ManifestError: If the project manifest is missing or malformed
        """
        request = CheckRequest(
            project_path=project_path,
            timeout=timeout,
            continue_on_warning=continue_on_warning,
        )
        handler = self._handlers[check_type]
        started = time.perf_counter()
        try:
            result = handler(request)
        except ManifestError:
            raise
        except Exception as exc:
            logger.exception("%s check raised", check_type.value)
            result = CheckResult.failed(check_type, f"Check failed: {exc}", "Re-run with --verbose for details")
        result.duration = time.perf_counter() - started
        logger.debug("%s finished in %.3fs (passed=%s)", check_type.value, result.duration, result.passed)
        return result

    def _tool(self, check_type: CheckType) -> Handler:
        spec = TOOL_CHECKS[check_type]
        return lambda request: run_tool_check(spec, request.project_path, request.timeout)

    def _standards(self, request: CheckRequest) -> CheckResult:
        return run_standards_check(
            request.project_path,
            self.scanner,
            continue_on_warning=request.continue_on_warning,
        )

    def _doc_coverage(self, request: CheckRequest) -> CheckResult:
        return run_doc_coverage_check(request.project_path, self.config.limits)
