from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.text import Text

from crategate.safety.report import CheckResult, SafetyReport
from crategate.safety.types import Blocked, Bypassed, SafetyResult

_T = TypeVar("_T")

console = Console()


def status_icon(passed: bool) -> str:
    return "✅" if passed else "❌"


@dataclass(frozen=True)
class CheckSpinner:
    message: str
    enabled: bool = True

    def run(self, fn: Callable[[], _T]) -> _T:
        if not self.enabled:
            return fn()

        with Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold cyan]{task.description}[/bold cyan]"),
            transient=True,
            console=console,
        ) as prog:
            task_id = prog.add_task(self.message, total=None)
            try:
                return fn()
            finally:
                prog.update(task_id, completed=1)


def print_check_line(result: CheckResult) -> None:
    style = "green" if result.passed else "red"
    console.print(
        f"  {status_icon(result.passed)} [{style}]{result.check_type.display_name}[/{style}] "
        f"[dim]({result.duration:.2f}s)[/dim]"
    )


def print_stage_header(stage_name: str, check_count: int) -> None:
    console.print(f"[bold cyan]Running {stage_name} safety checks[/bold cyan] ({check_count} checks)")


def render_report_summary(report: SafetyReport) -> None:
    passed = len(report.checks) - len(report.failed_checks())
    style = "green" if report.passed else "red"
    console.print(
        f"[{style}]{status_icon(report.passed)} {report.stage.display_name}: "
        f"{passed}/{len(report.checks)} checks passed[/{style}] "
        f"[dim]in {report.total_duration:.2f}s[/dim]"
    )


def render_report_detailed(report: SafetyReport) -> None:
    render_report_summary(report)
    for check in report.checks:
        print_check_line(check)
        if not check.passed:
            console.print(f"      [dim]{check.check_type.description}[/dim]")
        for error in check.errors:
            console.print(f"      [red]- {escape(error)}[/red]")
        for item in check.context:
            console.print(f"      [dim]{escape(item)}[/dim]")
        for suggestion in check.suggestions:
            console.print(f"      [yellow]→ {escape(suggestion)}[/yellow]")


def render_safety_result(result: SafetyResult) -> None:
    if isinstance(result, Bypassed):
        console.print(Text(result.message(), style="bold black on yellow"))
    elif isinstance(result, Blocked):
        console.print(Text(result.message(), style="bold red"))
    else:
        console.print(Text(result.message(), style="bold green"))

