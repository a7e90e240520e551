"""crategate CLI - standards validation and staged safety gates for Rust crates."""

from __future__ import annotations

import getpass
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

import typer
import yaml  # type: ignore[import-untyped]
from rich.console import Console
from rich.markup import escape

from crategate import __version__
from crategate.config import ConfigError, SafetyConfig, config_root, init_config, load_config, save_config
from crategate.safety.bypass import BypassError, BypassManager, utc_now
from crategate.safety.gate import PipelineGate
from crategate.safety.hooks import HookError, hook_status, install_hooks, uninstall_hooks
from crategate.safety.report import list_reports, load_report
from crategate.safety.types import Blocked, PipelineStage
from crategate.scanner.manifest import ManifestError
from crategate.scanner.report import generate_report
from crategate.scanner.source import SourceScanner
from crategate.scanner.types import Severity
from crategate.ui import render_report_detailed, render_report_summary, render_safety_result

cli = typer.Typer(
    name="crategate",
    help="crategate - coding standards and safety gates for Rust crates",
    no_args_is_help=True,
)
console = Console()

safety_app = typer.Typer(
    name="safety",
    help="Run, enforce and bypass the staged safety pipeline",
    no_args_is_help=True,
)
cli.add_typer(safety_app, name="safety")

config_app = typer.Typer(
    name="config",
    help="Inspect and edit safety.yaml",
    no_args_is_help=True,
)
cli.add_typer(config_app, name="config")


def _version_option_callback(value: bool) -> None:
    """Handle eager --version option."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@cli.callback()
def _cli_callback(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log debug output to stderr.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show crategate version and exit.",
        is_eager=True,
        callback=_version_option_callback,
    ),
) -> None:
    """Coding standards and safety gates for Rust crates."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def _load_config_or_exit() -> SafetyConfig:
    try:
        return load_config()
    except ConfigError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc


def _parse_stage(raw: str) -> PipelineStage:
    try:
        return PipelineStage.parse(raw)
    except ValueError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc


@cli.command()
def validate(
    path: Path = typer.Argument(Path("."), help="Project root containing Cargo.toml"),
    as_json: bool = typer.Option(False, "--json", help="Print violations as JSON"),
    toolchain: bool = typer.Option(True, "--toolchain/--no-toolchain", help="Check the installed rustc version"),
) -> None:
    """Scan a project for standards violations."""
    config = _load_config_or_exit()
    limits = config.limits
    if not toolchain:
        limits = replace(limits, check_toolchain=False)
    scanner = SourceScanner(limits)
    try:
        violations = scanner.scan(path.resolve())
    except ManifestError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc

    if as_json:
        typer.echo(json.dumps([v.to_dict() for v in violations], indent=2, sort_keys=True))
    else:
        console.print(generate_report(violations), markup=False, highlight=False)

    if any(v.severity is Severity.ERROR for v in violations):
        raise typer.Exit(2)


@safety_app.command(name="check")
def safety_check_cmd(
    stage: str = typer.Option("pre-commit", "--stage", "-s", help="pre-commit, pre-push or publish"),
    path: Path = typer.Option(Path("."), "--path", "-p", help="Project root"),
    detailed: bool = typer.Option(False, "--detailed", "-d", help="Show errors and context per check"),
) -> None:
    """Run a stage's checks and report, ignoring bypasses."""
    pipeline_stage = _parse_stage(stage)
    config = _load_config_or_exit()
    gate = PipelineGate(config, path.resolve())
    try:
        report = gate.run_checks(pipeline_stage)
    except ManifestError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc

    if detailed:
        render_report_detailed(report)
    else:
        render_report_summary(report)
        for error in report.all_errors():
            console.print(f"  [red]- {escape(error)}[/red]", highlight=False)
    if not report.passed:
        raise typer.Exit(2)


@safety_app.command(name="enforce")
def safety_enforce_cmd(
    stage: str = typer.Option(..., "--stage", "-s", help="pre-commit, pre-push or publish"),
    path: Path = typer.Option(Path("."), "--path", "-p", help="Project root"),
) -> None:
    """Decide whether a guarded operation may proceed."""
    pipeline_stage = _parse_stage(stage)
    config = _load_config_or_exit()
    gate = PipelineGate(config, path.resolve())
    try:
        result = gate.enforce(pipeline_stage)
    except ManifestError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc

    render_safety_result(result)
    if isinstance(result, Blocked):
        if config.strict_mode:
            raise typer.Exit(2)
        console.print("[yellow]strict_mode is off - operation not blocked[/yellow]")


@safety_app.command(name="bypass")
def safety_bypass_cmd(
    stage: str = typer.Option(..., "--stage", "-s", help="Stage to bypass"),
    reason: str = typer.Option("", "--reason", "-r", help="Why the checks are being bypassed"),
    user: str | None = typer.Option(None, "--user", "-u", help="Who is bypassing (defaults to the login name)"),
    hours: float = typer.Option(24.0, "--hours", help="How long the bypass stays active"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
) -> None:
    """Create a time-limited bypass for one stage."""
    pipeline_stage = _parse_stage(stage)
    config = _load_config_or_exit()
    who = user or getpass.getuser()

    if config.bypass.enabled and config.bypass.require_confirmation and not yes:
        confirmed = typer.confirm(
            f"Bypass {pipeline_stage.display_name} checks for {hours:g}h as {who}?",
            default=False,
        )
        if not confirmed:
            console.print("[yellow]Bypass cancelled[/yellow]")
            raise typer.Exit(1)

    manager = BypassManager(config.bypass, config.root)
    try:
        bypass = manager.create_bypass(pipeline_stage, reason, who, hours)
    except BypassError as exc:
        console.print(f"[bold red]Bypass refused ({exc.reason_code}):[/bold red] {exc}")
        raise typer.Exit(2) from exc

    console.print(f"[bold yellow]⚠ {pipeline_stage.display_name} checks bypassed[/bold yellow]")
    console.print(f"[cyan]User:[/cyan] {escape(bypass.user)}")
    console.print(f"[cyan]Reason:[/cyan] {escape(bypass.reason) or '(none)'}")
    console.print(f"[cyan]Expires:[/cyan] {bypass.expires_at:%Y-%m-%d %H:%M} UTC")


@safety_app.command(name="unbypass")
def safety_unbypass_cmd(
    stage: str = typer.Option(..., "--stage", "-s", help="Stage whose bypass to remove"),
) -> None:
    """Remove the active bypass for a stage."""
    pipeline_stage = _parse_stage(stage)
    config = _load_config_or_exit()
    manager = BypassManager(config.bypass, config.root)
    if manager.remove_bypass(pipeline_stage):
        console.print(f"[green]✓ Bypass removed for {pipeline_stage.display_name}[/green]")
    else:
        console.print(f"[yellow]No bypass active for {pipeline_stage.display_name}[/yellow]")


@safety_app.command(name="audit")
def safety_audit_cmd(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of entries to show"),
) -> None:
    """Show the bypass audit log, newest first."""
    config = _load_config_or_exit()
    manager = BypassManager(config.bypass, config.root)
    entries = manager.get_audit_log(limit)
    if not entries:
        console.print("[dim]No bypasses recorded[/dim]")
        return
    for entry in entries:
        marker = "[green]✓[/green]" if entry.successful else "[red]✗[/red]"
        console.print(
            f"{marker} {entry.timestamp:%Y-%m-%d %H:%M:%S} [cyan]{entry.stage.value}[/cyan] "
            f"{escape(entry.user)}: {escape(entry.reason)}"
        )


@safety_app.command(name="status")
def safety_status_cmd(
    path: Path = typer.Option(Path("."), "--path", "-p", help="Project root"),
) -> None:
    """Show pipeline configuration, active bypasses and installed hooks."""
    config = _load_config_or_exit()
    state = "[green]enabled[/green]" if config.enabled else "[red]disabled[/red]"
    console.print(f"[bold]Safety pipeline:[/bold] {state} (strict_mode={config.strict_mode})")
    console.print(f"[cyan]Config:[/cyan] {config.path}")
    for stage in PipelineStage:
        stage_config = config.stage(stage)
        checks = ", ".join(check.value for check in stage_config.checks)
        flag = "on" if stage_config.enabled else "off"
        console.print(f"  {stage.display_name} [{flag}] {stage_config.timeout_seconds}s: {checks}", markup=False)

    manager = BypassManager(config.bypass, config.root)
    active = manager.active_bypasses()
    if active:
        console.print("[bold yellow]Active bypasses:[/bold yellow]")
        now = utc_now()
        for bypass in active:
            hours_left = bypass.remaining(now).total_seconds() / 3600
            console.print(
                f"  {bypass.stage.value} by {escape(bypass.user)} ({hours_left:.1f}h left): {escape(bypass.reason)}"
            )
    else:
        console.print("[dim]No active bypasses[/dim]")
    if config.bypass.enabled:
        limit = config.bypass.max_bypasses_per_day or "unlimited"
        console.print(f"[cyan]Bypasses used today:[/cyan] {manager.count_bypasses_today(getpass.getuser())}/{limit}")

    for name, installed in hook_status(path.resolve()).items():
        console.print(f"  hook {name}: {'installed' if installed else 'not installed'}")

    reports = list_reports(config.root)
    if reports:
        try:
            latest = load_report(reports[0])
        except (OSError, ValueError, KeyError) as exc:
            console.print(f"[yellow]Latest report unreadable:[/yellow] {reports[0]} ({exc})")
        else:
            console.print(f"[cyan]Latest report:[/cyan] {reports[0]}")
            render_report_summary(latest)


@safety_app.command(name="install")
def safety_install_cmd(
    path: Path = typer.Option(Path("."), "--path", "-p", help="Repository root"),
    force: bool = typer.Option(False, "--force", help="Overwrite existing hooks"),
) -> None:
    """Install git hooks that enforce the pre-commit and pre-push stages."""
    try:
        report = install_hooks(path.resolve(), force=force)
    except HookError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc
    for name in report.installed:
        console.print(f"[green]✓ Installed {name} hook[/green]")
    for name in report.skipped:
        console.print(f"[yellow]{name} hook already exists. Use --force to overwrite.[/yellow]")


@safety_app.command(name="uninstall")
def safety_uninstall_cmd(
    path: Path = typer.Option(Path("."), "--path", "-p", help="Repository root"),
) -> None:
    """Remove git hooks installed by crategate."""
    try:
        removed = uninstall_hooks(path.resolve())
    except HookError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc
    if not removed:
        console.print("[dim]No crategate hooks installed[/dim]")
    for name in removed:
        console.print(f"[green]✓ Removed {name} hook[/green]")


@config_app.command(name="init")
def config_init_cmd(
    force: bool = typer.Option(False, "--force", help="Overwrite an existing safety.yaml"),
) -> None:
    """Write a default safety.yaml to the config root."""
    try:
        path = init_config(config_root(), force=force)
    except FileExistsError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc
    console.print(f"[green]✓ Config written[/green] {path}")


@config_app.command(name="show")
def config_show_cmd() -> None:
    """Print the effective configuration as YAML."""
    config = _load_config_or_exit()
    typer.echo(yaml.safe_dump(config.to_dict(), sort_keys=True), nl=False)


@config_app.command(name="get")
def config_get_cmd(key: str = typer.Argument(..., help="Dotted key, e.g. bypass.enabled")) -> None:
    """Print one configuration value."""
    config = _load_config_or_exit()
    try:
        value = config.get(key)
    except ConfigError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc
    typer.echo(json.dumps(value) if isinstance(value, (dict, list, bool)) else str(value))


@config_app.command(name="set")
def config_set_cmd(
    key: str = typer.Argument(..., help="Dotted key, e.g. bypass.enabled"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Set one scalar configuration value and save."""
    config = _load_config_or_exit()
    try:
        updated = config.with_value(key, value)
    except ConfigError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc
    path = save_config(updated)
    console.print(f"[green]✓ {key} = {updated.get(key)}[/green] ({path})")


if __name__ == "__main__":
    cli()
