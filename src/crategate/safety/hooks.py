"""Git hook wiring that runs the safety pipeline before commit and push."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from crategate.safety.types import PipelineStage

logger = logging.getLogger(__name__)

HOOK_MARKER = "# managed by crategate"

_HOOK_TEMPLATE = """#!/bin/sh
{marker}
# Runs the {display} safety checks; a blocked verdict stops the operation.

echo "Running crategate {stage} checks..."
if ! crategate safety enforce --stage {stage}; then
    echo "{display} checks failed - {operation} blocked."
    echo "Fix the issues above or create a bypass: crategate safety bypass --stage {stage} --reason '...'"
    exit 1
fi
exit 0
"""

HOOK_STAGES: dict[str, PipelineStage] = {
    "pre-commit": PipelineStage.PRE_COMMIT,
    "pre-push": PipelineStage.PRE_PUSH,
}

_OPERATIONS = {
    PipelineStage.PRE_COMMIT: "commit",
    PipelineStage.PRE_PUSH: "push",
}


class HookError(RuntimeError):
    """Raised when hooks cannot be installed in the target directory."""


@dataclass
class HookInstallReport:
    installed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def render_hook(stage: PipelineStage) -> str:
    return _HOOK_TEMPLATE.format(
        marker=HOOK_MARKER,
        stage=stage.value,
        display=stage.display_name,
        operation=_OPERATIONS[stage],
    )


def hooks_dir_for(project_path: Path) -> Path:
    """Return ``.git/hooks`` of a repository.

    Raises:
        HookError: If ``project_path`` is not a git work tree
    """
    git_dir = project_path / ".git"
    if not git_dir.is_dir():
        raise HookError(f"Not a git repository: {project_path}")
    return git_dir / "hooks"


def install_hooks(project_path: Path, *, force: bool = False) -> HookInstallReport:
    """Write pre-commit and pre-push hooks without clobbering existing ones.

    Args:
        project_path: Repository root
        force: Overwrite hooks that already exist

    Returns:
        Names of hooks written and hooks left untouched
    """
    hooks_dir = hooks_dir_for(project_path)
    hooks_dir.mkdir(parents=True, exist_ok=True)
    report = HookInstallReport()
    for name, stage in HOOK_STAGES.items():
        target = hooks_dir / name
        if target.exists() and not force:
            report.skipped.append(name)
            continue
        target.write_text(render_hook(stage), encoding="utf-8")
        target.chmod(0o755)
        report.installed.append(name)
        logger.info("installed %s hook at %s", name, target)
    return report


def uninstall_hooks(project_path: Path) -> list[str]:
    """Remove hooks this tool wrote; foreign hooks stay."""
    hooks_dir = hooks_dir_for(project_path)
    removed = []
    for name in HOOK_STAGES:
        target = hooks_dir / name
        if target.is_file() and HOOK_MARKER in target.read_text(encoding="utf-8", errors="replace"):
            target.unlink()
            removed.append(name)
    return removed


def hook_status(project_path: Path) -> dict[str, bool]:
    """Map each hook name to whether our hook is installed."""
    hooks_dir = project_path / ".git" / "hooks"
    status = {}
    for name in HOOK_STAGES:
        target = hooks_dir / name
        status[name] = target.is_file() and HOOK_MARKER in target.read_text(encoding="utf-8", errors="replace")
    return status
