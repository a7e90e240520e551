"""Safety configuration: one explicit value loaded once and passed to every component.

The configuration lives in ``<config root>/safety.yaml``. The config root
is also where reports and bypass state are persisted.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from crategate.safety.types import CheckType, PipelineStage
from crategate.scanner.types import ScannerLimits

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "safety.yaml"
ENV_HOME = "CRATEGATE_HOME"

CONFIG_REASON_PARSE_ERROR = "CONFIG_PARSE_ERROR"
CONFIG_REASON_INVALID = "CONFIG_INVALID"
CONFIG_REASON_UNKNOWN_KEY = "CONFIG_UNKNOWN_KEY"

_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off"}


class ConfigError(ValueError):
    """Safety configuration is malformed or a key is invalid."""

    reason_code: str

    def __init__(self, message: str, reason_code: str = CONFIG_REASON_INVALID) -> None:
        super().__init__(message)
        self.reason_code = reason_code


def config_root(environ: dict[str, str] | None = None) -> Path:
    """Resolve the directory holding config, reports and bypass state."""
    env = os.environ if environ is None else environ
    explicit = env.get(ENV_HOME)
    if explicit:
        return Path(explicit).expanduser()
    xdg = env.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg).expanduser() / "crategate"
    return Path.home() / ".config" / "crategate"


@dataclass(frozen=True)
class StageConfig:
    """Per-stage settings."""

    enabled: bool
    timeout_seconds: int
    checks: tuple[CheckType, ...]
    continue_on_warning: bool = False

    @classmethod
    def default(cls, stage: PipelineStage) -> StageConfig:
        return cls(
            enabled=True,
            timeout_seconds=stage.default_timeout_seconds,
            checks=CheckType.for_stage(stage),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any], stage: PipelineStage) -> StageConfig:
        base = cls.default(stage)
        raw_checks = data.get("checks")
        checks = base.checks if raw_checks is None else tuple(CheckType(str(item)) for item in raw_checks)
        timeout = int(data.get("timeout_seconds", base.timeout_seconds))
        if timeout <= 0:
            raise ValueError(f"{stage.config_key}.timeout_seconds must be positive")
        return cls(
            enabled=bool(data.get("enabled", base.enabled)),
            timeout_seconds=timeout,
            checks=checks,
            continue_on_warning=bool(data.get("continue_on_warning", base.continue_on_warning)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "timeout_seconds": self.timeout_seconds,
            "checks": [check.value for check in self.checks],
            "continue_on_warning": self.continue_on_warning,
        }


@dataclass(frozen=True)
class BypassConfig:
    """Emergency bypass policy."""

    enabled: bool = False
    require_reason: bool = True
    require_confirmation: bool = True
    log_bypasses: bool = True
    max_bypasses_per_day: int = 3

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BypassConfig:
        base = cls()
        max_per_day = int(data.get("max_bypasses_per_day", base.max_bypasses_per_day))
        if max_per_day < 0:
            raise ValueError("bypass.max_bypasses_per_day must not be negative")
        return cls(
            enabled=bool(data.get("enabled", base.enabled)),
            require_reason=bool(data.get("require_reason", base.require_reason)),
            require_confirmation=bool(data.get("require_confirmation", base.require_confirmation)),
            log_bypasses=bool(data.get("log_bypasses", base.log_bypasses)),
            max_bypasses_per_day=max_per_day,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "require_reason": self.require_reason,
            "require_confirmation": self.require_confirmation,
            "log_bypasses": self.log_bypasses,
            "max_bypasses_per_day": self.max_bypasses_per_day,
        }


@dataclass(frozen=True)
class SafetyConfig:
    """Complete safety pipeline configuration."""

    root: Path
    enabled: bool = True
    strict_mode: bool = True
    show_progress: bool = True
    parallel_checks: bool = False
    max_parallel: int = 4
    pre_commit: StageConfig = field(default_factory=lambda: StageConfig.default(PipelineStage.PRE_COMMIT))
    pre_push: StageConfig = field(default_factory=lambda: StageConfig.default(PipelineStage.PRE_PUSH))
    publish: StageConfig = field(default_factory=lambda: StageConfig.default(PipelineStage.PUBLISH))
    bypass: BypassConfig = field(default_factory=BypassConfig)
    limits: ScannerLimits = field(default_factory=ScannerLimits)

    @property
    def path(self) -> Path:
        return self.root / CONFIG_FILENAME

    def stage(self, stage: PipelineStage) -> StageConfig:
        config: StageConfig = getattr(self, stage.config_key)
        return config

    @classmethod
    def from_dict(cls, data: dict[str, Any], root: Path) -> SafetyConfig:
        """Parse a config mapping; absent keys keep their defaults."""
        max_parallel = int(data.get("max_parallel", 4))
        if max_parallel < 1:
            raise ValueError("max_parallel must be at least 1")
        stages = {
            stage.config_key: StageConfig.from_dict(_mapping(data, stage.config_key), stage)
            for stage in PipelineStage
        }
        return cls(
            root=root,
            enabled=bool(data.get("enabled", True)),
            strict_mode=bool(data.get("strict_mode", True)),
            show_progress=bool(data.get("show_progress", True)),
            parallel_checks=bool(data.get("parallel_checks", False)),
            max_parallel=max_parallel,
            bypass=BypassConfig.from_dict(_mapping(data, "bypass")),
            limits=ScannerLimits.from_dict(_mapping(data, "limits")),
            **stages,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "strict_mode": self.strict_mode,
            "show_progress": self.show_progress,
            "parallel_checks": self.parallel_checks,
            "max_parallel": self.max_parallel,
            "pre_commit": self.pre_commit.to_dict(),
            "pre_push": self.pre_push.to_dict(),
            "publish": self.publish.to_dict(),
            "bypass": self.bypass.to_dict(),
            "limits": self.limits.to_dict(),
        }

    def get(self, key: str) -> Any:
        """Read a value by dotted key, e.g. ``bypass.enabled``.

        Raises:
            ConfigError: If the key does not exist
        """
        current: Any = self.to_dict()
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                raise ConfigError(f"Unknown config key: {key}", CONFIG_REASON_UNKNOWN_KEY)
            current = current[part]
        return current

    def with_value(self, key: str, raw: str) -> SafetyConfig:
        """Return a copy with one scalar key set from its string form.

        The string is coerced to the type of the current value. Sections
        and list values cannot be set this way.

        Raises:
            ConfigError: If the key is unknown, not scalar, or the value
                does not coerce
        """
        current = self.get(key)
        if isinstance(current, (dict, list)):
            raise ConfigError(f"Config key {key} is not a scalar value; edit {self.path} instead")
        value = _coerce(key, raw, current)

        data = self.to_dict()
        target = data
        parts = key.split(".")
        for part in parts[:-1]:
            target = target[part]
        target[parts[-1]] = value
        try:
            return SafetyConfig.from_dict(data, self.root)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid value for {key}: {exc}") from exc


def _mapping(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError(f"`{key}` must be a mapping")
    return value


def _coerce(key: str, raw: str, current: Any) -> Any:
    text = raw.strip()
    if isinstance(current, bool):
        lowered = text.lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
        raise ConfigError(f"Invalid boolean for {key}: {raw}")
    try:
        if isinstance(current, int):
            return int(text)
        if isinstance(current, float):
            return float(text)
    except ValueError as exc:
        raise ConfigError(f"Invalid number for {key}: {raw}") from exc
    return text


def load_config(root: Path | None = None) -> SafetyConfig:
    """Load ``safety.yaml`` from the config root, falling back to defaults.

    Args:
        root: Config root directory; resolved from the environment when omitted

    Returns:
        Parsed configuration (defaults when the file does not exist)

    Raises:
        ConfigError: If the file is malformed or holds invalid values
    """
    resolved = root if root is not None else config_root()
    path = resolved / CONFIG_FILENAME
    if not path.exists():
        logger.debug("no config at %s, using defaults", path)
        return SafetyConfig(root=resolved)

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Malformed YAML config at {path}: {exc}", CONFIG_REASON_PARSE_ERROR) from exc
    if raw is None:
        return SafetyConfig(root=resolved)
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: expected mapping at top level", CONFIG_REASON_PARSE_ERROR)

    try:
        return SafetyConfig.from_dict(raw, resolved)
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config structure in {path}: {exc}") from exc


def save_config(config: SafetyConfig) -> Path:
    """Write the configuration deterministically (sorted keys)."""
    config.root.mkdir(parents=True, exist_ok=True)
    rendered = yaml.safe_dump(config.to_dict(), sort_keys=True)
    config.path.write_text(rendered, encoding="utf-8")
    return config.path


def init_config(root: Path, *, force: bool = False) -> Path:
    """Create a default ``safety.yaml``.

    Raises:
        FileExistsError: If the file exists and ``force`` is not set
    """
    config = SafetyConfig(root=root)
    if config.path.exists() and not force:
        raise FileExistsError(f"Config file already exists: {config.path}")
    return save_config(config)
