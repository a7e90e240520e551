"""Unit tests for loading, editing and saving the safety configuration."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from crategate.config import (
    CONFIG_FILENAME,
    ConfigError,
    SafetyConfig,
    config_root,
    init_config,
    load_config,
    save_config,
)
from crategate.safety.types import CheckType, PipelineStage


def test_config_root_precedence(tmp_path: Path) -> None:
    assert config_root({"CRATEGATE_HOME": str(tmp_path / "a"), "XDG_CONFIG_HOME": "/x"}) == tmp_path / "a"
    assert config_root({"XDG_CONFIG_HOME": str(tmp_path)}) == tmp_path / "crategate"
    assert config_root({}) == Path.home() / ".config" / "crategate"


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert config.root == tmp_path
    assert config.enabled and config.strict_mode
    assert not config.bypass.enabled
    assert config.stage(PipelineStage.PRE_PUSH).timeout_seconds == 600
    assert config.stage(PipelineStage.PUBLISH).checks == CheckType.for_stage(PipelineStage.PUBLISH)


def test_partial_file_keeps_defaults(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(
        "parallel_checks: true\n"
        "pre_commit:\n"
        "  checks: [format, standards]\n"
        "bypass:\n"
        "  enabled: true\n"
        "limits:\n"
        "  max_function_lines: 80\n",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config.parallel_checks
    assert config.pre_commit.checks == (CheckType.FORMAT, CheckType.STANDARDS)
    assert config.pre_commit.timeout_seconds == 300
    assert config.bypass.enabled
    assert config.bypass.max_bypasses_per_day == 3
    assert config.limits.max_function_lines == 80
    assert config.limits.max_file_lines == 300


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    original = SafetyConfig(root=tmp_path).with_value("bypass.max_bypasses_per_day", "5")
    save_config(original)

    assert load_config(tmp_path) == original
    saved = yaml.safe_load((tmp_path / CONFIG_FILENAME).read_text(encoding="utf-8"))
    assert list(saved) == sorted(saved)


@pytest.mark.parametrize(
    "content",
    ["enabled: [unclosed\n", "- just\n- a list\n"],
)
def test_malformed_file_raises_parse_error(tmp_path: Path, content: str) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError) as excinfo:
        load_config(tmp_path)
    assert excinfo.value.reason_code == "CONFIG_PARSE_ERROR"


@pytest.mark.parametrize(
    "content",
    [
        "pre_push:\n  checks: [nonsense]\n",
        "max_parallel: 0\n",
        "bypass: 3\n",
        "pre_commit:\n  timeout_seconds: -1\n",
        "limits:\n  min_toolchain: latest\n",
    ],
)
def test_invalid_values_raise(tmp_path: Path, content: str) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError) as excinfo:
        load_config(tmp_path)
    assert excinfo.value.reason_code == "CONFIG_INVALID"


def test_get_dotted_keys(tmp_path: Path) -> None:
    config = SafetyConfig(root=tmp_path)

    assert config.get("bypass.enabled") is False
    assert config.get("publish.timeout_seconds") == 900
    with pytest.raises(ConfigError) as excinfo:
        config.get("bypass.nope")
    assert excinfo.value.reason_code == "CONFIG_UNKNOWN_KEY"


def test_with_value_coerces_types(tmp_path: Path) -> None:
    config = SafetyConfig(root=tmp_path)

    assert config.with_value("bypass.enabled", "yes").bypass.enabled is True
    assert config.with_value("pre_commit.timeout_seconds", "120").pre_commit.timeout_seconds == 120
    assert config.with_value("limits.min_doc_coverage", "90").limits.min_doc_coverage == 90.0
    assert config.with_value("limits.min_toolchain", "1.85.0").limits.min_toolchain == "1.85.0"
    assert config.bypass.enabled is False


@pytest.mark.parametrize(
    ("key", "raw"),
    [
        ("bypass.enabled", "maybe"),
        ("max_parallel", "many"),
        ("max_parallel", "0"),
        ("bypass", "true"),
        ("pre_commit.checks", "format"),
        ("limits.min_toolchain", "stable"),
    ],
)
def test_with_value_rejects_bad_input(tmp_path: Path, key: str, raw: str) -> None:
    with pytest.raises(ConfigError):
        SafetyConfig(root=tmp_path).with_value(key, raw)


def test_init_config_refuses_to_overwrite(tmp_path: Path) -> None:
    path = init_config(tmp_path)
    assert path == tmp_path / CONFIG_FILENAME

    with pytest.raises(FileExistsError):
        init_config(tmp_path)
    assert init_config(tmp_path, force=True) == path
