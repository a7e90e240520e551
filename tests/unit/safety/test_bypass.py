"""Unit tests for bypass creation, expiry, quota and audit trail."""

from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

import pytest

from crategate.config import BypassConfig
from crategate.safety.bypass import (
    BYPASS_REASON_DISABLED,
    BYPASS_REASON_INVALID_DURATION,
    BYPASS_REASON_QUOTA_EXCEEDED,
    BYPASS_REASON_REASON_REQUIRED,
    BypassError,
    BypassManager,
)
from crategate.safety.types import PipelineStage

STAGE = PipelineStage.PRE_PUSH


def _manager(tmp_path: Path, clock, **overrides: object) -> BypassManager:
    config = BypassConfig(enabled=True, **overrides)  # type: ignore[arg-type]
    return BypassManager(config, tmp_path / "home", clock=clock)


def test_create_and_check_active_bypass(tmp_path: Path, clock) -> None:
    manager = _manager(tmp_path, clock)

    created = manager.create_bypass(STAGE, "  prod is down  ", "dana", duration_hours=2)

    assert created.reason == "prod is down"
    assert created.expires_at == clock.now + timedelta(hours=2)
    active = manager.check_active_bypass(STAGE)
    assert active == created
    assert manager.check_active_bypass(PipelineStage.PRE_COMMIT) is None


def test_expired_bypass_is_removed(tmp_path: Path, clock) -> None:
    manager = _manager(tmp_path, clock)
    manager.create_bypass(STAGE, "hotfix", "dana", duration_hours=1)

    clock.now += timedelta(minutes=59)
    assert manager.check_active_bypass(STAGE) is not None

    clock.now += timedelta(minutes=1)
    assert manager.check_active_bypass(STAGE) is None
    assert not manager.bypass_path(STAGE).exists()


def test_disabled_bypass_system_refuses_without_writing(tmp_path: Path, clock) -> None:
    manager = BypassManager(BypassConfig(enabled=False), tmp_path / "home", clock=clock)

    with pytest.raises(BypassError) as excinfo:
        manager.create_bypass(STAGE, "hotfix", "dana")

    assert excinfo.value.reason_code == BYPASS_REASON_DISABLED
    assert not manager.directory.exists()


def test_disabled_system_ignores_existing_bypass(tmp_path: Path, clock) -> None:
    _manager(tmp_path, clock).create_bypass(STAGE, "hotfix", "dana")
    disabled = BypassManager(BypassConfig(enabled=False), tmp_path / "home", clock=clock)

    assert disabled.check_active_bypass(STAGE) is None


def test_reason_required(tmp_path: Path, clock) -> None:
    manager = _manager(tmp_path, clock)

    with pytest.raises(BypassError) as excinfo:
        manager.create_bypass(STAGE, "   ", "dana")

    assert excinfo.value.reason_code == BYPASS_REASON_REASON_REQUIRED
    assert not manager.bypass_path(STAGE).exists()
    assert manager.get_audit_log() == []


def test_reason_optional_when_configured(tmp_path: Path, clock) -> None:
    manager = _manager(tmp_path, clock, require_reason=False)
    assert manager.create_bypass(STAGE, "", "dana").reason == ""


def test_duration_must_be_positive(tmp_path: Path, clock) -> None:
    with pytest.raises(BypassError) as excinfo:
        _manager(tmp_path, clock).create_bypass(STAGE, "hotfix", "dana", duration_hours=0)
    assert excinfo.value.reason_code == BYPASS_REASON_INVALID_DURATION


def test_quota_is_per_user_per_day(tmp_path: Path, clock) -> None:
    manager = _manager(tmp_path, clock, max_bypasses_per_day=2)
    manager.create_bypass(STAGE, "one", "dana")
    manager.create_bypass(PipelineStage.PUBLISH, "two", "dana")

    with pytest.raises(BypassError) as excinfo:
        manager.create_bypass(STAGE, "three", "dana")
    assert excinfo.value.reason_code == BYPASS_REASON_QUOTA_EXCEEDED
    assert manager.count_bypasses_today("dana") == 2
    assert len(manager.get_audit_log()) == 2

    manager.create_bypass(STAGE, "other user", "lee")

    clock.now += timedelta(days=1)
    manager.create_bypass(STAGE, "next day", "dana")
    assert manager.count_bypasses_today("dana") == 1


def test_zero_quota_is_unlimited(tmp_path: Path, clock) -> None:
    manager = _manager(tmp_path, clock, max_bypasses_per_day=0)
    for attempt in range(5):
        manager.create_bypass(STAGE, f"attempt {attempt}", "dana")
    assert manager.count_bypasses_today("dana") == 5


def test_quota_rebuilt_from_audit_log_when_counter_is_lost(tmp_path: Path, clock) -> None:
    manager = _manager(tmp_path, clock, max_bypasses_per_day=2)
    manager.create_bypass(STAGE, "one", "dana")
    manager.create_bypass(STAGE, "two", "dana")
    manager.quota_path.write_text("{not json", encoding="utf-8")

    assert manager.count_bypasses_today("dana") == 2
    with pytest.raises(BypassError):
        manager.create_bypass(STAGE, "three", "dana")


def test_audit_log_newest_first_and_limited(tmp_path: Path, clock) -> None:
    manager = _manager(tmp_path, clock)
    manager.create_bypass(STAGE, "first", "dana")
    clock.now += timedelta(minutes=5)
    manager.create_bypass(PipelineStage.PUBLISH, "second", "dana")

    entries = manager.get_audit_log()
    assert [entry.reason for entry in entries] == ["second", "first"]
    assert all(entry.successful for entry in entries)
    assert [entry.reason for entry in manager.get_audit_log(limit=1)] == ["second"]

    lines = manager.audit_log_path.read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[0])["stage"] == "pre-push"


def test_audit_log_disabled(tmp_path: Path, clock) -> None:
    manager = _manager(tmp_path, clock, log_bypasses=False)
    manager.create_bypass(STAGE, "quiet", "dana")

    assert not manager.audit_log_path.exists()
    assert manager.count_bypasses_today("dana") == 1


def test_malformed_audit_lines_are_skipped(tmp_path: Path, clock) -> None:
    manager = _manager(tmp_path, clock)
    manager.create_bypass(STAGE, "real", "dana")
    with manager.audit_log_path.open("a", encoding="utf-8") as handle:
        handle.write("garbage\n")

    assert [entry.reason for entry in manager.get_audit_log()] == ["real"]


def test_corrupt_bypass_file_counts_as_none(tmp_path: Path, clock) -> None:
    manager = _manager(tmp_path, clock)
    manager.directory.mkdir(parents=True)
    manager.bypass_path(STAGE).write_text('{"stage": "pre-push"}', encoding="utf-8")

    assert manager.check_active_bypass(STAGE) is None


def test_remove_bypass(tmp_path: Path, clock) -> None:
    manager = _manager(tmp_path, clock)
    manager.create_bypass(STAGE, "hotfix", "dana")

    assert manager.remove_bypass(STAGE) is True
    assert manager.remove_bypass(STAGE) is False
    assert manager.active_bypasses() == []


def test_new_bypass_replaces_previous_one(tmp_path: Path, clock) -> None:
    manager = _manager(tmp_path, clock)
    manager.create_bypass(STAGE, "first", "dana", duration_hours=1)
    manager.create_bypass(STAGE, "second", "lee", duration_hours=3)

    active = manager.check_active_bypass(STAGE)
    assert active is not None
    assert (active.reason, active.user) == ("second", "lee")
    assert [bypass.stage for bypass in manager.active_bypasses()] == [STAGE]
