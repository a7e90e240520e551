"""Pytest configuration and shared fixtures for crategate tests."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from crategate.config import SafetyConfig
from crategate.scanner.types import ScannerLimits

MANIFEST = """\
[package]
name = "demo"
version = "0.1.0"
edition = "2021"
description = "Demo crate"
license = "MIT"
repository = "https://example.com/demo"
"""

LIB_RS = """\
//! Demo crate.

/// Adds two numbers.
pub fn add(a: i32, b: i32) -> i32 {
    a + b
}
"""


class FakeClock:
    """Mutable clock for bypass expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 10, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def rust_project(tmp_path: Path) -> Path:
    """A minimal, standards-clean crate."""
    root = tmp_path / "demo"
    (root / "src").mkdir(parents=True)
    (root / "Cargo.toml").write_text(MANIFEST, encoding="utf-8")
    (root / "src" / "lib.rs").write_text(LIB_RS, encoding="utf-8")
    (root / "LICENSE").write_text("MIT License\n", encoding="utf-8")
    return root


@pytest.fixture
def config_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the config root at a temp dir for the duration of a test."""
    home = tmp_path / "crategate-home"
    monkeypatch.setenv("CRATEGATE_HOME", str(home))
    return home


@pytest.fixture
def safety_config(tmp_path: Path) -> SafetyConfig:
    """Default config rooted in a temp dir, without spinners or the rustc probe."""
    return SafetyConfig(
        root=tmp_path / "crategate-home",
        show_progress=False,
        limits=ScannerLimits(check_toolchain=False),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
