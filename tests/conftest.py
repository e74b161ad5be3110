"""Shared test fixtures."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
import structlog
import tomlkit

from armory.models import PublishResult, PublishStatus

ROOT_CARGO = """\
[workspace]
# Every crate under crates/ is released together.
members = ["crates/*"]
resolver = "2"
"""

ARMORY = """\
# Managed by armory.
version = "1.2.3"
"""

CORE = """\
[package]
name = "core"
version = "1.2.3"
edition = "2021"

[dependencies]
serde = "1.0"

[dev-dependencies]
tempfile = "3"
"""

UTILS = """\
[package]
name = "utils"
version = "1.2.3"
edition = "2021"

[dependencies]
# Shared primitives.
core = { path = "../core" }
anyhow = "1"
"""

APP = """\
[package]
name = "app"
version = "1.2.3"
description = "The application"

[dependencies]
utils-lib = { path = "../utils", package = "utils", version = "1.2.3" }
clap = { version = "4", features = ["derive"] }

[dependencies.core]
path = "../core"

[target.'cfg(unix)'.dependencies]
libc = "0.2"
"""


def write(path: Path, content: str) -> Path:
    """Write ``content`` to ``path``, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def parse(path: Path) -> tomlkit.TOMLDocument:
    return tomlkit.parse(path.read_text())


def make_workspace(root: Path) -> Path:
    """Write a Cargo workspace where app → {core, utils} and utils → core."""
    write(root / "Cargo.toml", ROOT_CARGO)
    write(root / "armory.toml", ARMORY)
    write(root / "crates" / "core" / "Cargo.toml", CORE)
    write(root / "crates" / "utils" / "Cargo.toml", UTILS)
    write(root / "crates" / "app" / "Cargo.toml", APP)
    return root


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    return make_workspace(tmp_path.resolve())


class FakeRegistry:
    """Registry double that records calls and fails members on request.

    Args:
        failures: Map of member → number of leading attempts that fail.
            A negative count fails forever.
    """

    def __init__(self, failures: dict[str, int] | None = None) -> None:
        self.failures = dict(failures or {})
        self.calls: list[tuple[str, str]] = []

    def publish(self, member: str, version: str) -> PublishResult:
        self.calls.append((member, version))
        remaining = self.failures.get(member, 0)
        if remaining != 0:
            self.failures[member] = remaining - 1
            return PublishResult(
                member=member, status=PublishStatus.RETRYABLE, error="503 rate limited"
            )
        return PublishResult(member=member, status=PublishStatus.SUCCESS)

    @property
    def attempted(self) -> list[str]:
        return [member for member, _ in self.calls]


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture(autouse=True)
def _reset_logging(monkeypatch: pytest.MonkeyPatch):
    """Keep loggers uncached and drop handlers bound to closed streams."""
    configure = structlog.configure
    monkeypatch.setattr(
        structlog,
        "configure",
        lambda **kwargs: configure(**{**kwargs, "cache_logger_on_first_use": False}),
    )
    yield
    structlog.reset_defaults()
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)
