"""Tests for armory.registry."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from armory.models import PublishStatus
from armory.registry import CargoRegistry


def _completed(returncode: int, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(
        args=["cargo"], returncode=returncode, stdout=stdout, stderr=stderr
    )


class TestCommand:
    def test_defaults(self) -> None:
        assert CargoRegistry(Path("/ws")).command("core") == [
            "cargo",
            "publish",
            "--package",
            "core",
            "--no-verify",
            "--allow-dirty",
        ]

    def test_all_options(self) -> None:
        registry = CargoRegistry(
            Path("/ws"), registry="internal", verify=True, allow_dirty=False
        )
        assert registry.command("core") == [
            "cargo",
            "publish",
            "--package",
            "core",
            "--registry",
            "internal",
        ]

    def test_always_uploads(self) -> None:
        with pytest.raises(TypeError):
            CargoRegistry(Path("/ws"), dry_run=True)
        assert "--dry-run" not in CargoRegistry(Path("/ws")).command("core")


class TestPublish:
    def test_success(self) -> None:
        registry = CargoRegistry(Path("/ws"))
        with patch("armory.registry.run", return_value=_completed(0)) as mock_run:
            result = registry.publish("core", "1.3.0")

        assert result.status is PublishStatus.SUCCESS
        assert result.member == "core"
        mock_run.assert_called_once_with(
            *registry.command("core"), cwd=Path("/ws"), capture=True, check=False
        )

    def test_already_uploaded_counts_as_success(self) -> None:
        stderr = (
            "error: failed to publish to registry at https://crates.io\n\n"
            "Caused by:\n  the remote server responded with an error: "
            "crate version `1.3.0` is already uploaded\n"
        )
        with patch("armory.registry.run", return_value=_completed(101, stderr=stderr)):
            result = CargoRegistry(Path("/ws")).publish("core", "1.3.0")

        assert result.status is PublishStatus.SUCCESS

    def test_already_exists_counts_as_success(self) -> None:
        stderr = "error: crate core@1.3.0 already exists on crates.io index\n"
        with patch("armory.registry.run", return_value=_completed(101, stderr=stderr)):
            result = CargoRegistry(Path("/ws")).publish("core", "1.3.0")

        assert result.ok

    def test_other_failures_are_retryable(self) -> None:
        stderr = "   Uploading core v1.3.0\nerror: 429 Too Many Requests\n"
        with patch("armory.registry.run", return_value=_completed(101, stderr=stderr)):
            result = CargoRegistry(Path("/ws")).publish("core", "1.3.0")

        assert result.status is PublishStatus.RETRYABLE
        assert result.error == "Uploading core v1.3.0\nerror: 429 Too Many Requests"

    def test_long_output_keeps_the_tail(self) -> None:
        stderr = "\n".join(f"line {i}" for i in range(20))
        with patch("armory.registry.run", return_value=_completed(1, stderr=stderr)):
            result = CargoRegistry(Path("/ws")).publish("core", "1.3.0")

        assert result.error == "\n".join(f"line {i}" for i in range(15, 20))

    def test_silent_failure_reports_exit_status(self) -> None:
        with patch("armory.registry.run", return_value=_completed(101)):
            result = CargoRegistry(Path("/ws")).publish("core", "1.3.0")

        assert result.error == "cargo exited with status 101"
