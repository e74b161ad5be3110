"""Tests for the armory command line."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from armory.cli import cli
from armory.toml import load_release_record

from conftest import FakeRegistry, write


def _invoke(*args: str, stdin: str | None = None):
    return CliRunner().invoke(cli, list(args), input=stdin)


class TestVersionCommand:
    def test_prints_recorded_version(self, workspace: Path) -> None:
        result = _invoke("version", "--root", str(workspace))
        assert result.exit_code == 0
        assert result.output == "1.2.3\n"

    def test_missing_record(self, tmp_path: Path) -> None:
        result = _invoke("version", "--root", str(tmp_path))
        assert result.exit_code == 1
        assert "armory.toml" in result.output


class TestGraphCommand:
    def test_prints_publish_order(self, workspace: Path) -> None:
        result = _invoke("graph", "--root", str(workspace))
        assert result.exit_code == 0
        assert (
            "Publish order:\n"
            "  1. core\n"
            "  2. utils (after core)\n"
            "  3. app (after core, utils)\n"
        ) in result.output

    def test_cycle_is_reported(self, workspace: Path) -> None:
        write(
            workspace / "crates" / "core" / "Cargo.toml",
            '[package]\nname = "core"\nversion = "1.2.3"\n\n'
            '[dependencies]\nutils = { path = "../utils" }\n',
        )
        result = _invoke("graph", "--root", str(workspace))
        assert result.exit_code == 1
        assert "Dependency cycle detected: core -> utils -> core" in result.output

    def test_undecodable_manifest_is_reported(self, workspace: Path) -> None:
        (workspace / "crates" / "core" / "Cargo.toml").write_bytes(
            b'[package]\nname = "core\xff"\n'
        )
        result = _invoke("graph", "--root", str(workspace))
        assert result.exit_code == 1
        assert "Failed to read" in result.output


class TestReleaseCommand:
    def test_release_by_type(self, workspace: Path) -> None:
        fake = FakeRegistry()
        with patch("armory.pipeline.CargoRegistry", return_value=fake) as registry_cls:
            result = _invoke("release", "--root", str(workspace), "--type", "patch")

        assert result.exit_code == 0, result.output
        assert fake.calls == [("core", "1.2.4"), ("utils", "1.2.4"), ("app", "1.2.4")]
        assert load_release_record(workspace).version == "1.2.4"
        registry_cls.assert_called_once_with(
            workspace, registry=None, verify=False, allow_dirty=True
        )

    def test_prompts_for_release_type(self, workspace: Path) -> None:
        fake = FakeRegistry()
        with patch("armory.pipeline.CargoRegistry", return_value=fake):
            result = _invoke("release", "--root", str(workspace), stdin="minor\n")

        assert result.exit_code == 0, result.output
        assert "Current version: 1.2.3" in result.output
        assert "  Patch (1.2.4)" in result.output
        assert "  Minor (1.3.0)" in result.output
        assert "  Major (2.0.0)" in result.output
        assert "You selected: 1.3.0" in result.output
        assert load_release_record(workspace).version == "1.3.0"

    def test_registry_option_overrides_config(self, workspace: Path) -> None:
        with patch(
            "armory.pipeline.CargoRegistry", return_value=FakeRegistry()
        ) as registry_cls:
            result = _invoke(
                "release",
                "--root",
                str(workspace),
                "--version",
                "1.5.0",
                "--registry",
                "internal",
            )

        assert result.exit_code == 0, result.output
        registry_cls.assert_called_once_with(
            workspace, registry="internal", verify=False, allow_dirty=True
        )

    def test_publish_failure_exits_nonzero(self, workspace: Path) -> None:
        fake = FakeRegistry({"core": -1})
        with patch("armory.pipeline.CargoRegistry", return_value=fake):
            result = _invoke(
                "release", "--root", str(workspace), "--type", "patch", "--max-attempts", "1"
            )

        assert result.exit_code == 1
        assert "Failed to publish core after 1 attempts" in result.output
        assert fake.attempted == ["core"]

    def test_version_not_bumped(self, workspace: Path) -> None:
        result = _invoke("release", "--root", str(workspace), "--version", "1.0.0")
        assert result.exit_code == 1
        assert "not newer" in result.output

    def test_invalid_version(self, workspace: Path) -> None:
        result = _invoke("release", "--root", str(workspace), "--version", "banana")
        assert result.exit_code == 1

    def test_dry_run(self, workspace: Path) -> None:
        with patch("armory.pipeline.CargoRegistry") as registry_cls:
            result = _invoke(
                "release", "--root", str(workspace), "--type", "major", "--dry-run"
            )

        assert result.exit_code == 0, result.output
        registry_cls.assert_not_called()
        assert load_release_record(workspace).version == "1.2.3"

    def test_resume_conflicts_with_type(self, workspace: Path) -> None:
        result = _invoke("release", "--root", str(workspace), "--resume", "--type", "patch")
        assert result.exit_code == 2
        assert "--resume cannot be combined" in result.output

    def test_resume_rereleases_recorded_version(self, workspace: Path) -> None:
        fake = FakeRegistry()
        with patch("armory.pipeline.CargoRegistry", return_value=fake):
            result = _invoke("release", "--root", str(workspace), "--resume")

        assert result.exit_code == 0, result.output
        assert {version for _, version in fake.calls} == {"1.2.3"}
