"""TOML reading and writing utilities.

Uses tomlkit to preserve formatting and comments when modifying Cargo.toml
and armory.toml files. This is important for maintaining readable,
diff-friendly manifests: a release only touches version fields.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import tomlkit
import tomlkit.exceptions

from .errors import ManifestError
from .models import ReleaseRecord

CARGO_TOML = "Cargo.toml"
ARMORY_TOML = "armory.toml"

# Dependency tables that must be resolvable on the registry at publish time.
# [dev-dependencies] are stripped by cargo on publish, so they never
# constrain the publish order.
DEPENDENCY_TABLES = ("dependencies", "build-dependencies")


def load_manifest(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a TOML manifest.

    Returns a TOMLDocument that preserves formatting when modified and saved.

    Raises:
        ManifestError: If the file is missing, unreadable or not valid TOML.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ManifestError(f"Manifest not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestError(f"Failed to read {path}: {exc}") from exc
    try:
        return tomlkit.parse(text)
    except tomlkit.exceptions.ParseError as exc:
        raise ManifestError(f"Failed to parse {path}: {exc}") from exc


def save_manifest(path: Path, doc: tomlkit.TOMLDocument) -> None:
    """Save a TOMLDocument back to disk, preserving original formatting.

    Raises:
        ManifestError: If the file cannot be written.
    """
    try:
        path.write_text(tomlkit.dumps(doc), encoding="utf-8")
    except OSError as exc:
        raise ManifestError(f"Failed to write {path}: {exc}") from exc


def get_package_name(doc: tomlkit.TOMLDocument, manifest: Path) -> str:
    """Extract the crate name from [package].name.

    Raises:
        ManifestError: If the manifest has no package name.
    """
    name = doc.get("package", {}).get("name")
    if not isinstance(name, str) or not name.strip():
        raise ManifestError(f"No [package].name in {manifest}")
    return name.strip()


def get_package_version(doc: tomlkit.TOMLDocument, workspace_version: str) -> str:
    """Extract version from [package].version, defaulting to '0.0.0'.

    Crates declaring ``version.workspace = true`` report the workspace
    version instead.
    """
    if inherits_workspace_version(doc):
        return workspace_version
    version = doc.get("package", {}).get("version", "0.0.0")
    return str(version)


def inherits_workspace_version(doc: tomlkit.TOMLDocument) -> bool:
    """Return True if the crate uses ``version.workspace = true``."""
    version = doc.get("package", {}).get("version")
    return isinstance(version, dict) and version.get("workspace") is True


def get_workspace_table(doc: tomlkit.TOMLDocument, manifest: Path) -> dict[str, Any]:
    """Return the [workspace] table of the root manifest.

    Raises:
        ManifestError: If the manifest does not define a workspace.
    """
    workspace = doc.get("workspace")
    if not isinstance(workspace, dict):
        raise ManifestError(
            f"No [workspace] table in {manifest}",
            hint="Run armory from the root of a Cargo workspace.",
        )
    return workspace


def get_workspace_member_globs(doc: tomlkit.TOMLDocument, manifest: Path) -> list[str]:
    """Extract workspace member patterns from [workspace].members.

    These patterns (e.g., "core", "crates/*") define which directories
    contain workspace crates.

    Raises:
        ManifestError: If no workspace members are defined.
    """
    members = get_workspace_table(doc, manifest).get("members")
    if not members:
        raise ManifestError(f"No [workspace].members defined in {manifest}")
    return [str(m).strip() for m in members]


def get_workspace_excludes(doc: tomlkit.TOMLDocument) -> list[str]:
    """Extract [workspace].exclude paths, if any."""
    return [str(p).strip() for p in doc.get("workspace", {}).get("exclude", [])]


def get_workspace_version(doc: tomlkit.TOMLDocument) -> str:
    """Extract [workspace.package].version, defaulting to '0.0.0'."""
    return str(doc.get("workspace", {}).get("package", {}).get("version", "0.0.0"))


def iter_dependency_tables(
    doc: tomlkit.TOMLDocument,
) -> Iterator[tuple[str, dict[str, Any]]]:
    """Yield (dotted table name, table) for every publish-relevant dep table.

    Covers the top-level tables in DEPENDENCY_TABLES and their
    ``[target.<cfg>.*]`` variants.
    """
    for key in DEPENDENCY_TABLES:
        table = doc.get(key)
        if isinstance(table, dict):
            yield key, table

    target = doc.get("target")
    if isinstance(target, dict):
        for cfg, target_table in target.items():
            if not isinstance(target_table, dict):
                continue
            for key in DEPENDENCY_TABLES:
                table = target_table.get(key)
                if isinstance(table, dict):
                    yield f"target.{cfg}.{key}", table


def load_release_record(root: Path) -> ReleaseRecord:
    """Read the workspace version from armory.toml.

    Raises:
        ManifestError: If armory.toml is missing, unparsable, or has no
            valid ``version`` field.
    """
    path = root / ARMORY_TOML
    doc = load_manifest(path)
    version = doc.get("version")
    if not isinstance(version, str):
        raise ManifestError(
            f"No version field in {path}",
            hint='Add a line like version = "0.1.0" to armory.toml.',
        )
    return ReleaseRecord(version=version.strip())


def save_release_record(root: Path, record: ReleaseRecord) -> None:
    """Overwrite the version in armory.toml, keeping everything else.

    Creates the file if it does not exist yet.
    """
    path = root / ARMORY_TOML
    doc = load_manifest(path) if path.exists() else tomlkit.document()
    doc["version"] = record.version
    save_manifest(path, doc)
