"""Workspace discovery.

Reads the root Cargo.toml to find member crates, then reads each member's
Cargo.toml for its name, version and dependency entries. Nothing here
writes to disk.
"""

from __future__ import annotations

import glob
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import tomlkit

from .errors import ManifestError
from .logging import get_logger
from .models import Dependency, WorkspaceMember
from .shell import step
from .toml import (
    CARGO_TOML,
    get_package_name,
    get_package_version,
    get_workspace_excludes,
    get_workspace_member_globs,
    get_workspace_version,
    inherits_workspace_version,
    iter_dependency_tables,
    load_manifest,
)

log = get_logger("armory.workspace")


def _norm(path: Path) -> str:
    return os.path.normcase(os.path.normpath(path.resolve()))


def expand_members(root: Path, patterns: list[str], excludes: list[str]) -> list[Path]:
    """Expand [workspace].members patterns into crate directories.

    Glob patterns silently skip matches without a Cargo.toml, as cargo
    does for non-crate directories; an explicit path without one is a
    configuration error. Directories under an ``exclude`` entry are dropped.

    Raises:
        ManifestError: If an explicitly listed member has no Cargo.toml.
    """
    excluded = [_norm(root / e) for e in excludes]
    dirs: list[Path] = []
    seen: set[str] = set()

    for pattern in patterns:
        if glob.has_magic(pattern):
            candidates = [root / m for m in sorted(glob.glob(pattern, root_dir=root))]
            candidates = [c for c in candidates if (c / CARGO_TOML).is_file()]
        else:
            candidate = root / pattern
            if not (candidate / CARGO_TOML).is_file():
                raise ManifestError(
                    f"Workspace member {pattern!r} has no {CARGO_TOML}",
                    hint=f"Check [workspace].members in {root / CARGO_TOML}.",
                )
            candidates = [candidate]

        for d in candidates:
            key = _norm(d)
            if key in seen:
                continue
            if any(key == e or key.startswith(e + os.sep) for e in excluded):
                log.debug("member_excluded", path=str(d))
                continue
            seen.add(key)
            dirs.append(d)

    return dirs


def collect_dependencies(
    doc: tomlkit.TOMLDocument,
    member_dir: Path,
    root: Path,
    workspace_deps: Mapping[str, Any],
    member_dirs: Mapping[str, str],
) -> list[Dependency]:
    """Collect every publish-relevant dependency entry of a crate.

    String-form entries (``serde = "1.0"``) are registry dependencies.
    Table entries are local if they carry a ``path``, or if they inherit
    (``workspace = true``) an entry of ``[workspace.dependencies]`` that
    carries a path. A local entry is named after the member living at its
    path, falling back to ``package`` or the key.

    Args:
        doc: Parsed member Cargo.toml.
        member_dir: Absolute path to the crate directory.
        root: Absolute path to the workspace root.
        workspace_deps: The root ``[workspace.dependencies]`` table.
        member_dirs: Map of normalized member directory → member name.
    """
    deps: list[Dependency] = []
    for table_name, table in iter_dependency_tables(doc):
        for key, entry in table.items():
            key = key.strip()
            if not isinstance(entry, dict):
                deps.append(Dependency(key=key, name=key, table=table_name))
                continue

            inherited = entry.get("workspace") is True
            source: Mapping[str, Any] = entry
            base_dir = member_dir
            if inherited:
                ws_entry = workspace_deps.get(key)
                source = ws_entry if isinstance(ws_entry, dict) else {}
                base_dir = root

            name = str(source.get("package", entry.get("package", key))).strip()
            path = source.get("path")
            if isinstance(path, str):
                name = member_dirs.get(_norm(base_dir / path), name)
            deps.append(
                Dependency(
                    key=key,
                    name=name,
                    table=table_name,
                    path=str(path) if isinstance(path, str) else None,
                    local=isinstance(path, str),
                    inherited=inherited,
                )
            )
    return deps


def discover_members(root: Path) -> dict[str, WorkspaceMember]:
    """Scan the workspace and discover all member crates.

    Reads [workspace].members from the root Cargo.toml to find crate
    directories, then extracts name, version, and dependency entries from
    each crate's Cargo.toml. A root manifest that also has a [package]
    table counts as a member, as in cargo.

    Returns:
        Map of crate name → WorkspaceMember, sorted by name.

    Raises:
        ManifestError: If any manifest is missing or unparsable, or two
            members share a name.
    """
    step("Discovering workspace members")

    root = root.resolve()
    root_manifest = root / CARGO_TOML
    root_doc = load_manifest(root_manifest)
    member_dirs = expand_members(
        root,
        get_workspace_member_globs(root_doc, root_manifest),
        get_workspace_excludes(root_doc),
    )
    if "package" in root_doc and all(_norm(d) != _norm(root) for d in member_dirs):
        member_dirs.insert(0, root)

    if not member_dirs:
        raise ManifestError("No crates found matching workspace members")

    ws_version = get_workspace_version(root_doc)
    ws_deps = root_doc.get("workspace", {}).get("dependencies", {})

    # First pass: names and versions, so path deps can be mapped to members
    docs: dict[str, tuple[Path, tomlkit.TOMLDocument]] = {}
    dir_names: dict[str, str] = {}
    for d in member_dirs:
        manifest = d / CARGO_TOML
        doc = root_doc if d == root else load_manifest(manifest)
        name = get_package_name(doc, manifest)
        if name in docs:
            raise ManifestError(
                f"Crate name {name!r} is used by more than one workspace member"
            )
        docs[name] = (d, doc)
        dir_names[_norm(d)] = name

    # Second pass: dependency entries
    members: dict[str, WorkspaceMember] = {}
    for name in sorted(docs):
        d, doc = docs[name]
        members[name] = WorkspaceMember(
            name=name,
            path=d.relative_to(root).as_posix() if d != root else ".",
            manifest_path=d / CARGO_TOML,
            version=get_package_version(doc, ws_version),
            inherits_version=inherits_workspace_version(doc),
            dependencies=collect_dependencies(doc, d, root, ws_deps, dir_names),
        )

    for name, member in members.items():
        local = sorted(member.local_deps)
        deps = f" → [{', '.join(local)}]" if local else ""
        print(f"  {name} {member.version} ({member.path}){deps}")

    log.info("discovered", count=len(members), members=list(members))
    return members
