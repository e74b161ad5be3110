"""Dependency graph building and manifest rewriting.

Builds the local dependency graph of a Cargo workspace and rewrites
Cargo.toml files so every crate carries the release version and pins its
local dependencies to exactly that version.

A local dependency looks like one of::

    core = { path = "../core" }
    core-renamed = { path = "../core", package = "core" }
    core = { workspace = true }      # with a path in [workspace.dependencies]

    [dependencies.core]
    path = "../core"

After rewriting, each of these carries ``version = "<release version>"``,
which is what the registry needs to resolve the dependency once published.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from .errors import UndeclaredMemberError
from .graph import check_acyclic
from .logging import get_logger
from .models import DependencyGraph, WorkspaceMember
from .shell import step
from .toml import (
    CARGO_TOML,
    inherits_workspace_version,
    iter_dependency_tables,
    load_manifest,
    save_manifest,
)
from .workspace import discover_members

log = get_logger("armory.deps")


def build_graph(members: Mapping[str, WorkspaceMember]) -> DependencyGraph:
    """Build the local dependency graph and check its invariants.

    Every edge target must be a workspace member and the graph must be
    acyclic. Both checks run before anything is written to disk.

    Raises:
        UndeclaredMemberError: If a local dependency is not a member.
        DependencyCycleError: If the local dependencies form a cycle.
    """
    graph: DependencyGraph = {}
    for name in sorted(members):
        local = members[name].local_deps
        for dep in sorted(local):
            if dep not in members:
                raise UndeclaredMemberError(name, dep)
        graph[name] = local
    check_acyclic(graph)
    return graph


def rewrite_manifest(member: WorkspaceMember, version: str) -> None:
    """Update a crate's version and pin its local dependencies.

    This function:
    1. Updates [package].version to ``version`` (unless the crate inherits
       its version from the workspace, see rewrite_workspace_root)
    2. Sets ``version`` on every local path dependency entry

    Registry dependencies and every other key, comment and table are left
    exactly as they were. Uses tomlkit to preserve formatting.
    """
    doc = load_manifest(member.manifest_path)

    if not inherits_workspace_version(doc):
        doc["package"]["version"] = version

    # Inherited entries are pinned once, in the root manifest
    local_keys = {
        (d.table, d.key) for d in member.dependencies if d.local and not d.inherited
    }
    for table_name, table in iter_dependency_tables(doc):
        for key, entry in table.items():
            if (table_name, key.strip()) in local_keys and isinstance(entry, dict):
                entry["version"] = version

    save_manifest(member.manifest_path, doc)
    log.debug(
        "manifest_rewritten",
        member=member.name,
        manifest=str(member.manifest_path),
        version=version,
        local_deps=sorted(member.local_deps),
    )


def rewrite_workspace_root(
    root_manifest: Path,
    version: str,
    members: Mapping[str, WorkspaceMember],
) -> bool:
    """Pin the shared version fields of the root Cargo.toml.

    Sets ``[workspace.package].version`` when it exists (crates inherit it
    through ``version.workspace = true``) and pins every path entry of
    ``[workspace.dependencies]`` that a member inherits as a local edge.

    Returns:
        True if the root manifest was written.
    """
    doc = load_manifest(root_manifest)
    workspace = doc.get("workspace", {})
    changed = False

    package = workspace.get("package")
    if isinstance(package, dict) and "version" in package:
        package["version"] = version
        changed = True

    inherited_keys = {
        d.key
        for m in members.values()
        for d in m.dependencies
        if d.local and d.inherited
    }
    ws_deps = workspace.get("dependencies")
    if isinstance(ws_deps, dict):
        for key, entry in ws_deps.items():
            if key.strip() in inherited_keys and isinstance(entry, dict):
                entry["version"] = version
                changed = True

    if changed:
        save_manifest(root_manifest, doc)
        log.debug("workspace_manifest_rewritten", manifest=str(root_manifest))
    return changed


def update_member_deps(root: Path, version: str) -> DependencyGraph:
    """Rewrite every member to ``version`` and return the dependency graph.

    Discovery and graph validation happen first, so a missing manifest, an
    undeclared local dependency or a cycle aborts before any file changes.
    Afterwards every manifest is rewritten, all before a single publish.

    Args:
        root: Workspace root (directory holding the root Cargo.toml).
        version: Target release version.

    Returns:
        Map of member name → local dependency names.
    """
    members = discover_members(root)
    graph = build_graph(members)
    rewrite_members(root, members, graph, version)
    return graph


def rewrite_members(
    root: Path,
    members: Mapping[str, WorkspaceMember],
    graph: DependencyGraph,
    version: str,
) -> None:
    """Rewrite the root manifest and every member manifest to ``version``."""
    step(f"Rewriting manifests to {version}")
    rewrite_workspace_root(root / CARGO_TOML, version, members)
    for name, member in members.items():
        rewrite_manifest(member, version)
        pins = f" (pinned: {', '.join(sorted(graph[name]))})" if graph[name] else ""
        print(f"  {name}: {member.version} → {version}{pins}")
