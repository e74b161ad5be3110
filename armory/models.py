"""Data models for armory.

These Pydantic models represent the core data structures used throughout
the release: workspace members and their dependency entries, the persisted
release record, and the typed results of publishing.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

# Member name -> names of the local members it depends on.
DependencyGraph = dict[str, frozenset[str]]


class ReleaseType(str, Enum):
    """Which component of the version a release increments."""

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"


class Dependency(BaseModel):
    """One entry in a member's dependency tables.

    Attributes:
        key: Key of the entry in the manifest table (may be a rename).
        name: Name of the crate the entry resolves to (``package = "..."``
              wins over the key).
        table: Dotted name of the table the entry lives in, e.g.
               ``dependencies`` or ``target.cfg(unix).build-dependencies``.
        path: Local filesystem path, if the entry is resolved by path.
        local: True if the entry resolves to a workspace sibling by path,
               either directly or through ``[workspace.dependencies]``.
        inherited: True for ``{ workspace = true }`` entries.
    """

    key: str
    name: str
    table: str = "dependencies"
    path: str | None = None
    local: bool = False
    inherited: bool = False


class WorkspaceMember(BaseModel):
    """Metadata for a single crate in the workspace.

    Attributes:
        name: Crate name from ``[package].name``.
        path: Relative path from workspace root to the crate directory.
        manifest_path: Absolute path to the crate's Cargo.toml.
        version: Version before the release rewrites it.
        inherits_version: True if the crate uses ``version.workspace = true``.
        dependencies: Every dependency entry that can affect publishing.
    """

    name: str
    path: str
    manifest_path: Path
    version: str
    inherits_version: bool = False
    dependencies: list[Dependency] = Field(default_factory=list)

    @property
    def local_deps(self) -> frozenset[str]:
        """Names of workspace siblings this crate must be published after."""
        return frozenset(d.name for d in self.dependencies if d.local)


class ReleaseRecord(BaseModel):
    """The workspace-level version persisted in armory.toml."""

    version: str


class PublishStatus(str, Enum):
    """Outcome of publishing one member."""

    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


class PublishResult(BaseModel):
    """Typed result of a publish attempt (or of a whole retried publish).

    Attributes:
        member: Crate that was published.
        status: SUCCESS, RETRYABLE (worth another attempt) or FATAL.
        attempts: Number of attempts made so far.
        error: Reason for the failure, if any.
    """

    member: str
    status: PublishStatus
    attempts: int = 1
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is PublishStatus.SUCCESS


class ReleaseReport(BaseModel):
    """Summary of a publish walk.

    Attributes:
        version: Version that was released.
        published: Members published by this walk, in publish order.
        skipped_existing: Members already in the publish state beforehand.
        failed: Members whose publish ended in a non-success result.
        blocked: Members never attempted because a prerequisite failed or
                 the walk halted.
    """

    version: str
    published: list[str] = Field(default_factory=list)
    skipped_existing: list[str] = Field(default_factory=list)
    failed: dict[str, PublishResult] = Field(default_factory=dict)
    blocked: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.blocked
