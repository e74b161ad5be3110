"""Error types for armory.

Configuration errors are detected before anything is published and are
never retried. Publish errors are raised only after the retry budget for a
member is spent. Every error carries a message and an optional hint that
the CLI prints underneath it.
"""

from __future__ import annotations

from collections.abc import Sequence


class ArmoryError(Exception):
    """Base class for all armory errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\n  hint: {self.hint}"
        return self.message


class ConfigurationError(ArmoryError):
    """The workspace or release configuration is invalid."""


class ManifestError(ConfigurationError):
    """A manifest (Cargo.toml or armory.toml) is missing or unparsable."""


class UndeclaredMemberError(ConfigurationError):
    """A local dependency points at something that is not a workspace member."""

    def __init__(self, member: str, dependency: str) -> None:
        super().__init__(
            f"{member} has a local dependency on {dependency}, "
            "which is not a workspace member",
            hint=f"Add the crate providing {dependency} to [workspace].members.",
        )
        self.member = member
        self.dependency = dependency


class DependencyCycleError(ConfigurationError):
    """The local dependency graph contains a cycle."""

    def __init__(self, cycle: Sequence[str]) -> None:
        super().__init__(
            f"Dependency cycle detected: {' -> '.join(cycle)}",
            hint="Local path dependencies must form a DAG to be published.",
        )
        self.cycle = list(cycle)


class VersionNotBumpedError(ConfigurationError):
    """The requested target version is not greater than the current one."""


class PublishError(ArmoryError):
    """A member could not be published within its retry budget."""

    def __init__(self, member: str, attempts: int, reason: str | None) -> None:
        super().__init__(
            f"Failed to publish {member} after {attempts} attempts: {reason}",
            hint="Members published before the failure stay published; "
            "rerun once the registry problem is fixed.",
        )
        self.member = member
        self.attempts = attempts
        self.reason = reason
