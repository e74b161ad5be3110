"""Registry clients.

A registry client publishes one crate at one version and reports the
outcome as a PublishResult. It makes exactly one attempt; retrying is the
RetryPolicy's job.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Protocol

from .logging import get_logger
from .models import PublishResult, PublishStatus
from .shell import run

log = get_logger("armory.registry")

# crates.io and cargo phrase duplicate uploads in a few different ways.
_ALREADY_PUBLISHED_RE = re.compile(
    r"already (?:uploaded|exists)|is already published", re.IGNORECASE
)


class Registry(Protocol):
    """Anything that can publish one workspace member."""

    def publish(self, member: str, version: str) -> PublishResult:
        """Publish ``member`` at ``version`` (one attempt)."""
        ...


class CargoRegistry:
    """Publishes crates with ``cargo publish`` from the workspace root.

    Args:
        root: Cargo workspace root.
        registry: Name of an alternate registry from cargo config.
        verify: Let cargo build the packaged crate before uploading.
        allow_dirty: Publish even though the manifests were just rewritten
            and are not committed.
    """

    def __init__(
        self,
        root: Path,
        *,
        registry: str | None = None,
        verify: bool = False,
        allow_dirty: bool = True,
    ) -> None:
        self.root = root
        self.registry = registry
        self.verify = verify
        self.allow_dirty = allow_dirty

    def command(self, member: str) -> list[str]:
        """Build the cargo command line for publishing ``member``."""
        cmd = ["cargo", "publish", "--package", member]
        if not self.verify:
            cmd.append("--no-verify")
        if self.allow_dirty:
            cmd.append("--allow-dirty")
        if self.registry:
            cmd.extend(["--registry", self.registry])
        return cmd

    def publish(self, member: str, version: str) -> PublishResult:
        """Run ``cargo publish`` once for ``member``.

        A rejection because ``member@version`` already exists means an
        earlier attempt got through, so it counts as success.
        """
        log.info("publish", member=member, version=version)
        result = run(*self.command(member), cwd=self.root, capture=True, check=False)
        output = f"{result.stdout or ''}\n{result.stderr or ''}"

        if result.returncode == 0:
            return PublishResult(member=member, status=PublishStatus.SUCCESS)

        if _ALREADY_PUBLISHED_RE.search(output):
            log.info("already_published", member=member, version=version)
            return PublishResult(member=member, status=PublishStatus.SUCCESS)

        return PublishResult(
            member=member,
            status=PublishStatus.RETRYABLE,
            error=_tail(result.stderr or result.stdout or "")
            or f"cargo exited with status {result.returncode}",
        )


def _tail(text: str, lines: int = 5) -> str:
    """Return the last few non-empty lines of cargo's output."""
    kept = [line for line in text.strip().splitlines() if line.strip()]
    return "\n".join(kept[-lines:])
