"""Subprocess and console utilities.

Provides thin wrappers around subprocess calls for running cargo, plus the
output formatting helpers used to separate the phases of a release.
"""

from __future__ import annotations

import subprocess
from pathlib import Path


def run(
    *args: str,
    cwd: Path | None = None,
    capture: bool = False,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Run an arbitrary command.

    By default output streams directly to the terminal so users can see
    cargo's progress. With ``capture=True`` stdout and stderr are collected
    as text so callers can inspect the registry's response.

    Args:
        *args: Command and arguments (e.g., "cargo", "publish", "-p", "foo").
        cwd: Working directory for the command.
        capture: If True, capture stdout/stderr instead of streaming them.
        check: If True (default), raise on non-zero exit.

    Returns:
        CompletedProcess with returncode for checking success.
    """
    return subprocess.run(
        args,
        cwd=cwd,
        capture_output=capture,
        text=True,
        check=check,
    )


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of the release in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")
