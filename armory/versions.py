"""Version parsing and bumping utilities.

Handles conversion between version strings and semver objects, with
special handling for incomplete version strings (e.g., "1.0" → "1.0.0"),
and the three release-type transforms offered to the operator.
"""

from __future__ import annotations

import semver

from .models import ReleaseType


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3" → "1.2.3"

    Only the first 3 components are used (major.minor.patch).
    Prerelease/build metadata is not supported.

    Raises:
        ValueError: If the string is not a version.
    """
    parts = version_str.strip().split(".")
    # Pad with zeros to ensure we have at least 3 parts
    while len(parts) < 3:
        parts.append("0")
    return semver.Version.parse(".".join(parts[:3]))


def bump(version_str: str, release_type: ReleaseType | str) -> str:
    """Apply a release-type transform and return the new version string.

    Examples:
        bump("1.2.3", "patch") → "1.2.4"
        bump("1.2.3", "minor") → "1.3.0"
        bump("1.2.3", "major") → "2.0.0"
    """
    version = parse_version(version_str)
    release_type = ReleaseType(release_type)
    if release_type is ReleaseType.MAJOR:
        return str(version.bump_major())
    if release_type is ReleaseType.MINOR:
        return str(version.bump_minor())
    return str(version.bump_patch())


def release_choices(version_str: str) -> list[tuple[ReleaseType, str]]:
    """List the versions the operator can release next, patch first."""
    return [(rt, bump(version_str, rt)) for rt in ReleaseType]


def is_newer(candidate: str, current: str) -> bool:
    """Return True if ``candidate`` sorts strictly after ``current``."""
    return parse_version(candidate) > parse_version(current)
