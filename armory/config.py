"""Release configuration.

Settings live in the optional ``[publish]`` table of armory.toml, next to
the recorded version::

    version = "1.4.2"

    [publish]
    max-attempts = 6
    base-delay = 4.0
    registry = "my-registry"
    verify = false
    allow-dirty = true
    keep-going = false

Command-line options override whatever the file says.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ManifestError
from .retry import DEFAULT_BASE_DELAY, DEFAULT_MAX_ATTEMPTS
from .toml import ARMORY_TOML, load_manifest


class ArmoryConfig(BaseModel):
    """Publish settings for a workspace.

    Attributes:
        max_attempts: Publish attempts per member before giving up.
        base_delay: First retry delay in seconds (Fibonacci afterwards).
        registry: Alternate cargo registry name; None means crates.io.
        verify: Let cargo build each crate before uploading it.
        allow_dirty: Publish with uncommitted (freshly rewritten) manifests.
        keep_going: Keep publishing independent members after a failure.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1, alias="max-attempts")
    base_delay: float = Field(default=DEFAULT_BASE_DELAY, ge=0, alias="base-delay")
    registry: str | None = None
    verify: bool = False
    allow_dirty: bool = Field(default=True, alias="allow-dirty")
    keep_going: bool = Field(default=False, alias="keep-going")

    def with_overrides(self, **overrides: Any) -> ArmoryConfig:
        """Return a copy with every non-None override applied."""
        return self.model_copy(
            update={k: v for k, v in overrides.items() if v is not None}
        )


def load_config(root: Path) -> ArmoryConfig:
    """Read the ``[publish]`` table of armory.toml.

    A missing file or table yields the defaults.

    Raises:
        ManifestError: If the table has unknown keys or invalid values.
    """
    path = root / ARMORY_TOML
    if not path.exists():
        return ArmoryConfig()

    table = load_manifest(path).get("publish")
    if table is None:
        return ArmoryConfig()
    if not isinstance(table, dict):
        raise ManifestError(f"[publish] in {path} must be a table")
    try:
        return ArmoryConfig.model_validate(table.unwrap())
    except ValidationError as exc:
        raise ManifestError(f"Invalid [publish] settings in {path}:\n{exc}") from exc
