"""Release pipeline: select → record → rewrite → publish.

This module orchestrates an armory release:
1. Read the current version from armory.toml
2. Select the new version (explicit, by release type, or by asking)
3. Record the new version in armory.toml
4. Rewrite every member's Cargo.toml to the new version, pinning local
   dependencies to it
5. Publish every member in dependency order, retrying transient failures

The recorded version is written before anything is published, and nothing
is rolled back if publishing fails partway. Resuming re-releases the
recorded version; crates that already made it are reported by the
registry as uploaded and count as published.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from .config import ArmoryConfig, load_config
from .deps import build_graph, rewrite_members
from .errors import PublishError, VersionNotBumpedError
from .graph import publish_order
from .logging import get_logger
from .models import DependencyGraph, ReleaseRecord, ReleaseReport, ReleaseType
from .publisher import PublishState, publish_workspace
from .registry import CargoRegistry, Registry
from .retry import RetryPolicy
from .shell import step
from .toml import load_release_record, save_release_record
from .versions import bump, is_newer, parse_version
from .workspace import discover_members

log = get_logger("armory.pipeline")

# Given the current version, returns the version the operator picked.
VersionPrompt = Callable[[str], str]


def resolve_target_version(
    current: str,
    *,
    version: str | None = None,
    release_type: ReleaseType | str | None = None,
    prompt: VersionPrompt | None = None,
) -> str:
    """Work out which version this release publishes.

    An explicit ``version`` wins, then ``release_type``, then ``prompt``.

    Raises:
        VersionNotBumpedError: If the target is not newer than ``current``.
        ValueError: If no way of choosing a version was given, or the
            version string is invalid.
    """
    if version is not None:
        target = str(parse_version(version))
    elif release_type is not None:
        target = bump(current, release_type)
    elif prompt is not None:
        target = str(parse_version(prompt(current)))
    else:
        raise ValueError("Need a version, a release type, or a prompt")

    if not is_newer(target, current):
        raise VersionNotBumpedError(
            f"Target version {target} is not newer than current version {current}",
            hint="Pick patch, minor or major, or pass a higher --version.",
        )
    return target


def plan_release(root: Path) -> tuple[DependencyGraph, list[str]]:
    """Discover the workspace and compute the publish order, read-only.

    Raises:
        ConfigurationError: For missing manifests, undeclared local
            dependencies, or cycles.
    """
    members = discover_members(root)
    graph = build_graph(members)
    return graph, publish_order(graph)


def publish_release(
    graph: DependencyGraph,
    version: str,
    registry: Registry,
    config: ArmoryConfig,
    state: PublishState | None = None,
) -> ReleaseReport:
    """Publish every member at ``version``, retrying per ``config``."""
    step(f"Publishing {len(graph)} crates at {version}")
    policy = RetryPolicy(max_attempts=config.max_attempts, base_delay=config.base_delay)
    publish_one = policy.wrap(lambda member: registry.publish(member, version))
    return publish_workspace(
        graph,
        publish_one,
        version=version,
        state=state,
        keep_going=config.keep_going,
    )


def summarize(report: ReleaseReport) -> None:
    """Print how far the release got."""
    step("Summary")
    print(f"  version:   {report.version}")
    print(f"  published: {', '.join(report.published) or '-'}")
    if report.skipped_existing:
        print(f"  skipped:   {', '.join(report.skipped_existing)}")
    for name, result in report.failed.items():
        print(f"  failed:    {name} after {result.attempts} attempts: {result.error}")
    if report.blocked:
        print(f"  blocked:   {', '.join(report.blocked)}")


def run_release(
    root: Path,
    *,
    version: str | None = None,
    release_type: ReleaseType | str | None = None,
    prompt: VersionPrompt | None = None,
    registry: Registry | None = None,
    config: ArmoryConfig | None = None,
    dry_run: bool = False,
    resume: bool = False,
) -> ReleaseReport:
    """Execute the full release pipeline.

    Args:
        root: Workspace root holding Cargo.toml and armory.toml.
        version: Exact version to release.
        release_type: Bump to apply to the recorded version.
        prompt: Asks the operator for a version when neither of the above
                is given.
        registry: Registry client; defaults to ``cargo publish``.
        config: Publish settings; defaults to armory.toml's [publish].
        dry_run: Print the plan without touching files or the registry.
        resume: Re-release the version already recorded in armory.toml
                instead of selecting a new one.

    Returns:
        The ReleaseReport of a fully successful release (empty for a dry
        run).

    Raises:
        ConfigurationError: Before anything is published.
        PublishError: If a member could not be published; the message
            names the first failed member and its attempt count.
    """
    root = root.resolve()
    if config is None:
        config = load_config(root)
    record = load_release_record(root)

    step(f"Current version: {record.version}")
    if resume:
        target = record.version
    else:
        target = resolve_target_version(
            record.version, version=version, release_type=release_type, prompt=prompt
        )
    print(f"  Releasing {target}")

    # Validate before persisting anything
    members = discover_members(root)
    graph = build_graph(members)

    if dry_run:
        step("Dry run: publish order")
        for name in publish_order(graph):
            print(f"  {name}")
        return ReleaseReport(version=target)

    if target != record.version:
        save_release_record(root, ReleaseRecord(version=target))
        log.info("version_recorded", version=target, previous=record.version)

    rewrite_members(root, members, graph, target)

    registry = registry or CargoRegistry(
        root,
        registry=config.registry,
        verify=config.verify,
        allow_dirty=config.allow_dirty,
    )
    report = publish_release(graph, target, registry, config)
    summarize(report)

    if report.failed:
        name, result = next(iter(report.failed.items()))
        raise PublishError(name, result.attempts, result.error)

    print(f"\n{'=' * 60}\nDone!\n{'=' * 60}")
    return report
