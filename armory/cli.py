"""CLI entry point for armory."""

from __future__ import annotations

from pathlib import Path

import click

from armory.config import load_config
from armory.errors import ArmoryError
from armory.logging import configure_logging
from armory.models import ReleaseType
from armory.pipeline import plan_release, run_release
from armory.toml import load_release_record
from armory.versions import release_choices

_root_option = click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Workspace root containing Cargo.toml and armory.toml.",
)


def prompt_for_version(current: str) -> str:
    """Ask the operator for patch, minor or major; return the new version."""
    choices = release_choices(current)
    click.echo(f"Select a release type. Current version: {current}")
    for release_type, version in choices:
        click.echo(f"  {release_type.value.capitalize()} ({version})")
    picked = click.prompt(
        "Release type",
        type=click.Choice([rt.value for rt, _ in choices]),
        default=ReleaseType.PATCH.value,
    )
    version = {rt.value: v for rt, v in choices}[picked]
    click.echo(f"You selected: {version}")
    return version


@click.group()
@click.version_option(package_name="armory")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logs.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
@click.option("--json-log", is_flag=True, help="Emit logs as JSON lines.")
def cli(verbose: bool, quiet: bool, json_log: bool) -> None:
    """Release every crate of a Cargo workspace at one shared version."""
    configure_logging(verbose=verbose, quiet=quiet, json_log=json_log)


@cli.command()
@_root_option
@click.option(
    "--type",
    "release_type",
    type=click.Choice([rt.value for rt in ReleaseType]),
    default=None,
    help="Release type; prompts when neither --type nor --version is given.",
)
@click.option("--version", "version", default=None, help="Exact version to release.")
@click.option(
    "--resume",
    is_flag=True,
    help="Re-release the version recorded in armory.toml after a failed run.",
)
@click.option("--dry-run", is_flag=True, help="Show the publish order and stop.")
@click.option(
    "--keep-going/--no-keep-going",
    default=None,
    help="Keep publishing independent crates after a failure.",
)
@click.option("--max-attempts", type=click.IntRange(min=1), default=None)
@click.option("--base-delay", type=click.FloatRange(min=0), default=None)
@click.option("--registry", default=None, help="Alternate cargo registry name.")
def release(
    root: Path,
    release_type: str | None,
    version: str | None,
    resume: bool,
    dry_run: bool,
    keep_going: bool | None,
    max_attempts: int | None,
    base_delay: float | None,
    registry: str | None,
) -> None:
    """Bump the version, rewrite manifests, and publish every crate."""
    if resume and (release_type or version):
        raise click.UsageError("--resume cannot be combined with --type or --version.")

    try:
        config = load_config(root).with_overrides(
            keep_going=keep_going,
            max_attempts=max_attempts,
            base_delay=base_delay,
            registry=registry,
        )
        run_release(
            root,
            version=version,
            release_type=release_type,
            prompt=prompt_for_version,
            config=config,
            dry_run=dry_run,
            resume=resume,
        )
    except (ArmoryError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command()
@_root_option
def graph(root: Path) -> None:
    """Show each crate's local dependencies and the publish order."""
    try:
        deps, order = plan_release(root)
    except ArmoryError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo()
    click.echo("Publish order:")
    for i, name in enumerate(order, 1):
        needs = f" (after {', '.join(sorted(deps[name]))})" if deps[name] else ""
        click.echo(f"  {i}. {name}{needs}")


@cli.command("version")
@_root_option
def show_version(root: Path) -> None:
    """Print the version recorded in armory.toml."""
    try:
        click.echo(load_release_record(root).version)
    except ArmoryError as exc:
        raise click.ClickException(str(exc)) from exc
