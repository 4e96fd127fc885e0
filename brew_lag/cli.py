"""CLI entry point for brew-lag."""

from __future__ import annotations

from pathlib import Path

import click
from pydantic import ValidationError
from tomlkit.exceptions import TOMLKitError

from brew_lag import brew
from brew_lag.check import check_package
from brew_lag.config import LagConfig, load_config
from brew_lag.errors import OracleUnavailable
from brew_lag.exclusions import add_exception, load_exceptions, remove_exception
from brew_lag.executor import execute_plan, upgrade_excepted
from brew_lag.models import ExecutionReport
from brew_lag.pipeline import run_cleanup, run_plan
from brew_lag.shell import error


def _summarize(report: ExecutionReport) -> None:
    failed = report.failed
    if not failed:
        click.echo(f"[OK] {len(report.outcomes)} changes applied.")
        return
    error(
        f"{len(failed)} of {len(report.outcomes)} changes failed: "
        + ", ".join(o.package for o in failed)
    )


@click.group(invoke_without_command=True)
@click.version_option(package_name="brew-lag")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="BREW_LAG_HOME",
    default=None,
    help="Directory for exceptions, cache and plan files [default: ~/.brew-lag].",
)
@click.option(
    "--offset",
    type=click.IntRange(min=0),
    default=None,
    help="Versions behind latest [default: 4, or config.toml].",
)
@click.option(
    "-j",
    "--jobs",
    type=click.IntRange(min=1),
    default=None,
    help="Number of parallel jobs [default: 4, or config.toml].",
)
@click.pass_context
def cli(
    ctx: click.Context, config_dir: Path | None, offset: int | None, jobs: int | None
) -> None:
    """Keep Homebrew formulae a few versions behind latest."""
    try:
        ctx.obj = load_config(config_dir, offset=offset, jobs=jobs)
    except (ValidationError, TOMLKitError) as e:
        raise click.ClickException(f"Invalid configuration:\n{e}") from e
    if ctx.invoked_subcommand is None:
        ctx.invoke(plan)


@cli.command()
@click.option("--update", is_flag=True, help="Run 'brew update' before scanning.")
@click.pass_obj
def plan(config: LagConfig, update: bool) -> None:
    """Analyze installed packages and save a plan (default command)."""
    try:
        run_plan(config, update=update)
    except OracleUnavailable as e:
        raise click.ClickException(str(e)) from e


@cli.command()
@click.pass_context
def apply(ctx: click.Context) -> None:
    """Execute the saved plan."""
    config: LagConfig = ctx.obj
    try:
        repo = brew.preflight()
    except OracleUnavailable as e:
        raise click.ClickException(str(e)) from e

    report = execute_plan(config, repo=repo)
    if report.nothing_to_do:
        click.echo("[OK] Nothing to do. Run 'brew-lag plan' to compute a new plan.")
        return
    _summarize(report)
    if not report.ok:
        ctx.exit(1)


@cli.command()
@click.argument("package")
@click.option(
    "--apply/--dry-run",
    "apply_change",
    default=False,
    show_default=True,
    help="Execute the change instead of only reporting it.",
)
@click.pass_context
def install(ctx: click.Context, package: str, apply_change: bool) -> None:
    """Check or fix a single package."""
    config: LagConfig = ctx.obj
    try:
        repo = brew.preflight()
    except OracleUnavailable as e:
        raise click.ClickException(str(e)) from e

    _, report = check_package(package, config, repo=repo, apply=apply_change)
    if report.outcome is not None and not report.outcome.succeeded:
        ctx.exit(1)


@cli.command()
@click.argument("package")
@click.pass_obj
def exclude(config: LagConfig, package: str) -> None:
    """Keep PACKAGE at latest (exclude it from lag rules)."""
    if add_exception(config.exceptions_path, package):
        click.echo(f"[OK] Excluded {package} from lag rules.")
    else:
        click.echo(f"[INFO] {package} is already excluded.")


@cli.command()
@click.argument("package")
@click.pass_obj
def include(config: LagConfig, package: str) -> None:
    """Enforce lag rules for PACKAGE again."""
    if remove_exception(config.exceptions_path, package):
        click.echo(f"[OK] Included {package} back into lag rules.")
    else:
        click.echo(f"[INFO] {package} was not in the exception list.")


@cli.command(name="list")
@click.pass_obj
def list_(config: LagConfig) -> None:
    """List excluded packages."""
    click.echo("Excluded packages (kept at latest):")
    names = sorted(load_exceptions(config.exceptions_path))
    if not names:
        click.echo("  (none)")
    for name in names:
        click.echo(f"  {name}")


@cli.command(name="upgrade-excepted")
@click.pass_context
def upgrade_excepted_cmd(ctx: click.Context) -> None:
    """Upgrade every excluded package to its latest version."""
    config: LagConfig = ctx.obj
    try:
        brew.preflight()
    except OracleUnavailable as e:
        raise click.ClickException(str(e)) from e

    report = upgrade_excepted(config)
    if report.nothing_to_do:
        click.echo("[OK] No excluded packages are installed.")
        return
    _summarize(report)
    if not report.ok:
        ctx.exit(1)


@cli.command()
@click.pass_obj
def cleanup(config: LagConfig) -> None:
    """Remove the local tap and the config directory."""
    run_cleanup(config)


def main() -> None:
    cli()
