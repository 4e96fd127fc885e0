"""Planning pipeline: scan → mine → constrain → resolve → compile.

This module orchestrates a planning run:
1. Check that brew, git and the core tap are available
2. Read the installed formula inventory
3. Mine each formula's lag target from git history (parallel)
4. Extract runtime dependencies at each target and emit constraints (parallel)
5. Raise dependencies to their water level
6. Compile actions, save the plan and snapshot, print the report

Phases are strictly sequential; within a phase, formulae are independent
and run in a process pool. The only state workers share is the cache
database, which each worker opens on its own.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ProcessPoolExecutor
from pathlib import Path
from typing import TypeVar

from . import brew
from .cache import CacheStore
from .config import LagConfig
from .deps import extract_runtime_deps
from .errors import NoHistory
from .exclusions import load_exceptions
from .graph import constraints_for, resolve_water_level, unresolved
from .history import catalog_head, resolve_target
from .models import (
    Change,
    DependencyConstraint,
    PackageRecord,
    PlanEntry,
    RevisionTarget,
)
from .plan import clear_plan, compile_plan, save_plan
from .shell import info, step, success, warn

T = TypeVar("T")
R = TypeVar("R")

MineTask = tuple[str, PackageRecord, LagConfig, str, str]
MineResult = tuple[PackageRecord, RevisionTarget | None, str | None]


def _lower_priority() -> None:
    """Pool initializer: keep scans from hogging the machine."""
    try:
        os.nice(10)
    except OSError:
        pass


def map_parallel(fn: Callable[[T], R], items: Sequence[T], jobs: int) -> list[R]:
    """Apply ``fn`` to every item with up to ``jobs`` worker processes.

    Results come back in input order regardless of completion order. With a
    single job (or item) everything runs in the current process.
    """
    if jobs <= 1 or len(items) <= 1:
        return [fn(item) for item in items]
    with ProcessPoolExecutor(max_workers=jobs, initializer=_lower_priority) as pool:
        return list(pool.map(fn, items))


def _mine_one(task: MineTask) -> MineResult:
    """Worker: resolve one formula's lag target."""
    position, record, config, repo, head = task
    with CacheStore(config.cache_path) as cache:
        try:
            target = resolve_target(
                record.name,
                record.installed_version,
                config,
                cache,
                repo=Path(repo),
                head=head,
                position=position,
            )
        except NoHistory as e:
            return record, None, str(e)
        except subprocess.CalledProcessError as e:
            reason = f"{record.name}: git exited {e.returncode} while mining history"
            return record, None, reason
    return record, target, None


def _constrain_one(task: tuple[RevisionTarget, str]) -> list[DependencyConstraint]:
    """Worker: constraints a formula's target places on its dependencies."""
    target, repo = task
    if not target.revision_handle or not target.definition_path:
        return []
    try:
        deps = extract_runtime_deps(
            target.revision_handle, target.definition_path, repo=Path(repo)
        )
        return constraints_for(target, deps)
    except subprocess.CalledProcessError:
        warn(f"{target.package}: could not read definition at {target.revision_handle[:7]}")
        return []


def mine_targets(
    records: Sequence[PackageRecord], config: LagConfig, *, repo: Path, head: str
) -> tuple[dict[str, RevisionTarget], list[tuple[PackageRecord, str]]]:
    """Phase 1: mine every formula's lag target.

    Returns:
        Tuple of (targets by name, failures as (record, reason)).
    """
    total = len(records)
    tasks: list[MineTask] = [
        (f"({i}/{total})", record, config, str(repo), head)
        for i, record in enumerate(records, start=1)
    ]
    targets: dict[str, RevisionTarget] = {}
    failures: list[tuple[PackageRecord, str]] = []
    for record, target, reason in map_parallel(_mine_one, tasks, config.jobs):
        if target is None:
            failures.append((record, reason or "no history"))
        else:
            targets[record.name] = target
    return targets, failures


def collect_constraints(
    targets: Iterable[RevisionTarget], config: LagConfig, *, repo: Path
) -> list[DependencyConstraint]:
    """Phase 2: extract runtime deps at each target and emit constraints."""
    tasks = [(target, str(repo)) for target in targets]
    constraints: list[DependencyConstraint] = []
    for batch in map_parallel(_constrain_one, tasks, config.jobs):
        constraints.extend(batch)
    return constraints


def format_target(row: PlanEntry) -> str:
    target = row.version_label or "-"
    if row.revision_handle:
        target = f"{target} ({row.revision_handle[:7]})"
    return target


def print_report(snapshot: Sequence[PlanEntry]) -> None:
    """Print the analysis table."""
    print()
    print("=== Analysis Report ===")
    print(f"{'Package':<30} {'Current':<20} {'Target (Lag/Sync)':<30} {'Action':<10}")
    print(f"{'-------':<30} {'-------':<20} {'-----------------':<30} {'------':<10}")
    for row in snapshot:
        print(
            f"{row.package:<30} {row.installed_version:<20} "
            f"{format_target(row):<30} {row.action.value:<10}"
        )
        if row.error:
            print(f"    {row.error}")


def run_plan(
    config: LagConfig, *, update: bool = False
) -> tuple[list[Change], list[PlanEntry]]:
    """Execute a full planning run and save its results.

    Args:
        config: Run configuration.
        update: Run ``brew update`` before scanning.

    Returns:
        Tuple of (changes saved to the plan, full snapshot).

    Raises:
        OracleUnavailable: If brew, git or the core tap is missing.
    """
    repo = brew.preflight()
    config.ensure_dir()
    clear_plan(config)

    if update:
        step("Updating Homebrew")
        brew.update()

    step("Scanning installed packages")
    records = brew.installed_packages()
    info(f"Found {len(records)} packages.")
    head = catalog_head(repo)

    step(
        f"Phase 1: Computing lagged targets "
        f"(lag {config.offset} versions, {config.jobs} jobs)"
    )
    targets, failures = mine_targets(records, config, repo=repo, head=head)

    step("Phase 2: Building dependency constraints")
    constraints = collect_constraints(targets.values(), config, repo=repo)
    info(f"{len(constraints)} constraints from {len(targets)} packages.")

    step("Phase 3: Resolving water level")
    resolved = resolve_water_level(targets, constraints)
    for record, reason in failures:
        resolved[record.name] = unresolved(record.name, record.installed_version, reason)
    moved = sorted(name for name, entry in resolved.items() if entry.moved)
    for name in moved:
        info(f"{name}: raised to water level")

    changes, snapshot = compile_plan(
        resolved, load_exceptions(config.exceptions_path), repo=repo
    )
    save_plan(changes, snapshot, config)
    print_report(snapshot)

    print()
    if changes:
        warn(f"Plan saved to {config.plan_path}")
        print("Run 'brew-lag apply' to execute these changes.")
    else:
        success("Everything is up to date (lagged/synced).")
    return changes, snapshot


def run_cleanup(config: LagConfig) -> None:
    """Remove the private tap and the config directory."""
    step("Cleaning up")
    brew.remove_local_tap()
    if config.config_dir.exists():
        info(f"Removing configuration directory {config.config_dir}...")
        shutil.rmtree(config.config_dir)
    success("Cleanup complete.")
