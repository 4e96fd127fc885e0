"""Single-formula check and fix.

Prefers the resolution snapshot from the last planning run, so a formula
raised by the water level is checked against the same target the full plan
would use. Formulae missing from the snapshot are mined on their own
("isolated" mode), which can't see constraints from other formulae.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from .brew import ensure_local_tap, installed_version, pin, pinned_packages, unpin
from .cache import CacheStore
from .config import LagConfig
from .deps import extract_runtime_deps
from .errors import NoHistory
from .exclusions import load_exceptions
from .executor import apply_change
from .history import catalog_head, resolve_target
from .models import Change, ChangeOutcome, CheckReport, PlanAction, PlanEntry
from .plan import classify, load_snapshot, sync_action
from .shell import info, success, warn


def _classify(installed: str, label: str, moved: bool = False) -> PlanAction:
    if not installed:
        return PlanAction.NEW_INSTALL
    if moved:
        return sync_action(installed, label)
    return classify(installed, label)


def report_from_snapshot(row: PlanEntry, installed: str) -> CheckReport:
    """Check a formula against its snapshot row."""
    report = CheckReport(
        package=row.package,
        installed_version=installed,
        version_label=row.version_label,
        revision_handle=row.revision_handle,
        definition_path=row.definition_path,
        action=PlanAction.ERROR,
        source="snapshot",
        moved=row.moved,
        error=row.error,
    )
    if row.revision_handle:
        report.action = _classify(installed, row.version_label, row.moved)
    return report


def isolated_report(
    name: str, installed: str, config: LagConfig, *, repo: Path
) -> CheckReport:
    """Mine a formula's target on its own, ignoring the water level."""
    with CacheStore(config.cache_path) as cache:
        try:
            target = resolve_target(
                name, installed, config, cache, repo=repo, head=catalog_head(repo)
            )
        except (NoHistory, subprocess.CalledProcessError) as e:
            return CheckReport(
                package=name,
                installed_version=installed,
                action=PlanAction.ERROR,
                error=str(e),
            )
    return CheckReport(
        package=name,
        installed_version=installed,
        version_label=target.version_label,
        revision_handle=target.revision_handle,
        definition_path=target.definition_path,
        action=_classify(installed, target.version_label),
    )


def _report_for(
    name: str,
    snapshot: dict[str, PlanEntry],
    exceptions: set[str],
    config: LagConfig,
    *,
    repo: Path,
) -> CheckReport:
    installed = installed_version(name) or ""
    row = snapshot.get(name)
    if row is not None:
        report = report_from_snapshot(row, installed)
    else:
        report = isolated_report(name, installed, config, repo=repo)
    if name in exceptions:
        report.action = PlanAction.EXCEPTED
    return report


def _runtime_deps(report: CheckReport, *, repo: Path) -> list[str]:
    if not report.revision_handle or not report.definition_path:
        return []
    return list(
        extract_runtime_deps(report.revision_handle, report.definition_path, repo=repo)
    )


def check_dependencies(
    root: CheckReport,
    snapshot: dict[str, PlanEntry],
    exceptions: set[str],
    config: LagConfig,
    *,
    repo: Path,
    visited: set[str],
) -> list[CheckReport]:
    """Check a formula's runtime dependencies, depth first.

    Only dependencies found in the snapshot are descended into. ``visited``
    is updated in place, which stops cycles and repeated work.
    """
    reports: list[CheckReport] = []
    pending = list(reversed(_runtime_deps(root, repo=repo)))
    while pending:
        name = pending.pop()
        if name in visited:
            continue
        visited.add(name)
        report = _report_for(name, snapshot, exceptions, config, repo=repo)
        print(f"  {name}: {report.installed_version or '<not installed>'} → "
              f"{report.version_label or '?'} [{report.action.value}]")
        reports.append(report)
        if report.source == "snapshot":
            pending.extend(reversed(_runtime_deps(report, repo=repo)))
    return reports


def apply_single(report: CheckReport, *, repo: Path) -> ChangeOutcome:
    """Install one formula at its target, working around pinned dependencies.

    Pinned runtime dependencies are unpinned for the duration of the install
    and pinned again afterwards.
    """
    if not report.revision_handle or not report.definition_path:
        raise ValueError(f"{report.package}: no target revision to apply")
    formula_dir = ensure_local_tap()
    held = sorted(pinned_packages() & set(_runtime_deps(report, repo=repo)))
    for dep in held:
        unpin(dep)
    try:
        return apply_change(
            Change(
                package=report.package,
                revision_handle=report.revision_handle,
                definition_path=report.definition_path,
                action=report.action,
            ),
            repo=repo,
            formula_dir=formula_dir,
        )
    finally:
        for dep in held:
            pin(dep)


def _print_report(report: CheckReport, config: LagConfig) -> None:
    target = report.version_label or "?"
    if report.revision_handle:
        target = f"{target} ({report.revision_handle[:7]})"
    print()
    print(f"Current: {report.installed_version or '<not installed>'}")
    print(f"Target:  {target} (Lag: {config.offset} versions)")
    print(f"Action:  {report.action.value}")
    if report.error:
        print(f"Reason:  {report.error}")


def check_package(
    name: str,
    config: LagConfig,
    *,
    repo: Path,
    visited: set[str] | None = None,
    apply: bool = False,
) -> tuple[PlanAction, CheckReport]:
    """Check one formula against its lag target, optionally fixing it.

    Args:
        name: Formula name.
        config: Run configuration.
        repo: Path of the core tap checkout.
        visited: Formulae already checked; their dependencies are not
            walked again.
        apply: Install the target when a change is needed. Without it the
            check is a dry run.

    Returns:
        Tuple of (action, report). Dependency reports are attached to the
        report and never change its action.
    """
    visited = set() if visited is None else visited
    info(f"Checking {name}...")

    snapshot = load_snapshot(config)
    exceptions = load_exceptions(config.exceptions_path)
    report = _report_for(name, snapshot, exceptions, config, repo=repo)

    if report.source == "snapshot":
        if report.moved:
            info("Using globally resolved target (water level) for consistency.")
        if name not in visited:
            visited.add(name)
            info(f"Checking dependencies for {name}...")
            report.dependencies = check_dependencies(
                report, snapshot, exceptions, config, repo=repo, visited=visited
            )
    else:
        warn(
            "Package not found in the last plan. Running isolated check "
            "(dependency constraints from other packages are not applied)..."
        )

    _print_report(report, config)

    if not report.action.changes:
        if report.action in (PlanAction.OK, PlanAction.OK_SYNC):
            success("Version is correct.")
        return report.action, report

    if apply:
        report.outcome = apply_single(report, repo=repo)
    else:
        warn("Dry-run. Use --apply to execute.")
    return report.action, report
