"""Plan execution: install lagged definitions one formula at a time.

Each change is installed from a private tap holding the definition as it was
at the target revision. Installs touch shared Homebrew state, so changes run
strictly in sequence; a failure is rolled back to the latest core version and
the pass moves on to the next change.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from .brew import (
    ensure_local_tap,
    install_from_tap,
    install_latest,
    installed_packages,
    pin,
    pinned_packages,
    uninstall,
    unpin,
    upgrade,
)
from .config import LagConfig
from .errors import InstallFailure
from .exclusions import load_exceptions
from .history import show_file
from .models import Change, ChangeOutcome, ExecutionReport, PlanAction
from .plan import clear_plan, load_plan
from .shell import step


def materialize(change: Change, *, repo: Path, formula_dir: Path) -> Path:
    """Write the definition at its target revision into the private tap."""
    definition = formula_dir / f"{change.package}.rb"
    content = show_file(repo, change.revision_handle, change.definition_path)
    definition.write_text(content + "\n")
    return definition


def apply_change(change: Change, *, repo: Path, formula_dir: Path) -> ChangeOutcome:
    """Switch one formula to its target revision.

    Uninstalls the current keg, installs from the private tap and pins the
    result. If the install fails, the latest core version is reinstalled
    (unpinned) and the captured output is returned in the outcome.
    """
    print(f"→ {change.action.value}: {change.package}...")
    try:
        definition = materialize(change, repo=repo, formula_dir=formula_dir)
    except subprocess.CalledProcessError as e:
        print(f"   ✗ Could not read {change.definition_path} at {change.revision_handle[:7]}")
        return ChangeOutcome(
            package=change.package,
            action=change.action,
            succeeded=False,
            output=(e.stderr or "").strip(),
        )

    try:
        uninstall(change.package)
        result = install_from_tap(change.package)
        if result.returncode != 0:
            raise InstallFailure(change.package, (result.stdout or "").strip())
        pin(change.package)
        print("   ✓ Success.")
        return ChangeOutcome(package=change.package, action=change.action, succeeded=True)
    except InstallFailure as e:
        print("   ✗ Failed.")
        for line in e.output.splitlines():
            print(f"      {line}")
        print("   Restoring latest version from homebrew/core...")
        install_latest(change.package)
        return ChangeOutcome(
            package=change.package,
            action=change.action,
            succeeded=False,
            output=e.output,
        )
    finally:
        definition.unlink(missing_ok=True)


def execute_plan(config: LagConfig, *, repo: Path) -> ExecutionReport:
    """Apply the saved ChangeSet.

    The plan is deleted once the pass ends, whether or not every change
    succeeded, so running apply twice without planning again is a no-op.
    """
    changes = load_plan(config)
    if not changes:
        clear_plan(config)
        return ExecutionReport(nothing_to_do=True)

    formula_dir = ensure_local_tap()
    step(f"Applying plan with {len(changes)} actions")

    report = ExecutionReport()
    try:
        for change in changes:
            report.outcomes.append(
                apply_change(change, repo=repo, formula_dir=formula_dir)
            )
    finally:
        clear_plan(config)
    return report


def upgrade_excepted(config: LagConfig) -> ExecutionReport:
    """Bring every installed excepted formula up to the latest version.

    Excepted formulae may still carry a pin from before they were excepted,
    so each one is unpinned before upgrading.
    """
    excepted = load_exceptions(config.exceptions_path)
    installed = {r.name for r in installed_packages()}
    names = sorted(excepted & installed)
    if not names:
        return ExecutionReport(nothing_to_do=True)

    step(f"Upgrading {len(names)} excepted packages")
    pinned = pinned_packages()
    report = ExecutionReport()
    for name in names:
        print(f"→ UPGRADE: {name}...")
        if name in pinned:
            unpin(name)
        result = upgrade(name)
        succeeded = result.returncode == 0
        print("   ✓ Success." if succeeded else "   ✗ Failed.")
        report.outcomes.append(
            ChangeOutcome(
                package=name,
                action=PlanAction.UPGRADE,
                succeeded=succeeded,
                output="" if succeeded else (result.stdout or "").strip(),
            )
        )
    return report
