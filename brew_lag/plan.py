"""Plan compilation and durable plan storage.

Turns resolved targets into per-formula actions and writes two files to the
config directory:

- ``plan.json``: the ChangeSet, i.e. only the formulae that need a change,
  consumed once by ``brew-lag apply``.
- ``resolved.json``: the full resolution snapshot, consulted later by
  ``brew-lag install <pkg>`` so single-package checks agree with the water
  level computed for the whole system.
"""

from __future__ import annotations

import subprocess
from collections.abc import Mapping
from pathlib import Path

from pydantic import TypeAdapter

from .config import LagConfig
from .errors import LostRevision
from .history import find_revision_at, show_file
from .models import Change, PlanAction, PlanEntry, ResolvedEntry
from .versions import compare_versions, extract_version_label

_CHANGESET = TypeAdapter(list[Change])
_SNAPSHOT = TypeAdapter(list[PlanEntry])


def classify(installed_version: str, target_label: str) -> PlanAction:
    """Compare an installed version against its lag target.

    Returns OK when they match, DOWNGRADE when the target sorts lower and
    UPGRADE otherwise. Synthetic labels never match, so they always report
    a change.
    """
    if installed_version == target_label:
        return PlanAction.OK
    if compare_versions(target_label, installed_version) < 0:
        return PlanAction.DOWNGRADE
    return PlanAction.UPGRADE


def sync_action(installed_version: str, target_label: str) -> PlanAction:
    """Action for a formula whose target was raised by the water level."""
    if installed_version == target_label:
        return PlanAction.OK_SYNC
    return PlanAction.SYNC_UP


def resync(entry: ResolvedEntry, *, repo: Path) -> tuple[str, str]:
    """Find the revision and version for a water-level-raised entry.

    The label mined from the log belongs to the old timestamp, so it is
    re-derived from the definition's content at the new revision.

    Returns:
        Tuple of (revision handle, effective version label).

    Raises:
        LostRevision: If no revision exists at or before the water level.
    """
    if entry.definition_path is None or entry.final_timestamp is None:
        raise ValueError(f"{entry.package}: entry has no resolved revision")
    handle = find_revision_at(repo, entry.definition_path, entry.final_timestamp)
    if handle is None:
        raise LostRevision(entry.package, entry.final_timestamp)
    content = show_file(repo, handle, entry.definition_path)
    return handle, extract_version_label(content, entry.final_timestamp)


def compile_entry(
    entry: ResolvedEntry, exceptions: set[str], *, repo: Path
) -> PlanEntry:
    """Decide the action for one resolved formula."""
    row = PlanEntry(
        package=entry.package,
        installed_version=entry.installed_version,
        version_label=entry.version_label,
        revision_handle=entry.revision_handle,
        definition_path=entry.definition_path,
        final_timestamp=entry.final_timestamp,
        moved=entry.moved,
        action=PlanAction.OK,
        error=entry.error,
    )

    if entry.package in exceptions:
        row.action = PlanAction.EXCEPTED
        return row

    if not entry.revision_handle:
        row.action = PlanAction.ERROR
        row.error = row.error or f"{entry.package}: no history found in the core tap"
        return row

    if entry.moved:
        try:
            row.revision_handle, row.version_label = resync(entry, repo=repo)
        except LostRevision as e:
            row.revision_handle = None
            row.action = PlanAction.ERROR
            row.error = str(e)
            return row
        except subprocess.CalledProcessError as e:
            row.revision_handle = None
            row.action = PlanAction.ERROR
            row.error = (
                f"{entry.package}: could not read {entry.definition_path} at the "
                f"water level (git exited {e.returncode})"
            )
            return row

    if not entry.installed_version:
        row.action = PlanAction.NEW_INSTALL
    elif entry.moved:
        row.action = sync_action(entry.installed_version, row.version_label)
    else:
        row.action = classify(entry.installed_version, row.version_label)
    return row


def compile_plan(
    resolved: Mapping[str, ResolvedEntry],
    exceptions: set[str],
    *,
    repo: Path,
) -> tuple[list[Change], list[PlanEntry]]:
    """Compile resolved targets into a ChangeSet and a resolution snapshot.

    Formulae are processed in name order so repeated runs produce identical
    plans. A failure for one formula yields an ERROR row and never stops the
    others.

    Returns:
        Tuple of (changes to apply, snapshot rows for every formula).
    """
    changes: list[Change] = []
    snapshot: list[PlanEntry] = []
    for name in sorted(resolved):
        row = compile_entry(resolved[name], exceptions, repo=repo)
        snapshot.append(row)
        if row.action.changes and row.revision_handle and row.definition_path:
            changes.append(
                Change(
                    package=row.package,
                    revision_handle=row.revision_handle,
                    definition_path=row.definition_path,
                    action=row.action,
                )
            )
    return changes, snapshot


def save_plan(
    changes: list[Change], snapshot: list[PlanEntry], config: LagConfig
) -> None:
    """Write the ChangeSet and the snapshot.

    Both are written even when there is nothing to change; the snapshot is
    what single-package checks rely on.
    """
    config.config_dir.mkdir(parents=True, exist_ok=True)
    config.plan_path.write_bytes(_CHANGESET.dump_json(changes, indent=2))
    config.snapshot_path.write_bytes(_SNAPSHOT.dump_json(snapshot, indent=2))


def load_plan(config: LagConfig) -> list[Change] | None:
    """Read the pending ChangeSet, or None if no plan has been saved."""
    if not config.plan_path.exists():
        return None
    return _CHANGESET.validate_json(config.plan_path.read_bytes())


def clear_plan(config: LagConfig) -> None:
    """Delete the ChangeSet once it has been consumed."""
    config.plan_path.unlink(missing_ok=True)


def load_snapshot(config: LagConfig) -> dict[str, PlanEntry]:
    """Read the last resolution snapshot, keyed by formula name."""
    if not config.snapshot_path.exists():
        return {}
    rows = _SNAPSHOT.validate_json(config.snapshot_path.read_bytes())
    return {row.package: row for row in rows}
