"""Data models for brew-lag.

These Pydantic models represent the records that flow between the planning
phases and the state persisted between runs.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PackageRecord(BaseModel):
    """An installed formula as reported by the package manager.

    Attributes:
        name: Formula name (unique).
        installed_version: Newest installed version. Empty when the formula
            is not installed (single-package checks only).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    installed_version: str = ""


class LogEntry(BaseModel):
    """One line of a formula's git log."""

    model_config = ConfigDict(frozen=True)

    revision_handle: str
    timestamp: int
    subject: str = ""


class RevisionTarget(BaseModel):
    """The historical revision a formula should be lagged to.

    Attributes:
        package: Formula name.
        installed_version: Version installed when the target was mined.
        version_label: Version found in the log, or a synthetic label such
            as ``commit:1a2b3c4`` when none could be extracted.
        revision_handle: Commit hash of the definition at the target.
        definition_path: Path of the definition inside the core tap.
        timestamp: Commit time of the target (seconds since epoch).
        lag_depth: Distinct versions actually stepped back. Lower than the
            offset when the log window ran out; None for position-based
            fallbacks.
    """

    package: str
    installed_version: str = ""
    version_label: str = ""
    revision_handle: str | None = None
    definition_path: str | None = None
    timestamp: int | None = None
    lag_depth: int | None = None

    @model_validator(mode="after")
    def _handle_requires_location(self) -> RevisionTarget:
        if self.revision_handle and (
            self.timestamp is None or not self.definition_path
        ):
            raise ValueError(
                f"{self.package}: a revision handle needs a timestamp and path"
            )
        return self


class DependencyConstraint(BaseModel):
    """A dependent's requirement that a dependency be at least this new."""

    model_config = ConfigDict(frozen=True)

    dependency_name: str
    required_timestamp: int


class ResolvedEntry(BaseModel):
    """A formula's target after water-level resolution.

    ``final_timestamp`` is the newer of the formula's own lag timestamp and
    the strongest constraint placed on it by a dependent; ``moved`` records
    whether a constraint won. Entries without a revision handle carry the
    reason in ``error``.
    """

    package: str
    installed_version: str = ""
    version_label: str = ""
    revision_handle: str | None = None
    definition_path: str | None = None
    own_timestamp: int | None = None
    final_timestamp: int | None = None
    moved: bool = False
    error: str | None = None


class PlanAction(str, Enum):
    OK = "OK"
    DOWNGRADE = "DOWNGRADE"
    UPGRADE = "UPGRADE"
    SYNC_UP = "SYNC-UP"
    OK_SYNC = "OK-SYNC"
    NEW_INSTALL = "NEW_INSTALL"
    EXCEPTED = "EXCEPTED"
    ERROR = "ERROR"

    @property
    def changes(self) -> bool:
        """True for actions that queue a change in the plan."""
        return self in _CHANGING_ACTIONS


_CHANGING_ACTIONS = frozenset(
    {PlanAction.DOWNGRADE, PlanAction.UPGRADE, PlanAction.SYNC_UP, PlanAction.NEW_INSTALL}
)


class PlanEntry(BaseModel):
    """One row of the resolution snapshot written by a planning run.

    Holds the effective target: when the entry was moved by the water level,
    ``version_label`` and ``revision_handle`` are the re-resolved ones.
    """

    package: str
    installed_version: str = ""
    version_label: str = ""
    revision_handle: str | None = None
    definition_path: str | None = None
    final_timestamp: int | None = None
    moved: bool = False
    action: PlanAction
    error: str | None = None


class Change(BaseModel):
    """A queued transition, consumed once by ``brew-lag apply``."""

    package: str
    revision_handle: str
    definition_path: str
    action: PlanAction


class ChangeOutcome(BaseModel):
    """Result of applying one change."""

    package: str
    action: PlanAction
    succeeded: bool
    output: str = ""


class ExecutionReport(BaseModel):
    """Aggregated result of an apply pass."""

    outcomes: list[ChangeOutcome] = Field(default_factory=list)
    nothing_to_do: bool = False

    @property
    def failed(self) -> list[ChangeOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def ok(self) -> bool:
        return not self.failed


class CheckReport(BaseModel):
    """Result of checking a single formula.

    Attributes:
        source: ``snapshot`` when the target came from the last planning
            run, ``isolated`` when it was mined on demand.
        dependencies: Reports for runtime dependencies walked from this
            formula (informational only).
        outcome: Result of applying the change, when one was applied.
    """

    package: str
    installed_version: str = ""
    version_label: str = ""
    revision_handle: str | None = None
    definition_path: str | None = None
    action: PlanAction
    source: str = "isolated"
    moved: bool = False
    error: str | None = None
    dependencies: list[CheckReport] = Field(default_factory=list)
    outcome: ChangeOutcome | None = None
