"""Water-level resolution over the dependency graph.

Each formula has its own lag target, but a dependent lagged to a newer
commit than one of its dependencies may need symbols the older dependency
doesn't provide. The "water level" of a dependency is the newest commit time
required by any of its direct dependents; a dependency whose own target is
older than its water level is raised to it.

Only one hop is resolved: if A raises B, B's new level is not propagated on
to B's own dependencies.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .models import DependencyConstraint, ResolvedEntry, RevisionTarget


def constraints_for(
    target: RevisionTarget, deps: Iterable[str]
) -> list[DependencyConstraint]:
    """Constraints a dependent places on its runtime dependencies.

    If formula A is lagged to a commit at time T and depends on B, then B
    must be at a commit no older than T.
    """
    if target.timestamp is None:
        return []
    return [
        DependencyConstraint(dependency_name=dep, required_timestamp=target.timestamp)
        for dep in deps
    ]


def fold_constraints(constraints: Iterable[DependencyConstraint]) -> dict[str, int]:
    """Reduce constraints to the highest required timestamp per dependency.

    The reduction is a max, so the order constraints arrive in (worker
    completion order, for instance) does not affect the result.
    """
    reqs: dict[str, int] = {}
    for c in constraints:
        current = reqs.get(c.dependency_name)
        if current is None or c.required_timestamp > current:
            reqs[c.dependency_name] = c.required_timestamp
    return reqs


def resolve_water_level(
    targets: Mapping[str, RevisionTarget],
    constraints: Iterable[DependencyConstraint],
) -> dict[str, ResolvedEntry]:
    """Raise each formula's target to its water level.

    Args:
        targets: Map of formula name → mined RevisionTarget.
        constraints: Constraints emitted by every dependent.

    Returns:
        Map of formula name → ResolvedEntry, in the order of ``targets``.
        Targets without a revision handle pass through unresolved.

    Example:
        openssl@3 mined at T1, curl mined at T2 > T1, curl depends on
        openssl@3 → openssl@3 resolves to T2 with moved=True.
    """
    reqs = fold_constraints(constraints)
    resolved: dict[str, ResolvedEntry] = {}
    for name, target in targets.items():
        entry = ResolvedEntry(
            package=name,
            installed_version=target.installed_version,
            version_label=target.version_label,
            revision_handle=target.revision_handle,
            definition_path=target.definition_path,
            own_timestamp=target.timestamp,
        )
        if target.revision_handle and target.timestamp is not None:
            required = reqs.get(name)
            if required is not None and required > target.timestamp:
                entry.final_timestamp = required
                entry.moved = True
            else:
                entry.final_timestamp = target.timestamp
        resolved[name] = entry
    return resolved


def unresolved(name: str, installed_version: str, reason: str) -> ResolvedEntry:
    """Entry for a formula whose history could not be mined."""
    return ResolvedEntry(package=name, installed_version=installed_version, error=reason)
