"""History mining against the homebrew/core git checkout.

The core tap is used as a read-only oracle. For each formula we read a
bounded window of its definition's log (newest first) and walk the commit
subjects, which by convention look like "jq 1.7.1" or "jq: update 1.7.1
bottle.", counting distinct versions until we are ``offset`` versions behind
the newest one.
"""

from __future__ import annotations

from pathlib import Path

from .cache import CacheKey, CacheStore
from .config import LagConfig
from .errors import NoHistory
from .models import LogEntry, RevisionTarget
from .shell import git, progress, warn
from .versions import commit_label, version_token

# Only the most recent commits are scanned; full history is slow to walk
# for busy formulae and rarely needed for small offsets.
LOG_WINDOW = 80


def definition_candidates(name: str) -> list[str]:
    """Conventional locations of a formula definition inside the core tap."""
    return [
        f"Formula/{name[:1]}/{name}.rb",
        f"Formula/{name}.rb",
        f"Formula/lib/{name}.rb",
    ]


def definition_path(name: str, repo: Path) -> str:
    """Locate a formula's definition relative to the tap root.

    When no candidate exists in the checkout the sharded path is returned
    anyway, since git still has history for deleted files.
    """
    candidates = definition_candidates(name)
    for rel in candidates:
        if (repo / rel).is_file():
            return rel
    return candidates[0]


def catalog_head(repo: Path) -> str:
    """Current HEAD of the core tap, used to invalidate cached targets."""
    return git("rev-parse", "HEAD", repo=repo)


def read_log(repo: Path, path: str, limit: int = LOG_WINDOW) -> list[LogEntry]:
    """Return up to ``limit`` log entries touching ``path``, newest first."""
    out = git(
        "log", "-n", str(limit), "--pretty=format:%H %ct %s", "--", path,
        repo=repo, check=False,
    )
    entries: list[LogEntry] = []
    for line in out.splitlines():
        parts = line.split(" ", 2)
        if len(parts) < 2 or not parts[1].isdigit():
            continue
        entries.append(
            LogEntry(
                revision_handle=parts[0],
                timestamp=int(parts[1]),
                subject=parts[2] if len(parts) > 2 else "",
            )
        )
    return entries


def commit_timestamp(repo: Path, revision_handle: str) -> int:
    """Commit time of a revision, in seconds since the epoch."""
    return int(git("show", "-s", "--format=%ct", revision_handle, repo=repo))


def show_file(repo: Path, revision_handle: str, path: str) -> str:
    """Full text of ``path`` as of ``revision_handle``."""
    return git("show", f"{revision_handle}:{path}", repo=repo)


def find_revision_at(repo: Path, path: str, timestamp: int) -> str | None:
    """Newest revision of ``path`` committed at or before ``timestamp``."""
    out = git(
        "log", "-n", "1", f"--before=@{timestamp}", "--pretty=format:%H", "--", path,
        repo=repo, check=False,
    )
    return out or None


def revision_at_offset(repo: Path, path: str, offset: int) -> str | None:
    """The revision ``offset`` commits behind the newest one for ``path``."""
    out = git(
        "log", "-n", "1", f"--skip={offset}", "--pretty=format:%H", "--", path,
        repo=repo, check=False,
    )
    return out or None


def mentions(subject: str, name: str) -> bool:
    """Whether a commit subject names the formula as a whole word.

    Colons are ignored at either end so "jq:" matches but "jq-dev" doesn't.
    """
    return any(word.strip(":") == name for word in subject.split())


def scan_history(
    entries: list[LogEntry], name: str, offset: int
) -> tuple[str, LogEntry, int] | None:
    """Find the distinct version ``offset`` steps behind the newest one.

    Only subjects that mention the formula count, and only their first
    version-like token. Repeated versions (e.g. a rebuild or bottle commit)
    are counted once, at their newest commit.

    Args:
        entries: Log entries, newest first.
        name: Formula name.
        offset: Versions to step back; 0 means latest.

    Returns:
        Tuple of (version, log entry, depth reached), where depth is
        ``offset`` unless the window ran out first, in which case the oldest
        version seen is returned. None if no entry carries a version.
    """
    seen: set[str] = set()
    last: tuple[str, LogEntry] | None = None
    for entry in entries:
        if not mentions(entry.subject, name):
            continue
        version = next(
            (v for v in map(version_token, entry.subject.split()) if v), None
        )
        if version is None or version in seen:
            continue
        seen.add(version)
        last = (version, entry)
        if len(seen) == offset + 1:
            return version, entry, offset
    if last is None:
        return None
    return last[0], last[1], len(seen) - 1


def mine_target(
    name: str, installed_version: str, offset: int, *, repo: Path
) -> RevisionTarget:
    """Mine a formula's lag target from git, without consulting the cache.

    Raises:
        NoHistory: If the formula has no log entries at all.
    """
    path = definition_path(name, repo)
    entries = read_log(repo, path)
    found = scan_history(entries, name, offset)

    if found is not None:
        version, entry, depth = found
        if depth < offset:
            warn(
                f"{name}: only {depth} older versions in the last {LOG_WINDOW} "
                f"commits; lagging {depth} instead of {offset}"
            )
        return RevisionTarget(
            package=name,
            installed_version=installed_version,
            version_label=version,
            revision_handle=entry.revision_handle,
            definition_path=path,
            timestamp=entry.timestamp,
            lag_depth=depth,
        )

    # No subject carried a version: fall back to skipping commits outright.
    handle = revision_at_offset(repo, path, offset)
    if handle is None and entries:
        handle = entries[-1].revision_handle
    if handle is None:
        raise NoHistory(name)
    return RevisionTarget(
        package=name,
        installed_version=installed_version,
        version_label=commit_label(handle),
        revision_handle=handle,
        definition_path=path,
        timestamp=commit_timestamp(repo, handle),
    )


def resolve_target(
    name: str,
    installed_version: str,
    config: LagConfig,
    cache: CacheStore,
    *,
    repo: Path,
    head: str,
    position: str = "",
) -> RevisionTarget:
    """Resolve a formula's lag target, using the cache when possible.

    Args:
        name: Formula name.
        installed_version: Currently installed version (part of the key).
        config: Run configuration (supplies the offset).
        cache: Open cache store.
        repo: Path of the core tap checkout.
        head: Core tap HEAD (part of the key).
        position: Progress counter such as "(3/120)" for terminal output.

    Raises:
        NoHistory: If the formula has no history at all.
    """
    key = CacheKey(
        package=name,
        installed_version=installed_version,
        catalog_head=head,
        offset=config.offset,
    )
    cached = cache.get(key)
    if cached is not None:
        progress(f"[CACHE] {position} {name}")
        return cached

    progress(f"[SCAN]  {position} Checking {name}...")
    target = mine_target(name, installed_version, config.offset, repo=repo)
    cache.put(key, target)
    return target
