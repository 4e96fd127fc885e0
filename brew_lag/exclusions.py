"""Exception list: formulae kept at latest instead of lagged.

Stored as a plain text file with one formula name per line.
"""

from __future__ import annotations

from pathlib import Path


def load_exceptions(path: Path) -> set[str]:
    if not path.exists():
        return set()
    return {line.strip() for line in path.read_text().splitlines() if line.strip()}


def _save(path: Path, names: set[str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(f"{name}\n" for name in sorted(names)))


def add_exception(path: Path, name: str) -> bool:
    """Add a formula to the list. Returns False if it was already there."""
    names = load_exceptions(path)
    if name in names:
        return False
    _save(path, names | {name})
    return True


def remove_exception(path: Path, name: str) -> bool:
    """Remove a formula from the list. Returns False if it wasn't listed."""
    names = load_exceptions(path)
    if name not in names:
        return False
    _save(path, names - {name})
    return True
