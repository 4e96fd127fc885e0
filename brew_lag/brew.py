"""Homebrew wrappers.

Thin functions over the ``brew`` CLI: inventory queries, install/uninstall,
pinning, and the private tap that lagged definitions are installed from.
"""

from __future__ import annotations

import json
import shutil
import subprocess
from pathlib import Path

from .errors import OracleUnavailable
from .models import PackageRecord
from .shell import info, run

CORE_TAP = "homebrew/core"
LOCAL_TAP = "brew-lag/local"


def brew(*args: str, check: bool = True) -> str:
    """Run a brew command and return stripped stdout."""
    result = subprocess.run(
        ["brew", *args],
        capture_output=True,
        text=True,
        check=check,
        stdin=subprocess.DEVNULL,
    )
    return result.stdout.strip()


def preflight() -> Path:
    """Check that brew, git and the core tap checkout are available.

    Run once before any phase starts.

    Returns:
        Path of the homebrew/core checkout.

    Raises:
        OracleUnavailable: If a tool or the core checkout is missing.
    """
    for tool in ("brew", "git"):
        if shutil.which(tool) is None:
            raise OracleUnavailable(tool)
    repo = core_repository()
    if not (repo / ".git").exists():
        raise OracleUnavailable(
            f"a git checkout of {CORE_TAP}",
            f"Expected one at {repo}; run 'brew tap --force {CORE_TAP}'.",
        )
    return repo


def core_repository() -> Path:
    return Path(brew("--repository", CORE_TAP))


def parse_inventory(payload: str) -> list[PackageRecord]:
    """Parse ``brew info --json=v1`` output into records.

    The newest installed keg is taken as the installed version. Formulae
    that report no installed keg are skipped.
    """
    records: list[PackageRecord] = []
    for item in json.loads(payload or "[]"):
        installed = item.get("installed") or []
        if not installed:
            continue
        records.append(
            PackageRecord(name=item["name"], installed_version=installed[-1]["version"])
        )
    return sorted(records, key=lambda r: r.name)


def installed_packages() -> list[PackageRecord]:
    """All installed formulae, sorted by name."""
    return parse_inventory(brew("info", "--json=v1", "--installed"))


def installed_version(name: str) -> str | None:
    """Installed version of one formula, or None if it is not installed."""
    out = brew("info", "--json=v1", name, check=False)
    if not out:
        return None
    records = parse_inventory(out)
    return records[0].installed_version if records else None


def pinned_packages() -> set[str]:
    return set(brew("list", "--pinned", check=False).split())


def update() -> None:
    """Refresh the core tap before scanning."""
    run("brew", "update")


def ensure_local_tap() -> Path:
    """Create the private tap if needed and return its Formula directory."""
    taps = brew("tap", check=False).splitlines()
    if LOCAL_TAP not in taps:
        info(f"Creating local tap {LOCAL_TAP}...")
        brew("tap-new", LOCAL_TAP, "--no-git")
    formula_dir = Path(brew("--repository", LOCAL_TAP)) / "Formula"
    formula_dir.mkdir(parents=True, exist_ok=True)
    return formula_dir


def remove_local_tap() -> bool:
    """Untap the private tap. Returns False if it was not tapped."""
    if LOCAL_TAP not in brew("tap", check=False).splitlines():
        return False
    info(f"Untapping {LOCAL_TAP}...")
    brew("untap", LOCAL_TAP, check=False)
    return True


def uninstall(name: str) -> None:
    """Remove a formula regardless of dependents; absence is fine."""
    brew("uninstall", "--ignore-dependencies", name, check=False)


def install_from_tap(name: str) -> subprocess.CompletedProcess[str]:
    """Install a formula from the private tap, capturing output.

    Dependencies are ignored so a pinned dependency can't block the install.
    """
    return run(
        "brew", "install", "--ignore-dependencies", "--formula", f"{LOCAL_TAP}/{name}",
        check=False, capture=True,
    )


def install_latest(name: str) -> subprocess.CompletedProcess[str]:
    """Install the current core version of a formula."""
    return run("brew", "install", name, check=False, capture=True)


def pin(name: str) -> None:
    brew("pin", name, check=False)


def unpin(name: str) -> None:
    brew("unpin", name, check=False)


def upgrade(name: str) -> subprocess.CompletedProcess[str]:
    return run("brew", "upgrade", name, check=False, capture=True)
