"""Shell and git utilities.

Provides simple wrappers around subprocess calls for running git and other
commands, plus output formatting helpers shared by every command.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path


def git(*args: str, repo: Path | None = None, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "log", "-n", "1").
        repo: Repository to run in (passed as ``git -C <repo>``). Defaults
              to the current directory.
        check: If True (default), raise on non-zero exit. Set to False
               for queries that may legitimately fail (e.g., missing path).

    Returns:
        Stripped stdout from the git command.
    """
    cmd = ["git"]
    if repo is not None:
        cmd.extend(["-C", str(repo)])
    result = subprocess.run([*cmd, *args], capture_output=True, text=True, check=check)
    return result.stdout.strip()


def run(
    *args: str, check: bool = True, capture: bool = False
) -> subprocess.CompletedProcess[str]:
    """Run an arbitrary command.

    By default output streams directly to the terminal so users can follow
    long installs. With ``capture=True`` stdout and stderr are merged and
    returned for diagnostics instead; stdin is always closed so brew never
    waits on a prompt.

    Args:
        *args: Command and arguments (e.g., "brew", "pin", "jq").
        check: If True (default), raise on non-zero exit.
        capture: If True, capture combined output into ``stdout``.

    Returns:
        CompletedProcess with returncode for checking success.
    """
    if capture:
        return subprocess.run(
            args,
            check=check,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    return subprocess.run(args, check=check, stdin=subprocess.DEVNULL, text=True)


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate the phases of a planning run in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def info(msg: str) -> None:
    print(f"[INFO] {msg}")


def warn(msg: str) -> None:
    print(f"[WARN] {msg}")


def success(msg: str) -> None:
    print(f"[OK] {msg}")


def error(msg: str) -> None:
    print(f"[ERROR] {msg}", file=sys.stderr)


def progress(msg: str) -> None:
    """Print a per-package progress line to stderr.

    Workers run in separate processes, so these lines interleave; keeping
    them off stdout leaves the report table readable.
    """
    print(msg, file=sys.stderr, flush=True)

