"""Error taxonomy.

Per-package errors (``NoHistory``, ``LostRevision``, ``InstallFailure``) are
caught at the batch seam and reported against the package; they never abort a
run. ``OracleUnavailable`` is checked once up front and stops everything.
"""

from __future__ import annotations


class BrewLagError(Exception):
    """Base class for every error raised by brew-lag."""


class NoHistory(BrewLagError):
    """No definition file or log entry could be found for a package."""

    def __init__(self, package: str) -> None:
        super().__init__(f"{package}: no history found in the core tap")
        self.package = package


class LostRevision(BrewLagError):
    """No revision exists at or before a water-level timestamp."""

    def __init__(self, package: str, timestamp: int) -> None:
        super().__init__(
            f"{package}: no revision found at or before timestamp {timestamp}"
        )
        self.package = package
        self.timestamp = timestamp


class InstallFailure(BrewLagError):
    """``brew install`` from the private tap failed."""

    def __init__(self, package: str, output: str) -> None:
        super().__init__(f"{package}: install failed")
        self.package = package
        self.output = output


class OracleUnavailable(BrewLagError):
    """A required external tool or repository is missing."""

    def __init__(self, tool: str, hint: str = "") -> None:
        msg = f"{tool} is required but was not found"
        if hint:
            msg = f"{msg}. {hint}"
        super().__init__(msg)
        self.tool = tool
