"""Runtime dependency extraction from formula definitions.

Formulae declare dependencies as ``depends_on "name"``, optionally qualified
with ``=> :build`` or ``=> :test``. Only runtime dependencies matter for the
water level, since build and test tools are not loaded by the installed
formula.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from pathlib import Path

from .history import show_file

_DEPENDS_ON = re.compile(r"""^\s*depends_on\s*["']([^"']+)["']""")


def runtime_deps(content: str) -> Iterator[str]:
    """Yield the runtime dependency names declared in a definition.

    Examples:
        depends_on "openssl@3"               → "openssl@3"
        depends_on "pkgconf" => :build       → (skipped)
        depends_on "python@3.12" => :test    → (skipped)
        depends_on :macos                    → (skipped, not a formula)
    """
    for line in content.splitlines():
        match = _DEPENDS_ON.match(line)
        if not match:
            continue
        if ":build" in line or ":test" in line:
            continue
        name = match.group(1).strip()
        if name:
            yield name


class RuntimeDeps:
    """Runtime dependencies of one definition revision.

    Iterating parses the text again each time, so the sequence can be
    consumed any number of times.
    """

    def __init__(self, content: str) -> None:
        self._content = content

    def __iter__(self) -> Iterator[str]:
        return runtime_deps(self._content)


def extract_runtime_deps(
    revision_handle: str, definition_path: str, *, repo: Path
) -> RuntimeDeps:
    """Read a definition at a historical revision and return its runtime deps."""
    return RuntimeDeps(show_file(repo, revision_handle, definition_path))
