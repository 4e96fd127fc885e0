"""Version parsing, comparison and label extraction.

Formula versions are not semver: dates (``2024-01-05``), letter suffixes
(``1.1.1w``) and revision suffixes (``3.2.1_1``) are all common. Plain
numeric labels are compared with semver; everything else falls back to a
numeric-aware natural ordering, similar to ``sort -V``.

Label extraction from a definition's text is a chain of small functions,
each usable on its own:

1. ``explicit_version`` - a ``version "…"`` declaration
2. ``url_version`` - a version-like token from the first ``url "…"`` line
3. ``revision_number`` - a ``revision N`` qualifier, appended as ``_N``
4. ``synthetic_label`` - ``synced:YYYY-MM-DD`` from the commit time
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

import semver

# A subject token is version-like when it starts with digits followed by a
# dot or hyphen and more digits ("1.7.1", "2024-01-05").
VERSION_TOKEN = re.compile(r"^[0-9]+[.-][0-9]+")
_PLAIN_NUMERIC = re.compile(r"^(0|[1-9]\d*)(\.(0|[1-9]\d*)){0,2}$")
_NATURAL_CHUNK = re.compile(r"\d+|\D+")

_EXPLICIT_VERSION = re.compile(r"""\bversion\s+["']([^"']+)["']""")
_URL_LINE = re.compile(r"""\burl\s+["']""")
_URL_VERSION = re.compile(r"[0-9]+\.[0-9]+(?:[_.-][0-9a-zA-Z]+)*")
_REVISION = re.compile(r"\brevision\s+([0-9]+)")
_LABEL_SUFFIXES = (".tar.gz", ".zip", ".tar.xz", ".tar.bz2", "-stable")


def parse_version(version_str: str) -> semver.Version:
    """Parse a plain numeric version string into a semver.Version.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3" → "1.2.3"
    """
    parts = version_str.split(".")
    while len(parts) < 3:
        parts.append("0")
    return semver.Version.parse(".".join(parts[:3]))


def natural_key(label: str) -> tuple[tuple[int, int | str], ...]:
    """Sort key comparing digit runs numerically and other runs as text.

    Examples:
        "1.10" sorts after "1.9"
        "1.1.1w" sorts after "1.1.1v"
        "1.7" sorts before "1.7.1"
    """
    return tuple(
        (0, int(chunk)) if chunk.isdigit() else (1, chunk)
        for chunk in _NATURAL_CHUNK.findall(label)
    )


def compare_versions(a: str, b: str) -> int:
    """Compare two version labels, returning -1, 0 or 1.

    Labels that are not plain ``X[.Y[.Z]]`` numbers (dates, zero-padded
    releases such as ``2024.03.10``, synthetic labels, letter suffixes) are
    compared with ``natural_key``, which is best effort for opaque strings.
    """
    if a == b:
        return 0
    if _PLAIN_NUMERIC.match(a) and _PLAIN_NUMERIC.match(b):
        result = parse_version(a).compare(parse_version(b))
        if result:
            return result
    key_a, key_b = natural_key(a), natural_key(b)
    return (key_a > key_b) - (key_a < key_b)


def version_token(word: str) -> str | None:
    """Return ``word`` as a version if it looks like one.

    A single trailing ``,``, ``;`` or ``:`` is dropped, so the subject
    "jq 1.7.1: update" yields "1.7.1".
    """
    if not VERSION_TOKEN.match(word):
        return None
    if word[-1] in ",;:":
        word = word[:-1]
    return word


def _clean_label(label: str) -> str:
    for suffix in _LABEL_SUFFIXES:
        if label.endswith(suffix):
            label = label[: -len(suffix)]
    return label


def explicit_version(content: str) -> str | None:
    """Return the first ``version "…"`` declaration in a definition."""
    for line in content.splitlines():
        match = _EXPLICIT_VERSION.search(line)
        if match:
            return _clean_label(match.group(1)) or None
    return None


def url_version(content: str) -> str | None:
    """Return a version-like token from the first ``url "…"`` line.

    ``url "https://example.org/foo-1.2.3.tar.gz"`` yields "1.2.3".
    """
    for line in content.splitlines():
        if _URL_LINE.search(line):
            match = _URL_VERSION.search(line)
            return _clean_label(match.group(0)) if match else None
    return None


def revision_number(content: str) -> int:
    """Return the declared ``revision N`` qualifier, or 0 when absent."""
    match = _REVISION.search(content)
    return int(match.group(1)) if match else 0


def synthetic_label(timestamp: int) -> str:
    """Label derived from a commit time, used when nothing else parses."""
    day = datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d")
    return f"synced:{day}"


def commit_label(revision_handle: str) -> str:
    """Label derived from a truncated commit hash."""
    return f"commit:{revision_handle[:7]}"


def extract_version_label(content: str, timestamp: int) -> str:
    """Derive the version a definition installs.

    Tries an explicit version, then the url, appending a non-zero revision
    qualifier to whichever was found; falls back to a synthetic label.
    """
    label = explicit_version(content) or url_version(content)
    if not label:
        return synthetic_label(timestamp)
    revision = revision_number(content)
    if revision > 0:
        label = f"{label}_{revision}"
    return label
