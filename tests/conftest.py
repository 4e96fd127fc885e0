"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from brew_lag.config import LagConfig
from brew_lag.models import LogEntry, RevisionTarget

JQ_FORMULA = """\
class Jq < Formula
  desc "Lightweight and flexible command-line JSON processor"
  homepage "https://jqlang.github.io/jq/"
  url "https://github.com/jqlang/jq/releases/download/jq-1.7.1/jq-1.7.1.tar.gz"
  sha256 "478c9ca129fd2e3443fe27314b455e211e0d8c60bc8ff7df703873deeee580c2"
  license "MIT"
  revision 1

  depends_on "autoconf" => :build
  depends_on "libtool" => :build
  depends_on "oniguruma"
  depends_on "python@3.12" => :test
end
"""


@pytest.fixture
def config(tmp_path: Path) -> LagConfig:
    """A config rooted in a temporary directory, running inline."""
    return LagConfig(offset=4, jobs=1, config_dir=tmp_path / "brew-lag")


@pytest.fixture
def core_repo(tmp_path: Path) -> Path:
    """A fake core tap checkout with a sharded jq definition."""
    repo = tmp_path / "homebrew-core"
    formula = repo / "Formula" / "j" / "jq.rb"
    formula.parent.mkdir(parents=True)
    formula.write_text(JQ_FORMULA)
    (repo / ".git").mkdir()
    return repo


@pytest.fixture
def jq_log() -> list[LogEntry]:
    """jq history, newest first, with repeats and unrelated commits."""
    subjects = [
        "jq 1.7.1",
        "jq: update 1.7.1 bottle.",
        "jq 1.7",
        "oniguruma 6.9.9",
        "jq 1.6",
        "jq: fix build on ventura",
        "jq 1.5",
        "jq 1.4",
        "jq 1.3",
    ]
    return [
        LogEntry(revision_handle=f"{i:040x}", timestamp=1_700_000_000 - i * 1000, subject=s)
        for i, s in enumerate(subjects)
    ]


def _make_target(
    name: str, timestamp: int, label: str = "1.0", installed: str = "1.0"
) -> RevisionTarget:
    return RevisionTarget(
        package=name,
        installed_version=installed,
        version_label=label,
        revision_handle=f"{name}-{timestamp}".ljust(40, "0"),
        definition_path=f"Formula/{name[0]}/{name}.rb",
        timestamp=timestamp,
        lag_depth=4,
    )


@pytest.fixture
def make_target():
    """Factory for mined RevisionTargets."""
    return _make_target


@pytest.fixture
def jq_formula() -> str:
    return JQ_FORMULA
