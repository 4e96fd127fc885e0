"""Tests for brew_lag.history."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from brew_lag.cache import CacheStore
from brew_lag.config import LagConfig
from brew_lag.errors import NoHistory
from brew_lag.history import (
    definition_path,
    find_revision_at,
    mentions,
    mine_target,
    read_log,
    resolve_target,
    scan_history,
)
from brew_lag.models import LogEntry, RevisionTarget


class TestDefinitionPath:
    def test_sharded_path(self, core_repo: Path) -> None:
        assert definition_path("jq", core_repo) == "Formula/j/jq.rb"

    def test_flat_path(self, core_repo: Path) -> None:
        (core_repo / "Formula" / "wget.rb").write_text("")
        assert definition_path("wget", core_repo) == "Formula/wget.rb"

    def test_lib_path(self, core_repo: Path) -> None:
        (core_repo / "Formula" / "lib").mkdir()
        (core_repo / "Formula" / "lib" / "libfoo.rb").write_text("")
        assert definition_path("libfoo", core_repo) == "Formula/lib/libfoo.rb"

    def test_missing_defaults_to_sharded(self, core_repo: Path) -> None:
        assert definition_path("gone", core_repo) == "Formula/g/gone.rb"


class TestMentions:
    def test_plain_subject(self) -> None:
        assert mentions("jq 1.7.1", "jq")

    def test_colon_suffix(self) -> None:
        assert mentions("jq: update 1.7.1 bottle.", "jq")

    def test_other_formula(self) -> None:
        assert not mentions("jq-dev 1.0", "jq")


class TestScanHistory:
    def test_offset_position(self, jq_log: list[LogEntry]) -> None:
        """Offset 4 over [1.7.1, 1.7, 1.6, 1.5, 1.4, ...] lands on 1.4."""
        version, entry, depth = scan_history(jq_log, "jq", 4)
        assert version == "1.4"
        assert entry.subject == "jq 1.4"
        assert depth == 4

    @pytest.mark.parametrize(
        ("offset", "expected"),
        [(0, "1.7.1"), (1, "1.7"), (2, "1.6"), (3, "1.5"), (5, "1.3")],
    )
    def test_never_adjacent(
        self, jq_log: list[LogEntry], offset: int, expected: str
    ) -> None:
        version, _, depth = scan_history(jq_log, "jq", offset)
        assert version == expected
        assert depth == offset

    def test_repeated_version_counted_at_newest_commit(
        self, jq_log: list[LogEntry]
    ) -> None:
        _, entry, _ = scan_history(jq_log, "jq", 0)
        assert entry == jq_log[0]

    def test_window_exhausted_returns_oldest(self, jq_log: list[LogEntry]) -> None:
        version, entry, depth = scan_history(jq_log, "jq", 10)
        assert version == "1.3"
        assert entry == jq_log[-1]
        assert depth == 5

    def test_no_versions(self) -> None:
        entries = [LogEntry(revision_handle="a" * 40, timestamp=1, subject="jq: style")]
        assert scan_history(entries, "jq", 0) is None

    def test_first_version_token_wins(self) -> None:
        entries = [
            LogEntry(revision_handle="a" * 40, timestamp=2, subject="jq 1.8 (was 1.7)"),
        ]
        version, _, _ = scan_history(entries, "jq", 0)
        assert version == "1.8"


class TestReadLog:
    @patch("brew_lag.history.git")
    def test_parses_entries(self, mock_git: MagicMock, core_repo: Path) -> None:
        mock_git.return_value = "abc 200 jq 1.7\ndef 100 jq: update 1.6 bottle."

        entries = read_log(core_repo, "Formula/j/jq.rb")

        assert entries == [
            LogEntry(revision_handle="abc", timestamp=200, subject="jq 1.7"),
            LogEntry(revision_handle="def", timestamp=100, subject="jq: update 1.6 bottle."),
        ]
        mock_git.assert_called_once_with(
            "log", "-n", "80", "--pretty=format:%H %ct %s", "--", "Formula/j/jq.rb",
            repo=core_repo, check=False,
        )

    @patch("brew_lag.history.git")
    def test_empty_log(self, mock_git: MagicMock, core_repo: Path) -> None:
        mock_git.return_value = ""
        assert read_log(core_repo, "Formula/j/jq.rb") == []


class TestFindRevisionAt:
    @patch("brew_lag.history.git")
    def test_found(self, mock_git: MagicMock, core_repo: Path) -> None:
        mock_git.return_value = "abc123"

        assert find_revision_at(core_repo, "Formula/j/jq.rb", 500) == "abc123"
        mock_git.assert_called_once_with(
            "log", "-n", "1", "--before=@500", "--pretty=format:%H", "--",
            "Formula/j/jq.rb", repo=core_repo, check=False,
        )

    @patch("brew_lag.history.git")
    def test_not_found(self, mock_git: MagicMock, core_repo: Path) -> None:
        mock_git.return_value = ""
        assert find_revision_at(core_repo, "Formula/j/jq.rb", 500) is None


class TestMineTarget:
    @patch("brew_lag.history.read_log")
    def test_from_log(
        self, mock_log: MagicMock, core_repo: Path, jq_log: list[LogEntry]
    ) -> None:
        mock_log.return_value = jq_log

        target = mine_target("jq", "1.6", 4, repo=core_repo)

        assert target.version_label == "1.4"
        assert target.revision_handle == jq_log[7].revision_handle
        assert target.timestamp == jq_log[7].timestamp
        assert target.definition_path == "Formula/j/jq.rb"
        assert target.installed_version == "1.6"
        assert target.lag_depth == 4

    @patch("brew_lag.history.warn")
    @patch("brew_lag.history.read_log")
    def test_shallow_lag_is_reported(
        self,
        mock_log: MagicMock,
        mock_warn: MagicMock,
        core_repo: Path,
        jq_log: list[LogEntry],
    ) -> None:
        mock_log.return_value = jq_log[:3]

        target = mine_target("jq", "1.6", 4, repo=core_repo)

        assert target.version_label == "1.7"
        assert target.lag_depth == 1
        mock_warn.assert_called_once()

    @patch("brew_lag.history.commit_timestamp")
    @patch("brew_lag.history.revision_at_offset")
    @patch("brew_lag.history.read_log")
    def test_position_fallback(
        self,
        mock_log: MagicMock,
        mock_offset: MagicMock,
        mock_ts: MagicMock,
        core_repo: Path,
    ) -> None:
        mock_log.return_value = [
            LogEntry(revision_handle="f" * 40, timestamp=9, subject="jq: audit fixes"),
        ]
        mock_offset.return_value = "deadbeefcafe" + "0" * 28
        mock_ts.return_value = 1234

        target = mine_target("jq", "1.6", 4, repo=core_repo)

        assert target.version_label == "commit:deadbee"
        assert target.timestamp == 1234
        assert target.lag_depth is None
        mock_offset.assert_called_once_with(core_repo, "Formula/j/jq.rb", 4)

    @patch("brew_lag.history.commit_timestamp")
    @patch("brew_lag.history.revision_at_offset")
    @patch("brew_lag.history.read_log")
    def test_short_log_uses_oldest_entry(
        self,
        mock_log: MagicMock,
        mock_offset: MagicMock,
        mock_ts: MagicMock,
        core_repo: Path,
    ) -> None:
        mock_log.return_value = [
            LogEntry(revision_handle="a" * 40, timestamp=9, subject="jq: audit"),
            LogEntry(revision_handle="b" * 40, timestamp=5, subject="jq: new formula"),
        ]
        mock_offset.return_value = None
        mock_ts.return_value = 5

        target = mine_target("jq", "1.6", 4, repo=core_repo)

        assert target.revision_handle == "b" * 40

    @patch("brew_lag.history.revision_at_offset")
    @patch("brew_lag.history.read_log")
    def test_no_history(
        self, mock_log: MagicMock, mock_offset: MagicMock, core_repo: Path
    ) -> None:
        mock_log.return_value = []
        mock_offset.return_value = None

        with pytest.raises(NoHistory, match="nosuch"):
            mine_target("nosuch", "1.0", 4, repo=core_repo)


class TestResolveTarget:
    @patch("brew_lag.history.progress")
    @patch("brew_lag.history.mine_target")
    def test_cache_hit_skips_scan(
        self,
        mock_mine: MagicMock,
        mock_progress: MagicMock,
        config: LagConfig,
        core_repo: Path,
    ) -> None:
        mock_mine.return_value = RevisionTarget(
            package="jq",
            installed_version="1.6",
            version_label="1.4",
            revision_handle="a" * 40,
            definition_path="Formula/j/jq.rb",
            timestamp=100,
            lag_depth=4,
        )
        with CacheStore(config.cache_path) as cache:
            first = resolve_target("jq", "1.6", config, cache, repo=core_repo, head="h1")
            second = resolve_target("jq", "1.6", config, cache, repo=core_repo, head="h1")

        assert first == second
        mock_mine.assert_called_once_with("jq", "1.6", 4, repo=core_repo)

    @patch("brew_lag.history.progress")
    @patch("brew_lag.history.mine_target")
    def test_new_head_invalidates(
        self,
        mock_mine: MagicMock,
        mock_progress: MagicMock,
        config: LagConfig,
        core_repo: Path,
    ) -> None:
        mock_mine.return_value = RevisionTarget(
            package="jq",
            installed_version="1.6",
            version_label="1.4",
            revision_handle="a" * 40,
            definition_path="Formula/j/jq.rb",
            timestamp=100,
        )
        with CacheStore(config.cache_path) as cache:
            resolve_target("jq", "1.6", config, cache, repo=core_repo, head="h1")
            resolve_target("jq", "1.6", config, cache, repo=core_repo, head="h2")
            other_offset = config.model_copy(update={"offset": 2})
            resolve_target("jq", "1.6", other_offset, cache, repo=core_repo, head="h2")

        assert mock_mine.call_count == 3
