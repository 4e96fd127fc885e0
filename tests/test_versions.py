"""Tests for brew_lag.versions."""

from __future__ import annotations

import pytest

from brew_lag.versions import (
    commit_label,
    compare_versions,
    explicit_version,
    extract_version_label,
    parse_version,
    revision_number,
    synthetic_label,
    url_version,
    version_token,
)


class TestParseVersion:
    def test_full_semver(self) -> None:
        v = parse_version("1.2.3")
        assert (v.major, v.minor, v.patch) == (1, 2, 3)

    def test_two_part_version(self) -> None:
        v = parse_version("1.7")
        assert (v.major, v.minor, v.patch) == (1, 7, 0)

    def test_single_part_version(self) -> None:
        v = parse_version("5")
        assert (v.major, v.minor, v.patch) == (5, 0, 0)


class TestCompareVersions:
    @pytest.mark.parametrize(
        ("a", "b", "expected"),
        [
            ("1.4", "1.6", -1),
            ("1.10", "1.9", 1),
            ("1.7", "1.7.1", -1),
            ("1.7.1", "1.7.1", 0),
            ("1.1.1w", "1.1.1v", 1),
            ("2024-01-05", "2023-12-30", 1),
            ("3.2.1_1", "3.2.1", 1),
            ("3.2.1", "3.2.1_1", -1),
            ("2024.04.09", "2024.03.10", 1),
            ("2024.03.10", "2024.3.9", 1),
        ],
    )
    def test_ordering(self, a: str, b: str, expected: int) -> None:
        assert compare_versions(a, b) == expected

    def test_synthetic_labels_compare_as_strings(self) -> None:
        assert compare_versions("synced:2024-02-01", "synced:2024-01-01") == 1


class TestVersionToken:
    def test_plain(self) -> None:
        assert version_token("1.7.1") == "1.7.1"

    def test_strips_trailing_colon(self) -> None:
        assert version_token("1.7.1:") == "1.7.1"

    def test_strips_trailing_comma(self) -> None:
        assert version_token("2024-01-05,") == "2024-01-05"

    def test_rejects_names(self) -> None:
        assert version_token("jq") is None

    def test_rejects_bare_number(self) -> None:
        assert version_token("12") is None

    def test_rejects_prefixed_version(self) -> None:
        assert version_token("v1.2") is None


class TestExplicitVersion:
    def test_found(self) -> None:
        content = 'url "https://example.org/foo.tar.gz"\n  version "2.4.1"\n'
        assert explicit_version(content) == "2.4.1"

    def test_missing(self) -> None:
        assert explicit_version('url "https://example.org/foo-1.0.tar.gz"') is None


class TestUrlVersion:
    def test_release_download_url(self) -> None:
        content = (
            '  url "https://github.com/jqlang/jq/releases/download/'
            'jq-1.7.1/jq-1.7.1.tar.gz"\n'
        )
        assert url_version(content) == "1.7.1"

    def test_strips_archive_suffix(self) -> None:
        content = 'url "https://ftp.gnu.org/gnu/wget/wget-1.24.5.tar.gz"'
        assert url_version(content) == "1.24.5"

    def test_strips_stable_suffix(self) -> None:
        content = 'url "https://example.org/foo-2.0-stable.tar.xz"'
        assert url_version(content) == "2.0"

    def test_uses_first_url_only(self) -> None:
        content = (
            'url "https://example.org/foo/archive/main.zip"\n'
            '  url "https://example.org/foo-9.9.tar.gz"\n'
        )
        assert url_version(content) is None

    def test_no_url(self) -> None:
        assert url_version('desc "nothing here"') is None


class TestRevisionNumber:
    def test_declared(self) -> None:
        assert revision_number("  revision 2\n") == 2

    def test_absent(self) -> None:
        assert revision_number('url "https://example.org/foo-1.0.tar.gz"') == 0


class TestExtractVersionLabel:
    def test_url_with_revision(self) -> None:
        content = 'url "https://example.org/foo-1.2.3.tar.gz"\n  revision 1\n'
        assert extract_version_label(content, 0) == "1.2.3_1"

    def test_explicit_beats_url(self) -> None:
        content = 'url "https://example.org/foo-1.2.3.tar.gz"\n  version "1.2.4"\n'
        assert extract_version_label(content, 0) == "1.2.4"

    def test_zero_revision_not_appended(self) -> None:
        content = 'url "https://example.org/foo-1.2.3.tar.gz"\n  revision 0\n'
        assert extract_version_label(content, 0) == "1.2.3"

    def test_falls_back_to_synthetic(self) -> None:
        assert extract_version_label("class Foo < Formula\nend\n", 1_700_000_000) == (
            "synced:2023-11-14"
        )

    def test_same_content_same_label(self) -> None:
        content = 'url "https://example.org/foo-3.1.tar.gz"\n  revision 3\n'
        assert extract_version_label(content, 5) == extract_version_label(content, 5)


def test_synthetic_label_uses_utc_date() -> None:
    assert synthetic_label(0) == "synced:1970-01-01"


def test_commit_label_truncates_hash() -> None:
    assert commit_label("deadbeefcafe0000") == "commit:deadbee"
