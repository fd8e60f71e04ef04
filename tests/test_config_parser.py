"""Tests for Borg config file parsing."""

import os
from pathlib import Path
from unittest import mock

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from borp.core.config_parser import (
    classify_value,
    config_kind,
    dump_config,
    load_cache_config,
    load_config_file,
    load_repository_config,
    parse_config,
    parse_entries,
    save_config_file,
)
from borp.errors import ConfigParseError, ConfigValueError
from borp.models import BorgConfig, ValueKind
from borp.models.borg_config import KEY_PATTERN, SECTION_NAME_PATTERN

# Printable single lines; the writer rejects surrounding whitespace
_value_line = (
    st.text(alphabet=st.characters(exclude_categories=("Cc", "Cs", "Zl", "Zp")), min_size=1)
    .map(str.strip)
    .filter(bool)
)


class TestClassifyValue:
    """Tests for classify_value."""

    @pytest.mark.parametrize(
        ("raw", "kind"),
        [
            ("0", ValueKind.INT),
            ("524288000", ValueKind.INT),
            ("deadbeef", ValueKind.HEX),
            ("8C2A5D", ValueKind.HEX),
            ("/srv/backups/repo", ValueKind.TEXT),
            ("2017-05-27T19:12:33.129857", ValueKind.TEXT),
            ("", ValueKind.TEXT),
            ("aGVsbG8gd29y\nbGQhIQ==", ValueKind.BASE64),
        ],
    )
    def test_kinds(self, raw: str, kind: ValueKind) -> None:
        assert classify_value(raw) == kind

    def test_single_line_base64_is_text(self) -> None:
        """Short base64 can't be told apart from text without a continuation."""
        assert classify_value("aGVsbG8=") == ValueKind.TEXT

    def test_multiline_with_bad_padding_is_text(self) -> None:
        assert classify_value("abcdefgh\nxyz") == ValueKind.TEXT

    def test_multiline_with_non_base64_chars_is_text(self) -> None:
        assert classify_value("first line\nsecond line") == ValueKind.TEXT


class TestParseEntries:
    """Tests for the flat entry list."""

    def test_section_is_entry_with_empty_key(self) -> None:
        entries = parse_entries("[repository]\nversion = 1\n")
        assert [(key, value.raw) for key, value in entries] == [
            ("", "repository"),
            ("version", "1"),
        ]
        assert entries[0][1].kind == ValueKind.TEXT
        assert entries[1][1].kind == ValueKind.INT

    def test_blank_lines_and_comments_are_skipped(self) -> None:
        text = "\n# comment\n[cache]\n\n; another\nversion = 1\n\n\n"
        entries = parse_entries(text)
        assert [key for key, _ in entries] == ["", "version"]

    def test_continuation_joins_lines(self) -> None:
        entries = parse_entries("[repository]\nkey = aGVsbG8gd29y\n\tbGQhIQ==\n")
        key, value = entries[1]
        assert key == "key"
        assert value.raw == "aGVsbG8gd29y\nbGQhIQ=="
        assert value.kind == ValueKind.BASE64
        assert value.value == b"hello world!!"

    def test_space_continuation_is_accepted(self) -> None:
        entries = parse_entries("[s]\nkey = first\n    second\n")
        assert entries[1][1].raw == "first\nsecond"

    def test_empty_value(self) -> None:
        entries = parse_entries("[cache]\nprevious_location = \n")
        assert entries[1][1].raw == ""

    def test_tolerates_missing_spaces_around_equals(self) -> None:
        entries = parse_entries("[s]\nversion=1\n")
        assert entries[1][0] == "version"
        assert entries[1][1].value == 1

    def test_value_may_contain_equals(self) -> None:
        entries = parse_entries("[s]\nexpr = a = b\n")
        assert entries[1][1].raw == "a = b"

    def test_continuation_without_entry(self) -> None:
        with pytest.raises(ConfigParseError, match="line 2") as excinfo:
            parse_entries("[s]\n\tdangling\n")
        assert excinfo.value.line_no == 2

    def test_unrecognised_line(self) -> None:
        with pytest.raises(ConfigParseError, match="Unrecognised line"):
            parse_entries("[s]\nthis is not an entry\n")

    def test_bad_section_name(self) -> None:
        with pytest.raises(ConfigParseError):
            parse_entries("[bad section]\n")

    def test_crlf_line_endings(self) -> None:
        entries = parse_entries("[s]\r\nversion = 1\r\n")
        assert entries[1][1].value == 1


class TestParseConfig:
    """Tests for parse_config."""

    def test_borg_repository_config(self, repo_config_text: str, repo_key: bytes) -> None:
        config = parse_config(repo_config_text)
        assert list(config.sections) == ["repository"]
        section = config.section("repository")
        assert list(section.entries) == [
            "version",
            "segments_per_dir",
            "max_segment_size",
            "append_only",
            "storage_quota",
            "additional_free_space",
            "id",
            "key",
        ]
        assert section.require("segments_per_dir").value == 1000
        assert section.require("id").kind == ValueKind.HEX
        assert section.require("key").kind == ValueKind.BASE64
        assert section.require("key").value == repo_key

    def test_entry_before_section(self) -> None:
        with pytest.raises(ConfigParseError, match="before any section"):
            parse_config("version = 1\n[repository]\n")

    def test_duplicate_section(self) -> None:
        with pytest.raises(ConfigParseError, match=r"line 3: Duplicate section \[s\]"):
            parse_config("[s]\na = 1\n[s]\n")

    def test_duplicate_key(self) -> None:
        with pytest.raises(ConfigParseError, match="Duplicate key 'a'"):
            parse_config("[s]\na = 1\na = 2\n")

    def test_empty_text(self) -> None:
        assert parse_config("").sections == {}

    def test_to_dict(self) -> None:
        config = parse_config("[s]\nn = 5\nh = ff\nt = hello world\n")
        assert config.to_dict() == {"s": {"n": 5, "h": "ff", "t": "hello world"}}


class TestDumpConfig:
    """Tests for dump_config."""

    def test_configparser_layout(self) -> None:
        config = BorgConfig()
        config.set("repository", "version", 1)
        config.set("repository", "key", bytes(range(100)))
        text = dump_config(config)
        lines = text.split("\n")
        assert lines[0] == "[repository]"
        assert lines[1] == "version = 1"
        assert lines[2].startswith("key = ")
        assert lines[3].startswith("\t")
        assert text.endswith("\n\n")

    def test_reparses_to_same_config(self, repo_config_text: str) -> None:
        config = parse_config(repo_config_text)
        assert parse_config(dump_config(config)) == config

    def test_matches_borg_output(self, repo_config_text: str) -> None:
        """Dumping a parsed Borg config reproduces the file byte for byte."""
        assert dump_config(parse_config(repo_config_text)) == repo_config_text

    @given(
        sections=st.dictionaries(
            st.from_regex(SECTION_NAME_PATTERN, fullmatch=True),
            st.dictionaries(
                st.from_regex(KEY_PATTERN, fullmatch=True),
                st.one_of(
                    st.integers(min_value=0, max_value=2**64),
                    st.binary(max_size=200),
                    st.lists(_value_line, min_size=1, max_size=4).map("\n".join),
                ),
                min_size=1,
                max_size=5,
            ),
            max_size=4,
        )
    )
    @settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_written_values_read_back(self, sections: dict) -> None:
        config = BorgConfig()
        for name, entries in sections.items():
            for key, value in entries.items():
                config.set(name, key, value)
        assert parse_config(dump_config(config)) == config


class TestFiles:
    """Tests for loading and saving config files."""

    def test_load_config_file(self, repo_dir: Path) -> None:
        config = load_config_file(repo_dir / "config")
        assert config_kind(config) == "repository"

    def test_save_config_file(self, tmp_path: Path) -> None:
        config = BorgConfig()
        config.set("cache", "version", 1)
        path = tmp_path / "config"
        save_config_file(config, path)
        assert path.read_text() == "[cache]\nversion = 1\n\n"
        assert os.listdir(tmp_path) == ["config"]

    def test_save_config_file_failure_keeps_old_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config"
        path.write_text("[cache]\nversion = 1\n\n")
        config = BorgConfig()
        config.set("cache", "version", 2)
        with mock.patch("borp.core.config_parser.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError, match="disk full"):
                save_config_file(config, path)
        assert path.read_text() == "[cache]\nversion = 1\n\n"
        assert os.listdir(tmp_path) == ["config"]

    def test_load_repository_config(
        self, repo_dir: Path, repo_id: str, repo_key: bytes
    ) -> None:
        repo = load_repository_config(repo_dir)
        assert repo.version == 1
        assert repo.append_only is False
        assert repo.max_segment_size == 524288000
        assert repo.id == repo_id
        assert repo.key == repo_key

    def test_load_repository_config_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_repository_config(tmp_path)

    def test_load_repository_config_wrong_kind(self, cache_dir: Path) -> None:
        with pytest.raises(ConfigValueError, match=r"Missing section \[repository\]"):
            load_repository_config(cache_dir)

    def test_load_cache_config(self, cache_dir: Path, repo_id: str) -> None:
        cache = load_cache_config(cache_dir)
        assert cache.repository == repo_id
        assert cache.manifest == "5e3f1b"
        assert cache.key_type == 0
        assert cache.timestamp == "2017-05-27T19:12:33.129857"
        assert cache.previous_location == "/srv/backups/repo"
        assert cache.integrity["files"].startswith('{"algorithm": "XXH64"')

    def test_config_kind_unknown(self) -> None:
        assert config_kind(parse_config("[other]\na = 1\n")) is None
