"""Borg config file parsing and writing.

Borg stores repository and cache settings with Python's ConfigParser, but
only uses a small subset of what ConfigParser accepts. This module parses
exactly that subset:

    [repository]
    version = 1
    segments_per_dir = 1000
    id = 57dcb7a8...
    key = hqlhbGdvcml0aG2mc2hhMjU2pGRhdGHaAN4...
    	wJb0Zq1L...

- ``[name]`` starts a section
- ``key = value`` adds an entry to the current section
- lines starting with a tab or space continue the previous value
- blank lines and ``#``/``;`` comment lines are ignored
"""

import os
import re
import tempfile
from pathlib import Path

from ..constants import CACHE_SECTION, CONFIG_FILE, REPOSITORY_SECTION
from ..errors import ConfigParseError
from ..models import (
    BorgConfig,
    CacheConfig,
    ConfigSection,
    ConfigValue,
    RepositoryConfig,
    ValueKind,
)
from ..models.borg_config import KEY_PATTERN, SECTION_NAME_PATTERN, classify_value

SECTION_RE = re.compile(rf"^\[(?P<name>{SECTION_NAME_PATTERN})\]\s*$")
ENTRY_RE = re.compile(rf"^(?P<key>{KEY_PATTERN})\s*=\s?(?P<value>.*)$")


def _make_value(lines: list[str]) -> ConfigValue:
    raw = "\n".join(lines).strip()
    return ConfigValue(kind=classify_value(raw), raw=raw)


def _scan(text: str) -> list[tuple[int, str, ConfigValue]]:
    """Scan config text into (line number, key, value) triples."""
    entries: list[tuple[int, str, ConfigValue]] = []
    current_key: str | None = None
    current_line_no = 0
    current_lines: list[str] = []

    def flush() -> None:
        nonlocal current_key, current_lines
        if current_key is not None:
            entries.append((current_line_no, current_key, _make_value(current_lines)))
        current_key = None
        current_lines = []

    for line_no, line in enumerate(text.splitlines(), start=1):
        if line[:1] in ("\t", " ") and line.strip():
            if current_key is None:
                raise ConfigParseError("Continuation line without a preceding entry", line_no)
            current_lines.append(line.strip())
            continue

        stripped = line.strip()
        if not stripped:
            # ConfigParser writes a blank line after every section
            continue
        if stripped[0] in ("#", ";"):
            continue

        flush()

        section_match = SECTION_RE.match(line)
        if section_match:
            name = section_match.group("name")
            entries.append((line_no, "", ConfigValue(kind=ValueKind.TEXT, raw=name)))
            continue

        entry_match = ENTRY_RE.match(line)
        if entry_match:
            current_key = entry_match.group("key")
            current_line_no = line_no
            current_lines = [entry_match.group("value").strip()]
            continue

        raise ConfigParseError(f"Unrecognised line: {line!r}", line_no)

    flush()
    return entries


def parse_entries(text: str) -> list[tuple[str, ConfigValue]]:
    """Parse config text into a flat list of (key, value) pairs.

    Section headers appear as an entry with an empty key and a TEXT value
    holding the section name, so the list preserves the file's layout.

    Raises:
        ConfigParseError: On a line that is neither a section, an entry,
            a continuation, a comment nor blank
    """
    return [(key, value) for _, key, value in _scan(text)]


def parse_config(text: str) -> BorgConfig:
    """Parse config text into sections.

    Raises:
        ConfigParseError: On malformed lines, an entry outside any section,
            or a duplicate section or key
    """
    config = BorgConfig()
    section: ConfigSection | None = None

    for line_no, key, value in _scan(text):
        if key == "":
            name = value.raw
            if name in config.sections:
                raise ConfigParseError(f"Duplicate section [{name}]", line_no)
            section = ConfigSection(name=name)
            config.sections[name] = section
            continue

        if section is None:
            raise ConfigParseError(f"Entry {key!r} appears before any section header", line_no)
        if key in section.entries:
            raise ConfigParseError(f"Duplicate key {key!r} in section [{section.name}]", line_no)
        section.entries[key] = value

    return config


def load_config_file(path: str | Path) -> BorgConfig:
    """Read and parse a Borg config file."""
    return parse_config(Path(path).read_text(encoding="utf-8"))


def dump_config(config: BorgConfig) -> str:
    """Serialize a config the way ConfigParser writes it.

    Multi-line values get a tab in front of each continuation line, and
    every section is followed by a blank line.
    """
    out: list[str] = []
    for name, section in config.sections.items():
        out.append(f"[{name}]\n")
        for key, value in section.entries.items():
            rendered = value.raw.replace("\n", "\n\t")
            out.append(f"{key} = {rendered}\n")
        out.append("\n")
    return "".join(out)


def save_config_file(config: BorgConfig, path: str | Path) -> None:
    """Write a config file, replacing the old one atomically."""
    directory, base_name = os.path.split(os.path.abspath(path))
    fd, temp_path = tempfile.mkstemp(".tmp", base_name + ".", directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(dump_config(config))
        os.replace(temp_path, path)
    except BaseException:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


def load_repository_config(repo_dir: str | Path) -> RepositoryConfig:
    """Load the ``[repository]`` section of ``<repo_dir>/config``."""
    config = load_config_file(Path(repo_dir) / CONFIG_FILE)
    return RepositoryConfig.from_config(config)


def load_cache_config(cache_dir: str | Path) -> CacheConfig:
    """Load the ``[cache]`` section of ``<cache_dir>/config``."""
    config = load_config_file(Path(cache_dir) / CONFIG_FILE)
    return CacheConfig.from_config(config)


def config_kind(config: BorgConfig) -> str | None:
    """Tell whether a parsed config belongs to a repository or a cache."""
    if REPOSITORY_SECTION in config.sections:
        return REPOSITORY_SECTION
    if CACHE_SECTION in config.sections:
        return CACHE_SECTION
    return None
