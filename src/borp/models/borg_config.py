"""Data models for Borg config files.

Borg keeps a small ConfigParser-style file in every repository and cache
directory. These models hold the parsed contents in a typed form:

- ConfigValue: a single value, tagged with the kind it was parsed as
- ConfigSection / BorgConfig: sections and the whole file
- RepositoryConfig / CacheConfig: the well-known ``[repository]`` and
  ``[cache]`` sections
"""

import base64
import binascii
import re
import textwrap
from enum import Enum
from typing import Self

from pydantic import BaseModel, Field

from ..constants import BASE64_LINE_WIDTH, CACHE_SECTION, REPOSITORY_SECTION
from ..errors import ConfigValueError

# ConfigParser's accepted boolean spellings
_BOOLEAN_STATES = {
    "1": True,
    "yes": True,
    "true": True,
    "on": True,
    "0": False,
    "no": False,
    "false": False,
    "off": False,
}

DEFAULT_SEGMENTS_PER_DIR = 1000
DEFAULT_MAX_SEGMENT_SIZE = 500 * 1024 * 1024

SECTION_NAME_PATTERN = r"[A-Za-z0-9_.\-]+"
KEY_PATTERN = r"[A-Za-z_][A-Za-z0-9_]*"

SECTION_NAME_RE = re.compile(SECTION_NAME_PATTERN)
KEY_RE = re.compile(KEY_PATTERN)
INT_RE = re.compile(r"[0-9]+")
HEX_RE = re.compile(r"[0-9a-fA-F]+")
BASE64_LINE_RE = re.compile(r"[A-Za-z0-9+/=]+")


class ValueKind(str, Enum):
    """Kinds a config value is classified as when parsed."""

    INT = "int"
    HEX = "hex"
    BASE64 = "base64"
    TEXT = "text"


def format_base64(data: bytes, width: int = BASE64_LINE_WIDTH) -> str:
    """Encode data as base64 wrapped into lines of at most width chars."""
    encoded = base64.b64encode(data).decode("ascii")
    return "\n".join(textwrap.wrap(encoded, width)) if encoded else ""


def classify_value(raw: str) -> ValueKind:
    """Classify a raw value, first match wins: INT, HEX, BASE64, TEXT.

    BASE64 needs a continuation line, since a short single line of base64
    can't be told apart from text.
    """
    if INT_RE.fullmatch(raw):
        return ValueKind.INT
    if HEX_RE.fullmatch(raw):
        return ValueKind.HEX
    lines = raw.split("\n")
    if len(lines) > 1 and all(BASE64_LINE_RE.fullmatch(line) for line in lines):
        try:
            base64.b64decode("".join(lines), validate=True)
        except (binascii.Error, ValueError):
            return ValueKind.TEXT
        return ValueKind.BASE64
    return ValueKind.TEXT


def check_names(section: str, key: str) -> None:
    """Raise ConfigValueError unless section and key can be written as-is."""
    if not SECTION_NAME_RE.fullmatch(section):
        raise ConfigValueError(f"Invalid section name: {section!r}")
    if not KEY_RE.fullmatch(key):
        raise ConfigValueError(f"Invalid key: {key!r}")


def check_raw(raw: str) -> None:
    """Raise ConfigValueError unless raw reads back unchanged once written.

    The reader strips every line and skips blank ones, so lines must not
    carry surrounding whitespace and multi-line values can't have empty
    lines.
    """
    lines = raw.split("\n")
    if raw and raw.splitlines() != lines:
        raise ConfigValueError(f"Value contains an unsupported line break: {raw!r}")
    if any(line != line.strip() for line in lines):
        raise ConfigValueError(f"Value lines can't start or end with whitespace: {raw!r}")
    if len(lines) > 1 and not all(lines):
        raise ConfigValueError(f"Multi-line values can't contain empty lines: {raw!r}")


class ConfigValue(BaseModel):
    """A config value as written in the file.

    ``raw`` keeps the exact text (continuation lines joined with ``\\n``),
    so a value can always be re-read as another type than it was
    classified as.
    """

    kind: ValueKind
    raw: str

    @classmethod
    def from_python(cls, value: int | str | bytes) -> Self:
        """Build a value from a Python int, str or bytes.

        The kind is the one a reader of the written file would classify
        the value as, so short bytes come back as TEXT (still readable with
        :meth:`as_bytes`).

        Raises:
            ConfigValueError: For negative ints, or text that would not read
                back unchanged
        """
        if isinstance(value, bool):
            return cls(kind=ValueKind.INT, raw=str(int(value)))
        if isinstance(value, int):
            if value < 0:
                raise ConfigValueError(f"Negative integers are not supported: {value}")
            return cls(kind=ValueKind.INT, raw=str(value))
        raw = format_base64(value) if isinstance(value, bytes) else value
        check_raw(raw)
        return cls(kind=classify_value(raw), raw=raw)

    @property
    def value(self) -> int | str | bytes:
        """Value converted according to its kind."""
        if self.kind == ValueKind.INT:
            return self.as_int()
        if self.kind == ValueKind.BASE64:
            return self.as_bytes()
        return self.raw

    def as_int(self) -> int:
        try:
            return int(self.raw)
        except ValueError:
            raise ConfigValueError(f"Not an integer: {self.raw!r}") from None

    def as_bool(self) -> bool:
        try:
            return _BOOLEAN_STATES[self.raw.strip().lower()]
        except KeyError:
            raise ConfigValueError(f"Not a boolean: {self.raw!r}") from None

    def as_text(self) -> str:
        return self.raw

    def as_bytes(self) -> bytes:
        """Decode the value as (possibly multi-line) base64."""
        compact = "".join(self.raw.split())
        try:
            return base64.b64decode(compact, validate=True)
        except (binascii.Error, ValueError):
            raise ConfigValueError(f"Not valid base64: {self.raw!r}") from None

    def as_hex_bytes(self) -> bytes:
        """Decode the value as a hex string."""
        try:
            return bytes.fromhex(self.raw.strip())
        except ValueError:
            raise ConfigValueError(f"Not a hex string: {self.raw!r}") from None


class ConfigSection(BaseModel):
    """A ``[name]`` section and its entries, in file order."""

    name: str
    entries: dict[str, ConfigValue] = Field(default_factory=dict)

    def get(self, key: str) -> ConfigValue | None:
        return self.entries.get(key)

    def require(self, key: str) -> ConfigValue:
        """Get an entry, raising ConfigValueError if it is missing."""
        value = self.entries.get(key)
        if value is None:
            raise ConfigValueError(f"Missing key {key!r} in section [{self.name}]")
        return value


class BorgConfig(BaseModel):
    """A parsed Borg config file."""

    sections: dict[str, ConfigSection] = Field(default_factory=dict)

    def section(self, name: str) -> ConfigSection:
        """Get a section, raising ConfigValueError if it is missing."""
        try:
            return self.sections[name]
        except KeyError:
            raise ConfigValueError(f"Missing section [{name}]") from None

    def get(self, section: str, key: str) -> ConfigValue | None:
        sect = self.sections.get(section)
        return sect.get(key) if sect else None

    def set(self, section: str, key: str, value: int | str | bytes | ConfigValue) -> None:
        """Set a value, creating the section if needed.

        Raises:
            ConfigValueError: If the names or the value can't be written
                to a config file
        """
        check_names(section, key)
        if isinstance(value, ConfigValue):
            check_raw(value.raw)
        else:
            value = ConfigValue.from_python(value)
        sect = self.sections.setdefault(section, ConfigSection(name=section))
        sect.entries[key] = value

    def to_dict(self) -> dict[str, dict[str, int | str | bytes]]:
        """Plain nested mapping of section -> key -> converted value."""
        return {
            name: {key: value.value for key, value in sect.entries.items()}
            for name, sect in self.sections.items()
        }


class RepositoryConfig(BaseModel):
    """The ``[repository]`` section of a Borg repository config."""

    version: int = 1
    segments_per_dir: int = DEFAULT_SEGMENTS_PER_DIR
    max_segment_size: int = DEFAULT_MAX_SEGMENT_SIZE
    append_only: bool = False
    storage_quota: int = 0
    additional_free_space: int = 0
    id: str = Field(description="Repository id as a hex string")
    key: bytes | None = Field(default=None, description="Encrypted repokey, if stored")

    @classmethod
    def from_config(cls, config: BorgConfig) -> Self:
        """Extract repository settings from a parsed config.

        Raises:
            ConfigValueError: If the section or the id is missing, or a
                value has the wrong type
        """
        sect = config.section(REPOSITORY_SECTION)
        data: dict[str, object] = {"id": sect.require("id").as_text().strip().lower()}
        for name in (
            "version",
            "segments_per_dir",
            "max_segment_size",
            "storage_quota",
            "additional_free_space",
        ):
            value = sect.get(name)
            if value is not None:
                data[name] = value.as_int()
        append_only = sect.get("append_only")
        if append_only is not None:
            data["append_only"] = append_only.as_bool()
        key = sect.get("key")
        if key is not None and key.raw.strip():
            data["key"] = key.as_bytes()
        return cls.model_validate(data)

    def to_config(self) -> BorgConfig:
        """Render back into a config, in the order Borg writes it."""
        config = BorgConfig()
        config.set(REPOSITORY_SECTION, "version", self.version)
        config.set(REPOSITORY_SECTION, "segments_per_dir", self.segments_per_dir)
        config.set(REPOSITORY_SECTION, "max_segment_size", self.max_segment_size)
        config.set(REPOSITORY_SECTION, "append_only", int(self.append_only))
        config.set(REPOSITORY_SECTION, "storage_quota", self.storage_quota)
        config.set(REPOSITORY_SECTION, "additional_free_space", self.additional_free_space)
        config.set(REPOSITORY_SECTION, "id", self.id)
        if self.key is not None:
            config.set(REPOSITORY_SECTION, "key", self.key)
        return config

    @property
    def id_bytes(self) -> bytes:
        return bytes.fromhex(self.id)


class CacheConfig(BaseModel):
    """The ``[cache]`` (and optional ``[integrity]``) sections of a cache config."""

    version: int = 1
    repository: str
    manifest: str = ""
    timestamp: str | None = None
    key_type: int | None = None
    previous_location: str | None = None
    integrity: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_config(cls, config: BorgConfig) -> Self:
        """Extract cache settings from a parsed config."""
        sect = config.section(CACHE_SECTION)
        data: dict[str, object] = {
            "repository": sect.require("repository").as_text().strip(),
        }
        version = sect.get("version")
        if version is not None:
            data["version"] = version.as_int()
        key_type = sect.get("key_type")
        if key_type is not None and key_type.raw:
            data["key_type"] = key_type.as_int()
        for name in ("manifest", "timestamp", "previous_location"):
            value = sect.get(name)
            if value is not None:
                data[name] = value.as_text()
        integrity = config.sections.get("integrity")
        if integrity is not None:
            data["integrity"] = {k: v.as_text() for k, v in integrity.entries.items()}
        return cls.model_validate(data)
