"""Shared test fixtures for borp tests."""

from collections.abc import Generator
from pathlib import Path
from unittest import mock

import pytest
from typer.testing import CliRunner

from borp.models import format_base64

REPO_ID = "8c2a5d2e1f3b4a6c7d8e9f0a1b2c3d4e5f6a7b8c9d0e1f2a3b4c5d6e7f8a9b0c"
REPO_KEY = bytes(range(100))


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep Borg/borp environment variables and user settings out of tests."""
    monkeypatch.delenv("BORG_HOST_ID", raising=False)
    monkeypatch.delenv("BORG_HOSTNAME_IS_UNIQUE", raising=False)
    monkeypatch.setenv("BORP_CONFIG", str(tmp_path / "borp-settings" / "config.toml"))


@pytest.fixture
def runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def all_alive() -> Generator[mock.MagicMock, None, None]:
    """Treat every lock holder as a live process."""
    with mock.patch("borp.core.locking.process_alive", return_value=True) as patched:
        yield patched


@pytest.fixture
def all_dead() -> Generator[mock.MagicMock, None, None]:
    """Treat every lock holder as a dead process."""
    with mock.patch("borp.core.locking.process_alive", return_value=False) as patched:
        yield patched


@pytest.fixture
def repo_config_text() -> str:
    """Return a repository config as Borg writes it."""
    key = format_base64(REPO_KEY).replace("\n", "\n\t")
    return f"""[repository]
version = 1
segments_per_dir = 1000
max_segment_size = 524288000
append_only = 0
storage_quota = 0
additional_free_space = 0
id = {REPO_ID}
key = {key}

"""


@pytest.fixture
def repo_dir(tmp_path: Path, repo_config_text: str) -> Path:
    """Create a directory laid out like a Borg repository."""
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / "config").write_text(repo_config_text)
    (repo / "README").write_text("This is a Borg Backup repository.\n")
    return repo


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Create a directory laid out like a Borg cache."""
    cache = tmp_path / "cache"
    cache.mkdir()
    (cache / "config").write_text(
        f"""[cache]
version = 1
repository = {REPO_ID}
manifest = 5e3f1b
timestamp = 2017-05-27T19:12:33.129857
key_type = 0
previous_location = /srv/backups/repo

[integrity]
manifest = 0b1c2d
files = {{"algorithm": "XXH64", "digests": {{"final": "4d4f2b0e"}}}}

"""
    )
    return cache


@pytest.fixture
def repo_id() -> str:
    """Return the id of the repository created by repo_dir."""
    return REPO_ID


@pytest.fixture
def repo_key() -> bytes:
    """Return the key bytes stored in the repository created by repo_dir."""
    return REPO_KEY
