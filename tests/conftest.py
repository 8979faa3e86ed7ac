"""Test configuration for linecli tests."""

import pytest

from linecli.secrets import CredentialStore, MemoryBackend


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    """Keep config lookups and file backends inside a temp home."""
    (tmp_path / "home").mkdir()
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ("LINE_ACCOUNT", "LINE_OUTPUT", "LINE_CREDENTIAL_BACKEND"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def store(backend):
    """Shared in-memory CredentialStore fixture."""
    return CredentialStore(backend)
