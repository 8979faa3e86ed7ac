"""Credential storage for linecli."""

from __future__ import annotations

from ..config import Settings, data_dir
from ..exceptions import StoreUnavailableError
from .backends import FileBackend, KeyringBackend, MemoryBackend, SecretBackend, keyring_available
from .store import DEFAULT_NAMESPACE, CredentialStore, normalize_name
from .types import AccountRecord, mask_token

__all__ = [
    "AccountRecord",
    "CredentialStore",
    "DEFAULT_NAMESPACE",
    "FileBackend",
    "KeyringBackend",
    "MemoryBackend",
    "SecretBackend",
    "mask_token",
    "normalize_name",
    "open_store",
]


def open_store(settings: Settings) -> CredentialStore:
    """Open the credential store selected by ``settings.credential_backend``.

    ``auto`` uses the OS keychain when one is available and otherwise the
    file backend under the data directory.
    """
    backend_name = settings.credential_backend
    if backend_name == "auto":
        backend_name = "keyring" if keyring_available() else "file"

    backend: SecretBackend
    if backend_name == "keyring":
        if not keyring_available():
            raise StoreUnavailableError("failed to open keyring: no keychain backend available")
        backend = KeyringBackend()
    elif backend_name == "file":
        backend = FileBackend(data_dir() / "credentials")
    else:
        raise StoreUnavailableError(f"unknown credential backend: {backend_name}")

    return CredentialStore(backend)
