"""Secure key-value backends the credential store is built on.

A backend stores opaque bytes addressed by ``(namespace, key)``. Backends
translate their native failures into StoreUnavailableError or
PermissionDeniedError and never retry.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Protocol
from urllib.parse import quote, unquote

import keyring
import keyring.backends.fail
import keyring.backends.null
from keyring.errors import KeyringError, KeyringLocked

from ..exceptions import NotFoundError, PermissionDeniedError, StoreUnavailableError

__all__ = ["SecretBackend", "MemoryBackend", "FileBackend", "KeyringBackend", "keyring_available"]


class SecretBackend(Protocol):
    """Opaque secure key-value service."""

    def put(self, namespace: str, key: str, data: bytes) -> None: ...

    def get(self, namespace: str, key: str) -> bytes: ...

    def delete(self, namespace: str, key: str) -> None: ...

    def list_keys(self, namespace: str) -> list[str]: ...


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except KeyringLocked as e:
        raise StoreUnavailableError(f"failed to {action}: keyring is locked") from e
    except PermissionError as e:
        raise PermissionDeniedError(f"failed to {action}: {e}") from e
    except (KeyringError, OSError) as e:
        raise StoreUnavailableError(f"failed to {action}: {e}") from e


class MemoryBackend:
    """In-process backend, lost when the process exits."""

    def __init__(self) -> None:
        self._data: dict[tuple[str, str], bytes] = {}
        self._lock = threading.Lock()

    def put(self, namespace: str, key: str, data: bytes) -> None:
        with self._lock:
            self._data[(namespace, key)] = bytes(data)

    def get(self, namespace: str, key: str) -> bytes:
        with self._lock:
            try:
                return self._data[(namespace, key)]
            except KeyError:
                raise NotFoundError(key) from None

    def delete(self, namespace: str, key: str) -> None:
        with self._lock:
            if self._data.pop((namespace, key), None) is None:
                raise NotFoundError(key)

    def list_keys(self, namespace: str) -> list[str]:
        with self._lock:
            return [key for ns, key in self._data if ns == namespace]


class FileBackend:
    """One file per key under ``<directory>/<namespace>/``.

    - Directories: 0700 (owner read/write/execute only)
    - Files: 0600 (owner read/write only)
    - Atomic: writes to temp file in same dir, then os.replace()
    """

    SUFFIX = ".cred"

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def _namespace_dir(self, namespace: str) -> Path:
        return self.directory / quote(namespace, safe="")

    def _path(self, namespace: str, key: str) -> Path:
        return self._namespace_dir(namespace) / (quote(key, safe="") + self.SUFFIX)

    def put(self, namespace: str, key: str, data: bytes) -> None:
        ns_dir = self._namespace_dir(namespace)
        with _translate_errors("store credentials"):
            ns_dir.mkdir(parents=True, exist_ok=True)
            os.chmod(self.directory, 0o700)
            os.chmod(ns_dir, 0o700)

            fd, tmp_path = tempfile.mkstemp(dir=ns_dir, prefix=".cred_", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.chmod(tmp_path, 0o600)
                os.replace(tmp_path, self._path(namespace, key))
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise

    def get(self, namespace: str, key: str) -> bytes:
        path = self._path(namespace, key)
        with _translate_errors("read credentials"):
            try:
                return path.read_bytes()
            except FileNotFoundError:
                raise NotFoundError(key) from None

    def delete(self, namespace: str, key: str) -> None:
        path = self._path(namespace, key)
        with _translate_errors("delete credentials"):
            try:
                path.unlink()
            except FileNotFoundError:
                raise NotFoundError(key) from None

    def list_keys(self, namespace: str) -> list[str]:
        ns_dir = self._namespace_dir(namespace)
        with _translate_errors("list accounts"):
            if not ns_dir.is_dir():
                return []
            return [
                unquote(entry.name[: -len(self.SUFFIX)])
                for entry in ns_dir.iterdir()
                if entry.name.endswith(self.SUFFIX) and not entry.name.startswith(".")
            ]


class KeyringBackend:
    """Backend on the OS keychain via the ``keyring`` library.

    The namespace is the keyring service and the key is the username.
    ``keyring`` cannot enumerate entries, so the backend keeps the list of
    its own keys under a reserved username in the same service.
    """

    INDEX_KEY = "__keys__"

    def __init__(self, keyring_backend: Any | None = None) -> None:
        self._keyring = keyring_backend if keyring_backend is not None else keyring.get_keyring()

    def _read_index(self, namespace: str) -> list[str]:
        raw = self._keyring.get_password(namespace, self.INDEX_KEY)
        if not raw:
            return []
        try:
            keys = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreUnavailableError("failed to list accounts: corrupt key index") from e
        if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
            raise StoreUnavailableError("failed to list accounts: corrupt key index")
        return keys

    def _write_index(self, namespace: str, keys: list[str]) -> None:
        self._keyring.set_password(namespace, self.INDEX_KEY, json.dumps(sorted(set(keys))))

    def put(self, namespace: str, key: str, data: bytes) -> None:
        if key == self.INDEX_KEY:
            raise ValueError(f"{key!r} is reserved")
        with _translate_errors("store credentials"):
            keys = self._read_index(namespace)
            self._keyring.set_password(namespace, key, data.decode())
            if key not in keys:
                self._write_index(namespace, keys + [key])

    def get(self, namespace: str, key: str) -> bytes:
        with _translate_errors("read credentials"):
            value = self._keyring.get_password(namespace, key)
        if value is None:
            raise NotFoundError(key)
        return value.encode()

    def delete(self, namespace: str, key: str) -> None:
        with _translate_errors("delete credentials"):
            if self._keyring.get_password(namespace, key) is None:
                raise NotFoundError(key)
            self._keyring.delete_password(namespace, key)
            keys = self._read_index(namespace)
            if key in keys:
                self._write_index(namespace, [k for k in keys if k != key])

    def list_keys(self, namespace: str) -> list[str]:
        with _translate_errors("list accounts"):
            return self._read_index(namespace)


def keyring_available() -> bool:
    """True when ``keyring`` resolved to a backend that can hold secrets."""
    active = keyring.get_keyring()
    return not isinstance(active, (keyring.backends.fail.Keyring, keyring.backends.null.Keyring))
