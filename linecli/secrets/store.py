"""Multi-account credential store.

One backend entry per account, keyed ``token:<name>`` inside a fixed
namespace. Primary status and all metadata live inside each account's
record; there is no separate index object, so answering "which account is
primary" means reading every record.

Mutations on one store instance are serialized by a lock held for the whole
read-modify-write. Across processes the store only gets whatever atomicity the
backend offers for a single key write: two invocations racing on set_primary
may interleave, and the last writer wins per key.

The keyring backend adds one more cross-process hazard. Its key index is a
single entry rewritten by every put and delete, so two processes adding
accounts at the same time can each write an index missing the other's key.
The record itself survives in the keychain but is no longer listed until it
is set again.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from ..exceptions import InvalidInputError, NotFoundError
from .backends import SecretBackend
from .types import AccountRecord, mask_token

__all__ = ["CredentialStore", "DEFAULT_NAMESPACE", "normalize_name"]

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "line-cli"
TOKEN_KEY_PREFIX = "token:"


def normalize_name(name: str) -> str:
    """Trim and lower-case an account name ("MyBot" and "mybot" are one account)."""
    return name.strip().lower()


def _token_key(name: str) -> str:
    return f"{TOKEN_KEY_PREFIX}{name}"


def _parse_token_key(key: str) -> str | None:
    if not key.startswith(TOKEN_KEY_PREFIX):
        return None
    rest = key[len(TOKEN_KEY_PREFIX) :]
    return rest if rest.strip() else None


class CredentialStore:
    """Durable mapping from account name to AccountRecord."""

    def __init__(self, backend: SecretBackend, namespace: str = DEFAULT_NAMESPACE) -> None:
        self.backend = backend
        self.namespace = namespace
        self._lock = threading.RLock()

    def _require_name(self, name: str) -> str:
        normalized = normalize_name(name or "")
        if not normalized:
            raise InvalidInputError("account name cannot be empty")
        return normalized

    def _read(self, name: str) -> AccountRecord:
        try:
            data = self.backend.get(self.namespace, _token_key(name))
        except NotFoundError:
            raise NotFoundError(name) from None
        return AccountRecord.from_json(name, data)

    def _write(self, record: AccountRecord) -> None:
        self.backend.put(self.namespace, _token_key(record.name), record.to_json())

    def _read_all(self) -> list[AccountRecord]:
        records = []
        for key in self.backend.list_keys(self.namespace):
            name = _parse_token_key(key)
            if name is None:
                continue
            try:
                records.append(self._read(name))
            except NotFoundError:
                # Removed by another process between list_keys and get.
                logger.debug("Account %s disappeared while listing", name)
        records.sort(key=lambda r: r.name)
        return records

    def set(self, name: str, credential: str, bot_name: str = "") -> None:
        """Insert or overwrite the record for ``name``.

        A new record becomes primary only when it is the first account in the
        store. Overwriting keeps ``created_at``, ``is_primary`` and any unknown
        payload fields, and replaces the credential and bot name.
        """
        name = self._require_name(name)
        if not credential or not credential.strip():
            raise InvalidInputError("credential cannot be empty")

        with self._lock:
            try:
                existing = self._read(name)
            except NotFoundError:
                existing = None

            if existing is not None:
                record = AccountRecord(
                    name=name,
                    credential=credential,
                    bot_name=bot_name,
                    is_primary=existing.is_primary,
                    created_at=existing.created_at or datetime.now(timezone.utc),
                    extra=existing.extra,
                )
            else:
                record = AccountRecord(
                    name=name,
                    credential=credential,
                    bot_name=bot_name,
                    is_primary=not self._read_all(),
                    created_at=datetime.now(timezone.utc),
                )

            self._write(record)
            logger.info("Stored credentials for account %s (%s)", name, mask_token(credential))

    def get(self, name: str) -> AccountRecord:
        name = self._require_name(name)
        with self._lock:
            return self._read(name)

    def delete(self, name: str) -> None:
        """Remove an account. No other account is promoted to primary."""
        name = self._require_name(name)
        with self._lock:
            try:
                self.backend.delete(self.namespace, _token_key(name))
            except NotFoundError:
                raise NotFoundError(name) from None
            logger.info("Deleted credentials for account %s", name)

    def list(self) -> list[AccountRecord]:
        """All accounts, sorted by name."""
        with self._lock:
            return self._read_all()

    def set_primary(self, name: str) -> None:
        """Make ``name`` the only primary account.

        Every record is read before anything is written. Old primaries are
        cleared before the new one is set, so a crash part-way leaves no
        primary (and get_primary falls back) rather than two.
        """
        name = self._require_name(name)
        with self._lock:
            records = self._read_all()
            target = next((r for r in records if r.name == name), None)
            if target is None:
                raise NotFoundError(name)

            for record in records:
                if record.name != name and record.is_primary:
                    record.is_primary = False
                    self._write(record)

            if not target.is_primary:
                target.is_primary = True
                self._write(target)
            logger.info("Primary account set to %s", name)

    def get_primary_source(self) -> tuple[str, bool]:
        """Return ``(name, explicit)``.

        ``explicit`` is False when no account is marked primary and the name
        is the fallback: the lexicographically first account. Returns
        ``("", False)`` for an empty store.
        """
        records = self.list()
        if not records:
            return "", False
        for record in records:
            if record.is_primary:
                return record.name, True
        return records[0].name, False

    def get_primary(self) -> str:
        """Name of the primary account.

        Falls back to the lexicographically first account when none is marked
        primary, and to "" when the store is empty.
        """
        return self.get_primary_source()[0]
