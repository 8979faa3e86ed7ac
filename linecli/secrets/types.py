"""Typed records kept in the credential store."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Payload fields owned by AccountRecord; anything else rides along in ``extra``.
_KNOWN_FIELDS = frozenset({"channel_access_token", "bot_name", "created_at", "is_primary"})


def mask_token(token: str) -> str:
    """Mask a token for display, keeping only the edges."""
    if len(token) >= 16:
        return token[:4] + "..." + token[-4:]
    if len(token) >= 8:
        return token[:4] + "..."
    return "***"


@dataclass
class AccountRecord:
    """One stored account.

    ``extra`` keeps payload fields this version does not interpret (for
    example ``channel_id`` and ``channel_secret`` written by older tools) so
    rewriting a record never drops them. It may hold secrets and is left out
    of ``repr`` and ``to_dict``.
    """

    name: str
    credential: str = field(repr=False)
    bot_name: str = ""
    is_primary: bool = False
    created_at: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    def to_json(self) -> bytes:
        payload = dict(self.extra)
        payload.update(
            {
                "channel_access_token": self.credential,
                "bot_name": self.bot_name,
                "created_at": self.created_at.isoformat() if self.created_at else None,
                "is_primary": self.is_primary,
            }
        )
        return json.dumps(payload).encode()

    @classmethod
    def from_json(cls, name: str, data: bytes) -> "AccountRecord":
        """Decode a stored payload.

        Payloads that are not a JSON record are legacy entries holding only
        the bare token; they come back without metadata.
        """
        try:
            parsed = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError):
            parsed = None

        if not isinstance(parsed, dict) or not isinstance(parsed.get("channel_access_token"), str):
            return cls(name=name, credential=data.decode(errors="replace").strip())

        created_at = None
        if parsed.get("created_at"):
            try:
                created_at = datetime.fromisoformat(parsed["created_at"])
            except (TypeError, ValueError):
                created_at = None

        return cls(
            name=name,
            credential=parsed["channel_access_token"],
            bot_name=parsed.get("bot_name") or "",
            is_primary=bool(parsed.get("is_primary", False)),
            created_at=created_at,
            extra={k: v for k, v in parsed.items() if k not in _KNOWN_FIELDS},
        )

    def to_dict(self) -> dict[str, object]:
        """Display form; never includes the credential."""
        return {
            "name": self.name,
            "bot_name": self.bot_name,
            "is_primary": self.is_primary,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
