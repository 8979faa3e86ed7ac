"""Typed values for the interactive login flow."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class SessionState(enum.Enum):
    """Lifecycle of one login session."""

    IDLE = "idle"
    LISTENING = "listening"
    AWAITING_SUBMISSION = "awaiting_submission"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {SessionState.COMPLETED, SessionState.FAILED, SessionState.TIMED_OUT, SessionState.CANCELLED}
)


@dataclass
class LoginResult:
    """Result of a completed login."""

    account_name: str
    credential: str = field(repr=False)
    bot_name: str = ""
