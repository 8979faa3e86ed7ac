"""Interactive login for linecli.

Types are eager. The flow (pulls in http.server, threading, webbrowser) is
lazy so commands that only read the credential store don't pay for it.
"""

from .types import LoginResult, SessionState


def __getattr__(name: str):
    if name == "SetupServer":
        from .flow import SetupServer

        return SetupServer
    if name == "run_login_flow":
        from .flow import run_login_flow

        return run_login_flow
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "LoginResult",
    "SessionState",
    "SetupServer",
    "run_login_flow",
]
