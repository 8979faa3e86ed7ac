"""Browser-based login flow for linecli.

A short-lived HTTP server on a loopback port serves a page where the operator
pastes a channel access token. The page posts it back with a one-time session
token; the first matching submission is written to the credential store and
the server is torn down.

Flow:
1. Bind 127.0.0.1 on an ephemeral port and generate the session token
2. Open the browser on the local page
3. Wait for a submission carrying the session token, a timeout, or cancellation
4. Shut the server down on every terminal path, including success

While the page is open it can also check a token without saving it and
list, promote or remove stored accounts; those JSON calls need the same
session token.
"""

from __future__ import annotations

import hmac
import http.server
import json
import logging
import secrets
import threading
import time
import webbrowser
from typing import Any, Callable
from urllib.parse import parse_qs, urlparse

import httpx

from ..exceptions import (
    InvalidInputError,
    LineCLIError,
    LoginCancelledError,
    LoginTimeoutError,
    NotFoundError,
    PortBindFailedError,
)
from ..secrets import CredentialStore, normalize_name
from . import templates
from .constants import (
    ACCOUNTS_PATH,
    AUTH_TIMEOUT_SECONDS,
    CALLBACK_HOST,
    DEFAULT_ACCOUNT_NAME,
    ERROR_AUTH_CANCELLED,
    ERROR_AUTH_TIMEOUT,
    ERROR_BAD_REQUEST,
    ERROR_EMPTY_CREDENTIAL,
    ERROR_INVALID_SESSION,
    ERROR_NAME_REQUIRED,
    ERROR_SESSION_FINISHED,
    ERROR_VERIFY_DISABLED,
    MAX_BODY_BYTES,
    POLL_INTERVAL_SECONDS,
    REMOVE_ACCOUNT_PATH,
    SESSION_HEADER,
    SET_PRIMARY_PATH,
    SHUTDOWN_JOIN_SECONDS,
    SUBMIT_PATH,
    VALIDATE_PATH,
)
from .types import LoginResult, SessionState

__all__ = ["SetupServer", "run_login_flow"]

logger = logging.getLogger(__name__)

TokenVerifier = Callable[[str], str]


class _Session:
    """State of one login, shared by the waiting caller and request handlers.

    Only one terminal transition ever happens: the first call to ``finish``
    wins and every later one is a no-op.
    """

    def __init__(self, token: str) -> None:
        self.token = token
        self.state = SessionState.IDLE
        self.result: LoginResult | None = None
        self.error: BaseException | None = None
        self.lock = threading.RLock()
        self.finished = threading.Event()

    def advance(self, frm: SessionState, to: SessionState) -> None:
        with self.lock:
            if self.state is frm:
                self.state = to

    def finish(
        self,
        state: SessionState,
        *,
        result: LoginResult | None = None,
        error: BaseException | None = None,
    ) -> bool:
        with self.lock:
            if self.state.is_terminal:
                return False
            self.state = state
            self.result = result
            self.error = error
            self.finished.set()
            return True

    def token_matches(self, candidate: str) -> bool:
        return hmac.compare_digest(candidate.encode(), self.token.encode())


class _LoginHTTPServer(http.server.ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], owner: "SetupServer") -> None:
        self.owner = owner
        super().__init__(address, _LoginHandler)


class _LoginHandler(http.server.BaseHTTPRequestHandler):
    """HTTP handler for the setup page, its submission and account actions."""

    server: _LoginHTTPServer

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("Login server: %s", format % args)

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        owner = self.server.owner
        if parsed.path == "/favicon.ico":
            self.send_response(204)
            self.end_headers()
            return
        if parsed.path == ACCOUNTS_PATH:
            fields = {k: v[0] for k, v in parse_qs(parsed.query).items()}
            self._send_json(*owner._handle_list_accounts(self._with_header_token(fields)))
            return
        if parsed.path != "/":
            self.send_error(404)
            return

        session = owner._session
        if session.state.is_terminal:
            self._send_html(200, templates.finished_page())
            return

        session.advance(SessionState.LISTENING, SessionState.AWAITING_SUBMISSION)
        self._send_html(200, templates.setup_page(session.token, owner.account_name))

    def do_POST(self) -> None:
        owner = self.server.owner
        path = urlparse(self.path).path
        json_routes = {
            VALIDATE_PATH: owner._handle_validate,
            SET_PRIMARY_PATH: owner._handle_set_primary,
            REMOVE_ACCOUNT_PATH: owner._handle_remove_account,
        }
        if path != SUBMIT_PATH and path not in json_routes:
            self.send_error(404)
            return

        fields = self._read_fields()
        if fields is None:
            if path == SUBMIT_PATH:
                self._send_html(400, templates.error_page(ERROR_BAD_REQUEST))
            else:
                self._send_json(400, {"success": False, "error": ERROR_BAD_REQUEST})
            return

        fields = self._with_header_token(fields)
        if path == SUBMIT_PATH:
            self._send_html(*owner._handle_submission(fields))
        else:
            self._send_json(*json_routes[path](fields))

    def _with_header_token(self, fields: dict[str, str]) -> dict[str, str]:
        if "session_token" not in fields and self.headers.get(SESSION_HEADER):
            fields = {**fields, "session_token": self.headers[SESSION_HEADER]}
        return fields

    def _read_fields(self) -> dict[str, str] | None:
        try:
            length = int(self.headers.get("Content-Length", "0"))
        except ValueError:
            return None
        if length <= 0 or length > MAX_BODY_BYTES:
            return None

        raw = self.rfile.read(length)
        content_type = self.headers.get("Content-Type", "")
        try:
            if content_type.startswith("application/json"):
                data = json.loads(raw)
                if not isinstance(data, dict):
                    return None
                return {k: v for k, v in data.items() if isinstance(v, str)}
            params = parse_qs(raw.decode(), keep_blank_values=True)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
        return {k: v[0] for k, v in params.items()}

    def _send_html(self, code: int, body: str) -> None:
        self._send(code, "text/html; charset=utf-8", body.encode())

    def _send_json(self, code: int, payload: dict[str, Any]) -> None:
        self._send(code, "application/json", json.dumps(payload).encode())

    def _send(self, code: int, content_type: str, body: bytes) -> None:
        self.send_response(code)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-store")
        self.end_headers()
        self.wfile.write(body)


class SetupServer:
    """Runs one interactive login session.

    Args:
        store: Credential store the new account is written to.
        timeout: Seconds to wait for a valid submission.
        host: Loopback address to bind.
        open_browser: Open the local page in the default browser.
        verify_token: Optional callable that checks a token and returns the
            bot display name; an error keeps the session open so the operator
            can correct the token.
        announce: Optional callable receiving the local URL once bound.
        account_name: Prefills the account name field on the page.

    Besides the submission, the page can check a token without saving it
    and list, promote or remove stored accounts. Those calls carry the same
    session token and never change the session state.
    """

    def __init__(
        self,
        store: CredentialStore,
        *,
        timeout: float = AUTH_TIMEOUT_SECONDS,
        host: str = CALLBACK_HOST,
        open_browser: bool = True,
        verify_token: TokenVerifier | None = None,
        announce: Callable[[str], None] | None = None,
        account_name: str = "",
    ) -> None:
        self.store = store
        self.timeout = timeout
        self.host = host
        self.open_browser = open_browser
        self.verify_token = verify_token
        self.announce = announce
        self.account_name = account_name
        self._session = _Session(secrets.token_urlsafe(32))
        self._httpd: _LoginHTTPServer | None = None

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def listen_address(self) -> tuple[str, int] | None:
        if self._httpd is None:
            return None
        host, port = self._httpd.server_address[:2]
        return str(host), int(port)

    @property
    def url(self) -> str | None:
        address = self.listen_address
        if address is None:
            return None
        return f"http://{address[0]}:{address[1]}/"

    def cancel(self) -> None:
        """Cancel a running login, unblocking start() immediately."""
        if self._session.finish(SessionState.CANCELLED):
            logger.info("Login cancelled")

    def start(self, cancel_event: threading.Event | None = None) -> LoginResult:
        """Serve the login page and block until the session ends.

        Returns the LoginResult once the account has been stored.

        Raises:
            PortBindFailedError: the local server could not bind.
            LoginTimeoutError: no valid submission before the timeout.
            LoginCancelledError: cancel_event was set, cancel() was called,
                or the wait was interrupted.
            StoreError: the store rejected the write.
        """
        session = self._session
        with session.lock:
            if session.state is SessionState.CANCELLED:
                raise LoginCancelledError(ERROR_AUTH_CANCELLED)
            if session.state is not SessionState.IDLE:
                raise RuntimeError("a SetupServer runs a single login session")
            session.state = SessionState.LISTENING

        try:
            httpd = _LoginHTTPServer((self.host, 0), self)
        except OSError as e:
            error = PortBindFailedError(f"failed to start local server: {e}")
            session.finish(SessionState.FAILED, error=error)
            raise error from e

        self._httpd = httpd
        logger.info("Login server listening on %s", self.url)

        server_thread = threading.Thread(target=httpd.serve_forever, daemon=True)
        server_thread.start()

        try:
            if self.announce is not None:
                self.announce(self.url)
            self._launch_browser()
            self._wait(cancel_event)
        finally:
            httpd.shutdown()
            server_thread.join(timeout=SHUTDOWN_JOIN_SECONDS)
            httpd.server_close()

        return self._outcome()

    def _launch_browser(self) -> None:
        if not self.open_browser:
            return
        try:
            opened = webbrowser.open(self.url)
        except webbrowser.Error as e:
            logger.debug("Browser launch failed: %s", e)
            opened = False
        if not opened:
            logger.warning("Could not open browser. Open this URL manually:\n  %s", self.url)

    def _wait(self, cancel_event: threading.Event | None) -> None:
        session = self._session
        deadline = time.monotonic() + self.timeout
        try:
            while not session.finished.wait(POLL_INTERVAL_SECONDS):
                if cancel_event is not None and cancel_event.is_set():
                    self.cancel()
                elif time.monotonic() >= deadline:
                    if session.finish(SessionState.TIMED_OUT):
                        logger.warning("Login timed out after %ss", self.timeout)
        except KeyboardInterrupt:
            self.cancel()

    def _outcome(self) -> LoginResult:
        session = self._session
        if session.state is SessionState.COMPLETED and session.result is not None:
            return session.result
        if session.state is SessionState.TIMED_OUT:
            raise LoginTimeoutError(ERROR_AUTH_TIMEOUT)
        if session.state is SessionState.CANCELLED:
            raise LoginCancelledError(ERROR_AUTH_CANCELLED)
        if session.error is not None:
            raise session.error
        raise RuntimeError(f"login ended in unexpected state: {session.state.value}")

    def _check_token(self, credential: str) -> tuple[str, str | None]:
        """Run verify_token; return (bot_name, error message or None)."""
        if self.verify_token is None:
            return "", None
        try:
            return self.verify_token(credential), None
        except (LineCLIError, httpx.HTTPError, ValueError) as e:
            logger.info("Token verification failed: %s", e)
            return "", f"Connection failed: {e}"

    def _handle_submission(self, fields: dict[str, str]) -> tuple[int, str]:
        """Process a POST to /submit and return (status, html)."""
        session = self._session

        # Token check comes before any state change.
        if not session.token_matches(fields.get("session_token", "")):
            logger.warning("Rejected submission with a mismatched session token")
            return 400, templates.error_page(ERROR_INVALID_SESSION)

        if session.state.is_terminal:
            return 200, templates.finished_page()

        credential = fields.get("credential", "").strip()
        if not credential:
            return 400, templates.error_page(ERROR_EMPTY_CREDENTIAL)

        account_name = normalize_name(fields.get("account_name", "")) or DEFAULT_ACCOUNT_NAME

        bot_name, error = self._check_token(credential)
        if error is not None:
            return 400, templates.error_page(error)

        with session.lock:
            if session.state.is_terminal:
                return 200, templates.finished_page()
            try:
                self.store.set(account_name, credential, bot_name)
            except InvalidInputError as e:
                return 400, templates.error_page(str(e))
            except LineCLIError as e:
                logger.error("Failed to save credentials: %s", e)
                session.finish(SessionState.FAILED, error=e)
                return 500, templates.error_page(f"Failed to save credentials: {e}")

            session.finish(
                SessionState.COMPLETED,
                result=LoginResult(account_name=account_name, credential=credential, bot_name=bot_name),
            )

        logger.info("Login completed for account %s", account_name)
        return 200, templates.success_page(account_name, bot_name)

    def _reject(self, fields: dict[str, str]) -> tuple[int, dict[str, Any]] | None:
        """Session checks shared by the JSON endpoints."""
        session = self._session
        if not session.token_matches(fields.get("session_token", "")):
            logger.warning("Rejected page request with a mismatched session token")
            return 400, {"success": False, "error": ERROR_INVALID_SESSION}
        if session.state.is_terminal:
            return 409, {"success": False, "error": ERROR_SESSION_FINISHED}
        return None

    def _handle_validate(self, fields: dict[str, str]) -> tuple[int, dict[str, Any]]:
        """Check a token against the API without saving it."""
        rejected = self._reject(fields)
        if rejected is not None:
            return rejected

        credential = fields.get("credential", "").strip()
        if not credential:
            return 400, {"success": False, "error": ERROR_EMPTY_CREDENTIAL}
        if self.verify_token is None:
            return 200, {"success": False, "error": ERROR_VERIFY_DISABLED}

        bot_name, error = self._check_token(credential)
        if error is not None:
            return 200, {"success": False, "error": error}
        return 200, {"success": True, "message": "Connection successful!", "bot_name": bot_name}

    def _handle_list_accounts(self, fields: dict[str, str]) -> tuple[int, dict[str, Any]]:
        rejected = self._reject(fields)
        if rejected is not None:
            return rejected
        try:
            records = self.store.list()
        except LineCLIError as e:
            logger.error("Failed to list accounts: %s", e)
            return 500, {"success": False, "error": f"Failed to list accounts: {e}"}
        return 200, {"success": True, "accounts": [r.to_dict() for r in records]}

    def _handle_set_primary(self, fields: dict[str, str]) -> tuple[int, dict[str, Any]]:
        return self._account_action(fields, self.store.set_primary, "set primary")

    def _handle_remove_account(self, fields: dict[str, str]) -> tuple[int, dict[str, Any]]:
        return self._account_action(fields, self.store.delete, "remove account")

    def _account_action(
        self,
        fields: dict[str, str],
        action: Callable[[str], None],
        label: str,
    ) -> tuple[int, dict[str, Any]]:
        rejected = self._reject(fields)
        if rejected is not None:
            return rejected

        name = normalize_name(fields.get("name", ""))
        if not name:
            return 400, {"success": False, "error": ERROR_NAME_REQUIRED}
        try:
            action(name)
        except NotFoundError as e:
            return 404, {"success": False, "error": str(e)}
        except LineCLIError as e:
            logger.error("Failed to %s: %s", label, e)
            return 500, {"success": False, "error": f"Failed to {label}: {e}"}

        logger.info("Login page: %s %s", label, name)
        return 200, {"success": True, "name": name}


def run_login_flow(store: CredentialStore, **kwargs: Any) -> LoginResult:
    """Run one interactive login and return its result.

    Keyword arguments are passed to SetupServer.
    """
    return SetupServer(store, **kwargs).start()
