"""Tests for the browser-based login flow."""

from __future__ import annotations

import re
import threading
import time
from unittest.mock import MagicMock, patch

import httpx
import pytest

from linecli.auth import LoginResult, SessionState
from linecli.auth.flow import SetupServer, _LoginHTTPServer, run_login_flow
from linecli.exceptions import (
    AuthenticationError,
    LoginCancelledError,
    LoginTimeoutError,
    PortBindFailedError,
    StoreUnavailableError,
)

TOKEN_RE = re.compile(r'name="session_token" value="([^"]+)"')


class _Runner:
    """Runs SetupServer.start() on a background thread."""

    def __init__(self, server: SetupServer, cancel_event: threading.Event | None = None) -> None:
        self.server = server
        self.cancel_event = cancel_event
        self.result: LoginResult | None = None
        self.error: BaseException | None = None
        self.thread = threading.Thread(target=self._run, daemon=True)

    def _run(self) -> None:
        try:
            self.result = self.server.start(self.cancel_event)
        except BaseException as e:  # noqa: BLE001 - handed back to the test thread
            self.error = e

    def start(self) -> str:
        self.thread.start()
        deadline = time.monotonic() + 5
        while self.server.url is None:
            if time.monotonic() > deadline or not self.thread.is_alive():
                raise AssertionError("login server did not start")
            time.sleep(0.01)
        return self.server.url

    def join(self) -> None:
        self.thread.join(timeout=10)
        assert not self.thread.is_alive()


def _fetch_token(url: str) -> str:
    response = httpx.get(url)
    assert response.status_code == 200
    match = TOKEN_RE.search(response.text)
    assert match is not None
    return match.group(1)


def _submit(url: str, **fields: str) -> httpx.Response:
    return httpx.post(url + "submit", data=fields)


def _assert_port_released(url: str) -> None:
    with pytest.raises(httpx.ConnectError):
        httpx.get(url, timeout=1)


@pytest.fixture
def server(store):
    return SetupServer(store, timeout=10, open_browser=False)


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


class TestSuccessfulLogin:
    def test_page_embeds_session_token(self, server):
        runner = _Runner(server)
        url = runner.start()
        try:
            assert server.state is SessionState.LISTENING
            token = _fetch_token(url)
            assert len(token) >= 32
            assert server.state is SessionState.AWAITING_SUBMISSION
        finally:
            server.cancel()
            runner.join()

    def test_valid_submission_completes_and_stores(self, server, store):
        runner = _Runner(server)
        url = runner.start()
        token = _fetch_token(url)

        response = _submit(url, session_token=token, credential="tok-A", account_name="Work")
        runner.join()

        assert response.status_code == 200
        assert "Account connected" in response.text
        assert runner.error is None
        assert runner.result == LoginResult(account_name="work", credential="tok-A", bot_name="")
        assert server.state is SessionState.COMPLETED
        assert store.get("work").credential == "tok-A"
        _assert_port_released(url)

    def test_account_name_defaults_to_default(self, server, store):
        runner = _Runner(server)
        url = runner.start()
        token = _fetch_token(url)

        _submit(url, session_token=token, credential="tok-A")
        runner.join()

        assert runner.result.account_name == "default"
        assert store.get_primary() == "default"

    def test_json_submission(self, server, store):
        runner = _Runner(server)
        url = runner.start()
        token = _fetch_token(url)

        response = httpx.post(url + "submit", json={"session_token": token, "credential": "tok-J"})
        runner.join()

        assert response.status_code == 200
        assert store.get("default").credential == "tok-J"

    def test_verify_token_supplies_bot_name(self, store):
        verify = MagicMock(return_value="WorkBot")
        server = SetupServer(store, timeout=10, open_browser=False, verify_token=verify)
        runner = _Runner(server)
        url = runner.start()
        token = _fetch_token(url)

        _submit(url, session_token=token, credential="tok-B", account_name="work")
        runner.join()

        verify.assert_called_once_with("tok-B")
        assert runner.result.bot_name == "WorkBot"
        assert store.get("work").bot_name == "WorkBot"

    def test_announce_and_browser_receive_url(self, store):
        announced = []
        server = SetupServer(store, timeout=0.3, announce=announced.append)
        with patch("linecli.auth.flow.webbrowser.open", return_value=False) as mock_open:
            with pytest.raises(LoginTimeoutError):
                server.start()
        assert announced and announced[0].startswith("http://127.0.0.1:")
        mock_open.assert_called_once_with(announced[0])

    def test_run_login_flow_wrapper(self, store):
        with patch("linecli.auth.flow.SetupServer") as mock_cls:
            mock_cls.return_value.start.return_value = LoginResult("default", "tok")
            result = run_login_flow(store, timeout=5)
        mock_cls.assert_called_once_with(store, timeout=5)
        assert result.account_name == "default"


# ---------------------------------------------------------------------------
# Rejected submissions keep the session open
# ---------------------------------------------------------------------------


class TestRejectedSubmissions:
    def test_wrong_token_is_rejected_without_state_change(self, server, store):
        runner = _Runner(server)
        url = runner.start()
        try:
            token = _fetch_token(url)
            response = _submit(url, session_token=token + "x", credential="tok-A")
            assert response.status_code == 400
            assert "Invalid session token" in response.text

            missing = _submit(url, credential="tok-A")
            assert missing.status_code == 400

            assert server.state is SessionState.AWAITING_SUBMISSION
            assert store.list() == []

            ok = _submit(url, session_token=token, credential="tok-A")
            assert ok.status_code == 200
        finally:
            runner.join()
        assert runner.result.credential == "tok-A"

    def test_empty_credential_is_rejected(self, server, store):
        runner = _Runner(server)
        url = runner.start()
        try:
            token = _fetch_token(url)
            response = _submit(url, session_token=token, credential="   ")
            assert response.status_code == 400
            assert not server.state.is_terminal
            assert store.list() == []
        finally:
            server.cancel()
            runner.join()
        assert isinstance(runner.error, LoginCancelledError)

    def test_failed_verification_keeps_session_open(self, store):
        verify = MagicMock(side_effect=AuthenticationError("Invalid or expired channel access token"))
        server = SetupServer(store, timeout=10, open_browser=False, verify_token=verify)
        runner = _Runner(server)
        url = runner.start()
        try:
            token = _fetch_token(url)
            response = _submit(url, session_token=token, credential="bad")
            assert response.status_code == 400
            assert "Connection failed" in response.text
            assert not server.state.is_terminal
            assert store.list() == []
        finally:
            server.cancel()
            runner.join()

    def test_malformed_body(self, server):
        runner = _Runner(server)
        url = runner.start()
        try:
            response = httpx.post(url + "submit", content=b"[1, 2]", headers={"Content-Type": "application/json"})
            assert response.status_code == 400
            assert not server.state.is_terminal
        finally:
            server.cancel()
            runner.join()

    def test_unknown_paths(self, server):
        runner = _Runner(server)
        url = runner.start()
        try:
            assert httpx.get(url + "favicon.ico").status_code == 204
            assert httpx.get(url + "nope").status_code == 404
            assert httpx.post(url + "nope", data={"a": "b"}).status_code == 404
        finally:
            server.cancel()
            runner.join()


# ---------------------------------------------------------------------------
# Single-fire completion
# ---------------------------------------------------------------------------


class TestSingleCompletion:
    def test_concurrent_duplicate_submissions_write_once(self, server, store):
        original_set = store.set

        def slow_set(*args, **kwargs):
            time.sleep(0.5)
            return original_set(*args, **kwargs)

        store.set = MagicMock(side_effect=slow_set)

        runner = _Runner(server)
        url = runner.start()
        token = _fetch_token(url)

        barrier = threading.Barrier(2)
        responses: list[httpx.Response] = []

        def post() -> None:
            barrier.wait()
            responses.append(_submit(url, session_token=token, credential="tok-A"))

        threads = [threading.Thread(target=post) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)
        runner.join()

        assert store.set.call_count == 1
        assert sorted(r.status_code for r in responses) == [200, 200]
        assert sum("Account connected" in r.text for r in responses) == 1
        assert sum("already finished" in r.text for r in responses) == 1

    def test_resubmission_after_completion_is_a_no_op(self, server, store):
        store.set = MagicMock(wraps=store.set)
        fields = {"session_token": server._session.token, "credential": "tok-A"}

        first = server._handle_submission(fields)
        second = server._handle_submission(fields)

        assert first[0] == 200 and "Account connected" in first[1]
        assert second[0] == 200 and "already finished" in second[1]
        assert store.set.call_count == 1
        assert server.state is SessionState.COMPLETED

    def test_start_twice_is_rejected(self, server):
        server._handle_submission({"session_token": server._session.token, "credential": "tok"})
        with pytest.raises(RuntimeError):
            server.start()


# ---------------------------------------------------------------------------
# Timeout, cancellation and failures
# ---------------------------------------------------------------------------


class TestTerminalPaths:
    def test_timeout(self, store):
        server = SetupServer(store, timeout=0.3, open_browser=False)
        runner = _Runner(server)
        url = runner.start()
        runner.join()

        assert isinstance(runner.error, LoginTimeoutError)
        assert server.state is SessionState.TIMED_OUT
        assert store.list() == []
        _assert_port_released(url)

    def test_cancel_event(self, server, store):
        cancel = threading.Event()
        runner = _Runner(server, cancel_event=cancel)
        url = runner.start()
        _fetch_token(url)

        cancel.set()
        runner.join()

        assert isinstance(runner.error, LoginCancelledError)
        assert server.state is SessionState.CANCELLED
        assert store.list() == []
        _assert_port_released(url)

    def test_cancel_method(self, server, store):
        runner = _Runner(server)
        url = runner.start()
        server.cancel()
        runner.join()

        assert isinstance(runner.error, LoginCancelledError)
        assert store.list() == []
        _assert_port_released(url)

    def test_cancel_before_start(self, server):
        server.cancel()
        with pytest.raises(LoginCancelledError):
            server.start()

    def test_submission_after_cancel_is_ignored(self, server, store):
        server.cancel()
        code, page = server._handle_submission({"session_token": server._session.token, "credential": "tok"})
        assert code == 200
        assert "already finished" in page
        assert store.list() == []

    def test_port_bind_failure(self, server):
        with patch.object(_LoginHTTPServer, "__init__", side_effect=OSError("Address already in use")):
            with pytest.raises(PortBindFailedError, match="already in use"):
                server.start()
        assert server.state is SessionState.FAILED

    def test_store_failure_fails_session(self, server, store):
        store.set = MagicMock(side_effect=StoreUnavailableError("failed to store credentials: keyring is locked"))
        runner = _Runner(server)
        url = runner.start()
        token = _fetch_token(url)

        response = _submit(url, session_token=token, credential="tok-A")
        runner.join()

        assert response.status_code == 500
        assert isinstance(runner.error, StoreUnavailableError)
        assert server.state is SessionState.FAILED
        _assert_port_released(url)


class TestSessionState:
    def test_terminal_states(self):
        terminal = {s for s in SessionState if s.is_terminal}
        assert terminal == {
            SessionState.COMPLETED,
            SessionState.FAILED,
            SessionState.TIMED_OUT,
            SessionState.CANCELLED,
        }


# ---------------------------------------------------------------------------
# Page actions: connection check and account management
# ---------------------------------------------------------------------------


def _call(url: str, path: str, token: str, body: dict) -> httpx.Response:
    return httpx.post(url + path.lstrip("/"), json=body, headers={"X-Session-Token": token})


class TestPageActions:
    def test_page_prefills_account_name(self, store):
        server = SetupServer(store, timeout=10, open_browser=False, account_name='work"><b>')
        runner = _Runner(server)
        url = runner.start()
        try:
            page = httpx.get(url).text
            assert 'value="work&quot;&gt;&lt;b&gt;"' in page
            assert 'work"><b>' not in page
        finally:
            server.cancel()
            runner.join()

    def test_verifier_value_error_keeps_session_open(self, store):
        verify = MagicMock(side_effect=ValueError("bad json"))
        server = SetupServer(store, timeout=10, open_browser=False, verify_token=verify)
        runner = _Runner(server)
        url = runner.start()
        try:
            token = _fetch_token(url)
            response = _submit(url, session_token=token, credential="tok-A")
            assert response.status_code == 400
            assert "Connection failed: bad json" in response.text
            assert not server.state.is_terminal
            assert store.list() == []
        finally:
            server.cancel()
            runner.join()

    def test_validate_checks_without_saving(self, store):
        verify = MagicMock(return_value="WorkBot")
        server = SetupServer(store, timeout=10, open_browser=False, verify_token=verify)
        runner = _Runner(server)
        url = runner.start()
        try:
            token = _fetch_token(url)
            response = _call(url, "/validate", token, {"credential": "tok-B"})
            assert response.status_code == 200
            assert response.json() == {"success": True, "message": "Connection successful!", "bot_name": "WorkBot"}
            verify.assert_called_once_with("tok-B")
            assert store.list() == []
            assert server.state is SessionState.AWAITING_SUBMISSION
        finally:
            server.cancel()
            runner.join()

    def test_validate_reports_rejected_token(self, store):
        verify = MagicMock(side_effect=AuthenticationError("Invalid or expired channel access token"))
        server = SetupServer(store, open_browser=False, verify_token=verify)
        code, payload = server._handle_validate({"session_token": server._session.token, "credential": "bad"})
        assert code == 200
        assert payload["success"] is False
        assert payload["error"].startswith("Connection failed")

    def test_validate_without_verifier(self, server):
        code, payload = server._handle_validate({"session_token": server._session.token, "credential": "tok"})
        assert code == 200
        assert payload["success"] is False
        assert "--no-verify" in payload["error"]

    def test_validate_requires_credential(self, server):
        code, payload = server._handle_validate({"session_token": server._session.token, "credential": " "})
        assert code == 400
        assert payload["success"] is False

    def test_list_accounts_never_returns_credentials(self, server, store):
        store.set("default", "tok-secret-A")
        store.set("work", "tok-secret-B", "WorkBot")
        runner = _Runner(server)
        url = runner.start()
        try:
            token = _fetch_token(url)
            by_header = httpx.get(url + "accounts", headers={"X-Session-Token": token})
            by_query = httpx.get(url + "accounts", params={"session_token": token})

            assert by_header.status_code == 200
            assert by_query.json() == by_header.json()
            accounts = by_header.json()["accounts"]
            assert [a["name"] for a in accounts] == ["default", "work"]
            assert [a["is_primary"] for a in accounts] == [True, False]
            assert "tok-secret" not in by_header.text
        finally:
            server.cancel()
            runner.join()

    def test_set_primary_and_remove(self, server, store):
        store.set("default", "tok-A")
        store.set("work", "tok-B")
        runner = _Runner(server)
        url = runner.start()
        try:
            token = _fetch_token(url)

            response = _call(url, "/set-primary", token, {"name": "Work"})
            assert response.status_code == 200
            assert response.json() == {"success": True, "name": "work"}
            assert store.get_primary() == "work"

            response = _call(url, "/remove-account", token, {"name": "default"})
            assert response.status_code == 200
            assert [r.name for r in store.list()] == ["work"]

            assert not server.state.is_terminal
        finally:
            server.cancel()
            runner.join()

    def test_account_actions_reject_wrong_token(self, server, store):
        store.set("default", "tok-A")
        store.set("work", "tok-B")
        runner = _Runner(server)
        url = runner.start()
        try:
            token = _fetch_token(url)
            bad = token + "x"

            assert httpx.get(url + "accounts", headers={"X-Session-Token": bad}).status_code == 400
            assert httpx.get(url + "accounts").status_code == 400
            assert _call(url, "/validate", bad, {"credential": "tok"}).status_code == 400
            assert _call(url, "/set-primary", bad, {"name": "work"}).status_code == 400
            assert _call(url, "/remove-account", bad, {"name": "work"}).status_code == 400

            assert store.get_primary() == "default"
            assert [r.name for r in store.list()] == ["default", "work"]
        finally:
            server.cancel()
            runner.join()

    def test_account_action_errors(self, server, store):
        token = server._session.token
        assert server._handle_set_primary({"session_token": token, "name": "ghost"})[0] == 404
        assert server._handle_remove_account({"session_token": token, "name": "ghost"})[0] == 404
        assert server._handle_remove_account({"session_token": token, "name": "  "})[0] == 400

    def test_store_failure_is_reported(self, server, store):
        store.list = MagicMock(side_effect=StoreUnavailableError("failed to list accounts: keyring is locked"))
        code, payload = server._handle_list_accounts({"session_token": server._session.token})
        assert code == 500
        assert "keyring is locked" in payload["error"]
        assert not server.state.is_terminal

    def test_actions_after_completion_are_refused(self, server, store):
        token = server._session.token
        server._handle_submission({"session_token": token, "credential": "tok-A"})

        assert server._handle_set_primary({"session_token": token, "name": "default"})[0] == 409
        assert server._handle_remove_account({"session_token": token, "name": "default"})[0] == 409
        assert store.get("default").credential == "tok-A"

    def test_malformed_action_body(self, server):
        runner = _Runner(server)
        url = runner.start()
        try:
            response = httpx.post(url + "set-primary", content=b"nope", headers={"Content-Type": "application/json"})
            assert response.status_code == 400
            assert response.json()["success"] is False
        finally:
            server.cancel()
            runner.join()
