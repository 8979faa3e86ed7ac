"""HTML pages served by the local login server."""

from __future__ import annotations

import html

from .constants import (
    ACCOUNTS_PATH,
    REMOVE_ACCOUNT_PATH,
    SESSION_HEADER,
    SET_PRIMARY_PATH,
    SUBMIT_PATH,
    VALIDATE_PATH,
)


def _page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>LINE CLI - {html.escape(title)}</title>
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            display: flex;
            justify-content: center;
            align-items: center;
            min-height: 100vh;
            margin: 0;
            background-color: #0f0f0f;
            color: #ffffff;
        }}
        .container {{
            padding: 2rem;
            background: #1a1a1a;
            border-radius: 12px;
            box-shadow: 0 4px 12px rgba(0, 0, 0, 0.4);
            width: 100%;
            max-width: 420px;
        }}
        h1 {{ font-size: 1.4rem; margin: 0 0 1rem; }}
        p {{ color: #b3b3b3; }}
        label {{ display: block; margin: 1rem 0 0.25rem; color: #b3b3b3; font-size: 0.9rem; }}
        input {{
            width: 100%;
            box-sizing: border-box;
            padding: 0.6rem;
            border: 1px solid #333333;
            border-radius: 6px;
            background: #252525;
            color: #ffffff;
        }}
        button {{
            margin-top: 1.5rem;
            width: 100%;
            padding: 0.7rem;
            border: none;
            border-radius: 6px;
            background: #06c755;
            color: #ffffff;
            font-weight: 600;
            cursor: pointer;
        }}
        button.secondary {{ background: #333333; }}
        button.small {{ width: auto; margin: 0 0 0 0.5rem; padding: 0.3rem 0.6rem; font-size: 0.8rem; background: #333333; }}
        ul {{ list-style: none; padding: 0; }}
        li {{ display: flex; align-items: center; justify-content: space-between; padding: 0.4rem 0; border-bottom: 1px solid #252525; }}
        li span {{ flex: 1; }}
        .error {{ color: #ef4444; }}
        .success {{ color: #06c755; }}
    </style>
</head>
<body>
    <div class="container">
        {body}
    </div>
</body>
</html>"""


# Plain string (not an f-string): the braces are JavaScript.
_SETUP_SCRIPT = """
<script>
const sessionToken = document.querySelector('input[name="session_token"]').value;

async function callJSON(path, body) {
    const resp = await fetch(path, {
        method: "POST",
        headers: {"Content-Type": "application/json", "%(header)s": sessionToken},
        body: JSON.stringify(body),
    });
    return resp.json();
}

function showStatus(text, ok) {
    const el = document.getElementById("status");
    el.textContent = text;
    el.className = ok ? "success" : "error";
}

async function testConnection() {
    const data = await callJSON("%(validate)s", {credential: document.getElementById("credential").value});
    showStatus(data.success ? "Connected to " + (data.bot_name || "your bot") : data.error, data.success);
}

function accountAction(label, path, name) {
    const btn = document.createElement("button");
    btn.type = "button";
    btn.className = "small";
    btn.textContent = label;
    btn.onclick = async () => {
        const data = await callJSON(path, {name: name});
        if (!data.success) {
            showStatus(data.error, false);
        }
        loadAccounts();
    };
    return btn;
}

async function loadAccounts() {
    const resp = await fetch("%(accounts)s", {headers: {"%(header)s": sessionToken}});
    const data = await resp.json();
    const list = document.getElementById("accounts");
    list.replaceChildren();
    for (const acct of data.accounts || []) {
        const item = document.createElement("li");
        const label = document.createElement("span");
        label.textContent = acct.name + (acct.bot_name ? " - " + acct.bot_name : "") + (acct.is_primary ? " (primary)" : "");
        item.appendChild(label);
        if (!acct.is_primary) {
            item.appendChild(accountAction("Make primary", "%(set_primary)s", acct.name));
        }
        item.appendChild(accountAction("Remove", "%(remove)s", acct.name));
        list.appendChild(item);
    }
    document.getElementById("accounts-section").hidden = list.children.length === 0;
}

document.getElementById("test-connection").onclick = testConnection;
loadAccounts();
</script>""" % {
    "header": SESSION_HEADER,
    "validate": VALIDATE_PATH,
    "accounts": ACCOUNTS_PATH,
    "set_primary": SET_PRIMARY_PATH,
    "remove": REMOVE_ACCOUNT_PATH,
}


def setup_page(session_token: str, account_name: str = "") -> str:
    """Credential-entry form plus the account list.

    The form posts back with the session token as a hidden field and works
    without JavaScript. The script adds the connection check and the
    set-primary and remove actions.
    """
    token = html.escape(session_token, quote=True)
    name = html.escape(account_name, quote=True)
    return _page(
        "Connect Your Account",
        f"""<h1>Connect your LINE Official Account</h1>
        <p>Paste the channel access token from the LINE Developers Console.</p>
        <form method="post" action="{SUBMIT_PATH}">
            <input type="hidden" name="session_token" value="{token}">
            <label for="account_name">Account name</label>
            <input id="account_name" name="account_name" value="{name}" placeholder="default" autocomplete="off">
            <label for="credential">Channel access token</label>
            <input id="credential" name="credential" type="password" required autocomplete="off">
            <button type="button" id="test-connection" class="secondary">Test connection</button>
            <button type="submit">Save</button>
        </form>
        <p id="status" role="status"></p>
        <div id="accounts-section" hidden>
            <h2>Saved accounts</h2>
            <ul id="accounts"></ul>
        </div>
        {_SETUP_SCRIPT}""",
    )


def success_page(account_name: str, bot_name: str = "") -> str:
    bot = f" ({html.escape(bot_name)})" if bot_name else ""
    return _page(
        "Connected",
        f"""<h1 class="success">Account connected</h1>
        <p>Saved <strong>{html.escape(account_name)}</strong>{bot}.</p>
        <p>You can close this window and return to your terminal.</p>""",
    )


def finished_page() -> str:
    return _page(
        "Finished",
        """<h1>Login already finished</h1>
        <p>This login session is over. You can close this window.</p>""",
    )


def error_page(message: str) -> str:
    return _page(
        "Error",
        f"""<h1 class="error">Something went wrong</h1>
        <p>{html.escape(message)}</p>
        <p><a href="/" style="color:#06c755">Try again</a></p>""",
    )
