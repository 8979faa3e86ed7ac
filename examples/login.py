#!/usr/bin/env python
"""
Connect a LINE Official Account from a script instead of the `line` CLI.

Runs the browser login, stores the channel access token under the given
account name, then prints every configured account and the bot behind the
primary one.

Usage:
    python examples/login.py --name work
    python examples/login.py --name work --backend file --no-browser
"""

import argparse
import logging
import sys

from linecli import LineClient, LineCLIError, open_store
from linecli.auth import run_login_flow
from linecli.client import verify_channel_token
from linecli.config import build_settings

logger = logging.getLogger("login-example")


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--name", default="default", help="Account name to store the token under")
    parser.add_argument("--backend", choices=["auto", "keyring", "file"], default=None)
    parser.add_argument("--no-browser", action="store_true", help="Only print the local URL")
    parser.add_argument("--timeout", type=int, default=300)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    try:
        store = open_store(build_settings(backend=args.backend))
        result = run_login_flow(
            store,
            timeout=args.timeout,
            open_browser=not args.no_browser,
            verify_token=verify_channel_token,
            announce=lambda url: print(f"Open {url} to paste your channel access token"),
        )
    except LineCLIError as e:
        logger.error("Login failed: %s", e)
        return 1

    logger.info("Stored account %s (%s)", result.account_name, result.bot_name or "no bot name")

    for record in store.list():
        marker = "*" if record.is_primary else " "
        print(f"{marker} {record.name:<16} {record.bot_name}")

    primary = store.get(store.get_primary())
    with LineClient(primary.credential) as client:
        info = client.get_bot_info()
    print(f"Primary bot: {info.get('displayName', '')} ({info.get('basicId', 'N/A')})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
