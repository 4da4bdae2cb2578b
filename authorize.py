"""
One-time OAuth consent for a Gmail account.

Usage (from project root, with venv activated and GMAIL_CLIENT_ID /
GMAIL_CLIENT_SECRET in .env):

    newsletter-digest-auth --account=personal

Prints a GMAIL_REFRESH_TOKEN_<NAME>=<token> line to paste into .env.
"""

from __future__ import annotations

import argparse
import os
import sys
from typing import NoReturn, Optional

from dotenv import load_dotenv

from config.app_config import is_valid_account_name, refresh_token_env_var
from config.gmail_config import GmailConfig
from tools.browser import open_browser
from tools.callback_server import DONE, CallbackServer
from tools.gmail_auth import build_flow, exchange_code, get_authorization_url
from utils.logger import Logger, log_event


USAGE = (
    "Usage: newsletter-digest-auth --account=<name>\n"
    "Example: newsletter-digest-auth --account=personal"
)


class _UsageParser(argparse.ArgumentParser):
    # Usage errors exit 1 like the other input checks, not argparse's 2
    def error(self, message: str) -> NoReturn:
        print(f"{self.prog}: {message}", file=sys.stderr)
        print(USAGE, file=sys.stderr)
        sys.exit(1)


def _parse_args(argv: Optional[list[str]]) -> argparse.Namespace:
    ap = _UsageParser(
        prog="newsletter-digest-auth",
        description="Authorize a Gmail account and print its refresh token.",
    )
    ap.add_argument("-a", "--account", help="Account name (letters, digits, underscores)")
    return ap.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    logger = Logger().build()
    args = _parse_args(argv)

    account = (args.account or "").strip()
    if not account:
        print(USAGE, file=sys.stderr)
        return 1
    if not is_valid_account_name(account):
        print(
            f'Invalid account name "{account}": only letters, digits, and underscores allowed',
            file=sys.stderr,
        )
        print(USAGE, file=sys.stderr)
        return 1

    load_dotenv()
    client_id = os.environ.get("GMAIL_CLIENT_ID")
    client_secret = os.environ.get("GMAIL_CLIENT_SECRET")
    if not client_id or not client_secret:
        print("Missing GMAIL_CLIENT_ID or GMAIL_CLIENT_SECRET in .env", file=sys.stderr)
        return 1

    cfg = GmailConfig()
    flow = build_flow(client_id, client_secret, cfg)
    auth_url = get_authorization_url(flow)

    # Listen before the browser opens so a fast redirect can't miss us
    try:
        server = CallbackServer(lambda code: exchange_code(flow, code), cfg, logger=logger)
    except OSError as e:
        print(f"Could not listen on {cfg.redirect_uri}: {e}", file=sys.stderr)
        return 1

    print(f'Authorizing account "{account}"...\n')
    print("Opening browser for authorization...\n")
    print("If browser doesn't open, visit:\n")
    print(auth_url)
    print()

    if not open_browser(auth_url):
        print("Could not open browser automatically. Please visit the URL above.\n")

    print(f"Waiting for callback on {cfg.redirect_uri} ...\n")
    log_event(logger, "auth_waiting", account=account, redirect_uri=cfg.redirect_uri)

    try:
        state = server.wait_for_callback()
    except KeyboardInterrupt:
        print("\nAborted.", file=sys.stderr)
        return 130

    if state != DONE:
        print("Token exchange failed. See the error above, then run this command again.", file=sys.stderr)
        return 1

    print(f'Authorization successful for account "{account}"!\n')
    print("Add this to your .env file:\n")
    print(f"{refresh_token_env_var(account)}={server.refresh_token}")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
