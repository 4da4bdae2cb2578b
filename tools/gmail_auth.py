from __future__ import annotations

import os

from google_auth_oauthlib.flow import Flow

from config.gmail_config import GmailConfig


class AuthorizationError(RuntimeError):
    pass


def _client_config(client_id: str, client_secret: str, cfg: GmailConfig) -> dict:
    return {
        "installed": {
            "client_id": client_id,
            "client_secret": client_secret,
            "auth_uri": cfg.auth_uri,
            "token_uri": cfg.token_uri,
            "redirect_uris": [cfg.redirect_uri],
        }
    }


def build_flow(client_id: str, client_secret: str, cfg: GmailConfig) -> Flow:
    """
    Returns an OAuth flow bound to the fixed local callback.

    The same Flow instance must build the consent URL and exchange the code,
    since it holds the PKCE verifier when one is generated.
    """
    # Google may grant the scopes in a different order than requested
    os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")

    return Flow.from_client_config(
        _client_config(client_id, client_secret, cfg),
        scopes=list(cfg.scopes),
        redirect_uri=cfg.redirect_uri,
    )


def get_authorization_url(flow: Flow) -> str:
    # offline + consent so Google always returns a refresh token
    auth_url, _state = flow.authorization_url(access_type="offline", prompt="consent")
    return auth_url


def exchange_code(flow: Flow, code: str) -> str:
    """Exchange an authorization code for the account's refresh token."""
    flow.fetch_token(code=code)
    refresh_token = flow.credentials.refresh_token
    if not refresh_token:
        raise AuthorizationError(
            "Token response did not include a refresh token. "
            "Remove the app's access at https://myaccount.google.com/permissions and retry."
        )
    return refresh_token
