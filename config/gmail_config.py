from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GmailConfig:
    # Read, send and modify: the digest reads newsletters, mails the digest and relabels
    scopes: tuple[str, ...] = (
        "https://www.googleapis.com/auth/gmail.readonly",
        "https://www.googleapis.com/auth/gmail.send",
        "https://www.googleapis.com/auth/gmail.modify",
    )

    # Must match the redirect URI registered on the OAuth client
    callback_host: str = "localhost"
    callback_port: int = 3000
    callback_path: str = "/callback"

    auth_uri: str = "https://accounts.google.com/o/oauth2/auth"
    token_uri: str = "https://oauth2.googleapis.com/token"

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.callback_host}:{self.callback_port}{self.callback_path}"
