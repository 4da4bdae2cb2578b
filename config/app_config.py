from __future__ import annotations

import os
import re
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError


ACCOUNT_NAME_PATTERN = r"^[A-Za-z0-9_]+$"
_ACCOUNT_NAME_RE = re.compile(ACCOUNT_NAME_PATTERN)

REFRESH_TOKEN_VAR = "GMAIL_REFRESH_TOKEN"
# Name given to the account built from a bare GMAIL_REFRESH_TOKEN
DEFAULT_ACCOUNT_NAME = "default"

Provider = Literal["anthropic", "openai", "google"]

PROVIDER_KEY_ENV: dict[str, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "google": "GOOGLE_GENERATIVE_AI_API_KEY",
}

_ACCOUNTS_REQUIRED = "GMAIL_ACCOUNTS required (comma-separated account names)"

# Model field location -> environment variable it is read from
_ENV_NAMES: dict[tuple[str, str], str] = {
    ("gmail", "client_id"): "GMAIL_CLIENT_ID",
    ("gmail", "client_secret"): "GMAIL_CLIENT_SECRET",
    ("gmail", "accounts"): "GMAIL_ACCOUNTS",
    ("ai", "provider"): "AI_PROVIDER",
    ("ai", "anthropic_key"): "ANTHROPIC_API_KEY",
    ("ai", "openai_key"): "OPENAI_API_KEY",
    ("ai", "google_key"): "GOOGLE_GENERATIVE_AI_API_KEY",
    ("app", "label"): "GMAIL_LABEL",
    ("app", "recipient"): "DIGEST_RECIPIENT",
}


class ConfigError(ValueError):
    """Raised when the environment does not describe a usable configuration.

    `issues` holds one human-readable line per problem found.
    """

    def __init__(self, issues: list[str]) -> None:
        self.issues = list(issues)
        super().__init__("\n".join(self.issues))


def refresh_token_env_var(name: str) -> str:
    return f"{REFRESH_TOKEN_VAR}_{name.upper()}"


def is_valid_account_name(name: str) -> bool:
    return _ACCOUNT_NAME_RE.fullmatch(name) is not None


def parse_account_names(raw: Optional[str]) -> list[str]:
    return [s.strip() for s in (raw or "").split(",") if s.strip()]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class Account(_Frozen):
    name: str = Field(min_length=1, pattern=ACCOUNT_NAME_PATTERN)
    refresh_token: str = Field(min_length=1)

    @property
    def env_var(self) -> str:
        return refresh_token_env_var(self.name)


class GmailSettings(_Frozen):
    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)
    accounts: tuple[Account, ...] = Field(min_length=1)


class AiSettings(_Frozen):
    provider: Provider = "anthropic"
    anthropic_key: Optional[str] = None
    openai_key: Optional[str] = None
    google_key: Optional[str] = None

    @property
    def key_env_var(self) -> str:
        return PROVIDER_KEY_ENV[self.provider]

    @property
    def api_key(self) -> Optional[str]:
        keys = {
            "anthropic": self.anthropic_key,
            "openai": self.openai_key,
            "google": self.google_key,
        }
        return keys[self.provider]


class AppSettings(_Frozen):
    label: str = "Newsletters"
    recipient: str = "me"


class Config(_Frozen):
    gmail: GmailSettings
    ai: AiSettings = Field(default_factory=AiSettings)
    app: AppSettings = Field(default_factory=AppSettings)

    def summary(self) -> dict[str, Any]:
        """Non-secret view of the config, safe to log."""
        return {
            "accounts": [a.name for a in self.gmail.accounts],
            "label": self.app.label,
            "recipient": self.app.recipient,
            "provider": self.ai.provider,
        }


def _env(environ: Mapping[str, str], name: str) -> Optional[str]:
    # Empty values count as unset so defaults still apply
    value = environ.get(name)
    if value is None or not value.strip():
        return None
    return value


def _compact(values: dict[str, Optional[str]]) -> dict[str, str]:
    return {k: v for k, v in values.items() if v is not None}


def _parse_accounts(environ: Mapping[str, str]) -> tuple[list[dict[str, str]], list[str]]:
    raw = _env(environ, "GMAIL_ACCOUNTS")
    if raw is None:
        single = _env(environ, REFRESH_TOKEN_VAR)
        if single is not None:
            return [{"name": DEFAULT_ACCOUNT_NAME, "refresh_token": single}], []
        return [], [_ACCOUNTS_REQUIRED]

    names = parse_account_names(raw)
    if not names:
        return [], [_ACCOUNTS_REQUIRED]

    accounts: list[dict[str, str]] = []
    issues: list[str] = []
    seen: set[str] = set()
    for name in names:
        if not is_valid_account_name(name):
            issues.append(
                f'Invalid account name "{name}": only letters, digits, and underscores allowed'
            )
            continue

        env_var = refresh_token_env_var(name)
        if env_var in seen:
            # "work" and "WORK" would share one token variable
            issues.append(f'Duplicate account name "{name}" ({env_var} already used)')
            continue
        seen.add(env_var)

        token = _env(environ, env_var)
        if token is None:
            issues.append(f'{env_var} required for account "{name}"')
            continue
        accounts.append({"name": name, "refresh_token": token})
    return accounts, issues


def _describe(err: Mapping[str, Any]) -> str:
    loc = tuple(str(p) for p in err.get("loc", ()))
    var = _ENV_NAMES.get(loc[:2], ".".join(loc))
    if err.get("type") == "missing":
        return f"{var} required"
    return f"{var}: {err.get('msg', 'invalid value')}"


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """
    Build the application config from environment variables.

    Validation runs in two passes. The first collects every structural
    problem (accounts, required strings, provider enum) into one
    ConfigError. The second runs only when the first passes and checks that
    the selected AI provider has its API key.
    """
    env = os.environ if environ is None else environ

    accounts, issues = _parse_accounts(env)
    account_issues = bool(issues)

    raw = {
        "gmail": _compact(
            {
                "client_id": _env(env, "GMAIL_CLIENT_ID"),
                "client_secret": _env(env, "GMAIL_CLIENT_SECRET"),
            }
        ),
        "ai": _compact(
            {
                "provider": _env(env, "AI_PROVIDER"),
                "anthropic_key": _env(env, "ANTHROPIC_API_KEY"),
                "openai_key": _env(env, "OPENAI_API_KEY"),
                "google_key": _env(env, "GOOGLE_GENERATIVE_AI_API_KEY"),
            }
        ),
        "app": _compact(
            {
                "label": _env(env, "GMAIL_LABEL"),
                "recipient": _env(env, "DIGEST_RECIPIENT"),
            }
        ),
    }
    raw["gmail"]["accounts"] = accounts

    try:
        config = Config.model_validate(raw)
    except ValidationError as e:
        for err in e.errors():
            # Account problems were already reported by name above
            if account_issues and tuple(err["loc"][:2]) == ("gmail", "accounts"):
                continue
            issues.append(_describe(err))
        raise ConfigError(issues) from e

    if issues:
        raise ConfigError(issues)

    if not config.ai.api_key:
        raise ConfigError(
            [f"{config.ai.key_env_var} required when AI_PROVIDER={config.ai.provider}"]
        )
    return config
