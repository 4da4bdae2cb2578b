from __future__ import annotations

import json
import logging
import re
import sys
from dataclasses import dataclass
from typing import Any, Mapping


# Credentials this tool handles: Google access (ya29.) and refresh (1//) tokens,
# Anthropic / OpenAI keys (sk-...) and Google AI Studio keys (AIza...)
_SECRET_VALUE_RE = re.compile(
    r"(ya29\.[0-9A-Za-z\-_]+|1//[0-9A-Za-z\-_]+|sk-[0-9A-Za-z\-_]{8,}|AIza[0-9A-Za-z\-_]{30,})"
)

# Field names never logged, whatever their value looks like
_SECRET_KEY_RE = re.compile(
    r"^(access_token|refresh_token|client_secret|code|.*_key|gmail_refresh_token(_\w+)?)$",
    re.IGNORECASE,
)

_MAX_STR = 2000


def _redact(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        v = _SECRET_VALUE_RE.sub("[REDACTED]", value)
        if len(v) > _MAX_STR:
            return v[:_MAX_STR] + "...[TRUNCATED]"
        return v
    if isinstance(value, Mapping):
        return {k: _redact(v) for k, v in value.items() if not _SECRET_KEY_RE.match(str(k))}
    if isinstance(value, (list, tuple, set)):
        return [_redact(v) for v in value]
    return value


@dataclass(frozen=True)
class Logger:
    """
    Builds the process logger.

    Logs go to stderr so stdout stays clean for the lines the operator copies
    into .env.
    """

    name: str = "newsletter_digest"
    level: int = logging.INFO

    def build(self) -> logging.Logger:
        logger = logging.getLogger(self.name)
        logger.setLevel(self.level)
        if not logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
            logger.addHandler(handler)
        logger.propagate = False
        return logger


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **fields: Any) -> None:
    if not logger.isEnabledFor(level):
        return
    payload = {"event": event, **_redact(fields)}
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
