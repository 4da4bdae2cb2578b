from __future__ import annotations

import json
import logging

from utils.logger import Logger, _redact, log_event


def test_redacts_google_tokens_in_strings():
    out = _redact("refresh=1//0gAbC-def_123 access=ya29.a0XyZ")

    assert "1//0gAbC" not in out
    assert "ya29." not in out
    assert out.count("[REDACTED]") == 2


def test_redacts_ai_provider_keys_in_strings():
    out = _redact("bad key sk-ant-api03-abcdefgh and AIza" + "x" * 35)

    assert "sk-ant" not in out
    assert "AIza" not in out
    assert out.count("[REDACTED]") == 2


def test_drops_secret_keys():
    out = _redact(
        {
            "account": "work",
            "refresh_token": "x",
            "Client_Secret": "y",
            "GMAIL_REFRESH_TOKEN_WORK": "z",
            "nested": {"openai_key": "k", "code": "abc123"},
        }
    )

    assert out == {"account": "work", "nested": {}}


def test_truncates_long_strings():
    out = _redact("a" * 3000)

    assert out.endswith("...[TRUNCATED]")
    assert len(out) == 2000 + len("...[TRUNCATED]")


def test_log_event_emits_json(caplog):
    logger = Logger(name="newsletter_digest.test").build()
    logger.propagate = True

    with caplog.at_level(logging.INFO, logger="newsletter_digest.test"):
        log_event(logger, "config_loaded", accounts=("work", "personal"), provider="anthropic")

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload == {"event": "config_loaded", "accounts": ["work", "personal"], "provider": "anthropic"}


def test_log_event_respects_level(caplog):
    logger = Logger(name="newsletter_digest.quiet", level=logging.WARNING).build()
    logger.propagate = True

    with caplog.at_level(logging.WARNING, logger="newsletter_digest.quiet"):
        log_event(logger, "chatty")
        log_event(logger, "token_exchange_failed", level=logging.ERROR, error="invalid_grant")

    assert [json.loads(r.getMessage())["event"] for r in caplog.records] == ["token_exchange_failed"]


def test_build_is_idempotent():
    a = Logger(name="newsletter_digest.idem").build()
    b = Logger(name="newsletter_digest.idem").build()

    assert a is b
    assert len(a.handlers) == 1
