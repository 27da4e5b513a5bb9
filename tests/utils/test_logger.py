import structlog

from debate_arena.utils.logger import (
    REDACTED,
    _renderer_processors,
    add_platform_context,
    redact_secrets,
)


def test_credential_fields_are_masked():
    event = redact_secrets(
        None,
        "error",
        {"event": "groq_request_failed", "Authorization": "Bearer gsk_live", "api_key": "gsk"},
    )
    assert event["Authorization"] == REDACTED
    assert event["api_key"] == REDACTED
    assert event["event"] == "groq_request_failed"


def test_inline_bearer_token_is_masked():
    event = redact_secrets(
        None, "warning", {"error": "401 for headers {'Authorization': 'Bearer gsk_live_123'}"}
    )
    assert "gsk_live_123" not in event["error"]
    assert f"Bearer {REDACTED}" in event["error"]


def test_other_values_untouched():
    event = redact_secrets(None, "info", {"attempt": 2, "url": "https://api.groq.com"})
    assert event == {"attempt": 2, "url": "https://api.groq.com"}


def test_renderer_follows_environment():
    assert isinstance(_renderer_processors(True)[-1], structlog.dev.ConsoleRenderer)
    assert isinstance(_renderer_processors(False)[-1], structlog.processors.JSONRenderer)


def test_platform_context():
    assert add_platform_context("groq") == {"ai_platform": "groq"}
