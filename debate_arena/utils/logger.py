"""
structlog setup for the debate service.

Completion calls carry a Groq bearer token, so every event passes through a
redaction step before it is rendered. Development gets the colored console
renderer, other environments get JSON lines.
"""

import logging
import re
import sys
from typing import Any, List, MutableMapping

import structlog
from structlog.types import Processor

from debate_arena.core.config import settings

REDACTED = "[redacted]"
SECRET_KEYS = frozenset({"authorization", "api_key", "groq_api_key"})
_BEARER = re.compile(r"(Bearer\s+)[^\s'\"]+", re.IGNORECASE)


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask credential fields and inline bearer tokens."""
    for key, value in list(event_dict.items()):
        if key.lower() in SECRET_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, str) and "bearer" in value.lower():
            event_dict[key] = _BEARER.sub(rf"\1{REDACTED}", value)
    return event_dict


def _renderer_processors(development: bool) -> List[Processor]:
    if development:
        return [structlog.dev.set_exc_info, structlog.dev.ConsoleRenderer(colors=True)]
    return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]


def configure_logging() -> None:
    """Configure stdlib logging and structlog from settings."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors: List[Processor] = [
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        redact_secrets,
        *_renderer_processors(settings.is_development),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def add_platform_context(platform_name: str) -> dict:
    """Context bound onto every log line of an AI platform client."""
    return {"ai_platform": platform_name}
