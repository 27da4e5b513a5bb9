"""
Default failure classification for retries.

A failure is retryable when it looks like a transient network fault or a
timeout, or when it carries an HTTP status of 5xx, 408 or 429. Client-side
faults (other 4xx, validation problems, programming errors) are not.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional

import httpx

RETRYABLE_STATUSES = frozenset({408, 429})

NETWORK_EXCEPTIONS: tuple[type[BaseException], ...] = (
    TimeoutError,
    asyncio.TimeoutError,
    ConnectionError,
    httpx.TimeoutException,
    httpx.NetworkError,
)

# Lower-cased substrings that mark a network-level or timeout failure message
NETWORK_MARKERS = (
    "network",
    "connect",
    "dns",
    "name resolution",
    "fetch failed",
    "timeout",
    "timed out",
)


def extract_status(error: Any) -> Optional[int]:
    """
    Pull an HTTP-like status code out of a failure value.

    Understands ``status``/``status_code`` attributes, a ``response`` carrying
    ``status_code`` (``httpx.HTTPStatusError``) and mappings with a
    ``"status"`` key.
    """
    if error is None:
        return None
    if isinstance(error, Mapping):
        status = error.get("status")
    else:
        status = getattr(error, "status", None)
        if status is None:
            status = getattr(error, "status_code", None)
        if status is None:
            response = getattr(error, "response", None)
            status = getattr(response, "status_code", None)
    if isinstance(status, bool) or not isinstance(status, int):
        return None
    return status


def is_retryable_status(status: int) -> bool:
    return 500 <= status <= 599 or status in RETRYABLE_STATUSES


def is_retryable_error(error: Any) -> bool:
    """Return True when *error* is a transient failure worth retrying."""
    status = extract_status(error)
    if status is not None:
        return is_retryable_status(status)

    if not isinstance(error, BaseException):
        return False

    if isinstance(error, NETWORK_EXCEPTIONS):
        return True

    message = str(error).lower()
    return any(marker in message for marker in NETWORK_MARKERS)
