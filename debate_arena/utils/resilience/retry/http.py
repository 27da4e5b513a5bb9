"""
HTTP convenience layer over RetryExecutor.

Every attempt is bounded by a timeout that cancels the in-flight request and
surfaces as a timeout-shaped failure; non-2xx responses become failures that
carry the status code. Both shapes are understood by the default classifier,
so slow or failing upstream calls are retried instead of hanging.
"""

from __future__ import annotations

import asyncio
import dataclasses
from typing import Any, Optional

import httpx

from debate_arena.utils.logger import get_logger

from .executor import RetryExecutor
from .policy import RetryPolicy

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class RequestTimeoutError(TimeoutError):
    """A single HTTP attempt exceeded its timeout and was aborted."""

    def __init__(self, timeout: float, url: str = "") -> None:
        super().__init__(f"Request timeout after {timeout}s")
        self.timeout = timeout
        self.url = url


class HTTPStatusFailure(Exception):
    """An HTTP response arrived with a non-2xx status."""

    def __init__(self, status: int, reason: str = "", url: str = "") -> None:
        super().__init__(f"HTTP {status}: {reason}" if reason else f"HTTP {status}")
        self.status = status
        self.reason = reason
        self.url = url


async def fetch_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    policy: Optional[RetryPolicy] = None,
    executor: Optional[RetryExecutor] = None,
    **request_kwargs: Any,
) -> httpx.Response:
    """
    Send an HTTP request with a per-attempt timeout and retries.

    Args:
        client: Shared async HTTP client
        method: HTTP method, e.g. "POST"
        url: Target URL
        timeout: Seconds allowed for each individual attempt
        policy: Retry policy (defaults when omitted)
        executor: Executor to run attempts with
        **request_kwargs: Forwarded to ``client.request`` (json, headers, ...)

    Returns:
        The first 2xx response

    Raises:
        RequestTimeoutError: Last attempt timed out
        HTTPStatusFailure: Last attempt returned a non-2xx status
    """
    policy = policy or RetryPolicy()
    caller_observer = policy.on_retry

    def _log_retry(error: BaseException, attempt: int) -> None:
        logger.warning(
            "http_request_retry",
            method=method,
            url=url,
            attempt=attempt,
            error=str(error),
        )
        if caller_observer is not None:
            caller_observer(error, attempt)

    # httpx must not time out before the attempt does
    request_kwargs["timeout"] = timeout

    async def _attempt() -> httpx.Response:
        try:
            response = await asyncio.wait_for(
                client.request(method, url, **request_kwargs), timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise RequestTimeoutError(timeout, url) from exc

        if not response.is_success:
            raise HTTPStatusFailure(response.status_code, response.reason_phrase, url)
        return response

    runner = executor or RetryExecutor()
    return await runner.execute(
        _attempt,
        dataclasses.replace(policy, on_retry=_log_retry),
        name=f"{method.upper()} {url}",
    )
