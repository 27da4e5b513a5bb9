"""
Groq chat-completion client.

Composes the resilience layer around the completion endpoint:
``CircuitBreaker.execute(lambda: fetch_with_retry(...))``. Retries run inside
the breaker, so the breaker counts one failure per exhausted call rather than
one per attempt.

One client (and therefore one breaker) should live for the lifetime of the
application and be passed to whoever needs completions.
"""

from typing import Any, Dict, Iterable, List, Optional, TypedDict

import httpx

from debate_arena.core.config import settings
from debate_arena.utils.logger import add_platform_context, get_logger
from debate_arena.utils.resilience import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpenError,
    CircuitHealth,
    HTTPStatusFailure,
    RequestTimeoutError,
    RetryExecutor,
    RetryPolicy,
    fetch_with_retry,
    is_retryable_error,
)

from .exceptions import GroqAPIError

logger = get_logger(__name__)


class ChatMessage(TypedDict):
    role: str
    content: str


def groq_retry_predicate(error: BaseException) -> bool:
    """Honor an explicit ``retryable`` flag, otherwise classify by shape."""
    retryable = getattr(error, "retryable", None)
    if isinstance(retryable, bool):
        return retryable
    return is_retryable_error(error)


class GroqClient:
    """
    Groq completion client with retry, timeout and circuit breaker.

    Usable as an async context manager; an injected ``http_client`` is never
    closed by this class.
    """

    platform_name = "groq"

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        model: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        retry_policy: Optional[RetryPolicy] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        executor: Optional[RetryExecutor] = None,
    ) -> None:
        """
        Initialize the client; unset arguments fall back to ``GROQ_*`` settings.

        Raises:
            GroqAPIError: No API key configured
        """
        key = api_key if api_key is not None else settings.GROQ_API_KEY
        if not key:
            raise GroqAPIError("GROQ_API_KEY environment variable is not set")

        self.api_key = key
        self.model = model or settings.GROQ_MODEL
        self.api_url = api_url or settings.GROQ_API_URL
        self.timeout = timeout if timeout is not None else settings.GROQ_TIMEOUT_SECONDS
        self.max_tokens = max_tokens if max_tokens is not None else settings.GROQ_MAX_TOKENS
        self.temperature = (
            temperature if temperature is not None else settings.GROQ_TEMPERATURE
        )
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=settings.GROQ_RETRY_MAX_RETRIES,
            initial_delay=settings.GROQ_RETRY_INITIAL_DELAY_SECONDS,
            max_delay=settings.GROQ_RETRY_MAX_DELAY_SECONDS,
            backoff_factor=settings.RETRY_BACKOFF_FACTOR,
            retry_predicate=groq_retry_predicate,
        )
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            CircuitBreakerConfig.from_settings(), name=f"platform_{self.platform_name}"
        )
        self._executor = executor or RetryExecutor()
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._log = logger.bind(**add_platform_context(self.platform_name))

    async def __aenter__(self) -> "GroqClient":
        self._get_http_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    def _get_default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _prepare_request_payload(
        self, messages: Iterable[ChatMessage], **options: Any
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": list(messages),
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        payload.update(options)
        return payload

    def extract_text_response(self, raw_response: Dict[str, Any]) -> str:
        """
        Extract the first choice's message content.

        Raises:
            GroqAPIError: Empty or malformed response (retryable)
        """
        choices: List[Dict[str, Any]] = raw_response.get("choices") or []
        if not choices:
            raise GroqAPIError("No response from Groq API", retryable=True)
        try:
            return choices[0]["message"]["content"]
        except (KeyError, TypeError) as e:
            raise GroqAPIError(
                f"Invalid Groq response format: {e}", retryable=True
            ) from e

    async def _request_completion(self, payload: Dict[str, Any]) -> str:
        response = await fetch_with_retry(
            self._get_http_client(),
            "POST",
            self.api_url,
            timeout=self.timeout,
            policy=self.retry_policy,
            executor=self._executor,
            json=payload,
            headers=self._get_default_headers(),
        )
        try:
            data = response.json()
        except ValueError as e:
            raise GroqAPIError(
                "Groq API returned a non-JSON body",
                status=response.status_code,
                retryable=True,
            ) from e
        return self.extract_text_response(data)

    async def generate_response(
        self, messages: Iterable[ChatMessage], **options: Any
    ) -> str:
        """
        Generate a completion for a chat transcript.

        Args:
            messages: Chat messages in OpenAI format
            **options: Payload overrides (max_tokens, temperature, ...)

        Returns:
            Text of the first completion choice

        Raises:
            GroqAPIError: Any failure, with status and retryability set
        """
        payload = self._prepare_request_payload(messages, **options)
        try:
            return await self.circuit_breaker.execute(
                lambda: self._request_completion(payload)
            )
        except GroqAPIError as e:
            self._log.error("groq_request_failed", **e.to_log_dict())
            raise
        except Exception as e:
            translated = self._translate_error(e)
            self._log.error(
                "groq_request_failed",
                original_error_type=type(e).__name__,
                **translated.to_log_dict(),
            )
            raise translated from e

    def _translate_error(self, error: Exception) -> GroqAPIError:
        """Map resilience-layer failures onto GroqAPIError categories."""
        if isinstance(error, CircuitBreakerOpenError):
            return GroqAPIError(
                "AI service is currently unavailable due to repeated failures",
                status=503,
                retryable=False,
                context={
                    "circuit_breaker_state": self.circuit_breaker.state.value,
                    "next_attempt_time": error.next_attempt_time,
                },
            )
        if isinstance(error, RequestTimeoutError):
            return GroqAPIError(
                "Request timed out - AI response took too long",
                status=408,
                retryable=True,
                context={"original_error": str(error)},
            )
        if isinstance(error, HTTPStatusFailure):
            if error.status == 429:
                return GroqAPIError(
                    "API rate limit exceeded - please try again in a moment",
                    status=429,
                    retryable=True,
                    context={"original_error": str(error)},
                )
            if 500 <= error.status <= 599:
                return GroqAPIError(
                    "AI service is temporarily unavailable",
                    status=error.status,
                    retryable=True,
                    context={"original_error": str(error)},
                )
            return GroqAPIError(
                f"Groq API rejected the request: {error}",
                status=error.status,
                retryable=False,
                context={"original_error": str(error)},
            )
        return GroqAPIError(
            f"Failed to generate AI response: {error}",
            retryable=False,
            context={"original_error": str(error)},
        )

    async def health_check(self) -> Dict[str, str]:
        """Send a tiny completion and report whether it went through."""
        try:
            await self.generate_response(
                [{"role": "user", "content": "Test message for health check"}]
            )
            return {"status": "healthy"}
        except GroqAPIError as e:
            return {"status": "unhealthy", "details": str(e)}

    def circuit_status(self) -> Dict[str, Any]:
        return {
            "state": self.circuit_breaker.state.value,
            "can_execute": self.circuit_breaker.can_execute,
        }

    def circuit_health(self) -> CircuitHealth:
        return self.circuit_breaker.get_health()

    def reset_circuit_breaker(self) -> None:
        """Force the breaker CLOSED (admin/debug only)."""
        self.circuit_breaker.reset()
