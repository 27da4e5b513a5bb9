"""
Exceptions raised by AI platform clients.

Every failure leaving a client is a GroqAPIError so callers only need one
except clause; ``retryable`` tells them whether asking again makes sense and
``status`` carries the HTTP-like code when there is one.
"""

from typing import Any, Dict, Optional

from debate_arena.utils.errors import AIServiceError


class GroqAPIError(AIServiceError):
    """Groq completion call failed."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        retryable: bool = False,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, retryable=retryable, context=context)
        self.status = status
