"""
AI Platform Client Module

Completion clients wrapped in retry, per-attempt timeout and circuit breaker.
"""

from .exceptions import GroqAPIError
from .groq_client import ChatMessage, GroqClient, groq_retry_predicate

__all__ = [
    "ChatMessage",
    "GroqAPIError",
    "GroqClient",
    "groq_retry_predicate",
]
