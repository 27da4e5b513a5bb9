"""
Application error taxonomy.

Every error raised towards the HTTP surface carries a category, a severity,
a user-facing message and a retryable flag, so callers can decide between
"try again" and "service disabled" without parsing messages.
"""

from datetime import datetime, timezone
from enum import Enum
from math import ceil
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from debate_arena.utils.logger import get_logger

logger = get_logger(__name__)


class ErrorCategory(str, Enum):
    """Error categories for systematic handling"""

    NETWORK = "network"
    VALIDATION = "validation"
    AI_SERVICE = "ai_service"
    DEBATE_LOGIC = "debate_logic"
    USER_INPUT = "user_input"
    SYSTEM = "system"
    RATE_LIMIT = "rate_limit"


class ErrorSeverity(str, Enum):
    """How loudly the error should surface"""

    LOW = "low"  # inline notice
    MEDIUM = "medium"  # dialog
    HIGH = "high"  # error boundary
    CRITICAL = "critical"  # full page


class AppError(Exception):
    """Base application error with rich context"""

    def __init__(
        self,
        technical_message: str,
        *,
        category: ErrorCategory,
        severity: ErrorSeverity,
        user_message: str,
        retryable: bool = False,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(technical_message)
        self.category = category
        self.severity = severity
        self.user_message = user_message
        self.technical_message = technical_message
        self.retryable = retryable
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_log_dict(self) -> Dict[str, Any]:
        """Flatten the error for structured logging"""
        return {
            "error_type": type(self).__name__,
            "category": self.category.value,
            "severity": self.severity.value,
            "user_message": self.user_message,
            "technical_message": self.technical_message,
            "retryable": self.retryable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class NetworkError(AppError):
    def __init__(self, technical_message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            technical_message,
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.MEDIUM,
            user_message=(
                "We're having trouble connecting to our servers. "
                "Please check your internet connection and try again."
            ),
            retryable=True,
            context=context,
        )


class AIServiceError(AppError):
    def __init__(
        self,
        technical_message: str,
        retryable: bool = True,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            technical_message,
            category=ErrorCategory.AI_SERVICE,
            severity=ErrorSeverity.MEDIUM,
            user_message=(
                "Our AI is taking longer than usual to respond. "
                "Please try again in a moment."
                if retryable
                else "Our AI service is temporarily unavailable. "
                "We're working to fix this issue."
            ),
            retryable=retryable,
            context=context,
        )


class ValidationError(AppError):
    def __init__(
        self,
        field: str,
        technical_message: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            technical_message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            user_message=f"Please check your {field} and try again.",
            retryable=False,
            context={**(context or {}), "field": field},
        )


class DebateError(AppError):
    def __init__(
        self,
        technical_message: str,
        retryable: bool = False,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            technical_message,
            category=ErrorCategory.DEBATE_LOGIC,
            severity=ErrorSeverity.MEDIUM,
            user_message=(
                "Something went wrong with the debate. Let's try that again."
                if retryable
                else "This debate encountered an issue and needs to be restarted."
            ),
            retryable=retryable,
            context=context,
        )


class RateLimitError(AppError):
    def __init__(
        self,
        technical_message: str,
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        wait_minutes = ceil(retry_after / 60) if retry_after else 1
        plural = "s" if wait_minutes > 1 else ""
        super().__init__(
            technical_message,
            category=ErrorCategory.RATE_LIMIT,
            severity=ErrorSeverity.MEDIUM,
            user_message=(
                "You're sending requests too quickly. "
                f"Please wait {wait_minutes} minute{plural} before trying again."
            ),
            retryable=True,
            context={**(context or {}), "retry_after": retry_after},
        )
        self.retry_after = retry_after


class SystemFailureError(AppError):
    def __init__(self, technical_message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            technical_message,
            category=ErrorCategory.SYSTEM,
            severity=ErrorSeverity.HIGH,
            user_message=(
                "We encountered an unexpected error. "
                "This has been reported and we're looking into it."
            ),
            retryable=False,
            context=context,
        )


# === Factory helpers ===


def unexpected_error(original: BaseException) -> SystemFailureError:
    return SystemFailureError(
        f"Unexpected error: {original}",
        {"original_error": str(original), "error_type": type(original).__name__},
    )


# === HTTP integration ===

_SEVERITY_STATUS = {
    ErrorSeverity.LOW: 400,
    ErrorSeverity.MEDIUM: 500,
    ErrorSeverity.HIGH: 500,
    ErrorSeverity.CRITICAL: 503,
}


def status_code_for(error: AppError) -> int:
    """HTTP status for an AppError; an explicit 4xx/5xx ``status`` wins."""
    status = getattr(error, "status", None)
    if isinstance(status, int) and 400 <= status <= 599:
        return status
    if isinstance(error, RateLimitError):
        return 429
    return _SEVERITY_STATUS.get(error.severity, 500)


def create_error_response(error: AppError) -> JSONResponse:
    """Create standardized error response for APIs"""
    return JSONResponse(
        status_code=status_code_for(error),
        content={
            "error": {
                "message": error.user_message,
                "category": error.category.value,
                "severity": error.severity.value,
                "retryable": error.retryable,
                "timestamp": error.timestamp.isoformat(),
            }
        },
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """FastAPI exception handler for AppError and subclasses."""
    logger.error(
        "app_error",
        request_url=str(request.url),
        request_method=request.method,
        **exc.to_log_dict(),
    )
    return create_error_response(exc)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Render exceptions no handler claimed as a SystemFailureError envelope"""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            error = e if isinstance(e, AppError) else unexpected_error(e)
            logger.exception(
                "unhandled_error",
                request_url=str(request.url),
                request_method=request.method,
                **error.to_log_dict(),
            )
            return create_error_response(error)
