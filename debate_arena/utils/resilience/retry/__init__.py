from .backoff import apply_jitter, compute_backoff
from .classification import extract_status, is_retryable_error
from .executor import RetryExecutor, retry, with_retry
from .http import HTTPStatusFailure, RequestTimeoutError, fetch_with_retry
from .policy import RetryPolicy

__all__ = [
    "RetryExecutor",
    "RetryPolicy",
    "retry",
    "with_retry",
    "fetch_with_retry",
    "HTTPStatusFailure",
    "RequestTimeoutError",
    "is_retryable_error",
    "extract_status",
    "compute_backoff",
    "apply_jitter",
]
