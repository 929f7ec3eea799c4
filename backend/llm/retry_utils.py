"""Retry utilities for LLM API calls with exponential backoff"""

import time
from typing import Callable, Optional, Tuple, TypeVar

import openai

from core import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Errors worth another attempt; bad requests and auth failures are not
RETRYABLE_ERRORS: Tuple[type, ...] = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def call_llm_with_retry(
    llm_func: Callable[..., T],
    *args,
    max_retries: int = 2,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    retry_on: Tuple[type, ...] = RETRYABLE_ERRORS,
    **kwargs,
) -> T:
    """Call an LLM function, retrying transient failures.

    The last exception is re-raised once attempts run out, so callers decide
    how a failed call is reported.

    Example:
        resp = call_llm_with_retry(
            client.chat.completions.create,
            model="gpt-4o-mini",
            messages=[...],
        )
    """
    delay = initial_delay
    last_exception: Optional[Exception] = None

    for attempt in range(max_retries + 1):
        try:
            return llm_func(*args, **kwargs)
        except retry_on as e:
            last_exception = e
            if attempt == max_retries:
                break
            logger.warning(
                "llm_call_retry",
                attempt=attempt + 1,
                max_retries=max_retries,
                delay=delay,
                error=str(e),
                error_type=type(e).__name__,
            )
            time.sleep(delay)
            delay *= backoff_factor

    logger.error(
        "llm_call_failed_after_retries",
        attempts=max_retries + 1,
        error=str(last_exception),
        error_type=type(last_exception).__name__,
    )
    raise last_exception
