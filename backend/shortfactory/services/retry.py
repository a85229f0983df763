"""Retry with backoff and credential rotation for provider calls.

Two policies that compose:

- ``with_backoff`` re-tries one operation on the same credential, doubling
  the delay from a base interval, for retryable errors only.
- ``with_rotation`` fails over across an ordered set of equivalent
  credentials parsed from one delimited field. A retryable failure moves
  on to the next credential; a terminal failure or exhausting the set
  raises with every per-credential message attached.

``call_with_credentials`` picks between them: backoff when the set holds a
single credential, rotation when it holds several.
"""

import asyncio
import logging
import re
from typing import Awaitable, Callable, Optional, TypeVar

import httpx
from google.genai.errors import ClientError, ServerError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from shortfactory.errors import (
    CredentialsExhausted,
    NoCredentials,
    ProviderError,
    RetryableProviderError,
    TerminalProviderError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SPLIT_RE = re.compile(r"[,;\n]+")

# Substrings that mark an error as worth retrying (or worth a different key)
_RETRYABLE_SIGNATURES = (
    "429",
    "resource_exhausted",
    "quota",
    "rate limit",
    "rate_limit",
    "too many requests",
    "403",
    "permission_denied",
    "api key not valid",
    "api_key_invalid",
    "internal server error",
    "502 bad gateway",
    "503",
    "unavailable",
    "overloaded",
    "deadline_exceeded",
)

_RETRYABLE_STATUS = {403, 408, 429, 500, 502, 503, 504}


def parse_credentials(field: Optional[str]) -> list[str]:
    """Split a delimited credential field into an ordered list.

    Commas, semicolons and newlines all separate entries; blanks are dropped.
    """
    if not field:
        return []
    return [part.strip() for part in _SPLIT_RE.split(field) if part.strip()]


def mask_credential(key: str) -> str:
    """Mask a credential for logs: first 5 chars, last 3."""
    if len(key) <= 8:
        return "***"
    return f"{key[:5]}...{key[-3:]}"


def is_retryable_error(exc: BaseException) -> bool:
    """Return True for rate-limit, quota, permission and transient failures."""
    if isinstance(exc, RetryableProviderError):
        return True
    if isinstance(exc, TerminalProviderError):
        return False
    if isinstance(exc, ServerError):
        return True
    if isinstance(exc, ClientError):
        return getattr(exc, "code", 0) in (403, 429)
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _RETRYABLE_STATUS
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, TimeoutError, ConnectionError)):
        return True
    message = str(exc).lower()
    return any(sig in message for sig in _RETRYABLE_SIGNATURES)


def classify_error(exc: BaseException) -> ProviderError:
    """Wrap an arbitrary provider failure into the retryable/terminal split."""
    if isinstance(exc, ProviderError):
        return exc
    if is_retryable_error(exc):
        return RetryableProviderError(str(exc))
    return TerminalProviderError(str(exc))


async def with_rotation(
    field: Optional[str],
    operation: Callable[[str, int, int], Awaitable[T]],
) -> T:
    """Run ``operation`` with each credential in turn until one succeeds.

    Args:
        field: Delimited credential field
        operation: Called as ``operation(key, index, total)``

    Returns:
        The first successful result

    Raises:
        NoCredentials: If the field holds no credential
        TerminalProviderError: On the first non-retryable failure
        CredentialsExhausted: If every credential failed with a retryable error
    """
    keys = parse_credentials(field)
    if not keys:
        raise NoCredentials("No API credential configured. Add at least one key in settings.")

    if len(keys) == 1:
        return await operation(keys[0], 0, 1)

    messages: list[str] = []
    total = len(keys)
    for i, key in enumerate(keys):
        try:
            return await operation(key, i, total)
        except Exception as e:
            messages.append(f"Key {i + 1} ({mask_credential(key)}): {e}")
            if not is_retryable_error(e):
                logger.error(f"Key {i + 1}/{total} failed with a terminal error: {e}")
                raise TerminalProviderError("\n".join(messages)) from e
            if i < total - 1:
                logger.warning(
                    f"Key {i + 1}/{total} ({mask_credential(key)}) hit a retryable error, "
                    f"rotating to key {i + 2}: {e}"
                )

    logger.error(f"All {total} credentials failed")
    raise CredentialsExhausted(messages)


async def with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 2.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Retry ``operation`` with doubling delays, for retryable errors only.

    The last error is re-raised unchanged once attempts run out.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, exp_base=2),
        retry=retry_if_exception(is_retryable_error),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await operation()
    raise AssertionError("unreachable")  # pragma: no cover


async def call_with_credentials(
    field: Optional[str],
    operation: Callable[[str], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 2.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Back off on a single credential, rotate across several."""
    keys = parse_credentials(field)
    if len(keys) == 1:
        return await with_backoff(
            lambda: operation(keys[0]), max_attempts, base_delay, sleep
        )
    return await with_rotation(field, lambda key, i, total: operation(key))
