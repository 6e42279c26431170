"""Retry policy and the exponential-backoff runner wrapped around provider calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from pydantic import BaseModel, Field

from .exceptions import (
    ConfigurationError,
    NonTransientError,
    PreconditionError,
    ProviderError,
    RetryExhaustedError,
    TransientError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """How often and how patiently a provider call is repeated.

    Status codes are classified in this order: ``exclude_on_http_codes``
    never retry, ``on_http_codes`` always retry, remaining 4xx codes retry
    only with ``on_client_errors``, everything else (5xx) retries.
    """

    max_attempts: int = Field(default=10, ge=1)
    initial_interval: float = Field(default=2.0, ge=0.0)
    multiplier: float = Field(default=5.0, ge=1.0)
    max_interval: float = Field(default=180.0, ge=0.0)
    on_client_errors: bool = False
    on_http_codes: List[int] = Field(default_factory=list)
    exclude_on_http_codes: List[int] = Field(default_factory=list)

    def is_retryable_status(self, status_code: int) -> bool:
        if status_code in self.exclude_on_http_codes:
            return False
        if status_code in self.on_http_codes:
            return True
        if 400 <= status_code < 500:
            return self.on_client_errors
        return True

    def backoff(self, attempt: int) -> float:
        """Seconds to wait after the zero-based *attempt* failed."""
        return min(self.initial_interval * self.multiplier**attempt, self.max_interval)


def classify_error(
    policy: RetryPolicy,
    error: Exception,
    status_code: Optional[int],
    transport_error: bool = False,
) -> ProviderError:
    """Wrap a raw SDK/transport error as a transient or non-transient error."""
    if isinstance(error, ProviderError):
        return error
    if status_code is not None:
        if policy.is_retryable_status(status_code):
            return TransientError(str(error), status_code=status_code)
        return NonTransientError(str(error), status_code=status_code)
    if transport_error or isinstance(error, (ConnectionError, asyncio.TimeoutError)):
        return TransientError(str(error))
    return NonTransientError(str(error))


def _no_status(error: Exception) -> Optional[int]:
    return None


def _no_retry_after(error: Exception) -> Optional[float]:
    return None


def _not_transport(error: Exception) -> bool:
    return False


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    status_code_of: Callable[[Exception], Optional[int]] = _no_status,
    retry_after_of: Callable[[Exception], Optional[float]] = _no_retry_after,
    is_transport_error: Callable[[Exception], bool] = _not_transport,
    description: str = "provider call",
) -> T:
    """Await ``operation()`` under *policy*.

    Transient failures are retried with backoff (a larger ``Retry-After``
    wins). Non-transient failures propagate on the first occurrence.

    Raises:
        NonTransientError: The call failed in a way retrying cannot fix.
        RetryExhaustedError: Every attempt failed with a transient error.
    """
    last_error: Optional[TransientError] = None
    last_raw: Optional[Exception] = None
    for attempt in range(policy.max_attempts):
        try:
            return await operation()
        except (ConfigurationError, PreconditionError):
            raise
        except Exception as e:
            classified = classify_error(
                policy, e, status_code_of(e), is_transport_error(e)
            )
            if not isinstance(classified, TransientError):
                if classified is e:
                    raise
                raise classified from e
            last_error = classified
            last_raw = e
            if attempt + 1 >= policy.max_attempts:
                break
            wait = policy.backoff(attempt)
            retry_after = retry_after_of(e)
            if retry_after is not None:
                wait = max(wait, retry_after)
            logger.warning(
                "Retryable error in %s (attempt %d/%d), waiting %.1fs: %s",
                description,
                attempt + 1,
                policy.max_attempts,
                wait,
                e,
            )
            await asyncio.sleep(wait)

    assert last_error is not None  # noqa: S101
    raise RetryExhaustedError(
        f"All {policy.max_attempts} attempts of {description} failed: {last_error}",
        attempts=policy.max_attempts,
        status_code=last_error.status_code,
    ) from last_raw


def header_retry_after(error: Any) -> Optional[float]:
    """Read a numeric ``Retry-After`` header from an SDK status error."""
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    raw = headers.get("retry-after")
    if raw:
        try:
            return float(raw)
        except (ValueError, TypeError):
            pass
    return None


class RetrySupport:
    """Mixin wiring a model's error-inspection hooks into :func:`call_with_retry`.

    Hosts set ``retry_policy``; adapters override the hooks to recognise
    their SDK's error types.
    """

    retry_policy: RetryPolicy

    def _status_code(self, error: Exception) -> Optional[int]:
        """HTTP status of *error*, if it came from a status response."""
        status = getattr(error, "status_code", None)
        return status if isinstance(status, int) else None

    def _is_transport_error(self, error: Exception) -> bool:
        """Return ``True`` for connection or timeout failures without a status."""
        return False

    def _extract_retry_after(self, error: Exception) -> Optional[float]:
        return header_retry_after(error)

    async def _with_retry(
        self, operation: Callable[[], Awaitable[T]], description: str
    ) -> T:
        return await call_with_retry(
            operation,
            self.retry_policy,
            status_code_of=self._status_code,
            retry_after_of=self._extract_retry_after,
            is_transport_error=self._is_transport_error,
            description=f"{type(self).__name__} {description}",
        )
