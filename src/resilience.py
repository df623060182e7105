"""Pacing and retry wrapper for calls to Notion and the LLM providers.

Every call sleeps for a fixed delay first so the steady-state request rate stays
under Notion's ~3 requests/second limit. Rate-limit responses are retried with
exponential backoff plus jitter; everything else fails fast.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Any, TypeVar

import anthropic
import httpx
import openai
from notion_client.errors import HTTPResponseError, RequestTimeoutError

from src.errors import RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TIMEOUT_ERRORS: tuple[type[BaseException], ...] = (
    RequestTimeoutError,
    httpx.TimeoutException,
    anthropic.APITimeoutError,
    openai.APITimeoutError,
)
_NETWORK_ERRORS: tuple[type[BaseException], ...] = (
    httpx.TransportError,
    anthropic.APIConnectionError,
    openai.APIConnectionError,
)
_API_ERRORS: tuple[type[BaseException], ...] = (
    HTTPResponseError,
    httpx.HTTPStatusError,
    anthropic.APIStatusError,
    openai.APIStatusError,
)


class FailureKind(StrEnum):
    """How a failed remote call should be treated."""

    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    NETWORK = "network"
    PERMANENT = "permanent"


def _status_of(exc: BaseException) -> int | None:
    status = getattr(exc, "status", None) or getattr(exc, "status_code", None)
    if status is None and isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
    return status if isinstance(status, int) else None


def _code_of(exc: BaseException) -> str | None:
    code = getattr(exc, "code", None)
    # notion-client's APIErrorCode is a str Enum; str() would give the member name
    code = getattr(code, "value", code)
    return code if isinstance(code, str) else None


def classify_failure(exc: BaseException) -> FailureKind | None:
    """Classify an exception raised by a remote call.

    Returns None for exceptions that did not come from a remote service; those
    are programming errors and must propagate untouched.
    """
    if isinstance(exc, _TIMEOUT_ERRORS):
        return FailureKind.TIMEOUT
    if isinstance(exc, _NETWORK_ERRORS):
        return FailureKind.NETWORK
    if isinstance(exc, _API_ERRORS):
        if _status_of(exc) == 429 or _code_of(exc) == "rate_limited":
            return FailureKind.RATE_LIMITED
        return FailureKind.PERMANENT
    return None


def to_remote_error(exc: BaseException, kind: FailureKind) -> RemoteError:
    """Convert a classified SDK exception into a :class:`RemoteError`."""
    transient = kind is not FailureKind.PERMANENT
    code = kind.value if transient else _code_of(exc)
    return RemoteError(str(exc), transient=transient, code=code, status=_status_of(exc))


class ResilientCaller:
    """Wrap remote calls with fixed pacing and rate-limit retries.

    The caller keeps no state between calls; one instance is shared by every
    component that talks to the same remote service.
    """

    def __init__(
        self,
        min_interval: float = 0.35,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 10.0,
        jitter: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.min_interval = min_interval
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self._sleep = sleep
        self._rand = rand

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after the given zero-based failed attempt."""
        return min(self.base_delay * 2**attempt, self.max_delay) + self._rand() * self.jitter

    def call(self, operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Invoke ``operation(*args, **kwargs)`` with pacing and retries.

        Raises:
            RemoteError: the remote service failed permanently, timed out, or
                kept rate-limiting past the retry ceiling.
        """
        name = getattr(operation, "__qualname__", repr(operation))
        for attempt in range(self.max_attempts):
            self._sleep(self.min_interval)
            try:
                return operation(*args, **kwargs)
            except Exception as exc:
                kind = classify_failure(exc)
                if kind is None:
                    raise
                if kind is not FailureKind.RATE_LIMITED:
                    raise to_remote_error(exc, kind) from exc
                if attempt + 1 >= self.max_attempts:
                    logger.error(
                        "Rate limited on %s, giving up after %d attempts", name, self.max_attempts
                    )
                    raise to_remote_error(exc, kind) from exc
                delay = self.backoff_delay(attempt)
                logger.warning(
                    "Rate limited on %s, retrying in %.1fs (attempt %d/%d)",
                    name,
                    delay,
                    attempt + 1,
                    self.max_attempts,
                )
                self._sleep(delay)
        raise AssertionError("unreachable")  # pragma: no cover
