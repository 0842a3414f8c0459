"""
Retry logic for backend calls.
Exponential backoff on transient failures, immediate propagation of client errors.
"""

import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

import anyio
import httpx

from ...constants import DEFAULT_RETRY_BASE_DELAY_SECONDS
from ...domain.exceptions import (
    ClientError,
    HTTPResponseError,
    NetworkError,
    ServerError,
)
from ...logging import debug, LogRecord, LogEvent

Operation = Callable[[], Awaitable[httpx.Response]]
Sleeper = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and backoff shape for one kind of logical request."""

    max_attempts: int = 3
    base_delay: float = DEFAULT_RETRY_BASE_DELAY_SECONDS
    jitter: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be non-negative, got {self.base_delay}")

    def delay_for(self, attempt: int) -> float:
        """
        Calculate the wait before the attempt following ``attempt``.

        Args:
            attempt: Index of the attempt that just failed (0-based)

        Returns:
            Delay in seconds: ``base_delay * 2**attempt`` plus optional jitter
        """
        delay = self.base_delay * (2**attempt)
        if self.jitter:
            delay += random.uniform(0, self.jitter)
        return delay


# Dashboard reads favour responsiveness over persistence
DASHBOARD_POLICY = RetryPolicy(max_attempts=2)
PUBLIC_POLICY = RetryPolicy(max_attempts=3)
# Writes and logins are never re-sent
NO_RETRY = RetryPolicy(max_attempts=1)


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


def classify_response(
    response: httpx.Response, endpoint: Optional[str] = None
) -> HTTPResponseError:
    """Turn a non-2xx response into a ServerError (5xx) or ClientError (anything else)."""
    body = _response_body(response)
    message = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
    elif isinstance(body, str):
        message = body[:200]
    message = str(message or response.reason_phrase or f"HTTP {response.status_code}")

    error_cls = ServerError if response.status_code >= 500 else ClientError
    return error_cls(message, response.status_code, endpoint=endpoint, body=body)


class BackoffRetrier:
    """Runs an HTTP operation with exponential backoff on transient failures."""

    def __init__(
        self,
        policy: RetryPolicy = PUBLIC_POLICY,
        sleep: Sleeper = anyio.sleep,
    ):
        """
        Initialize retrier.

        Args:
            policy: Retry budget and backoff shape
            sleep: Awaitable used for backoff delays
        """
        self.policy = policy
        self._sleep = sleep

    async def execute(
        self, operation: Operation, endpoint: Optional[str] = None
    ) -> httpx.Response:
        """
        Perform ``operation`` until it succeeds or the budget is spent.

        Network failures and 5xx responses are retried; any other non-2xx
        response is raised immediately without consuming the remaining budget.

        Args:
            operation: Coroutine function performing one network call
            endpoint: Endpoint key, used for error context and logging

        Returns:
            The first 2xx response

        Raises:
            ClientError: On a non-retryable response
            ServerError: When the last attempt got a 5xx response
            NetworkError: When the last attempt got no response
        """
        max_attempts = self.policy.max_attempts

        for attempt in range(max_attempts - 1):
            outcome = await self._attempt(operation, endpoint)
            if isinstance(outcome, httpx.Response):
                return outcome
            delay = self.policy.delay_for(attempt)
            debug(
                LogRecord(
                    event=LogEvent.FETCH_RETRY.value,
                    message=f"Transient failure, retrying in {delay:.2f}s "
                    f"(attempt {attempt + 1}/{max_attempts})",
                    endpoint=endpoint,
                    data={"error": str(outcome)},
                )
            )
            await self._sleep(delay)

        outcome = await self._attempt(operation, endpoint)
        if isinstance(outcome, httpx.Response):
            return outcome
        raise outcome

    async def _attempt(
        self, operation: Operation, endpoint: Optional[str]
    ) -> Union[httpx.Response, ServerError, NetworkError]:
        """One call: the 2xx response, or the retryable error it produced."""
        try:
            response = await operation()
        except httpx.RequestError as e:
            return NetworkError(
                f"{type(e).__name__}: {e}" if str(e) else type(e).__name__,
                endpoint=endpoint,
            )
        if 200 <= response.status_code < 300:
            return response
        classified = classify_response(response, endpoint)
        if not isinstance(classified, ServerError):
            raise classified
        return classified


async def retry(
    operation: Operation,
    max_attempts: int = 3,
    sleep: Sleeper = anyio.sleep,
) -> httpx.Response:
    """Run ``operation`` with the default backoff and an explicit attempt budget."""
    return await BackoffRetrier(RetryPolicy(max_attempts=max_attempts), sleep).execute(
        operation
    )
