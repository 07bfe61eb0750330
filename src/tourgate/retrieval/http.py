"""Retrying HTTP client for the tourism API.

Wraps one upstream GET with a hard per-attempt timeout, exponential
backoff on transient failures and translation of every failure into a
typed TourApiError at the point of origin.

Retry progress is an explicit state machine:

    PENDING(attempt) -> SUCCEEDED
                     -> RETRYING(attempt + 1, delay) -> PENDING(attempt + 1)
                     -> FAILED(kind)

next_state() is pure, so the policy can be tested without a clock; the
client takes injectable ``sleep``/``clock`` callables for the same reason.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

import httpx

from tourgate.core.errors import (
    ErrorKind,
    HttpStatusError,
    NetworkError,
    TourApiError,
    UpstreamTimeoutError,
    ValidationError,
)
from tourgate.observability.metrics import CANCELLED, ApiMetricsCollector
from tourgate.observability.tracing import SpanType, start_span
from tourgate.retrieval.envelope import decode_payload, raise_for_result_code

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
MAX_RETRIES = 3
BASE_DELAY = 1.0

# Metric error kind for a call that ends without a TourApiError
INTERNAL_ERROR_KIND = "internal_error"


@dataclass(frozen=True)
class RetryPolicy:
    """When and how long to back off between attempts."""

    max_retries: int = MAX_RETRIES
    base_delay: float = BASE_DELAY
    timeout: float = DEFAULT_TIMEOUT
    retry_server_errors: bool = False

    def delay_for(self, attempt: int) -> float:
        """Backoff before the attempt after ``attempt``: 1s, 2s, 4s..."""
        return self.base_delay * (2 ** attempt)

    def should_retry(self, kind: ErrorKind) -> bool:
        if kind in (ErrorKind.TIMEOUT, ErrorKind.NETWORK):
            return True
        return kind == ErrorKind.SERVER_ERROR and self.retry_server_errors


class RetryPhase(str, Enum):
    PENDING = "pending"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class RetryState:
    phase: RetryPhase
    attempt: int = 0                    # zero-based attempt index
    delay: float = 0.0                  # seconds to wait before the next attempt
    error_kind: ErrorKind | None = None

    @property
    def done(self) -> bool:
        return self.phase in (RetryPhase.SUCCEEDED, RetryPhase.FAILED)


def next_state(state: RetryState, policy: RetryPolicy, error: TourApiError | None = None) -> RetryState:
    """Advance a PENDING attempt given its outcome."""
    if state.phase != RetryPhase.PENDING:
        raise ValueError(f"Cannot advance from {state.phase.value}")
    if error is None:
        return RetryState(RetryPhase.SUCCEEDED, state.attempt)
    if policy.should_retry(error.kind) and state.attempt < policy.max_retries:
        return RetryState(
            RetryPhase.RETRYING,
            state.attempt + 1,
            delay=policy.delay_for(state.attempt),
            error_kind=error.kind,
        )
    return RetryState(RetryPhase.FAILED, state.attempt, error_kind=error.kind)


StateObserver = Callable[[RetryState], None]


class RetryingClient:
    """Async GET client with timeout, backoff and typed failures.

    Safe to share across concurrent calls: per-call progress lives in
    local RetryState values, never on the instance.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        policy: RetryPolicy | None = None,
        metrics: ApiMetricsCollector | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self.metrics = metrics
        self._client = http_client
        self._owns_client = http_client is None
        self._sleep = sleep
        self._clock = clock

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            # Per-attempt deadlines are enforced with asyncio.wait_for
            self._client = httpx.AsyncClient(timeout=None)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RetryingClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _attempt(self, url: str, params: dict | None, timeout: float, endpoint: str) -> dict:
        """One request: raises a typed error or returns the decoded envelope."""
        try:
            resp = await asyncio.wait_for(self._http().get(url, params=params), timeout=timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise UpstreamTimeoutError(
                f"Upstream request timed out after {timeout:g}s", endpoint=endpoint,
            ) from e
        except (httpx.TransportError, httpx.DecodingError) as e:
            # A corrupt or truncated body is treated like a dropped connection and retried
            raise NetworkError(f"Upstream transport failure: {e}", endpoint=endpoint) from e
        except httpx.HTTPError as e:
            # TooManyRedirects and the like: the same request would fail again
            raise TourApiError(f"Upstream request failed: {e}", ErrorKind.HTTP_ERROR, endpoint=endpoint) from e
        except httpx.InvalidURL as e:
            raise ValidationError(f"Invalid upstream URL: {e}", endpoint=endpoint) from e

        if not resp.is_success:
            raise HttpStatusError(resp.status_code, resp.reason_phrase, endpoint=endpoint)

        payload = decode_payload(resp.text, endpoint=endpoint)
        raise_for_result_code(payload, endpoint=endpoint)
        return payload

    async def call(
        self,
        url: str,
        params: dict | None = None,
        *,
        max_retries: int | None = None,
        timeout: float | None = None,
        endpoint: str | None = None,
        on_state: StateObserver | None = None,
    ) -> dict:
        """GET ``url`` and return the decoded JSON body.

        Timeouts and transport failures are retried with backoff; HTTP
        4xx and upstream result-code failures fail on the first attempt.
        5xx is retried only when the policy enables it.

        Raises:
            TourApiError subclass with the kind of the last failure.
        """
        policy = self.policy
        if max_retries is not None or timeout is not None:
            policy = RetryPolicy(
                max_retries=policy.max_retries if max_retries is None else max_retries,
                base_delay=policy.base_delay,
                timeout=policy.timeout if timeout is None else timeout,
                retry_server_errors=policy.retry_server_errors,
            )
        label = endpoint or url

        state = RetryState(RetryPhase.PENDING, 0)
        started = self._clock()
        error: TourApiError | None = None
        # Metric error kind; anything that escapes without setting it is an internal error
        outcome: str | None = INTERNAL_ERROR_KIND

        with start_span(name="tour_api_call", span_type=SpanType.TOOL) as span:
            span.set_inputs({"endpoint": label, "max_retries": policy.max_retries, "timeout": policy.timeout})
            try:
                while True:
                    if on_state:
                        on_state(state)
                    try:
                        payload = await self._attempt(url, params, policy.timeout, label)
                        error = None
                    except TourApiError as e:
                        payload = None
                        error = e

                    state = next_state(state, policy, error)
                    if on_state:
                        on_state(state)

                    if state.phase == RetryPhase.SUCCEEDED:
                        span.set_outputs({"attempts": state.attempt + 1, "status": "success"})
                        outcome = None
                        return payload

                    if state.phase == RetryPhase.FAILED:
                        logger.error(
                            "%s failed after %d attempt(s): %s",
                            label, state.attempt + 1, error,
                            extra={"endpoint": label, "attempt": state.attempt + 1,
                                   "error_kind": error.kind.value},
                        )
                        span.set_outputs({
                            "attempts": state.attempt + 1,
                            "status": "error",
                            "error_kind": error.kind.value,
                        })
                        raise error

                    logger.warning(
                        "%s %s (attempt %d/%d), retrying in %.1fs",
                        label, error.kind.value, state.attempt, policy.max_retries + 1, state.delay,
                        extra={"endpoint": label, "attempt": state.attempt, "error_kind": error.kind.value},
                    )
                    await self._sleep(state.delay)
                    state = RetryState(RetryPhase.PENDING, state.attempt)
            except asyncio.CancelledError:
                outcome = CANCELLED
                raise
            except TourApiError as e:
                outcome = e.kind.value
                raise
            finally:
                if self.metrics is not None:
                    self.metrics.record_call(
                        label,
                        (self._clock() - started) * 1000,
                        error_kind=outcome,
                        attempts=state.attempt + 1,
                    )
