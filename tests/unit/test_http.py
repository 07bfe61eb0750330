"""Tests for the retrying HTTP client and its retry state machine."""

import asyncio

import httpx
import pytest

from tourgate.core.errors import (
    ErrorKind,
    HttpStatusError,
    NetworkError,
    TourApiError,
    UpstreamResultError,
    UpstreamTimeoutError,
    ValidationError,
)
from tourgate.observability.metrics import ApiMetricsCollector
from tourgate.retrieval.http import RetryPhase, RetryPolicy, RetryState, next_state

URL = "https://tour.test/B551011/KorService2/areaBasedList2"


class TestRetryPolicy:
    def test_exponential_delays(self):
        policy = RetryPolicy(base_delay=1.0)
        assert [policy.delay_for(n) for n in range(3)] == [1.0, 2.0, 4.0]

    def test_server_errors_not_retried_by_default(self):
        assert not RetryPolicy().should_retry(ErrorKind.SERVER_ERROR)
        assert RetryPolicy(retry_server_errors=True).should_retry(ErrorKind.SERVER_ERROR)

    def test_transient_kinds_retried(self):
        policy = RetryPolicy()
        assert policy.should_retry(ErrorKind.TIMEOUT)
        assert policy.should_retry(ErrorKind.NETWORK)
        assert not policy.should_retry(ErrorKind.QUOTA_EXCEEDED)
        assert not policy.should_retry(ErrorKind.BAD_REQUEST)


class TestNextState:
    def test_success(self):
        state = next_state(RetryState(RetryPhase.PENDING, 2), RetryPolicy())
        assert state.phase == RetryPhase.SUCCEEDED
        assert state.attempt == 2
        assert state.done

    def test_retryable_failure_schedules_retry(self):
        state = next_state(RetryState(RetryPhase.PENDING, 1), RetryPolicy(), UpstreamTimeoutError("t"))
        assert state == RetryState(RetryPhase.RETRYING, 2, delay=2.0, error_kind=ErrorKind.TIMEOUT)
        assert not state.done

    def test_retries_exhausted(self):
        state = next_state(RetryState(RetryPhase.PENDING, 3), RetryPolicy(max_retries=3), NetworkError("n"))
        assert state.phase == RetryPhase.FAILED
        assert state.error_kind == ErrorKind.NETWORK

    def test_terminal_failure(self):
        state = next_state(RetryState(RetryPhase.PENDING, 0), RetryPolicy(), HttpStatusError(400))
        assert state.phase == RetryPhase.FAILED
        assert state.attempt == 0

    def test_cannot_advance_finished_state(self):
        with pytest.raises(ValueError):
            next_state(RetryState(RetryPhase.FAILED, 0), RetryPolicy())


class TestRetryingClient:
    async def test_success_returns_payload(self, make_client, envelope, respond):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return respond(envelope([{"contentid": "1"}]))

        client = make_client(handler)
        payload = await client.call(URL, {"serviceKey": "k", "numOfRows": "1"})

        assert payload["response"]["body"]["items"]["item"] == [{"contentid": "1"}]
        assert len(calls) == 1
        assert calls[0].url.params["numOfRows"] == "1"

    async def test_timeout_every_attempt(self, make_client, fake_sleep):
        attempts = 0

        def handler(request):
            nonlocal attempts
            attempts += 1
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(handler, policy=RetryPolicy(max_retries=3))
        with pytest.raises(UpstreamTimeoutError) as exc_info:
            await client.call(URL)

        assert attempts == 4
        assert fake_sleep.delays == [1.0, 2.0, 4.0]
        assert exc_info.value.kind == ErrorKind.TIMEOUT

    async def test_hard_deadline_on_slow_response(self, make_client, envelope, respond):
        async def handler(request):
            await asyncio.sleep(1)
            return respond(envelope([]))

        client = make_client(handler, policy=RetryPolicy(max_retries=0, timeout=0.01))
        with pytest.raises(UpstreamTimeoutError):
            await client.call(URL)

    async def test_transport_failure_then_success(self, make_client, fake_sleep, envelope, respond):
        attempts = 0

        def handler(request):
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return respond(envelope([{"contentid": "9"}]))

        client = make_client(handler)
        payload = await client.call(URL)

        assert attempts == 3
        assert fake_sleep.delays == [1.0, 2.0]
        assert payload["response"]["body"]["items"]["item"] == [{"contentid": "9"}]

    async def test_quota_exceeded_is_not_retried(self, make_client, fake_sleep, envelope, respond):
        attempts = 0

        def handler(request):
            nonlocal attempts
            attempts += 1
            return respond(envelope(None, result_code="22", result_msg="LIMITED_NUMBER_OF_SERVICE_REQUESTS"))

        client = make_client(handler)
        with pytest.raises(UpstreamResultError) as exc_info:
            await client.call(URL)

        assert attempts == 1
        assert fake_sleep.delays == []
        assert exc_info.value.kind == ErrorKind.QUOTA_EXCEEDED

    async def test_http_4xx_is_terminal(self, make_client, fake_sleep):
        client = make_client(lambda request: httpx.Response(401))
        with pytest.raises(HttpStatusError) as exc_info:
            await client.call(URL)
        assert exc_info.value.kind == ErrorKind.UNAUTHORIZED
        assert fake_sleep.delays == []

    async def test_5xx_terminal_by_default(self, make_client, fake_sleep):
        attempts = 0

        def handler(request):
            nonlocal attempts
            attempts += 1
            return httpx.Response(503)

        client = make_client(handler)
        with pytest.raises(HttpStatusError) as exc_info:
            await client.call(URL)
        assert attempts == 1
        assert exc_info.value.kind == ErrorKind.SERVER_ERROR

    async def test_5xx_retried_when_enabled(self, make_client, fake_sleep):
        attempts = 0

        def handler(request):
            nonlocal attempts
            attempts += 1
            return httpx.Response(500)

        client = make_client(handler, policy=RetryPolicy(max_retries=2, retry_server_errors=True))
        with pytest.raises(HttpStatusError):
            await client.call(URL)
        assert attempts == 3
        assert fake_sleep.delays == [1.0, 2.0]

    async def test_per_call_overrides(self, make_client, fake_sleep):
        attempts = 0

        def handler(request):
            nonlocal attempts
            attempts += 1
            raise httpx.ConnectError("down", request=request)

        client = make_client(handler, policy=RetryPolicy(max_retries=3))
        with pytest.raises(NetworkError):
            await client.call(URL, max_retries=1)
        assert attempts == 2

    async def test_observer_sees_every_transition(self, make_client, envelope, respond):
        attempts = 0

        def handler(request):
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise httpx.ReadTimeout("slow", request=request)
            return respond(envelope([]))

        states = []
        client = make_client(handler)
        await client.call(URL, on_state=states.append)

        assert [s.phase for s in states] == [
            RetryPhase.PENDING, RetryPhase.RETRYING, RetryPhase.PENDING, RetryPhase.SUCCEEDED,
        ]

    async def test_metrics_recorded_once_per_call(self, make_client):
        metrics = ApiMetricsCollector(capacity=10)

        def handler(request):
            raise httpx.ConnectError("down", request=request)

        client = make_client(handler, policy=RetryPolicy(max_retries=2), metrics=metrics)
        with pytest.raises(TourApiError):
            await client.call(URL, endpoint="/areaBasedList2")

        [metric] = metrics.all()
        assert metric.endpoint == "/areaBasedList2"
        assert metric.status == "error"
        assert metric.attempts == 3
        assert metric.error_kind == "network"

    async def test_corrupt_body_is_retried_as_network_failure(self, make_client, fake_sleep, envelope, respond):
        attempts = 0

        def handler(request):
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                return httpx.Response(200, headers={"content-encoding": "gzip"}, content=b"not gzip at all")
            return respond(envelope([{"contentid": "3"}]))

        client = make_client(handler)
        payload = await client.call(URL)

        assert attempts == 2
        assert fake_sleep.delays == [1.0]
        assert payload["response"]["body"]["items"]["item"] == [{"contentid": "3"}]

    async def test_corrupt_body_every_attempt(self, make_client):
        metrics = ApiMetricsCollector(capacity=10)

        def handler(request):
            return httpx.Response(200, headers={"content-encoding": "gzip"}, content=b"not gzip at all")

        client = make_client(handler, policy=RetryPolicy(max_retries=1), metrics=metrics)
        with pytest.raises(NetworkError) as exc_info:
            await client.call(URL, endpoint="/detailImage2")

        assert isinstance(exc_info.value.__cause__, httpx.DecodingError)
        [metric] = metrics.all()
        assert metric.status == "error"
        assert metric.error_kind == "network"
        assert metric.attempts == 2

    async def test_redirect_loop_is_terminal(self, make_client, fake_sleep):
        attempts = 0

        def handler(request):
            nonlocal attempts
            attempts += 1
            raise httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=request)

        client = make_client(handler)
        with pytest.raises(TourApiError) as exc_info:
            await client.call(URL)

        assert attempts == 1
        assert fake_sleep.delays == []
        assert exc_info.value.kind == ErrorKind.HTTP_ERROR

    async def test_invalid_url_is_validation_error(self, make_client):
        def handler(request):
            raise httpx.InvalidURL("Invalid non-printable ASCII character in URL")

        client = make_client(handler)
        with pytest.raises(ValidationError):
            await client.call(URL)

    async def test_cancelled_call_recorded_as_cancelled(self, make_client, envelope, respond):
        metrics = ApiMetricsCollector(capacity=10)
        started = asyncio.Event()

        async def handler(request):
            started.set()
            await asyncio.sleep(10)
            return respond(envelope([]))

        client = make_client(handler, metrics=metrics)
        task = asyncio.create_task(client.call(URL, endpoint="/detailCommon2"))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        [metric] = metrics.all()
        assert metric.status == "cancelled"
        assert metric.error_kind == "cancelled"
        assert metrics.error_rate() == 0.0

    async def test_unexpected_exception_not_recorded_as_success(self, make_client, envelope, respond):
        metrics = ApiMetricsCollector(capacity=10)

        def observer(state):
            raise RuntimeError("observer failed")

        client = make_client(lambda request: respond(envelope([])), metrics=metrics)
        with pytest.raises(RuntimeError):
            await client.call(URL, on_state=observer)

        [metric] = metrics.all()
        assert metric.status == "error"
        assert metric.error_kind == "internal_error"
