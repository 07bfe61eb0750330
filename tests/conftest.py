"""Shared test fixtures."""

import json

import httpx
import mlflow
import pytest

from tourgate.retrieval.http import RetryingClient, RetryPolicy
from tourgate.retrieval.tour_api import TourApiGateway


@pytest.fixture(autouse=True)
def _disable_mlflow_tracing():
    """Disable MLflow tracing during tests: no side effects, no mlruns/ writes."""
    mlflow.tracing.disable()
    yield
    mlflow.tracing.enable()


class FakeSleep:
    """Records requested backoff delays instead of sleeping."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


def _envelope(items=None, total_count=None, result_code="0000", result_msg="OK", page_no=1, num_of_rows=10):
    if items is None:
        body_items = ""
    elif isinstance(items, dict):
        body_items = {"item": items}
    else:
        body_items = {"item": list(items)}
    if total_count is None:
        total_count = 0 if items is None else (1 if isinstance(items, dict) else len(items))
    return {
        "response": {
            "header": {"resultCode": result_code, "resultMsg": result_msg},
            "body": {
                "items": body_items,
                "numOfRows": num_of_rows,
                "pageNo": page_no,
                "totalCount": total_count,
            },
        }
    }


@pytest.fixture
def envelope():
    """Build an upstream JSON envelope: envelope(items, total_count, result_code=...)."""
    return _envelope


def json_response(payload: dict, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload, ensure_ascii=False).encode())


@pytest.fixture
def respond():
    """httpx.Response with a JSON body."""
    return json_response


@pytest.fixture
async def make_client(fake_sleep):
    """RetryingClient over an httpx.MockTransport handler, with fake sleep."""
    opened: list[httpx.AsyncClient] = []

    def _make(handler, policy: RetryPolicy | None = None, metrics=None) -> RetryingClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        opened.append(http_client)
        return RetryingClient(http_client=http_client, policy=policy or RetryPolicy(), metrics=metrics, sleep=fake_sleep)

    yield _make
    for client in opened:
        await client.aclose()


@pytest.fixture
def make_gateway(make_client):
    """TourApiGateway over a mock transport: make_gateway(handler, policy=..., metrics=...)."""

    def _make(handler, policy: RetryPolicy | None = None, metrics=None, service_key: str = "test-key") -> TourApiGateway:
        return TourApiGateway(
            make_client(handler, policy=policy, metrics=metrics),
            service_key=service_key,
            base_url="https://tour.test/B551011/KorService2",
        )

    return _make
