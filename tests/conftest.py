"""Shared test fixtures for all test modules."""

import json
from pathlib import Path
from typing import Callable, Optional

import httpx
import pytest

from loadbot.dispatcher import RequestDispatcher
from loadbot.log_buffer import BoundedLog
from loadbot.metrics import MetricsAggregator
from loadbot.recorder import ResponseRecorder
from loadbot.samples import SampleStore
from loadbot.supervisor import BotContext
from tests.helpers import ENDPOINT, StubEndpoint


@pytest.fixture
def stub_endpoint() -> Callable[..., StubEndpoint]:
    """Factory for stub endpoints: stub_endpoint(status=500), stub_endpoint(error=...)."""
    return StubEndpoint


@pytest.fixture
def refused_endpoint() -> StubEndpoint:
    """Endpoint that fails every request with a connection error."""
    return StubEndpoint(error=httpx.ConnectError("[Errno 111] Connection refused"))


@pytest.fixture
def csv_samples_path(tmp_path: Path) -> Path:
    """Three two-value samples in CSV form."""
    path = tmp_path / "samples.csv"
    path.write_text("1,2\n3,4\n5,6")
    return path


@pytest.fixture
def json_samples_path(tmp_path: Path) -> Path:
    """Four three-value samples in JSON form."""
    path = tmp_path / "samples.json"
    path.write_text(json.dumps([[0.0, 0.5, 1.0], [1, 2, 3], [4.5, 5.5, 6.5], [7, 8, 9]]))
    return path


@pytest.fixture
def make_context(csv_samples_path: Path) -> Callable[..., BotContext]:
    """Factory for a BotContext wired to a stub endpoint."""

    def _make(endpoint: StubEndpoint, log_size: int = 10, recorder: Optional[ResponseRecorder] = None,
              max_in_flight: int = 0) -> BotContext:
        samples = SampleStore(seed=7)
        samples.load(csv_samples_path)
        metrics = MetricsAggregator()
        log = BoundedLog(log_size)
        dispatcher = RequestDispatcher(metrics, log, recorder=recorder, max_in_flight=max_in_flight,
                                       transport=endpoint.transport)
        return BotContext(endpoint=ENDPOINT, samples=samples, metrics=metrics, log=log, dispatcher=dispatcher)

    return _make
