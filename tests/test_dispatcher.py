"""Tests for request dispatch and outcome classification."""

import asyncio
import json

import httpx
import numpy as np
import pytest

from loadbot.dispatcher import Failure, RequestDispatcher, Success, build_payload
from loadbot.log_buffer import BoundedLog
from loadbot.metrics import MetricsAggregator
from loadbot.recorder import ResponseRecorder
from tests.helpers import ENDPOINT, StubEndpoint


def make_dispatcher(endpoint: StubEndpoint, **kwargs) -> RequestDispatcher:
    return RequestDispatcher(MetricsAggregator(), BoundedLog(10), transport=endpoint.transport, **kwargs)


class TestBuildPayload:
    """Instances envelope."""

    @pytest.mark.dispatch
    def test_wraps_sample_in_instances(self) -> None:
        payload = json.loads(build_payload(np.array([0.0, 0.5, 1.0])))

        assert payload == {"instances": [[0.0, 0.5, 1.0]]}

    @pytest.mark.dispatch
    def test_accepts_plain_sequences(self) -> None:
        payload = json.loads(build_payload((1, 2)))

        assert payload == {"instances": [[1.0, 2.0]]}

    @pytest.mark.dispatch
    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_refuses_non_finite_values(self, value: float) -> None:
        with pytest.raises(ValueError):
            build_payload(np.array([1.0, value]))


class TestDispatch:
    """Outcome classification."""

    @pytest.mark.dispatch
    @pytest.mark.asyncio
    async def test_status_200_is_success(self) -> None:
        endpoint = StubEndpoint(200, "ok")
        dispatcher = make_dispatcher(endpoint)

        outcome = await dispatcher.dispatch(ENDPOINT, np.array([1.0, 2.0]))
        await dispatcher.aclose()

        assert isinstance(outcome, Success)
        assert outcome.ok
        assert outcome.latency_ms > 0
        assert outcome.body == "ok"

    @pytest.mark.dispatch
    @pytest.mark.asyncio
    async def test_sends_json_post(self) -> None:
        endpoint = StubEndpoint()
        dispatcher = make_dispatcher(endpoint)

        await dispatcher.dispatch(ENDPOINT, np.array([3.0, 4.0]))
        await dispatcher.aclose()

        request = endpoint.requests[0]
        assert request.method == "POST"
        assert str(request.url) == ENDPOINT
        assert request.headers["content-type"] == "application/json"
        assert json.loads(request.content) == {"instances": [[3.0, 4.0]]}

    @pytest.mark.dispatch
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [201, 204, 400, 404, 500, 503])
    async def test_non_200_is_failure_with_status(self, status: int) -> None:
        dispatcher = make_dispatcher(StubEndpoint(status, "nope"))

        outcome = await dispatcher.dispatch(ENDPOINT, [1.0])
        await dispatcher.aclose()

        assert isinstance(outcome, Failure)
        assert not outcome.ok
        assert outcome.status == status
        assert str(status) in outcome.reason

    @pytest.mark.dispatch
    @pytest.mark.asyncio
    async def test_transport_error_is_failure(self, refused_endpoint: StubEndpoint) -> None:
        dispatcher = make_dispatcher(refused_endpoint)

        outcome = await dispatcher.dispatch(ENDPOINT, [1.0])
        await dispatcher.aclose()

        assert isinstance(outcome, Failure)
        assert outcome.status is None
        assert outcome.reason.startswith("Error sending request:")
        assert "Connection refused" in outcome.reason

    @pytest.mark.dispatch
    @pytest.mark.asyncio
    async def test_timeout_is_failure(self) -> None:
        dispatcher = make_dispatcher(StubEndpoint(error=httpx.ReadTimeout("timed out")))

        outcome = await dispatcher.dispatch(ENDPOINT, [1.0])
        await dispatcher.aclose()

        assert isinstance(outcome, Failure)
        assert "timed out" in outcome.reason

    @pytest.mark.dispatch
    @pytest.mark.asyncio
    async def test_invalid_url_is_failure(self) -> None:
        dispatcher = RequestDispatcher(MetricsAggregator(), BoundedLog(10))

        outcome = await dispatcher.dispatch("not a url", [1.0])
        await dispatcher.aclose()

        assert isinstance(outcome, Failure)


class TestRun:
    """Recording: one metrics update and one log line per call."""

    @pytest.mark.dispatch
    @pytest.mark.asyncio
    async def test_success_is_recorded(self) -> None:
        dispatcher = make_dispatcher(StubEndpoint())

        await dispatcher.run(ENDPOINT, [1.0])
        await dispatcher.aclose()

        snapshot = dispatcher.metrics.snapshot()
        assert snapshot.total_requests == 1
        assert snapshot.success_requests == 1
        assert snapshot.average_latency_ms > 0
        entries = dispatcher.log.snapshot()
        assert len(entries) == 1
        assert entries[0].startswith("Request sent successfully, Latency:")

    @pytest.mark.dispatch
    @pytest.mark.asyncio
    async def test_protocol_failure_is_recorded(self) -> None:
        dispatcher = make_dispatcher(StubEndpoint(500, "boom"))

        await dispatcher.run(ENDPOINT, [1.0])
        await dispatcher.aclose()

        snapshot = dispatcher.metrics.snapshot()
        assert snapshot.total_requests == 1
        assert snapshot.failed_requests == 1
        assert snapshot.latencies == ()
        assert dispatcher.log.snapshot() == ["Request failed: 500 Internal Server Error"]

    @pytest.mark.dispatch
    @pytest.mark.asyncio
    async def test_saves_response_when_recorder_is_set(self, tmp_path) -> None:
        recorder = ResponseRecorder(tmp_path / "results")
        dispatcher = make_dispatcher(StubEndpoint(200, '{"predictions": [7]}'), recorder=recorder)

        await dispatcher.run(ENDPOINT, [1.0])
        await dispatcher.aclose()

        assert '{"predictions": [7]}' in recorder.path.read_text()
        assert dispatcher.log.snapshot()[0].startswith("Request sent and saved successfully")

    @pytest.mark.dispatch
    @pytest.mark.asyncio
    async def test_persistence_error_does_not_block_metrics(self, tmp_path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("a file where the results dir should be")
        recorder = ResponseRecorder(blocker / "results")
        dispatcher = make_dispatcher(StubEndpoint(), recorder=recorder)

        await dispatcher.run(ENDPOINT, [1.0])
        await dispatcher.aclose()

        assert dispatcher.metrics.snapshot().success_requests == 1
        entries = dispatcher.log.snapshot()
        assert len(entries) == 1
        assert "Error saving response" in entries[0]

    @pytest.mark.dispatch
    @pytest.mark.asyncio
    async def test_max_in_flight_still_records_every_request(self) -> None:
        dispatcher = make_dispatcher(StubEndpoint(), max_in_flight=2)

        await asyncio.gather(*(dispatcher.run(ENDPOINT, [float(i)]) for i in range(10)))
        await dispatcher.aclose()

        assert dispatcher.metrics.snapshot().success_requests == 10
