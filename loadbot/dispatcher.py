#!/usr/bin/env python3
"""
Request Dispatcher

Sends one sample to the inference endpoint as

    POST <endpoint>
    Content-Type: application/json

    {"instances": [[v1, v2, ...]]}

and classifies the result. HTTP 200 is the only success; transport errors and
any other status become failures. There are no retries.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import httpx

from loadbot.log_buffer import BoundedLog
from loadbot.metrics import MetricsAggregator
from loadbot.recorder import ResponseRecorder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Success:
    """Request answered with HTTP 200"""
    latency_ms: float
    status: int = 200
    body: str = ""

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """Transport error or non-200 response"""
    reason: str
    status: Optional[int] = None

    @property
    def ok(self) -> bool:
        return False


RequestOutcome = Union[Success, Failure]


def build_payload(sample: Sequence[float]) -> bytes:
    """Serialize one sample into the instances envelope"""
    values = sample.tolist() if hasattr(sample, 'tolist') else [float(v) for v in sample]
    return json.dumps({"instances": [values]}, allow_nan=False).encode('utf-8')


class RequestDispatcher:
    """Issues inference requests and folds their outcomes into metrics and the log"""

    def __init__(self, metrics: MetricsAggregator, log: BoundedLog,
                 recorder: Optional[ResponseRecorder] = None,
                 timeout: Optional[float] = None,
                 max_in_flight: int = 0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the dispatcher.

        Args:
            metrics: Shared aggregator updated once per request
            log: Operator log receiving one line per request
            recorder: Optional sink for successful response bodies
            timeout: Request timeout in seconds (None keeps the httpx default)
            max_in_flight: Cap on concurrent requests (0 = unbounded)
            transport: Custom httpx transport, e.g. httpx.MockTransport in tests
        """
        self.metrics = metrics
        self.log = log
        self.recorder = recorder
        self._semaphore = asyncio.Semaphore(max_in_flight) if max_in_flight > 0 else None

        client_kwargs = {}
        if timeout is not None:
            client_kwargs['timeout'] = timeout
        if transport is not None:
            client_kwargs['transport'] = transport
        self._client = httpx.AsyncClient(**client_kwargs)

    async def dispatch(self, endpoint: str, sample: Sequence[float]) -> RequestOutcome:
        """Send a single request and classify the result"""
        payload = build_payload(sample)
        start_time = time.perf_counter()

        try:
            response = await self._client.post(
                endpoint,
                content=payload,
                headers={"Content-Type": "application/json"},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            description = str(e) or type(e).__name__
            logger.debug(f"Transport error for {endpoint}: {description}")
            return Failure(reason=f"Error sending request: {description}")

        latency_ms = (time.perf_counter() - start_time) * 1000

        if response.status_code != 200:
            status_text = f"{response.status_code} {response.reason_phrase}".strip()
            return Failure(reason=f"Request failed: {status_text}", status=response.status_code)

        return Success(latency_ms=latency_ms, status=response.status_code, body=response.text)

    async def run(self, endpoint: str, sample: Sequence[float]) -> RequestOutcome:
        """Dispatch and record: exactly one metrics update and one log line per call"""
        if self._semaphore is not None:
            async with self._semaphore:
                outcome = await self.dispatch(endpoint, sample)
        else:
            outcome = await self.dispatch(endpoint, sample)

        self.record(outcome)
        return outcome

    def record(self, outcome: RequestOutcome):
        if isinstance(outcome, Success):
            self.metrics.record_success(outcome.latency_ms)
            message = f"Request sent successfully, Latency: {outcome.latency_ms:.2f} ms"
            if self.recorder is not None:
                error = self.recorder.record(outcome.body)
                if error is None:
                    message = f"Request sent and saved successfully, Latency: {outcome.latency_ms:.2f} ms"
                else:
                    message = f"{message} ({error})"
            self.log.append(message)
        else:
            self.metrics.record_failure()
            self.log.append(outcome.reason)

    async def aclose(self):
        await self._client.aclose()
