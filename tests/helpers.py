"""Stub endpoint shared by the dispatch, supervisor and end-to-end tests."""

import asyncio
from typing import List, Optional

import httpx

ENDPOINT = "http://inference.test/v1/models/mnist:predict"


class StubEndpoint:
    """httpx.MockTransport handler answering every request with a fixed response

    With ``delay`` set the handler becomes a coroutine that sleeps before
    answering, which keeps requests in flight for that long.
    """

    def __init__(self, status: int = 200, body: str = "ok", error: Optional[Exception] = None,
                 delay: float = 0.0):
        self.status = status
        self.body = body
        self.error = error
        self.delay = delay
        self.requests: List[httpx.Request] = []
        self.completed = 0

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        if self.delay:
            return self._delayed()
        return self._respond()

    async def _delayed(self) -> httpx.Response:
        await asyncio.sleep(self.delay)
        return self._respond()

    def _respond(self) -> httpx.Response:
        self.completed += 1
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status, text=self.body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)
