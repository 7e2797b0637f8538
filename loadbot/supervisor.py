#!/usr/bin/env python3
"""
Bot Supervisor

Owns a pool of periodic bots. Each bot ticks every ``interval`` seconds,
draws a random sample and fires off a dispatch without waiting for it.
Shutdown is cooperative: one shared event is set exactly once, every bot
notices it on its next wait and leaves its loop.

Known weak guarantee: by default the supervisor only waits for the tick
loops. A dispatch spawned on the last tick may still be in flight when
"All bots stopped." is logged, and its outcome can land in the metrics
afterwards (or never, if the event loop is torn down first). Set
``drain_timeout`` to wait for those stragglers.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Set

from loadbot.dispatcher import RequestDispatcher
from loadbot.log_buffer import BoundedLog
from loadbot.metrics import MetricsAggregator
from loadbot.samples import SampleLoadError, SampleStore

logger = logging.getLogger(__name__)


class WorkerState:
    RUNNING = "running"
    STOPPING = "stopping"
    TERMINATED = "terminated"


@dataclass
class BotContext:
    """Everything a bot and its dispatches share for one run"""
    endpoint: str
    samples: SampleStore
    metrics: MetricsAggregator
    log: BoundedLog
    dispatcher: RequestDispatcher


class BotWorker:
    """One periodic bot"""

    def __init__(self, index: int, context: BotContext, interval: float,
                 stop_event: asyncio.Event, one_in_flight: bool = False):
        self.index = index
        self.context = context
        self.interval = interval
        self.one_in_flight = one_in_flight
        self._stop_event = stop_event
        self.state = WorkerState.RUNNING
        self.ticks = 0
        self.skipped_ticks = 0
        self.pending: Set[asyncio.Task] = set()

    async def run(self):
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                # Event may have been set right as the timer fired
                if not self._stop_event.is_set():
                    self._tick()

        self.state = WorkerState.STOPPING
        self.context.log.append(f"Bot {self.index} stopping gracefully...")
        logger.debug(f"Bot {self.index} stopped after {self.ticks} ticks "
                     f"({len(self.pending)} requests still in flight)")
        self.state = WorkerState.TERMINATED

    def _tick(self):
        self.ticks += 1
        if self.one_in_flight and self.pending:
            self.skipped_ticks += 1
            self.context.log.append(f"Bot {self.index} skipped tick: previous request still in flight")
            return

        sample = self.context.samples.random_sample()
        task = asyncio.create_task(self.context.dispatcher.run(self.context.endpoint, sample))
        self.pending.add(task)
        task.add_done_callback(self._on_dispatch_done)

    def _on_dispatch_done(self, task: asyncio.Task):
        self.pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Bot {self.index} dispatch crashed: {error!r}")


class BotSupervisor:
    """Starts the bots and coordinates their shutdown"""

    def __init__(self, context: BotContext, num_bots: int = 1, interval: float = 1.0,
                 one_in_flight: bool = False, drain_timeout: float = 0.0):
        if num_bots < 1:
            raise ValueError(f"num_bots must be >= 1, got {num_bots}")
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")

        self.context = context
        self.num_bots = num_bots
        self.interval = interval
        self.one_in_flight = one_in_flight
        self.drain_timeout = drain_timeout

        self._stop_event = asyncio.Event()
        self.workers: List[BotWorker] = []
        self._tasks: List[asyncio.Task] = []
        self._finishing: Optional[asyncio.Task] = None

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    async def wait_stop_requested(self):
        await self._stop_event.wait()

    def start(self):
        """Spawn one task per bot (must run inside the event loop)"""
        if self._tasks:
            raise RuntimeError("bots already started")
        if self.context.samples.sample_count() == 0:
            raise SampleLoadError("sample store is empty; load samples before starting bots")

        self.context.log.append(f"Starting {self.num_bots} bots at {self.interval:g}-second intervals...")
        logger.info(f"Starting {self.num_bots} bots against {self.context.endpoint} "
                    f"(interval: {self.interval:g}s)")

        for i in range(self.num_bots):
            worker = BotWorker(i, self.context, self.interval, self._stop_event,
                               one_in_flight=self.one_in_flight)
            self.workers.append(worker)
            self._tasks.append(asyncio.create_task(worker.run(), name=f"bot-{i}"))

    def request_stop(self, reason: Optional[str] = None) -> bool:
        """
        Signal every bot to stop

        Safe to call any number of times (e.g. from a signal handler and the
        quit key); only the first call has an effect.

        Returns:
            True if this call triggered the shutdown
        """
        if self._stop_event.is_set():
            return False
        if reason:
            self.context.log.append(reason)
            logger.info(reason)
        self._stop_event.set()
        return True

    def pending_dispatches(self) -> Set[asyncio.Task]:
        pending = set()
        for worker in self.workers:
            pending.update(worker.pending)
        return pending

    async def wait_stopped(self):
        """Wait for every tick loop to exit (and drain, if configured)"""
        if self._finishing is None:
            self._finishing = asyncio.ensure_future(self._finish())
        await asyncio.shield(self._finishing)

    async def stop(self, reason: Optional[str] = None):
        self.request_stop(reason)
        await self.wait_stopped()

    async def _finish(self):
        if self._tasks:
            await asyncio.gather(*self._tasks)

        if self.drain_timeout > 0:
            await self._drain()
        else:
            in_flight = len(self.pending_dispatches())
            if in_flight:
                logger.debug(f"{in_flight} requests still in flight at shutdown (not awaited)")

        self.context.log.append("All bots stopped.")
        logger.info("All bots stopped.")

    async def _drain(self):
        pending = self.pending_dispatches()
        if not pending:
            return

        logger.info(f"Waiting up to {self.drain_timeout:g}s for {len(pending)} in-flight requests...")
        _, still_pending = await asyncio.wait(pending, timeout=self.drain_timeout)
        if still_pending:
            logger.warning(f"Cancelling {len(still_pending)} requests still in flight after drain timeout")
            for task in still_pending:
                task.cancel()
            await asyncio.gather(*still_pending, return_exceptions=True)
