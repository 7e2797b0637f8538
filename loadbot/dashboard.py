#!/usr/bin/env python3
"""
Terminal dashboard

Polls the metrics and log snapshots on a fixed cadence and redraws them with
ANSI escapes. Pressing ``q`` requests shutdown. When stdout is not a terminal
(or ``--no-ui`` is given) the HeadlessReporter logs one summary line per
refresh instead.
"""

import asyncio
import logging
import os
import shutil
import sys
import textwrap
from typing import Callable, List, Optional, TextIO

from loadbot.log_buffer import BoundedLog
from loadbot.logging_setup import Colors
from loadbot.metrics import MetricsAggregator, MetricsSnapshot
from loadbot.supervisor import BotSupervisor

logger = logging.getLogger(__name__)

TABLE_TITLE = "Bot Metrics"
TABLE_WIDTH = 50


def format_metrics_rows(snapshot: MetricsSnapshot) -> List[List[str]]:
    return [
        ["Metric", "Value"],
        ["Total Requests", f"{snapshot.total_requests}"],
        ["Success Requests", f"{snapshot.success_requests}"],
        ["Failed Requests", f"{snapshot.failed_requests}"],
        ["Average Latency (ms)", f"{snapshot.average_latency_ms:.2f}"],
    ]


def render_metrics_table(snapshot: MetricsSnapshot, width: int = TABLE_WIDTH) -> List[str]:
    """Boxed two-column table of the aggregate metrics"""
    inner = width - 2
    label_width = inner // 2
    value_width = inner - label_width - 1

    lines = [f"┌{('─ ' + TABLE_TITLE + ' ').ljust(inner, '─')}┐"]
    for i, (label, value) in enumerate(format_metrics_rows(snapshot)):
        row = f"│{label[:label_width].ljust(label_width)}│{value[:value_width].ljust(value_width)}│"
        if i == 0:
            row = Colors.BOLD + row + Colors.ENDC
        lines.append(row)
    lines.append(f"└{'─' * inner}┘")
    return lines


def render_log_panel(entries: List[str], width: int = 100) -> List[str]:
    """Boxed list of log entries, wrapping long lines"""
    inner = width - 2
    lines = [f"┌{'─ Logs '.ljust(inner, '─')}┐"]
    for entry in entries:
        # Entries may carry their own newlines (e.g. the stop-signal message)
        for part in entry.strip('\n').splitlines() or [""]:
            for chunk in textwrap.wrap(part, inner) or [""]:
                lines.append(f"│{chunk.ljust(inner)}│")
    lines.append(f"└{'─' * inner}┘")
    return lines


def render_frame(snapshot: MetricsSnapshot, entries: List[str], width: Optional[int] = None) -> str:
    if width is None:
        width = min(100, shutil.get_terminal_size((100, 24)).columns)
    lines = render_metrics_table(snapshot, min(TABLE_WIDTH, width))
    lines += render_log_panel(entries, width)
    lines.append(f"{Colors.DEBUG}Press 'q' or Ctrl+C to stop{Colors.ENDC}")
    return "\n".join(lines)


def format_summary(snapshot: MetricsSnapshot) -> str:
    return (f"Total: {snapshot.total_requests} | Success: {snapshot.success_requests} | "
            f"Failed: {snapshot.failed_requests} | Avg Latency: {snapshot.average_latency_ms:.2f} ms")


class KeyReader:
    """Watches an interactive stdin for single key presses"""

    def __init__(self, on_key: Callable[[str], None], stream: Optional[TextIO] = None):
        self.on_key = on_key
        self.stream = stream or sys.stdin
        self._fd: Optional[int] = None
        self._saved_attrs = None

    def start(self) -> bool:
        """Switch the terminal to cbreak mode; returns False when stdin is not a tty"""
        if not self.stream.isatty():
            return False
        try:
            import termios
            import tty
        except ImportError:
            return False

        self._fd = self.stream.fileno()
        self._saved_attrs = termios.tcgetattr(self._fd)
        tty.setcbreak(self._fd)
        asyncio.get_running_loop().add_reader(self._fd, self._on_readable)
        return True

    def _on_readable(self):
        data = os.read(self._fd, 32).decode(errors='ignore')
        for key in data:
            self.on_key(key)

    def stop(self):
        if self._fd is None:
            return
        import termios
        asyncio.get_running_loop().remove_reader(self._fd)
        termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved_attrs)
        self._fd = None


class Dashboard:
    """Live view of one run"""

    def __init__(self, metrics: MetricsAggregator, log: BoundedLog,
                 refresh_interval: float = 1.0, stream: Optional[TextIO] = None,
                 final_pause: float = 2.0):
        self.metrics = metrics
        self.log = log
        self.refresh_interval = refresh_interval
        self.stream = stream or sys.stdout
        self.final_pause = final_pause
        self._key_reader: Optional[KeyReader] = None

    def draw(self):
        frame = render_frame(self.metrics.snapshot(), self.log.snapshot())
        self.stream.write(Colors.CURSOR_HOME + Colors.CLEAR_SCREEN + frame + "\n")
        self.stream.flush()

    def _on_key(self, supervisor: BotSupervisor, key: str):
        if key in ("q", "Q"):
            supervisor.request_stop("Received 'q'. Stopping bots...")

    async def run(self, supervisor: BotSupervisor):
        """Redraw until a stop is requested"""
        self._key_reader = KeyReader(lambda key: self._on_key(supervisor, key))
        if not self._key_reader.start():
            logger.debug("stdin is not interactive; quit key disabled")
            self._key_reader = None

        self.stream.write(Colors.HIDE_CURSOR)
        self.draw()
        while not supervisor.stop_requested:
            try:
                await asyncio.wait_for(supervisor.wait_stop_requested(), timeout=self.refresh_interval)
            except asyncio.TimeoutError:
                pass
            self.draw()

    async def close(self):
        """Render the final state, give the operator a moment to read it, restore the terminal"""
        if self._key_reader is not None:
            self._key_reader.stop()
            self._key_reader = None
        self.draw()
        if self.final_pause > 0:
            await asyncio.sleep(self.final_pause)
        self.stream.write(Colors.SHOW_CURSOR)
        self.stream.flush()


class HeadlessReporter:
    """Logs a metrics line per refresh when no dashboard is shown"""

    def __init__(self, metrics: MetricsAggregator, refresh_interval: float = 1.0):
        self.metrics = metrics
        self.refresh_interval = refresh_interval

    async def run(self, supervisor: BotSupervisor):
        while not supervisor.stop_requested:
            try:
                await asyncio.wait_for(supervisor.wait_stop_requested(), timeout=self.refresh_interval)
            except asyncio.TimeoutError:
                logger.info(f"{Colors.METRIC}{format_summary(self.metrics.snapshot())}{Colors.ENDC}")

    async def close(self):
        pass
