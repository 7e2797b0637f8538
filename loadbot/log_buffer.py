#!/usr/bin/env python3
"""
Bounded operator log shown in the dashboard.

Keeps only the most recent ``max_entries`` messages; the oldest entry is
evicted first.
"""

import threading
from collections import deque
from typing import Deque, List


class BoundedLog:
    """Thread-safe FIFO of the last K messages"""

    def __init__(self, max_entries: int = 10):
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self._lock = threading.Lock()
        self._entries: Deque[str] = deque(maxlen=max_entries)

    @property
    def max_entries(self) -> int:
        return self._entries.maxlen

    def append(self, message: str):
        with self._lock:
            self._entries.append(message)

    def snapshot(self) -> List[str]:
        """Current entries, oldest first"""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
