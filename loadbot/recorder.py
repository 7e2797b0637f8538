#!/usr/bin/env python3
"""
Response Recorder

Appends successful response bodies to a plain-text log under the results
directory:

    Time: <RFC3339 timestamp>
    Response: <body>

"""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class ResponseRecorder:
    """Append-only response log; write failures are reported, never raised"""

    def __init__(self, results_dir: Union[str, Path] = "./results", filename: str = "responses.log"):
        self.results_dir = Path(results_dir).expanduser()
        self.path = self.results_dir / filename
        self._lock = threading.Lock()

    @staticmethod
    def format_record(body: str, when: Optional[datetime] = None) -> str:
        when = when or datetime.now().astimezone()
        return f"Time: {when.isoformat(timespec='seconds')}\nResponse: {body}\n\n"

    def record(self, body: str, when: Optional[datetime] = None) -> Optional[str]:
        """
        Append one response body

        Returns:
            None on success, otherwise a description of the persistence error
        """
        entry = self.format_record(body, when)
        try:
            with self._lock:
                self.results_dir.mkdir(parents=True, exist_ok=True)
                with open(self.path, 'a', encoding='utf-8') as f:
                    f.write(entry)
        except OSError as e:
            logger.error(f"Failed to save response to {self.path}: {e}")
            return f"Error saving response: {e}"
        return None
