#!/usr/bin/env python3
"""
Sample Store

Holds the feature vectors (e.g. MNIST pixel rows) that bots send to the
inference endpoint and hands out uniformly random picks.

Supported sources:
- ``*.json``: a top-level array of arrays of numbers
- anything else: CSV, one sample per row, one float per field, no header.
  Fields are parsed by pandas, so surrounding whitespace (e.g. ``1, 2``) is
  tolerated.

NaN and infinite values are rejected in both formats.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


class SampleLoadError(Exception):
    """Raised when a sample source cannot be read or parsed"""


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _freeze(values) -> np.ndarray:
    """Return a read-only float64 vector of finite values"""
    arr = np.array(values, dtype=np.float64)
    if not np.isfinite(arr).all():
        raise SampleLoadError("non-finite value (NaN or Infinity) in sample")
    arr.setflags(write=False)
    return arr


def parse_json_samples(text: str) -> List[np.ndarray]:
    """Parse a JSON document holding an array of numeric arrays"""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SampleLoadError(f"failed to decode JSON: {e}") from e

    if not isinstance(data, list):
        raise SampleLoadError(f"failed to decode JSON: expected an array of samples, got {type(data).__name__}")

    samples = []
    for i, row in enumerate(data):
        if not isinstance(row, list):
            raise SampleLoadError(f"failed to decode JSON: sample {i} is not an array")
        for value in row:
            if not _is_number(value):
                raise SampleLoadError(f"failed to decode JSON: sample {i} has non-numeric value {value!r}")
        samples.append(_freeze(row))
    return samples


def parse_csv_samples(path: Union[str, Path]) -> List[np.ndarray]:
    """Parse a header-less CSV file, one sample per row"""
    try:
        # keep_default_na=False so empty fields fail the float conversion instead of becoming NaN
        df = pd.read_csv(path, header=None, dtype=np.float64, keep_default_na=False, skip_blank_lines=True)
    except pd.errors.EmptyDataError:
        return []
    except (ValueError, pd.errors.ParserError) as e:
        raise SampleLoadError(f"failed to parse pixel value: {e}") from e
    except OSError as e:
        raise SampleLoadError(f"failed to read CSV: {e}") from e

    # Short rows are padded with NaN by pandas
    if df.isna().to_numpy().any():
        raise SampleLoadError("failed to read CSV: missing or non-numeric field")

    return [_freeze(row) for row in df.to_numpy()]


class SampleStore:
    """In-memory collection of immutable feature vectors"""

    def __init__(self, seed: Optional[int] = None):
        self._samples: List[np.ndarray] = []
        self._rng = np.random.default_rng(seed)

    def load(self, source: Union[str, Path]) -> int:
        """
        Load samples from a JSON or CSV file, replacing the current set

        The replacement is atomic: on any error the previous samples are kept.

        Args:
            source: Path to the data file. A ``.json`` suffix selects JSON decoding.

        Returns:
            Number of samples loaded

        Raises:
            SampleLoadError: the file is unreadable, malformed or empty
        """
        path = Path(source)

        if path.suffix == '.json':
            try:
                text = path.read_text(encoding='utf-8')
            except OSError as e:
                raise SampleLoadError(f"failed to open file: {e}") from e
            samples = parse_json_samples(text)
        else:
            if not path.is_file():
                raise SampleLoadError(f"failed to open file: {path} does not exist")
            samples = parse_csv_samples(path)

        if not samples:
            raise SampleLoadError(f"no samples found in {path}")

        self._samples = samples
        logger.info(f"Loaded {len(samples)} samples from {path}")
        return len(samples)

    def sample_count(self) -> int:
        return len(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def random_sample(self) -> np.ndarray:
        """Pick one sample uniformly at random"""
        if not self._samples:
            raise SampleLoadError("sample store is empty; load samples before starting bots")
        index = int(self._rng.integers(len(self._samples)))
        return self._samples[index]
