"""
Metric time series and sampling deadlines for the progressive aggregator.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd


class MetricSeries:
    """
    Time-ordered ``(time, value)`` samples of one metric.

    A sample is stored only when its value differs from the previous
    sample, so a constant metric has exactly one sample.

    Parameters
    ----------
    name : str
        Metric identifier (also the output file suffix).
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._times: List[float] = []
        self._values: List[float] = []

    def record(self, time: float, value: float) -> bool:
        """
        Append a sample if the value changed.

        Returns
        -------
        bool
            ``True`` if the sample was stored.
        """
        if self._values and self._values[-1] == value:
            return False
        if self._times and time < self._times[-1]:
            raise ValueError(
                f"Sample at t={time} precedes the last sample of '{self.name}' "
                f"(t={self._times[-1]})"
            )
        self._times.append(float(time))
        self._values.append(value)
        return True

    @property
    def last_value(self) -> Optional[float]:
        return self._values[-1] if self._values else None

    @property
    def times(self) -> np.ndarray:
        return np.asarray(self._times, dtype=np.float64)

    @property
    def values(self) -> np.ndarray:
        return np.asarray(self._values)

    def samples(self) -> List[Tuple[float, float]]:
        return list(zip(self._times, self._values))

    def to_dataframe(self) -> pd.DataFrame:
        """Samples as a DataFrame with columns ``time`` and ``value``."""
        return pd.DataFrame({'time': self._times, 'value': self._values})

    def __len__(self) -> int:
        return len(self._times)

    def __repr__(self) -> str:
        return f"MetricSeries('{self.name}', samples={len(self)})"


@dataclass
class SamplingDeadline:
    """
    When a metric is due for its next sample.

    ``interval`` of 0 samples at every time advance.  ``version`` is the
    topology version the metric was last computed at (-1 = never), so an
    unchanged topology is not recomputed.
    """
    interval: float = 0.0
    next_time: float = 0.0
    version: int = -1
    cached: Optional[object] = field(default=None, repr=False)

    def due(self, time: float) -> bool:
        """Whether a sample is due at ``time``; advances the deadline if so."""
        if time < self.next_time:
            return False
        if self.interval > 0.0:
            # skip every deadline the clock has already passed
            missed = np.floor((time - self.next_time) / self.interval)
            self.next_time += (missed + 1.0) * self.interval
        return True

    def stale(self, version: int) -> bool:
        return version != self.version
