"""
Per-stage latency for one estimation.

Rules
-----
- Each pipeline stage is timed once; re-entering a stage adds to its total.
- Nothing is logged per stage.  ``log`` writes a single line once the
  pipeline has finished, so a request costs one log record.
"""

import logging
import time
from contextlib import contextmanager
from typing import Callable, Dict

logger = logging.getLogger(__name__)


class PipelineTimer:
    """Accumulates stage durations for a named operation."""

    def __init__(self, operation: str, clock: Callable[[], float] = time.perf_counter):
        self.operation = operation
        self._clock = clock
        self._started_at = clock()
        self.durations_ms: Dict[str, float] = {}

    @contextmanager
    def stage(self, name: str):
        began = self._clock()
        try:
            yield
        finally:
            elapsed_ms = (self._clock() - began) * 1000
            self.durations_ms[name] = self.durations_ms.get(name, 0.0) + elapsed_ms

    @property
    def total_ms(self) -> float:
        return (self._clock() - self._started_at) * 1000

    def format(self) -> str:
        """``<operation> timings a=1ms b=2ms total=3ms`` with stages in run order."""
        parts = [f"{name}={ms:.0f}ms" for name, ms in self.durations_ms.items()]
        parts.append(f"total={self.total_ms:.0f}ms")
        return f"{self.operation} timings " + " ".join(parts)

    def log(self, level: int = logging.DEBUG) -> float:
        total = self.total_ms
        logger.log(level, "%s", self.format())
        return total
