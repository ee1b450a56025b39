import os
import threading
from collections import deque
from typing import Callable, Dict, Optional

from vectorpipe.models import ProcessingMetrics, ProcessingMode


DEFAULT_LATENCY_WINDOW = 1000

# Modes with their own latency window
_TRACKED_MODES = (ProcessingMode.SYNCHRONOUS_ONLINE, ProcessingMode.DEFERRED_BATCH)


def _system_load() -> float:
    """One-minute load average, 0.0 where the platform has none."""

    try:
        return os.getloadavg()[0]
    except (AttributeError, OSError):
        return 0.0


class MetricsTracker:
    """
    In-process monitoring collaborator.

    Records per-request latency and cost and hands out immutable
    ProcessingMetrics snapshots for the mode selector.

    Counters and cost are shared by both paths. Latency is kept per
    processing mode; snapshots report the online window only.
    """

    def __init__(
        self,
        queue_size_fn: Optional[Callable[[], int]] = None,
        load_fn: Callable[[], float] = _system_load,
        latency_window: int = DEFAULT_LATENCY_WINDOW,
    ):

        if latency_window <= 0:
            raise ValueError(f"Invalid latency window: {latency_window}")

        self._lock = threading.Lock()
        self._queue_size_fn = queue_size_fn
        self._load_fn = load_fn
        self._latency_window = latency_window

        self.reset()

    def reset(self):

        with self._lock:

            self._total_requests = 0
            self._successful_requests = 0
            self._failed_requests = 0
            self._total_cost_cents = 0

            # rolling windows, averages ignore older samples
            self._latencies: Dict[ProcessingMode, deque] = {
                mode: deque(maxlen=self._latency_window) for mode in _TRACKED_MODES
            }

    def record_success(
        self,
        latency_ms: float,
        cost_cents: int = 0,
        mode: ProcessingMode = ProcessingMode.SYNCHRONOUS_ONLINE,
    ):

        with self._lock:

            window = self._window(mode)

            self._total_requests += 1
            self._successful_requests += 1
            self._total_cost_cents += cost_cents
            window.append(latency_ms)

    def record_failure(
        self,
        latency_ms: Optional[float] = None,
        cost_cents: int = 0,
        mode: ProcessingMode = ProcessingMode.SYNCHRONOUS_ONLINE,
    ):

        with self._lock:

            window = self._window(mode)

            self._total_requests += 1
            self._failed_requests += 1
            self._total_cost_cents += cost_cents

            if latency_ms is not None:
                window.append(latency_ms)

    def average_latency(
        self, mode: ProcessingMode = ProcessingMode.SYNCHRONOUS_ONLINE
    ) -> float:

        with self._lock:
            return _mean(self._window(mode))

    def get_latency_percentile(
        self,
        percentile: float,
        mode: ProcessingMode = ProcessingMode.SYNCHRONOUS_ONLINE,
    ) -> float:

        with self._lock:
            latencies = sorted(self._window(mode))

        if not latencies:
            return 0.0

        index = int(len(latencies) * percentile / 100)

        index = min(index, len(latencies) - 1)

        return latencies[index]

    def snapshot(self) -> ProcessingMetrics:
        """Immutable point-in-time view for the decision engine."""

        queue_size = self._queue_size_fn() if self._queue_size_fn else 0
        system_load = self._load_fn()

        with self._lock:

            return ProcessingMetrics(
                total_cost_cents=self._total_cost_cents,
                average_processing_time_ms=_mean(
                    self._window(ProcessingMode.SYNCHRONOUS_ONLINE)
                ),
                system_load_average=system_load,
                current_queue_size=queue_size,
                total_requests=self._total_requests,
                successful_requests=self._successful_requests,
                failed_requests=self._failed_requests,
            )

    def _window(self, mode: ProcessingMode) -> deque:

        if mode not in self._latencies:
            raise ValueError(f"No latency window for mode: {mode.value}")

        return self._latencies[mode]


def _mean(values) -> float:

    if not values:
        return 0.0

    return sum(values) / len(values)
