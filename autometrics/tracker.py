"""Record function calls, their latency and concurrency in the global metrics."""

from __future__ import annotations

import threading
import time
from collections.abc import Iterable, Mapping
from typing import Union

from .registry import Metrics
from .settings import get_settings

Labels = Union[Mapping[str, object], Iterable[tuple[str, object]]]


def _metrics() -> Metrics:
    return get_settings().metrics


class AutometricsTracker:
    """Tracks a single call from its start until :meth:`finish` is called.

    Creating the tracker marks the start of the call. If ``gauge_labels`` are
    given, the concurrent-calls gauge for them is raised for the duration of
    the call.
    """

    def __init__(self, gauge_labels: Labels | None = None) -> None:
        self._lock = threading.Lock()
        self._finished = False
        self._gauge_labels: dict[str, object] | None = None
        if gauge_labels is not None:
            self._gauge_labels = dict(gauge_labels)
            _metrics().gauge.get_or_create(self._gauge_labels).inc()
        self._start_time = time.perf_counter()

    @property
    def finished(self) -> bool:
        return self._finished

    def finish(self, counter_labels: Labels, histogram_labels: Labels) -> float:
        """Count the call, record its duration and return that duration in seconds.

        Raises :class:`RuntimeError` if the call was already finished.
        """
        duration = time.perf_counter() - self._start_time
        with self._lock:
            if self._finished:
                raise RuntimeError("this call has already been finished")
            self._finished = True

        metrics = _metrics()
        metrics.counter.get_or_create(counter_labels).inc(1)
        metrics.histogram.get_or_create(histogram_labels).observe(duration)
        if self._gauge_labels is not None:
            metrics.gauge.get_or_create(self._gauge_labels).dec()
        return duration


def set_build_info(build_info_labels: Labels) -> None:
    """Set the build info metric for ``build_info_labels`` to 1."""
    _metrics().build_info.get_or_create(build_info_labels).set(1)


def initialize_metrics(function_labels: Iterable[Labels]) -> None:
    """Create a zero-valued call counter for each function's label set.

    This makes instrumented functions visible before they are first called.
    """
    counter = _metrics().counter
    for labels in function_labels:
        counter.get_or_create(labels).inc(0)