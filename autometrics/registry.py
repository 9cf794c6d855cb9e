"""Metric families, a registry for them and the Prometheus text encoding."""

from __future__ import annotations

import math
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Union

COUNTER_NAME_PROMETHEUS = "function_calls_total"
HISTOGRAM_NAME_PROMETHEUS = "function_calls_duration_seconds"
GAUGE_NAME_PROMETHEUS = "function_calls_concurrent"
BUILD_INFO_NAME = "build_info"

COUNTER_DESCRIPTION = "Autometrics counter for tracking function calls"
HISTOGRAM_DESCRIPTION = "Autometrics histogram for tracking function call duration"
GAUGE_DESCRIPTION = "Autometrics gauge for tracking concurrent function calls"
BUILD_INFO_DESCRIPTION = "Autometrics info metric for tracking software version and build details"

LabelPairs = tuple[tuple[str, str], ...]
LabelsInput = Union[Mapping[str, object], Iterable[tuple[str, object]]]


def _normalize_labels(labels: LabelsInput) -> LabelPairs:
    """Turn a mapping or sequence of pairs into an ordered, hashable label set.

    Labels whose value is ``None`` are left out, the way optional labels are.
    """
    items = labels.items() if isinstance(labels, Mapping) else labels
    return tuple((str(key), str(value)) for key, value in items if value is not None)


def _escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def _format_labels(pairs: Iterable[tuple[str, str]]) -> str:
    rendered = ",".join(f'{key}="{_escape_label_value(value)}"' for key, value in pairs)
    return f"{{{rendered}}}" if rendered else ""


def _format_number(value: float) -> str:
    if isinstance(value, int):
        return str(value)
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if math.isnan(value):
        return "NaN"
    return repr(float(value))


class Counter:
    """A monotonically increasing count."""

    kind = "counter"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: float = 0

    @property
    def value(self) -> float:
        return self._value

    def inc(self, amount: float = 1) -> float:
        """Add ``amount`` (which may be zero) and return the new total."""
        if amount < 0:
            raise ValueError("a counter can only be increased")
        with self._lock:
            self._value += amount
            return self._value

    def sample_lines(self, name: str, labels: LabelPairs) -> list[str]:
        return [f"{name}_total{_format_labels(labels)} {_format_number(self._value)}"]


class Gauge:
    """An integer value that can go up and down."""

    kind = "gauge"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    @property
    def value(self) -> int:
        return self._value

    def inc(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    def dec(self) -> int:
        with self._lock:
            self._value -= 1
            return self._value

    def set(self, value: int) -> None:
        with self._lock:
            self._value = value

    def sample_lines(self, name: str, labels: LabelPairs) -> list[str]:
        return [f"{name}{_format_labels(labels)} {_format_number(self._value)}"]


class Histogram:
    """Observations sorted into cumulative buckets with a running sum and count."""

    kind = "histogram"

    def __init__(self, buckets: Iterable[float]) -> None:
        bounds = [float(b) for b in buckets]
        if any(later <= earlier for earlier, later in zip(bounds, bounds[1:])):
            raise ValueError("histogram buckets must be strictly increasing")
        if not bounds or not math.isinf(bounds[-1]):
            bounds.append(math.inf)
        self._lock = threading.Lock()
        self._bounds = tuple(bounds)
        self._counts = [0] * len(bounds)
        self._sum = 0.0
        self._count = 0

    @property
    def buckets(self) -> tuple[float, ...]:
        return self._bounds

    @property
    def sum(self) -> float:
        return self._sum

    @property
    def count(self) -> int:
        return self._count

    def observe(self, value: float) -> None:
        with self._lock:
            self._sum += value
            self._count += 1
            for position, bound in enumerate(self._bounds):
                if value <= bound:
                    self._counts[position] += 1
                    break

    def cumulative_counts(self) -> list[tuple[float, int]]:
        """Bucket upper bounds paired with the number of observations at or below each."""
        with self._lock:
            counts = list(self._counts)
        running = 0
        result = []
        for bound, count in zip(self._bounds, counts):
            running += count
            result.append((bound, running))
        return result

    def sample_lines(self, name: str, labels: LabelPairs) -> list[str]:
        cumulative = self.cumulative_counts()
        lines = [
            f"{name}_sum{_format_labels(labels)} {_format_number(self._sum)}",
            f"{name}_count{_format_labels(labels)} {self._count}",
        ]
        lines.extend(
            f"{name}_bucket{_format_labels((*labels, ('le', _format_number(bound))))} {count}"
            for bound, count in cumulative
        )
        return lines


Metric = Union[Counter, Gauge, Histogram]


class Family:
    """A set of metrics of one type, one per distinct label set."""

    def __init__(
        self,
        metric_type: type,
        *,
        factory: Callable[[], Metric] | None = None,
        unit: str | None = None,
    ) -> None:
        self.metric_type = metric_type
        self.unit = unit
        self._factory = factory if factory is not None else metric_type
        self._lock = threading.Lock()
        self._series: dict[LabelPairs, Metric] = {}

    @property
    def kind(self) -> str:
        return self.metric_type.kind

    def get_or_create(self, labels: LabelsInput) -> Metric:
        """Return the metric for ``labels``, creating it on first use."""
        key = _normalize_labels(labels)
        with self._lock:
            metric = self._series.get(key)
            if metric is None:
                metric = self._factory()
                self._series[key] = metric
            return metric

    def series(self) -> list[tuple[LabelPairs, Metric]]:
        with self._lock:
            return list(self._series.items())


@dataclass
class _Registration:
    description: str
    family: Family


class Registry:
    """Named metric families, encoded together in the OpenMetrics text format."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, _Registration] = {}

    def register(self, name: str, description: str, family: Family) -> str:
        """Add ``family`` under ``name`` (suffixed with its unit) and return the full name."""
        if family.unit and not name.endswith(f"_{family.unit}"):
            name = f"{name}_{family.unit}"
        with self._lock:
            if name in self._entries:
                raise ValueError(f"a metric named {name!r} is already registered")
            self._entries[name] = _Registration(description, family)
        return name

    def names(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def encode(self) -> str:
        with self._lock:
            entries = list(self._entries.items())
        lines: list[str] = []
        for name, entry in entries:
            family = entry.family
            lines.append(f"# HELP {name} {_escape_help(entry.description)}")
            lines.append(f"# TYPE {name} {family.kind}")
            if family.unit:
                lines.append(f"# UNIT {name} {family.unit}")
            for labels, metric in family.series():
                lines.extend(metric.sample_lines(name, labels))
        lines.append("# EOF")
        return "\n".join(lines) + "\n"


@dataclass
class Metrics:
    """The metric families that instrumented functions report to."""

    counter: Family
    histogram: Family
    gauge: Family
    build_info: Family


def initialize_registry(
    registry: Registry, histogram_buckets: Iterable[float]
) -> tuple[Registry, Metrics]:
    """Register the function call metrics in ``registry``."""
    buckets = tuple(histogram_buckets)

    counter = Family(Counter)
    # The encoder appends the _total suffix itself.
    registry.register(
        COUNTER_NAME_PROMETHEUS.replace("_total", ""), COUNTER_DESCRIPTION, counter
    )

    histogram = Family(Histogram, factory=lambda: Histogram(buckets), unit="seconds")
    # Registering with the unit adds the _seconds suffix back.
    registry.register(
        HISTOGRAM_NAME_PROMETHEUS.replace("_seconds", ""), HISTOGRAM_DESCRIPTION, histogram
    )

    gauge = Family(Gauge)
    registry.register(GAUGE_NAME_PROMETHEUS, GAUGE_DESCRIPTION, gauge)

    build_info = Family(Gauge)
    registry.register(BUILD_INFO_NAME, BUILD_INFO_DESCRIPTION, build_info)

    return registry, Metrics(
        counter=counter, histogram=histogram, gauge=gauge, build_info=build_info
    )