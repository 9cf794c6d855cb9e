"""Global settings: service name, histogram buckets and the metrics registry."""

from __future__ import annotations

import os
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

from .registry import Metrics, Registry, initialize_registry

DEFAULT_HISTOGRAM_BUCKETS: tuple[float, ...] = (
    0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0,
)
DEFAULT_SERVICE_NAME = "autometrics"
SERVICE_NAME_ENV_VARS = ("AUTOMETRICS_SERVICE_NAME", "OTEL_SERVICE_NAME")

T = TypeVar("T")


class _OnceCell(Generic[T]):
    """A value that is set at most once and shared by every thread."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._value: T | None = None
        self._set = False

    def get(self) -> T | None:
        return self._value

    def get_or_init(self, factory: Callable[[], T]) -> T:
        with self._lock:
            if not self._set:
                self._value = factory()
                self._set = True
            return self._value  # type: ignore[return-value]

    def try_insert(self, value: T) -> bool:
        """Store ``value`` if nothing is stored yet; report whether it was stored."""
        with self._lock:
            if self._set:
                return False
            self._value = value
            self._set = True
            return True


class SettingsInitializationError(Exception):
    """The settings could not be installed as the global settings."""

    def __init__(self, message: str = "Autometrics settings have already been initialized") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class AutometricsSettings:
    """The settings every instrumented function reports with."""

    histogram_buckets: tuple[float, ...]
    service_name: str
    registry: Registry
    metrics: Metrics

    @staticmethod
    def builder() -> AutometricsSettingsBuilder:
        return AutometricsSettingsBuilder()


class AutometricsSettingsBuilder:
    """Collects the options for :class:`AutometricsSettings`."""

    def __init__(self) -> None:
        self._service_name: str | None = None
        self._histogram_buckets: tuple[float, ...] | None = None
        self._registry: Registry | None = None

    def histogram_buckets(self, histogram_buckets: Iterable[float]) -> AutometricsSettingsBuilder:
        """Set the latency histogram buckets, in seconds."""
        self._histogram_buckets = tuple(float(b) for b in histogram_buckets)
        return self

    def service_name(self, service_name: str) -> AutometricsSettingsBuilder:
        """Set the ``service_name`` label.

        Otherwise it comes from ``AUTOMETRICS_SERVICE_NAME``, then
        ``OTEL_SERVICE_NAME``, then the package name.
        """
        self._service_name = str(service_name)
        return self

    def registry(self, registry: Registry) -> AutometricsSettingsBuilder:
        """Use ``registry`` to collect the metrics, alongside any custom ones it holds."""
        self._registry = registry
        return self

    def build(self) -> AutometricsSettings:
        buckets = (
            self._histogram_buckets
            if self._histogram_buckets is not None
            else DEFAULT_HISTOGRAM_BUCKETS
        )
        registry, metrics = initialize_registry(
            self._registry if self._registry is not None else Registry(), buckets
        )
        return AutometricsSettings(
            histogram_buckets=buckets,
            service_name=self._resolve_service_name(),
            registry=registry,
            metrics=metrics,
        )

    def _resolve_service_name(self) -> str:
        if self._service_name is not None:
            return self._service_name
        for variable in SERVICE_NAME_ENV_VARS:
            value = os.environ.get(variable)
            if value is not None:
                return value
        return DEFAULT_SERVICE_NAME

    def try_init(self) -> AutometricsSettings:
        """Install these settings globally and initialize the Prometheus exporter.

        Raises :class:`SettingsInitializationError` if settings are already in place
        or the exporter was already initialized.
        """
        settings = self.build()
        if not _AUTOMETRICS_SETTINGS.try_insert(settings):
            raise SettingsInitializationError()

        from . import prometheus_exporter

        try:
            prometheus_exporter.try_init()
        except prometheus_exporter.ExporterInitializationError as err:
            raise SettingsInitializationError(str(err)) from err
        return settings

    def init(self) -> AutometricsSettings:
        """Like :meth:`try_init`; meant to be called once at start-up."""
        return self.try_init()


_AUTOMETRICS_SETTINGS: _OnceCell[AutometricsSettings] = _OnceCell()


def get_settings() -> AutometricsSettings:
    """Return the global settings, installing the defaults if none were set."""
    return _AUTOMETRICS_SETTINGS.get_or_init(lambda: AutometricsSettingsBuilder().build())