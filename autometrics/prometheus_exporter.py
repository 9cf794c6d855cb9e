"""Collect the metrics and export them in the Prometheus text format."""

from __future__ import annotations

from dataclasses import dataclass, field

from .settings import AutometricsSettings, _OnceCell, get_settings

RESPONSE_CONTENT_TYPE = "text/plain; version=0.0.4"


class ExporterInitializationError(Exception):
    """The exporter could not be initialized."""


class EncodingError(Exception):
    """The collected metrics could not be encoded."""


@dataclass(frozen=True)
class PrometheusResponse:
    """An HTTP response carrying the encoded metrics."""

    status: int
    body: str
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class _GlobalPrometheus:
    settings: AutometricsSettings

    def encode_metrics(self) -> str:
        try:
            return self.settings.registry.encode()
        except Exception as err:
            raise EncodingError(str(err)) from err


def _initialize_prometheus_exporter() -> _GlobalPrometheus:
    return _GlobalPrometheus(get_settings())


_GLOBAL_EXPORTER: _OnceCell[_GlobalPrometheus] = _OnceCell()


def try_init() -> None:
    """Initialize the global exporter.

    Raises :class:`ExporterInitializationError` if it was already initialized.
    """
    newly_initialized = False

    def create() -> _GlobalPrometheus:
        nonlocal newly_initialized
        newly_initialized = True
        return _initialize_prometheus_exporter()

    _GLOBAL_EXPORTER.get_or_init(create)
    if not newly_initialized:
        raise ExporterInitializationError("Prometheus exporter has already been initialized")


def init() -> None:
    """Initialize the global exporter; raises if it was already initialized."""
    try_init()


def encode_to_string() -> str:
    """Encode every collected metric, initializing the exporter if needed."""
    return _GLOBAL_EXPORTER.get_or_init(_initialize_prometheus_exporter).encode_metrics()


def encode_http_response() -> PrometheusResponse:
    """Encode the metrics as a 200 response, or a 500 response describing the error."""
    try:
        metrics = encode_to_string()
    except EncodingError as err:
        return PrometheusResponse(status=500, body=repr(err))
    return PrometheusResponse(
        status=200, body=metrics, headers={"Content-Type": RESPONSE_CONTENT_TYPE}
    )