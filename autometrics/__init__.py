"""Function call, latency and concurrency metrics exported in the Prometheus text format."""

__version__ = "0.1.0"

__all__ = [
    "devserver",
    "prometheus_exporter",
    "registry",
    "settings",
    "task_local",
    "tracker",
]