# autometrics

Function call metrics for Python services, kept in an in-process registry
and exported in the Prometheus text format. No third-party dependencies.

The package keeps four metric families in a registry:

| Exported name                     | Type      | Records                                   |
|-----------------------------------|-----------|-------------------------------------------|
| `function_calls_total`            | counter   | number of calls, per label set            |
| `function_calls_duration_seconds` | histogram | call duration in seconds, per label set   |
| `function_calls_concurrent`       | gauge     | calls currently in flight, per label set  |
| `build_info`                      | gauge     | set to 1 for the given build labels       |

Labels are whatever you pass: a mapping or a sequence of `(name, value)`
pairs. Pairs whose value is `None` are left out, so optional labels such as
an objective name can simply be passed as `None`.

## Settings

Global settings are configured once, through a builder, before anything
reads them:

```python
from autometrics.settings import AutometricsSettings

settings = (
    AutometricsSettings.builder()
    .service_name("checkout")
    .histogram_buckets([0.1, 0.2, 0.3, 0.4, 0.5])
    .init()
)
```

- `service_name` defaults to the `AUTOMETRICS_SERVICE_NAME` environment
  variable, then `OTEL_SERVICE_NAME`, then `autometrics`. It is stored on the
  settings as `settings.service_name`, for use in the labels you record.
- `histogram_buckets` (in seconds) defaults to
  `0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0`;
  a `+Inf` bucket is always added.
- `registry(...)` takes your own `autometrics.registry.Registry`, so that
  custom metric families are exported alongside the built-in ones.
- `build()` returns an `AutometricsSettings` without installing it.

`try_init()` installs the settings globally and then initialises the
Prometheus exporter; `init()` does the same. Both raise
`SettingsInitializationError` if settings were already installed or the
exporter was already initialised. `get_settings()` returns the installed
settings, building and installing the defaults on first use — so configure
the settings before recording or exporting any metrics.

## Recording calls

`autometrics.tracker.AutometricsTracker` measures one call:

```python
from autometrics.tracker import AutometricsTracker, initialize_metrics, set_build_info

labels = {"function": "get_index", "module": "app", "service_name": "checkout"}

tracker = AutometricsTracker(gauge_labels=labels)   # raises the concurrency gauge
...                                                 # the call itself
duration = tracker.finish(
    counter_labels={**labels, "result": "ok"},
    histogram_labels=labels,
)
```

`finish` increments the counter, records the elapsed time in the histogram,
lowers the gauge again if gauge labels were given, and returns the duration
in seconds. Finishing the same tracker twice raises `RuntimeError`.

- `set_build_info(labels)` sets the `build_info` gauge for those labels to 1.
- `initialize_metrics(label_sets)` creates a zero-valued counter for each
  label set, so functions show up in the export before their first call.

## Exporting to Prometheus

```python
from autometrics import prometheus_exporter

prometheus_exporter.init()

def metrics_handler():
    response = prometheus_exporter.encode_http_response()
    return response.status, response.headers, response.body
```

- `try_init()` initialises the global exporter and raises
  `ExporterInitializationError` if it was already initialised; `init()` is
  the same call.
- `encode_to_string()` renders every family in the registry, initialising
  the exporter on first use. Each family has `# HELP` and `# TYPE` lines
  (and `# UNIT` for the histogram); counters gain a `_total` suffix,
  histograms are written as `_sum`, `_count` and cumulative `_bucket`
  samples with an `le` label; the output ends with `# EOF`.
- `encode_http_response()` returns a `PrometheusResponse` with status 200,
  the body above and `Content-Type: text/plain; version=0.0.4`, or status
  500 with a description of the `EncodingError` if encoding fails.

## Custom metrics

`autometrics.registry` holds the metric types: `Counter` (`inc(amount)`,
which refuses negative amounts), `Gauge` (`inc`, `dec`, `set`), `Histogram`
(`observe`), and `Family`, which keeps one metric per label set via
`get_or_create(labels)`. `Registry.register(name, description, family)` adds
a family (a name can be registered only once; a second registration raises
`ValueError`) and `Registry.encode()` renders them all.

```python
from autometrics.registry import Counter, Family, Registry
from autometrics.settings import AutometricsSettings

registry = Registry()
custom = Family(Counter)
registry.register("custom_metric", "My custom metric", custom)

AutometricsSettings.builder().registry(registry).init()

custom.get_or_create({"foo": "bar"}).inc(1)   # exported as custom_metric_total{foo="bar"} 1
```

`initialize_registry(registry, buckets)` registers the four built-in
families on a registry and returns it with a `Metrics` record of them; the
settings builder calls it for you.

## Task-local values

`autometrics.task_local.LocalKey` holds a value only while a scope that set
it is running, separately for each thread and asyncio task:

```python
from autometrics.task_local import LocalKey

CALLER = LocalKey("caller")

CALLER.sync_scope("handler", lambda: CALLER.get())   # "handler"
await CALLER.scope("handler", some_coroutine())
```

Outside any scope, `try_with` raises `AccessError`, and `with_` and `get`
raise `RuntimeError`. Entering a scope from inside `with_` or `try_with` on
the same key raises `ScopeError`.

## Local development

`autometrics.devserver.run_prometheus(enable_exemplars, config_path)` starts
a `prometheus` binary from your `PATH` with the given configuration file
(`prometheus.yml` by default), optionally with exemplar storage enabled, and
returns a `ChildGuard`. Call its `stop()` method, or use it as a context
manager, to kill the server. A missing binary raises `RuntimeError`.
`sleep_random_duration()` awaits a random pause under 300 ms and returns its
length in seconds, handy for producing realistic latencies in demos.

## What this package does not do

- There is no decorator that instruments functions automatically. You
  create a tracker around each call and choose its labels yourself,
  including function, module, caller and result labels.
- There are no helpers for defining service-level objectives; objective
  labels are ordinary labels you pass in.
- There is no HTTP server: mount `encode_http_response()` on a route of the
  web framework you already use.
- Metrics live in process memory only; nothing is pushed to a collector.