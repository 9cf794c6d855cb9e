import time

import pytest

from autometrics import prometheus_exporter
from autometrics.settings import get_settings
from autometrics.tracker import AutometricsTracker, initialize_metrics, set_build_info


def _lines():
    return prometheus_exporter.encode_to_string().splitlines()


def _counter_labels(function, **extra):
    labels = {
        "function": function,
        "module": "tracker_test",
        "service_name": get_settings().service_name,
        "caller_function": "",
        "caller_module": "",
    }
    labels.update(extra)
    return labels


def _histogram_labels(function, **extra):
    labels = {
        "function": function,
        "module": "tracker_test",
        "service_name": get_settings().service_name,
    }
    labels.update(extra)
    return labels


def _call(function, counter_extra=None, histogram_extra=None, gauge=False):
    gauge_labels = _histogram_labels(function) if gauge else None
    tracker = AutometricsTracker(gauge_labels)
    return tracker.finish(
        _counter_labels(function, **(counter_extra or {})),
        _histogram_labels(function, **(histogram_extra or {})),
    )


def test_success_rate():
    objective = {"objective_name": "test", "objective_percentile": "99"}
    _call("success_rate_fn", counter_extra=objective)
    _call("success_rate_fn", counter_extra=objective)

    assert any(
        line.startswith("function_calls_total{")
        and 'function="success_rate_fn"' in line
        and 'objective_name="test"' in line
        and 'objective_percentile="99"' in line
        and line.endswith("} 2")
        for line in _lines()
    )


def test_latency():
    objective = {
        "objective_name": "test",
        "objective_percentile": "99.9",
        "objective_latency_threshold": "0.1",
    }
    _call("latency_fn", histogram_extra=objective)
    _call("latency_fn", histogram_extra=objective)

    assert any(
        line.startswith("function_calls_duration_seconds_bucket{")
        and 'function="latency_fn"' in line
        and 'objective_latency_threshold="0.1"' in line
        and 'objective_name="test"' in line
        and 'objective_percentile="99.9"' in line
        and line.endswith("} 2")
        for line in _lines()
    )


def test_combined_objective():
    counter_objective = {"objective_name": "test", "objective_percentile": "99"}
    histogram_objective = {
        "objective_name": "test",
        "objective_percentile": "99.9",
        "objective_latency_threshold": "0.1",
    }
    for _ in range(2):
        _call(
            "combined_objective_fn",
            counter_extra=counter_objective,
            histogram_extra=histogram_objective,
        )

    lines = _lines()
    assert any(
        line.startswith("function_calls_total{")
        and 'function="combined_objective_fn"' in line
        and 'objective_name="test"' in line
        and 'objective_percentile="99"' in line
        and line.endswith("} 2")
        for line in lines
    )
    assert any(
        line.startswith("function_calls_duration_seconds_bucket{")
        and 'function="combined_objective_fn"' in line
        and 'objective_latency_threshold="0.1"' in line
        and 'objective_name="test"' in line
        and 'objective_percentile="99.9"' in line
        and line.endswith("} 2")
        for line in lines
    )


def test_result_labels_are_separate_series():
    _call("result_fn", counter_extra={"result": "error"})
    _call("result_fn", counter_extra={"result": "error"})
    _call("result_fn", counter_extra={"result": "ok"})

    lines = _lines()
    assert any(
        line.startswith("function_calls_total{")
        and 'function="result_fn"' in line
        and 'result="error"' in line
        and line.endswith("} 2")
        for line in lines
    )
    assert any(
        line.startswith("function_calls_total{")
        and 'function="result_fn"' in line
        and 'result="ok"' in line
        and line.endswith("} 1")
        for line in lines
    )


def test_optional_labels_left_out():
    _call("no_optional_fn", counter_extra={"ok": None, "error": None})
    matching = [
        line
        for line in _lines()
        if line.startswith("function_calls_total{") and 'function="no_optional_fn"' in line
    ]
    assert len(matching) == 1
    assert "ok=" not in matching[0]
    assert "error=" not in matching[0]


def test_gauge_tracks_concurrent_calls():
    labels = _histogram_labels("concurrent_fn")
    gauge = get_settings().metrics.gauge.get_or_create(labels)

    first = AutometricsTracker(labels)
    second = AutometricsTracker(labels)
    assert gauge.value == 2

    first.finish(_counter_labels("concurrent_fn"), labels)
    assert gauge.value == 1
    second.finish(_counter_labels("concurrent_fn"), labels)
    assert gauge.value == 0


def test_without_gauge_labels_no_gauge_series():
    _call("no_gauge_fn")
    assert not any(
        line.startswith("function_calls_concurrent{") and 'function="no_gauge_fn"' in line
        for line in _lines()
    )


def test_finish_records_duration():
    labels = _histogram_labels("slow_fn")
    tracker = AutometricsTracker()
    time.sleep(0.02)
    duration = tracker.finish(_counter_labels("slow_fn"), labels)

    histogram = get_settings().metrics.histogram.get_or_create(labels)
    assert duration >= 0.019
    assert histogram.count == 1
    assert histogram.sum == pytest.approx(duration)


def test_finish_twice_raises():
    tracker = AutometricsTracker()
    tracker.finish(_counter_labels("twice_fn"), _histogram_labels("twice_fn"))
    assert tracker.finished is True
    with pytest.raises(RuntimeError):
        tracker.finish(_counter_labels("twice_fn"), _histogram_labels("twice_fn"))

    counter = get_settings().metrics.counter.get_or_create(_counter_labels("twice_fn"))
    assert counter.value == 1


def test_build_info():
    labels = {
        "commit": "",
        "version": "1.2.3",
        "branch": "",
        "service_name": get_settings().service_name,
    }
    set_build_info(labels)
    set_build_info(labels)

    assert any(
        line.startswith("build_info{")
        and 'branch=""' in line
        and 'commit=""' in line
        and 'version="1.2.3"' in line
        and line.endswith("} 1")
        for line in _lines()
    )


def test_initialize_metrics_to_zero():
    initialize_metrics([_counter_labels("zero_metrics_fn"), _counter_labels("zero_other_fn")])

    lines = _lines()
    for name in ("zero_metrics_fn", "zero_other_fn"):
        assert any(
            f'function="{name}"' in line and line.endswith("} 0") for line in lines
        )


def test_initialize_metrics_keeps_existing_counts():
    _call("already_called_fn")
    initialize_metrics([_counter_labels("already_called_fn")])

    counter = get_settings().metrics.counter.get_or_create(
        _counter_labels("already_called_fn")
    )
    assert counter.value == 1