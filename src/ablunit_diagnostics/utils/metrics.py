"""Metrics collection for observability.

This module provides in-process metrics for the diagnostics pipeline:
- Diagnostics rendered and call stacks rejected
- Debug-listing loads, failures and cache reuse
- Message catalog hits and misses
- Render duration histogram

Metrics follow Prometheus naming and can be exported in its text format.
"""

from __future__ import annotations

import time
from bisect import bisect_left
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from threading import Lock
from typing import Any


class MetricType(StrEnum):
    """Kinds of series the registry exports."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


@dataclass
class MetricValue:
    """One labelled sample of a counter or gauge."""

    name: str
    type: MetricType
    value: float
    labels: dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    help_text: str = ""


LabelKey = tuple[tuple[str, str], ...]


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted(labels.items())) if labels else ()


class _LabelledSeries:
    """A named metric holding one float per label set."""

    metric_type: MetricType

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self._values: dict[LabelKey, float] = defaultdict(float)
        self._lock = Lock()

    def _add(self, value: float, labels: dict[str, str] | None) -> None:
        with self._lock:
            self._values[_label_key(labels)] += value

    def get(self, labels: dict[str, str] | None = None) -> float:
        """Current value for a label set (0 if never touched)."""
        with self._lock:
            return self._values.get(_label_key(labels), 0)

    def get_all(self) -> list[MetricValue]:
        """Every label set with its value."""
        with self._lock:
            items = list(self._values.items())
        return [
            MetricValue(
                name=self.name,
                type=self.metric_type,
                value=value,
                labels=dict(label_key),
                help_text=self.help_text,
            )
            for label_key, value in items
        ]


class Counter(_LabelledSeries):
    """A monotonically increasing counter.

    Example:
        counter = Counter("listing_loads", "Debug listings loaded")
        counter.inc()
        counter.inc(labels={"outcome": "failed"})
    """

    metric_type = MetricType.COUNTER

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        if value < 0:
            raise ValueError("Counter can only increase")
        self._add(value, labels)


class Gauge(_LabelledSeries):
    """A value that can go up and down, such as loads in flight."""

    metric_type = MetricType.GAUGE

    def set(self, value: float, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            self._values[_label_key(labels)] = value

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        self._add(value, labels)

    def dec(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        self._add(-value, labels)


class Histogram:
    """Distribution of observed values, e.g. render durations.

    Example:
        histogram = Histogram("render_duration_seconds", "Render duration")
        histogram.observe(0.002)
    """

    metric_type = MetricType.HISTOGRAM

    # Rendering is sub-second; listing loads dominate the upper buckets
    DEFAULT_BUCKETS = (0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0, float("inf"))

    def __init__(
        self,
        name: str,
        help_text: str = "",
        buckets: tuple[float, ...] | None = None,
    ) -> None:
        self.name = name
        self.help_text = help_text
        self._buckets = tuple(sorted(buckets or self.DEFAULT_BUCKETS))
        self._samples: dict[LabelKey, list[float]] = defaultdict(list)
        self._lock = Lock()

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            self._samples[_label_key(labels)].append(value)

    def _snapshot(self, labels: dict[str, str] | None) -> list[float]:
        with self._lock:
            return list(self._samples.get(_label_key(labels), ()))

    def get_stats(self, labels: dict[str, str] | None = None) -> dict[str, float]:
        """Summary of one label set: count, sum, min, max and mean.

        An unobserved label set reports zero for every field.
        """
        samples = self._snapshot(labels)
        if not samples:
            return {key: 0.0 for key in ("count", "sum", "min", "max", "mean")}

        total = sum(samples)
        return {
            "count": len(samples),
            "sum": total,
            "min": min(samples),
            "max": max(samples),
            "mean": total / len(samples),
        }

    def get_buckets(self, labels: dict[str, str] | None = None) -> dict[float, int]:
        """Non-cumulative counts per bucket; each value lands in the smallest bucket holding it."""
        counts = dict.fromkeys(self._buckets, 0)
        for sample in self._snapshot(labels):
            index = bisect_left(self._buckets, sample)
            if index < len(self._buckets):
                counts[self._buckets[index]] += 1
        return counts


class MetricsRegistry:
    """Registry for all diagnostics metrics.

    A process-wide instance is available through ``get_metrics()``; callers
    that need isolation (tests, multiple sessions) construct their own.
    """

    _instance: MetricsRegistry | None = None
    _instance_lock = Lock()

    def __init__(self) -> None:
        self._series: list[_LabelledSeries] = []

        self.diagnostics_rendered = self._counter(
            "ablunit_diagnostics_rendered_total", "Total failure diagnostics rendered"
        )
        self.callstack_parse_errors = self._counter(
            "ablunit_callstack_parse_errors_total", "Total call stacks rejected by the parser"
        )

        self.listing_loads = self._counter(
            "ablunit_listing_loads_total", "Total debug-listing loads performed"
        )
        self.listing_failures = self._counter(
            "ablunit_listing_failures_total", "Total debug-listing loads that failed"
        )
        self.listing_reuses = self._counter(
            "ablunit_listing_reuses_total",
            "Total import requests served by a cached or in-flight listing",
        )
        self.listings_in_flight = Gauge(
            "ablunit_listings_in_flight", "Debug listings currently loading"
        )
        self._series.append(self.listings_in_flight)

        self.catalog_hits = self._counter(
            "ablunit_catalog_hits_total", "Total message codes found in the catalog"
        )
        self.catalog_misses = self._counter(
            "ablunit_catalog_misses_total", "Total message codes missing from the catalog"
        )

        self.render_duration = Histogram(
            "ablunit_render_duration_seconds", "Diagnostic render duration in seconds"
        )

        self._started_at = time.monotonic()

    def _counter(self, name: str, help_text: str) -> Counter:
        counter = Counter(name, help_text)
        self._series.append(counter)
        return counter

    @classmethod
    def get_instance(cls) -> MetricsRegistry:
        """The process-wide registry, created on first use."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def get_uptime_seconds(self) -> float:
        return time.monotonic() - self._started_at

    def get_all_metrics(self) -> dict[str, Any]:
        """Snapshot of every metric, grouped by pipeline stage."""
        return {
            "uptime_seconds": self.get_uptime_seconds(),
            "diagnostics": {
                "rendered": self.diagnostics_rendered.get(),
                "parse_errors": self.callstack_parse_errors.get(),
                "duration_stats": self.render_duration.get_stats(),
            },
            "listings": {
                "loads": self.listing_loads.get(),
                "failures": self.listing_failures.get(),
                "reuses": self.listing_reuses.get(),
                "in_flight": self.listings_in_flight.get(),
            },
            "catalog": {
                "hits": self.catalog_hits.get(),
                "misses": self.catalog_misses.get(),
            },
        }

    @staticmethod
    def _histogram_lines(histogram: Histogram) -> list[str]:
        name = histogram.name
        lines = [f"# HELP {name} {histogram.help_text}", f"# TYPE {name} histogram"]

        # Exposition buckets are cumulative
        cumulative = 0
        for bound, count in histogram.get_buckets().items():
            cumulative += count
            le = "+Inf" if bound == float("inf") else str(bound)
            lines.append(f'{name}_bucket{{le="{le}"}} {cumulative}')

        stats = histogram.get_stats()
        lines.append(f"{name}_sum {stats['sum']}")
        lines.append(f"{name}_count {int(stats['count'])}")
        return lines

    def to_prometheus_format(self) -> str:
        """Every metric in the Prometheus text exposition format."""
        out: list[str] = []
        for series in self._series:
            if series.help_text:
                out.append(f"# HELP {series.name} {series.help_text}")
            out.append(f"# TYPE {series.name} {series.metric_type}")
            for sample in series.get_all():
                rendered_labels = ",".join(f'{key}="{val}"' for key, val in sample.labels.items())
                suffix = f"{{{rendered_labels}}}" if rendered_labels else ""
                out.append(f"{series.name}{suffix} {sample.value}")

        out.extend(self._histogram_lines(self.render_duration))
        out.extend(
            [
                "# HELP ablunit_uptime_seconds Process uptime in seconds",
                "# TYPE ablunit_uptime_seconds gauge",
                f"ablunit_uptime_seconds {self.get_uptime_seconds()}",
            ]
        )
        return "\n".join(out)


def get_metrics() -> MetricsRegistry:
    """Get the shared metrics registry."""
    return MetricsRegistry.get_instance()


class Timer:
    """Observe the wall-clock duration of a block into a histogram.

    The duration is recorded even when the block raises.

    Example:
        with Timer(metrics.render_duration):
            render(...)
    """

    def __init__(self, histogram: Histogram, labels: dict[str, str] | None = None) -> None:
        self._histogram = histogram
        self._labels = labels
        self._started = 0.0

    def __enter__(self) -> Timer:
        self._started = time.perf_counter()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._histogram.observe(time.perf_counter() - self._started, labels=self._labels)
