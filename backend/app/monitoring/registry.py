"""Process-wide counters rendered in the Prometheus text exposition format."""

from __future__ import annotations

from threading import Lock
from typing import Iterator, Sequence

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4"


def _render_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return repr(value)


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


class CounterMetric:
    """Monotonic counter; one series per combination of label values.

    Every ``inc`` call must name exactly the labels declared at creation.
    """

    def __init__(self, name: str, description: str, label_names: Sequence[str] = ()) -> None:
        self.name = name
        self.description = description
        self.label_names = tuple(label_names)
        self._series: dict[tuple[str, ...], float] = {}
        self._lock = Lock()

    def inc(self, *, amount: float = 1.0, **labels: object) -> None:
        if amount < 0:
            raise ValueError(f"Counter '{self.name}' cannot decrease")
        key = self._series_key(labels)
        with self._lock:
            self._series[key] = self._series.get(key, 0.0) + amount

    def value(self, **labels: object) -> float:
        key = self._series_key(labels)
        with self._lock:
            return self._series.get(key, 0.0)

    def lines(self) -> Iterator[str]:
        yield f"# HELP {self.name} {self.description}"
        yield f"# TYPE {self.name} counter"
        with self._lock:
            series = sorted(self._series.items())
        if not series:
            yield f"{self.name} 0"
            return
        for key, value in series:
            yield f"{self.name}{self._label_block(key)} {_render_number(value)}"

    def _label_block(self, key: tuple[str, ...]) -> str:
        if not self.label_names:
            return ""
        pairs = ",".join(f'{name}="{_escape(value)}"' for name, value in zip(self.label_names, key))
        return "{" + pairs + "}"

    def _series_key(self, labels: dict[str, object]) -> tuple[str, ...]:
        if set(labels) != set(self.label_names):
            raise ValueError(
                f"Counter '{self.name}' takes labels {list(self.label_names)}, got {sorted(labels)}"
            )
        return tuple(str(labels[name]) for name in self.label_names)


class MetricsRegistry:
    """Named collection of counters."""

    def __init__(self) -> None:
        self._counters: dict[str, CounterMetric] = {}
        self._lock = Lock()

    def counter(self, name: str, description: str, *, label_names: Sequence[str] = ()) -> CounterMetric:
        metric = CounterMetric(name, description, label_names)
        with self._lock:
            if name in self._counters:
                raise ValueError(f"Metric '{name}' already registered")
            self._counters[name] = metric
        return metric

    def render(self) -> str:
        lines: list[str] = []
        for name in sorted(self._counters):
            lines.extend(self._counters[name].lines())
        return "\n".join(lines) + "\n"


registry = MetricsRegistry()
