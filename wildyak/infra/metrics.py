# wildyak/infra/metrics.py
from __future__ import annotations
import time
from collections import defaultdict, deque
from threading import Lock
from wildyak.infra.logging_config import get_logger

logger = get_logger(__name__)

# Histograms keep only the most recent observations
HISTOGRAM_WINDOW = 1000


def metric_key(name: str, labels: dict | None = None) -> str:
    """hooks + {topic: main, hook: hi} -> hooks{hook=hi,topic=main}"""
    if not labels:
        return name
    label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
    return f"{name}{{{label_str}}}"


def summarize(values) -> dict:
    if not values:
        return {"count": 0, "min": 0, "max": 0, "avg": 0, "p50": 0, "p95": 0}

    ordered = sorted(values)
    count = len(ordered)
    return {
        "count": count,
        "min": ordered[0],
        "max": ordered[-1],
        "avg": sum(ordered) / count,
        "p50": ordered[count // 2],
        "p95": ordered[min(int(count * 0.95), count - 1)],
    }


class MetricsCollector:
    """
    In-process counters and rolling histograms, keyed by name plus sorted labels.

    Thread-safe; one collector is shared by every YakHandler in the process.
    """

    def __init__(self, window: int = HISTOGRAM_WINDOW):
        self.window = window
        self._counters: dict[str, int] = defaultdict(int)
        self._histograms: dict[str, deque] = {}
        self._lock = Lock()

    def inc_counter(self, name: str, amount: int = 1, labels: dict | None = None) -> None:
        key = metric_key(name, labels)
        with self._lock:
            self._counters[key] += amount

    def observe_histogram(self, name: str, value: float, labels: dict | None = None) -> None:
        key = metric_key(name, labels)
        with self._lock:
            if key not in self._histograms:
                self._histograms[key] = deque(maxlen=self.window)
            self._histograms[key].append(value)

    def counter(self, name: str, **labels) -> int:
        with self._lock:
            return self._counters.get(metric_key(name, labels), 0)

    def get_metrics(self) -> dict:
        with self._lock:
            counters = dict(self._counters)
            samples = {k: list(v) for k, v in self._histograms.items()}

        return {
            "counters": counters,
            "histograms": {k: summarize(v) for k, v in samples.items()},
        }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()
        logger.debug("Metrics reset")


_metrics = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    return _metrics


def inc_counter(name: str, amount: int = 1, **labels) -> None:
    _metrics.inc_counter(name, amount, labels or None)


def observe_histogram(name: str, value: float, **labels) -> None:
    _metrics.observe_histogram(name, value, labels or None)


class Timer:
    """Records the duration of the ``with`` block, including failed runs"""

    def __init__(self, metric_name: str, **labels):
        self.metric_name = metric_name
        self.labels = labels
        self.started: float | None = None

    def __enter__(self):
        self.started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        observe_histogram(self.metric_name, time.perf_counter() - self.started, **self.labels)


class AppMetrics:
    """Dialog-engine metrics tracking"""

    @staticmethod
    def message_processed(session_type: str, strategy: str) -> None:
        inc_counter("yak_messages_processed_total", session_type=session_type, strategy=strategy)

    @staticmethod
    def hook_matched(topic: str, hook: str, phase: str) -> None:
        inc_counter("yak_hooks_matched_total", topic=topic, hook=hook, phase=phase)

    @staticmethod
    def no_match(session_type: str) -> None:
        inc_counter("yak_no_match_total", session_type=session_type)

    @staticmethod
    def session_created(session_type: str) -> None:
        inc_counter("yak_sessions_created_total", session_type=session_type)

    @staticmethod
    def topic_entered(topic: str, is_root: bool) -> None:
        inc_counter("yak_topics_entered_total", topic=topic, root=is_root)

    @staticmethod
    def topic_exited(topic: str) -> None:
        inc_counter("yak_topics_exited_total", topic=topic)

    @staticmethod
    def database_error(operation: str) -> None:
        inc_counter("yak_database_errors_total", operation=operation)

    @staticmethod
    def track_processing_time(session_type: str) -> Timer:
        return Timer("yak_processing_seconds", session_type=session_type)
