"""
Metrics Collection for the Ride Scheduler.

Counts materialized rides, failures and fallbacks, and times operations.
"""

import inspect
import functools
import time
from typing import Dict, Any, Callable
from collections import defaultdict
from datetime import datetime
import threading


class MetricsCollector:
    """Collects and manages scheduler metrics."""

    def __init__(self):
        self.metrics = defaultdict(int)
        self.timers = defaultdict(float)
        self.lock = threading.Lock()

        # Initialize counters
        self.metrics["patterns_created_total"] = 0
        self.metrics["rides_materialized_total"] = 0
        self.metrics["ride_materialization_failures_total"] = 0
        self.metrics["schedule_fallbacks_total"] = 0
        self.metrics["patterns_deactivated_total"] = 0

    def increment_counter(self, metric_name: str, value: int = 1):
        """Increment a counter metric."""
        with self.lock:
            self.metrics[metric_name] += value

    def record_timer(self, metric_name: str, duration: float):
        """Record a timing metric."""
        with self.lock:
            self.timers[metric_name] += duration

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics values."""
        with self.lock:
            return {
                "counters": dict(self.metrics),
                "timers": dict(self.timers),
                "timestamp": datetime.utcnow().isoformat()
            }

    def pattern_created(self):
        self.increment_counter("patterns_created_total")

    def rides_materialized(self, count: int):
        self.increment_counter("rides_materialized_total", count)

    def materialization_failed(self):
        self.increment_counter("ride_materialization_failures_total")

    def schedule_fallback(self):
        self.increment_counter("schedule_fallbacks_total")

    def pattern_deactivated(self):
        self.increment_counter("patterns_deactivated_total")


# Global metrics instance
metrics_collector = MetricsCollector()


def time_operation(metric_name: str) -> Callable:
    """
    Decorator timing a sync or async method.

    The duration is recorded on the instance's own `metrics` collector, so
    services built with an injected collector keep their timers separate.
    """
    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(self, *args, **kwargs):
                start_time = time.time()
                try:
                    return await func(self, *args, **kwargs)
                finally:
                    self.metrics.record_timer(metric_name, time.time() - start_time)
            return async_wrapper

        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            start_time = time.time()
            try:
                return func(self, *args, **kwargs)
            finally:
                self.metrics.record_timer(metric_name, time.time() - start_time)
        return wrapper
    return decorator
