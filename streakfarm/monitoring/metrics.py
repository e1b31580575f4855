"""Prometheus metrics for economy operations"""
import logging
import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram

from streakfarm.config import ENABLE_PROMETHEUS

logger = logging.getLogger(__name__)


class EconomyMetrics:
    """Container for all economy metrics"""

    def __init__(self):
        self._enabled = ENABLE_PROMETHEUS
        if not self._enabled:
            logger.info("Prometheus metrics disabled")
            return

        self.points_awarded_total = Counter(
            'streakfarm_points_awarded_total',
            'Points credited to accounts',
            ['source']
        )

        self.operations_total = Counter(
            'streakfarm_operations_total',
            'Economy operations by outcome',
            ['operation', 'outcome']
        )

        self.operation_duration_seconds = Histogram(
            'streakfarm_operation_duration_seconds',
            'Economy operation latency',
            ['operation'],
            buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
        )

        self.boxes_generated_total = Counter(
            'streakfarm_boxes_generated_total',
            'Reward boxes generated',
            ['rarity']
        )

        self.boxes_expired_total = Counter(
            'streakfarm_boxes_expired_total',
            'Reward boxes expired unopened'
        )

        self.badges_awarded_total = Counter(
            'streakfarm_badges_awarded_total',
            'Badges awarded',
            ['badge_id']
        )

        logger.info("Prometheus metrics initialized")

    @property
    def enabled(self) -> bool:
        return self._enabled


# Global metrics instance
metrics = EconomyMetrics()


@contextmanager
def track_operation(operation: str):
    """
    Time an operation and count its outcome

    Outcome is 'success', the error code of a StreakFarmError, or 'error'.
    """
    if not metrics.enabled:
        yield
        return

    start_time = time.time()
    outcome = "error"

    try:
        yield
        outcome = "success"
    except Exception as e:
        outcome = getattr(e, "code", "error")
        raise
    finally:
        metrics.operation_duration_seconds.labels(operation=operation).observe(
            time.time() - start_time
        )
        metrics.operations_total.labels(operation=operation, outcome=outcome).inc()


def record_points(source: str, amount: int) -> None:
    if metrics.enabled and amount > 0:
        metrics.points_awarded_total.labels(source=source).inc(amount)


def record_box_generated(rarity: str) -> None:
    if metrics.enabled:
        metrics.boxes_generated_total.labels(rarity=rarity).inc()


def record_boxes_expired(count: int) -> None:
    if metrics.enabled and count > 0:
        metrics.boxes_expired_total.inc(count)


def record_badges(badge_ids: list[str]) -> None:
    if not metrics.enabled:
        return
    for badge_id in badge_ids:
        metrics.badges_awarded_total.labels(badge_id=badge_id).inc()
