"""Monitoring infrastructure for streakfarm"""
from streakfarm.monitoring.metrics import (
    metrics,
    track_operation,
    record_points,
    record_box_generated,
    record_boxes_expired,
    record_badges
)

__all__ = [
    "metrics",
    "track_operation",
    "record_points",
    "record_box_generated",
    "record_boxes_expired",
    "record_badges"
]
