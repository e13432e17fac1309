"""
일일 마감 대조 모듈
"""

from engine.reconciler.reconciler import (
    DailyClosingReconciler,
    breakdown_total,
    compute_diff,
    resolve_counted,
)

__all__ = [
    "DailyClosingReconciler",
    "breakdown_total",
    "compute_diff",
    "resolve_counted",
]
