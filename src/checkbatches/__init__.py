from .checker import BatchChecker as BatchChecker
from .checker import CheckReport as CheckReport
from .config import Settings as Settings
from .dispatcher import NotificationDispatcher as NotificationDispatcher
from .limiter import ConcurrencyLimiter as ConcurrencyLimiter
from .reconciler import BatchReconciler as BatchReconciler

__all__ = [
    "BatchChecker",
    "BatchReconciler",
    "CheckReport",
    "ConcurrencyLimiter",
    "NotificationDispatcher",
    "Settings",
]
