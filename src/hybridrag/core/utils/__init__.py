"""
Core utilities.
"""

from .datetime_utils import utc_now, utc_now_iso, format_iso
from .retry import RetryPolicy, is_retryable, retry_async
from .rwlock import ReadWriteLock

__all__ = [
    'utc_now',
    'utc_now_iso',
    'format_iso',
    'RetryPolicy',
    'is_retryable',
    'retry_async',
    'ReadWriteLock',
]
