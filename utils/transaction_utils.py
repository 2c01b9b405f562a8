"""
Transaction Utilities for the RideCycle Backend
===============================================

Locking and retry helpers for the read-check-write sequences that protect
listings, offers and orders from concurrent requests.

Usage Examples:
    # Serialize everything that touches one listing, then lock its row
    with row_lock_guard(listing_id):
        with transaction.atomic():
            listing = Listing.objects.select_for_update().get(pk=listing_id)
            ...

    # Retry a whole transaction when the database picks it as a deadlock victim
    @retry_on_deadlock(max_retries=3)
    def place_order():
        ...
"""

import logging
import threading
import time
from contextlib import contextmanager
from functools import wraps

from django.db import OperationalError, connections

logger = logging.getLogger(__name__)

DEADLOCK_MARKERS = ("deadlock", "1213", "database is locked", "database table is locked")

# Striped process-local locks, used when the database cannot lock rows itself
_LOCK_STRIPES = 64
_stripes = [threading.RLock() for _ in range(_LOCK_STRIPES)]


class TransactionError(Exception):
    """Custom exception for transaction-related errors"""

    pass


class DeadlockError(TransactionError):
    """Exception raised when a deadlock is detected"""

    pass


def supports_row_locks(using: str = "default") -> bool:
    """True when the backend honours SELECT ... FOR UPDATE (PostgreSQL, MySQL), False on SQLite."""
    return bool(connections[using].features.has_select_for_update)


def _stripe_for(key) -> threading.RLock:
    return _stripes[hash(str(key)) % _LOCK_STRIPES]


@contextmanager
def row_lock_guard(key, using: str = "default", timeout: float = 30.0):
    """
    Serialize read-modify-write sequences on one row across threads of this process.

    On backends with row locks this is a no-op and ``select_for_update()`` inside
    the transaction does the work. Otherwise an in-process lock keyed by ``key``
    is held for the duration of the block; enter it *outside* ``transaction.atomic``
    so it is released only after commit.

    Yields the seconds spent waiting for the lock.
    """
    if supports_row_locks(using):
        yield 0.0
        return

    lock = _stripe_for(key)
    start = time.monotonic()
    if not lock.acquire(timeout=timeout):
        raise TransactionError(f"Timed out after {timeout}s waiting for lock on {key}")
    waited = time.monotonic() - start
    if waited > 0.05:
        logger.debug(f"Waited {waited:.3f}s for lock on {key}")
    try:
        yield waited
    finally:
        lock.release()


def is_deadlock(exc: Exception) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in DEADLOCK_MARKERS)


def retry_on_deadlock(max_retries=3, delay=0.1, backoff=2.0):
    """
    Decorator to retry operations on deadlock with exponential backoff.

    Only use it around a complete transaction: the wrapped function must be
    safe to run again from the beginning.

    Args:
        max_retries (int): Maximum number of retry attempts
        delay (float): Initial delay between retries in seconds
        backoff (float): Backoff multiplier for delay
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            current_delay = delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except OperationalError as e:
                    if not is_deadlock(e):
                        raise TransactionError(f"Database operation failed: {e}") from e
                    if attempt >= max_retries:
                        raise DeadlockError(f"Deadlock persisted after {max_retries} retries: {e}") from e
                    logger.warning(
                        f"Deadlock detected in {func.__name__}, retrying in {current_delay}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(current_delay)
                    current_delay *= backoff

        return wrapper

    return decorator


@contextmanager
def rollback_safe_operation(operation_name="Unknown"):
    """
    Context manager that logs the outcome of an all-or-nothing operation.

    Exceptions propagate unchanged so the enclosing ``transaction.atomic``
    rolls back.

    Usage:
        with rollback_safe_operation("Offer Acceptance"):
            with transaction.atomic():
                ...
    """
    start_time = time.time()
    logger.info(f"Starting rollback-safe operation: {operation_name}")

    try:
        yield
        elapsed = time.time() - start_time
        logger.info(f"Operation '{operation_name}' completed successfully in {elapsed:.3f}s")
    except Exception as e:
        elapsed = time.time() - start_time
        logger.error(f"Operation '{operation_name}' failed after {elapsed:.3f}s: {e}")
        logger.info(f"Rolling back operation: {operation_name}")
        raise
