# Utils package for RideCycle backend

from .transaction_utils import (
    DeadlockError,
    TransactionError,
    retry_on_deadlock,
    rollback_safe_operation,
    row_lock_guard,
    supports_row_locks,
)


__all__ = [
    "DeadlockError",
    "TransactionError",
    "retry_on_deadlock",
    "rollback_safe_operation",
    "row_lock_guard",
    "supports_row_locks",
]
