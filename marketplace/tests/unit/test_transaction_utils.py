import threading
from unittest import mock

import pytest
from django.db import OperationalError

from utils.transaction_utils import DeadlockError, TransactionError, retry_on_deadlock, row_lock_guard


@pytest.mark.unit
class TestRetryOnDeadlock:
    def test_retries_until_success(self):
        attempts = mock.Mock(
            side_effect=[OperationalError("deadlock detected"), OperationalError("database is locked"), "ok"]
        )

        @retry_on_deadlock(max_retries=3, delay=0)
        def work():
            return attempts()

        assert work() == "ok"
        assert attempts.call_count == 3

    def test_gives_up_after_max_retries(self):
        @retry_on_deadlock(max_retries=2, delay=0)
        def work():
            raise OperationalError("Deadlock found when trying to get lock (1213)")

        with pytest.raises(DeadlockError):
            work()

    def test_other_operational_errors_are_not_retried(self):
        attempts = mock.Mock(side_effect=OperationalError("no such table: marketplace_order"))

        @retry_on_deadlock(max_retries=3, delay=0)
        def work():
            return attempts()

        with pytest.raises(TransactionError):
            work()
        assert attempts.call_count == 1


@pytest.mark.unit
class TestRowLockGuard:
    """The test database (SQLite) has no row locks, so the in-process lock is used."""

    def test_reentrant_in_one_thread(self):
        with row_lock_guard("listing-1") as waited:
            with row_lock_guard("listing-1"):
                pass
        assert waited >= 0

    def test_other_thread_times_out_while_held(self):
        errors = []

        def contender():
            try:
                with row_lock_guard("listing-2", timeout=0.05):
                    pass
            except TransactionError as e:
                errors.append(e)

        with row_lock_guard("listing-2"):
            thread = threading.Thread(target=contender)
            thread.start()
            thread.join()

        assert len(errors) == 1

    def test_released_after_block(self):
        with row_lock_guard("listing-3"):
            pass

        acquired = []

        def contender():
            with row_lock_guard("listing-3", timeout=0.5):
                acquired.append(True)

        thread = threading.Thread(target=contender)
        thread.start()
        thread.join()
        assert acquired == [True]
