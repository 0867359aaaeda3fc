"""Tests for the storage contention retry wrapper."""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from slotplan.engine.errors import StorageContentionError
from slotplan.engine.retry import is_transient_contention, with_contention_retry


def _locked():
    return OperationalError("UPDATE schedule_days", {}, Exception("database is locked"))


class FlakyOperation:
    """Fails with contention a fixed number of times, then succeeds."""

    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise _locked()
        return "done"


class TestIsTransientContention:
    """Test is_transient_contention()."""

    def test_busy_and_locked_operational_errors_are_transient(self):
        assert is_transient_contention(_locked())
        assert is_transient_contention(OperationalError("SELECT 1", {}, Exception("SQLITE_BUSY")))

    def test_other_errors_are_not_transient(self):
        assert not is_transient_contention(OperationalError("SELECT 1", {}, Exception("no such table: tasks")))
        assert not is_transient_contention(IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed")))
        assert not is_transient_contention(ValueError("bad input"))

    def test_contention_error_itself_is_transient(self):
        assert is_transient_contention(StorageContentionError("busy"))


class TestWithContentionRetry:
    """Test with_contention_retry()."""

    def test_succeeds_after_two_contentions(self):
        """Two busy signals then success stays within the budget of three."""
        delays = []
        operation = FlakyOperation(failures=2)

        result = with_contention_retry(operation, retries=3, delay_seconds=0.05, sleep=delays.append)

        assert result == "done"
        assert operation.calls == 3
        assert delays == pytest.approx([0.05, 0.10])

    def test_four_contentions_exhaust_budget(self):
        """A fourth busy signal surfaces as StorageContentionError."""
        delays = []
        operation = FlakyOperation(failures=4)

        with pytest.raises(StorageContentionError) as exc_info:
            with_contention_retry(operation, retries=3, delay_seconds=0.05, sleep=delays.append)

        assert operation.calls == 4
        assert delays == pytest.approx([0.05, 0.10, 0.15])
        assert isinstance(exc_info.value.__cause__, OperationalError)

    def test_non_transient_errors_propagate_immediately(self):
        """Validation-type errors are never retried."""
        calls = []

        def operation():
            calls.append(1)
            raise ValueError("not a contention problem")

        with pytest.raises(ValueError):
            with_contention_retry(operation, retries=3, delay_seconds=0.05, sleep=lambda _: None)
        assert len(calls) == 1

    def test_custom_predicate(self):
        """The transient check is pluggable."""
        operation = FlakyOperation(failures=1)
        with pytest.raises(OperationalError):
            with_contention_retry(operation, is_transient=lambda e: False, sleep=lambda _: None)
        assert operation.calls == 1
