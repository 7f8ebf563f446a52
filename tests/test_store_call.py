"""Tests for store call timeouts and error translation."""

import time

import pytest

from phenobase.errors import StoreFailure, ValidationError
from phenobase.storage.store_call import CallState, CallStats, call_with_timeout, recent_calls


class TestCallWithTimeout:
    """Tests for call_with_timeout."""

    @pytest.mark.parametrize("timeout", [None, 5.0])
    def test_returns_result(self, timeout):
        assert call_with_timeout("relational", "add", lambda a, b: a + b, timeout, 2, b=3) == 5

    @pytest.mark.parametrize("timeout", [None, 5.0])
    def test_driver_error_becomes_store_failure(self, timeout):
        def broken():
            raise RuntimeError("connection reset")

        with pytest.raises(StoreFailure) as exc_info:
            call_with_timeout("relational", "count", broken, timeout)
        assert exc_info.value.store == "relational"
        assert "connection reset" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.parametrize("timeout", [None, 5.0])
    def test_domain_errors_propagate_unchanged(self, timeout):
        def invalid():
            raise ValidationError(["bad payload"])

        with pytest.raises(ValidationError):
            call_with_timeout("relational", "insert", invalid, timeout)

    def test_timeout(self):
        started = time.time()
        with pytest.raises(StoreFailure) as exc_info:
            call_with_timeout("documents", "find", time.sleep, 0.05, 1.0)
        assert "timeout" in str(exc_info.value)
        # the caller is released without waiting for the worker
        assert time.time() - started < 0.9


class TestCallStats:
    """Tests for CallStats."""

    def test_duration_before_start(self):
        assert CallStats("relational", "count").duration_ms == 0.0

    def test_to_dict(self):
        stats = CallStats("relational", "count", start_time=1.0, end_time=1.5, state=CallState.COMPLETED)
        assert stats.to_dict() == {
            "store": "relational",
            "operation": "count",
            "duration_ms": 500.0,
            "state": "COMPLETED",
            "error": None,
        }

    def test_start_complete_fail(self):
        stats = CallStats("documents", "find")
        stats.start()
        assert stats.state == CallState.RUNNING
        stats.fail("boom", CallState.TIMEOUT)
        assert stats.state == CallState.TIMEOUT
        assert stats.error == "boom"
        assert stats.end_time is not None


class TestRecentCalls:
    """Tests for the recent store call log."""

    def test_completed_call_is_kept(self):
        call_with_timeout("documents", "count", lambda: 3, 5.0)
        last = recent_calls(limit=1)[0]
        assert last["store"] == "documents"
        assert last["operation"] == "count"
        assert last["state"] == "COMPLETED"

    def test_failures_are_kept(self):
        def broken():
            raise RuntimeError("disk full")

        with pytest.raises(StoreFailure):
            call_with_timeout("relational", "find", broken, None)
        call_with_timeout("relational", "count", lambda: 0, None)

        failed = recent_calls(limit=1, failed_only=True)[0]
        assert failed["operation"] == "find"
        assert failed["state"] == "FAILED"
        assert failed["error"] == "disk full"

    def test_timeout_is_kept(self):
        with pytest.raises(StoreFailure):
            call_with_timeout("documents", "find", time.sleep, 0.05, 0.5)
        assert recent_calls(limit=1)[0]["state"] == "TIMEOUT"

    def test_limit(self):
        for _ in range(3):
            call_with_timeout("documents", "count", lambda: 1, None)
        assert len(recent_calls(limit=2)) == 2
        assert recent_calls(limit=0) == []
