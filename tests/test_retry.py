"""Tests for deadlines, cancellation and backoff"""

import threading
import time

import pytest

from fleetoptimizer.core.config import RetryConfig
from fleetoptimizer.core.exceptions import (
    CatalogAuthorizationError, OperationCancelledError, OperationTimeoutError,
    TransientCatalogError
)
from fleetoptimizer.core.retry import CallContext, RetryPolicy, call_with_timeout, is_retryable

from conftest import FakeClock


class TestCallContext:
    """Test deadline and cancellation propagation"""

    def test_unbounded(self):
        ctx = CallContext()
        assert ctx.remaining() is None
        assert not ctx.expired
        ctx.check()

    def test_deadline(self):
        clock = FakeClock()
        ctx = CallContext(timeout=10, clock=clock)
        assert ctx.remaining() == 10
        clock.advance(10)
        assert ctx.expired
        with pytest.raises(OperationTimeoutError):
            ctx.check()

    def test_child_never_outlives_parent(self):
        clock = FakeClock()
        parent = CallContext(timeout=5, clock=clock)
        assert parent.child(30).deadline == parent.deadline
        assert parent.child(2).remaining() == 2
        assert parent.child().deadline == parent.deadline

    def test_cancel_propagates_to_children(self):
        parent = CallContext()
        child = parent.child()
        grandchild = child.child(10)
        parent.cancel()
        assert child.cancelled and grandchild.cancelled
        with pytest.raises(OperationCancelledError):
            grandchild.check()

    def test_closed_child_detaches(self):
        parent = CallContext()
        with parent.child(10) as child:
            assert parent._children == [child]
        assert parent._children == []
        assert child.cancelled
        assert not parent.cancelled

    def test_child_of_cancelled_parent_starts_cancelled(self):
        parent = CallContext()
        parent.cancel()
        assert parent.child().cancelled

    def test_sleep_wakes_on_cancel(self):
        """Test a cancelled backoff sleep raises instead of waiting it out"""
        ctx = CallContext()
        threading.Timer(0.05, ctx.cancel).start()
        started = time.monotonic()
        with pytest.raises(OperationCancelledError):
            ctx.sleep(5)
        assert time.monotonic() - started < 2

    def test_sleep_past_deadline(self):
        ctx = CallContext(timeout=0.05)
        with pytest.raises(OperationTimeoutError):
            ctx.sleep(5)


class TestCallWithTimeout:
    def test_inline_without_deadline(self):
        assert call_with_timeout(lambda x: x * 2, None, 21) == 42

    def test_result_within_deadline(self):
        assert call_with_timeout(lambda: "ok", CallContext(timeout=5)) == "ok"

    def test_timeout(self):
        release = threading.Event()
        with pytest.raises(OperationTimeoutError):
            call_with_timeout(release.wait, CallContext(timeout=0.05), 5)
        release.set()

    def test_errors_propagate(self):
        def boom():
            raise CatalogAuthorizationError("denied")

        with pytest.raises(CatalogAuthorizationError):
            call_with_timeout(boom, CallContext(timeout=5))


class TestRetryPolicy:
    """Test capped exponential backoff"""

    def test_default_delays(self):
        """Test 1s base, x1.5 growth, 5s cap over three attempts"""
        assert RetryPolicy().delays() == [1.0, 1.5]

    def test_delays_are_capped(self):
        policy = RetryPolicy(max_attempts=6)
        assert policy.delays() == [1.0, 1.5, 2.25, 3.375, 5.0]

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_from_config(self):
        policy = RetryPolicy.from_config(RetryConfig(max_attempts=5, base_delay=0.5))
        assert policy.max_attempts == 5
        assert policy.base_delay == 0.5
        assert policy.max_delay == 5.0

    def test_retryable(self):
        assert is_retryable(TransientCatalogError("throttled"))
        assert is_retryable(OperationTimeoutError("slow"))
        assert is_retryable(ConnectionError())
        assert not is_retryable(CatalogAuthorizationError("denied"))
        assert not is_retryable(OperationCancelledError("stop"))
        assert not is_retryable(ValueError())

    def test_succeeds_after_transient_failures(self, no_wait_retry):
        calls = []

        def flaky(ctx):
            calls.append(ctx)
            if len(calls) < 3:
                raise TransientCatalogError("throttled")
            return "ok"

        assert no_wait_retry.call(flaky) == "ok"
        assert len(calls) == 3

    def test_attempt_contexts_released(self, no_wait_retry):
        parent = CallContext()
        attempts = []

        def flaky(ctx):
            attempts.append(ctx)
            if len(attempts) < 3:
                raise TransientCatalogError("throttled")
            return "ok"

        assert no_wait_retry.call(flaky, parent, attempt_timeout=5) == "ok"
        assert parent._children == []
        assert all(a.cancelled for a in attempts)

        def always_fails(ctx):
            raise TransientCatalogError("throttled")

        with pytest.raises(TransientCatalogError):
            no_wait_retry.call(always_fails, parent)
        assert parent._children == []

    def test_gives_up_after_max_attempts(self, no_wait_retry):
        calls = []

        def always_fails(ctx):
            calls.append(ctx)
            raise TransientCatalogError("throttled")

        with pytest.raises(TransientCatalogError):
            no_wait_retry.call(always_fails)
        assert len(calls) == 3

    def test_permanent_failure_not_retried(self, no_wait_retry):
        calls = []

        def denied(ctx):
            calls.append(ctx)
            raise CatalogAuthorizationError("denied")

        with pytest.raises(CatalogAuthorizationError):
            no_wait_retry.call(denied)
        assert len(calls) == 1

    def test_each_attempt_gets_its_own_timeout(self):
        """Test a timed-out attempt is retried with a fresh deadline"""
        release = threading.Event()
        calls = []

        def slow_then_fast(ctx):
            calls.append(ctx)
            if len(calls) == 1:
                release.wait(5)
            return "ok"

        policy = RetryPolicy(max_attempts=2, base_delay=0.0, max_delay=0.0)
        try:
            assert policy.call(slow_then_fast, attempt_timeout=0.05) == "ok"
        finally:
            release.set()
        assert len(calls) == 2
        assert calls[0] is not calls[1]

    def test_cancelled_context_stops_retrying(self, no_wait_retry):
        ctx = CallContext()
        ctx.cancel()
        calls = []
        with pytest.raises(OperationCancelledError):
            no_wait_retry.call(lambda c: calls.append(c), ctx)
        assert calls == []
