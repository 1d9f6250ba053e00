"""Deadlines, cancellation and capped exponential backoff for outbound calls"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, TypeVar

from .exceptions import (
    OperationCancelledError, OperationTimeoutError, TransientCatalogError
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CallContext:
    """Deadline plus cancellation flag passed down to collaborator calls.

    A child context never outlives its parent: its deadline is the earlier
    of the two, and cancelling the parent cancels every child. Closing a
    child (or leaving its ``with`` block) cancels it and detaches it from
    the parent.
    """

    def __init__(self, timeout: Optional[float] = None,
                 parent: Optional["CallContext"] = None,
                 clock: Callable[[], float] = time.monotonic):
        self._clock = parent._clock if parent else clock
        self._event = threading.Event()
        self._children: List["CallContext"] = []
        self._lock = threading.Lock()
        self.parent = parent

        deadline = self._clock() + timeout if timeout is not None else None
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline

        if parent is not None:
            parent._attach(self)

    def _attach(self, child: "CallContext"):
        with self._lock:
            self._children.append(child)
        if self.cancelled:
            child.cancel()

    def _detach(self, child: "CallContext"):
        with self._lock:
            if child in self._children:
                self._children.remove(child)

    def child(self, timeout: Optional[float] = None) -> "CallContext":
        return CallContext(timeout=timeout, parent=self)

    def close(self):
        self.cancel()
        if self.parent is not None:
            self.parent._detach(self)

    def __enter__(self) -> "CallContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def cancel(self):
        self._event.set()
        with self._lock:
            children = list(self._children)
        for child in children:
            child.cancel()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, or None when unbounded"""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - self._clock())

    @property
    def expired(self) -> bool:
        return self.deadline is not None and self._clock() >= self.deadline

    def check(self):
        """Raise if the context is cancelled or past its deadline"""
        if self.cancelled:
            raise OperationCancelledError("operation cancelled")
        if self.expired:
            raise OperationTimeoutError("deadline exceeded")

    def sleep(self, seconds: float):
        """Sleep, waking early and raising if the context ends first"""
        self.check()
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._event.wait(remaining)
            if self.cancelled:
                raise OperationCancelledError("operation cancelled")
            raise OperationTimeoutError("deadline exceeded while backing off")
        if self._event.wait(seconds):
            raise OperationCancelledError("operation cancelled")


def call_with_timeout(fn: Callable[..., T], ctx: Optional[CallContext], *args, **kwargs) -> T:
    """Run fn in a worker thread, giving up once ctx's deadline passes.

    The worker is abandoned rather than joined when the deadline fires.
    """
    if ctx is None or ctx.deadline is None:
        return fn(*args, **kwargs)

    ctx.check()
    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(fn, *args, **kwargs)
        try:
            return future.result(timeout=ctx.remaining())
        except FutureTimeoutError:
            future.cancel()
            raise OperationTimeoutError(
                f"{getattr(fn, '__name__', 'call')} timed out"
            ) from None
    finally:
        executor.shutdown(wait=False)


def is_retryable(error: BaseException) -> bool:
    """Transient and timeout failures are retried; auth and not-found are not"""
    if isinstance(error, OperationCancelledError):
        return False
    return isinstance(error, (TransientCatalogError, OperationTimeoutError,
                              TimeoutError, ConnectionError))


@dataclass(frozen=True)
class RetryPolicy:
    """Capped exponential backoff"""
    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 1.5
    max_delay: float = 5.0
    retryable: Callable[[BaseException], bool] = is_retryable

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def from_config(cls, config: Any) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            base_delay=config.base_delay,
            multiplier=config.multiplier,
            max_delay=config.max_delay,
        )

    def delays(self) -> List[float]:
        """Backoff delays slept between consecutive attempts"""
        delays = []
        delay = self.base_delay
        for _ in range(max(0, self.max_attempts - 1)):
            delays.append(min(delay, self.max_delay))
            delay *= self.multiplier
        return delays

    def call(self, fn: Callable[[CallContext], T], ctx: Optional[CallContext] = None,
             description: str = "call", attempt_timeout: Optional[float] = None) -> T:
        """Invoke fn until it succeeds, fails permanently, or attempts run out.

        fn receives a per-attempt child context bounded by attempt_timeout
        and by ctx's own deadline.
        """
        ctx = ctx or CallContext()
        delays = self.delays()

        for attempt in range(1, self.max_attempts + 1):
            ctx.check()
            try:
                with ctx.child(attempt_timeout) as attempt_ctx:
                    return call_with_timeout(fn, attempt_ctx, attempt_ctx)
            except Exception as e:
                if not self.retryable(e) or attempt == self.max_attempts:
                    raise
                delay = delays[attempt - 1]
                logger.debug(
                    f"{description} failed (attempt {attempt}/{self.max_attempts}): {e}; "
                    f"retrying in {delay:.2f}s"
                )
                ctx.sleep(delay)

        raise AssertionError("retry loop exited without a result")
