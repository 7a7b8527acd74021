"""Cancellation and deadline tokens for container operations.

Every client call takes an optional ``OperationContext``. A call derives a child
bounded by its own timeout; cancelling a parent cancels all of its children, and a
child's deadline can never outlive its parent's.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, wait
from typing import Callable, TypeVar

from mcserve.container.errors import DeadlineExceeded, OperationCancelled

T = TypeVar("T")

# how often a blocked call re-checks for cancellation
CANCEL_CHECK_INTERVAL = 0.05  # seconds


class OperationContext:
    def __init__(self, deadline: float | None = None, parent: OperationContext | None = None) -> None:
        self._event = threading.Event()
        self._parent = parent
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline

    @classmethod
    def background(cls) -> OperationContext:
        """A context that is never cancelled and has no deadline."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float) -> OperationContext:
        return cls(deadline=time.monotonic() + seconds)

    def child(self, timeout: float | None = None) -> OperationContext:
        deadline = None if timeout is None else time.monotonic() + timeout
        return OperationContext(deadline=deadline, parent=self)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def raise_if_done(self) -> None:
        if self.cancelled:
            raise OperationCancelled()
        if self.expired:
            raise DeadlineExceeded()

    def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` but wake up as soon as the context is cancelled."""
        end = time.monotonic() + seconds
        while True:
            self.raise_if_done()
            left = end - time.monotonic()
            if left <= 0:
                return
            self._event.wait(self._next_check(left))

    def run(self, fn: Callable[..., T], *args: object, **kwargs: object) -> T:
        """Run a blocking call on its own worker thread and wait for it within this context.

        Each call gets a dedicated daemon thread, so a slow call never delays another. The
        call itself cannot be interrupted; on cancellation or deadline the caller gets
        control back immediately and the call's eventual result is discarded.
        """
        self.raise_if_done()
        future: Future[T] = Future()

        def target() -> None:
            try:
                result = fn(*args, **kwargs)
            except BaseException as e:
                future.set_exception(e)
            else:
                future.set_result(result)

        threading.Thread(target=target, name=f"mcserve-{getattr(fn, '__name__', 'call')}", daemon=True).start()
        while True:
            done, _ = wait([future], timeout=self._next_check())
            if done:
                return future.result()
            self.raise_if_done()

    def _next_check(self, upper: float | None = None) -> float:
        interval = CANCEL_CHECK_INTERVAL if upper is None else min(upper, CANCEL_CHECK_INTERVAL)
        remaining = self.remaining()
        if remaining is not None:
            interval = min(interval, remaining)
        return max(interval, 0.0)
