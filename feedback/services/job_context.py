"""Cancellation and deadline handling for a single job invocation."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, TypeVar

from ..exceptions import JobCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class JobContext:
    """Carries a cancellation flag and an optional deadline.

    The job checks the context between blocking calls, uses `remaining()`
    to bound network timeouts and `call()` to stop waiting on a call that
    is still running when the job is cancelled.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        """Initialize job context.

        Args:
            timeout: Seconds until the deadline, or None for no deadline
            monotonic: Time source, swappable in tests
        """
        self._monotonic = monotonic
        self._cancelled = threading.Event()
        self._deadline = monotonic() + timeout if timeout is not None else None
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    def cancel(self) -> None:
        """Request cancellation. Safe to call from another thread."""
        with self._lock:
            self._cancelled.set()
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback run by `cancel()`.

        The callback runs immediately if the context is already cancelled.

        Returns:
            A function that unregisters the callback
        """
        with self._lock:
            already_cancelled = self._cancelled.is_set()
            if not already_cancelled:
                self._callbacks.append(callback)

        if already_cancelled:
            callback()

        def unregister() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unregister

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and self._monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline (never negative), or None."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._monotonic())

    def _stopped(self, phrase: str) -> Optional[JobCancelled]:
        if self.cancelled:
            return JobCancelled(f"Job cancelled {phrase}")
        if self.expired:
            return JobCancelled(f"Job deadline exceeded {phrase}")
        return None

    def raise_if_done(self, step: str) -> None:
        """Raise JobCancelled if the context was cancelled or has expired."""
        error = self._stopped(f"before {step}")
        if error is not None:
            raise error

    def interrupted(self, step: str) -> Optional[JobCancelled]:
        """Return the JobCancelled for a call that failed during `step`.

        Returns None while the context is still live, so the caller
        re-raises the failure itself.
        """
        return self._stopped(f"while {step}")

    def call(self, func: Callable[[], T], step: str) -> T:
        """Run func in a worker thread and wait for it.

        Waiting stops as soon as the context is cancelled or the deadline
        passes, raising JobCancelled. The worker is not killed; it finishes
        on its own, bounded by whatever timeout func applies.

        Raises:
            JobCancelled: the context stopped before func returned
            Exception: whatever func raised
        """
        self.raise_if_done(step)

        wake = threading.Event()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="job-call")
        try:
            future = executor.submit(func)
            future.add_done_callback(lambda _: wake.set())
            unregister = self.on_cancel(wake.set)
            try:
                wake.wait(self.remaining())
            finally:
                unregister()
        finally:
            executor.shutdown(wait=False)

        if future.done():
            return future.result()

        logger.warning(f"Stopped waiting for {step}, the call is still running")
        error = self.interrupted(step)
        if error is None:
            error = JobCancelled(f"Job stopped while {step}")
        raise error
