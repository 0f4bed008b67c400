"""Bounded worker pool for fire-and-forget work (imports, risk runs, audit writes)."""
from __future__ import annotations

import contextvars
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from functools import partial
from threading import Lock
from time import monotonic
from typing import Any, Callable

from payequity.core.log import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class TaskHandle:
    """Caller-side view of a submitted task."""

    label: str
    future: Future

    def done(self) -> bool:
        return self.future.done()

    def cancel(self) -> bool:
        """Cancel the task if it has not started yet."""

        return self.future.cancel()

    def wait(self, timeout: float | None = None) -> bool:
        done, _ = wait([self.future], timeout=timeout)
        return bool(done)


class BackgroundRunner:
    """Run callables on a fixed-size thread pool, logging failures instead of raising.

    Submitted callables run inside a copy of the caller's context so that bound
    log context (``org_id``, ``import_id``) follows the work.
    """

    def __init__(self, max_workers: int = 4, *, name: str = "payequity-bg") -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._pending: set[Future] = set()
        self._lock = Lock()

    def submit(self, label: str, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> TaskHandle:
        context = contextvars.copy_context()
        future = self._executor.submit(context.run, fn, *args, **kwargs)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(partial(self._on_done, label))
        LOGGER.debug("Dispatched background task %s", label)
        return TaskHandle(label=label, future=future)

    def _on_done(self, label: str, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
        if future.cancelled():
            LOGGER.info("Background task %s cancelled before it started", label)
            return
        error = future.exception()
        if error is not None:
            LOGGER.error(
                "Background task %s failed: %s",
                label,
                error,
                exc_info=(type(error), error, error.__traceback__),
            )

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def drain(self, timeout: float | None = None) -> bool:
        """Wait until no task is outstanding, including tasks spawned by other tasks."""

        deadline = None if timeout is None else monotonic() + timeout
        while True:
            with self._lock:
                outstanding = set(self._pending)
            if not outstanding:
                return True
            remaining = None if deadline is None else deadline - monotonic()
            if remaining is not None and remaining <= 0:
                return False
            wait(outstanding, timeout=remaining, return_when=FIRST_COMPLETED)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=not wait)
