"""Supervisors coordinate commits across the pumps of a running topology."""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional

ErrorFunc = Callable[[BaseException], None]


class NotRunningError(RuntimeError):
    """Raised when an action needs a running supervisor."""

    def __init__(self, message: str = "streams: supervisor not running") -> None:
        super().__init__(message)


class AlreadyRunningError(RuntimeError):
    """Raised when starting a supervisor that is already running."""

    def __init__(self, message: str = "streams: supervisor already running") -> None:
        super().__init__(message)


class UnknownPumpError(LookupError):
    """Raised when no pump can be found for a processor."""

    def __init__(self, message: str = "streams: encountered an unknown pump") -> None:
        super().__init__(message)


class TimedSupervisor:
    """Wraps another supervisor and commits through it at a fixed interval.

    ``interval`` is in seconds. A commit requested by a committer makes the
    next timed commit be skipped. Errors from timed commits go to ``error_fn``.
    """

    def __init__(
        self, inner: Any, interval: float, error_fn: Optional[ErrorFunc] = None
    ) -> None:
        self.inner = inner
        self.interval = interval
        self.error_fn = error_fn
        self._state_lock = threading.Lock()
        self._running = False
        self._commits = 0
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    def with_context(self, ctx: Any) -> None:
        """Pass the context on to the inner supervisor."""
        self.inner.with_context(ctx)

    def with_monitor(self, monitor: Any) -> None:
        """Pass the monitor on to the inner supervisor."""
        self.inner.with_monitor(monitor)

    def with_pumps(self, pumps: Any) -> None:
        """Pass the pumps on to the inner supervisor."""
        self.inner.with_pumps(pumps)

    def start(self) -> None:
        """Start the commit timer and then the inner supervisor."""
        if self.interval <= 0:
            raise ValueError("streams: commit interval must be positive")

        with self._state_lock:
            if self._running:
                raise AlreadyRunningError()
            self._running = True
            self._commits = 0
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._thread = threading.Thread(
                target=self._run, args=(stop_event,), name="timed-supervisor", daemon=True
            )
            self._thread.start()

        self.inner.start()

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            with self._state_lock:
                skip = self._commits > 0
                self._commits = 0
            if skip:
                continue

            try:
                self.inner.commit(None)
            except Exception as err:  # noqa: BLE001 - handed to the error handler
                if self.error_fn is not None:
                    self.error_fn(err)

    def close(self) -> None:
        """Stop the commit timer and close the inner supervisor."""
        with self._state_lock:
            if not self._running:
                raise NotRunningError()
            self._running = False
            stop_event, thread = self._stop_event, self._thread
            self._stop_event = self._thread = None

        if stop_event is not None:
            stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join()

        self.inner.close()

    def commit(self, caller: Any) -> None:
        """Commit through the inner supervisor and skip the next timed commit."""
        with self._state_lock:
            if not self._running:
                raise NotRunningError()
            self._commits += 1

        self.inner.commit(caller)

    def __enter__(self) -> TimedSupervisor:
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()