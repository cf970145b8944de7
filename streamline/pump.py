"""Pumps that move messages from sources through processor nodes.

Latencies go to the monitor in seconds; a pipe's ``duration()``
is expected in seconds too.
"""

from __future__ import annotations

import threading
import time
from queue import Full, Queue
from typing import Any, Callable, Iterable, Protocol

from streamline.topology import Node, Source

ErrorFunc = Callable[[BaseException], None]

QUEUE_SIZE = 1000

_STOP = object()


class Monitor(Protocol):
    def processed(self, name: str, latency: float, pressure: float) -> None: ...


class TimedPipe(Protocol):
    def reset(self) -> None: ...

    def duration(self) -> float: ...


class _NodePump:
    """State shared by the pumps that drive a processor node.

    A pump can be held, as a lock or a context manager, while a commit runs.
    """

    def __init__(self, monitor: Monitor, node: Node, pipe: TimedPipe) -> None:
        self.name = node.name
        self.processor = node.processor
        self.pipe = pipe
        self.monitor = monitor
        self._lock = threading.Lock()

    def acquire(self) -> None:
        raise NotImplementedError

    def release(self) -> None:
        raise NotImplementedError

    def __enter__(self) -> _NodePump:
        self.acquire()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.release()

    def _timed_process(self, msg: Any) -> float:
        """Process ``msg`` and return the time spent outside the pipe."""
        self.pipe.reset()
        start = time.perf_counter()
        self.processor.process(msg)
        return time.perf_counter() - start - self.pipe.duration()


class SyncPump(_NodePump):
    """Processes each message in the caller's thread."""

    def acquire(self) -> None:
        """Block the pump from processing messages."""
        self._lock.acquire()

    def release(self) -> None:
        """Let the pump process messages again."""
        self._lock.release()

    def accept(self, msg: Any) -> None:
        """Process ``msg`` right away; processor errors propagate."""
        self.monitor.processed(self.name, self._timed_process(msg), -1)

    def stop(self) -> None:
        """Nothing runs in the background, so there is nothing to stop."""

    def close(self) -> None:
        """Close the node's processor."""
        self.processor.close()


class AsyncPump(_NodePump):
    """Queues messages and processes them on a background thread.

    Call ``stop`` before ``close``.
    """

    def __init__(
        self, monitor: Monitor, node: Node, pipe: TimedPipe, error_fn: ErrorFunc
    ) -> None:
        super().__init__(monitor, node, pipe)
        self._error_fn = error_fn
        self._queue: Queue[Any] = Queue(maxsize=QUEUE_SIZE)
        self._stopped = False
        self._thread = threading.Thread(target=self._run, name=f"pump-{self.name}", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while (msg := self._queue.get()) is not _STOP:
            try:
                with self._lock:
                    latency = self._timed_process(msg)
            except Exception as err:  # noqa: BLE001 - handed to the error handler
                self._error_fn(err)
                return
            self.monitor.processed(self.name, latency, pressure(self._queue))

    def acquire(self) -> None:
        """Block the worker from processing messages."""
        self._lock.acquire()

    def release(self) -> None:
        """Let the worker process messages again."""
        self._lock.release()

    def accept(self, msg: Any) -> None:
        """Queue ``msg``, blocking while the queue is full."""
        self._queue.put(msg)

    def stop(self) -> None:
        """Finish queued messages and wait for the worker to exit."""
        if self._stopped:
            return
        self._stopped = True
        while self._thread.is_alive():
            try:
                self._queue.put(_STOP, timeout=0.1)
            except Full:
                continue
            break
        self._thread.join()

    def close(self) -> None:
        """Close the node's processor."""
        self.processor.close()


def pressure(queue: Queue) -> float:
    """Return how full ``queue`` is, as a percentage."""
    return queue.qsize() / queue.maxsize * 100


def _is_empty(msg: Any) -> bool:
    if msg is None:
        return True
    empty = getattr(msg, "empty", None)
    return bool(empty()) if callable(empty) else False


class SourcePump:
    """Consumes a source on a background thread and feeds the pumps."""

    def __init__(
        self,
        monitor: Monitor,
        name: str,
        source: Source,
        pumps: Iterable[Any],
        error_fn: ErrorFunc,
    ) -> None:
        self.name = name
        self.source = source
        self.pumps = list(pumps)
        self.monitor = monitor
        self._error_fn = error_fn
        self._quit = threading.Event()
        self._thread = threading.Thread(target=self._run, name=f"source-{name}", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        try:
            self._pump_messages()
        except Exception as err:  # noqa: BLE001 - handed to the error handler
            # Handed off on a separate thread so a handler may stop this pump.
            threading.Thread(target=self._error_fn, args=(err,), daemon=True).start()

    def _pump_messages(self) -> None:
        while not self._quit.is_set():
            start = time.perf_counter()
            msg = self.source.consume()
            if _is_empty(msg):
                continue

            self.monitor.processed(self.name, time.perf_counter() - start, -1)

            for pump in self.pumps:
                pump.accept(msg)

    def stop(self) -> None:
        """Stop consuming and wait for the worker to exit."""
        self._quit.set()
        self._thread.join()

    def close(self) -> None:
        """Close the source."""
        self._quit.set()
        self.source.close()


def stop_all(source_pumps: Iterable[SourcePump]) -> None:
    """Stop every source pump in turn."""
    for source_pump in source_pumps:
        source_pump.stop()