"""Task modes and helpers for running several tasks together."""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Callable

ErrorFunc = Callable[[BaseException], None]


class TaskMode(IntEnum):
    """How a task runs its processors."""

    ASYNC = 0
    SYNC = 1


class Tasks(list):
    """A list of tasks that can be started, watched and closed together."""

    def start(self, ctx: Any) -> None:
        """Start every task in order, stopping at the first failure."""
        for task in self:
            task.start(ctx)

    def on_error(self, fn: ErrorFunc) -> None:
        """Set the error handler on every task."""
        for task in self:
            task.on_error(fn)

    def close(self) -> None:
        """Close every task in reverse order, stopping at the first failure."""
        for task in reversed(self):
            task.close()