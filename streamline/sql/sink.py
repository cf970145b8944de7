"""A batching SQL sink built on DB-API connections."""

from __future__ import annotations

from typing import Any, Callable

from streamline.processor import Committer

Executor = Callable[[Any, Any], None]


class Sink(Committer):
    """Writes messages to a database, committing in batches.

    ``db`` is a DB-API connection. ``executor`` is called as
    ``executor(cursor, msg)`` for every message; if it also has ``begin(cursor)``
    and ``commit(cursor)`` methods they are called when a transaction starts
    and before it is committed.
    """

    def __init__(self, db: Any, batch: int, executor: Executor) -> None:
        if batch == 0:
            raise ValueError("sink: batch must be greater than zero")
        self.db = db
        self.batch = batch
        self.executor = executor
        self.pipe: Any = None
        self._tx: Any = None
        self._count = 0
        begin = getattr(executor, "begin", None)
        commit = getattr(executor, "commit", None)
        self._tx_handler = executor if callable(begin) and callable(commit) else None

    def with_pipe(self, pipe: Any) -> None:
        """Attach the pipe used to mark and commit messages."""
        self.pipe = pipe

    def process(self, msg: Any) -> None:
        """Execute ``msg`` in the open transaction, committing when the batch is full."""
        self._ensure_transaction()
        self.executor(self._tx, msg)

        self._count += 1
        if self._count >= self.batch:
            self.pipe.commit(msg)
        else:
            self.pipe.mark(msg)

    def commit(self, ctx: Any = None) -> None:
        """Commit the open transaction, if there is one."""
        self._count = 0
        self._commit_transaction()

    def _ensure_transaction(self) -> None:
        if self._tx is not None:
            return
        self._tx = self.db.cursor()
        if self._tx_handler is not None:
            self._tx_handler.begin(self._tx)

    def _commit_transaction(self) -> None:
        if self._tx is None:
            return
        if self._tx_handler is not None:
            self._tx_handler.commit(self._tx)
        try:
            self.db.commit()
        except Exception:
            try:
                self.db.rollback()
            except Exception:  # noqa: BLE001 - the commit failure is what matters
                pass
            raise
        self._close_cursor()

    def _close_cursor(self) -> None:
        close = getattr(self._tx, "close", None)
        if callable(close):
            close()
        self._tx = None

    def close(self) -> None:
        """Roll back any open transaction and close the connection."""
        if self._tx is not None:
            try:
                self.db.rollback()
            except Exception:  # noqa: BLE001 - closing regardless
                pass
            self._close_cursor()
        self.db.close()