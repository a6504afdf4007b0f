"""
Background Workers (Threading)
==============================
This module contains QThread subclasses for handling blocking retrievals.

Why is this file needed?
------------------------
1. Responsiveness: Fetching layer metadata or the organizations dataset must
   not freeze the UI thread. These classes push the blocking call to a
   background thread.
2. Futures: Each job resolves a ``concurrent.futures.Future``, which is what
   the Temporal Binder and the entity-index loader wait on.

Classes:
    FetchWorker: Runs one blocking callable and resolves its future.
    BackgroundFetcher: Starts workers and keeps them alive until they finish.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Any, Callable

from PySide6.QtCore import QObject, QThread, Signal

logger = logging.getLogger(__name__)


class FetchWorker(QThread):
    error_occurred = Signal(str)

    def __init__(self, fn: Callable[..., Any], *args: Any, future: Future | None = None) -> None:
        super().__init__()
        self.fn = fn
        self.args = args
        self.future: Future = future if future is not None else Future()

    def run(self) -> None:
        if not self.future.set_running_or_notify_cancel():
            logger.debug("Fetch cancelled before it started.")
            return
        try:
            result = self.fn(*self.args)
        except Exception as e:
            logger.error(f"Error in FetchWorker: {e}")
            self.future.set_exception(e)
            self.error_occurred.emit(str(e))
        else:
            self.future.set_result(result)


class BackgroundFetcher(QObject):
    """Submits blocking calls to worker threads and hands back futures."""

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._workers: set[FetchWorker] = set()

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        worker = FetchWorker(fn, *args)
        self._workers.add(worker)
        worker.finished.connect(lambda w=worker: self._workers.discard(w))
        worker.start()
        return worker.future

    def pending(self) -> int:
        return len(self._workers)

    def wait_all(self, msecs: int = 5000) -> None:
        for worker in list(self._workers):
            worker.wait(msecs)
