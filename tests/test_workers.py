"""Tests for the background fetch workers."""
import time

import pytest
from PySide6.QtCore import QCoreApplication

from becidashboard.controller.workers import BackgroundFetcher, FetchWorker


def wait_for(condition, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not condition() and time.monotonic() < deadline:
        QCoreApplication.processEvents()
        time.sleep(0.01)
    return condition()


def test_worker_resolves_future():
    worker = FetchWorker(lambda a, b: a + b, 2, 3)
    worker.run()
    assert worker.future.result(timeout=0) == 5


def test_worker_forwards_exception():
    errors = []

    def boom():
        raise ConnectionError("portal down")

    worker = FetchWorker(boom)
    worker.error_occurred.connect(errors.append)
    worker.run()
    with pytest.raises(ConnectionError):
        worker.future.result(timeout=0)
    assert errors == ["portal down"]


def test_cancelled_future_is_not_run():
    calls = []
    worker = FetchWorker(lambda: calls.append(1))
    worker.future.cancel()
    worker.run()
    assert calls == []


def test_fetcher_runs_off_thread():
    fetcher = BackgroundFetcher()
    future = fetcher.submit(sorted, [3, 1, 2])
    assert future.result(timeout=5) == [1, 2, 3]
    fetcher.wait_all()
    assert wait_for(lambda: fetcher.pending() == 0)
