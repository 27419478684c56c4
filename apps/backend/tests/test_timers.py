from __future__ import annotations

import threading
import time

from streamviewer.playback.timers import PeriodicTask, Scheduler


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_call_later_runs_callback_on_worker_thread() -> None:
    scheduler = Scheduler(name="test-scheduler")
    scheduler.start()
    fired = threading.Event()
    names: list[str] = []

    def _callback() -> None:
        names.append(threading.current_thread().name)
        fired.set()

    try:
        scheduler.call_later(0.01, _callback, "probe")
        assert fired.wait(timeout=2.0)
        assert names == ["test-scheduler"]
    finally:
        scheduler.shutdown()


def test_cancelled_handle_never_fires() -> None:
    scheduler = Scheduler()
    scheduler.start()
    calls: list[int] = []
    try:
        handle = scheduler.call_later(0.05, lambda: calls.append(1))
        handle.cancel()
        time.sleep(0.15)
        assert calls == []
        assert scheduler.pending() == 0
    finally:
        scheduler.shutdown()


def test_periodic_task_survives_callback_errors() -> None:
    scheduler = Scheduler()
    scheduler.start()
    attempts: list[int] = []

    def _flaky() -> None:
        attempts.append(1)
        raise RuntimeError("boom")

    task = PeriodicTask(scheduler, 0.01, _flaky, "flaky")
    try:
        task.start()
        assert _wait_for(lambda: len(attempts) >= 3)
        assert task.active
    finally:
        task.cancel()
        scheduler.shutdown()


def test_nothing_fires_after_shutdown() -> None:
    scheduler = Scheduler()
    scheduler.start()
    calls: list[int] = []
    scheduler.call_later(0.1, lambda: calls.append(1))

    scheduler.shutdown()
    late = scheduler.call_later(0.0, lambda: calls.append(2))
    time.sleep(0.2)

    assert calls == []
    assert late.cancelled
    assert scheduler.pending() == 0
