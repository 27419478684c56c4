from __future__ import annotations

from fake_display import RecordingSurface
from fake_scheduler import ManualScheduler
from streamviewer.playback.health import HealthMonitor
from streamviewer.playback.session import PlaybackOwner, PlaybackSession
from streamviewer.util.ring_log import LogRingBuffer


def _monitor() -> tuple[HealthMonitor, PlaybackSession, RecordingSurface, ManualScheduler]:
    sched = ManualScheduler()
    surface = RecordingSurface()
    log = LogRingBuffer()
    session = PlaybackSession(surface, log, clock=sched.now)
    monitor = HealthMonitor(
        session, sched, log, check_interval=10, stream_timeout=30, settle_seconds=1, load_error_retry=5
    )
    return monitor, session, surface, sched


def test_no_recovery_before_timeout_elapses() -> None:
    monitor, session, surface, sched = _monitor()
    t0 = sched.now()
    session.configure("http://h:1984", "front")

    assert monitor.check(now=t0 + 29) is False
    assert surface.calls == [("stream", "front")]


def test_recovery_tears_down_then_replays_after_settle() -> None:
    monitor, session, surface, sched = _monitor()
    t0 = sched.now()
    session.configure("http://h:1984", "front")

    assert monitor.check(now=t0 + 31) is True
    assert surface.last == ("clear", None)
    assert monitor.recovery_pending

    sched.advance(1)
    assert surface.calls == [("stream", "front"), ("clear", None), ("stream", "front")]
    assert session.owner is PlaybackOwner.RECOVERY
    assert monitor.recoveries == 1
    assert not monitor.recovery_pending


def test_periodic_checks_trigger_on_first_tick_past_timeout() -> None:
    monitor, session, surface, sched = _monitor()
    session.configure("http://h:1984", "front")
    monitor.start()

    sched.advance(30)
    assert surface.calls == [("stream", "front")]

    sched.advance(10)
    assert surface.last == ("clear", None)
    sched.advance(1)
    assert surface.last == ("stream", "front")


def test_activity_signal_keeps_stream_alive() -> None:
    monitor, session, surface, sched = _monitor()
    session.configure("http://h:1984", "front")
    monitor.start()

    for _ in range(12):
        sched.advance(10)
        session.record_activity()

    assert surface.calls == [("stream", "front")]
    assert monitor.running


def test_idle_or_unconfigured_session_is_never_recovered() -> None:
    monitor, session, surface, sched = _monitor()
    assert monitor.check(now=sched.now() + 1000) is False

    session.configure("http://h:1984", "front")
    session.stop()
    assert monitor.check(now=sched.now() + 1000) is False


def test_blank_overlay_suspends_checks() -> None:
    monitor, session, surface, sched = _monitor()
    session.configure("http://h:1984", "front")
    session.blank()

    assert monitor.check(now=sched.now() + 120) is False
    assert surface.last == ("blank", None)


def test_replay_dropped_when_target_changed_during_settle() -> None:
    monitor, session, surface, sched = _monitor()
    session.configure("http://h:1984", "front")
    assert monitor.check(now=sched.now() + 31) is True

    session.configure("http://h:1984", "garage", owner=PlaybackOwner.MANUAL)
    sched.advance(1)

    assert surface.streams == ["front", "garage"]
    assert monitor.recoveries == 0


def test_error_report_runs_immediate_check() -> None:
    monitor, session, surface, sched = _monitor()
    session.configure("http://h:1984", "front")
    sched.advance(45)

    assert monitor.report_error("decoder stalled") is True
    assert "Stream error: decoder stalled" in monitor.log.render()


def test_stop_cancels_pending_recovery() -> None:
    monitor, session, surface, sched = _monitor()
    session.configure("http://h:1984", "front")
    monitor.start()
    assert monitor.check(now=sched.now() + 31) is True

    monitor.stop()
    sched.advance(100)
    assert surface.last == ("clear", None)
    assert sched.pending() == 0


def test_load_error_replays_after_retry_delay_regardless_of_activity() -> None:
    monitor, session, surface, sched = _monitor()
    session.configure("http://h:1984", "front")
    session.record_activity()

    assert monitor.report_load_error("net::ERR_CONNECTION_REFUSED") is True
    assert surface.last == ("clear", None)

    sched.advance(4)
    assert surface.last == ("clear", None)
    sched.advance(1)
    assert surface.calls == [("stream", "front"), ("clear", None), ("stream", "front")]
    assert monitor.recoveries == 1


def test_load_error_ignored_when_idle_blanked_or_already_recovering() -> None:
    monitor, session, surface, sched = _monitor()
    assert monitor.report_load_error("early") is False

    session.configure("http://h:1984", "front")
    session.blank()
    assert monitor.report_load_error("while blank") is False

    session.restore()
    assert monitor.report_load_error("first") is True
    assert monitor.report_load_error("second") is False
    assert sched.pending() == 1
    assert "Page load error: second" in monitor.log.render()
