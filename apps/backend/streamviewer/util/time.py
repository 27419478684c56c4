from __future__ import annotations

import datetime as dt
import time


def now_utc() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def now_utc_iso() -> str:
    return now_utc().isoformat()


def now_local() -> dt.datetime:
    return dt.datetime.now().astimezone()


def local_clock_stamp() -> str:
    """Wall-clock time as HH:MM:SS.mmm, used to prefix activity log lines."""
    return now_local().strftime("%H:%M:%S.%f")[:-3]


def monotonic() -> float:
    return time.monotonic()
