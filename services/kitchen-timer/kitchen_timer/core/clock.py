"""
Kitchen Timer — Clock source

The store never reads the wall clock directly; it is handed a zero-argument
callable returning an aware UTC datetime.
"""
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
