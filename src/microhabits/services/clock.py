"""Time sources injected into the habit engine."""

from __future__ import annotations

from datetime import datetime, timedelta, tzinfo
from typing import Optional, Protocol
from zoneinfo import ZoneInfo

from tzlocal import get_localzone

from ..config import BaseConfig


class Clock(Protocol):
    """Anything that can report the current instant."""

    def now(self) -> datetime:  # pragma: no cover - interface
        ...


def host_zone() -> tzinfo:
    """The host's IANA zone, with its DST rules (not just today's offset)."""

    return get_localzone()


def as_aware(instant: datetime) -> datetime:
    """Attach the host's local zone to a naive datetime; aware values pass through."""

    if instant.tzinfo is None:
        return instant.replace(tzinfo=host_zone())
    return instant


class SystemClock:
    """Wall clock in a fixed IANA zone, or the host's zone when none is given."""

    def __init__(self, tz: Optional[tzinfo] = None):
        self.tz = tz

    @classmethod
    def from_config(cls, config: BaseConfig) -> "SystemClock":
        return cls(ZoneInfo(config.TIMEZONE) if config.TIMEZONE else None)

    def now(self) -> datetime:
        return datetime.now(self.tz if self.tz is not None else host_zone())


class FixedClock:
    """Always reports the same instant."""

    def __init__(self, instant: datetime):
        self._instant = as_aware(instant)

    def now(self) -> datetime:
        return self._instant


class ManualClock(FixedClock):
    """A clock tests move forward by hand instead of waiting."""

    def set(self, instant: datetime) -> datetime:
        self._instant = as_aware(instant)
        return self._instant

    def advance(self, delta: Optional[timedelta] = None, **kwargs: float) -> datetime:
        """Move forward by ``delta`` or by ``timedelta(**kwargs)``."""
        step = delta if delta is not None else timedelta(**kwargs)
        self._instant = self._instant + step
        return self._instant


__all__ = ["Clock", "FixedClock", "ManualClock", "SystemClock", "as_aware", "host_zone"]
