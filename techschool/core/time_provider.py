from __future__ import annotations

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from techschool.config import settings


SCHOOL_ZONEINFO = ZoneInfo(settings.app_timezone or 'America/La_Paz')


class TimeProvider:
    """Wall clock in the school's timezone. Services take one as `time_provider`."""

    def utc_now(self) -> datetime:
        return datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self.utc_now().astimezone(SCHOOL_ZONEINFO)

    def today(self) -> date:
        return self.now().date()


class FixedTimeProvider(TimeProvider):
    def __init__(self, moment: datetime):
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=SCHOOL_ZONEINFO)
        self.moment = moment

    @classmethod
    def on(cls, day: date, at: time = time(12, 0)) -> 'FixedTimeProvider':
        return cls(datetime.combine(day, at, tzinfo=SCHOOL_ZONEINFO))

    def utc_now(self) -> datetime:
        return self.moment.astimezone(timezone.utc)


def utcnow_naive() -> datetime:
    # Column default: UTC wall clock without tzinfo.
    return default_time_provider.utc_now().replace(tzinfo=None)


default_time_provider = TimeProvider()
