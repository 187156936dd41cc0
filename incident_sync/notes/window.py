"""Calendar-day window filtering: which incidents were live on a given date."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, time, tzinfo

import pytz

from incident_sync.core.config import TIMEZONE
from incident_sync.core.mappers import parse_timestamp
from incident_sync.core.models import FullIncident

END_OF_DAY = time(23, 59, 59, 999000)


def resolve_tz(tz: str | tzinfo | None) -> tzinfo:
    if tz is None:
        return pytz.timezone(TIMEZONE)
    if isinstance(tz, str):
        return pytz.timezone(tz)
    return tz


def _localize(tz: tzinfo, naive: datetime) -> datetime:
    localize = getattr(tz, "localize", None)
    if localize is not None:
        return localize(naive)
    return naive.replace(tzinfo=tz)


def day_bounds(day: date, tz: str | tzinfo | None = None) -> tuple[datetime, datetime]:
    """Local ``[00:00:00.000, 23:59:59.999]`` boundaries of ``day``."""
    zone = resolve_tz(tz)
    return (
        _localize(zone, datetime.combine(day, time.min)),
        _localize(zone, datetime.combine(day, END_OF_DAY)),
    )


def is_active_on(incident: FullIncident, day: date, tz: str | tzinfo | None = None) -> bool:
    """True if the incident was open at any point during the local calendar day.

    Creation and closure days both count, so a multi-day incident is active
    on every day it spans.
    """
    created = parse_timestamp(incident.created_at)
    if created is None:
        return False
    start, end = day_bounds(day, tz)
    if created > end:
        return False
    closed = parse_timestamp(incident.closed_at)
    return closed is None or closed >= start


def filter_incidents_for_date(
    incidents: Iterable[FullIncident], day: date, tz: str | tzinfo | None = None
) -> list[FullIncident]:
    zone = resolve_tz(tz)
    return [inc for inc in incidents if is_active_on(inc, day, zone)]
