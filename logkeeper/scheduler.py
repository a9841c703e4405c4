"""Rotation deadline and rotated-file timestamp calculations."""

from datetime import datetime, timedelta, timezone

ONE_DAY = timedelta(days=1)


def _start_of_local_day(now: datetime, rotate_at: timedelta) -> datetime:
    # Local 00:00 of the day reached, with the offset in force at that
    # midnight rather than the one in force at ``now``.
    wall = now.astimezone().replace(tzinfo=None) + rotate_at
    return wall.replace(hour=0, minute=0, second=0, microsecond=0).astimezone()


def next_rotation(now: datetime, rotate_at: timedelta) -> datetime:
    """Return when the active file should next be rotated.

    Spans of a day or longer align to the start of the calendar day reached
    at ``now + rotate_at`` (local midnight); shorter spans are exact intervals.
    """
    if rotate_at < ONE_DAY:
        return now + rotate_at
    if now.tzinfo is None:
        return (now + rotate_at).replace(hour=0, minute=0, second=0, microsecond=0)
    return _start_of_local_day(now, rotate_at)


def rotation_timestamp(now: datetime) -> str:
    """Fixed-width, millisecond-precision suffix: ``YYYYMMDDHHMMSSfff``.

    Aware datetimes are rendered in UTC so names keep sorting in creation
    order when local clocks are set back.
    """
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y%m%d%H%M%S") + f"{now.microsecond // 1000:03d}"
