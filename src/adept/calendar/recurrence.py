"""RFC 5545 recurrence rules for calendar events.

Examples::

    create_weekly_rule(DaysOfWeek.MONDAY | DaysOfWeek.WEDNESDAY)
    # 'RRULE:FREQ=WEEKLY;BYDAY=MO,WE'

    create_daily_rule(interval=2, count=5)
    # 'RRULE:FREQ=DAILY;INTERVAL=2;COUNT=5'
"""

from datetime import UTC, datetime
from enum import Enum, IntFlag


class Frequency(Enum):
    """Recurrence frequency."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class DaysOfWeek(IntFlag):
    """Days of the week as combinable flags."""

    NONE = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 4
    THURSDAY = 8
    FRIDAY = 16
    SATURDAY = 32
    SUNDAY = 64
    WEEKDAYS = MONDAY | TUESDAY | WEDNESDAY | THURSDAY | FRIDAY
    WEEKEND = SATURDAY | SUNDAY
    ALL = WEEKDAYS | WEEKEND


# Order matters: BYDAY lists days Monday first
DAY_CODES: tuple[tuple[DaysOfWeek, str], ...] = (
    (DaysOfWeek.MONDAY, "MO"),
    (DaysOfWeek.TUESDAY, "TU"),
    (DaysOfWeek.WEDNESDAY, "WE"),
    (DaysOfWeek.THURSDAY, "TH"),
    (DaysOfWeek.FRIDAY, "FR"),
    (DaysOfWeek.SATURDAY, "SA"),
    (DaysOfWeek.SUNDAY, "SU"),
)

LAST_POSITION = -1


def day_codes(days: DaysOfWeek) -> list[str]:
    """Map a set of day flags to two-letter codes, Monday first."""
    return [code for flag, code in DAY_CODES if days & flag]


def format_until(until: datetime) -> str:
    """Format an UNTIL value as a UTC timestamp.

    Naive datetimes are taken as UTC.
    """
    if until.tzinfo is None:
        until = until.replace(tzinfo=UTC)
    return until.astimezone(UTC).strftime("%Y%m%dT%H%M%SZ")


def _create_rule(
    frequency: Frequency,
    interval: int,
    count: int | None,
    until: datetime | None,
) -> str:
    """Build the FREQ/INTERVAL/COUNT/UNTIL part shared by every rule.

    COUNT wins when both COUNT and UNTIL are given.
    """
    if interval < 1:
        raise ValueError(f"Interval must be at least 1, got {interval}")
    if count is not None and count < 1:
        raise ValueError(f"Count must be at least 1, got {count}")

    parts = [f"RRULE:FREQ={frequency.value}"]
    if interval > 1:
        parts.append(f"INTERVAL={interval}")
    if count is not None:
        parts.append(f"COUNT={count}")
    elif until is not None:
        parts.append(f"UNTIL={format_until(until)}")
    return ";".join(parts)


def create_daily_rule(
    interval: int = 1, count: int | None = None, until: datetime | None = None
) -> str:
    """Create a daily rule, e.g. every 2 days."""
    return _create_rule(Frequency.DAILY, interval, count, until)


def create_weekly_rule(
    days_of_week: DaysOfWeek,
    interval: int = 1,
    count: int | None = None,
    until: datetime | None = None,
) -> str:
    """Create a weekly rule on the given days.

    With no days set the rule has no BYDAY and repeats on the start day.
    """
    rule = _create_rule(Frequency.WEEKLY, interval, count, until)
    days = day_codes(days_of_week)
    if days:
        rule += f";BYDAY={','.join(days)}"
    return rule


def create_monthly_by_day_rule(
    day_of_month: int,
    interval: int = 1,
    count: int | None = None,
    until: datetime | None = None,
) -> str:
    """Create a monthly rule on a fixed day of the month (1-31)."""
    if not 1 <= day_of_month <= 31:
        raise ValueError(f"Day of month must be between 1 and 31, got {day_of_month}")

    rule = _create_rule(Frequency.MONTHLY, interval, count, until)
    return f"{rule};BYMONTHDAY={day_of_month}"


def create_monthly_by_position_rule(
    position: int,
    day_of_week: DaysOfWeek,
    interval: int = 1,
    count: int | None = None,
    until: datetime | None = None,
) -> str:
    """Create a monthly rule on the Nth weekday, e.g. the first Monday.

    Args:
        position: 1-5, or -1 for the last occurrence in the month
        day_of_week: Exactly one day
        interval: Months between occurrences
        count: Number of occurrences
        until: Last possible occurrence

    Raises:
        ValueError: If position is out of range or day_of_week is not a single day
    """
    if position != LAST_POSITION and not 1 <= position <= 5:
        raise ValueError(f"Position must be between 1 and 5, or -1 for last, got {position}")

    days = day_codes(day_of_week)
    if len(days) != 1:
        raise ValueError("Exactly one day of the week must be specified")

    rule = _create_rule(Frequency.MONTHLY, interval, count, until)
    return f"{rule};BYDAY={position}{days[0]}"


def create_yearly_rule(
    month: int,
    day: int,
    interval: int = 1,
    count: int | None = None,
    until: datetime | None = None,
) -> str:
    """Create a yearly rule on a fixed month and day."""
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    if not 1 <= day <= 31:
        raise ValueError(f"Day must be between 1 and 31, got {day}")

    rule = _create_rule(Frequency.YEARLY, interval, count, until)
    return f"{rule};BYMONTH={month};BYMONTHDAY={day}"
