"""Google Calendar integration: API client, OAuth, recurrence rules and lesson sync."""

from adept.calendar.client import GoogleCalendarClient, SyncTokenExpiredError
from adept.calendar.models import (
    CalendarAttachment,
    CalendarAttendee,
    CalendarDateTime,
    CalendarEvent,
    CalendarPerson,
    CalendarReminder,
    CalendarReminders,
    EventColor,
    EventPage,
    EventPayload,
    PollResult,
)
from adept.calendar.oauth import GoogleOAuthService, NotAuthenticatedError, OAuthToken
from adept.calendar.recurrence import (
    DaysOfWeek,
    create_daily_rule,
    create_monthly_by_day_rule,
    create_monthly_by_position_rule,
    create_weekly_rule,
    create_yearly_rule,
)
from adept.calendar.sync import CalendarSyncHandler, CalendarSyncService, EventOptions

__all__ = [
    "CalendarAttachment",
    "CalendarAttendee",
    "CalendarDateTime",
    "CalendarEvent",
    "CalendarPerson",
    "CalendarReminder",
    "CalendarReminders",
    "CalendarSyncHandler",
    "CalendarSyncService",
    "DaysOfWeek",
    "EventColor",
    "EventOptions",
    "EventPage",
    "EventPayload",
    "GoogleCalendarClient",
    "GoogleOAuthService",
    "NotAuthenticatedError",
    "OAuthToken",
    "PollResult",
    "SyncTokenExpiredError",
    "create_daily_rule",
    "create_monthly_by_day_rule",
    "create_monthly_by_position_rule",
    "create_weekly_rule",
    "create_yearly_rule",
]
