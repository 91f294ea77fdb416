"""Data models for Google Calendar events.

``CalendarEvent`` is the read-only projection of an event returned by the
API. ``EventPayload`` is what we send when creating or updating an event;
unset optional fields are left out of the request body entirely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from dateutil import parser as dateparser
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

CANCELLED_STATUS = "cancelled"


def _str(data: dict, key: str, default: str | None = None) -> str | None:
    """Read a string field, tolerating missing or non-string values."""
    value = data.get(key)
    return value if isinstance(value, str) else default


def _int(data: dict, key: str, default: int) -> int:
    value = data.get(key)
    return value if isinstance(value, int) and not isinstance(value, bool) else default


def _list(data: dict, key: str) -> list:
    value = data.get(key)
    return value if isinstance(value, list) else []


def _timestamp(data: dict, key: str) -> datetime | None:
    """Parse an RFC 3339 timestamp field, or None if missing or malformed."""
    value = _str(data, key)
    if not value:
        return None
    try:
        return dateparser.isoparse(value)
    except (ValueError, OverflowError):
        logger.debug(f"Unparseable {key} timestamp: {value!r}")
        return None


class _ApiModel(BaseModel):
    """Base for models exchanged with the API in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_api(self) -> dict[str, Any]:
        """Serialize to an API body, omitting unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CalendarDateTime(_ApiModel):
    """Start or end of an event: either an all-day ``date`` or a ``date_time``."""

    date_time: str | None = None
    time_zone: str | None = None
    date: str | None = None

    @property
    def is_all_day(self) -> bool:
        """True for date-only (all-day) values."""
        return self.date is not None and self.date_time is None

    @classmethod
    def from_api(cls, data: Any) -> CalendarDateTime:
        """Parse from an API ``start``/``end`` object."""
        if not isinstance(data, dict):
            return cls()
        return cls(
            date_time=_str(data, "dateTime"),
            time_zone=_str(data, "timeZone"),
            date=_str(data, "date"),
        )


class CalendarPerson(_ApiModel):
    """Creator or organizer of an event."""

    id: str | None = None
    email: str | None = None
    display_name: str | None = None
    is_self: bool = Field(default=False, alias="self")

    @classmethod
    def from_api(cls, data: Any) -> CalendarPerson | None:
        """Parse from an API person object, or None when absent."""
        if not isinstance(data, dict):
            return None
        return cls(
            id=_str(data, "id"),
            email=_str(data, "email"),
            display_name=_str(data, "displayName"),
            is_self=data.get("self") is True,
        )


class CalendarReminder(_ApiModel):
    """A single reminder override."""

    method: str = "popup"
    minutes: int = 10


class CalendarReminders(_ApiModel):
    """Reminder settings for an event."""

    use_default: bool = False
    overrides: list[CalendarReminder] | None = None


class CalendarAttendee(_ApiModel):
    """An event attendee."""

    email: str = ""
    display_name: str | None = None
    optional: bool = False
    response_status: str = "needsAction"


class CalendarAttachment(_ApiModel):
    """A file attached to an event."""

    file_id: str | None = None
    file_url: str | None = None
    mime_type: str | None = None
    title: str | None = None
    icon_link: str | None = None


class CalendarEvent(_ApiModel):
    """Read-only projection of a Google Calendar event."""

    id: str = ""
    summary: str = ""
    description: str | None = None
    location: str | None = None
    start: CalendarDateTime = CalendarDateTime()
    end: CalendarDateTime = CalendarDateTime()
    html_link: str | None = None
    status: str | None = None
    creator: CalendarPerson | None = None
    organizer: CalendarPerson | None = None
    created: datetime | None = None
    updated: datetime | None = None
    color_id: str | None = None
    recurrence: list[str] = []
    reminders: CalendarReminders | None = None
    attendees: list[CalendarAttendee] = []
    attachments: list[CalendarAttachment] = []
    transparency: str | None = None
    visibility: str | None = None

    @property
    def is_cancelled(self) -> bool:
        """True for events deleted on the remote calendar."""
        return self.status == CANCELLED_STATUS

    @classmethod
    def from_api(cls, data: dict) -> CalendarEvent:
        """Parse an event resource from the API.

        Every field is optional; anything missing or of the wrong type
        falls back to its default instead of raising.
        """
        reminders = None
        raw_reminders = data.get("reminders")
        if isinstance(raw_reminders, dict):
            reminders = CalendarReminders(
                use_default=raw_reminders.get("useDefault") is True,
                overrides=[
                    CalendarReminder(
                        method=_str(o, "method", "popup"),
                        minutes=_int(o, "minutes", 10),
                    )
                    for o in _list(raw_reminders, "overrides")
                    if isinstance(o, dict)
                ]
                or None,
            )

        attendees = [
            CalendarAttendee(
                email=_str(a, "email", ""),
                display_name=_str(a, "displayName"),
                optional=a.get("optional") is True,
                response_status=_str(a, "responseStatus", "needsAction"),
            )
            for a in _list(data, "attendees")
            if isinstance(a, dict)
        ]

        attachments = [
            CalendarAttachment(
                file_id=_str(a, "fileId"),
                file_url=_str(a, "fileUrl"),
                mime_type=_str(a, "mimeType"),
                title=_str(a, "title"),
                icon_link=_str(a, "iconLink"),
            )
            for a in _list(data, "attachments")
            if isinstance(a, dict)
        ]

        recurrence = [r for r in _list(data, "recurrence") if isinstance(r, str)]

        return cls(
            id=_str(data, "id", ""),
            summary=_str(data, "summary", ""),
            description=_str(data, "description"),
            location=_str(data, "location"),
            start=CalendarDateTime.from_api(data.get("start")),
            end=CalendarDateTime.from_api(data.get("end")),
            html_link=_str(data, "htmlLink"),
            status=_str(data, "status"),
            creator=CalendarPerson.from_api(data.get("creator")),
            organizer=CalendarPerson.from_api(data.get("organizer")),
            created=_timestamp(data, "created"),
            updated=_timestamp(data, "updated"),
            color_id=_str(data, "colorId"),
            recurrence=recurrence,
            reminders=reminders,
            attendees=attendees,
            attachments=attachments,
            transparency=_str(data, "transparency"),
            visibility=_str(data, "visibility"),
        )


class EventPayload(_ApiModel):
    """Body for an event create or update request.

    ``start``/``end`` are wall-clock times in ``time_zone``.
    """

    summary: str
    description: str = ""
    location: str = ""
    start: datetime
    end: datetime
    time_zone: str
    color_id: str | None = None
    reminders: CalendarReminders | None = None
    attendees: list[CalendarAttendee] | None = None
    attachments: list[CalendarAttachment] | None = None
    visibility: str | None = None
    recurrence: list[str] | None = None

    @property
    def has_attachments(self) -> bool:
        """True when the request must be sent with ``supportsAttachments``."""
        return bool(self.attachments)

    def to_api(self) -> dict[str, Any]:
        """Serialize to the API event body.

        Empty optional strings and lists are omitted like unset ones.
        """
        body: dict[str, Any] = {
            "summary": self.summary,
            "description": self.description,
            "location": self.location,
            "start": {"dateTime": self.start.isoformat(), "timeZone": self.time_zone},
            "end": {"dateTime": self.end.isoformat(), "timeZone": self.time_zone},
        }
        if self.color_id:
            body["colorId"] = self.color_id
        if self.reminders is not None:
            body["reminders"] = self.reminders.to_api()
        if self.attendees:
            body["attendees"] = [a.to_api() for a in self.attendees]
        if self.attachments:
            body["attachments"] = [a.to_api() for a in self.attachments]
        if self.visibility:
            body["visibility"] = self.visibility
        if self.recurrence:
            body["recurrence"] = list(self.recurrence)
        return body


@dataclass(frozen=True)
class EventColor:
    """One entry of the calendar's event colour palette."""

    background: str
    foreground: str


@dataclass
class EventPage:
    """One page of an events list response."""

    items: list[dict] = field(default_factory=list)
    next_sync_token: str | None = None
    next_page_token: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> EventPage:
        """Parse a list response, tolerating missing fields."""
        items = data.get("items")
        return cls(
            items=[i for i in items if isinstance(i, dict)] if isinstance(items, list) else [],
            next_sync_token=_str(data, "nextSyncToken"),
            next_page_token=_str(data, "nextPageToken"),
        )


@dataclass
class PollResult:
    """Result of one inbound sync pass."""

    changed_events: list[CalendarEvent] = field(default_factory=list)
    deleted_event_ids: list[str] = field(default_factory=list)
    skipped: bool = False
    token_acquired: bool = False
    token_expired: bool = False
    handler_errors: int = 0
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        """True when the pass ran to completion without a request failure."""
        return not self.skipped and self.error is None

    def __str__(self) -> str:
        """Human-readable summary."""
        if self.skipped:
            return "Skipped"
        if self.error:
            return f"Failed: {self.error}"
        if self.token_expired:
            return "Sync token expired"
        if self.token_acquired:
            return "Sync token acquired"

        parts = []
        if self.changed_events:
            parts.append(f"{len(self.changed_events)} changed")
        if self.deleted_event_ids:
            parts.append(f"{len(self.deleted_event_ids)} deleted")
        if self.handler_errors:
            parts.append(f"{self.handler_errors} handler errors")

        return ", ".join(parts) if parts else "No changes"
