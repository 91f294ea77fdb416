"""Google Calendar REST API client.

Thin async wrapper over the Calendar v3 endpoints used by the lesson sync.
Failed requests raise ``httpx.HTTPStatusError``; callers decide whether a
failure is fatal. Rate-limited (429) requests are retried with backoff.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Protocol, Self
from zoneinfo import ZoneInfo

import httpx
from tenacity import (
    RetryError,
    retry,
    retry_if_result,
    stop_after_attempt,
    wait_exponential_jitter,
)

from adept.calendar.models import CalendarEvent, EventColor, EventPage, EventPayload
from adept.core.config import get_settings

logger = logging.getLogger(__name__)

BASE_URL = "https://www.googleapis.com/calendar/v3"
PRIMARY_CALENDAR = "primary"

# Rate limiting configuration
MAX_RETRIES = 5
MIN_WAIT_SECONDS = 1
MAX_WAIT_SECONDS = 30


class CredentialProvider(Protocol):
    """Source of bearer tokens for the Calendar API."""

    async def is_authenticated(self) -> bool:
        """True when credentials are stored."""
        ...

    async def get_valid_token(self) -> str:
        """Return a bearer token that is valid now."""
        ...


class SyncTokenExpiredError(httpx.HTTPStatusError):
    """The sync token was rejected with 410 Gone and must be re-acquired."""


def _is_rate_limited(response: httpx.Response) -> bool:
    """Check if response indicates rate limiting (429)."""
    return response.status_code == 429


def _log_retry(retry_state) -> None:
    """Log retry attempts."""
    logger.warning("Rate limited, retry attempt %d", retry_state.attempt_number)


def _day_bounds(start: date, end: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Midnight at ``start`` to midnight after ``end`` in ``tz``."""
    return (
        datetime.combine(start, time.min, tzinfo=tz),
        datetime.combine(end + timedelta(days=1), time.min, tzinfo=tz),
    )


class GoogleCalendarClient:
    """Client for the primary Google Calendar of the signed-in user.

    Usage:
        async with GoogleCalendarClient(oauth) as client:
            event_id = await client.create_event(payload)
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        http_client: httpx.AsyncClient | None = None,
        calendar_id: str = PRIMARY_CALENDAR,
    ) -> None:
        self.credentials = credentials
        self.calendar_id = calendar_id
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=30.0)

    async def __aenter__(self) -> Self:
        """Enter context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - close the HTTP client."""
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    @property
    def _events_url(self) -> str:
        return f"{BASE_URL}/calendars/{self.calendar_id}/events"

    async def initialize(self) -> bool:
        """Check that credentials are available.

        Returns:
            True if the client can make authenticated requests
        """
        if not await self.is_authenticated():
            logger.warning("Google Calendar is not authenticated")
            return False
        logger.debug("Google Calendar client initialized")
        return True

    async def is_authenticated(self) -> bool:
        """True when the credential provider holds usable credentials."""
        return await self.credentials.is_authenticated()

    async def get_access_token(self) -> str:
        """Get a valid bearer token from the credential provider."""
        return await self.credentials.get_valid_token()

    @retry(
        retry=retry_if_result(_is_rate_limited),
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential_jitter(initial=MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS),
        before_sleep=_log_retry,
        reraise=True,
    )
    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send one authorized request, retrying on 429.

        A fresh token is requested on every attempt so a refresh between
        retries is picked up.
        """
        token = await self.get_access_token()
        headers = {"Authorization": f"Bearer {token}", **kwargs.pop("headers", {})}
        response = await self._http.request(method, url, headers=headers, **kwargs)

        if response.status_code == 429:
            logger.warning("Rate limited (429) on %s %s", method, url)

        return response

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send a request and raise for any non-2xx response."""
        try:
            response = await self._request(method, url, **kwargs)
        except RetryError as e:
            response = e.last_attempt.result()
        response.raise_for_status()
        return response

    async def create_event(self, payload: EventPayload) -> str:
        """Create an event.

        Returns:
            The new event's ID

        Raises:
            httpx.HTTPStatusError: If the API rejects the request
        """
        params = {"supportsAttachments": "true"} if payload.has_attachments else None
        response = await self._send("POST", self._events_url, params=params, json=payload.to_api())

        event_id = response.json().get("id")
        if not event_id:
            raise ValueError("Create event response did not include an event id")
        logger.info("Created calendar event %s: %s", event_id, payload.summary)
        return event_id

    async def update_event(self, event_id: str, payload: EventPayload) -> bool:
        """Replace an event's contents.

        Raises:
            httpx.HTTPStatusError: If the API rejects the request
        """
        params = {"supportsAttachments": "true"} if payload.has_attachments else None
        await self._send(
            "PUT", f"{self._events_url}/{event_id}", params=params, json=payload.to_api()
        )
        logger.info("Updated calendar event %s: %s", event_id, payload.summary)
        return True

    async def delete_event(self, event_id: str) -> bool:
        """Delete an event.

        An event that is already gone (404/410) counts as deleted.
        """
        try:
            await self._send("DELETE", f"{self._events_url}/{event_id}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code not in (404, 410):
                raise
            logger.info("Calendar event %s was already deleted", event_id)
            return True
        logger.info("Deleted calendar event %s", event_id)
        return True

    async def _get_event_data(self, event_id: str) -> dict | None:
        try:
            response = await self._send("GET", f"{self._events_url}/{event_id}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise
        return response.json()

    async def get_event(self, event_id: str) -> CalendarEvent | None:
        """Get an event by ID, or None if it does not exist."""
        data = await self._get_event_data(event_id)
        return CalendarEvent.from_api(data) if data is not None else None

    async def list_events(
        self,
        time_min: datetime | None = None,
        time_max: datetime | None = None,
        sync_token: str | None = None,
        page_token: str | None = None,
        max_results: int | None = None,
        show_deleted: bool = False,
        single_events: bool = False,
    ) -> EventPage:
        """List one page of events.

        With a ``sync_token`` only changes since that token are returned and
        the time bounds are ignored (the API refuses to combine them).

        Raises:
            SyncTokenExpiredError: If the sync token is no longer valid (410)
            httpx.HTTPStatusError: For any other failure
        """
        params: dict[str, str | int] = {}
        if sync_token:
            params["syncToken"] = sync_token
        else:
            if time_min:
                params["timeMin"] = time_min.isoformat()
            if time_max:
                params["timeMax"] = time_max.isoformat()
            if single_events:
                params["singleEvents"] = "true"
                params["orderBy"] = "startTime"
        if page_token:
            params["pageToken"] = page_token
        if max_results:
            params["maxResults"] = max_results
        if show_deleted:
            params["showDeleted"] = "true"

        try:
            response = await self._send("GET", self._events_url, params=params)
        except httpx.HTTPStatusError as e:
            if sync_token and e.response.status_code == 410:
                raise SyncTokenExpiredError(
                    "Sync token expired", request=e.request, response=e.response
                ) from e
            raise

        return EventPage.from_api(response.json())

    async def get_events_for_date_range(
        self, start: date, end: date, time_zone: str | None = None
    ) -> list[CalendarEvent]:
        """Get all events from ``start`` to ``end`` inclusive, in start order."""
        tz = ZoneInfo(time_zone) if time_zone else get_settings().time_zone
        time_min, time_max = _day_bounds(start, end, tz)

        events: list[CalendarEvent] = []
        page_token = None
        while True:
            page = await self.list_events(
                time_min=time_min,
                time_max=time_max,
                page_token=page_token,
                single_events=True,
            )
            events.extend(CalendarEvent.from_api(item) for item in page.items)
            page_token = page.next_page_token
            if not page_token:
                break

        return [e for e in events if not e.is_cancelled]

    async def get_events_for_date(
        self, day: date, time_zone: str | None = None
    ) -> list[CalendarEvent]:
        """Get all events on one day."""
        return await self.get_events_for_date_range(day, day, time_zone)

    async def get_primary_calendar_id(self) -> str:
        """Get the ID of the user's primary calendar, falling back to ``primary``."""
        try:
            response = await self._send("GET", f"{BASE_URL}/users/me/calendarList")
        except httpx.HTTPError as e:
            logger.warning("Could not list calendars: %s", e)
            return PRIMARY_CALENDAR

        for item in response.json().get("items") or []:
            if isinstance(item, dict) and item.get("primary") and item.get("id"):
                return item["id"]
        return PRIMARY_CALENDAR

    async def get_color_palette(self) -> dict[str, EventColor]:
        """Get the event colour palette keyed by colour ID."""
        response = await self._send("GET", f"{BASE_URL}/colors")
        palette = response.json().get("event") or {}
        return {
            color_id: EventColor(
                background=color.get("background", ""),
                foreground=color.get("foreground", ""),
            )
            for color_id, color in palette.items()
            if isinstance(color, dict)
        }

    async def _patch_event(self, event_id: str, body: dict, **params) -> None:
        url = f"{self._events_url}/{event_id}"
        await self._send("PATCH", url, params=params or None, json=body)

    async def add_reminder(self, event_id: str, method: str = "popup", minutes: int = 10) -> bool:
        """Add a reminder override to an event.

        Returns:
            False if the event does not exist
        """
        data = await self._get_event_data(event_id)
        if data is None:
            logger.warning("Cannot add reminder: event %s not found", event_id)
            return False

        overrides = list((data.get("reminders") or {}).get("overrides") or [])
        reminder = {"method": method, "minutes": minutes}
        if reminder in overrides:
            return True

        overrides.append(reminder)
        await self._patch_event(
            event_id, {"reminders": {"useDefault": False, "overrides": overrides}}
        )
        logger.info("Added %s reminder (%d min) to event %s", method, minutes, event_id)
        return True

    async def add_attendee(
        self,
        event_id: str,
        email: str,
        display_name: str | None = None,
        optional: bool = False,
    ) -> bool:
        """Invite an attendee to an event.

        Returns:
            False if the event does not exist
        """
        data = await self._get_event_data(event_id)
        if data is None:
            logger.warning("Cannot add attendee: event %s not found", event_id)
            return False

        attendees = list(data.get("attendees") or [])
        if any(a.get("email", "").lower() == email.lower() for a in attendees):
            return True

        attendee = {"email": email, "optional": optional, "responseStatus": "needsAction"}
        if display_name:
            attendee["displayName"] = display_name
        attendees.append(attendee)
        await self._patch_event(event_id, {"attendees": attendees})
        logger.info("Added attendee %s to event %s", email, event_id)
        return True

    async def add_attachment(
        self, event_id: str, file_url: str, title: str, mime_type: str
    ) -> bool:
        """Attach a file link to an event.

        Returns:
            False if the event does not exist
        """
        data = await self._get_event_data(event_id)
        if data is None:
            logger.warning("Cannot add attachment: event %s not found", event_id)
            return False

        attachments = list(data.get("attachments") or [])
        if any(a.get("fileUrl") == file_url for a in attachments):
            return True

        attachments.append({"fileUrl": file_url, "title": title, "mimeType": mime_type})
        await self._patch_event(event_id, {"attachments": attachments}, supportsAttachments="true")
        logger.info("Added attachment %s to event %s", title, event_id)
        return True
