"""Two-way sync between lesson plans and Google Calendar.

Outbound, lesson plans are pushed as calendar events and the remote event
id is written back onto the plan. Inbound, a background task polls the
calendar's change feed with an incremental sync token and passes changed
and deleted events to registered handlers.
"""

import asyncio
import contextlib
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import httpx
from pydantic import ValidationError

from adept.calendar.client import GoogleCalendarClient, SyncTokenExpiredError
from adept.calendar.models import (
    CANCELLED_STATUS,
    CalendarAttendee,
    CalendarEvent,
    CalendarReminder,
    CalendarReminders,
    EventPayload,
    PollResult,
)
from adept.calendar.oauth import NotAuthenticatedError
from adept.core.config import get_settings
from adept.data.models import ClassInfo, LessonPlan
from adept.data.repositories import ClassRepository, LessonPlanRepository
from adept.data.settings_store import SettingsStore

logger = logging.getLogger(__name__)

CalendarSyncHandler = Callable[[list[CalendarEvent], list[str]], Awaitable[None]]

# Settings store keys for event options
COLOR_ID_KEY = "google_calendar_color_id"
USE_DEFAULT_REMINDERS_KEY = "google_calendar_use_default_reminders"
REMINDER_MINUTES_KEY = "google_calendar_reminder_minutes"
REMINDER_METHOD_KEY = "google_calendar_reminder_method"
VISIBILITY_KEY = "google_calendar_visibility"
ATTENDEES_KEY = "google_calendar_attendees"

DEFAULT_REMINDER_MINUTES = 30
DEFAULT_REMINDER_METHOD = "popup"

# Largest maxResults the events list endpoint accepts
MAX_PAGE_SIZE = 2500

# Errors that make a single sync operation fail without stopping the service
SYNC_ERRORS = (httpx.HTTPError, NotAuthenticatedError, ValueError)


@dataclass
class EventOptions:
    """User preferences applied to every lesson event."""

    color_id: str | None = None
    use_default_reminders: bool = True
    reminder_minutes: int = DEFAULT_REMINDER_MINUTES
    reminder_method: str = DEFAULT_REMINDER_METHOD
    visibility: str | None = None
    attendees: list[CalendarAttendee] = field(default_factory=list)

    @property
    def reminders(self) -> CalendarReminders | None:
        """Reminder override, or None to keep the calendar's defaults."""
        if self.use_default_reminders:
            return None
        return CalendarReminders(
            use_default=False,
            overrides=[
                CalendarReminder(method=self.reminder_method, minutes=self.reminder_minutes)
            ],
        )


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in ("true", "1", "yes"):
        return True
    if normalized in ("false", "0", "no"):
        return False
    return default


def _parse_int(value: str | None, default: int) -> int:
    try:
        return int(value) if value else default
    except ValueError:
        return default


def _parse_attendees(value: str | None) -> list[CalendarAttendee]:
    if not value:
        return []
    try:
        raw = json.loads(value)
        if not isinstance(raw, list):
            raise ValueError("expected a JSON list")
        return [CalendarAttendee.model_validate(a) for a in raw]
    except (ValueError, ValidationError) as e:
        logger.warning("Ignoring malformed %s setting: %s", ATTENDEES_KEY, e)
        return []


async def load_event_options(settings_store: SettingsStore) -> EventOptions:
    """Read event preferences from the settings store.

    Missing or unparseable values fall back to defaults.
    """
    return EventOptions(
        color_id=await settings_store.get(COLOR_ID_KEY) or None,
        use_default_reminders=_parse_bool(
            await settings_store.get(USE_DEFAULT_REMINDERS_KEY), default=True
        ),
        reminder_minutes=_parse_int(
            await settings_store.get(REMINDER_MINUTES_KEY), DEFAULT_REMINDER_MINUTES
        ),
        reminder_method=await settings_store.get(REMINDER_METHOD_KEY) or DEFAULT_REMINDER_METHOD,
        visibility=await settings_store.get(VISIBILITY_KEY) or None,
        attendees=_parse_attendees(await settings_store.get(ATTENDEES_KEY)),
    )


def format_lesson_description(plan: LessonPlan) -> str:
    """Build the event description from a lesson plan.

    Sections with no content are left out.
    """
    sections = []
    if plan.learning_objectives:
        sections.append(f"Learning Objectives:\n{plan.learning_objectives}")
    if plan.description:
        sections.append(f"Description:\n{plan.description}")
    components = plan.components
    if not components.is_empty():
        sections.append(f"Lesson Components:\n{components.format_text()}")
    return "\n\n".join(sections)


def build_event_payload(
    plan: LessonPlan, class_info: ClassInfo, options: EventOptions, time_zone: str
) -> EventPayload:
    """Map a lesson plan and its class onto a calendar event.

    The event starts at the class's usual start time on the lesson date and
    lasts the class's duration.
    """
    start = datetime.combine(plan.date, class_info.start_time)
    end = start + timedelta(minutes=class_info.duration_minutes)
    return EventPayload(
        summary=f"{class_info.subject} - {plan.title}",
        description=format_lesson_description(plan),
        location=class_info.location,
        start=start,
        end=end,
        time_zone=time_zone,
        color_id=options.color_id,
        reminders=options.reminders,
        attendees=options.attendees or None,
        visibility=options.visibility,
    )


class CalendarSyncService:
    """Keeps lesson plans and Google Calendar in step.

    Usage:
        service = CalendarSyncService(client, lesson_plans, classes, settings_store)
        service.register_handler(on_calendar_changes)
        await service.start()
        ...
        await service.stop()
    """

    def __init__(
        self,
        client: GoogleCalendarClient,
        lesson_plans: LessonPlanRepository,
        classes: ClassRepository,
        settings_store: SettingsStore,
        time_zone: str | None = None,
        sync_interval: float | None = None,
    ) -> None:
        settings = get_settings()
        self.client = client
        self.lesson_plans = lesson_plans
        self.classes = classes
        self.settings_store = settings_store
        self.time_zone = time_zone or settings.calendar_time_zone
        self.sync_interval = sync_interval or settings.sync_interval_seconds

        self._handlers: list[CalendarSyncHandler] = []
        self._sync_token: str | None = None
        self._lock = asyncio.Lock()
        self._start_lock = asyncio.Lock()
        self._task: asyncio.Task | None = None
        self._in_flight: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        """True while the periodic sync task is active."""
        return self._task is not None and not self._task.done()

    @property
    def sync_token(self) -> str | None:
        """Current incremental sync token (held in memory only)."""
        return self._sync_token

    async def start(self) -> bool:
        """Start periodic inbound sync.

        Overlapping calls share one periodic task.

        Returns:
            True if the service is running, False if not authenticated
        """
        async with self._start_lock:
            if self.is_running:
                return True

            if not await self.client.initialize():
                logger.warning("Calendar sync not started: not authenticated with Google Calendar")
                return False

            await self.sync_now()
            self._task = asyncio.create_task(self._sync_loop())
            logger.info("Calendar sync started (interval=%ds)", self.sync_interval)
            return True

    async def stop(self, wait: bool = True) -> None:
        """Stop periodic sync.

        A pass already running is never cancelled. With ``wait`` this
        returns once it has finished, otherwise it completes in the
        background. A handler calling ``stop()`` does not wait for the pass
        it is running in.
        """
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        pending = self._in_flight - {asyncio.current_task()}
        if wait and pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Calendar sync stopped")

    async def _sync_loop(self) -> None:
        """Run a pass now and then every ``sync_interval`` seconds until cancelled."""
        while True:
            try:
                result = await self.sync_now()
                logger.debug("Calendar sync pass: %s", result)
            except Exception:
                logger.exception("Calendar sync pass failed")
            await asyncio.sleep(self.sync_interval)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    @property
    def handlers(self) -> tuple[CalendarSyncHandler, ...]:
        """Registered handlers in invocation order."""
        return tuple(self._handlers)

    def register_handler(self, handler: CalendarSyncHandler) -> None:
        """Add a handler called with ``(changed_events, deleted_event_ids)``."""
        self._handlers.append(handler)
        logger.info("Registered calendar sync handler %s", getattr(handler, "__name__", handler))

    def unregister_handler(self, handler: CalendarSyncHandler) -> None:
        """Remove a handler; unknown handlers are ignored."""
        with contextlib.suppress(ValueError):
            self._handlers.remove(handler)
            logger.info(
                "Unregistered calendar sync handler %s", getattr(handler, "__name__", handler)
            )

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def sync_now(self) -> PollResult:
        """Run one inbound pass.

        The pass runs as its own task so cancelling the caller (for example
        ``stop()`` cancelling the loop) does not interrupt it.
        """
        task = asyncio.create_task(self._sync_pass())
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return await asyncio.shield(task)

    async def _sync_pass(self) -> PollResult:
        if self._lock.locked():
            logger.info("Calendar sync already in progress, skipping")
            return PollResult(skipped=True)

        async with self._lock:
            if not await self.client.is_authenticated():
                logger.warning("Not authenticated with Google Calendar, skipping sync")
                return PollResult(skipped=True)

            if self._sync_token is None:
                return await self._acquire_sync_token()
            return await self._poll_changes()

    async def _acquire_sync_token(self) -> PollResult:
        """Fetch a fresh sync token without reporting any events.

        Google only returns ``nextSyncToken`` on the last page, so pages
        are followed until it appears. Only the first request is kept
        small; the rest use the largest page size to reach the end quickly.
        """
        page_token = None
        page_size = 1
        try:
            while True:
                page = await self.client.list_events(
                    max_results=page_size, show_deleted=True, page_token=page_token
                )
                page_size = MAX_PAGE_SIZE
                if page.next_sync_token:
                    self._sync_token = page.next_sync_token
                    break
                if not page.next_page_token:
                    logger.warning("Calendar list response did not include a sync token")
                    return PollResult(error="No sync token returned")
                page_token = page.next_page_token
        except SYNC_ERRORS as e:
            logger.error("Failed to acquire calendar sync token: %s", e)
            return PollResult(error=str(e))

        logger.info("Acquired calendar sync token")
        return PollResult(token_acquired=True)

    async def _poll_changes(self) -> PollResult:
        """Fetch every change since the current token and notify handlers."""
        items: list[dict] = []
        page_token = None
        try:
            while True:
                page = await self.client.list_events(
                    sync_token=self._sync_token, page_token=page_token, show_deleted=True
                )
                items.extend(page.items)
                if not page.next_page_token:
                    break
                page_token = page.next_page_token
        except SyncTokenExpiredError:
            logger.warning("Calendar sync token expired, a new one will be acquired")
            self._sync_token = None
            return PollResult(token_expired=True)
        except SYNC_ERRORS as e:
            logger.error("Error syncing changes from Google Calendar: %s", e)
            return PollResult(error=str(e))

        if page.next_sync_token:
            self._sync_token = page.next_sync_token

        result = PollResult()
        for item in items:
            if item.get("status") == CANCELLED_STATUS:
                event_id = item.get("id")
                if event_id:
                    result.deleted_event_ids.append(event_id)
                    logger.debug("Event deleted: %s", event_id)
            else:
                event = CalendarEvent.from_api(item)
                result.changed_events.append(event)
                logger.debug("Event changed: %s", event.id)

        result.handler_errors = await self._notify_handlers(
            result.changed_events, result.deleted_event_ids
        )
        logger.info(
            "Processed %d changed and %d deleted calendar events",
            len(result.changed_events),
            len(result.deleted_event_ids),
        )
        return result

    async def _notify_handlers(self, changed: list[CalendarEvent], deleted: list[str]) -> int:
        """Call each handler in turn; returns how many raised."""
        errors = 0
        for handler in list(self._handlers):
            try:
                await handler(list(changed), list(deleted))
            except Exception:
                errors += 1
                logger.exception("Error in calendar sync handler")
        return errors

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def _check_authenticated(self) -> bool:
        if not await self.client.is_authenticated():
            logger.warning("Not authenticated with Google Calendar")
            return False
        return True

    async def _push_lesson_plan(
        self, plan: LessonPlan, class_info: ClassInfo, options: EventOptions
    ) -> bool:
        """Create or update the event for one plan, linking it on create."""
        payload = build_event_payload(plan, class_info, options, self.time_zone)
        try:
            if plan.calendar_event_id:
                await self.client.update_event(plan.calendar_event_id, payload)
                return True

            event_id = await self.client.create_event(payload)
        except SYNC_ERRORS as e:
            logger.error("Error syncing lesson plan %s to calendar: %s", plan.id, e)
            return False

        plan.calendar_event_id = event_id
        try:
            await self.lesson_plans.update(plan)
        except Exception:
            # An unlinked event would be duplicated by the next sync
            logger.exception("Could not link event %s to lesson plan %s", event_id, plan.id)
            plan.calendar_event_id = None
            await self._remove_unlinked_event(event_id)
            raise
        return True

    async def _remove_unlinked_event(self, event_id: str) -> None:
        try:
            await self.client.delete_event(event_id)
            logger.info("Removed unlinked calendar event %s", event_id)
        except SYNC_ERRORS as e:
            logger.error("Failed to remove unlinked calendar event %s: %s", event_id, e)

    async def sync_lesson_plan(self, lesson_plan_id: str) -> bool:
        """Push one lesson plan to the calendar.

        Creates the event if the plan is not linked yet, otherwise updates it.

        Returns:
            True if the event was created or updated
        """
        if not await self._check_authenticated():
            return False

        plan = await self.lesson_plans.get_by_id(lesson_plan_id)
        if plan is None:
            logger.warning("Lesson plan %s not found", lesson_plan_id)
            return False

        class_info = await self.classes.get_by_id(plan.class_id)
        if class_info is None:
            logger.warning("Class %s not found for lesson plan %s", plan.class_id, plan.id)
            return False

        options = await load_event_options(self.settings_store)
        return await self._push_lesson_plan(plan, class_info, options)

    async def sync_all_lesson_plans(self) -> int:
        """Push every lesson plan to the calendar.

        Returns:
            Number of plans synced successfully
        """
        if not await self._check_authenticated():
            return 0

        plans = await self.lesson_plans.get_all()
        classes = {c.id: c for c in await self.classes.get_all()}

        synced = 0
        for plan in plans:
            class_info = classes.get(plan.class_id)
            if class_info is None:
                logger.warning("Class %s not found for lesson plan %s", plan.class_id, plan.id)
                continue

            try:
                options = await load_event_options(self.settings_store)
                if await self._push_lesson_plan(plan, class_info, options):
                    synced += 1
            except Exception:
                logger.exception("Unexpected error syncing lesson plan %s", plan.id)

        logger.info("Synced %d of %d lesson plans to calendar", synced, len(plans))
        return synced

    async def delete_calendar_event(self, lesson_plan_id: str) -> bool:
        """Delete a lesson plan's event and unlink it.

        A plan with no linked event succeeds without contacting the calendar.
        """
        if not await self._check_authenticated():
            return False

        plan = await self.lesson_plans.get_by_id(lesson_plan_id)
        if plan is None:
            logger.warning("Lesson plan %s not found", lesson_plan_id)
            return False

        if not plan.calendar_event_id:
            return True

        try:
            await self.client.delete_event(plan.calendar_event_id)
        except SYNC_ERRORS as e:
            logger.error("Error deleting calendar event for lesson plan %s: %s", plan.id, e)
            return False

        plan.calendar_event_id = None
        await self.lesson_plans.update(plan)
        return True
