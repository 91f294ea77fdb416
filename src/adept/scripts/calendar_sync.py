#!/usr/bin/env python3
"""Sync lesson plans with Google Calendar.

Usage:
    uv run adept-calendar-sync --lesson LESSON_ID   # Push one lesson plan
    uv run adept-calendar-sync --all                # Push every lesson plan
    uv run adept-calendar-sync --delete LESSON_ID   # Remove a lesson's event
    uv run adept-calendar-sync --poll               # Check the change feed works
    uv run adept-calendar-sync --watch              # Log calendar changes until interrupted

The sync token lives only in memory, so ``--poll`` sees just the changes made
between its two requests. Use ``--watch`` to follow changes over time.
"""

import argparse
import asyncio
import logging
import sys

from adept.calendar import (
    CalendarEvent,
    CalendarSyncService,
    GoogleCalendarClient,
    GoogleOAuthService,
)
from adept.core.config import get_settings
from adept.data import ClassRepository, Database, LessonPlanRepository, SettingsStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def log_changes(changed_events: list[CalendarEvent], deleted_event_ids: list[str]) -> None:
    """Handler that logs each change reported by the calendar."""
    for event in changed_events:
        when = event.start.date_time or event.start.date or "?"
        logger.info(f"  Changed: {event.summary or '(no title)'} at {when} [{event.id}]")
    for event_id in deleted_event_ids:
        logger.info(f"  Deleted: {event_id}")


async def run(args: argparse.Namespace) -> int:
    """Open the local store and run the selected operation."""
    settings = get_settings()

    async with Database(settings.database_path) as db:
        settings_store = SettingsStore(db)
        oauth = GoogleOAuthService(settings_store)

        async with GoogleCalendarClient(oauth) as client:
            service = CalendarSyncService(
                client,
                LessonPlanRepository(db),
                ClassRepository(db),
                settings_store,
                time_zone=settings.calendar_time_zone,
                sync_interval=settings.sync_interval_seconds,
            )

            if not await client.initialize():
                logger.error("Not signed in to Google Calendar")
                return 1

            if args.lesson:
                ok = await service.sync_lesson_plan(args.lesson)
                logger.info(f"Sync {'succeeded' if ok else 'failed'} for lesson {args.lesson}")
                return 0 if ok else 1

            if args.all:
                synced = await service.sync_all_lesson_plans()
                logger.info(f"Synced {synced} lesson plans")
                return 0

            if args.delete:
                ok = await service.delete_calendar_event(args.delete)
                logger.info(f"Delete {'succeeded' if ok else 'failed'} for lesson {args.delete}")
                return 0 if ok else 1

            service.register_handler(log_changes)

            if args.poll:
                # First pass only acquires the sync token
                result = await service.sync_now()
                if result.token_acquired:
                    result = await service.sync_now()
                logger.info(f"Poll complete: {result}")
                return 0 if result.succeeded else 1

            if not await service.start():
                return 1
            try:
                await asyncio.Event().wait()
            finally:
                await service.stop()

    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Sync lesson plans with Google Calendar")
    parser.add_argument(
        "--lesson",
        metavar="LESSON_ID",
        help="Create or update the calendar event for one lesson plan",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Create or update calendar events for every lesson plan",
    )
    parser.add_argument(
        "--delete",
        metavar="LESSON_ID",
        help="Delete the calendar event linked to a lesson plan",
    )
    parser.add_argument(
        "--poll",
        action="store_true",
        help=(
            "Acquire a sync token and poll once to check the change feed; only changes"
            " made in the meantime are reported (use --watch to follow changes)"
        ),
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Poll for calendar changes until interrupted",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Require exactly one operation
    options_set = sum(bool(x) for x in [args.lesson, args.all, args.delete, args.poll, args.watch])
    if options_set == 0:
        parser.error("One of --lesson, --all, --delete, --poll, or --watch is required")
    if options_set > 1:
        parser.error("Cannot combine --lesson, --all, --delete, --poll, and --watch")

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
