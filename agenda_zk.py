#!/usr/bin/env python3
"""
AgendaZK - a shared agenda for two co-users.

This is the command line entry point. It works against the local document
store configured in agendazk.toml.
"""

import sys
import signal
import argparse
from datetime import timedelta
from pathlib import Path

from PySide6.QtCore import QCoreApplication, QTimer

from agendazk.config import Config
from agendazk.date_utils import week_bounds
from agendazk.device_storage import JsonKeyValueStorage, MemoryKeyValueStorage
from agendazk.document_store import create_document_store
from agendazk.event_service import EventService, EventServiceError
from agendazk.ics_export import export_ics
from agendazk.models import Event, NotificationSpec, EventType, Visibility
from agendazk.notifications import (
    MemoryNotificationBackend, NotificationService, notification_content,
)
from agendazk.qt_notifier import QtNotificationBackend
from agendazk.timezone_utils import set_timezone, to_local_datetime, utc_now
from agendazk.user_service import UserService, UserServiceError
from agendazk.validation import EventValidationError


def parse_reminder(value: str) -> NotificationSpec:
    """Parse 'at_event' or '<N><unit>' such as '10minutes' / '2 days'."""
    text = value.strip().lower()
    if text in ("at_event", "now", "0"):
        return NotificationSpec.at_event()
    digits = ''.join(ch for ch in text if ch.isdigit())
    unit = text[len(digits):].strip()
    if not digits or not unit:
        raise argparse.ArgumentTypeError(f"Invalid reminder: {value!r}")
    return NotificationSpec.before(int(digits), unit)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="AgendaZK - a shared agenda with public and private events"
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        help="Path to configuration file (default: auto-detect)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("whoami", help="Show the identity of this device")

    register = sub.add_parser("register", help="Create the user for this device")
    register.add_argument("username")

    list_cmd = sub.add_parser("list", help="List events")
    list_cmd.add_argument("--date", help="Only events on this day (YYYY-MM-DD)")
    list_cmd.add_argument("--week", help="Events of the week containing this day")
    list_cmd.add_argument("--from", dest="start", help="Range start (YYYY-MM-DD)")
    list_cmd.add_argument("--to", dest="end", help="Range end (YYYY-MM-DD)")
    list_cmd.add_argument("--mine", action="store_true", help="Only my events")

    add = sub.add_parser("add", help="Create an event")
    add.add_argument("title")
    add.add_argument("start_date", help="YYYY-MM-DD")
    add.add_argument("--end-date", help="Last day, makes a multi-day event")
    add.add_argument("--start-time", help="HH:MM (omit for an all-day event)")
    add.add_argument("--end-time", help="HH:MM")
    add.add_argument("--private", action="store_true", help="Hide from the other user")
    add.add_argument("--remind", action="append", type=parse_reminder, default=[],
                     help="'at_event' or e.g. '10minutes', '1days' (repeatable)")

    delete = sub.add_parser("delete", help="Delete one of my events")
    delete.add_argument("event_id")

    search = sub.add_parser("search", help="Search events by title")
    search.add_argument("query")

    sub.add_parser("reminders", help="List upcoming reminders")
    sub.add_parser("due", help="Show reminders due right now")

    watch_cmd = sub.add_parser("watch", help="Stay running and show reminders when they fall due")
    watch_cmd.add_argument("--for", dest="seconds", type=float,
                           help="Stop after this many seconds (default: until interrupted)")

    export = sub.add_parser("export", help="Export events to an .ics file")
    export.add_argument("path", type=Path)

    return parser.parse_args(argv)


def format_event(event: Event) -> str:
    if event.is_all_day:
        when = "all day"
    else:
        when = event.start_time + (f"-{event.end_time}" if event.end_time else "")
    days = event.start_date
    if event.is_date_range:
        days += f" -> {event.end_date}"
    lock = "" if event.is_public else " [private]"
    return f"{event.id}  {days}  {when:<11}  {event.title}{lock}"


def build_services(config: Config):
    """Wire the store, identity, events and reminders for one session."""
    set_timezone(config.timezone)
    if config.storage.backend == "memory":
        storage = MemoryKeyValueStorage()
    else:
        storage = JsonKeyValueStorage(config.device_file)
    store = create_document_store(config.storage.backend, config.documents_dir)
    users = UserService(storage, store, installation_id=config.installation_id)
    events = EventService(store, users, timezone_name=config.timezone)
    return users, events


def watch(events: EventService, config: Config, seconds=None, backend=None) -> int:
    """
    Run a Qt event loop that keeps reminders scheduled while the agenda changes.

    Every event list update cancels and reschedules all reminders; each one
    is printed when its timer fires.
    """
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    backend = backend or QtNotificationBackend()
    notifier = NotificationService(backend, events, timezone_name=config.timezone)

    def on_fired(notification_id: str, content) -> None:
        print(f"{content.title}: {content.body}", flush=True)

    backend.notification_fired.connect(on_fired)
    if not notifier.initialize():
        print("Error: notifications are not permitted")
        return 1

    print(f"Watching {len(notifier.scheduled_keys)} reminders", flush=True)
    if seconds is not None:
        QTimer.singleShot(int(seconds * 1000), app.quit)
    else:
        # Let Ctrl+C stop the Qt loop
        signal.signal(signal.SIGINT, signal.SIG_DFL)

    try:
        app.exec()
    finally:
        notifier.cleanup()
    return 0


def run(args, config: Config) -> int:
    users, events = build_services(config)
    user, first_time = users.initialize()

    if args.command == "register":
        try:
            user = users.create_user(args.username)
        except UserServiceError as e:
            print(f"Error: {e}")
            return 1
        print(f"Registered {user.username} ({user.id})")
        return 0

    if args.command == "whoami":
        print(f"Device id: {users.device_id}")
        print(f"User: {user.username if user else '(not registered)'}")
        return 0

    if first_time or user is None:
        print("This device has no user yet. Run: agendazk register <username>")
        return 1

    events.initialize()

    if args.command == "list":
        try:
            if args.date:
                found = events.get_events_by_date(args.date)
            elif args.week:
                found = events.get_events_by_date_range(*week_bounds(args.week))
            elif args.start or args.end:
                start = args.start or args.end
                found = events.get_events_by_date_range(start, args.end or start)
            elif args.mine:
                found = events.get_current_user_events()
            else:
                found = events.get_events()
        except ValueError as e:
            print(f"Error: invalid date ({e})")
            return 1
        if args.mine:
            found = [e for e in found if e.owner_uid == user.id]
        for event in found:
            print(format_event(event))
        if not found:
            print("No events")
        return 0

    if args.command == "add":
        event = Event(
            title=args.title,
            start_date=args.start_date,
            type=EventType.DATE_RANGE.value if args.end_date else EventType.SINGLE_DAY.value,
            end_date=args.end_date,
            start_time=args.start_time,
            end_time=args.end_time,
            is_all_day=args.start_time is None,
            visibility=Visibility.PRIVATE.value if args.private else Visibility.PUBLIC.value,
            notifications=args.remind,
        )
        try:
            created = events.create_event(event)
        except (EventValidationError, EventServiceError) as e:
            print(f"Error: {e}")
            return 1
        print(f"Created {created.id}")
        return 0

    if args.command == "delete":
        try:
            events.delete_event(args.event_id)
        except EventServiceError as e:
            print(f"Error: {e}")
            return 1
        print(f"Deleted {args.event_id}")
        return 0

    if args.command == "search":
        for event in events.search_events(args.query):
            print(format_event(event))
        return 0

    if args.command in ("reminders", "due", "watch") and not config.notifications.enabled:
        print("Notifications are disabled in the configuration")
        return 0

    if args.command == "reminders":
        notifier = NotificationService(MemoryNotificationBackend(), timezone_name=config.timezone)
        for trigger, event, notification in notifier.upcoming(events.get_events()):
            local = to_local_datetime(trigger, config.timezone)
            print(f"{local:%Y-%m-%d %H:%M}  {event.title}  ({notification.key})")
        return 0

    if args.command == "due":
        tolerance = timedelta(seconds=config.notifications.match_tolerance_seconds)
        for event, notification, trigger in events.get_events_with_notifications(utc_now(), tolerance):
            content = notification_content(event, notification)
            print(f"{content.title}: {content.body}")
        return 0

    if args.command == "watch":
        return watch(events, config, args.seconds)

    if args.command == "export":
        count = export_ics(events.get_events(), args.path, config.timezone)
        print(f"Exported {count} events to {args.path}")
        return 0

    return 1


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    # Load configuration
    config_path = args.config
    try:
        if config_path is None and not Config.get_default_config_path().exists():
            config = Config.default()
        else:
            config = Config.load(config_path)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        print("\nExample configuration:")
        print("""
[General]
timezone = "Europe/Paris"
data_dir = "~/.local/share/agendazk"

[Notifications]
enabled = true

[Storage]
backend = "json"
""")
        sys.exit(1)
    except Exception as e:
        print(f"Error loading configuration: {e}")
        sys.exit(1)

    if args.debug:
        print(f"Loaded configuration from: {args.config or Config.get_default_config_path()}")
        print(f"  Data directory: {config.data_dir}")
        print(f"  Timezone: {config.timezone}")

    sys.exit(run(args, config))


if __name__ == "__main__":
    main()
