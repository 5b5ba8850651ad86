#!/usr/bin/env python3
"""Command-line interface for DayMark.

This module provides CLI commands for events, daily notes and sync.
Uses only core/ modules.

Commands:
    list-events [--date D]          List events (all, or of one day)
    add-event --title T --date D    Create or replace an event
    delete-event <id>               Delete an event
    show-note <date>                Show the note of a day
    write-note <date> [content]     Write the note of a day (stdin if omitted)
    note-dates                      List days that have a note
    sync <command>                  status, login, logout, now, pull, push,
                                    export-token, import-token, watch
    backup export|import            Self-contained data transfer
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from daymark.core.config import Config
from daymark.core.database import StorageError
from daymark.core.identity import InvalidToken
from daymark.core.journal import Journal, new_event_id, open_journal
from daymark.core.models import Event
from daymark.core.notifier import ChangeEvent
from daymark.core.sync import SyncResult
from daymark.core.sync_client import SyncTransportError
from daymark.core.timestamp_utils import format_timestamp
from daymark.core.validation import ValidationError

logger = logging.getLogger(__name__)


def format_event(event: Event, format_type: str = "text") -> str:
    """Format a single event for display.

    Args:
        event: Event to format
        format_type: Output format (text, json)

    Returns:
        Formatted event string
    """
    if format_type == "json":
        return json.dumps(event.to_dict(), indent=2, ensure_ascii=False)

    when = event.date
    if event.start_time:
        when += f" {event.start_time}"
        if event.end_time:
            when += f"-{event.end_time}"
    line = f"{event.id} | {when} | {event.title}"
    if event.is_important:
        line += " [!]"
    if event.description:
        line += f"\n    {event.description}"
    return line


def format_sync_result(result: SyncResult) -> str:
    if result.skipped:
        return f"{result.action.capitalize()} skipped: {result.skipped_reason}"
    if not result.success:
        return f"{result.action.capitalize()} failed: " + "; ".join(result.errors)
    return (
        f"{result.action.capitalize()} complete: {result.events} events, "
        f"{result.notes} notes (updatedAt {result.updated_at})"
    )


def _result_to_dict(result: SyncResult) -> Dict[str, Any]:
    return {
        "action": result.action,
        "success": result.success,
        "skipped_reason": result.skipped_reason,
        "events": result.events,
        "notes": result.notes,
        "updated_at": result.updated_at,
        "errors": result.errors,
    }


def _read_content(value: Optional[str]) -> Optional[str]:
    """Get content from an argument, or from stdin if piped."""
    if value is not None:
        return value
    if not sys.stdin.isatty():
        return sys.stdin.read()
    return None


# ============================================================================
# Events and notes
# ============================================================================


async def cmd_list_events(journal: Journal, args: argparse.Namespace) -> int:
    """List events, optionally for one day.

    Args:
        journal: Journal instance
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    if args.date:
        events = await journal.get_events_by_date(args.date)
    else:
        events = await journal.get_all_events()

    if args.format == "json":
        print(json.dumps([e.to_dict() for e in events], indent=2, ensure_ascii=False))
        return 0

    if not events:
        print("No events found.")
        return 0
    for event in events:
        print(format_event(event))
    return 0


async def cmd_add_event(journal: Journal, args: argparse.Namespace) -> int:
    """Create an event, or replace the event with the given --id.

    Returns:
        Exit code (0 for success)
    """
    event = Event(
        id=args.event_id or new_event_id(),
        title=args.title,
        date=args.date,
        start_time=args.start or None,
        end_time=args.end or None,
        description=args.description,
        is_important=args.important,
        color=args.color,
        icon=args.icon,
    )
    stored = await journal.save_event(event)
    await journal.engine.flush()

    if args.format == "json":
        print(format_event(stored, "json"))
    else:
        print(f"Saved event {stored.id}")
    return 0


async def cmd_delete_event(journal: Journal, args: argparse.Namespace) -> int:
    """Delete an event by id. Unknown ids are reported but not an error."""
    deleted = await journal.delete_event(args.event_id)
    await journal.engine.flush()

    if args.format == "json":
        print(json.dumps({"id": args.event_id, "deleted": deleted}))
    elif deleted:
        print(f"Deleted event {args.event_id}")
    else:
        print(f"No event with ID {args.event_id}")
    return 0


async def cmd_show_note(journal: Journal, args: argparse.Namespace) -> int:
    content = await journal.get_daily_note(args.date)
    if args.format == "json":
        print(json.dumps({"date": args.date, "content": content}, ensure_ascii=False))
    elif content:
        print(content)
    else:
        print(f"No note for {args.date}.")
    return 0


async def cmd_write_note(journal: Journal, args: argparse.Namespace) -> int:
    """Write the note of a day. Empty content clears it.

    Returns:
        Exit code (0 for success, 1 if no content was given)
    """
    content = _read_content(args.content)
    if content is None:
        print("Error: No content provided. Pass it as an argument or pipe it to stdin.", file=sys.stderr)
        return 1

    note = await journal.save_daily_note(args.date, content)
    await journal.engine.flush()

    if args.format == "json":
        print(json.dumps(note.to_dict(), ensure_ascii=False))
    else:
        print(f"Saved note for {note.date}")
    return 0


async def cmd_note_dates(journal: Journal, args: argparse.Namespace) -> int:
    dates = await journal.get_all_note_dates()
    if args.format == "json":
        print(json.dumps(dates))
    elif not dates:
        print("No notes found.")
    else:
        print("\n".join(dates))
    return 0


# ============================================================================
# Sync
# ============================================================================


async def cmd_sync_status(journal: Journal, args: argparse.Namespace) -> int:
    """Show sync status.

    Args:
        journal: Journal instance
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    status = journal.engine.get_status()
    status["server_url"] = journal.engine.client.server_url
    if args.check_server:
        status["server"] = await journal.engine.client.check_status()

    if args.format == "json":
        print(json.dumps(status, indent=2))
        return 0

    print(f"Logged In: {status['authenticated']}")
    print(f"Sync Token: {status['remote_id'] or '-'}")
    print(f"Server: {status['server_url']}")
    last_sync = format_timestamp(status["last_sync_timestamp"]) or "never"
    print(f"Last Sync: {last_sync}")
    print(f"Unsynced Changes: {'yes' if status['dirty'] else 'no'}")
    if status["force_pull"]:
        print("Next pull overwrites local data")
    if "server" in status:
        reachable = status["server"].get("reachable")
        print(f"Server Reachable: {'yes' if reachable else 'no'}")
    return 0


async def cmd_sync_login(journal: Journal, args: argparse.Namespace) -> int:
    result = await journal.engine.login(args.identity)
    if args.format == "json":
        output = _result_to_dict(result)
        output["remote_id"] = journal.engine.remote_id
        print(json.dumps(output, indent=2))
    else:
        print(f"Logged in. Sync token: {journal.engine.remote_id}")
        if result.action == "create":
            print("Created new synced dataset.")
        else:
            print(format_sync_result(result))
    return 0


async def cmd_sync_logout(journal: Journal, args: argparse.Namespace) -> int:
    journal.engine.logout()
    if args.format == "json":
        print(json.dumps({"logged_out": True}))
    else:
        print("Logged out. Local data was kept.")
    return 0


async def cmd_sync_push(journal: Journal, args: argparse.Namespace) -> int:
    return _print_results([await journal.engine.push()], args)


async def cmd_sync_pull(journal: Journal, args: argparse.Namespace) -> int:
    return _print_results([await journal.engine.pull()], args)


async def cmd_sync_now(journal: Journal, args: argparse.Namespace) -> int:
    """Push pending local changes, then pull.

    Returns:
        Exit code (0 for success, 1 for any failures)
    """
    results: List[SyncResult] = []
    if journal.engine.session.dirty and not journal.engine.session.force_pull:
        results.append(await journal.engine.push())
    results.append(await journal.engine.pull())
    return _print_results(results, args)


def _print_results(results: List[SyncResult], args: argparse.Namespace) -> int:
    if args.format == "json":
        print(json.dumps([_result_to_dict(r) for r in results], indent=2))
    else:
        for result in results:
            print(format_sync_result(result))
    failed = any(not r.success and not r.skipped for r in results)
    return 1 if failed else 0


async def cmd_sync_export_token(journal: Journal, args: argparse.Namespace) -> int:
    token = journal.engine.export_token()
    if args.format == "json":
        print(json.dumps({"token": token}))
    else:
        print(token)
    return 0


async def cmd_sync_import_token(journal: Journal, args: argparse.Namespace) -> int:
    """Adopt a sync token and pull its data over local data."""
    remote_id = await journal.engine.import_token(args.token)
    result = await journal.engine.pull()
    if args.format == "json":
        output = _result_to_dict(result)
        output["remote_id"] = remote_id
        print(json.dumps(output, indent=2))
    else:
        print(f"Imported sync token {remote_id}")
        print(format_sync_result(result))
    return 0 if result.success or result.skipped else 1


async def cmd_sync_watch(journal: Journal, args: argparse.Namespace) -> int:
    """Poll the remote and report changes until interrupted or --duration ends."""
    engine = journal.engine
    if args.interval:
        engine.poll_interval = args.interval

    def on_refresh(reason: Optional[str] = None, **_: Any) -> None:
        print(f"Local data refreshed ({reason})", flush=True)

    def on_error(error: Optional[str] = None, **_: Any) -> None:
        print(f"Sync error: {error}", file=sys.stderr, flush=True)

    journal.notifier.subscribe(ChangeEvent.REFRESH, on_refresh)
    journal.notifier.subscribe(ChangeEvent.SYNC_ERROR, on_error)

    print(f"Watching {engine.remote_id or '(not logged in)'} every {engine.poll_interval:g}s")
    engine.start()
    try:
        if args.duration:
            await asyncio.sleep(args.duration)
        else:
            await asyncio.Event().wait()
    finally:
        await engine.flush()
        await engine.stop()
    return 0


# ============================================================================
# Backup
# ============================================================================


async def cmd_backup_export(journal: Journal, args: argparse.Namespace) -> int:
    blob = await journal.export_backup()
    if args.output:
        Path(args.output).write_text(blob + "\n", encoding="ascii")
        print(f"Wrote backup to {args.output}")
    else:
        print(blob)
    return 0


async def cmd_backup_import(journal: Journal, args: argparse.Namespace) -> int:
    """Replace local data with a backup blob from a file or stdin."""
    if args.input:
        blob: Optional[str] = Path(args.input).read_text(encoding="ascii")
    else:
        blob = _read_content(None)
    if not blob or not blob.strip():
        print("Error: No backup provided. Pass a file or pipe it to stdin.", file=sys.stderr)
        return 1

    snapshot = await journal.import_backup(blob)
    await journal.engine.flush()
    if args.format == "json":
        print(json.dumps({"events": len(snapshot.events), "notes": len(snapshot.notes)}))
    else:
        print(f"Imported {len(snapshot.events)} events and {len(snapshot.notes)} notes")
    return 0


COMMANDS = {
    "list-events": cmd_list_events,
    "add-event": cmd_add_event,
    "delete-event": cmd_delete_event,
    "show-note": cmd_show_note,
    "write-note": cmd_write_note,
    "note-dates": cmd_note_dates,
}

SYNC_COMMANDS = {
    "status": cmd_sync_status,
    "login": cmd_sync_login,
    "logout": cmd_sync_logout,
    "now": cmd_sync_now,
    "pull": cmd_sync_pull,
    "push": cmd_sync_push,
    "export-token": cmd_sync_export_token,
    "import-token": cmd_sync_import_token,
    "watch": cmd_sync_watch,
}

BACKUP_COMMANDS = {
    "export": cmd_backup_export,
    "import": cmd_backup_import,
}


def _add_commands(cli_parser: argparse.ArgumentParser) -> None:
    """Add the --format option and all CLI subcommands to a parser."""
    cli_parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)"
    )

    cli_subparsers = cli_parser.add_subparsers(dest="cli_command", help="CLI commands")

    # list-events command
    list_parser = cli_subparsers.add_parser("list-events", help="List events")
    list_parser.add_argument("--date", type=str, help="Only events of this day (YYYY-MM-DD)")

    # add-event command
    add_parser = cli_subparsers.add_parser("add-event", help="Create or replace an event")
    add_parser.add_argument("--title", type=str, required=True, help="Event title")
    add_parser.add_argument("--date", type=str, required=True, help="Day (YYYY-MM-DD)")
    add_parser.add_argument("--start", type=str, help="Start time (HH:MM)")
    add_parser.add_argument("--end", type=str, help="End time (HH:MM)")
    add_parser.add_argument("--description", type=str, help="Free text description")
    add_parser.add_argument("--important", action="store_true", help="Mark as important")
    add_parser.add_argument("--color", type=str, help="Hex color, e.g. #ff8800")
    add_parser.add_argument("--icon", type=str, help="Icon tag")
    add_parser.add_argument(
        "--id",
        dest="event_id",
        type=str,
        help="Event ID (default: new UUID7). An existing ID replaces that event"
    )

    # delete-event command
    delete_parser = cli_subparsers.add_parser("delete-event", help="Delete an event")
    delete_parser.add_argument("event_id", type=str, help="ID of the event to delete")

    # show-note command
    show_note_parser = cli_subparsers.add_parser("show-note", help="Show the note of a day")
    show_note_parser.add_argument("date", type=str, help="Day (YYYY-MM-DD)")

    # write-note command
    write_note_parser = cli_subparsers.add_parser(
        "write-note",
        help="Write the note of a day (reads stdin if content is omitted)"
    )
    write_note_parser.add_argument("date", type=str, help="Day (YYYY-MM-DD)")
    write_note_parser.add_argument("content", type=str, nargs="?", default=None, help="Note text")

    # note-dates command
    cli_subparsers.add_parser("note-dates", help="List days that have a note")

    # sync command with subcommands
    sync_parser = cli_subparsers.add_parser("sync", help="Sync operations")
    sync_subparsers = sync_parser.add_subparsers(dest="sync_command", help="Sync commands")

    status_parser = sync_subparsers.add_parser("status", help="Show sync status")
    status_parser.add_argument(
        "--check-server",
        action="store_true",
        help="Also check that the server is reachable"
    )

    login_parser = sync_subparsers.add_parser("login", help="Log in with an identity")
    login_parser.add_argument("identity", type=str, help="Login identity (e.g. an email address)")

    sync_subparsers.add_parser("logout", help="Log out (local data is kept)")
    sync_subparsers.add_parser("now", help="Push pending changes, then pull")
    sync_subparsers.add_parser("pull", help="Pull the remote snapshot")
    sync_subparsers.add_parser("push", help="Push the local dataset")
    sync_subparsers.add_parser("export-token", help="Print the sync token of this profile")

    import_token_parser = sync_subparsers.add_parser(
        "import-token",
        help="Adopt a sync token from another device (overwrites local data)"
    )
    import_token_parser.add_argument("token", type=str, help="Sync token")

    watch_parser = sync_subparsers.add_parser("watch", help="Poll the remote continuously")
    watch_parser.add_argument("--interval", type=float, default=None, help="Seconds between polls")
    watch_parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until interrupted)"
    )

    # backup command with subcommands
    backup_parser = cli_subparsers.add_parser("backup", help="Export or import all data")
    backup_subparsers = backup_parser.add_subparsers(dest="backup_command", help="Backup commands")

    export_parser = backup_subparsers.add_parser("export", help="Print a backup blob")
    export_parser.add_argument("-o", "--output", type=str, help="Write to this file instead")

    import_parser = backup_subparsers.add_parser("import", help="Replace local data with a backup")
    import_parser.add_argument("input", type=str, nargs="?", default=None, help="Backup file (default: stdin)")


def add_cli_subparser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    """Add CLI subparser and its nested subcommands.

    Args:
        subparsers: Parent subparsers object to add CLI parser to
    """
    cli_parser = subparsers.add_parser(
        "cli",
        help="Command-line interface",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    _add_commands(cli_parser)


async def _dispatch(config: Config, args: argparse.Namespace) -> int:
    journal = open_journal(config)
    try:
        if args.cli_command == "sync":
            sync_cmd = getattr(args, "sync_command", None)
            if not sync_cmd:
                print("Error: No sync command specified. Use 'sync --help'.", file=sys.stderr)
                return 1
            return await SYNC_COMMANDS[sync_cmd](journal, args)
        elif args.cli_command == "backup":
            backup_cmd = getattr(args, "backup_command", None)
            if not backup_cmd:
                print("Error: No backup command specified. Use 'backup --help'.", file=sys.stderr)
                return 1
            return await BACKUP_COMMANDS[backup_cmd](journal, args)
        elif args.cli_command in COMMANDS:
            return await COMMANDS[args.cli_command](journal, args)
        else:
            print(f"Error: Unknown command '{args.cli_command}'", file=sys.stderr)
            return 1
    finally:
        await journal.close()


def run(config_dir: Optional[Path], args: argparse.Namespace) -> int:
    """Run CLI with given arguments.

    Args:
        config_dir: Custom configuration directory or None for default
        args: Parsed command-line arguments (should have cli_command attribute)

    Returns:
        Exit code (0 for success, 1 for error)
    """
    if not hasattr(args, "cli_command") or not args.cli_command:
        print("Error: No CLI command specified. Use --help for available commands.", file=sys.stderr)
        return 1

    config = Config(config_dir=config_dir)

    try:
        return asyncio.run(_dispatch(config, args))
    except ValidationError as e:
        print(f"Error: Invalid {e.field} - {e.message}", file=sys.stderr)
        return 1
    except (InvalidToken, StorageError, SyncTransportError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


def create_parser() -> argparse.ArgumentParser:
    """Create the standalone CLI parser (``python -m daymark.cli``)."""
    parser = argparse.ArgumentParser(
        prog="daymark-cli",
        description="DayMark command-line interface",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-d", "--config-dir",
        type=Path,
        default=None,
        help="Custom configuration directory (default: ~/.config/daymark/)"
    )
    _add_commands(parser)
    return parser


def main() -> None:
    parser = create_parser()
    args = parser.parse_args()
    sys.exit(run(args.config_dir, args))


if __name__ == "__main__":
    main()
