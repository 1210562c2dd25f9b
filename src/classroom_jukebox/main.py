#!/usr/bin/env python3
"""Command-line entry point for the classroom jukebox."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import logging.config
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from classroom_jukebox.application.queries.get_queue import GetQueueQuery
from classroom_jukebox.domain.shared.exceptions import DomainError
from classroom_jukebox.domain.shared.messages import CliMessages, LogTemplates

if TYPE_CHECKING:
    from classroom_jukebox.application.services.queue_models import AdvanceResult
    from classroom_jukebox.config.container import Container
    from classroom_jukebox.domain.jukebox.entities import QueueEntry, QueueSnapshot

_LOGGING_CONFIG_PATH = Path(__file__).resolve().parents[2] / "logging_config.json"

DEFAULT_ROOM = "default"


def setup_logging(log_level: str = "INFO") -> None:
    resolved_level = getattr(logging, log_level.upper(), logging.INFO)

    try:
        with open(_LOGGING_CONFIG_PATH) as f:
            config = json.load(f)
        logging.config.dictConfig(config)
    except (FileNotFoundError, json.JSONDecodeError, ValueError):
        logging.warning(
            "Could not load %s, falling back to basic config", _LOGGING_CONFIG_PATH
        )
        logging.basicConfig(
            level=resolved_level,
            format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    logging.getLogger().setLevel(resolved_level)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="classroom-jukebox",
        description="Shared song queue for a classroom.",
    )
    parser.add_argument("--room", default=DEFAULT_ROOM, help="Room (class) identifier")
    sub = parser.add_subparsers(dest="command", required=True)

    p_submit = sub.add_parser("submit", help="Add a song link or search query to the queue")
    p_submit.add_argument("--user", required=True, help="Submitting user")
    p_submit.add_argument("link", help="Song link or free-text query")

    p_search = sub.add_parser("search", help="List candidate tracks for a query")
    p_search.add_argument("query")
    p_search.add_argument("--limit", type=int, default=None)

    sub.add_parser("start", help="Start playing if nothing is playing yet")

    p_advance = sub.add_parser("advance", help="Finish the current song and play the next")
    p_advance.add_argument(
        "--expect", type=int, default=None, help="Only advance if this entry is still playing"
    )

    p_skip = sub.add_parser("skip", help="Skip the current song")
    p_skip.add_argument("--user", required=True)

    p_remove = sub.add_parser("remove", help="Remove a queued or playing entry")
    p_remove.add_argument("entry_id", type=int)
    p_remove.add_argument("--user", required=True)

    sub.add_parser("queue", help="Show what is playing and what is up next")

    p_history = sub.add_parser("history", help="Show recently finished songs")
    p_history.add_argument("--limit", type=int, default=None)

    p_watch = sub.add_parser("watch", help="Follow queue changes live")
    p_watch.add_argument(
        "--seconds", type=float, default=None, help="Stop after this many seconds"
    )

    return parser


def _title(entry: QueueEntry) -> str:
    return entry.title or CliMessages.UNTITLED


def _print_result(result: AdvanceResult) -> None:
    if not result.changed:
        print(CliMessages.NOTHING_CHANGED)
    if result.finished is not None:
        print(CliMessages.FINISHED.format(title=_title(result.finished)))
    if result.now_playing is not None:
        print(
            CliMessages.NOW_PLAYING.format(
                title=_title(result.now_playing),
                entry_id=result.now_playing.id,
                user=result.now_playing.submitted_by,
            )
        )
    else:
        print(CliMessages.QUEUE_EMPTY)


def _print_snapshot(snapshot: QueueSnapshot) -> None:
    if snapshot.is_empty:
        print(CliMessages.QUEUE_EMPTY)
        return
    if snapshot.now_playing is not None:
        current = snapshot.now_playing
        print(
            CliMessages.NOW_PLAYING.format(
                title=_title(current), entry_id=current.id, user=current.submitted_by
            )
        )
    if snapshot.upcoming:
        print(CliMessages.UPCOMING_HEADER.format(count=len(snapshot.upcoming)))
        for position, entry in enumerate(snapshot.upcoming, start=1):
            print(
                CliMessages.UPCOMING_LINE.format(
                    position=position,
                    title=_title(entry),
                    entry_id=entry.id,
                    user=entry.submitted_by,
                )
            )


async def _watch(container: Container, room_id: str, seconds: float | None) -> None:
    async def on_snapshot(snapshot: QueueSnapshot) -> None:
        print("-" * 40)
        _print_snapshot(snapshot)

    feed = container.change_feed
    watcher = container.watcher(room_id)
    watcher.add_listener(on_snapshot)

    await feed.start()
    await watcher.start()
    container.cleanup_job.start()
    try:
        if seconds is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(seconds)
    finally:
        await watcher.stop()


async def run_command(args: argparse.Namespace, container: Container) -> int:
    """Execute one parsed command against an initialized container."""
    coordinator = container.queue_coordinator
    room_id: str = args.room

    try:
        match args.command:
            case "submit":
                entry = await coordinator.submit(room_id, args.user, args.link)
                print(CliMessages.SUBMITTED.format(title=_title(entry), entry_id=entry.id))
            case "search":
                results = await coordinator.search(args.query, args.limit)
                if not results:
                    print(CliMessages.SEARCH_EMPTY)
                for position, track in enumerate(results, start=1):
                    print(
                        CliMessages.SEARCH_LINE.format(
                            position=position,
                            title=track.title or CliMessages.UNTITLED,
                            media_ref=track.media_ref,
                        )
                    )
            case "start":
                _print_result(await coordinator.start(room_id))
            case "advance":
                _print_result(await coordinator.advance(room_id, expected_current_id=args.expect))
            case "skip":
                _print_result(await coordinator.skip(room_id, args.user))
            case "remove":
                removed = await coordinator.remove(room_id, args.entry_id, args.user)
                print(CliMessages.REMOVED.format(title=_title(removed)))
            case "queue":
                info = await container.get_queue_handler.handle(
                    GetQueueQuery(room_id=room_id, history_limit=container.settings.queue.history_limit)
                )
                _print_snapshot(info.snapshot)
            case "history":
                info = await container.get_queue_handler.handle(
                    GetQueueQuery(
                        room_id=room_id,
                        history_limit=(
                            args.limit if args.limit is not None else container.settings.queue.history_limit
                        ),
                    )
                )
                history = info.history
                if not history:
                    print(CliMessages.HISTORY_EMPTY)
                else:
                    print(CliMessages.HISTORY_HEADER)
                    for entry in history:
                        print(
                            CliMessages.HISTORY_LINE.format(
                                title=_title(entry),
                                status=entry.status.value,
                                user=entry.submitted_by,
                            )
                        )
            case "watch":
                await _watch(container, room_id, args.seconds)
    except DomainError as e:
        print(CliMessages.ERROR.format(message=e.message), file=sys.stderr)
        return 1
    except ValidationError as e:
        print(CliMessages.ERROR.format(message=e.errors()[0]["msg"]), file=sys.stderr)
        return 2

    return 0


async def _run(args: argparse.Namespace, container: Container) -> int:
    await container.initialize()
    try:
        return await run_command(args, container)
    finally:
        await container.shutdown()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    args.room = args.room.strip()
    if not args.room:
        parser.error("--room must not be empty")

    from classroom_jukebox.config.settings import get_settings

    settings = get_settings()
    setup_logging(settings.log_level)

    logger = logging.getLogger(__name__)
    logger.debug(LogTemplates.APP_STARTING, settings.environment)

    from classroom_jukebox.config.container import create_container

    container = create_container(settings)

    try:
        return asyncio.run(_run(args, container))
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        logger.exception(LogTemplates.APP_FATAL_ERROR, e)
        return 1


def cli() -> None:
    """Console script entry point (used by pyproject.toml [project.scripts])."""
    sys.exit(main())


if __name__ == "__main__":
    cli()  # pragma: no cover
