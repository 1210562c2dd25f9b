"""Centralized message constants for error messages, logging, and user feedback."""

from __future__ import annotations


class ErrorMessages:
    """Error messages for exceptions and validation failures."""

    # Identifier Validation Errors
    EMPTY_ROOM_ID = "Room ID cannot be empty"
    EMPTY_USER_ID = "User ID cannot be empty"

    # Submission Errors
    EMPTY_LINK = "Please provide a link or a search query"
    TRACK_NOT_FOUND = "Could not find a track for '{query}'"
    RESOLUTION_TIMEOUT = "Looking up '{query}' took too long, please try again"
    RESOLUTION_FAILED = "Could not look up '{query}': {error}"
    PENDING_LIMIT_REACHED = "You already have {limit} songs waiting in the queue"
    DUPLICATE_IN_QUEUE = '"{title}" is already in the queue or currently playing'
    SUBMIT_COOLDOWN_ACTIVE = "You can only add one song every {seconds:g} seconds, please wait"

    # Queue Errors
    ENTRY_NOT_IN_ROOM = "Queue entry {entry_id} does not belong to room '{room_id}'"
    ENTRY_ALREADY_FINISHED = "Queue entry {entry_id} has already finished ({status})"
    INVALID_STATUS_TRANSITION = "Cannot move a queue entry from {current} to {target}"

    # Authorization Errors
    REMOVE_NOT_ALLOWED = "remove queue entries in this room"
    SKIP_NOT_ALLOWED = "skip the current song in this room"

    # Time/Date Validation Errors
    TIMEZONE_REQUIRED_UTC_DATETIME = "UtcDateTime requires a timezone-aware datetime"

    # Settings Validation Errors
    INVALID_DATABASE_URL = "Database URL must start with sqlite://"
    INVALID_LOG_LEVEL = "Invalid log level: {level}. Must be one of {valid_levels}"


class LogTemplates:
    """Log message templates for structured logging.

    Use these with logger.info(), logger.error(), etc. and pass values as parameters
    for proper log formatting and structured logging support.
    """

    # Database Lifecycle
    DATABASE_INITIALIZED = "Database initialized at %s"
    DATABASE_CLOSED = "Database manager closed"
    DATABASE_STATS_FAILED = "Failed to collect database stats: %r"
    TABLE_MIGRATED = "Migrated table %s: added column %s"

    # Queue Operations
    QUEUE_SUBMITTED = "Queued entry %s '%s' from %s in room %s"
    QUEUE_SUBMISSION_REJECTED = "Rejected submission %r from %s in room %s: %s"
    QUEUE_RESOLVE_FAILED = "Track resolver failed for %r in room %s"
    QUEUE_SEARCH_FAILED = "Track search failed for %r"
    QUEUE_ADVANCED = "Room %s: finished %s (%s), now playing %s"
    QUEUE_ADVANCE_NOOP = "Room %s: advance skipped, entry %s is already playing"
    QUEUE_EMPTY = "Room %s: queue is empty"
    QUEUE_REMOVED = "Removed entry %s '%s' from room %s (by %s)"
    QUEUE_CONFLICT_RETRY = "Conflict during %s in room %s, retrying once: %s"
    QUEUE_CONFLICT_GAVE_UP = "Conflict during %s in room %s persisted after retry: %s"
    QUEUE_ACCESS_DENIED = "Denied %s in room %s for user %s"

    # Change Feed
    FEED_STARTED = "Change feed started at seq %s"
    FEED_STOPPED = "Change feed stopped"
    FEED_ALREADY_RUNNING = "Change feed is already running"
    FEED_READ_FAILED = "Change feed read failed, retrying in %ss: %r"
    FEED_HANDLER_FAILED = "Change feed handler failed for room %s (seq %s)"
    FEED_SUBSCRIBED = "Subscribed handler to room %s"
    FEED_UNSUBSCRIBED = "Unsubscribed handler from room %s"

    # Queue Watcher
    WATCHER_STARTED = "Watching room %s (%d active entries)"
    WATCHER_STOPPED = "Stopped watching room %s"
    WATCHER_STALE_CHANGE = "Ignoring stale change seq %s for entry %s (%s -> %s)"
    WATCHER_RECONCILED = "Reconciled room %s from store: %s"
    WATCHER_RECONCILE_FAILED = "Reconciliation for room %s failed: %r"
    WATCHER_LISTENER_FAILED = "Queue listener failed for room %s"

    # Cleanup Operations
    CLEANUP_STARTED = "Change-log cleanup job started"
    CLEANUP_STOPPED = "Change-log cleanup job stopped"
    CLEANUP_ALREADY_RUNNING = "Change-log cleanup job is already running"
    CLEANUP_CYCLE_RUNNING = "Running change-log cleanup cycle"
    CLEANUP_COMPLETED = "Cleanup completed: pruned %s change-log rows"
    CLEANUP_FAILED = "Failed to prune change log: %r"

    # Cache Operations
    CACHE_HIT_URL = "Cache hit for URL: %s"
    CACHE_EXPIRED_CLEANED = "Cleaned %d expired cache entries"

    # Resolver Operations
    YTDLP_NO_URL_IN_INFO_DICT = "No URL found in info dict"
    YTDLP_FAILED_INFO_TO_TRACK = "Failed to convert info to track"
    YTDLP_FAILED_EXTRACT_INFO = "Failed to extract info from %s"
    YTDLP_FAILED_SEARCH = "Failed to search for %r"
    YTDLP_RESOLVED = "Resolved %r to %s"

    # Application Lifecycle
    APP_STARTING = "Starting classroom jukebox (%s)"
    APP_FATAL_ERROR = "Fatal error: %s"


class CliMessages:
    """Text printed by the command-line interface."""

    SUBMITTED = 'Added "{title}" to the queue (entry {entry_id}).'
    NOW_PLAYING = 'Now playing: "{title}" (entry {entry_id}, added by {user}).'
    QUEUE_EMPTY = "The queue is empty."
    NOTHING_CHANGED = "Nothing changed."
    FINISHED = 'Finished: "{title}".'
    REMOVED = 'Removed "{title}" from the queue.'
    UPCOMING_HEADER = "Up next ({count}):"
    UPCOMING_LINE = '  {position}. "{title}" (entry {entry_id}, added by {user})'
    HISTORY_HEADER = "Recently played:"
    HISTORY_LINE = '  "{title}" ({status}, added by {user})'
    HISTORY_EMPTY = "No songs have been played yet."
    SEARCH_LINE = "  {position}. {title}  {media_ref}"
    SEARCH_EMPTY = "No results."
    ERROR = "Error: {message}"
    UNTITLED = "Untitled"
