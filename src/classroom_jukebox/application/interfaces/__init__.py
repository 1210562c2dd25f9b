"""
Application Interfaces (Ports)

Abstract interfaces that define contracts between the application
layer and infrastructure adapters. These are the "ports" in
hexagonal architecture.
"""

from classroom_jukebox.application.interfaces.access_policy import AccessPolicy
from classroom_jukebox.application.interfaces.change_feed import ChangeFeed, ChangeHandler
from classroom_jukebox.application.interfaces.track_resolver import TrackResolver

__all__ = [
    "TrackResolver",
    "ChangeFeed",
    "ChangeHandler",
    "AccessPolicy",
]
