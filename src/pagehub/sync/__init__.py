"""Version control and synchronisation."""

from pagehub.sync.coordinator import (
    RemoteChange,
    SyncCoordinator,
    SyncOutcome,
    SyncResult,
    SyncState,
)
from pagehub.sync.gateway import Author, LogEntry, StatusEntry, VersionControlGateway
from pagehub.sync.git_cli import GitCliGateway

__all__ = [
    "Author",
    "LogEntry",
    "StatusEntry",
    "VersionControlGateway",
    "GitCliGateway",
    "SyncCoordinator",
    "SyncOutcome",
    "SyncResult",
    "SyncState",
    "RemoteChange",
]
