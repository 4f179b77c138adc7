"""Version-control gateway protocol and the records it returns."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

FileStatus = Literal["added", "modified", "deleted"]


@dataclass(frozen=True)
class Author:
    name: str
    email: str


@dataclass(frozen=True)
class StatusEntry:
    #: Path relative to the repository root, ``/``-separated
    path: str
    status: FileStatus


@dataclass(frozen=True)
class LogEntry:
    oid: str
    message: str
    author: Author
    #: Seconds since the epoch
    timestamp: int


@runtime_checkable
class VersionControlGateway(Protocol):
    """Operations the sync layer needs from a version-control backend.

    Implementations (git CLI, in-memory fakes, ...) must satisfy this protocol
    so the coordinator never depends on a concrete backend.
    """

    # ------------------------------------------------------------- working tree

    async def init(self) -> None:
        """Create an empty repository if none exists."""
        ...

    async def status(self) -> list[StatusEntry]:
        """Changed paths in the working tree; unmodified files are omitted."""
        ...

    async def add(self, path: str) -> None: ...

    async def remove(self, path: str) -> None:
        """Stage the deletion of *path*."""
        ...

    async def unstage(self, path: str) -> None: ...

    # ------------------------------------------------------------------ history

    async def commit(self, message: str, author: Author) -> str:
        """Commit the index and return the new revision id."""
        ...

    async def log(self, depth: int = 20, path: str | None = None) -> list[LogEntry]:
        """Newest-first history; empty for a repository without commits."""
        ...

    async def read_file_at(self, revision: str, path: str) -> str:
        """Content of *path* at *revision*; raises if it does not exist there."""
        ...

    # ------------------------------------------------------------------- remote

    async def has_remote(self, remote: str = "origin") -> bool: ...

    async def push(
        self, remote: str = "origin", branch: str | None = None, token: str | None = None
    ) -> None: ...

    async def pull(
        self, remote: str = "origin", branch: str | None = None, token: str | None = None
    ) -> None: ...
