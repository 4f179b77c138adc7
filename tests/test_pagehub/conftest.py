"""Shared fixtures for pagehub tests.

``workspace`` is an in-memory filesystem rooted at ``/ws``; ``gateway`` is an
in-memory version-control backend whose history and failures tests can
script directly.
"""

from __future__ import annotations

import asyncio
from typing import Callable

import pytest

from pagehub.filesystem import MemoryFileSystem
from pagehub.store import DocumentStore
from pagehub.sync.gateway import Author, LogEntry, StatusEntry

ROOT = "/ws"


class FakeGateway:
    """Scriptable :class:`~pagehub.sync.gateway.VersionControlGateway`."""

    def __init__(self) -> None:
        self.changes: list[StatusEntry] = []
        self.added: list[str] = []
        self.removed: list[str] = []
        self.history: list[LogEntry] = []  # newest first
        self.snapshots: dict[str, dict[str, str]] = {}
        self.remote = True
        self.pull_error: Exception | None = None
        self.push_error: Exception | None = None
        self.commit_error: Exception | None = None
        self.log_error: Exception | None = None
        #: Called inside ``pull``, e.g. to land an upstream commit
        self.on_pull: Callable[[], None] | None = None
        self.calls: list[str] = []
        self.active = 0
        self.max_active = 0

    async def _enter(self, name: str) -> None:
        self.calls.append(name)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        await asyncio.sleep(0)
        self.active -= 1

    def land_commit(self, oid: str, author: str, files: dict[str, str], message: str = "") -> None:
        """Append a commit whose tree is the previous head's plus *files*."""
        base = dict(self.snapshots[self.history[0].oid]) if self.history else {}
        base.update(files)
        self.snapshots[oid] = base
        self.history.insert(
            0,
            LogEntry(
                oid=oid,
                message=message or f"commit {oid}",
                author=Author(name=author, email=f"{author.lower()}@example.com"),
                timestamp=1_700_000_000 + len(self.history),
            ),
        )

    async def init(self) -> None:
        await self._enter("init")

    async def status(self) -> list[StatusEntry]:
        await self._enter("status")
        return list(self.changes)

    async def add(self, path: str) -> None:
        await self._enter("add")
        self.added.append(path)

    async def remove(self, path: str) -> None:
        await self._enter("remove")
        self.removed.append(path)

    async def unstage(self, path: str) -> None:
        await self._enter("unstage")

    async def commit(self, message: str, author: Author) -> str:
        await self._enter("commit")
        if self.commit_error is not None:
            raise self.commit_error
        oid = f"c{len(self.history) + 1}"
        self.land_commit(oid, author.name, {}, message)
        self.changes = []
        return oid

    async def log(self, depth: int = 20, path: str | None = None) -> list[LogEntry]:
        await self._enter("log")
        if self.log_error is not None:
            raise self.log_error
        entries = self.history
        if path is not None:
            entries = [e for e in entries if path in self.snapshots[e.oid]]
        return entries[:depth]

    async def read_file_at(self, revision: str, path: str) -> str:
        await self._enter("read_file_at")
        try:
            return self.snapshots[revision][path]
        except KeyError:
            raise FileNotFoundError(f"{revision}:{path}") from None

    async def has_remote(self, remote: str = "origin") -> bool:
        await self._enter("has_remote")
        return self.remote

    async def push(self, remote: str = "origin", branch: str | None = None, token: str | None = None) -> None:
        await self._enter("push")
        if self.push_error is not None:
            raise self.push_error

    async def pull(self, remote: str = "origin", branch: str | None = None, token: str | None = None) -> None:
        await self._enter("pull")
        if self.pull_error is not None:
            raise self.pull_error
        if self.on_pull is not None:
            self.on_pull()


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
async def fs() -> MemoryFileSystem:
    mem = MemoryFileSystem()
    await mem.makedirs(ROOT)
    return mem


@pytest.fixture()
def store(fs: MemoryFileSystem) -> DocumentStore:
    return DocumentStore(fs, ROOT)
