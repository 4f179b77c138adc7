"""Workspace wiring.

A :class:`WorkspaceContext` owns every service bound to one workspace root.
:class:`WorkspaceSession` holds at most one context at a time and swaps it on
``switch``; code that needs the workspace asks the session, which raises
:class:`~pagehub.errors.WorkspaceNotInitializedError` until one is open.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from pagehub.config import SyncSettings
from pagehub.document import Document, Entry
from pagehub.errors import WorkspaceNotInitializedError
from pagehub.filesystem import FileSystem, LocalFileSystem
from pagehub.index import WorkspaceIndexer
from pagehub.search import SearchIndex
from pagehub.store import DocumentStore
from pagehub.sync.coordinator import SyncCoordinator
from pagehub.sync.gateway import Author, VersionControlGateway
from pagehub.sync.git_cli import GitCliGateway
from pagehub.tasks import TaskGroup
from pagehub.tree import TreeNode, build_tree


@dataclass
class Snapshot:
    entries: list[Entry]
    tree: list[TreeNode]
    #: Resolves to target id -> ids of documents linking to it
    backlinks: asyncio.Task[dict[str, set[str]]] = field(repr=False)


@dataclass
class WorkspaceContext:
    root: str
    fs: FileSystem
    store: DocumentStore
    indexer: WorkspaceIndexer
    search: SearchIndex
    gateway: VersionControlGateway
    coordinator: SyncCoordinator
    tasks: TaskGroup
    settings: SyncSettings
    #: Result of the latest ``refresh()``, including ones run after an auto-sync pull
    snapshot: Snapshot | None = field(default=None, init=False)

    @classmethod
    def open(
        cls,
        root: str,
        fs: FileSystem | None = None,
        gateway: VersionControlGateway | None = None,
        settings: SyncSettings | None = None,
    ) -> "WorkspaceContext":
        root = str(root)
        fs = fs or LocalFileSystem()
        settings = settings or SyncSettings.from_env()
        gateway = gateway or GitCliGateway(
            root, author=Author(name=settings.author_name, email=settings.author_email)
        )
        tasks = TaskGroup(root)
        coordinator = SyncCoordinator(gateway, settings, tasks=tasks)
        ctx = cls(
            root=root,
            fs=fs,
            store=DocumentStore(fs, root),
            indexer=WorkspaceIndexer(fs, root),
            search=SearchIndex(),
            gateway=gateway,
            coordinator=coordinator,
            tasks=tasks,
            settings=settings,
        )
        coordinator.on_refresh = ctx.refresh
        return ctx

    @property
    def closed(self) -> bool:
        return self.tasks.closed

    async def refresh(self) -> Snapshot:
        """Re-list the workspace, rebuild tree and search, rescan backlinks.

        The listing runs as a task owned by this context, so closing the
        context mid-scan cancels it instead of letting it finish late.
        """
        entries = await self.tasks.spawn(self.indexer.list_all(), name="list-all")
        tree = build_tree(entries)
        self.search.rebuild(entries)
        backlinks = self.tasks.spawn(self.indexer.build_backlink_index(), name="backlinks")
        logger.debug(f"Refreshed {self.root}: {len(entries)} entries")
        self.snapshot = Snapshot(entries=entries, tree=tree, backlinks=backlinks)
        return self.snapshot

    async def save(self, doc: Document) -> None:
        """Persist *doc* and update its search entry."""
        await self.store.update(doc)
        self.search.add_document(doc)

    async def close(self) -> None:
        await self.coordinator.stop()
        await self.tasks.cancel_all()
        logger.debug(f"Closed workspace {self.root}")


class WorkspaceSession:
    """Holds the currently open workspace, if any."""

    def __init__(self) -> None:
        self._context: WorkspaceContext | None = None

    @property
    def is_open(self) -> bool:
        return self._context is not None

    @property
    def context(self) -> WorkspaceContext:
        if self._context is None:
            raise WorkspaceNotInitializedError("No workspace is open; call open() first")
        return self._context

    async def open(self, root: str, **kwargs: Any) -> WorkspaceContext:
        """Open *root*, closing any workspace that is already open.

        Keyword arguments are passed to :meth:`WorkspaceContext.open`.  The
        initial listing is awaited; trash cleanup and auto-sync start in the
        background.  If the workspace cannot be listed it is closed again and
        the session stays empty.
        """
        await self.close()
        ctx = WorkspaceContext.open(root, **kwargs)
        try:
            await ctx.refresh()
            ctx.tasks.spawn(
                ctx.store.cleanup_trash(ctx.settings.trash_max_age_days), name="trash-cleanup"
            )
            await ctx.coordinator.start()
        except BaseException:
            await ctx.close()
            raise
        self._context = ctx
        logger.info(f"Opened workspace {ctx.root}")
        return ctx

    async def switch(self, root: str, **kwargs: Any) -> WorkspaceContext:
        return await self.open(root, **kwargs)

    async def close(self) -> None:
        ctx, self._context = self._context, None
        if ctx is not None:
            await ctx.close()
