"""SyncCoordinator: commit, pull/push and the periodic auto-sync cycle.

The coordinator sits between the workspace and a
:class:`~pagehub.sync.gateway.VersionControlGateway`.  Interactive operations
(``commit``) surface their errors; background ones (``sync``, ``auto_sync``)
are best-effort and only log or count failures.

After every successful auto-sync pull the coordinator checks whether the
document currently open in the editor changed upstream.  If so it emits a
:class:`RemoteChange` to its listeners and leaves the open document alone;
the consumer decides whether to diff, apply or dismiss.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Awaitable, Callable

from loguru import logger

from pagehub.config import SyncSettings
from pagehub.sync.gateway import Author, LogEntry, StatusEntry, VersionControlGateway
from pagehub.tasks import TaskGroup

UNKNOWN_AUTHOR = "Someone"


class SyncState(enum.Enum):
    IDLE = "idle"
    SYNCING = "syncing"


class SyncOutcome(enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class SyncResult:
    pulled: bool
    pushed: bool


@dataclass(frozen=True)
class RemoteChange:
    """The open document differs between two revisions after a pull."""

    doc_id: str
    author: str
    #: ``None`` when there was no history before the pull
    old_revision: str | None
    new_revision: str


RemoteChangeListener = Callable[[RemoteChange], None]


class SyncCoordinator:
    def __init__(
        self,
        gateway: VersionControlGateway,
        settings: SyncSettings | None = None,
        *,
        tasks: TaskGroup | None = None,
        on_refresh: Callable[[], Awaitable[object]] | None = None,
    ) -> None:
        self.gateway = gateway
        self.settings = settings or SyncSettings()
        self.tasks = tasks or TaskGroup("sync")
        self.on_refresh = on_refresh

        self.state = SyncState.IDLE
        self.failures = 0
        self.last_sync_at: datetime | None = None
        self.open_document_id: str | None = None
        #: Most recent change emitted to listeners, until dismissed
        self.pending_change: RemoteChange | None = None

        self._listeners: list[RemoteChangeListener] = []
        # one working tree, one git call at a time
        self._lock = asyncio.Lock()
        self._stop = asyncio.Event()
        self._loop_task: asyncio.Task[None] | None = None

    @property
    def author(self) -> Author:
        return Author(name=self.settings.author_name, email=self.settings.author_email)

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    # ------------------------------------------------------------------
    # Listeners / open document
    # ------------------------------------------------------------------

    def add_listener(self, listener: RemoteChangeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: RemoteChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_open_document(self, doc_id: str | None) -> None:
        self.open_document_id = doc_id

    def dismiss_remote_change(self) -> None:
        self.pending_change = None

    def _emit(self, change: RemoteChange) -> None:
        self.pending_change = change
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as exc:  # noqa: BLE001
                logger.warning(f"Remote change listener failed: {exc!r}")

    # ------------------------------------------------------------------
    # Interactive operations
    # ------------------------------------------------------------------

    async def status(self) -> list[StatusEntry]:
        async with self._lock:
            return await self.gateway.status()

    async def history(self, doc_id: str | None = None, depth: int = 20) -> list[LogEntry]:
        """Commit log for the workspace, or for one document."""
        path = f"{doc_id}.md" if doc_id else None
        async with self._lock:
            return await self.gateway.log(depth=depth, path=path)

    async def commit(self, message: str) -> str | None:
        """Stage every change and commit it; ``None`` when nothing changed."""
        async with self._lock:
            changes = await self.gateway.status()
            if not changes:
                logger.debug("Nothing to commit")
                return None
            for change in changes:
                if change.status == "deleted":
                    await self.gateway.remove(change.path)
                else:
                    await self.gateway.add(change.path)
            oid = await self.gateway.commit(message, self.author)
        logger.info(f"Committed {len(changes)} change(s) as {oid[:8]}")
        return oid

    async def _pull(self) -> bool:
        s = self.settings
        try:
            await self.gateway.pull(s.remote, s.branch, s.token)
        except Exception as exc:  # noqa: BLE001
            logger.debug(f"Pull skipped: {exc}")
            return False
        return True

    async def _push(self) -> bool:
        s = self.settings
        try:
            await self.gateway.push(s.remote, s.branch, s.token)
        except Exception as exc:  # noqa: BLE001
            logger.debug(f"Push skipped: {exc}")
            return False
        return True

    async def pull(self) -> bool:
        """Best-effort pull; ``False`` on any failure, including no remote."""
        async with self._lock:
            return await self._pull()

    async def push(self) -> bool:
        """Best-effort push; ``False`` on any failure, including no remote."""
        async with self._lock:
            return await self._push()

    async def sync(self) -> SyncResult:
        """Pull, then push. Each step is attempted regardless of the other."""
        async with self._lock:
            pulled = await self._pull()
            pushed = await self._push()
        return SyncResult(pulled=pulled, pushed=pushed)

    async def remote_versions(self, change: RemoteChange) -> tuple[str | None, str]:
        """Old and new text of a changed document, for a diff view."""
        path = f"{change.doc_id}.md"
        async with self._lock:
            new = await self.gateway.read_file_at(change.new_revision, path)
            old = await self._read_optional(change.old_revision, path)
        return old, new

    # ------------------------------------------------------------------
    # Auto-sync
    # ------------------------------------------------------------------

    def next_delay(self) -> float:
        """Seconds until the next tick; doubled after repeated failures."""
        base = self.settings.interval_seconds
        if self.failures >= self.settings.backoff_threshold:
            return base * 2
        return base

    async def auto_sync(self) -> SyncOutcome:
        """One background pull cycle; failures are counted, never raised."""
        s = self.settings
        change: RemoteChange | None = None
        async with self._lock:
            self.state = SyncState.SYNCING
            try:
                before = await self._head()
            except Exception as exc:  # noqa: BLE001
                logger.debug(f"No head before pull: {exc}")
                before = None
            try:
                await self.gateway.pull(s.remote, s.branch, s.token)
            except Exception as exc:  # noqa: BLE001
                self.failures += 1
                logger.debug(f"Auto-sync pull failed ({self.failures} in a row): {exc}")
                outcome = SyncOutcome.FAILURE
            else:
                self.failures = 0
                self.last_sync_at = datetime.now(timezone.utc)
                outcome = SyncOutcome.SUCCESS
                await self._push()
                change = await self._detect_remote_change(before)
            finally:
                self.state = SyncState.IDLE

        if outcome is SyncOutcome.SUCCESS:
            if change is not None:
                self._emit(change)
            if self.on_refresh is not None:
                try:
                    await self.on_refresh()
                except Exception as exc:  # noqa: BLE001
                    logger.warning(f"Refresh after sync failed: {exc!r}")
        return outcome

    async def _head(self) -> str | None:
        entries = await self.gateway.log(depth=1)
        return entries[0].oid if entries else None

    async def _read_optional(self, revision: str | None, path: str) -> str | None:
        if revision is None:
            return None
        try:
            return await self.gateway.read_file_at(revision, path)
        except Exception as exc:  # noqa: BLE001
            logger.debug(f"{path} not readable at {revision[:8]}: {exc}")
            return None

    async def _detect_remote_change(self, before: str | None) -> RemoteChange | None:
        doc_id = self.open_document_id
        if doc_id is None:
            return None
        try:
            entries = await self.gateway.log(depth=1)
            if not entries or entries[0].oid == before:
                return None
            head = entries[0]
            path = f"{doc_id}.md"
            new = await self.gateway.read_file_at(head.oid, path)
            old = await self._read_optional(before, path)
        except Exception as exc:  # noqa: BLE001
            logger.debug(f"Remote change check for {doc_id!r} skipped: {exc}")
            return None
        if old == new:
            return None
        logger.info(f"{doc_id!r} changed upstream in {head.oid[:8]}")
        return RemoteChange(
            doc_id=doc_id,
            author=head.author.name or UNKNOWN_AUTHOR,
            old_revision=before,
            new_revision=head.oid,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """Begin the auto-sync loop; ``False`` if disabled or no remote."""
        if not self.settings.enabled:
            return False
        if self.is_running:
            return True
        try:
            async with self._lock:
                has_remote = await self.gateway.has_remote(self.settings.remote)
        except Exception as exc:  # noqa: BLE001
            logger.debug(f"Auto-sync not started: {exc}")
            return False
        if not has_remote:
            logger.debug(f"Auto-sync not started: no remote {self.settings.remote!r}")
            return False
        self._stop = asyncio.Event()
        self._loop_task = self.tasks.spawn(self._run_loop(), name="auto-sync")
        logger.debug("Auto-sync started")
        return True

    async def _run_loop(self) -> None:
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.next_delay())
            except TimeoutError:
                await self.auto_sync()

    def notify_focus(self) -> asyncio.Task[SyncOutcome] | None:
        """The application regained focus: sync now if auto-sync is running."""
        if not self.is_running:
            return None
        return self.tasks.spawn(self.auto_sync(), name="auto-sync-focus")

    async def stop(self) -> None:
        """Stop rescheduling; a tick already in progress runs to completion."""
        self._stop.set()
        task, self._loop_task = self._loop_task, None
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
            logger.debug("Auto-sync stopped")

    async def set_auto_sync(self, enabled: bool) -> bool:
        """Turn auto-sync on or off; returns whether the loop is now running."""
        self.settings = replace(self.settings, enabled=enabled)
        if enabled:
            return await self.start()
        await self.stop()
        return False
