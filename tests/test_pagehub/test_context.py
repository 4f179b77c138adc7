"""Tests for workspace wiring: TaskGroup, WorkspaceContext and WorkspaceSession."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from pagehub.config import SyncSettings
from pagehub.context import WorkspaceContext, WorkspaceSession
from pagehub.document import FolderPlaceholder
from pagehub.errors import WorkspaceNotInitializedError
from pagehub.filesystem import MemoryFileSystem
from pagehub.tasks import TaskGroup
from pagehub.tree import find_node

ROOT = "/ws"
OFFLINE = SyncSettings(enabled=False)


async def _seed(fs: MemoryFileSystem) -> None:
    await fs.makedirs(f"{ROOT}/guides")
    await fs.write_text(f"{ROOT}/Home.md", "---\ntags: [start]\n---\nSee [[Intro]].\n")
    await fs.write_text(f"{ROOT}/guides/Intro.md", "Back to [[Home]].\n")


# ---------------------------------------------------------------------------
# TaskGroup
# ---------------------------------------------------------------------------


class TestTaskGroup:
    async def test_wait_and_errors(self):
        group = TaskGroup()

        async def ok() -> int:
            return 1

        async def boom() -> None:
            raise ValueError("bad")

        task = group.spawn(ok())
        group.spawn(boom())
        await group.wait()
        assert task.result() == 1
        assert group.pending == 0
        assert [type(e) for e in group.errors] == [ValueError]

    async def test_cancel_all(self):
        group = TaskGroup()
        task = group.spawn(asyncio.sleep(3600))
        await group.cancel_all()
        assert task.cancelled()
        assert group.closed
        assert group.errors == []

    async def test_spawn_after_close_rejected(self):
        group = TaskGroup()
        await group.cancel_all()
        with pytest.raises(RuntimeError):
            group.spawn(asyncio.sleep(0))


# ---------------------------------------------------------------------------
# WorkspaceContext
# ---------------------------------------------------------------------------


class TestWorkspaceContext:
    async def test_refresh_snapshot(self, fs: MemoryFileSystem, gateway):
        await _seed(fs)
        ctx = WorkspaceContext.open(ROOT, fs=fs, gateway=gateway, settings=OFFLINE)
        snapshot = await ctx.refresh()

        ids = {e.id for e in snapshot.entries}
        assert ids == {"Home", "guides", "guides/Intro"}
        assert any(isinstance(e, FolderPlaceholder) for e in snapshot.entries)
        assert [n.id for n in snapshot.tree] == ["guides", "Home"]
        assert ctx.search.search("intro")[0].id == "guides/Intro"

        backlinks = await snapshot.backlinks
        assert backlinks == {"guides/Intro": {"Home"}, "Home": {"guides/Intro"}}
        await ctx.close()

    async def test_save_updates_search(self, fs: MemoryFileSystem, gateway):
        ctx = WorkspaceContext.open(ROOT, fs=fs, gateway=gateway, settings=OFFLINE)
        doc = await ctx.store.create("Roadmap")
        doc.tags = ["planning"]
        await ctx.save(doc)
        assert ctx.search.search("planning")[0].id == "Roadmap"
        await ctx.close()

    async def test_auto_sync_refreshes_search(self, fs: MemoryFileSystem, gateway):
        ctx = WorkspaceContext.open(ROOT, fs=fs, gateway=gateway, settings=OFFLINE)
        await fs.write_text(f"{ROOT}/Pulled.md", "arrived with a pull")
        await ctx.coordinator.auto_sync()
        assert "Pulled" in ctx.search
        await ctx.close()

    async def test_auto_sync_keeps_latest_snapshot(self, fs: MemoryFileSystem, gateway):
        await _seed(fs)
        ctx = WorkspaceContext.open(ROOT, fs=fs, gateway=gateway, settings=OFFLINE)
        first = await ctx.refresh()
        assert ctx.snapshot is first

        await fs.makedirs(f"{ROOT}/pulled")
        await fs.write_text(f"{ROOT}/pulled/New.md", "from upstream")
        await ctx.coordinator.auto_sync()

        assert ctx.snapshot is not first
        node = find_node(ctx.snapshot.tree, "pulled")
        assert node is not None
        assert [child.id for child in node.children] == ["pulled/New"]
        await ctx.close()

    async def test_close_cancels_owned_tasks(self, fs: MemoryFileSystem, gateway):
        ctx = WorkspaceContext.open(ROOT, fs=fs, gateway=gateway, settings=OFFLINE)
        task = ctx.tasks.spawn(asyncio.sleep(3600))
        await ctx.close()
        assert task.cancelled()
        assert ctx.closed


# ---------------------------------------------------------------------------
# WorkspaceSession
# ---------------------------------------------------------------------------


class TestWorkspaceSession:
    def test_context_before_open_raises(self):
        session = WorkspaceSession()
        assert not session.is_open
        with pytest.raises(WorkspaceNotInitializedError):
            session.context

    def test_error_is_runtime_error(self):
        with pytest.raises(RuntimeError):
            WorkspaceSession().context

    async def test_open_and_close(self, fs: MemoryFileSystem, gateway):
        await _seed(fs)
        session = WorkspaceSession()
        ctx = await session.open(ROOT, fs=fs, gateway=gateway, settings=OFFLINE)
        assert session.context is ctx
        assert "Home" in ctx.search

        await session.close()
        assert not session.is_open
        assert ctx.closed

    async def test_failed_open_leaves_session_empty(self, gateway):
        session = WorkspaceSession()
        with pytest.raises(FileNotFoundError):
            await session.open("/missing", fs=MemoryFileSystem(), gateway=gateway, settings=OFFLINE)
        assert not session.is_open
        with pytest.raises(WorkspaceNotInitializedError):
            session.context

    async def test_failed_switch_closes_previous(self, fs: MemoryFileSystem, gateway):
        session = WorkspaceSession()
        first = await session.open(ROOT, fs=fs, gateway=gateway, settings=OFFLINE)
        with pytest.raises(FileNotFoundError):
            await session.switch(
                "/missing", fs=MemoryFileSystem(), gateway=gateway, settings=OFFLINE
            )
        assert first.closed
        assert not session.is_open

    async def test_open_starts_auto_sync_when_enabled(self, fs: MemoryFileSystem, gateway):
        session = WorkspaceSession()
        ctx = await session.open(
            ROOT, fs=fs, gateway=gateway, settings=SyncSettings(interval_seconds=3600)
        )
        assert ctx.coordinator.is_running
        await session.close()
        assert not ctx.coordinator.is_running

    async def test_open_purges_old_trash(self, fs: MemoryFileSystem, gateway):
        await fs.makedirs(f"{ROOT}/.trash")
        await fs.write_text(f"{ROOT}/.trash/old.md", "x")
        await fs.write_text(f"{ROOT}/.trash/recent.md", "y")
        fs.set_mtime(f"{ROOT}/.trash/old.md", datetime.now(timezone.utc) - timedelta(days=60))

        session = WorkspaceSession()
        ctx = await session.open(ROOT, fs=fs, gateway=gateway, settings=OFFLINE)
        await ctx.tasks.wait()
        assert not await fs.exists(f"{ROOT}/.trash/old.md")
        assert await fs.exists(f"{ROOT}/.trash/recent.md")
        await session.close()

    async def test_switch_closes_previous(self, gateway):
        first_fs, second_fs = MemoryFileSystem(), MemoryFileSystem()
        await first_fs.makedirs("/one")
        await second_fs.makedirs("/two")
        await second_fs.write_text("/two/Only.md", "")

        session = WorkspaceSession()
        first = await session.open("/one", fs=first_fs, gateway=gateway, settings=OFFLINE)
        stale = first.tasks.spawn(asyncio.sleep(3600))

        second = await session.switch("/two", fs=second_fs, gateway=gateway, settings=OFFLINE)
        assert session.context is second
        assert first.closed
        assert stale.cancelled()
        assert "Only" in second.search
        with pytest.raises(RuntimeError):
            first.tasks.spawn(asyncio.sleep(0))
        await session.close()
