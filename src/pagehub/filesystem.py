"""Suspend-capable filesystem access.

Every store and indexer call reaches disk through a :class:`FileSystem`, so the
workspace can sit on a real directory (:class:`LocalFileSystem`) or on an
in-memory tree (:class:`MemoryFileSystem`, used by tests and previews).
Paths are plain strings with ``/`` separators.
"""

from __future__ import annotations

import asyncio
import posixpath
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

import aiofiles
import aiofiles.os


@dataclass(frozen=True)
class DirEntry:
    name: str
    is_dir: bool

    @property
    def is_file(self) -> bool:
        return not self.is_dir


@dataclass(frozen=True)
class FileStat:
    size: int
    modified: datetime
    created: datetime | None = None


@runtime_checkable
class FileSystem(Protocol):
    """Operations the data layer needs from a filesystem."""

    async def read_text(self, path: str) -> str: ...

    async def write_text(self, path: str, content: str) -> None: ...

    async def list_dir(self, path: str) -> list[DirEntry]: ...

    async def exists(self, path: str) -> bool: ...

    async def makedirs(self, path: str) -> None:
        """Create *path* and any missing parents; existing dirs are fine."""
        ...

    async def remove_file(self, path: str) -> None: ...

    async def remove_tree(self, path: str) -> None: ...

    async def rename(self, src: str, dst: str) -> None:
        """Move a file or directory, creating missing parents of *dst*."""
        ...

    async def stat(self, path: str) -> FileStat: ...


# ---------------------------------------------------------------------------
# Local disk
# ---------------------------------------------------------------------------


class LocalFileSystem:
    """:class:`FileSystem` backed by the real disk via :mod:`aiofiles`."""

    async def read_text(self, path: str) -> str:
        # newline="" keeps CRLF files byte-identical across a save
        async with aiofiles.open(path, "r", encoding="utf-8", newline="") as fh:
            return await fh.read()

    async def write_text(self, path: str, content: str) -> None:
        async with aiofiles.open(path, "w", encoding="utf-8", newline="") as fh:
            await fh.write(content)

    async def list_dir(self, path: str) -> list[DirEntry]:
        entries = await aiofiles.os.scandir(path)
        with entries:
            return [
                DirEntry(name=e.name, is_dir=e.is_dir(follow_symlinks=False))
                for e in entries
                if e.is_dir(follow_symlinks=False) or e.is_file(follow_symlinks=False)
            ]

    async def exists(self, path: str) -> bool:
        return await aiofiles.os.path.exists(path)

    async def makedirs(self, path: str) -> None:
        await aiofiles.os.makedirs(path, exist_ok=True)

    async def remove_file(self, path: str) -> None:
        await aiofiles.os.remove(path)

    async def remove_tree(self, path: str) -> None:
        await asyncio.to_thread(shutil.rmtree, path)

    async def rename(self, src: str, dst: str) -> None:
        parent = str(Path(dst).parent)
        await aiofiles.os.makedirs(parent, exist_ok=True)
        await aiofiles.os.rename(src, dst)

    async def stat(self, path: str) -> FileStat:
        st = await aiofiles.os.stat(path)
        created = getattr(st, "st_birthtime", None)
        return FileStat(
            size=st.st_size,
            modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            created=datetime.fromtimestamp(created, tz=timezone.utc) if created else None,
        )


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


def _norm(path: str) -> str:
    path = posixpath.normpath(path.replace("\\", "/"))
    return path if path.startswith("/") else "/" + path


class MemoryFileSystem:
    """Dictionary-backed :class:`FileSystem`.

    Writing requires the parent directory to exist, as on a real disk.
    """

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.dirs: set[str] = {"/"}
        self._mtimes: dict[str, datetime] = {}
        self._ctimes: dict[str, datetime] = {}

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def set_mtime(self, path: str, when: datetime) -> None:
        self._mtimes[_norm(path)] = when

    async def read_text(self, path: str) -> str:
        path = _norm(path)
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(path) from None

    async def write_text(self, path: str, content: str) -> None:
        path = _norm(path)
        parent = posixpath.dirname(path)
        if parent not in self.dirs:
            raise FileNotFoundError(f"Parent directory does not exist: {parent}")
        if path in self.dirs:
            raise IsADirectoryError(path)
        now = self._now()
        self.files[path] = content
        self._mtimes[path] = now
        self._ctimes.setdefault(path, now)

    async def list_dir(self, path: str) -> list[DirEntry]:
        path = _norm(path)
        if path not in self.dirs:
            raise FileNotFoundError(path)
        prefix = path.rstrip("/") + "/"
        seen: dict[str, bool] = {}
        for file_path in self.files:
            if file_path.startswith(prefix) and "/" not in file_path[len(prefix) :]:
                seen.setdefault(file_path[len(prefix) :], False)
        for dir_path in self.dirs:
            if dir_path.startswith(prefix) and dir_path != path:
                rest = dir_path[len(prefix) :]
                if rest and "/" not in rest:
                    seen[rest] = True
        return [DirEntry(name=name, is_dir=is_dir) for name, is_dir in sorted(seen.items())]

    async def exists(self, path: str) -> bool:
        path = _norm(path)
        return path in self.files or path in self.dirs

    async def makedirs(self, path: str) -> None:
        path = _norm(path)
        if path in self.files:
            raise FileExistsError(path)
        current = ""
        for part in path.strip("/").split("/"):
            current += "/" + part
            self.dirs.add(current)

    async def remove_file(self, path: str) -> None:
        path = _norm(path)
        if path not in self.files:
            raise FileNotFoundError(path)
        del self.files[path]
        self._mtimes.pop(path, None)
        self._ctimes.pop(path, None)

    async def remove_tree(self, path: str) -> None:
        path = _norm(path)
        if path not in self.dirs:
            raise FileNotFoundError(path)
        prefix = path + "/"
        self.dirs = {d for d in self.dirs if d != path and not d.startswith(prefix)}
        for key in [k for k in self.files if k.startswith(prefix)]:
            await self.remove_file(key)

    async def rename(self, src: str, dst: str) -> None:
        src, dst = _norm(src), _norm(dst)
        await self.makedirs(posixpath.dirname(dst))
        if src in self.files:
            self.files[dst] = self.files.pop(src)
            self._mtimes[dst] = self._mtimes.pop(src, self._now())
            self._ctimes[dst] = self._ctimes.pop(src, self._now())
            return
        if src not in self.dirs:
            raise FileNotFoundError(src)
        if dst == src or dst.startswith(src + "/"):
            raise OSError(f"Cannot move {src} into itself")
        prefix = src + "/"
        moved_dirs = {d for d in self.dirs if d == src or d.startswith(prefix)}
        self.dirs -= moved_dirs
        self.dirs |= {dst + d[len(src) :] for d in moved_dirs}
        for key in [k for k in self.files if k.startswith(prefix)]:
            new_key = dst + key[len(src) :]
            self.files[new_key] = self.files.pop(key)
            self._mtimes[new_key] = self._mtimes.pop(key, self._now())
            self._ctimes[new_key] = self._ctimes.pop(key, self._now())

    async def stat(self, path: str) -> FileStat:
        path = _norm(path)
        if path in self.files:
            return FileStat(
                size=len(self.files[path].encode("utf-8")),
                modified=self._mtimes.get(path, self._now()),
                created=self._ctimes.get(path),
            )
        if path in self.dirs:
            return FileStat(size=0, modified=self._mtimes.get(path, self._now()))
        raise FileNotFoundError(path)
