"""DocumentStore: CRUD over path-addressed markdown files.

A document id is its workspace-relative path without the ``.md`` extension,
so ``guides/Getting Started`` lives at ``<root>/guides/Getting Started.md``.
Deleting never erases: files are moved into ``<root>/.trash/`` with the id
flattened into a single file name (``/`` becomes ``__``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from loguru import logger

from pagehub import frontmatter
from pagehub.document import Document, Entry, FolderPlaceholder, parent_from_id, title_from_id
from pagehub.errors import DocumentNotFoundError, PageHubError
from pagehub.index import scan_dir

if TYPE_CHECKING:
    from pagehub.filesystem import FileSystem

TRASH_DIR = ".trash"
TRASH_JOIN = "__"
DEFAULT_NAME = "untitled"

_UNSAFE_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')
_REPEAT_RE = re.compile(r"_{2,}")
_EDGE_DOTS_RE = re.compile(r"^\.+|\.+$")


def sanitize_filename(title: str) -> str:
    """Turn a free-form title into a safe file name (without extension)."""
    name = _UNSAFE_RE.sub("_", title or "").strip()
    name = _REPEAT_RE.sub("_", name)
    name = _EDGE_DOTS_RE.sub("", name).strip()
    return name or DEFAULT_NAME


def flatten_id(doc_id: str) -> str:
    return doc_id.replace("/", TRASH_JOIN)


def unflatten_name(name: str) -> str:
    stem = name[:-3] if name.endswith(".md") else name
    return stem.replace(TRASH_JOIN, "/")


@dataclass(frozen=True)
class TrashEntry:
    #: File name inside the trash directory, e.g. ``guides__intro.md``
    name: str
    original_id: str
    deleted_at: datetime | None

    @property
    def title(self) -> str:
        return title_from_id(self.original_id)


class DocumentStore:
    """Create, read, update, rename and soft-delete workspace documents."""

    def __init__(self, fs: "FileSystem", root: str) -> None:
        self.fs = fs
        self.root = str(root).rstrip("/") or "/"

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _join(self, rel: str) -> str:
        return f"{self.root.rstrip('/')}/{rel}"

    def path_for(self, doc_id: str) -> str:
        return self._join(f"{doc_id}.md")

    @property
    def trash_dir(self) -> str:
        return self._join(TRASH_DIR)

    async def _unique_id(self, base_id: str) -> str:
        if not await self.fs.exists(self.path_for(base_id)):
            return base_id
        n = 2
        while await self.fs.exists(self.path_for(f"{base_id} ({n})")):
            n += 1
        return f"{base_id} ({n})"

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def create(self, title: str, parent_folder: str | None = None) -> Document:
        """Create an empty, header-less document and return it.

        Never overwrites: a taken name is suffixed ``(2)``, ``(3)`` and so on.
        """
        folder = parent_folder.strip("/") if parent_folder else None
        name = sanitize_filename(title)
        base_id = f"{folder}/{name}" if folder else name
        doc_id = await self._unique_id(base_id)

        if folder:
            await self.fs.makedirs(self._join(folder))

        doc = Document(id=doc_id)
        await self.fs.write_text(self.path_for(doc_id), frontmatter.serialize([], ""))
        logger.info(f"Created document {doc_id!r}")
        return doc

    async def get(self, doc_id: str) -> Entry:
        """Load a document; a missing file yields a :class:`FolderPlaceholder`."""
        path = self.path_for(doc_id)
        if not await self.fs.exists(path):
            return FolderPlaceholder(id=doc_id)
        parsed = frontmatter.parse(await self.fs.read_text(path))
        return Document(
            id=doc_id,
            body=parsed.body,
            tags=parsed.tags,
            extra=parsed.extra,
            has_frontmatter=parsed.has_frontmatter,
        )

    async def update(self, doc: Document) -> None:
        """Rewrite the whole file at ``doc.id``."""
        if isinstance(doc, FolderPlaceholder):
            raise ValueError(f"{doc.id!r} is a folder, not an editable document")
        content = frontmatter.serialize(doc.tags, doc.body, doc.extra)
        await self.fs.write_text(self.path_for(doc.id), content)
        logger.debug(f"Saved document {doc.id!r}")

    async def rename(self, doc_id: str, new_title: str) -> str:
        """Rename the file behind *doc_id* within its folder; returns the new id."""
        parent = parent_from_id(doc_id)
        name = sanitize_filename(new_title)
        new_id = f"{parent}/{name}" if parent else name
        if new_id == doc_id:
            return doc_id

        if not await self.fs.exists(self.path_for(doc_id)):
            raise DocumentNotFoundError(doc_id)
        final_id = await self._unique_id(new_id)
        await self.fs.rename(self.path_for(doc_id), self.path_for(final_id))
        logger.info(f"Renamed document {doc_id!r} -> {final_id!r}")
        return final_id

    async def delete(self, doc_id: str) -> str:
        """Move *doc_id* into the trash and return its trash file name.

        Two ids can flatten to the same name; the later one is suffixed
        ``(2)``, ``(3)``... rather than overwriting the earlier trash entry.
        """
        src = self.path_for(doc_id)
        if not await self.fs.exists(src):
            raise DocumentNotFoundError(doc_id)
        await self.fs.makedirs(self.trash_dir)

        stem = flatten_id(doc_id)
        name = f"{stem}.md"
        n = 2
        while await self.fs.exists(f"{self.trash_dir}/{name}"):
            name = f"{stem} ({n}).md"
            n += 1
        await self.fs.rename(src, f"{self.trash_dir}/{name}")
        logger.info(f"Moved document {doc_id!r} to trash as {name!r}")
        return name

    async def copy(self, doc_id: str) -> Document:
        """Duplicate a document next to the original as ``<title> (copy)``."""
        original = await self.get(doc_id)
        if isinstance(original, FolderPlaceholder):
            raise DocumentNotFoundError(doc_id)
        duplicate = await self.create(f"{original.title} (copy)", original.parent)
        duplicate.body = original.body
        duplicate.tags = [t for t in original.tags if not t.startswith("__")]
        duplicate.extra = dict(original.extra)
        await self.update(duplicate)
        return duplicate

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    async def rename_folder(self, folder_id: str, new_name: str) -> str:
        """Move a folder (and everything under it); returns the new folder id."""
        parent = parent_from_id(folder_id)
        name = sanitize_filename(new_name)
        base_id = f"{parent}/{name}" if parent else name
        if base_id == folder_id:
            return folder_id

        new_id = base_id
        n = 2
        while await self.fs.exists(self._join(new_id)):
            new_id = f"{base_id} ({n})"
            n += 1
        await self.fs.rename(self._join(folder_id), self._join(new_id))
        logger.info(f"Renamed folder {folder_id!r} -> {new_id!r}")
        return new_id

    async def delete_folder(self, folder_id: str) -> list[str]:
        """Trash every document under *folder_id*, then drop the directory.

        Best-effort: a document that cannot be moved is logged and skipped,
        and a directory that is already gone is not an error.
        """
        dir_path = self._join(folder_id)
        trashed: list[str] = []
        for doc_id in await scan_dir(self.fs, self.root, folder_id):
            try:
                await self.delete(doc_id)
            except (OSError, PageHubError) as exc:
                logger.warning(f"Could not trash {doc_id!r} while deleting folder: {exc}")
                continue
            trashed.append(doc_id)

        try:
            await self.fs.remove_tree(dir_path)
        except OSError as exc:
            logger.debug(f"Folder {folder_id!r} not removed: {exc}")
        logger.info(f"Deleted folder {folder_id!r} ({len(trashed)} documents trashed)")
        return trashed

    # ------------------------------------------------------------------
    # Trash
    # ------------------------------------------------------------------

    async def list_trash(self) -> list[TrashEntry]:
        """Trashed documents, most recently modified first."""
        if not await self.fs.exists(self.trash_dir):
            return []
        entries: list[TrashEntry] = []
        for entry in await self.fs.list_dir(self.trash_dir):
            if not entry.is_file or not entry.name.endswith(".md"):
                continue
            try:
                deleted_at: datetime | None = (
                    await self.fs.stat(f"{self.trash_dir}/{entry.name}")
                ).modified
            except OSError:
                deleted_at = None
            entries.append(
                TrashEntry(name=entry.name, original_id=unflatten_name(entry.name), deleted_at=deleted_at)
            )
        oldest = datetime.min.replace(tzinfo=timezone.utc)
        entries.sort(key=lambda e: e.deleted_at or oldest, reverse=True)
        return entries

    async def restore(self, name: str) -> str:
        """Move a trash entry back to its original location; returns its id."""
        src = f"{self.trash_dir}/{name}"
        if not await self.fs.exists(src):
            raise DocumentNotFoundError(name)
        doc_id = await self._unique_id(unflatten_name(name))
        await self.fs.rename(src, self.path_for(doc_id))
        logger.info(f"Restored {name!r} from trash as {doc_id!r}")
        return doc_id

    async def purge(self, name: str) -> None:
        """Permanently delete one trash entry."""
        await self.fs.remove_file(f"{self.trash_dir}/{name}")
        logger.info(f"Purged {name!r} from trash")

    async def cleanup_trash(self, max_age_days: int = 30, now: datetime | None = None) -> list[str]:
        """Purge trash entries older than *max_age_days*; returns purged names.

        Entries whose age cannot be determined are kept.
        """
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=max_age_days)
        purged: list[str] = []
        for entry in await self.list_trash():
            if entry.deleted_at is None or entry.deleted_at >= cutoff:
                continue
            try:
                await self.purge(entry.name)
            except OSError as exc:
                logger.warning(f"Could not purge {entry.name!r}: {exc}")
                continue
            purged.append(entry.name)
        return purged
