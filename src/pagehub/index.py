"""WorkspaceIndexer: listing, folder synthesis and the backlink graph.

Nothing is cached between calls: every listing re-scans the workspace.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import networkx as nx
from loguru import logger

from pagehub import frontmatter
from pagehub.document import Document, Entry, FolderPlaceholder, parent_from_id, title_from_id

if TYPE_CHECKING:
    from pagehub.filesystem import FileSystem

#: Directories never descended into while scanning
SKIP_DIRS = frozenset({".git", ".trash", "node_modules", ".vscode", "assets"})


async def scan_dir(fs: "FileSystem", root: str, folder: str | None = None) -> list[str]:
    """Return the ids of every ``.md`` file under *folder* (default: whole workspace).

    System directories and dot-entries are skipped.  Ids are sorted.
    """
    base = root.rstrip("/")
    ids: list[str] = []

    async def walk(rel: str) -> None:
        path = f"{base}/{rel}" if rel else (base or "/")
        for entry in await fs.list_dir(path):
            if entry.name.startswith("."):
                continue
            child = f"{rel}/{entry.name}" if rel else entry.name
            if entry.is_dir:
                if entry.name in SKIP_DIRS:
                    continue
                await walk(child)
            elif entry.name.endswith(".md"):
                ids.append(child[:-3])

    await walk(folder.strip("/") if folder else "")
    return sorted(ids)


class WorkspaceIndexer:
    """Re-derives the document listing and link graph from disk."""

    def __init__(self, fs: "FileSystem", root: str) -> None:
        self.fs = fs
        self.root = str(root).rstrip("/") or "/"

    def _path(self, doc_id: str) -> str:
        return f"{self.root.rstrip('/')}/{doc_id}.md"

    async def scan_dir(self, folder: str | None = None) -> list[str]:
        return await scan_dir(self.fs, self.root, folder)

    async def _read(self, doc_id: str) -> str | None:
        try:
            return await self.fs.read_text(self._path(doc_id))
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning(f"Skipping unreadable document {doc_id!r}: {exc}")
            return None

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_all(self) -> list[Entry]:
        """Every document plus a placeholder for each directory lacking one."""
        entries: list[Entry] = []
        dirs_seen: set[str] = set()

        for doc_id in await self.scan_dir():
            raw = await self._read(doc_id)
            if raw is None:
                continue
            parsed = frontmatter.parse(raw)
            entries.append(
                Document(
                    id=doc_id,
                    body=parsed.body,
                    tags=parsed.tags,
                    extra=parsed.extra,
                    has_frontmatter=parsed.has_frontmatter,
                )
            )
            parts = doc_id.split("/")
            for i in range(1, len(parts)):
                dirs_seen.add("/".join(parts[:i]))

        existing = {e.id for e in entries}
        for folder in sorted(dirs_seen - existing):
            entries.append(FolderPlaceholder(id=folder))
        return entries

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    async def build_backlink_index(self) -> dict[str, set[str]]:
        """Map each target id to the ids of documents linking to it.

        ``[[title|id]]`` links use the explicit id; bare ``[[title]]`` links
        resolve through titles (the last document with a title wins).
        Self-links and unresolved titles are ignored.
        """
        ids = await self.scan_dir()
        title_to_id = {title_from_id(doc_id): doc_id for doc_id in ids}
        backlinks: dict[str, set[str]] = {}

        for source in ids:
            raw = await self._read(source)
            if raw is None:
                continue
            for link in frontmatter.parse_links(frontmatter.strip_frontmatter(raw)):
                target = link.target_id or title_to_id.get(link.title)
                if not target or target == source:
                    continue
                backlinks.setdefault(target, set()).add(source)
        return backlinks

    async def link_graph(self) -> nx.DiGraph:
        """Directed ``source -> target`` graph of every resolved wiki-link."""
        graph: nx.DiGraph = nx.DiGraph()
        for doc_id in await self.scan_dir():
            graph.add_node(doc_id, title=title_from_id(doc_id), parent=parent_from_id(doc_id))
        for target, sources in (await self.build_backlink_index()).items():
            for source in sources:
                graph.add_edge(source, target)
        return graph


def backlinks_for(
    backlinks: dict[str, set[str]], doc_id: str, entries: list[Entry] | None = None
) -> list[dict[str, Any]]:
    """Return ``{id, title}`` dicts for documents that link to *doc_id*.

    When *entries* is given, sources no longer present in the listing are
    dropped (the index may be older than the listing).
    """
    sources = backlinks.get(doc_id, set())
    if entries is not None:
        known = {e.id for e in entries}
        sources = {s for s in sources if s in known}
    return [
        {"id": s, "title": title_from_id(s)}
        for s in sorted(sources, key=lambda s: (title_from_id(s).lower(), s))
    ]
