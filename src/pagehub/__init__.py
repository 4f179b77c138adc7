"""pagehub: local-first markdown workspace library."""

from pagehub.config import SyncSettings
from pagehub.context import Snapshot, WorkspaceContext, WorkspaceSession
from pagehub.document import Document, Entry, FolderPlaceholder
from pagehub.filesystem import LocalFileSystem, MemoryFileSystem
from pagehub.frontmatter import parse, parse_links, serialize
from pagehub.index import WorkspaceIndexer
from pagehub.search import SearchIndex
from pagehub.store import DocumentStore
from pagehub.tree import build_tree, filter_by_tag, find_node, get_ancestors

__all__ = [
    "Document",
    "FolderPlaceholder",
    "Entry",
    "parse",
    "serialize",
    "parse_links",
    "DocumentStore",
    "WorkspaceIndexer",
    "SearchIndex",
    "build_tree",
    "find_node",
    "get_ancestors",
    "filter_by_tag",
    "LocalFileSystem",
    "MemoryFileSystem",
    "SyncSettings",
    "Snapshot",
    "WorkspaceContext",
    "WorkspaceSession",
]
