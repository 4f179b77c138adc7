"""Unit tests for pagehub.index.WorkspaceIndexer."""

import textwrap

import pytest

from pagehub.document import Document, FolderPlaceholder
from pagehub.filesystem import MemoryFileSystem
from pagehub.index import WorkspaceIndexer, backlinks_for

ROOT = "/ws"


async def _write_doc(fs: MemoryFileSystem, doc_id: str, content: str) -> None:
    path = f"{ROOT}/{doc_id}.md"
    await fs.makedirs(path.rsplit("/", 1)[0])
    await fs.write_text(path, textwrap.dedent(content))


@pytest.fixture()
async def indexer(fs: MemoryFileSystem) -> WorkspaceIndexer:
    """Workspace with a folder, a folder document and cross-links."""
    await _write_doc(fs, "Alpha", """\
        ---
        tags: [first]
        ---
        See [[Bee|notes/Beta]] and [[Gamma]].
    """)
    await _write_doc(fs, "notes/Beta", """\
        Links back to [[Alpha]] and to itself: [[Beta]].
    """)
    await _write_doc(fs, "notes/deep/Gamma", """\
        ---
        tags: [first, second]
        related: "[[Alpha]]"
        ---
        Standalone.
    """)
    await _write_doc(fs, "projects", "Folder page for projects.\n")
    await _write_doc(fs, "projects/Plan", "[[Nowhere]] and [[Beta]]\n")
    return WorkspaceIndexer(fs, ROOT)


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------


class TestScan:
    async def test_scan_all_sorted(self, indexer: WorkspaceIndexer):
        assert await indexer.scan_dir() == [
            "Alpha",
            "notes/Beta",
            "notes/deep/Gamma",
            "projects",
            "projects/Plan",
        ]

    async def test_scan_folder(self, indexer: WorkspaceIndexer):
        assert await indexer.scan_dir("notes") == ["notes/Beta", "notes/deep/Gamma"]

    async def test_system_and_hidden_entries_skipped(
        self, indexer: WorkspaceIndexer, fs: MemoryFileSystem
    ):
        for doc_id in (".trash/Old", ".git/HEAD", "assets/img", "node_modules/x", ".hidden"):
            await _write_doc(fs, doc_id, "x")
        await fs.write_text(f"{ROOT}/readme.txt", "not markdown")
        assert ".trash/Old" not in await indexer.scan_dir()
        assert len(await indexer.scan_dir()) == 5


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


class TestListAll:
    async def test_documents_parsed(self, indexer: WorkspaceIndexer):
        entries = {e.id: e for e in await indexer.list_all()}
        alpha = entries["Alpha"]
        assert isinstance(alpha, Document)
        assert alpha.tags == ["first"]
        assert alpha.has_frontmatter
        gamma = entries["notes/deep/Gamma"]
        assert gamma.extra == {"related": "[[Alpha]]"}

    async def test_placeholders_for_folders_without_document(self, indexer: WorkspaceIndexer):
        entries = await indexer.list_all()
        placeholders = sorted(e.id for e in entries if isinstance(e, FolderPlaceholder))
        # "projects" has its own document, so no placeholder
        assert placeholders == ["notes", "notes/deep"]
        assert all(e.is_folder for e in entries if e.id in placeholders)

    async def test_unreadable_document_skipped(self):
        class Flaky(MemoryFileSystem):
            async def read_text(self, path: str) -> str:
                if path.endswith("/bad.md"):
                    raise PermissionError(path)
                return await super().read_text(path)

        flaky = Flaky()
        await flaky.makedirs(ROOT)
        await flaky.write_text(f"{ROOT}/good.md", "ok")
        await flaky.write_text(f"{ROOT}/bad.md", "never read")
        entries = await WorkspaceIndexer(flaky, ROOT).list_all()
        assert [e.id for e in entries] == ["good"]


# ---------------------------------------------------------------------------
# Backlinks
# ---------------------------------------------------------------------------


class TestBacklinks:
    async def test_explicit_and_title_links(self, indexer: WorkspaceIndexer):
        backlinks = await indexer.build_backlink_index()
        # Alpha uses the explicit form, Plan the bare title
        assert backlinks["notes/Beta"] == {"Alpha", "projects/Plan"}
        assert backlinks["Alpha"] == {"notes/Beta"}
        assert backlinks["notes/deep/Gamma"] == {"Alpha"}

    async def test_self_links_ignored(self, indexer: WorkspaceIndexer):
        backlinks = await indexer.build_backlink_index()
        assert "notes/Beta" not in backlinks["notes/Beta"]

    async def test_links_in_header_ignored(self, indexer: WorkspaceIndexer):
        backlinks = await indexer.build_backlink_index()
        assert "notes/deep/Gamma" not in backlinks["Alpha"]

    async def test_unresolved_links_dropped(self, indexer: WorkspaceIndexer):
        backlinks = await indexer.build_backlink_index()
        assert "Nowhere" not in backlinks

    async def test_backlinks_for_sorted_by_title(self, indexer: WorkspaceIndexer):
        backlinks = await indexer.build_backlink_index()
        assert backlinks_for(backlinks, "notes/Beta") == [
            {"id": "Alpha", "title": "Alpha"},
            {"id": "projects/Plan", "title": "Plan"},
        ]

    async def test_backlinks_for_filters_stale_sources(self, indexer: WorkspaceIndexer):
        backlinks = await indexer.build_backlink_index()
        entries = [e for e in await indexer.list_all() if e.id != "Alpha"]
        assert backlinks_for(backlinks, "notes/Beta", entries) == [
            {"id": "projects/Plan", "title": "Plan"}
        ]

    async def test_backlinks_for_unknown_id(self):
        assert backlinks_for({}, "missing") == []


class TestLinkGraph:
    async def test_edges_follow_links(self, indexer: WorkspaceIndexer):
        graph = await indexer.link_graph()
        assert graph.has_edge("Alpha", "notes/Beta")
        assert graph.has_edge("notes/Beta", "Alpha")
        assert not graph.has_edge("notes/Beta", "notes/Beta")
        assert graph.nodes["notes/deep/Gamma"]["title"] == "Gamma"
        assert graph.nodes["notes/deep/Gamma"]["parent"] == "notes/deep"
        assert set(graph.predecessors("notes/Beta")) == {"Alpha", "projects/Plan"}
