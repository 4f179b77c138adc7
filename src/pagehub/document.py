"""Document and FolderPlaceholder dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

#: Tag reported by folder placeholders; never written to a real file.
FOLDER_TAG = "__folder"


def title_from_id(doc_id: str) -> str:
    """Display title of a document: the final path segment of its id."""
    return doc_id.rsplit("/", 1)[-1] or doc_id


def parent_from_id(doc_id: str) -> str | None:
    """Parent folder id, or ``None`` for entries at the workspace root."""
    if "/" not in doc_id:
        return None
    return doc_id.rsplit("/", 1)[0]


@dataclass
class Document:
    """A single markdown page in the workspace."""

    id: str
    body: str = ""
    tags: list[str] = field(default_factory=list)
    #: Frontmatter keys not owned by the app, re-emitted verbatim on save
    extra: dict[Any, Any] = field(default_factory=dict)
    has_frontmatter: bool = False

    is_folder = False

    @property
    def title(self) -> str:
        return title_from_id(self.id)

    @property
    def parent(self) -> str | None:
        return parent_from_id(self.id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "parent": self.parent,
            "tags": list(self.tags),
            "body": self.body,
            "extra": dict(self.extra),
        }


@dataclass(frozen=True)
class FolderPlaceholder:
    """A directory that holds documents but has no document of its own.

    Placeholders only exist in memory; they are not editable content.
    """

    id: str

    is_folder = True

    @property
    def title(self) -> str:
        return title_from_id(self.id)

    @property
    def parent(self) -> str | None:
        return parent_from_id(self.id)

    @property
    def tags(self) -> tuple[str, ...]:
        return (FOLDER_TAG,)

    @property
    def body(self) -> str:
        return ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "parent": self.parent,
            "tags": list(self.tags),
        }


Entry = Union[Document, FolderPlaceholder]
