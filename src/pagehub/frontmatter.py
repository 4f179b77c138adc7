"""YAML-frontmatter codec and wiki-link parser.

Only ``tags`` is interpreted; every other frontmatter key is carried through
untouched so that fields written by other tools survive a save.  Files that
never had a header are written back as plain markdown.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

import yaml

from pagehub.document import FOLDER_TAG

# Opening and closing ``---`` lines; the block between them may be empty.
_FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(?:(.*?)\r?\n)??---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL,
)
# [[Title]] or [[Title|page/id]]
_WIKILINK_RE = re.compile(r"\[\[([^\]|]+?)(?:\|([^\]]+?))?\]\]")


@dataclass
class ParsedFile:
    tags: list[str] = field(default_factory=list)
    body: str = ""
    extra: dict[Any, Any] = field(default_factory=dict)
    has_frontmatter: bool = False


@dataclass(frozen=True)
class WikiLink:
    title: str
    #: Explicit target id from the ``[[title|id]]`` form, ``None`` for bare links
    target_id: str | None = None


class _Dumper(yaml.SafeDumper):
    """Block-style mappings, but ``[a, b]`` for lists of scalars such as tags."""


def _represent_list(dumper: yaml.SafeDumper, data: list[Any]) -> yaml.Node:
    flat = all(item is None or isinstance(item, (str, int, float, bool)) for item in data)
    return dumper.represent_sequence("tag:yaml.org,2002:seq", data, flow_style=flat)


_Dumper.add_representer(list, _represent_list)


def _split(raw: str) -> tuple[dict[str, Any] | None, str]:
    match = _FRONTMATTER_RE.match(raw)
    if not match:
        return None, raw
    try:
        meta = yaml.safe_load(match.group(1) or "")
    except yaml.YAMLError:
        return None, raw
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        return None, raw
    return meta, raw[match.end() :]


def _normalise_tags(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items: list[Any] = [t.strip() for t in value.split(",")]
    elif isinstance(value, (list, tuple, set)):
        items = list(value)
    else:
        items = [value]
    tags = [str(t).strip() for t in items if t is not None and str(t).strip()]
    return list(dict.fromkeys(tags))


def parse(raw: str) -> ParsedFile:
    """Split *raw* file content into tags, body and pass-through fields.

    A header that is not valid YAML, or not a mapping, is not treated as a
    header at all: the whole content becomes the body so nothing is lost.
    """
    meta, body = _split(raw)
    if meta is None:
        return ParsedFile(body=raw)
    extra = {k: v for k, v in meta.items() if k != "tags"}
    return ParsedFile(
        tags=_normalise_tags(meta.get("tags")),
        body=body,
        extra=extra,
        has_frontmatter=True,
    )


def serialize(tags: list[str], body: str, extra: dict[Any, Any] | None = None) -> str:
    """Render a document file.

    The reserved folder tag is dropped.  When neither tags nor extra
    fields are populated the header is omitted and *body* is returned as-is,
    unless the body itself starts with something that would parse as a header,
    in which case an empty header protects it.
    """
    meta: dict[Any, Any] = dict(extra or {})
    persisted = [t for t in dict.fromkeys(tags) if t != FOLDER_TAG]
    if persisted:
        meta["tags"] = persisted
    else:
        meta.pop("tags", None)

    if not meta:
        if _split(body)[0] is not None:
            return f"---\n---\n{body}"
        return body

    dumped = yaml.dump(
        meta,
        Dumper=_Dumper,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=10_000,
    )
    return f"---\n{dumped}---\n{body}"


def strip_frontmatter(raw: str) -> str:
    """Return the markdown body of *raw* without its header."""
    return parse(raw).body


def parse_links(text: str) -> list[WikiLink]:
    """Return every wiki-link in *text* (de-duped, ordered)."""
    seen: set[WikiLink] = set()
    result: list[WikiLink] = []
    for m in _WIKILINK_RE.finditer(text):
        title = m.group(1).strip()
        target = m.group(2).strip() if m.group(2) else None
        link = WikiLink(title=title, target_id=target or None)
        if title and link not in seen:
            seen.add(link)
            result.append(link)
    return result
