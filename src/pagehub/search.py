"""SearchIndex: fuzzy / prefix search over document titles and tags.

Each document contributes two fields, ``title`` and ``tags`` (the tags joined
by spaces).  Query terms match indexed terms exactly, as a prefix, or within a
bounded edit distance (20% of the query term length), with title hits
weighted double.  Edit distances come from :mod:`rapidfuzz`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from rapidfuzz.distance import Levenshtein

if TYPE_CHECKING:
    from pagehub.document import Entry

FIELD_BOOST = {"title": 2.0, "tags": 1.0}
FUZZY_RATIO = 0.2

_EXACT_WEIGHT = 1.0
_PREFIX_WEIGHT = 0.5
_FUZZY_WEIGHT = 0.45

_TOKEN_RE = re.compile(r"[^\W_]+", re.UNICODE)


def tokenize(text: str) -> list[str]:
    return [t.casefold() for t in _TOKEN_RE.findall(text)]


@dataclass
class SearchResult:
    id: str
    title: str
    score: float
    #: Matched indexed term -> fields it matched in
    match: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class _Indexed:
    title: str
    terms: dict[str, set[str]]  # field -> terms


class SearchIndex:
    """In-memory index, rebuilt wholesale or updated one document at a time."""

    def __init__(self) -> None:
        self._docs: dict[str, _Indexed] = {}
        # term -> doc id -> fields containing the term
        self._postings: dict[str, dict[str, set[str]]] = {}

    def __len__(self) -> int:
        return len(self._docs)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._docs

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def rebuild(self, entries: Iterable["Entry"]) -> None:
        """Replace the whole index with *entries* (folders are skipped)."""
        self._docs = {}
        self._postings = {}
        for entry in entries:
            self.add_document(entry)

    def add_document(self, entry: "Entry") -> None:
        """Index one document, replacing any previous version of it."""
        if entry.is_folder:
            return
        if entry.id in self._docs:
            self.remove_document(entry.id)
        fields = {
            "title": set(tokenize(entry.title)),
            "tags": set(tokenize(" ".join(entry.tags))),
        }
        self._docs[entry.id] = _Indexed(title=entry.title, terms=fields)
        for field_name, terms in fields.items():
            for term in terms:
                self._postings.setdefault(term, {}).setdefault(entry.id, set()).add(field_name)

    def remove_document(self, doc_id: str) -> bool:
        """Drop *doc_id* from the index; returns ``False`` if it was not indexed."""
        indexed = self._docs.pop(doc_id, None)
        if indexed is None:
            return False
        for terms in indexed.terms.values():
            for term in terms:
                postings = self._postings.get(term)
                if postings is None:
                    continue
                postings.pop(doc_id, None)
                if not postings:
                    del self._postings[term]
        return True

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    @staticmethod
    def _term_weight(query: str, term: str) -> float:
        if term == query:
            return _EXACT_WEIGHT
        weight = 0.0
        if term.startswith(query):
            weight = _PREFIX_WEIGHT * len(query) / len(term)
        max_distance = round(FUZZY_RATIO * len(query))
        if max_distance and abs(len(term) - len(query)) <= max_distance:
            distance = Levenshtein.distance(query, term, score_cutoff=max_distance)
            if distance <= max_distance:
                fuzzy = _FUZZY_WEIGHT * (1 - distance / max(len(query), len(term)))
                weight = max(weight, fuzzy)
        return weight

    def search(self, query: str) -> list[SearchResult]:
        """Ranked matches for *query*; a blank query matches nothing."""
        if not query.strip():
            return []
        query_terms = list(dict.fromkeys(tokenize(query)))
        scores: dict[str, float] = {}
        matches: dict[str, dict[str, set[str]]] = {}

        for q in query_terms:
            for term, postings in self._postings.items():
                weight = self._term_weight(q, term)
                if weight <= 0:
                    continue
                for doc_id, fields in postings.items():
                    scores[doc_id] = scores.get(doc_id, 0.0) + weight * sum(
                        FIELD_BOOST[f] for f in fields
                    )
                    matches.setdefault(doc_id, {}).setdefault(term, set()).update(fields)

        results = [
            SearchResult(
                id=doc_id,
                title=self._docs[doc_id].title,
                score=score,
                match={t: sorted(f) for t, f in matches[doc_id].items()},
            )
            for doc_id, score in scores.items()
        ]
        results.sort(key=lambda r: (-r.score, r.title.casefold(), r.id))
        return results
