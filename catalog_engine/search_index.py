"""
Search Index - Inverted index over catalog entries.
Version: 1.0

Single responsibility: Map terms, domains and operations to entry ids,
and score query terms against the index with exact, fuzzy and prefix
matching.

The index is a pure function of its input entries and is never mutated
after build: a rebuild produces a new SearchIndex object.
"""

import logging
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Set, Tuple

from catalog_engine.contracts import CatalogEntry
from catalog_engine.scoring_utils import levenshtein_distance, normalize_text, tokenize

logger = logging.getLogger(__name__)

EXACT_MATCH_SCORE = 1.0
FUZZY_MATCH_WEIGHT = 0.7
PREFIX_MATCH_SCORE = 0.5


@dataclass(frozen=True)
class IndexConfig:
    """Index build and search options."""
    min_term_length: int = 2
    enable_fuzzy: bool = True
    max_edit_distance: int = 2


@dataclass(frozen=True)
class SearchIndex:
    """
    Inverted index structure.

    Every table maps a key to the ids that carry it, in first-seen order.
    """
    terms: Mapping[str, Tuple[str, ...]]
    domains: Mapping[str, Tuple[str, ...]]
    operations: Mapping[str, Tuple[str, ...]]
    tools_by_id: Mapping[str, CatalogEntry]
    # term length -> terms, narrows the fuzzy scan
    terms_by_length: Mapping[int, Tuple[str, ...]]
    min_term_length: int
    build_time: float


def _freeze(table: Dict[str, Dict[str, None]]) -> Mapping[str, Tuple[str, ...]]:
    return MappingProxyType({key: tuple(ids) for key, ids in table.items()})


def _add(table: Dict[str, Dict[str, None]], key: str, tool_id: str) -> None:
    # dict keys double as an insertion-ordered set
    table.setdefault(key, {})[tool_id] = None


def searchable_text(entry: CatalogEntry) -> str:
    """Identifying text of an entry, as indexed."""
    return " ".join([entry.name, entry.domain, entry.resource, entry.operation, entry.summary])


def build_search_index(
    entries: Iterable[CatalogEntry],
    min_term_length: int = 2,
) -> SearchIndex:
    """
    Build search index from catalog entries.

    Args:
        entries: Catalog entries to index
        min_term_length: Shorter terms are not indexed

    Returns:
        Built search index
    """
    terms: Dict[str, Dict[str, None]] = {}
    domains: Dict[str, Dict[str, None]] = {}
    operations: Dict[str, Dict[str, None]] = {}
    tools_by_id: Dict[str, CatalogEntry] = {}

    for entry in entries:
        tool_id = entry.name
        tools_by_id[tool_id] = entry

        _add(domains, entry.domain.lower(), tool_id)
        _add(operations, entry.operation.lower(), tool_id)

        for term in tokenize(searchable_text(entry), min_term_length):
            _add(terms, term, tool_id)

    by_length: Dict[int, List[str]] = {}
    for term in terms:
        by_length.setdefault(len(term), []).append(term)

    index = SearchIndex(
        terms=_freeze(terms),
        domains=_freeze(domains),
        operations=_freeze(operations),
        tools_by_id=MappingProxyType(tools_by_id),
        terms_by_length=MappingProxyType({k: tuple(v) for k, v in by_length.items()}),
        min_term_length=min_term_length,
        build_time=time.time(),
    )
    logger.debug(f"Search index built: {len(tools_by_id)} tools, {len(terms)} terms")
    return index


def _approximate_matches(
    index: SearchIndex,
    query_term: str,
    config: IndexConfig,
) -> List[Tuple[str, float]]:
    """
    Fuzzy and prefix matches for a term with no exact hit.

    A term matching both ways contributes the larger score once.
    Candidates are returned in index term order.
    """
    best: Dict[str, float] = {}
    max_distance = config.max_edit_distance
    query_length = len(query_term)

    # Fuzzy: only terms whose length is within max_edit_distance can match
    if max_distance > 0:
        for length in range(max(1, query_length - max_distance), query_length + max_distance + 1):
            for term in index.terms_by_length.get(length, ()):
                distance = levenshtein_distance(query_term, term)
                if distance <= max_distance:
                    score = (1 - distance / max_distance) * FUZZY_MATCH_WEIGHT
                    if score > 0:
                        best[term] = score

    # Prefix: partial words ("loadbal" -> "loadbalancer")
    for length, terms in index.terms_by_length.items():
        if length <= query_length:
            continue
        for term in terms:
            if term.startswith(query_term):
                best[term] = max(best.get(term, 0.0), PREFIX_MATCH_SCORE)

    return [(term, best[term]) for term in index.terms if term in best]


def search_index(
    index: SearchIndex,
    query_terms: List[str],
    enable_fuzzy: bool = True,
    max_edit_distance: int = 2,
    min_term_length: int = 2,
) -> Dict[str, Tuple[float, List[str]]]:
    """
    Score index entries against query terms.

    Exact term matches score 1.0. Only when a term has no exact match
    (and fuzzy matching is enabled) are fuzzy and prefix matches tried.
    Scores accumulate across terms, repeated terms included.

    Args:
        index: Built search index
        query_terms: Tokenized search terms
        enable_fuzzy: Allow approximate matches
        max_edit_distance: Largest Levenshtein distance accepted as a fuzzy match
        min_term_length: Shorter query terms are skipped

    Returns:
        tool id -> (accumulated score, matched query terms), in discovery order
    """
    config = IndexConfig(
        min_term_length=min_term_length,
        enable_fuzzy=enable_fuzzy,
        max_edit_distance=max_edit_distance,
    )
    scores: Dict[str, float] = {}
    matched: Dict[str, List[str]] = {}

    def credit(tool_ids: Iterable[str], amount: float, query_term: str) -> None:
        for tool_id in tool_ids:
            scores[tool_id] = scores.get(tool_id, 0.0) + amount
            terms = matched.setdefault(tool_id, [])
            if query_term not in terms:
                terms.append(query_term)

    for raw_term in query_terms:
        query_term = normalize_text(raw_term).replace(" ", "")
        if len(query_term) < config.min_term_length:
            continue

        exact = index.terms.get(query_term)
        if exact:
            credit(exact, EXACT_MATCH_SCORE, query_term)
            continue

        if not config.enable_fuzzy:
            continue

        for term, score in _approximate_matches(index, query_term, config):
            credit(index.terms[term], score, query_term)

    return {tool_id: (score, matched[tool_id]) for tool_id, score in scores.items()}


def _filter(table: Mapping[str, Tuple[str, ...]], values: Iterable[str]) -> Set[str]:
    result: Set[str] = set()
    for value in values:
        result.update(table.get(value.lower(), ()))
    return result


def filter_by_domain(index: SearchIndex, domains: Iterable[str]) -> Set[str]:
    """Ids of entries in any of the given domains (case-insensitive)."""
    return _filter(index.domains, domains)


def filter_by_operation(index: SearchIndex, operations: Iterable[str]) -> Set[str]:
    """Ids of entries with any of the given operations (case-insensitive)."""
    return _filter(index.operations, operations)


def get_index_stats(index: SearchIndex) -> Dict[str, float]:
    """Index statistics for monitoring and debugging."""
    total_tools = len(index.tools_by_id)
    total_term_refs = sum(len(ids) for ids in index.terms.values())

    return {
        "total_tools": total_tools,
        "total_terms": len(index.terms),
        "total_domains": len(index.domains),
        "total_operations": len(index.operations),
        "avg_terms_per_tool": total_term_refs / total_tools if total_tools else 0.0,
        "build_time": index.build_time,
        "age_ms": (time.time() - index.build_time) * 1000,
    }
