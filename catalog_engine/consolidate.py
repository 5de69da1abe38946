"""
Consolidation Engine - Group raw operations into CRUD resources.
Version: 1.0

Single responsibility: Present one logical entity per (domain, resource)
pair instead of N separate operations, and route (resource, operation)
pairs back to the underlying catalog entry.
"""

import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from catalog_engine.contracts import (
    CRUD_OPERATIONS,
    OPERATIONS,
    CatalogEntry,
    resource_key,
)
from catalog_engine.metrics import SEARCH_DURATION, record_search
from catalog_engine.scoring_utils import normalize_text, tokenize
from catalog_engine.search_index import SearchIndex, build_search_index, search_index

logger = logging.getLogger(__name__)

DOMAIN_BOOST = 1.2
RESOURCE_BOOST = 1.4


@dataclass
class ConsolidatedResource:
    """One (domain, resource) pair and the operations available on it."""
    name: str
    domain: str
    resource: str
    operations: List[str]
    tool_map: Dict[str, str]
    summary: str
    is_full_crud: bool
    # member summaries, used for search only
    search_text: str = ""

    @property
    def key(self) -> str:
        return resource_key(self.domain, self.resource)


@dataclass
class ConsolidatedIndex:
    resources: List[ConsolidatedResource]
    total_resources: int
    full_crud_resources: int
    by_name: Dict[str, ConsolidatedResource] = field(default_factory=dict, repr=False)
    by_key: Dict[str, ConsolidatedResource] = field(default_factory=dict, repr=False)


@dataclass
class ConsolidationStats:
    original_tool_count: int
    consolidated_count: int
    reduction: int
    reduction_percent: str


@dataclass
class ConsolidatedSearchResult:
    resource: ConsolidatedResource
    score: float
    matched_terms: List[str]


def is_full_crud(operations: Iterable[str]) -> bool:
    """True iff create, get, list, update and delete are all present."""
    return CRUD_OPERATIONS.issubset(set(operations))


def consolidated_name(entry: CatalogEntry) -> str:
    """Entry name without its trailing operation ("x-http-lb-create" -> "x-http-lb")."""
    stem = re.sub(rf"[-_]{re.escape(entry.operation)}$", "", entry.name, flags=re.IGNORECASE)
    if stem and stem != entry.name:
        return stem
    return f"{entry.domain}-{entry.resource}"


def _humanize(resource: str) -> str:
    return normalize_text(resource).title()


def build_consolidated_index(entries: Iterable[CatalogEntry]) -> ConsolidatedIndex:
    """
    Group entries by (domain, resource).

    Resources keep first-seen order; operations are listed in canonical
    order. When two entries share a (resource, operation) pair the first
    one wins the tool map slot.
    """
    groups: Dict[Tuple[str, str], List[CatalogEntry]] = {}
    for entry in entries:
        groups.setdefault((entry.domain, entry.resource), []).append(entry)

    resources: List[ConsolidatedResource] = []
    by_name: Dict[str, ConsolidatedResource] = {}
    by_key: Dict[str, ConsolidatedResource] = {}

    for (domain, resource), members in groups.items():
        tool_map: Dict[str, str] = {}
        for entry in members:
            tool_map.setdefault(entry.operation, entry.name)

        operations = [op for op in OPERATIONS if op in tool_map]
        name = consolidated_name(members[0])
        if name in by_name:
            # stems collide across groups; fall back to the structural name
            name = f"{domain}-{resource}"
        base, suffix = name, 2
        while name in by_name:
            name = f"{base}-{suffix}"
            suffix += 1

        consolidated = ConsolidatedResource(
            name=name,
            domain=domain,
            resource=resource,
            operations=operations,
            tool_map=tool_map,
            summary=f"{_humanize(resource)} ({domain}): {', '.join(operations)}",
            is_full_crud=is_full_crud(operations),
            search_text=" ".join(entry.summary for entry in members if entry.summary),
        )
        resources.append(consolidated)
        by_name[name] = consolidated
        by_key.setdefault(consolidated.key, consolidated)

    return ConsolidatedIndex(
        resources=resources,
        total_resources=len(resources),
        full_crud_resources=sum(1 for r in resources if r.is_full_crud),
        by_name=by_name,
        by_key=by_key,
    )


class ConsolidationEngine:
    """
    Consolidated view of a catalog.

    Responsibilities:
    - Build and cache the consolidated index
    - Look up and search consolidated resources
    - Resolve (resource, operation) back to a catalog entry name
    """

    def __init__(
        self,
        entries: Iterable[CatalogEntry],
        min_term_length: int = 2,
        enable_fuzzy: bool = True,
        max_edit_distance: int = 2,
    ):
        self._entries: Tuple[CatalogEntry, ...] = tuple(entries)
        self.min_term_length = min_term_length
        self.enable_fuzzy = enable_fuzzy
        self.max_edit_distance = max_edit_distance
        self._index: Optional[ConsolidatedIndex] = None
        self._search_index: Optional[SearchIndex] = None
        self._build_lock = threading.RLock()

    def get_consolidated_index(self) -> ConsolidatedIndex:
        index = self._index
        if index is not None:
            return index
        with self._build_lock:
            if self._index is None:
                self._index = build_consolidated_index(self._entries)
                logger.info(
                    f"📦 Consolidated {len(self._entries)} tools into "
                    f"{self._index.total_resources} resources "
                    f"({self._index.full_crud_resources} full CRUD)"
                )
            return self._index

    def clear_cache(self) -> None:
        with self._build_lock:
            self._index = None
            self._search_index = None

    def get_consolidated_resource(self, name: str) -> Optional[ConsolidatedResource]:
        """Look up by consolidated name or by "domain/resource"."""
        index = self.get_consolidated_index()
        found = index.by_name.get(name)
        if found is None and "/" in name:
            domain, _, resource = name.partition("/")
            found = index.by_key.get(resource_key(domain, resource))
        return found

    def get_consolidated_by_domain(self, domain: str) -> List[ConsolidatedResource]:
        wanted = domain.lower()
        return [r for r in self.get_consolidated_index().resources if r.domain.lower() == wanted]

    def get_consolidation_stats(self) -> ConsolidationStats:
        original = len(self._entries)
        consolidated = self.get_consolidated_index().total_resources
        reduction = original - consolidated
        percent = (reduction / original * 100) if original else 0.0
        return ConsolidationStats(
            original_tool_count=original,
            consolidated_count=consolidated,
            reduction=reduction,
            reduction_percent=f"{percent:.1f}%",
        )

    def resolve_consolidated_tool(self, name: str, operation: str) -> Optional[str]:
        """Catalog entry name for an operation on a resource, None if unavailable."""
        resource = self.get_consolidated_resource(name)
        if resource is None:
            return None
        return resource.tool_map.get(operation.lower())

    def find_tool(self, domain: str, resource: str, operation: str) -> Optional[str]:
        """Catalog entry name for (domain, resource, operation), separator-insensitive."""
        found = self.get_consolidated_index().by_key.get(resource_key(domain, resource))
        if found is None:
            return None
        return found.tool_map.get(operation.lower())

    # ═══════════════════════════════════════════════
    # SEARCH
    # ═══════════════════════════════════════════════

    def _get_search_index(self) -> SearchIndex:
        search_idx = self._search_index
        if search_idx is not None:
            return search_idx
        with self._build_lock:
            if self._search_index is None:
                index = self.get_consolidated_index()
                # Resource-level records indexed with the same tokenizer as tools
                records = [
                    CatalogEntry(
                        name=r.name,
                        domain=r.domain,
                        resource=r.resource,
                        operation=r.operations[0] if r.operations else "get",
                        summary=f"{r.summary} {r.search_text}",
                    )
                    for r in index.resources
                ]
                self._search_index = build_search_index(records, self.min_term_length)
            return self._search_index
    def search_consolidated_resources(
        self,
        query: str,
        limit: int = 10,
        domains: Optional[List[str]] = None,
        min_score: float = 0.1,
    ) -> List[ConsolidatedSearchResult]:
        """
        Search consolidated resources with the tool-search scoring.

        Boosts: domain containing the first query word x1.2, resource
        containing the whole normalized query x1.4. Scores are capped at 1.0.
        """
        with SEARCH_DURATION.labels(kind="resources").time():
            results = self._rank_resources(query, limit, domains, min_score)

        record_search("resources", len(results))
        return results

    def _rank_resources(
        self,
        query: str,
        limit: int,
        domains: Optional[List[str]],
        min_score: float,
    ) -> List[ConsolidatedSearchResult]:
        query_terms = tokenize(query, self.min_term_length)
        if not query_terms or limit <= 0:
            return []

        index = self.get_consolidated_index()
        raw_scores = search_index(
            self._get_search_index(),
            query_terms,
            enable_fuzzy=self.enable_fuzzy,
            max_edit_distance=self.max_edit_distance,
            min_term_length=self.min_term_length,
        )

        allowed = {d.lower() for d in domains} if domains else None
        normalized_query = normalize_text(query)
        first_word = normalize_text(query.split(" ")[0])

        results: List[ConsolidatedSearchResult] = []
        for name, (base_score, matched) in raw_scores.items():
            resource = index.by_name.get(name)
            if resource is None:
                continue
            if allowed is not None and resource.domain.lower() not in allowed:
                continue

            score = base_score / len(query_terms)
            if first_word and first_word in normalize_text(resource.domain):
                score *= DOMAIN_BOOST
            if normalized_query in normalize_text(resource.resource):
                score *= RESOURCE_BOOST
            score = min(score, 1.0)

            if score >= min_score:
                results.append(ConsolidatedSearchResult(resource, score, matched))

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]
