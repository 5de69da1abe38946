"""
Search Engine - Ranked natural-language search over the catalog.
Version: 1.0

Single responsibility: Turn a free-text query into a ranked, filtered
list of catalog entries on top of the inverted index.

Scoring:
    base = accumulated index score / number of query terms
    x1.2  entry domain contains the first whitespace-separated query word
    x1.3  query mentions the entry's operation (first keyword in
          create, get, list, update, delete, patch order)
    x1.4  entry resource contains the whole normalized query
    capped at 1.0
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from catalog_engine.config import Settings, get_settings
from catalog_engine.contracts import OPERATIONS, CatalogEntry, IndexMetadata
from catalog_engine.dependencies import DependencyGraphResolver
from catalog_engine.metrics import SEARCH_DURATION, record_search
from catalog_engine.scoring_utils import normalize_text, tokenize
from catalog_engine.search_index import (
    SearchIndex,
    filter_by_domain,
    filter_by_operation,
    search_index,
)

logger = logging.getLogger(__name__)

DOMAIN_BOOST = 1.2
OPERATION_BOOST = 1.3
RESOURCE_BOOST = 1.4


@dataclass
class PrerequisiteHint:
    """What has to exist before a resource can be created."""
    resources: List[str]
    hint: str
    required: List[str] = field(default_factory=list)
    optional: List[str] = field(default_factory=list)
    relationship_hints: List[str] = field(default_factory=list)


@dataclass
class SearchResult:
    entry: CatalogEntry
    score: float
    matched_terms: List[str]
    prerequisites: Optional[PrerequisiteHint] = None


class SearchEngine:
    """
    Query/ranking layer over a built SearchIndex.

    The engine never mutates the index; concurrent searches are safe.
    """

    def __init__(
        self,
        index: SearchIndex,
        metadata: Optional[IndexMetadata] = None,
        dependency_resolver: Optional[DependencyGraphResolver] = None,
        settings: Optional[Settings] = None,
    ):
        self.index = index
        self.metadata = metadata or IndexMetadata()
        self.dependency_resolver = dependency_resolver
        self.settings = settings or get_settings()

    # ═══════════════════════════════════════════════
    # SEARCH
    # ═══════════════════════════════════════════════

    def search_tools(
        self,
        query: str,
        limit: Optional[int] = None,
        domains: Optional[List[str]] = None,
        operations: Optional[List[str]] = None,
        min_score: Optional[float] = None,
        exclude_dangerous: bool = False,
        include_dependencies: bool = False,
    ) -> List[SearchResult]:
        """
        Search catalog entries by natural-language query.

        Args:
            query: Free-text query ("http load balancer")
            limit: Max results (capped at SEARCH_MAX_LIMIT)
            domains: Domain allow-list, case-insensitive. Empty means no filter
            operations: Operation allow-list, case-insensitive. Empty means no filter
            min_score: Drop results scoring below this
            exclude_dangerous: Drop entries with danger level "high"
            include_dependencies: Attach prerequisite hints to create results

        Returns:
            Results sorted by score, highest first
        """
        settings = self.settings
        if limit is None:
            limit = settings.SEARCH_DEFAULT_LIMIT
        limit = min(limit, settings.SEARCH_MAX_LIMIT)
        if min_score is None:
            min_score = settings.SEARCH_MIN_SCORE

        with SEARCH_DURATION.labels(kind="tools").time():
            results = self._rank(
                query, limit, domains, operations, min_score,
                exclude_dangerous, include_dependencies,
            )

        record_search("tools", len(results))
        logger.debug(f"Search '{query}' returned {len(results)} results")
        return results

    def _rank(
        self,
        query: str,
        limit: int,
        domains: Optional[List[str]],
        operations: Optional[List[str]],
        min_score: float,
        exclude_dangerous: bool,
        include_dependencies: bool,
    ) -> List[SearchResult]:
        min_term_length = self.settings.SEARCH_MIN_TERM_LENGTH
        query_terms = tokenize(query, min_term_length)
        if not query_terms or limit <= 0:
            return []

        raw_scores = search_index(
            self.index,
            query_terms,
            enable_fuzzy=self.settings.SEARCH_ENABLE_FUZZY,
            max_edit_distance=self.settings.SEARCH_MAX_EDIT_DISTANCE,
            min_term_length=min_term_length,
        )

        candidates: Optional[Set[str]] = None
        if domains:
            candidates = filter_by_domain(self.index, domains)
        if operations:
            by_operation = filter_by_operation(self.index, operations)
            candidates = by_operation if candidates is None else candidates & by_operation

        lowered_query = query.lower()
        normalized_query = normalize_text(query)
        first_word = normalize_text(query.split(" ")[0])
        query_operation = next((op for op in OPERATIONS if op in lowered_query), None)

        results: List[SearchResult] = []
        for tool_id, (base_score, matched) in raw_scores.items():
            if candidates is not None and tool_id not in candidates:
                continue
            entry = self.index.tools_by_id.get(tool_id)
            if entry is None:
                continue
            if exclude_dangerous and entry.danger_level == "high":
                continue

            score = base_score / len(query_terms)
            if first_word and first_word in normalize_text(entry.domain):
                score *= DOMAIN_BOOST
            if query_operation is not None and entry.operation == query_operation:
                score *= OPERATION_BOOST
            if normalized_query in normalize_text(entry.resource):
                score *= RESOURCE_BOOST
            score = min(score, 1.0)

            if score < min_score:
                continue

            result = SearchResult(entry=entry, score=score, matched_terms=list(matched))
            if include_dependencies and entry.operation == "create":
                result.prerequisites = self._prerequisite_hint(entry)
            results.append(result)

        # list.sort is stable: ties keep discovery order
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    def _prerequisite_hint(self, entry: CatalogEntry) -> Optional[PrerequisiteHint]:
        """Hint for a create result, None when the graph has nothing on the resource."""
        resolver = self.dependency_resolver
        if resolver is None:
            return None
        node = resolver.get_node(entry.domain, entry.resource)
        if node is None:
            return None

        prerequisites = resolver.get_prerequisite_resources(entry.domain, entry.resource)
        if prerequisites:
            names = ", ".join(edge.resource_type for edge in prerequisites)
            hint = f"To create {entry.resource}, you first need: {names}"
        else:
            hint = f"No strict prerequisites for {entry.resource}"

        return PrerequisiteHint(
            resources=[edge.key for edge in prerequisites],
            hint=hint,
            required=[edge.key for edge in prerequisites if edge.required],
            optional=[edge.key for edge in prerequisites if not edge.required],
            relationship_hints=list(node.relationship_hints),
        )

    # ═══════════════════════════════════════════════
    # BROWSING
    # ═══════════════════════════════════════════════

    def get_tools_by_domain(self, domain: str) -> List[CatalogEntry]:
        """Entries of a domain (case-insensitive), in catalog order."""
        tool_ids = self.index.domains.get(domain.lower(), ())
        return [self.index.tools_by_id[tool_id] for tool_id in tool_ids]

    def get_tools_by_resource(self, resource: str) -> List[CatalogEntry]:
        """Entries whose resource contains the given name, in catalog order."""
        wanted = normalize_text(resource)
        if not wanted:
            return []
        return [
            entry for entry in self.index.tools_by_id.values()
            if wanted in normalize_text(entry.resource)
        ]

    def get_available_domains(self) -> List[str]:
        if self.metadata.domains:
            return list(self.metadata.domains.keys())
        return list(self.index.domains.keys())

    def get_tool_count_by_domain(self) -> Dict[str, int]:
        if self.metadata.domains:
            return dict(self.metadata.domains)
        return {domain: len(ids) for domain, ids in self.index.domains.items()}
