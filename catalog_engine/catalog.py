"""
Catalog - Public API facade.
Version: 1.0

Composes loader, search index, ranking, consolidation, dependency
resolution, planning and cost estimation behind one object.

Everything derived from the inputs is built lazily on first use and held
in one immutable state object. Building is single-writer: concurrent
first callers block on a lock and the loser reuses the winner's state.
"""

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from catalog_engine.config import Settings, get_settings
from catalog_engine.consolidate import (
    ConsolidatedIndex,
    ConsolidatedResource,
    ConsolidatedSearchResult,
    ConsolidationEngine,
    ConsolidationStats,
)
from catalog_engine.contracts import (
    CatalogEntry,
    CatalogSnapshot,
    DependencyEdge,
    DependencyGraphData,
    IndexMetadata,
    OneOfGroup,
    SubscriptionRequirement,
)
from catalog_engine.cost_estimator import CostEstimator, ToolCostEstimate, WorkflowCostEstimate
from catalog_engine.dependencies import (
    DependencyGraphResolver,
    DependencyReport,
    DependencyStats,
    ResourceDependencies,
)
from catalog_engine.loader import load_catalog, load_dependency_graph
from catalog_engine.logging_config import LogTimer, get_logger
from catalog_engine.metrics import record_index_build
from catalog_engine.resolver import CreationPlan, CreationPlanner, ResolveParams, ResolveResult
from catalog_engine.search import SearchEngine, SearchResult
from catalog_engine.search_index import SearchIndex, build_search_index, get_index_stats

logger = logging.getLogger(__name__)
build_logger = get_logger(__name__)


@dataclass(frozen=True)
class _CatalogState:
    """Everything built from one catalog + graph pair."""
    snapshot: CatalogSnapshot
    entries_by_name: Mapping[str, CatalogEntry]
    index: SearchIndex
    search: SearchEngine
    consolidation: ConsolidationEngine
    dependencies: DependencyGraphResolver
    planner: CreationPlanner
    estimator: CostEstimator


class Catalog:
    """
    API catalog engine.

    Inputs are either passed in directly or loaded from the paths in
    settings (CATALOG_PATH, DEPENDENCY_GRAPH_PATH) on first use.
    """

    def __init__(
        self,
        snapshot: Optional[CatalogSnapshot] = None,
        dependency_graph: Optional[DependencyGraphData] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self._snapshot = snapshot
        self._dependency_graph = dependency_graph

        self._state: Optional[_CatalogState] = None
        self._build_lock = threading.Lock()

    @classmethod
    def from_entries(
        cls,
        entries: List[CatalogEntry],
        dependency_graph: Optional[DependencyGraphData] = None,
        settings: Optional[Settings] = None,
    ) -> "Catalog":
        return cls(CatalogSnapshot.from_entries(entries), dependency_graph or DependencyGraphData(), settings)

    # ═══════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════

    @property
    def is_ready(self) -> bool:
        return self._state is not None

    def ensure_built(self) -> _CatalogState:
        """Build the catalog state once; later calls return the built state."""
        state = self._state
        if state is not None:
            return state
        with self._build_lock:
            if self._state is None:
                self._state = self._build()
            return self._state

    def invalidate(self) -> None:
        """Drop built state; the next call rebuilds (and reloads files, if configured)."""
        with self._build_lock:
            self._state = None
        logger.info("🔄 Catalog state invalidated")

    def _state_or_build(self) -> _CatalogState:
        return self.ensure_built()

    def _load_inputs(self):
        settings = self.settings
        snapshot = self._snapshot
        graph = self._dependency_graph

        if snapshot is None:
            snapshot = load_catalog(settings.CATALOG_PATH)

        if graph is None:
            graph_path = settings.DEPENDENCY_GRAPH_PATH
            if self._snapshot is None and graph_path and Path(graph_path).exists():
                graph = load_dependency_graph(graph_path)
            else:
                if self._snapshot is None and graph_path:
                    logger.warning(f"⚠️ Dependency graph not found at {graph_path}, planning disabled")
                graph = DependencyGraphData()

        return snapshot, graph

    def _build(self) -> _CatalogState:
        snapshot, graph = self._load_inputs()
        settings = self.settings
        started = time.perf_counter()

        with LogTimer(build_logger, "catalog_build", tools=len(snapshot.tools)) as timer:
            entries_by_name = {entry.name: entry for entry in snapshot.tools}
            index = build_search_index(snapshot.tools, settings.SEARCH_MIN_TERM_LENGTH)
            dependencies = DependencyGraphResolver(graph)
            consolidation = ConsolidationEngine(
                snapshot.tools,
                min_term_length=settings.SEARCH_MIN_TERM_LENGTH,
                enable_fuzzy=settings.SEARCH_ENABLE_FUZZY,
                max_edit_distance=settings.SEARCH_MAX_EDIT_DISTANCE,
            )
            state = _CatalogState(
                snapshot=snapshot,
                entries_by_name=entries_by_name,
                index=index,
                search=SearchEngine(index, snapshot.metadata, dependencies, settings),
                consolidation=consolidation,
                dependencies=dependencies,
                planner=CreationPlanner(dependencies, consolidation, entries_by_name),
                estimator=CostEstimator(entries_by_name),
            )

        record_index_build(time.perf_counter() - started, len(snapshot.tools))
        build_logger.info(
            "catalog_ready",
            tools=len(snapshot.tools),
            terms=len(index.terms),
            domains=len(index.domains),
            graph_resources=len(graph.resources),
            duration_ms=round(timer.duration_ms, 2),
        )
        return state

    # ═══════════════════════════════════════════════
    # SEARCH & BROWSING
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
        return self._state_or_build().search.search_tools(
            query,
            limit=limit,
            domains=domains,
            operations=operations,
            min_score=min_score,
            exclude_dangerous=exclude_dangerous,
            include_dependencies=include_dependencies,
        )

    def get_tools_by_domain(self, domain: str) -> List[CatalogEntry]:
        return self._state_or_build().search.get_tools_by_domain(domain)

    def get_tools_by_resource(self, resource: str) -> List[CatalogEntry]:
        return self._state_or_build().search.get_tools_by_resource(resource)

    def get_available_domains(self) -> List[str]:
        return self._state_or_build().search.get_available_domains()

    def get_tool_count_by_domain(self) -> Dict[str, int]:
        return self._state_or_build().search.get_tool_count_by_domain()

    def get_tool_entry(self, name: str) -> Optional[CatalogEntry]:
        return self._state_or_build().entries_by_name.get(name)

    def tool_exists(self, name: str) -> bool:
        return name in self._state_or_build().entries_by_name

    def get_index_metadata(self) -> IndexMetadata:
        return self._state_or_build().snapshot.metadata

    def get_index_stats(self) -> Dict[str, float]:
        return get_index_stats(self._state_or_build().index)

    # ═══════════════════════════════════════════════
    # CONSOLIDATION
    # ═══════════════════════════════════════════════

    def search_consolidated_resources(
        self,
        query: str,
        limit: Optional[int] = None,
        domains: Optional[List[str]] = None,
        min_score: Optional[float] = None,
    ) -> List[ConsolidatedSearchResult]:
        settings = self.settings
        if limit is None:
            limit = settings.SEARCH_DEFAULT_LIMIT
        return self._state_or_build().consolidation.search_consolidated_resources(
            query,
            limit=min(limit, settings.SEARCH_MAX_LIMIT),
            domains=domains,
            min_score=settings.SEARCH_MIN_SCORE if min_score is None else min_score,
        )

    def get_consolidated_index(self) -> ConsolidatedIndex:
        return self._state_or_build().consolidation.get_consolidated_index()

    def get_consolidated_resource(self, name: str) -> Optional[ConsolidatedResource]:
        return self._state_or_build().consolidation.get_consolidated_resource(name)

    def get_consolidated_by_domain(self, domain: str) -> List[ConsolidatedResource]:
        return self._state_or_build().consolidation.get_consolidated_by_domain(domain)

    def get_consolidation_stats(self) -> ConsolidationStats:
        return self._state_or_build().consolidation.get_consolidation_stats()

    def resolve_consolidated_tool(self, name: str, operation: str) -> Optional[str]:
        return self._state_or_build().consolidation.resolve_consolidated_tool(name, operation)

    # ═══════════════════════════════════════════════
    # DEPENDENCIES
    # ═══════════════════════════════════════════════

    def generate_dependency_report(self, domain: str, resource: str, mode: str = "full") -> DependencyReport:
        return self._state_or_build().dependencies.generate_dependency_report(domain, resource, mode)

    def get_resource_dependencies(self, domain: str, resource: str) -> Optional[ResourceDependencies]:
        return self._state_or_build().dependencies.get_resource_dependencies(domain, resource)

    def get_prerequisite_resources(self, domain: str, resource: str) -> List[DependencyEdge]:
        return self._state_or_build().dependencies.get_prerequisite_resources(domain, resource)

    def get_creation_order(self, domain: str, resource: str) -> List[str]:
        return self._state_or_build().dependencies.get_creation_order(domain, resource)

    def get_dependent_resources(self, domain: str, resource: str) -> List[DependencyEdge]:
        return self._state_or_build().dependencies.get_dependent_resources(domain, resource)

    def get_one_of_groups(self, domain: str, resource: str) -> List[OneOfGroup]:
        return self._state_or_build().dependencies.get_one_of_groups(domain, resource)

    def get_subscription_requirements(self, domain: str, resource: str) -> List[SubscriptionRequirement]:
        return self._state_or_build().dependencies.get_subscription_requirements(domain, resource)

    def get_dependency_stats(self) -> DependencyStats:
        return self._state_or_build().dependencies.get_dependency_stats()

    def get_all_dependency_domains(self) -> List[str]:
        return self._state_or_build().dependencies.get_all_dependency_domains()

    def get_resources_in_domain(self, domain: str) -> List[str]:
        return self._state_or_build().dependencies.get_resources_in_domain(domain)

    # ═══════════════════════════════════════════════
    # PLANNING
    # ═══════════════════════════════════════════════

    def _params(
        self,
        resource: str,
        domain: str,
        existing_resources: Optional[List[str]],
        include_optional: bool,
        max_depth: Optional[int],
        expand_alternatives: bool,
    ) -> ResolveParams:
        return ResolveParams(
            resource=resource,
            domain=domain,
            existing_resources=list(existing_resources or []),
            include_optional=include_optional,
            max_depth=self.settings.RESOLVER_MAX_DEPTH if max_depth is None else max_depth,
            expand_alternatives=expand_alternatives,
        )

    def resolve_dependencies(
        self,
        resource: str,
        domain: str,
        existing_resources: Optional[List[str]] = None,
        include_optional: bool = False,
        max_depth: Optional[int] = None,
        expand_alternatives: bool = False,
    ) -> ResolveResult:
        params = self._params(
            resource, domain, existing_resources, include_optional, max_depth, expand_alternatives
        )
        return self._state_or_build().planner.resolve_dependencies(params)

    def generate_compact_plan(
        self,
        resource: str,
        domain: str,
        existing_resources: Optional[List[str]] = None,
        include_optional: bool = False,
        max_depth: Optional[int] = None,
    ) -> Dict[str, Any]:
        params = self._params(resource, domain, existing_resources, include_optional, max_depth, False)
        return self._state_or_build().planner.generate_compact_plan(params)

    # ═══════════════════════════════════════════════
    # COST ESTIMATION
    # ═══════════════════════════════════════════════

    def estimate_tool_cost(self, tool_name: str) -> ToolCostEstimate:
        return self._state_or_build().estimator.estimate_tool_cost(tool_name)

    def estimate_multiple_tools_cost(self, tool_names: List[str]) -> List[ToolCostEstimate]:
        return self._state_or_build().estimator.estimate_multiple_tools_cost(tool_names)

    def estimate_workflow_cost(self, plan: CreationPlan, detailed: bool = True) -> WorkflowCostEstimate:
        return self._state_or_build().estimator.estimate_workflow_cost(plan, detailed)
