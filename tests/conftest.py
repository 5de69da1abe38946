"""
Test Configuration and Fixtures
Version: 1.0
"""

from pathlib import Path
from typing import Any, Dict, List

import pytest

from catalog_engine.catalog import Catalog
from catalog_engine.config import Settings
from catalog_engine.consolidate import ConsolidationEngine
from catalog_engine.contracts import CatalogEntry, CatalogSnapshot, DependencyGraphData
from catalog_engine.dependencies import DependencyGraphResolver
from catalog_engine.loader import load_catalog, load_dependency_graph, parse_dependency_graph
from catalog_engine.resolver import CreationPlanner

DATA_DIR = Path(__file__).resolve().parent.parent / "data"
CATALOG_FILE = DATA_DIR / "tool_index.json"
GRAPH_FILE = DATA_DIR / "dependency_graph.json"


# ============================================================================
# SETTINGS
# ============================================================================

@pytest.fixture
def settings() -> Settings:
    """Defaults only, no .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def file_settings() -> Settings:
    """Settings pointing at the bundled sample data."""
    return Settings(
        _env_file=None,
        CATALOG_PATH=str(CATALOG_FILE),
        DEPENDENCY_GRAPH_PATH=str(GRAPH_FILE),
    )


# ============================================================================
# FACTORIES
# ============================================================================

@pytest.fixture
def make_entry():
    """Build a CatalogEntry with sensible defaults."""
    def _make(
        name: str,
        domain: str = "virtual",
        resource: str = "widget",
        operation: str = "get",
        summary: str = "",
        **extra: Any
    ) -> CatalogEntry:
        return CatalogEntry(
            name=name,
            domain=domain,
            resource=resource,
            operation=operation,
            summary=summary,
            **extra
        )
    return _make


@pytest.fixture
def make_graph():
    """
    Build a DependencyGraphData from {"domain/resource": [prerequisite edges]}.

    Edges are "domain/resource" strings (required) or dicts with the
    wire keys of a DependencyEdge.
    """
    def _make(nodes: Dict[str, List[Any]], extras: Dict[str, Dict[str, Any]] = None) -> DependencyGraphData:
        resources = {}
        for key, requires in nodes.items():
            domain, resource = key.split("/")
            edges = []
            for edge in requires:
                if isinstance(edge, str):
                    edge_domain, edge_resource = edge.split("/")
                    edge = {"domain": edge_domain, "resourceType": edge_resource, "required": True}
                edges.append(edge)
            node = {"domain": domain, "resource": resource, "requires": edges}
            node.update((extras or {}).get(key, {}))
            resources[key] = node
        return parse_dependency_graph({"version": "test", "resources": resources})
    return _make


# ============================================================================
# SAMPLE DATA
# ============================================================================

@pytest.fixture
def catalog_snapshot() -> CatalogSnapshot:
    return load_catalog(CATALOG_FILE)


@pytest.fixture
def dependency_graph() -> DependencyGraphData:
    return load_dependency_graph(GRAPH_FILE)


@pytest.fixture
def sample_entries(catalog_snapshot) -> List[CatalogEntry]:
    return list(catalog_snapshot.tools)


@pytest.fixture
def five_entries(make_entry) -> List[CatalogEntry]:
    """3 entries in domain "virtual", 2 in domain "waap"."""
    return [
        make_entry("virtual-http-loadbalancer-create", "virtual", "http_loadbalancer", "create"),
        make_entry("virtual-http-loadbalancer-get", "virtual", "http_loadbalancer", "get"),
        make_entry("virtual-origin-pool-list", "virtual", "origin_pool", "list"),
        make_entry("waap-app-firewall-create", "waap", "app_firewall", "create"),
        make_entry("waap-app-firewall-delete", "waap", "app_firewall", "delete", danger_level="high"),
    ]


# ============================================================================
# ENGINE COMPONENTS
# ============================================================================

@pytest.fixture
def dependency_resolver(dependency_graph) -> DependencyGraphResolver:
    return DependencyGraphResolver(dependency_graph)


@pytest.fixture
def consolidation_engine(sample_entries) -> ConsolidationEngine:
    return ConsolidationEngine(sample_entries)


@pytest.fixture
def planner(dependency_resolver, consolidation_engine, sample_entries) -> CreationPlanner:
    return CreationPlanner(
        dependency_resolver,
        consolidation_engine,
        {entry.name: entry for entry in sample_entries},
    )


@pytest.fixture
def make_planner(make_entry):
    """Planner over a custom graph; every node gets a create tool unless excluded."""
    def _make(graph: DependencyGraphData, without_tools: List[str] = ()) -> CreationPlanner:
        entries = [
            make_entry(
                f"{node.domain}-{node.resource}-create",
                node.domain,
                node.resource,
                "create",
            )
            for key, node in graph.resources.items()
            if key not in without_tools
        ]
        return CreationPlanner(
            DependencyGraphResolver(graph),
            ConsolidationEngine(entries),
            {entry.name: entry for entry in entries},
        )
    return _make


@pytest.fixture
def catalog(catalog_snapshot, dependency_graph, settings) -> Catalog:
    return Catalog(catalog_snapshot, dependency_graph, settings)
