"""
Catalog Engine - In-memory search, consolidation and creation planning
over a catalog of API operations.
"""

from catalog_engine.catalog import Catalog
from catalog_engine.config import Settings, get_settings
from catalog_engine.contracts import (
    CatalogEntry,
    CatalogSnapshot,
    DependencyGraphData,
    DependencyNode,
    OperationShape,
)
from catalog_engine.cost_estimator import format_cost_estimate, format_workflow_cost_estimate
from catalog_engine.loader import CatalogLoadError, load_catalog, load_dependency_graph
from catalog_engine.resolver import CreationPlan, ResolveParams, ResolveResult, format_creation_plan
from catalog_engine.search import SearchResult

__all__ = [
    'Catalog',
    'Settings',
    'get_settings',
    'CatalogEntry',
    'CatalogSnapshot',
    'DependencyGraphData',
    'DependencyNode',
    'OperationShape',
    'CatalogLoadError',
    'load_catalog',
    'load_dependency_graph',
    'CreationPlan',
    'ResolveParams',
    'ResolveResult',
    'SearchResult',
    'format_creation_plan',
    'format_cost_estimate',
    'format_workflow_cost_estimate',
]
