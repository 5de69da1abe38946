"""
Dependency Graph Resolver - Queries over the static resource dependency graph.
Version: 1.0

Single responsibility: Answer prerequisite, dependent, oneOf and
subscription questions for a (domain, resource) pair, and report on the
graph as a whole.

The graph is externally supplied and may lag the catalog, so unknown
resources always produce the empty shape of the return type, never an
exception. The graph is not guaranteed acyclic: every traversal keeps an
explicit visited set.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from catalog_engine.contracts import (
    DependencyEdge,
    DependencyGraphData,
    DependencyNode,
    OneOfGroup,
    SubscriptionRequirement,
    normalize_name,
    resource_key,
)

logger = logging.getLogger(__name__)

REPORT_MODES = ("prerequisites", "dependents", "oneOf", "subscriptions", "creationOrder", "full")


@dataclass
class ResourceDependencies:
    """Everything the graph knows about one resource."""
    resource: str
    domain: str
    requires: List[DependencyEdge] = field(default_factory=list)
    required_by: List[DependencyEdge] = field(default_factory=list)
    one_of_groups: List[OneOfGroup] = field(default_factory=list)
    subscription_requirements: List[SubscriptionRequirement] = field(default_factory=list)
    relationship_hints: List[str] = field(default_factory=list)
    creation_order: List[str] = field(default_factory=list)


@dataclass
class DependencyReport:
    """Report for a single resource. Lists not requested by the mode stay empty."""
    resource: str
    domain: str
    mode: str
    found: bool
    prerequisites: List[DependencyEdge] = field(default_factory=list)
    dependents: List[DependencyEdge] = field(default_factory=list)
    mutually_exclusive_fields: List[OneOfGroup] = field(default_factory=list)
    subscription_requirements: List[SubscriptionRequirement] = field(default_factory=list)
    creation_sequence: List[str] = field(default_factory=list)


@dataclass
class DependencyStats:
    """Aggregate counts over the dependency graph."""
    total_resources: int
    total_dependencies: int
    total_one_of_groups: int
    total_subscriptions: int
    addon_services: List[str]
    graph_version: str
    generated_at: str


class DependencyGraphResolver:
    """
    Read-only view over a DependencyGraphData.

    Nodes are re-keyed by their normalized "domain/resource" key, and
    reverse edges implied by `requires` are merged into `required_by`.
    The input graph itself is never touched.
    """

    def __init__(self, graph: Optional[DependencyGraphData] = None):
        self.graph = graph or DependencyGraphData()
        self._nodes: Dict[str, DependencyNode] = {}
        self._dependents: Dict[str, List[DependencyEdge]] = {}

        for node in self.graph.resources.values():
            self._nodes[node.key] = node

        for key, node in self._nodes.items():
            edges = self._dependents.setdefault(key, [])
            seen = {edge.key for edge in edges}
            for edge in node.required_by:
                if edge.key not in seen:
                    edges.append(edge)
                    seen.add(edge.key)

        # Reverse edges the supplier did not list explicitly
        for node in self._nodes.values():
            for edge in node.requires:
                edges = self._dependents.setdefault(edge.key, [])
                if all(existing.key != node.key for existing in edges):
                    edges.append(DependencyEdge(
                        domain=node.domain,
                        resource_type=node.resource,
                        required=edge.required,
                    ))

        logger.debug(f"DependencyGraphResolver initialized with {len(self._nodes)} resources")

    # ═══════════════════════════════════════════════
    # SINGLE RESOURCE LOOKUPS
    # ═══════════════════════════════════════════════

    def get_node(self, domain: str, resource: str) -> Optional[DependencyNode]:
        return self._nodes.get(resource_key(domain, resource))

    def has_resource(self, domain: str, resource: str) -> bool:
        return resource_key(domain, resource) in self._nodes

    def get_resource_dependencies(self, domain: str, resource: str) -> Optional[ResourceDependencies]:
        """Full dependency record, or None when the graph does not know the resource."""
        node = self.get_node(domain, resource)
        if node is None:
            return None
        return ResourceDependencies(
            resource=node.resource,
            domain=node.domain,
            requires=list(node.requires),
            required_by=self.get_dependent_resources(domain, resource),
            one_of_groups=list(node.one_of_groups),
            subscription_requirements=list(node.subscription_requirements),
            relationship_hints=list(node.relationship_hints),
            creation_order=self.get_creation_order(domain, resource),
        )

    def get_prerequisite_resources(self, domain: str, resource: str) -> List[DependencyEdge]:
        """Direct prerequisites (required and optional)."""
        node = self.get_node(domain, resource)
        return list(node.requires) if node else []

    def get_dependent_resources(self, domain: str, resource: str) -> List[DependencyEdge]:
        """Resources that require this one directly."""
        return list(self._dependents.get(resource_key(domain, resource), []))

    def get_one_of_groups(self, domain: str, resource: str) -> List[OneOfGroup]:
        node = self.get_node(domain, resource)
        return list(node.one_of_groups) if node else []

    def get_subscription_requirements(self, domain: str, resource: str) -> List[SubscriptionRequirement]:
        node = self.get_node(domain, resource)
        return list(node.subscription_requirements) if node else []

    def get_creation_order(self, domain: str, resource: str) -> List[str]:
        """
        Creation sequence for a resource: dependencies first, resource last.

        Iterative depth-first post-order over the transitive closure of
        `requires`. Each node is emitted once; a back edge to a node on
        the current path is skipped, so cycles terminate.
        """
        start = resource_key(domain, resource)
        if start not in self._nodes:
            return []

        order: List[str] = []
        visited = {start}
        # (key, index of next prerequisite to visit)
        stack: List[Tuple[str, int]] = [(start, 0)]

        while stack:
            key, next_index = stack[-1]
            node = self._nodes.get(key)
            prerequisites = node.requires if node else []

            if next_index < len(prerequisites):
                stack[-1] = (key, next_index + 1)
                child = prerequisites[next_index].key
                if child not in visited:
                    visited.add(child)
                    stack.append((child, 0))
                continue

            stack.pop()
            order.append(key)

        return order

    # ═══════════════════════════════════════════════
    # REPORTS
    # ═══════════════════════════════════════════════

    def generate_dependency_report(
        self,
        domain: str,
        resource: str,
        mode: str = "full",
    ) -> DependencyReport:
        """
        Build a dependency report for exploratory queries.

        Unknown resources produce a report echoing the request with every
        list empty.

        Raises:
            ValueError: If mode is not one of REPORT_MODES
        """
        if mode not in REPORT_MODES:
            raise ValueError(f"Unknown report mode '{mode}', expected one of {REPORT_MODES}")

        report = DependencyReport(
            resource=resource,
            domain=domain,
            mode=mode,
            found=self.has_resource(domain, resource),
        )
        if not report.found:
            return report

        full = mode == "full"
        if full or mode == "prerequisites":
            report.prerequisites = self.get_prerequisite_resources(domain, resource)
        if full or mode == "dependents":
            report.dependents = self.get_dependent_resources(domain, resource)
        if full or mode == "oneOf":
            report.mutually_exclusive_fields = self.get_one_of_groups(domain, resource)
        if full or mode == "subscriptions":
            report.subscription_requirements = self.get_subscription_requirements(domain, resource)
        if full or mode == "creationOrder":
            report.creation_sequence = self.get_creation_order(domain, resource)

        return report

    # ═══════════════════════════════════════════════
    # GRAPH-WIDE QUERIES
    # ═══════════════════════════════════════════════

    def get_dependency_stats(self) -> DependencyStats:
        nodes = self._nodes.values()
        return DependencyStats(
            total_resources=len(self._nodes),
            total_dependencies=sum(len(node.requires) for node in nodes),
            total_one_of_groups=sum(len(node.one_of_groups) for node in nodes),
            total_subscriptions=sum(len(node.subscription_requirements) for node in nodes),
            addon_services=self.get_available_addon_services(),
            graph_version=self.graph.version,
            generated_at=self.graph.generated_at,
        )

    def get_available_addon_services(self) -> List[str]:
        """Distinct add-on service ids, declared or referenced, sorted."""
        services = set(self.graph.addon_services)
        for node in self._nodes.values():
            services.update(sub.addon_service_id for sub in node.subscription_requirements)
        return sorted(services)

    def get_all_dependency_domains(self) -> List[str]:
        return sorted({normalize_name(node.domain) for node in self._nodes.values()})

    def get_resources_in_domain(self, domain: str) -> List[str]:
        wanted = normalize_name(domain)
        return sorted(
            node.resource for node in self._nodes.values()
            if normalize_name(node.domain) == wanted
        )

    def get_resources_requiring_subscription(self, addon_service_id: str) -> List[str]:
        """Keys of resources that need the given add-on service."""
        return sorted(
            key for key, node in self._nodes.items()
            if any(sub.addon_service_id == addon_service_id for sub in node.subscription_requirements)
        )
