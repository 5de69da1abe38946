"""
Catalog Contracts - Pydantic models for catalog input data.
Version: 1.0

Domain-agnostic metadata contracts for the operation catalog and the
resource dependency graph. NO business logic.

Everything here is read once at load time and never mutated afterwards,
so every model is frozen.
"""

from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


Operation = Literal["create", "get", "list", "update", "delete", "patch"]
DangerLevel = Literal["low", "medium", "high"]
LatencyLevel = Literal["low", "moderate", "high"]

# Canonical operation order, used for consolidation and keyword boosts
OPERATIONS: Tuple[str, ...] = ("create", "get", "list", "update", "delete", "patch")
CRUD_OPERATIONS = frozenset({"create", "get", "list", "update", "delete"})


class _FrozenModel(BaseModel):
    """Base for input records: immutable, camelCase on the wire."""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


def resource_key(domain: str, resource: str) -> str:
    """Normalized "domain/resource" key used by the dependency graph."""
    return f"{normalize_name(domain)}/{normalize_name(resource)}"


def normalize_name(value: str) -> str:
    """Lower-case and unify separators ("origin_pool" == "origin-pool")."""
    return value.strip().lower().replace("_", "-")


# ═══════════════════════════════════════════════
# CATALOG
# ═══════════════════════════════════════════════

class OperationShape(_FrozenModel):
    """Size/shape metadata of an operation, consumed by the cost estimator."""
    method: Optional[str] = None
    path: Optional[str] = None
    path_parameters: List[str] = Field(default_factory=list)
    query_parameters: List[str] = Field(default_factory=list)
    request_body: Optional[Dict[str, Any]] = Field(
        default=None,
        description="JSON schema of the request body"
    )
    example_payload: Optional[Dict[str, Any]] = None
    required_fields: List[str] = Field(default_factory=list)
    latency_level: Optional[LatencyLevel] = None

    @property
    def parameter_count(self) -> int:
        return len(self.path_parameters) + len(self.query_parameters)


class CatalogEntry(_FrozenModel):
    """
    One API operation of the catalog.

    This is the CONTRACT between the loader and every engine component.
    """
    name: str = Field(..., min_length=1, description="Unique tool identifier")
    domain: str = Field(..., min_length=1)
    resource: str = Field(..., min_length=1)
    operation: Operation
    summary: str = ""
    danger_level: DangerLevel = "low"
    shape: Optional[OperationShape] = None

    @field_validator("operation", "danger_level", mode="before")
    @classmethod
    def lower_case(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v

    @field_validator("name", "domain", "resource")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class IndexMetadata(_FrozenModel):
    """Header of the catalog: per-domain counts plus versioning."""
    total_tools: int = 0
    domains: Dict[str, int] = Field(default_factory=dict)
    version: str = ""
    generated_at: str = ""


class CatalogSnapshot(_FrozenModel):
    """Flat immutable catalog: entries plus header."""
    metadata: IndexMetadata = Field(default_factory=IndexMetadata)
    tools: Tuple[CatalogEntry, ...] = ()

    @model_validator(mode="after")
    def check_unique_names(self) -> "CatalogSnapshot":
        seen = set()
        for entry in self.tools:
            if entry.name in seen:
                raise ValueError(f"duplicate tool name: {entry.name}")
            seen.add(entry.name)
        return self

    @classmethod
    def from_entries(cls, entries, version: str = "") -> "CatalogSnapshot":
        """Build a snapshot with domain counts derived from the entries."""
        entries = tuple(entries)
        counts: Dict[str, int] = {}
        for entry in entries:
            counts[entry.domain] = counts.get(entry.domain, 0) + 1
        metadata = IndexMetadata(total_tools=len(entries), domains=counts, version=version)
        return cls(metadata=metadata, tools=entries)


# ═══════════════════════════════════════════════
# DEPENDENCY GRAPH
# ═══════════════════════════════════════════════

class DependencyEdge(_FrozenModel):
    """Reference to another resource (prerequisite or dependent)."""
    domain: str
    resource_type: str
    required: bool = True
    field_path: Optional[str] = None

    @property
    def key(self) -> str:
        return resource_key(self.domain, self.resource_type)


class OneOfGroup(_FrozenModel):
    """Mutually exclusive configuration fields: only one may be set."""
    choice_field: str
    options: List[str] = Field(default_factory=list)
    description: str = ""


class SubscriptionRequirement(_FrozenModel):
    """Add-on service that must be active before the resource can be created."""
    addon_service_id: str
    display_name: str
    tier: Optional[str] = None
    required: bool = True


class DependencyNode(_FrozenModel):
    """Static dependency metadata of a single (domain, resource) pair."""
    resource: str
    domain: str
    requires: List[DependencyEdge] = Field(default_factory=list)
    required_by: List[DependencyEdge] = Field(default_factory=list)
    one_of_groups: List[OneOfGroup] = Field(default_factory=list)
    subscription_requirements: List[SubscriptionRequirement] = Field(default_factory=list)
    relationship_hints: List[str] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return resource_key(self.domain, self.resource)


class DependencyGraphData(_FrozenModel):
    """Externally supplied dependency graph, keyed by "domain/resource"."""
    version: str = ""
    generated_at: str = ""
    resources: Dict[str, DependencyNode] = Field(default_factory=dict)
    addon_services: List[str] = Field(default_factory=list)
