"""
Catalog Loader - Read and validate the catalog and dependency graph.
Version: 1.0

Single responsibility: Turn JSON input files into validated, immutable
snapshots. This is the only place where bad input is a hard failure:
a corrupt catalog would otherwise turn into silently wrong answers.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

from pydantic import ValidationError

from catalog_engine.contracts import CatalogSnapshot, DependencyGraphData

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class CatalogLoadError(ValueError):
    """Input catalog or dependency graph failed validation."""


def _read_json(path: PathLike) -> Any:
    path = Path(path)
    if not path.exists():
        raise CatalogLoadError(f"File not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise CatalogLoadError(f"Invalid JSON in {path}: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise CatalogLoadError(f"Cannot read {path}: {e}") from e


def parse_catalog(data: Any, source: str = "<memory>") -> CatalogSnapshot:
    """
    Validate raw catalog data.

    Accepted shapes:
        {"metadata": {...}, "tools": [...]}
        [...]  (bare list of entries)

    Raises:
        CatalogLoadError: If any entry fails validation
    """
    if isinstance(data, list):
        data = {"tools": data}
    if not isinstance(data, dict) or "tools" not in data:
        raise CatalogLoadError(f"{source}: expected an object with a 'tools' array")

    try:
        snapshot = CatalogSnapshot.model_validate(data)
    except ValidationError as e:
        raise CatalogLoadError(
            f"{source}: invalid catalog ({e.error_count()} errors)\n{e}"
        ) from e

    return _reconcile_metadata(snapshot, source)


def _reconcile_metadata(snapshot: CatalogSnapshot, source: str) -> CatalogSnapshot:
    """Derive domain counts from entries; warn when the header disagrees."""
    counts: Dict[str, int] = {}
    for entry in snapshot.tools:
        counts[entry.domain] = counts.get(entry.domain, 0) + 1

    header = snapshot.metadata
    if header.domains and header.domains != counts:
        logger.warning(f"{source}: metadata domain counts differ from entries, using entries")
    if header.total_tools and header.total_tools != len(snapshot.tools):
        logger.warning(
            f"{source}: metadata totalTools={header.total_tools} "
            f"but {len(snapshot.tools)} entries loaded"
        )

    metadata = header.model_copy(update={"domains": counts, "total_tools": len(snapshot.tools)})
    return snapshot.model_copy(update={"metadata": metadata})


def load_catalog(path: PathLike) -> CatalogSnapshot:
    """Load and validate the catalog JSON file."""
    snapshot = parse_catalog(_read_json(path), source=str(path))
    logger.info(
        f"✅ Loaded {len(snapshot.tools)} catalog entries "
        f"across {len(snapshot.metadata.domains)} domains from {path}"
    )
    return snapshot


def parse_dependency_graph(data: Any, source: str = "<memory>") -> DependencyGraphData:
    """
    Validate raw dependency graph data.

    Raises:
        CatalogLoadError: If the graph fails validation
    """
    if not isinstance(data, dict):
        raise CatalogLoadError(f"{source}: expected a JSON object")
    try:
        return DependencyGraphData.model_validate(data)
    except ValidationError as e:
        raise CatalogLoadError(
            f"{source}: invalid dependency graph ({e.error_count()} errors)\n{e}"
        ) from e


def load_dependency_graph(path: PathLike) -> DependencyGraphData:
    """Load and validate the dependency graph JSON file."""
    graph = parse_dependency_graph(_read_json(path), source=str(path))
    logger.info(
        f"✅ Loaded dependency graph v{graph.version or '?'} "
        f"with {len(graph.resources)} resources from {path}"
    )
    return graph
