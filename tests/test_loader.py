"""
Tests for catalog and dependency graph loading
Version: 1.0

Validation failures must surface at load time.
"""

import json
import logging

import pytest
from pydantic import ValidationError

from catalog_engine.loader import (
    CatalogLoadError,
    load_catalog,
    load_dependency_graph,
    parse_catalog,
    parse_dependency_graph,
)


def tool(**overrides):
    data = {
        "name": "virtual_origin-pool_get",
        "domain": "virtual",
        "resource": "origin_pool",
        "operation": "get",
        "summary": "Get an origin pool",
    }
    data.update(overrides)
    return data


class TestParseCatalog:

    # ========================================================================
    # VALID INPUT
    # ========================================================================

    def test_sample_file(self, catalog_snapshot):
        assert len(catalog_snapshot.tools) == 12
        assert catalog_snapshot.metadata.total_tools == 12
        assert catalog_snapshot.metadata.domains == {"virtual": 9, "waap": 2, "tenant": 1}
        assert catalog_snapshot.metadata.version == "1.0.0"

    def test_camel_case_shape(self, catalog_snapshot):
        entry = next(t for t in catalog_snapshot.tools if t.name == "virtual_http-loadbalancer_create")

        assert entry.danger_level == "medium"
        assert entry.shape.path_parameters == ["namespace"]
        assert entry.shape.required_fields == ["metadata.name", "metadata.namespace", "spec.domains"]
        assert entry.shape.parameter_count == 1

    def test_bare_list(self):
        snapshot = parse_catalog([tool()])

        assert len(snapshot.tools) == 1
        assert snapshot.metadata.domains == {"virtual": 1}

    def test_defaults(self):
        entry = parse_catalog([tool()]).tools[0]

        assert entry.danger_level == "low"
        assert entry.shape is None

    def test_operation_case_insensitive(self):
        entry = parse_catalog([tool(operation="GET", dangerLevel="High")]).tools[0]

        assert entry.operation == "get"
        assert entry.danger_level == "high"

    def test_snake_case_accepted(self):
        entry = parse_catalog([tool(danger_level="medium")]).tools[0]

        assert entry.danger_level == "medium"

    def test_entries_are_frozen(self):
        entry = parse_catalog([tool()]).tools[0]

        with pytest.raises(ValidationError):
            entry.name = "changed"

    def test_metadata_mismatch_warns(self, caplog):
        data = {"metadata": {"totalTools": 5, "domains": {"virtual": 5}}, "tools": [tool()]}

        with caplog.at_level(logging.WARNING, logger="catalog_engine.loader"):
            snapshot = parse_catalog(data)

        assert snapshot.metadata.total_tools == 1
        assert snapshot.metadata.domains == {"virtual": 1}
        assert "differ" in caplog.text

    # ========================================================================
    # INVALID INPUT
    # ========================================================================

    @pytest.mark.parametrize("overrides", [
        {"operation": "upsert"},
        {"dangerLevel": "critical"},
        {"name": ""},
        {"domain": "   "},
        {"resource": None},
    ])
    def test_invalid_entry(self, overrides):
        with pytest.raises(CatalogLoadError) as exc_info:
            parse_catalog([tool(**overrides)])

        assert isinstance(exc_info.value.__cause__, ValidationError)

    def test_missing_field(self):
        data = tool()
        del data["domain"]

        with pytest.raises(CatalogLoadError):
            parse_catalog([data])

    def test_duplicate_names(self):
        with pytest.raises(CatalogLoadError, match="duplicate tool name"):
            parse_catalog([tool(), tool(operation="list")])

    def test_wrong_shape(self):
        with pytest.raises(CatalogLoadError):
            parse_catalog({"entries": []})

    def test_load_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_catalog("not a catalog")


class TestLoadFiles:

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogLoadError, match="File not found"):
            load_catalog(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(CatalogLoadError, match="Invalid JSON"):
            load_catalog(path)

    def test_invalid_utf8(self, tmp_path):
        path = tmp_path / "latin1.json"
        path.write_bytes(b'{"tools": [{"name": "\xff\xfe"}]}')

        with pytest.raises(CatalogLoadError, match="Cannot read") as exc_info:
            load_catalog(path)

        assert isinstance(exc_info.value.__cause__, UnicodeDecodeError)

    def test_directory_path(self, tmp_path):
        with pytest.raises(CatalogLoadError, match="Cannot read") as exc_info:
            load_catalog(tmp_path)

        assert isinstance(exc_info.value.__cause__, OSError)

    def test_directory_graph_path(self, tmp_path):
        with pytest.raises(CatalogLoadError, match="Cannot read"):
            load_dependency_graph(tmp_path)

    def test_round_trip_file(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"tools": [tool()]}), encoding="utf-8")

        assert load_catalog(path).tools[0].name == "virtual_origin-pool_get"


class TestDependencyGraph:

    def test_sample_file(self, dependency_graph):
        assert dependency_graph.version == "1.0.0"
        assert len(dependency_graph.resources) == 5
        assert dependency_graph.addon_services == ["waap"]

        node = dependency_graph.resources["virtual/http-loadbalancer"]
        assert node.requires[0].resource_type == "origin-pool"
        assert node.requires[0].field_path == "spec.default_route_pools"
        assert node.requires[1].required is False

    def test_invalid_graph(self):
        with pytest.raises(CatalogLoadError):
            parse_dependency_graph({"resources": {"x/a": {"domain": "x"}}})

    def test_not_an_object(self):
        with pytest.raises(CatalogLoadError):
            parse_dependency_graph([])

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogLoadError):
            load_dependency_graph(tmp_path / "graph.json")
