"""
Tests for the inverted search index and text utilities
Version: 1.0
"""

import pytest

from catalog_engine.scoring_utils import levenshtein_distance, normalize_text, tokenize
from catalog_engine.search_index import (
    EXACT_MATCH_SCORE,
    FUZZY_MATCH_WEIGHT,
    PREFIX_MATCH_SCORE,
    build_search_index,
    filter_by_domain,
    filter_by_operation,
    get_index_stats,
    search_index,
    searchable_text,
)


class TestTextUtilities:

    # ========================================================================
    # NORMALIZATION
    # ========================================================================

    def test_normalize_separators(self):
        assert normalize_text("HTTP_Load-Balancer") == "http load balancer"

    def test_normalize_strips_punctuation(self):
        assert normalize_text("  Create (v2) policy! ") == "create v2 policy"

    def test_tokenize_drops_short_terms(self):
        assert tokenize("a waf http", min_length=2) == ["waf", "http"]
        assert tokenize("a waf http", min_length=4) == ["http"]

    def test_tokenize_empty(self):
        assert tokenize("") == []
        assert tokenize("--__--") == []

    # ========================================================================
    # LEVENSHTEIN
    # ========================================================================

    def test_identity(self):
        assert levenshtein_distance("origin", "origin") == 0

    def test_against_empty(self):
        assert levenshtein_distance("pool", "") == 4
        assert levenshtein_distance("", "pool") == 4

    def test_symmetric(self):
        assert levenshtein_distance("balancer", "balancing") == levenshtein_distance("balancing", "balancer")

    def test_classic_example(self):
        assert levenshtein_distance("kitten", "sitting") == 3

    def test_single_edits(self):
        assert levenshtein_distance("pool", "poll") == 1
        assert levenshtein_distance("pool", "pools") == 1
        assert levenshtein_distance("pools", "pool") == 1


class TestBuildSearchIndex:

    def test_indexes_all_identifying_fields(self, make_entry):
        entry = make_entry(
            "virtual_http-loadbalancer_create",
            domain="virtual",
            resource="http_loadbalancer",
            operation="create",
            summary="Create an HTTP load balancer",
        )
        index = build_search_index([entry])

        for term in ("virtual", "http", "loadbalancer", "create", "load", "balancer", "an"):
            assert index.terms[term] == (entry.name,)
        assert "virtual_http-loadbalancer_create" in searchable_text(entry)

    def test_domain_and_operation_tables(self, five_entries):
        index = build_search_index(five_entries)

        assert set(index.domains) == {"virtual", "waap"}
        assert index.operations["create"] == (
            "virtual-http-loadbalancer-create",
            "waap-app-firewall-create",
        )

    def test_min_term_length_excludes_short_terms(self, make_entry):
        """A 3-letter term is dropped at minTermLength=4, a 4-letter one kept."""
        entry = make_entry("waf-http-policy", domain="waap", resource="policy", operation="create")
        index = build_search_index([entry], min_term_length=4)

        assert "waf" not in index.terms
        assert "http" in index.terms

    def test_every_id_resolves(self, sample_entries):
        index = build_search_index(sample_entries)

        for table in (index.terms, index.domains, index.operations):
            for ids in table.values():
                assert all(tool_id in index.tools_by_id for tool_id in ids)

    def test_build_is_deterministic(self, sample_entries):
        first = build_search_index(sample_entries)
        second = build_search_index(sample_entries)

        assert list(first.terms.items()) == list(second.terms.items())
        assert list(first.domains.items()) == list(second.domains.items())
        assert list(first.operations.items()) == list(second.operations.items())

    def test_index_is_read_only(self, five_entries):
        index = build_search_index(five_entries)

        with pytest.raises(TypeError):
            index.terms["new"] = ("x",)

    def test_empty_catalog(self):
        index = build_search_index([])

        assert len(index.tools_by_id) == 0
        assert search_index(index, ["anything"]) == {}


class TestSearchIndex:

    @pytest.fixture
    def index(self, make_entry):
        return build_search_index([
            make_entry("lb-create", resource="loadbalancer", operation="create",
                       summary="Create load balancer"),
            make_entry("pool-list", resource="pool", operation="list",
                       summary="List origin pools"),
        ])

    def test_exact_match(self, index):
        scores = search_index(index, ["balancer"])

        assert scores == {"lb-create": (EXACT_MATCH_SCORE, ["balancer"])}

    def test_empty_query(self, index):
        assert search_index(index, []) == {}

    def test_short_terms_skipped(self, index):
        assert search_index(index, ["a"]) == {}

    def test_scores_accumulate_across_terms(self, index):
        scores = search_index(index, ["create", "balancer"])

        assert scores["lb-create"][0] == pytest.approx(2.0)
        assert scores["lb-create"][1] == ["create", "balancer"]

    def test_repeated_terms_accumulate(self, index):
        scores = search_index(index, ["pool", "pool"])

        assert scores["pool-list"][0] == pytest.approx(2.0)

    def test_fuzzy_match(self, index):
        # "balancr" -> "balancer" (1 insertion)
        scores = search_index(index, ["balancr"])

        expected = (1 - 1 / 2) * FUZZY_MATCH_WEIGHT
        assert scores["lb-create"][0] == pytest.approx(expected)

    def test_prefix_match(self, index):
        scores = search_index(index, ["loadbal"])

        assert scores["lb-create"][0] == pytest.approx(PREFIX_MATCH_SCORE)

    def test_fuzzy_only_without_exact(self, index):
        """An exact hit suppresses approximate matching for that term."""
        scores = search_index(index, ["pool"])

        # "pools" is within distance 1 and prefixed by "pool", but "pool" matched exactly
        assert scores["pool-list"][0] == pytest.approx(EXACT_MATCH_SCORE)

    def test_fuzzy_disabled(self, index):
        assert search_index(index, ["balancr"], enable_fuzzy=False) == {}

    def test_larger_contribution_wins(self, make_entry):
        """A term that is both a fuzzy and a prefix match counts once, at the larger score."""
        index = build_search_index([make_entry("w", resource="pools", summary="")])
        scores = search_index(index, ["pool"])

        # distance("pool", "pools") = 1 -> 0.35; prefix -> 0.5
        assert scores["w"][0] == pytest.approx(PREFIX_MATCH_SCORE)


class TestFilters:

    def test_filter_by_domain(self, five_entries):
        index = build_search_index(five_entries)

        assert len(filter_by_domain(index, ["virtual"])) == 3
        assert len(filter_by_domain(index, ["virtual", "waap"])) == 5

    def test_filter_is_case_insensitive(self, five_entries):
        index = build_search_index(five_entries)

        assert filter_by_domain(index, ["VIRTUAL"]) == filter_by_domain(index, ["virtual"])
        assert filter_by_operation(index, ["Create"]) == {
            "virtual-http-loadbalancer-create",
            "waap-app-firewall-create",
        }

    def test_empty_filter(self, five_entries):
        index = build_search_index(five_entries)

        assert filter_by_domain(index, []) == set()
        assert filter_by_operation(index, ["unknown"]) == set()


class TestIndexStats:

    def test_stats(self, five_entries):
        index = build_search_index(five_entries)
        stats = get_index_stats(index)

        assert stats["total_tools"] == 5
        assert stats["total_domains"] == 2
        assert stats["total_operations"] == 4
        assert stats["total_terms"] == len(index.terms)
        assert stats["avg_terms_per_tool"] > 0
        assert stats["age_ms"] >= 0
