"""
Tests for CostEstimator
Version: 1.0
"""

import pytest

from catalog_engine.cost_estimator import (
    CostEstimator,
    estimate_tokens,
    format_cost_estimate,
    format_workflow_cost_estimate,
)
from catalog_engine.resolver import CreationPlan, ResolveParams, WorkflowStep


@pytest.fixture
def estimator(sample_entries):
    return CostEstimator({entry.name: entry for entry in sample_entries})


def plan_with_tools(*tool_names):
    return CreationPlan(
        target_resource="test",
        target_domain="virtual",
        steps=[
            WorkflowStep(step_number=i, action="create", domain="virtual", resource=f"r{i}", tool_name=name)
            for i, name in enumerate(tool_names, start=1)
        ],
        total_steps=len(tool_names),
    )


class TestTokenEstimates:

    def test_estimate_tokens(self):
        assert estimate_tokens(None) == 0
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2
        assert estimate_tokens({"a": 1}) == 2  # '{"a":1}'

    def test_get_operation(self, estimator):
        tokens = estimator.estimate_tool_tokens("virtual_http-loadbalancer_get")

        # 50 + name(29 chars) 8 + summary(25 chars) 7 + 2 params * 15
        assert tokens.schema_tokens == 95
        # baseline 30 + 2 path params * 10
        assert tokens.request_tokens == 50
        assert tokens.response_tokens == 450
        assert tokens.total_tokens == 95 + 50 + 450

    def test_create_operation(self, estimator):
        tokens = estimator.estimate_tool_tokens("virtual_http-loadbalancer_create")

        assert tokens.request_tokens >= 500
        assert tokens.total_tokens == tokens.schema_tokens + tokens.request_tokens + tokens.response_tokens

    def test_list_operation(self, estimator):
        tokens = estimator.estimate_tool_tokens("virtual_http-loadbalancer_list")

        assert tokens.request_tokens < 100
        assert tokens.response_tokens > 500

    def test_update_operation(self, estimator):
        tokens = estimator.estimate_tool_tokens("virtual_http-loadbalancer_update")

        assert 100 < tokens.request_tokens < 500

    def test_delete_operation(self, estimator):
        tokens = estimator.estimate_tool_tokens("virtual_http-loadbalancer_delete")

        assert tokens.request_tokens < 100
        assert tokens.response_tokens < 500

    def test_unknown_tool(self, estimator):
        tokens = estimator.estimate_tool_tokens("non-existent-tool")

        assert (tokens.schema_tokens, tokens.request_tokens, tokens.response_tokens) == (200, 100, 300)
        assert tokens.total_tokens == 600

    def test_tool_without_shape(self, estimator):
        tokens = estimator.estimate_tool_tokens("waap_app-firewall_delete")

        assert tokens.schema_tokens > 50
        assert tokens.request_tokens == 30


class TestLatencyEstimates:

    def test_read_is_low(self, estimator):
        latency = estimator.estimate_tool_latency("virtual_http-loadbalancer_get")

        assert latency.level == "low"
        assert latency.estimated_ms == 300 + 2 * 2

    def test_mutation_is_moderate(self, estimator):
        latency = estimator.estimate_tool_latency("virtual_http-loadbalancer_create")

        assert latency.level == "moderate"
        # 1 path parameter + 2 request body fields
        assert latency.estimated_ms == 1000 + 2 * 3

    def test_declared_level_wins(self, estimator):
        latency = estimator.estimate_tool_latency("waap_app-firewall_create")

        assert latency.level == "high"
        assert latency.estimated_ms == 3000 + 2

    def test_unknown_tool(self, estimator):
        latency = estimator.estimate_tool_latency("non-existent-tool")

        assert latency.level == "unknown"
        assert latency.estimated_ms == 1000
        assert "not specified" in latency.description

    def test_low_faster_than_moderate(self, estimator):
        get = estimator.estimate_tool_latency("virtual_healthcheck_get")
        create = estimator.estimate_tool_latency("virtual_healthcheck_create")

        assert get.estimated_ms < create.estimated_ms


class TestToolCost:

    def test_known_tool(self, estimator):
        cost = estimator.estimate_tool_cost("waap_app-firewall_delete")

        assert cost.exists is True
        assert cost.danger_level == "high"
        assert cost.tool_name == "waap_app-firewall_delete"

    def test_unknown_tool(self, estimator):
        cost = estimator.estimate_tool_cost("non-existent-tool-xyz")

        assert cost.exists is False
        assert cost.danger_level == "low"
        assert cost.tokens.total_tokens == 600

    def test_multiple_keeps_order(self, estimator):
        names = ["virtual_healthcheck_get", "missing", "tenant_namespace_create"]
        costs = estimator.estimate_multiple_tools_cost(names)

        assert [c.tool_name for c in costs] == names
        assert [c.exists for c in costs] == [True, False, True]
        assert costs[0].tokens == estimator.estimate_tool_tokens(names[0])

    def test_multiple_empty(self, estimator):
        assert estimator.estimate_multiple_tools_cost([]) == []


class TestWorkflowCost:

    def test_resolved_plan(self, estimator, planner):
        plan = planner.resolve_dependencies(ResolveParams("http-loadbalancer", "virtual")).plan
        estimate = estimator.estimate_workflow_cost(plan)

        assert estimate.step_count == 4
        assert estimate.warnings == []
        assert [s.step_number for s in estimate.steps] == [1, 2, 3, 4]
        assert estimate.total_tokens == sum(s.tokens for s in estimate.steps)
        # namespace 1000, healthcheck 1002, origin pool 1002, load balancer 1006
        assert estimate.estimated_total_ms == 4010
        assert estimate.average_latency == "moderate"

    def test_not_detailed(self, estimator):
        estimate = estimator.estimate_workflow_cost(plan_with_tools("virtual_healthcheck_get"), detailed=False)

        assert estimate.steps == []
        assert estimate.total_tokens > 0

    def test_skipped_steps_ignored(self, estimator, planner):
        params = ResolveParams("http-loadbalancer", "virtual", existing_resources=["virtual/origin-pool"])
        plan = planner.resolve_dependencies(params).plan
        estimate = estimator.estimate_workflow_cost(plan)

        assert estimate.step_count == 1
        assert [s.tool_name for s in estimate.steps] == ["virtual_http-loadbalancer_create"]

    def test_unknown_tool_warns(self, estimator):
        estimate = estimator.estimate_workflow_cost(plan_with_tools("missing-tool"))

        assert estimate.step_count == 1
        assert "not found" in estimate.warnings[0]
        assert estimate.total_tokens == 0
        assert estimate.estimated_total_ms == 0

    def test_empty_plan(self, estimator):
        estimate = estimator.estimate_workflow_cost(plan_with_tools())

        assert estimate.step_count == 0
        assert estimate.total_tokens == 0
        assert estimate.estimated_total_ms == 0

    def test_low_average(self, estimator):
        plan = plan_with_tools("virtual_healthcheck_get", "virtual_http-loadbalancer_get")

        assert estimator.estimate_workflow_cost(plan).average_latency == "low"

    def test_high_average(self, estimator):
        plan = plan_with_tools("waap_app-firewall_create")

        assert estimator.estimate_workflow_cost(plan).average_latency == "high"


class TestFormatting:

    def test_tool_estimate(self, estimator):
        text = format_cost_estimate(estimator.estimate_tool_cost("virtual_http-loadbalancer_get"))

        assert "# Cost Estimate: virtual_http-loadbalancer_get" in text
        for section in ("## Token Usage", "## Latency", "## Risk"):
            assert section in text
        for label in ("Schema/Description:", "Request Body:", "Response:", "**Total per call**:"):
            assert label in text
        assert "Level: low" in text
        assert "Danger Level: low" in text
        assert "Warning" not in text

    def test_unknown_tool_warning(self, estimator):
        text = format_cost_estimate(estimator.estimate_tool_cost("nope"))

        assert "Warning" in text
        assert "Tool not found" in text

    def test_workflow_estimate(self, estimator):
        estimate = estimator.estimate_workflow_cost(plan_with_tools("virtual_healthcheck_get", "missing"))
        text = format_workflow_cost_estimate(estimate)

        assert "# Workflow Cost Estimate" in text
        assert "## Summary" in text
        assert "**Total Steps**: 2" in text
        assert "**Total Tokens**:" in text
        assert "**Average Latency**: low" in text
        assert "**Estimated Total Time**:" in text
        assert "## Step Breakdown" in text
        assert "| Step | Tool | Tokens | Latency |" in text
        assert "## Warnings" in text
        assert "not found" in text
