"""
Cost Estimator - Token and latency estimates for catalog operations.
Version: 1.0

Single responsibility: Derive per-call token usage and latency from the
already-loaded operation metadata, for single operations, batches and
whole creation plans. No network calls.

Token model (1 token ~ 4 characters):
    schema   = 50 + name + summary + 15 per parameter + request body schema
    request  = operation baseline + example payload + 10 per path parameter
    response = operation baseline
"""

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from catalog_engine.contracts import CatalogEntry
from catalog_engine.resolver import CreationPlan

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4

SCHEMA_BASE_TOKENS = 50
TOKENS_PER_PARAMETER = 15
TOKENS_PER_PATH_PARAMETER = 10

REQUEST_BASELINE_TOKENS: Dict[str, int] = {
    "create": 500,
    "update": 250,
    "patch": 200,
    "get": 30,
    "list": 40,
    "delete": 30,
}

RESPONSE_BASELINE_TOKENS: Dict[str, int] = {
    "list": 1200,
    "get": 450,
    "create": 400,
    "update": 400,
    "patch": 300,
    "delete": 80,
}

# Unknown tool: schema / request / response
DEFAULT_TOKEN_ESTIMATE = (200, 100, 300)

LATENCY_BASELINE_MS: Dict[str, int] = {
    "low": 300,
    "moderate": 1000,
    "high": 3000,
}
MS_PER_FIELD = 2
UNKNOWN_LATENCY_MS = 1000

LATENCY_DESCRIPTIONS: Dict[str, str] = {
    "low": "Fast read operation, typically under a second",
    "moderate": "Write operation, typically around a second",
    "high": "Long-running operation, may take several seconds",
}

# Mean step latency thresholds for the workflow level
LOW_LATENCY_MAX_MS = 600
MODERATE_LATENCY_MAX_MS = 2000


@dataclass
class TokenEstimate:
    schema_tokens: int
    request_tokens: int
    response_tokens: int
    total_tokens: int


@dataclass
class LatencyEstimate:
    level: str
    estimated_ms: int
    description: str


@dataclass
class ToolCostEstimate:
    tool_name: str
    tokens: TokenEstimate
    latency: LatencyEstimate
    danger_level: str
    exists: bool


@dataclass
class StepCost:
    step_number: int
    tool_name: str
    tokens: int
    latency_ms: int


@dataclass
class WorkflowCostEstimate:
    total_tokens: int
    average_latency: str
    estimated_total_ms: int
    step_count: int
    steps: List[StepCost] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def estimate_tokens(value: Any) -> int:
    """ceil(characters / 4); non-strings are measured as compact JSON."""
    if value is None:
        return 0
    if not isinstance(value, str):
        value = json.dumps(value, separators=(",", ":"), sort_keys=True)
    return math.ceil(len(value) / CHARS_PER_TOKEN)


def _body_field_count(request_body: Optional[Dict[str, Any]]) -> int:
    if not request_body:
        return 0
    properties = request_body.get("properties")
    if isinstance(properties, dict):
        return len(properties)
    return len(request_body)


class CostEstimator:
    """Estimates over a name -> entry mapping of the catalog."""

    def __init__(self, entries_by_name: Mapping[str, CatalogEntry]):
        self.entries_by_name = entries_by_name

    # ═══════════════════════════════════════════════
    # SINGLE TOOL
    # ═══════════════════════════════════════════════

    def estimate_tool_tokens(self, tool_name: str) -> TokenEstimate:
        entry = self.entries_by_name.get(tool_name)
        if entry is None:
            schema, request, response = DEFAULT_TOKEN_ESTIMATE
            return TokenEstimate(schema, request, response, schema + request + response)

        shape = entry.shape
        parameter_count = shape.parameter_count if shape else 0
        path_parameters = len(shape.path_parameters) if shape else 0

        schema = (
            SCHEMA_BASE_TOKENS
            + estimate_tokens(entry.name)
            + estimate_tokens(entry.summary)
            + TOKENS_PER_PARAMETER * parameter_count
            + estimate_tokens(shape.request_body if shape else None)
        )
        request = (
            REQUEST_BASELINE_TOKENS[entry.operation]
            + estimate_tokens(shape.example_payload if shape else None)
            + TOKENS_PER_PATH_PARAMETER * path_parameters
        )
        response = RESPONSE_BASELINE_TOKENS[entry.operation]

        return TokenEstimate(schema, request, response, schema + request + response)

    def estimate_tool_latency(self, tool_name: str) -> LatencyEstimate:
        entry = self.entries_by_name.get(tool_name)
        if entry is None:
            return LatencyEstimate(
                level="unknown",
                estimated_ms=UNKNOWN_LATENCY_MS,
                description="Latency not specified for this tool; assuming about one second",
            )

        shape = entry.shape
        level = shape.latency_level if shape and shape.latency_level else None
        if level is None:
            level = "low" if entry.operation in ("get", "list") else "moderate"

        field_count = 0
        if shape:
            field_count = shape.parameter_count + _body_field_count(shape.request_body)

        return LatencyEstimate(
            level=level,
            estimated_ms=LATENCY_BASELINE_MS[level] + MS_PER_FIELD * field_count,
            description=LATENCY_DESCRIPTIONS[level],
        )

    def estimate_tool_cost(self, tool_name: str) -> ToolCostEstimate:
        entry = self.entries_by_name.get(tool_name)
        return ToolCostEstimate(
            tool_name=tool_name,
            tokens=self.estimate_tool_tokens(tool_name),
            latency=self.estimate_tool_latency(tool_name),
            danger_level=entry.danger_level if entry else "low",
            exists=entry is not None,
        )

    def estimate_multiple_tools_cost(self, tool_names: List[str]) -> List[ToolCostEstimate]:
        """Estimates in input order; unknown names yield exists=False."""
        return [self.estimate_tool_cost(name) for name in tool_names]

    # ═══════════════════════════════════════════════
    # WORKFLOW
    # ═══════════════════════════════════════════════

    def estimate_workflow_cost(self, plan: CreationPlan, detailed: bool = True) -> WorkflowCostEstimate:
        """
        Aggregate estimates over the actionable steps of a creation plan.

        Steps whose tool is missing from the catalog are excluded from the
        totals and reported as warnings.
        """
        total_tokens = 0
        total_ms = 0
        step_costs: List[StepCost] = []
        warnings: List[str] = []
        steps = plan.actionable_steps

        for step in steps:
            if not step.tool_name or step.tool_name not in self.entries_by_name:
                warnings.append(
                    f"Tool for step {step.step_number} ({step.domain}/{step.resource}) "
                    f"not found: {step.tool_name or 'none'}"
                )
                continue

            cost = self.estimate_tool_cost(step.tool_name)
            total_tokens += cost.tokens.total_tokens
            total_ms += cost.latency.estimated_ms
            step_costs.append(StepCost(
                step_number=step.step_number,
                tool_name=step.tool_name,
                tokens=cost.tokens.total_tokens,
                latency_ms=cost.latency.estimated_ms,
            ))

        if warnings:
            logger.warning(f"Workflow estimate for {plan.target_resource}: {len(warnings)} tools not found")

        return WorkflowCostEstimate(
            total_tokens=total_tokens,
            average_latency=self._average_level(total_ms, len(step_costs)),
            estimated_total_ms=total_ms,
            step_count=len(steps),
            steps=step_costs if detailed else [],
            warnings=warnings,
        )

    @staticmethod
    def _average_level(total_ms: int, count: int) -> str:
        if count == 0:
            return "low"
        mean = total_ms / count
        if mean <= LOW_LATENCY_MAX_MS:
            return "low"
        if mean <= MODERATE_LATENCY_MAX_MS:
            return "moderate"
        return "high"


# ═══════════════════════════════════════════════
# MARKDOWN
# ═══════════════════════════════════════════════

def format_cost_estimate(estimate: ToolCostEstimate) -> str:
    lines = [f"# Cost Estimate: {estimate.tool_name}", ""]

    if not estimate.exists:
        lines.append("> **Warning**: Tool not found in catalog, default estimates shown.")
        lines.append("")

    tokens = estimate.tokens
    lines.extend([
        "## Token Usage",
        "",
        f"- Schema/Description: {tokens.schema_tokens} tokens",
        f"- Request Body: {tokens.request_tokens} tokens",
        f"- Response: {tokens.response_tokens} tokens",
        f"- **Total per call**: {tokens.total_tokens} tokens",
        "",
        "## Latency",
        "",
        f"- Level: {estimate.latency.level}",
        f"- Estimated: {estimate.latency.estimated_ms} ms",
        f"- {estimate.latency.description}",
        "",
        "## Risk",
        "",
        f"- Danger Level: {estimate.danger_level}",
        "",
    ])
    return "\n".join(lines)


def format_workflow_cost_estimate(estimate: WorkflowCostEstimate) -> str:
    lines = [
        "# Workflow Cost Estimate",
        "",
        "## Summary",
        "",
        f"- **Total Steps**: {estimate.step_count}",
        f"- **Total Tokens**: {estimate.total_tokens}",
        f"- **Average Latency**: {estimate.average_latency}",
        f"- **Estimated Total Time**: {estimate.estimated_total_ms} ms",
        "",
    ]

    if estimate.steps:
        lines.extend([
            "## Step Breakdown",
            "",
            "| Step | Tool | Tokens | Latency |",
            "|------|------|--------|---------|",
        ])
        for step in estimate.steps:
            lines.append(
                f"| {step.step_number} | `{step.tool_name}` | {step.tokens} | {step.latency_ms} ms |"
            )
        lines.append("")

    if estimate.warnings:
        lines.append("## Warnings")
        lines.append("")
        lines.extend(f"- ⚠️ {warning}" for warning in estimate.warnings)
        lines.append("")

    return "\n".join(lines)
