"""
Creation Planner - Ordered creation plans from the dependency graph.
Version: 1.0

Single responsibility: Given a target resource, produce the sequence of
create operations that builds it (prerequisites first), plus the
choices, subscriptions and warnings a caller needs to execute it.

The traversal is iterative with an explicit path set, so cyclic graphs
and deep chains terminate without relying on the interpreter stack.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Set

from catalog_engine.consolidate import ConsolidationEngine
from catalog_engine.contracts import (
    CatalogEntry,
    DependencyEdge,
    OneOfGroup,
    SubscriptionRequirement,
    normalize_name,
    resource_key,
)
from catalog_engine.dependencies import DependencyGraphResolver
from catalog_engine.metrics import record_plan_resolution

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10

ERROR_RESOURCE_NOT_FOUND = "resource_not_found"
ERROR_MAX_DEPTH_EXCEEDED = "max_depth_exceeded"


@dataclass
class ResolveParams:
    """Input of a plan resolution."""
    resource: str
    domain: str
    existing_resources: List[str] = field(default_factory=list)  # "domain/resource"
    include_optional: bool = False
    max_depth: int = DEFAULT_MAX_DEPTH
    expand_alternatives: bool = False


@dataclass
class WorkflowStep:
    """Single create step of a plan."""
    step_number: Optional[int]  # None for skipped steps
    action: str
    domain: str
    resource: str
    tool_name: Optional[str] = None
    depends_on: List[str] = field(default_factory=list)  # "domain/resource" of earlier steps
    optional: bool = False
    skipped: bool = False
    required_inputs: List[str] = field(default_factory=list)
    one_of_choices: List[OneOfGroup] = field(default_factory=list)
    subscriptions: List[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        return resource_key(self.domain, self.resource)


@dataclass
class AlternativePath:
    """One option of a oneOf choice, with the steps it would add."""
    choice_field: str
    selected_option: str
    description: str
    steps: List[WorkflowStep] = field(default_factory=list)


@dataclass
class CreationPlan:
    target_resource: str
    target_domain: str
    steps: List[WorkflowStep] = field(default_factory=list)
    total_steps: int = 0
    complexity: str = "low"
    warnings: List[str] = field(default_factory=list)
    alternatives: List[AlternativePath] = field(default_factory=list)
    subscriptions: List[str] = field(default_factory=list)
    existing_resources: List[str] = field(default_factory=list)

    @property
    def actionable_steps(self) -> List[WorkflowStep]:
        return [step for step in self.steps if not step.skipped]


@dataclass
class ResolveResult:
    success: bool
    plan: Optional[CreationPlan] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass
class _Visit:
    """Traversal frame: one resource on the current path."""
    key: str
    domain: str
    resource: str
    depth: int
    optional: bool
    edges: List[DependencyEdge]
    next_index: int = 0


def calculate_complexity(step_count: int) -> str:
    if step_count <= 2:
        return "low"
    if step_count <= 5:
        return "medium"
    return "high"


def format_subscription(requirement: SubscriptionRequirement) -> str:
    """'Display Name (Tier) - required'"""
    label = requirement.display_name
    if requirement.tier:
        label = f"{label} ({requirement.tier})"
    status = "required" if requirement.required else "optional"
    return f"{label} - {status}"


class CreationPlanner:
    """
    Builds creation plans.

    Responsibilities:
    - Order prerequisites before dependents (depth-first post-order)
    - Skip resources that already exist
    - Resolve the create tool of every step
    - Expand oneOf choices into alternative paths on request
    """

    def __init__(
        self,
        dependency_resolver: DependencyGraphResolver,
        consolidation: ConsolidationEngine,
        entries_by_name: Optional[Mapping[str, CatalogEntry]] = None,
    ):
        self.dependencies = dependency_resolver
        self.consolidation = consolidation
        self.entries_by_name = entries_by_name or {}

    # ═══════════════════════════════════════════════
    # RESOLUTION
    # ═══════════════════════════════════════════════

    def resolve_dependencies(self, params: ResolveParams) -> ResolveResult:
        """
        Resolve the creation plan for a resource.

        Returns:
            ResolveResult. On failure the error code is "resource_not_found"
            or "max_depth_exceeded"; the latter carries the partial plan.
        """
        result = self._resolve(params)
        record_plan_resolution(result.success, result.error_code or "")
        if result.success:
            logger.info(
                f"📋 Plan for {params.domain}/{params.resource}: "
                f"{result.plan.total_steps} steps ({result.plan.complexity})"
            )
        else:
            logger.warning(f"Plan for {params.domain}/{params.resource} failed: {result.error}")
        return result

    def _resolve(self, params: ResolveParams) -> ResolveResult:
        if not self.dependencies.has_resource(params.domain, params.resource):
            return ResolveResult(
                success=False,
                error=f"Resource '{params.domain}/{params.resource}' not found in dependency graph",
                error_code=ERROR_RESOURCE_NOT_FOUND,
            )

        plan = CreationPlan(target_resource=params.resource, target_domain=params.domain)
        plan.existing_resources = self._normalize_existing(params.existing_resources)

        depth_exceeded = self._build_steps(params, plan, set(plan.existing_resources))

        plan.total_steps = len(plan.actionable_steps)
        plan.complexity = calculate_complexity(plan.total_steps)
        plan.subscriptions = self._collect_subscriptions(plan.actionable_steps)

        if params.expand_alternatives:
            plan.alternatives = self._expand_alternatives(plan, params)

        if depth_exceeded:
            return ResolveResult(
                success=False,
                plan=plan,
                error=(
                    f"Maximum depth {params.max_depth} exceeded while resolving "
                    f"{params.domain}/{params.resource}; increase max_depth"
                ),
                error_code=ERROR_MAX_DEPTH_EXCEEDED,
            )
        return ResolveResult(success=True, plan=plan)

    @staticmethod
    def _normalize_existing(existing: List[str]) -> List[str]:
        keys: List[str] = []
        for value in existing:
            domain, _, resource = value.partition("/")
            key = resource_key(domain, resource) if resource else normalize_name(value)
            if key not in keys:
                keys.append(key)
        return keys

    def _build_steps(self, params: ResolveParams, plan: CreationPlan, existing: Set[str]) -> bool:
        """
        Fill plan.steps in creation order.

        Returns:
            True when a required prerequisite lies beyond max_depth
        """
        depth_exceeded = False
        emitted: Set[str] = set()
        step_number = 0

        target_key = resource_key(params.domain, params.resource)
        if target_key in existing:
            plan.steps.append(self._skipped_step(
                DependencyEdge(domain=params.domain, resource_type=params.resource), optional=False
            ))
            return False

        required_keys = self._required_keys(params.domain, params.resource, existing)
        stack: List[_Visit] = [self._visit(target_key, params.domain, params.resource, 0, False, plan)]
        on_path = {target_key}

        while stack:
            frame = stack[-1]

            if frame.next_index < len(frame.edges):
                edge = frame.edges[frame.next_index]
                frame.next_index += 1

                if not edge.required and not params.include_optional:
                    continue

                key = edge.key
                if key in emitted:
                    continue
                if key in on_path:
                    plan.warnings.append(
                        f"Circular dependency detected: {frame.key} -> {key} (skipped)"
                    )
                    continue
                if key in existing:
                    emitted.add(key)
                    plan.steps.append(self._skipped_step(edge, optional=key not in required_keys))
                    continue
                if frame.depth + 1 > params.max_depth:
                    depth_exceeded = depth_exceeded or edge.required
                    plan.warnings.append(
                        f"Max depth {params.max_depth} reached at {frame.key}, "
                        f"{key} not resolved"
                    )
                    continue

                stack.append(self._visit(
                    key, edge.domain, edge.resource_type, frame.depth + 1,
                    key not in required_keys, plan,
                ))
                on_path.add(key)
                continue

            stack.pop()
            on_path.discard(frame.key)
            emitted.add(frame.key)

            step_number += 1
            plan.steps.append(self._create_step(frame, step_number, plan, emitted, existing))

        return depth_exceeded

    def _visit(
        self,
        key: str,
        domain: str,
        resource: str,
        depth: int,
        optional: bool,
        plan: CreationPlan,
    ) -> _Visit:
        node = self.dependencies.get_node(domain, resource)
        if node is None:
            plan.warnings.append(
                f"{key} not found in dependency graph, assuming no prerequisites"
            )
            return _Visit(key, domain, resource, depth, optional, [])
        return _Visit(key, node.domain, node.resource, depth, optional, list(node.requires))

    def _required_keys(self, domain: str, resource: str, existing: Set[str]) -> Set[str]:
        """Keys reachable from the target through required edges only."""
        required = {resource_key(domain, resource)}
        pending = [(domain, resource)]
        while pending:
            node = self.dependencies.get_node(*pending.pop())
            if node is None:
                continue
            for edge in node.requires:
                if not edge.required or edge.key in required:
                    continue
                required.add(edge.key)
                if edge.key not in existing:
                    pending.append((edge.domain, edge.resource_type))
        return required

    @staticmethod
    def _skipped_step(edge: DependencyEdge, optional: bool) -> WorkflowStep:
        return WorkflowStep(
            step_number=None,
            action="create",
            domain=edge.domain,
            resource=edge.resource_type,
            optional=optional,
            skipped=True,
        )

    def _create_step(
        self,
        frame: _Visit,
        step_number: int,
        plan: CreationPlan,
        emitted: Set[str],
        existing: Set[str],
    ) -> WorkflowStep:
        tool_name = self.consolidation.find_tool(frame.domain, frame.resource, "create")
        if tool_name is None:
            plan.warnings.append(f"No create tool found for {frame.domain}/{frame.resource}")

        required_inputs: List[str] = []
        entry = self.entries_by_name.get(tool_name) if tool_name else None
        if entry is not None and entry.shape is not None:
            required_inputs = list(entry.shape.required_fields)

        depends_on: List[str] = []
        for edge in frame.edges:
            key = edge.key
            # only prerequisites already placed, as actionable steps
            if key in emitted and key not in existing and key != frame.key and key not in depends_on:
                depends_on.append(key)

        return WorkflowStep(
            step_number=step_number,
            action="create",
            domain=frame.domain,
            resource=frame.resource,
            tool_name=tool_name,
            depends_on=depends_on,
            optional=frame.optional,
            required_inputs=required_inputs,
            one_of_choices=self.dependencies.get_one_of_groups(frame.domain, frame.resource),
            subscriptions=[
                format_subscription(sub)
                for sub in self.dependencies.get_subscription_requirements(frame.domain, frame.resource)
            ],
        )

    @staticmethod
    def _collect_subscriptions(steps: List[WorkflowStep]) -> List[str]:
        subscriptions: List[str] = []
        for step in steps:
            for sub in step.subscriptions:
                if sub not in subscriptions:
                    subscriptions.append(sub)
        return subscriptions

    def _expand_alternatives(self, plan: CreationPlan, params: ResolveParams) -> List[AlternativePath]:
        """One path per oneOf option of every actionable step."""
        alternatives: List[AlternativePath] = []
        planned = {step.key for step in plan.steps}

        for step in plan.actionable_steps:
            for group in step.one_of_choices:
                for option in group.options:
                    alternatives.append(AlternativePath(
                        choice_field=group.choice_field,
                        selected_option=option,
                        description=f"Alternative using {option} for {group.choice_field}",
                        steps=self._option_steps(step.domain, option, planned, params),
                    ))
        return alternatives

    def _option_steps(
        self,
        domain: str,
        option: str,
        planned: Set[str],
        params: ResolveParams,
    ) -> List[WorkflowStep]:
        """Sub-plan of an option naming a known resource, minus steps already planned."""
        if not self.dependencies.has_resource(domain, option):
            return []

        sub_params = ResolveParams(
            resource=option,
            domain=domain,
            existing_resources=list(params.existing_resources),
            include_optional=params.include_optional,
            max_depth=params.max_depth,
        )
        sub_result = self._resolve(sub_params)
        if sub_result.plan is None:
            return []
        return [
            step for step in sub_result.plan.actionable_steps
            if step.key not in planned
        ]

    # ═══════════════════════════════════════════════
    # COMPACT OUTPUT
    # ═══════════════════════════════════════════════

    def generate_compact_plan(self, params: ResolveParams) -> Dict[str, Any]:
        """
        Token-efficient plan for programmatic consumers.

        Returns:
            {"success", "target", "steps": [{"step", "tool", "resource",
            "inputs", "choices"?}], "warnings"?} or {"success": False, "error"}
        """
        result = self.resolve_dependencies(params)
        if result.plan is None:
            return {"success": False, "error": result.error, "error_code": result.error_code}

        plan = result.plan
        steps = []
        for step in plan.actionable_steps:
            compact: Dict[str, Any] = {
                "step": step.step_number,
                "tool": step.tool_name,
                "resource": step.key,
                "inputs": list(step.required_inputs),
            }
            if step.one_of_choices:
                compact["choices"] = {
                    group.choice_field: list(group.options) for group in step.one_of_choices
                }
            steps.append(compact)

        compact_plan: Dict[str, Any] = {
            "success": result.success,
            "target": resource_key(plan.target_domain, plan.target_resource),
            "complexity": plan.complexity,
            "steps": steps,
        }
        if plan.existing_resources:
            compact_plan["skipped"] = list(plan.existing_resources)
        if plan.subscriptions:
            compact_plan["subscriptions"] = list(plan.subscriptions)
        if plan.warnings:
            compact_plan["warnings"] = list(plan.warnings)
        if not result.success:
            compact_plan["error"] = result.error
            compact_plan["error_code"] = result.error_code
        return compact_plan


# ═══════════════════════════════════════════════
# MARKDOWN
# ═══════════════════════════════════════════════

def format_creation_plan(plan: CreationPlan) -> str:
    """Render a plan as markdown."""
    lines: List[str] = [
        f"# Creation Plan for {plan.target_domain}/{plan.target_resource}",
        "",
        f"**Complexity**: {plan.complexity}",
        f"**Total Steps**: {plan.total_steps}",
        "",
    ]

    if plan.subscriptions:
        lines.append("## Required Subscriptions")
        lines.append("")
        lines.extend(f"- {sub}" for sub in plan.subscriptions)
        lines.append("")

    if plan.existing_resources:
        lines.append("## Existing Resources (Skipped)")
        lines.append("")
        lines.extend(f"- {key}" for key in plan.existing_resources)
        lines.append("")

    lines.append("## Steps")
    lines.append("")
    for step in plan.steps:
        if step.skipped:
            continue
        lines.extend(_format_step(step))

    if plan.alternatives:
        lines.append("## Alternative Paths")
        lines.append("")
        for alternative in plan.alternatives:
            lines.append(f"- **{alternative.choice_field}**: {alternative.selected_option}")
            if alternative.description:
                lines.append(f"  - {alternative.description}")
            for step in alternative.steps:
                lines.append(f"  - create {step.domain}/{step.resource}")
        lines.append("")

    if plan.warnings:
        lines.append("## Warnings")
        lines.append("")
        lines.extend(f"- ⚠️ {warning}" for warning in plan.warnings)
        lines.append("")

    return "\n".join(lines)


def _format_step(step: WorkflowStep) -> List[str]:
    title = f"### Step {step.step_number}: {step.action} {step.domain}/{step.resource}"
    if step.optional:
        title += " (optional)"
    lines = [title, ""]

    if step.tool_name:
        lines.append(f"- **Tool**: `{step.tool_name}`")
    else:
        lines.append("- **Tool**: not available")
    if step.depends_on:
        lines.append(f"- **Depends On**: {', '.join(step.depends_on)}")
    if step.required_inputs:
        lines.append(f"- **Required Inputs**: {', '.join(step.required_inputs)}")
    if step.one_of_choices:
        lines.append("- **Mutually Exclusive Choices**:")
        for group in step.one_of_choices:
            line = f"  - `{group.choice_field}`: {', '.join(group.options)}"
            if group.description:
                line += f" ({group.description})"
            lines.append(line)
    if step.subscriptions:
        lines.append(f"- **Subscriptions**: {'; '.join(step.subscriptions)}")

    lines.append("")
    return lines
