"""
Agent Catalogue
===============
The fixed set of analysis agents the orchestrator can run, and the helpers
that turn one of them into a ``StepInvocation`` for the Step Runner.

Each agent gets:
  - a system prompt  : prompts/<key>.md + prompts/architecture-patterns.md
  - settings / MCP   : settings/<settings_file>, settings/<mcp_file>
  - a context prompt : TASK / TARGET FILES / GOALS / OUTPUT / REFERENCES
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from agents.flags import RunOptions
from agents.paths import PathResolver
from agents.step_runner import StepInvocation
from prompts import SHARED_PROMPT, compose_prompts

logger = logging.getLogger(__name__)

SETTINGS_DIR = Path(__file__).parent.parent / "settings"


@dataclass(frozen=True)
class AgentSpec:
    key:           str
    name:          str
    description:   str
    output_file:   str
    task:          str
    goals:         tuple[str, ...]
    targets:       str = "business"      # "form" | "business" | "list"
    settings_file: str = "analysis-agent.settings.json"
    mcp_file:      str | None = "analysis-agent.mcp.json"

    @property
    def prompt_file(self) -> str:
        return f"{self.key}.md"


AGENTS: dict[str, AgentSpec] = {spec.key: spec for spec in [
    AgentSpec(
        key="form-structure-analyzer",
        name="Form Structure Analyzer",
        description="Extract form UI components",
        output_file="form-structure.json",
        task="Extract complete form structure from legacy VB.NET Windows Forms for {label}.",
        goals=(
            "Inventory every control in the designer file with its type, name and layout",
            "Identify grids, their columns and bound fields",
            "Capture search criteria inputs and action buttons",
            "Note event handlers wired to each control",
        ),
        targets="form",
    ),
    AgentSpec(
        key="business-logic-extractor",
        name="Business Logic Extractor",
        description="Extract business rules and validation",
        output_file="business-logic.json",
        task="Extract complete business logic from legacy VB.NET business objects for {label}.",
        goals=(
            "List properties with types, defaults and nullability",
            "Extract business rules from CheckBusinessRules",
            "Identify child entity collections",
            "Capture computed properties and dirty tracking",
        ),
    ),
    AgentSpec(
        key="data-access-analyzer",
        name="Data Access Pattern Analyzer",
        description="Extract stored procedures and queries",
        output_file="data-access.json",
        task="Extract data access patterns for {label}.",
        goals=(
            "Extract stored procedure names and parameters",
            "Parse AddFetchParameters for search criteria",
            "Extract result column mapping from ReadRow",
            "Identify CRUD operations",
            "Extract data formatting logic",
        ),
        targets="list",
    ),
    AgentSpec(
        key="security-extractor",
        name="Security & Authorization Extractor",
        description="Extract permissions and authorization",
        output_file="security.json",
        task="Extract security patterns for {label}.",
        goals=(
            "Extract the SubSystem identifier from InitializeBase",
            "Parse SetButtonTypes for button security",
            "Extract ControlAuthorization.SetButtonType calls",
            "Map button types to modern permission attributes",
            "Document API authentication (ApiKey) and UI authentication (OIDC)",
        ),
        targets="form",
    ),
    AgentSpec(
        key="ui-component-mapper",
        name="UI Component Mapper",
        description="Map legacy controls to modern equivalents",
        output_file="ui-mapping.json",
        task="Map legacy controls to modern equivalents for {label}.",
        goals=(
            "Map UltraGrid to DataTables",
            "Map UltraCombo to Select2",
            "Map UltraPanel to Bootstrap Card",
            "Map UltraTabControl to Bootstrap Nav Tabs",
        ),
        targets="form",
    ),
    AgentSpec(
        key="form-workflow-analyzer",
        name="Form Workflow Analyzer",
        description="Extract user flows and state management",
        output_file="workflow.json",
        task="Extract user flows and state management for {label}.",
        goals=(
            "Trace event handler chains",
            "Identify form lifecycle methods",
            "Extract state persistence patterns",
            "Identify modal dialog patterns",
            "Extract refresh/update triggers",
        ),
        targets="form",
    ),
    AgentSpec(
        key="detail-tab-analyzer",
        name="Detail Form Tab Analyzer",
        description="Extract tab structure and related entities",
        output_file="tabs.json",
        task="Extract the tab structure of the detail form for {label}.",
        goals=(
            "List every tab page with its controls",
            "Identify the related entity shown on each tab",
            "Capture tab-level enable/visibility rules",
        ),
        targets="form",
    ),
    AgentSpec(
        key="validation-extractor",
        name="Validation Rule Extractor",
        description="Extract all validation logic",
        output_file="validation.json",
        task="Extract all validation rules for {label}.",
        goals=(
            "Parse validation methods in forms (AreFieldsValid)",
            "Extract business rules from CheckBusinessRules",
            "Identify field-level constraints",
            "Extract error messages",
            "Identify validation triggers",
        ),
    ),
    AgentSpec(
        key="related-entity-analyzer",
        name="Related Entity Analyzer",
        description="Extract entity relationships",
        output_file="related-entities.json",
        task="Extract entity relationships for {label}.",
        goals=(
            "Identify child collection properties",
            "Extract CRUD methods for related entities",
            "Identify grid structures for related entities",
            "Extract parent-child key relationships",
        ),
    ),
]}


def get_agent(key: str) -> AgentSpec:
    try:
        return AGENTS[key]
    except KeyError:
        raise KeyError(f"Unknown agent '{key}'. Available: {sorted(AGENTS)}") from None


def load_settings(filename: str | None) -> dict[str, Any] | None:
    if filename is None:
        return None
    path = SETTINGS_DIR / filename
    if not path.exists():
        logger.warning("Settings file not found: %s -- continuing without it.", path)
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def compose_system_prompt(spec: AgentSpec) -> str:
    """Agent prompt followed by the shared architecture-pattern reference."""
    return compose_prompts(spec.prompt_file, SHARED_PROMPT)


def _target_files(
    spec: AgentSpec,
    resolver: PathResolver,
    entity: str,
    form_name: str | None,
    form_type: str | None,
) -> list[str]:
    if spec.targets == "form":
        if form_name and not form_type:
            return [
                f"- Form: {resolver.named_form_path(form_name)}",
                f"- Designer: {resolver.named_form_designer_path(form_name)}",
            ]
        form_types = [form_type] if form_type else ["Search", "Detail"]
        lines = []
        for ft in form_types:
            lines.append(f"- {ft} Form: {resolver.form_path(entity, ft)}")
            lines.append(f"- {ft} Designer: {resolver.form_designer_path(entity, ft)}")
        return lines
    if spec.targets == "list":
        return [
            f"- List class: {resolver.list_path(entity)}",
            f"- Business Object: {resolver.business_object_path(entity)}",
        ]
    return [
        f"- Business Object: {resolver.business_object_path(entity)}",
        f"- Base Class: {resolver.business_object_base_path(entity)}",
        f"- Location Base: {resolver.location_base_path()}",
    ]


def build_context_prompt(
    spec: AgentSpec,
    resolver: PathResolver,
    entity: str,
    output_dir: Path,
    output_file: str,
    form_name: str | None = None,
    form_type: str | None = None,
    extra: str = "",
) -> str:
    label = form_name if form_name and not form_type else (
        f"{entity} ({form_type})" if form_type else entity
    )
    goals = "\n".join(f"{i}. {g}" for i, g in enumerate(spec.goals, start=1))
    targets = "\n".join(_target_files(spec, resolver, entity, form_name, form_type))
    prompt = (
        f"TASK: {spec.task.format(label=label)}\n\n"
        f"TARGET FILES:\n{targets}\n\n"
        f"GOALS:\n{goals}\n\n"
        f"OUTPUT:\nGenerate a JSON file at: {output_dir}/{output_file}\n\n"
        f"ARCHITECTURE REFERENCES:\n"
        f"{resolver.reference_projects_for_prompt()}\n"
        f"{resolver.target_projects_for_prompt()}\n"
    )
    if extra:
        prompt += f"\n{extra.strip()}\n"
    return prompt + "\nBegin now.\n"


def build_invocation(
    spec: AgentSpec,
    options: RunOptions,
    resolver: PathResolver,
    output_dir: Path,
    entity: str,
    output_file: str | None = None,
    form_name: str | None = None,
    form_type: str | None = None,
) -> StepInvocation:
    """Assemble the ``StepInvocation`` for one agent run."""
    output_file = output_file or spec.output_file
    return StepInvocation(
        name=spec.name,
        context_prompt=build_context_prompt(
            spec, resolver, entity, output_dir, output_file,
            form_name=form_name, form_type=form_type, extra=options.prompt_text,
        ),
        output_dir=output_dir,
        entity=entity,
        system_prompt=compose_system_prompt(spec),
        settings=load_settings(spec.settings_file),
        mcp_config=load_settings(spec.mcp_file),
        form_type=form_type or form_name,
        interactive=options.interactive,
        user_flags=dict(options.user_flags),
    )
