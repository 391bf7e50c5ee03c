"""
Conversion Orchestrator
=======================
Runs the fixed, numbered sequence of analysis agents for one entity.

Two step lists exist, chosen by ``infer_mode()``:

  single-form    (9 steps)  one legacy form covers search and detail
  search-detail  (10 steps) separate frm{Entity}Search / frm{Entity}Detail forms

followed in both cases by the same eight analysis steps (business logic, data
access, security, UI mapping, workflow, tabs, validation, related entities).

Per step, in order:
  1. already satisfied (completed with output on disk, or skipped) -> leave as is
  2. listed in --skip-steps                                        -> mark skipped
  3. otherwise mark running, run the agent
       exit 0    -> completed
       non-zero  -> failed, stop; the exit code becomes the run's exit code

Later steps read earlier steps' JSON, so nothing runs in parallel.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from agents.catalog import build_invocation, get_agent
from agents.flags import RunOptions
from agents.paths import PathResolver, parse_entity_from_form_name
from agents.status_tracker import StatusTracker, StepStatus
from agents.step_runner import StepRunner

logger = logging.getLogger(__name__)

SEARCH_DETAIL_FORM_RE = re.compile(r"^(frm)?\w+(Search|Detail)$", re.IGNORECASE)


class UsageError(Exception):
    """Raised when the command line does not identify an entity."""


class AnalysisMode(str, Enum):
    SINGLE_FORM   = "single-form"
    SEARCH_DETAIL = "search-detail"


@dataclass(frozen=True)
class Step:
    number:      int
    name:        str
    agent_key:   str
    output_file: str
    description: str = ""
    form_name:   str | None = None
    form_type:   str | None = None


# (agent key, step name, output file) shared by both modes, in run order.
COMMON_STEPS = [
    ("business-logic-extractor", "Business Logic Extractor",           "business-logic.json"),
    ("data-access-analyzer",     "Data Access Pattern Analyzer",       "data-access.json"),
    ("security-extractor",       "Security & Authorization Extractor", "security.json"),
    ("ui-component-mapper",      "UI Component Mapper",                "ui-mapping.json"),
    ("form-workflow-analyzer",   "Form Workflow Analyzer",             "workflow.json"),
    ("detail-tab-analyzer",      "Detail Form Tab Analyzer",           "tabs.json"),
    ("validation-extractor",     "Validation Rule Extractor",          "validation.json"),
    ("related-entity-analyzer",  "Related Entity Analyzer",            "related-entities.json"),
]

SINGLE_FORM_MARKER = "form-structure.json"
SEARCH_MARKER      = "form-structure-search.json"
DETAIL_MARKER      = "form-structure-detail.json"


# ---------------------------------------------------------------------------
# Target / mode resolution
# ---------------------------------------------------------------------------

def default_single_form_name(entity: str) -> str:
    return f"frm{entity}"


def resolve_target(entity: str | None, form_name: str | None) -> tuple[str, str | None]:
    """
    Work out ``(entity, form_name)`` from the command line.

    ``--form-name frmFacilitySearch`` alone gives entity ``Facility``; a form
    that does not follow the Search/Detail naming (``frmBargeStatus``) has its
    ``frm`` prefix stripped and is treated as a single form.

    Raises:
        UsageError -- if neither option identifies an entity
    """
    if entity:
        return entity, form_name
    if form_name:
        parsed = parse_entity_from_form_name(form_name)
        if parsed:
            return parsed, form_name
        if form_name.lower().startswith("frm") and len(form_name) > 3:
            return form_name[3:], form_name
        raise UsageError(
            f"Could not derive an entity from form name '{form_name}'. "
            f"Pass --entity explicitly."
        )
    raise UsageError("Error: --entity parameter is required")


def choose_form(forms: list[str], input_fn: Callable[[str], str] = input) -> str:
    """Ask the user to pick one of *forms* by number."""
    if not forms:
        raise UsageError("No forms found in the forms directory. Pass --entity or --form-name.")
    print("\nAvailable forms:")
    for i, name in enumerate(forms, start=1):
        print(f"  {i:>3}. {name}")
    while True:
        try:
            answer = input_fn("\nSelect a form number: ").strip()
        except EOFError:
            raise UsageError("No form selected") from None
        if answer.isdigit() and 1 <= int(answer) <= len(forms):
            return forms[int(answer) - 1]
        print(f"  Please enter a number between 1 and {len(forms)}.")


def infer_mode(output_dir: str | Path, form_name: str | None = None) -> AnalysisMode:
    """
    Pick the step list for an entity.

    Marker files already in *output_dir* win, then the form-name hint, then
    the search/detail default. This is a heuristic; the spec generator makes
    the same guess independently.
    """
    out = Path(output_dir)
    if (out / SINGLE_FORM_MARKER).exists():
        return AnalysisMode.SINGLE_FORM
    if (out / SEARCH_MARKER).exists() or (out / DETAIL_MARKER).exists():
        return AnalysisMode.SEARCH_DETAIL
    if form_name and not SEARCH_DETAIL_FORM_RE.match(form_name):
        return AnalysisMode.SINGLE_FORM
    return AnalysisMode.SEARCH_DETAIL


def build_steps(mode: AnalysisMode, entity: str, form_name: str | None = None) -> list[Step]:
    steps: list[Step] = []
    single_form = None
    if mode == AnalysisMode.SINGLE_FORM:
        single_form = form_name or default_single_form_name(entity)
        steps.append(Step(1, f"Form Structure Analyzer ({single_form})",
                          "form-structure-analyzer", SINGLE_FORM_MARKER,
                          f"Extract {single_form} UI components", form_name=single_form))
    else:
        steps.append(Step(1, "Form Structure Analyzer (Search)", "form-structure-analyzer",
                          SEARCH_MARKER, "Extract search form UI components", form_type="Search"))
        steps.append(Step(2, "Form Structure Analyzer (Detail)", "form-structure-analyzer",
                          DETAIL_MARKER, "Extract detail form UI components", form_type="Detail"))

    for key, name, output_file in COMMON_STEPS:
        steps.append(Step(len(steps) + 1, name, key, output_file,
                          get_agent(key).description, form_name=single_form))
    return steps


def required_analysis_files(mode: AnalysisMode) -> list[str]:
    """Output files of every step, in step order."""
    return [step.output_file for step in build_steps(mode, "Entity")]


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

StepHandler = Callable[[Step], int]


class AgentStepHandler:
    """Default step handler: builds the agent invocation and runs claude."""

    def __init__(
        self,
        options: RunOptions,
        resolver: PathResolver,
        runner: StepRunner,
        entity: str,
        output_dir: Path,
    ) -> None:
        self.options    = options
        self.resolver   = resolver
        self.runner     = runner
        self.entity     = entity
        self.output_dir = output_dir

    def __call__(self, step: Step) -> int:
        invocation = build_invocation(
            get_agent(step.agent_key),
            self.options,
            self.resolver,
            self.output_dir,
            self.entity,
            output_file=step.output_file,
            form_name=step.form_name,
            form_type=step.form_type,
        )
        return self.runner.run(invocation)


@dataclass
class Orchestrator:
    entity:     str
    output_dir: Path
    steps:      list[Step]
    handler:    StepHandler
    form_name:  str | None = None
    skip_steps: set[int] = field(default_factory=set)
    mode:       AnalysisMode = AnalysisMode.SEARCH_DETAIL

    def __post_init__(self) -> None:
        self.output_dir = Path(self.output_dir)
        self.tracker    = StatusTracker(self.output_dir)

    def run(self) -> int:
        """Run every step in order. Returns 0, or the first failing exit code."""
        self.tracker.start(
            self.entity,
            self.form_name,
            [StepStatus(s.number, s.name, output_file=s.output_file) for s in self.steps],
        )
        total = len(self.steps)
        logger.info("Running %d steps for %s (%s mode).", total, self.entity, self.mode.value)

        for step in self.steps:
            label = f"Step {step.number}/{total}: {step.name}"

            if self.tracker.is_step_complete(step.number):
                logger.info("[SKIP] %s -- already complete.", label)
                continue
            if step.number in self.skip_steps:
                logger.info("[SKIP] %s -- listed in --skip-steps.", label)
                self.tracker.mark_skipped(step.number)
                continue

            logger.info("=" * 60)
            logger.info("%s", label)
            if step.description:
                logger.info("Description: %s", step.description)
            self.tracker.mark_running(step.number)

            code = self.handler(step)
            if code != 0:
                self.tracker.mark_failed(step.number)
                logger.error("[X] %s failed with exit code %d. Stopping.", label, code)
                return code

            self.tracker.mark_completed(step.number, step.output_file)
            logger.info("[OK] %s", label)

        self.tracker.finish("completed")
        return 0


def build_orchestrator(
    options: RunOptions,
    config: dict[str, Any],
    project_root: str | Path,
    handler: StepHandler | None = None,
) -> Orchestrator:
    """
    Resolve entity, output directory and step list from *options*.

    Raises:
        UsageError -- if no entity can be determined
    """
    entity, form_name = resolve_target(options.entity, options.form_name)
    resolver   = PathResolver(config, project_root)
    output_dir = resolver.output_path(entity, options.output_dir)
    mode       = infer_mode(output_dir, form_name)
    steps      = build_steps(mode, entity, form_name)

    # formName is only recorded for single-form runs.
    form_name = steps[0].form_name if mode == AnalysisMode.SINGLE_FORM else None

    if handler is None:
        runner  = StepRunner(config.get("cli", {}).get("command", "claude"), project_root)
        handler = AgentStepHandler(options, resolver, runner, entity, output_dir)

    return Orchestrator(
        entity=entity,
        output_dir=output_dir,
        steps=steps,
        handler=handler,
        form_name=form_name,
        skip_steps=set(options.skip_steps),
        mode=mode,
    )
