"""
Spec Generator
==============
Turns the analysis JSON for one entity into Markdown deliverables:

    spec.md                 -- conversion specification
    quality-checklist.md    -- review checklist
    tasks/01-...07-*.md     -- ordered implementation tasks

Inputs
------
  - Analysis JSON written by the orchestrator steps (business-logic.json,
    data-access.json, ...). Three naming layouts are accepted, first match
    wins per document:

        <out>/business-logic.json
        <out>/business-logic.<form>.json
        <out>/<form>/business-logic.<form>.json

  - An optional human-authored master plan (<Entity>_CONVERSION_MASTER_PLAN.md
    and case variants). When present it is cross-checked against the
    analysis and any differences are listed as gaps in spec.md. When missing
    or unparseable the spec says so; it never fails on the plan.

  - Any other *.md in the output folder, appended as additional documents.

All rendering is Jinja2 over templates/spec/.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

try:
    from jinja2 import Environment, FileSystemLoader  # type: ignore
except ImportError:
    raise ImportError("jinja2 is required. pip install jinja2")

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent.parent / "templates" / "spec"

# Analysis document key -> base file name (without .json)
ANALYSIS_FILES = {
    "formStructure":       "form-structure",
    "formStructureSearch": "form-structure-search",
    "formStructureDetail": "form-structure-detail",
    "businessLogic":       "business-logic",
    "dataAccess":          "data-access",
    "security":            "security",
    "uiMapping":           "ui-mapping",
    "workflow":            "workflow",
    "tabs":                "tabs",
    "validation":          "validation",
    "relatedEntities":     "related-entities",
}

# Documents that describe the detail form rather than the search form.
DETAIL_FORM_KEYS = {"formStructureDetail", "tabs"}

TASK_FILES = [
    ("01-shared-dtos.md",          "task_shared_dtos.md.jinja2"),
    ("02-api-repository.md",       "task_api_repository.md.jinja2"),
    ("03-api-service.md",          "task_api_service.md.jinja2"),
    ("04-api-controller.md",       "task_api_controller.md.jinja2"),
    ("05-ui-viewmodels.md",        "task_ui_viewmodels.md.jinja2"),
    ("06-ui-views.md",             "task_ui_views.md.jinja2"),
    ("07-javascript-datatables.md", "task_javascript_datatables.md.jinja2"),
]

DISPLAY_LIMIT = 10

# Written by this module; never treated as input documents.
GENERATED_FILES = {"spec.md", "quality-checklist.md"}


class AnalysisDataError(Exception):
    """Raised when an output folder holds no usable analysis data."""


# ---------------------------------------------------------------------------
# Gap / master plan model
# ---------------------------------------------------------------------------

@dataclass
class Gap:
    type:           str           # form | class | procedure | endpoint | feature | inconsistency
    item:           str
    description:    str
    severity:       str           # high | medium | low
    recommendation: str | None = None


@dataclass
class MasterPlan:
    file_name:              str = ""
    forms:                  list[str] = field(default_factory=list)
    child_forms:            list[str] = field(default_factory=list)
    business_logic_classes: list[str] = field(default_factory=list)
    stored_procedures:      list[str] = field(default_factory=list)
    api_endpoints:          list[str] = field(default_factory=list)
    complexity:             str | None = None
    estimated_effort:       str | None = None


def master_plan_names(entity: str) -> list[str]:
    return [
        f"{entity}_CONVERSION_MASTER_PLAN.md",
        f"{entity.upper()}_CONVERSION_MASTER_PLAN.md",
        f"{entity}_Conversion_Master_Plan.md",
        f"{entity}ConversionMasterPlan.md",
    ]


def _unique(items) -> list[str]:
    return list(dict.fromkeys(items))


def _section(text: str, heading: str) -> str | None:
    """Body of the ``## <heading>`` section, up to the next level-2 heading."""
    pattern = re.compile(
        rf"^##\s+{re.escape(heading)}\b.*?(?=^##\s|\Z)",
        re.IGNORECASE | re.MULTILINE | re.DOTALL,
    )
    match = pattern.search(text)
    return match.group(0) if match else None


def parse_master_plan(text: str, file_name: str = "") -> MasterPlan:
    """
    Best-effort extraction of the master plan's structured bits.

    Sections that are missing or don't match simply leave their field empty.
    """
    plan = MasterPlan(file_name=file_name)

    forms = _section(text, "FORMS TO CONVERT")
    if forms:
        plan.forms = [m.group(2) for m in re.finditer(
            r"###\s+\*\*(\d+)\.\s*(frm\w+\.vb)\*\*", forms, re.IGNORECASE)]

    plan.child_forms = _unique(
        m.group(0) + ".vb" for m in re.finditer(
            r"frm\w+(Status|PositionHistory|FuelDetail|Delays|TextEditor|PortalGroup)",
            text, re.IGNORECASE)
    )

    classes = _section(text, "BUSINESS LOGIC CLASSES TO CONVERT")
    if classes:
        plan.business_logic_classes = [m.group(1) for m in re.finditer(r"- `(\w+\.vb)`", classes)]

    procs = _section(text, "DATABASE STORED PROCEDURES")
    if procs:
        plan.stored_procedures = _unique(
            m.group(1) for m in re.finditer(r"dbo\.(\w+)", procs, re.IGNORECASE))

    endpoints = _section(text, "API ENDPOINTS TO CREATE")
    if endpoints:
        plan.api_endpoints = _unique(
            m.group(0) for m in re.finditer(
                r"(GET|POST|PUT|DELETE)\s+/api/[\w/{}]+", endpoints, re.IGNORECASE))

    complexity = re.search(r"###\s+\*\*Complexity:\s*([^*]+)\*\*", text, re.IGNORECASE)
    if complexity:
        plan.complexity = complexity.group(1).strip()

    effort = re.search(r"\*\*TOTAL\*\*\s*\|\s*\*\*([^*]+)\*\*", text, re.IGNORECASE)
    if effort:
        plan.estimated_effort = effort.group(1).strip()

    return plan


def find_master_plan(output_dir: str | Path, entity: str) -> MasterPlan | None:
    out = Path(output_dir)
    for name in master_plan_names(entity):
        path = out / name
        if path.exists():
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as exc:
                logger.warning("Could not read master plan %s: %s", path, exc)
                return None
            logger.info("Master plan found: %s", path)
            return parse_master_plan(text, name)
    return None


# ---------------------------------------------------------------------------
# Analysis data
# ---------------------------------------------------------------------------

@dataclass
class AnalysisData:
    entity:    str
    documents: dict[str, Any] = field(default_factory=dict)
    sources:   dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> Any:
        return self.documents.get(key)

    def section(self, key: str) -> dict[str, Any]:
        """The document under *key* when it is a JSON object, else ``{}``."""
        doc = self.documents.get(key)
        return doc if isinstance(doc, dict) else {}

    @property
    def single_form_name(self) -> str:
        return self.section("formStructure").get("formName") or f"frm{self.entity}"

    @property
    def is_single_form(self) -> bool:
        return "formStructure" in self.documents and not (
            "formStructureSearch" in self.documents or "formStructureDetail" in self.documents
        )

    @classmethod
    def load(cls, output_dir: str | Path, entity: str, form_name: str | None = None) -> "AnalysisData":
        """
        Load every analysis document found in *output_dir*.

        Files that fail to parse are logged and skipped.
        """
        out  = Path(output_dir)
        data = cls(entity=entity)
        search_form = f"frm{entity}Search"
        detail_form = f"frm{entity}Detail"

        for key, base in ANALYSIS_FILES.items():
            if form_name:
                form = form_name
            else:
                form = detail_form if key in DETAIL_FORM_KEYS else search_form
            candidates = [
                out / f"{base}.json",
                out / f"{base}.{form}.json",
                out / form / f"{base}.{form}.json",
            ]
            for path in candidates:
                if not path.exists():
                    continue
                try:
                    with open(path, "r", encoding="utf-8") as f:
                        data.documents[key] = json.load(f)
                except (json.JSONDecodeError, OSError) as exc:
                    logger.warning("Could not parse %s: %s", path, exc)
                    continue
                data.sources[key] = str(path)
                logger.debug("Loaded %s from %s", key, path)
                break
        return data


def find_gaps(plan: MasterPlan, analysis: AnalysisData) -> list[Gap]:
    """Presence/absence comparison of the master plan against the analysis."""
    entity = analysis.entity
    gaps: list[Gap] = []

    if plan.forms:
        analysed = set()
        if analysis.get("formStructureSearch"):
            analysed.add(f"frm{entity}Search.vb")
        if analysis.get("formStructureDetail"):
            analysed.add(f"frm{entity}Detail.vb")
        if analysis.get("formStructure"):
            analysed.add(f"{analysis.single_form_name}.vb")
        for form in plan.forms:
            if form not in analysed:
                gaps.append(Gap(
                    "form", form,
                    f"Master plan mentions {form} but it was not analyzed",
                    "high",
                    f"Run orchestrator analysis for {form} or verify form name is correct",
                ))

    classes = plan.business_logic_classes
    if classes:
        shown = ", ".join(classes[:5]) + ("..." if len(classes) > 5 else "")
        gaps.append(Gap(
            "class", f"{len(classes)} business logic class(es)",
            f"Master plan documents {len(classes)} business logic class(es) to convert: {shown}",
            "low",
            f"Verify all classes are analyzed in business-logic.json. Classes: {', '.join(classes)}",
        ))

    if plan.stored_procedures:
        procs = analysis.section("dataAccess").get("storedProcedures") or {}
        known = set(procs) if isinstance(procs, dict) else set()
        for sp in plan.stored_procedures:
            if sp not in known:
                gaps.append(Gap(
                    "procedure", sp,
                    f"Master plan mentions stored procedure {sp} but it's not in analysis data",
                    "medium",
                    f"Review data-access.json to ensure {sp} is documented",
                ))

    if plan.api_endpoints:
        gaps.append(Gap(
            "endpoint", f"{len(plan.api_endpoints)} API endpoint(s)",
            f"Master plan documents {len(plan.api_endpoints)} API endpoint(s) to create",
            "low",
            "Verify generated API templates include all documented endpoints.",
        ))

    children = child_entities(analysis)
    if children and not classes:
        names = ", ".join(children)
        gaps.append(Gap(
            "inconsistency", "Child Entities",
            f"Analysis found {len(children)} child entity(ies): {names} but master plan may not document them",
            "medium",
            f"Update master plan to document child entities: {names}",
        ))

    return gaps


def child_entities(analysis: AnalysisData) -> dict[str, dict]:
    """``businessLogic.childEntities`` as a name -> info dict (lists are keyed by name)."""
    raw = analysis.section("businessLogic").get("childEntities") or {}
    if isinstance(raw, dict):
        return {k: (v if isinstance(v, dict) else {"description": str(v)}) for k, v in raw.items()}
    result = {}
    for item in raw:
        if isinstance(item, dict) and item.get("name"):
            result[item["name"]] = item
        elif isinstance(item, str):
            result[item] = {}
    return result


def additional_documents(output_dir: str | Path, entity: str) -> list[dict[str, str]]:
    """Every *.md in *output_dir* except master plans, with a title for each."""
    out = Path(output_dir)
    if not out.is_dir():
        return []
    skip = {n.lower() for n in master_plan_names(entity)} | GENERATED_FILES
    docs = []
    for path in sorted(out.glob("*.md")):
        if path.name.lower() in skip:
            continue
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not read markdown file %s: %s", path, exc)
            continue
        heading = re.search(r"^#\s+(.+)$", content, re.MULTILINE)
        docs.append({
            "file_name": path.name,
            "title":     heading.group(1).strip() if heading else path.stem,
            "content":   content,
        })
    return docs


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

class SpecGenerator:
    """
    Renders spec.md, quality-checklist.md and the task files.

    Parameters
    ----------
    analysis : AnalysisData
        Loaded analysis documents.
    master_plan : MasterPlan | None
        Parsed master plan, or None when not found.
    extra_docs : list[dict]
        Additional markdown documents from ``additional_documents()``.
    """

    def __init__(
        self,
        analysis: AnalysisData,
        master_plan: MasterPlan | None = None,
        extra_docs: list[dict[str, str]] | None = None,
    ) -> None:
        self.analysis    = analysis
        self.master_plan = master_plan
        self.extra_docs  = extra_docs or []
        self.gaps        = find_gaps(master_plan, analysis) if master_plan else []
        self._jinja = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def context(self) -> dict[str, Any]:
        a = self.analysis
        business = a.section("businessLogic")
        search   = a.section("formStructureSearch") or a.section("formStructure")
        grid     = search.get("grid")
        grid     = grid if isinstance(grid, dict) else {}

        if a.is_single_form:
            forms = [f"{a.single_form_name}.vb"]
        else:
            forms = [f"frm{a.entity}Search.vb", f"frm{a.entity}Detail.vb"]

        return {
            "entity":            a.entity,
            "entity_lower":      a.entity.lower(),
            "date":              datetime.now(timezone.utc).date().isoformat(),
            "forms":             forms,
            "properties":        business.get("properties") or [],
            "business_rules":    business.get("businessRules") or [],
            "child_entities":    child_entities(a),
            "tabs":              a.section("tabs").get("tabs") or [],
            "security":          a.section("security"),
            "data_access":       a.section("dataAccess"),
            "grid_columns":      grid.get("columns") or [],
            "related_entities":  a.section("relatedEntities").get("relatedEntities") or [],
            "master_plan":       self.master_plan,
            "gaps":              self.gaps,
            "high_gaps":         [g for g in self.gaps if g.severity == "high"],
            "extra_docs":        self.extra_docs,
            "limit":             DISPLAY_LIMIT,
        }

    def render(self, template_name: str, ctx: dict[str, Any] | None = None) -> str:
        return self._jinja.get_template(template_name).render(**(ctx or self.context()))

    def generate(self, target_dir: str | Path) -> dict[str, Path]:
        """Write every deliverable under *target_dir*; returns name -> path."""
        target = Path(target_dir)
        tasks  = target / "tasks"
        tasks.mkdir(parents=True, exist_ok=True)
        ctx = self.context()

        written: dict[str, Path] = {}
        for name, template in [("spec.md", "spec.md.jinja2"),
                               ("quality-checklist.md", "quality_checklist.md.jinja2")]:
            path = target / name
            path.write_text(self.render(template, ctx), encoding="utf-8")
            written[name] = path

        for name, template in TASK_FILES:
            path = tasks / name
            path.write_text(self.render(template, ctx), encoding="utf-8")
            written[f"tasks/{name}"] = path

        logger.info("[OK] Spec written to %s (%d file(s), %d gap(s))", target, len(written), len(self.gaps))
        return written


def regenerate_spec(
    entity: str,
    output_dir: str | Path,
    target_dir: str | Path | None = None,
    form_name: str | None = None,
) -> dict[str, Path]:
    """
    Rebuild the spec deliverables from analysis already on disk.

    Raises:
        FileNotFoundError  -- if *output_dir* does not exist
        AnalysisDataError  -- if neither business logic nor a form structure was found
    """
    out = Path(output_dir)
    if not out.is_dir():
        raise FileNotFoundError(f"Output directory not found: {out}. Run the orchestrator first.")

    analysis = AnalysisData.load(out, entity, form_name)
    if not (analysis.get("businessLogic")
            or analysis.get("formStructureSearch")
            or analysis.get("formStructure")):
        raise AnalysisDataError(
            f"No analysis data found in {out}. Expected business-logic.json or "
            f"form-structure-search.json; run the orchestrator first."
        )

    generator = SpecGenerator(
        analysis,
        master_plan=find_master_plan(out, entity),
        extra_docs=additional_documents(out, entity),
    )
    return generator.generate(target_dir or out)
