"""
Output Audit
============
Cross-checks every ``output/<Entity>/conversion-status.json`` against the
files actually on disk.

Reported per entity:
  - problem steps         : status failed or pending
  - missing step outputs  : status completed / failed / running, but the
                            declared outputFile is not on disk
                            (skipped steps never need one)
  - missing for templates : analysis files template generation needs for the
                            inferred mode
  - hasTemplatesFolder    : whether templates/ exists yet

A machine-readable copy is written to ``output/_audit-output.json``.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from agents.orchestrator import infer_mode, required_analysis_files
from agents.status_tracker import STATUS_FILENAME

logger = logging.getLogger(__name__)

AUDIT_FILENAME = "_audit-output.json"

PROBLEM_STATES         = {"failed", "pending"}
OUTPUT_EXPECTED_STATES = {"completed", "failed", "running"}


@dataclass
class EntityAudit:
    folder:               str
    entity:               str | None = None
    form_name:            str | None = None
    overall_status:       str | None = None
    mode:                 str | None = None
    has_templates:        bool = False
    problem_steps:        list[dict[str, Any]] = field(default_factory=list)
    missing_step_outputs: list[dict[str, Any]] = field(default_factory=list)
    missing_for_templates: list[str] = field(default_factory=list)
    error:                str | None = None

    @property
    def needs_attention(self) -> bool:
        return bool(self.error or self.problem_steps or self.missing_step_outputs
                    or self.missing_for_templates)

    def to_dict(self) -> dict[str, Any]:
        return {
            "folder":                self.folder,
            "entity":                self.entity,
            "formName":              self.form_name,
            "overallStatus":         self.overall_status,
            "mode":                  self.mode,
            "hasTemplatesFolder":    self.has_templates,
            "problemSteps":          self.problem_steps,
            "missingStepOutputs":    self.missing_step_outputs,
            "missingForTemplateGen": self.missing_for_templates,
            "error":                 self.error,
        }


def audit_entity(folder: Path) -> EntityAudit:
    result = EntityAudit(folder=folder.name)
    try:
        with open(folder / STATUS_FILENAME, "r", encoding="utf-8") as f:
            status = json.load(f)
    except (json.JSONDecodeError, OSError) as exc:
        result.error = f"Unreadable {STATUS_FILENAME}: {exc}"
        return result

    result.entity         = status.get("entity")
    result.form_name      = status.get("formName")
    result.overall_status = status.get("overallStatus")
    result.has_templates  = (folder / "templates").is_dir()

    for step in status.get("steps") or []:
        state = step.get("status")
        if state in PROBLEM_STATES:
            result.problem_steps.append(step)
        output_file = step.get("outputFile")
        if output_file and state in OUTPUT_EXPECTED_STATES and not (folder / output_file).exists():
            result.missing_step_outputs.append({
                "stepNumber": step.get("stepNumber"),
                "stepName":   step.get("name"),
                "status":     state,
                "outputFile": output_file,
            })

    mode = infer_mode(folder)
    result.mode = mode.value
    result.missing_for_templates = [
        f for f in required_analysis_files(mode) if not (folder / f).exists()
    ]
    return result


def audit_output(output_root: str | Path) -> list[EntityAudit]:
    """Audit every entity folder under *output_root* that has a status file."""
    root = Path(output_root)
    if not root.is_dir():
        logger.warning("Output directory not found: %s", root)
        return []
    folders = sorted(
        p for p in root.iterdir()
        if p.is_dir() and (p / STATUS_FILENAME).exists()
    )
    return [audit_entity(p) for p in folders]


def write_audit(output_root: str | Path, audits: list[EntityAudit]) -> Path:
    out = Path(output_root) / AUDIT_FILENAME
    out.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "audits":      [a.to_dict() for a in audits],
    }
    with open(out, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    logger.info("Audit written to: %s", out)
    return out


def format_report(audits: list[EntityAudit]) -> str:
    attention = [a for a in audits if a.needs_attention]
    lines = [
        "=== Output Audit Summary ===",
        f"Entities scanned: {len(audits)}",
        f"Entities needing attention: {len(attention)}",
        "",
    ]
    if not attention:
        lines.append("All entities have complete analysis outputs for their inferred mode.")
        return "\n".join(lines)

    for a in attention:
        form = f", form: {a.form_name}" if a.form_name else ""
        lines.append(f"- {a.folder} (entity: {a.entity}{form})")
        if a.error:
            lines.append(f"  - error: {a.error}")
        if a.problem_steps:
            lines.append("  - problem steps:")
            for s in a.problem_steps:
                out = f" -> {s['outputFile']}" if s.get("outputFile") else ""
                lines.append(f"    - step {s.get('stepNumber')}: {s.get('status')} ({s.get('name')}){out}")
        if a.missing_step_outputs:
            lines.append("  - missing step output files:")
            for m in a.missing_step_outputs:
                lines.append(
                    f"    - step {m['stepNumber']}: {m['stepName']} ({m['status']}) -> missing {m['outputFile']}"
                )
        if a.missing_for_templates:
            lines.append(f"  - missing files required for template generation ({a.mode}):")
            lines.extend(f"    - {f}" for f in a.missing_for_templates)
        lines.append("")
    return "\n".join(lines)
