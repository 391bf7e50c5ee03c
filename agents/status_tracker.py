"""
Conversion Status Tracker
=========================
Persists per-entity conversion progress so interrupted or partially failed
runs can resume without repeating finished steps.

Step state machine:

    pending -> running -> completed | failed | skipped

Status file format (``<output>/<Entity>/conversion-status.json``):
    {
      "entity":         str,
      "formName":       str,               # only for single-form runs
      "overallStatus":  "running" | "completed" | "failed",
      "totalSteps":     int,
      "completedSteps": int,
      "skippedSteps":   int,
      "failedSteps":    int,
      "updatedAt":      ISO-8601 str,
      "steps": [
        {"stepNumber": 1, "name": str, "status": str, "outputFile": str}, ...
      ]
    }

There is no locking: one orchestrator run per entity at a time.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from agents.config_ingestion_agent import validate_against

logger = logging.getLogger(__name__)

STATUS_FILENAME = "conversion-status.json"


class StatusDocumentError(Exception):
    """Raised when conversion-status.json does not match its schema."""


class StepState(str, Enum):
    PENDING   = "pending"
    RUNNING   = "running"
    COMPLETED = "completed"
    FAILED    = "failed"
    SKIPPED   = "skipped"


# States a new run inherits from the previous status document.
CARRIED_STATES = {StepState.COMPLETED, StepState.SKIPPED}


@dataclass
class StepStatus:
    step_number: int
    name:        str
    status:      StepState = StepState.PENDING
    output_file: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "stepNumber": self.step_number,
            "name":       self.name,
            "status":     self.status.value,
        }
        if self.output_file is not None:
            data["outputFile"] = self.output_file
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StepStatus":
        return cls(
            step_number=int(data["stepNumber"]),
            name=data["name"],
            status=StepState(data["status"]),
            output_file=data.get("outputFile"),
        )


@dataclass
class ConversionStatus:
    entity:         str
    form_name:      str | None = None
    overall_status: str = "running"
    steps:          list[StepStatus] = field(default_factory=list)
    updated_at:     str | None = None

    def count(self, state: StepState) -> int:
        return sum(1 for s in self.steps if s.status == state)

    def step(self, step_number: int) -> StepStatus:
        for s in self.steps:
            if s.step_number == step_number:
                return s
        raise KeyError(f"No step {step_number} in status for {self.entity}")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"entity": self.entity}
        if self.form_name:
            data["formName"] = self.form_name
        data.update({
            "overallStatus":  self.overall_status,
            "totalSteps":     len(self.steps),
            "completedSteps": self.count(StepState.COMPLETED),
            "skippedSteps":   self.count(StepState.SKIPPED),
            "failedSteps":    self.count(StepState.FAILED),
            "updatedAt":      self.updated_at,
            "steps":          [s.to_dict() for s in self.steps],
        })
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversionStatus":
        return cls(
            entity=data["entity"],
            form_name=data.get("formName"),
            overall_status=data.get("overallStatus", "running"),
            steps=[StepStatus.from_dict(s) for s in data.get("steps", [])],
            updated_at=data.get("updatedAt"),
        )


def read_status_file(path: str | Path) -> ConversionStatus | None:
    """
    Read and validate a status document.

    Returns None when the file does not exist. Malformed JSON raises
    ``json.JSONDecodeError``; a schema mismatch raises ``StatusDocumentError``.
    """
    path = Path(path)
    if not path.exists():
        return None
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    validate_against(data, "conversion-status-schema.json", StatusDocumentError)
    return ConversionStatus.from_dict(data)


class StatusTracker:
    """Owns the conversion-status.json document for one entity output folder."""

    def __init__(self, output_dir: str | Path) -> None:
        self.dir    = Path(output_dir)
        self.path   = self.dir / STATUS_FILENAME
        self.status: ConversionStatus | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def load(self) -> ConversionStatus | None:
        self.status = read_status_file(self.path)
        if self.status:
            logger.info(
                "Resuming from status file: %s (%d/%d completed)",
                self.path, self.status.count(StepState.COMPLETED), len(self.status.steps),
            )
        return self.status

    def start(
        self,
        entity: str,
        form_name: str | None,
        steps: list[StepStatus],
    ) -> ConversionStatus:
        """
        Begin a run over *steps*, carrying over ``completed`` and ``skipped``
        states recorded by a previous run for the same step numbers. Steps left
        ``running`` or ``failed`` go back to ``pending``.
        """
        previous = self.load()
        prior = {s.step_number: s for s in previous.steps} if previous else {}

        merged: list[StepStatus] = []
        for step in steps:
            old   = prior.get(step.step_number)
            state = old.status if old and old.status in CARRIED_STATES else StepState.PENDING
            merged.append(StepStatus(step.step_number, step.name, state, step.output_file))

        self.status = ConversionStatus(
            entity=entity,
            form_name=form_name,
            overall_status="running",
            steps=merged,
        )
        self._flush()
        return self.status

    def is_step_complete(self, step_number: int) -> bool:
        """
        True if the step is ``skipped``, or ``completed`` with its declared
        output file present on disk.
        """
        step = self._require().step(step_number)
        if step.status == StepState.SKIPPED:
            return True
        if step.status != StepState.COMPLETED:
            return False
        if step.output_file is None:
            return True
        return (self.dir / step.output_file).exists()

    def mark_running(self, step_number: int) -> None:
        self._set(step_number, StepState.RUNNING)

    def mark_completed(self, step_number: int, output_file: str | None = None) -> None:
        step = self._require().step(step_number)
        if output_file is not None:
            step.output_file = output_file
        self._set(step_number, StepState.COMPLETED)

    def mark_failed(self, step_number: int) -> None:
        self._require().overall_status = "failed"
        self._set(step_number, StepState.FAILED)

    def mark_skipped(self, step_number: int) -> None:
        self._set(step_number, StepState.SKIPPED)

    def finish(self, overall_status: str) -> None:
        self._require().overall_status = overall_status
        self._flush()

    def summary(self) -> str:
        s = self._require()
        lines = [
            f"Status [{s.entity}{' / ' + s.form_name if s.form_name else ''}]: {s.overall_status}",
            f"  Completed: {s.count(StepState.COMPLETED)}  "
            f"Skipped: {s.count(StepState.SKIPPED)}  "
            f"Failed: {s.count(StepState.FAILED)}  "
            f"Total: {len(s.steps)}",
        ]
        for step in s.steps:
            out = f"  -> {step.output_file}" if step.output_file else ""
            lines.append(f"  {step.step_number:>2}. [{step.status.value:<9}] {step.name}{out}")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require(self) -> ConversionStatus:
        if self.status is None:
            raise RuntimeError("No status loaded; call load() or start() first")
        return self.status

    def _set(self, step_number: int, state: StepState) -> None:
        self._require().step(step_number).status = state
        logger.debug("Step %d -> %s", step_number, state.value)
        self._flush()

    def _flush(self) -> None:
        status = self._require()
        status.updated_at = datetime.now(timezone.utc).isoformat()
        self.dir.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(status.to_dict(), f, indent=2)
