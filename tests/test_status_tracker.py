"""Unit tests for conversion-status.json persistence."""
import json

import pytest

from agents.status_tracker import (
    STATUS_FILENAME,
    ConversionStatus,
    StatusDocumentError,
    StatusTracker,
    StepState,
    StepStatus,
    read_status_file,
)


def _steps():
    return [
        StepStatus(1, "Form Structure Analyzer (Search)", output_file="form-structure-search.json"),
        StepStatus(2, "Business Logic Extractor", output_file="business-logic.json"),
        StepStatus(3, "Security & Authorization Extractor", output_file="security.json"),
    ]


def _read(tmp_path):
    return json.loads((tmp_path / STATUS_FILENAME).read_text(encoding="utf-8"))


class TestStatusDocument:
    """Serialised shape of the status document."""

    def test_to_dict_counts_and_camel_case(self):
        status = ConversionStatus("Facility", steps=_steps())
        status.steps[0].status = StepState.COMPLETED
        status.steps[1].status = StepState.SKIPPED
        data = status.to_dict()

        assert data["entity"] == "Facility"
        assert "formName" not in data
        assert data["totalSteps"] == 3
        assert data["completedSteps"] == 1
        assert data["skippedSteps"] == 1
        assert data["failedSteps"] == 0
        assert data["steps"][0] == {
            "stepNumber": 1,
            "name": "Form Structure Analyzer (Search)",
            "status": "completed",
            "outputFile": "form-structure-search.json",
        }

    def test_round_trip_keeps_form_name(self):
        status = ConversionStatus("BargeStatus", form_name="frmBargeStatus", steps=_steps())
        again  = ConversionStatus.from_dict(status.to_dict())
        assert again.form_name == "frmBargeStatus"
        assert [s.output_file for s in again.steps] == [s.output_file for s in status.steps]

    def test_missing_step_raises_key_error(self):
        with pytest.raises(KeyError):
            ConversionStatus("Facility", steps=_steps()).step(9)


class TestReadStatusFile:

    def test_missing_file_is_none(self, tmp_path):
        assert read_status_file(tmp_path / STATUS_FILENAME) is None

    def test_malformed_json_propagates(self, tmp_path):
        (tmp_path / STATUS_FILENAME).write_text("{not json", encoding="utf-8")
        with pytest.raises(json.JSONDecodeError):
            read_status_file(tmp_path / STATUS_FILENAME)

    def test_schema_mismatch_raises(self, tmp_path):
        (tmp_path / STATUS_FILENAME).write_text(
            json.dumps({"entity": "Facility", "overallStatus": "bogus", "steps": []}),
            encoding="utf-8",
        )
        with pytest.raises(StatusDocumentError):
            read_status_file(tmp_path / STATUS_FILENAME)


class TestStatusTracker:
    """State transitions and resume behaviour."""

    def test_start_writes_pending_document(self, tmp_path):
        tracker = StatusTracker(tmp_path)
        tracker.start("Facility", None, _steps())
        data = _read(tmp_path)
        assert data["overallStatus"] == "running"
        assert [s["status"] for s in data["steps"]] == ["pending"] * 3
        assert data["updatedAt"]

    def test_every_transition_is_flushed(self, tmp_path):
        tracker = StatusTracker(tmp_path)
        tracker.start("Facility", None, _steps())
        tracker.mark_running(1)
        assert _read(tmp_path)["steps"][0]["status"] == "running"
        tracker.mark_completed(1)
        tracker.mark_skipped(2)
        tracker.mark_failed(3)
        data = _read(tmp_path)
        assert [s["status"] for s in data["steps"]] == ["completed", "skipped", "failed"]
        assert data["overallStatus"] == "failed"
        assert data["failedSteps"] == 1

    def test_restart_carries_completed_and_resets_failed_and_running(self, tmp_path):
        first = StatusTracker(tmp_path)
        first.start("Facility", None, _steps())
        first.mark_completed(1)
        first.mark_failed(2)
        first.mark_running(3)

        second = StatusTracker(tmp_path)
        status = second.start("Facility", None, _steps())
        assert [s.status for s in status.steps] == [
            StepState.COMPLETED, StepState.PENDING, StepState.PENDING,
        ]
        assert status.overall_status == "running"

    def test_earlier_failure_on_rerun_leaves_one_failed_step(self, tmp_path):
        """A failure from the previous run does not linger next to a new one."""
        first = StatusTracker(tmp_path)
        first.start("Facility", None, _steps())
        first.mark_completed(1)
        first.mark_failed(3)

        second = StatusTracker(tmp_path)
        second.start("Facility", None, _steps())
        second.mark_failed(2)

        data = _read(tmp_path)
        assert [s["status"] for s in data["steps"]] == ["completed", "failed", "pending"]
        assert data["failedSteps"] == 1

    def test_completed_requires_output_on_disk(self, tmp_path):
        tracker = StatusTracker(tmp_path)
        tracker.start("Facility", None, _steps())
        tracker.mark_completed(1)
        assert tracker.is_step_complete(1) is False

        (tmp_path / "form-structure-search.json").write_text("{}", encoding="utf-8")
        assert tracker.is_step_complete(1) is True

    def test_skipped_is_complete_and_pending_is_not(self, tmp_path):
        tracker = StatusTracker(tmp_path)
        tracker.start("Facility", None, _steps())
        tracker.mark_skipped(2)
        assert tracker.is_step_complete(2) is True
        assert tracker.is_step_complete(3) is False

    def test_summary_lists_steps(self, tmp_path):
        tracker = StatusTracker(tmp_path)
        tracker.start("Facility", None, _steps())
        tracker.mark_completed(1)
        text = tracker.summary()
        assert "Facility" in text
        assert "Completed: 1" in text
        assert "business-logic.json" in text

    def test_summary_without_status_raises(self, tmp_path):
        with pytest.raises(RuntimeError):
            StatusTracker(tmp_path).summary()
