"""Unit tests for step sequencing, resume and mode inference (no claude process)."""
import json

import pytest

from agents.flags import RunOptions
from agents.orchestrator import (
    AnalysisMode,
    Orchestrator,
    UsageError,
    build_orchestrator,
    build_steps,
    choose_form,
    infer_mode,
    required_analysis_files,
    resolve_target,
)
from agents.status_tracker import STATUS_FILENAME


class FakeHandler:
    """Records each step it is asked to run and writes its output file."""

    def __init__(self, output_dir, fail_at=None, code=2, write=True):
        self.output_dir = output_dir
        self.fail_at    = fail_at
        self.code       = code
        self.write      = write
        self.calls      = []

    def __call__(self, step):
        self.calls.append(step.number)
        if step.number == self.fail_at:
            return self.code
        if self.write:
            (self.output_dir / step.output_file).write_text("{}", encoding="utf-8")
        return 0


def _orchestrator(tmp_path, handler, skip_steps=None, mode=AnalysisMode.SEARCH_DETAIL):
    return Orchestrator(
        entity="Facility",
        output_dir=tmp_path,
        steps=build_steps(mode, "Facility"),
        handler=handler,
        skip_steps=skip_steps or set(),
        mode=mode,
    )


def _statuses(tmp_path):
    data = json.loads((tmp_path / STATUS_FILENAME).read_text(encoding="utf-8"))
    return [s["status"] for s in data["steps"]], data


class TestStepLists:

    def test_search_detail_has_ten_steps(self):
        steps = build_steps(AnalysisMode.SEARCH_DETAIL, "Facility")
        assert len(steps) == 10
        assert [s.number for s in steps] == list(range(1, 11))
        assert steps[0].form_type == "Search"
        assert steps[1].form_type == "Detail"
        assert steps[2].output_file == "business-logic.json"
        assert steps[-1].output_file == "related-entities.json"

    def test_single_form_has_nine_steps_bound_to_the_form(self):
        steps = build_steps(AnalysisMode.SINGLE_FORM, "BargeStatus", "frmBargeStatus")
        assert len(steps) == 9
        assert steps[0].output_file == "form-structure.json"
        assert all(s.form_name == "frmBargeStatus" for s in steps)

    def test_single_form_defaults_form_name(self):
        steps = build_steps(AnalysisMode.SINGLE_FORM, "BargeStatus")
        assert steps[0].form_name == "frmBargeStatus"

    def test_required_analysis_files(self):
        files = required_analysis_files(AnalysisMode.SINGLE_FORM)
        assert files[0] == "form-structure.json"
        assert "validation.json" in files
        assert len(required_analysis_files(AnalysisMode.SEARCH_DETAIL)) == 10


class TestOrchestratorRun:
    """Run loop against a fake step handler."""

    def test_full_run_then_rerun_is_a_no_op(self, tmp_path):
        handler = FakeHandler(tmp_path)
        assert _orchestrator(tmp_path, handler).run() == 0
        assert handler.calls == list(range(1, 11))
        statuses, data = _statuses(tmp_path)
        assert statuses == ["completed"] * 10
        assert data["overallStatus"] == "completed"

        again = FakeHandler(tmp_path)
        assert _orchestrator(tmp_path, again).run() == 0
        assert again.calls == []

    def test_failure_stops_run_and_propagates_exit_code(self, tmp_path):
        handler = FakeHandler(tmp_path, fail_at=3, code=7)
        assert _orchestrator(tmp_path, handler).run() == 7
        assert handler.calls == [1, 2, 3]
        statuses, data = _statuses(tmp_path)
        assert statuses[:3] == ["completed", "completed", "failed"]
        assert statuses[3:] == ["pending"] * 7
        assert data["overallStatus"] == "failed"

    def test_rerun_after_failure_resumes_at_failed_step(self, tmp_path):
        _orchestrator(tmp_path, FakeHandler(tmp_path, fail_at=3)).run()
        handler = FakeHandler(tmp_path)
        assert _orchestrator(tmp_path, handler).run() == 0
        assert handler.calls == list(range(3, 11))

    def test_skip_steps_are_marked_skipped_and_not_run(self, tmp_path):
        handler = FakeHandler(tmp_path)
        assert _orchestrator(tmp_path, handler, skip_steps={1, 2, 5}).run() == 0
        assert 1 not in handler.calls and 2 not in handler.calls and 5 not in handler.calls
        statuses, _ = _statuses(tmp_path)
        assert statuses[0] == statuses[1] == statuses[4] == "skipped"
        assert statuses.count("completed") == 7

    def test_completed_step_with_missing_output_runs_again(self, tmp_path):
        _orchestrator(tmp_path, FakeHandler(tmp_path)).run()
        (tmp_path / "security.json").unlink()

        handler = FakeHandler(tmp_path)
        assert _orchestrator(tmp_path, handler).run() == 0
        assert handler.calls == [5]

    def test_zero_exit_without_output_is_still_completed(self, tmp_path):
        handler = FakeHandler(tmp_path, write=False)
        assert _orchestrator(tmp_path, handler).run() == 0
        statuses, _ = _statuses(tmp_path)
        assert statuses == ["completed"] * 10

    def test_single_form_status_records_form_name(self, tmp_path, config):
        options      = RunOptions(form_name="frmBargeStatus", output_dir=tmp_path)
        handler      = FakeHandler(tmp_path)
        orchestrator = build_orchestrator(options, config, tmp_path, handler=handler)
        assert orchestrator.mode == AnalysisMode.SINGLE_FORM
        assert orchestrator.run() == 0
        _, data = _statuses(tmp_path)
        assert data["entity"] == "BargeStatus"
        assert data["formName"] == "frmBargeStatus"
        assert data["totalSteps"] == 9


class TestTargetResolution:

    def test_entity_wins(self):
        assert resolve_target("Facility", None) == ("Facility", None)

    def test_entity_parsed_from_search_detail_form(self):
        assert resolve_target(None, "frmFacilitySearch") == ("Facility", "frmFacilitySearch")

    def test_frm_prefix_stripped_for_single_form(self):
        assert resolve_target(None, "frmBargeStatus") == ("BargeStatus", "frmBargeStatus")

    def test_missing_entity_raises(self):
        with pytest.raises(UsageError, match="--entity parameter is required"):
            resolve_target(None, None)

    def test_unusable_form_name_raises(self):
        with pytest.raises(UsageError):
            resolve_target(None, "Status")

    def test_choose_form_reprompts_on_bad_input(self, capsys):
        answers = iter(["0", "abc", "2"])
        picked  = choose_form(["frmA", "frmB"], input_fn=lambda _: next(answers))
        assert picked == "frmB"
        assert "between 1 and 2" in capsys.readouterr().out

    def test_choose_form_with_no_forms_raises(self):
        with pytest.raises(UsageError):
            choose_form([])

    def test_choose_form_end_of_input_raises(self):
        def _eof(_):
            raise EOFError

        with pytest.raises(UsageError, match="No form selected"):
            choose_form(["frmA"], input_fn=_eof)


class TestInferMode:

    def test_marker_files_win(self, tmp_path):
        (tmp_path / "form-structure.json").write_text("{}", encoding="utf-8")
        assert infer_mode(tmp_path, "frmFacilitySearch") == AnalysisMode.SINGLE_FORM

    def test_search_marker(self, tmp_path):
        (tmp_path / "form-structure-detail.json").write_text("{}", encoding="utf-8")
        assert infer_mode(tmp_path, "frmBargeStatus") == AnalysisMode.SEARCH_DETAIL

    def test_form_name_hint(self, tmp_path):
        assert infer_mode(tmp_path, "frmBargeStatus") == AnalysisMode.SINGLE_FORM
        assert infer_mode(tmp_path, "frmFacilityDetail") == AnalysisMode.SEARCH_DETAIL

    def test_default_is_search_detail(self, tmp_path):
        assert infer_mode(tmp_path / "missing") == AnalysisMode.SEARCH_DETAIL
