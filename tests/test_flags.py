"""Unit tests for the claude flag builder and command-line option parsing."""
import argparse

from agents.flags import (
    add_claude_arguments,
    build_claude_flags,
    options_from_namespace,
    parse_passthrough,
    parse_run_options,
    parse_skip_steps,
)


class TestBuildClaudeFlags:
    """Merge rules for base and user flags."""

    def test_false_drops_flag_and_internal_keys_skipped(self):
        """A user False removes a base True; internal keys never reach claude."""
        args = build_claude_flags(
            {"settings": "{}", "print": True},
            {"print": False, "entity": "Facility"},
        )
        assert args == ["--settings", "{}"]

    def test_user_value_overrides_base(self):
        args = build_claude_flags({"output-format": "json"}, {"output-format": "text"})
        assert args == ["--output-format", "text"]

    def test_none_values_skipped(self):
        assert build_claude_flags({"model": None}) == []

    def test_list_values_follow_the_key(self):
        args = build_claude_flags({"allowedTools": ["Read", "Grep"]})
        assert args == ["--allowedTools", "Read", "Grep"]

    def test_scalars_are_stringified(self):
        assert build_claude_flags({"max-turns": 5}) == ["--max-turns", "5"]

    def test_base_order_preserved_with_user_additions_last(self):
        args = build_claude_flags({"a": "1", "b": True}, {"c": "3"})
        assert args == ["--a", "1", "--b", "--c", "3"]

    def test_all_internal_keys_ignored(self):
        user = {
            "entity": "X", "form-name": "frmX", "form-type": "Search",
            "output": "/tmp", "skip-steps": "1,2",
        }
        assert build_claude_flags({}, user) == []


class TestParseSkipSteps:

    def test_parses_comma_list(self):
        assert parse_skip_steps("1,2,5") == {1, 2, 5}

    def test_blank_and_junk_ignored(self):
        assert parse_skip_steps(" 3, ,x,4 ") == {3, 4}

    def test_empty(self):
        assert parse_skip_steps("") == set()
        assert parse_skip_steps(None) == set()


class TestPassthrough:
    """Unrecognised argv tokens become claude flags or prompt text."""

    def test_equals_and_space_forms(self):
        flags, positionals = parse_passthrough(["--model=opus", "--max-turns", "4"])
        assert flags == {"model": "opus", "max-turns": "4"}
        assert positionals == []

    def test_bare_flag_is_true(self):
        flags, _ = parse_passthrough(["--verbose", "--dangerously-skip-permissions"])
        assert flags == {"verbose": True, "dangerously-skip-permissions": True}

    def test_positionals_collected(self):
        flags, positionals = parse_passthrough(["focus", "on", "grids"])
        assert flags == {}
        assert positionals == ["focus", "on", "grids"]


def test_options_from_namespace_merges_known_and_forwarded_flags():
    """Known claude options and passthrough flags end up in user_flags."""
    parser = argparse.ArgumentParser()
    add_claude_arguments(parser)
    args, extra = parser.parse_known_args([
        "--entity", "Facility", "--skip-steps", "1,2", "--output-format", "text",
        "--model", "sonnet", "extra", "notes",
    ])
    options = options_from_namespace(args, extra)

    assert options.entity == "Facility"
    assert options.skip_steps == {1, 2}
    assert options.user_flags == {"output-format": "text", "model": "sonnet"}
    assert options.prompt_text == "extra notes"
    assert options.output_dir is None
    assert options.interactive is False


def test_parse_run_options_single_form_interactive():
    options = parse_run_options([
        "--form-name", "frmBargeStatus", "-i", "--output", "/tmp/out",
        "--print", "--allowedTools", "Read",
    ])
    assert options.form_name == "frmBargeStatus"
    assert options.interactive is True
    assert str(options.output_dir) == "/tmp/out"
    assert options.user_flags == {"print": True, "allowedTools": "Read"}
