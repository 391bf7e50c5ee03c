#!/usr/bin/env python3
"""
run_agent.py -- Single-agent and utility entry point
====================================================
Runs one analysis agent on its own, or one of the helper actions that work
on the output folders the orchestrator produces.

── Run one agent ──────────────────────────────────────────────────────────────
  python run_agent.py --agent business-logic-extractor --entity Facility
  python run_agent.py --agent form-structure-analyzer --entity Facility --form-type Search
  python run_agent.py --agent form-structure-analyzer --form-name frmBargeStatus
  python run_agent.py --list-agents

── Progress and audit ─────────────────────────────────────────────────────────
  python run_agent.py --status --entity Facility        # step table
  python run_agent.py --status --entity Facility --json # raw status document
  python run_agent.py --audit                           # every output/<Entity>/

── Child forms ────────────────────────────────────────────────────────────────
  python run_agent.py --scan-child-forms --form-name frmBargeStatus

── Deliverables ───────────────────────────────────────────────────────────────
  python run_agent.py --regenerate-spec --entity Facility
  python run_agent.py --regenerate-spec --entity Facility --speckit
  python run_agent.py --generate-templates --entity Facility --variant api

Unrecognised ``--flags`` are forwarded to claude unchanged.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Ensure project root is on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from agents.audit import audit_output, format_report, write_audit
from agents.catalog import AGENTS, build_invocation, get_agent
from agents.flags import RunOptions, add_claude_arguments, options_from_namespace
from agents.form_scanner import FormScanner
from agents.orchestrator import UsageError, resolve_target
from agents.paths import PathResolver
from agents.spec_generator import AnalysisDataError, regenerate_spec
from agents.status_tracker import StatusDocumentError, StatusTracker
from agents.step_runner import StepRunner
from agents.template_generator import VARIANTS, PreflightError, TemplateGenerator
from main import DEFAULT_CONFIG, configure_logging, load_config, print_banner

logger = logging.getLogger("winforms-agent")

# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

def _list_agents() -> int:
    print_banner("Available agents")
    for key, spec in AGENTS.items():
        print(f"  {key:<26} {spec.description}")
        print(f"  {'':<26} -> {spec.output_file}")
    print()
    return 0


def _run_single_agent(key: str, options: RunOptions, config: dict) -> int:
    """Run one catalogue agent for one entity. Status is not recorded."""
    try:
        spec = get_agent(key)
    except KeyError as exc:
        print(f"Error: {exc.args[0]}", file=sys.stderr)
        return 1
    entity, form_name = resolve_target(options.entity, options.form_name)
    resolver          = PathResolver(config, ROOT)
    output_dir        = resolver.output_path(entity, options.output_dir)

    invocation = build_invocation(
        spec, options, resolver, output_dir, entity,
        form_name=form_name, form_type=options.form_type,
    )
    print_banner(f"{spec.name} -- {entity}")
    print(f"  Output: {output_dir / spec.output_file}")
    print()
    runner = StepRunner(config["cli"]["command"], ROOT)
    return runner.run(invocation)


def _run_status(options: RunOptions, config: dict, json_output: bool) -> int:
    entity, _  = resolve_target(options.entity, options.form_name)
    output_dir = PathResolver(config, ROOT).output_path(entity, options.output_dir)
    tracker    = StatusTracker(output_dir)
    try:
        status = tracker.load()
    except (json.JSONDecodeError, StatusDocumentError) as exc:
        logger.error("Cannot read %s: %s", tracker.path, exc)
        return 1

    if status is None:
        print(f"No conversion status for {entity} at {tracker.path}", file=sys.stderr)
        return 1
    if json_output:
        print(json.dumps(status.to_dict(), indent=2))
    else:
        print(tracker.summary())
    return 0


def _run_audit(config: dict, json_output: bool) -> int:
    output_root = PathResolver(config, ROOT).output_root()
    audits      = audit_output(output_root)
    write_audit(output_root, audits)
    if json_output:
        print(json.dumps([a.to_dict() for a in audits], indent=2))
    else:
        print(format_report(audits))
    return 1 if any(a.needs_attention for a in audits) else 0


def _run_scan_child_forms(options: RunOptions, config: dict) -> int:
    if not options.form_name:
        raise UsageError("--scan-child-forms requires --form-name")
    entity, form_name = resolve_target(options.entity, options.form_name)
    resolver  = PathResolver(config, ROOT)
    scanner   = FormScanner(resolver)
    try:
        result = scanner.scan(form_name)
    except FileNotFoundError as exc:
        logger.error("%s", exc)
        return 1
    scanner.save(resolver.output_path(entity, options.output_dir))
    print(json.dumps(result, indent=2))
    return 0


def _run_regenerate_spec(options: RunOptions, config: dict, speckit: bool) -> int:
    entity, form_name = resolve_target(options.entity, options.form_name)
    resolver   = PathResolver(config, ROOT)
    output_dir = resolver.output_path(entity, options.output_dir)

    target_dir = None
    if speckit:
        monorepo = config["targetProjects"].get("monorepo")
        if not monorepo:
            logger.error("--speckit needs targetProjects.monorepo in config.json")
            return 1
        target_dir = Path(monorepo) / ".speckit" / "entities" / entity

    try:
        written = regenerate_spec(entity, output_dir, target_dir, form_name=form_name)
    except (FileNotFoundError, AnalysisDataError) as exc:
        logger.error("%s", exc)
        return 1

    print_banner(f"Spec regenerated -- {entity}")
    for path in written.values():
        print(f"  {path}")
    print()
    return 0


def _run_generate_templates(options: RunOptions, config: dict, variant: str) -> int:
    generator = TemplateGenerator(options, config, ROOT, variant=variant)
    print_banner(f"Conversion Template Generator ({variant}) -- {generator.entity}")
    try:
        return generator.run()
    except PreflightError as exc:
        logger.error("%s", exc)
        return 1

# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="WinForms Conversion Orchestrator -- single agents and utilities",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    add_claude_arguments(parser)

    actions = parser.add_argument_group("Actions")
    actions.add_argument(
        "--agent", "-a",
        type=str, default=None, metavar="KEY",
        help="Run a single analysis agent (see --list-agents).",
    )
    actions.add_argument(
        "--list-agents",
        action="store_true",
        help="List the analysis agents and exit.",
    )
    actions.add_argument(
        "--status",
        action="store_true",
        help="Show conversion-status.json for --entity.",
    )
    actions.add_argument(
        "--audit",
        action="store_true",
        help="Audit every entity output folder and write _audit-output.json.",
    )
    actions.add_argument(
        "--scan-child-forms",
        action="store_true",
        help="Scan --form-name for the child forms it opens; writes child-forms.json.",
    )
    actions.add_argument(
        "--regenerate-spec",
        action="store_true",
        help="Rebuild spec.md, quality-checklist.md and tasks/ from existing analysis.",
    )
    actions.add_argument(
        "--speckit",
        action="store_true",
        help="[--regenerate-spec] Write to {monorepo}/.speckit/entities/<Entity>/.",
    )
    actions.add_argument(
        "--generate-templates",
        action="store_true",
        help="Run the interactive conversion template generator for --entity.",
    )
    actions.add_argument(
        "--variant",
        type=str, default="full", choices=sorted(VARIANTS),
        help="[--generate-templates] full | api | ui (default: full).",
    )

    parser.add_argument(
        "--config",
        type=str, default=str(DEFAULT_CONFIG), metavar="PATH",
        help=f"Path to config.json (default: {DEFAULT_CONFIG}).",
    )
    parser.add_argument(
        "--json",
        action="store_true", dest="json_output",
        help="Machine-readable output for --status and --audit.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable DEBUG-level logging.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser      = build_arg_parser()
    args, extra = parser.parse_known_args(argv)

    configure_logging(verbose=args.verbose)

    if args.list_agents:
        return _list_agents()

    config = load_config(args.config)
    if config is None:
        return 1
    options = options_from_namespace(args, extra)

    try:
        if args.audit:
            return _run_audit(config, args.json_output)
        if args.status:
            return _run_status(options, config, args.json_output)
        if args.scan_child_forms:
            return _run_scan_child_forms(options, config)
        if args.regenerate_spec:
            return _run_regenerate_spec(options, config, args.speckit)
        if args.generate_templates:
            return _run_generate_templates(options, config, args.variant)
        if args.agent:
            return _run_single_agent(args.agent, options, config)
    except UsageError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    parser.error(
        "Choose an action: --agent KEY, --list-agents, --status, --audit, "
        "--scan-child-forms, --regenerate-spec or --generate-templates."
    )
    return 2


if __name__ == "__main__":
    sys.exit(main())
