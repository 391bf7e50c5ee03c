#!/usr/bin/env python3
"""
WinForms Conversion Orchestrator -- CLI Runner
==============================================
Runs the numbered analysis agents for one VB.NET WinForms entity, driving the
external ``claude`` CLI once per step and recording progress in
``output/<Entity>/conversion-status.json``.

Usage:
    python main.py --entity <Entity> [OPTIONS] [extra claude flags...]

Examples:
    # Search/Detail entity (frmFacilitySearch.vb + frmFacilityDetail.vb)
    python main.py --entity Facility

    # Single-form entity, entity derived from the form name
    python main.py --form-name frmBargeStatus

    # Re-run, treating steps 1 and 2 as already done
    python main.py --entity Facility --skip-steps 1,2

    # Forward extra flags to every claude invocation
    python main.py --entity Facility --model sonnet --max-turns 40

    # Pick a form from the configured forms directory
    python main.py --list-forms

Re-running is safe: steps that are completed with their output on disk, or
skipped, are not run again.
"""

import argparse
import logging
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Ensure project root is in sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from agents.config_ingestion_agent import ConfigIngestionAgent, ConfigValidationError
from agents.flags import add_claude_arguments, options_from_namespace
from agents.orchestrator import UsageError, build_orchestrator, choose_form
from agents.paths import PathResolver

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

def configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    fmt   = "%(asctime)s [%(levelname)-8s] %(name)s -- %(message)s"
    logging.basicConfig(level=level, format=fmt, datefmt="%Y-%m-%d %H:%M:%S")

logger = logging.getLogger("winforms-convert")

# ---------------------------------------------------------------------------
# Default paths
# ---------------------------------------------------------------------------

DEFAULT_CONFIG = ROOT / "config" / "config.json"

# ---------------------------------------------------------------------------
# Utilities
# ---------------------------------------------------------------------------

def print_banner(title: str) -> None:
    width = 60
    print(f"\n{'='*width}")
    print(f"  {title}")
    print(f"{'='*width}")


def load_config(path: str | Path) -> dict | None:
    """Load and validate config.json, logging the failure and returning None on error."""
    try:
        config = ConfigIngestionAgent(path).load_and_validate()
    except (FileNotFoundError, ConfigValidationError) as exc:
        logger.error("Config ingestion failed: %s", exc)
        return None
    logger.debug("[OK] Config loaded and validated: %s", path)
    return config

# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="WinForms Conversion Orchestrator -- VB.NET WinForms -> ASP.NET Core analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    add_claude_arguments(parser)
    parser.add_argument(
        "--config",
        type=str,
        default=str(DEFAULT_CONFIG),
        help=f"Path to config.json (default: {DEFAULT_CONFIG}).",
    )
    parser.add_argument(
        "--list-forms",
        action="store_true",
        help="List the forms found in the configured forms directory and pick one.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable DEBUG-level logging.",
    )
    return parser

# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    parser      = build_arg_parser()
    args, extra = parser.parse_known_args(argv)

    configure_logging(verbose=args.verbose)

    config = load_config(args.config)
    if config is None:
        return 1

    options  = options_from_namespace(args, extra)
    resolver = PathResolver(config, ROOT)

    if args.list_forms and options.entity:
        print("Error: --list-forms cannot be combined with --entity", file=sys.stderr)
        return 1

    if args.list_forms or not (options.entity or options.form_name):
        if not sys.stdin.isatty():
            if args.list_forms:
                print("Error: --list-forms needs an interactive terminal", file=sys.stderr)
            else:
                print("Error: --entity parameter is required", file=sys.stderr)
            return 1
        try:
            options.form_name = choose_form(resolver.available_forms())
        except UsageError as exc:
            print(str(exc), file=sys.stderr)
            return 1

    try:
        orchestrator = build_orchestrator(options, config, ROOT)
    except UsageError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    print_banner("WinForms Conversion Orchestrator")
    print(f"  Entity:       {orchestrator.entity}")
    print(f"  Form:         {orchestrator.form_name or '(search + detail)'}")
    print(f"  Mode:         {orchestrator.mode.value}")
    print(f"  Output:       {orchestrator.output_dir}")
    print(f"  Skip steps:   {sorted(options.skip_steps) or 'none'}")
    print(f"  Claude CLI:   {config['cli']['command']}")
    print()

    code = orchestrator.run()

    print_banner("Pipeline Complete" if code == 0 else "Pipeline Stopped")
    print(orchestrator.tracker.summary())
    print()
    if code != 0:
        logger.error("Fix the failing step and re-run; completed steps will not run again.")
    return code


if __name__ == "__main__":
    sys.exit(main())
