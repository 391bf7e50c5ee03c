"""
Claude CLI Flag Builder
=======================
Turns a base flag set plus user-supplied flags into the flat argument list
handed to the external ``claude`` CLI, and parses this tool's own command line
into an explicit ``RunOptions`` struct.

Merge contract
--------------
    merged = {**base, **user}          -- user flags override base flags
    None values              -> skipped
    internal keys            -> skipped (never forwarded to claude)
    True                     -> --key
    False                    -> (nothing)
    list / tuple             -> --key item1 item2 ...
    anything else            -> --key str(value)

The internal keys (entity, form-name, form-type, output, skip-steps) are
bookkeeping for this tool only.
"""

import argparse
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

FlagValue = Union[bool, str, int, float, list, tuple, None]
ClaudeFlags = dict[str, FlagValue]

INTERNAL_KEYS = frozenset({"entity", "form-name", "form-type", "output", "skip-steps"})


def build_claude_flags(base: ClaudeFlags, user: ClaudeFlags | None = None) -> list[str]:
    """
    Merge *base* and *user* flags and emit the argument list for claude.

    Never raises: unexpected value types are coerced with ``str()``.
    """
    merged: ClaudeFlags = {**base, **(user or {})}
    args: list[str] = []
    for key, value in merged.items():
        if value is None or key in INTERNAL_KEYS:
            continue
        if value is True:
            args.append(f"--{key}")
        elif value is False:
            continue
        elif isinstance(value, (list, tuple)):
            args.append(f"--{key}")
            args.extend(str(v) for v in value)
        else:
            args.append(f"--{key}")
            args.append(str(value))
    return args


def parse_skip_steps(raw: str | None) -> set[int]:
    """Parse ``"1,2,5"`` into ``{1, 2, 5}``; blanks and junk are ignored."""
    steps: set[int] = set()
    if not raw:
        return steps
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            steps.add(int(part))
        except ValueError:
            logger.warning("Ignoring non-numeric --skip-steps entry: %r", part)
    return steps


# ---------------------------------------------------------------------------
# Run options
# ---------------------------------------------------------------------------

@dataclass
class RunOptions:
    """
    Everything parsed from the command line, built once by the entry point
    and passed down explicitly to the orchestrator and step runner.
    """

    entity:      str | None = None
    form_name:   str | None = None
    form_type:   str | None = None
    output_dir:  Path | None = None
    skip_steps:  set[int] = field(default_factory=set)
    interactive: bool = False
    user_flags:  ClaudeFlags = field(default_factory=dict)
    positionals: list[str] = field(default_factory=list)

    @property
    def prompt_text(self) -> str:
        return " ".join(self.positionals).strip()


def add_claude_arguments(parser: argparse.ArgumentParser) -> None:
    """Register the options shared by every agent entry point."""
    group = parser.add_argument_group("Agent options")
    group.add_argument("--entity", "-e", type=str, help="Entity name, e.g. Facility.")
    group.add_argument("--form-name", type=str, help="Legacy form name, e.g. frmFacilitySearch.")
    group.add_argument("--form-type", type=str, choices=["Search", "Detail"],
                       help="Form type hint for single-agent runs.")
    group.add_argument("--output", "-o", type=str, help="Output directory override.")
    group.add_argument("--skip-steps", type=str, default="",
                       help="Comma-separated step numbers to mark skipped, e.g. 1,2,5.")
    group.add_argument("--interactive", "-i", action="store_true",
                       help="Run claude interactively (stdout is not captured).")

    claude = parser.add_argument_group("Forwarded to claude")
    claude.add_argument("--print", "-p", dest="claude_print", action="store_true", default=None,
                        help="Force --print on the claude invocation.")
    claude.add_argument("--settings", dest="claude_settings", type=str,
                        help="Settings JSON or path (overrides the agent's settings).")
    claude.add_argument("--mcp-config", dest="claude_mcp_config", type=str,
                        help="MCP config JSON or path (overrides the agent's MCP config).")
    claude.add_argument("--output-format", dest="claude_output_format", type=str,
                        choices=["text", "json", "stream-json"])


def parse_passthrough(extra: list[str]) -> tuple[ClaudeFlags, list[str]]:
    """
    Split unrecognised argv tokens into claude flags and positionals.

    ``--k=v`` and ``--k v`` become string values; a bare ``--k`` followed by
    another flag (or nothing) becomes ``True``.
    """
    flags: ClaudeFlags = {}
    positionals: list[str] = []
    i = 0
    while i < len(extra):
        token = extra[i]
        if token.startswith("--") and len(token) > 2:
            name = token[2:]
            if "=" in name:
                key, value = name.split("=", 1)
                flags[key] = value
            elif i + 1 < len(extra) and not extra[i + 1].startswith("-"):
                flags[name] = extra[i + 1]
                i += 1
            else:
                flags[name] = True
        else:
            positionals.append(token)
        i += 1
    return flags, positionals


def options_from_namespace(args: argparse.Namespace, extra: list[str]) -> RunOptions:
    """Build a ``RunOptions`` from parsed args plus the unrecognised remainder."""
    user_flags: ClaudeFlags = {}
    if args.claude_print:
        user_flags["print"] = True
    if args.claude_settings:
        user_flags["settings"] = args.claude_settings
    if args.claude_mcp_config:
        user_flags["mcp-config"] = args.claude_mcp_config
    if args.claude_output_format:
        user_flags["output-format"] = args.claude_output_format

    passthrough, positionals = parse_passthrough(extra)
    user_flags.update(passthrough)

    return RunOptions(
        entity=args.entity,
        form_name=args.form_name,
        form_type=args.form_type,
        output_dir=Path(args.output) if args.output else None,
        skip_steps=parse_skip_steps(args.skip_steps),
        interactive=bool(args.interactive),
        user_flags=user_flags,
        positionals=positionals,
    )


def parse_run_options(argv: list[str]) -> RunOptions:
    """Parse an argv list that carries only agent options and claude passthrough."""
    parser = argparse.ArgumentParser(add_help=False)
    add_claude_arguments(parser)
    args, extra = parser.parse_known_args(argv)
    return options_from_namespace(args, extra)
