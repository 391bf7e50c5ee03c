"""
Step Runner
===========
Runs exactly one agent step by spawning the external ``claude`` CLI and
waiting for it to exit.

Invocation shape:

    claude --append-system-prompt <prompt> --settings <json> --mcp-config <json|path>
           [--print --output-format json]        (non-interactive only)
           [user flags...]
           "<context prompt>"

Environment passed to the child (on top of the current environment):

    CLAUDE_PROJECT_DIR   project root of this tool
    ENTITY_NAME          entity being converted
    OUTPUT_PATH          entity output directory
    FORM_TYPE            Search / Detail / form name (when known)

The exit code is the only success signal. A child that reports no exit code
is treated as 0.
"""

import json
import logging
import os
import signal
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from agents.flags import ClaudeFlags, build_claude_flags

logger = logging.getLogger(__name__)

# Conventional shell code for "command not found".
EXIT_COMMAND_NOT_FOUND = 127


@dataclass
class StepInvocation:
    """Everything needed to launch one claude run."""

    name:           str
    context_prompt: str
    output_dir:     Path
    entity:         str
    system_prompt:  str | None = None
    settings:       dict[str, Any] | None = None
    mcp_config:     dict[str, Any] | str | None = None
    form_type:      str | None = None
    interactive:    bool = False
    user_flags:     ClaudeFlags = field(default_factory=dict)

    def base_flags(self) -> ClaudeFlags:
        flags: ClaudeFlags = {}
        if self.system_prompt:
            flags["append-system-prompt"] = self.system_prompt
        if self.settings is not None:
            flags["settings"] = json.dumps(self.settings)
        if self.mcp_config is not None:
            flags["mcp-config"] = (
                self.mcp_config if isinstance(self.mcp_config, str)
                else json.dumps(self.mcp_config)
            )
        if not self.interactive:
            flags["print"] = True
            flags["output-format"] = "json"
        return flags


# ---------------------------------------------------------------------------
# Child process handle
# ---------------------------------------------------------------------------

class AgentProcess:
    """
    Owns one child process and forwards SIGINT / SIGTERM to it while alive.

    Use as a context manager so the previous signal handlers are restored
    once the child has exited:

        with AgentProcess(cmd, env=env, capture=True) as proc:
            code = proc.wait()
    """

    FORWARDED_SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(
        self,
        cmd: list[str],
        env: dict[str, str] | None = None,
        cwd: str | Path | None = None,
        capture: bool = False,
    ) -> None:
        self.cmd      = cmd
        self.env      = env
        self.cwd      = cwd
        self.capture  = capture
        self.process: subprocess.Popen | None = None
        self.stdout:  str | None = None
        self._previous: dict[int, Any] = {}

    def __enter__(self) -> "AgentProcess":
        self.process = subprocess.Popen(
            self.cmd,
            cwd=self.cwd,
            env=self.env,
            stdout=subprocess.PIPE if self.capture else None,
            text=True if self.capture else None,
        )
        self._install_forwarding()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._restore_handlers()

    def terminate(self) -> None:
        """Ask the child to exit. A child that is already gone is not an error."""
        if self.process is None:
            return
        try:
            self.process.terminate()
        except ProcessLookupError:
            logger.debug("Child %s already exited.", self.process.pid)

    def wait(self) -> int:
        if self.process is None:
            raise RuntimeError("Process was never started")
        if self.capture:
            self.stdout, _ = self.process.communicate()
        else:
            self.process.wait()
        code = self.process.returncode
        return code if code is not None else 0

    # ------------------------------------------------------------------
    # Signal forwarding
    # ------------------------------------------------------------------

    def _forward(self, signum, frame) -> None:
        logger.warning("Received signal %s -- terminating agent process.", signum)
        self.terminate()

    def _install_forwarding(self) -> None:
        # signal.signal() only works from the main thread.
        if threading.current_thread() is not threading.main_thread():
            return
        for sig in self.FORWARDED_SIGNALS:
            self._previous[sig] = signal.signal(sig, self._forward)

    def _restore_handlers(self) -> None:
        for sig, handler in self._previous.items():
            signal.signal(sig, handler)
        self._previous.clear()


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

class StepRunner:
    """Spawns claude for one ``StepInvocation`` and returns its exit code."""

    def __init__(self, cli_command: str, project_root: str | Path) -> None:
        self.cli_command  = cli_command
        self.project_root = Path(project_root)

    def build_command(self, invocation: StepInvocation) -> list[str]:
        flags = build_claude_flags(invocation.base_flags(), invocation.user_flags)
        return [self.cli_command, *flags, invocation.context_prompt]

    def build_env(self, invocation: StepInvocation) -> dict[str, str]:
        env = dict(os.environ)
        env["CLAUDE_PROJECT_DIR"] = str(self.project_root)
        env["ENTITY_NAME"]        = invocation.entity
        env["OUTPUT_PATH"]        = str(invocation.output_dir)
        if invocation.form_type:
            env["FORM_TYPE"] = invocation.form_type
        return env

    def run(self, invocation: StepInvocation) -> int:
        cmd = self.build_command(invocation)
        logger.info("Launching %s for step '%s'", self.cli_command, invocation.name)
        logger.debug("Flags: %s", [a for a in cmd[1:-1] if a.startswith("--")])

        invocation.output_dir.mkdir(parents=True, exist_ok=True)
        try:
            with AgentProcess(
                cmd,
                env=self.build_env(invocation),
                cwd=self.project_root,
                capture=not invocation.interactive,
            ) as proc:
                code = proc.wait()
        except FileNotFoundError:
            logger.error(
                "External CLI '%s' not found on PATH. Install it or set cli.command / CLAUDE_CLI.",
                self.cli_command,
            )
            return EXIT_COMMAND_NOT_FOUND

        if proc.stdout:
            logger.debug("Captured output from '%s' (%d chars)", invocation.name, len(proc.stdout))
        logger.info("Step '%s' exited with code %d", invocation.name, code)
        return code
