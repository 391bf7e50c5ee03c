"""
Conversion Template Generator
=============================
Starts an interactive claude session that turns an entity's analysis JSON
into C# / Razor / JavaScript conversion templates.

Variants
--------
    full  -- Shared + API + UI         -> conversion-plan.md
    api   -- Shared + API only         -> conversion-plan-api.md
    ui    -- UI only                   -> conversion-plan-ui.md

Pre-flight
----------
Template generation needs every analysis file for the entity's mode. If any
are missing, the orchestrator is run first with ``--skip-steps`` covering the
files that already exist. If files are still missing afterwards the run
stops with ``PreflightError``.
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable

from agents.catalog import SETTINGS_DIR, load_settings
from agents.flags import RunOptions
from agents.orchestrator import (
    AnalysisMode,
    build_orchestrator,
    default_single_form_name,
    infer_mode,
    required_analysis_files,
    resolve_target,
)
from agents.paths import PathResolver
from agents.step_runner import StepInvocation, StepRunner
from prompts import SHARED_PROMPT, load_prompt

logger = logging.getLogger(__name__)


class PreflightError(Exception):
    """Raised when analysis outputs are still missing after the orchestrator ran."""


VARIANTS = {
    "full": {
        "prompt":  "conversion-template-generator.md",
        "plan":    "conversion-plan.md",
        "initial": "Generate conversion templates for the {entity} entity based on the "
                   "analysis files in {output}. Include ViewModels for the UI layer.",
    },
    "api": {
        "prompt":  "conversion-template-generator-api.md",
        "plan":    "conversion-plan-api.md",
        "initial": "Generate API + Shared conversion templates for {entity} using {output}. "
                   "Output conversion-plan-api.md and templates/shared + templates/api.",
    },
    "ui": {
        "prompt":  "conversion-template-generator-ui.md",
        "plan":    "conversion-plan-ui.md",
        "initial": "Generate UI conversion templates for {entity} using {output}. "
                   "Output conversion-plan-ui.md and templates/ui.",
    },
}

Orchestrate = Callable[[RunOptions], int]


class TemplateGenerator:
    """
    Parameters
    ----------
    options : RunOptions
        Parsed command line (entity, form name, output dir, user flags).
    config : dict
        Validated config.json.
    project_root : str | Path
        Root of this tool; exported to claude as CLAUDE_PROJECT_DIR.
    variant : str
        One of ``VARIANTS``.
    runner : StepRunner | None
        Runner for the interactive session. Built from config when None.
    orchestrate : callable | None
        Runs the analysis pipeline for pre-flight. Defaults to the in-process
        orchestrator.
    """

    def __init__(
        self,
        options: RunOptions,
        config: dict[str, Any],
        project_root: str | Path,
        variant: str = "full",
        runner: StepRunner | None = None,
        orchestrate: Orchestrate | None = None,
    ) -> None:
        if variant not in VARIANTS:
            raise ValueError(f"Unknown variant '{variant}'. Choose from {sorted(VARIANTS)}")
        self.options      = options
        self.config       = config
        self.project_root = Path(project_root)
        self.variant      = variant
        self.resolver     = PathResolver(config, project_root)
        self.entity, self.form_name = resolve_target(options.entity, options.form_name)
        self.output_dir   = self.resolver.output_path(self.entity, options.output_dir)
        self.mode         = infer_mode(self.output_dir, self.form_name)
        self.runner       = runner or StepRunner(
            config.get("cli", {}).get("command", "claude"), project_root
        )
        self.orchestrate  = orchestrate or self._run_orchestrator

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def analysis_files(self) -> list[str]:
        return required_analysis_files(self.mode)

    def missing_files(self) -> list[str]:
        return [f for f in self.analysis_files() if not (self.output_dir / f).exists()]

    def ensure_analysis(self) -> int:
        """
        Run the orchestrator for any missing analysis output.

        Returns the orchestrator's exit code (0 when nothing needed running).

        Raises:
            PreflightError -- if files are still missing after a successful run
        """
        missing = self.missing_files()
        if not missing:
            return 0

        logger.warning("Missing analysis files for %s:", self.entity)
        for f in missing:
            logger.warning("   - %s", f)

        existing = {
            i for i, f in enumerate(self.analysis_files(), start=1)
            if (self.output_dir / f).exists()
        }
        form_name = self.form_name
        if self.mode == AnalysisMode.SINGLE_FORM and not form_name:
            form_name = default_single_form_name(self.entity)

        preflight = replace(
            self.options,
            entity=self.entity,
            form_name=form_name,
            output_dir=self.output_dir,
            skip_steps=existing,
            interactive=False,
        )
        logger.info("Running orchestrator pre-flight (skip-steps: %s)", sorted(existing) or "none")
        code = self.orchestrate(preflight)
        if code != 0:
            logger.error("Orchestrator failed (exit %d). Aborting template generation.", code)
            return code

        still_missing = self.missing_files()
        if still_missing:
            raise PreflightError(
                "Analysis outputs are still missing after the orchestrator run: "
                + ", ".join(still_missing)
            )
        return 0

    def build_invocation(self) -> StepInvocation:
        variant = VARIANTS[self.variant]
        files   = "\n".join(f"- {f}" for f in self.analysis_files())
        system_prompt = (
            f"{load_prompt(variant['prompt'])}\n\n"
            f"TASK: Generate {self.variant.upper()} conversion templates for {self.entity}.\n\n"
            f"INPUT DATA:\nAnalysis files in {self.output_dir}/\n{files}\n\n"
            f"OUTPUT:\nPrimary file: {self.output_dir}/{variant['plan']}\n"
            f"Templates: {self.output_dir}/templates/\n\n"
            f"REFERENCE PROJECTS:\n{self.resolver.reference_projects_for_prompt()}\n\n"
            f"TARGET PROJECTS:\n{self.resolver.target_projects_for_prompt()}\n\n"
            f"{load_prompt(SHARED_PROMPT)}"
        )
        return StepInvocation(
            name=f"Conversion Template Generator ({self.variant})",
            context_prompt=variant["initial"].format(entity=self.entity, output=self.output_dir),
            output_dir=self.output_dir,
            entity=self.entity,
            system_prompt=system_prompt,
            settings=load_settings("template-generator.settings.json"),
            mcp_config=str(SETTINGS_DIR / "template-generator.mcp.json"),
            interactive=True,
            user_flags=dict(self.options.user_flags),
        )

    def run(self) -> int:
        code = self.ensure_analysis()
        if code != 0:
            return code
        logger.info(
            "Launching interactive template generator (%s) for %s -> %s",
            self.variant, self.entity, self.output_dir,
        )
        return self.runner.run(self.build_invocation())

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _run_orchestrator(self, options: RunOptions) -> int:
        orchestrator = build_orchestrator(options, self.config, self.project_root)
        return orchestrator.run()
