"""
Path Resolver
=============
Builds paths to legacy VB.NET source artifacts and to the reference / target
.NET projects from the validated config.json.

Everything here is plain string templating: nothing checks that a returned
path exists, except ``available_forms()`` which lists the forms directory.

Legacy layout (relative to ``inputDirectory``):

    {paths.forms}/frm{Entity}Search.vb
    {paths.forms}/frm{Entity}Detail.vb            (+ .Designer.vb)
    {paths.businessObjects}/{Entity}Location.vb
    {paths.businessObjectsBase}/{Entity}LocationBase.vb
    {paths.lists}/{Entity}LocationSearch.vb
"""

import logging
import re
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

FORM_NAME_RE      = re.compile(r"^frm(.+?)(Search|Detail)$", re.IGNORECASE)
FORM_FILE_RE      = re.compile(r"^frm.+?(Search|Detail)\.vb$", re.IGNORECASE)

# Sub-folders of a .NET MVC / API project the prompts point agents at.
PROJECT_FOLDERS = {
    "controllers":  "Controllers",
    "dtos":         "Dto",
    "repositories": "Repositories",
    "services":     "Services",
    "views":        "Views",
    "viewmodels":   "ViewModels",
    "javascript":   "wwwroot/js",
}


def parse_entity_from_form_name(form_name: str) -> str | None:
    """``"frmFacilitySearch"`` -> ``"Facility"``; ``None`` if the name doesn't fit."""
    match = FORM_NAME_RE.match(form_name)
    return match.group(1) if match else None


class PathResolver:
    """Resolves legacy source and project paths for one config."""

    def __init__(self, config: dict[str, Any], project_root: str | Path) -> None:
        self.config       = config
        self.project_root = Path(project_root)
        self.input_dir    = config["inputDirectory"].rstrip("/\\")
        self.paths        = config["paths"]

    # ------------------------------------------------------------------
    # Legacy source files
    # ------------------------------------------------------------------

    def forms_directory(self) -> str:
        return f"{self.input_dir}/{self.paths['forms']}"

    def form_path(self, entity: str, form_type: str) -> str:
        return f"{self.forms_directory()}/frm{entity}{form_type}.vb"

    def form_designer_path(self, entity: str, form_type: str) -> str:
        return f"{self.forms_directory()}/frm{entity}{form_type}.Designer.vb"

    def named_form_path(self, form_name: str) -> str:
        return f"{self.forms_directory()}/{form_name}.vb"

    def named_form_designer_path(self, form_name: str) -> str:
        return f"{self.forms_directory()}/{form_name}.Designer.vb"

    def business_object_path(self, entity: str) -> str:
        return f"{self.input_dir}/{self.paths['businessObjects']}/{entity}Location.vb"

    def business_object_base_path(self, entity: str) -> str:
        return f"{self.input_dir}/{self.paths['businessObjectsBase']}/{entity}LocationBase.vb"

    def list_path(self, entity: str) -> str:
        return f"{self.input_dir}/{self.paths['lists']}/{entity}LocationSearch.vb"

    def location_base_path(self) -> str:
        return f"{self.input_dir}/{self.paths['businessObjects']}/Location.vb"

    def available_forms(self) -> list[str]:
        """
        Names (without ``.vb``) of every Search/Detail form in the forms
        directory, sorted. Returns ``[]`` if the directory is missing.
        """
        forms_dir = Path(self.forms_directory())
        if not forms_dir.is_dir():
            logger.debug("Forms directory not found: %s", forms_dir)
            return []
        return sorted(
            f.name[:-3]
            for f in forms_dir.iterdir()
            if f.is_file()
            and not f.name.endswith(".Designer.vb")
            and FORM_FILE_RE.match(f.name)
        )

    # ------------------------------------------------------------------
    # Reference / target projects
    # ------------------------------------------------------------------

    def reference_project(self, name: str) -> str:
        return self.config["referenceProjects"][name]

    def target_project(self, name: str) -> str:
        return self.config["targetProjects"][name]

    @staticmethod
    def project_folders(project_root: str) -> dict[str, str]:
        root = project_root.rstrip("/\\")
        return {key: f"{root}/{sub}" for key, sub in PROJECT_FOLDERS.items()}

    def reference_projects_for_prompt(self) -> str:
        refs = self.config["referenceProjects"]
        return (
            f"- Crewing API (reference): {refs['crewingApi']}\n"
            f"- Crewing UI (reference):  {refs['crewingUi']}"
        )

    def target_projects_for_prompt(self) -> str:
        targets = self.config["targetProjects"]
        lines = [
            f"- Admin API (target): {targets['adminApi']}",
            f"- Admin UI (target):  {targets['adminUi']}",
        ]
        if targets.get("shared"):
            lines.append(f"- Shared DTOs:        {targets['shared']}")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def output_root(self) -> Path:
        configured = self.config.get("outputRoot")
        if configured:
            path = Path(configured)
            return path if path.is_absolute() else self.project_root / path
        return self.project_root / "output"

    def output_path(self, entity: str, output_dir: str | Path | None = None) -> Path:
        if output_dir:
            return Path(output_dir)
        return self.output_root() / entity
