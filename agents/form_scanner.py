"""
Child Form Scanner
==================
Best-effort text scan of a legacy VB.NET form for the other forms it opens.

This is NOT a VB parser. It runs a handful of regexes over the raw source and
reports every ``frmXxx`` it sees being constructed or shown:

    New frmPortalGroup(...)
    frmStatus.Show(...)
    frmDelays.ShowDialog(...)
    Dim f As frmTextEditor = ...

False positives and negatives are expected; the result is labelled
``confidence="heuristic"`` and is only used for diagnostics and prompts.

Output (child-forms.json):
    {
      "mainForm":    str,
      "entity":      str | null,
      "childForms":  [str, ...],
      "confidence":  "heuristic",
      "detectedAt":  ISO-8601 str
    }
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from agents.paths import PathResolver, parse_entity_from_form_name

logger = logging.getLogger(__name__)

CHILD_FORM_PATTERNS = [
    re.compile(r"\bNew\s+(frm\w+)", re.IGNORECASE),
    re.compile(r"\b(frm\w+)\.Show\s*\(", re.IGNORECASE),
    re.compile(r"\b(frm\w+)\.ShowDialog\s*\(", re.IGNORECASE),
    re.compile(r"\bDim\s+\w+\s+As\s+(?:New\s+)?(frm\w+)\s*=", re.IGNORECASE),
]


@dataclass
class TextScan:
    """Result of a best-effort text scan."""

    matches:    list[str] = field(default_factory=list)
    confidence: str = "heuristic"


def scan_child_forms(source: str, exclude: str | None = None) -> TextScan:
    """
    Return the unique form names referenced in *source*, in first-seen order.

    *exclude* (usually the scanned form itself) is dropped case-insensitively.
    """
    seen: dict[str, tuple[int, str]] = {}
    excluded = exclude.lower() if exclude else None
    for pattern in CHILD_FORM_PATTERNS:
        for m in pattern.finditer(source):
            name = m.group(1)
            key  = name.lower()
            if key == excluded:
                continue
            pos = m.start(1)
            if key not in seen or pos < seen[key][0]:
                seen[key] = (pos, name)
    # Source order across patterns, not pattern order.
    ordered = [name for _, name in sorted(seen.values())]
    return TextScan(matches=ordered)


class FormScanner:
    """Scans one legacy form (and its designer file) for child forms."""

    def __init__(self, resolver: PathResolver) -> None:
        self.resolver = resolver
        self.result: dict | None = None

    def scan(self, form_name: str) -> dict:
        """
        Scan ``{forms}/{form_name}.vb`` plus its ``.Designer.vb`` if present.

        Raises:
            FileNotFoundError -- if the main form file does not exist
        """
        main_path = Path(self.resolver.named_form_path(form_name))
        if not main_path.exists():
            raise FileNotFoundError(f"Form file not found: {main_path}")

        source = main_path.read_text(encoding="utf-8", errors="replace")
        designer = Path(self.resolver.named_form_designer_path(form_name))
        if designer.exists():
            source += "\n" + designer.read_text(encoding="utf-8", errors="replace")

        scan = scan_child_forms(source, exclude=form_name)
        logger.info(
            "Scanned %s -- %d child form(s) detected (%s).",
            form_name, len(scan.matches), scan.confidence,
        )
        self.result = {
            "mainForm":   form_name,
            "entity":     parse_entity_from_form_name(form_name),
            "childForms": scan.matches,
            "confidence": scan.confidence,
            "detectedAt": datetime.now(timezone.utc).isoformat(),
        }
        return self.result

    def save(self, output_dir: str | Path) -> Path:
        if self.result is None:
            raise RuntimeError("scan() must be called before save()")
        out = Path(output_dir) / "child-forms.json"
        out.parent.mkdir(parents=True, exist_ok=True)
        with open(out, "w", encoding="utf-8") as f:
            json.dump(self.result, f, indent=2)
        logger.info("Child form list saved to: %s", out)
        return out
