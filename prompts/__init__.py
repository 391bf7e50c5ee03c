"""
Prompt Loader
=============
Agent system prompts, one Markdown file per agent, plus the shared
architecture reference every analysis agent receives.

Prompts are handed to claude verbatim through ``--append-system-prompt``;
nothing is templated here.

Usage
-----
    from prompts import compose_prompts, load_prompt

    text   = load_prompt("business-logic-extractor")
    system = compose_prompts("business-logic-extractor.md", SHARED_PROMPT)

Prompt files
------------
    architecture-patterns.md           -- target architecture reference,
                                          appended to every analysis prompt
    <agent-key>.md                     -- one per analysis agent
    conversion-template-generator*.md  -- template generation (full / api / ui)
"""

import logging
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

PROMPTS_DIR: Path = Path(__file__).parent

SHARED_PROMPT = "architecture-patterns.md"


def _normalise(name: str) -> str:
    return name if name.endswith(".md") else f"{name}.md"


@lru_cache(maxsize=None)
def load_prompt(name: str) -> str:
    """
    Return the text of ``prompts/<name>`` (``.md`` is added when missing).

    Raises
    ------
    FileNotFoundError
        If no such prompt exists; the message lists the prompts that do.
    """
    path = PROMPTS_DIR / _normalise(name)
    if not path.is_file():
        raise FileNotFoundError(
            f"No prompt '{name}' in {PROMPTS_DIR}. Known prompts: {', '.join(list_prompts())}"
        )
    text = path.read_text(encoding="utf-8").rstrip()
    logger.debug("Prompt %s: %d chars", path.name, len(text))
    return text


def compose_prompts(*names: str) -> str:
    """Join several prompts with a blank line between each."""
    return "\n\n".join(load_prompt(n) for n in names)


def list_prompts() -> list[str]:
    return sorted(p.name for p in PROMPTS_DIR.glob("*.md") if p.name != "README.md")
