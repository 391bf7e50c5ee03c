"""
Config Ingestion Agent
======================
Loads config.json and validates it against its JSON Schema. The returned dict
is read once at process start and handed to every downstream component.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

try:
    import jsonschema
    from jsonschema import ValidationError
except ImportError:
    raise ImportError("jsonschema is required. Run: pip install jsonschema")

logger = logging.getLogger(__name__)

SCHEMAS_DIR = Path(__file__).parent.parent / "config" / "schemas"

DEFAULT_CLI_COMMAND = "claude"


class ConfigValidationError(Exception):
    """Raised when a config file fails schema validation."""


def load_json(path: str | Path) -> Any:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def validate_against(instance: Any, schema_name: str, error_cls: type[Exception]) -> None:
    """Validate *instance* against ``config/schemas/<schema_name>``."""
    schema = load_json(SCHEMAS_DIR / schema_name)
    try:
        jsonschema.validate(instance=instance, schema=schema)
    except ValidationError as exc:
        raise error_cls(
            f"Validation failed at '{exc.json_path}': {exc.message}"
        ) from exc


class ConfigIngestionAgent:
    """
    Validates and loads config.json:
      - inputDirectory + paths.*       : where the legacy VB.NET source lives
      - referenceProjects.*            : modern projects agents copy patterns from
      - targetProjects.*               : where converted code will eventually land
      - cli.command (optional)         : external CLI binary, default "claude"
    """

    SCHEMA_NAME = "config-schema.json"

    def __init__(self, config_path: str | Path) -> None:
        self.config_path = Path(config_path)

    def load_and_validate(self) -> dict[str, Any]:
        """
        Load config.json, validate it, and fill in defaults.

        Raises:
            FileNotFoundError      -- if the config or schema file is missing
            ConfigValidationError  -- if the config fails schema validation
        """
        logger.info("Loading config from: %s", self.config_path)
        config = load_json(self.config_path)

        logger.debug("Validating config against schema...")
        validate_against(config, self.SCHEMA_NAME, ConfigValidationError)

        cli = config.setdefault("cli", {})
        cli.setdefault("command", DEFAULT_CLI_COMMAND)
        env_cli = os.environ.get("CLAUDE_CLI")
        if env_cli:
            logger.debug("CLAUDE_CLI overrides cli.command: %s", env_cli)
            cli["command"] = env_cli

        logger.info(
            "Config loaded. Input directory: %s, CLI: %s",
            config["inputDirectory"], cli["command"],
        )
        return config
