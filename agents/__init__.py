# agents package
from agents.config_ingestion_agent import ConfigIngestionAgent, ConfigValidationError
from agents.flags import RunOptions, build_claude_flags
from agents.paths import PathResolver
from agents.status_tracker import StatusTracker, StatusDocumentError
from agents.step_runner import StepInvocation, StepRunner
from agents.orchestrator import Orchestrator, UsageError, build_orchestrator
from agents.spec_generator import SpecGenerator, AnalysisDataError, regenerate_spec
from agents.template_generator import TemplateGenerator, PreflightError

__all__ = [
    "ConfigIngestionAgent",
    "ConfigValidationError",
    "RunOptions",
    "build_claude_flags",
    "PathResolver",
    "StatusTracker",
    "StatusDocumentError",
    "StepInvocation",
    "StepRunner",
    "Orchestrator",
    "UsageError",
    "build_orchestrator",
    "SpecGenerator",
    "AnalysisDataError",
    "regenerate_spec",
    "TemplateGenerator",
    "PreflightError",
]
