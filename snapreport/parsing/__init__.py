"""
Config and Event Log Parsing

This package loads and validates the reporter config (YAML) and recorded
test-runner event logs (JSON Lines).

Usage:
    from snapreport.parsing import load_config, load_events

    config, result = load_config("snapreport.yaml")
    if not result.is_valid:
        print(result)

    events, result = load_events("run.jsonl")
"""

# Public API
from .loader import (
    config_from_dict,
    load_config,
    load_events,
    parse_events,
    updates_references,
)

# Models
from .models import DEFAULT_RESULTS_DIR, ReporterConfig

# Parsers and validation (for custom pipelines)
from .parser import ConfigParser, EventParser
from .validation import ConfigValidator, EventValidator, ValidationError, ValidationResult

__all__ = [
    # Loader functions
    "config_from_dict",
    "load_config",
    "load_events",
    "parse_events",
    "updates_references",
    # Models
    "DEFAULT_RESULTS_DIR",
    "ReporterConfig",
    # Parsers
    "ConfigParser",
    "EventParser",
    # Validation
    "ConfigValidator",
    "EventValidator",
    "ValidationError",
    "ValidationResult",
]
