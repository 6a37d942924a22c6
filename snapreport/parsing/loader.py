"""
Loaders for reporter configs and event logs.

This module provides the public API for loading and validating a
reporter config (YAML) and a recorded event log (JSON Lines).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Sequence

import yaml

from ..events import Event, EventType, RunEnd
from .models import ReporterConfig
from .parser import ConfigParser, EventParser
from .validation import ConfigValidator, EventValidator, ValidationResult

UPDATE_REFS_FLAGS = ("--update-refs", "--update-refs=true")


def load_config(path: str | Path) -> tuple[ReporterConfig | None, ValidationResult]:
    """
    Load and validate a reporter config from a YAML file.

    Args:
        path: Path to the YAML config file

    Returns:
        Tuple of (ReporterConfig or None, ValidationResult)
        If validation fails, ReporterConfig will be None.

    Example:
        config, result = load_config("snapreport.yaml")
        if not result.is_valid:
            print(result)
            sys.exit(1)
    """
    path = Path(path)

    if not path.exists():
        result = ValidationResult()
        result.add_error(
            str(path),
            "File not found",
            suggestion="Check the file path is correct"
        )
        return None, result

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        result = ValidationResult()
        result.add_error(
            str(path),
            f"Invalid YAML syntax: {e}",
            suggestion="Check YAML formatting (indentation, colons, etc.)"
        )
        return None, result

    # An empty file means all defaults
    if data is None:
        data = {}

    if not isinstance(data, dict):
        result = ValidationResult()
        result.add_error(
            str(path),
            "File must contain a YAML object (not a list or scalar)",
            value=type(data).__name__
        )
        return None, result

    return config_from_dict(data)


def config_from_dict(data: dict[str, Any]) -> tuple[ReporterConfig | None, ValidationResult]:
    """Validate and parse an already-loaded config mapping."""
    result = ConfigValidator(data).validate()
    if not result.is_valid:
        return None, result
    return ConfigParser(data).parse(), result


def updates_references(argv: Sequence[str]) -> bool:
    """True when the process was asked to update reference screenshots."""
    return any(arg in UPDATE_REFS_FLAGS for arg in argv)


def load_events(path: str | Path) -> tuple[list[Event] | None, ValidationResult]:
    """
    Load and validate a JSON Lines event log.

    Relative image paths inside the log are resolved against the log's
    directory. A trailing run_end event is added when missing.

    Returns:
        Tuple of (events or None, ValidationResult)
    """
    path = Path(path)

    if not path.exists():
        result = ValidationResult()
        result.add_error(
            str(path),
            "File not found",
            suggestion="Check the file path is correct"
        )
        return None, result

    return parse_events(path.read_text(), base_dir=path.parent)


def parse_events(
    text: str,
    base_dir: str | Path | None = None,
) -> tuple[list[Event] | None, ValidationResult]:
    """Validate and parse JSON Lines event text (useful for testing)."""
    result = ValidationResult()
    validator = EventValidator(result)
    raw_events: list[dict[str, Any]] = []

    for number, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        location = f"line {number}"
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            result.add_error(location, f"Invalid JSON: {e.msg}", suggestion="Write one JSON object per line")
            continue
        if validator.validate(data, location):
            raw_events.append(data)

    if not result.is_valid:
        return None, result

    parser = EventParser(base_dir)
    events = [parser.parse(data) for data in raw_events]
    if not events or events[-1].type != EventType.RUN_END:
        events.append(RunEnd())
    return events, result
