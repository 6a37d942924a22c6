"""
Typed reporter configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_RESULTS_DIR = "allure-results"


@dataclass
class ReporterConfig:
    """
    Configuration for the reporter plugin.

    Attributes:
        enabled: Whether the reporter runs at all
        target_dir: Results directory for the report sink
        reporter_options: Passthrough options merged into the sink configuration
        temp_dir: Parent directory for the temp root (system temp if unset)
        attach_images: Attach reference/current PNGs to failing tests
    """
    enabled: bool = True
    target_dir: str = DEFAULT_RESULTS_DIR
    reporter_options: dict[str, Any] = field(default_factory=dict)
    temp_dir: str | None = None
    attach_images: bool = True

    def sink_config(self) -> dict[str, Any]:
        """Sink configuration: results directory plus passthrough options."""
        return {"resultsDir": self.target_dir or DEFAULT_RESULTS_DIR, **self.reporter_options}
