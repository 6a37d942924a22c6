"""
Reporter plugin entry point.

Builds a ready-to-use EventReconciler from a ReporterConfig, or returns
None when reporting is disabled for this process.
"""

from __future__ import annotations

import logging
import sys
from typing import Sequence

from .artifacts import DiffArtifactBuilder, ImageDiffer, init_temp
from .parsing import ReporterConfig, updates_references
from .reporting import EventReconciler, ReportSink, ResultsDirSink

logger = logging.getLogger(__name__)


def create_reporter(
    config: ReporterConfig,
    argv: Sequence[str] | None = None,
    sink: ReportSink | None = None,
    differ: ImageDiffer | None = None,
) -> EventReconciler | None:
    """
    Create the reconciler for a run.

    Args:
        config: Reporter configuration
        argv: Process arguments (defaults to sys.argv)
        sink: Report sink (a ResultsDirSink built from the config by default)
        differ: Image-diff routine (Pillow-based by default)

    Returns:
        EventReconciler, or None if the reporter is disabled or the run
        only updates reference screenshots
    """
    argv = sys.argv if argv is None else argv
    if not config.enabled:
        logger.info("Reporter disabled by config")
        return None
    if updates_references(argv):
        logger.info("Reference update run, reporter skipped")
        return None

    if sink is None:
        options = config.sink_config()
        results_dir = options.pop("resultsDir")
        sink = ResultsDirSink(results_dir, **options)

    temp = init_temp(config.temp_dir)
    return EventReconciler(
        sink,
        diff_builder=DiffArtifactBuilder(differ, temp),
        attach_images=config.attach_images,
    )
