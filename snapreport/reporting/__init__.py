"""
Reporting for Test Runs

This package turns test-runner events into a hierarchical report.

Features:
    - Suite stack and test nodes with status, stage and labels
    - Parent suite / suite / sub-suite labels from the title path
    - Stable history ids for cross-run correlation
    - First-failure-wins status resolution
    - Retry deduplication
    - Screenshot comparisons expanded into concurrent sub-tests
    - In-memory and results-directory sinks

Usage:
    from snapreport.reporting import EventReconciler, ResultsDirSink

    sink = ResultsDirSink("allure-results")
    reconciler = EventReconciler(sink)
    await reconciler.consume(events)

    print(sink.count_by_status())
"""

# Models
from .models import (
    FAILURE_STATUSES,
    SCREENSHOT_DIFF_TEST_TYPE,
    Attachment,
    InvalidStateError,
    Label,
    LabelName,
    ReportGroup,
    Stage,
    Status,
    StepResult,
    TestResult,
    compute_history_id,
)

# Sinks
from .sink import MemorySink, ReportSink, ResultsDirSink

# Builder
from .builder import GLOBAL_GROUP, ReportTreeBuilder

# Reconciler
from .reconciler import Attempt, EventReconciler, RunSession, dedupe_attempts

__all__ = [
    # Models
    "FAILURE_STATUSES",
    "SCREENSHOT_DIFF_TEST_TYPE",
    "Attachment",
    "InvalidStateError",
    "Label",
    "LabelName",
    "ReportGroup",
    "Stage",
    "Status",
    "StepResult",
    "TestResult",
    "compute_history_id",
    # Sinks
    "MemorySink",
    "ReportSink",
    "ResultsDirSink",
    # Builder
    "GLOBAL_GROUP",
    "ReportTreeBuilder",
    # Reconciler
    "Attempt",
    "EventReconciler",
    "RunSession",
    "dedupe_attempts",
]
