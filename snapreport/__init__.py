"""
snapreport - Screenshot Test Reporting

This package turns a stream of test-runner events and screenshot
comparison outcomes into an Allure-style hierarchical report.

Subpackages:
    - events: Typed runner events and test descriptors
    - assertions: Screenshot comparison results and error kinds
    - artifacts: Temp root and diff image / manifest construction
    - reporting: Report tree, sinks and the event reconciler
    - parsing: Reporter config and event log loading

Usage:
    from snapreport import load_config, load_events, create_reporter

    config, _ = load_config("snapreport.yaml")
    events, _ = load_events("run.jsonl")

    reconciler = create_reporter(config)
    sink = asyncio.run(reconciler.consume(events))
    print(sink.count_by_status())
"""

__version__ = "0.1.0"

# Re-export events for convenience
from .events import (
    Event,
    EventType,
    RunEnd,
    SuiteBegin,
    SuiteEnd,
    TestBegin,
    TestDescriptor,
    TestFail,
    TestPass,
    TestPending,
    TestRetry,
)

# Re-export assertions for convenience
from .assertions import (
    AssertViewResult,
    DiffOptions,
    ErrorKind,
    ImageInfo,
    ImageSize,
    TestError,
)

# Re-export artifacts for convenience
from .artifacts import (
    DIFF_MEDIA_TYPE,
    DiffArtifactBuilder,
    DiffComputationFailed,
    DiffManifest,
    ImageDiffer,
    PillowImageDiffer,
    TempDir,
    attach_temp,
    init_temp,
    read_diff_manifest,
)

# Re-export reporting for convenience
from .reporting import (
    EventReconciler,
    InvalidStateError,
    MemorySink,
    ReportGroup,
    ReportSink,
    ReportTreeBuilder,
    ResultsDirSink,
    Stage,
    Status,
    TestResult,
    compute_history_id,
)

# Re-export parsing for convenience
from .parsing import (
    ReporterConfig,
    ValidationError,
    ValidationResult,
    load_config,
    load_events,
    parse_events,
)

from .plugin import create_reporter

__all__ = [
    # Package info
    "__version__",
    # Events
    "Event",
    "EventType",
    "RunEnd",
    "SuiteBegin",
    "SuiteEnd",
    "TestBegin",
    "TestDescriptor",
    "TestFail",
    "TestPass",
    "TestPending",
    "TestRetry",
    # Assertions
    "AssertViewResult",
    "DiffOptions",
    "ErrorKind",
    "ImageInfo",
    "ImageSize",
    "TestError",
    # Artifacts
    "DIFF_MEDIA_TYPE",
    "DiffArtifactBuilder",
    "DiffComputationFailed",
    "DiffManifest",
    "ImageDiffer",
    "PillowImageDiffer",
    "TempDir",
    "attach_temp",
    "init_temp",
    "read_diff_manifest",
    # Reporting
    "EventReconciler",
    "InvalidStateError",
    "MemorySink",
    "ReportGroup",
    "ReportSink",
    "ReportTreeBuilder",
    "ResultsDirSink",
    "Stage",
    "Status",
    "TestResult",
    "compute_history_id",
    # Parsing
    "ReporterConfig",
    "ValidationError",
    "ValidationResult",
    "load_config",
    "load_events",
    "parse_events",
    # Plugin
    "create_reporter",
]
