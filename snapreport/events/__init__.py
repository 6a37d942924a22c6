"""
Test Runner Events

Typed lifecycle events (suite/test begin, pass, fail, pending, retry,
run end) and the test descriptor they carry.
"""

from .models import (
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

__all__ = [
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
]
