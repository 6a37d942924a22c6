"""
Typed events emitted by a test runner.

This module contains the test descriptor and one dataclass per
lifecycle event consumed by the reconciler.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from ..assertions import AssertViewResult, TestError


class EventType(str, Enum):
    """Lifecycle event names."""
    SUITE_BEGIN = "suite_begin"
    SUITE_END = "suite_end"
    TEST_BEGIN = "test_begin"
    TEST_PASS = "test_pass"
    TEST_FAIL = "test_fail"
    TEST_PENDING = "test_pending"
    TEST_RETRY = "test_retry"
    RUN_END = "run_end"


# ─────────────────────────────────────────────────────────────────────────────
# Test Descriptor
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class TestDescriptor:
    """
    One execution attempt of a test, as the runner describes it.

    Attributes:
        title: The test's own title
        title_path: Titles of the enclosing suites, outermost first
        retries_left: Automatic retries remaining after this attempt
        browser_id: Browser the attempt ran in, if any
        assert_view_results: Screenshot comparisons, in execution order
    """
    __test__ = False

    title: str
    title_path: list[str] = field(default_factory=list)
    retries_left: int = 0
    browser_id: str | None = None
    assert_view_results: list[AssertViewResult] = field(default_factory=list)

    @property
    def suite_path(self) -> list[str]:
        """Suite titles with blank (root) titles removed."""
        return [title for title in self.title_path if title]

    @property
    def full_title(self) -> str:
        return " ".join([*self.suite_path, self.title])

    @property
    def key(self) -> str:
        """Identity of the logical test across retries."""
        if self.browser_id:
            return f"{self.full_title} [{self.browser_id}]"
        return self.full_title

    @property
    def is_terminal_attempt(self) -> bool:
        return self.retries_left <= 0

    def failed_assertions(self) -> list[AssertViewResult]:
        return [result for result in self.assert_view_results if result.failed]


# ─────────────────────────────────────────────────────────────────────────────
# Events
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class SuiteBegin:
    name: str | None = None
    type: EventType = field(default=EventType.SUITE_BEGIN, init=False)


@dataclass
class SuiteEnd:
    type: EventType = field(default=EventType.SUITE_END, init=False)


@dataclass
class TestBegin:
    __test__ = False

    test: TestDescriptor
    type: EventType = field(default=EventType.TEST_BEGIN, init=False)


@dataclass
class TestPass:
    __test__ = False

    test: TestDescriptor
    type: EventType = field(default=EventType.TEST_PASS, init=False)


@dataclass
class TestFail:
    __test__ = False

    test: TestDescriptor
    error: TestError | None = None
    type: EventType = field(default=EventType.TEST_FAIL, init=False)


@dataclass
class TestPending:
    __test__ = False

    test: TestDescriptor
    type: EventType = field(default=EventType.TEST_PENDING, init=False)


@dataclass
class TestRetry:
    """A non-terminal attempt that the runner is about to repeat."""
    __test__ = False

    test: TestDescriptor
    error: TestError | None = None
    type: EventType = field(default=EventType.TEST_RETRY, init=False)


@dataclass
class RunEnd:
    type: EventType = field(default=EventType.RUN_END, init=False)


# Union type for all event variants
Event = Union[SuiteBegin, SuiteEnd, TestBegin, TestPass, TestFail, TestPending, TestRetry, RunEnd]
