"""
Report tree builder.

This module provides the ReportTreeBuilder which maintains the suite
stack of a run and creates, labels and finishes test nodes.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..events import TestDescriptor
from .models import (
    InvalidStateError,
    LabelName,
    ReportGroup,
    Stage,
    Status,
    StepResult,
    TestResult,
    compute_history_id,
)
from .sink import ReportSink

logger = logging.getLogger(__name__)

GLOBAL_GROUP = "Global"
UNFINISHED_MESSAGE = "Suite ended before test finished"


class ReportTreeBuilder:
    """
    Builds the report tree for one run.

    Suites form a stack; only the top of the stack receives new suites
    and tests. Sub-tests expanded from screenshot comparisons are created
    under synthetic groups outside the stack.

    Example:
        builder = ReportTreeBuilder(MemorySink())

        builder.start_suite("checkout")
        test = builder.start_test(descriptor)
        builder.write_attachment(test, "page", "page.png", "image/png")
        builder.end_test(test, Status.PASSED)
        builder.end_suite()
    """

    def __init__(self, sink: ReportSink):
        self.sink = sink
        self.suites: list[ReportGroup] = []
        self.running_test: TestResult | None = None

    @property
    def current_suite(self) -> ReportGroup | None:
        return self.suites[-1] if self.suites else None

    # ─────────────────────────────────────────────────────────────────────
    # Suites
    # ─────────────────────────────────────────────────────────────────────

    def start_suite(self, name: str | None = None) -> ReportGroup:
        """
        Open a suite under the current one (or at the top level).

        Args:
            name: Suite title; blank titles become "Global"
        """
        scope = self.current_suite
        suite_name = name or GLOBAL_GROUP
        if scope is not None:
            suite = scope.start_group(suite_name)
        else:
            suite = self.sink.start_group(suite_name)
        self.suites.append(suite)
        logger.debug(f"Suite started: {suite_name} (depth {len(self.suites)})")
        return suite

    def end_suite(self) -> None:
        """
        Close the current suite. No-op when no suite is open.

        Tests of the suite that never reported an outcome are ended as
        broken so the suite only lists written results.
        """
        if not self.suites:
            return
        self.end_steps()
        suite = self.suites.pop()
        for test in list(suite.tests):
            if not test.finished:
                logger.warning(f"Test '{test.full_name}' still running at end of suite '{suite.name}'")
                self.end_test(test, Status.BROKEN, {"message": UNFINISHED_MESSAGE})
        suite.end_group()
        logger.debug(f"Suite ended: {suite.name}")

    def close_all(self) -> None:
        """Close every open suite, innermost first."""
        while self.suites:
            self.end_suite()

    def start_group(self, name: str = GLOBAL_GROUP) -> ReportGroup:
        """Open a synthetic top-level group outside the suite stack."""
        return self.sink.start_group(name)

    def end_group(self, group: ReportGroup) -> None:
        group.end_group()

    # ─────────────────────────────────────────────────────────────────────
    # Tests
    # ─────────────────────────────────────────────────────────────────────

    def start_test(
        self,
        test: TestDescriptor,
        group: ReportGroup | None = None,
        name: str | None = None,
    ) -> TestResult:
        """
        Create a running test node.

        Args:
            test: The runner's descriptor for the test
            group: Explicit parent group (defaults to the current suite)
            name: Override for the display and full name

        Returns:
            The live TestResult

        Raises:
            InvalidStateError: If no group is given and no suite is open
        """
        scope = group or self.current_suite
        if scope is None:
            raise InvalidStateError(f"startTest '{test.title}' while no suite is open")

        result = scope.start_test(name or test.title)
        result.full_name = name or test.full_title
        result.history_id = compute_history_id(result.full_name)
        result.stage = Stage.RUNNING

        parent_suite, suite, sub_suites = _split_suite_path(test.suite_path)
        if parent_suite:
            result.add_label(LabelName.PARENT_SUITE, parent_suite)
        if suite:
            result.add_label(LabelName.SUITE, suite)
        if sub_suites:
            result.add_label(LabelName.SUB_SUITE, " > ".join(sub_suites))

        if group is None:
            self.running_test = result
        return result

    def end_test(
        self,
        test: TestResult | None,
        status: Status,
        details: dict[str, str] | None = None,
    ) -> TestResult:
        """
        Finish a test and hand it to the sink.

        Callers are responsible for first-failure-wins: the status given
        here is applied as is.

        Raises:
            InvalidStateError: If test is None or already finished
        """
        if test is None:
            raise InvalidStateError("endTest while no test is running")
        if test.finished:
            raise InvalidStateError(f"Test '{test.name}' already ended")

        test.status = status
        if details:
            test.status_details = details
        if test is self.running_test:
            self.end_steps()
            self.running_test = None
        test.end_test()
        return test

    def discard_test(self, test: TestResult) -> None:
        """Drop an unfinished test from its group without reporting it."""
        if test.group is not None:
            test.group.remove_test(test)
        if test is self.running_test:
            self.running_test = None

    def write_attachment(
        self,
        test: TestResult | None,
        name: str,
        path: str | Path,
        media_type: str,
    ) -> None:
        """
        Copy a file into the sink's store and link it to a test.

        Raises:
            InvalidStateError: If test is None
        """
        if test is None:
            raise InvalidStateError("no running test to attach to")
        source = self.sink.write_attachment_from_path(path, media_type)
        test.add_attachment(name, media_type, source)

    # ─────────────────────────────────────────────────────────────────────
    # Steps
    # ─────────────────────────────────────────────────────────────────────

    def start_step(self, name: str) -> StepResult:
        if self.running_test is None:
            raise InvalidStateError(f"startStep '{name}' while no test is running")
        step = StepResult(name=name)
        self.running_test.steps.append(step)
        return step

    def end_step(self, status: Status = Status.PASSED) -> StepResult:
        step = self._open_step()
        if step is None:
            raise InvalidStateError("endStep while no step is running")
        step.end(status)
        return step

    def end_steps(self) -> None:
        """Close any step left open on the running test as broken."""
        step = self._open_step()
        while step is not None:
            step.end(Status.BROKEN)
            step = self._open_step()

    def _open_step(self) -> StepResult | None:
        if self.running_test is None:
            return None
        for step in reversed(self.running_test.steps):
            if step.stage == Stage.RUNNING:
                return step
        return None


def _split_suite_path(path: list[str]) -> tuple[str | None, str | None, list[str]]:
    parent_suite = path[0] if len(path) > 0 else None
    suite = path[1] if len(path) > 1 else None
    return parent_suite, suite, path[2:]
