"""
Event reconciler.

This module drives the report tree from a stream of test-runner
events. It tracks one node per logical test, applies
first-failure-wins, drops retried attempts, and at the end of the run
expands screenshot comparisons into independent sub-tests.
"""

from __future__ import annotations

import asyncio
import logging
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from ..artifacts import DIFF_MEDIA_TYPE, DiffArtifactBuilder, DiffComputationFailed
from ..assertions import AssertViewResult, ImageInfo, TestError
from ..events import (
    Event,
    EventType,
    RunEnd,
    TestDescriptor,
    TestRetry,
)
from .builder import GLOBAL_GROUP, ReportTreeBuilder
from .models import (
    SCREENSHOT_DIFF_TEST_TYPE,
    InvalidStateError,
    LabelName,
    ReportGroup,
    Status,
    TestResult,
)
from .sink import ReportSink

logger = logging.getLogger(__name__)

PNG_MEDIA_TYPE = "image/png"
SKIPPED_MESSAGE = "Test ignored"


@dataclass
class Attempt:
    """A completed execution attempt buffered until the end of the run."""
    test: TestDescriptor
    retries_left: int


@dataclass
class RunSession:
    """Mutable state of one run. Discarded at run end."""
    builder: ReportTreeBuilder
    nodes: dict[str, TestResult] = field(default_factory=dict)
    attempts: list[Attempt] = field(default_factory=list)

    def record(self, test: TestDescriptor, terminal: bool = True) -> None:
        retries_left = 0 if terminal else max(test.retries_left, 1)
        self.attempts.append(Attempt(test=test, retries_left=retries_left))


def dedupe_attempts(attempts: Iterable[Attempt]) -> list[Attempt]:
    """
    Keep only reportable attempts.

    Attempts with retries remaining are dropped; of the rest, the last
    attempt per logical test wins. Order of first appearance is kept.
    """
    latest: dict[str, Attempt] = {}
    for attempt in attempts:
        if attempt.retries_left > 0:
            continue
        latest[attempt.test.key] = attempt
    return list(latest.values())


def exception_details(exc: BaseException) -> dict[str, str]:
    trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return {"message": str(exc), "trace": trace}


class EventReconciler:
    """
    Reconciles runner events into a report.

    Suite and test transitions are applied as events arrive. Screenshot
    comparisons are expanded into sub-tests when the run ends; the
    sub-tests of one test run concurrently under a shared "Global" group
    that is closed only after all of them settle.

    Example:
        reconciler = EventReconciler(ResultsDirSink("allure-results"))
        await reconciler.consume(events)
    """

    def __init__(
        self,
        sink: ReportSink,
        diff_builder: DiffArtifactBuilder | None = None,
        attach_images: bool = True,
    ):
        """
        Args:
            sink: Destination of the report
            diff_builder: Builder for diff artifacts (Pillow + shared temp root by default)
            attach_images: Attach reference/current PNGs of failed comparisons
                to the failing test, next to the diff manifest
        """
        self.sink = sink
        self.diff_builder = diff_builder or DiffArtifactBuilder()
        self.attach_images = attach_images
        self._session: RunSession | None = None
        self._handlers = {
            EventType.SUITE_BEGIN: self._on_suite_begin,
            EventType.SUITE_END: self._on_suite_end,
            EventType.TEST_BEGIN: self._on_test_begin,
            EventType.TEST_PASS: self._on_test_pass,
            EventType.TEST_FAIL: self._on_test_fail,
            EventType.TEST_PENDING: self._on_test_pending,
            EventType.TEST_RETRY: self._on_test_retry,
            EventType.RUN_END: self._on_run_end,
        }

    @property
    def session(self) -> RunSession:
        if self._session is None:
            self._session = RunSession(builder=ReportTreeBuilder(self.sink))
            logger.debug("Run session started")
        return self._session

    @property
    def active(self) -> bool:
        return self._session is not None

    async def consume(self, events: Iterable[Event]) -> ReportSink:
        """Handle every event in order, then end the run if still open."""
        for event in events:
            await self.handle(event)
        if self.active:
            await self.handle(RunEnd())
        return self.sink

    async def handle(self, event: Event) -> None:
        """
        Apply one event.

        Raises:
            InvalidStateError: If the event sequence is inconsistent
        """
        handler = self._handlers[event.type]
        await handler(event)

    # ─────────────────────────────────────────────────────────────────────
    # Suite events
    # ─────────────────────────────────────────────────────────────────────

    async def _on_suite_begin(self, event) -> None:
        self.session.builder.start_suite(event.name)

    async def _on_suite_end(self, event) -> None:
        self.session.builder.end_suite()

    # ─────────────────────────────────────────────────────────────────────
    # Test events
    # ─────────────────────────────────────────────────────────────────────

    async def _on_test_begin(self, event) -> None:
        session = self.session
        if event.test.key in session.nodes:
            logger.debug(f"Test already started: {event.test.key}")
            return
        session.nodes[event.test.key] = session.builder.start_test(event.test)

    async def _on_test_pass(self, event) -> None:
        test = event.test
        node = self._ensure_node(test)
        if node.finished:
            logger.warning(f"Ignoring pass for '{test.key}': already {node.status.value}")
            return
        self.session.record(test)
        self.session.builder.end_test(node, Status.PASSED)

    async def _on_test_fail(self, event) -> None:
        test = event.test
        error = event.error or TestError(message="Test failed")
        if not test.is_terminal_attempt:
            await self._on_test_retry(TestRetry(test=test, error=error))
            return

        node = self._ensure_node(test)
        if node.finished:
            logger.warning(f"Ignoring failure for '{test.key}': already {node.status.value}")
            return

        broken = await self._attach_failed_assertions(node, test)
        if broken is not None:
            status, details = Status.BROKEN, broken
        else:
            status = Status.FAILED if error.is_failure else Status.BROKEN
            details = error.details()

        self.session.record(test)
        self.session.builder.end_test(node, status, details)

    async def _on_test_pending(self, event) -> None:
        test = event.test
        node = self._ensure_node(test)
        if node.finished:
            logger.warning(f"Ignoring pending for '{test.key}': already {node.status.value}")
            return
        self.session.record(test)
        self.session.builder.end_test(node, Status.SKIPPED, {"message": SKIPPED_MESSAGE})

    async def _on_test_retry(self, event) -> None:
        test = event.test
        session = self.session
        session.record(test, terminal=False)
        node = session.nodes.pop(test.key, None)
        if node is not None and not node.finished:
            session.builder.discard_test(node)
        logger.info(f"Retrying '{test.key}' ({test.retries_left} retries left)")

    async def _on_run_end(self, event) -> None:
        session = self.session
        session.builder.close_all()

        try:
            await self.expand(dedupe_attempts(session.attempts), session.builder)
        finally:
            self._session = None
            logger.debug("Run session ended")

    def _ensure_node(self, test: TestDescriptor) -> TestResult:
        session = self.session
        node = session.nodes.get(test.key)
        if node is None:
            node = session.builder.start_test(test)
            session.nodes[test.key] = node
        return node

    async def _attach_failed_assertions(
        self,
        node: TestResult,
        test: TestDescriptor,
    ) -> dict[str, str] | None:
        """
        Attach evidence for every failed comparison of a failing test.

        Returns:
            Status details when the earliest diff could not be computed
            (the test is then Broken), None otherwise
        """
        failed = test.failed_assertions()
        if not failed:
            return None

        builder = self.session.builder
        node.add_label(LabelName.TEST_TYPE, SCREENSHOT_DIFF_TEST_TYPE)
        broken = None
        first = True
        for result in failed:
            if self.attach_images:
                await self._attach_image(builder, node, f"{result.state_name} Expected", result.ref_img)
                await self._attach_image(builder, node, f"{result.state_name} Actual", result.curr_img)
            if result.diff_opts is None:
                continue
            try:
                manifest = await self.diff_builder.build(result)
            except DiffComputationFailed as e:
                logger.warning(f"Diff failed for '{test.key}' / {result.state_name}: {e}")
                if first:
                    broken = exception_details(e)
                first = False
                continue
            first = False
            await asyncio.to_thread(
                builder.write_attachment,
                node, f"{result.state_name} ImageDiff", manifest, DIFF_MEDIA_TYPE,
            )
        return broken

    async def _attach_image(
        self,
        builder: ReportTreeBuilder,
        node: TestResult,
        name: str,
        image: ImageInfo | None,
    ) -> None:
        if image is None or not Path(image.path).is_file():
            return
        await asyncio.to_thread(builder.write_attachment, node, name, image.path, PNG_MEDIA_TYPE)

    # ─────────────────────────────────────────────────────────────────────
    # Sub-test expansion
    # ─────────────────────────────────────────────────────────────────────

    async def expand(self, attempts: list[Attempt], builder: ReportTreeBuilder) -> None:
        """
        Report every screenshot comparison of the given attempts as its own test.

        Raises:
            InvalidStateError: Re-raised from any sub-test after its group is closed
        """
        for attempt in attempts:
            test = attempt.test
            if not test.assert_view_results:
                continue

            group = builder.start_group(GLOBAL_GROUP)
            outcomes = await asyncio.gather(
                *(self._report_sub_test(builder, group, test, result)
                  for result in test.assert_view_results),
                return_exceptions=True,
            )
            builder.end_group(group)
            logger.info(f"Reported {len(group.tests)} screenshot state(s) for '{test.key}'")

            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome

    async def _report_sub_test(
        self,
        builder: ReportTreeBuilder,
        group: ReportGroup,
        test: TestDescriptor,
        result: AssertViewResult,
    ) -> TestResult:
        node = builder.start_test(test, group=group, name=result.state_name)
        try:
            status, details = await self._resolve_sub_test(builder, node, result)
        except InvalidStateError:
            raise
        except Exception as e:
            logger.error(f"Sub-test '{result.state_name}' crashed: {type(e).__name__}: {e}")
            status, details = Status.BROKEN, exception_details(e)
        return builder.end_test(node, status, details)

    async def _resolve_sub_test(
        self,
        builder: ReportTreeBuilder,
        node: TestResult,
        result: AssertViewResult,
    ) -> tuple[Status, dict[str, str] | None]:
        status = Status.PASSED
        details = None

        if result.error is not None:
            details = result.error.details()
            if result.is_image_diff:
                status = Status.FAILED
                node.add_label(LabelName.TEST_TYPE, SCREENSHOT_DIFF_TEST_TYPE)
                if result.diff_opts is not None:
                    try:
                        manifest = await self.diff_builder.build(result)
                        await asyncio.to_thread(
                            builder.write_attachment,
                            node, f"{result.state_name} ImageDiff", manifest, DIFF_MEDIA_TYPE,
                        )
                    except DiffComputationFailed as e:
                        logger.warning(f"Diff failed for {result.state_name}: {e}")
                        status, details = Status.BROKEN, exception_details(e)
            else:
                status = Status.BROKEN

        if result.ref_img is not None and result.ref_img.has_content:
            await asyncio.to_thread(
                builder.write_attachment,
                node, f"{result.state_name} Original", result.ref_img.path, PNG_MEDIA_TYPE,
            )

        return status, details
