"""
Tests for the event reconciler.

Covers the per-test state machine, first-failure-wins, retry
deduplication and concurrent expansion of screenshot comparisons.
"""

import asyncio

import pytest

from snapreport.artifacts import DIFF_MEDIA_TYPE, DiffArtifactBuilder, read_diff_manifest
from snapreport.assertions import TestError
from snapreport.events import (
    RunEnd,
    SuiteBegin,
    SuiteEnd,
    TestBegin,
    TestFail,
    TestPass,
    TestPending,
    TestRetry,
)
from snapreport.reporting import (
    GLOBAL_GROUP,
    SCREENSHOT_DIFF_TEST_TYPE,
    Attempt,
    EventReconciler,
    InvalidStateError,
    LabelName,
    Stage,
    Status,
    compute_history_id,
    dedupe_attempts,
)

from conftest import FailingDiffer, StateFailingDiffer, descriptor


def in_suite(*events):
    return [SuiteBegin("shop"), SuiteBegin("checkout"), *events, SuiteEnd(), SuiteEnd(), RunEnd()]


def global_groups(sink):
    return [g for g in sink.groups if g.name == GLOBAL_GROUP]


class TestLifecycle:
    """Test the per-test state machine."""

    @pytest.mark.asyncio
    async def test_begin_then_pass(self, reconciler, sink):
        test = descriptor()

        await reconciler.consume(in_suite(TestBegin(test), TestPass(test)))

        assert len(sink.tests) == 1
        node = sink.tests[0]
        assert node.status == Status.PASSED
        assert node.stage == Stage.FINISHED

    @pytest.mark.asyncio
    async def test_pass_without_begin_creates_node(self, reconciler, sink):
        await reconciler.consume(in_suite(TestPass(descriptor())))

        assert [t.status for t in sink.tests] == [Status.PASSED]

    @pytest.mark.asyncio
    async def test_repeated_begin_is_noop(self, reconciler, sink):
        test = descriptor()

        await reconciler.consume(in_suite(TestBegin(test), TestBegin(test), TestPass(test)))

        assert len(sink.tests) == 1
        assert len(sink.groups[0].tests) == 1

    @pytest.mark.asyncio
    async def test_fail_then_pass_stays_failed(self, reconciler, sink):
        test = descriptor()
        error = TestError(name="AssertionError", message="expected 2 items", stack="at cart.js:10")

        await reconciler.consume(in_suite(TestBegin(test), TestFail(test, error), TestPass(test)))

        assert len(sink.tests) == 1
        node = sink.tests[0]
        assert node.status == Status.FAILED
        assert node.status_details == {"message": "expected 2 items", "trace": "at cart.js:10"}

    @pytest.mark.asyncio
    async def test_runtime_error_is_broken(self, reconciler, sink):
        test = descriptor()
        error = TestError(name="TimeoutError", message="navigation timed out")

        await reconciler.consume(in_suite(TestBegin(test), TestFail(test, error)))

        assert sink.tests[0].status == Status.BROKEN
        assert sink.tests[0].status_details == {"message": "navigation timed out"}

    @pytest.mark.asyncio
    async def test_pending_is_skipped(self, reconciler, sink):
        await reconciler.consume(in_suite(TestPending(descriptor())))

        node = sink.tests[0]
        assert node.status == Status.SKIPPED
        assert node.status_details == {"message": "Test ignored"}
        assert node.stage == Stage.FINISHED

    @pytest.mark.asyncio
    async def test_test_outside_suite_raises(self, reconciler):
        with pytest.raises(InvalidStateError):
            await reconciler.handle(TestBegin(descriptor()))

    @pytest.mark.asyncio
    async def test_test_without_outcome_broken_at_suite_end(self, reconciler, sink):
        test = descriptor(title_path=["shop"])

        await reconciler.consume([SuiteBegin("shop"), TestBegin(test), SuiteEnd(), TestPass(test), RunEnd()])

        assert len(sink.tests) == 1
        node = sink.tests[0]
        assert node.status == Status.BROKEN
        assert node.status_details == {"message": "Suite ended before test finished"}
        assert set(sink.groups[0].to_dict()["children"]) == {node.uuid}

    @pytest.mark.asyncio
    async def test_session_discarded_after_run_end(self, reconciler):
        await reconciler.consume(in_suite(TestPass(descriptor())))

        assert not reconciler.active

    @pytest.mark.asyncio
    async def test_suites_left_open_are_closed_at_run_end(self, reconciler, sink):
        await reconciler.consume([SuiteBegin("shop"), TestPass(descriptor())])

        assert [g.name for g in sink.groups] == ["shop"]
        assert sink.groups[0].closed


class TestRetries:
    """Test that only the terminal attempt is reported."""

    def test_dedupe_keeps_terminal_attempt(self):
        attempts = [
            Attempt(descriptor(retries_left=2), retries_left=2),
            Attempt(descriptor(retries_left=1), retries_left=1),
            Attempt(descriptor(retries_left=0), retries_left=0),
        ]

        kept = dedupe_attempts(attempts)

        assert kept == [attempts[2]]

    def test_dedupe_keeps_last_terminal_per_test(self):
        first = Attempt(descriptor(), retries_left=0)
        other = Attempt(descriptor(title="other"), retries_left=0)
        last = Attempt(descriptor(), retries_left=0)

        assert dedupe_attempts([first, other, last]) == [last, other]

    @pytest.mark.asyncio
    async def test_retried_attempts_not_reported(self, reconciler, sink):
        error = TestError(name="AssertionError", message="flaky")
        attempts = [descriptor(retries_left=n) for n in (2, 1, 0)]

        await reconciler.consume(in_suite(
            TestBegin(attempts[0]), TestFail(attempts[0], error),
            TestBegin(attempts[1]), TestRetry(attempts[1], error),
            TestBegin(attempts[2]), TestPass(attempts[2]),
        ))

        assert len(sink.tests) == 1
        assert sink.tests[0].status == Status.PASSED
        suite = next(g for g in sink.groups if g.name == "checkout")
        assert len(suite.tests) == 1


class TestScreenshotFailures:
    """Test evidence attached to a failing test with screenshot diffs."""

    @pytest.mark.asyncio
    async def test_failing_assertion_attachments(self, reconciler, sink, make_state):
        test = descriptor(results=[make_state("header"), make_state("footer", outcome="diff")])
        error = TestError(name="AssertViewError", message="footer differs", stack="at assertView")

        await reconciler.handle(SuiteBegin("shop"))
        await reconciler.handle(TestBegin(test))
        await reconciler.handle(TestFail(test, error))

        node = sink.tests[0]
        assert node.status == Status.FAILED
        assert node.get_label(LabelName.TEST_TYPE) == SCREENSHOT_DIFF_TEST_TYPE
        assert [(a.name, a.type) for a in node.attachments] == [
            ("footer Expected", "image/png"),
            ("footer Actual", "image/png"),
            ("footer ImageDiff", DIFF_MEDIA_TYPE),
        ]

    @pytest.mark.asyncio
    async def test_images_not_attached_when_disabled(self, sink, diff_builder, make_state):
        reconciler = EventReconciler(sink, diff_builder=diff_builder, attach_images=False)
        test = descriptor(results=[make_state("footer", outcome="diff")])

        await reconciler.handle(SuiteBegin("shop"))
        await reconciler.handle(TestFail(test, TestError(name="AssertViewError")))

        assert [a.type for a in sink.tests[0].attachments] == [DIFF_MEDIA_TYPE]

    @pytest.mark.asyncio
    async def test_diff_failure_makes_test_broken(self, sink, temp_root, make_state):
        reconciler = EventReconciler(sink, diff_builder=DiffArtifactBuilder(FailingDiffer(), temp=temp_root))
        test = descriptor(results=[make_state("footer", outcome="diff")])

        await reconciler.handle(SuiteBegin("shop"))
        await reconciler.handle(TestFail(test, TestError(name="AssertViewError", message="differs")))

        node = sink.tests[0]
        assert node.status == Status.BROKEN
        assert "diff tool crashed" in node.status_details["message"]
        assert "Traceback" in node.status_details["trace"]

    @pytest.mark.asyncio
    async def test_every_failed_comparison_gets_a_diff(self, reconciler, sink, make_state):
        test = descriptor(results=[make_state("header", outcome="diff"), make_state("footer", outcome="diff")])
        error = TestError(name="AssertViewError", message="2 states differ")

        await reconciler.handle(SuiteBegin("shop"))
        await reconciler.handle(TestFail(test, error))

        node = sink.tests[0]
        assert node.status == Status.FAILED
        diffs = [a.name for a in node.attachments if a.type == DIFF_MEDIA_TYPE]
        assert diffs == ["header ImageDiff", "footer ImageDiff"]

    @pytest.mark.asyncio
    async def test_later_diff_failure_keeps_test_failed(self, sink, temp_root, make_state):
        builder = DiffArtifactBuilder(StateFailingDiffer("footer"), temp=temp_root)
        reconciler = EventReconciler(sink, diff_builder=builder)
        test = descriptor(results=[make_state("header", outcome="diff"), make_state("footer", outcome="diff")])

        await reconciler.handle(SuiteBegin("shop"))
        await reconciler.handle(TestFail(test, TestError(name="AssertViewError", message="differs")))

        node = sink.tests[0]
        assert node.status == Status.FAILED
        assert node.status_details == {"message": "differs"}
        assert [a.name for a in node.attachments] == [
            "header Expected",
            "header Actual",
            "header ImageDiff",
            "footer Expected",
            "footer Actual",
        ]

    @pytest.mark.asyncio
    async def test_earliest_diff_failure_breaks_test(self, sink, temp_root, make_state):
        builder = DiffArtifactBuilder(StateFailingDiffer("header"), temp=temp_root)
        reconciler = EventReconciler(sink, diff_builder=builder, attach_images=False)
        test = descriptor(results=[make_state("header", outcome="diff"), make_state("footer", outcome="diff")])

        await reconciler.handle(SuiteBegin("shop"))
        await reconciler.handle(TestFail(test, TestError(name="AssertViewError", message="differs")))

        node = sink.tests[0]
        assert node.status == Status.BROKEN
        assert "header" in node.status_details["message"]
        assert [a.name for a in node.attachments] == ["footer ImageDiff"]


class TestExpansion:
    """Test expansion of screenshot comparisons into sub-tests."""

    @pytest.mark.asyncio
    async def test_three_states_two_pass_one_diff(self, reconciler, sink, make_state):
        states = [make_state("header"), make_state("cart", outcome="diff"), make_state("footer")]
        test = descriptor(results=states)
        error = TestError(name="AssertViewError", message="cart differs")

        await reconciler.consume(in_suite(TestBegin(test), TestFail(test, error)))

        groups = global_groups(sink)
        assert len(groups) == 1
        subtests = {t.name: t for t in groups[0].tests}
        assert set(subtests) == {"header", "cart", "footer"}

        cart = subtests["cart"]
        assert cart.status == Status.FAILED
        assert cart.get_label(LabelName.TEST_TYPE) == SCREENSHOT_DIFF_TEST_TYPE
        diffs = [a for a in cart.attachments if a.type == DIFF_MEDIA_TYPE]
        assert len(diffs) == 1
        assert cart.status_details == {"message": "cart differs", "trace": "at assertView"}

        for name in ("header", "footer"):
            assert subtests[name].status == Status.PASSED
            assert [(a.name, a.type) for a in subtests[name].attachments] == [
                (f"{name} Original", "image/png")
            ]

    @pytest.mark.asyncio
    async def test_subtest_identity_and_labels(self, reconciler, sink, make_state):
        test = descriptor(title_path=["shop", "checkout", "card"], results=[make_state("header")])

        await reconciler.consume([SuiteBegin("shop"), TestPass(test), RunEnd()])

        node = global_groups(sink)[0].tests[0]
        assert node.full_name == "header"
        assert node.history_id == compute_history_id("header")
        assert node.get_label(LabelName.PARENT_SUITE) == "shop"
        assert node.get_label(LabelName.SUITE) == "checkout"
        assert node.get_label(LabelName.SUB_SUITE) == "card"

    @pytest.mark.asyncio
    async def test_other_error_is_broken(self, reconciler, sink, make_state):
        test = descriptor(results=[make_state("button", outcome="error")])

        await reconciler.consume(in_suite(TestFail(test, TestError(name="Error"))))

        node = global_groups(sink)[0].tests[0]
        assert node.status == Status.BROKEN
        assert node.status_details == {"message": "element not found", "trace": "at click"}

    @pytest.mark.asyncio
    async def test_diff_failure_does_not_cancel_siblings(self, sink, temp_root, make_state):
        reconciler = EventReconciler(sink, diff_builder=DiffArtifactBuilder(FailingDiffer(), temp=temp_root))
        test = descriptor(results=[make_state("a", outcome="diff"), make_state("b"), make_state("c")])

        await reconciler.consume(in_suite(TestFail(test, TestError(name="AssertViewError"))))

        statuses = {t.name: t.status for t in global_groups(sink)[0].tests}
        assert statuses == {"a": Status.BROKEN, "b": Status.PASSED, "c": Status.PASSED}

    @pytest.mark.asyncio
    async def test_only_terminal_attempt_expanded(self, reconciler, sink, make_state):
        retried = descriptor(retries_left=1, results=[make_state("old")])
        final = descriptor(retries_left=0, results=[make_state("new")])

        await reconciler.consume(in_suite(
            TestRetry(retried, TestError(name="AssertionError")),
            TestPass(final),
        ))

        groups = global_groups(sink)
        assert len(groups) == 1
        assert [t.name for t in groups[0].tests] == ["new"]

    @pytest.mark.asyncio
    async def test_tests_without_states_skipped(self, reconciler, sink, make_state):
        plain = descriptor(title="plain")
        visual = descriptor(title="visual", results=[make_state("hero")])

        await reconciler.consume(in_suite(TestPass(plain), TestPass(visual)))

        groups = global_groups(sink)
        assert len(groups) == 1
        assert groups[0].tests[0].name == "hero"

    @pytest.mark.asyncio
    async def test_concurrent_subtests_all_present_when_group_closes(self, reconciler, sink, make_state):
        states = [make_state(f"state-{i}", outcome="diff" if i % 3 == 0 else "pass") for i in range(12)]
        test = descriptor(results=states)
        closed_with = []

        original_write_group = sink.write_group

        def record_group(group):
            closed_with.append(len(group.tests))
            original_write_group(group)

        sink.write_group = record_group

        await reconciler.consume(in_suite(TestFail(test, TestError(name="AssertViewError"))))

        group = global_groups(sink)[0]
        assert closed_with[-1] == 12
        assert len(group.tests) == 12
        assert all(t.stage == Stage.FINISHED for t in group.tests)

    @pytest.mark.asyncio
    async def test_subtests_run_concurrently(self, sink, temp_root, make_state):
        running = 0
        peak = 0

        class SlowBuilder(DiffArtifactBuilder):
            async def build(self, result):
                nonlocal running, peak
                running += 1
                peak = max(peak, running)
                await asyncio.sleep(0.01)
                running -= 1
                return await super().build(result)

        reconciler = EventReconciler(sink, diff_builder=SlowBuilder(temp=temp_root), attach_images=False)
        test = descriptor(results=[make_state(f"s{i}", outcome="diff") for i in range(4)])

        await reconciler.handle(SuiteBegin("shop"))
        await reconciler.handle(TestPass(test))
        await reconciler.handle(RunEnd())

        assert peak == 4

    @pytest.mark.asyncio
    async def test_manifest_attachment_content(self, reconciler, sink, make_state, tmp_path):
        state = make_state("cart", outcome="diff")
        test = descriptor(results=[state])

        await reconciler.consume(in_suite(TestPass(test)))

        cart = global_groups(sink)[0].tests[0]
        source = next(a.source for a in cart.attachments if a.type == DIFF_MEDIA_TYPE)
        manifest_path = tmp_path / "manifest.imagediff"
        manifest_path.write_bytes(sink.attachments[source])
        manifest = read_diff_manifest(manifest_path)
        assert manifest.expected.startswith("data:image/png;base64,")
