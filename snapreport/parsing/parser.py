"""
Parsers converting validated data into typed structures.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from ..assertions import AssertViewResult, DiffOptions, ImageInfo, ImageSize, TestError
from ..events import (
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
from .models import DEFAULT_RESULTS_DIR, ReporterConfig


class ConfigParser:
    """Parses a validated config mapping into ReporterConfig."""

    def __init__(self, data: dict[str, Any]):
        self.data = data

    def parse(self) -> ReporterConfig:
        return ReporterConfig(
            enabled=self.data.get("enabled", True),
            target_dir=self.data.get("target_dir") or DEFAULT_RESULTS_DIR,
            reporter_options=dict(self.data.get("reporter_options") or {}),
            temp_dir=self.data.get("temp_dir"),
            attach_images=self.data.get("attach_images", True),
        )


class EventParser:
    """
    Parses validated event objects.

    Relative image paths are resolved against base_dir (usually the
    directory holding the event log).
    """

    DIFF_KEYS = {"reference", "current", "diff_color", "tolerance"}

    def __init__(self, base_dir: str | Path | None = None):
        self.base_dir = Path(base_dir) if base_dir is not None else None

    def parse(self, data: dict[str, Any]) -> Event:
        event = EventType(data["event"])

        if event == EventType.SUITE_BEGIN:
            return SuiteBegin(name=data.get("name"))
        if event == EventType.SUITE_END:
            return SuiteEnd()
        if event == EventType.RUN_END:
            return RunEnd()

        test = self._parse_test(data["test"])
        if event == EventType.TEST_BEGIN:
            return TestBegin(test=test)
        if event == EventType.TEST_PASS:
            return TestPass(test=test)
        if event == EventType.TEST_PENDING:
            return TestPending(test=test)

        error = self._parse_error(data.get("error"))
        if event == EventType.TEST_FAIL:
            return TestFail(test=test, error=error)
        return TestRetry(test=test, error=error)

    def _parse_test(self, test: dict[str, Any]) -> TestDescriptor:
        return TestDescriptor(
            title=test["title"],
            title_path=list(test.get("title_path", [])),
            retries_left=test.get("retries_left", 0),
            browser_id=test.get("browser_id"),
            assert_view_results=[
                self._parse_assert_view_result(item)
                for item in test.get("assert_view_results", [])
            ],
        )

    def _parse_assert_view_result(self, item: dict[str, Any]) -> AssertViewResult:
        ref_img = self._parse_image(item.get("ref_img"))
        curr_img = self._parse_image(item.get("curr_img"))
        return AssertViewResult(
            state_name=item["state_name"],
            ref_img=ref_img,
            curr_img=curr_img,
            diff_opts=self._parse_diff_opts(item.get("diff_opts"), ref_img, curr_img),
            error=self._parse_error(item.get("error")),
        )

    def _parse_image(self, image: dict[str, Any] | None) -> ImageInfo | None:
        if image is None:
            return None
        size = image.get("size")
        return ImageInfo(
            path=self._resolve(image["path"]),
            size=ImageSize(width=size["width"], height=size["height"]) if size else None,
        )

    def _parse_diff_opts(
        self,
        opts: dict[str, Any] | None,
        ref_img: ImageInfo | None,
        curr_img: ImageInfo | None,
    ) -> DiffOptions | None:
        if opts is None:
            return None

        reference = opts.get("reference")
        current = opts.get("current")
        reference_path = self._resolve(reference) if reference else (ref_img.path if ref_img else None)
        current_path = self._resolve(current) if current else (curr_img.path if curr_img else None)
        if reference_path is None or current_path is None:
            return None

        diff_opts = DiffOptions(
            reference=reference_path,
            current=current_path,
            extra={k: v for k, v in opts.items() if k not in self.DIFF_KEYS},
        )
        if "diff_color" in opts:
            diff_opts.diff_color = opts["diff_color"]
        if "tolerance" in opts:
            diff_opts.tolerance = float(opts["tolerance"])
        return diff_opts

    def _parse_error(self, error: dict[str, Any] | None) -> TestError | None:
        if error is None:
            return None
        return TestError(
            name=error.get("name") or "Error",
            message=error.get("message"),
            stack=error.get("stack"),
        )

    def _resolve(self, path: str) -> Path:
        resolved = Path(path)
        if self.base_dir is not None and not resolved.is_absolute():
            resolved = self.base_dir / resolved
        return resolved
