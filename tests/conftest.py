"""Pytest configuration and fixtures for snapreport tests.

Fixtures write small PNG screenshots with Pillow into the test's tmp_path
and give each test an isolated temp root and in-memory sink.
"""

from pathlib import Path
from typing import Any, Callable

import pytest
from PIL import Image

from snapreport.artifacts import DiffArtifactBuilder, ImageDiffer, PillowImageDiffer, TempDir
from snapreport.assertions import (
    AssertViewResult,
    DiffOptions,
    ImageInfo,
    ImageSize,
    TestError,
)
from snapreport.events import TestDescriptor
from snapreport.reporting import EventReconciler, MemorySink


class FailingDiffer(ImageDiffer):
    """Differ that always raises, standing in for broken diff tooling."""

    def compute_diff(self, options: DiffOptions) -> Any:
        raise RuntimeError("diff tool crashed")

    def decode_size(self, bitmap: Any) -> ImageSize:
        raise AssertionError("unreachable")

    def save_bitmap(self, bitmap: Any, path: Path) -> None:
        raise AssertionError("unreachable")


class StateFailingDiffer(PillowImageDiffer):
    """Pillow differ that raises for one named screenshot state."""

    def __init__(self, state_name: str):
        self.state_name = state_name

    def compute_diff(self, options: DiffOptions) -> Any:
        if Path(options.reference).name == f"{self.state_name}-ref.png":
            raise RuntimeError(f"diff tool crashed on {self.state_name}")
        return super().compute_diff(options)


@pytest.fixture
def make_png(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a solid-color PNG, optionally with one odd pixel."""
    images = tmp_path / "images"
    images.mkdir()

    def _make(
        name: str,
        color: tuple[int, int, int] = (255, 255, 255),
        size: tuple[int, int] = (8, 6),
        pixel: tuple[int, int] | None = None,
        pixel_color: tuple[int, int, int] = (0, 0, 0),
    ) -> Path:
        img = Image.new("RGB", size, color)
        if pixel is not None:
            img.putpixel(pixel, pixel_color)
        path = images / f"{name}.png"
        img.save(path)
        return path

    return _make


@pytest.fixture
def temp_root(tmp_path: Path) -> TempDir:
    return TempDir(tmp_path)


@pytest.fixture
def diff_builder(temp_root: TempDir) -> DiffArtifactBuilder:
    return DiffArtifactBuilder(temp=temp_root)


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def reconciler(sink: MemorySink, diff_builder: DiffArtifactBuilder) -> EventReconciler:
    return EventReconciler(sink, diff_builder=diff_builder)


@pytest.fixture
def make_state(make_png: Callable[..., Path]) -> Callable[..., AssertViewResult]:
    """Factory for screenshot comparison results backed by real PNGs."""

    def _make(state_name: str, outcome: str = "pass") -> AssertViewResult:
        ref_path = make_png(f"{state_name}-ref")
        ref = ImageInfo(ref_path, ImageSize(8, 6))
        if outcome == "pass":
            return AssertViewResult(state_name=state_name, ref_img=ref, curr_img=ref)

        curr_path = make_png(f"{state_name}-curr", pixel=(2, 3))
        curr = ImageInfo(curr_path, ImageSize(8, 6))
        if outcome == "diff":
            return AssertViewResult(
                state_name=state_name,
                ref_img=ref,
                curr_img=curr,
                diff_opts=DiffOptions(reference=ref_path, current=curr_path),
                error=TestError(name="ImageDiffError", message=f"{state_name} differs", stack="at assertView"),
            )
        return AssertViewResult(
            state_name=state_name,
            ref_img=ref,
            error=TestError(name="Error", message="element not found", stack="at click"),
        )

    return _make


def descriptor(
    title: str = "opens the cart",
    title_path: list[str] | None = None,
    retries_left: int = 0,
    results: list[AssertViewResult] | None = None,
) -> TestDescriptor:
    return TestDescriptor(
        title=title,
        title_path=["shop", "checkout"] if title_path is None else title_path,
        retries_left=retries_left,
        assert_view_results=results or [],
    )
