"""
Visual assertion result models.

This module defines the data structures describing the outcome of
screenshot comparisons ("assertView" calls) and the errors a test
runner attaches to failed tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class ErrorKind(str, Enum):
    """Known error classes reported by the test runner."""
    ASSERTION = "AssertionError"
    IMAGE_DIFF = "ImageDiffError"
    NO_REF_IMAGE = "NoRefImageError"
    ASSERT_VIEW = "AssertViewError"
    OTHER = "Error"

    @classmethod
    def from_name(cls, name: str | None) -> ErrorKind:
        """Map a runner error name to a kind, falling back to OTHER."""
        for kind in cls:
            if kind.value == name:
                return kind
        return cls.OTHER


# Kinds reported as Failed; anything else is Broken.
FAILURE_KINDS = frozenset({ErrorKind.ASSERTION, ErrorKind.IMAGE_DIFF, ErrorKind.ASSERT_VIEW})


@dataclass
class TestError:
    """An error raised by a test body or a screenshot comparison."""
    __test__ = False

    name: str = ErrorKind.OTHER.value
    message: str | None = None
    stack: str | None = None

    @property
    def kind(self) -> ErrorKind:
        return ErrorKind.from_name(self.name)

    @property
    def is_failure(self) -> bool:
        """True for assertion and visual assertion errors."""
        return self.kind in FAILURE_KINDS

    def details(self) -> dict[str, str] | None:
        """Status details in report form, when message and trace are known."""
        if self.message and self.stack:
            return {"message": self.message, "trace": self.stack}
        if self.message:
            return {"message": self.message}
        return None


@dataclass(frozen=True)
class ImageSize:
    width: int
    height: int

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


@dataclass
class ImageInfo:
    """A screenshot on disk."""
    path: Path
    size: ImageSize | None = None

    @property
    def has_content(self) -> bool:
        return self.size is not None and not self.size.is_empty


@dataclass
class DiffOptions:
    """
    Inputs for the image-diff routine.

    Attributes:
        reference: Path to the reference (expected) image
        current: Path to the current (actual) screenshot
        diff_color: Hex color used to paint differing pixels
        tolerance: Per-channel difference ignored as noise
        extra: Runner-specific options passed through to custom differs
    """
    reference: Path
    current: Path
    diff_color: str = "#ff00ff"
    tolerance: float = 2.3
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class AssertViewResult:
    """
    Outcome of one named screenshot comparison.

    A result without an error is a passed comparison. Results keep the
    order in which the comparisons ran inside the test body.
    """
    state_name: str
    ref_img: ImageInfo | None = None
    curr_img: ImageInfo | None = None
    diff_opts: DiffOptions | None = None
    error: TestError | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def is_image_diff(self) -> bool:
        return self.error is not None and self.error.kind == ErrorKind.IMAGE_DIFF
