"""
Visual Assertion Models

This package describes what a test runner reports about screenshot
comparisons performed inside a test.

Usage:
    from snapreport.assertions import AssertViewResult, ImageInfo, TestError

    result = AssertViewResult(
        state_name="header",
        ref_img=ImageInfo(Path("refs/header.png"), ImageSize(800, 60)),
        error=TestError(name="ImageDiffError", message="Images differ"),
    )

    if result.is_image_diff:
        print("pixel mismatch")
"""

from .models import (
    FAILURE_KINDS,
    AssertViewResult,
    DiffOptions,
    ErrorKind,
    ImageInfo,
    ImageSize,
    TestError,
)

__all__ = [
    "FAILURE_KINDS",
    "AssertViewResult",
    "DiffOptions",
    "ErrorKind",
    "ImageInfo",
    "ImageSize",
    "TestError",
]
