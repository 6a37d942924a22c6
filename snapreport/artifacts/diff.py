"""
Diff artifact construction for failed screenshot comparisons.

This module turns a failed visual assertion into report evidence: a
diff bitmap rendered by an ImageDiffer and a JSON manifest bundling the
expected, actual and diff images as PNG data URIs.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from PIL import Image, ImageChops, ImageColor

from ..assertions import AssertViewResult, DiffOptions, ImageSize
from .temp import TempDir, init_temp

logger = logging.getLogger(__name__)

DIFF_MEDIA_TYPE = "application/vnd.allure.image.diff"
DIFF_SUFFIX = ".imagediff"
PNG_SUFFIX = ".png"
PNG_DATA_URI_PREFIX = "data:image/png;base64,"


class DiffComputationFailed(RuntimeError):
    """The image-diff tooling could not produce a diff."""


# ─────────────────────────────────────────────────────────────────────────────
# Image Differ
# ─────────────────────────────────────────────────────────────────────────────

class ImageDiffer(ABC):
    """
    Abstract image-diff routine.

    Implementations render a bitmap highlighting the pixels that differ
    between a reference and a current screenshot.
    """

    @abstractmethod
    def compute_diff(self, options: DiffOptions) -> Any:
        """Render the diff bitmap for the given comparison options."""
        pass

    @abstractmethod
    def decode_size(self, bitmap: Any) -> ImageSize:
        pass

    @abstractmethod
    def save_bitmap(self, bitmap: Any, path: Path) -> None:
        pass


class PillowImageDiffer(ImageDiffer):
    """
    Pillow-backed differ.

    Paints every pixel whose strongest channel difference exceeds the
    tolerance with the diff color, on top of the current screenshot.
    Images of different sizes are compared on a canvas large enough for
    both. Pixels covered by only one of the images count as different;
    pixels covered by neither are left untouched.
    """

    def compute_diff(self, options: DiffOptions) -> Image.Image:
        reference = _open_rgb(options.reference)
        current = _open_rgb(options.current)

        width = max(reference.width, current.width)
        height = max(reference.height, current.height)
        uncovered = ImageChops.difference(
            _extent(reference, width, height),
            _extent(current, width, height),
        )
        reference = _pad(reference, width, height)
        current = _pad(current, width, height)

        red, green, blue = ImageChops.difference(reference, current).split()
        strongest = ImageChops.lighter(ImageChops.lighter(red, green), blue)
        tolerance = options.tolerance
        mask = strongest.point(lambda px: 255 if px > tolerance else 0)
        mask = ImageChops.lighter(mask, uncovered)

        overlay = Image.new("RGB", (width, height), ImageColor.getrgb(options.diff_color))
        return Image.composite(overlay, current, mask)

    def decode_size(self, bitmap: Image.Image) -> ImageSize:
        return ImageSize(width=bitmap.width, height=bitmap.height)

    def save_bitmap(self, bitmap: Image.Image, path: Path) -> None:
        bitmap.save(path, format="PNG")


def _open_rgb(path: Path) -> Image.Image:
    with Image.open(path) as img:
        return img.convert("RGB")


def _pad(img: Image.Image, width: int, height: int) -> Image.Image:
    if img.size == (width, height):
        return img
    canvas = Image.new("RGB", (width, height), (0, 0, 0))
    canvas.paste(img, (0, 0))
    return canvas


def _extent(img: Image.Image, width: int, height: int) -> Image.Image:
    """Mask of the canvas area covered by img (255 inside, 0 outside)."""
    mask = Image.new("L", (width, height), 0)
    mask.paste(255, (0, 0, img.width, img.height))
    return mask


# ─────────────────────────────────────────────────────────────────────────────
# Diff Manifest
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class DiffImage:
    path: Path
    size: ImageSize


@dataclass
class DiffManifest:
    """Three PNG data URIs consumed by the report UI's diff view."""
    expected: str
    actual: str
    diff: str

    def to_dict(self) -> dict[str, str]:
        return {"expected": self.expected, "actual": self.actual, "diff": self.diff}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_files(cls, expected: Path, actual: Path, diff: Path) -> DiffManifest:
        return cls(
            expected=png_data_uri(expected),
            actual=png_data_uri(actual),
            diff=png_data_uri(diff),
        )


def png_data_uri(path: str | Path) -> str:
    """Encode a PNG file as a base64 data URI."""
    encoded = base64.b64encode(Path(path).read_bytes()).decode("ascii")
    return PNG_DATA_URI_PREFIX + encoded


def decode_data_uri(uri: str) -> bytes:
    """Inverse of png_data_uri()."""
    if not uri.startswith(PNG_DATA_URI_PREFIX):
        raise ValueError(f"Not a PNG data URI: {uri[:32]!r}")
    return base64.b64decode(uri[len(PNG_DATA_URI_PREFIX):])


def read_diff_manifest(path: str | Path) -> DiffManifest:
    data = json.loads(Path(path).read_text())
    return DiffManifest(expected=data["expected"], actual=data["actual"], diff=data["diff"])


# ─────────────────────────────────────────────────────────────────────────────
# Builder
# ─────────────────────────────────────────────────────────────────────────────

class DiffArtifactBuilder:
    """
    Builds diff images and manifests for failed screenshot comparisons.

    Blocking work (image decoding, diff rendering, file IO) runs in worker
    threads so concurrent sub-tests do not block one another.

    Example:
        builder = DiffArtifactBuilder()
        manifest_path = await builder.build(assert_view_result)
        manifest = read_diff_manifest(manifest_path)
    """

    def __init__(self, differ: ImageDiffer | None = None, temp: TempDir | None = None):
        """
        Args:
            differ: Image-diff routine (Pillow-based by default)
            temp: Temp root for artifacts (the shared process root by default)
        """
        self.differ = differ or PillowImageDiffer()
        self._temp = temp

    @property
    def temp(self) -> TempDir:
        if self._temp is None:
            self._temp = init_temp()
        return self._temp

    async def build(self, result: AssertViewResult) -> Path:
        """
        Build the diff manifest for a failed comparison.

        Returns:
            Path of the written .imagediff manifest

        Raises:
            DiffComputationFailed: If the diff or the manifest could not be built
        """
        if result.diff_opts is None:
            raise DiffComputationFailed(f"No diff options for state '{result.state_name}'")

        diff_image = await self.build_diff_image(result.diff_opts)
        current = result.curr_img.path if result.curr_img else result.diff_opts.current
        reference = result.ref_img.path if result.ref_img else result.diff_opts.reference
        try:
            return await self.build_diff_manifest(current, reference, diff_image.path)
        except OSError as e:
            raise DiffComputationFailed(f"Failed to write diff manifest: {e}") from e

    async def build_diff_image(self, options: DiffOptions) -> DiffImage:
        """
        Render and save the diff bitmap.

        Raises:
            DiffComputationFailed: If the differ raises for any reason
        """
        return await asyncio.to_thread(self._build_diff_image, options)

    async def build_diff_manifest(
        self,
        current: Path,
        reference: Path,
        diff: Path,
    ) -> Path:
        """
        Write the {expected, actual, diff} manifest to a temp path.

        Args:
            current: The current (actual) screenshot
            reference: The reference (expected) image
            diff: The rendered diff image

        Returns:
            Path of the manifest file
        """
        return await asyncio.to_thread(self._build_diff_manifest, current, reference, diff)

    def _build_diff_image(self, options: DiffOptions) -> DiffImage:
        path = self.temp.path(suffix=PNG_SUFFIX)
        try:
            bitmap = self.differ.compute_diff(options)
            size = self.differ.decode_size(bitmap)
            self.differ.save_bitmap(bitmap, path)
        except Exception as e:
            raise DiffComputationFailed(
                f"Failed to compute diff for {options.current}: {type(e).__name__}: {e}"
            ) from e
        logger.debug(f"Diff image {size.width}x{size.height} saved to {path}")
        return DiffImage(path=path, size=size)

    def _build_diff_manifest(self, current: Path, reference: Path, diff: Path) -> Path:
        manifest = DiffManifest.from_files(expected=reference, actual=current, diff=diff)
        path = self.temp.path(suffix=DIFF_SUFFIX)
        path.write_text(manifest.to_json())
        return path
