"""
Report Artifacts

Transient files produced while reporting screenshot comparisons:
    - temp: one shared, lazily created temp root per process
    - diff: diff images and {expected, actual, diff} manifests

Usage:
    from snapreport.artifacts import DiffArtifactBuilder, read_diff_manifest

    builder = DiffArtifactBuilder()
    manifest_path = await builder.build(assert_view_result)
"""

from .diff import (
    DIFF_MEDIA_TYPE,
    DIFF_SUFFIX,
    PNG_SUFFIX,
    DiffArtifactBuilder,
    DiffComputationFailed,
    DiffImage,
    DiffManifest,
    ImageDiffer,
    PillowImageDiffer,
    decode_data_uri,
    png_data_uri,
    read_diff_manifest,
)
from .temp import TempDir, attach_temp, current_temp, init_temp

__all__ = [
    # Diff
    "DIFF_MEDIA_TYPE",
    "DIFF_SUFFIX",
    "PNG_SUFFIX",
    "DiffArtifactBuilder",
    "DiffComputationFailed",
    "DiffImage",
    "DiffManifest",
    "ImageDiffer",
    "PillowImageDiffer",
    "decode_data_uri",
    "png_data_uri",
    "read_diff_manifest",
    # Temp
    "TempDir",
    "attach_temp",
    "current_temp",
    "init_temp",
]
