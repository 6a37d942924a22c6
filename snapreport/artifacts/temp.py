"""
Process-wide temporary directory for transient report artifacts.

Diff images and diff manifests are written here before the report sink
copies them into its own store. One root directory is shared by the
whole process; it is created lazily and removed at interpreter exit.
"""

from __future__ import annotations

import atexit
import logging
import shutil
import tempfile
import threading
import uuid
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".screenshots.tmp."


class TempDir:
    """
    Handle to a temporary root directory.

    Use init_temp() / attach_temp() to get the shared instance; construct
    directly only when an isolated root is wanted.
    """

    def __init__(self, dir: str | Path | None = None, attach: bool = False):
        """
        Create or adopt a temp root.

        Args:
            dir: Parent directory for a fresh root, or the root itself when attaching
            attach: Adopt an existing directory instead of creating one
        """
        if attach:
            if dir is None:
                raise ValueError("attach requires a directory")
            self._dir = Path(dir)
            self._owned = False
        else:
            parent = str(Path(dir).resolve()) if dir else None
            self._dir = Path(tempfile.mkdtemp(prefix=TEMP_PREFIX, dir=parent))
            self._owned = True
            atexit.register(shutil.rmtree, self._dir, True)
            logger.debug(f"Created temp root: {self._dir}")

    @property
    def dir(self) -> Path:
        return self._dir

    @property
    def owned(self) -> bool:
        """True when this process created the root and will clean it up."""
        return self._owned

    def path(self, suffix: str = "", prefix: str = "") -> Path:
        """
        Allocate a unique file path inside the root.

        The file is not created. Names embed a random UUID, so concurrent
        callers never receive the same path.
        """
        return self._dir / f"{prefix}{uuid.uuid4().hex}{suffix}"

    def serialize(self) -> dict[str, Any]:
        return {"dir": str(self._dir)}


_instance: TempDir | None = None
_lock = threading.Lock()


def init_temp(dir: str | Path | None = None) -> TempDir:
    """
    Return the shared temp root, creating it on first use.

    Args:
        dir: Optional parent directory for the root (only used on first call)
    """
    global _instance
    with _lock:
        if _instance is None:
            _instance = TempDir(dir)
        return _instance


def attach_temp(serialized: dict[str, Any]) -> TempDir:
    """
    Adopt a root serialized by another process.

    No-op if this process already has a root.
    """
    global _instance
    with _lock:
        if _instance is None:
            _instance = TempDir(serialized["dir"], attach=True)
            logger.debug(f"Attached temp root: {_instance.dir}")
        return _instance


def current_temp() -> TempDir | None:
    return _instance
