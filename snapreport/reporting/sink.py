"""
Report storage sinks.

A sink receives finished tests and groups and owns a content store for
attachments. MemorySink keeps everything in memory; ResultsDirSink
writes the Allure results directory layout.
"""

from __future__ import annotations

import json
import logging
import mimetypes
import shutil
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from ..artifacts import DIFF_MEDIA_TYPE, DIFF_SUFFIX
from .models import ReportGroup, Status, TestResult

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/png": ".png",
    "application/json": ".json",
    "text/plain": ".txt",
    DIFF_MEDIA_TYPE: DIFF_SUFFIX,
}


def extension_for(media_type: str, path: Path | None = None) -> str:
    if media_type in _EXTENSIONS:
        return _EXTENSIONS[media_type]
    guessed = mimetypes.guess_extension(media_type)
    if guessed:
        return guessed
    return path.suffix if path is not None else ""


class ReportSink(ABC):
    """
    Abstract base class for report sinks.

    Keeps a record of every test and group written, in write order.
    Writes may come from concurrent tasks.
    """

    def __init__(self) -> None:
        self.tests: list[TestResult] = []
        self.groups: list[ReportGroup] = []
        self._lock = threading.Lock()

    def start_group(self, name: str) -> ReportGroup:
        """Open a top-level group."""
        return ReportGroup(name=name, sink=self)

    def write_test(self, test: TestResult) -> None:
        with self._lock:
            self.tests.append(test)
        self.persist_test(test)

    def write_group(self, group: ReportGroup) -> None:
        with self._lock:
            self.groups.append(group)
        self.persist_group(group)

    def count_by_status(self) -> dict[Status, int]:
        counts = {status: 0 for status in Status}
        with self._lock:
            for test in self.tests:
                if test.status is not None:
                    counts[test.status] += 1
        return counts

    @abstractmethod
    def write_attachment_from_path(self, path: str | Path, media_type: str) -> str:
        """
        Copy a file into the content store.

        Returns:
            Content reference to pass to TestResult.add_attachment()
        """
        pass

    @abstractmethod
    def persist_test(self, test: TestResult) -> None:
        pass

    @abstractmethod
    def persist_group(self, group: ReportGroup) -> None:
        pass


class MemorySink(ReportSink):
    """Sink holding attachment content in memory."""

    def __init__(self) -> None:
        super().__init__()
        self.attachments: dict[str, bytes] = {}

    def write_attachment_from_path(self, path: str | Path, media_type: str) -> str:
        path = Path(path)
        source = f"{uuid.uuid4()}-attachment{extension_for(media_type, path)}"
        content = path.read_bytes()
        with self._lock:
            self.attachments[source] = content
        return source

    def persist_test(self, test: TestResult) -> None:
        pass

    def persist_group(self, group: ReportGroup) -> None:
        pass


class ResultsDirSink(ReportSink):
    """
    Sink writing Allure-style result files.

    Layout:
        <uuid>-result.json        one per finished test
        <uuid>-container.json     one per closed group
        <uuid>-attachment.<ext>   attachment content
        environment.properties    from the 'environment' option
        categories.json           from the 'categories' option
    """

    def __init__(self, results_dir: str | Path = "allure-results", **options: Any):
        """
        Args:
            results_dir: Directory receiving the result files
            **options: Passthrough options ('environment', 'categories')
        """
        super().__init__()
        self.results_dir = Path(results_dir)
        self.options = options
        self.results_dir.mkdir(parents=True, exist_ok=True)
        self._write_run_files()

    def write_attachment_from_path(self, path: str | Path, media_type: str) -> str:
        path = Path(path)
        source = f"{uuid.uuid4()}-attachment{extension_for(media_type, path)}"
        shutil.copyfile(path, self.results_dir / source)
        return source

    def persist_test(self, test: TestResult) -> None:
        target = self.results_dir / f"{test.uuid}-result.json"
        target.write_text(test.to_json())
        logger.debug(f"Wrote {target.name} ({test.status.value if test.status else 'unknown'})")

    def persist_group(self, group: ReportGroup) -> None:
        target = self.results_dir / f"{group.uuid}-container.json"
        target.write_text(json.dumps(group.to_dict(), indent=2))

    def _write_run_files(self) -> None:
        environment = self.options.get("environment")
        if isinstance(environment, dict) and environment:
            lines = [f"{key}={value}" for key, value in environment.items()]
            (self.results_dir / "environment.properties").write_text("\n".join(lines) + "\n")

        categories = self.options.get("categories")
        if isinstance(categories, list) and categories:
            (self.results_dir / "categories.json").write_text(json.dumps(categories, indent=2))

        unknown = set(self.options) - {"environment", "categories"}
        if unknown:
            logger.debug(f"Ignoring sink options: {', '.join(sorted(unknown))}")
