"""
Report data models for test runs.

This module defines the report tree: groups (suites) owning test
results, each test carrying status, stage, labels, steps and
attachments.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .sink import ReportSink


class InvalidStateError(RuntimeError):
    """A report operation was invoked out of order."""


class Status(str, Enum):
    """Terminal status of a test."""
    PASSED = "passed"
    FAILED = "failed"
    BROKEN = "broken"
    SKIPPED = "skipped"


FAILURE_STATUSES = frozenset({Status.FAILED, Status.BROKEN})


class Stage(str, Enum):
    """Execution stage of a test. Only moves forward."""
    RUNNING = "running"
    FINISHED = "finished"


class LabelName(str, Enum):
    PARENT_SUITE = "parentSuite"
    SUITE = "suite"
    SUB_SUITE = "subSuite"
    TEST_TYPE = "testType"


SCREENSHOT_DIFF_TEST_TYPE = "screenshotDiff"


def compute_history_id(name: str) -> str:
    """
    Compute the history id used to correlate a test across runs.

    Args:
        name: Fully-qualified test name (or screenshot state name)

    Returns:
        MD5 hex digest of the name
    """
    return hashlib.md5(name.encode("utf-8")).hexdigest()


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Label:
    name: str
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "value": self.value}


@dataclass(frozen=True)
class Attachment:
    """A file in the sink's content store linked to a test."""
    name: str
    type: str
    source: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "type": self.type, "source": self.source}


@dataclass
class StepResult:
    """A named step inside a running test."""
    name: str
    status: Status | None = None
    stage: Stage = Stage.RUNNING
    start: int = field(default_factory=_now_ms)
    stop: int | None = None

    def end(self, status: Status) -> None:
        self.status = status
        self.stage = Stage.FINISHED
        self.stop = _now_ms()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value if self.status else None,
            "stage": self.stage.value,
            "start": self.start,
            "stop": self.stop,
        }


@dataclass
class TestResult:
    """
    A reportable test node.

    Created through ReportGroup.start_test(); finished exactly once via
    end_test(), which hands it to the sink.
    """
    __test__ = False

    name: str
    uuid: str = field(default_factory=lambda: str(uuid.uuid4()))
    full_name: str = ""
    history_id: str = ""
    status: Status | None = None
    status_details: dict[str, str] | None = None
    stage: Stage = Stage.RUNNING
    labels: list[Label] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)
    steps: list[StepResult] = field(default_factory=list)
    start: int = field(default_factory=_now_ms)
    stop: int | None = None

    group: ReportGroup | None = field(default=None, repr=False, compare=False)

    @property
    def finished(self) -> bool:
        return self.stage == Stage.FINISHED

    @property
    def has_failure(self) -> bool:
        return self.status in FAILURE_STATUSES

    def add_label(self, name: str | LabelName, value: str) -> None:
        key = name.value if isinstance(name, LabelName) else name
        self.labels.append(Label(key, value))

    def get_label(self, name: str | LabelName) -> str | None:
        key = name.value if isinstance(name, LabelName) else name
        for label in self.labels:
            if label.name == key:
                return label.value
        return None

    def add_attachment(self, name: str, media_type: str, source: str) -> Attachment:
        attachment = Attachment(name=name, type=media_type, source=source)
        self.attachments.append(attachment)
        return attachment

    def end_test(self) -> None:
        """Finish the test and hand it to the sink."""
        if self.stop is not None:
            raise InvalidStateError(f"Test '{self.name}' already ended")
        self.stage = Stage.FINISHED
        self.stop = _now_ms()
        if self.group is not None:
            self.group.sink.write_test(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "uuid": self.uuid,
            "historyId": self.history_id,
            "name": self.name,
            "fullName": self.full_name,
            "status": self.status.value if self.status else None,
            "statusDetails": self.status_details,
            "stage": self.stage.value,
            "labels": [label.to_dict() for label in self.labels],
            "attachments": [a.to_dict() for a in self.attachments],
            "steps": [step.to_dict() for step in self.steps],
            "start": self.start,
            "stop": self.stop,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)


@dataclass
class ReportGroup:
    """
    A suite in the report tree.

    Child lists are guarded by a lock so concurrent sub-tests can be
    started under the same group.
    """
    name: str
    sink: ReportSink = field(repr=False, compare=False)
    parent: ReportGroup | None = field(default=None, repr=False, compare=False)
    uuid: str = field(default_factory=lambda: str(uuid.uuid4()))
    tests: list[TestResult] = field(default_factory=list)
    groups: list[ReportGroup] = field(default_factory=list)
    start: int = field(default_factory=_now_ms)
    stop: int | None = None

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def closed(self) -> bool:
        return self.stop is not None

    def start_group(self, name: str) -> ReportGroup:
        child = ReportGroup(name=name, sink=self.sink, parent=self)
        with self._lock:
            self.groups.append(child)
        return child

    def start_test(self, name: str) -> TestResult:
        test = TestResult(name=name, group=self)
        with self._lock:
            self.tests.append(test)
        return test

    def remove_test(self, test: TestResult) -> None:
        with self._lock:
            self.tests = [t for t in self.tests if t.uuid != test.uuid]

    def end_group(self) -> None:
        if self.closed:
            raise InvalidStateError(f"Group '{self.name}' already ended")
        self.stop = _now_ms()
        self.sink.write_group(self)

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            children = [t.uuid for t in self.tests] + [g.uuid for g in self.groups]
        return {
            "uuid": self.uuid,
            "name": self.name,
            "children": children,
            "start": self.start,
            "stop": self.stop,
        }
