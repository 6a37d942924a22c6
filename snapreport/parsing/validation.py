"""
Validation for reporter configs and event logs.

This module checks raw parsed YAML/JSON against the expected shapes and
reports errors with helpful messages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..events import EventType


# ─────────────────────────────────────────────────────────────────────────────
# Validation Result Types
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class ValidationError:
    """Represents a single validation error with context."""
    path: str  # e.g., "line 3.test.title_path[1]"
    message: str
    value: Any = None
    suggestion: str | None = None

    def __str__(self) -> str:
        parts = [f"❌ {self.path}: {self.message}"]
        if self.value is not None:
            parts.append(f"   Got: {repr(self.value)}")
        if self.suggestion:
            parts.append(f"   💡 {self.suggestion}")
        return "\n".join(parts)


@dataclass
class ValidationResult:
    """Result of validation."""
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(
        self,
        path: str,
        message: str,
        value: Any = None,
        suggestion: str | None = None
    ) -> None:
        self.errors.append(ValidationError(path, message, value, suggestion))

    def __str__(self) -> str:
        if self.is_valid:
            return "✅ Validation passed"
        lines = [f"Validation failed with {len(self.errors)} error(s):\n"]
        lines.extend(str(e) for e in self.errors)
        return "\n".join(lines)


# ─────────────────────────────────────────────────────────────────────────────
# Config Validator
# ─────────────────────────────────────────────────────────────────────────────

class ConfigValidator:
    """Validates a raw reporter config mapping."""

    KNOWN_KEYS = {"enabled", "target_dir", "reporter_options", "temp_dir", "attach_images"}

    def __init__(self, data: dict[str, Any]):
        self.data = data
        self.result = ValidationResult()

    def validate(self) -> ValidationResult:
        unknown = set(self.data) - self.KNOWN_KEYS
        for key in sorted(unknown):
            self.result.add_error(
                key,
                f"Unknown field '{key}'",
                suggestion=f"Valid fields are: {', '.join(sorted(self.KNOWN_KEYS))}"
            )

        for key in ("enabled", "attach_images"):
            if key in self.data and not isinstance(self.data[key], bool):
                self.result.add_error(key, "Must be a boolean", value=self.data[key])

        for key in ("target_dir", "temp_dir"):
            value = self.data.get(key)
            if value is not None and not isinstance(value, str):
                self.result.add_error(key, "Must be a string", value=value)

        options = self.data.get("reporter_options")
        if options is not None and not isinstance(options, dict):
            self.result.add_error(
                "reporter_options",
                "Must be a mapping",
                value=options,
                suggestion="Use 'reporter_options: {environment: {...}}'"
            )

        return self.result


# ─────────────────────────────────────────────────────────────────────────────
# Event Validator
# ─────────────────────────────────────────────────────────────────────────────

class EventValidator:
    """Validates raw event objects from an event log."""

    VALID_EVENTS = {t.value for t in EventType}
    TEST_EVENTS = {
        EventType.TEST_BEGIN.value,
        EventType.TEST_PASS.value,
        EventType.TEST_FAIL.value,
        EventType.TEST_PENDING.value,
        EventType.TEST_RETRY.value,
    }

    def __init__(self, result: ValidationResult | None = None):
        self.result = result or ValidationResult()

    def validate(self, data: Any, path: str) -> bool:
        """
        Validate one event object.

        Returns:
            True if the event has no errors
        """
        before = len(self.result.errors)

        if not isinstance(data, dict):
            self.result.add_error(path, "Event must be an object", value=type(data).__name__)
            return False

        event = data.get("event")
        if event not in self.VALID_EVENTS:
            self.result.add_error(
                f"{path}.event",
                "Unknown event type",
                value=event,
                suggestion=f"Valid events are: {', '.join(sorted(self.VALID_EVENTS))}"
            )
            return False

        if event == EventType.SUITE_BEGIN.value:
            name = data.get("name")
            if name is not None and not isinstance(name, str):
                self.result.add_error(f"{path}.name", "Must be a string", value=name)

        if event in self.TEST_EVENTS:
            self._validate_test(data.get("test"), f"{path}.test")

        if "error" in data and data["error"] is not None:
            self._validate_error(data["error"], f"{path}.error")

        return len(self.result.errors) == before

    def _validate_test(self, test: Any, path: str) -> None:
        if not isinstance(test, dict):
            self.result.add_error(path, "Required test object is missing", value=test)
            return

        if not isinstance(test.get("title"), str):
            self.result.add_error(f"{path}.title", "Must be a string", value=test.get("title"))

        title_path = test.get("title_path", [])
        if not isinstance(title_path, list) or not all(isinstance(t, str) for t in title_path):
            self.result.add_error(
                f"{path}.title_path",
                "Must be a list of strings",
                value=title_path,
                suggestion="Use the enclosing suite titles, outermost first"
            )

        retries_left = test.get("retries_left", 0)
        if not isinstance(retries_left, int) or isinstance(retries_left, bool) or retries_left < 0:
            self.result.add_error(f"{path}.retries_left", "Must be a non-negative integer", value=retries_left)

        browser_id = test.get("browser_id")
        if browser_id is not None and not isinstance(browser_id, str):
            self.result.add_error(f"{path}.browser_id", "Must be a string", value=browser_id)

        results = test.get("assert_view_results", [])
        if not isinstance(results, list):
            self.result.add_error(f"{path}.assert_view_results", "Must be a list", value=results)
            return
        for i, item in enumerate(results):
            self._validate_assert_view_result(item, f"{path}.assert_view_results[{i}]")

    def _validate_assert_view_result(self, item: Any, path: str) -> None:
        if not isinstance(item, dict):
            self.result.add_error(path, "Must be an object", value=item)
            return

        if not isinstance(item.get("state_name"), str) or not item.get("state_name"):
            self.result.add_error(f"{path}.state_name", "Must be a non-empty string", value=item.get("state_name"))

        for key in ("ref_img", "curr_img"):
            if item.get(key) is not None:
                self._validate_image(item[key], f"{path}.{key}")

        diff_opts = item.get("diff_opts")
        if diff_opts is not None and not isinstance(diff_opts, dict):
            self.result.add_error(f"{path}.diff_opts", "Must be an object", value=diff_opts)
        elif isinstance(diff_opts, dict):
            tolerance = diff_opts.get("tolerance")
            if tolerance is not None and not isinstance(tolerance, (int, float)):
                self.result.add_error(f"{path}.diff_opts.tolerance", "Must be a number", value=tolerance)

        if item.get("error") is not None:
            self._validate_error(item["error"], f"{path}.error")

    def _validate_image(self, image: Any, path: str) -> None:
        if not isinstance(image, dict):
            self.result.add_error(path, "Must be an object", value=image)
            return
        if not isinstance(image.get("path"), str):
            self.result.add_error(f"{path}.path", "Must be a string", value=image.get("path"))
        size = image.get("size")
        if size is None:
            return
        if (
            not isinstance(size, dict)
            or not isinstance(size.get("width"), int)
            or not isinstance(size.get("height"), int)
        ):
            self.result.add_error(
                f"{path}.size",
                "Must be an object with integer width and height",
                value=size,
            )

    def _validate_error(self, error: Any, path: str) -> None:
        if not isinstance(error, dict):
            self.result.add_error(path, "Must be an object", value=error)
            return
        for key in ("name", "message", "stack"):
            value = error.get(key)
            if value is not None and not isinstance(value, str):
                self.result.add_error(f"{path}.{key}", "Must be a string", value=value)
