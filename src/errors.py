"""Error taxonomy.

Server side: the task store raises TaskValidationError / DuplicateCodeError /
TaskNotFoundError; api.py maps them to 400 / 400 / 404.

Client side: every TaskClient failure is an ApiError tagged with an
ApiErrorKind, so callers branch on ``err.kind`` instead of poking at response
shapes.
"""

from __future__ import annotations

from enum import Enum

GENERIC_FAILURE_MESSAGE = "Sorry, something went wrong on our end."


class TaskError(Exception):
    """Base for task store errors. ``message`` is safe to show to users."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TaskValidationError(TaskError):
    """Malformed field or identifier, rejected before any write."""


class DuplicateCodeError(TaskValidationError):
    def __init__(self, code: str):
        super().__init__("Task code already exists")
        self.code = code


class TaskNotFoundError(TaskError):
    def __init__(self, task_id: int):
        super().__init__("Task not found")
        self.task_id = task_id


class ApiErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    TRANSPORT = "transport"
    UNKNOWN = "unknown"


class ApiError(Exception):
    """A failed call to the tasks API.

    ``message`` is what the UI shows; ``detail`` keeps the underlying cause for
    logs only.
    """

    def __init__(
        self,
        kind: ApiErrorKind,
        message: str,
        detail: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.detail = detail
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"ApiError(kind={self.kind.value!r}, message={self.message!r}, status_code={self.status_code!r})"
