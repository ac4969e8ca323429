"""Gate for user-initiated status changes (board drags, form edits).

check_transition is the decision table; evaluate_transition feeds it from a
task and the clock. Rejections are ordinary outcomes carrying a message for
the user, not exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, tzinfo
from enum import Enum

import status_policy
import timezones
from config import get_settings
from models import TaskStatus

CLOSED_TO_OVERDUE = "Completed or archived tasks cannot be moved to Overdue. Reopen the task first."
NOT_OVERDUE_YET = "This task is not overdue yet. Update the due date or wait until it passes."
REOPEN_PAST_DUE = "Update the due date before reopening to Pending or In Progress."
LEAVE_OVERDUE_PAST_DUE = "Update the due date before returning to Pending or In Progress."


class Level(str, Enum):
    """How loudly a message is shown to the user."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class GuardDecision:
    accepted: bool
    noop: bool = False
    reason: str | None = None
    level: Level | None = None

    @classmethod
    def accept(cls) -> "GuardDecision":
        return cls(accepted=True)

    @classmethod
    def unchanged(cls) -> "GuardDecision":
        return cls(accepted=True, noop=True)

    @classmethod
    def reject(cls, reason: str, level: Level = Level.ERROR) -> "GuardDecision":
        return cls(accepted=False, reason=reason, level=level)


def check_transition(current: TaskStatus, target: TaskStatus, due_passed: bool) -> GuardDecision:
    """Decide a move from *current* to *target*. First matching rule wins."""
    if target == current:
        return GuardDecision.unchanged()
    if target == TaskStatus.OVERDUE:
        if status_policy.is_closed(current):
            return GuardDecision.reject(CLOSED_TO_OVERDUE)
        if status_policy.is_active(current) and not due_passed:
            return GuardDecision.reject(NOT_OVERDUE_YET)
    if status_policy.is_closed(current) and status_policy.is_active(target) and due_passed:
        return GuardDecision.reject(REOPEN_PAST_DUE, level=Level.WARNING)
    if current == TaskStatus.OVERDUE and status_policy.is_active(target) and due_passed:
        return GuardDecision.reject(LEAVE_OVERDUE_PAST_DUE, level=Level.WARNING)
    return GuardDecision.accept()


def evaluate_transition(
    task: status_policy.HasDueDate,
    target: TaskStatus,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> GuardDecision:
    """Run check_transition for *task*, judging its due date against *now*."""
    tz = tz if tz is not None else get_settings().tz
    if now is None:
        now = timezones.now(tz)
    due_passed = status_policy.has_due_passed(task, now, tz)
    return check_transition(task.status, target, due_passed)
