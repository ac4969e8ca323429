"""Rules for when a task enters or leaves Overdue.

Pure functions over (status, due_date, now). Anything with ``status`` and
``due_date`` attributes works: ORM rows, API models, test doubles. Both the
due date and *now* are normalized into the reference zone before comparing.
"""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Protocol

import timezones
from config import get_settings
from models import TaskStatus

ACTIVE_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS})
CLOSED_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.ARCHIVED})


class HasDueDate(Protocol):
    status: TaskStatus
    due_date: datetime | str | None


def _zone(tz: tzinfo | None) -> tzinfo:
    return tz if tz is not None else get_settings().tz


def is_active(status: TaskStatus) -> bool:
    return status in ACTIVE_STATUSES


def is_closed(status: TaskStatus) -> bool:
    return status in CLOSED_STATUSES


def _due_instant(task: HasDueDate, tz: tzinfo) -> datetime | None:
    return timezones.parse_or_none(task.due_date, tz)


def has_due_passed(task: HasDueDate, now: datetime, tz: tzinfo | None = None) -> bool:
    """True when the due date is present, parses, and lies strictly before *now*."""
    tz = _zone(tz)
    due = _due_instant(task, tz)
    if due is None:
        return False
    return due < timezones.normalize_timestamp(now, tz)


def should_become_overdue(task: HasDueDate, now: datetime, tz: tzinfo | None = None) -> bool:
    return is_active(task.status) and has_due_passed(task, now, tz)


def should_leave_overdue(task: HasDueDate, now: datetime, tz: tzinfo | None = None) -> bool:
    """True for an Overdue task whose due date has been moved to *now* or later."""
    if task.status != TaskStatus.OVERDUE:
        return False
    tz = _zone(tz)
    due = _due_instant(task, tz)
    if due is None:
        return False
    return due >= timezones.normalize_timestamp(now, tz)


def target_status(task: HasDueDate, now: datetime, tz: tzinfo | None = None) -> TaskStatus | None:
    """Status a reconciliation pass would set, or None when the task is fine as it is."""
    if should_become_overdue(task, now, tz):
        return TaskStatus.OVERDUE
    if should_leave_overdue(task, now, tz):
        return TaskStatus.PENDING
    return None
