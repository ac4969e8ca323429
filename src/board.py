"""Kanban board state: the in-memory task list for one view.

The board loads tasks through a TaskClient, runs the reconciliation pass on
them, groups them into status columns, and handles moves between columns and
form submissions. Moves are guarded by transition_guard and applied
optimistically: the list changes first and is restored from a snapshot if the
write fails.

Outcomes come back as Feedback. Guard rejections (REJECTED) and write failures
(FAILED) are different kinds so the UI can show them differently.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import tzinfo
from enum import Enum
from typing import Any, Iterable

import timezones
import transition_guard
from config import get_settings
from errors import ApiError, ApiErrorKind
from transition_guard import Level
from models import STATUS_ORDER, TaskStatus
from reconciliation import reconcile_tasks
from task_client import TaskClient
from visualization.api_schemas import TaskRead

logger = logging.getLogger(__name__)


class FeedbackKind(str, Enum):
    SUCCESS = "success"
    NOOP = "noop"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class Feedback:
    kind: FeedbackKind
    message: str = ""
    level: Level = Level.INFO
    retryable: bool = False
    task: TaskRead | None = None

    @property
    def ok(self) -> bool:
        return self.kind in (FeedbackKind.SUCCESS, FeedbackKind.NOOP)


def group_by_status(tasks: Iterable[Any], selected: Iterable[TaskStatus] | None = None) -> dict[TaskStatus, list]:
    """Status -> tasks in board column order, restricted to *selected* (all when None)."""
    tasks = list(tasks)
    wanted = set(STATUS_ORDER if selected is None else selected)
    return {
        status: [t for t in tasks if t.status == status]
        for status in STATUS_ORDER
        if status in wanted
    }


def status_percentages(tasks: Iterable[Any]) -> dict[TaskStatus, float]:
    """Share of all tasks per status, 0 for every status on an empty board."""
    tasks = list(tasks)
    total = len(tasks)
    if not total:
        return {status: 0.0 for status in STATUS_ORDER}
    return {
        status: sum(1 for t in tasks if t.status == status) / total * 100
        for status in STATUS_ORDER
    }


@dataclass
class StatusFilter:
    """Which board columns are visible."""

    selected: list[TaskStatus] = field(default_factory=lambda: list(STATUS_ORDER))

    @property
    def all_selected(self) -> bool:
        return len(self.selected) == len(STATUS_ORDER)

    def toggle(self, status: TaskStatus) -> None:
        if status in self.selected:
            self.selected = [s for s in self.selected if s != status]
        else:
            self.selected = [s for s in STATUS_ORDER if s in self.selected or s == status]

    def toggle_all(self) -> None:
        self.selected = [] if self.all_selected else list(STATUS_ORDER)


@dataclass
class TaskForm:
    """Raw create/edit form values. ``due_date`` is datetime-local text in the reference zone."""

    title: str
    code: str
    due_date: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING

    @classmethod
    def from_task(cls, task: TaskRead, tz: tzinfo) -> "TaskForm":
        return cls(
            title=task.title,
            code=task.code,
            due_date=timezones.to_local_input(task.due_date, tz),
            description=task.description or "",
            status=task.status,
        )

    def payload(self, tz: tzinfo) -> dict[str, Any]:
        return {
            "title": self.title.strip(),
            "code": self.code.strip().upper(),
            "due_date": timezones.from_local_input(self.due_date, tz),
            "description": self.description.strip() or None,
            "status": self.status,
        }


class OptimisticChange:
    """Apply a speculative edit to one task in the board, with rollback.

    The whole list is snapshotted before the edit so rollback restores exactly
    what was shown, however many fields the edit touched.
    """

    def __init__(self, board: "TaskBoard", task_id: int, changes: dict[str, Any]):
        self.board = board
        self.task_id = task_id
        self.changes = changes
        self._snapshot: list[TaskRead] | None = None

    def apply(self) -> None:
        self._snapshot = list(self.board.tasks)
        self.board.tasks = [
            t.model_copy(update=self.changes) if t.id == self.task_id else t for t in self.board.tasks
        ]

    def commit(self, server_task: TaskRead) -> None:
        self.board.tasks = [server_task if t.id == self.task_id else t for t in self.board.tasks]
        self._snapshot = None

    def rollback(self) -> None:
        if self._snapshot is not None:
            self.board.tasks = self._snapshot
            self._snapshot = None


class TaskBoard:
    def __init__(self, client: TaskClient, tz: tzinfo | None = None):
        self.client = client
        self.tz = tz if tz is not None else get_settings().tz
        self.tasks: list[TaskRead] = []
        self.load_error: str | None = None
        self.filter = StatusFilter()
        self._closed = False

    def close(self) -> None:
        """Detach the view; writes that settle afterwards leave the list alone."""
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def find(self, task_id: int) -> TaskRead | None:
        return next((t for t in self.tasks if t.id == task_id), None)

    async def refresh(self) -> None:
        """Fetch and reconcile. On failure keep the old list and set load_error."""
        try:
            fetched = await self.client.list_tasks()
        except ApiError as exc:
            logger.warning("Loading tasks failed (%s): %s", exc.kind.value, exc.detail or exc.message)
            if not self._closed:
                self.load_error = exc.message
            return
        tasks = await reconcile_tasks(fetched, self.client, tz=self.tz)
        if self._closed:
            return
        self.tasks = tasks
        self.load_error = None

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def columns(self, selected: Iterable[TaskStatus] | None = None) -> dict[TaskStatus, list[TaskRead]]:
        """Status -> tasks, in board column order, for the selected statuses."""
        return group_by_status(self.tasks, self.filter.selected if selected is None else selected)

    def status_percentages(self) -> dict[TaskStatus, float]:
        return status_percentages(self.tasks)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def move_task(self, task_id: int, target: TaskStatus) -> Feedback:
        """Drag a task to the *target* column."""
        task = self.find(task_id)
        if task is None:
            return Feedback(FeedbackKind.FAILED, "Task not found", level=Level.ERROR)
        decision = transition_guard.evaluate_transition(task, target, tz=self.tz)
        if decision.noop:
            return Feedback(FeedbackKind.NOOP, task=task)
        if not decision.accepted:
            return Feedback(FeedbackKind.REJECTED, decision.reason or "", level=decision.level or Level.WARNING)

        change = OptimisticChange(self, task_id, {"status": target})
        change.apply()
        try:
            updated = await self.client.update_task(task_id, {"status": target})
        except ApiError as exc:
            logger.warning("Moving task id=%s to %s failed: %s", task_id, target.value, exc.detail or exc.message)
            if not self._closed:
                change.rollback()
            return Feedback(FeedbackKind.FAILED, exc.message, level=Level.ERROR, retryable=True)
        if not self._closed:
            change.commit(updated)
        return Feedback(
            FeedbackKind.SUCCESS,
            f'Task ID={task_id} "{updated.title}" status updated to {updated.status.value}',
            level=Level.SUCCESS,
            task=updated,
        )

    async def submit_form(self, form: TaskForm, editing: TaskRead | None = None) -> Feedback:
        """Create a task, or update *editing* from the form values."""
        try:
            payload = form.payload(self.tz)
        except ValueError:
            return Feedback(FeedbackKind.FAILED, "Invalid due date", level=Level.ERROR)

        if editing is not None and payload["status"] != editing.status:
            # Judge the move against the due date the task will have after this edit.
            after_edit = editing.model_copy(update={"due_date": payload["due_date"]})
            decision = transition_guard.evaluate_transition(after_edit, payload["status"], tz=self.tz)
            if not decision.accepted:
                return Feedback(FeedbackKind.REJECTED, decision.reason or "", level=decision.level or Level.WARNING)

        verb = "update" if editing is not None else "create"
        try:
            if editing is not None:
                saved = await self.client.update_task(editing.id, payload)
            else:
                saved = await self.client.create_task(payload)
        except ApiError as exc:
            logger.info("Form %s failed (%s): %s", verb, exc.kind.value, exc.detail or exc.message)
            return Feedback(
                FeedbackKind.FAILED,
                exc.message or f"Failed to {verb} task. Please try again.",
                level=Level.ERROR,
                retryable=exc.kind != ApiErrorKind.VALIDATION,
            )

        if not self._closed:
            if editing is not None:
                self.tasks = [saved if t.id == saved.id else t for t in self.tasks]
            else:
                self.tasks = [saved, *self.tasks]
        return Feedback(
            FeedbackKind.SUCCESS,
            f'Task has been successfully {verb}d. ID={saved.id}, Title="{saved.title}"',
            level=Level.SUCCESS,
            task=saved,
        )

    async def delete_task(self, task_id: int) -> Feedback:
        task = self.find(task_id)
        try:
            await self.client.delete_task(task_id)
        except ApiError as exc:
            return Feedback(FeedbackKind.FAILED, exc.message, level=Level.ERROR, retryable=True)
        if not self._closed:
            self.tasks = [t for t in self.tasks if t.id != task_id]
        title = task.title if task is not None else ""
        return Feedback(
            FeedbackKind.SUCCESS,
            f'Task has been successfully deleted. ID={task_id}, Title="{title}"',
            level=Level.SUCCESS,
        )
