"""Task store: CRUD over the tasks table.

Used by the REST API (api.py). Inputs arrive already shape-checked by the API
schemas; this layer enforces the store rules (code uniqueness, not-found,
timestamp bookkeeping) and raises errors.TaskError subclasses.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

import db as _db
import timezones
from config import get_settings
from errors import DuplicateCodeError, TaskNotFoundError, TaskValidationError
from models import MAX_TASK_ID, Task, TaskStatus
from visualization.api_schemas import TaskCreate

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = ("title", "description", "status", "code", "due_date")


def _ensure_db() -> None:
    _db.init_db()


def _tz():
    return get_settings().tz


def parse_task_id(raw: str | int) -> int:
    """Turn a path segment into a task id. Non-numeric or non-positive ids are a validation error."""
    if isinstance(raw, int) and not isinstance(raw, bool):
        task_id = raw
    else:
        text = str(raw).strip()
        if not (text.isascii() and text.isdigit()):
            raise TaskValidationError("Invalid task id")
        task_id = int(text)
    if task_id < 1:
        raise TaskValidationError("Invalid task id")
    return task_id


def _load(session: Session, task_id: int) -> Task | None:
    """session.get, with ids beyond the column range treated as absent."""
    if task_id > MAX_TASK_ID:
        return None
    return session.get(Task, task_id)


def _code_taken(session: Session, code: str, exclude_id: int | None = None) -> bool:
    q = select(Task).where(Task.code == code)
    if exclude_id is not None:
        q = q.where(Task.id != exclude_id)
    return session.exec(q).first() is not None


def _commit(session: Session, task: Task) -> None:
    """Commit, turning a unique-index race on code into DuplicateCodeError."""
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise DuplicateCodeError(task.code) from exc
    session.refresh(task)


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


def create_task(data: TaskCreate) -> Task:
    """Insert a new task and return it with id and timestamps populated."""
    _ensure_db()
    tz = _tz()
    with Session(_db.get_engine()) as session:
        if _code_taken(session, data.code):
            raise DuplicateCodeError(data.code)
        stamp = timezones.now(tz)
        task = Task(
            title=data.title,
            description=data.description,
            status=data.status,
            code=data.code,
            due_date=timezones.normalize_timestamp(data.due_date, tz),
            created_at=stamp,
            updated_at=stamp,
        )
        session.add(task)
        _commit(session, task)
        logger.info("Created task id=%s code=%s.", task.id, task.code)
        return task


def get_task(task_id: int) -> Task | None:
    """Return a Task by id, or None if not found."""
    _ensure_db()
    with Session(_db.get_engine()) as session:
        return _load(session, task_id)


def get_task_by_code(code: str) -> Task | None:
    """Return the Task holding *code* (case-insensitive), or None."""
    _ensure_db()
    with Session(_db.get_engine()) as session:
        return session.exec(select(Task).where(Task.code == code.strip().upper())).first()


def list_tasks(statuses: Iterable[TaskStatus] | None = None) -> list[Task]:
    """Return tasks newest first, optionally restricted to *statuses*."""
    _ensure_db()
    with Session(_db.get_engine()) as session:
        q = select(Task)
        if statuses is not None:
            q = q.where(col(Task.status).in_(list(statuses)))
        q = q.order_by(col(Task.created_at).desc(), col(Task.id).desc())
        return list(session.exec(q))


def update_task(task_id: int, changes: dict[str, Any]) -> Task:
    """Apply a partial update. Only keys present in *changes* are written.

    An empty *changes* returns the task untouched (updated_at is not bumped).
    Raises TaskNotFoundError, DuplicateCodeError.
    """
    unknown = set(changes) - set(_UPDATABLE_FIELDS)
    if unknown:
        raise TaskValidationError(f"Unknown field: {sorted(unknown)[0]}")
    _ensure_db()
    tz = _tz()
    with Session(_db.get_engine()) as session:
        task = _load(session, task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        if not changes:
            return task
        if "code" in changes and _code_taken(session, changes["code"], exclude_id=task_id):
            raise DuplicateCodeError(changes["code"])
        for name in _UPDATABLE_FIELDS:
            if name not in changes:
                continue
            value = changes[name]
            if name == "due_date":
                value = timezones.normalize_timestamp(value, tz)
            setattr(task, name, value)
        stamp = timezones.now(tz)
        created = timezones.normalize_timestamp(task.created_at, tz)
        task.updated_at = max(stamp, created) if created else stamp
        session.add(task)
        _commit(session, task)
        logger.info("Updated task id=%s fields=%s.", task_id, ",".join(sorted(changes)))
        return task


def delete_task(task_id: int) -> None:
    """Delete a task by id. Raises TaskNotFoundError if there is no such row."""
    _ensure_db()
    with Session(_db.get_engine()) as session:
        task = _load(session, task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        session.delete(task)
        session.commit()
        logger.info("Deleted task id=%s.", task_id)
