"""Pydantic schemas for the Tasks REST API (request/response only).

Field checks here are the boundary validation: anything that fails them is
rejected with a 400 before the store is touched.
"""

import re
from datetime import datetime

from pydantic import field_validator
from sqlmodel import Field, SQLModel

import timezones
from config import get_settings
from models import CODE_LENGTH, TITLE_MAX_LENGTH, TaskStatus

_CODE_RE = re.compile(rf"^[A-Z0-9]{{{CODE_LENGTH}}}$")

FIELD_LABELS = {
    "title": "Title",
    "description": "Description",
    "status": "Status",
    "code": "Task code",
    "due_date": "Due date",
}


def clean_title(value: str) -> str:
    title = (value or "").strip()
    if not title:
        raise ValueError("Title is required")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValueError(f"Title must be {TITLE_MAX_LENGTH} characters or fewer")
    return title


def clean_code(value: str) -> str:
    """Upper-case and check a task code: exactly 5 letters/digits."""
    code = (value or "").strip().upper()
    if not code:
        raise ValueError("Task code is required")
    if not _CODE_RE.match(code):
        raise ValueError(
            f"Task code must be exactly {CODE_LENGTH} alphanumeric characters (letters and numbers only)"
        )
    return code


def clean_due_date(value):
    try:
        return timezones.normalize_timestamp(value, get_settings().tz)
    except ValueError:
        raise ValueError("Invalid due date") from None


class TaskRead(SQLModel):
    """Task response schema: explicit fields only (no ORM inheritance)."""

    id: int
    title: str
    description: str | None = None
    status: TaskStatus
    code: str
    due_date: datetime | None = None
    created_at: datetime
    updated_at: datetime


class TaskCreate(SQLModel):
    """Request body for creating a task. Status defaults to Pending."""

    title: str
    code: str
    due_date: datetime | None = None
    description: str | None = None
    status: TaskStatus = Field(default=TaskStatus.PENDING)

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, v):
        return clean_title(v) if isinstance(v, str) else v

    @field_validator("code", mode="before")
    @classmethod
    def _code(cls, v):
        return clean_code(v) if isinstance(v, str) else v

    @field_validator("due_date", mode="before")
    @classmethod
    def _due_date(cls, v):
        return clean_due_date(v)

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class TaskUpdate(SQLModel):
    """Request body for partial task update. Only fields that are sent are applied."""

    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    code: str | None = None
    due_date: datetime | None = None

    @field_validator("title", "code", "status", mode="before")
    @classmethod
    def _not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{FIELD_LABELS[info.field_name]} cannot be empty")
        if info.field_name == "title" and isinstance(v, str):
            return clean_title(v)
        if info.field_name == "code" and isinstance(v, str):
            return clean_code(v)
        return v

    @field_validator("due_date", mode="before")
    @classmethod
    def _due_date(cls, v):
        return clean_due_date(v)

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class DeleteResponse(SQLModel):
    message: str
