from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime
from sqlalchemy import Enum as SQLAEnum
from sqlmodel import Field, SQLModel

import timezones
from config import get_settings


def _now() -> datetime:
    return timezones.now(get_settings().tz)


class TaskStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    ARCHIVED = "Archived"
    OVERDUE = "Overdue"


# Board column / filter order
STATUS_ORDER = [
    TaskStatus.PENDING,
    TaskStatus.IN_PROGRESS,
    TaskStatus.COMPLETED,
    TaskStatus.ARCHIVED,
    TaskStatus.OVERDUE,
]

TITLE_MAX_LENGTH = 100
CODE_LENGTH = 5
# Largest value an INTEGER primary key column holds
MAX_TASK_ID = 2**31 - 1


class Task(SQLModel, table=True):
    """One row of the tasks table. Timestamps are stored in the reference zone."""

    __tablename__ = "tasks"

    id: int = Field(default=None, primary_key=True)
    title: str = Field(max_length=TITLE_MAX_LENGTH)
    description: str | None = Field(default=None)
    status: TaskStatus = Field(
        default=TaskStatus.PENDING,
        sa_type=SQLAEnum(
            TaskStatus,
            name="task_status",
            values_callable=lambda x: [e.value for e in x],
        ),
    )
    code: str = Field(max_length=CODE_LENGTH, index=True, unique=True)
    due_date: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=_now, sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=_now, sa_column=Column(DateTime(timezone=True), nullable=False)
    )
