"""Sorting and pagination behind the tasks table."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Any, Sequence

import timezones
from config import get_settings

SORTABLE_FIELDS = ("id", "title", "code", "status", "due_date", "created_at", "updated_at")
_TIMESTAMP_FIELDS = {"due_date", "created_at", "updated_at"}

ROWS_PER_PAGE_OPTIONS = (5, 10, 20, 50, 100)
DEFAULT_ROWS_PER_PAGE = 10
ELLIPSIS = "…"


def _sort_key(task: Any, name: str, tz: tzinfo):
    value = getattr(task, name, None)
    if name in _TIMESTAMP_FIELDS:
        return timezones.parse_or_none(value, tz)
    if name == "status" and value is not None:
        return str(getattr(value, "value", value)).casefold()
    if isinstance(value, str):
        return value.casefold()
    return value


def sort_tasks(tasks: Sequence[Any], name: str, direction: str = "asc", tz: tzinfo | None = None) -> list:
    """Return *tasks* ordered by *name*. Missing values go last in both directions."""
    if name not in SORTABLE_FIELDS:
        raise ValueError(f"Cannot sort by {name!r}")
    if direction not in ("asc", "desc"):
        raise ValueError(f"Sort direction must be 'asc' or 'desc', not {direction!r}")
    if tz is None:
        tz = get_settings().tz
    keyed = [(_sort_key(t, name, tz), t) for t in tasks]
    present = [(k, t) for k, t in keyed if k is not None]
    missing = [t for k, t in keyed if k is None]
    present.sort(key=lambda kt: kt[0], reverse=direction == "desc")
    return [t for _, t in present] + missing


@dataclass
class SortState:
    name: str | None = None
    direction: str = "asc"

    def toggle(self, name: str) -> None:
        """Same column flips direction; a new column starts ascending."""
        if name not in SORTABLE_FIELDS:
            raise ValueError(f"Cannot sort by {name!r}")
        if self.name == name:
            self.direction = "desc" if self.direction == "asc" else "asc"
        else:
            self.name = name
            self.direction = "asc"


@dataclass
class Page:
    items: list
    page: int
    per_page: int
    total_items: int
    total_pages: int
    start_index: int  # 0-based, inclusive
    end_index: int  # 0-based, exclusive
    numbers: list = field(default_factory=list)

    @property
    def summary(self) -> str:
        if not self.total_items:
            return "No tasks"
        return f"Showing {self.start_index + 1} to {self.end_index} of {self.total_items} tasks"


def paginate(tasks: Sequence[Any], page: int = 1, per_page: int = DEFAULT_ROWS_PER_PAGE) -> Page:
    if per_page not in ROWS_PER_PAGE_OPTIONS:
        raise ValueError(f"Rows per page must be one of {ROWS_PER_PAGE_OPTIONS}")
    total_items = len(tasks)
    total_pages = max(1, math.ceil(total_items / per_page))
    page = min(max(1, page), total_pages)
    start = (page - 1) * per_page
    end = min(start + per_page, total_items)
    return Page(
        items=list(tasks[start:end]),
        page=page,
        per_page=per_page,
        total_items=total_items,
        total_pages=total_pages,
        start_index=start,
        end_index=end,
        numbers=page_numbers(page, total_pages),
    )


def page_numbers(current: int, total: int) -> list:
    """Page links for the pager: all pages up to 5, otherwise 1 … neighbours … last."""
    if total <= 1:
        return []
    if total <= 5:
        return list(range(1, total + 1))
    pages: list = [1]
    if current > 3:
        pages.append(ELLIPSIS)
    pages.extend(range(max(2, current - 1), min(total - 1, current + 1) + 1))
    if current < total - 2:
        pages.append(ELLIPSIS)
    pages.append(total)
    return pages
