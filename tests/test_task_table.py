"""Sorting and pagination for the tasks table."""

import pytest

import task_table
from fakes import make_task
from models import TaskStatus


def test_sort_by_title_is_case_insensitive():
    tasks = [make_task(1, title="banana"), make_task(2, title="Apple"), make_task(3, title="cherry")]
    ordered = task_table.sort_tasks(tasks, "title")
    assert [t.title for t in ordered] == ["Apple", "banana", "cherry"]
    desc = task_table.sort_tasks(tasks, "title", "desc")
    assert [t.title for t in desc] == ["cherry", "banana", "Apple"]


@pytest.mark.parametrize("direction", ["asc", "desc"])
def test_missing_due_dates_sort_last(at, direction):
    tasks = [
        make_task(1),
        make_task(2, due_date=at(2025, 3, 1)),
        make_task(3, due_date=at(2025, 1, 1)),
        make_task(4),
    ]
    ordered = [t.id for t in task_table.sort_tasks(tasks, "due_date", direction)]
    assert ordered[-2:] == [1, 4]
    assert ordered[:2] == ([3, 2] if direction == "asc" else [2, 3])


def test_sort_by_status_uses_label():
    tasks = [make_task(1, TaskStatus.PENDING), make_task(2, TaskStatus.ARCHIVED), make_task(3, TaskStatus.OVERDUE)]
    assert [t.id for t in task_table.sort_tasks(tasks, "status")] == [2, 3, 1]


def test_sort_rejects_unknown_field_and_direction():
    with pytest.raises(ValueError):
        task_table.sort_tasks([], "priority")
    with pytest.raises(ValueError):
        task_table.sort_tasks([], "title", "sideways")


def test_sort_state_toggle():
    state = task_table.SortState()
    state.toggle("title")
    assert (state.name, state.direction) == ("title", "asc")
    state.toggle("title")
    assert state.direction == "desc"
    state.toggle("code")
    assert (state.name, state.direction) == ("code", "asc")


def test_paginate_slices_and_summarises():
    tasks = [make_task(i) for i in range(1, 24)]
    page = task_table.paginate(tasks, page=3, per_page=10)
    assert [t.id for t in page.items] == [21, 22, 23]
    assert page.total_pages == 3
    assert page.summary == "Showing 21 to 23 of 23 tasks"


def test_paginate_clamps_page_number():
    tasks = [make_task(i) for i in range(1, 6)]
    assert task_table.paginate(tasks, page=9, per_page=5).page == 1
    assert task_table.paginate(tasks, page=0, per_page=5).page == 1


def test_paginate_empty():
    page = task_table.paginate([], page=1, per_page=10)
    assert page.items == []
    assert page.total_pages == 1
    assert page.summary == "No tasks"
    assert page.numbers == []


def test_paginate_rejects_unlisted_page_size():
    with pytest.raises(ValueError):
        task_table.paginate([], per_page=7)


@pytest.mark.parametrize(
    "current,total,expected",
    [
        (1, 1, []),
        (2, 4, [1, 2, 3, 4]),
        (1, 10, [1, 2, "…", 10]),
        (5, 10, [1, "…", 4, 5, 6, "…", 10]),
        (10, 10, [1, "…", 9, 10]),
        (3, 10, [1, 2, 3, 4, "…", 10]),
    ],
)
def test_page_numbers(current, total, expected):
    assert task_table.page_numbers(current, total) == expected
