"""Reconciliation pass: bring stored statuses in line with due dates.

Active tasks past their due date become Overdue; Overdue tasks whose due date
was moved to the future go back to Pending. Every task in one pass is judged
against the same instant. Updates are best-effort: a failed write is logged
and the task is shown with its corrected status anyway.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, tzinfo
from typing import Any, Protocol, Sequence

import status_policy
import timezones
from config import get_settings
from errors import ApiError
from models import TaskStatus

logger = logging.getLogger(__name__)


class StatusWriter(Protocol):
    async def update_task(self, task_id: int, changes: dict[str, Any]) -> Any: ...


def plan_updates(tasks: Sequence[Any], now: datetime, tz: tzinfo) -> dict[int, TaskStatus]:
    """Map task id -> status the pass would write. Tasks without an id are skipped."""
    planned: dict[int, TaskStatus] = {}
    for task in tasks:
        if getattr(task, "id", None) is None:
            continue
        target = status_policy.target_status(task, now, tz)
        if target is not None:
            planned[task.id] = target
    return planned


async def reconcile_tasks(
    tasks: list,
    client: StatusWriter,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> list:
    """Persist Overdue/Pending corrections for *tasks* and return the corrected list.

    Returns *tasks* itself when nothing needs to change. Otherwise the result
    keeps input order: the server's copy for successful writes, a local copy
    with the target status for failed ones, and the input task for the rest.
    """
    tz = tz if tz is not None else get_settings().tz
    now = timezones.now(tz) if now is None else timezones.normalize_timestamp(now, tz)

    planned = plan_updates(tasks, now, tz)
    if not planned:
        return tasks

    async def _write(task_id: int, status: TaskStatus):
        try:
            return await client.update_task(task_id, {"status": status})
        except ApiError as exc:
            logger.warning(
                "Reconcile: could not set task id=%s to %s (%s): %s",
                task_id, status.value, exc.kind.value, exc.detail or exc.message,
            )
            return None
        except Exception:
            logger.exception("Reconcile: unexpected error setting task id=%s to %s", task_id, status.value)
            return None

    ids = list(planned)
    results = await asyncio.gather(*(_write(task_id, planned[task_id]) for task_id in ids))
    updated = {task_id: result for task_id, result in zip(ids, results) if result is not None}
    logger.info(
        "Reconcile: %d to Overdue, %d to Pending, %d write(s) failed.",
        sum(1 for s in planned.values() if s == TaskStatus.OVERDUE),
        sum(1 for s in planned.values() if s == TaskStatus.PENDING),
        len(planned) - len(updated),
    )

    out = []
    for task in tasks:
        task_id = getattr(task, "id", None)
        if task_id in updated:
            out.append(updated[task_id])
        elif task_id in planned:
            out.append(task.model_copy(update={"status": planned[task_id]}))
        else:
            out.append(task)
    return out
