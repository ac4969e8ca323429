"""FastAPI REST API for tasks (CRUD) plus the HTML dashboard."""

import logging
import sys
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Ensure src is on path so models and api_schemas resolve when run as src.api from repo root
_src = Path(__file__).resolve().parent
if str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

_VIS_ROOT = Path(__file__).resolve().parent / "visualization"

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

import db
import task_service
import task_table
import timezones
from board import StatusFilter, group_by_status, status_percentages
from config import configure_logging, get_settings
from errors import GENERIC_FAILURE_MESSAGE, ApiError, ApiErrorKind, TaskError, TaskNotFoundError
from models import STATUS_ORDER, Task, TaskStatus
from reconciliation import reconcile_tasks
from visualization.api_schemas import FIELD_LABELS, DeleteResponse, TaskCreate, TaskRead, TaskUpdate

settings = get_settings()

app = FastAPI(title="taskboard API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

templates = Jinja2Templates(directory=str(_VIS_ROOT / "templates"))

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@app.on_event("startup")
def on_startup() -> None:
    configure_logging(settings)
    db.init_db()


# --- Error responses: always {"error": "<message>"} ---


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(TaskError)
def handle_task_error(request: Request, exc: TaskError):
    status_code = 404 if isinstance(exc, TaskNotFoundError) else 400
    return _error(status_code, exc.message)


def _validation_message(exc: RequestValidationError) -> str:
    """First validation problem, phrased for a person."""
    for err in exc.errors():
        kind = err.get("type", "")
        if kind == "json_invalid":
            return "Request body must be valid JSON"
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        name = loc[0] if loc else ""
        label = FIELD_LABELS.get(name, name or "Request body")
        if kind == "missing":
            return f"{label} is required"
        if kind == "value_error":
            cause = (err.get("ctx") or {}).get("error")
            return str(cause) if cause else err.get("msg", f"Invalid {label.lower()}")
        return f"Invalid {label[0].lower() + label[1:]}" if label else "Invalid request"
    return "Invalid request"


@app.exception_handler(RequestValidationError)
def handle_request_validation(request: Request, exc: RequestValidationError):
    return _error(400, _validation_message(exc))


@app.exception_handler(StarletteHTTPException)
def handle_http_exception(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
def log_unhandled_exception(request: Request, exc: Exception):
    """Log every unhandled exception; the client only sees a generic message."""
    logger.exception("Unhandled exception for %s %s: %s", request.method, request.url.path, exc)
    return _error(500, GENERIC_FAILURE_MESSAGE)


def _task_to_read(task: Task) -> TaskRead:
    tz = settings.tz
    return TaskRead(
        id=task.id,
        title=task.title,
        description=task.description,
        status=task.status,
        code=task.code,
        due_date=timezones.normalize_timestamp(task.due_date, tz),
        created_at=timezones.normalize_timestamp(task.created_at, tz),
        updated_at=timezones.normalize_timestamp(task.updated_at, tz),
    )


# --- /api/tasks ---


@router.get("", response_model=list[TaskRead])
def list_tasks() -> list[TaskRead]:
    """All tasks, newest first."""
    return [_task_to_read(t) for t in task_service.list_tasks()]


@router.get("/{task_id}", response_model=TaskRead)
def get_task(task_id: str) -> TaskRead:
    task_pk = task_service.parse_task_id(task_id)
    task = task_service.get_task(task_pk)
    if task is None:
        raise TaskNotFoundError(task_pk)
    return _task_to_read(task)


@router.post("", response_model=TaskRead, status_code=201)
def create_task(body: TaskCreate) -> TaskRead:
    return _task_to_read(task_service.create_task(body))


@router.put("/{task_id}", response_model=TaskRead)
def update_task(task_id: str, body: TaskUpdate) -> TaskRead:
    """Partial update: only fields present in the body are written."""
    task_pk = task_service.parse_task_id(task_id)
    return _task_to_read(task_service.update_task(task_pk, body.model_dump(exclude_unset=True)))


@router.delete("/{task_id}", response_model=DeleteResponse)
def delete_task(task_id: str) -> DeleteResponse:
    task_pk = task_service.parse_task_id(task_id)
    task_service.delete_task(task_pk)
    return DeleteResponse(message="Task deleted successfully")


app.include_router(router)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


# --- Dashboard (HTML) ---


class _StoreClient:
    """Task store behind the same async interface as task_client.TaskClient.

    Lets the dashboard run the reconciliation pass in-process.
    """

    async def list_tasks(self) -> list[TaskRead]:
        rows = await run_in_threadpool(task_service.list_tasks)
        return [_task_to_read(t) for t in rows]

    async def update_task(self, task_id: int, changes: dict[str, Any]) -> TaskRead:
        try:
            task = await run_in_threadpool(task_service.update_task, task_id, changes)
        except TaskNotFoundError as exc:
            raise ApiError(ApiErrorKind.NOT_FOUND, exc.message, f"task id={task_id}", 404) from exc
        except TaskError as exc:
            raise ApiError(ApiErrorKind.VALIDATION, exc.message, f"task id={task_id}", 400) from exc
        except SQLAlchemyError as exc:
            logger.warning("Store update failed for task id=%s: %s", task_id, exc)
            raise ApiError(ApiErrorKind.TRANSPORT, GENERIC_FAILURE_MESSAGE, repr(exc)) from exc
        return _task_to_read(task)


@app.get("/", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    status: list[TaskStatus] | None = Query(None, description="Board columns to show; omit for all"),
    sort: str | None = Query(None),
    direction: str = Query("asc"),
    page: int = Query(1),
    per_page: int = Query(task_table.DEFAULT_ROWS_PER_PAGE),
) -> HTMLResponse:
    """Render the board (status columns) and the sortable, paginated table."""
    tz = settings.tz
    store = _StoreClient()
    tasks = await reconcile_tasks(await store.list_tasks(), store, tz=tz)

    status_filter = StatusFilter(selected=[s for s in STATUS_ORDER if status is None or s in status])
    columns = group_by_status(tasks, status_filter.selected)
    percentages = status_percentages(tasks)

    try:
        rows = task_table.sort_tasks(tasks, sort, direction, tz=tz) if sort else tasks
        table_page = task_table.paginate(rows, page, per_page)
    except ValueError as exc:
        raise StarletteHTTPException(status_code=400, detail=str(exc))

    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "columns": columns,
            "percentages": percentages,
            "statuses": STATUS_ORDER,
            "selected_statuses": status_filter.selected,
            "page": table_page,
            "sort": sort,
            "direction": direction,
            "rows_per_page_options": task_table.ROWS_PER_PAGE_OPTIONS,
            "sortable_fields": task_table.SORTABLE_FIELDS,
            "fmt": lambda value, fallback="N/A": timezones.format_display(value, tz, fallback),
        },
    )


# Mount static after all routes so middleware stack is correct
app.mount("/static", StaticFiles(directory=str(_VIS_ROOT / "static")), name="static")
