"""Async HTTP client for the /api/tasks endpoints.

Every failure surfaces as errors.ApiError with an explicit kind; the server's
``{"error": ...}`` text becomes the user message for validation and not-found
responses, infrastructure failures get a generic message and keep the cause in
``detail``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any

import httpx
from pydantic import ValidationError

from config import Settings
from errors import GENERIC_FAILURE_MESSAGE, ApiError, ApiErrorKind
from visualization.api_schemas import TaskRead

logger = logging.getLogger(__name__)


def _server_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return None


def _jsonable(payload: dict[str, Any]) -> dict[str, Any]:
    out = {}
    for key, value in payload.items():
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        out[key] = value
    return out


def error_from_response(response: httpx.Response) -> ApiError:
    """Classify a non-2xx response."""
    status = response.status_code
    server_message = _server_message(response)
    detail = f"{response.request.method} {response.request.url} -> {status}: {response.text[:500]}"
    if status in (400, 422):
        return ApiError(ApiErrorKind.VALIDATION, server_message or "The request was invalid.", detail, status)
    if status == 404:
        return ApiError(ApiErrorKind.NOT_FOUND, server_message or "Task not found", detail, status)
    if status >= 500:
        return ApiError(ApiErrorKind.TRANSPORT, GENERIC_FAILURE_MESSAGE, detail, status)
    return ApiError(ApiErrorKind.UNKNOWN, server_message or GENERIC_FAILURE_MESSAGE, detail, status)


class TaskClient:
    """Thin async wrapper over httpx.AsyncClient.

    Use as ``async with TaskClient.from_settings(settings) as client: ...`` or
    pass an existing httpx.AsyncClient (tests hand in one bound to an ASGI or
    mock transport).
    """

    def __init__(self, http: httpx.AsyncClient, owns_http: bool = False):
        self._http = http
        self._owns_http = owns_http

    @classmethod
    def from_settings(cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> "TaskClient":
        http = httpx.AsyncClient(
            base_url=settings.api_base_url,
            timeout=settings.api_timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )
        return cls(http, owns_http=True)

    async def __aenter__(self) -> "TaskClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        try:
            response = await self._http.request(method, path, json=json)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ApiError(ApiErrorKind.TRANSPORT, GENERIC_FAILURE_MESSAGE, repr(exc)) from exc
        if response.is_error:
            raise error_from_response(response)
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(
                ApiErrorKind.UNKNOWN, GENERIC_FAILURE_MESSAGE, f"Non-JSON body from {method} {path}"
            ) from exc

    @staticmethod
    def _task(data: Any) -> TaskRead:
        try:
            return TaskRead.model_validate(data)
        except ValidationError as exc:
            raise ApiError(ApiErrorKind.UNKNOWN, GENERIC_FAILURE_MESSAGE, str(exc)) from exc

    async def list_tasks(self) -> list[TaskRead]:
        data = await self._request("GET", "/tasks")
        if not isinstance(data, list):
            raise ApiError(ApiErrorKind.UNKNOWN, GENERIC_FAILURE_MESSAGE, "Task list was not an array")
        return [self._task(item) for item in data]

    async def get_task(self, task_id: int) -> TaskRead:
        return self._task(await self._request("GET", f"/tasks/{task_id}"))

    async def create_task(self, payload: dict[str, Any]) -> TaskRead:
        return self._task(await self._request("POST", "/tasks", json=_jsonable(payload)))

    async def update_task(self, task_id: int, changes: dict[str, Any]) -> TaskRead:
        return self._task(await self._request("PUT", f"/tasks/{task_id}", json=_jsonable(changes)))

    async def delete_task(self, task_id: int) -> str:
        data = await self._request("DELETE", f"/tasks/{task_id}")
        return data.get("message", "") if isinstance(data, dict) else ""
