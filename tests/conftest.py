from datetime import datetime

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel

import db
from config import get_settings
from models import Task  # noqa: F401 — register tables
from task_client import TaskClient


@pytest.fixture
def tz():
    return get_settings().tz


@pytest.fixture
def at(tz):
    """Build an aware datetime in the reference zone: at(2025, 1, 1, 9)."""

    def _at(*args) -> datetime:
        return datetime(*args, tzinfo=tz)

    return _at


@pytest.fixture
def in_memory_engine(monkeypatch):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    monkeypatch.setattr(db, "get_engine", lambda: engine)
    monkeypatch.setattr(db, "init_db", lambda: None)
    return engine


@pytest.fixture
def db_session(in_memory_engine):
    with Session(in_memory_engine) as session:
        yield session


@pytest.fixture
def api_client(in_memory_engine):
    """Synchronous TestClient against the app, backed by the in-memory database."""
    from api import app

    with TestClient(app) as client:
        yield client


@pytest_asyncio.fixture
async def task_client(in_memory_engine):
    """TaskClient talking to the real app over an in-process ASGI transport."""
    from api import app

    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver/api")
    async with TaskClient(http, owns_http=True) as client:
        yield client
