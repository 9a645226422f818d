# tests/conftest.py
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, select

import db
from models import Task, User


@pytest.fixture(autouse=True)
def store():
    engine = db.configure_engine("sqlite://", poolclass=StaticPool)
    db.init_db()
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def client(store):
    from main import app
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user():
    def _make(name="Alice", email=None, pending=None):
        email = email or f"{name.lower().replace(' ', '.')}@example.com"
        return db.insert_document(User(name=name, email=email, pending_tasks=list(pending or [])))
    return _make


@pytest.fixture
def make_task():
    def _make(name="Task", deadline=datetime(2030, 1, 1, tzinfo=timezone.utc), user=None, completed=False):
        task = db.insert_document(Task(
            name=name,
            deadline=deadline,
            completed=completed,
            assigned_user=user.id if user else "",
            assigned_user_name=user.name if user else "unassigned",
        ))
        if user is not None:
            db.add_pending_task(user.id, task.id)
        return task
    return _make


@pytest.fixture
def check_links():
    """Assert both sides of every assignment agree and no task has two owners."""
    def _check():
        with db.get_session() as s:
            users = {u.id: u for u in s.exec(select(User)).all()}
            tasks = s.exec(select(Task)).all()
        owners = {}
        for user in users.values():
            for task_id in user.pending_tasks:
                assert task_id not in owners, f"{task_id} listed by two users"
                owners[task_id] = user.id
        for task in tasks:
            if task.assigned_user:
                assert task.assigned_user in users
                assert owners.get(task.id) == task.assigned_user
            else:
                assert task.assigned_user_name == "unassigned"
                assert task.id not in owners
        task_ids = {t.id for t in tasks}
        assert set(owners) <= task_ids
    return _check
