# tests/test_store_failures.py
import pytest
from sqlalchemy.exc import SQLAlchemyError

import config
import db

DEADLINE = "2030-01-01T00:00:00Z"


def new_user(client, name="Alice"):
    r = client.post("/users", json={"name": name, "email": f"{name.lower()}@example.com"})
    assert r.status_code == 201, r.text
    return r.json()["data"]


def new_task(client, name="Task", **fields):
    r = client.post("/tasks", json={"name": name, "deadline": DEADLINE, **fields})
    assert r.status_code == 201, r.text
    return r.json()["data"]


def fetch(client, kind, doc_id):
    return client.get(f"/{kind}/{doc_id}").json()["data"]


@pytest.fixture
def broken(monkeypatch):
    """Make a db helper raise the way a lost connection would."""
    def _break(name):
        def boom(*args, **kwargs):
            raise SQLAlchemyError("boom")
        monkeypatch.setattr(db, name, boom)
    return _break


def test_read_failure_is_500(client, broken, monkeypatch):
    monkeypatch.setattr(config, "DEBUG", False)
    broken("find_documents")
    r = client.get("/users")
    assert r.status_code == 500
    assert r.json() == {"message": "Store failure", "data": {"error": "Store failure"}}


@pytest.mark.parametrize("debug", [False, True])
def test_error_detail_only_in_debug(client, broken, monkeypatch, debug):
    monkeypatch.setattr(config, "DEBUG", debug)
    broken("find_documents")
    error = client.get("/tasks").json()["data"]["error"]
    assert ("boom" in error) is debug


def test_user_replace_failure_keeps_cascade(client, broken, monkeypatch):
    monkeypatch.setattr(config, "DEBUG", False)
    alice = new_user(client)
    keep = new_task(client, "keep", assignedUser=alice["_id"])
    drop = new_task(client, "drop", assignedUser=alice["_id"])

    broken("replace_document")
    r = client.put(f"/users/{alice['_id']}", json={
        "name": "Alice", "email": "alice@example.com", "pendingTasks": [keep["_id"]],
    })
    assert r.status_code == 400
    assert r.json()["message"] == "Failed to update user"
    assert "boom" not in r.json()["data"]["error"]

    # the task side was already written and is not rolled back
    dropped = fetch(client, "tasks", drop["_id"])
    assert dropped["assignedUser"] == ""
    assert dropped["assignedUserName"] == "unassigned"
    assert fetch(client, "tasks", keep["_id"])["assignedUser"] == alice["_id"]
    assert sorted(fetch(client, "users", alice["_id"])["pendingTasks"]) == sorted([keep["_id"], drop["_id"]])


def test_task_replace_failure_keeps_cascade(client, broken, monkeypatch):
    monkeypatch.setattr(config, "DEBUG", True)
    alice = new_user(client, "Alice")
    bob = new_user(client, "Bob")
    task = new_task(client, assignedUser=alice["_id"])

    broken("replace_document")
    r = client.put(f"/tasks/{task['_id']}", json={
        "name": "Task", "deadline": DEADLINE, "assignedUser": bob["_id"],
    })
    assert r.status_code == 400
    body = r.json()
    assert body["message"] == "Failed to update task"
    assert body["data"]["error"] == "Failed to update task: boom"

    assert fetch(client, "users", alice["_id"])["pendingTasks"] == []
    assert fetch(client, "users", bob["_id"])["pendingTasks"] == [task["_id"]]
    assert fetch(client, "tasks", task["_id"])["assignedUser"] == alice["_id"]
