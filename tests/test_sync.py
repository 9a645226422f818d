# tests/test_sync.py
import pytest

import db
from models import Task, User
from utils import sync
from utils.errors import AssignmentReferenceError


def fresh(model, doc):
    return db.get_document(model, doc.id)


def test_require_user_rejects_unknown_and_malformed(make_user):
    alice = make_user("Alice")
    assert sync.require_user(alice.id).name == "Alice"
    with pytest.raises(AssignmentReferenceError):
        sync.require_user("0" * 24)
    with pytest.raises(AssignmentReferenceError):
        sync.require_user("not-an-id")


def test_require_tasks_lists_missing(make_task):
    task = make_task()
    assert sync.require_tasks([task.id]) == [task.id]
    with pytest.raises(AssignmentReferenceError) as exc:
        sync.require_tasks([task.id, "f" * 24])
    assert "f" * 24 in exc.value.error


def test_assign_task_is_a_set_add(make_user):
    alice = make_user("Alice")
    sync.assign_task("a" * 24, alice.id)
    sync.assign_task("a" * 24, alice.id)
    assert fresh(User, alice).pending_tasks == ["a" * 24]


def test_reassign_moves_between_users(make_user, make_task):
    alice, bob = make_user("Alice"), make_user("Bob")
    task = make_task(user=alice)

    new_owner = sync.reassign_task(task.id, alice.id, bob.id)

    assert new_owner.id == bob.id
    assert task.id not in fresh(User, alice).pending_tasks
    assert fresh(User, bob).pending_tasks == [task.id]


def test_reassign_validates_before_touching_old_owner(make_user, make_task):
    alice = make_user("Alice")
    task = make_task(user=alice)

    with pytest.raises(AssignmentReferenceError):
        sync.reassign_task(task.id, alice.id, "0" * 24)

    assert fresh(User, alice).pending_tasks == [task.id]


def test_reassign_same_owner_is_noop(make_user, make_task):
    alice = make_user("Alice")
    task = make_task(user=alice)
    assert sync.reassign_task(task.id, alice.id, alice.id) is None
    assert fresh(User, alice).pending_tasks == [task.id]


def test_replace_user_task_set_diffs(make_user, make_task):
    alice = make_user("Alice")
    kept = make_task("kept", user=alice)
    dropped = make_task("dropped", user=alice)
    added = make_task("added")
    # stale cache on the kept task must survive the replacement
    db.replace_document(Task, kept.id, {"assigned_user_name": "Old Alice"})

    sync.replace_user_task_set(alice.id, "Alicia", [kept.id, dropped.id], [kept.id, added.id])

    assert fresh(Task, dropped).assigned_user == ""
    assert fresh(Task, dropped).assigned_user_name == "unassigned"
    assert fresh(Task, added).assigned_user == alice.id
    assert fresh(Task, added).assigned_user_name == "Alicia"
    assert fresh(Task, kept).assigned_user_name == "Old Alice"


def test_replace_user_task_set_takes_task_from_previous_owner(make_user, make_task):
    alice, bob = make_user("Alice"), make_user("Bob")
    task = make_task(user=alice)

    sync.replace_user_task_set(bob.id, "Bob", [], [task.id])

    assert fresh(User, alice).pending_tasks == []
    assert fresh(Task, task).assigned_user == bob.id


def test_cascade_delete_user_unassigns_all(make_user, make_task):
    alice, bob = make_user("Alice"), make_user("Bob")
    t1, t2 = make_task("t1", user=alice), make_task("t2", user=alice)
    other = make_task("t3", user=bob)

    assert sync.cascade_delete_user(alice.id) == 2

    for task in (t1, t2):
        assert fresh(Task, task).assigned_user == ""
        assert fresh(Task, task).assigned_user_name == "unassigned"
    assert fresh(Task, other).assigned_user == bob.id


def test_cascade_delete_task_pulls_from_owner(make_user, make_task):
    alice = make_user("Alice")
    t1, t2 = make_task("t1", user=alice), make_task("t2", user=alice)
    sync.cascade_delete_task(fresh(Task, t1))
    assert fresh(User, alice).pending_tasks == [t2.id]
