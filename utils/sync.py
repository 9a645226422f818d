# utils/sync.py
"""
Keeps ``Task.assignedUser`` and ``User.pendingTasks`` pointing at each other.

Every operation here is a short, ordered sequence of independent store
calls (see ``db.py``: one session and commit per call). Nothing is rolled
back: if a later step fails, the earlier ones stay applied and the error
propagates to the caller. Lookups that can reject a request always run
before the first mutation.

``assignedUserName`` is written only when an assignment changes; renaming a
user does not refresh it on tasks that keep the same owner.
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy import and_

import db
from models import User, Task, UNASSIGNED, UNASSIGNED_NAME
from utils.errors import AssignmentReferenceError
from utils.ids import is_valid_object_id

logger = logging.getLogger(__name__)


def require_user(user_id: str) -> User:
    """Resolve an ``assignedUser`` value or reject the request."""
    user = db.get_document(User, user_id) if is_valid_object_id(user_id) else None
    if user is None:
        raise AssignmentReferenceError("Assigned user does not exist")
    return user


def require_tasks(task_ids: Iterable[str]) -> List[str]:
    task_ids = list(task_ids)
    malformed = [t for t in task_ids if not is_valid_object_id(t)]
    found = db.existing_ids(Task, [t for t in task_ids if t not in malformed])
    missing = [t for t in task_ids if t not in found]
    if missing:
        raise AssignmentReferenceError(
            f"Pending task does not exist: {', '.join(missing)}",
            message="Invalid pending tasks",
        )
    return task_ids


def assign_task(task_id: str, user_id: str) -> None:
    db.add_pending_task(user_id, task_id)
    logger.info("task %s added to user %s", task_id, user_id)


def unassign_task(task_id: str, user_id: str) -> None:
    db.pull_pending_task(user_id, task_id)
    logger.info("task %s removed from user %s", task_id, user_id)


def reassign_task(task_id: str, old_user_id: str, new_user_id: str) -> Optional[User]:
    """Move a task between owners ahead of its replacement.

    Returns the new owner (``None`` when the task ends up unassigned or the
    owner did not change).
    """
    if old_user_id == new_user_id:
        return None
    new_user = require_user(new_user_id) if new_user_id else None
    if old_user_id:
        unassign_task(task_id, old_user_id)
    if new_user is not None:
        assign_task(task_id, new_user.id)
    return new_user


def replace_user_task_set(user_id: str, user_name: str,
                          old_ids: Iterable[str], new_ids: Iterable[str]) -> None:
    """Apply the diff between a user's old and new pendingTasks to the tasks.

    Dropped ids are unassigned, added ids are taken from any other owner and
    assigned to ``user_id`` under ``user_name``. Ids in both sets are left
    alone. The user document itself is written by the caller.
    """
    old_set, new_set = set(old_ids), set(new_ids)
    dropped = sorted(old_set - new_set)
    added = sorted(new_set - old_set)

    if dropped:
        count = db.update_documents(
            Task,
            and_(Task.id.in_(dropped), Task.assigned_user == user_id),
            {"assigned_user": UNASSIGNED, "assigned_user_name": UNASSIGNED_NAME},
        )
        logger.info("user %s released %d task(s): %s", user_id, count, dropped)

    if added:
        previous_owners = db.pull_pending_tasks_elsewhere(added, keep_user_id=user_id)
        if previous_owners:
            logger.info("tasks %s taken over from users %s", added, previous_owners)
        count = db.update_documents(
            Task,
            Task.id.in_(added),
            {"assigned_user": user_id, "assigned_user_name": user_name},
        )
        logger.info("user %s took %d task(s): %s", user_id, count, added)


def cascade_delete_user(user_id: str) -> int:
    """Unassign every task owned by ``user_id``. Run before deleting the user."""
    count = db.update_documents(
        Task,
        Task.assigned_user == user_id,
        {"assigned_user": UNASSIGNED, "assigned_user_name": UNASSIGNED_NAME},
    )
    logger.info("user %s deleted, %d task(s) unassigned", user_id, count)
    return count


def cascade_delete_task(task: Task) -> None:
    """Drop a task from its owner's pendingTasks. Run before deleting the task."""
    if task.assigned_user:
        unassign_task(task.id, task.assigned_user)
