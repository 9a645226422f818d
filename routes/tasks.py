# routes/tasks.py
from fastapi import APIRouter, Request
from sqlalchemy.exc import SQLAlchemyError

import config
import db
from models import Task, TaskPayload, UNASSIGNED, UNASSIGNED_NAME
from utils import sync
from utils.errors import NotFoundError, StoreError, ValidationError
from utils.ids import is_valid_object_id, to_utc
from utils.query import parse_projection, project, translate
from utils.responses import envelope

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _check_id(task_id: str) -> None:
    if not is_valid_object_id(task_id):
        raise ValidationError("Invalid task id", message="Invalid task id")


def _get_or_404(task_id: str) -> Task:
    task = db.get_document(Task, task_id)
    if task is None:
        raise NotFoundError("Task not found", message="Task not found")
    return task


def _owner_name(payload: TaskPayload, owner: str, fallback: str) -> str:
    if not owner:
        return UNASSIGNED_NAME
    return payload.assignedUserName or fallback


@router.get("")
def list_tasks(request: Request):
    descriptor = translate(request.query_params, Task, default_limit=config.TASK_DEFAULT_LIMIT)
    if descriptor.count:
        return envelope("Count fetched", {"count": db.count_documents(Task, descriptor.where)})
    tasks = db.find_documents(Task, descriptor)
    return envelope("Tasks fetched", [project(t.to_api(), descriptor.projection) for t in tasks])


@router.post("")
def create_task(payload: TaskPayload):
    owner = payload.owner()
    user = sync.require_user(owner) if owner else None

    task = Task(
        name=payload.name,
        description=payload.description or "",
        deadline=to_utc(payload.deadline),
        completed=bool(payload.completed),
        assigned_user=owner or UNASSIGNED,
        assigned_user_name=_owner_name(payload, owner, user.name if user else UNASSIGNED_NAME),
    )
    if user is not None:
        sync.assign_task(task.id, user.id)
    task = db.insert_document(task)
    return envelope("Task created", task.to_api(), status_code=201)


@router.get("/{task_id}")
def get_task(task_id: str, request: Request):
    _check_id(task_id)
    select = request.query_params.get("select")
    projection = parse_projection(select) if select else None
    task = _get_or_404(task_id)
    return envelope("Task fetched", project(task.to_api(), projection))


@router.put("/{task_id}")
def replace_task(task_id: str, payload: TaskPayload):
    _check_id(task_id)
    existing = _get_or_404(task_id)
    owner = payload.owner()

    try:
        new_user = sync.reassign_task(task_id, existing.assigned_user, owner)
        fallback = new_user.name if new_user is not None else existing.assigned_user_name
        values = {
            "name": payload.name,
            "description": payload.description or "",
            "deadline": to_utc(payload.deadline),
            "completed": bool(payload.completed),
            "assigned_user": owner or UNASSIGNED,
            "assigned_user_name": _owner_name(payload, owner, fallback),
        }
        if payload.dateCreated is not None:
            values["date_created"] = to_utc(payload.dateCreated)
        updated = db.replace_document(Task, task_id, values)
    except SQLAlchemyError as exc:
        raise StoreError("Failed to update task", message="Failed to update task",
                         status_code=400, detail=str(exc))
    if updated is None:
        raise NotFoundError("Task not found", message="Task not found")
    return envelope("Task updated", updated.to_api())


@router.delete("/{task_id}")
def delete_task(task_id: str):
    _check_id(task_id)
    task = _get_or_404(task_id)
    sync.cascade_delete_task(task)
    db.delete_document(Task, task_id)
    return envelope("Task deleted", task.to_api())
