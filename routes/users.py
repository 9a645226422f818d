# routes/users.py
import logging

from fastapi import APIRouter, Request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

import db
from models import User, UserPayload
from utils import sync
from utils.errors import NotFoundError, StoreError, ValidationError
from utils.ids import is_valid_object_id, to_utc
from utils.query import parse_projection, project, translate
from utils.responses import envelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _check_id(user_id: str) -> None:
    if not is_valid_object_id(user_id):
        raise ValidationError("Invalid user id", message="Invalid user id")


def _get_or_404(user_id: str) -> User:
    user = db.get_document(User, user_id)
    if user is None:
        raise NotFoundError("User not found", message="User not found")
    return user


def _check_email_free(email: str, user_id: str = None) -> None:
    other = db.find_user_by_email(email)
    if other is not None and other.id != user_id:
        raise ValidationError("Email already exists", message="Email already exists")


@router.get("")
def list_users(request: Request):
    descriptor = translate(request.query_params, User)
    if descriptor.count:
        return envelope("Count fetched", {"count": db.count_documents(User, descriptor.where)})
    users = db.find_documents(User, descriptor)
    return envelope("Users fetched", [project(u.to_api(), descriptor.projection) for u in users])


@router.post("")
def create_user(payload: UserPayload):
    pending = payload.pending_ids()
    _check_email_free(payload.email)
    sync.require_tasks(pending)

    try:
        user = db.insert_document(User(name=payload.name, email=payload.email, pending_tasks=pending))
    except IntegrityError:
        logger.warning("duplicate email on create: %s", payload.email)
        raise ValidationError("Email already exists", message="Email already exists")
    # the user exists before any task is pointed at it
    sync.replace_user_task_set(user.id, user.name, [], pending)
    return envelope("User created", user.to_api(), status_code=201)


@router.get("/{user_id}")
def get_user(user_id: str, request: Request):
    _check_id(user_id)
    select = request.query_params.get("select")
    projection = parse_projection(select) if select else None
    user = _get_or_404(user_id)
    return envelope("User fetched", project(user.to_api(), projection))


@router.put("/{user_id}")
def replace_user(user_id: str, payload: UserPayload):
    _check_id(user_id)
    existing = _get_or_404(user_id)
    pending = payload.pending_ids()
    _check_email_free(payload.email, user_id)
    sync.require_tasks(pending)

    try:
        sync.replace_user_task_set(user_id, payload.name, existing.pending_tasks or [], pending)
        values = {"name": payload.name, "email": payload.email, "pending_tasks": pending}
        if payload.dateCreated is not None:
            values["date_created"] = to_utc(payload.dateCreated)
        updated = db.replace_document(User, user_id, values)
    except SQLAlchemyError as exc:
        raise StoreError("Failed to update user", message="Failed to update user",
                         status_code=400, detail=str(exc))
    if updated is None:
        raise NotFoundError("User not found", message="User not found")
    return envelope("User updated", updated.to_api())


@router.delete("/{user_id}")
def delete_user(user_id: str):
    _check_id(user_id)
    user = _get_or_404(user_id)
    sync.cascade_delete_user(user_id)
    db.delete_document(User, user_id)
    return envelope("User deleted", user.to_api())
