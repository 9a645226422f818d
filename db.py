# db.py

#============================================================#
#                          Taskhub                           #
#============================================================#
# Version     : V1.0.0                                       #
#------------------------------------------------------------#
# Purpose     : Document store for the users / tasks REST    #
#               service. One session + commit per call, so   #
#               multi-step cascades are ordered, not atomic. #
#============================================================#


from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from sqlalchemy import String, cast, create_engine, func, or_
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel, Session, select

import config
from models import User
from utils.query import QueryDescriptor

logger = logging.getLogger(__name__)

# ---- Engine / Session ----
engine = None
SessionLocal = None


def configure_engine(url: str = config.DATABASE_URL, **kwargs):
    """(Re)bind the module level engine and session factory."""
    global engine, SessionLocal
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    engine = create_engine(url, pool_pre_ping=True, **kwargs)
    SessionLocal = sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False)
    logger.debug("store bound to %s", engine.url.render_as_string(hide_password=True))
    return engine


configure_engine()


def init_db():
    SQLModel.metadata.create_all(engine)


def get_session() -> Session:
    return SessionLocal()


# ---- generic document helpers ----

def find_documents(model, descriptor: QueryDescriptor) -> list:
    stmt = select(model).where(descriptor.where).order_by(*descriptor.order_by)
    if descriptor.skip:
        stmt = stmt.offset(descriptor.skip)
    if descriptor.limit:
        stmt = stmt.limit(descriptor.limit)
    with get_session() as s:
        return s.exec(stmt).all()


def count_documents(model, where) -> int:
    stmt = select(func.count()).select_from(model).where(where)
    with get_session() as s:
        return int(s.exec(stmt).one())


def get_document(model, doc_id: str):
    with get_session() as s:
        return s.get(model, doc_id)


def insert_document(doc):
    with get_session() as s:
        s.add(doc)
        s.commit()
        s.refresh(doc)
        return doc


def replace_document(model, doc_id: str, values: dict):
    """Overwrite the listed columns of one document. Returns None if it is gone."""
    with get_session() as s:
        doc = s.get(model, doc_id)
        if doc is None:
            return None
        for key, value in values.items():
            setattr(doc, key, value)
        s.add(doc)
        s.commit()
        s.refresh(doc)
        return doc


def update_documents(model, where, values: dict) -> int:
    """updateMany: same ``values`` on every matching document, one commit."""
    with get_session() as s:
        docs = s.exec(select(model).where(where)).all()
        for doc in docs:
            for key, value in values.items():
                setattr(doc, key, value)
            s.add(doc)
        s.commit()
        return len(docs)


def delete_document(model, doc_id: str) -> bool:
    with get_session() as s:
        doc = s.get(model, doc_id)
        if doc is None:
            return False
        s.delete(doc)
        s.commit()
        return True


def existing_ids(model, ids: Iterable[str]) -> set:
    ids = list(ids)
    if not ids:
        return set()
    with get_session() as s:
        return set(s.exec(select(model.id).where(model.id.in_(ids))).all())


# ---- user helpers ----

def find_user_by_email(email: str) -> Optional[User]:
    with get_session() as s:
        return s.exec(select(User).where(User.email == email)).first()


def add_pending_task(user_id: str, task_id: str) -> bool:
    """$addToSet on one user's pendingTasks. False if the user is gone."""
    with get_session() as s:
        user = s.get(User, user_id)
        if user is None:
            return False
        if task_id not in (user.pending_tasks or []):
            user.pending_tasks = list(user.pending_tasks or []) + [task_id]
            s.add(user)
            s.commit()
        return True


def pull_pending_task(user_id: str, task_id: str) -> bool:
    """$pull on one user's pendingTasks. False if the user is gone."""
    with get_session() as s:
        user = s.get(User, user_id)
        if user is None:
            return False
        if task_id in (user.pending_tasks or []):
            user.pending_tasks = [t for t in user.pending_tasks if t != task_id]
            s.add(user)
            s.commit()
        return True


def pull_pending_tasks_elsewhere(task_ids: Iterable[str], keep_user_id: str) -> List[str]:
    """Remove ``task_ids`` from every user but ``keep_user_id``; returns touched user ids."""
    task_ids = set(task_ids)
    if not task_ids:
        return []
    text = cast(User.pending_tasks, String)
    stmt = (
        select(User)
        .where(User.id != keep_user_id)
        .where(or_(*[text.like(f'%"{t}"%') for t in task_ids]))
    )
    touched = []
    with get_session() as s:
        for user in s.exec(stmt).all():
            remaining = [t for t in user.pending_tasks or [] if t not in task_ids]
            if len(remaining) != len(user.pending_tasks or []):
                user.pending_tasks = remaining
                s.add(user)
                touched.append(user.id)
        s.commit()
    return touched
