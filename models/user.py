# models/user.py
from datetime import datetime
from typing import ClassVar, Dict, List

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

from utils.ids import new_object_id, utcnow, iso


class User(SQLModel, table=True):
    __tablename__ = "users"
    __table_args__ = {"extend_existing": True}

    # API field name -> column attribute
    api_fields: ClassVar[Dict[str, str]] = {
        "_id": "id",
        "name": "name",
        "email": "email",
        "pendingTasks": "pending_tasks",
        "dateCreated": "date_created",
    }

    id: str = Field(default_factory=new_object_id, primary_key=True, max_length=24)
    name: str
    email: str = Field(index=True, unique=True)
    # ids of the tasks assigned to this user; always rewritten as a new list
    pending_tasks: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    date_created: datetime = Field(default_factory=utcnow)

    def to_api(self) -> dict:
        return {
            "_id": self.id,
            "name": self.name,
            "email": self.email,
            "pendingTasks": list(self.pending_tasks or []),
            "dateCreated": iso(self.date_created),
        }
