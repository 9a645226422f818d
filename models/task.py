# models/task.py
from datetime import datetime
from typing import ClassVar, Dict

from sqlmodel import SQLModel, Field

from utils.ids import new_object_id, utcnow, iso

UNASSIGNED = ""
UNASSIGNED_NAME = "unassigned"


class Task(SQLModel, table=True):
    __tablename__ = "tasks"
    __table_args__ = {"extend_existing": True}

    api_fields: ClassVar[Dict[str, str]] = {
        "_id": "id",
        "name": "name",
        "description": "description",
        "deadline": "deadline",
        "completed": "completed",
        "assignedUser": "assigned_user",
        "assignedUserName": "assigned_user_name",
        "dateCreated": "date_created",
    }

    id: str = Field(default_factory=new_object_id, primary_key=True, max_length=24)
    name: str
    description: str = Field(default="")
    deadline: datetime
    completed: bool = Field(default=False)
    assigned_user: str = Field(default=UNASSIGNED, index=True)
    # cached copy of the owner's name at the last assignment write
    assigned_user_name: str = Field(default=UNASSIGNED_NAME)
    date_created: datetime = Field(default_factory=utcnow)

    def to_api(self) -> dict:
        return {
            "_id": self.id,
            "name": self.name,
            "description": self.description,
            "deadline": iso(self.deadline),
            "completed": bool(self.completed),
            "assignedUser": self.assigned_user,
            "assignedUserName": self.assigned_user_name,
            "dateCreated": iso(self.date_created),
        }
