# models/payloads.py
"""Request bodies for POST/PUT. Field names follow the wire format."""
from datetime import datetime
from typing import List, Optional

from sqlmodel import SQLModel, Field


class UserPayload(SQLModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=1)
    pendingTasks: Optional[List[str]] = None
    # ignored on create, honoured on full replacement
    dateCreated: Optional[datetime] = None

    def pending_ids(self) -> List[str]:
        seen = []
        for task_id in self.pendingTasks or []:
            if task_id not in seen:
                seen.append(task_id)
        return seen


class TaskPayload(SQLModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    deadline: datetime
    completed: Optional[bool] = None
    assignedUser: Optional[str] = None
    assignedUserName: Optional[str] = None
    dateCreated: Optional[datetime] = None

    def owner(self) -> str:
        return (self.assignedUser or "").strip()
