# models/__init__.py
from .user import User
from .task import Task, UNASSIGNED, UNASSIGNED_NAME
from .payloads import UserPayload, TaskPayload
