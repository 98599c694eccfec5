from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from app.user.entities.entity import UserSummary


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class Task(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    order: int = 0
    creator_id: str
    assignee_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    creator: Optional[UserSummary] = None
    assignee: Optional[UserSummary] = None
