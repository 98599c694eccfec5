from pydantic import BaseModel, Field, field_validator
from typing import Optional

from app.kanban.entity.task import TaskStatus


class CreateTaskDTO(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    status: TaskStatus = TaskStatus.TODO
    assignee_id: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Title must not be empty")
        return value


class UpdateTaskDTO(CreateTaskDTO):
    order: Optional[int] = Field(default=None, ge=0)
