from abc import ABC, abstractmethod
from typing import Any, List, Optional
import logging

from fastapi import HTTPException

from app.kanban.entity.task import Task, TaskStatus
from app.user.service.user_service import UserService


class ITaskRepository(ABC):
    @abstractmethod
    async def list_tasks(self) -> List[Task]:
        """All tasks ordered by status, then order."""
        pass

    @abstractmethod
    async def get_task(self, task_id: str) -> Optional[Task]:
        pass

    @abstractmethod
    async def create_task(
        self,
        title: str,
        description: Optional[str],
        status: TaskStatus,
        creator_id: str,
        assignee_id: Optional[str],
    ) -> Task:
        """Insert at the end of its status column."""
        pass

    @abstractmethod
    async def update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        pass

    @abstractmethod
    async def delete_task(self, task_id: str) -> None:
        pass


class TaskService:
    def __init__(self, task_repository: ITaskRepository, user_service: UserService, logger: logging.Logger):
        self.task_repository = task_repository
        self.user_service = user_service
        self.logger = logger

    async def _check_assignee(self, assignee_id: Optional[str]) -> None:
        if assignee_id and not await self.user_service.user_exists(assignee_id):
            raise HTTPException(status_code=400, detail="Assignee not found")

    async def _owned_task(self, task_id: str, user_id: str) -> Task:
        task = await self.task_repository.get_task(task_id)
        if task is None:
            raise HTTPException(status_code=404, detail="Task not found")
        if task.creator_id != user_id:
            raise HTTPException(status_code=403, detail="Access denied")
        return task

    async def list_tasks(self) -> List[Task]:
        return await self.task_repository.list_tasks()

    async def create_task(
        self,
        title: str,
        description: Optional[str],
        status: TaskStatus,
        creator_id: str,
        assignee_id: Optional[str] = None,
    ) -> Task:
        await self._check_assignee(assignee_id)
        task = await self.task_repository.create_task(title, description, status, creator_id, assignee_id)
        self.logger.info(f"Task created: {task.id} status={task.status.value} order={task.order}")
        return task

    async def update_task(self, task_id: str, user_id: str, changes: dict[str, Any]) -> Task:
        await self._owned_task(task_id, user_id)
        await self._check_assignee(changes.get("assignee_id"))
        return await self.task_repository.update_task(task_id, changes)

    async def delete_task(self, task_id: str, user_id: str) -> None:
        await self._owned_task(task_id, user_id)
        await self.task_repository.delete_task(task_id)
        self.logger.info(f"Task deleted: {task_id}")
