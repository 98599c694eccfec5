import logging
from typing import Any

from fastapi import HTTPException

from app.kanban.api.dto import CreateTaskDTO, UpdateTaskDTO
from app.kanban.service.task_service import TaskService


class KanbanHandler:
    def __init__(self, task_service: TaskService, logger: logging.Logger):
        self.task_service = task_service
        self.logger = logger

    async def list_tasks(self) -> dict[str, Any]:
        try:
            tasks = await self.task_service.list_tasks()
            return {
                "status": True,
                "message": "Tasks fetched successfully",
                "data": {"tasks": [t.model_dump(mode="json") for t in tasks]},
            }
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error fetching tasks: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to fetch tasks")

    async def create_task(self, body: CreateTaskDTO, user_id: str) -> dict[str, Any]:
        try:
            task = await self.task_service.create_task(
                title=body.title,
                description=body.description,
                status=body.status,
                creator_id=user_id,
                assignee_id=body.assignee_id,
            )
            return {"status": True, "message": "Task created successfully", "data": {"task": task.model_dump(mode="json")}}
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error creating task: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to create task")

    async def update_task(self, task_id: str, body: UpdateTaskDTO, user_id: str) -> dict[str, Any]:
        try:
            # Fields the client left out keep their stored values
            changes = body.model_dump(exclude_unset=True)
            task = await self.task_service.update_task(task_id, user_id, changes)
            return {"status": True, "message": "Task updated successfully", "data": {"task": task.model_dump(mode="json")}}
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error updating task {task_id}: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to update task")

    async def delete_task(self, task_id: str, user_id: str) -> dict[str, Any]:
        try:
            await self.task_service.delete_task(task_id, user_id)
            return {"status": True, "message": "Task deleted successfully", "data": {"task_id": task_id}}
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error deleting task {task_id}: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to delete task")
