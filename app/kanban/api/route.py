from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.auth.api.dependencies import get_current_user
from app.auth.api.dto import BaseResponse
from app.core.logger import get_logger
from app.kanban.api.dto import CreateTaskDTO, UpdateTaskDTO
from app.kanban.api.handler import KanbanHandler

kanban_router = APIRouter(prefix="/kanban", tags=["Kanban"])
logger = get_logger("KanbanRouter")


def get_kanban_handler(request: Request) -> KanbanHandler:
    task_service = getattr(request.app.state, "task_service", None)
    if task_service is None:
        raise HTTPException(status_code=503, detail="Task service not available")
    return KanbanHandler(task_service, getattr(request.app.state, "logger", None) or logger)


@kanban_router.get("", response_model=BaseResponse)
async def list_tasks(
    current_user: dict = Depends(get_current_user),
    handler: KanbanHandler = Depends(get_kanban_handler),
):
    """All tasks, grouped by status column and ordered within it."""
    return await handler.list_tasks()


@kanban_router.post("", response_model=BaseResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    body: CreateTaskDTO,
    current_user: dict = Depends(get_current_user),
    handler: KanbanHandler = Depends(get_kanban_handler),
):
    return await handler.create_task(body, current_user["user_id"])


@kanban_router.put("/{task_id}", response_model=BaseResponse)
async def update_task(
    task_id: str,
    body: UpdateTaskDTO,
    current_user: dict = Depends(get_current_user),
    handler: KanbanHandler = Depends(get_kanban_handler),
):
    """Only the task creator may update it."""
    return await handler.update_task(task_id, body, current_user["user_id"])


@kanban_router.delete("/{task_id}", response_model=BaseResponse)
async def delete_task(
    task_id: str,
    current_user: dict = Depends(get_current_user),
    handler: KanbanHandler = Depends(get_kanban_handler),
):
    """Only the task creator may delete it."""
    return await handler.delete_task(task_id, current_user["user_id"])
