from typing import Any, List, Optional

from sqlalchemy import case, delete, func
from sqlalchemy.future import select
from sqlalchemy.orm import aliased

from app.core.logger import get_logger
from app.kanban.entity.task import Task, TaskStatus
from app.kanban.repository.sql_schema.task import TaskModel
from app.kanban.service.task_service import ITaskRepository
from app.user.entities.entity import UserSummary
from app.user.repository.sql_schema.user import UserModel
from pkg.db_util.postgres_conn import PostgresConnection

logger = get_logger(__name__)

Creator = aliased(UserModel)
Assignee = aliased(UserModel)

# Board column order, not alphabetical
_STATUS_RANK = case(
    {TaskStatus.TODO.value: 0, TaskStatus.IN_PROGRESS.value: 1, TaskStatus.DONE.value: 2},
    value=TaskModel.status,
    else_=3,
)


def _summary(user: Optional[UserModel]) -> Optional[UserSummary]:
    if user is None:
        return None
    return UserSummary(id=user.user_id, name=user.name or "", email=user.email)


def _to_task(t: TaskModel, creator: Optional[UserModel] = None, assignee: Optional[UserModel] = None) -> Task:
    return Task(
        id=t.id,
        title=t.title,
        description=t.description,
        status=TaskStatus(t.status),
        order=t.order,
        creator_id=t.creator_id,
        assignee_id=t.assignee_id,
        created_at=t.created_at,
        updated_at=t.updated_at,
        creator=_summary(creator),
        assignee=_summary(assignee),
    )


class TaskRepository(ITaskRepository):
    def __init__(self, postgres: PostgresConnection):
        self.postgres = postgres
        self.logger = logger

    def _with_people(self):
        return (
            select(TaskModel, Creator, Assignee)
            .outerjoin(Creator, Creator.user_id == TaskModel.creator_id)
            .outerjoin(Assignee, Assignee.user_id == TaskModel.assignee_id)
        )

    async def _load(self, session, task_id: str) -> Optional[Task]:
        row = (await session.execute(self._with_people().where(TaskModel.id == task_id))).first()
        return _to_task(*row) if row else None

    async def list_tasks(self) -> List[Task]:
        async with self.postgres.get_session() as session:
            result = await session.execute(
                self._with_people().order_by(_STATUS_RANK, TaskModel.order.asc())
            )
            return [_to_task(*row) for row in result.all()]

    async def get_task(self, task_id: str) -> Optional[Task]:
        async with self.postgres.get_session() as session:
            return await self._load(session, task_id)

    async def create_task(
        self,
        title: str,
        description: Optional[str],
        status: TaskStatus,
        creator_id: str,
        assignee_id: Optional[str],
    ) -> Task:
        async with self.postgres.get_session() as session:
            async with session.begin():
                max_order = await session.scalar(
                    select(func.max(TaskModel.order)).where(TaskModel.status == status.value)
                )
                task = TaskModel(
                    title=title,
                    description=description,
                    status=status.value,
                    creator_id=creator_id,
                    assignee_id=assignee_id,
                    order=(max_order if max_order is not None else -1) + 1,
                )
                session.add(task)
            return await self._load(session, task.id)

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        async with self.postgres.get_session() as session:
            async with session.begin():
                task = await session.get(TaskModel, task_id)
                for field, value in changes.items():
                    if isinstance(value, TaskStatus):
                        value = value.value
                    setattr(task, field, value)
            return await self._load(session, task_id)

    async def delete_task(self, task_id: str) -> None:
        async with self.postgres.get_session() as session:
            await session.execute(delete(TaskModel).where(TaskModel.id == task_id))
            await session.commit()
