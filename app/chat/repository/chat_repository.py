# app/chat/repository/chat_repository.py

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import and_, delete, exists, func, or_, update
from sqlalchemy.future import select

from app.chat.entity.chat import Chat, ChatMessage, MessagePage, NewMessage
from app.chat.repository.sql_schema.chat import ChatMessageModel, ChatModel
from app.chat.service.service import IChatRepository
from app.core.logger import get_logger
from app.user.entities.entity import UserSummary
from app.user.repository.sql_schema.user import UserModel
from pkg.db_util.postgres_conn import PostgresConnection

logger = get_logger(__name__)


def _to_message(m: ChatMessageModel, author: Optional[UserModel] = None) -> ChatMessage:
    return ChatMessage(
        id=m.id,
        chat_id=m.chat_id,
        author_id=m.author_id,
        content=m.content,
        is_ai=m.is_ai,
        llm_model=m.llm_model,
        created_at=m.created_at,
        author=UserSummary(id=author.user_id, name=author.name or "", email=author.email) if author else None,
    )


def _to_chat(c: ChatModel, message_count: int = 0, last_message: Optional[ChatMessage] = None) -> Chat:
    return Chat(
        id=c.id,
        title=c.title,
        is_private=c.is_private,
        creator_id=c.creator_id,
        created_at=c.created_at,
        updated_at=c.updated_at,
        message_count=message_count,
        last_message=last_message,
    )


class ChatRepository(IChatRepository):
    """Handles all database interactions for chats and chat messages."""

    def __init__(self, postgres: PostgresConnection):
        self.postgres = postgres
        self.logger = logger

    # ────────────────────────────────────────────────
    # Chats
    # ────────────────────────────────────────────────

    async def create_chat(self, title: str, is_private: bool, creator_id: str) -> Chat:
        async with self.postgres.get_session() as session:
            chat = ChatModel(title=title, is_private=is_private, creator_id=creator_id)
            session.add(chat)
            await session.commit()
            await session.refresh(chat)
            return _to_chat(chat)

    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        async with self.postgres.get_session() as session:
            result = await session.execute(select(ChatModel).where(ChatModel.id == chat_id))
            chat = result.scalar_one_or_none()
            return _to_chat(chat) if chat else None

    async def list_chats(self, user_id: str, search: Optional[str] = None) -> List[Chat]:
        async with self.postgres.get_session() as session:
            counts = (
                select(ChatMessageModel.chat_id, func.count(ChatMessageModel.id).label("message_count"))
                .group_by(ChatMessageModel.chat_id)
                .subquery()
            )
            query = (
                select(ChatModel, func.coalesce(counts.c.message_count, 0))
                .outerjoin(counts, counts.c.chat_id == ChatModel.id)
                .where(or_(ChatModel.is_private.is_(False), ChatModel.creator_id == user_id))
                .order_by(ChatModel.updated_at.desc())
            )
            if search:
                pattern = f"%{search}%"
                query = query.where(
                    or_(
                        ChatModel.title.ilike(pattern),
                        exists().where(
                            and_(
                                ChatMessageModel.chat_id == ChatModel.id,
                                ChatMessageModel.content.ilike(pattern),
                            )
                        ),
                    )
                )
            rows = (await session.execute(query)).all()
            if not rows:
                return []

            # Latest message per chat, with its author
            chat_ids = [c.id for c, _ in rows]
            ranked = (
                select(
                    ChatMessageModel.id,
                    func.row_number()
                    .over(partition_by=ChatMessageModel.chat_id, order_by=ChatMessageModel.created_at.desc())
                    .label("rn"),
                )
                .where(ChatMessageModel.chat_id.in_(chat_ids))
                .subquery()
            )
            latest = await session.execute(
                select(ChatMessageModel, UserModel)
                .join(ranked, and_(ranked.c.id == ChatMessageModel.id, ranked.c.rn == 1))
                .outerjoin(UserModel, UserModel.user_id == ChatMessageModel.author_id)
            )
            last_by_chat = {m.chat_id: _to_message(m, author) for m, author in latest.all()}

            return [_to_chat(c, count, last_by_chat.get(c.id)) for c, count in rows]

    # ────────────────────────────────────────────────
    # Messages
    # ────────────────────────────────────────────────

    async def list_messages(self, chat_id: str, offset: int, limit: int) -> MessagePage:
        async with self.postgres.get_session() as session:
            total = await session.scalar(
                select(func.count(ChatMessageModel.id)).where(ChatMessageModel.chat_id == chat_id)
            )
            result = await session.execute(
                select(ChatMessageModel, UserModel)
                .outerjoin(UserModel, UserModel.user_id == ChatMessageModel.author_id)
                .where(ChatMessageModel.chat_id == chat_id)
                .order_by(ChatMessageModel.created_at.asc())
                .offset(offset)
                .limit(limit)
            )
            return MessagePage(
                messages=[_to_message(m, author) for m, author in result.all()],
                total=total or 0,
            )

    async def create_messages(self, chat_id: str, author_id: str, messages: List[NewMessage]) -> List[ChatMessage]:
        async with self.postgres.get_session() as session:
            async with session.begin():
                now = datetime.utcnow()
                rows = [
                    ChatMessageModel(
                        chat_id=chat_id,
                        author_id=author_id,
                        content=m.content,
                        is_ai=m.is_ai,
                        llm_model=m.llm_model,
                        # Keep insertion order stable under created_at ordering
                        created_at=now + timedelta(microseconds=i),
                    )
                    for i, m in enumerate(messages)
                ]
                session.add_all(rows)
                await session.execute(
                    update(ChatModel).where(ChatModel.id == chat_id).values(updated_at=now)
                )
            self.logger.info(f"Created {len(rows)} messages in chat {chat_id}")
            return [_to_message(r) for r in rows]

    async def get_message(self, message_id: str) -> Optional[ChatMessage]:
        async with self.postgres.get_session() as session:
            result = await session.execute(select(ChatMessageModel).where(ChatMessageModel.id == message_id))
            message = result.scalar_one_or_none()
            return _to_message(message) if message else None

    async def delete_message(self, message_id: str) -> None:
        async with self.postgres.get_session() as session:
            await session.execute(delete(ChatMessageModel).where(ChatMessageModel.id == message_id))
            await session.commit()

    async def count_messages_by_others(self, chat_id: str, author_id: str) -> int:
        async with self.postgres.get_session() as session:
            count = await session.scalar(
                select(func.count(ChatMessageModel.id)).where(
                    ChatMessageModel.chat_id == chat_id,
                    ChatMessageModel.author_id != author_id,
                )
            )
            return count or 0

    async def delete_chat_messages(self, chat_id: str) -> int:
        async with self.postgres.get_session() as session:
            result = await session.execute(delete(ChatMessageModel).where(ChatMessageModel.chat_id == chat_id))
            await session.commit()
            self.logger.info(f"Deleted messages for chat {chat_id}")
            return result.rowcount or 0
