from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.future import select
from app.user.entities.aggregate import UserAggregate
from app.user.entities.entity import Invite, User as UserEntity, UserSummary
from app.user.repository.sql_schema.user import InviteModel, UserModel
from app.user.service.user_service import IUserRepository
import logging


def _to_entity(user: UserModel) -> UserEntity:
    return UserEntity(
        id=user.user_id,
        email=user.email,
        password_hash=user.password_hash,
        name=user.name or "",
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


class UserRepository(IUserRepository):
    def __init__(self, db_session_factory, logger: logging.Logger):
        self.db_session_factory = db_session_factory
        self.logger = logger

    async def create_user(
        self,
        email: str,
        password_hash: str,
        name: str,
        invite_token: str | None = None,
    ) -> UserAggregate:
        """Create a new user, consuming the invite in the same transaction."""
        try:
            async with self.db_session_factory() as session:
                async with session.begin():
                    invite = None
                    if invite_token:
                        result = await session.execute(
                            select(InviteModel).where(InviteModel.token == invite_token).with_for_update()
                        )
                        invite = result.scalars().first()
                        if not invite or invite.used or invite.expires_at <= datetime.utcnow():
                            raise HTTPException(status_code=400, detail="Invalid or expired invite")

                    user = UserModel(email=email, password_hash=password_hash, name=name)
                    session.add(user)
                    await session.flush()

                    if invite is not None:
                        invite.used = True
                        invite.used_by = user.user_id

                await session.refresh(user)
                return UserAggregate(user=_to_entity(user), events=["UserCreated"])

        except HTTPException:
            raise
        except IntegrityError:
            raise HTTPException(status_code=409, detail="User already exists")
        except Exception as e:
            self.logger.error(f"Error creating user: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to create user")

    async def get_user_by_email(self, email: str) -> UserAggregate | None:
        try:
            async with self.db_session_factory() as session:
                result = await session.execute(select(UserModel).filter(UserModel.email == email))
                user = result.scalars().first()
                if not user:
                    return None
                return UserAggregate(user=_to_entity(user))

        except Exception as e:
            self.logger.error(f"Error getting user by email: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to fetch user by email")

    async def get_user_by_id(self, user_id: str) -> UserAggregate | None:
        try:
            async with self.db_session_factory() as session:
                result = await session.execute(select(UserModel).filter(UserModel.user_id == user_id))
                user = result.scalars().first()
                if not user:
                    return None
                return UserAggregate(user=_to_entity(user))

        except Exception as e:
            self.logger.error(f"Error getting user by ID: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to fetch user by ID")

    async def list_users(self) -> list[UserSummary]:
        try:
            async with self.db_session_factory() as session:
                result = await session.execute(select(UserModel).order_by(UserModel.name.asc()))
                return [
                    UserSummary(id=u.user_id, name=u.name or "", email=u.email)
                    for u in result.scalars().all()
                ]
        except Exception as e:
            self.logger.error(f"Error listing users: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to list users")

    async def get_invite(self, token: str) -> Invite | None:
        async with self.db_session_factory() as session:
            result = await session.execute(select(InviteModel).where(InviteModel.token == token))
            invite = result.scalars().first()
            if not invite:
                return None
            return Invite(
                id=invite.id,
                token=invite.token,
                email=invite.email,
                used=invite.used,
                expires_at=invite.expires_at,
            )
