from abc import ABC, abstractmethod

from fastapi import HTTPException

from app.user.entities.aggregate import UserAggregate
from app.user.entities.entity import Invite, UserSummary
import logging


class IUserRepository(ABC):
    @abstractmethod
    async def create_user(
            self,
            email: str,
            password_hash: str,
            name: str,
            invite_token: str | None = None,
    ) -> UserAggregate:
        """Create a user; when an invite token is given it is marked used in the same transaction."""
        pass

    @abstractmethod
    async def get_user_by_email(self, email: str) -> UserAggregate | None:
        pass

    @abstractmethod
    async def get_user_by_id(self, user_id: str) -> UserAggregate | None:
        pass

    @abstractmethod
    async def list_users(self) -> list[UserSummary]:
        pass

    @abstractmethod
    async def get_invite(self, token: str) -> Invite | None:
        pass


class UserService:
    def __init__(
            self,
            user_repository: IUserRepository,
            logger: logging.Logger,
    ):
        self.user_repository = user_repository
        self.logger = logger

    async def create_user(
            self,
            email: str,
            password_hash: str,
            name: str,
            invite_token: str | None = None,
    ) -> UserAggregate:
        """Create a new user"""
        existing_user = await self.get_user_by_email(email)
        if existing_user:
            raise HTTPException(status_code=409, detail="User already exists")
        return await self.user_repository.create_user(
            email=email,
            password_hash=password_hash,
            name=name,
            invite_token=invite_token,
        )

    async def get_user_by_email(self, email: str) -> UserAggregate | None:
        return await self.user_repository.get_user_by_email(email)

    async def get_user_by_id(self, user_id: str) -> UserAggregate | None:
        return await self.user_repository.get_user_by_id(user_id)

    async def user_exists(self, user_id: str) -> bool:
        return await self.user_repository.get_user_by_id(user_id) is not None

    async def list_users(self) -> list[UserSummary]:
        return await self.user_repository.list_users()

    async def get_valid_invite(self, token: str) -> Invite:
        invite = await self.user_repository.get_invite(token)
        if invite is None or not invite.is_valid():
            raise HTTPException(status_code=400, detail="Invalid or expired invite")
        return invite
