from typing import Any
from fastapi import HTTPException

from app.user.service.user_service import UserService
import logging


class UserHandler:
    def __init__(self, user_service: UserService, logger: logging.Logger):
        self.user_service = user_service
        self.logger = logger

    async def list_users(self) -> dict[str, Any]:
        """Directory of team members, used when assigning tasks."""
        try:
            users = await self.user_service.list_users()
            return {
                "status": True,
                "message": "Users fetched successfully",
                "data": {"users": [u.model_dump() for u in users]},
            }
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error listing users: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to list users")
