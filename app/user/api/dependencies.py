from typing import Annotated

from fastapi import Depends, HTTPException, Request

from app.core.logger import get_logger
from app.user.api.handlers import UserHandler

logger = get_logger("UserRouter")


def get_user_handler(request: Request) -> UserHandler:
    """Build the user directory handler from app.state."""
    user_service = getattr(request.app.state, "user_service", None)
    if user_service is None:
        raise HTTPException(status_code=503, detail="User service not available")
    return UserHandler(user_service, getattr(request.app.state, "logger", None) or logger)


UserHandlerDep = Annotated[UserHandler, Depends(get_user_handler)]
