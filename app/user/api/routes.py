from fastapi import APIRouter

from app.auth.api.dependencies import CurrentUserDep
from app.user.api.dependencies import UserHandlerDep

user_router = APIRouter(prefix="/users", tags=["User"])


@user_router.get("")
async def list_users(current_user: CurrentUserDep, user_handler: UserHandlerDep):
    """List team members (id, name, email)."""
    return await user_handler.list_users()
