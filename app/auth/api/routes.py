from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials

from app.auth.api.dto import BaseResponse, LoginDTO, SignupDTO
from app.auth.api.dependencies import AuthHandlerDep, CurrentUserDep, extract_token, get_auth_handler, security
from app.auth.api.handlers import AuthHandler


auth_router = APIRouter(prefix="/auth", tags=["Authentication"])


@auth_router.post("/signup", response_model=BaseResponse, status_code=status.HTTP_201_CREATED)
async def signup(user_data: SignupDTO, auth_handler: AuthHandler = Depends(get_auth_handler)):
    """Register a new user with email and password, optionally with an invite token"""
    return await auth_handler.signup(user_data)


@auth_router.post("/login", response_model=BaseResponse)
async def login(
    login_data: LoginDTO,
    response: Response,
    auth_handler: AuthHandler = Depends(get_auth_handler),
):
    """Login with email and password; sets the session cookie"""
    return await auth_handler.login(login_data, response)


@auth_router.post("/logout", response_model=BaseResponse)
async def logout(
    request: Request,
    response: Response,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    auth_handler: AuthHandler = Depends(get_auth_handler),
):
    """Revoke the presented token and clear the session cookie"""
    return await auth_handler.logout(extract_token(request, credentials), response)


@auth_router.get("/me", response_model=BaseResponse)
async def me(current_user: CurrentUserDep, auth_handler: AuthHandlerDep):
    """Return the authenticated user"""
    return await auth_handler.me(current_user["user_id"])
