from typing import Annotated, Optional
from fastapi import Depends, Request, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.auth.api.handlers import AUTH_COOKIE_NAME, AuthHandler
from app.auth.service.auth_service import AuthService

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    """Get auth service from app state."""
    auth_service = getattr(request.app.state, "auth_service", None)
    if auth_service is None:
        raise HTTPException(status_code=503, detail="Auth service not available")
    return auth_service


def get_auth_handler(request: Request) -> AuthHandler:
    """Get auth handler from app state, building it on first use."""
    auth_service = get_auth_service(request)
    if hasattr(request.app.state, "auth_handler"):
        return request.app.state.auth_handler
    logger = getattr(request.app.state, "logger", None)
    auth_handler = AuthHandler(auth_service, logger)
    request.app.state.auth_handler = auth_handler
    return auth_handler


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Bearer header first, then the session cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(AUTH_COOKIE_NAME) or None


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    Dependency to get current authenticated user from JWT token.

    Usage:
        @router.get("/protected")
        async def protected_route(current_user: dict = Depends(get_current_user)):
            user_id = current_user["user_id"]
            ...
    """
    token = extract_token(request, credentials)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = await get_auth_service(request).verify_token(token)
        request.state.auth_token = token
        return payload
    except HTTPException as e:
        if e.status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
            raise
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.detail,
            headers={"WWW-Authenticate": "Bearer"},
        )
    except Exception as e:
        logger = getattr(request.app.state, "logger", None)
        if logger:
            logger.error(f"Error authenticating user: {e!s}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


AuthHandlerDep = Annotated[AuthHandler, Depends(get_auth_handler)]
CurrentUserDep = Annotated[dict, Depends(get_current_user)]
