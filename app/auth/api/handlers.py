from typing import Any
from fastapi import HTTPException, Response

from app.auth.api.dto import LoginDTO, SignupDTO
from app.auth.service.auth_service import AuthService
from app.core.config import settings
import logging

AUTH_COOKIE_NAME = "auth-token"


class AuthHandler:
    def __init__(self, auth_service: AuthService, logger: logging.Logger):
        self.auth_service = auth_service
        self.logger = logger

    def _set_auth_cookie(self, response: Response, token: str) -> None:
        response.set_cookie(
            key=AUTH_COOKIE_NAME,
            value=token,
            httponly=True,
            secure=settings.is_production,
            samesite="strict",
            max_age=self.auth_service.token_client.max_age_seconds,
            path="/",
        )

    async def signup(self, user_data: SignupDTO) -> dict[str, Any]:
        try:
            user = await self.auth_service.signup(
                user_data.email,
                user_data.password,
                user_data.name,
                user_data.invite_token,
            )
            return {
                "status": True,
                "message": "User created successfully",
                "data": {"user": user.public()},
            }
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error during signup: {e!s}")
            raise HTTPException(status_code=500, detail="Registration failed")

    async def login(self, login_data: LoginDTO, response: Response) -> dict[str, Any]:
        try:
            user, token = await self.auth_service.login(login_data.email, login_data.password)
            self._set_auth_cookie(response, token)
            return {
                "status": True,
                "message": "Login successful",
                "data": {
                    "user": user.public(),
                    "access_token": token,
                    "token_type": "bearer",
                    "expires_in": self.auth_service.token_client.max_age_seconds,
                },
            }
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error during login: {e!s}")
            raise HTTPException(status_code=500, detail="Login failed")

    async def me(self, user_id: str) -> dict[str, Any]:
        try:
            user = await self.auth_service.get_current_user(user_id)
            return {
                "status": True,
                "message": "User fetched successfully",
                "data": {"user": user.public()},
            }
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error fetching current user: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to fetch user")

    async def logout(self, token: str | None, response: Response) -> dict[str, Any]:
        """Revoke the token and clear the session cookie"""
        response.delete_cookie(AUTH_COOKIE_NAME, path="/")
        try:
            if token:
                await self.auth_service.logout(token)
        except Exception as e:
            # Logout succeeds for the client even if revocation failed
            self.logger.error(f"Error during logout: {e!s}")
        return {
            "status": True,
            "message": "Logged out successfully",
            "data": {},
        }
