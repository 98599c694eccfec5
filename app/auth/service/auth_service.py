import asyncio
from datetime import datetime, timezone
import bcrypt
from fastapi import HTTPException
from app.user.service.user_service import UserService
from app.user.entities.entity import User
import logging
from pkg.redis.client import RedisClient
from pkg.auth_token_client.client import TokenClient, TokenPayload

REDIS_BLACKLISTED_TOKEN = "blacklisted_token_"


class AuthService:
    def __init__(
        self,
        user_service: UserService,
        token_client: TokenClient,
        redis_client: RedisClient | None,
        logger: logging.Logger,
        salt_rounds: int = 12,
    ):
        self.user_service = user_service
        self.token_client = token_client
        # Without Redis, logout only clears the cookie; tokens stay valid until expiry
        self.redis_client = redis_client
        self.logger = logger
        self.salt_rounds = salt_rounds

    async def _hash_password(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.salt_rounds)
        hashed = await asyncio.to_thread(bcrypt.hashpw, password.encode(), salt)
        return hashed.decode()

    async def _verify_password(self, password: str, hashed: str | None) -> bool:
        if not hashed:
            return False
        return await asyncio.to_thread(bcrypt.checkpw, password.encode(), hashed.encode())

    def _create_token(self, user: User) -> str:
        return self.token_client.create_token(TokenPayload(user_id=user.id, email=user.email))

    async def signup(self, email: str, password: str, name: str, invite_token: str | None = None) -> User:
        """Register a new user, optionally consuming an invite."""
        try:
            if await self.user_service.get_user_by_email(email):
                raise HTTPException(status_code=409, detail="User already exists")

            if invite_token:
                await self.user_service.get_valid_invite(invite_token)

            password_hash = await self._hash_password(password)
            user_aggregate = await self.user_service.create_user(
                email=email,
                password_hash=password_hash,
                name=name,
                invite_token=invite_token,
            )
            self.logger.info(f"User registered: {user_aggregate.user.id}")
            return user_aggregate.user
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error during signup: {e!s}")
            raise HTTPException(status_code=500, detail="Registration failed")

    async def login(self, email: str, password: str) -> tuple[User, str]:
        try:
            user_aggregate = await self.user_service.get_user_by_email(email)
            # Same message for unknown email and wrong password
            if not user_aggregate or not await self._verify_password(password, user_aggregate.user.password_hash):
                raise HTTPException(status_code=401, detail="Invalid credentials")

            return user_aggregate.user, self._create_token(user_aggregate.user)
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error during login: {e!s}")
            raise HTTPException(status_code=500, detail="Login failed")

    async def verify_token(self, token: str) -> dict:
        try:
            if self.redis_client and await self.redis_client.get_value(REDIS_BLACKLISTED_TOKEN + token):
                raise HTTPException(status_code=401, detail="Invalid or expired token")

            try:
                payload = self.token_client.decode_token(token)
            except ValueError:
                raise HTTPException(status_code=401, detail="Invalid or expired token")

            user_id = payload.get("user_id")
            if not user_id:
                raise HTTPException(status_code=401, detail="Invalid or expired token")

            try:
                user_aggregate = await self.user_service.get_user_by_id(user_id)
            except Exception as e:
                # Don't expose DB errors through the auth path
                self.logger.error(f"Error fetching user during token verification: {e!s}")
                raise HTTPException(status_code=401, detail="Invalid or expired token")

            if not user_aggregate:
                raise HTTPException(status_code=401, detail="Invalid or expired token")

            return payload
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error verifying token: {e!s}")
            raise HTTPException(status_code=401, detail="Invalid or expired token")

    async def get_current_user(self, user_id: str) -> User:
        user_aggregate = await self.user_service.get_user_by_id(user_id)
        if not user_aggregate:
            raise HTTPException(status_code=404, detail="User not found")
        return user_aggregate.user

    async def logout(self, token: str) -> None:
        """Blacklist the token for the rest of its lifetime."""
        if not self.redis_client:
            return
        try:
            payload = self.token_client.decode_token(token)
        except ValueError:
            # Expired or invalid tokens are already unusable
            return

        exp = payload.get("exp")
        if not exp:
            return
        remaining_seconds = int(exp) - int(datetime.now(timezone.utc).timestamp())
        if remaining_seconds > 0:
            await self.redis_client.set_value(REDIS_BLACKLISTED_TOKEN + token, "true", expiry=remaining_seconds)
