from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

TOKEN_ISSUER = "team-hub"
TOKEN_AUDIENCE = "team-hub-users"


@dataclass
class TokenPayload:
    user_id: str
    email: str | None = None


class TokenClient:
    def __init__(self, secret_key: str, expires_days: int = 7, leeway_seconds: int = 10):
        self.secret_key = secret_key
        self.expires_days = expires_days
        # Allow small clock skew when decoding tokens
        self.leeway_seconds = leeway_seconds

    @property
    def max_age_seconds(self) -> int:
        return int(timedelta(days=self.expires_days).total_seconds())

    def create_token(self, payload: TokenPayload) -> str:
        """Create a signed access token"""
        now = datetime.now(timezone.utc)
        to_encode = {
            "user_id": str(payload.user_id),
            "email": payload.email,
            "iat": int(now.timestamp()),
            "exp": now + timedelta(days=self.expires_days),
            "iss": TOKEN_ISSUER,
            "aud": TOKEN_AUDIENCE,
        }
        return jwt.encode(to_encode, self.secret_key, algorithm="HS256")

    def decode_token(self, token: str) -> dict:
        """Decode and verify a token"""
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=["HS256"],
                issuer=TOKEN_ISSUER,
                audience=TOKEN_AUDIENCE,
                leeway=self.leeway_seconds,
            )
        except jwt.ExpiredSignatureError:
            raise ValueError("Token has expired")
        except jwt.InvalidTokenError:
            raise ValueError("Invalid token")
