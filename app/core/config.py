import os
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global configuration for environment variables."""

    APP_NAME: str = "Team Hub API"
    ENV: str = os.getenv("ENV", "development")

    # Server config
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", 8080))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # LLM providers
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "openai")  # openai | anthropic | google (gemini)
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
    GOOGLE_API_KEY: str | None = os.getenv("GOOGLE_API_KEY")
    GEMINI_BASE_URL: str = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com")
    LLM_REQUEST_TIMEOUT_S: float = float(os.getenv("LLM_REQUEST_TIMEOUT_S", "60"))
    STREAM_CHANNEL_SIZE: int = int(os.getenv("STREAM_CHANNEL_SIZE", "64"))

    # Chat endpoint defaults, applied when the request omits them
    CHAT_DEFAULT_TEMPERATURE: float = float(os.getenv("CHAT_DEFAULT_TEMPERATURE", "0.7"))
    CHAT_DEFAULT_MAX_TOKENS: int = int(os.getenv("CHAT_DEFAULT_MAX_TOKENS", "2048"))

    # Auth
    JWT_SECRET: str | None = os.getenv("JWT_SECRET")
    JWT_EXPIRES_DAYS: int = int(os.getenv("JWT_EXPIRES_DAYS", "7"))
    HASH_SALT_ROUNDS: int = int(os.getenv("HASH_SALT_ROUNDS", "12"))

    # Postgres
    POSTGRES_HOST: str = os.getenv("POSTGRES_HOST", "")
    POSTGRES_PORT: int = int(os.getenv("POSTGRES_PORT", "5432"))
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "")
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "")
    DB_AUTO_CREATE: bool = os.getenv("DB_AUTO_CREATE", "false").lower() in ("1", "true")

    # Redis (token revocation, optional)
    REDIS_HOST: str | None = os.getenv("REDIS_HOST")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_PASSWORD: str | None = os.getenv("REDIS_PASSWORD") or None
    REDIS_SSL: bool = os.getenv("REDIS_SSL", "false").lower() == "true"

    # S3 file storage
    AWS_REGION: str = os.getenv("AWS_REGION", "us-east-1")
    AWS_ACCESS_KEY_ID: str | None = os.getenv("AWS_ACCESS_KEY_ID")
    AWS_SECRET_ACCESS_KEY: str | None = os.getenv("AWS_SECRET_ACCESS_KEY")
    AWS_S3_BUCKET: str | None = os.getenv("AWS_S3_BUCKET")
    S3_ENDPOINT_URL: str | None = os.getenv("S3_ENDPOINT_URL")

    # Comma separated list of origins allowed to call mutating API routes
    ALLOWED_ORIGINS: str = os.getenv("ALLOWED_ORIGINS", "")

    # Debug
    DEBUG: bool = os.getenv("DEBUG", "True").lower() in ("1", "true")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"

    @property
    def allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]


settings = Settings()
