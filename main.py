from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from starlette.middleware.base import BaseHTTPMiddleware
import uvicorn
from app.auth.api.routes import auth_router
from app.auth.service.auth_service import AuthService
from app.chat.api.route import chat_router
from app.chat.repository.chat_repository import ChatRepository
from app.chat.service.service import ChatService
from app.core.config import settings
from app.core.logger import get_logger, mask_secret
from app.core.security import SecurityHeadersMiddleware
from app.files.api.route import file_router
from app.files.repository.file_repository import FileRepository
from app.files.service.file_service import FileService
from app.kanban.api.route import kanban_router
from app.kanban.repository.task_repository import TaskRepository
from app.kanban.service.task_service import TaskService
from app.llm.api.route import llm_router
from app.llm.service.errors import LLMError
from app.llm.service.llm_service import LLMGateway
from app.llm.service.registry import ProviderRegistry
from app.user.api.routes import user_router
from app.user.repository.user_repository import UserRepository
from app.user.service.user_service import UserService
from pkg.auth_token_client.client import TokenClient
from pkg.db_util.postgres_conn import PostgresConnection
from pkg.db_util.types import PostgresConfig
from pkg.redis.client import RedisClient
from pkg.s3_client.client import S3Client, S3Config
from dotenv import load_dotenv
from redis.exceptions import RedisError
import asyncio
import os
import sys

# Load .env so os.getenv picks up values from your .env file
load_dotenv()

logger = get_logger("team-hub-api")

SERVICE_NAME = "team-hub-api"
OPEN_PATHS = ["/health", "/", "/docs", "/openapi.json"]
PLACEHOLDER_JWT_SECRET = "your_jwt_secret_here_change_this"


def missing_required_config() -> list[str]:
    required = {
        "POSTGRES_HOST": settings.POSTGRES_HOST.strip(),
        "POSTGRES_USER": settings.POSTGRES_USER.strip(),
        "POSTGRES_PASSWORD": settings.POSTGRES_PASSWORD.strip(),
        "POSTGRES_DB": settings.POSTGRES_DB.strip(),
        "JWT_SECRET": (settings.JWT_SECRET or "").strip(),
    }
    if required["JWT_SECRET"] == PLACEHOLDER_JWT_SECRET:
        required["JWT_SECRET"] = ""
    return [key for key, value in required.items() if not value]


def log_environment() -> None:
    logger.info("=== Environment Variables Check ===")
    logger.info(f"ENV: {settings.ENV}")
    logger.info(f"POSTGRES_HOST: {settings.POSTGRES_HOST or 'NOT SET'}")
    logger.info(f"POSTGRES_USER: {settings.POSTGRES_USER or 'NOT SET'}")
    logger.info(f"POSTGRES_PASSWORD: {mask_secret(settings.POSTGRES_PASSWORD)}")
    logger.info(f"POSTGRES_DB: {settings.POSTGRES_DB or 'NOT SET'}")
    logger.info(f"JWT_SECRET: {mask_secret(settings.JWT_SECRET)}")
    logger.info(f"REDIS_HOST: {settings.REDIS_HOST or 'NOT SET'}")
    logger.info(f"LLM_PROVIDER: {settings.LLM_PROVIDER}")
    logger.info(f"OPENAI_API_KEY: {mask_secret(settings.OPENAI_API_KEY)}")
    logger.info(f"ANTHROPIC_API_KEY: {mask_secret(settings.ANTHROPIC_API_KEY)}")
    logger.info(f"GOOGLE_API_KEY: {mask_secret(settings.GOOGLE_API_KEY)}")
    logger.info(f"AWS_S3_BUCKET: {settings.AWS_S3_BUCKET or 'NOT SET'}")
    logger.info("===================================")


def set_degraded_state(app: FastAPI, error: str) -> None:
    """Minimal state so the health endpoint keeps answering."""
    app.state.logger = logger
    app.state.postgres_conn = None
    app.state.redis_client = None
    app.state.startup_complete = False
    app.state.startup_error = error


async def connect_redis() -> RedisClient | None:
    if not settings.REDIS_HOST:
        logger.info("REDIS_HOST not set, logout will only clear the auth cookie")
        return None
    redis_client = RedisClient(
        logger,
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        password=settings.REDIS_PASSWORD,
        ssl=settings.REDIS_SSL,
    )
    try:
        if await redis_client.ping():
            logger.info(f"Connected to Redis at {settings.REDIS_HOST}:{settings.REDIS_PORT}")
            return redis_client
    except RedisError as e:
        logger.warning(f"Redis unavailable: {e!s}")
    logger.warning("Redis ping failed, continuing without token revocation")
    await redis_client.close()
    return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire every service onto app.state before requests are accepted."""
    logger.info("Team Hub API starting up...")
    logger.info(f"Python: {sys.version}")
    logger.info(f"Working directory: {os.getcwd()}")
    log_environment()

    missing_vars = missing_required_config()
    if missing_vars:
        error_msg = f"Missing required environment variables: {', '.join(missing_vars)}"
        logger.error(error_msg)
        logger.error("Application will start in degraded mode")
        set_degraded_state(app, error_msg)
        yield
        return

    postgres_conn = None
    registry = None
    try:
        postgres_config = PostgresConfig(
            host=settings.POSTGRES_HOST.strip(),
            port=settings.POSTGRES_PORT,
            username=settings.POSTGRES_USER.strip(),
            password=settings.POSTGRES_PASSWORD.strip(),
            database=settings.POSTGRES_DB.strip(),
            pool_timeout=30,
        )
        postgres_conn = PostgresConnection(postgres_config, logger)

        logger.info("Initializing database engine with retry logic...")
        try:
            await asyncio.wait_for(
                postgres_conn.get_engine(max_retries=5, initial_delay=2.0),
                timeout=60.0,
            )
            logger.info("Postgres engine initialized and cached during startup.")
        except asyncio.TimeoutError:
            logger.error("Database connection timed out after 60 seconds")
            raise ConnectionError("Database connection timeout - check network/credentials")

        if settings.DB_AUTO_CREATE:
            from pkg.db_util.sql_alchemy.declarative_base import Base
            # Import all models so SQLAlchemy registers them
            from app.user.repository.sql_schema.user import UserModel, InviteModel  # noqa: F401
            from app.chat.repository.sql_schema.chat import ChatModel, ChatMessageModel  # noqa: F401
            from app.kanban.repository.sql_schema.task import TaskModel  # noqa: F401
            from app.files.repository.sql_schema.file import FileModel  # noqa: F401

            await postgres_conn.create_all(Base.metadata)
        else:
            logger.info("Skipping automatic table creation (set DB_AUTO_CREATE=true to enable)")

        token_client = TokenClient(settings.JWT_SECRET, expires_days=settings.JWT_EXPIRES_DAYS)
        redis_client = await connect_redis()

        user_repo = UserRepository(postgres_conn.get_session, logger)
        user_service = UserService(user_repo, logger)
        auth_service = AuthService(
            user_service, token_client, redis_client, logger, salt_rounds=settings.HASH_SALT_ROUNDS
        )
        chat_service = ChatService(ChatRepository(postgres_conn), logger)
        task_service = TaskService(TaskRepository(postgres_conn), user_service, logger)

        s3_client = S3Client(
            S3Config(
                bucket=settings.AWS_S3_BUCKET,
                region=settings.AWS_REGION,
                access_key_id=settings.AWS_ACCESS_KEY_ID,
                secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                endpoint_url=settings.S3_ENDPOINT_URL,
            ),
            logger,
        )
        if not s3_client.is_enabled:
            logger.warning("S3 storage not configured, file uploads will fail")
        file_service = FileService(FileRepository(postgres_conn), s3_client, logger)

        registry = ProviderRegistry.from_settings(settings)
        llm_gateway = LLMGateway(registry, default_provider=settings.LLM_PROVIDER)
        for name, enabled in registry.configured().items():
            logger.info(f"LLM provider {name}: {'configured' if enabled else 'not configured'}")

        # Expose on app.state for dependencies
        app.state.logger = logger
        app.state.postgres_conn = postgres_conn
        app.state.redis_client = redis_client
        app.state.token_client = token_client
        app.state.user_service = user_service
        app.state.auth_service = auth_service
        app.state.chat_service = chat_service
        app.state.task_service = task_service
        app.state.s3_client = s3_client
        app.state.file_service = file_service
        app.state.llm_registry = registry
        app.state.llm_gateway = llm_gateway
        app.state.startup_complete = True
        app.state.startup_error = None

        logger.info("Startup complete - application is ready!")

    except Exception as e:
        logger.error(f"Startup failed: {e}", exc_info=True)
        logger.error("Application will start in degraded mode - check logs above")
        set_degraded_state(app, str(e))

    yield

    logger.info("Team Hub API shutting down...")
    if registry is not None:
        await registry.aclose()
    redis_client = getattr(app.state, "redis_client", None)
    if redis_client is not None:
        await redis_client.close()
    if postgres_conn is not None:
        await postgres_conn.close_engine()


# Startup Check Middleware - ensures no requests processed before startup completes
class StartupCheckMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.url.path in OPEN_PATHS:
            return await call_next(request)

        if not getattr(request.app.state, "startup_complete", False):
            startup_error = getattr(request.app.state, "startup_error", None)
            message = (
                f"Service initialization failed: {startup_error}"
                if startup_error
                else "Service is starting up. Please retry in a few seconds."
            )
            return JSONResponse(status_code=503, content={"status": False, "message": message})

        return await call_next(request)


async def http_exception_handler(request: Request, exc: HTTPException):
    """Convert HTTPException to standardized error format"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": False, "message": exc.detail},
        headers=exc.headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"status": False, "message": "Invalid input", "details": details},
    )


async def llm_exception_handler(request: Request, exc: LLMError):
    content = {"status": False, "message": exc.public_message()}
    if exc.details and not settings.is_production:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


async def health(request: Request):
    """Health check that shows service status"""
    state = request.app.state
    startup_complete = getattr(state, "startup_complete", False)
    startup_error = getattr(state, "startup_error", None)

    if not startup_complete:
        # Missing configuration is an operator error, not a transient startup state
        status_code = 500 if startup_error and startup_error.startswith("Missing required") else 200
        return JSONResponse(
            status_code=status_code,
            content={
                "status": "starting" if startup_error is None else "degraded",
                "service": SERVICE_NAME,
                "message": startup_error or "Application is still starting up...",
                "startup_complete": False,
            },
        )

    all_healthy = True
    checks = {}

    postgres_conn = getattr(state, "postgres_conn", None)
    if postgres_conn is None:
        checks["database"] = "not_initialized"
        all_healthy = False
    else:
        try:
            await asyncio.wait_for(postgres_conn.ping(), timeout=5.0)
            checks["database"] = "connected"
        except Exception as e:
            logger.error(f"Database health check failed: {e!s}")
            checks["database"] = "error" if settings.is_production else f"error: {e!s}"
            all_healthy = False

    checks["redis"] = "connected" if getattr(state, "redis_client", None) else "disabled"
    s3_client = getattr(state, "s3_client", None)
    checks["storage"] = "configured" if s3_client is not None and s3_client.is_enabled else "not_configured"
    registry = getattr(state, "llm_registry", None)
    checks["llm_providers"] = registry.configured() if registry is not None else {}

    return JSONResponse(
        status_code=200 if all_healthy else 503,
        content={
            "status": "ok" if all_healthy else "degraded",
            "service": SERVICE_NAME,
            "checks": checks,
            "startup_complete": True,
        },
    )


async def root():
    """Root endpoint - simple check that app is running"""
    return {
        "service": SERVICE_NAME,
        "version": "1.0.0",
        "status": "running",
        "health_check": "/health",
    }


def create_app(use_lifespan: bool = True) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Team chat, kanban, files and multi-provider LLM gateway",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else None,
    )

    # Last added runs first: CORS, then security headers, then the startup gate
    app.add_middleware(StartupCheckMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins or ["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(LLMError, llm_exception_handler)

    app.include_router(auth_router)
    app.include_router(user_router)
    app.include_router(chat_router)
    app.include_router(kanban_router)
    app.include_router(file_router)
    app.include_router(llm_router)

    app.add_api_route("/health", health, methods=["GET"])
    app.add_api_route("/", root, methods=["GET"])
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
