from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config.settings import Settings, settings
from app.utils.logging import get_logger
from app.routers import main_router
from app.utils.errors import setup_error_handlers
from app.middlewares import (
    RequestIDMiddleware,
    DevSecurityMiddleware,
    ProdSecurityMiddleware,
    SessionAuthMiddleware,
)
from app.middlewares.auth_middleware import ACTOR_HEADER, ACTOR_ROLE_HEADER
from app.middlewares.request_id_middleware import REQUEST_ID_HEADER

# Initialize the logger
logger = get_logger()


def _warn_on_missing_secrets(config: Settings) -> None:
    if not config.IIN_ENCRYPTION_KEY:
        logger.warning("IIN_ENCRYPTION_KEY is not set, registrations with an IIN will fail")
    if not config.SMTP_HOST:
        logger.warning("SMTP_HOST is not set, emails will be skipped")
    if config.JWT_SECRET_KEY.startswith("<"):
        logger.warning("JWT_SECRET_KEY still has its placeholder value")


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info(f"{settings.NAME} {settings.VERSION} is starting up ({settings.ENVIRONMENT})...")
    _warn_on_missing_secrets(settings)
    yield
    logger.info(f"{settings.NAME} is shutting down...")


def create_application() -> FastAPI:
    """Initialize the FastAPI application with settings and lifespan events."""
    is_production = settings.ENVIRONMENT == "production"
    application = FastAPI(
        title=settings.NAME,
        version=settings.VERSION,
        lifespan=lifespan,
        docs_url=None if is_production else "/docs",
        redoc_url=None,
    )

    setup_error_handlers(application)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_HOSTS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "Authorization",
            REQUEST_ID_HEADER,
            ACTOR_HEADER,
            ACTOR_ROLE_HEADER,
        ],
        expose_headers=[REQUEST_ID_HEADER, "Content-Disposition"],
    )

    # Starlette runs the last added middleware first: request ID, then session
    application.add_middleware(
        ProdSecurityMiddleware if is_production else DevSecurityMiddleware
    )
    application.add_middleware(SessionAuthMiddleware)
    application.add_middleware(RequestIDMiddleware)

    application.include_router(main_router, prefix=settings.API_PREFIX)

    return application


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT != "production",
        log_config=None,
        log_level=None,
    )
