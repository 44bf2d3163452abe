from fastapi import APIRouter

from .auth import auth_router
from .health import health_router

# Routes open to every caller; /auth/me checks the session itself
shared_router = APIRouter()

shared_router.include_router(auth_router, prefix="/auth", tags=["Shared - Auth"])
shared_router.include_router(health_router, prefix="/health", tags=["Shared - Health"])
