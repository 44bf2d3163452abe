from fastapi import APIRouter

from app.routers.admin import admin_router
from app.routers.public import public_router
from app.routers.shared import shared_router

main_router = APIRouter()

# Include audience-based routers
main_router.include_router(admin_router, prefix="/admin")
main_router.include_router(public_router, prefix="/public")
main_router.include_router(shared_router, prefix="/shared")
