from fastapi import APIRouter

from .registration import registration_router
from .requests import public_requests_router

public_router = APIRouter()

# Include sub-routers
public_router.include_router(
    registration_router, prefix="/registration", tags=["Public - Registration"]
)
public_router.include_router(
    public_requests_router, prefix="/requests", tags=["Public - Requests"]
)
