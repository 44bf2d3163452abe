from typing import Annotated
from fastapi import APIRouter, Depends, Request, status

from app.services.auth_service import AuthService, AuthState, get_auth_service
from app.schemas.auth_schemas import (
    BootstrapAdminRequest,
    LoginRequest,
    LoginResponse,
)
from app.middlewares.auth_middleware import require_any_user
from app.utils.responses import ResponseBuilder
from app.utils.cookies import CookieUtils

auth_router = APIRouter()


@auth_router.post("/bootstrap", status_code=status.HTTP_201_CREATED)
async def bootstrap_admin(
    bootstrap_request: BootstrapAdminRequest,
    request: Request,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """
    Create the first administrator.

    Requires the server bootstrap key and only works while no admin exists.
    """
    user, token = await auth_service.bootstrap_admin(
        bootstrap_request.email,
        bootstrap_request.password,
        bootstrap_request.bootstrap_key,
    )

    response = ResponseBuilder.success(
        request=request,
        data=LoginResponse(user=user, token=token).model_dump(by_alias=True),
        message="Admin created",
        status_code=status.HTTP_201_CREATED,
    )
    CookieUtils.set_auth_cookie(response, token, auth_service.config)

    return response


@auth_router.post("/login")
async def login(
    login_request: LoginRequest,
    request: Request,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """
    Login with email and password.

    The session token is returned in the body and set as an HTTP-only cookie.
    """
    user, token = await auth_service.login(login_request.email, login_request.password)

    response = ResponseBuilder.success(
        request=request,
        data=LoginResponse(user=user, token=token).model_dump(by_alias=True),
        message="Login successful",
    )
    CookieUtils.set_auth_cookie(response, token, auth_service.config)

    return response


@auth_router.post("/logout")
async def logout(request: Request):
    """Clear the session cookie"""
    response = ResponseBuilder.success(request=request, message="Logout successful")
    CookieUtils.clear_auth_cookie(response)

    return response


@auth_router.get("/me")
async def get_current_user_info(
    request: Request,
    current_user: Annotated[AuthState, Depends(require_any_user)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """Own account; employees also get their profile and certificates"""
    profile = await auth_service.get_profile(current_user)

    return ResponseBuilder.success(
        request=request,
        data=profile.model_dump(by_alias=True),
        message="User information retrieved",
    )
