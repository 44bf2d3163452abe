from typing import Annotated, Any, Dict

from fastapi import APIRouter, Body, Depends, Request, status, Path

from app.services.registration_service import (
    RegistrationService,
    get_registration_service,
)
from app.schemas.public.registration_schemas import (
    RegistrationLookupResponse,
    RegistrationResultResponse,
)
from app.utils.responses import ResponseBuilder

registration_router = APIRouter()

RegistrationToken = Annotated[str, Path(description="Registration link token")]


@registration_router.get(
    "/{token}",
    response_model=RegistrationLookupResponse,
    status_code=status.HTTP_200_OK,
    summary="Resolve a registration link",
)
async def get_registration(
    request: Request,
    token: RegistrationToken,
    registration_service: RegistrationService = Depends(get_registration_service),
):
    employee = await registration_service.lookup_by_token(token)

    return ResponseBuilder.success(
        request=request,
        data=employee.model_dump(by_alias=True),
        message="Registration link is valid",
    )


@registration_router.post(
    "/{token}",
    response_model=RegistrationResultResponse,
    status_code=status.HTTP_200_OK,
    summary="Complete registration or password reset",
    description="The expected body depends on the employee: a password reset needs only the password and consents, a first registration also needs the profile fields.",
)
async def complete_registration(
    request: Request,
    token: RegistrationToken,
    payload: Annotated[Dict[str, Any], Body()],
    registration_service: RegistrationService = Depends(get_registration_service),
):
    result = await registration_service.complete_registration(token, payload)

    return ResponseBuilder.success(
        request=request,
        data=result.model_dump(by_alias=True),
        message=result.message,
    )
